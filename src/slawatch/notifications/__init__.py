"""
Notifications Module
====================

Bounded context for the notification feed.

Responsibilities:
- Store append-only notification events and their read/archive status
- Classify raw events into the display taxonomy at read time
- Recompute remaining/overdue countdowns live as clients poll
- Resolve recipients per notification type
- Expose the notification list/read/archive/overdue-reason API
"""
