"""
SLA Watch
=========

SLA deadline monitor and notification-derivation engine for scheduled
operations subtasks.

Modules:
- sla: Deadline evaluation, event deduplication, periodic scheduling
- notifications: Classification, live countdown recomputation, feed API
"""

__version__ = "1.0.0"
