"""
Notifications Interfaces Layer
==============================

FastAPI route handlers for the notification feed.
"""

from slawatch.notifications.interfaces.controllers import notifications_router

__all__ = ["notifications_router"]
