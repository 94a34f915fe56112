"""
Notification Interfaces Layer
=============================

Inbox routes for every user and the admin settings routes.
"""

from helpdesk.notifications.interfaces.controllers import admin_router, notifications_router

__all__ = ["admin_router", "notifications_router"]
