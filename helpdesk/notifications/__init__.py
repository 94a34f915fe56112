"""
Notifications Module
====================

Ticket event fan-out: history rows, inbox notifications, audit trail
and outbound webhooks.
"""
