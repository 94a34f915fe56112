"""
Tickets Module
==============

Ticket lifecycle: intake, status transitions, assignment, comments and
attachments, wired to the SLA engine and the event dispatcher.
"""
