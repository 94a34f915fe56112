"""
Access Module
=============

Bounded context for authorization.

Responsibilities:
- Resolve the authenticated principal from identity tables
- Decide whether a principal may perform an action on a ticket or resource
"""
