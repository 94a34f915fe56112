"""
Reporting Interfaces Layer
==========================
"""

from helpdesk.reporting.interfaces.controllers import reports_router

__all__ = ["reports_router"]
