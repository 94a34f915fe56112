"""
Access Interfaces Layer
=======================

FastAPI dependencies resolving the calling principal.
"""

from helpdesk.access.interfaces.dependencies import get_current_principal, require_admin

__all__ = ["get_current_principal", "require_admin"]
