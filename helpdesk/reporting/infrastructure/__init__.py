"""
Reporting Infrastructure Layer
==============================
"""

from helpdesk.reporting.infrastructure.repositories import SQLAlchemyReportingRepository

__all__ = ["SQLAlchemyReportingRepository"]
