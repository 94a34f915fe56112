"""
Reporting Application Layer
===========================
"""

from helpdesk.reporting.application.dto import (
    BacklogItem,
    DashboardRange,
    DashboardResponse,
    DashboardSummary,
    QueueItem,
    ThroughputPoint,
    TicketExportRow,
    WipItem,
)
from helpdesk.reporting.application.services import (
    IReportingRepository,
    ReportingService,
    render_csv,
    report_sla_state,
    throughput_series,
)

__all__ = [
    "BacklogItem",
    "DashboardRange",
    "DashboardResponse",
    "DashboardSummary",
    "QueueItem",
    "ThroughputPoint",
    "TicketExportRow",
    "WipItem",
    "IReportingRepository",
    "ReportingService",
    "render_csv",
    "report_sla_state",
    "throughput_series",
]
