"""
Shared Kernel Module
====================

Generic infrastructure used across all bounded contexts (access, sla,
tickets, notifications, reporting).

DO NOT add ticket or SLA business logic to the shared kernel.
"""
