"""
Maintenance scheduling

Modules:
- calculator: due dates, overdue/reminder evaluation for schedules
- rules: rule-driven due dates and work order pre-generation
- work_orders: work order status and lifecycle transitions
- service: maintenance operations over a storage provider
"""

from .calculator import (
    calculate_next_due,
    days_until_due,
    evaluate_schedules,
    format_schedule_description,
    is_event_maintenance_due,
    is_overdue,
    is_reminder_due,
    is_usage_maintenance_due,
    resolve_next_due,
)
from .models import DueDateResult, DueStatus, NotComputableReason, ScheduleStatus
from .service import (
    InMemoryStorageProvider,
    MaintenanceService,
    RecordNotFoundError,
    StorageProvider,
    StorageUnavailableError,
)
from .work_orders import InvalidTransitionError, apply_transition

__version__ = "0.1.0"

__all__ = [
    "calculate_next_due",
    "days_until_due",
    "evaluate_schedules",
    "format_schedule_description",
    "is_event_maintenance_due",
    "is_overdue",
    "is_reminder_due",
    "is_usage_maintenance_due",
    "resolve_next_due",
    "DueDateResult",
    "DueStatus",
    "NotComputableReason",
    "ScheduleStatus",
    "InMemoryStorageProvider",
    "MaintenanceService",
    "RecordNotFoundError",
    "StorageProvider",
    "StorageUnavailableError",
    "InvalidTransitionError",
    "apply_transition",
]
