"""Data models for maintenance scheduling results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from ..common.models import WorkOrderLineItem, WorkOrderOffer, WorkOrderState


class DueStatus(str, Enum):
    """Badge classification of a schedule relative to today."""
    OVERDUE = "overdue"
    DUE_SOON = "due-soon"
    OK = "ok"


class NotComputableReason(str, Enum):
    """Why a schedule has no calendar due date."""
    MISSING_INTERVAL = "missing-interval"
    USAGE_COUNTER_REQUIRED = "usage-counter-required"
    BOOKING_COUNTER_REQUIRED = "booking-counter-required"
    MISSING_FIXED_DATE = "missing-fixed-date"


@dataclass(frozen=True)
class DueDateResult:
    """Outcome of a due-date computation.

    Exactly one of ``due_date`` and ``reason`` is set.
    """

    due_date: date | None = None
    reason: NotComputableReason | None = None

    @property
    def is_computable(self) -> bool:
        return self.due_date is not None


@dataclass
class ScheduleStatus:
    """Snapshot of one schedule's state on a given day."""

    schedule_id: str
    asset_id: str
    description: str
    next_due: date | None
    days_until_due: int | None
    status: DueStatus | None
    reminder_due: bool

    def to_dict(self) -> dict:
        return {
            "schedule_id": self.schedule_id,
            "asset_id": self.asset_id,
            "description": self.description,
            "next_due": self.next_due.isoformat() if self.next_due else None,
            "days_until_due": self.days_until_due,
            "status": self.status.value if self.status else None,
            "reminder_due": self.reminder_due,
        }


@dataclass
class RuleCompletionUpdate:
    """Changes to apply to a rule after one of its work orders completes."""

    next_due_date: date
    updated_start_date: date | None = None
    next_reschedule_mode: str | None = None


@dataclass
class RulePreviewItem:
    due_date: date
    lead_time_start: date
    is_past: bool


@dataclass
class WorkOrderDraft:
    """Data for a work order that has not been stored yet."""

    rule_id: str
    type: str
    order_type: str
    state: str
    lead_time_days: int
    scheduled_start: date | None = None
    company_id: str | None = None
    line_items: list[WorkOrderLineItem] = field(default_factory=list)
    created_by: str = "system"

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "type": self.type,
            "order_type": self.order_type,
            "state": self.state,
            "lead_time_days": self.lead_time_days,
            "scheduled_start": (
                self.scheduled_start.isoformat() if self.scheduled_start else None
            ),
            "company_id": self.company_id,
            "line_items": [item.model_dump(mode="json") for item in self.line_items],
            "created_by": self.created_by,
        }


class WorkOrderEventType(str, Enum):
    """Events that move a work order through its lifecycle."""
    ACTIVATE = "ACTIVATE"
    ASSIGN = "ASSIGN"
    REQUEST_OFFER = "REQUEST_OFFER"
    RECEIVE_OFFER = "RECEIVE_OFFER"
    REQUEST_MORE_OFFERS = "REQUEST_MORE_OFFERS"
    PLAN = "PLAN"
    START = "START"
    COMPLETE = "COMPLETE"
    APPROVE = "APPROVE"
    REOPEN = "REOPEN"
    ABORT = "ABORT"
    MARK_OBSOLETE = "MARK_OBSOLETE"


@dataclass
class WorkOrderEvent:
    """A lifecycle event plus the input it carries, if any."""

    type: WorkOrderEventType
    assigned_to: str | None = None
    scheduled_start: date | None = None
    actual_end: date | None = None
    company_id: str | None = None
    offer: WorkOrderOffer | None = None


@dataclass(frozen=True)
class TransitionOption:
    event: WorkOrderEventType
    target_state: WorkOrderState
    requires_input: str | None = None
