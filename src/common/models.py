"""Shared Pydantic data models for the maintenance engine.

These models define the records exchanged with the storage provider:
assets, bookings, maintenance schedules, work orders, rules and
stock-take sessions. All modules import from here.

Field names are snake_case; the camelCase names used by the storage
provider (``assetId``, ``nextDue``, ...) are accepted as aliases and
produced by ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def to_calendar_date(value: Any) -> Any:
    """Truncate timestamps to a calendar date.

    Aware datetimes are converted to UTC first so that a timestamp always
    maps to the same day regardless of the offset it was written with.
    ISO strings (plain dates or timestamps) are parsed the same way.
    Anything unparseable is returned unchanged for pydantic to reject.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


CalendarDate = Annotated[date, BeforeValidator(to_calendar_date)]


class Record(BaseModel):
    """Base for all stored records."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === Enums ===

class AssetStatus(str, Enum):
    AVAILABLE = "available"
    IN_USE = "in-use"
    BROKEN = "broken"
    IN_REPAIR = "in-repair"
    INSTALLED = "installed"
    SOLD = "sold"
    DESTROYED = "destroyed"
    DELETED = "deleted"


class BookingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class ScheduleType(str, Enum):
    TIME_BASED = "time-based"
    USAGE_BASED = "usage-based"
    EVENT_BASED = "event-based"
    FIXED_DATE = "fixed-date"


class MaintenanceType(str, Enum):
    INSPECTION = "inspection"
    CLEANING = "cleaning"
    REPAIR = "repair"
    CALIBRATION = "calibration"
    TESTING = "testing"
    COMPLIANCE = "compliance"
    OTHER = "other"


class WorkOrderType(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class WorkOrderOrderType(str, Enum):
    PLANNED = "planned"
    UNPLANNED = "unplanned"


class WorkOrderState(str, Enum):
    BACKLOG = "backlog"
    SCHEDULED = "scheduled"
    ASSIGNED = "assigned"
    OFFER_REQUESTED = "offer-requested"
    OFFER_RECEIVED = "offer-received"
    PLANNED = "planned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DONE = "done"
    ABORTED = "aborted"
    OBSOLETE = "obsolete"


class LineItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class RuleTargetType(str, Enum):
    ASSET = "asset"
    KIT = "kit"
    MODEL = "model"
    TAG = "tag"


class RuleIntervalType(str, Enum):
    DAYS = "days"
    MONTHS = "months"
    USES = "uses"


class RescheduleMode(str, Enum):
    ACTUAL_COMPLETION = "actual-completion"
    REPLAN_ONCE = "replan-once"


class StockTakeStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# === Assets & Bookings ===

class NamedRef(Record):
    id: str
    name: str


class AssetRef(Record):
    """Denormalised asset reference embedded in other records."""
    id: str
    asset_number: str = ""
    name: str = ""


class AssetGroupRef(Record):
    id: str
    group_number: str | None = None
    name: str | None = None


class Asset(Record):
    id: str
    asset_number: str
    name: str
    status: AssetStatus = AssetStatus.AVAILABLE
    location: str | None = None
    asset_type: NamedRef | None = None
    asset_group: AssetGroupRef | None = None
    model_id: str | None = None
    tag_ids: list[str] = Field(default_factory=list)


class AssetGroup(Record):
    id: str
    group_number: str
    name: str
    member_count: int | None = Field(default=None, ge=0)


class Booking(Record):
    id: str
    asset: AssetRef | None = None
    start_date: CalendarDate
    end_date: CalendarDate
    status: BookingStatus = BookingStatus.PENDING
    purpose: str = ""

    @model_validator(mode="after")
    def _end_not_before_start(self) -> Booking:
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


# === Maintenance schedules ===

PositiveInt = Annotated[int, Field(gt=0)]


class ScheduleBase(Record):
    """Fields shared by every schedule kind."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    asset_id: str
    reminder_days_before: int = Field(default=0, ge=0)
    last_performed: CalendarDate | None = None
    next_due: CalendarDate | None = None


class TimeBasedSchedule(ScheduleBase):
    """Recurs every N days, months or years (checked in that order)."""
    schedule_type: Literal["time-based"] = "time-based"
    interval_days: PositiveInt | None = None
    interval_months: PositiveInt | None = None
    interval_years: PositiveInt | None = None


class UsageBasedSchedule(ScheduleBase):
    """Due after N operating hours."""
    schedule_type: Literal["usage-based"] = "usage-based"
    interval_hours: PositiveInt | None = None


class EventBasedSchedule(ScheduleBase):
    """Due after N bookings."""
    schedule_type: Literal["event-based"] = "event-based"
    interval_bookings: PositiveInt | None = None


class FixedDateSchedule(ScheduleBase):
    """Due every year on the month/day of ``fixed_date``."""
    schedule_type: Literal["fixed-date"] = "fixed-date"
    fixed_date: CalendarDate | None = None


MaintenanceSchedule = Union[
    TimeBasedSchedule, UsageBasedSchedule, EventBasedSchedule, FixedDateSchedule
]

_SCHEDULE_MODELS: dict[str, type[ScheduleBase]] = {
    ScheduleType.TIME_BASED.value: TimeBasedSchedule,
    ScheduleType.USAGE_BASED.value: UsageBasedSchedule,
    ScheduleType.EVENT_BASED.value: EventBasedSchedule,
    ScheduleType.FIXED_DATE.value: FixedDateSchedule,
}


def parse_schedule(data: dict[str, Any] | ScheduleBase) -> MaintenanceSchedule:
    """Build the matching schedule variant from a plain mapping.

    The variant is chosen by ``schedule_type`` (or ``scheduleType``).

    Raises:
        ValueError: Unknown schedule type, or a pydantic ValidationError
            (a ValueError subclass) for invalid fields.
    """
    if isinstance(data, ScheduleBase):
        return data
    kind = data.get("schedule_type", data.get("scheduleType"))
    if isinstance(kind, ScheduleType):
        kind = kind.value
    model = _SCHEDULE_MODELS.get(kind)
    if model is None:
        raise ValueError(f"Unknown schedule type: {kind!r}")
    return model.model_validate(data)


# === Maintenance records ===

class MaintenanceRecord(Record):
    """Historical entry for a completed maintenance action. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str
    asset: AssetRef
    type: MaintenanceType = MaintenanceType.OTHER
    date: CalendarDate
    performed_by: str
    performed_by_name: str | None = None
    description: str = ""
    notes: str | None = None
    cost: float | None = Field(default=None, ge=0)


# === Work orders ===

class WorkOrderLineItem(Record):
    asset_id: str
    completion_status: LineItemStatus = LineItemStatus.PENDING
    completed_at: datetime | None = None


class WorkOrderOffer(Record):
    company_id: str
    amount: float = Field(gt=0)
    received_at: datetime
    notes: str | None = None


class WorkOrderHistoryEntry(Record):
    state: WorkOrderState
    changed_at: datetime
    changed_by: str
    changed_by_name: str | None = None
    notes: str | None = None


class WorkOrder(Record):
    id: str
    work_order_number: str
    type: WorkOrderType = WorkOrderType.INTERNAL
    order_type: WorkOrderOrderType = WorkOrderOrderType.UNPLANNED
    state: WorkOrderState = WorkOrderState.BACKLOG
    rule_id: str | None = None
    company_id: str | None = None
    assigned_to: str | None = None
    approval_responsible_id: str | None = None
    lead_time_days: int = Field(default=0, ge=0)
    scheduled_start: CalendarDate | None = None
    scheduled_end: CalendarDate | None = None
    actual_start: CalendarDate | None = None
    actual_end: CalendarDate | None = None
    offers: list[WorkOrderOffer] = Field(default_factory=list)
    line_items: list[WorkOrderLineItem] = Field(default_factory=list)
    history: list[WorkOrderHistoryEntry] = Field(default_factory=list)
    created_by: str = "system"


# === Maintenance rules ===

class MaintenanceRuleTarget(Record):
    type: RuleTargetType
    ids: list[str] = Field(default_factory=list)


class MaintenanceRule(Record):
    id: str
    name: str
    work_type: str = "inspection"
    is_internal: bool = True
    service_provider_id: str | None = None
    targets: list[MaintenanceRuleTarget] = Field(default_factory=list)
    interval_type: RuleIntervalType = RuleIntervalType.MONTHS
    interval_value: int = Field(gt=0)
    start_date: CalendarDate
    next_due_date: CalendarDate | None = None
    lead_time_days: int = Field(default=0, ge=0)
    reschedule_mode: RescheduleMode = RescheduleMode.ACTUAL_COMPLETION
    created_by: str = "system"


# === Stock take ===

class ExpectedAsset(Record):
    asset_id: str
    asset_number: str = ""
    name: str = ""
    location: str | None = None


class ScannedAsset(Record):
    asset_id: str
    asset_number: str = ""
    scanned_at: datetime
    scanned_by: str = ""
    location: str | None = None


class StockTakeSession(Record):
    id: str
    start_date: datetime
    completed_date: datetime | None = None
    status: StockTakeStatus = StockTakeStatus.ACTIVE
    expected_assets: list[ExpectedAsset] = Field(default_factory=list)
    scanned_assets: list[ScannedAsset] = Field(default_factory=list)
