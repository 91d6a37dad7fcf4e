"""Data models for report aggregation results.

Reports are computed projections with no lifecycle of their own; they are
rebuilt from the current collections on every run.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# === Asset utilization ===

@dataclass
class AssetUtilizationData:
    """Booking activity of one asset over a reporting period."""

    asset_id: str
    asset_number: str
    asset_name: str
    asset_type_name: str
    booking_count: int = 0
    total_days_booked: int = 0
    utilization_percentage: float = 0.0
    last_booked_date: date | None = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["last_booked_date"] = _iso(self.last_booked_date)
        return d


@dataclass
class AssetGroupUtilizationData:
    group_id: str
    group_number: str
    group_name: str
    member_count: int
    booking_count: int = 0
    total_days_booked: int = 0
    average_utilization: float = 0.0
    last_booked_date: date | None = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["last_booked_date"] = _iso(self.last_booked_date)
        return d


# === Maintenance compliance ===

@dataclass
class OverdueAsset:
    asset_id: str
    asset_number: str
    asset_name: str
    schedule_name: str
    due_date: date
    days_overdue: int

    def to_dict(self) -> dict:
        d = asdict(self)
        d["due_date"] = self.due_date.isoformat()
        return d


@dataclass
class MaintenanceComplianceData:
    """Compliance of scheduled assets on one evaluation day."""

    total_assets: int = 0
    assets_with_schedules: int = 0
    compliant_assets: int = 0
    overdue_assets: int = 0
    upcoming_assets: int = 0
    compliance_percentage: float = 0.0
    overdue_list: list[OverdueAsset] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_assets": self.total_assets,
            "assets_with_schedules": self.assets_with_schedules,
            "compliant_assets": self.compliant_assets,
            "overdue_assets": self.overdue_assets,
            "upcoming_assets": self.upcoming_assets,
            "compliance_percentage": self.compliance_percentage,
            "overdue_list": [item.to_dict() for item in self.overdue_list],
        }


# === Stock take ===

@dataclass
class MissingAsset:
    asset_id: str
    asset_number: str
    asset_name: str
    asset_type_name: str
    last_location: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StockTakeSummaryData:
    """Expected vs. scanned assets of one stock-take session."""

    session_id: str
    session_name: str
    started_at: datetime
    completed_at: datetime | None = None
    expected_count: int = 0
    scanned_count: int = 0
    missing_count: int = 0
    unexpected_count: int = 0
    completion_rate: float = 0.0
    missing_assets: list[MissingAsset] = field(default_factory=list)
    unexpected_asset_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "session_name": self.session_name,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "expected_count": self.expected_count,
            "scanned_count": self.scanned_count,
            "missing_count": self.missing_count,
            "unexpected_count": self.unexpected_count,
            "completion_rate": self.completion_rate,
            "missing_assets": [a.to_dict() for a in self.missing_assets],
            "unexpected_asset_ids": list(self.unexpected_asset_ids),
        }


# === Booking history ===

@dataclass
class BookedAssetCount:
    asset_id: str
    asset_number: str
    asset_name: str
    booking_count: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MonthlyBookingCount:
    month: str  # YYYY-MM
    count: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BookingHistoryData:
    total_bookings: int = 0
    active_bookings: int = 0
    completed_bookings: int = 0
    cancelled_bookings: int = 0
    most_booked_assets: list[BookedAssetCount] = field(default_factory=list)
    bookings_by_month: list[MonthlyBookingCount] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_bookings": self.total_bookings,
            "active_bookings": self.active_bookings,
            "completed_bookings": self.completed_bookings,
            "cancelled_bookings": self.cancelled_bookings,
            "most_booked_assets": [a.to_dict() for a in self.most_booked_assets],
            "bookings_by_month": [m.to_dict() for m in self.bookings_by_month],
        }


# === Work order completion ===

@dataclass
class WorkOrderCompletionRow:
    """One finished work order; ``days_early_late`` < 0 means early."""

    id: str
    work_order_number: str
    asset_name: str
    type: str
    order_type: str
    scheduled_end: date | None
    actual_end: date | None
    days_early_late: int

    def to_dict(self) -> dict:
        d = asdict(self)
        d["scheduled_end"] = _iso(self.scheduled_end)
        d["actual_end"] = _iso(self.actual_end)
        return d


@dataclass
class WorkOrderCompletionData:
    rows: list[WorkOrderCompletionRow] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.rows)

    @property
    def on_time(self) -> int:
        return sum(1 for r in self.rows if r.days_early_late == 0)

    @property
    def early(self) -> int:
        return sum(1 for r in self.rows if r.days_early_late < 0)

    @property
    def late(self) -> int:
        return sum(1 for r in self.rows if r.days_early_late > 0)

    @property
    def average_days_early_late(self) -> float:
        if not self.rows:
            return 0.0
        return sum(r.days_early_late for r in self.rows) / len(self.rows)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "on_time": self.on_time,
            "early": self.early,
            "late": self.late,
            "average_days_early_late": round(self.average_days_early_late, 1),
            "rows": [r.to_dict() for r in self.rows],
        }


@dataclass
class ReportBundle:
    """Every report computed for one period and evaluation day."""

    generated_on: date
    period_start: date
    period_end: date
    compliance: MaintenanceComplianceData | None = None
    utilization: list[AssetUtilizationData] = field(default_factory=list)
    group_utilization: list[AssetGroupUtilizationData] = field(default_factory=list)
    stock_takes: list[StockTakeSummaryData] = field(default_factory=list)
    booking_history: BookingHistoryData | None = None
    work_order_completion: WorkOrderCompletionData | None = None

    def to_dict(self) -> dict:
        return {
            "generated_on": self.generated_on.isoformat(),
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "compliance": self.compliance.to_dict() if self.compliance else None,
            "utilization": [u.to_dict() for u in self.utilization],
            "group_utilization": [g.to_dict() for g in self.group_utilization],
            "stock_takes": [s.to_dict() for s in self.stock_takes],
            "booking_history": (
                self.booking_history.to_dict() if self.booking_history else None
            ),
            "work_order_completion": (
                self.work_order_completion.to_dict() if self.work_order_completion else None
            ),
        }
