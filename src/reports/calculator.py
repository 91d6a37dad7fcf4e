"""Report aggregators.

Folds in-memory collections of assets, bookings, schedules, stock takes
and work orders into report records. Every function is pure: inputs are
never mutated and results depend only on the arguments (including the
evaluation day, which callers pass in rather than reading the clock).

Percentages are rounded half-up to one decimal, and every ratio with an
empty denominator is reported as 0.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date

from ..common.dataset import InventoryDataset
from ..common.models import (
    Asset,
    AssetGroup,
    Booking,
    BookingStatus,
    MaintenanceRule,
    RuleTargetType,
    ScheduleBase,
    StockTakeSession,
    WorkOrder,
    WorkOrderState,
)
from ..maintenance.calculator import DateLike, days_until_due, resolve_today
from .models import (
    AssetGroupUtilizationData,
    AssetUtilizationData,
    BookedAssetCount,
    BookingHistoryData,
    MaintenanceComplianceData,
    MissingAsset,
    MonthlyBookingCount,
    OverdueAsset,
    ReportBundle,
    StockTakeSummaryData,
    WorkOrderCompletionData,
    WorkOrderCompletionRow,
)

logger = logging.getLogger(__name__)

UPCOMING_WINDOW_DAYS = 30
TOP_BOOKED_LIMIT = 10


def round_percentage(value: float) -> float:
    """Round half-up to one decimal (66.65 -> 66.7, never banker's rounding)."""
    return math.floor(value * 10 + 0.5) / 10


def _percentage(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return round_percentage(part / whole * 100)


def _type_name(asset: Asset) -> str:
    return asset.asset_type.name if asset.asset_type else "Unknown"


# ================================================================
# Maintenance compliance
# ================================================================

def calculate_maintenance_compliance(
    assets: Sequence[Asset],
    schedules: Iterable[ScheduleBase],
    now: DateLike | None = None,
    upcoming_window_days: int = UPCOMING_WINDOW_DAYS,
) -> MaintenanceComplianceData:
    """Partition schedules into overdue, upcoming and compliant.

    Schedules without ``next_due`` or whose asset is unknown are not
    classified. The percentage denominator is the number of distinct
    assets that have any schedule; assets without one only count towards
    ``total_assets``.
    """
    today = resolve_today(now)
    assets_by_id = {asset.id: asset for asset in assets}
    schedules = list(schedules)
    scheduled_asset_ids = {s.asset_id for s in schedules}

    result = MaintenanceComplianceData(
        total_assets=len(assets),
        assets_with_schedules=len(scheduled_asset_ids),
    )

    for schedule in schedules:
        asset = assets_by_id.get(schedule.asset_id)
        days = days_until_due(schedule, today)
        if asset is None or days is None:
            continue

        if days < 0:
            result.overdue_assets += 1
            result.overdue_list.append(OverdueAsset(
                asset_id=asset.id,
                asset_number=asset.asset_number,
                asset_name=asset.name,
                schedule_name=f"{schedule.schedule_type} maintenance",
                due_date=schedule.next_due,
                days_overdue=-days,
            ))
        elif days <= upcoming_window_days:
            result.upcoming_assets += 1
        else:
            result.compliant_assets += 1

    result.compliance_percentage = _percentage(result.compliant_assets, len(scheduled_asset_ids))
    result.overdue_list.sort(key=lambda item: item.days_overdue, reverse=True)

    logger.info(
        "Compliance on %s: %.1f%% (%d overdue, %d upcoming, %d compliant)",
        today.isoformat(),
        result.compliance_percentage,
        result.overdue_assets,
        result.upcoming_assets,
        result.compliant_assets,
    )
    return result


# ================================================================
# Utilization
# ================================================================

def _period_days(start: date, end: date) -> int:
    return (end - start).days + 1


def calculate_asset_utilization(
    assets: Sequence[Asset],
    bookings: Iterable[Booking],
    start: date,
    end: date,
) -> list[AssetUtilizationData]:
    """Booked days and utilization of each asset within [start, end].

    Cancelled bookings are ignored. A booking that straddles the period
    only contributes the days inside it (both endpoints inclusive).
    Results keep the order of ``assets``. An empty period (``end`` before
    ``start``) counts no bookings.
    """
    period_days = _period_days(start, end)
    if period_days <= 0:
        bookings = ()
    by_asset: dict[str, list[Booking]] = {}
    for booking in bookings:
        if booking.asset is None or booking.status == BookingStatus.CANCELLED:
            continue
        if booking.start_date > end or booking.end_date < start:
            continue
        by_asset.setdefault(booking.asset.id, []).append(booking)

    results = []
    for asset in assets:
        asset_bookings = by_asset.get(asset.id, [])
        total_days = sum(
            (min(b.end_date, end) - max(b.start_date, start)).days + 1
            for b in asset_bookings
        )
        results.append(AssetUtilizationData(
            asset_id=asset.id,
            asset_number=asset.asset_number,
            asset_name=asset.name,
            asset_type_name=_type_name(asset),
            booking_count=len(asset_bookings),
            total_days_booked=total_days,
            utilization_percentage=_percentage(total_days, period_days),
            last_booked_date=max((b.start_date for b in asset_bookings), default=None),
        ))
    return results


def aggregate_group_utilization(
    assets: Sequence[Asset],
    utilization: Iterable[AssetUtilizationData],
    groups: Iterable[AssetGroup],
    start: date,
    end: date,
) -> list[AssetGroupUtilizationData]:
    """Roll asset utilization up to the asset groups present in ``assets``.

    Every group with at least one member appears, including groups whose
    members had no bookings (reported with zero activity). The member
    count comes from the group record when it has one, otherwise from the
    members found. Sorted by average utilization, highest first; equal
    averages keep first-seen order.
    """
    period_days = max(1, _period_days(start, end))
    utilization_by_asset = {u.asset_id: u for u in utilization}
    group_meta = {g.id: g for g in groups}

    members: dict[str, list[Asset]] = {}
    for asset in assets:
        if asset.asset_group is None or not asset.asset_group.id:
            continue
        members.setdefault(asset.asset_group.id, []).append(asset)

    results = []
    for group_id, member_assets in members.items():
        row_utilization = [
            utilization_by_asset[a.id] for a in member_assets if a.id in utilization_by_asset
        ]
        booking_count = sum(u.booking_count for u in row_utilization)
        total_days = sum(u.total_days_booked for u in row_utilization)
        last_booked = max(
            (u.last_booked_date for u in row_utilization if u.last_booked_date),
            default=None,
        )

        meta = group_meta.get(group_id)
        reference = member_assets[0].asset_group
        if meta is not None and meta.member_count is not None:
            member_count = meta.member_count
        else:
            member_count = len(member_assets)

        results.append(AssetGroupUtilizationData(
            group_id=group_id,
            group_number=(meta.group_number if meta else None) or reference.group_number or "Group",
            group_name=(meta.name if meta else None) or reference.name or "Asset Group",
            member_count=member_count,
            booking_count=booking_count,
            total_days_booked=total_days,
            average_utilization=_percentage(total_days, period_days * member_count),
            last_booked_date=last_booked,
        ))

    results.sort(key=lambda g: g.average_utilization, reverse=True)
    return results


# ================================================================
# Stock take
# ================================================================

def calculate_stock_take_summary(
    session: StockTakeSession,
    assets: Sequence[Asset],
) -> StockTakeSummaryData:
    """Compare the expected and scanned assets of a stock-take session.

    Completion rate is distinct scanned assets over distinct expected
    assets; unexpected scans therefore count towards it.
    """
    expected = {e.asset_id: e for e in session.expected_assets}
    scanned = dict.fromkeys(s.asset_id for s in session.scanned_assets)
    assets_by_id = {asset.id: asset for asset in assets}

    missing_assets = []
    for asset_id, entry in expected.items():
        if asset_id in scanned:
            continue
        asset = assets_by_id.get(asset_id)
        if asset is not None:
            missing_assets.append(MissingAsset(
                asset_id=asset.id,
                asset_number=asset.asset_number,
                asset_name=asset.name,
                asset_type_name=_type_name(asset),
                last_location=asset.location,
            ))
        else:
            missing_assets.append(MissingAsset(
                asset_id=asset_id,
                asset_number=entry.asset_number,
                asset_name=entry.name,
                asset_type_name="Unknown",
                last_location=entry.location,
            ))

    unexpected = [asset_id for asset_id in scanned if asset_id not in expected]

    return StockTakeSummaryData(
        session_id=session.id,
        session_name=f"Stock Take {session.start_date.date().isoformat()}",
        started_at=session.start_date,
        completed_at=session.completed_date,
        expected_count=len(expected),
        scanned_count=len(scanned),
        missing_count=len(missing_assets),
        unexpected_count=len(unexpected),
        completion_rate=_percentage(len(scanned), len(expected)),
        missing_assets=missing_assets,
        unexpected_asset_ids=unexpected,
    )


# ================================================================
# Booking history
# ================================================================

_STATUS_FIELDS = {
    BookingStatus.ACTIVE: "active_bookings",
    BookingStatus.COMPLETED: "completed_bookings",
    BookingStatus.CANCELLED: "cancelled_bookings",
}


def aggregate_booking_history(
    bookings: Iterable[Booking],
    assets: Sequence[Asset],
    start: date,
    end: date,
    top_limit: int = TOP_BOOKED_LIMIT,
) -> BookingHistoryData:
    """Status, monthly and per-asset counts of bookings starting in [start, end].

    The most-booked ranking is by count, then asset number, so ties are
    ordered the same on every run. Bookings of unknown assets are counted
    in the totals but not ranked.
    """
    in_range = [b for b in bookings if start <= b.start_date <= end]
    result = BookingHistoryData(total_bookings=len(in_range))

    per_asset: Counter[str] = Counter()
    per_month: Counter[str] = Counter()
    for booking in in_range:
        status_field = _STATUS_FIELDS.get(booking.status)
        if status_field:
            setattr(result, status_field, getattr(result, status_field) + 1)
        if booking.asset is not None:
            per_asset[booking.asset.id] += 1
        per_month[booking.start_date.strftime("%Y-%m")] += 1

    assets_by_id = {asset.id: asset for asset in assets}
    ranked = [
        BookedAssetCount(
            asset_id=asset_id,
            asset_number=assets_by_id[asset_id].asset_number,
            asset_name=assets_by_id[asset_id].name,
            booking_count=count,
        )
        for asset_id, count in per_asset.items()
        if asset_id in assets_by_id
    ]
    ranked.sort(key=lambda a: (-a.booking_count, a.asset_number))
    result.most_booked_assets = ranked[:top_limit]
    result.bookings_by_month = [
        MonthlyBookingCount(month=month, count=count)
        for month, count in sorted(per_month.items())
    ]
    return result


# ================================================================
# Work order completion
# ================================================================

def _work_order_asset_name(
    work_order: WorkOrder,
    rules_by_id: dict[str, MaintenanceRule],
    assets_by_id: dict[str, Asset],
) -> str:
    candidates = [item.asset_id for item in work_order.line_items]
    rule = rules_by_id.get(work_order.rule_id) if work_order.rule_id else None
    if rule is not None:
        candidates.extend(
            asset_id
            for target in rule.targets
            if target.type == RuleTargetType.ASSET
            for asset_id in target.ids
        )
    for asset_id in candidates:
        if asset_id in assets_by_id:
            return assets_by_id[asset_id].name
    return "Unknown"


def build_work_order_completion(
    work_orders: Iterable[WorkOrder],
    rules: Iterable[MaintenanceRule],
    assets: Sequence[Asset],
) -> WorkOrderCompletionData:
    """Timeliness of every approved (``done``) work order.

    ``days_early_late`` is actual end minus scheduled end in days, and 0
    when either date is missing.
    """
    rules_by_id = {rule.id: rule for rule in rules}
    assets_by_id = {asset.id: asset for asset in assets}

    rows = []
    for wo in work_orders:
        if wo.state != WorkOrderState.DONE:
            continue
        if wo.scheduled_end is not None and wo.actual_end is not None:
            deviation = (wo.actual_end - wo.scheduled_end).days
        else:
            deviation = 0
        rows.append(WorkOrderCompletionRow(
            id=wo.id,
            work_order_number=wo.work_order_number,
            asset_name=_work_order_asset_name(wo, rules_by_id, assets_by_id),
            type=wo.type.value,
            order_type=wo.order_type.value,
            scheduled_end=wo.scheduled_end,
            actual_end=wo.actual_end,
            days_early_late=deviation,
        ))
    return WorkOrderCompletionData(rows=rows)


# ================================================================
# All reports
# ================================================================

def build_report_bundle(
    dataset: InventoryDataset,
    start: date,
    end: date,
    now: DateLike | None = None,
    upcoming_window_days: int = UPCOMING_WINDOW_DAYS,
    top_limit: int = TOP_BOOKED_LIMIT,
) -> ReportBundle:
    """Compute every report for a dataset against one evaluation day."""
    today = resolve_today(now)
    utilization = calculate_asset_utilization(dataset.assets, dataset.bookings, start, end)

    bundle = ReportBundle(
        generated_on=today,
        period_start=start,
        period_end=end,
        compliance=calculate_maintenance_compliance(
            dataset.assets, dataset.schedules, today, upcoming_window_days
        ),
        utilization=utilization,
        group_utilization=aggregate_group_utilization(
            dataset.assets, utilization, dataset.asset_groups, start, end
        ),
        stock_takes=[
            calculate_stock_take_summary(session, dataset.assets)
            for session in dataset.stock_takes
        ],
        booking_history=aggregate_booking_history(
            dataset.bookings, dataset.assets, start, end, top_limit
        ),
        work_order_completion=build_work_order_completion(
            dataset.work_orders, dataset.rules, dataset.assets
        ),
    )
    logger.info(
        "Built reports for %s..%s: %d assets, %d bookings, %d stock takes",
        start.isoformat(), end.isoformat(),
        len(dataset.assets), bundle.booking_history.total_bookings, len(bundle.stock_takes),
    )
    return bundle
