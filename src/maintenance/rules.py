"""Maintenance rule scheduling.

A rule targets one or more assets and recurs every N days or months (or
every N uses, which cannot be planned on a calendar). This module derives
due dates from rules, decides when a rule needs a new work order, and
pre-generates scheduled work orders up to a planning horizon.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from ..common.models import (
    LineItemStatus,
    MaintenanceRule,
    RescheduleMode,
    RuleIntervalType,
    RuleTargetType,
    WorkOrder,
    WorkOrderLineItem,
    WorkOrderOrderType,
    WorkOrderState,
    WorkOrderType,
)
from .calculator import DateLike, as_calendar_date, resolve_today
from .models import RuleCompletionUpdate, RulePreviewItem, WorkOrderDraft
from .work_orders import FINAL_STATES

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_MONTHS = 12
DEFAULT_MAX_WORK_ORDERS = 500
_MAX_ITERATIONS = 5000


def calculate_next_due_date(
    interval_type: RuleIntervalType | str,
    interval_value: int,
    anchor: date,
) -> date | None:
    """Next due date one interval after ``anchor``; None for use-based rules."""
    if interval_value <= 0:
        return None
    if interval_type == RuleIntervalType.DAYS:
        return anchor + timedelta(days=interval_value)
    if interval_type == RuleIntervalType.MONTHS:
        return anchor + relativedelta(months=interval_value)
    return None


def _rule_due(rule: MaintenanceRule) -> date:
    return rule.next_due_date or rule.start_date


def should_create_work_order(
    rule: MaintenanceRule,
    work_orders: Iterable[WorkOrder],
    today: DateLike | None = None,
) -> bool:
    """True when the rule's lead time has started and it has no open order."""
    has_open_order = any(
        wo.rule_id == rule.id and wo.state not in FINAL_STATES for wo in work_orders
    )
    if has_open_order:
        return False

    scheduled_date = _rule_due(rule) - timedelta(days=rule.lead_time_days)
    return resolve_today(today) >= scheduled_date


def compute_schedule_after_completion(
    rule: MaintenanceRule,
    completed_on: DateLike,
) -> RuleCompletionUpdate | None:
    """Work out the rule's next due date once a work order is completed.

    In ``replan-once`` mode the whole plan shifts by the difference between
    the actual completion and the scheduled due date, after which the rule
    falls back to ``actual-completion``.

    Returns:
        The update to apply, or None if nothing changes.
    """
    completion_date = as_calendar_date(completed_on)
    base_next_due = calculate_next_due_date(
        rule.interval_type, rule.interval_value, completion_date
    )
    if base_next_due is None:
        return None

    next_due_date = base_next_due
    updated_start_date: date | None = None
    next_mode: str | None = None

    if rule.reschedule_mode == RescheduleMode.REPLAN_ONCE:
        delta_days = (completion_date - _rule_due(rule)).days
        if delta_days != 0:
            next_due_date = base_next_due + timedelta(days=delta_days)
            updated_start_date = rule.start_date + timedelta(days=delta_days)
        next_mode = RescheduleMode.ACTUAL_COMPLETION.value

    if (
        next_due_date == rule.next_due_date
        and updated_start_date is None
        and next_mode is None
    ):
        return None

    return RuleCompletionUpdate(
        next_due_date=next_due_date,
        updated_start_date=updated_start_date,
        next_reschedule_mode=next_mode,
    )


def preview_rule_schedule(
    rule: MaintenanceRule,
    occurrences: int = 3,
    start_override: date | None = None,
    now: DateLike | None = None,
) -> list[RulePreviewItem]:
    """List the next ``occurrences`` due dates of a rule (at least one)."""
    occurrences = max(1, occurrences)
    today = resolve_today(now)
    current: date | None = start_override or _rule_due(rule)

    items: list[RulePreviewItem] = []
    for _ in range(occurrences):
        items.append(RulePreviewItem(
            due_date=current,
            lead_time_start=current - timedelta(days=rule.lead_time_days),
            is_past=current < today,
        ))
        current = calculate_next_due_date(rule.interval_type, rule.interval_value, current)
        if current is None:
            break
    return items


def direct_line_items(rule: MaintenanceRule) -> list[WorkOrderLineItem]:
    """Pending line items for the assets a rule names directly.

    Model and tag targets need the asset list; the service resolves
    those when it stores the order.
    """
    return [
        WorkOrderLineItem(asset_id=asset_id, completion_status=LineItemStatus.PENDING)
        for target in rule.targets
        if target.type == RuleTargetType.ASSET
        for asset_id in target.ids
    ]


def generate_future_work_orders(
    rule: MaintenanceRule,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
    existing_work_orders: Iterable[WorkOrder] = (),
    now: DateLike | None = None,
    max_work_orders: int = DEFAULT_MAX_WORK_ORDERS,
) -> list[WorkOrderDraft]:
    """Draft scheduled work orders for every due date up to the horizon.

    Dates that already have a work order for this rule are skipped, so
    repeated runs only fill gaps.
    """
    if rule.interval_type == RuleIntervalType.USES:
        return []

    end_date = resolve_today(now) + relativedelta(months=horizon_months)
    existing_dates = {
        wo.scheduled_start
        for wo in existing_work_orders
        if wo.rule_id == rule.id and wo.scheduled_start is not None
    }

    drafts: list[WorkOrderDraft] = []
    current = _rule_due(rule)
    iterations = 0
    while current <= end_date and len(drafts) < max_work_orders and iterations < _MAX_ITERATIONS:
        iterations += 1
        if current not in existing_dates:
            drafts.append(WorkOrderDraft(
                rule_id=rule.id,
                type=(WorkOrderType.INTERNAL if rule.is_internal else WorkOrderType.EXTERNAL).value,
                order_type=WorkOrderOrderType.PLANNED.value,
                state=WorkOrderState.SCHEDULED.value,
                lead_time_days=rule.lead_time_days,
                scheduled_start=current,
                company_id=rule.service_provider_id,
                line_items=direct_line_items(rule),
                created_by=rule.created_by,
            ))

        next_date = calculate_next_due_date(rule.interval_type, rule.interval_value, current)
        if next_date is None or next_date <= current:
            break
        current = next_date

    logger.info(
        "Rule %s: %d work orders drafted up to %s (%d already existed)",
        rule.name, len(drafts), end_date.isoformat(), len(existing_dates),
    )
    return drafts


def _targets_overlap(first: MaintenanceRule, second: MaintenanceRule) -> bool:
    return any(
        a.type == b.type and set(a.ids) & set(b.ids)
        for a in first.targets
        for b in second.targets
    )


def detect_rule_conflicts(
    rules: list[MaintenanceRule],
) -> list[tuple[MaintenanceRule, MaintenanceRule]]:
    """Pairs of rules that likely duplicate each other.

    Two rules conflict when they share a target of the same kind, have the
    same work type and interval type, and their interval values are within
    20% of each other.
    """
    conflicts = []
    for i, first in enumerate(rules):
        for second in rules[i + 1:]:
            if not _targets_overlap(first, second):
                continue
            if first.work_type != second.work_type or first.interval_type != second.interval_type:
                continue
            ratio = first.interval_value / second.interval_value
            if 0.8 <= ratio <= 1.2:
                conflicts.append((first, second))
    return conflicts
