"""Work order status and lifecycle.

Internal work orders:
    backlog -> assigned -> planned -> in-progress -> completed -> done
External work orders (a service company quotes first):
    backlog -> offer-requested -> offer-received -> planned -> in-progress
    -> completed -> done

offer-received may go back to offer-requested, completed may be reopened
to in-progress, and any non-final state can be aborted or marked obsolete.
Pre-generated orders start in ``scheduled`` and are activated into the
backlog when their lead time begins.

Transitions never mutate the given work order; ``apply_transition``
returns an updated copy with a history entry appended.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from ..common.models import (
    LineItemStatus,
    WorkOrder,
    WorkOrderHistoryEntry,
    WorkOrderState,
    WorkOrderType,
)
from .calculator import DateLike, resolve_today
from .models import TransitionOption, WorkOrderEvent, WorkOrderEventType

logger = logging.getLogger(__name__)

S = WorkOrderState
E = WorkOrderEventType

TERMINAL_STATES = frozenset({S.DONE, S.COMPLETED, S.ABORTED, S.OBSOLETE})
FINAL_STATES = frozenset({S.DONE, S.ABORTED, S.OBSOLETE})
ACTIVE_STATES = frozenset({
    S.BACKLOG, S.ASSIGNED, S.PLANNED, S.IN_PROGRESS, S.OFFER_REQUESTED, S.OFFER_RECEIVED,
})

_CANCEL = {E.ABORT: S.ABORTED, E.MARK_OBSOLETE: S.OBSOLETE}

_INTERNAL_TRANSITIONS: dict[WorkOrderState, dict[WorkOrderEventType, WorkOrderState]] = {
    S.SCHEDULED: {E.ACTIVATE: S.BACKLOG},
    S.BACKLOG: {E.ASSIGN: S.ASSIGNED},
    S.ASSIGNED: {E.PLAN: S.PLANNED},
    S.PLANNED: {E.START: S.IN_PROGRESS},
    S.IN_PROGRESS: {E.COMPLETE: S.COMPLETED},
    S.COMPLETED: {E.APPROVE: S.DONE, E.REOPEN: S.IN_PROGRESS},
}

_EXTERNAL_TRANSITIONS: dict[WorkOrderState, dict[WorkOrderEventType, WorkOrderState]] = {
    S.SCHEDULED: {E.ACTIVATE: S.BACKLOG},
    S.BACKLOG: {E.REQUEST_OFFER: S.OFFER_REQUESTED},
    S.OFFER_REQUESTED: {E.RECEIVE_OFFER: S.OFFER_RECEIVED},
    S.OFFER_RECEIVED: {E.PLAN: S.PLANNED, E.REQUEST_MORE_OFFERS: S.OFFER_REQUESTED},
    S.PLANNED: {E.START: S.IN_PROGRESS},
    S.IN_PROGRESS: {E.COMPLETE: S.COMPLETED},
    S.COMPLETED: {E.APPROVE: S.DONE, E.REOPEN: S.IN_PROGRESS},
}

_REQUIRED_INPUT = {
    E.ASSIGN: "assigned_to",
    E.PLAN: "scheduled_start",
    E.COMPLETE: "actual_end",
    E.REQUEST_OFFER: "company_id",
    E.RECEIVE_OFFER: "offer",
}


class InvalidTransitionError(Exception):
    """Raised when an event is not allowed for a work order's state."""


# ================================================================
# Status helpers
# ================================================================

def is_scheduled(wo: WorkOrder) -> bool:
    return wo.state == S.SCHEDULED


def is_active(wo: WorkOrder) -> bool:
    return wo.state in ACTIVE_STATES


def is_terminal(wo: WorkOrder) -> bool:
    return wo.state in TERMINAL_STATES


def is_within_lead_time(wo: WorkOrder, now: DateLike | None = None) -> bool:
    """True once today reaches ``scheduled_start - lead_time_days``."""
    if wo.scheduled_start is None:
        return False
    lead_time_start = wo.scheduled_start - timedelta(days=wo.lead_time_days)
    return resolve_today(now) >= lead_time_start


def is_work_order_overdue(wo: WorkOrder, now: DateLike | None = None) -> bool:
    """True for an active order whose scheduled end lies before today."""
    if not is_active(wo) or wo.scheduled_end is None:
        return False
    return resolve_today(now) > wo.scheduled_end


def get_work_order_status(wo: WorkOrder, now: DateLike | None = None) -> str:
    """Display category: scheduled, completed, cancelled, overdue or active."""
    if is_scheduled(wo):
        return "scheduled"
    if wo.state in (S.DONE, S.COMPLETED):
        return "completed"
    if wo.state in (S.ABORTED, S.OBSOLETE):
        return "cancelled"
    if is_work_order_overdue(wo, now):
        return "overdue"
    return "active"


# ================================================================
# State machine
# ================================================================

def _transitions_for(wo: WorkOrder) -> dict[WorkOrderEventType, WorkOrderState]:
    if wo.state in FINAL_STATES:
        return {}
    table = _INTERNAL_TRANSITIONS if wo.type == WorkOrderType.INTERNAL else _EXTERNAL_TRANSITIONS
    return {**table.get(wo.state, {}), **_CANCEL}


def available_transitions(wo: WorkOrder) -> list[TransitionOption]:
    """Every event accepted in the current state, guards not evaluated."""
    return [
        TransitionOption(event=event, target_state=target, requires_input=_REQUIRED_INPUT.get(event))
        for event, target in _transitions_for(wo).items()
    ]


def transition_block_reason(wo: WorkOrder, event: WorkOrderEvent) -> str | None:
    """Explain why ``event`` cannot be applied, or None if it can."""
    if event.type not in _transitions_for(wo):
        return f"{event.type.value} is not allowed from state {wo.state.value}"

    if event.type == E.ASSIGN and not event.assigned_to:
        return "Assigned user is required"

    if event.type == E.PLAN:
        if event.scheduled_start is None:
            return "Scheduled start date is required"
        if wo.type == WorkOrderType.EXTERNAL and not wo.offers:
            return "At least one offer must be received before planning"

    if event.type == E.COMPLETE:
        if event.actual_end is None:
            return "Actual end date is required"
        if any(item.completion_status != LineItemStatus.COMPLETED for item in wo.line_items):
            return "All assets must be marked as completed"

    if event.type == E.APPROVE and not wo.approval_responsible_id:
        return "Approval responsible person must be assigned"

    if event.type == E.REQUEST_OFFER and not event.company_id:
        return "Company ID is required"

    if event.type == E.RECEIVE_OFFER and (event.offer is None or not event.offer.company_id):
        return "An offer from a company is required"

    return None


def can_transition(wo: WorkOrder, event: WorkOrderEvent) -> bool:
    return transition_block_reason(wo, event) is None


def apply_transition(
    wo: WorkOrder,
    event: WorkOrderEvent,
    changed_by: str,
    changed_by_name: str | None = None,
    now: datetime | None = None,
) -> WorkOrder:
    """Return a copy of ``wo`` moved to the event's target state.

    Raises:
        InvalidTransitionError: The event is not allowed or a guard fails.
    """
    reason = transition_block_reason(wo, event)
    if reason is not None:
        raise InvalidTransitionError(f"Work order {wo.work_order_number}: {reason}")

    now = now or datetime.now(timezone.utc)
    target = _transitions_for(wo)[event.type]

    update: dict = {"state": target}
    if event.type == E.ASSIGN:
        update["assigned_to"] = event.assigned_to
    elif event.type == E.PLAN:
        update["scheduled_start"] = event.scheduled_start
    elif event.type == E.START:
        update["actual_start"] = resolve_today(now)
    elif event.type == E.COMPLETE:
        update["actual_end"] = event.actual_end
    elif event.type == E.REOPEN:
        update["actual_end"] = None
    elif event.type == E.REQUEST_OFFER:
        update["company_id"] = event.company_id
    elif event.type == E.RECEIVE_OFFER:
        update["offers"] = [*wo.offers, event.offer]

    update["history"] = [
        *wo.history,
        WorkOrderHistoryEntry(
            state=target,
            changed_at=now,
            changed_by=changed_by,
            changed_by_name=changed_by_name,
        ),
    ]

    logger.info(
        "Work order %s: %s -> %s (%s)",
        wo.work_order_number, wo.state.value, target.value, event.type.value,
    )
    return wo.model_copy(update=update)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def work_order_state_duration(
    wo: WorkOrder,
    state: WorkOrderState,
    now: datetime | None = None,
) -> float | None:
    """Seconds spent in ``state`` the first time it was entered.

    None if the order never entered the state; measured up to ``now`` if it
    is still there. Naive timestamps are taken as UTC.
    """
    history = wo.history
    for index, entry in enumerate(history):
        if entry.state == state:
            break
    else:
        return None

    for later in history[index + 1:]:
        if later.state != state:
            return (_as_utc(later.changed_at) - _as_utc(entry.changed_at)).total_seconds()
    end = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    return (end - _as_utc(entry.changed_at)).total_seconds()
