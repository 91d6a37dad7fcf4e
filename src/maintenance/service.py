"""Maintenance service over a storage provider.

Ties the pure calculators to persisted records: logging completed
maintenance, creating work orders from rules, moving work orders through
their lifecycle and producing a schedule overview.

The storage provider is an external collaborator. Anything it raises
(other than a missing record) surfaces as ``StorageUnavailableError``;
the service never retries.

Usage:
    service = MaintenanceService(InMemoryStorageProvider.from_dataset(dataset))
    created = service.auto_generate_work_orders()
    overview = service.schedule_overview()
"""

from __future__ import annotations

import logging
import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from ..common.dataset import InventoryDataset
from ..common.models import (
    Asset,
    Booking,
    LineItemStatus,
    MaintenanceRecord,
    MaintenanceRule,
    MaintenanceSchedule,
    RescheduleMode,
    RuleTargetType,
    WorkOrder,
    WorkOrderHistoryEntry,
    WorkOrderLineItem,
    WorkOrderOrderType,
    WorkOrderState,
    WorkOrderType,
)
from .calculator import calculate_next_due, evaluate_schedules, resolve_today
from .models import ScheduleStatus, WorkOrderEvent, WorkOrderEventType
from .rules import (
    DEFAULT_HORIZON_MONTHS,
    DEFAULT_MAX_WORK_ORDERS,
    compute_schedule_after_completion,
    generate_future_work_orders,
    should_create_work_order,
)
from .work_orders import apply_transition, is_within_lead_time

logger = logging.getLogger(__name__)

_WORK_ORDER_NUMBER = re.compile(r"^WO-(\d{8})-(\d+)$")


class StorageUnavailableError(Exception):
    """The storage provider failed to serve a request."""


class RecordNotFoundError(LookupError):
    """A record referenced by id does not exist."""


class StorageProvider(ABC):
    """CRUD and query operations the maintenance service relies on."""

    @abstractmethod
    def get_assets(self) -> list[Asset]: ...

    @abstractmethod
    def get_bookings(self) -> list[Booking]: ...

    @abstractmethod
    def get_schedules(self) -> list[MaintenanceSchedule]: ...

    @abstractmethod
    def get_schedule(self, schedule_id: str) -> MaintenanceSchedule | None: ...

    @abstractmethod
    def update_schedule(self, schedule: MaintenanceSchedule) -> MaintenanceSchedule: ...

    @abstractmethod
    def create_maintenance_record(self, record: MaintenanceRecord) -> MaintenanceRecord: ...

    @abstractmethod
    def get_maintenance_records(self, asset_id: str | None = None) -> list[MaintenanceRecord]: ...

    @abstractmethod
    def get_rules(self) -> list[MaintenanceRule]: ...

    @abstractmethod
    def get_rule(self, rule_id: str) -> MaintenanceRule | None: ...

    @abstractmethod
    def update_rule(self, rule: MaintenanceRule) -> MaintenanceRule: ...

    @abstractmethod
    def get_work_orders(self) -> list[WorkOrder]: ...

    @abstractmethod
    def get_work_order(self, work_order_id: str) -> WorkOrder | None: ...

    @abstractmethod
    def create_work_order(self, work_order: WorkOrder) -> WorkOrder: ...

    @abstractmethod
    def update_work_order(self, work_order: WorkOrder) -> WorkOrder: ...


class InMemoryStorageProvider(StorageProvider):
    """Dict-backed provider, seeded from a loaded dataset.

    Used by the CLIs to run the service against a dataset file.
    """

    def __init__(self) -> None:
        self.assets: dict[str, Asset] = {}
        self.bookings: dict[str, Booking] = {}
        self.schedules: dict[str, MaintenanceSchedule] = {}
        self.records: dict[str, MaintenanceRecord] = {}
        self.rules: dict[str, MaintenanceRule] = {}
        self.work_orders: dict[str, WorkOrder] = {}

    @classmethod
    def from_dataset(cls, dataset: InventoryDataset) -> InMemoryStorageProvider:
        provider = cls()
        provider.assets = {a.id: a for a in dataset.assets}
        provider.bookings = {b.id: b for b in dataset.bookings}
        provider.schedules = {s.id: s for s in dataset.schedules}
        provider.records = {r.id: r for r in dataset.maintenance_records}
        provider.rules = {r.id: r for r in dataset.rules}
        provider.work_orders = {wo.id: wo for wo in dataset.work_orders}
        return provider

    def get_assets(self) -> list[Asset]:
        return list(self.assets.values())

    def get_bookings(self) -> list[Booking]:
        return list(self.bookings.values())

    def get_schedules(self) -> list[MaintenanceSchedule]:
        return list(self.schedules.values())

    def get_schedule(self, schedule_id: str) -> MaintenanceSchedule | None:
        return self.schedules.get(schedule_id)

    def update_schedule(self, schedule: MaintenanceSchedule) -> MaintenanceSchedule:
        self.schedules[schedule.id] = schedule
        return schedule

    def create_maintenance_record(self, record: MaintenanceRecord) -> MaintenanceRecord:
        if record.id in self.records:
            raise ValueError(f"Maintenance record {record.id} already exists")
        self.records[record.id] = record
        return record

    def get_maintenance_records(self, asset_id: str | None = None) -> list[MaintenanceRecord]:
        return [r for r in self.records.values() if asset_id is None or r.asset.id == asset_id]

    def get_rules(self) -> list[MaintenanceRule]:
        return list(self.rules.values())

    def get_rule(self, rule_id: str) -> MaintenanceRule | None:
        return self.rules.get(rule_id)

    def update_rule(self, rule: MaintenanceRule) -> MaintenanceRule:
        self.rules[rule.id] = rule
        return rule

    def get_work_orders(self) -> list[WorkOrder]:
        return list(self.work_orders.values())

    def get_work_order(self, work_order_id: str) -> WorkOrder | None:
        return self.work_orders.get(work_order_id)

    def create_work_order(self, work_order: WorkOrder) -> WorkOrder:
        self.work_orders[work_order.id] = work_order
        return work_order

    def update_work_order(self, work_order: WorkOrder) -> WorkOrder:
        self.work_orders[work_order.id] = work_order
        return work_order


class MaintenanceService:
    """Maintenance operations against a storage provider.

    Every operation reads the clock once and uses that value throughout.
    """

    def __init__(
        self,
        provider: StorageProvider,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.provider = provider
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _call(self, operation: str, *args: Any) -> Any:
        """Invoke a provider operation, normalising its failures."""
        try:
            return getattr(self.provider, operation)(*args)
        except StorageUnavailableError:
            raise
        except Exception as e:
            raise StorageUnavailableError(f"Storage provider failed on {operation}: {e}") from e

    def _require(self, operation: str, record_id: str, kind: str) -> Any:
        record = self._call(operation, record_id)
        if record is None:
            raise RecordNotFoundError(f"{kind} not found: {record_id}")
        return record

    # ========================================
    # Maintenance records
    # ========================================

    def record_maintenance(
        self,
        schedule_id: str,
        record: MaintenanceRecord,
    ) -> MaintenanceSchedule:
        """Store a completed maintenance action and advance its schedule.

        Returns:
            The schedule with ``last_performed`` and ``next_due`` updated.
        """
        schedule = self._require("get_schedule", schedule_id, "Schedule")
        if record.asset.id != schedule.asset_id:
            raise ValueError(
                f"Record {record.id} is for asset {record.asset.id}, "
                f"schedule {schedule_id} is for asset {schedule.asset_id}"
            )

        self._call("create_maintenance_record", record)

        next_due = calculate_next_due(schedule, record.date, self._clock())
        updated = schedule.model_copy(update={"last_performed": record.date, "next_due": next_due})
        saved = self._call("update_schedule", updated)
        logger.info(
            "Recorded %s on asset %s; next due %s",
            record.type.value,
            schedule.asset_id,
            next_due.isoformat() if next_due else "undetermined",
        )
        return saved

    # ========================================
    # Work orders
    # ========================================

    def _next_work_order_number(self, now: datetime, work_orders: list[WorkOrder]) -> str:
        """Format WO-YYYYMMDD-NNNN, one past the highest sequence of the day."""
        day = resolve_today(now).strftime("%Y%m%d")
        max_seq = 0
        for wo in work_orders:
            match = _WORK_ORDER_NUMBER.match(wo.work_order_number)
            if match and match.group(1) == day:
                max_seq = max(max_seq, int(match.group(2)))
        return f"WO-{day}-{max_seq + 1:04d}"

    def resolve_rule_targets(self, rule: MaintenanceRule) -> list[WorkOrderLineItem]:
        """Pending line items for every asset a rule targets.

        Asset targets are taken as given; model and tag targets are matched
        against the stored assets. Kits are not modelled and resolve to
        nothing. Each asset appears once, in first-seen order.
        """
        asset_ids: dict[str, None] = {}
        assets: list[Asset] | None = None

        for target in rule.targets:
            if target.type == RuleTargetType.ASSET:
                asset_ids.update(dict.fromkeys(target.ids))
                continue
            if target.type not in (RuleTargetType.MODEL, RuleTargetType.TAG):
                logger.debug("Rule %s: %s targets are not resolved", rule.id, target.type.value)
                continue
            if assets is None:
                assets = self._call("get_assets")
            wanted = set(target.ids)
            for asset in assets:
                if target.type == RuleTargetType.MODEL:
                    hit = asset.model_id in wanted
                else:
                    hit = bool(wanted.intersection(asset.tag_ids))
                if hit:
                    asset_ids[asset.id] = None

        return [
            WorkOrderLineItem(asset_id=asset_id, completion_status=LineItemStatus.PENDING)
            for asset_id in asset_ids
        ]

    def create_work_order_from_rule(self, rule_id: str, created_by: str | None = None) -> WorkOrder:
        """Create a backlog work order covering every asset of a rule."""
        rule = self._require("get_rule", rule_id, "Maintenance rule")
        now = self._clock()
        created_by = created_by or rule.created_by

        work_order = WorkOrder(
            id=str(uuid.uuid4()),
            work_order_number=self._next_work_order_number(now, self._call("get_work_orders")),
            type=WorkOrderType.INTERNAL if rule.is_internal else WorkOrderType.EXTERNAL,
            order_type=WorkOrderOrderType.PLANNED,
            state=WorkOrderState.BACKLOG,
            rule_id=rule.id,
            company_id=rule.service_provider_id,
            lead_time_days=rule.lead_time_days,
            scheduled_start=rule.next_due_date or rule.start_date,
            line_items=self.resolve_rule_targets(rule),
            history=[WorkOrderHistoryEntry(
                state=WorkOrderState.BACKLOG, changed_at=now, changed_by=created_by,
            )],
            created_by=created_by,
        )
        created = self._call("create_work_order", work_order)
        logger.info(
            "Created work order %s from rule '%s' (%d assets)",
            created.work_order_number, rule.name, len(created.line_items),
        )
        return created

    def transition_work_order(
        self,
        work_order_id: str,
        event: WorkOrderEvent,
        changed_by: str,
        changed_by_name: str | None = None,
    ) -> WorkOrder:
        """Apply a lifecycle event and persist the result.

        Completing a rule-based work order also moves the rule's next due
        date on.

        Raises:
            InvalidTransitionError: The event is not allowed.
            RecordNotFoundError: Unknown work order.
        """
        existing = self._require("get_work_order", work_order_id, "Work order")
        updated = apply_transition(existing, event, changed_by, changed_by_name, now=self._clock())
        saved = self._call("update_work_order", updated)

        if event.type == WorkOrderEventType.COMPLETE and saved.rule_id:
            self._reschedule_rule(saved)
        return saved

    def _reschedule_rule(self, work_order: WorkOrder) -> None:
        rule = self._call("get_rule", work_order.rule_id)
        if rule is None:
            logger.warning(
                "Work order %s references missing rule %s",
                work_order.work_order_number, work_order.rule_id,
            )
            return

        update = compute_schedule_after_completion(rule, work_order.actual_end)
        if update is None:
            return

        changes: dict[str, Any] = {"next_due_date": update.next_due_date}
        if update.updated_start_date is not None:
            changes["start_date"] = update.updated_start_date
        if update.next_reschedule_mode is not None:
            changes["reschedule_mode"] = RescheduleMode(update.next_reschedule_mode)
        self._call("update_rule", rule.model_copy(update=changes))
        logger.info("Rule '%s' next due %s", rule.name, update.next_due_date.isoformat())

    def mark_asset_complete(self, work_order_id: str, asset_id: str) -> WorkOrder:
        """Mark one asset's line item of a work order as completed."""
        existing = self._require("get_work_order", work_order_id, "Work order")
        if not any(item.asset_id == asset_id for item in existing.line_items):
            raise RecordNotFoundError(
                f"Asset {asset_id} is not part of work order {existing.work_order_number}"
            )

        now = self._clock()
        line_items = [
            item.model_copy(update={"completion_status": LineItemStatus.COMPLETED, "completed_at": now})
            if item.asset_id == asset_id else item
            for item in existing.line_items
        ]
        return self._call("update_work_order", existing.model_copy(update={"line_items": line_items}))

    def auto_generate_work_orders(self) -> list[WorkOrder]:
        """Create a work order for every rule whose lead time has started.

        A failure on one rule is logged and the remaining rules are still
        processed.
        """
        now = self._clock()
        work_orders = self._call("get_work_orders")
        created: list[WorkOrder] = []

        for rule in self._call("get_rules"):
            if not should_create_work_order(rule, work_orders, now):
                continue
            try:
                work_order = self.create_work_order_from_rule(rule.id)
            except StorageUnavailableError as e:
                logger.error("Failed to generate work order for rule %s: %s", rule.id, e)
                continue
            work_orders.append(work_order)
            created.append(work_order)

        logger.info("Auto-generated %d work orders", len(created))
        return created

    def generate_scheduled_work_orders(
        self,
        rule_id: str,
        horizon_months: int = DEFAULT_HORIZON_MONTHS,
        max_work_orders: int = DEFAULT_MAX_WORK_ORDERS,
    ) -> list[WorkOrder]:
        """Store pre-generated ``scheduled`` work orders up to the horizon.

        Line items cover every asset the rule targets, not only the assets
        it names directly.
        """
        rule = self._require("get_rule", rule_id, "Maintenance rule")
        now = self._clock()
        existing = self._call("get_work_orders")
        line_items = self.resolve_rule_targets(rule)

        created: list[WorkOrder] = []
        for draft in generate_future_work_orders(
            rule, horizon_months, existing, now=now, max_work_orders=max_work_orders
        ):
            work_order = WorkOrder(
                id=str(uuid.uuid4()),
                work_order_number=self._next_work_order_number(now, existing),
                rule_id=draft.rule_id,
                type=draft.type,
                order_type=draft.order_type,
                state=draft.state,
                lead_time_days=draft.lead_time_days,
                scheduled_start=draft.scheduled_start,
                company_id=draft.company_id,
                line_items=[item.model_copy() for item in line_items],
                history=[WorkOrderHistoryEntry(
                    state=WorkOrderState.SCHEDULED, changed_at=now, changed_by=draft.created_by,
                )],
                created_by=draft.created_by,
            )
            existing.append(self._call("create_work_order", work_order))
            created.append(work_order)
        return created

    def activate_due_work_orders(self, changed_by: str = "system") -> list[WorkOrder]:
        """Move scheduled work orders into the backlog once their lead time starts."""
        now = self._clock()
        event = WorkOrderEvent(WorkOrderEventType.ACTIVATE)
        activated = [
            self._call("update_work_order", apply_transition(wo, event, changed_by, now=now))
            for wo in self._call("get_work_orders")
            if wo.state == WorkOrderState.SCHEDULED and is_within_lead_time(wo, now)
        ]
        if activated:
            logger.info("Activated %d scheduled work orders", len(activated))
        return activated

    # ========================================
    # Overview
    # ========================================

    def schedule_overview(self) -> list[ScheduleStatus]:
        """Due status of every stored schedule, against one reading of today."""
        return evaluate_schedules(self._call("get_schedules"), self._clock())
