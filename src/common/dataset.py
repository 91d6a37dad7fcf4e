"""Inventory dataset loading.

Reads a YAML or JSON snapshot of the storage provider's collections and
validates every record at this boundary, so the calculators only ever
see well-formed dates and enums.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator

from .models import (
    Asset,
    AssetGroup,
    Booking,
    MaintenanceRecord,
    MaintenanceRule,
    MaintenanceSchedule,
    Record,
    StockTakeSession,
    WorkOrder,
    parse_schedule,
)

logger = logging.getLogger(__name__)


class DatasetError(Exception):
    """Raised when a dataset file cannot be read or validated."""


class InventoryDataset(Record):
    """All collections the reports and schedulers operate on."""
    assets: list[Asset] = Field(default_factory=list)
    asset_groups: list[AssetGroup] = Field(default_factory=list)
    bookings: list[Booking] = Field(default_factory=list)
    schedules: list[Any] = Field(default_factory=list)
    work_orders: list[WorkOrder] = Field(default_factory=list)
    rules: list[MaintenanceRule] = Field(default_factory=list)
    maintenance_records: list[MaintenanceRecord] = Field(default_factory=list)
    stock_takes: list[StockTakeSession] = Field(default_factory=list)

    @field_validator("schedules", mode="before")
    @classmethod
    def _parse_schedules(cls, value: Any) -> list[MaintenanceSchedule]:
        return [parse_schedule(item) for item in value or []]

    def asset_by_id(self, asset_id: str) -> Asset | None:
        for asset in self.assets:
            if asset.id == asset_id:
                return asset
        return None

    def stock_take_by_id(self, session_id: str) -> StockTakeSession | None:
        for session in self.stock_takes:
            if session.id == session_id:
                return session
        return None


def load_dataset(path: str | Path) -> InventoryDataset:
    """Load and validate a dataset from a YAML (.yaml/.yml) or JSON file.

    Raises:
        DatasetError: File missing, unparseable, or containing invalid records.
    """
    path = Path(path)
    if not path.exists():
        raise DatasetError(f"Dataset file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                raw = yaml.safe_load(f) or {}
            else:
                raw = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise DatasetError(f"Cannot parse {path}: {e}") from e

    try:
        dataset = InventoryDataset.model_validate(raw)
    except ValidationError as e:
        raise DatasetError(f"Invalid records in {path}: {e}") from e

    logger.info(
        "Loaded dataset %s: %d assets, %d bookings, %d schedules, %d work orders",
        path.name,
        len(dataset.assets),
        len(dataset.bookings),
        len(dataset.schedules),
        len(dataset.work_orders),
    )
    return dataset
