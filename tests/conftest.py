"""Shared test fixtures for the maintenance engine."""

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

# Ensure src is importable
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.common.models import (
    Asset,
    AssetGroupRef,
    AssetRef,
    Booking,
    NamedRef,
    TimeBasedSchedule,
)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def sample_dataset_path() -> Path:
    """Return the sample inventory dataset shipped with the repo."""
    return PROJECT_ROOT / "fixtures" / "sample_inventory.yaml"


@pytest.fixture
def today() -> date:
    """Frozen evaluation date used across tests."""
    return date(2024, 6, 15)


@pytest.fixture
def now() -> datetime:
    """Frozen evaluation timestamp (same day as ``today``)."""
    return datetime(2024, 6, 15, 10, 30, tzinfo=timezone.utc)


def make_asset(asset_id: str, number: str, group: str | None = None, **kwargs) -> Asset:
    """Build an asset with sensible defaults."""
    return Asset(
        id=asset_id,
        asset_number=number,
        name=kwargs.pop("name", f"Asset {number}"),
        asset_type=NamedRef(id="t-1", name=kwargs.pop("type_name", "Camera")),
        asset_group=AssetGroupRef(id=group, group_number=f"GRP-{group}", name=f"Group {group}")
        if group else None,
        **kwargs,
    )


def make_booking(
    booking_id: str,
    asset_id: str | None,
    start: str,
    end: str,
    status: str = "completed",
) -> Booking:
    return Booking(
        id=booking_id,
        asset=AssetRef(id=asset_id) if asset_id else None,
        start_date=start,
        end_date=end,
        status=status,
    )


@pytest.fixture
def sample_assets() -> list[Asset]:
    """Three assets: two cameras in one group, one unrelated light."""
    return [
        make_asset("a-1", "CAM-001", group="g-1"),
        make_asset("a-2", "CAM-002", group="g-1"),
        make_asset("a-3", "LGT-001", type_name="Light", location="Shelf 4"),
    ]


@pytest.fixture
def sample_schedules() -> list[TimeBasedSchedule]:
    """One overdue schedule and one due 60 days after 2024-06-15."""
    return [
        TimeBasedSchedule(
            id="s-1", asset_id="a-1", interval_months=3,
            next_due=date(2024, 6, 1), reminder_days_before=7,
        ),
        TimeBasedSchedule(
            id="s-2", asset_id="a-2", interval_months=6,
            next_due=date(2024, 8, 14), reminder_days_before=7,
        ),
    ]


@pytest.fixture
def sample_bookings() -> list[Booking]:
    return [
        make_booking("b-1", "a-1", "2024-06-01", "2024-06-05"),
        make_booking("b-2", "a-1", "2024-06-10", "2024-06-11", status="active"),
        make_booking("b-3", "a-2", "2024-05-28", "2024-06-02"),
        make_booking("b-4", "a-3", "2024-06-03", "2024-06-04", status="cancelled"),
    ]
