"""Tests for report aggregators."""

from datetime import date, datetime, timezone

import pytest

from conftest import make_asset, make_booking
from src.common.dataset import InventoryDataset
from src.common.models import (
    AssetGroup,
    ExpectedAsset,
    MaintenanceRule,
    MaintenanceRuleTarget,
    ScannedAsset,
    StockTakeSession,
    TimeBasedSchedule,
    UsageBasedSchedule,
    WorkOrder,
    WorkOrderLineItem,
)
from src.reports.calculator import (
    aggregate_booking_history,
    aggregate_group_utilization,
    build_report_bundle,
    build_work_order_completion,
    calculate_asset_utilization,
    calculate_maintenance_compliance,
    calculate_stock_take_summary,
    round_percentage,
)

JUNE_START = date(2024, 6, 1)
JUNE_END = date(2024, 6, 30)


def session(expected: list[str], scanned: list[str]) -> StockTakeSession:
    return StockTakeSession(
        id="st-1",
        start_date=datetime(2024, 6, 14, 9, 0, tzinfo=timezone.utc),
        expected_assets=[
            ExpectedAsset(asset_id=a, asset_number=f"EXP-{a}", name=f"Expected {a}", location="Van")
            for a in expected
        ],
        scanned_assets=[
            ScannedAsset(asset_id=a, scanned_at=datetime(2024, 6, 14, 9, 5, tzinfo=timezone.utc))
            for a in scanned
        ],
    )


def done_order(wo_id: str, scheduled_end=None, actual_end=None, **kwargs) -> WorkOrder:
    return WorkOrder(
        id=wo_id,
        work_order_number=f"WO-20240301-{wo_id[-4:]}",
        state="done",
        scheduled_end=scheduled_end,
        actual_end=actual_end,
        **kwargs,
    )


class TestRoundPercentage:
    @pytest.mark.parametrize("value, expected", [
        (66.666, 66.7),
        (12.25, 12.3),
        (23.333, 23.3),
        (0.25, 0.3),
        (100.0, 100.0),
    ])
    def test_half_up(self, value, expected):
        assert round_percentage(value) == expected


class TestMaintenanceCompliance:
    def test_one_overdue_one_compliant(self, sample_assets, sample_schedules, today):
        result = calculate_maintenance_compliance(sample_assets, sample_schedules, today)
        assert result.total_assets == 3
        assert result.assets_with_schedules == 2
        assert result.overdue_assets == 1
        assert result.upcoming_assets == 0
        assert result.compliant_assets == 1
        assert result.compliance_percentage == 50.0

        [overdue] = result.overdue_list
        assert overdue.asset_number == "CAM-001"
        assert overdue.days_overdue == 14
        assert overdue.schedule_name == "time-based maintenance"

    def test_upcoming_window_inclusive(self, sample_assets, today):
        schedules = [
            TimeBasedSchedule(asset_id="a-1", interval_days=30, next_due=date(2024, 7, 15)),
            TimeBasedSchedule(asset_id="a-2", interval_days=30, next_due=date(2024, 7, 16)),
        ]
        result = calculate_maintenance_compliance(sample_assets, schedules, today)
        assert result.upcoming_assets == 1
        assert result.compliant_assets == 1

    def test_due_today_is_upcoming(self, sample_assets, today):
        schedules = [TimeBasedSchedule(asset_id="a-1", interval_days=30, next_due=today)]
        result = calculate_maintenance_compliance(sample_assets, schedules, today)
        assert result.upcoming_assets == 1
        assert result.overdue_assets == 0

    def test_custom_window(self, sample_assets, sample_schedules, today):
        result = calculate_maintenance_compliance(
            sample_assets, sample_schedules, today, upcoming_window_days=90
        )
        assert result.upcoming_assets == 1
        assert result.compliance_percentage == 0.0

    def test_unclassifiable_schedules_skipped(self, sample_assets, today):
        schedules = [
            UsageBasedSchedule(asset_id="a-1", interval_hours=100),
            TimeBasedSchedule(asset_id="ghost", interval_days=7, next_due=date(2024, 1, 1)),
        ]
        result = calculate_maintenance_compliance(sample_assets, schedules, today)
        assert result.overdue_assets == 0
        assert result.compliant_assets == 0
        assert result.assets_with_schedules == 2

    def test_overdue_sorted_most_overdue_first(self, sample_assets, today):
        schedules = [
            TimeBasedSchedule(asset_id="a-1", interval_days=7, next_due=date(2024, 6, 10)),
            TimeBasedSchedule(asset_id="a-2", interval_days=7, next_due=date(2024, 5, 1)),
        ]
        result = calculate_maintenance_compliance(sample_assets, schedules, today)
        assert [o.asset_id for o in result.overdue_list] == ["a-2", "a-1"]

    def test_no_schedules(self, sample_assets, today):
        result = calculate_maintenance_compliance(sample_assets, [], today)
        assert result.compliance_percentage == 0.0
        assert result.to_dict()["overdue_list"] == []


class TestAssetUtilization:
    def test_bookings_clipped_to_period(self, sample_assets, sample_bookings):
        rows = calculate_asset_utilization(sample_assets, sample_bookings, JUNE_START, JUNE_END)
        by_id = {r.asset_id: r for r in rows}

        assert by_id["a-1"].booking_count == 2
        assert by_id["a-1"].total_days_booked == 7
        assert by_id["a-1"].utilization_percentage == 23.3
        assert by_id["a-1"].last_booked_date == date(2024, 6, 10)

        assert by_id["a-2"].total_days_booked == 2
        assert by_id["a-2"].utilization_percentage == 6.7
        assert by_id["a-2"].last_booked_date == date(2024, 5, 28)

    def test_cancelled_bookings_ignored(self, sample_assets, sample_bookings):
        rows = calculate_asset_utilization(sample_assets, sample_bookings, JUNE_START, JUNE_END)
        light = rows[2]
        assert light.booking_count == 0
        assert light.utilization_percentage == 0.0
        assert light.last_booked_date is None
        assert light.asset_type_name == "Light"

    def test_keeps_asset_order(self, sample_assets, sample_bookings):
        rows = calculate_asset_utilization(sample_assets, sample_bookings, JUNE_START, JUNE_END)
        assert [r.asset_id for r in rows] == ["a-1", "a-2", "a-3"]

    def test_single_day_period(self, sample_assets):
        bookings = [make_booking("b-1", "a-1", "2024-06-01", "2024-06-30")]
        rows = calculate_asset_utilization(sample_assets, bookings, date(2024, 6, 5), date(2024, 6, 5))
        assert rows[0].total_days_booked == 1
        assert rows[0].utilization_percentage == 100.0

    def test_end_before_start_counts_nothing(self, sample_assets):
        bookings = [make_booking("b-1", "a-1", "2024-06-01", "2024-06-30")]
        rows = calculate_asset_utilization(sample_assets, bookings, date(2024, 6, 10), date(2024, 6, 5))
        assert rows[0].booking_count == 0
        assert rows[0].total_days_booked == 0
        assert rows[0].utilization_percentage == 0.0
        assert rows[0].last_booked_date is None

    def test_booking_without_asset_skipped(self, sample_assets):
        bookings = [make_booking("b-1", None, "2024-06-01", "2024-06-02")]
        rows = calculate_asset_utilization(sample_assets, bookings, JUNE_START, JUNE_END)
        assert sum(r.booking_count for r in rows) == 0


class TestGroupUtilization:
    def _utilization(self, assets, bookings):
        return calculate_asset_utilization(assets, bookings, JUNE_START, JUNE_END)

    def test_rolls_up_members(self, sample_assets, sample_bookings):
        utilization = self._utilization(sample_assets, sample_bookings)
        [group] = aggregate_group_utilization(sample_assets, utilization, [], JUNE_START, JUNE_END)
        assert group.group_id == "g-1"
        assert group.group_number == "GRP-g-1"
        assert group.member_count == 2
        assert group.booking_count == 3
        assert group.total_days_booked == 9
        assert group.average_utilization == 15.0
        assert group.last_booked_date == date(2024, 6, 10)

    def test_member_count_from_group_record(self, sample_assets, sample_bookings):
        utilization = self._utilization(sample_assets, sample_bookings)
        groups = [AssetGroup(id="g-1", group_number="G-1", name="Cameras", member_count=4)]
        [group] = aggregate_group_utilization(sample_assets, utilization, groups, JUNE_START, JUNE_END)
        assert group.group_name == "Cameras"
        assert group.member_count == 4
        assert group.average_utilization == 7.5

    def test_idle_group_still_reported(self, sample_assets, sample_bookings):
        assets = sample_assets + [make_asset("a-9", "TRP-001", group="g-2")]
        utilization = self._utilization(assets, sample_bookings)
        groups = aggregate_group_utilization(assets, utilization, [], JUNE_START, JUNE_END)
        assert [g.group_id for g in groups] == ["g-1", "g-2"]
        idle = groups[1]
        assert idle.booking_count == 0
        assert idle.average_utilization == 0.0
        assert idle.last_booked_date is None

    def test_end_before_start_reports_zero(self, sample_assets):
        bookings = [make_booking("b-1", "a-1", "2024-06-01", "2024-06-30")]
        start, end = date(2024, 6, 10), date(2024, 6, 5)
        utilization = calculate_asset_utilization(sample_assets, bookings, start, end)
        [group] = aggregate_group_utilization(sample_assets, utilization, [], start, end)
        assert group.booking_count == 0
        assert group.total_days_booked == 0
        assert group.average_utilization == 0.0


class TestStockTakeSummary:
    def test_missing_asset(self, sample_assets):
        summary = calculate_stock_take_summary(session(["a-1", "a-2", "a-3"], ["a-1", "a-2"]), sample_assets)
        assert summary.session_name == "Stock Take 2024-06-14"
        assert summary.expected_count == 3
        assert summary.scanned_count == 2
        assert summary.missing_count == 1
        assert summary.completion_rate == 66.7

        [missing] = summary.missing_assets
        assert missing.asset_number == "LGT-001"
        assert missing.asset_type_name == "Light"
        assert missing.last_location == "Shelf 4"

    def test_unexpected_scans_count_towards_completion(self, sample_assets):
        summary = calculate_stock_take_summary(session(["a-1", "a-2"], ["a-1", "a-2", "a-3"]), sample_assets)
        assert summary.unexpected_count == 1
        assert summary.unexpected_asset_ids == ["a-3"]
        assert summary.completion_rate == 150.0

    def test_duplicate_scans_counted_once(self, sample_assets):
        summary = calculate_stock_take_summary(session(["a-1"], ["a-1", "a-1"]), sample_assets)
        assert summary.scanned_count == 1
        assert summary.completion_rate == 100.0

    def test_unknown_missing_asset_uses_expected_entry(self, sample_assets):
        summary = calculate_stock_take_summary(session(["x-1"], []), sample_assets)
        [missing] = summary.missing_assets
        assert missing.asset_number == "EXP-x-1"
        assert missing.asset_type_name == "Unknown"
        assert missing.last_location == "Van"

    def test_empty_session(self, sample_assets):
        summary = calculate_stock_take_summary(session([], []), sample_assets)
        assert summary.completion_rate == 0.0


class TestBookingHistory:
    def test_counts_by_status_and_month(self, sample_assets, sample_bookings):
        history = aggregate_booking_history(sample_bookings, sample_assets, JUNE_START, JUNE_END)
        assert history.total_bookings == 3
        assert history.active_bookings == 1
        assert history.completed_bookings == 1
        assert history.cancelled_bookings == 1
        assert [(m.month, m.count) for m in history.bookings_by_month] == [("2024-06", 3)]
        assert [(a.asset_id, a.booking_count) for a in history.most_booked_assets] == [
            ("a-1", 2), ("a-3", 1),
        ]

    def test_ties_ranked_by_asset_number(self, sample_assets):
        bookings = [
            make_booking("b-1", "a-2", "2024-06-01", "2024-06-01"),
            make_booking("b-2", "a-1", "2024-06-02", "2024-06-02"),
        ]
        history = aggregate_booking_history(bookings, sample_assets, JUNE_START, JUNE_END)
        assert [a.asset_number for a in history.most_booked_assets] == ["CAM-001", "CAM-002"]

    def test_top_limit(self, sample_assets, sample_bookings):
        history = aggregate_booking_history(
            sample_bookings, sample_assets, JUNE_START, JUNE_END, top_limit=1
        )
        assert len(history.most_booked_assets) == 1

    def test_months_sorted(self, sample_assets, sample_bookings):
        history = aggregate_booking_history(
            sample_bookings, sample_assets, date(2024, 5, 1), JUNE_END
        )
        assert [m.month for m in history.bookings_by_month] == ["2024-05", "2024-06"]
        assert history.total_bookings == 4


class TestWorkOrderCompletion:
    def test_deviation_and_summary(self, sample_assets):
        orders = [
            done_order("wo-0001", date(2024, 3, 1), date(2024, 3, 3),
                       line_items=[WorkOrderLineItem(asset_id="a-1")]),
            done_order("wo-0002", date(2024, 3, 10), date(2024, 3, 8)),
            done_order("wo-0003"),
            WorkOrder(id="wo-open", work_order_number="WO-20240301-9999", state="in-progress"),
        ]
        data = build_work_order_completion(orders, [], sample_assets)
        assert [r.days_early_late for r in data.rows] == [2, -2, 0]
        assert (data.total, data.on_time, data.early, data.late) == (3, 1, 1, 1)
        assert data.average_days_early_late == 0.0
        assert data.rows[0].asset_name == "Asset CAM-001"
        assert data.rows[1].asset_name == "Unknown"

    def test_asset_name_from_rule_targets(self, sample_assets):
        rule = MaintenanceRule(
            id="r-1", name="Rule", interval_value=1, start_date=date(2024, 1, 1),
            targets=[MaintenanceRuleTarget(type="asset", ids=["a-2"])],
        )
        data = build_work_order_completion([done_order("wo-0001", rule_id="r-1")], [rule], sample_assets)
        assert data.rows[0].asset_name == "Asset CAM-002"

    def test_empty(self):
        data = build_work_order_completion([], [], [])
        assert data.to_dict()["average_days_early_late"] == 0.0


class TestReportBundle:
    def test_bundle_from_dataset(self, sample_assets, sample_bookings, sample_schedules, today):
        dataset = InventoryDataset(
            assets=sample_assets,
            bookings=sample_bookings,
            schedules=sample_schedules,
            stock_takes=[session(["a-1", "a-2", "a-3"], ["a-1", "a-2"])],
        )
        bundle = build_report_bundle(dataset, JUNE_START, JUNE_END, now=today)
        assert bundle.generated_on == today
        assert bundle.compliance.compliance_percentage == 50.0
        assert len(bundle.utilization) == 3
        assert len(bundle.group_utilization) == 1
        assert bundle.stock_takes[0].completion_rate == 66.7
        assert bundle.booking_history.total_bookings == 3
        assert bundle.work_order_completion.total == 0

        d = bundle.to_dict()
        assert d["period_start"] == "2024-06-01"
        assert d["stock_takes"][0]["started_at"] == "2024-06-14T09:00:00+00:00"
