"""CLI entry point for report generation.

Usage:
    python -m src.reports.main --data fixtures/sample_inventory.yaml --report compliance
    python -m src.reports.main --data inventory.yaml --report utilization --start 2024-01-01 --end 2024-06-30
    python -m src.reports.main --data inventory.yaml --report all --today 2024-06-15 --csv
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date

from dateutil.relativedelta import relativedelta

from ..common.config import settings
from ..common.dataset import DatasetError, load_dataset
from ..common.logging import setup_logging
from .calculator import build_report_bundle
from .exporter import ReportExporter

logger = logging.getLogger(__name__)

REPORTS = ["compliance", "utilization", "groups", "stock-take", "bookings", "work-orders", "all"]


def _log_report(report: str, bundle) -> None:
    if report in ("compliance", "all"):
        c = bundle.compliance
        logger.info(
            "Compliance: %.1f%% of %d scheduled assets (%d overdue, %d upcoming)",
            c.compliance_percentage, c.assets_with_schedules, c.overdue_assets, c.upcoming_assets,
        )
        for item in c.overdue_list:
            logger.info("  OVERDUE %s %s: %d days", item.asset_number, item.asset_name, item.days_overdue)

    if report in ("utilization", "all"):
        for u in bundle.utilization:
            logger.info(
                "  %s %s: %d bookings, %d days, %.1f%%",
                u.asset_number, u.asset_name, u.booking_count, u.total_days_booked,
                u.utilization_percentage,
            )

    if report in ("groups", "all"):
        for g in bundle.group_utilization:
            logger.info(
                "  Group %s %s (%d members): %.1f%% average",
                g.group_number, g.group_name, g.member_count, g.average_utilization,
            )

    if report in ("stock-take", "all"):
        for s in bundle.stock_takes:
            logger.info(
                "  %s: %d/%d scanned (%.1f%%), %d missing, %d unexpected",
                s.session_name, s.scanned_count, s.expected_count, s.completion_rate,
                s.missing_count, s.unexpected_count,
            )

    if report in ("bookings", "all"):
        h = bundle.booking_history
        logger.info(
            "Bookings: %d total (%d active, %d completed, %d cancelled)",
            h.total_bookings, h.active_bookings, h.completed_bookings, h.cancelled_bookings,
        )
        for a in h.most_booked_assets:
            logger.info("  %s %s: %d bookings", a.asset_number, a.asset_name, a.booking_count)

    if report in ("work-orders", "all"):
        w = bundle.work_order_completion
        logger.info(
            "Work orders done: %d (%d on time, %d early, %d late, avg %.1f days)",
            w.total, w.on_time, w.early, w.late, w.average_days_early_late,
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Inventory Report Generator")
    parser.add_argument("--data", type=str, required=True, help="Dataset file (YAML or JSON)")
    parser.add_argument("--report", choices=REPORTS, default="all", help="Report to produce")
    parser.add_argument("--start", type=date.fromisoformat, help="Period start YYYY-MM-DD")
    parser.add_argument("--end", type=date.fromisoformat, help="Period end YYYY-MM-DD")
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        help="Evaluation date YYYY-MM-DD (default: system date)",
    )
    parser.add_argument(
        "--csv",
        action="store_true",
        help="Write CSV/JSON files to the export directory",
    )
    parser.add_argument("--output", type=str, help="Output JSON file path")

    parser.add_argument("--log-file", type=str, help="Also write log output to this file")

    args = parser.parse_args()
    setup_logging(settings.log_level, args.log_file)

    today = args.today or date.today()
    end = args.end or today
    start = args.start or (end - relativedelta(months=1))
    if start > end:
        parser.error("--start must not be after --end")

    try:
        dataset = load_dataset(args.data)
    except DatasetError as e:
        parser.error(str(e))

    bundle = build_report_bundle(
        dataset,
        start,
        end,
        now=today,
        upcoming_window_days=settings.reports.upcoming_window_days,
        top_limit=settings.reports.top_booked_limit,
    )
    _log_report(args.report, bundle)

    if args.csv:
        exporter = ReportExporter(settings.export_abs_dir, today=today)
        paths = exporter.export_bundle(bundle)
        logger.info("Wrote %d export files to %s", len(paths), exporter.export_dir)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(bundle.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info("Output written to %s", args.output)


if __name__ == "__main__":
    main()
