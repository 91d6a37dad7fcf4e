"""Reports Module - Compliance, utilization, stock take and booking reports."""

from .calculator import (
    aggregate_booking_history,
    aggregate_group_utilization,
    build_report_bundle,
    build_work_order_completion,
    calculate_asset_utilization,
    calculate_maintenance_compliance,
    calculate_stock_take_summary,
)
from .exporter import ReportExporter, parse_csv, to_csv

__all__ = [
    "aggregate_booking_history",
    "aggregate_group_utilization",
    "build_report_bundle",
    "build_work_order_completion",
    "calculate_asset_utilization",
    "calculate_maintenance_compliance",
    "calculate_stock_take_summary",
    "ReportExporter",
    "parse_csv",
    "to_csv",
]
