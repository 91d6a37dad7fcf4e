"""CSV and JSON export of report data.

Each report is written to a date-stamped file in the export directory,
e.g. ``asset-utilization-2024-06-15.csv``. Fields containing a comma,
quote or line break are quoted with doubled inner quotes, so
``parse_csv(to_csv(rows, headers))`` gives back every field value as a
string.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from collections.abc import Iterable, Sequence
from datetime import date
from pathlib import Path
from typing import Any

from .models import (
    AssetUtilizationData,
    BookingHistoryData,
    MaintenanceComplianceData,
    ReportBundle,
    StockTakeSummaryData,
    WorkOrderCompletionData,
)

logger = logging.getLogger(__name__)

UTILIZATION_HEADERS = [
    "asset_number",
    "asset_name",
    "asset_type_name",
    "booking_count",
    "total_days_booked",
    "utilization_percentage",
    "last_booked_date",
]
COMPLIANCE_HEADERS = ["asset_number", "asset_name", "schedule_name", "due_date", "days_overdue"]
STOCK_TAKE_HEADERS = ["asset_number", "asset_name", "asset_type_name", "last_location"]
MOST_BOOKED_HEADERS = ["asset_number", "asset_name", "booking_count"]
MONTHLY_HEADERS = ["month", "count"]
WORK_ORDER_COMPLETION_HEADERS = [
    "work_order_number",
    "asset_name",
    "type",
    "order_type",
    "scheduled_end",
    "actual_end",
    "days_early_late",
]


def _as_dict(row: Any) -> dict:
    return row.to_dict() if hasattr(row, "to_dict") else dict(row)


def to_csv(rows: Iterable[Any], headers: Sequence[str]) -> str:
    """Render rows (dicts or objects with ``to_dict``) as CSV text.

    Only the listed columns are written, in order; missing and None values
    become empty fields.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        data = _as_dict(row)
        writer.writerow(["" if data.get(h) is None else data[h] for h in headers])
    return buffer.getvalue()


def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse CSV text with a header line into one dict per row."""
    return list(csv.DictReader(io.StringIO(text)))


class ReportExporter:
    """Write reports as date-stamped files.

    Usage:
        exporter = ReportExporter(settings.export_abs_dir, today=date(2024, 6, 15))
        paths = exporter.export_bundle(bundle)
    """

    def __init__(self, export_dir: str | Path, today: date | None = None) -> None:
        self.export_dir = Path(export_dir)
        self.today = today or date.today()

    def _write(self, stem: str, suffix: str, content: str) -> Path:
        self.export_dir.mkdir(parents=True, exist_ok=True)
        path = self.export_dir / f"{stem}-{self.today.isoformat()}.{suffix}"
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        logger.info("Exported %s", path)
        return path

    def export_utilization(self, data: Sequence[AssetUtilizationData]) -> Path:
        return self._write("asset-utilization", "csv", to_csv(data, UTILIZATION_HEADERS))

    def export_compliance(self, data: MaintenanceComplianceData) -> Path:
        """Export the overdue list of a compliance report."""
        return self._write(
            "maintenance-compliance", "csv", to_csv(data.overdue_list, COMPLIANCE_HEADERS)
        )

    def export_stock_take(self, data: StockTakeSummaryData) -> Path:
        """Export the missing assets of a stock-take session."""
        return self._write(
            "stock-take-summary", "csv", to_csv(data.missing_assets, STOCK_TAKE_HEADERS)
        )

    def export_booking_history(self, data: BookingHistoryData) -> Path:
        """Export most-booked assets and monthly counts as two titled sections."""
        content = (
            "Most Booked Assets\n"
            + to_csv(data.most_booked_assets, MOST_BOOKED_HEADERS)
            + "\nBookings by Month\n"
            + to_csv(data.bookings_by_month, MONTHLY_HEADERS)
        )
        return self._write("booking-history", "csv", content)

    def export_work_order_completion(self, data: WorkOrderCompletionData) -> Path:
        return self._write(
            "work-order-completion", "csv", to_csv(data.rows, WORK_ORDER_COMPLETION_HEADERS)
        )

    def export_json(self, bundle: ReportBundle) -> Path:
        content = json.dumps(bundle.to_dict(), ensure_ascii=False, indent=2)
        return self._write("report-bundle", "json", content)

    def export_bundle(self, bundle: ReportBundle) -> list[Path]:
        """Write every CSV report in the bundle plus its JSON dump."""
        paths = [self.export_utilization(bundle.utilization)]
        if bundle.compliance is not None:
            paths.append(self.export_compliance(bundle.compliance))
        # Only the latest session gets a file; earlier ones are in the JSON.
        if bundle.stock_takes:
            latest = max(bundle.stock_takes, key=lambda s: s.started_at)
            paths.append(self.export_stock_take(latest))
        if bundle.booking_history is not None:
            paths.append(self.export_booking_history(bundle.booking_history))
        if bundle.work_order_completion is not None:
            paths.append(self.export_work_order_completion(bundle.work_order_completion))
        paths.append(self.export_json(bundle))
        return paths
