"""CLI entry point for the maintenance scheduler.

Usage:
    python -m src.maintenance.main --data fixtures/sample_inventory.yaml
    python -m src.maintenance.main --data inventory.yaml --today 2024-06-15 --asset a-001
    python -m src.maintenance.main --data inventory.yaml --generate --output overview.json
    python -m src.maintenance.main --data inventory.yaml --pregenerate
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date, datetime, time, timezone

from ..common.config import settings
from ..common.dataset import DatasetError, load_dataset
from ..common.logging import setup_logging
from .service import InMemoryStorageProvider, MaintenanceService

logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Maintenance Schedule Overview")
    parser.add_argument(
        "--data",
        type=str,
        required=True,
        help="Dataset file (YAML or JSON)",
    )
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        help="Evaluation date YYYY-MM-DD (default: system date)",
    )
    parser.add_argument(
        "--asset",
        type=str,
        help="Only show schedules of this asset id",
    )
    parser.add_argument(
        "--generate",
        action="store_true",
        help="Create work orders for rules whose lead time has started",
    )
    parser.add_argument(
        "--pregenerate",
        action="store_true",
        help="Pre-generate scheduled work orders up to the planning horizon",
    )
    parser.add_argument(
        "--output",
        type=str,
        help="Output JSON file path",
    )

    parser.add_argument("--log-file", type=str, help="Also write log output to this file")

    args = parser.parse_args()
    setup_logging(settings.log_level, args.log_file)

    try:
        dataset = load_dataset(args.data)
    except DatasetError as e:
        parser.error(str(e))

    clock = None
    if args.today:
        frozen = datetime.combine(args.today, time(), tzinfo=timezone.utc)
        clock = lambda: frozen  # noqa: E731

    service = MaintenanceService(InMemoryStorageProvider.from_dataset(dataset), clock=clock)

    statuses = service.schedule_overview()
    if args.asset:
        statuses = [s for s in statuses if s.asset_id == args.asset]

    for status in statuses:
        logger.info(
            "  %s [%s] %s: next due %s (%s days) %s%s",
            status.asset_id,
            status.schedule_id,
            status.description,
            status.next_due.isoformat() if status.next_due else "-",
            status.days_until_due if status.days_until_due is not None else "-",
            status.status.value if status.status else "undetermined",
            " [reminder]" if status.reminder_due else "",
        )

    created = []
    if args.generate:
        created = service.auto_generate_work_orders()
        for wo in created:
            logger.info(
                "  Created %s (%s, %d assets)",
                wo.work_order_number, wo.type.value, len(wo.line_items),
            )

    if args.pregenerate:
        for rule in dataset.rules:
            scheduled = service.generate_scheduled_work_orders(
                rule.id,
                horizon_months=settings.scheduling.work_order_horizon_months,
                max_work_orders=settings.scheduling.max_generated_work_orders,
            )
            logger.info("  Rule %s: %d scheduled work orders", rule.name, len(scheduled))
            created.extend(scheduled)
        activated = service.activate_due_work_orders()
        logger.info("  Activated %d work orders", len(activated))

    if args.output:
        output_data = {
            "schedules": [s.to_dict() for s in statuses],
            "created_work_orders": [wo.model_dump(mode="json") for wo in created],
        }
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(output_data, f, ensure_ascii=False, indent=2)
        logger.info("Output written to %s", args.output)


if __name__ == "__main__":
    main()
