from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.attendance_verifier.attendance_verifier.common.datetime_utils import parse_iso_date
from src.attendance_verifier.attendance_verifier.common.logging_config import configure_logging
from src.attendance_verifier.attendance_verifier.container import build_container


def main() -> None:
    parser = argparse.ArgumentParser(description="Re-run center resolution for pending attendance records.")
    parser.add_argument("date", help="Calendar date, YYYY-MM-DD")
    parser.add_argument(
        "student_ids",
        nargs="*",
        help="Students whose record for that date should be retried (default: every pending record)",
    )
    args = parser.parse_args()

    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    container = build_container(db_config=settings.DB_CONFIG, settings=settings)

    day = parse_iso_date(args.date)
    if not args.student_ids:
        for record in container.checkin_service.reconcile_pending(day):
            print(f"{record.student_id} {day.isoformat()}: {record.status.value}")
        return

    for student_id in args.student_ids:
        record = container.checkin_service.reconcile(student_id, day)
        status = record.status.value if record else "no record"
        print(f"{student_id} {day.isoformat()}: {status}")


if __name__ == "__main__":
    main()
