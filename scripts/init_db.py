from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.attendance_verifier.attendance_verifier.database.bootstrap import apply_schema, list_tables

REQUIRED_TABLES = (
    "centers",
    "center_time_windows",
    "students",
    "attendance_records",
    "attendance_evidence",
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the attendance verifier tables (safe to re-run).")
    parser.add_argument(
        "--schema",
        default=str(REPO_ROOT / "database" / "schema.sql"),
        help="Path to the schema file (default: database/schema.sql)",
    )
    args = parser.parse_args()

    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)
    target = f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}"

    apply_schema(db_config, schema_path=args.schema)
    tables = set(list_tables(db_config))
    missing = [t for t in REQUIRED_TABLES if t not in tables]
    if missing:
        print(f"FAILED: {target} is missing tables: {', '.join(missing)}")
        return 1

    print(f"OK: schema applied to {target} ({len(tables)} tables)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
