"""Create the database and apply database/schema.sql.

Usage: APP_ENV=development python scripts/init_db.py
"""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module  # noqa: E402

from src.geo_attendance.geo_attendance.database.bootstrap import apply_schema, list_tables  # noqa: E402
from src.geo_attendance.geo_attendance.database.connection import DBConfig  # noqa: E402


def main() -> None:
    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    config = DBConfig.from_mapping(dict(settings.DB_CONFIG))

    executed = apply_schema(config, schema_path=REPO_ROOT / "database" / "schema.sql")
    tables = list_tables(config)
    print(f"[{settings_module}] {executed} statements -> {config.user}@{config.host}:{config.port}/{config.database}")
    print("tables: " + ", ".join(sorted(tables)))


if __name__ == "__main__":
    main()
