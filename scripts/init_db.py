from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.gym_attendance.gym_attendance.database.bootstrap import apply_schema, list_tables


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    store_config = dict(settings.STORE_CONFIG)

    apply_schema(store_config, schema_path=REPO_ROOT / "database" / "schema.sql")
    tables = list_tables(store_config)
    print(
        "OK: Applied schema.sql -> "
        f"{store_config.get('user')}@{store_config.get('host')}:{store_config.get('port', 3306)}/{store_config.get('database')} "
        f"(tables={len(tables)})"
    )


if __name__ == "__main__":
    main()
