from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.gym_attendance.gym_attendance.container import build_store
from src.gym_attendance.gym_attendance.database.bootstrap import seed_documents


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    store_config = dict(settings.STORE_CONFIG)

    count = seed_documents(build_store(store_config), seed_path=REPO_ROOT / "database" / "seed.json")

    print(
        f"OK: Seeded {count} documents -> "
        f"{store_config.get('user')}@{store_config.get('host')}:{store_config.get('port', 3306)}/{store_config.get('database')}"
    )


if __name__ == "__main__":
    main()
