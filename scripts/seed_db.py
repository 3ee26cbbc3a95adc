from __future__ import annotations

import importlib
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.tutor_checkin.tutor_checkin.database.bootstrap import ensure_admin_user, ensure_default_templates


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    email = os.getenv("ADMIN_EMAIL", "admin@example.com")
    password = os.getenv("ADMIN_PASSWORD", "")
    if len(password) < 6:
        raise SystemExit("ADMIN_PASSWORD must be set (at least 6 characters)")

    ensure_default_templates(db_config)
    ensure_admin_user(db_config, email=email, password=password)

    print(
        f"OK: Seeded admin {email} -> "
        f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}"
    )


if __name__ == "__main__":
    main()
