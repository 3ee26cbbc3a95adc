"""Issue QR tokens for ACTIVE students that have none, optionally writing PNGs.

    python scripts/generate_qr.py [--out /tmp/qr]
"""
from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.tutor_checkin.tutor_checkin.container import build_container


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--out", help="directory for student_<id>.png files")
    args = parser.parse_args()

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=dict(settings.DB_CONFIG), settings=settings)

    created = container.qr_service.issue_missing_tokens()
    print(f"OK: Issued {len(created)} QR tokens")

    if args.out:
        count = container.qr_service.export_pngs(args.out)
        print(f"OK: Wrote {count} PNGs to {args.out}")


if __name__ == "__main__":
    main()
