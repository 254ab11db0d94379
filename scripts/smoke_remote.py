from __future__ import annotations

import argparse
import asyncio
import importlib
import sys
from datetime import date
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
for p in (REPO_ROOT, REPO_ROOT / "src" / "staff_attendance"):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from dotenv import load_dotenv

from config import get_settings_module

from staff_attendance.common.datetime_utils import parse_iso_date
from staff_attendance.container import build_container
from staff_attendance.logging_setup import setup_logging


async def run(record_date: date) -> int:
    settings = importlib.import_module(get_settings_module())
    setup_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    container = build_container(settings=settings)

    counts = await container.attendance_repo.count_by_date(record_date)
    if not counts.is_ok:
        print(f"NG: {counts.error.kind.value}: {counts.error.message}")
        return 1

    finalized = await container.finalize_service.get_day_finalized_state(record_date)
    c = counts.value
    print(
        f"OK: storage={container.storage_kind.value} date={record_date.isoformat()} "
        f"total={c.total} on_duty={c.on_duty} out={c.out} absent={c.absent} "
        f"finalized={finalized.value if finalized.is_ok else 'unknown'}"
    )
    return 0


def main() -> None:
    load_dotenv(override=False)
    parser = argparse.ArgumentParser(description="Read one day of staff attendance from the configured store.")
    parser.add_argument("date", nargs="?", default=date.today().isoformat(), help="YYYY-MM-DD (default: today)")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(parse_iso_date(args.date))))


if __name__ == "__main__":
    main()
