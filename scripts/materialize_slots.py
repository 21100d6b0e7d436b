"""
Pre-create pickup slots for every active location over the booking window.

Usage:
    python scripts/materialize_slots.py [--today YYYY-MM-DD]

Slots are also created lazily on first read; this fills the whole
rolling window up front (e.g. from a nightly cron).
"""

import argparse
from datetime import date

from lunchqueue.database import SessionLocal, init_db
from lunchqueue.services.slots.config import get_slots_config
from lunchqueue.services.slots.directory import SqlLocationDirectory
from lunchqueue.services.slots.store import SqlSlotStore


def materialize(today: date) -> int:
    config = get_slots_config()
    init_db()

    directory = SqlLocationDirectory(SessionLocal)
    store = SqlSlotStore(SessionLocal, config)

    location_ids = [loc.id for loc in directory.list_active_locations()]
    print(f"Active locations: {', '.join(location_ids) or 'none'}")
    print(f"Window: {today.isoformat()} + {config.horizon_days} days")

    created = store.materialize_window(location_ids, today)
    print(f"✔ Created {created} grid(s)")
    return created


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--today", type=date.fromisoformat, default=date.today())
    args = parser.parse_args()
    materialize(args.today)
