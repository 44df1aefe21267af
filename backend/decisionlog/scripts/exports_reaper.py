from __future__ import annotations

import argparse
import logging
import time
from datetime import timedelta

from decisionlog.config import settings
from decisionlog.database import SessionLocal
from decisionlog.services.exports_reaper import reap_stale_exports


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Fail export jobs stuck in processing (processing -> failed)"
    )
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument("--interval-seconds", type=float, default=60.0, help="Sleep between sweeps")
    parser.add_argument(
        "--stale-after-minutes",
        type=int,
        default=settings.export_stale_after_minutes,
        help="Minutes without progress before a job is failed",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    stale_after = timedelta(minutes=max(1, int(args.stale_after_minutes)))

    if args.once:
        with SessionLocal() as db:
            reaped = reap_stale_exports(db, stale_after=stale_after)
        return 0 if reaped else 2

    while True:
        with SessionLocal() as db:
            reap_stale_exports(db, stale_after=stale_after)
        time.sleep(max(1.0, float(args.interval_seconds)))


if __name__ == "__main__":
    raise SystemExit(main())
