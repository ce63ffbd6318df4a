#!/usr/bin/env python3
"""
Rebuild player ratings by replaying the full game history.

Run the periodic recompute loop (default; one recompute per interval):
    python scripts/recompute_ratings.py

Single recompute, then exit:
    python scripts/recompute_ratings.py --once

Keep running after failures instead of exiting:
    python scripts/recompute_ratings.py --on-error retry

Dry run (replay everything, then roll back):
    python scripts/recompute_ratings.py --once --dry-run
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from foosrank.config import settings
from foosrank.db.store import GameStore
from foosrank.elo.recompute import RatingRecomputer
from foosrank.tasks import LockUnavailableError, RecomputeFatalError, RecomputeScheduler

logger = logging.getLogger("foosrank.recompute")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rebuild player ratings from the complete game history.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single recompute and exit.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="With --once: replay and report, but roll back the ledger.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.recompute_interval_seconds,
        help="Seconds between recomputes (default from settings).",
    )
    parser.add_argument(
        "--on-error",
        choices=["fatal", "retry"],
        default=settings.recompute_on_error,
        help="What a failed recompute does to the loop (default from settings).",
    )
    parser.add_argument(
        "--no-initial-run",
        action="store_true",
        help="Wait one interval before the first recompute.",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables before starting.",
    )
    parser.add_argument(
        "--metrics-json",
        default=None,
        help="With --once: write the run summary to this path.",
    )
    return parser


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.dry_run and not args.once:
        parser.error("--dry-run only applies to a single run; add --once")
    if args.metrics_json and not args.once:
        parser.error("--metrics-json only applies to a single run; add --once")
    return args


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = GameStore.from_settings()
    if args.create_schema:
        store.create_schema()

    recomputer = RatingRecomputer(store, baseline=settings.baseline_rating)

    if args.once:
        try:
            if args.dry_run:
                with store.recompute_lock():
                    run = recomputer.recompute(dry_run=True)
                print("(dry run - changes rolled back)")
            else:
                scheduler = RecomputeScheduler(recomputer, lock_factory=store.recompute_lock)
                run = scheduler.trigger()
        except LockUnavailableError as exc:
            logger.warning("Skipped: %s", exc)
            return 0

        print("-" * 60)
        print(f"Users reset:     {run.users_reset}")
        print(f"Games replayed:  {run.games_processed}")
        print(f"Elapsed:         {run.duration_s:.2f}s")

        if args.metrics_json:
            path = Path(args.metrics_json)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(run.to_dict(), indent=2) + "\n", encoding="utf-8")
            print(f"Metrics JSON:    {path}")
        return 0

    scheduler = RecomputeScheduler(
        recomputer,
        interval_seconds=args.interval,
        on_error=args.on_error,
        retry_backoff_seconds=settings.recompute_retry_backoff_seconds,
        retry_backoff_max_seconds=settings.recompute_retry_backoff_max_seconds,
        lock_factory=store.recompute_lock,
    )
    run_immediately = settings.recompute_on_startup and not args.no_initial_run
    try:
        scheduler.run_forever(run_immediately=run_immediately)
    except RecomputeFatalError as exc:
        logger.critical("Exiting: %s", exc)
        return 1
    except KeyboardInterrupt:
        scheduler.stop()
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
