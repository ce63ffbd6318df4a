#!/usr/bin/env python3
"""
Print the current leaderboard and the most recent games.

Reads the last committed ledger only; run recompute_ratings.py to
refresh it.

    python scripts/show_leaderboard.py
    python scripts/show_leaderboard.py --games 10
    python scripts/show_leaderboard.py --json
"""
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from foosrank.config import settings
from foosrank.db.store import GameStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Show ratings and recent games.")
    parser.add_argument(
        "--games",
        type=int,
        default=settings.recent_games_limit,
        help="How many recent games to list (0 to skip).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of tables.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    store = GameStore.from_settings()

    leaderboard = store.read_leaderboard()
    games = store.recent_games(limit=args.games)

    if args.json:
        payload = {
            "leaderboard": [asdict(row) for row in leaderboard],
            "recent_games": [
                {
                    "id": game.id,
                    "teams": [
                        [team.front.handle, team.back.handle] for team in game.teams
                    ],
                    "score": list(game.score),
                    "created_at": game.created_at.isoformat(),
                }
                for game in games
            ],
        }
        print(json.dumps(payload, indent=2))
        return 0

    print(f"{'#':>3}  {'Player':<24} {'Rating':>8} {'Games':>6} {'W':>4} {'L':>4}")
    print("-" * 56)
    for position, row in enumerate(leaderboard, start=1):
        name = f"{row.first_name} {row.last_name}"
        print(
            f"{position:>3}  {name:<24} {row.rating:>8.1f} "
            f"{row.games_played:>6} {row.wins:>4} {row.losses:>4}"
        )

    if games:
        print()
        print("Recent games")
        print("-" * 56)
        for game in games:
            first, second = game.teams
            print(
                f"{game.created_at:%Y-%m-%d %H:%M}  "
                f"{first.front.handle}/{first.back.handle} "
                f"{game.score[0]}-{game.score[1]} "
                f"{second.front.handle}/{second.back.handle}"
            )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
