"""
Full-replay rating recompute.

Ratings are never patched incrementally. Each player's K-factor depends
on how many games they had played at that point of the history, so a
back-dated or corrected game changes every later update. The only safe
way to reflect it is to rebuild the ledger from the baseline and replay
the whole history in chronological order, every time.

One recompute, all inside a single transaction:
1. Note the highest stored game ID. Games stored after this point are
   left for the next run, so every replayed game was committed before
   the users were read in step 2
2. Delete the ledger and give every known user the baseline rating
3. Stream every game up to that ID in ascending (created_at, id) order
4. For each game, rate it from the four players' current ledger state
   and apply the four changes before the next game is read
5. Commit. Any failure rolls everything back, so readers keep seeing
   the previous ledger untouched.

Usage:
    store = GameStore.from_settings()
    recomputer = RatingRecomputer(store)
    run = recomputer.recompute()
    print(run.games_processed, run.duration_s)
"""

from __future__ import annotations

import logging
from time import perf_counter
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from foosrank.db.models import utc_now
from foosrank.elo.calculator import GameUpdate, calculate_game_update
from foosrank.elo.constants import BASELINE_RATING
from foosrank.elo.ledger import (
    LedgerIntegrityError,
    apply_ledger_delta,
    get_rating_entry,
    reset_ledger,
)
from foosrank.games.records import GameRecord, latest_game_id
from foosrank.tasks.runtime import RecomputeRun, new_run_id

if TYPE_CHECKING:
    from foosrank.db.store import GameStore

logger = logging.getLogger(__name__)


class RatingRecomputer:
    """
    Rebuilds the rating ledger from the complete game history.

    The recomputer holds no rating state between runs: running it twice
    over the same history gives identical ledgers.
    """

    def __init__(self, store: "GameStore", baseline: float = BASELINE_RATING):
        self.store = store
        self.baseline = baseline

    def recompute(self, dry_run: bool = False) -> RecomputeRun:
        """
        Reset the ledger and replay every game, atomically.

        Args:
            dry_run: Replay everything, then roll back instead of committing.

        Returns:
            RecomputeRun with status "success" and the replay counts.

        Raises:
            LedgerIntegrityError: A game has repeated players or a player
                without a ledger entry.
            GameStreamError: The game scan failed.
            Any store error. In every case the transaction is rolled back.
        """
        run_id = new_run_id()
        started_at = utc_now()
        t_start = perf_counter()
        games_processed = 0

        logger.info("Rating recompute %s started", run_id)
        try:
            with self.store.transaction(commit=not dry_run) as session:
                max_game_id = latest_game_id(session)
                users_reset = reset_ledger(session, self.baseline)

                # The recompute path always consumes the stream to exhaustion
                with self.store.stream_games(ascending=True, max_game_id=max_game_id) as games:
                    for game in games:
                        self.process_game(session, game)
                        games_processed += 1

                session.flush()
        except Exception:
            logger.exception(
                "Rating recompute %s failed after %d games; ledger rolled back",
                run_id,
                games_processed,
            )
            raise

        elapsed = perf_counter() - t_start
        logger.info(
            "Rating recompute %s finished: %d users, %d games in %.3fs%s",
            run_id,
            users_reset,
            games_processed,
            elapsed,
            " (dry run, rolled back)" if dry_run else "",
        )
        return RecomputeRun(
            run_id=run_id,
            status="success",
            started_at=started_at,
            ended_at=utc_now(),
            users_reset=users_reset,
            games_processed=games_processed,
            metrics={
                "elapsed_s": round(elapsed, 6),
                "dry_run": dry_run,
                "max_game_id": max_game_id,
            },
        )

    def process_game(self, session: Session, game: GameRecord) -> GameUpdate:
        """
        Apply one game to the in-progress ledger.

        All four pre-game ratings and game counts are read before any
        change is written, so the order of the four updates does not
        matter. Every participant's games_played goes up by exactly one.
        """
        player_ids = game.participant_ids
        if len(set(player_ids)) != 4:
            raise LedgerIntegrityError(
                f"Game {game.id} does not have four distinct players: {player_ids}"
            )

        entries = [get_rating_entry(session, user_id) for user_id in player_ids]
        update = calculate_game_update(
            ratings=[entry.rating for entry in entries],
            games_played=[entry.games_played for entry in entries],
            score=game.score,
        )

        for index, (user_id, change) in enumerate(zip(player_ids, update.changes)):
            on_team_a = index < 2
            apply_ledger_delta(
                session,
                user_id,
                change,
                increment_games=True,
                won=update.team_a_won if on_team_a else update.team_b_won,
                lost=update.team_b_won if on_team_a else update.team_a_won,
            )

        logger.debug(
            "Game %d %d-%d: expected=%.4f factor=%.2f delta=%.4f",
            game.id,
            game.score[0],
            game.score[1],
            update.expected,
            update.goal_factor,
            update.raw_delta,
        )
        return update
