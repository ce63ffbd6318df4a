"""Persistence helpers for the rating ledger."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Float, Integer, delete, func, insert, literal, select
from sqlalchemy.orm import Session

from foosrank.db.models import RatingEntry, User
from foosrank.elo.constants import BASELINE_RATING


class LedgerIntegrityError(RuntimeError):
    """The game history does not fit the ledger (unknown user, repeated player)."""


@dataclass(frozen=True)
class LedgerEntry:
    """Read-only copy of one ledger row."""
    user_id: int
    rating: float
    games_played: int
    wins: int
    losses: int

    @classmethod
    def from_row(cls, row: RatingEntry) -> "LedgerEntry":
        return cls(
            user_id=row.user_id,
            rating=row.rating,
            games_played=row.games_played,
            wins=row.wins,
            losses=row.losses,
        )


@dataclass(frozen=True)
class LeaderboardRow:
    """A ledger entry joined with the user's display names."""
    user_id: int
    handle: str
    first_name: str
    last_name: str
    rating: float
    games_played: int
    wins: int
    losses: int


# ---------------------------------------------------------------------------
# Engine side: only called inside the recompute transaction
# ---------------------------------------------------------------------------

def reset_ledger(session: Session, baseline: float = BASELINE_RATING) -> int:
    """
    Drop every ledger row and give every known user a fresh baseline entry.

    Returns:
        Number of users initialized.
    """
    session.execute(delete(RatingEntry))
    baseline_rows = select(
        User.id,
        literal(float(baseline), Float),
        literal(0, Integer),
        literal(0, Integer),
        literal(0, Integer),
    )
    session.execute(
        insert(RatingEntry.__table__).from_select(
            ["user_id", "rating", "games_played", "wins", "losses"],
            baseline_rows,
        )
    )
    # Bulk statements bypass the identity map
    session.expire_all()
    return session.scalar(select(func.count()).select_from(RatingEntry)) or 0


def get_rating_entry(session: Session, user_id: int) -> RatingEntry:
    """Ledger row for `user_id`. Every user in a replayed game must have one."""
    entry = session.get(RatingEntry, user_id)
    if entry is None:
        raise LedgerIntegrityError(f"No ledger entry for user {user_id}")
    return entry


def apply_ledger_delta(
    session: Session,
    user_id: int,
    rating_delta: float,
    *,
    increment_games: bool = True,
    won: bool = False,
    lost: bool = False,
) -> RatingEntry:
    """Add `rating_delta` to a user's rating and bump their counters."""
    entry = get_rating_entry(session, user_id)
    entry.rating += rating_delta
    if increment_games:
        entry.games_played += 1
    if won:
        entry.wins += 1
    if lost:
        entry.losses += 1
    return entry


# ---------------------------------------------------------------------------
# Reader side: committed snapshots only
# ---------------------------------------------------------------------------

def read_ledger_snapshot(session: Session) -> dict[int, LedgerEntry]:
    """Every ledger entry, keyed by user ID."""
    rows = session.scalars(select(RatingEntry).order_by(RatingEntry.user_id))
    return {row.user_id: LedgerEntry.from_row(row) for row in rows}


def read_ledger_entry(session: Session, user_id: int) -> LedgerEntry | None:
    row = session.get(RatingEntry, user_id)
    if row is None:
        return None
    return LedgerEntry.from_row(row)


def read_leaderboard(session: Session) -> list[LeaderboardRow]:
    """Users with a ledger entry, best rating first."""
    stmt = (
        select(
            User.id,
            User.handle,
            User.first_name,
            User.last_name,
            RatingEntry.rating,
            RatingEntry.games_played,
            RatingEntry.wins,
            RatingEntry.losses,
        )
        .join(RatingEntry, RatingEntry.user_id == User.id)
        .order_by(RatingEntry.rating.desc(), User.handle)
    )
    return [
        LeaderboardRow(
            user_id=row.id,
            handle=row.handle,
            first_name=row.first_name,
            last_name=row.last_name,
            rating=row.rating,
            games_played=row.games_played,
            wins=row.wins,
            losses=row.losses,
        )
        for row in session.execute(stmt)
    ]
