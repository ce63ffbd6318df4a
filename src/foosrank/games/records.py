"""
Detached game records handed out by the game stream.

Stream rows are read on a producer thread with its own session, so the
consumer receives plain frozen dataclasses instead of ORM objects that
would be bound to a session it does not own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, aliased

from foosrank.db.models import Game, User

# Column prefixes for the four joined players, in participant order
PLAYER_SLOTS = ("front1", "back1", "front2", "back2")


@dataclass(frozen=True)
class PlayerRef:
    """A player as seen from a game: identity plus display names."""
    id: int
    handle: str
    first_name: str
    last_name: str


@dataclass(frozen=True)
class Team:
    """Two players. Positions matter for display only."""
    front: PlayerRef
    back: PlayerRef


@dataclass(frozen=True)
class GameRecord:
    """A fully joined game: both teams resolved, scores attached."""
    id: int
    teams: tuple[Team, Team]
    score: tuple[int, int]
    created_at: datetime

    @property
    def participant_ids(self) -> tuple[int, int, int, int]:
        """Player IDs as (team 0 front, team 0 back, team 1 front, team 1 back)."""
        first, second = self.teams
        return (first.front.id, first.back.id, second.front.id, second.back.id)

    @property
    def is_draw(self) -> bool:
        return self.score[0] == self.score[1]


def latest_game_id(session: Session) -> int:
    """Highest stored game ID, or 0 when there are no games yet."""
    return session.scalar(select(func.max(Game.id))) or 0


def build_game_query(ascending: bool = True, max_game_id: Optional[int] = None) -> Select:
    """
    Select every game with its four players joined, ordered by creation time.

    The id tie-break keeps the order deterministic for games stored with
    the same timestamp. With `max_game_id`, games stored after that ID
    are left out.
    """
    columns = [Game.id, Game.score1, Game.score2, Game.created_at]
    joins = []
    for slot in PLAYER_SLOTS:
        player = aliased(User, name=slot)
        columns.extend([
            player.id.label(f"{slot}_id"),
            player.handle.label(f"{slot}_handle"),
            player.first_name.label(f"{slot}_first_name"),
            player.last_name.label(f"{slot}_last_name"),
        ])
        joins.append((player, getattr(Game, f"{slot}_id") == player.id))

    stmt = select(*columns).select_from(Game)
    for player, on_clause in joins:
        stmt = stmt.join(player, on_clause)
    if max_game_id is not None:
        stmt = stmt.where(Game.id <= max_game_id)

    if ascending:
        return stmt.order_by(Game.created_at.asc(), Game.id.asc())
    return stmt.order_by(Game.created_at.desc(), Game.id.desc())


def _player_from_row(row, slot: str) -> PlayerRef:
    mapping = row._mapping
    return PlayerRef(
        id=mapping[f"{slot}_id"],
        handle=mapping[f"{slot}_handle"],
        first_name=mapping[f"{slot}_first_name"],
        last_name=mapping[f"{slot}_last_name"],
    )


def game_from_row(row) -> GameRecord:
    """Convert one row of build_game_query() into a GameRecord."""
    front1, back1, front2, back2 = (_player_from_row(row, slot) for slot in PLAYER_SLOTS)
    return GameRecord(
        id=row.id,
        teams=(Team(front=front1, back=back1), Team(front=front2, back=back2)),
        score=(row.score1, row.score2),
        created_at=row.created_at,
    )
