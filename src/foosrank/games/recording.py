"""
Recording players, games and sign-offs.

This is the write path used by the surrounding application (registration
forms, the "add game" screen). It is the place where a game's shape is
validated: the rating replay assumes every stored game has four distinct
players and non-negative scores, and treats anything else as corrupt data.

Usage:
    with store.session() as session:
        anna = register_player(session, "anna", "Anna", "Berg")
        ...
        game = record_game(
            session,
            team_a=(anna.id, ben.id),
            team_b=(cleo.id, dan.id),
            score=(10, 7),
            reported_by=anna.id,
        )
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from foosrank.db.models import Game, SignOff, User, utc_now

logger = logging.getLogger(__name__)


class InvalidGameError(ValueError):
    """A game was rejected before it reached the database."""


def register_player(
    session: Session,
    handle: str,
    first_name: str,
    last_name: str,
) -> User:
    """
    Create a player.

    Raises:
        ValueError: If the handle is shorter than two characters, a name is
                    empty, or the handle is already taken.
    """
    handle = handle.strip()
    if len(handle) < 2:
        raise ValueError(f"Handle must be at least 2 characters, got '{handle}'")
    if not first_name.strip() or not last_name.strip():
        raise ValueError("First and last name are required")

    existing = session.scalar(select(User).where(User.handle == handle))
    if existing is not None:
        raise ValueError(f"Handle already registered: {handle}")

    user = User(handle=handle, first_name=first_name.strip(), last_name=last_name.strip())
    session.add(user)
    session.flush()
    logger.info("Registered player %s (id=%d)", handle, user.id)
    return user


def find_player(session: Session, handle: str) -> Optional[User]:
    return session.scalar(select(User).where(User.handle == handle))


def validate_game(
    team_a: tuple[int, int],
    team_b: tuple[int, int],
    score: tuple[int, int],
) -> None:
    """
    Check a game's shape.

    Raises:
        InvalidGameError: If players repeat or a score is negative
    """
    players = (*team_a, *team_b)
    if len(players) != 4:
        raise InvalidGameError("Each team needs exactly two players")
    if len(set(players)) != 4:
        raise InvalidGameError(f"A game needs four different players, got {players}")
    if len(score) != 2:
        raise InvalidGameError("A game needs exactly two scores")
    if any(s < 0 for s in score):
        raise InvalidGameError(f"Scores cannot be negative, got {score}")


def record_game(
    session: Session,
    team_a: tuple[int, int],
    team_b: tuple[int, int],
    score: tuple[int, int],
    *,
    played_at: Optional[datetime] = None,
    reported_by: Optional[int] = None,
) -> Game:
    """
    Store a new game.

    Args:
        session: Active session. Caller commits.
        team_a: (front, back) user IDs of team 0
        team_b: (front, back) user IDs of team 1
        score: (team 0 score, team 1 score)
        played_at: Timestamp used for ordering. Defaults to now; pass an
                   earlier time to back-date a game. The next recompute
                   replays it in its chronological place.
        reported_by: User ID of the reporter, who signs the game off

    Raises:
        InvalidGameError: If the game shape is invalid or a player is unknown
    """
    validate_game(team_a, team_b, score)

    player_ids = (*team_a, *team_b)
    known = set(session.scalars(select(User.id).where(User.id.in_(player_ids))))
    missing = [pid for pid in player_ids if pid not in known]
    if missing:
        raise InvalidGameError(f"Unknown players: {missing}")

    game = Game(
        front1_id=team_a[0],
        back1_id=team_a[1],
        front2_id=team_b[0],
        back2_id=team_b[1],
        score1=score[0],
        score2=score[1],
        created_at=played_at or utc_now(),
    )
    session.add(game)
    session.flush()

    if reported_by is not None:
        sign_off_game(session, reported_by, game.id)

    logger.info(
        "Recorded game %d: %s vs %s, %d-%d",
        game.id,
        team_a,
        team_b,
        score[0],
        score[1],
    )
    return game


def sign_off_game(session: Session, user_id: int, game_id: int) -> SignOff:
    """Mark that `user_id` confirms the result of `game_id`. Idempotent."""
    existing = session.scalar(
        select(SignOff).where(SignOff.user_id == user_id, SignOff.game_id == game_id)
    )
    if existing is not None:
        return existing

    if session.get(Game, game_id) is None:
        raise InvalidGameError(f"Unknown game: {game_id}")

    signoff = SignOff(user_id=user_id, game_id=game_id)
    session.add(signoff)
    session.flush()
    return signoff
