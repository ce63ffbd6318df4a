"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import datetime, timedelta

import pytest

from foosrank.db.store import GameStore
from foosrank.games.recording import record_game, register_player

PLAYER_HANDLES = ("anna", "ben", "cleo", "dan", "eva", "finn")

# Fixed clock for recorded games so replay order never depends on wall time
GAME_EPOCH = datetime(2026, 1, 5, 12, 0, 0)


@pytest.fixture
def store(tmp_path):
    """
    A GameStore on a fresh SQLite file.

    A file (not :memory:) so the stream producer thread and the recompute
    transaction use separate connections to the same database, exactly
    as in production.
    """
    store = GameStore.from_url(
        f"sqlite:///{tmp_path / 'foosrank.db'}",
        stream_buffer_size=2,
    )
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture
def players(store):
    """Six registered players, as a handle -> user ID mapping."""
    with store.session() as session:
        ids = {
            handle: register_player(session, handle, handle.title(), "Tester").id
            for handle in PLAYER_HANDLES
        }
    return ids


@pytest.fixture
def add_game(store, players):
    """
    Record a game by handles.

    Games get increasing timestamps one minute apart unless `minute` is
    given, which places the game at GAME_EPOCH + minute.
    """
    counter = {"minute": 0}

    def _add(team_a, team_b, score, minute=None):
        if minute is None:
            counter["minute"] += 1
            minute = counter["minute"]
        with store.session() as session:
            game = record_game(
                session,
                team_a=(players[team_a[0]], players[team_a[1]]),
                team_b=(players[team_b[0]], players[team_b[1]]),
                score=score,
                played_at=GAME_EPOCH + timedelta(minutes=minute),
            )
            return game.id

    return _add
