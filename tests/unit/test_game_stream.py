"""Tests for the cancellable game stream and the recent games listing."""

import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from foosrank.games.stream import GameStream, GameStreamError


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_ascending_stream_yields_every_game_oldest_first(store, players, add_game):
    ids = [
        add_game(("anna", "ben"), ("cleo", "dan"), (10, 5), minute=30),
        add_game(("anna", "cleo"), ("ben", "dan"), (10, 8), minute=10),
        add_game(("eva", "finn"), ("anna", "ben"), (10, 4), minute=20),
    ]

    with store.stream_games(ascending=True) as stream:
        games = list(stream)

    assert [g.id for g in games] == [ids[1], ids[2], ids[0]]
    assert [g.created_at for g in games] == sorted(g.created_at for g in games)


def test_descending_stream_is_newest_first(store, players, add_game):
    for minute in (5, 1, 9, 3):
        add_game(("anna", "ben"), ("cleo", "dan"), (10, minute), minute=minute)

    with store.stream_games(ascending=False) as stream:
        minutes = [g.score[1] for g in stream]

    assert minutes == [9, 5, 3, 1]


def test_stream_records_are_fully_joined(store, players, add_game):
    add_game(("anna", "ben"), ("cleo", "dan"), (10, 7))

    with store.stream_games() as stream:
        (game,) = list(stream)

    first, second = game.teams
    assert (first.front.handle, first.back.handle) == ("anna", "ben")
    assert (second.front.handle, second.back.handle) == ("cleo", "dan")
    assert first.front.first_name == "Anna"
    assert second.back.last_name == "Tester"
    assert game.score == (10, 7)
    assert game.participant_ids == tuple(players[h] for h in ("anna", "ben", "cleo", "dan"))
    assert not game.is_draw


def test_empty_history_ends_immediately(store, players):
    with store.stream_games() as stream:
        assert list(stream) == []
        assert next(stream, None) is None


def test_exhausted_stream_stays_exhausted(store, players, add_game):
    add_game(("anna", "ben"), ("cleo", "dan"), (10, 7))

    stream = store.stream_games()
    assert len(list(stream)) == 1
    with pytest.raises(StopIteration):
        next(stream)
    stream.close()


def test_cancel_stops_delivery_and_producer(store, players, add_game):
    for _ in range(12):
        add_game(("anna", "ben"), ("cleo", "dan"), (10, 2))

    stream = store.stream_games(buffer_size=2)
    first = next(stream)
    assert first is not None
    assert stream.active

    stream.cancel()

    assert stream.cancelled
    assert list(stream) == []
    assert _wait_until(lambda: not stream.active)


def test_close_joins_producer(store, players, add_game):
    for _ in range(8):
        add_game(("anna", "ben"), ("cleo", "dan"), (10, 2))

    with store.stream_games(buffer_size=1) as stream:
        next(stream)

    assert stream.cancelled
    assert not stream.active


def test_unstarted_stream_never_opens_a_session():
    opened = []

    def factory():
        opened.append(True)
        raise AssertionError("session should not be opened")

    stream = GameStream(factory)
    stream.close()

    assert opened == []
    assert not stream.active


def test_scan_failure_raises_stream_error():
    # An empty database: the games table does not exist
    engine = create_engine("sqlite://")
    stream = GameStream(sessionmaker(bind=engine))

    with pytest.raises(GameStreamError) as excinfo:
        next(stream)

    assert excinfo.value.__cause__ is not None
    stream.close()
    engine.dispose()


def test_buffer_size_must_be_positive():
    with pytest.raises(ValueError):
        GameStream(lambda: None, buffer_size=0)


def test_recent_games_newest_first_and_limited(store, players, add_game):
    ids = [add_game(("anna", "ben"), ("cleo", "dan"), (10, i % 10)) for i in range(10)]

    recent = store.recent_games(limit=3)

    assert [g.id for g in recent] == list(reversed(ids))[:3]


def test_recent_games_with_short_history(store, players, add_game):
    ids = [add_game(("anna", "ben"), ("cleo", "dan"), (10, 1)) for _ in range(2)]

    assert [g.id for g in store.recent_games(limit=25)] == list(reversed(ids))
    assert store.recent_games(limit=0) == []


def test_stream_bounded_by_max_game_id(store, players, add_game):
    ids = [add_game(("anna", "ben"), ("cleo", "dan"), (10, i)) for i in range(4)]

    with store.stream_games(max_game_id=ids[1]) as stream:
        assert [g.id for g in stream] == ids[:2]

    with store.stream_games(max_game_id=0) as stream:
        assert list(stream) == []


def test_explicit_zero_buffer_is_rejected(store):
    with pytest.raises(ValueError):
        store.stream_games(buffer_size=0)
