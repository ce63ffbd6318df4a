"""
Game recording and streaming.

- recording: Register players, store games and sign-offs (validated)
- stream: GameStream, the lazy cancellable scan over the game history
- records: Detached GameRecord / Team / PlayerRef values the stream yields
"""

from foosrank.games.records import GameRecord, PlayerRef, Team
from foosrank.games.recording import (
    InvalidGameError,
    find_player,
    record_game,
    register_player,
    sign_off_game,
)
from foosrank.games.stream import GameStream, GameStreamError

__all__ = [
    "GameRecord",
    "PlayerRef",
    "Team",
    "InvalidGameError",
    "find_player",
    "record_game",
    "register_player",
    "sign_off_game",
    "GameStream",
    "GameStreamError",
]
