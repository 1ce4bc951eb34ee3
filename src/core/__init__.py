"""
Core domain layer for the chess arena.

Exposes the rules adapter, the room aggregate and the bot agents.
"""

from src.core import rules
from src.core.room import BOT_CONNECTION_ID, PlayerSlot, Room, format_clock
from src.core.rules import MoveRequest
from src.core.types import Color, RoomStatus, Skill, TIME_CONTROLS
from src.core.agents import HeuristicAgent, LLMMoveSuggester, MoveSuggester

__all__ = [
    "rules",
    "BOT_CONNECTION_ID",
    "PlayerSlot",
    "Room",
    "format_clock",
    "MoveRequest",
    "Color",
    "RoomStatus",
    "Skill",
    "TIME_CONTROLS",
    "HeuristicAgent",
    "LLMMoveSuggester",
    "MoveSuggester",
]
