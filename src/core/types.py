"""
Type definitions shared by the rules adapter, rooms and the server layer.
"""

from __future__ import annotations

from enum import Enum


class Color(str, Enum):
    WHITE = "white"
    BLACK = "black"

    @property
    def short(self) -> str:
        """Single-letter role sent to clients ("w" / "b")."""
        return self.value[0]

    @property
    def opposite(self) -> "Color":
        return Color.BLACK if self is Color.WHITE else Color.WHITE


class RoomStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    OVER = "over"


class Skill(str, Enum):
    """Bot skill level, also used to pick the fallback heuristic."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: str | None) -> "Skill":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.MEDIUM


# Time-control label -> seconds per side
TIME_CONTROLS = {
    "1min": 60,
    "3min": 180,
    "5min": 300,
    "10min": 600,
    "30min": 1800,
}
DEFAULT_TIME_CONTROL = "5min"


def normalize_time_control(label: str | None) -> str:
    """Return a known time-control label, falling back to the default."""
    if label in TIME_CONTROLS:
        return label
    return DEFAULT_TIME_CONTROL
