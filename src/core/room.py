"""
Room aggregate: position, player slots, remaining time and lifecycle flag.

A room never talks to the network. The session coordinator is its only
mutator; everything here is synchronous and side-effect free apart from the
room's own fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import chess

from src.core import rules
from src.core.exceptions import ChessArenaError, RoomFullError
from src.core.types import TIME_CONTROLS, Color, RoomStatus, Skill, normalize_time_control

BOT_CONNECTION_ID = "bot"
MAX_PLAYERS = 2


def format_clock(seconds: int) -> str:
    """Format remaining seconds as zero-padded mm:ss."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


@dataclass
class PlayerSlot:
    connection_id: str
    name: str
    color: Color

    @property
    def is_bot(self) -> bool:
        return self.connection_id == BOT_CONNECTION_ID


@dataclass
class Room:
    """A single game room.

    Attributes:
        code: Unique room code, key in the room table.
        time_control: Normalized time-control label (e.g. "5min").
        board: Authoritative position.
        players: Occupied slots in seating order (white first).
        remaining: Remaining seconds per color.
        game_over: Terminal flag; once set nothing else changes.
        skill: Bot skill when this is a bot room, otherwise None.
        clock: Handle on the running clock (owned by the server layer).
    """

    code: str
    time_control: str
    board: chess.Board = field(default_factory=rules.new_position)
    players: List[PlayerSlot] = field(default_factory=list)
    remaining: Dict[Color, int] = field(default_factory=dict)
    game_over: bool = False
    skill: Optional[Skill] = None
    clock: Optional[Any] = None

    @classmethod
    def create(cls, code: str, time_control: Optional[str], skill: Optional[Skill] = None) -> "Room":
        label = normalize_time_control(time_control)
        seconds = TIME_CONTROLS[label]
        return cls(
            code=code,
            time_control=label,
            remaining={Color.WHITE: seconds, Color.BLACK: seconds},
            skill=skill,
        )

    # ---- Slots ----
    @property
    def is_bot(self) -> bool:
        return self.skill is not None

    @property
    def is_full(self) -> bool:
        return len(self.players) >= MAX_PLAYERS

    @property
    def status(self) -> RoomStatus:
        if self.game_over:
            return RoomStatus.OVER
        if self.is_full:
            return RoomStatus.ACTIVE
        return RoomStatus.WAITING

    def free_color(self) -> Optional[Color]:
        taken = {p.color for p in self.players}
        for color in (Color.WHITE, Color.BLACK):
            if color not in taken:
                return color
        return None

    def seat(self, connection_id: str, name: str) -> PlayerSlot:
        """Seat a player on the first free color (white, then black)."""
        if self.game_over:
            raise ChessArenaError(f"Room {self.code} is over")
        color = self.free_color()
        if self.is_full or color is None:
            raise RoomFullError(f"Room {self.code} is full")
        slot = PlayerSlot(connection_id=connection_id, name=name, color=color)
        self.players.append(slot)
        return slot

    def slot_for(self, connection_id: str) -> Optional[PlayerSlot]:
        return next((p for p in self.players if p.connection_id == connection_id), None)

    def slot_by_color(self, color: Color) -> Optional[PlayerSlot]:
        return next((p for p in self.players if p.color is color), None)

    def human_connections(self) -> List[str]:
        return [p.connection_id for p in self.players if not p.is_bot]

    # ---- Position ----
    @property
    def turn(self) -> Color:
        return rules.turn_to_move(self.board)

    @property
    def fen(self) -> str:
        return rules.serialize(self.board)

    def is_bot_turn(self) -> bool:
        if not self.is_bot or self.game_over:
            return False
        slot = self.slot_by_color(self.turn)
        return slot is not None and slot.is_bot

    def set_position(self, board: chess.Board) -> None:
        if self.game_over:
            raise ChessArenaError(f"Room {self.code} is over")
        self.board = board

    # ---- Clock state ----
    def consume_second(self, color: Color) -> int:
        """Take one second off ``color`` and return what is left (clamped at 0)."""
        if self.game_over:
            return self.remaining[color]
        self.remaining[color] = max(0, self.remaining[color] - 1)
        return self.remaining[color]

    def finish(self) -> bool:
        """Mark the room over. Returns False if it already was."""
        if self.game_over:
            return False
        self.game_over = True
        return True

    # ---- Payloads ----
    def player_info(self) -> Dict[str, Optional[Dict[str, str]]]:
        info: Dict[str, Optional[Dict[str, str]]] = {}
        for color in (Color.WHITE, Color.BLACK):
            slot = self.slot_by_color(color)
            info[color.value] = {"name": slot.name} if slot else None
        return info

    def timer_payload(self) -> Dict[str, str]:
        return {
            Color.WHITE.value: format_clock(self.remaining[Color.WHITE]),
            Color.BLACK.value: format_clock(self.remaining[Color.BLACK]),
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "room_code": self.code,
            "status": self.status.value,
            "time_control": self.time_control,
            "position": self.fen,
            "turn": self.turn.value,
            "players": self.player_info(),
            "remaining": {c.value: s for c, s in self.remaining.items()},
            "bot_skill": self.skill.value if self.skill else None,
        }
