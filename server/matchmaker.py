"""
Matchmaking: seat join requests into rooms.

Anonymous requests are paired strictly on time-control equality, first come
first served. Requests carrying a room code go straight to that room.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from src.core.exceptions import RoomFullError
from src.core.room import BOT_CONNECTION_ID, PlayerSlot, Room
from src.core.types import Color, Skill, normalize_time_control

from server.registry import RoomRegistry

logger = logging.getLogger(__name__)


@dataclass
class PendingEntry:
    connection_id: str
    name: str
    time_control: str
    room_code: str


@dataclass(frozen=True)
class JoinResult:
    room: Room
    slot: PlayerSlot
    created: bool

    @property
    def role(self) -> Color:
        return self.slot.color


class Matchmaker:
    """Pairs join requests and keeps the list of players waiting for an opponent."""

    def __init__(self, registry: RoomRegistry):
        self._registry = registry
        self._pending: List[PendingEntry] = []

    @property
    def pending(self) -> List[PendingEntry]:
        return list(self._pending)

    def join_or_create(
        self,
        connection_id: str,
        name: str,
        time_control: Optional[str],
        room_code: Optional[str] = None,
    ) -> JoinResult:
        """
        Seat a player.

        Args:
            connection_id: Connection issuing the request.
            name: Display name.
            time_control: Requested time-control label.
            room_code: Explicit room to join, if any.

        Raises:
            RoomNotFoundError: ``room_code`` is not in the room table.
            RoomFullError: ``room_code`` already has two players.
        """
        if room_code:
            room = self._registry.require(room_code)
            if room.is_full:
                raise RoomFullError(f"Room {room_code} is full")
            slot = room.seat(connection_id, name)
            self._registry.bind(connection_id, room.code)
            self._drop_entries_for_room(room.code)
            logger.info(f"{name} joined room {room.code} by code as {slot.color.value}")
            return JoinResult(room=room, slot=slot, created=False)

        label = normalize_time_control(time_control)
        entry = self._take_waiting(label)
        if entry is not None:
            room = self._registry.require(entry.room_code)
            slot = room.seat(connection_id, name)
            self._registry.bind(connection_id, room.code)
            logger.info(f"Paired {name} with {entry.name} in room {room.code} ({label})")
            return JoinResult(room=room, slot=slot, created=False)

        room = self._registry.create_room(label)
        slot = room.seat(connection_id, name)
        self._registry.bind(connection_id, room.code)
        self._pending.append(
            PendingEntry(connection_id=connection_id, name=name, time_control=label, room_code=room.code)
        )
        logger.info(f"{name} is waiting in new room {room.code} ({label})")
        return JoinResult(room=room, slot=slot, created=True)

    def create_bot_room(
        self,
        connection_id: str,
        name: str,
        time_control: Optional[str],
        skill: Skill,
        bot_name: str,
    ) -> JoinResult:
        """Create a fresh room with the human as white and the bot as black."""
        room = self._registry.create_room(time_control, skill=skill)
        slot = room.seat(connection_id, name)
        room.seat(BOT_CONNECTION_ID, bot_name)
        self._registry.bind(connection_id, room.code)
        logger.info(f"Created bot room {room.code} for {name} (skill={skill.value})")
        return JoinResult(room=room, slot=slot, created=True)

    def cancel(self, connection_id: str) -> Optional[PendingEntry]:
        """Remove the waiting entry owned by ``connection_id``, if any."""
        for i, entry in enumerate(self._pending):
            if entry.connection_id == connection_id:
                return self._pending.pop(i)
        return None

    def _take_waiting(self, time_control: str) -> Optional[PendingEntry]:
        for i, entry in enumerate(self._pending):
            if entry.time_control != time_control:
                continue
            room = self._registry.get(entry.room_code)
            if room is None or room.is_full or room.game_over:
                continue
            return self._pending.pop(i)
        return None

    def _drop_entries_for_room(self, room_code: str) -> None:
        self._pending = [e for e in self._pending if e.room_code != room_code]
