from __future__ import annotations

import uuid
from typing import Dict, List, Optional

from src.core.exceptions import RoomNotFoundError
from src.core.room import Room
from src.core.types import Skill


class RoomRegistry:
    """In-memory table of live rooms, keyed by room code.

    Also indexes which room each connection is seated in so inbound moves
    and disconnects can be routed without scanning every room.
    """

    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self._by_connection: Dict[str, str] = {}

    def new_code(self) -> str:
        code = uuid.uuid4().hex[:6].upper()
        while code in self._rooms:
            code = uuid.uuid4().hex[:6].upper()
        return code

    def create_room(self, time_control: Optional[str], skill: Optional[Skill] = None) -> Room:
        room = Room.create(self.new_code(), time_control, skill=skill)
        self._rooms[room.code] = room
        return room

    def get(self, code: Optional[str]) -> Optional[Room]:
        if code is None:
            return None
        return self._rooms.get(code)

    def require(self, code: str) -> Room:
        room = self._rooms.get(code)
        if room is None:
            raise RoomNotFoundError(f"Room {code} not found")
        return room

    def bind(self, connection_id: str, code: str) -> None:
        self._by_connection[connection_id] = code

    def room_for(self, connection_id: str) -> Optional[Room]:
        return self.get(self._by_connection.get(connection_id))

    def remove(self, code: str) -> Optional[Room]:
        room = self._rooms.pop(code, None)
        if room is None:
            return None
        for slot in room.players:
            if self._by_connection.get(slot.connection_id) == code:
                del self._by_connection[slot.connection_id]
        return room

    def rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def __contains__(self, code: object) -> bool:
        return code in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
