from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as PayloadValidationError

from src.core import rules
from src.core.agents import MoveSuggester, bot_display_name, build_suggester
from src.core.exceptions import InvalidMoveError, RoomFullError, RoomNotFoundError
from src.core.room import Room
from src.core.rules import MoveRequest
from src.core.types import Color, RoomStatus, Skill
from src.services import GameLogger
from src.settings import LLMSettings, ServerSettings, get_server_settings

from server.bot import BotOrchestrator
from server.clock import GameClock
from server.connections import ConnectionManager
from server.matchmaker import JoinResult, Matchmaker
from server.registry import RoomRegistry
from server.schemas import CreateBotGameMessage, JoinMessage, MoveMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoveOutcome:
    accepted: bool
    reason: Optional[str] = None


class SessionCoordinator:
    """Owns the room table and is the only component that mutates rooms.

    Responsibilities:
    - Route inbound messages (join, createBotGame, move) and disconnects
    - Start, retarget and stop room clocks
    - Broadcast room events to the room's members
    - Schedule bot turns after human moves

    Every public method runs to completion without awaiting, so on a single
    event loop two actions can never interleave inside one room.
    """

    def __init__(
        self,
        settings: Optional[ServerSettings] = None,
        suggester: Optional[MoveSuggester] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or get_server_settings()
        self.registry = RoomRegistry()
        self.matchmaker = Matchmaker(self.registry)
        self.connections = ConnectionManager()
        self.event_log = GameLogger(self.settings.event_log_path)
        self.bot = BotOrchestrator(
            self,
            suggester=suggester,
            delay_scale=self.settings.bot_delay_scale,
            rng=rng,
        )
        self._handlers: Dict[str, Callable[[str, Dict[str, Any]], Any]] = {
            "join": self._on_join,
            "player-join": self._on_join,
            "createBotGame": self._on_create_bot_game,
            "create-bot-game": self._on_create_bot_game,
            "move": self._on_move,
            "movePiece": self._on_move,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Optional[ServerSettings] = None,
        llm_settings: Optional[LLMSettings] = None,
    ) -> "SessionCoordinator":
        return cls(settings=settings, suggester=build_suggester(llm_settings))

    @property
    def suggestion_enabled(self) -> bool:
        return self.bot.suggester is not None

    # ---- Connections ----
    def connect(self) -> Tuple[str, asyncio.Queue]:
        connection_id, queue = self.connections.register()
        logger.info(f"Player connected: {connection_id}")
        return connection_id, queue

    def handle_message(self, connection_id: str, data: Any) -> None:
        """Dispatch one inbound message. Failures stay inside this call."""
        msg_type = data.get("type") if isinstance(data, dict) else None
        handler = self._handlers.get(msg_type)
        if handler is None:
            logger.warning(f"Ignoring unknown message type {msg_type!r} from {connection_id}")
            return
        try:
            handler(connection_id, data)
        except PayloadValidationError as e:
            logger.warning(f"Malformed {msg_type} message from {connection_id}: {e}")
        except Exception:
            logger.exception(f"Error handling {msg_type} from {connection_id}")

    def _on_join(self, connection_id: str, data: Dict[str, Any]) -> None:
        msg = JoinMessage.model_validate(data)
        self.join(connection_id, msg.name, msg.time_limit, msg.room_code)

    def _on_create_bot_game(self, connection_id: str, data: Dict[str, Any]) -> None:
        msg = CreateBotGameMessage.model_validate(data)
        self.create_bot_game(connection_id, msg.name, msg.time_limit, msg.skill)

    def _on_move(self, connection_id: str, data: Dict[str, Any]) -> None:
        try:
            msg = MoveMessage.model_validate(data)
        except PayloadValidationError as e:
            logger.warning(f"Malformed move from {connection_id}: {e}")
            # Same signal as an illegal move, as long as there is a game to reject it from
            if self.registry.room_for(connection_id) is not None:
                self._reject(connection_id, "invalid_move")
            return
        self.move(connection_id, MoveRequest(msg.from_square, msg.to_square, msg.promotion))

    # ---- Joining ----
    def join(
        self,
        connection_id: str,
        name: str,
        time_limit: Optional[str],
        room_code: Optional[str] = None,
    ) -> Optional[JoinResult]:
        """Seat a connection through the matchmaker and announce the result."""
        if self.registry.room_for(connection_id) is not None:
            logger.warning(f"{connection_id} is already seated; ignoring join")
            return None

        try:
            result = self.matchmaker.join_or_create(connection_id, name, time_limit, room_code)
        except RoomNotFoundError:
            self.connections.send(connection_id, {"type": "roomNotFound"})
            return None
        except RoomFullError:
            self.connections.send(connection_id, {"type": "roomFull"})
            return None

        room = result.room
        self.connections.send(connection_id, {"type": "roleAssigned", "role": result.role.short})
        if result.created:
            self.connections.send(connection_id, {"type": "roomCreated", "roomCode": room.code})
            self._send_room_state(room, [connection_id])
            self.event_log.log_event(
                "room_created", room.code, player=name, color=result.role.value, time_control=room.time_control
            )
            return result

        self.connections.send(connection_id, {"type": "roomJoined", "roomCode": room.code})
        self._send_room_state(room, room.human_connections())
        self.event_log.log_event("player_joined", room.code, player=name, color=result.role.value)
        self._start_clock(room)
        return result

    def create_bot_game(
        self,
        connection_id: str,
        name: str,
        time_limit: Optional[str],
        skill: Skill,
    ) -> Optional[JoinResult]:
        """Create a room against the bot; the clock starts right away."""
        if self.registry.room_for(connection_id) is not None:
            logger.warning(f"{connection_id} is already seated; ignoring bot game request")
            return None

        bot_name = bot_display_name(skill, self.suggestion_enabled)
        result = self.matchmaker.create_bot_room(connection_id, name, time_limit, skill, bot_name)
        room = result.room
        self.connections.send(connection_id, {"type": "roleAssigned", "role": result.role.short})
        self.connections.send(connection_id, {"type": "roomCreated", "roomCode": room.code})
        self._send_room_state(room, [connection_id])
        self.event_log.log_event(
            "room_created", room.code, player=name, bot=bot_name, skill=skill.value, time_control=room.time_control
        )
        self._start_clock(room)
        return result

    # ---- Moves ----
    def move(self, connection_id: str, request: MoveRequest) -> MoveOutcome:
        """Apply a move for whatever room the connection is seated in."""
        room = self.registry.room_for(connection_id)
        if room is None:
            # Room already torn down (or never joined); nothing to tell anyone
            return MoveOutcome(False, "room_not_found")
        return self.apply_move(room.code, connection_id, request)

    def apply_move(self, room_code: str, connection_id: str, request: MoveRequest) -> MoveOutcome:
        """
        Validate and apply a move, then broadcast and settle the room.

        Wrong turn, inactive room and illegal moves are all reported to the
        mover as the same ``invalidMove`` event.
        """
        room = self.registry.get(room_code)
        if room is None:
            return MoveOutcome(False, "room_not_found")
        if room.status is not RoomStatus.ACTIVE:
            return self._reject(connection_id, "room_not_active")

        slot = room.slot_for(connection_id)
        if slot is None or slot.color is not room.turn:
            return self._reject(connection_id, "not_your_turn")

        try:
            after = rules.apply_move(room.board, request)
        except InvalidMoveError as e:
            logger.debug(f"Rejected move in room {room_code}: {e}")
            return self._reject(connection_id, "invalid_move")

        room.set_position(after)
        logger.info(f"{slot.name} played {request.uci} in room {room_code}")
        self.event_log.log_event("move", room_code, player=slot.name, color=slot.color.value, move=request.uci, fen=room.fen)
        self.broadcast_room(room, {"type": "boardState", "position": room.fen})

        if rules.is_game_over(room.board):
            result = rules.result_message(room.board)
            self._end_room(room, {"type": "gameOver", "result": result}, "game_over", result=result)
            if room.is_bot:
                self.bot.schedule_analysis(room_code, room.fen)
            return MoveOutcome(True)

        if room.clock is not None:
            room.clock.retarget()
        if room.is_bot_turn():
            self.bot.schedule(room_code)
        return MoveOutcome(True)

    def _reject(self, connection_id: str, reason: str) -> MoveOutcome:
        self.connections.send(connection_id, {"type": "invalidMove"})
        return MoveOutcome(False, reason)

    # ---- Teardown ----
    def disconnect(self, connection_id: str) -> None:
        """Tear down whatever the connection was part of. Disconnects are always room-fatal."""
        logger.info(f"Player disconnected: {connection_id}")
        self.connections.unregister(connection_id)

        entry = self.matchmaker.cancel(connection_id)
        if entry is not None:
            room = self.registry.get(entry.room_code)
            if room is not None and len(room.players) <= 1:
                self._end_room(room, None, "room_abandoned", player=entry.name)
                return

        room = self.registry.room_for(connection_id)
        if room is None:
            return
        leaving = room.slot_for(connection_id)
        name = leaving.name if leaving else None
        others = [c for c in room.human_connections() if c != connection_id]
        self.connections.broadcast(others, {"type": "playerLeft", "name": name})
        self._end_room(room, None, "player_left", player=name)

    def expire(self, room: Room, color: Color) -> None:
        """Called by a room's clock when ``color`` runs out of time."""
        winner = color.opposite
        logger.info(f"Room {room.code}: {color.value} ran out of time, {winner.value} wins")
        self._end_room(room, {"type": "timeout", "winner": winner.value}, "timeout", winner=winner.value)

    def _end_room(self, room: Room, payload: Optional[Dict[str, Any]], event_type: str, **details: Any) -> None:
        if room.finish():
            if room.clock is not None:
                room.clock.stop()
            if payload is not None:
                self.broadcast_room(room, payload)
            self.event_log.log_event(event_type, room.code, **details)
        self.registry.remove(room.code)
        logger.info(f"Room {room.code} closed ({event_type})")

    # ---- Helpers ----
    def get_room(self, room_code: str) -> Optional[Room]:
        return self.registry.get(room_code)

    def rooms(self) -> List[Room]:
        return self.registry.rooms()

    def broadcast_room(self, room: Room, payload: Dict[str, Any]) -> None:
        self.connections.broadcast(room.human_connections(), payload)

    def _send_room_state(self, room: Room, connection_ids: List[str]) -> None:
        self.connections.broadcast(connection_ids, {"type": "playerUpdate", **room.player_info()})
        self.connections.broadcast(connection_ids, {"type": "boardState", "position": room.fen})
        self.connections.broadcast(connection_ids, {"type": "timerUpdate", **room.timer_payload()})

    def _start_clock(self, room: Room) -> None:
        if room.clock is None:
            room.clock = GameClock(room.code, self, interval=self.settings.clock_tick_seconds)
        room.clock.start()

    async def shutdown(self) -> None:
        for room in self.registry.rooms():
            self._end_room(room, None, "shutdown")
        await self.bot.shutdown()
