import asyncio
import random
import time

import pytest

from server.bot import THINKING_DELAY, max_thinking_delay, thinking_delay
from server.coordinator import SessionCoordinator
from src.core import rules
from src.core.agents import MoveSuggester
from src.core.exceptions import SuggestionServiceError
from src.core.rules import MoveRequest
from src.core.types import Color, Skill


class ScriptedSuggester(MoveSuggester):
    """Suggester that replays a fixed reply (or raises it when it is an exception)."""

    def __init__(self, reply, gate: asyncio.Event = None):
        self.reply = reply
        self.gate = gate
        self.calls = 0
        self.closed = False
        self.cancelled = False

    async def suggest_move(self, board, legal_moves, skill, time_remaining):
        self.calls += 1
        if self.gate is not None:
            try:
                await self.gate.wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if isinstance(self.reply, BaseException):
            raise self.reply
        return self.reply

    async def aclose(self):
        self.closed = True


def _coordinator(server_settings, suggester=None, **overrides):
    settings = server_settings.model_copy(update=overrides) if overrides else server_settings
    return SessionCoordinator(settings=settings, suggester=suggester, rng=random.Random(11))


async def _open_bot_game(coordinator, skill="hard"):
    conn, queue = coordinator.connect()
    coordinator.create_bot_game(conn, "Alice", "5min", Skill.parse(skill))
    return conn, queue, coordinator.registry.room_for(conn)


def test_thinking_delay_ranges():
    rng = random.Random(0)
    for skill, (low, high) in THINKING_DELAY.items():
        for _ in range(50):
            assert low <= thinking_delay(skill, 300, rng) <= high
        assert max_thinking_delay(skill) == high


def test_thinking_delay_capped_when_low_on_time():
    rng = random.Random(0)
    for _ in range(50):
        assert thinking_delay(Skill.HARD, 5, rng) <= 0.5
    assert thinking_delay(Skill.HARD, 0, rng) == 0.0


@pytest.mark.asyncio
async def test_failing_suggester_falls_back_to_heuristic(server_settings, drain):
    suggester = ScriptedSuggester(SuggestionServiceError("down"))
    coordinator = _coordinator(server_settings, suggester)
    try:
        conn, queue, room = await _open_bot_game(coordinator)
        drain(queue)

        coordinator.move(conn, MoveRequest("e2", "e4"))
        await coordinator.bot.wait_idle()

        assert suggester.calls == 1
        assert len(room.board.move_stack) == 2
        assert room.turn is Color.WHITE
        boards = [m for m in drain(queue) if m["type"] == "boardState"]
        assert len(boards) == 2
        assert boards[-1]["position"] == room.fen
    finally:
        await coordinator.shutdown()
    assert suggester.closed


@pytest.mark.asyncio
async def test_bot_move_arrives_within_max_delay(server_settings):
    coordinator = _coordinator(server_settings, ScriptedSuggester(SuggestionServiceError("down")), bot_delay_scale=1.0)
    try:
        conn, _, room = await _open_bot_game(coordinator, "hard")
        started = time.monotonic()
        coordinator.move(conn, MoveRequest("e2", "e4"))
        await coordinator.bot.wait_idle()
        elapsed = time.monotonic() - started

        assert room.turn is Color.WHITE
        assert elapsed <= max_thinking_delay(Skill.HARD) + 0.5
    finally:
        await coordinator.shutdown()


@pytest.mark.asyncio
async def test_legal_suggestion_is_played(server_settings):
    coordinator = _coordinator(server_settings, ScriptedSuggester("c5"))
    try:
        conn, _, room = await _open_bot_game(coordinator)
        coordinator.move(conn, MoveRequest("e2", "e4"))
        await coordinator.bot.wait_idle()

        assert room.board.peek().uci() == "c7c5"
    finally:
        await coordinator.shutdown()


@pytest.mark.asyncio
async def test_illegal_suggestion_is_replaced(server_settings):
    coordinator = _coordinator(server_settings, ScriptedSuggester("Qxh7"))
    try:
        conn, _, room = await _open_bot_game(coordinator, "easy")
        coordinator.move(conn, MoveRequest("e2", "e4"))
        await coordinator.bot.wait_idle()

        assert len(room.board.move_stack) == 2
        assert room.turn is Color.WHITE
    finally:
        await coordinator.shutdown()


@pytest.mark.asyncio
async def test_unexpected_suggester_error_is_recovered(server_settings):
    coordinator = _coordinator(server_settings, ScriptedSuggester(RuntimeError("bug")))
    try:
        conn, _, room = await _open_bot_game(coordinator, "medium")
        coordinator.move(conn, MoveRequest("d2", "d4"))
        await coordinator.bot.wait_idle()
        assert room.turn is Color.WHITE
    finally:
        await coordinator.shutdown()


@pytest.mark.asyncio
async def test_no_suggester_uses_heuristic(coordinator):
    conn, _, room = await _open_bot_game(coordinator, "easy")
    coordinator.move(conn, MoveRequest("g1", "f3"))
    await coordinator.bot.wait_idle()
    assert len(room.board.move_stack) == 2


@pytest.mark.asyncio
async def test_move_discarded_when_room_closes_mid_turn(server_settings, drain):
    suggester = ScriptedSuggester("e5")
    coordinator = _coordinator(server_settings, suggester, bot_delay_scale=0.1)
    try:
        conn, queue, room = await _open_bot_game(coordinator)
        coordinator.move(conn, MoveRequest("e2", "e4"))
        await asyncio.sleep(0.01)
        assert suggester.calls == 1

        coordinator.disconnect(conn)
        await coordinator.bot.wait_idle()

        assert len(room.board.move_stack) == 1
        assert len(coordinator.registry) == 0
    finally:
        await coordinator.shutdown()


@pytest.mark.asyncio
async def test_move_discarded_after_timeout(server_settings, drain):
    coordinator = _coordinator(server_settings, ScriptedSuggester("e5"), bot_delay_scale=0.1)
    try:
        conn, queue, room = await _open_bot_game(coordinator)
        coordinator.move(conn, MoveRequest("e2", "e4"))
        await asyncio.sleep(0.01)

        room.remaining[Color.BLACK] = 1
        room.clock.tick()
        await coordinator.bot.wait_idle()

        msgs = drain(queue)
        assert {"type": "timeout", "winner": "white"} in msgs
        assert rules.serialize(room.board).split()[1] == "b"
    finally:
        await coordinator.shutdown()


@pytest.mark.asyncio
async def test_slow_suggestion_does_not_hold_the_move(server_settings):
    suggester = ScriptedSuggester("e5", gate=asyncio.Event())
    coordinator = _coordinator(server_settings, suggester, bot_delay_scale=0.1)
    try:
        conn, _, room = await _open_bot_game(coordinator, "hard")
        started = time.monotonic()
        coordinator.move(conn, MoveRequest("e2", "e4"))
        await coordinator.bot.wait_idle()
        elapsed = time.monotonic() - started

        assert room.turn is Color.WHITE
        assert len(room.board.move_stack) == 2
        assert elapsed <= max_thinking_delay(Skill.HARD) * 0.1 + 0.5
        await asyncio.sleep(0)
        assert suggester.cancelled
    finally:
        await coordinator.shutdown()
