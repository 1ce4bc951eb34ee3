"""
Bot-move orchestration.

After a human move in a bot room, a bot turn is scheduled as its own task:
it waits a skill-dependent "thinking" delay while the suggestion service is
queried in the background, then re-checks the room and submits the move
through the coordinator's regular ``apply_move`` path.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Awaitable, List, Optional, Set

import chess

from src.core import rules
from src.core.agents import HeuristicAgent, MoveSuggester
from src.core.exceptions import SuggestionServiceError
from src.core.room import BOT_CONNECTION_ID
from src.core.types import Skill

if TYPE_CHECKING:
    from server.coordinator import SessionCoordinator

logger = logging.getLogger(__name__)

# Seconds (min, max) the bot pretends to think
THINKING_DELAY = {
    Skill.EASY: (0.8, 2.0),
    Skill.MEDIUM: (1.2, 3.0),
    Skill.HARD: (2.0, 4.0),
}
LOW_TIME_THRESHOLD = 60
LOW_TIME_FRACTION = 0.1


def thinking_delay(skill: Skill, time_remaining: Optional[int], rng: random.Random) -> float:
    """Draw a thinking delay; under a minute left it is capped at 10% of the remaining time."""
    low, high = THINKING_DELAY.get(skill, (1.0, 1.0))
    delay = rng.uniform(low, high)
    if time_remaining is not None and time_remaining < LOW_TIME_THRESHOLD:
        delay = min(delay, time_remaining * LOW_TIME_FRACTION)
    return max(0.0, delay)


def max_thinking_delay(skill: Skill) -> float:
    return THINKING_DELAY.get(skill, (1.0, 1.0))[1]


class BotOrchestrator:
    """Schedules and runs bot turns for the rooms of one coordinator."""

    def __init__(
        self,
        coordinator: "SessionCoordinator",
        suggester: Optional[MoveSuggester] = None,
        fallback: Optional[HeuristicAgent] = None,
        delay_scale: float = 1.0,
        rng: Optional[random.Random] = None,
    ):
        self._coordinator = coordinator
        self.suggester = suggester
        self.rng = rng or random.Random()
        self.fallback = fallback or HeuristicAgent(self.rng)
        self.delay_scale = delay_scale
        self._tasks: Set[asyncio.Task] = set()

    def schedule(self, room_code: str) -> asyncio.Task:
        """Start a bot turn for ``room_code`` in the background."""
        return self._spawn(self.play_turn(room_code), name=f"bot-{room_code}")

    def schedule_analysis(self, room_code: str, fen: str) -> Optional[asyncio.Task]:
        """Ask the suggestion service for a post-game analysis and log it."""
        if self.suggester is None:
            return None
        return self._spawn(self._analyze(room_code, fen), name=f"analysis-{room_code}")

    async def play_turn(self, room_code: str) -> Optional[str]:
        """
        Play one bot move.

        Returns:
            The SAN move that was applied, or None when the turn was dropped
            (room gone or over, not the bot's turn, or no legal move).
        """
        room = self._coordinator.get_room(room_code)
        if room is None or not room.is_bot_turn():
            return None

        board = room.board.copy()
        skill = room.skill or Skill.MEDIUM
        time_remaining = room.remaining[room.turn]
        legal = rules.legal_moves(board)
        if not legal:
            return None

        suggestion: Optional[asyncio.Task] = None
        if self.suggester is not None:
            suggestion = asyncio.create_task(self._suggest(board, legal, skill, time_remaining))

        delay = thinking_delay(skill, time_remaining, self.rng) * self.delay_scale
        try:
            await asyncio.sleep(delay)
            # A suggestion still pending when the delay ends is abandoned
            suggested = suggestion.result() if suggestion is not None and suggestion.done() else None
        finally:
            if suggestion is not None and not suggestion.done():
                suggestion.cancel()

        # The room may have been torn down or timed out while we were suspended
        room = self._coordinator.get_room(room_code)
        if room is None or room.game_over or not room.is_bot_turn():
            logger.info(f"Discarding bot move for room {room_code}: room no longer playable")
            return None

        current = room.board
        san = suggested if suggested in rules.legal_moves(current) else None
        if san is None:
            san = self.fallback.choose_move(current, skill)
            if san is None:
                return None
            logger.info(f"Bot fallback move {san} in room {room_code} (skill={skill.value})")

        request = rules.request_from_san(current, san)
        outcome = self._coordinator.apply_move(room_code, BOT_CONNECTION_ID, request)
        if not outcome.accepted:
            logger.warning(f"Bot move {san} rejected in room {room_code}: {outcome.reason}")
            return None
        logger.info(f"Bot played {san} in room {room_code}")
        return san

    async def _suggest(
        self,
        board: chess.Board,
        legal: List[str],
        skill: Skill,
        time_remaining: int,
    ) -> Optional[str]:
        try:
            return await self.suggester.suggest_move(board, legal, skill, time_remaining)
        except SuggestionServiceError as e:
            logger.warning(f"Suggestion service failed: {e}")
        except Exception:
            logger.exception("Unexpected error from suggestion service")
        return None

    async def _analyze(self, room_code: str, fen: str) -> None:
        try:
            analysis = await self.suggester.analyze_position(fen)
        except SuggestionServiceError as e:
            logger.warning(f"Position analysis failed for room {room_code}: {e}")
            return
        if analysis:
            logger.info(f"Game over analysis for room {room_code}: {analysis}")

    def _spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        task = asyncio.create_task(self._guarded(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _guarded(coro: Awaitable, name: str):
        # A failing bot turn must not take other rooms down with it
        try:
            return await coro
        except Exception:
            logger.exception(f"Bot task {name} failed")
            return None

    async def wait_idle(self) -> None:
        """Wait until every scheduled bot task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self.suggester is not None:
            await self.suggester.aclose()
