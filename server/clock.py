"""
Per-room countdown clock.

The clock keeps only its room's code. Each tick it looks the room up through
the coordinator and decrements whichever side is to move in the live
position, so a move made between two ticks is honoured on the very next one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from server.coordinator import SessionCoordinator

logger = logging.getLogger(__name__)


class GameClock:
    def __init__(self, room_code: str, coordinator: "SessionCoordinator", interval: float = 1.0):
        self.room_code = room_code
        self.interval = interval
        self._coordinator = coordinator
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Begin ticking. Starting a running clock is a no-op."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name=f"clock-{self.room_code}")
        logger.debug(f"Clock started for room {self.room_code}")

    def retarget(self) -> None:
        """Replace the tick source after a move; the side to run is read at tick time."""
        if not self._running:
            return
        self._cancel_task()
        self._task = asyncio.create_task(self._run(), name=f"clock-{self.room_code}")

    def stop(self) -> None:
        """Cancel the tick source. Idempotent."""
        if not self._running:
            return
        self._running = False
        self._cancel_task()
        logger.debug(f"Clock stopped for room {self.room_code}")

    def tick(self) -> bool:
        """
        Advance the clock by one second.

        Returns:
            True while the clock should keep ticking.
        """
        if not self._running:
            return False
        room = self._coordinator.get_room(self.room_code)
        if room is None or room.game_over:
            self.stop()
            return False

        color = room.turn
        left = room.consume_second(color)
        self._coordinator.broadcast_room(room, {"type": "timerUpdate", **room.timer_payload()})

        if left <= 0:
            self.stop()
            self._coordinator.expire(room, color)
            return False
        return True

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval)
            if not self.tick():
                break

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # A tick that stops its own clock just lets the loop exit
        if task is not current:
            task.cancel()
