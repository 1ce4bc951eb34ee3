"""
JSONL logger for room lifecycle events.

Every room creation, join, move, result and teardown can be appended to a
single JSONL file for offline inspection. Logging is disabled when no file is
configured.
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)


class GameLogger:
    """Logger that appends room events to a JSONL file."""

    def __init__(self, log_file: Optional[str] = None):
        """
        Initialize game logger.

        Args:
            log_file: Path to the JSONL file. If None, events are dropped.
        """
        self.log_file = log_file
        self.event_count = 0

    @property
    def enabled(self) -> bool:
        return self.log_file is not None

    def log_event(self, event_type: str, room_code: str, **kwargs: Any) -> None:
        """
        Log a room event.

        Args:
            event_type: Type of event (e.g., "room_created", "move", "game_over")
            room_code: Room the event belongs to
            **kwargs: Additional event data
        """
        if not self.enabled:
            return

        event = {
            "event_id": self.event_count,
            "timestamp": datetime.now().isoformat(),
            "event_type": event_type,
            "room_code": room_code,
            **kwargs,
        }

        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(event) + "\n")
        except OSError as e:
            # Don't break a game because the event log is unavailable
            logger.warning(f"Failed to write event log {self.log_file}: {e}")
            return

        self.event_count += 1
