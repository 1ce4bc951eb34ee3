from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Outbound message queues, one per live WebSocket connection.

    Sends never block: payloads are put on the connection's queue in call
    order and a per-connection sender task drains it, so every member of a
    room observes that room's broadcasts in the same order.
    """

    def __init__(self):
        self._queues: Dict[str, asyncio.Queue] = {}

    def register(self, connection_id: Optional[str] = None) -> Tuple[str, asyncio.Queue]:
        connection_id = connection_id or uuid.uuid4().hex
        q: asyncio.Queue = asyncio.Queue()
        self._queues[connection_id] = q
        return connection_id, q

    def unregister(self, connection_id: str) -> None:
        self._queues.pop(connection_id, None)

    def send(self, connection_id: str, payload: Dict[str, Any]) -> None:
        q = self._queues.get(connection_id)
        if q is None:
            # Bot slots and already-closed sockets have no queue
            return
        q.put_nowait(payload)

    def broadcast(self, connection_ids: Iterable[str], payload: Dict[str, Any]) -> None:
        for connection_id in connection_ids:
            self.send(connection_id, payload)

    def __len__(self) -> int:
        return len(self._queues)
