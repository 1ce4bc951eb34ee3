import asyncio

import pytest

from server.app import forward_messages


class ClosedSocket:
    def __init__(self):
        self.sent = []

    async def send_json(self, payload):
        if self.sent:
            raise RuntimeError("Cannot call send once a close message has been sent")
        self.sent.append(payload)


@pytest.mark.asyncio
async def test_forward_messages_stops_quietly_when_socket_closes():
    queue = asyncio.Queue()
    socket = ClosedSocket()
    queue.put_nowait({"type": "boardState", "position": "start"})
    queue.put_nowait({"type": "timerUpdate", "white": "05:00", "black": "05:00"})

    task = asyncio.create_task(forward_messages(queue, socket))
    await asyncio.wait_for(task, timeout=1)

    assert task.exception() is None
    assert socket.sent == [{"type": "boardState", "position": "start"}]
