"""Shared test fixtures for the chess arena tests."""

import asyncio
import os
import random

# Bots move without a thinking delay and never reach a real LLM during tests
os.environ["CHESS_BOT_DELAY_SCALE"] = "0"
os.environ.pop("LLM_API_KEY", None)

import pytest
import pytest_asyncio

from server.coordinator import SessionCoordinator
from src.settings import ServerSettings


@pytest.fixture
def server_settings():
    """Settings with a clock that only advances when ticked by hand."""
    return ServerSettings(
        clock_tick_seconds=3600,
        heartbeat_seconds=3600,
        bot_delay_scale=0,
        event_log_path=None,
    )


@pytest_asyncio.fixture
async def coordinator(server_settings):
    """Coordinator without a suggestion service and with a fixed seed."""
    coord = SessionCoordinator(settings=server_settings, rng=random.Random(42))
    yield coord
    await coord.shutdown()


@pytest.fixture
def drain():
    """Return a helper that empties a connection queue into a list."""

    def _drain(queue: asyncio.Queue) -> list:
        messages = []
        while not queue.empty():
            messages.append(queue.get_nowait())
        return messages

    return _drain


@pytest.fixture
def types_of():
    def _types(messages: list) -> list:
        return [m["type"] for m in messages]

    return _types
