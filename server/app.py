from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect

from src.settings import get_server_settings
from .coordinator import SessionCoordinator
from .schemas import HealthResponse, RoomListResponse, RoomSummary

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown."""
    settings = get_server_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting Chess Arena server...")

    coordinator = SessionCoordinator.from_settings(settings)
    app.state.coordinator = coordinator
    if coordinator.suggestion_enabled:
        logger.info("Move suggestion service enabled")
    else:
        logger.info("No LLM API key configured; bots use the built-in heuristics")

    yield

    logger.info("Shutting down server...")
    await coordinator.shutdown()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Chess Arena Server",
    version="0.1.0",
    lifespan=lifespan,
)


# ---- Dependencies ----
def get_coordinator(request: Request) -> SessionCoordinator:
    return request.app.state.coordinator


@app.get("/health", response_model=HealthResponse)
async def health(coordinator: SessionCoordinator = Depends(get_coordinator)):
    return HealthResponse(
        status="ok",
        rooms=len(coordinator.registry),
        suggestion_service=coordinator.suggestion_enabled,
    )


@app.get("/rooms", response_model=RoomListResponse)
async def list_rooms(coordinator: SessionCoordinator = Depends(get_coordinator)):
    """List live rooms and how many players are waiting for an opponent."""
    return RoomListResponse(
        rooms=[RoomSummary(**room.summary()) for room in coordinator.rooms()],
        waiting=len(coordinator.matchmaker.pending),
    )


@app.get("/rooms/{room_code}", response_model=RoomSummary)
async def get_room(room_code: str, coordinator: SessionCoordinator = Depends(get_coordinator)):
    room = coordinator.get_room(room_code.upper())
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return RoomSummary(**room.summary())


async def forward_messages(queue: asyncio.Queue, websocket: WebSocket) -> None:
    """Send queued messages in order until the socket stops accepting them."""
    try:
        while True:
            msg = await queue.get()
            await websocket.send_json(msg)
    except Exception as e:
        logger.debug(f"Outbound stream closed: {e}")


@app.websocket("/ws")
async def ws_play(websocket: WebSocket):
    await websocket.accept()
    coordinator: SessionCoordinator = websocket.app.state.coordinator
    heartbeat_seconds = coordinator.settings.heartbeat_seconds
    connection_id, queue = coordinator.connect()

    # Heartbeat pings to keep the connection alive
    async def heartbeat():
        try:
            while True:
                await asyncio.sleep(heartbeat_seconds)
                await websocket.send_json({"type": "heartbeat"})
        except Exception:
            return

    sender_task = asyncio.create_task(forward_messages(queue, websocket))
    hb_task = asyncio.create_task(heartbeat())
    try:
        while True:
            try:
                data = await websocket.receive_json()
            except WebSocketDisconnect:
                break
            except ValueError:
                logger.warning(f"Dropping non-JSON frame from {connection_id}")
                continue
            coordinator.handle_message(connection_id, data)
    finally:
        coordinator.disconnect(connection_id)
        sender_task.cancel()
        hb_task.cancel()


if __name__ == "__main__":
    import uvicorn

    settings = get_server_settings()
    uvicorn.run("server.app:app", host=settings.host, port=settings.port)
