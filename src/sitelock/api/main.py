# SiteLock: FastAPI Backend
#
# REST API for the browser bridge and settings page, plus a WebSocket
# that pushes "unlocked" notifications so an open overlay can dismiss
# itself as soon as its destination is unlocked.

import asyncio
import logging
from typing import Hashable, List, Set

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..blocker.coordinator import get_coordinator
from ..core import EventSeverity, EventType, get_audit_logger
from .blocker_routes import router as blocker_router
from .security import initialize_session_token, token_matches
from .settings_routes import router as settings_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="SiteLock API",
    description="Password-gated site blocking",
    version=__version__,
)

# Local origins only: the backend is reached by the bridge on this machine.
_allowed_origins = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:8000", "http://127.0.0.1:8000",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(blocker_router)
app.include_router(settings_router)


class ConnectionManager:
    """Manages WebSocket connections for unlock notifications."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: dict):
        """Send ``message`` to every client, dropping dead connections."""
        dead_connections = []
        for connection in self.active_connections:
            try:
                await connection.send_json(message)
            except Exception:
                dead_connections.append(connection)

        for connection in dead_connections:
            self.disconnect(connection)


manager = ConnectionManager()

# Strong references to in-flight broadcasts until they finish
_broadcast_tasks: Set[asyncio.Task] = set()


def _on_unlocked(ctx: Hashable, destination: str) -> None:
    """Coordinator listener: fan the unlock out to WebSocket clients."""
    message = {"type": "unlocked", "context_id": str(ctx), "destination": destination}
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No running loop, unlock notification for %s not sent", destination)
        return
    task = loop.create_task(manager.broadcast(message))
    _broadcast_tasks.add(task)
    task.add_done_callback(_broadcast_done)


def _broadcast_done(task: asyncio.Task) -> None:
    _broadcast_tasks.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.warning("Unlock broadcast failed: %s", task.exception())


@app.on_event("startup")
async def startup_event():
    """Issue the session token and hook unlock notifications."""
    initialize_session_token()
    coordinator = get_coordinator()
    coordinator.remove_unlock_listener(_on_unlocked)
    coordinator.add_unlock_listener(_on_unlocked)

    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="SiteLock API server started",
        details={"version": __version__},
    )


@app.on_event("shutdown")
async def shutdown_event():
    get_coordinator().remove_unlock_listener(_on_unlocked)
    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_STOP,
        severity=EventSeverity.INFO,
        message="SiteLock API server shutting down"
    )


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.websocket("/ws/unlocks")
async def unlocks_websocket(websocket: WebSocket):
    """
    Unlock notifications.

    The session token is passed as the ``token`` query parameter since
    browsers cannot set headers on WebSocket upgrades.
    """
    if not token_matches(websocket.query_params.get("token")):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)


def start_api_server(host: str = "127.0.0.1", port: int = 8000):
    """
    Start FastAPI server.

    Args:
        host: Host to bind to (default: localhost only)
        port: Port to listen on
    """
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    start_api_server()
