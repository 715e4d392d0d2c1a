"""
Event bus: best-effort fan-out of state-change events.

Two kinds of subscribers:
  - in-process listeners (plain callables), e.g. metrics hooks or tests
  - WebSocket connections registered on a channel ("global" or "user:<id>")
    via the /ws/events endpoint

Message shape sent to sockets:
  {"event": "swap:approved", "payload": {"id": "...", "status": "approved"}}

Rules:
  - notify() is called AFTER the database commit, never inside it.
  - notify() never raises and never blocks on delivery: listener errors are
    logged and swallowed, socket delivery runs as a background task.
  - Events are not persisted. A client that was offline simply misses them.

Limitation: This in-memory bus works for a single-server deployment.
If you ever scale to multiple server instances, replace the socket fan-out
with Redis Pub/Sub.
"""
import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)

GLOBAL_CHANNEL = "global"

Listener = Callable[[str, dict], None]


def user_channel(user_id) -> str:
    return f"user:{user_id}"


class EventBus:
    def __init__(self):
        # Maps channel name → list of active WebSocket connections
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self.listeners: List[Listener] = []
        # The server's event loop, bound at startup so sync handlers can publish.
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop

    # ── In-process listeners ──────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> None:
        self.listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        try:
            self.listeners.remove(listener)
        except ValueError:
            pass  # already removed

    # ── WebSocket connections ─────────────────────────────────────────────────

    async def connect(self, websocket: WebSocket, channels: Iterable[str]) -> None:
        """Accept a new WebSocket connection and register it on each channel."""
        await websocket.accept()
        for channel in channels:
            self.active_connections.setdefault(channel, []).append(websocket)
        logger.info("WS connected: channels=%s", list(channels))

    def disconnect(self, websocket: WebSocket, channels: Iterable[str]) -> None:
        """Remove a disconnected WebSocket from the registry."""
        for channel in channels:
            connections = self.active_connections.get(channel)
            if connections is None:
                continue
            try:
                connections.remove(websocket)
            except ValueError:
                pass  # already removed
            if not connections:
                del self.active_connections[channel]
        logger.info("WS disconnected: channels=%s", list(channels))

    async def broadcast(self, message: dict, channels: Iterable[str]) -> None:
        """
        Send a message to every socket on the given channels, once per socket.
        Dead connections (client closed tab, network drop) are automatically cleaned up.
        """
        targets: Dict[int, tuple] = {}
        for channel in channels:
            for connection in self.active_connections.get(channel, []):
                targets.setdefault(id(connection), (connection, channel))

        dead: List[tuple] = []
        for connection, channel in targets.values():
            try:
                await connection.send_json(message)
            except Exception:
                # Connection is broken — mark for cleanup
                dead.append((connection, channel))

        for conn, channel in dead:
            self.disconnect(conn, [channel])

    # ── Publishing ────────────────────────────────────────────────────────────

    def notify(self, event: str, payload: dict, user_ids: Iterable = ()) -> None:
        """
        Fire-and-forget publish. Safe to call from any request handler.
        """
        for listener in list(self.listeners):
            try:
                listener(event, payload)
            except Exception:
                logger.exception("Event listener failed for %s", event)

        channels = [GLOBAL_CHANNEL] + [user_channel(uid) for uid in user_ids]
        if not any(channel in self.active_connections for channel in channels):
            return

        message = {"event": event, "payload": payload}
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self.broadcast(message, channels))
            task.add_done_callback(_log_task_failure)
        elif self.loop is not None and self.loop.is_running():
            # Sync handler running in the threadpool: hand the send to the app's loop.
            future = asyncio.run_coroutine_threadsafe(self.broadcast(message, channels), self.loop)
            future.add_done_callback(_log_task_failure)
        else:
            logger.debug("No event loop bound; socket delivery of %s skipped", event)


def _log_task_failure(task) -> None:
    # Works for both asyncio.Task and concurrent.futures.Future
    if not task.cancelled() and task.exception() is not None:
        logger.error("Event broadcast failed: %r", task.exception())


# Module-level singleton — imported by routers and the websocket endpoint
bus = EventBus()
