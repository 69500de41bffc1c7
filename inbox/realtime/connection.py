"""One realtime socket: per-conversation subscriptions over the change feed.

Client frames::

    {"type": "subscribe", "conversation_id": "<uuid>"}
    {"type": "unsubscribe", "conversation_id": "<uuid>"}
    {"type": "ping"}

Server frames: ``hello``, ``subscribed``, ``unsubscribed``, ``pong``,
``error`` and the change events themselves
(``{"type": "INSERT", "table": "messages", "record": {...}}``).
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol
from uuid import UUID

import structlog
from starlette.websockets import WebSocketDisconnect

from inbox.auth.session import AuthSession
from inbox.core.constants import REALTIME_QUEUE_SIZE
from inbox.realtime.feed import ChangeEvent, ChangeFeed, Subscription

logger = structlog.get_logger(__name__)


class JSONSocket(Protocol):
    async def receive_json(self) -> Any: ...

    async def send_json(self, data: Any) -> None: ...


class RealtimeConnection:
    def __init__(
        self,
        socket: JSONSocket,
        session: AuthSession,
        feed: ChangeFeed,
        can_access: Callable[[UUID], Awaitable[bool]],
    ) -> None:
        self.socket = socket
        self.session = session
        self.feed = feed
        self.can_access = can_access
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=REALTIME_QUEUE_SIZE)
        self.subscriptions: dict[UUID, Subscription] = {}

    async def run(self) -> None:
        """Serve the socket until the client goes away."""
        await self.socket.send_json({"type": "hello", "user_id": str(self.session.user_id)})

        reader = asyncio.create_task(self._read_loop())
        writer = asyncio.create_task(self._write_loop())
        try:
            done, pending = await asyncio.wait(
                {reader, writer}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                task.result()
        finally:
            self.close()

    def close(self) -> None:
        for sub in self.subscriptions.values():
            self.feed.unsubscribe(sub)
        self.subscriptions.clear()

    async def handle_frame(self, frame: Any) -> None:
        if not isinstance(frame, dict):
            await self._reply({"type": "error", "message": "Frames must be JSON objects"})
            return

        frame_type = frame.get("type")
        if frame_type == "ping":
            await self._reply({"type": "pong"})
        elif frame_type == "subscribe":
            await self._subscribe(frame.get("conversation_id"))
        elif frame_type == "unsubscribe":
            await self._unsubscribe(frame.get("conversation_id"))
        else:
            await self._reply({"type": "error", "message": f"Unknown frame type: {frame_type}"})

    async def _subscribe(self, raw_id: Any) -> None:
        conversation_id = _parse_uuid(raw_id)
        if conversation_id is None:
            await self._reply({"type": "error", "message": "Invalid conversation_id"})
            return

        existing = self.subscriptions.get(conversation_id)
        if existing is None or existing.closed:
            if not await self.can_access(conversation_id):
                self.subscriptions.pop(conversation_id, None)
                logger.info(
                    "realtime_subscribe_denied",
                    user_id=str(self.session.user_id),
                    conversation_id=str(conversation_id),
                )
                await self._reply(
                    {
                        "type": "error",
                        "conversation_id": str(conversation_id),
                        "message": "You are not a participant of this conversation",
                    }
                )
                return
            self.subscriptions[conversation_id] = self.feed.subscribe(
                conversation_id, queue=self.outbox
            )

        await self._reply({"type": "subscribed", "conversation_id": str(conversation_id)})

    async def _unsubscribe(self, raw_id: Any) -> None:
        conversation_id = _parse_uuid(raw_id)
        if conversation_id is None:
            await self._reply({"type": "error", "message": "Invalid conversation_id"})
            return
        sub = self.subscriptions.pop(conversation_id, None)
        if sub is not None:
            self.feed.unsubscribe(sub)
        await self._reply({"type": "unsubscribed", "conversation_id": str(conversation_id)})

    async def _reply(self, frame: dict[str, Any]) -> None:
        await self.outbox.put(frame)

    async def _read_loop(self) -> None:
        while True:
            try:
                frame = await self.socket.receive_json()
            except WebSocketDisconnect:
                return
            except (ValueError, KeyError):
                # KeyError: binary frame
                await self._reply({"type": "error", "message": "Frames must be JSON text"})
                continue
            await self.handle_frame(frame)

    async def _write_loop(self) -> None:
        while True:
            item = await self.outbox.get()
            frame = item.to_frame() if isinstance(item, ChangeEvent) else item
            try:
                await self.socket.send_json(frame)
            except (WebSocketDisconnect, RuntimeError):
                return
            if isinstance(item, ChangeEvent) and not await self._report_dropped():
                return

    async def _report_dropped(self) -> bool:
        """Tell the client about subscriptions the feed dropped for overflowing.

        Returns False once the socket is gone.
        """
        dropped = [(cid, sub) for cid, sub in self.subscriptions.items() if sub.closed]
        for conversation_id, sub in dropped:
            if self.subscriptions.get(conversation_id) is sub:
                del self.subscriptions[conversation_id]
            logger.warning(
                "realtime_subscription_dropped",
                user_id=str(self.session.user_id),
                conversation_id=str(conversation_id),
            )
            try:
                await self.socket.send_json(
                    {
                        "type": "error",
                        "conversation_id": str(conversation_id),
                        "message": "Subscription dropped, subscribe again",
                    }
                )
            except (WebSocketDisconnect, RuntimeError):
                return False
        return True


def _parse_uuid(raw: Any) -> UUID | None:
    try:
        return UUID(str(raw))
    except ValueError:
        return None
