"""Change feed for message inserts.

Every worker keeps its own subscriber registry keyed by conversation id, so a
subscriber only ever sees inserts for the conversations it asked for.
``publish`` hands the event to local subscribers straight away and, when
Redis is connected, also broadcasts it on ``<prefix>:<conversation_id>``
tagged with this worker's origin id. ``run_redis_bridge`` listens on
``<prefix>:*`` and delivers events published by *other* workers.

Delivery order is the order ``publish`` is called on a worker. Nothing is
reordered or deduplicated here; clients reconcile by ``client_id``/``id``.
"""

import asyncio
import json
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

import structlog

from inbox.core import redis as redis_module
from inbox.core.config import settings
from inbox.core.constants import REALTIME_QUEUE_SIZE

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    conversation_id: uuid.UUID
    record: dict[str, Any]
    type: str = "INSERT"
    table: str = "messages"

    def to_frame(self) -> dict[str, Any]:
        return {"type": self.type, "table": self.table, "record": self.record}

    def to_wire(self) -> dict[str, Any]:
        return {**self.to_frame(), "conversation_id": str(self.conversation_id)}

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "ChangeEvent":
        return cls(
            conversation_id=uuid.UUID(str(data["conversation_id"])),
            record=dict(data["record"]),
            type=str(data.get("type", "INSERT")),
            table=str(data.get("table", "messages")),
        )


@dataclass(eq=False)
class Subscription:
    conversation_id: uuid.UUID
    queue: asyncio.Queue
    closed: bool = field(default=False)


class ChangeFeed:
    def __init__(self, channel_prefix: str, origin: str | None = None) -> None:
        self.channel_prefix = channel_prefix
        self.origin = origin or uuid.uuid4().hex
        self._subscribers: dict[uuid.UUID, set[Subscription]] = defaultdict(set)

    def channel_for(self, conversation_id: uuid.UUID) -> str:
        return f"{self.channel_prefix}:{conversation_id}"

    def subscribe(
        self, conversation_id: uuid.UUID, queue: asyncio.Queue | None = None
    ) -> Subscription:
        """Register interest in one conversation.

        Several subscriptions may share a queue, which is how one socket
        follows more than one conversation.
        """
        sub = Subscription(
            conversation_id=conversation_id,
            queue=queue if queue is not None else asyncio.Queue(maxsize=REALTIME_QUEUE_SIZE),
        )
        self._subscribers[conversation_id].add(sub)
        logger.debug("realtime_subscribed", conversation_id=str(conversation_id))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        sub.closed = True
        subs = self._subscribers.get(sub.conversation_id)
        if subs is None:
            return
        subs.discard(sub)
        if not subs:
            del self._subscribers[sub.conversation_id]

    def subscriber_count(self, conversation_id: uuid.UUID | None = None) -> int:
        if conversation_id is not None:
            return len(self._subscribers.get(conversation_id, ()))
        return sum(len(subs) for subs in self._subscribers.values())

    async def publish(self, event: ChangeEvent) -> int:
        """Deliver to local subscribers and broadcast to other workers.

        Returns the number of local subscribers reached.
        """
        delivered = self._deliver(event)

        if redis_module.redis_client is not None:
            try:
                await redis_module.publish(
                    self.channel_for(event.conversation_id),
                    {"origin": self.origin, "event": event.to_wire()},
                )
            except Exception:
                # Local subscribers already have it; other workers miss this one
                logger.warning(
                    "realtime_broadcast_failed",
                    conversation_id=str(event.conversation_id),
                    exc_info=True,
                )

        return delivered

    def _deliver(self, event: ChangeEvent) -> int:
        delivered = 0
        for sub in list(self._subscribers.get(event.conversation_id, ())):
            try:
                sub.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "realtime_subscriber_overflow",
                    conversation_id=str(event.conversation_id),
                )
                self.unsubscribe(sub)
                continue
            delivered += 1
        return delivered

    def handle_remote(self, raw: str | bytes) -> int:
        """Deliver one pub/sub payload from another worker."""
        try:
            data = json.loads(raw)
            if data.get("origin") == self.origin:
                return 0
            event = ChangeEvent.from_wire(data["event"])
        except (ValueError, KeyError, TypeError):
            logger.warning("realtime_bad_payload", exc_info=True)
            return 0
        return self._deliver(event)

    async def run_redis_bridge(self) -> None:
        """Forward events published by other workers. Runs until cancelled."""
        client = await redis_module.get_redis()
        pubsub = client.pubsub()
        await pubsub.psubscribe(f"{self.channel_prefix}:*")
        logger.info("realtime_bridge_started", origin=self.origin)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "pmessage":
                    continue
                self.handle_remote(message["data"])
        finally:
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("realtime_bridge_stopped", origin=self.origin)


change_feed = ChangeFeed(settings.REALTIME_CHANNEL_PREFIX)
