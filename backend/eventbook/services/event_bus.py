"""
Durable event bus on Redis Streams.

Each subject maps to one stream. Publishers XADD and return as soon as Redis
accepted the entry; they never wait for, or know about, subscribers.

Subscribers read through a consumer group, so every group keeps its own cursor
and Redis tracks which entries were delivered but not acknowledged. A
subscriber first replays its own pending entries, then blocks on new ones.
Entries are acknowledged only after the handler ran, so a crash between
delivery and ack means the entry is delivered again on restart: at-least-once.
"""

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError, ResponseError, TimeoutError as RedisTimeoutError

from eventbook.core.config import Settings
from eventbook.core.logging import get_logger
from eventbook.core.metrics import record_event_published

logger = get_logger(__name__)

PAYLOAD_FIELD = "payload"
PENDING = "0"
NEW = ">"
READ_BATCH = 10
IDLE_SLEEP_SECONDS = 0.01
RECONNECT_DELAY_SECONDS = 1.0


@dataclass(frozen=True)
class Delivery:
    subject: str
    group: str
    message_id: str
    payload: str


class EventBus:
    def __init__(self, client: redis.Redis, settings: Settings):
        self.client = client
        self.prefix = settings.EVENT_BUS_STREAM_PREFIX
        self.maxlen = settings.EVENT_BUS_STREAM_MAXLEN
        self.timeout = settings.EVENT_BUS_TIMEOUT_SECONDS
        self.block_ms = settings.EVENT_BUS_BLOCK_MS

    @classmethod
    def from_settings(cls, settings: Settings) -> "EventBus":
        client = redis.from_url(
            settings.EVENT_BUS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            # Must outlive one blocking XREADGROUP
            socket_timeout=max(5.0, settings.EVENT_BUS_BLOCK_MS / 1000 + 5),
            retry_on_timeout=True,
        )
        return cls(client, settings)

    def stream_name(self, subject: str) -> str:
        return f"{self.prefix}{subject}"

    async def ping(self) -> None:
        await asyncio.wait_for(self.client.ping(), timeout=self.timeout)
        logger.info("redis_connected", role="event_bus")

    async def close(self) -> None:
        await self.client.aclose()

    async def publish(self, subject: str, payload: str) -> str:
        """
        Append one message to the subject's stream.
        Returns the stream entry id. Raises on timeout or connection failure.
        """
        try:
            message_id = await asyncio.wait_for(
                self.client.xadd(
                    self.stream_name(subject),
                    {PAYLOAD_FIELD: payload},
                    maxlen=self.maxlen,
                    approximate=True,
                ),
                timeout=self.timeout,
            )
        except Exception:
            record_event_published(subject, ok=False)
            raise

        record_event_published(subject, ok=True)
        logger.info("event_published", subject=subject, message_id=message_id)
        return message_id

    async def ensure_group(self, subject: str, group: str) -> None:
        """Create the consumer group (and the stream) if missing, starting at the stream head."""
        try:
            await self.client.xgroup_create(self.stream_name(subject), group, id="0", mkstream=True)
            logger.info("consumer_group_created", subject=subject, group=group)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    async def ack(self, delivery: Delivery) -> None:
        await asyncio.wait_for(
            self.client.xack(self.stream_name(delivery.subject), delivery.group, delivery.message_id),
            timeout=self.timeout,
        )

    async def read(self, subject: str, group: str, consumer: str, cursor: str, block_ms=None) -> list[Delivery]:
        """One XREADGROUP call. cursor is "0" for this consumer's pending entries, ">" for new ones."""
        stream = self.stream_name(subject)
        response = await self.client.xreadgroup(
            group, consumer, {stream: cursor}, count=READ_BATCH, block=block_ms,
        )
        deliveries = []
        for _stream, entries in response or []:
            for message_id, fields in entries:
                if not fields:
                    # Pending entry trimmed from the stream; nothing left to deliver
                    await self.client.xack(stream, group, message_id)
                    continue
                deliveries.append(Delivery(subject, group, message_id, fields.get(PAYLOAD_FIELD, "")))
        return deliveries

    async def subscribe(
        self,
        subject: str,
        group: str,
        consumer: str,
        stop_event: asyncio.Event,
    ) -> AsyncIterator[Delivery]:
        """
        Yield deliveries until stop_event is set. The caller acks each one.
        Connection failures are logged and retried; after a reconnect the pending
        entries are replayed, so unacked messages are delivered again.
        """
        cursor = PENDING
        group_ready = False
        while not stop_event.is_set():
            try:
                if not group_ready:
                    await self.ensure_group(subject, group)
                    group_ready = True
                deliveries = await self.read(
                    subject, group, consumer, cursor,
                    block_ms=self.block_ms if cursor == NEW else None,
                )
            except ResponseError as e:
                if "NOGROUP" not in str(e):
                    raise
                # Stream or group was deleted under us
                logger.warning("consumer_group_missing", subject=subject, group=group)
                cursor = PENDING
                group_ready = False
                continue
            except (RedisConnectionError, RedisTimeoutError, OSError) as e:
                logger.error("event_bus_read_error", subject=subject, error=str(e))
                cursor = PENDING
                group_ready = False
                await asyncio.sleep(RECONNECT_DELAY_SECONDS)
                continue

            if not deliveries:
                if cursor != NEW:
                    cursor = NEW
                    continue
                await asyncio.sleep(IDLE_SLEEP_SECONDS)
                continue

            for delivery in deliveries:
                yield delivery
                if cursor != NEW:
                    # Pending replay pages by id; continue after the last seen entry
                    cursor = delivery.message_id
