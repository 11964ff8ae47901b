"""
Real-time channel.

Workers publish events to Redis (``<prefix>:<topic>``). Each API process
runs one relay that subscribes to those channels and forwards every event
to the WebSocket sessions registered on its ``RealtimeHub``.
"""
import asyncio
import json
import logging
from collections import defaultdict
from typing import Any

import redis
import redis.asyncio as aioredis
from fastapi import WebSocket

from app.core.config import settings

logger = logging.getLogger(__name__)

DOCTOR_TOPIC = "doctor"
RELAY_RETRY_DELAY = 5.0  # seconds


def patient_topic(patient_id) -> str:
    return f"patient:{patient_id}"


class RealtimeBroadcaster:
    """Publishes events to the real-time channel. No delivery guarantee."""

    def __init__(self, client: redis.Redis | None = None, channel_prefix: str | None = None):
        self._client = client
        self.channel_prefix = channel_prefix or settings.REALTIME_CHANNEL_PREFIX

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(settings.REDIS_URL)
        return self._client

    def channel_for(self, topic: str) -> str:
        return f"{self.channel_prefix}:{topic}"

    def broadcast(self, topic: str, event: str, payload: dict[str, Any]) -> int:
        """Publish an event to every subscriber of a topic. Returns the receiver count."""
        message = json.dumps({"event": event, "data": payload}, default=str)
        receivers = self._get_client().publish(self.channel_for(topic), message)
        logger.info(f"Broadcast {event} to topic '{topic}' ({receivers} relays)")
        return receivers


class RealtimeHub:
    """Registry of WebSocket sessions per topic, local to one API process."""

    def __init__(self):
        self._subscribers: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, topics: list[str]) -> None:
        await websocket.accept()
        for topic in topics:
            self._subscribers[topic].add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        for topic in list(self._subscribers):
            self._subscribers[topic].discard(websocket)
            if not self._subscribers[topic]:
                del self._subscribers[topic]

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    async def send_to_topic(self, topic: str, message: str) -> int:
        sent = 0
        for websocket in list(self._subscribers.get(topic, ())):
            try:
                await websocket.send_text(message)
                sent += 1
            except Exception as e:
                logger.warning(f"Dropping WebSocket on topic '{topic}': {e}")
                self.disconnect(websocket)
        return sent


async def relay_published_events(
    hub: RealtimeHub,
    redis_url: str | None = None,
    channel_prefix: str | None = None,
) -> None:
    """Forward published events to local sockets until cancelled."""
    prefix = channel_prefix or settings.REALTIME_CHANNEL_PREFIX
    while True:
        client = aioredis.from_url(redis_url or settings.REDIS_URL, decode_responses=True)
        pubsub = client.pubsub()
        try:
            await pubsub.psubscribe(f"{prefix}:*")
            logger.info(f"Real-time relay subscribed to '{prefix}:*'")
            async for message in pubsub.listen():
                if message.get("type") != "pmessage":
                    continue
                topic = message["channel"][len(prefix) + 1:]
                await hub.send_to_topic(topic, message["data"])
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Real-time relay failed, retrying in {RELAY_RETRY_DELAY}s")
            await asyncio.sleep(RELAY_RETRY_DELAY)
        finally:
            await pubsub.aclose()
            await client.aclose()
