import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict

import redis.asyncio as redis
from redis.exceptions import RedisError

from portal.config import get_settings
from portal.utils.websocket_manager import manager


logger = logging.getLogger(__name__)


class NoopBus:

    enabled = False

    async def publish(self, channel: str, message: str) -> None:
        return

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        class _Sub:
            async def run(self):
                await asyncio.Future()

            async def cancel(self):
                return

        return _Sub()

    async def close(self) -> None:
        return


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                while self_inner._running:
                    try:
                        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    except RedisError as exc:
                        logger.warning("redis subscription on %s failed: %s", channel, exc)
                        await asyncio.sleep(0.5)
                        continue
                    if msg and msg.get("type") == "message":
                        data = msg.get("data")
                        if isinstance(data, bytes):
                            data = data.decode("utf-8")
                        await on_message(data)

            async def cancel(self_inner):
                self_inner._running = False
                try:
                    await pubsub.unsubscribe(channel)
                    await pubsub.aclose()
                except RedisError as exc:
                    logger.warning("redis unsubscribe from %s failed: %s", channel, exc)

        return _Sub()

    async def close(self) -> None:
        await self._redis.aclose()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    url = get_settings().redis_url
    _bus = RedisBus(url) if url else NoopBus()
    return _bus


async def reset_bus() -> None:
    global _bus
    if _bus is not None:
        await _bus.close()
    _bus = None


async def publish_event(topic: str, event: Dict[str, Any]) -> None:
    """Fan an event out to subscribers of ``topic``.

    With Redis configured the event goes through pub/sub so every worker
    sees it; otherwise it is delivered to this process's websockets only.
    Delivery failures are logged and never fail the calling request.
    """
    payload = json.dumps(event, default=str)
    bus = await get_bus()
    try:
        if bus.enabled:
            await bus.publish(topic, payload)
        else:
            await manager.broadcast(topic, payload)
    except RedisError as exc:
        logger.warning("failed to publish %s on %s: %s", event.get("type"), topic, exc)


def org_topic(organization_id: Any) -> str:
    return f"org:{organization_id}"


def user_topic(user_id: str) -> str:
    return f"user:{user_id}"
