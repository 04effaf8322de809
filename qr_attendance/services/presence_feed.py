# qr_attendance/services/presence_feed.py
"""
Live presence feed for open teacher views.

Every admitted check-in is published as an event on the session's channel and
delivered to the callbacks subscribed to that session. Delivery is
at-least-once and ordered per session; late subscribers get no replay and
catch up by listing the session's check-ins.
"""
import asyncio
import inspect
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from redis import asyncio as aioredis

logger = logging.getLogger(__name__)

CheckinEvent = Dict[str, Any]
CheckinCallback = Callable[[CheckinEvent], Union[None, Awaitable[None]]]

CHANNEL_PREFIX = "attendance"


def channel_for(session_id: str) -> str:
    return f"{CHANNEL_PREFIX}:{session_id}"


def checkin_event(record) -> CheckinEvent:
    """JSON-safe view of a check-in record"""
    return {
        "id": record.id,
        "session_id": record.session_id,
        "student_name": record.student_name,
        "student_registration": record.student_registration,
        "email": record.email,
        "recorded_at": record.recorded_at.isoformat() if record.recorded_at else None,
    }


@dataclass(frozen=True)
class SubscriptionHandle:
    id: str
    session_id: str


async def _invoke(callback: CheckinCallback, event: CheckinEvent, handle: SubscriptionHandle) -> None:
    try:
        result = callback(event)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception(
            "Presence callback failed",
            extra={"session_id": handle.session_id, "subscription_id": handle.id}
        )


class PresenceFeed:
    """Publish/subscribe interface shared by the in-process and Redis feeds"""

    async def subscribe(self, session_id: str, on_checkin: CheckinCallback) -> SubscriptionHandle:
        raise NotImplementedError

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        raise NotImplementedError

    async def publish(self, record) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


class _LocalSubscription:
    def __init__(self, handle: SubscriptionHandle, callback: CheckinCallback):
        self.handle = handle
        self.callback = callback
        self.queue: asyncio.Queue = asyncio.Queue()
        self.task = asyncio.create_task(self._dispatch())

    async def _dispatch(self) -> None:
        # One consumer per queue: callbacks of a subscription never overlap
        while True:
            event = await self.queue.get()
            try:
                await _invoke(self.callback, event, self.handle)
            finally:
                self.queue.task_done()


class InMemoryPresenceFeed(PresenceFeed):
    def __init__(self):
        self._subscriptions: Dict[str, _LocalSubscription] = {}

    async def subscribe(self, session_id: str, on_checkin: CheckinCallback) -> SubscriptionHandle:
        handle = SubscriptionHandle(id=str(uuid.uuid4()), session_id=session_id)
        self._subscriptions[handle.id] = _LocalSubscription(handle, on_checkin)
        logger.debug("Presence subscription opened", extra={"session_id": session_id, "subscription_id": handle.id})
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        subscription = self._subscriptions.pop(handle.id, None)
        if subscription is None:
            return
        subscription.task.cancel()
        try:
            await subscription.task
        except asyncio.CancelledError:
            pass
        logger.debug("Presence subscription closed", extra={"session_id": handle.session_id, "subscription_id": handle.id})

    async def publish(self, record) -> None:
        event = checkin_event(record)
        for subscription in list(self._subscriptions.values()):
            if subscription.handle.session_id == record.session_id:
                subscription.queue.put_nowait(event)

    async def wait_idle(self) -> None:
        """Block until every queued event has been handed to its callback"""
        for subscription in list(self._subscriptions.values()):
            await subscription.queue.join()

    async def close(self) -> None:
        for subscription in list(self._subscriptions.values()):
            await self.unsubscribe(subscription.handle)


class RedisPresenceFeed(PresenceFeed):
    """
    Feed backed by Redis pub/sub, for deployments where the check-in endpoint
    and the teacher's WebSocket are served by different processes.
    """

    def __init__(self, redis: aioredis.Redis):
        self.redis = redis
        self._listeners: Dict[str, asyncio.Task] = {}
        self._pubsubs: Dict[str, Any] = {}

    async def subscribe(self, session_id: str, on_checkin: CheckinCallback) -> SubscriptionHandle:
        handle = SubscriptionHandle(id=str(uuid.uuid4()), session_id=session_id)
        pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(channel_for(session_id))
        self._pubsubs[handle.id] = pubsub
        self._listeners[handle.id] = asyncio.create_task(self._listen(handle, pubsub, on_checkin))
        return handle

    async def _listen(self, handle: SubscriptionHandle, pubsub, callback: CheckinCallback) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    event = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning(
                        "Discarding malformed presence event",
                        extra={"session_id": handle.session_id, "subscription_id": handle.id}
                    )
                    continue
                await _invoke(callback, event, handle)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(
                "Presence listener stopped",
                extra={"session_id": handle.session_id, "subscription_id": handle.id}
            )

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        task = self._listeners.pop(handle.id, None)
        pubsub = self._pubsubs.pop(handle.id, None)
        try:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception:
                    logger.exception(
                        "Presence listener failed",
                        extra={"session_id": handle.session_id, "subscription_id": handle.id}
                    )
        finally:
            if pubsub is not None:
                try:
                    await pubsub.unsubscribe()
                except Exception as e:
                    logger.warning(
                        f"Could not unsubscribe from presence channel: {e}",
                        extra={"session_id": handle.session_id, "subscription_id": handle.id}
                    )
                await pubsub.aclose()

    async def publish(self, record) -> None:
        await self.redis.publish(channel_for(record.session_id), json.dumps(checkin_event(record)))

    async def close(self) -> None:
        for subscription_id in list(self._listeners):
            await self.unsubscribe(SubscriptionHandle(id=subscription_id, session_id=""))


def build_presence_feed(backend: str, redis: Optional[aioredis.Redis] = None) -> PresenceFeed:
    if backend == "redis":
        if redis is None:
            raise ValueError("Redis presence backend requires a Redis client")
        return RedisPresenceFeed(redis)
    return InMemoryPresenceFeed()
