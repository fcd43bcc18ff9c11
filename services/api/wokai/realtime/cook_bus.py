import asyncio
import json
import logging
from datetime import datetime, timezone

from wokai.infra.redis_client import get_redis
from wokai.schemas import TimerCompletion

logger = logging.getLogger("wokai.cook_bus")

# Strong refs so in-flight publishes are not garbage collected
_pending: set[asyncio.Task] = set()


def channel_for_session(session_id: str) -> str:
    return f"wokai:cook:session:{session_id}"


async def publish_session_updated(session_id: str, updated_at_iso: str):
    r = await get_redis()
    payload = {"type": "session_updated", "session_id": session_id, "updated_at": updated_at_iso}
    await r.publish(channel_for_session(session_id), json.dumps(payload))


async def publish_timer_complete(completion: TimerCompletion):
    r = await get_redis()
    payload = {"type": "timer_complete", **completion.model_dump()}
    await r.publish(channel_for_session(completion.session_id), json.dumps(payload))


async def subscribe_session(session_id: str):
    r = await get_redis()
    pubsub = r.pubsub()
    await pubsub.subscribe(channel_for_session(session_id))
    return pubsub


def _log_publish_failure(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Failed to publish {task.get_name()}: {exc}")


def _running_loop():
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _track(task: asyncio.Task) -> None:
    _pending.add(task)
    task.add_done_callback(_log_publish_failure)


def notify_session_update(session_id: str) -> None:
    """Schedule a session_updated ping without blocking the caller."""
    loop = _running_loop()
    if loop is None:
        logger.debug(f"No running loop, skipping update ping for {session_id}")
        return
    updated_at = datetime.now(timezone.utc).isoformat()
    _track(loop.create_task(publish_session_updated(session_id, updated_at), name="session_updated"))


def notify_timer_complete(completion: TimerCompletion) -> None:
    """Schedule a timer_complete event; sent once per finished timer."""
    loop = _running_loop()
    if loop is None:
        logger.warning(f"No running loop, timer {completion.timer.id} completion not published")
        return
    _track(loop.create_task(publish_timer_complete(completion), name="timer_complete"))
