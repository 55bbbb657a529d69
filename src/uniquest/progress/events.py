"""Redis pub/sub broadcast of progress events for real-time consumers."""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)

LEVEL_UP_CHANNEL = "pubsub:level_up"
ACHIEVEMENT_UNLOCKED_CHANNEL = "pubsub:achievement_unlocked"
QUEST_COMPLETED_CHANNEL = "pubsub:quest_completed"


async def publish_event(redis: object | None, channel: str, payload: dict) -> None:
    """Publish a JSON payload; a missing or failing Redis never fails the request."""
    if redis is None:
        return
    try:
        await redis.publish(channel, json.dumps(payload))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish %s event", channel, exc_info=True)
