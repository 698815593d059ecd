"""Job progress over Redis pub/sub."""

import json
import logging

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

PROGRESS_CHANNEL_PREFIX = "progress:"


def progress_channel(job_id: str) -> str:
    return f"{PROGRESS_CHANNEL_PREFIX}{job_id}"


class ProgressPublisher:
    """Publishes ``{job_id, progress, step, message}`` for each pipeline stage."""

    def __init__(self, redis_client: Redis):
        self.redis_client = redis_client

    async def publish_progress(self, job_id: str, progress: int, step: str, message: str) -> int:
        """Publish one update; returns the number of subscribers that received it."""
        payload = {
            "job_id": job_id,
            "progress": max(0, min(100, int(progress))),
            "step": step,
            "message": message,
        }
        receivers = await self.redis_client.publish(progress_channel(job_id), json.dumps(payload))
        logger.debug(f"[progress] {job_id} {step} {payload['progress']}%", extra={"job_id": job_id, "step": step})
        return receivers
