"""RQ worker that applies bounce actions off the webhook request path."""
from __future__ import annotations

from typing import Any

import redis
from rq import Queue, Worker

from bounce_service.core.config import settings
from bounce_service.db import models
from bounce_service.db.session import session_scope
from bounce_service.services.bounce_recorder import BounceRecorder
from bounce_service.utils.logger import configure_logging, logger

QUEUE_NAME = "bounces"

_bounce_queue: Any | None = None


def _get_queue() -> Queue:
    global _bounce_queue
    if _bounce_queue is None:
        connection = redis.Redis.from_url(settings.redis_url)
        _bounce_queue = Queue(QUEUE_NAME, connection=connection)
    return _bounce_queue


def process_bounce_job(*, bounce_id: int) -> str | None:
    """Background job that records a stored bounce against its subscriber."""

    with session_scope() as db:
        bounce = db.get(models.Bounce, bounce_id)
        if bounce is None:
            logger.warning("Bounce %s no longer exists; skipping", bounce_id)
            return None
        return BounceRecorder().record(db, bounce)


def enqueue_bounce_job(*, bounce_id: int):
    """Helper for the webhook route to enqueue a recording job."""

    queue = _get_queue()
    job = queue.enqueue(process_bounce_job, kwargs={"bounce_id": bounce_id})
    logger.debug("Enqueued bounce %s with job id %s", bounce_id, job.id)
    return job


def run_worker() -> None:
    """Entry point called by `python -m bounce_service.queue.worker`."""

    configure_logging()
    queue = _get_queue()
    worker = Worker([queue], connection=queue.connection)
    worker.work()


if __name__ == "__main__":  # pragma: no cover - manual execution
    run_worker()
