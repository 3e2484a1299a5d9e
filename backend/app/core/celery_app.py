"""Celery application for background HLS packaging.

Only used when ``INGEST_ASYNC`` is enabled. Start a worker with::

    celery -A app.core.celery_app worker -Q ingest
"""

from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "community_market",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=86400,
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_routes={"ingest.*": {"queue": "ingest"}},
    # A long source can keep ffmpeg busy for a while. The soft limit lets the
    # task stop ffmpeg itself before the hard limit kills the pool process.
    task_soft_time_limit=settings.INGEST_TASK_SOFT_TIME_LIMIT,
    task_time_limit=settings.INGEST_TASK_SOFT_TIME_LIMIT + 120,
    # One transcode per worker process at a time
    worker_prefetch_multiplier=1,
    # Ack on receipt: a run lost with its worker is never redelivered
    task_acks_late=False,
    task_reject_on_worker_lost=False,
)

celery_app.autodiscover_tasks(["app.modules.ingest"])
