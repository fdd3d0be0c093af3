"""Celery application configuration."""
from celery import Celery

from ingestion.config import get_settings

settings = get_settings()

celery_app = Celery(
    "foreko_ingestion",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["ingestion.tasks.pipeline_tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)
