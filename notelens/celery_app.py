"""
NoteLens - Celery Application Configuration
Handles asynchronous edit-session analysis
"""

import logging
from celery import Celery
from notelens.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

celery_app = Celery(
    "notelens",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "notelens.tasks.analysis",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.task_time_limit,
    task_soft_time_limit=settings.task_soft_time_limit,
    worker_prefetch_multiplier=settings.worker_prefetch_multiplier,
    worker_max_tasks_per_child=1000,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=settings.cache_ttl,
    task_always_eager=settings.celery_task_always_eager,
)

celery_app.conf.task_routes = {
    "notelens.tasks.analysis.*": {"queue": "analysis"},
}

logger.info(f"Celery configured (broker: {settings.celery_broker_url})")

if __name__ == "__main__":
    celery_app.start()
