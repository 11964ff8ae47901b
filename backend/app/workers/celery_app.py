import logging
import sys

from celery import Celery
from celery.signals import setup_logging

from app.core.config import settings

celery_app = Celery(
    "secondopinion_workers",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.workers.tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=86400,  # 1 day
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)
celery_app.conf.broker_connection_retry_on_startup = True


@setup_logging.connect
def configure_logging(**kwargs):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
