"""
Celery application: broker and result backend from settings.
Tasks are in settlement.workers.tasks (receipt delivery).
"""
from celery import Celery
from celery.signals import setup_logging

from settlement.core.config import settings
from settlement.core.logging import configure_logging

celery_app = Celery(
    "settlement",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "settlement.workers.tasks.email_receipt",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=300,
    result_expires=86400,
)

celery_app.conf.task_routes = {
    "settlement.workers.tasks.email_receipt.email_receipt": {"queue": "notifications"},
}


@setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    """Route worker logs through the JSON formatter."""
    configure_logging()
