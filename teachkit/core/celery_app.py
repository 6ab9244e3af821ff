"""
Celery application: broker and result backend from settings.
Tasks are in teachkit.workers.tasks.
"""
from celery import Celery

from teachkit.core.config import settings

celery_app = Celery(
    "teachkit",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "teachkit.workers.tasks.generate_package",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # A generation spends a payment: never re-run it on worker loss
    task_acks_late=False,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=1800,
    result_expires=86400,
)

celery_app.conf.task_routes = {
    "teachkit.workers.tasks.generate_package.generate_package": {"queue": "generation"},
}
