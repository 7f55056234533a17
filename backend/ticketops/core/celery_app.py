from celery import Celery
from celery.schedules import crontab

from ticketops.core.config import settings

celery_app = Celery(
    "ticketops",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "ticketops.tasks.sla_tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
    result_expires=settings.CELERY_RESULT_EXPIRES,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
)

_every = f"*/{settings.SLA_CHECK_INTERVAL_MINUTES}"

celery_app.conf.beat_schedule = {
    "sla-breach-warnings": {
        "task": "ticketops.tasks.sla_tasks.send_breach_warnings_task",
        "schedule": crontab(minute=_every),
    },
    "sla-breach-check": {
        "task": "ticketops.tasks.sla_tasks.check_sla_breaches_task",
        "schedule": crontab(minute=_every),
    },
}
