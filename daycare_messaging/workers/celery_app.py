"""
Celery Application Configuration
"""
from celery import Celery

from daycare_messaging.core.config import settings

celery_app = Celery(
    "daycare_messaging",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["daycare_messaging.workers.tasks"]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="America/Sao_Paulo",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "retry-failed-emails-every-5-minutes": {
        "task": "daycare_messaging.workers.tasks.retry_failed_emails",
        "schedule": 300.0,
    },
    "retry-failed-whatsapp-every-5-minutes": {
        "task": "daycare_messaging.workers.tasks.retry_failed_whatsapp",
        "schedule": 300.0,
    },
    "check-email-health-every-15-minutes": {
        "task": "daycare_messaging.workers.tasks.check_email_health",
        "schedule": 900.0,
    },
}
