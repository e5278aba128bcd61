import os
from datetime import timedelta

from celery import Celery


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


broker_url = _get_env(
    "CELERY_BROKER_URL",
    _get_env("REDIS_URL", "redis://redis:6379/0"),
)
result_backend = _get_env("CELERY_RESULT_BACKEND", broker_url)

celery_app = Celery("maintenix", broker=broker_url, backend=result_backend)
celery_app.conf.update(
    timezone=_get_env("CELERY_TIMEZONE", "UTC"),
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_track_started=True,
    broker_connection_retry_on_startup=True,
    # una sola pasada a la vez por worker: el reparto justo asume un unico consumidor
    worker_prefetch_multiplier=1,
    beat_schedule={
        "process-import-jobs": {
            "task": "maintenix.tasks.process_import_jobs",
            "schedule": timedelta(minutes=int(_get_env("IMPORT_SCHEDULER_MINUTES", "2"))),
        },
        "reset-stuck-import-jobs": {
            "task": "maintenix.tasks.reset_stuck_import_jobs",
            "schedule": timedelta(minutes=int(_get_env("STUCK_JOBS_SWEEP_MINUTES", "5"))),
        },
    },
)

celery_app.autodiscover_tasks(["maintenix"])
