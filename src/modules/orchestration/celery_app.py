"""
Celery application configuration.
Runs background lifecycle work such as replacement searches.
"""

import logging
from celery import Celery

from src.config import settings
from src.utils.context import set_correlation_id, clear_all_context

logger = logging.getLogger(__name__)

# Initialize Celery app
celery_app = Celery(
    "matching_engine",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "src.modules.orchestration.tasks",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,

    # Retry settings
    task_default_retry_delay=10,
    task_max_retries=3,

    # Result settings
    result_expires=3600,

    # Worker settings
    worker_prefetch_multiplier=4,
    worker_concurrency=4,

    # Queue settings
    task_default_queue="default",
    task_queues={
        "default": {
            "exchange": "default",
            "routing_key": "default",
        },
        "replacements": {
            "exchange": "replacements",
            "routing_key": "replacements",
        },
    },

    # Task routes
    task_routes={
        "find_replacement_provider": {"queue": "replacements"},
    },

    beat_schedule={
        "health-check-every-5-minutes": {
            "task": "health_check",
            "schedule": 300.0,  # 5 minutes
        },
    },
)


class BaseTask(celery_app.Task):
    """
    Base task with error handling, logging, and correlation ID propagation.

    The correlation_id kwarg is placed in context for the duration of the
    task so its logs line up with the request that queued it.
    """

    abstract = True
    autoretry_for = (Exception,)
    retry_backoff = True
    retry_backoff_max = 300
    retry_jitter = True

    def __call__(self, *args, **kwargs):
        correlation_id = kwargs.get('correlation_id')

        try:
            if correlation_id:
                set_correlation_id(correlation_id)
                logger.debug(
                    f"Task {self.name} starting with correlation_id: {correlation_id}",
                    extra={"task_id": self.request.id}
                )

            return super().__call__(*args, **kwargs)

        finally:
            clear_all_context()

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(
            f"Task {self.name}[{task_id}] failed: {exc}",
            extra={
                "event": "celery_task_failed",
                "task_name": self.name,
                "task_id": task_id,
                "exception_type": type(exc).__name__,
                "correlation_id": kwargs.get('correlation_id'),
                "retry_count": self.request.retries,
            }
        )

    def on_success(self, retval, task_id, args, kwargs):
        logger.info(
            f"Task {self.name}[{task_id}] completed",
            extra={
                "event": "celery_task_completed",
                "task_name": self.name,
                "task_id": task_id,
                "correlation_id": kwargs.get('correlation_id'),
            }
        )

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        logger.warning(
            f"Task {self.name}[{task_id}] retrying (attempt {self.request.retries + 1}): {exc}",
            extra={
                "event": "celery_task_retry",
                "task_name": self.name,
                "task_id": task_id,
                "correlation_id": kwargs.get('correlation_id'),
            }
        )
