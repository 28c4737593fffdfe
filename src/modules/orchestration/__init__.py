"""
Orchestration module

Celery application and tasks for background lifecycle work.
"""

from .celery_app import BaseTask, celery_app

__all__ = ["BaseTask", "celery_app"]
