"""Task queue initialisation."""

from hostledger.tasks.queue import celery_app, get_task_queue, register_task

# Import job definitions so they are registered with the queue when the package loads.
from hostledger.tasks import jobs as _jobs  # noqa: F401

__all__ = ["get_task_queue", "register_task", "celery_app"]
