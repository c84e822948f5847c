"""
Celery Configuration

Configures Celery with Flask integration, Redis broker, task routing and
the beat schedule for the expiration sweep.
"""

import os

from celery import Celery
from kombu import Queue

SWEEP_TASK_NAME = "tasks.run_expiration_sweep"


class CeleryConfig:
    """Celery configuration settings."""

    # Broker settings
    broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")

    # Task settings
    task_serializer = "json"
    accept_content = ["json"]
    result_serializer = "json"
    timezone = "UTC"
    enable_utc = True

    # Worker settings
    worker_prefetch_multiplier = 1
    task_acks_late = True
    worker_max_tasks_per_child = 50

    # Task routing
    task_routes = {
        SWEEP_TASK_NAME: {"queue": "sweep_queue"},
    }

    # Queue definitions
    task_default_queue = "default"
    task_queues = (
        Queue("default", routing_key="default"),
        Queue("sweep_queue", routing_key="sweep"),
    )

    # Beat schedule for periodic tasks
    beat_schedule = {
        "run-expiration-sweep": {
            "task": SWEEP_TASK_NAME,
            "schedule": float(os.getenv("SWEEP_INTERVAL_SECONDS", 3600)),
        },
    }

    # One sweep must finish well within its own period
    task_soft_time_limit = int(os.getenv("CELERY_TASK_SOFT_TIME_LIMIT", 1500))
    task_time_limit = int(os.getenv("CELERY_TASK_TIME_LIMIT", 1800))

    # Result backend settings
    result_expires = 86400

    worker_concurrency = int(os.getenv("CELERY_WORKER_CONCURRENCY", 2))


def make_celery(app):
    """
    Create Celery instance with Flask app context.

    Args:
        app: Flask application instance

    Returns:
        Configured Celery instance
    """
    celery = Celery(
        app.import_name,
        backend=CeleryConfig.result_backend,
        broker=CeleryConfig.broker_url,
    )

    # Update Celery config from our config class
    celery.config_from_object(CeleryConfig)

    # Ensure tasks run within Flask app context
    class ContextTask(celery.Task):
        """Make celery tasks work with Flask app context."""

        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = ContextTask
    return celery
