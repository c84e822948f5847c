"""
Expiration Sweep Task

Celery beat task that runs one expiration sweep.
Thin wrapper that delegates to the ExpirationSweeper application service.
"""

import logging

from celery_app import celery_app
from config.celery_config import SWEEP_TASK_NAME

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name=SWEEP_TASK_NAME)
def run_expiration_sweep(self):
    """
    Periodic task that deletes the blobs of expired files and marks them Deleted.

    Per-file failures are part of the returned summary. A failure to
    enumerate expired files, or a systemic outage part-way through, is
    re-raised so Celery records the run as failed.

    Returns:
        dict: SweepSummary.to_dict()
    """
    # Services only come from the DependencyContainer
    from celery_app import flask_app
    from application.expiration_sweeper import ExpirationSweeper, SweepAbortedError

    sweeper = flask_app.container.resolve(ExpirationSweeper)

    try:
        summary = sweeper.run()
    except SweepAbortedError as e:
        logger.error(f"Expiration sweep aborted: {e} (partial: {e.summary.counts()})")
        raise
    except Exception as e:
        logger.error(f"Expiration sweep failed: {e}", exc_info=True)
        raise

    return summary.to_dict()
