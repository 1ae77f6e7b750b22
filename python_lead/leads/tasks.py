"""
Celery tasks for scheduled endpoint deletion and lead analytics.
"""
import datetime
import logging

from celery import shared_task
from django.conf import settings

from leads.exceptions import DeletionExecutionError
from leads.services import analytics, deletion

logger = logging.getLogger(__name__)


def deletion_max_attempts() -> int:
    return getattr(settings, 'ENDPOINT_DELETION_MAX_ATTEMPTS', 3)


def deletion_retry_delay() -> int:
    return getattr(settings, 'ENDPOINT_DELETION_RETRY_DELAY_SECONDS', 300)


@shared_task(bind=True)
def execute_scheduled_deletion(self, job_id: str, endpoint_id: str = None):
    """
    Event-driven executor: delayed message emitted by a soft delete.

    A cancelled, completed or not-yet-due job is acknowledged as a no-op.
    A failed deletion is re-delivered after the configured delay until the
    configured number of attempts is used up; the first delivery counts as
    an attempt.

    Args:
        job_id: Scheduled deletion job to execute
        endpoint_id: Target endpoint, for logging only; the job row is authoritative
    """
    max_attempts = deletion_max_attempts()
    logger.info(
        f"Executing scheduled deletion job {job_id} for endpoint {endpoint_id} "
        f"(delivery {self.request.retries + 1}/{max_attempts})"
    )
    try:
        return deletion.execute_deletion(job_id, trigger=deletion.TRIGGER_QUEUE)
    except DeletionExecutionError as exc:
        raise self.retry(exc=exc, countdown=deletion_retry_delay(), max_retries=max_attempts - 1)


@shared_task
def sweep_pending_deletions():
    """Polling executor, scheduled hourly by Celery beat."""
    return deletion.sweep_pending_deletions()


@shared_task
def refresh_lead_analytics(endpoint_id: str, day: str):
    """
    Recompute the daily rollup for an endpoint.

    Args:
        endpoint_id: Receiving endpoint
        day: ISO date (YYYY-MM-DD)
    """
    row = analytics.refresh_lead_analytics(endpoint_id, datetime.date.fromisoformat(day))
    return {'endpoint_id': endpoint_id, 'date': day, 'total_leads': row.total_leads}
