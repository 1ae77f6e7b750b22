"""
Deletion executor for soft-deleted endpoints.

Both triggers, the delayed Celery message and the hourly beat sweep, go
through ``execute_deletion``. The job row decides: a job is only worked on
after a compare-and-set claim moves it to ``processing``, so a restore, a
second trigger or a re-delivered message always finds nothing to do.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from leads.exceptions import DeletionExecutionError
from leads.models import DeletionEvent, Endpoint, ScheduledDeletionJob

logger = logging.getLogger(__name__)

COMPLETED = 'completed'
SKIPPED = 'skipped'

TRIGGER_QUEUE = 'queue'
TRIGGER_CRON = 'cron'


@dataclass(frozen=True)
class PendingDeletion:
    endpoint_id: str
    job_id: str
    scheduled_at: datetime


def _claimable(queryset):
    return queryset.filter(
        status__in=ScheduledDeletionJob.OPEN_STATUSES,
        attempts__lt=F('max_attempts'),
    )


def list_pending_deletions(now: Optional[datetime] = None) -> Iterator[PendingDeletion]:
    """
    Yield deletions that are due: endpoint still soft-deleted, job open,
    execution time passed and attempts left.

    Each call runs a fresh query, so the sequence can be restarted.
    """
    now = now or timezone.now()
    soft_deleted = Endpoint.objects.soft_deleted().values('endpoint_id')
    jobs = _claimable(ScheduledDeletionJob.objects.all()).filter(
        execute_at__lte=now,
        endpoint_id__in=soft_deleted,
    ).order_by('execute_at', 'id')

    for job in jobs.iterator():
        yield PendingDeletion(endpoint_id=job.endpoint_id, job_id=job.job_id, scheduled_at=job.execute_at)


def _skip(job_id: str, why: str) -> str:
    logger.info(f"Deletion job {job_id} skipped: {why}")
    return SKIPPED


def execute_deletion(job_id: str, trigger: str = TRIGGER_QUEUE, now: Optional[datetime] = None) -> str:
    """
    Permanently delete the endpoint targeted by ``job_id``.

    A job that is missing, terminal, out of attempts or not yet due, or
    whose endpoint is no longer soft-deleted, is skipped without error.

    Args:
        job_id: Scheduled deletion job identifier
        trigger: ``queue`` or ``cron``, recorded on the audit event
        now: Clock override

    Returns:
        ``completed`` or ``skipped``

    Raises:
        DeletionExecutionError: When the deletion unit failed; the job is
            left ``failed`` with the error recorded
    """
    now = now or timezone.now()

    job = ScheduledDeletionJob.objects.filter(job_id=job_id).first()
    if job is None:
        return _skip(job_id, "no such job")
    if job.status not in ScheduledDeletionJob.OPEN_STATUSES:
        return _skip(job_id, f"job is {job.status}")
    if job.attempts >= job.max_attempts:
        return _skip(job_id, f"attempts exhausted ({job.attempts}/{job.max_attempts})")
    if now < job.execute_at:
        return _skip(job_id, f"not due until {job.execute_at.isoformat()}")

    endpoint = Endpoint.objects.filter(endpoint_id=job.endpoint_id).first()
    if endpoint is None or not endpoint.is_soft_deleted or endpoint.deletion_job_id != job.job_id:
        return _skip(job_id, f"endpoint {job.endpoint_id} is not soft-deleted under this job")

    claimed = _claimable(ScheduledDeletionJob.objects.filter(pk=job.pk)).update(
        status=ScheduledDeletionJob.Status.PROCESSING,
        attempts=F('attempts') + 1,
        updated_at=now,
    )
    if not claimed:
        return _skip(job_id, "claimed by another executor or cancelled")

    attempt = job.attempts + 1
    logger.info(f"Deletion job {job_id} claimed by {trigger} (attempt {attempt}/{job.max_attempts})")

    try:
        with transaction.atomic():
            target = Endpoint.objects.select_for_update().filter(
                endpoint_id=job.endpoint_id,
                deleted_at__isnull=False,
            ).first()
            if target is None:
                raise DeletionExecutionError(job_id, f"endpoint {job.endpoint_id} is no longer soft-deleted")

            DeletionEvent.objects.create(
                endpoint_id=job.endpoint_id,
                event_type=DeletionEvent.EventType.PERMANENT_DELETE,
                actor=f'{trigger}_system',
                reason='Automatic deletion after grace period',
                job_id=job_id,
                metadata={
                    'scheduled_at': job.execute_at.isoformat(),
                    'attempt': attempt,
                    'trigger': trigger,
                    'endpoint_name': target.name,
                },
            )
            target.delete()
            ScheduledDeletionJob.objects.filter(pk=job.pk).update(
                status=ScheduledDeletionJob.Status.COMPLETED,
                completed_at=now,
                error_message=None,
                updated_at=now,
            )
    except Exception as e:
        logger.error(f"Deletion job {job_id} for {job.endpoint_id} failed: {e}", exc_info=True)
        ScheduledDeletionJob.objects.filter(pk=job.pk).update(
            status=ScheduledDeletionJob.Status.FAILED,
            error_message=str(e),
            updated_at=now,
        )
        DeletionEvent.objects.create(
            endpoint_id=job.endpoint_id,
            event_type=DeletionEvent.EventType.DELETION_FAILED,
            actor=f'{trigger}_system',
            reason='Permanent deletion failed',
            job_id=job_id,
            metadata={'error': str(e), 'attempt': attempt, 'trigger': trigger},
        )
        if isinstance(e, DeletionExecutionError):
            raise
        raise DeletionExecutionError(job_id, str(e)) from e

    logger.info(f"Endpoint {job.endpoint_id} permanently deleted by {trigger} (job {job_id})")
    return COMPLETED


def sweep_pending_deletions(now: Optional[datetime] = None) -> dict:
    """
    Polling executor: run every due deletion once.

    Returns:
        Tally of ``processed``, ``failed`` and ``skipped`` jobs
    """
    now = now or timezone.now()
    tally = {'processed': 0, 'failed': 0, 'skipped': 0}

    # Snapshot first; the executor writes to the tables being queried.
    due = list(list_pending_deletions(now))
    logger.info(f"Deletion sweep found {len(due)} due job(s)")

    for pending in due:
        try:
            outcome = execute_deletion(pending.job_id, trigger=TRIGGER_CRON, now=now)
        except DeletionExecutionError as e:
            logger.error(f"Sweep: {e}")
            tally['failed'] += 1
            continue
        tally['processed' if outcome == COMPLETED else 'skipped'] += 1

    logger.info(
        f"Deletion sweep completed: {tally['processed']} processed, "
        f"{tally['failed']} failed, {tally['skipped']} skipped"
    )
    return tally
