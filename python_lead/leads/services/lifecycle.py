"""
Endpoint lifecycle manager: soft delete, forced delete and restore.

States are ``active`` (or ``inactive``), ``soft_deleted`` and permanently
deleted (row gone). Permanent deletion after the grace period belongs to the
deletion executor; this module only schedules it.
"""
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from kombu.exceptions import OperationalError

from leads.exceptions import Conflict, NotFound, WindowExpired
from leads.models import DeletionEvent, Endpoint, ScheduledDeletionJob
from leads.tasks import execute_scheduled_deletion

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = 'system'


def grace_period() -> timedelta:
    return timedelta(hours=getattr(settings, 'ENDPOINT_DELETION_GRACE_HOURS', 24))


@dataclass
class SoftDeleteResult:
    endpoint_id: str
    forced: bool
    deleted_at: datetime
    job_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None


@dataclass
class RestoreResult:
    endpoint_id: str
    restored_at: datetime


def _lock_endpoint(endpoint_id: str) -> Endpoint:
    endpoint = Endpoint.objects.select_for_update().filter(endpoint_id=endpoint_id).first()
    if endpoint is None:
        raise NotFound(f"Endpoint {endpoint_id} not found")
    return endpoint


def _enqueue_deletion(job_id: str, endpoint_id: str, scheduled_at: datetime) -> None:
    """Emit the delayed trigger; the hourly sweep covers a broker outage."""
    countdown = max(0, math.ceil((scheduled_at - timezone.now()).total_seconds()))
    try:
        execute_scheduled_deletion.apply_async(args=(job_id, endpoint_id), countdown=countdown)
    except OperationalError as e:
        logger.error(
            f"Failed to queue deletion job {job_id} for {endpoint_id}, "
            f"leaving it to the deletion sweep: {e}"
        )
        return
    logger.info(f"Queued deletion for endpoint {endpoint_id} with {countdown}s delay (job: {job_id})")


def soft_delete_endpoint(
    endpoint_id: str,
    reason: Optional[str] = None,
    actor: str = DEFAULT_ACTOR,
    force: bool = False,
    now: Optional[datetime] = None,
) -> SoftDeleteResult:
    """
    Soft-delete an endpoint and schedule its permanent deletion.

    With ``force`` the endpoint row is removed immediately from any state
    and any open deletion job is closed. Leads and contacts are never touched.

    Raises:
        NotFound: If the endpoint does not exist
        Conflict: If it is already soft-deleted and ``force`` is not set
    """
    now = now or timezone.now()

    with transaction.atomic():
        endpoint = _lock_endpoint(endpoint_id)

        if force:
            return _force_delete(endpoint, reason, actor, now)

        if endpoint.is_soft_deleted:
            raise Conflict(
                f"Endpoint {endpoint_id} is already scheduled for deletion",
                current_state=endpoint.lifecycle_state,
                job_id=endpoint.deletion_job_id,
                scheduled_permanent_deletion_at=(
                    endpoint.scheduled_permanent_deletion_at.isoformat()
                    if endpoint.scheduled_permanent_deletion_at else None
                ),
            )

        scheduled_at = now + grace_period()
        job_id = f"del_{uuid.uuid4().hex}"

        endpoint.deleted_at = now
        endpoint.scheduled_permanent_deletion_at = scheduled_at
        endpoint.deletion_reason = reason
        endpoint.deleted_by = actor
        endpoint.deletion_job_id = job_id
        endpoint.is_active = False
        endpoint.save()

        ScheduledDeletionJob.objects.create(
            job_id=job_id,
            endpoint_id=endpoint.endpoint_id,
            endpoint_name=endpoint.name,
            execute_at=scheduled_at,
            max_attempts=getattr(settings, 'ENDPOINT_DELETION_MAX_ATTEMPTS', 3),
            triggered_by=actor,
        )
        DeletionEvent.objects.create(
            endpoint_id=endpoint.endpoint_id,
            event_type=DeletionEvent.EventType.SOFT_DELETE,
            actor=actor,
            reason=reason,
            job_id=job_id,
            metadata={
                'scheduled_at': scheduled_at.isoformat(),
                'grace_hours': grace_period().total_seconds() / 3600,
                'endpoint_name': endpoint.name,
            },
        )
        transaction.on_commit(lambda: _enqueue_deletion(job_id, endpoint_id, scheduled_at))

    logger.info(
        f"Endpoint {endpoint_id} soft-deleted by {actor}, "
        f"permanent deletion scheduled at {scheduled_at.isoformat()} (job {job_id})"
    )
    return SoftDeleteResult(
        endpoint_id=endpoint_id,
        forced=False,
        deleted_at=now,
        job_id=job_id,
        scheduled_at=scheduled_at,
    )


def _force_delete(endpoint: Endpoint, reason: Optional[str], actor: str, now: datetime) -> SoftDeleteResult:
    previous_state = endpoint.lifecycle_state
    closed = ScheduledDeletionJob.objects.filter(
        endpoint_id=endpoint.endpoint_id,
        status__in=ScheduledDeletionJob.OPEN_STATUSES,
    ).update(
        status=ScheduledDeletionJob.Status.COMPLETED,
        completed_at=now,
        error_message='Superseded by forced deletion',
        updated_at=now,
    )
    DeletionEvent.objects.create(
        endpoint_id=endpoint.endpoint_id,
        event_type=DeletionEvent.EventType.FORCE_DELETE,
        actor=actor,
        reason=reason,
        job_id=endpoint.deletion_job_id,
        metadata={
            'previous_state': previous_state,
            'closed_jobs': closed,
            'endpoint_name': endpoint.name,
        },
    )
    endpoint.delete()

    logger.warning(f"Endpoint {endpoint.endpoint_id} force-deleted by {actor} (was {previous_state})")
    return SoftDeleteResult(endpoint_id=endpoint.endpoint_id, forced=True, deleted_at=now)


def restore_endpoint(endpoint_id: str, actor: str = DEFAULT_ACTOR, now: Optional[datetime] = None) -> RestoreResult:
    """
    Bring a soft-deleted endpoint back while the grace period is running.

    Raises:
        NotFound: If the endpoint does not exist or is not soft-deleted
        WindowExpired: If the grace period has elapsed or the executor
            already claimed the deletion
    """
    now = now or timezone.now()

    with transaction.atomic():
        endpoint = Endpoint.objects.select_for_update().filter(endpoint_id=endpoint_id).first()
        if endpoint is None or not endpoint.is_soft_deleted:
            raise NotFound(f"Endpoint {endpoint_id} is not scheduled for deletion")

        scheduled_at = endpoint.scheduled_permanent_deletion_at
        if scheduled_at is not None and now >= scheduled_at:
            raise WindowExpired(
                f"Restore window for endpoint {endpoint_id} has expired",
                scheduled_permanent_deletion_at=scheduled_at.isoformat(),
            )

        job_id = endpoint.deletion_job_id
        if job_id:
            cancelled = ScheduledDeletionJob.objects.filter(
                job_id=job_id,
                status__in=ScheduledDeletionJob.OPEN_STATUSES,
            ).update(status=ScheduledDeletionJob.Status.CANCELLED, updated_at=now)
            if not cancelled and ScheduledDeletionJob.objects.filter(
                job_id=job_id,
                status=ScheduledDeletionJob.Status.PROCESSING,
            ).exists():
                raise WindowExpired(f"Permanent deletion of endpoint {endpoint_id} is already in progress")

        endpoint.deleted_at = None
        endpoint.scheduled_permanent_deletion_at = None
        endpoint.deletion_reason = None
        endpoint.deleted_by = None
        endpoint.deletion_job_id = None
        endpoint.is_active = True
        endpoint.save()

        DeletionEvent.objects.create(
            endpoint_id=endpoint_id,
            event_type=DeletionEvent.EventType.RESTORE,
            actor=actor,
            job_id=job_id,
            metadata={'restored_at': now.isoformat(), 'was_scheduled_for': scheduled_at.isoformat() if scheduled_at else None},
        )

    logger.info(f"Endpoint {endpoint_id} restored by {actor}, deletion job {job_id} cancelled")
    return RestoreResult(endpoint_id=endpoint_id, restored_at=now)


def list_soft_deleted_endpoints(now: Optional[datetime] = None) -> List[dict]:
    """Soft-deleted endpoints with their job state, soonest deletion first."""
    now = now or timezone.now()
    endpoints = list(Endpoint.objects.soft_deleted().order_by('scheduled_permanent_deletion_at', 'id'))
    jobs = ScheduledDeletionJob.objects.in_bulk(
        [e.deletion_job_id for e in endpoints if e.deletion_job_id],
        field_name='job_id',
    )

    listing = []
    for endpoint in endpoints:
        job = jobs.get(endpoint.deletion_job_id)
        scheduled_at = endpoint.scheduled_permanent_deletion_at
        remaining = (scheduled_at - now).total_seconds() if scheduled_at else 0
        job_status = job.status if job else None
        listing.append({
            'endpoint_id': endpoint.endpoint_id,
            'name': endpoint.name,
            'deleted_at': endpoint.deleted_at,
            'deleted_by': endpoint.deleted_by,
            'deletion_reason': endpoint.deletion_reason,
            'scheduled_permanent_deletion_at': scheduled_at,
            'job_id': endpoint.deletion_job_id,
            'job_status': job_status,
            'attempts': job.attempts if job else 0,
            'can_restore': remaining > 0 and job_status != ScheduledDeletionJob.Status.PROCESSING,
            'seconds_until_deletion': max(0, int(remaining)),
        })
    return listing
