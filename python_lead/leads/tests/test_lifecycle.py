"""
Unit tests for the endpoint lifecycle manager.
"""
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone
from kombu.exceptions import OperationalError

from leads.exceptions import Conflict, NotFound, WindowExpired
from leads.models import DeletionEvent, Endpoint, ForwardingRule, Lead, ScheduledDeletionJob
from leads.services.contacts import find_or_create_contact
from leads.services.lead_store import create_lead
from leads.services.lifecycle import (
    list_soft_deleted_endpoints,
    restore_endpoint,
    soft_delete_endpoint,
)

ENQUEUE = 'leads.services.lifecycle.execute_scheduled_deletion.apply_async'


@pytest.mark.django_db
class TestSoftDelete:
    """Tests for soft_delete_endpoint."""

    def test_marks_endpoint_and_schedules_job(self, endpoint):
        """Test a soft delete marks the endpoint and creates a pending job."""
        now = timezone.now()

        result = soft_delete_endpoint(endpoint.endpoint_id, reason='Campaign ended', actor='ops-1', now=now)

        assert result.forced is False
        assert result.scheduled_at == now + timedelta(hours=24)
        endpoint.refresh_from_db()
        assert endpoint.lifecycle_state == 'soft_deleted'
        assert endpoint.is_active is False
        assert endpoint.deleted_by == 'ops-1'
        assert endpoint.deletion_reason == 'Campaign ended'
        assert endpoint.deletion_job_id == result.job_id

        job = ScheduledDeletionJob.objects.get(job_id=result.job_id)
        assert job.status == ScheduledDeletionJob.Status.PENDING
        assert job.execute_at == result.scheduled_at
        assert job.max_attempts == 3
        event = DeletionEvent.objects.get(event_type=DeletionEvent.EventType.SOFT_DELETE)
        assert event.actor == 'ops-1'
        assert event.job_id == result.job_id

    def test_trigger_is_queued_after_commit(self, endpoint, django_capture_on_commit_callbacks):
        """Test the delayed trigger is queued after commit with the remaining delay."""
        with patch(ENQUEUE) as mock_apply:
            with django_capture_on_commit_callbacks(execute=True) as callbacks:
                result = soft_delete_endpoint(endpoint.endpoint_id)

        assert len(callbacks) == 1
        mock_apply.assert_called_once()
        assert mock_apply.call_args.kwargs['args'] == (result.job_id, endpoint.endpoint_id)
        assert 86390 <= mock_apply.call_args.kwargs['countdown'] <= 86400

    def test_early_delivery_is_a_no_op(self, endpoint, django_capture_on_commit_callbacks):
        """Test a trigger delivered early leaves the job pending."""
        # Eager mode runs the delayed trigger immediately; the job is not due yet
        with django_capture_on_commit_callbacks(execute=True):
            result = soft_delete_endpoint(endpoint.endpoint_id)

        assert ScheduledDeletionJob.objects.get(job_id=result.job_id).status == 'pending'
        assert Endpoint.objects.filter(endpoint_id=endpoint.endpoint_id).exists()

    def test_broker_outage_does_not_fail_the_delete(self, endpoint, django_capture_on_commit_callbacks):
        """Test a broker outage is logged and the soft delete stands."""
        with patch(ENQUEUE, side_effect=OperationalError('broker down')):
            with django_capture_on_commit_callbacks(execute=True):
                result = soft_delete_endpoint(endpoint.endpoint_id)

        assert ScheduledDeletionJob.objects.filter(job_id=result.job_id).exists()

    def test_second_soft_delete_conflicts(self, endpoint):
        """Test soft-deleting twice is a Conflict."""
        first = soft_delete_endpoint(endpoint.endpoint_id)

        with pytest.raises(Conflict) as exc_info:
            soft_delete_endpoint(endpoint.endpoint_id)

        assert exc_info.value.details['current_state'] == 'soft_deleted'
        assert exc_info.value.details['job_id'] == first.job_id
        assert ScheduledDeletionJob.objects.count() == 1

    def test_unknown_endpoint_is_not_found(self, db):
        """Test soft-deleting an unknown endpoint is NotFound."""
        with pytest.raises(NotFound):
            soft_delete_endpoint('ws_cal_solar_999')


@pytest.mark.django_db
class TestForceDelete:

    def test_force_removes_endpoint_and_keeps_leads(self, forwarding_endpoint):
        """Test a forced delete removes the row immediately and keeps leads."""
        contact, _ = find_or_create_contact(forwarding_endpoint.endpoint_id, '+12145550147')
        lead = create_lead(contact.id, {'endpoint_id': forwarding_endpoint.endpoint_id})

        result = soft_delete_endpoint(forwarding_endpoint.endpoint_id, actor='ops-1', force=True)

        assert result.forced is True
        assert not Endpoint.objects.filter(endpoint_id=forwarding_endpoint.endpoint_id).exists()
        assert ForwardingRule.objects.count() == 0
        assert Lead.objects.filter(pk=lead.id).exists()
        assert DeletionEvent.objects.get().event_type == DeletionEvent.EventType.FORCE_DELETE

    def test_force_closes_open_job(self, endpoint):
        """Test a forced delete closes the open deletion job."""
        scheduled = soft_delete_endpoint(endpoint.endpoint_id)

        soft_delete_endpoint(endpoint.endpoint_id, force=True)

        job = ScheduledDeletionJob.objects.get(job_id=scheduled.job_id)
        assert job.status == ScheduledDeletionJob.Status.COMPLETED
        assert job.error_message == 'Superseded by forced deletion'
        assert not Endpoint.objects.exists()


@pytest.mark.django_db
class TestRestore:
    """Tests for restore_endpoint."""

    def test_restore_within_grace_period(self, endpoint):
        """Test a restore within the grace period reactivates the endpoint."""
        scheduled = soft_delete_endpoint(endpoint.endpoint_id)

        result = restore_endpoint(endpoint.endpoint_id, actor='ops-2')

        assert result.endpoint_id == endpoint.endpoint_id
        endpoint.refresh_from_db()
        assert endpoint.lifecycle_state == 'active'
        assert endpoint.deleted_at is None
        assert endpoint.deletion_job_id is None
        job = ScheduledDeletionJob.objects.get(job_id=scheduled.job_id)
        assert job.status == ScheduledDeletionJob.Status.CANCELLED
        assert DeletionEvent.objects.filter(event_type=DeletionEvent.EventType.RESTORE, actor='ops-2').exists()

    def test_restore_after_window_expired(self, endpoint):
        """Test a restore after the grace period is WindowExpired."""
        scheduled = soft_delete_endpoint(endpoint.endpoint_id)

        with pytest.raises(WindowExpired):
            restore_endpoint(endpoint.endpoint_id, now=scheduled.scheduled_at + timedelta(seconds=1))

        endpoint.refresh_from_db()
        assert endpoint.is_soft_deleted

    def test_restore_while_executor_holds_the_job(self, endpoint):
        """Test a restore while the job is processing is WindowExpired."""
        scheduled = soft_delete_endpoint(endpoint.endpoint_id)
        ScheduledDeletionJob.objects.filter(job_id=scheduled.job_id).update(status='processing')

        with pytest.raises(WindowExpired):
            restore_endpoint(endpoint.endpoint_id)

    def test_restore_active_endpoint_is_not_found(self, endpoint):
        """Test restoring an active endpoint is NotFound."""
        with pytest.raises(NotFound):
            restore_endpoint(endpoint.endpoint_id)

    def test_soft_delete_again_after_restore(self, endpoint):
        """Test a restored endpoint can be soft-deleted again."""
        soft_delete_endpoint(endpoint.endpoint_id)
        restore_endpoint(endpoint.endpoint_id)

        again = soft_delete_endpoint(endpoint.endpoint_id)

        assert ScheduledDeletionJob.objects.filter(status='pending').get().job_id == again.job_id


@pytest.mark.django_db
class TestListSoftDeleted:

    def test_lists_with_job_state(self, endpoint):
        """Test the listing shows each endpoint with its job state."""
        now = timezone.now()
        scheduled = soft_delete_endpoint(endpoint.endpoint_id, now=now)

        listing = list_soft_deleted_endpoints(now=now + timedelta(hours=1))

        assert len(listing) == 1
        entry = listing[0]
        assert entry['endpoint_id'] == endpoint.endpoint_id
        assert entry['job_id'] == scheduled.job_id
        assert entry['job_status'] == 'pending'
        assert entry['can_restore'] is True
        assert entry['seconds_until_deletion'] == 23 * 3600

    def test_expired_entries_cannot_be_restored(self, endpoint):
        """Test expired entries are listed as not restorable."""
        scheduled = soft_delete_endpoint(endpoint.endpoint_id)

        entry = list_soft_deleted_endpoints(now=scheduled.scheduled_at + timedelta(minutes=5))[0]

        assert entry['can_restore'] is False
        assert entry['seconds_until_deletion'] == 0
