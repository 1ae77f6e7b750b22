"""
Unit tests for Celery tasks.
"""
import datetime
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from celery.exceptions import Retry
from django.db import DatabaseError
from django.utils import timezone

from leads.exceptions import DeletionExecutionError
from leads.models import Endpoint, LeadAnalytics, ScheduledDeletionJob
from leads.services.contacts import find_or_create_contact
from leads.services.lead_store import create_lead, update_lead_status
from leads.services.lifecycle import soft_delete_endpoint
from leads.tasks import execute_scheduled_deletion, refresh_lead_analytics, sweep_pending_deletions


@pytest.mark.django_db
class TestExecuteScheduledDeletion:
    """Tests for the event-driven deletion task."""

    def test_due_job_is_executed(self, endpoint):
        """Test the task executes a due job."""
        scheduled = soft_delete_endpoint(endpoint.endpoint_id, now=timezone.now() - timedelta(hours=25))

        assert execute_scheduled_deletion(scheduled.job_id, endpoint.endpoint_id) == 'completed'
        assert not Endpoint.objects.filter(endpoint_id=endpoint.endpoint_id).exists()

    def test_early_delivery_is_acknowledged(self, endpoint):
        """Test an early delivery is acknowledged without deleting."""
        scheduled = soft_delete_endpoint(endpoint.endpoint_id)

        assert execute_scheduled_deletion(scheduled.job_id, endpoint.endpoint_id) == 'skipped'
        assert ScheduledDeletionJob.objects.get(job_id=scheduled.job_id).status == 'pending'

    def test_failure_is_raised_for_redelivery(self, endpoint):
        """Test a failed deletion is raised so the message is redelivered."""
        scheduled = soft_delete_endpoint(endpoint.endpoint_id, now=timezone.now() - timedelta(hours=25))

        with patch('leads.models.Endpoint.delete', side_effect=DatabaseError('locked')):
            with pytest.raises(DeletionExecutionError):
                execute_scheduled_deletion(scheduled.job_id, endpoint.endpoint_id)

        assert ScheduledDeletionJob.objects.get(job_id=scheduled.job_id).status == 'failed'

    def test_retry_policy_reads_current_settings(self, endpoint, settings):
        """Test a failed deletion is retried with the delay and attempts configured at call time."""
        settings.ENDPOINT_DELETION_MAX_ATTEMPTS = 5
        settings.ENDPOINT_DELETION_RETRY_DELAY_SECONDS = 60
        scheduled = soft_delete_endpoint(endpoint.endpoint_id, now=timezone.now() - timedelta(hours=25))

        with patch('leads.models.Endpoint.delete', side_effect=DatabaseError('locked')), \
                patch.object(execute_scheduled_deletion, 'retry', return_value=Retry()) as mock_retry:
            with pytest.raises(Retry):
                execute_scheduled_deletion(scheduled.job_id, endpoint.endpoint_id)

        kwargs = mock_retry.call_args.kwargs
        assert kwargs['countdown'] == 60
        assert kwargs['max_retries'] == 4
        assert isinstance(kwargs['exc'], DeletionExecutionError)


@pytest.mark.django_db
class TestSweepTask:

    def test_sweep_returns_tally(self, endpoint):
        """Test the sweep task returns its tally."""
        soft_delete_endpoint(endpoint.endpoint_id, now=timezone.now() - timedelta(hours=30))

        assert sweep_pending_deletions() == {'processed': 1, 'failed': 0, 'skipped': 0}

    def test_sweep_is_scheduled_hourly(self):
        """Test the sweep is registered with Celery beat."""
        from lead_router import settings as project_settings

        entry = project_settings.CELERY_BEAT_SCHEDULE['sweep-pending-endpoint-deletions']
        assert entry['task'] == 'leads.tasks.sweep_pending_deletions'


@pytest.mark.django_db
class TestRefreshLeadAnalytics:
    """Tests for the daily rollup task."""

    def test_rollup_counts_and_revenue(self, endpoint):
        """Test the rollup counts leads, conversions and revenue."""
        contact, _ = find_or_create_contact(endpoint.endpoint_id, '+12145550147')
        won = create_lead(contact.id, {'endpoint_id': endpoint.endpoint_id, 'revenue_potential': Decimal('2500')})
        create_lead(contact.id, {'endpoint_id': endpoint.endpoint_id, 'revenue_potential': Decimal('500')})
        update_lead_status(won.id, 'converted')
        day = timezone.localdate().isoformat()

        result = refresh_lead_analytics(endpoint.endpoint_id, day)

        assert result == {'endpoint_id': endpoint.endpoint_id, 'date': day, 'total_leads': 2}
        row = LeadAnalytics.objects.get(endpoint_id=endpoint.endpoint_id, date=datetime.date.fromisoformat(day))
        assert row.converted_leads == 1
        assert row.conversion_rate == 50.0
        assert row.total_revenue == Decimal('3000.00')

    def test_rerun_updates_the_same_row(self, endpoint):
        """Test rerunning the rollup updates the same row."""
        day = timezone.localdate().isoformat()
        refresh_lead_analytics(endpoint.endpoint_id, day)
        refresh_lead_analytics(endpoint.endpoint_id, day)

        assert LeadAnalytics.objects.filter(endpoint_id=endpoint.endpoint_id).count() == 1
