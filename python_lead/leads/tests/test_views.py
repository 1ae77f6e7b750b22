"""
Unit tests for the Lead Router API views.
"""
from unittest.mock import patch

import httpx
import pytest
from rest_framework.test import APIClient

from leads.models import Endpoint, Lead, LeadStatusHistory, ScheduledDeletionJob
from leads.services.contacts import find_or_create_contact
from leads.services.lead_store import create_lead


@pytest.fixture
def client():
    return APIClient()


@pytest.fixture
def lead(endpoint):
    contact, _ = find_or_create_contact(endpoint.endpoint_id, '+12145550147')
    return create_lead(contact.id, {'endpoint_id': endpoint.endpoint_id})


@pytest.mark.django_db
class TestEndpointView:
    """Tests for /webhooks/<endpoint_id>/."""

    def test_health_check(self, client, endpoint):
        """Test GET returns the endpoint health check."""
        response = client.get('/webhooks/ws_cal_solar_001/')

        assert response.status_code == 200
        body = response.json()
        assert body['status'] == 'healthy'
        assert body['config']['region'] == 'cal'
        assert 'correlation_id' in body

    def test_successful_lead_submission(self, client, endpoint, valid_lead_payload):
        """Test POST stores a lead and returns 201 with ids."""
        response = client.post('/webhooks/ws_cal_solar_001/', valid_lead_payload, format='json')

        assert response.status_code == 201
        body = response.json()
        assert body['status'] == 'accepted'
        assert body['is_new_contact'] is True
        assert body['forwarding']['routing_method'] == 'disabled'
        assert Lead.objects.filter(pk=body['lead_id'], contact_id=body['contact_id']).exists()
        assert 'correlation_id' in body

    @patch('leads.services.delivery_client.httpx.post')
    def test_submission_reports_forwarding(self, mock_post, client, forwarding_endpoint, valid_lead_payload):
        """Test the response reports forwarding outcomes."""
        mock_post.return_value = httpx.Response(202, text='queued')

        response = client.post('/webhooks/ws_tex_roof_002/', valid_lead_payload, format='json')

        assert response.status_code == 201
        forwarding = response.json()['forwarding']
        assert forwarding['routing_method'] == 'auto'
        assert forwarding['forwarded_count'] == 1
        assert forwarding['deliveries'][0]['destination_id'] == 'ws_tex_roof_010'

    def test_invalid_endpoint_id_format(self, client, db, valid_lead_payload):
        """Test a malformed endpoint id returns 400."""
        response = client.post('/webhooks/not-an-endpoint/', valid_lead_payload, format='json')

        assert response.status_code == 400
        assert response.json()['error'] == 'validation_error'
        assert 'expected_format' in response.json()

    def test_unknown_endpoint_returns_404(self, client, db, valid_lead_payload):
        """Test an unknown endpoint returns 404."""
        response = client.post('/webhooks/ws_cal_solar_999/', valid_lead_payload, format='json')

        assert response.status_code == 404
        assert response.json()['error'] == 'not_found'

    def test_empty_payload_returns_400(self, client, endpoint):
        """Test an empty payload returns 400."""
        response = client.post('/webhooks/ws_cal_solar_001/', {}, format='json')

        assert response.status_code == 400

    def test_validation_failure_lists_missing_fields(self, client, endpoint):
        """Test a validation failure lists the missing fields."""
        response = client.post('/webhooks/ws_cal_solar_001/', {'first_name': 'Dana'}, format='json')

        assert response.status_code == 400
        body = response.json()
        assert body['reason'] == 'MISSING_REQUIRED_FIELD'
        assert body['missing_fields'] == ['last_name', 'phone']

    def test_malformed_json_returns_400(self, client, endpoint):
        """Test malformed JSON returns 400."""
        response = client.post('/webhooks/ws_cal_solar_001/', data='{"first_name": ', content_type='application/json')

        assert response.status_code == 400
        assert response.json()['error'] == 'malformed_json'

    def test_unexpected_error_returns_500(self, client, endpoint, valid_lead_payload):
        """Test an unexpected error returns 500 with a correlation id."""
        with patch('leads.views.intake.submit_lead', side_effect=RuntimeError('boom')):
            response = client.post('/webhooks/ws_cal_solar_001/', valid_lead_payload, format='json')

        assert response.status_code == 500
        assert response.json()['error'] == 'internal_server_error'
        assert 'correlation_id' in response.json()

    @patch('leads.services.delivery_client.httpx.post')
    def test_numeric_product_id_is_routed(self, mock_post, client, forwarding_endpoint, valid_lead_payload):
        """Test a product id sent as a JSON number is stored and routed as text."""
        mock_post.return_value = httpx.Response(200, text='ok')
        valid_lead_payload['productid'] = 42

        response = client.post('/webhooks/ws_tex_roof_002/', valid_lead_payload, format='json')

        assert response.status_code == 201
        body = response.json()
        assert body['forwarding']['routing_method'] == 'auto'
        assert body['forwarding']['deliveries'][0]['destination_id'] == 'ws_tex_roof_011'
        assert Lead.objects.get(pk=body['lead_id']).product_type == '42'

    def test_forwarding_crash_still_returns_ids(self, client, forwarding_endpoint, valid_lead_payload):
        """Test an unexpected forwarding error is reported while the lead is accepted."""
        with patch('leads.services.intake.forward_lead', side_effect=AttributeError('boom')):
            response = client.post('/webhooks/ws_tex_roof_002/', valid_lead_payload, format='json')

        assert response.status_code == 201
        body = response.json()
        assert body['forwarding']['routing_method'] == 'error'
        assert body['forwarding']['error'] == 'boom'
        assert Lead.objects.filter(pk=body['lead_id'], contact_id=body['contact_id']).exists()


@pytest.mark.django_db
class TestEndpointLifecycleViews:
    """Tests for delete, restore and the deleted listing."""

    def test_delete_schedules_permanent_deletion(self, client, endpoint):
        """Test DELETE soft-deletes and returns 202 with the job."""
        response = client.delete('/webhooks/ws_cal_solar_001/?reason=Campaign+ended', HTTP_X_USER_ID='ops-1')

        assert response.status_code == 202
        body = response.json()
        assert body['status'] == 'scheduled_for_deletion'
        job = ScheduledDeletionJob.objects.get(job_id=body['job_id'])
        assert job.triggered_by == 'ops-1'
        endpoint.refresh_from_db()
        assert endpoint.deletion_reason == 'Campaign ended'

    def test_second_delete_conflicts(self, client, endpoint):
        """Test a second DELETE returns 409."""
        client.delete('/webhooks/ws_cal_solar_001/')
        response = client.delete('/webhooks/ws_cal_solar_001/')

        assert response.status_code == 409
        assert response.json()['current_state'] == 'soft_deleted'

    def test_force_delete(self, client, endpoint):
        """Test a forced DELETE removes the endpoint with 200."""
        response = client.delete('/webhooks/ws_cal_solar_001/?force=true')

        assert response.status_code == 200
        assert response.json()['status'] == 'deleted'
        assert not Endpoint.objects.exists()

    def test_restore(self, client, endpoint):
        """Test POST restore reactivates a soft-deleted endpoint."""
        client.delete('/webhooks/ws_cal_solar_001/')
        response = client.post('/webhooks/ws_cal_solar_001/restore/')

        assert response.status_code == 200
        assert response.json()['status'] == 'restored'
        endpoint.refresh_from_db()
        assert endpoint.is_active

    def test_restore_active_endpoint_returns_404(self, client, endpoint):
        """Test restoring an active endpoint returns 404."""
        response = client.post('/webhooks/ws_cal_solar_001/restore/')

        assert response.status_code == 404

    def test_deleted_listing(self, client, endpoint):
        """Test the deleted listing shows soft-deleted endpoints."""
        client.delete('/webhooks/ws_cal_solar_001/')
        response = client.get('/webhooks/deleted/')

        assert response.status_code == 200
        body = response.json()
        assert body['count'] == 1
        assert body['endpoints'][0]['endpoint_id'] == 'ws_cal_solar_001'
        assert body['endpoints'][0]['can_restore'] is True


@pytest.mark.django_db
class TestAppointmentReceiveView:

    @patch('leads.services.delivery_client.httpx.post')
    def test_appointment_is_accepted(self, mock_post, client, workspace, appointment_payload):
        """Test an appointment is accepted and routed."""
        mock_post.return_value = httpx.Response(200, text='{}')

        response = client.post('/appointments/receive/', appointment_payload, format='json')

        assert response.status_code == 201
        body = response.json()
        assert body['routing_method'] == 'auto'
        assert body['matched_workspace_id'] == workspace.workspace_id
        assert body['forwarded'] is True

    def test_missing_appointment_date(self, client, db, appointment_payload):
        """Test an appointment without a date returns 400."""
        del appointment_payload['appointment_date']

        response = client.post('/appointments/receive/', appointment_payload, format='json')

        assert response.status_code == 400
        assert response.json()['reason'] == 'MISSING_REQUIRED_FIELD'


@pytest.mark.django_db
class TestLeadStatusViews:
    """Tests for lead status update and history."""

    def test_status_update(self, client, lead):
        """Test PUT status updates the lead and journals the actor."""
        response = client.put(
            f'/leads/{lead.id}/status/',
            {'status': 'contacted', 'reason': 'Left voicemail', 'priority': '2'},
            format='json',
            HTTP_X_USER_ID='agent-7',
        )

        assert response.status_code == 200
        body = response.json()
        assert (body['old_status'], body['new_status']) == ('new', 'contacted')
        entry = LeadStatusHistory.objects.get(lead=lead)
        assert entry.changed_by == 'agent-7'
        lead.refresh_from_db()
        assert lead.priority == 2

    def test_invalid_status(self, client, lead):
        """Test an unknown status returns 400 with the valid values."""
        response = client.put(f'/leads/{lead.id}/status/', {'status': 'archived'}, format='json')

        assert response.status_code == 400
        assert response.json()['error'] == 'invalid_status'
        assert 'converted' in response.json()['valid_statuses']

    def test_negative_priority_returns_400(self, client, lead):
        """Test a negative priority is rejected as a validation error."""
        response = client.put(f'/leads/{lead.id}/status/', {'status': 'contacted', 'priority': -1}, format='json')

        assert response.status_code == 400
        assert response.json()['error'] == 'validation_error'
        assert LeadStatusHistory.objects.filter(lead=lead).count() == 0

    def test_missing_status(self, client, lead):
        """Test a body without status returns 400."""
        response = client.put(f'/leads/{lead.id}/status/', {}, format='json')

        assert response.status_code == 400

    def test_unknown_lead(self, client, db):
        """Test updating an unknown lead returns 404."""
        response = client.put('/leads/1234567890/status/', {'status': 'contacted'}, format='json')

        assert response.status_code == 404

    def test_history(self, client, lead):
        """Test the history lists transitions oldest first."""
        client.put(f'/leads/{lead.id}/status/', {'status': 'contacted'}, format='json')
        client.put(f'/leads/{lead.id}/status/', {'status': 'qualified'}, format='json')

        response = client.get(f'/leads/{lead.id}/history/')

        assert response.status_code == 200
        history = response.json()['history']
        assert [h['new_status'] for h in history] == ['contacted', 'qualified']
