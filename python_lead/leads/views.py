"""
API views for the Lead Router service.
"""
import logging
import uuid

from django.utils.dateparse import parse_datetime
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.exceptions import ParseError
from rest_framework.response import Response
from rest_framework.views import APIView

from leads.exceptions import LeadRouterError, ValidationError
from leads.services import appointments, intake, lead_store, lifecycle
from leads.services.validation import is_valid_endpoint_id

logger = logging.getLogger(__name__)

TRUTHY = ('1', 'true', 'yes')


def _actor(request) -> str:
    return request.headers.get('X-User-ID') or lifecycle.DEFAULT_ACTOR


def _require_endpoint_id(endpoint_id: str) -> None:
    if not is_valid_endpoint_id(endpoint_id):
        raise ValidationError(
            'Invalid endpoint ID format',
            expected_format='ws_[2-3 letter region]_[category]_[3 digit id]',
        )


def _json_body(request) -> dict:
    payload = request.data
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


@method_decorator(csrf_exempt, name='dispatch')
class LeadRouterView(APIView):
    """
    Base view: every response carries a correlation_id.

    ``LeadRouterError`` maps to its own status and code, malformed JSON to
    400 and anything else to 500.
    """

    def respond(self, request, operation):
        """
        Run ``operation(correlation_id)`` and render its ``(body, status)``.
        """
        correlation_id = str(uuid.uuid4())

        try:
            body, status_code = operation(correlation_id)

        except LeadRouterError as e:
            log = logger.error if e.status_code >= 500 else logger.warning
            log(
                f"{request.method} {request.path} failed: {e.code}: {e.message}, "
                f"correlation_id={correlation_id}"
            )
            body, status_code = e.as_response_body(), e.status_code

        except ParseError as e:
            logger.warning(
                f"Malformed JSON payload: {e}, "
                f"correlation_id={correlation_id}"
            )
            body = {'error': 'malformed_json', 'message': 'Request body must be valid JSON'}
            status_code = status.HTTP_400_BAD_REQUEST

        except Exception as e:
            logger.error(
                f"Error processing {request.method} {request.path}: {e}, "
                f"correlation_id={correlation_id}",
                exc_info=True
            )
            body = {'error': 'internal_server_error', 'message': 'Internal server error'}
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

        body['correlation_id'] = correlation_id
        return Response(body, status=status_code)


class EndpointView(LeadRouterView):
    """
    GET    /webhooks/<endpoint_id>/  health and configuration
    POST   /webhooks/<endpoint_id>/  submit a lead
    DELETE /webhooks/<endpoint_id>/  soft delete (``?force=true`` deletes now)
    """

    def get(self, request, endpoint_id):
        def operation(correlation_id):
            _require_endpoint_id(endpoint_id)
            return intake.check_endpoint(endpoint_id), status.HTTP_200_OK

        return self.respond(request, operation)

    def post(self, request, endpoint_id):
        def operation(correlation_id):
            _require_endpoint_id(endpoint_id)
            payload = _json_body(request)
            if not payload:
                raise ValidationError('Empty payload')

            result = intake.submit_lead(
                endpoint_id,
                payload,
                ip_address=request.META.get('HTTP_X_FORWARDED_FOR') or request.META.get('REMOTE_ADDR'),
                user_agent=request.META.get('HTTP_USER_AGENT'),
            )
            logger.info(
                f"Lead {result.lead.id} accepted on {endpoint_id}, "
                f"routing={result.forwarding.routing_method}, correlation_id={correlation_id}"
            )
            body = {'status': 'accepted', 'endpoint_id': endpoint_id}
            body.update(result.as_dict())
            return body, status.HTTP_201_CREATED

        return self.respond(request, operation)

    def delete(self, request, endpoint_id):
        def operation(correlation_id):
            _require_endpoint_id(endpoint_id)
            force = request.query_params.get('force', '').lower() in TRUTHY
            result = lifecycle.soft_delete_endpoint(
                endpoint_id,
                reason=request.query_params.get('reason') or None,
                actor=_actor(request),
                force=force,
            )
            if result.forced:
                return {
                    'status': 'deleted',
                    'endpoint_id': endpoint_id,
                    'deleted_at': result.deleted_at,
                }, status.HTTP_200_OK
            return {
                'status': 'scheduled_for_deletion',
                'endpoint_id': endpoint_id,
                'deleted_at': result.deleted_at,
                'job_id': result.job_id,
                'scheduled_at': result.scheduled_at,
            }, status.HTTP_202_ACCEPTED

        return self.respond(request, operation)


class EndpointRestoreView(LeadRouterView):
    """POST /webhooks/<endpoint_id>/restore/"""

    def post(self, request, endpoint_id):
        def operation(correlation_id):
            _require_endpoint_id(endpoint_id)
            result = lifecycle.restore_endpoint(endpoint_id, actor=_actor(request))
            return {
                'status': 'restored',
                'endpoint_id': result.endpoint_id,
                'restored_at': result.restored_at,
            }, status.HTTP_200_OK

        return self.respond(request, operation)


class DeletedEndpointsView(LeadRouterView):
    """GET /webhooks/deleted/"""

    def get(self, request):
        def operation(correlation_id):
            endpoints = lifecycle.list_soft_deleted_endpoints()
            return {'count': len(endpoints), 'endpoints': endpoints}, status.HTTP_200_OK

        return self.respond(request, operation)


class AppointmentReceiveView(LeadRouterView):
    """POST /appointments/receive/"""

    def post(self, request):
        def operation(correlation_id):
            result = appointments.submit_appointment(_json_body(request))
            logger.info(
                f"Appointment {result.appointment.id} accepted, "
                f"routing={result.routing_method}, correlation_id={correlation_id}"
            )
            body = {'status': 'accepted'}
            body.update(result.as_dict())
            return body, status.HTTP_201_CREATED

        return self.respond(request, operation)


class LeadStatusView(LeadRouterView):
    """PUT /leads/<lead_id>/status/"""

    def put(self, request, lead_id):
        def operation(correlation_id):
            data = _json_body(request)
            new_status = data.get('status')
            if not new_status:
                raise ValidationError('Missing required field: status')

            follow_up_date = None
            if data.get('follow_up_date'):
                follow_up_date = parse_datetime(str(data['follow_up_date']))
                if follow_up_date is None:
                    raise ValidationError('follow_up_date must be an ISO 8601 datetime')

            priority = data.get('priority')
            if priority is not None:
                try:
                    priority = int(priority)
                except (TypeError, ValueError):
                    raise ValidationError('priority must be a non-negative integer')
                if priority < 0:
                    raise ValidationError('priority must be a non-negative integer')

            old_status = lead_store.update_lead_status(
                lead_id,
                new_status,
                changed_by=_actor(request),
                changed_by_name=data.get('changed_by_name'),
                reason=data.get('reason'),
                notes=data.get('notes'),
                assigned_to=data.get('assigned_to'),
                follow_up_date=follow_up_date,
                priority=priority,
            )
            return {
                'status': 'updated',
                'lead_id': lead_id,
                'old_status': old_status,
                'new_status': new_status,
            }, status.HTTP_200_OK

        return self.respond(request, operation)


class LeadHistoryView(LeadRouterView):
    """GET /leads/<lead_id>/history/"""

    def get(self, request, lead_id):
        def operation(correlation_id):
            history = [
                {
                    'old_status': entry.old_status,
                    'new_status': entry.new_status,
                    'changed_by': entry.changed_by,
                    'changed_by_name': entry.changed_by_name,
                    'reason': entry.reason,
                    'notes': entry.notes,
                    'created_at': entry.created_at,
                }
                for entry in lead_store.get_status_history(lead_id)
            ]
            return {'lead_id': lead_id, 'history': history}, status.HTTP_200_OK

        return self.respond(request, operation)
