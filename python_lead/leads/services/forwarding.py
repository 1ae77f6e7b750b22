"""
Forwarding dispatcher.

Delivers leads to the destinations picked by the routing evaluator and
appointments to their matched workspace. Every attempt writes exactly one
ForwardingLogEntry. Failures are recorded, never retried here, and never
raised to the caller: the lead or appointment is already committed.
"""
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import List, Optional

import httpx
from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from leads.exceptions import ForwardingError
from leads.models import (
    Appointment,
    Endpoint,
    ForwardingLogEntry,
    ForwardingRule,
    Lead,
    Workspace,
)
from leads.services.delivery_client import send_to_destination
from leads.services.routing import (
    METHOD_AUTO,
    METHOD_UNROUTED,
    Candidate,
    CompiledRule,
    load_forwarding_rules,
    resolve_route,
)

logger = logging.getLogger(__name__)

METHOD_DISABLED = 'disabled'
METHOD_ERROR = 'error'
APPOINTMENT_SOURCE = 'appointment-routing-system'


def _metadata_key() -> str:
    return getattr(settings, 'FORWARDING_METADATA_KEY', 'lead_router_metadata')


def _truncate_body(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return text[:getattr(settings, 'FORWARDING_RESPONSE_BODY_LIMIT', 1000)]


def _snapshot(payload) -> str:
    return json.dumps(payload, default=str)[:getattr(settings, 'FORWARDING_PAYLOAD_LIMIT', 10000)]


@dataclass
class DeliveryResult:
    destination_id: str
    target_url: str
    success: bool
    rule_id: Optional[int] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    response_body: Optional[str] = None


@dataclass
class ForwardingReport:
    """Outcome of forwarding one lead."""

    routing_method: str
    forwarded_count: int = 0
    failed_count: int = 0
    deliveries: List[DeliveryResult] = field(default_factory=list)
    error: Optional[str] = None

    def add(self, result: DeliveryResult) -> None:
        self.deliveries.append(result)
        if result.success:
            self.forwarded_count += 1
        else:
            self.failed_count += 1

    def as_dict(self) -> dict:
        return {
            'routing_method': self.routing_method,
            'forwarded_count': self.forwarded_count,
            'failed_count': self.failed_count,
            'error': self.error,
            'deliveries': [
                {key: value for key, value in asdict(result).items() if key != 'response_body'}
                for result in self.deliveries
            ],
        }


def deliver(url: str, payload: dict, headers: dict) -> httpx.Response:
    """
    POST ``payload`` and insist on a 2xx answer.

    Raises:
        ForwardingError: On transport failure, timeout or a non-2xx status
    """
    try:
        response = send_to_destination(url, payload, headers)
    except httpx.HTTPError as e:
        raise ForwardingError(f"{type(e).__name__}: {e}") from e

    if not response.is_success:
        raise ForwardingError(
            f"HTTP {response.status_code}",
            status_code=response.status_code,
            response_body=response.text,
        )
    return response


def _attempt(url: str, payload: dict, headers: dict, destination_id: str, rule_id=None) -> DeliveryResult:
    try:
        response = deliver(url, payload, headers)
    except ForwardingError as e:
        logger.warning(f"Forward to {destination_id} ({url}) failed: {e}")
        return DeliveryResult(
            destination_id=destination_id,
            target_url=url,
            success=False,
            rule_id=rule_id,
            status_code=e.status_code,
            error=str(e),
            response_body=e.response_body,
        )
    return DeliveryResult(
        destination_id=destination_id,
        target_url=url,
        success=True,
        rule_id=rule_id,
        status_code=response.status_code,
        response_body=response.text,
    )


def _bump_counters(model, lookup: dict, success: bool, now) -> None:
    """Best-effort counter increment on a ForwardingCounters model."""
    if success:
        changes = {'forward_success_count': F('forward_success_count') + 1, 'last_forwarded_at': now}
    else:
        changes = {'forward_failure_count': F('forward_failure_count') + 1}
    try:
        with transaction.atomic():
            model.objects.filter(**lookup).update(**changes)
    except DatabaseError as e:
        logger.error(f"Failed to update forwarding counters on {model.__name__} {lookup}: {e}")


def _log_attempt(result: DeliveryResult, **fields) -> Optional[ForwardingLogEntry]:
    try:
        return ForwardingLogEntry.objects.create(
            rule_id=result.rule_id,
            target_endpoint_id=result.destination_id,
            target_url=result.target_url,
            forward_status=(
                ForwardingLogEntry.Outcome.SUCCESS if result.success else ForwardingLogEntry.Outcome.FAILED
            ),
            http_status_code=result.status_code,
            response_body=_truncate_body(result.response_body),
            error_message=result.error,
            **fields,
        )
    except DatabaseError as e:
        logger.error(f"Failed to write forwarding log entry for {result.target_url}: {e}")
        return None


def build_lead_payload(lead: Lead, rule: CompiledRule, source_endpoint_id: str, candidate: Candidate) -> dict:
    """Original submission plus the traceability block."""
    payload = dict(lead.raw_payload or {})
    payload[_metadata_key()] = {
        'lead_id': lead.id,
        'contact_id': lead.contact_id,
        'forwarded_from': source_endpoint_id,
        'rule_id': rule.rule_id,
        'matched_product': candidate.product_type,
        'matched_zip': candidate.zip_code,
        'forwarded_at': timezone.now().isoformat(),
    }
    return payload


def build_lead_headers(lead: Lead, rule: CompiledRule, source_endpoint_id: str) -> dict:
    return {
        'X-Forwarded-From': source_endpoint_id,
        'X-Original-Lead-Id': str(lead.id),
        'X-Original-Contact-Id': str(lead.contact_id),
        'X-Forwarding-Rule-Id': str(rule.rule_id),
    }


def forward_to_rule(lead: Lead, rule: CompiledRule, source_endpoint_id: str, candidate: Candidate) -> DeliveryResult:
    """Deliver one lead to one matched rule and record the attempt."""
    logger.info(f"Forwarding lead {lead.id} to {rule.destination_id} via rule {rule.rule_id}")
    payload = build_lead_payload(lead, rule, source_endpoint_id, candidate)
    headers = build_lead_headers(lead, rule, source_endpoint_id)

    result = _attempt(rule.destination_url, payload, headers, rule.destination_id, rule_id=rule.rule_id)

    _log_attempt(
        result,
        kind=ForwardingLogEntry.Kind.LEAD,
        lead_id=lead.id,
        contact_id=lead.contact_id,
        source_endpoint_id=source_endpoint_id,
        matched_product=candidate.product_type,
        matched_zip=candidate.zip_code,
        payload=_snapshot(lead.raw_payload),
    )
    now = timezone.now()
    _bump_counters(ForwardingRule, {'pk': rule.rule_id}, result.success, now)
    _bump_counters(Endpoint, {'endpoint_id': source_endpoint_id}, result.success, now)
    return result


def forward_lead(lead: Lead) -> ForwardingReport:
    """
    Route a committed lead through its endpoint's forwarding rules.

    Returns:
        ForwardingReport with ``routing_method`` ``disabled`` (endpoint
        inactive or forwarding off), ``unrouted`` (no rule matched) or
        ``auto``
    """
    endpoint = Endpoint.objects.active().filter(endpoint_id=lead.endpoint_id).first()
    if endpoint is None or not endpoint.forwarding_enabled:
        logger.debug(f"Forwarding disabled for endpoint {lead.endpoint_id}")
        return ForwardingReport(METHOD_DISABLED)

    candidate = Candidate(product_type=lead.product_type, zip_code=lead.zip_code)
    decision = resolve_route(candidate, load_forwarding_rules(endpoint), endpoint.forward_mode)
    if not decision.routed:
        return ForwardingReport(METHOD_UNROUTED)

    report = ForwardingReport(METHOD_AUTO)
    for rule in decision.matches:
        report.add(forward_to_rule(lead, rule, endpoint.endpoint_id, candidate))

    logger.info(
        f"Lead {lead.id} forwarding finished ({endpoint.forward_mode}): "
        f"{report.forwarded_count} forwarded, {report.failed_count} failed"
    )
    return report


def build_appointment_payload(appointment: Appointment, workspace: Workspace) -> dict:
    contact = appointment.contact
    lead = appointment.lead
    return {
        'appointment_id': appointment.id,
        'appointment_date': appointment.scheduled_at,
        'appointment_type': appointment.appointment_type,
        'appointment_duration': appointment.duration_minutes,
        'appointment_status': appointment.status,
        'appointment_notes': appointment.notes,
        'estimated_value': str(appointment.estimated_value) if appointment.estimated_value is not None else None,
        'customer': {
            'name': appointment.customer_name,
            'phone': appointment.customer_phone,
            'email': appointment.customer_email,
            'zip': appointment.customer_zip,
        },
        'service': {
            'type': appointment.service_type,
        },
        'contact': {
            'id': contact.id,
            'first_name': contact.first_name,
            'last_name': contact.last_name,
            'email': contact.email,
            'phone': contact.phone,
        },
        'lead': {
            'id': lead.id,
            'source': lead.source,
        },
        'workspace': {
            'id': workspace.workspace_id,
            'name': workspace.name,
        },
        'forwarded_at': timezone.now().isoformat(),
    }


def forward_appointment(appointment: Appointment) -> Optional[DeliveryResult]:
    """
    Deliver an appointment to its matched workspace's outbound webhook.

    Returns:
        DeliveryResult, or None when the appointment is unrouted or the
        workspace cannot receive webhooks
    """
    workspace = appointment.matched_workspace
    if workspace is None:
        return None
    if not workspace.can_receive:
        logger.info(f"Workspace {workspace.workspace_id} has no active outbound webhook")
        return None

    payload = build_appointment_payload(appointment, workspace)
    headers = {
        'X-Source': APPOINTMENT_SOURCE,
        'X-Appointment-ID': str(appointment.id),
    }
    result = _attempt(workspace.outbound_webhook_url, payload, headers, workspace.workspace_id)

    now = timezone.now()
    outcome = ForwardingLogEntry.Outcome.SUCCESS if result.success else ForwardingLogEntry.Outcome.FAILED
    Appointment.objects.filter(pk=appointment.pk).update(
        forward_status=outcome,
        forward_response=_truncate_body(result.response_body or result.error),
        forward_attempts=F('forward_attempts') + 1,
        forwarded_at=now,
        updated_at=now,
    )
    _log_attempt(
        result,
        kind=ForwardingLogEntry.Kind.APPOINTMENT,
        lead_id=appointment.lead_id,
        contact_id=appointment.contact_id,
        appointment_id=appointment.id,
        matched_product=appointment.service_type,
        matched_zip=appointment.customer_zip,
        payload=_snapshot(payload),
    )
    _bump_counters(Workspace, {'pk': workspace.pk}, result.success, now)

    logger.info(
        f"Appointment {appointment.id} forward to workspace {workspace.workspace_id}: {outcome}"
    )
    return result
