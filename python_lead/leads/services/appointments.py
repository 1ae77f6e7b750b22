"""
Appointment intake and workspace routing.

An appointment either references an existing lead (all customer data comes
from that lead) or carries the customer fields itself, in which case a
contact is reused by phone or created, and a new ``scheduled`` lead is made.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from django.db import DatabaseError, transaction

from leads.exceptions import NotFound, StoreError, ValidationError
from leads.models import Appointment, Contact, Lead, Workspace
from leads.services.contacts import find_latest_contact_by_phone, find_or_create_contact
from leads.services.forwarding import DeliveryResult, forward_appointment
from leads.services.lead_store import create_lead, update_lead_status
from leads.services.mapping import split_name, to_decimal
from leads.services.normalization import normalize_dict
from leads.services.phone import normalize_phone
from leads.services.routing import (
    FIRST_MATCH,
    Candidate,
    load_appointment_rules,
    resolve_route,
)
from leads.services.validation import (
    APPOINTMENT_REQUIRED_FIELDS,
    INVALID_PHONE,
    MISSING_REQUIRED_FIELD,
    missing_fields,
    validate_appointment,
)

logger = logging.getLogger(__name__)

APPOINTMENT_SOURCE = 'appointment-service'
APPOINTMENT_LEAD_TYPE = 'appointment'


@dataclass
class CustomerData:
    name: str
    phone: str
    raw_phone: str
    email: Optional[str]
    service_type: str
    zip_code: str
    lead: Optional[Lead] = None


@dataclass
class AppointmentResult:
    appointment: Appointment
    contact: Contact
    lead: Lead
    workspace: Optional[Workspace]
    routing_method: str
    forward: Optional[DeliveryResult] = None

    def as_dict(self) -> dict:
        return {
            'appointment_id': self.appointment.id,
            'contact_id': self.contact.id,
            'lead_id': self.lead.id,
            'matched_workspace_id': self.workspace.workspace_id if self.workspace else None,
            'routing_method': self.routing_method,
            'forwarded': bool(self.forward and self.forward.success),
            'forward_error': self.forward.error if self.forward else None,
        }


def _customer_from_lead(lead_id: int) -> CustomerData:
    try:
        lead = Lead.objects.select_related('contact').get(pk=lead_id)
    except Lead.DoesNotExist:
        raise NotFound(f"Lead {lead_id} not found", lead_id=lead_id)

    contact = lead.contact
    if not lead.product_type:
        raise ValidationError(
            'Lead record missing required routing data: product_type',
            reason=MISSING_REQUIRED_FIELD, lead_id=lead_id,
        )
    if not lead.zip_code:
        raise ValidationError(
            'Lead record missing required routing data: zip_code',
            reason=MISSING_REQUIRED_FIELD, lead_id=lead_id,
        )
    phone = normalize_phone(contact.phone)
    if phone is None:
        raise ValidationError(
            'Invalid phone number format in lead record',
            reason=INVALID_PHONE, lead_id=lead_id,
        )

    return CustomerData(
        name=contact.full_name,
        phone=phone,
        raw_phone=contact.phone,
        email=contact.email,
        service_type=lead.product_type,
        zip_code=lead.zip_code,
        lead=lead,
    )


def _customer_from_payload(data: dict) -> CustomerData:
    return CustomerData(
        name=str(data['customer_name']),
        phone=normalize_phone(str(data['customer_phone'])),
        raw_phone=str(data['customer_phone']),
        email=data.get('customer_email') or None,
        service_type=str(data['service_type']),
        zip_code=str(data['customer_zip']),
    )


def _duration_minutes(data: dict) -> int:
    value = data.get('appointment_duration')
    if value in (None, ''):
        return 60
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"appointment_duration must be a whole number of minutes, got {value!r}",
            reason='INVALID_APPOINTMENT_DURATION',
        )


def match_workspace(service_type: str, zip_code: str, hint: Optional[str] = None) -> Tuple[Optional[Workspace], str]:
    """
    Pick the workspace for an appointment.

    An active hinted workspace wins (``priority``); otherwise the first
    matching appointment routing rule decides (``auto``); otherwise the
    appointment is ``unrouted``.

    Returns:
        Tuple of (workspace or None, routing_method)
    """
    explicit = None
    if hint:
        workspace = Workspace.objects.filter(workspace_id=hint, is_active=True).first()
        if workspace is not None:
            explicit = workspace.workspace_id
        else:
            logger.info(f"Workspace hint {hint} is not an active workspace, falling back to rules")

    decision = resolve_route(
        Candidate(product_type=service_type, zip_code=zip_code),
        load_appointment_rules(),
        FIRST_MATCH,
        explicit_destination=explicit,
    )
    if not decision.routed:
        return None, decision.method
    return Workspace.objects.get(workspace_id=decision.destination_id), decision.method


def submit_appointment(payload: dict) -> AppointmentResult:
    """
    Record an appointment, route it to a workspace and forward it.

    Args:
        payload: Raw JSON submission; ``appointment_date`` plus either
            ``lead_id`` or the customer fields

    Returns:
        AppointmentResult; ``routing_method`` is ``priority``, ``auto`` or
        ``unrouted``

    Raises:
        ValidationError: Missing or malformed fields
        NotFound: ``lead_id`` does not resolve to a lead
        StoreError: Persistence failure
    """
    data = normalize_dict(payload or {})
    is_valid, reason = validate_appointment(data)
    if not is_valid:
        required = ['appointment_date'] if data.get('lead_id') else ['appointment_date', *APPOINTMENT_REQUIRED_FIELDS]
        raise ValidationError(
            'Appointment data validation failed',
            reason=reason,
            missing_fields=missing_fields(data, required),
        )

    if data.get('lead_id') not in (None, ''):
        customer = _customer_from_lead(int(data['lead_id']))
    else:
        customer = _customer_from_payload(data)

    workspace, routing_method = match_workspace(customer.service_type, customer.zip_code, data.get('workspace_id'))
    scope = workspace.workspace_id if workspace else ''

    try:
        with transaction.atomic():
            if customer.lead is not None:
                lead = customer.lead
                contact = lead.contact
                update_lead_status(
                    lead.id,
                    Lead.Status.SCHEDULED,
                    changed_by=APPOINTMENT_SOURCE,
                    reason='Appointment booked',
                    metadata={'appointment_date': data['appointment_date']},
                )
                lead.refresh_from_db()
            else:
                first_name, last_name = split_name(customer.name)
                contact = find_latest_contact_by_phone(customer.phone)
                if contact is None:
                    contact, _ = find_or_create_contact(scope, customer.phone, {
                        'first_name': first_name,
                        'last_name': last_name,
                        'email': customer.email,
                        'zip_code': customer.zip_code,
                    })
                lead = create_lead(contact.id, {
                    'endpoint_id': scope,
                    'lead_type': APPOINTMENT_LEAD_TYPE,
                    'first_name': first_name,
                    'last_name': last_name,
                    'email': customer.email,
                    'phone': customer.phone,
                    'zip_code': customer.zip_code,
                    'source': APPOINTMENT_SOURCE,
                    'product_type': customer.service_type,
                    'raw_payload': payload,
                }, status=Lead.Status.SCHEDULED)

            appointment = Appointment.objects.create(
                lead=lead,
                contact=contact,
                appointment_type=data.get('appointment_type') or 'consultation',
                scheduled_at=str(data['appointment_date']),
                duration_minutes=_duration_minutes(data),
                notes=data.get('appointment_notes') or None,
                customer_name=customer.name,
                customer_phone=customer.raw_phone,
                customer_email=customer.email,
                service_type=customer.service_type,
                customer_zip=customer.zip_code,
                estimated_value=to_decimal(data.get('estimated_value')),
                matched_workspace=workspace,
                routing_method=routing_method,
                raw_payload=payload,
            )
    except DatabaseError as e:
        logger.error(f"Failed to store appointment: {e}", exc_info=True)
        raise StoreError('Failed to store appointment') from e

    logger.info(
        f"Appointment {appointment.id} created for lead {lead.id} "
        f"({routing_method}, workspace {scope or 'none'})"
    )

    forward = None
    if workspace:
        try:
            forward = forward_appointment(appointment)
        except Exception as e:
            logger.error(f"Forwarding appointment {appointment.id} failed: {e}", exc_info=True)
            forward = DeliveryResult(
                destination_id=workspace.workspace_id,
                target_url=workspace.outbound_webhook_url or '',
                success=False,
                error=str(e),
            )
        else:
            if forward is not None:
                appointment.refresh_from_db()
    return AppointmentResult(
        appointment=appointment,
        contact=contact,
        lead=lead,
        workspace=workspace,
        routing_method=routing_method,
        forward=forward,
    )
