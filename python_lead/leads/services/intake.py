"""
Lead intake: the submit_lead pipeline.

normalize -> validate -> contact find-or-create -> lead create, all in one
transaction, then forwarding once that transaction has committed.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db import DatabaseError, transaction

from leads.exceptions import NotFound, ValidationError, StoreError
from leads.models import Contact, Endpoint, Lead
from leads.services.contacts import find_or_create_contact
from leads.services.forwarding import METHOD_ERROR, ForwardingReport, forward_lead
from leads.services.lead_store import create_lead
from leads.services.mapping import contact_attributes, lead_fields
from leads.services.normalization import normalize
from leads.services.phone import normalize_phone
from leads.services.validation import LEAD_REQUIRED_FIELDS, missing_fields, validate_lead

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    contact: Contact
    lead: Lead
    is_new_contact: bool
    forwarding: ForwardingReport

    def as_dict(self) -> dict:
        return {
            'contact_id': self.contact.id,
            'lead_id': self.lead.id,
            'is_new_contact': self.is_new_contact,
            'forwarding': self.forwarding.as_dict(),
        }


def get_active_endpoint(endpoint_id: str) -> Endpoint:
    """
    Raises:
        NotFound: If the endpoint is missing, inactive or soft-deleted
    """
    endpoint = Endpoint.objects.active().filter(endpoint_id=endpoint_id).first()
    if endpoint is None:
        raise NotFound(f"Endpoint {endpoint_id} is not configured or is inactive")
    return endpoint


def check_endpoint(endpoint_id: str) -> dict:
    """Health and configuration summary of an active endpoint."""
    endpoint = get_active_endpoint(endpoint_id)
    parts = endpoint.endpoint_id.split('_')
    return {
        'status': 'healthy',
        'endpoint_id': endpoint.endpoint_id,
        'config': {
            'name': endpoint.name,
            'description': endpoint.description,
            'type': endpoint.lead_type,
            'region': parts[1] if len(parts) > 1 else 'unknown',
            'category': parts[2] if len(parts) > 2 else 'unknown',
            'total_leads': endpoint.total_leads,
            'last_lead_at': endpoint.last_lead_at,
            'forwarding_enabled': endpoint.forwarding_enabled,
            'forward_mode': endpoint.forward_mode,
            'created_at': endpoint.created_at,
        },
    }


def submit_lead(endpoint_id: str, payload: dict, ip_address: Optional[str] = None,
                user_agent: Optional[str] = None) -> SubmissionResult:
    """
    Record one inbound lead and forward it.

    Forwarding failures are reported in the result and never undo the
    stored contact and lead.

    Args:
        endpoint_id: Receiving endpoint
        payload: Raw JSON submission
        ip_address: Submitter address, when known
        user_agent: Submitter user agent, when known

    Returns:
        SubmissionResult

    Raises:
        NotFound: If the endpoint is not active
        ValidationError: If names or a usable phone are missing
        StoreError: If the contact or lead could not be stored
    """
    endpoint = get_active_endpoint(endpoint_id)

    data = normalize(payload)
    is_valid, reason = validate_lead(data)
    if not is_valid:
        logger.info(f"Lead for {endpoint_id} rejected: {reason}")
        raise ValidationError(
            'Lead data validation failed',
            reason=reason,
            missing_fields=missing_fields(data, LEAD_REQUIRED_FIELDS),
        )

    phone = normalize_phone(str(data['phone']))

    try:
        with transaction.atomic():
            contact, is_new = find_or_create_contact(endpoint.endpoint_id, phone, contact_attributes(data))
            lead = create_lead(
                contact.id,
                lead_fields(data, endpoint, payload, phone, ip_address=ip_address, user_agent=user_agent),
            )
    except DatabaseError as e:
        logger.error(f"Failed to store lead for {endpoint_id}: {e}", exc_info=True)
        raise StoreError(f"Failed to store lead for endpoint {endpoint_id}") from e

    logger.info(
        f"Lead {lead.id} stored for endpoint {endpoint_id} "
        f"(contact {contact.id}, {'new' if is_new else 'existing'})"
    )

    try:
        report = forward_lead(lead)
    except Exception as e:
        logger.error(f"Forwarding lead {lead.id} failed: {e}", exc_info=True)
        report = ForwardingReport(METHOD_ERROR, error=str(e))
    return SubmissionResult(contact=contact, lead=lead, is_new_contact=is_new, forwarding=report)
