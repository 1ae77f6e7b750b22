"""
Lead store: lead creation, status transitions and their journal.
"""
import logging
from typing import Optional

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from leads.exceptions import InvalidStatus, NotFound, ValidationError
from leads.models import Contact, Endpoint, Lead, LeadActivity, LeadStatusHistory
from leads.services.identifiers import create_with_unique_id, generate_lead_id
from leads.tasks import refresh_lead_analytics

logger = logging.getLogger(__name__)

VALID_STATUSES = tuple(Lead.Status.values)

# Columns a caller may set on creation; ids, status and timestamps are owned here.
LEAD_FIELDS = (
    'endpoint_id', 'lead_type', 'first_name', 'last_name', 'email', 'phone',
    'address', 'address2', 'city', 'state', 'zip_code', 'source', 'product_type',
    'subsource', 'campaign_id', 'utm_source', 'utm_medium', 'utm_campaign',
    'landing_page_url', 'raw_payload', 'ip_address', 'user_agent', 'notes',
    'conversion_score', 'revenue_potential', 'priority', 'assigned_to', 'follow_up_date',
)


def _schedule_analytics_refresh(endpoint_id: str) -> None:
    if not endpoint_id:
        return
    day = timezone.localdate().isoformat()
    transaction.on_commit(lambda: refresh_lead_analytics.delay(endpoint_id, day))


def _record_endpoint_lead(endpoint_id: str, received_at) -> None:
    """Bump the endpoint's lead counter; a failure here never fails the lead."""
    if not endpoint_id:
        return
    try:
        with transaction.atomic():
            Endpoint.objects.filter(endpoint_id=endpoint_id, is_active=True).update(
                total_leads=F('total_leads') + 1,
                last_lead_at=received_at,
                updated_at=received_at,
            )
    except DatabaseError as e:
        logger.error(f"Failed to update statistics for endpoint {endpoint_id}: {e}")


def create_lead(contact_id: int, fields: dict, status: str = Lead.Status.NEW) -> Lead:
    """
    Insert a lead owned by ``contact_id``.

    Args:
        contact_id: Owning contact
        fields: Lead columns (unknown keys are ignored)
        status: Initial status, ``new`` unless the caller knows better

    Returns:
        The created Lead

    Raises:
        NotFound: If the contact does not exist
        InvalidStatus: If ``status`` is not a known lead status
    """
    if status not in VALID_STATUSES:
        raise InvalidStatus(f"Invalid status: {status}", valid_statuses=list(VALID_STATUSES))

    values = {key: value for key, value in fields.items() if key in LEAD_FIELDS and value is not None}

    with transaction.atomic():
        try:
            contact = Contact.objects.get(pk=contact_id)
        except Contact.DoesNotExist:
            raise NotFound(f"Contact {contact_id} not found")

        lead = create_with_unique_id(Lead, generate_lead_id, contact=contact, status=status, **values)
        LeadActivity.objects.create(
            lead=lead,
            activity_type='created',
            title='Lead created',
            description=f"Lead received from {lead.source or lead.endpoint_id or 'unknown source'}",
            metadata={'status': status, 'endpoint_id': lead.endpoint_id},
        )
        _record_endpoint_lead(lead.endpoint_id, lead.created_at)
        _schedule_analytics_refresh(lead.endpoint_id)

    logger.info(f"Lead {lead.id} created for contact {contact.id} with status {status}")
    return lead


def update_lead_status(
    lead_id: int,
    new_status: str,
    *,
    changed_by: Optional[str] = None,
    changed_by_name: Optional[str] = None,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
    assigned_to: Optional[str] = None,
    follow_up_date=None,
    priority: Optional[int] = None,
    metadata: Optional[dict] = None,
) -> str:
    """
    Move a lead to ``new_status`` and journal the transition.

    Any status may follow any other. Every call appends exactly one history
    row and one ``status_change`` activity, even when the status is unchanged.
    ``notes``, ``assigned_to``, ``follow_up_date`` and ``priority`` only
    overwrite stored values when given.

    Returns:
        The status the lead had before the call

    Raises:
        InvalidStatus: If ``new_status`` is not a known lead status
        NotFound: If the lead does not exist
        ValidationError: If ``priority`` is negative
    """
    if new_status not in VALID_STATUSES:
        raise InvalidStatus(f"Invalid status: {new_status}", valid_statuses=list(VALID_STATUSES))
    if priority is not None and priority < 0:
        raise ValidationError('priority must be a non-negative integer')

    with transaction.atomic():
        try:
            lead = Lead.objects.select_for_update().get(pk=lead_id)
        except Lead.DoesNotExist:
            raise NotFound(f"Lead {lead_id} not found")

        old_status = lead.status
        now = timezone.now()

        lead.status = new_status
        lead.status_changed_at = now
        lead.status_changed_by = changed_by
        if notes is not None:
            lead.notes = notes
        if assigned_to is not None:
            lead.assigned_to = assigned_to
        if follow_up_date is not None:
            lead.follow_up_date = follow_up_date
        if priority is not None:
            lead.priority = priority
        if new_status == Lead.Status.CONTACTED and old_status != Lead.Status.CONTACTED:
            lead.contact_attempts += 1
        if new_status in (Lead.Status.CONVERTED, Lead.Status.SCHEDULED):
            lead.processed_at = now
        lead.save()

        LeadStatusHistory.objects.create(
            lead=lead,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
            changed_by_name=changed_by_name,
            reason=reason,
            notes=notes,
            metadata=metadata or {},
        )
        LeadActivity.objects.create(
            lead=lead,
            activity_type='status_change',
            title=f"Status changed from {old_status} to {new_status}",
            description=reason,
            created_by=changed_by,
            created_by_name=changed_by_name,
            metadata={'old_status': old_status, 'new_status': new_status, 'reason': reason},
        )

        if new_status == Lead.Status.CONVERTED and old_status != Lead.Status.CONVERTED:
            Contact.objects.filter(pk=lead.contact_id).update(
                total_conversions=F('total_conversions') + 1,
                lifetime_value=F('lifetime_value') + (lead.revenue_potential or 0),
            )

        _schedule_analytics_refresh(lead.endpoint_id)

    logger.info(f"Lead {lead_id} status changed from {old_status} to {new_status} by {changed_by or 'unknown'}")
    return old_status


def get_status_history(lead_id: int):
    """
    Status history of a lead, oldest first.

    Raises:
        NotFound: If the lead does not exist
    """
    if not Lead.objects.filter(pk=lead_id).exists():
        raise NotFound(f"Lead {lead_id} not found")
    return LeadStatusHistory.objects.filter(lead_id=lead_id).order_by('id')
