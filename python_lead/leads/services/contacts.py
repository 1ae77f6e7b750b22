"""
Contact store: one contact per (endpoint, normalized phone).
"""
import logging
from typing import Optional, Tuple

from django.db import DatabaseError, IntegrityError, transaction

from leads.exceptions import ValidationError
from leads.models import Contact, ContactEvent
from leads.services.identifiers import create_with_unique_id, generate_contact_id

logger = logging.getLogger(__name__)

# Attributes a sighting may overwrite; endpoint_id and phone are identity.
CONTACT_ATTRIBUTES = ('first_name', 'last_name', 'email', 'address', 'city', 'state', 'zip_code')


def _find_contact(endpoint_id: str, phone: str) -> Optional[Contact]:
    return Contact.objects.filter(endpoint_id=endpoint_id, phone=phone).first()


def _log_contact_event(contact: Contact, event_type: str, event_data: dict) -> None:
    """Audit one sighting; a failure here never fails the sighting."""
    try:
        with transaction.atomic():
            ContactEvent.objects.create(contact=contact, event_type=event_type, event_data=event_data)
    except DatabaseError as e:
        logger.error(f"Failed to log {event_type} event for contact {contact.id}: {e}")


def _update_contact(contact: Contact, attrs: dict) -> Contact:
    for field, value in attrs.items():
        setattr(contact, field, value)
    # updated_at advances on every sighting, even when nothing else changed
    contact.save(update_fields=[*attrs.keys(), 'updated_at'])
    _log_contact_event(contact, ContactEvent.EventType.UPDATED, attrs)
    return contact


def find_or_create_contact(endpoint_id: str, phone: str, attrs: Optional[dict] = None) -> Tuple[Contact, bool]:
    """
    Find the contact for (endpoint_id, phone) or create it.

    An existing contact receives a partial update: only attributes present in
    ``attrs`` with a non-None value overwrite stored ones. A creation that
    loses a race against a concurrent insert for the same key falls back to
    the winner's row.

    Args:
        endpoint_id: Receiving endpoint identifier ('' for unscoped contacts)
        phone: Normalized phone number (+1XXXXXXXXXX)
        attrs: Contact attributes from the submission

    Returns:
        Tuple of (contact, is_new)

    Raises:
        ValidationError: If no phone is given
    """
    if not phone:
        raise ValidationError("A normalized phone number is required", field='phone')

    attrs = {
        field: value for field, value in (attrs or {}).items()
        if field in CONTACT_ATTRIBUTES and value is not None
    }

    with transaction.atomic():
        contact = _find_contact(endpoint_id, phone)
        if contact is not None:
            logger.debug(f"Contact {contact.id} found for {endpoint_id}/{phone}")
            return _update_contact(contact, attrs), False

        try:
            contact = create_with_unique_id(
                Contact,
                generate_contact_id,
                endpoint_id=endpoint_id,
                phone=phone,
                **attrs,
            )
        except IntegrityError:
            contact = _find_contact(endpoint_id, phone)
            if contact is None:
                raise
            logger.info(
                f"Contact {contact.id} for {endpoint_id}/{phone} was created concurrently, reusing it"
            )
            return _update_contact(contact, attrs), False

        _log_contact_event(contact, ContactEvent.EventType.CREATED, {
            'endpoint_id': endpoint_id,
            'phone': phone,
            'email': contact.email,
        })

    logger.info(f"Contact {contact.id} created for endpoint {endpoint_id or '(none)'}")
    return contact, True


def find_latest_contact_by_phone(phone: str) -> Optional[Contact]:
    """Most recently created contact with this phone across all endpoints."""
    return Contact.objects.filter(phone=phone).order_by('-created_at', '-id').first()
