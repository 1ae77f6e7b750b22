"""
Validation service for inbound lead and appointment payloads.
"""
import re
import logging
from typing import Iterable, List, Tuple, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email

from leads.services.phone import normalize_phone

logger = logging.getLogger(__name__)

# Rejection codes (configurable in settings)
MISSING_REQUIRED_FIELD = getattr(settings, 'MISSING_REQUIRED_FIELD', 'MISSING_REQUIRED_FIELD')
INVALID_PHONE = getattr(settings, 'INVALID_PHONE', 'INVALID_PHONE')
INVALID_EMAIL = getattr(settings, 'INVALID_EMAIL', 'INVALID_EMAIL')
INVALID_LEAD_ID = getattr(settings, 'INVALID_LEAD_ID', 'INVALID_LEAD_ID')

LEAD_REQUIRED_FIELDS = ('first_name', 'last_name', 'phone')
APPOINTMENT_REQUIRED_FIELDS = ('customer_name', 'customer_phone', 'service_type', 'customer_zip')


def endpoint_id_pattern():
    return re.compile(getattr(settings, 'ENDPOINT_ID_PATTERN', r'^ws_[a-z]{2,3}_[a-z]+_\d{3}$'))


def is_valid_endpoint_id(endpoint_id: str) -> bool:
    """Check an endpoint identifier against ``ENDPOINT_ID_PATTERN`` (e.g. ``ws_cal_solar_001``)."""
    return bool(endpoint_id) and endpoint_id_pattern().match(endpoint_id) is not None


def missing_fields(payload: dict, fields: Iterable[str]) -> List[str]:
    """Return the required fields that are absent or blank, in order."""
    return [field for field in fields if payload.get(field) in (None, '')]


def _has_valid_email(payload: dict) -> bool:
    email = payload.get('email')
    if not email:
        return True
    try:
        validate_email(email)
    except DjangoValidationError:
        return False
    return True


def validate_lead(payload: dict) -> Tuple[bool, Optional[str]]:
    """
    Validates a normalized lead submission.

    Business Rules:
    1. first_name, last_name and phone are required
    2. phone must normalize to the +1XXXXXXXXXX form
    3. email, when present, must be a valid address

    Args:
        payload: Normalized lead data dictionary

    Returns:
        Tuple of (is_valid, rejection_reason)
        - is_valid: True if lead passes all validation rules
        - rejection_reason: Rejection code if validation fails, None otherwise
    """
    if not payload:
        logger.debug("Validation failed: empty payload")
        return False, MISSING_REQUIRED_FIELD

    missing = missing_fields(payload, LEAD_REQUIRED_FIELDS)
    if missing:
        logger.debug(f"Validation failed: missing required fields {missing}")
        return False, MISSING_REQUIRED_FIELD

    if normalize_phone(str(payload['phone'])) is None:
        logger.debug(f"Validation failed: phone '{payload['phone']}' cannot be normalized")
        return False, INVALID_PHONE

    if not _has_valid_email(payload):
        logger.debug(f"Validation failed: invalid email '{payload.get('email')}'")
        return False, INVALID_EMAIL

    logger.debug("Validation passed")
    return True, None


def validate_appointment(payload: dict) -> Tuple[bool, Optional[str]]:
    """
    Validates an appointment submission.

    ``appointment_date`` is always required. When ``lead_id`` is given the
    customer data is taken from the lead, so only the id itself is checked;
    otherwise the customer fields are required and the phone must normalize.

    Returns:
        Tuple of (is_valid, rejection_reason)
    """
    if not payload or payload.get('appointment_date') in (None, ''):
        logger.debug("Appointment validation failed: missing appointment_date")
        return False, MISSING_REQUIRED_FIELD

    lead_id = payload.get('lead_id')
    if lead_id not in (None, ''):
        try:
            int(lead_id)
        except (TypeError, ValueError):
            logger.debug(f"Appointment validation failed: lead_id '{lead_id}' is not numeric")
            return False, INVALID_LEAD_ID
        return True, None

    missing = missing_fields(payload, APPOINTMENT_REQUIRED_FIELDS)
    if missing:
        logger.debug(f"Appointment validation failed: missing required fields {missing}")
        return False, MISSING_REQUIRED_FIELD

    if normalize_phone(str(payload['customer_phone'])) is None:
        logger.debug("Appointment validation failed: customer_phone cannot be normalized")
        return False, INVALID_PHONE

    email = payload.get('customer_email')
    if email and not _has_valid_email({'email': email}):
        return False, INVALID_EMAIL

    return True, None
