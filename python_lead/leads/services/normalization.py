"""
Normalization service for inbound lead and appointment payloads.

Lead sources send the same field under different spellings (``firstName``,
``first_name``, ``productid`` ...). ``normalize`` trims every string and
resolves those aliases to one canonical snake_case key.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)

# canonical key -> accepted spellings, first non-empty wins
FIELD_ALIASES = {
    'first_name': ('first_name', 'firstName', 'firstname'),
    'last_name': ('last_name', 'lastName', 'lastname'),
    'email': ('email', 'emailAddress', 'email_address'),
    'phone': ('phone', 'phoneNumber', 'phone_number'),
    'address': ('address', 'address1', 'street'),
    'address2': ('address2', 'address_2'),
    'city': ('city',),
    'state': ('state',),
    'zip_code': ('zip_code', 'zipCode', 'zipcode', 'zip'),
    'product_type': ('product_type', 'productType', 'productid', 'productId', 'product_id'),
    'source': ('source',),
    'subsource': ('subsource', 'sub_source', 'subSource'),
    'campaign_id': ('campaign_id', 'campaignId'),
    'utm_source': ('utm_source', 'utmSource'),
    'utm_medium': ('utm_medium', 'utmMedium'),
    'utm_campaign': ('utm_campaign', 'utmCampaign'),
    'landing_page_url': ('landing_page_url', 'landingPageUrl'),
    'notes': ('notes', 'comment', 'comments'),
}

# routing keys that some sources send as JSON numbers
NUMERIC_FIELDS = ('zip_code', 'product_type')


def normalize_value(value: Any) -> Any:
    """Trim strings; everything else passes through."""
    if isinstance(value, str):
        return value.strip()
    return value


def normalize_dict(data: dict) -> dict:
    """
    Recursively normalize all values in a dictionary.
    """
    result = {}
    for key, value in data.items():
        if isinstance(value, dict):
            result[key] = normalize_dict(value)
        elif isinstance(value, list):
            result[key] = [normalize_dict(item) if isinstance(item, dict)
                           else normalize_value(item) for item in value]
        else:
            result[key] = normalize_value(value)
    return result


def resolve_alias(data: dict, canonical: str) -> Any:
    """
    Return the first non-empty value among the spellings of ``canonical``.

    Args:
        data: Normalized payload
        canonical: Key of ``FIELD_ALIASES``

    Returns:
        The value, or None when no spelling carries one
    """
    for key in FIELD_ALIASES.get(canonical, (canonical,)):
        value = data.get(key)
        if value not in (None, ''):
            return value
    return None


def normalize(payload: dict) -> dict:
    """
    Normalizes an inbound payload.

    Operations:
    - Trim whitespace from all string fields (nested included)
    - Resolve camelCase/alias spellings to canonical snake_case keys
    - Lowercase email addresses
    - Stringify zip codes and product ids sent as JSON numbers

    Unknown keys are kept as-is so product-specific answers survive.

    Args:
        payload: Raw submission

    Returns:
        Normalized copy of the payload; the input is never modified
    """
    if not payload:
        return {}

    normalized = normalize_dict(payload)

    for canonical in FIELD_ALIASES:
        value = resolve_alias(normalized, canonical)
        if value is not None:
            normalized[canonical] = value

    if isinstance(normalized.get('email'), str):
        normalized['email'] = normalized['email'].lower()

    for key in NUMERIC_FIELDS:
        value = normalized.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            normalized[key] = str(value)

    logger.debug(f"Normalized payload: {normalized}")
    return normalized
