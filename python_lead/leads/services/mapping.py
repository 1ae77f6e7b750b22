"""
Mapping service: normalized submissions to contact attributes and lead columns.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from leads.models import Endpoint

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ('first_name', 'last_name', 'email', 'address', 'city', 'state', 'zip_code')

LEAD_TEXT_FIELDS = (
    'first_name', 'last_name', 'email', 'address', 'address2', 'city', 'state',
    'zip_code', 'product_type', 'subsource', 'campaign_id', 'utm_source',
    'utm_medium', 'utm_campaign', 'landing_page_url', 'notes',
)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a money amount; unparseable values become None."""
    if value in (None, ''):
        return None
    try:
        return Decimal(str(value).replace(',', '').replace('$', ''))
    except InvalidOperation:
        logger.warning(f"Ignoring non-numeric amount {value!r}")
        return None


def split_name(full_name: str):
    """'Jane Q Doe' -> ('Jane', 'Q Doe')."""
    first, _, rest = (full_name or '').strip().partition(' ')
    return first, rest.strip()


def contact_attributes(data: dict) -> dict:
    """
    Contact attributes carried by a normalized submission.

    Absent fields are left out so they never overwrite stored values.
    """
    return {field: data[field] for field in CONTACT_FIELDS if data.get(field) not in (None, '')}


def lead_fields(data: dict, endpoint: Endpoint, raw_payload: dict, phone: str,
                ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> dict:
    """
    Lead columns for a submission received on ``endpoint``.

    Args:
        data: Normalized payload
        endpoint: Receiving endpoint
        raw_payload: Untouched submission, stored as the audit copy
        phone: Normalized phone number
        ip_address: Submitter address, when known
        user_agent: Submitter user agent, when known

    Returns:
        Keyword arguments for ``create_lead``
    """
    fields = {field: data[field] for field in LEAD_TEXT_FIELDS if data.get(field) not in (None, '')}
    fields.update({
        'endpoint_id': endpoint.endpoint_id,
        'lead_type': data.get('lead_type') or endpoint.lead_type,
        'phone': phone,
        'source': data.get('source') or endpoint.name or endpoint.endpoint_id,
        'raw_payload': raw_payload,
        'ip_address': ip_address,
        'user_agent': (user_agent or '')[:500] or None,
        'revenue_potential': to_decimal(data.get('revenue_potential')),
    })
    return fields
