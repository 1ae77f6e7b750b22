"""
Phone number normalization.

The normalized form is the only key used for contact identity, so every
function here is pure and deterministic.
"""
import re
from typing import Optional

NON_DIGITS = re.compile(r'\D')
CANONICAL_PATTERN = re.compile(r'^\+1\d{10}$')


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a raw phone number to the ``+1XXXXXXXXXX`` form.

    Args:
        phone: Raw phone number in any format, or None

    Returns:
        Normalized phone number, or None if fewer than 10 digits remain
    """
    if not phone:
        return None

    digits = NON_DIGITS.sub('', str(phone))

    if len(digits) == 10:
        return f'+1{digits}'
    if len(digits) == 11 and digits.startswith('1'):
        return f'+{digits}'
    if len(digits) == 11:
        # Leading digit is a misplaced country code
        return f'+1{digits[1:]}'
    if len(digits) == 12 and digits.startswith('1'):
        return f'+{digits}'
    if len(digits) > 10:
        return f'+1{digits[-10:]}'
    return None


def format_phone_for_display(phone: str) -> str:
    """Render a normalized number as ``(XXX) XXX-XXXX``; anything else is returned unchanged."""
    if not is_valid_phone_number(phone):
        return phone
    digits = phone[2:]
    return f'({digits[:3]}) {digits[3:6]}-{digits[6:]}'


def is_valid_phone_number(phone: Optional[str]) -> bool:
    return bool(phone) and CANONICAL_PATTERN.match(phone) is not None
