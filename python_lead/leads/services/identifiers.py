"""
Random numeric identifiers for contacts and leads.

Contact ids are 6 digits and lead ids are 10 digits. The unique primary key
is the arbiter: a colliding insert is rolled back to its savepoint and
retried with a fresh candidate.
"""
import logging
import random

from django.db import IntegrityError, transaction

from leads.exceptions import StoreError

logger = logging.getLogger(__name__)

CONTACT_ID_RANGE = (100000, 999999)
LEAD_ID_RANGE = (1000000000, 9999999999)
MAX_ID_ATTEMPTS = 10


def generate_contact_id() -> int:
    return random.randint(*CONTACT_ID_RANGE)


def generate_lead_id() -> int:
    return random.randint(*LEAD_ID_RANGE)


def create_with_unique_id(model, generator, **fields):
    """
    Insert a ``model`` row under a freshly generated primary key.

    Args:
        model: Model class with a caller-assigned integer primary key
        generator: Zero-argument callable returning candidate ids
        **fields: Remaining column values

    Returns:
        The created instance

    Raises:
        IntegrityError: When the insert violates a constraint other than the primary key
        StoreError: When every candidate id collided
    """
    for attempt in range(1, MAX_ID_ATTEMPTS + 1):
        candidate = generator()
        try:
            with transaction.atomic():
                return model.objects.create(pk=candidate, **fields)
        except IntegrityError:
            if not model.objects.filter(pk=candidate).exists():
                raise
            logger.warning(
                f"{model.__name__} id {candidate} already taken "
                f"(attempt {attempt}/{MAX_ID_ATTEMPTS})"
            )

    raise StoreError(
        f"Failed to generate unique {model.__name__} id after {MAX_ID_ATTEMPTS} attempts"
    )
