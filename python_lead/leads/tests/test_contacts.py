"""
Unit tests for the contact store and identifier generation.
"""
import pytest
from unittest.mock import patch

from django.db import DatabaseError

from leads.exceptions import StoreError, ValidationError
from leads.models import Contact, ContactEvent
from leads.services import identifiers
from leads.services.contacts import find_latest_contact_by_phone, find_or_create_contact

PHONE = '+12145550147'


@pytest.mark.django_db
class TestFindOrCreateContact:
    """Tests for find_or_create_contact."""

    def test_first_sighting_creates_contact(self):
        """Test the first sighting of a phone creates a contact with a 6-digit id."""
        contact, is_new = find_or_create_contact('ws_tex_roof_002', PHONE, {'first_name': 'Dana'})

        assert is_new is True
        assert contact.first_name == 'Dana'
        assert 100000 <= contact.id <= 999999
        assert Contact.objects.count() == 1

    def test_second_sighting_reuses_and_updates(self):
        """Test a repeat sighting reuses the contact and merges new attributes."""
        first, _ = find_or_create_contact('ws_tex_roof_002', PHONE, {'first_name': 'Dana', 'city': 'Dallas'})
        second, is_new = find_or_create_contact('ws_tex_roof_002', PHONE, {'email': 'dana@example.com'})

        assert is_new is False
        assert second.id == first.id
        second.refresh_from_db()
        assert second.email == 'dana@example.com'
        assert second.city == 'Dallas'
        assert second.first_name == 'Dana'

    def test_none_attributes_do_not_overwrite(self):
        """Test None attributes never overwrite stored values."""
        find_or_create_contact('ws_tex_roof_002', PHONE, {'first_name': 'Dana'})
        contact, _ = find_or_create_contact('ws_tex_roof_002', PHONE, {'first_name': None})

        contact.refresh_from_db()
        assert contact.first_name == 'Dana'

    def test_same_phone_on_other_endpoint_is_a_new_contact(self):
        """Test the same phone on another endpoint is a separate contact."""
        first, _ = find_or_create_contact('ws_tex_roof_002', PHONE)
        second, is_new = find_or_create_contact('ws_cal_solar_001', PHONE)

        assert is_new is True
        assert first.id != second.id

    def test_missing_phone_rejected(self):
        """Test an empty phone is rejected."""
        with pytest.raises(ValidationError):
            find_or_create_contact('ws_tex_roof_002', '')

    def test_lost_race_reuses_winner(self):
        """Test a creation that loses a race reuses the concurrent winner."""
        winner = Contact.objects.create(id=123456, endpoint_id='ws_tex_roof_002', phone=PHONE, first_name='Dana')

        # The first lookup misses the row a concurrent request just inserted
        with patch('leads.services.contacts._find_contact', side_effect=[None, winner]):
            contact, is_new = find_or_create_contact('ws_tex_roof_002', PHONE, {'last_name': 'Whitfield'})

        assert is_new is False
        assert contact.id == winner.id
        assert Contact.objects.count() == 1
        winner.refresh_from_db()
        assert winner.last_name == 'Whitfield'

    def test_latest_contact_by_phone(self):
        """Test the most recent contact is found across endpoints."""
        find_or_create_contact('ws_tex_roof_002', PHONE)
        latest, _ = find_or_create_contact('ws_cal_solar_001', PHONE)

        assert find_latest_contact_by_phone(PHONE).id == latest.id
        assert find_latest_contact_by_phone('+19995550100') is None

    def test_full_name_skips_missing_parts(self):
        """Test full_name joins only the name parts that are present."""
        contact, _ = find_or_create_contact('ws_tex_roof_002', PHONE, {'first_name': 'Dana'})

        assert contact.full_name == 'Dana'
        contact.last_name = 'Whitfield'
        assert contact.full_name == 'Dana Whitfield'


@pytest.mark.django_db
class TestContactEvents:
    """Tests for the per-sighting contact audit."""

    def test_creation_is_audited(self):
        """Test the first sighting writes a created event with the identity fields."""
        contact, _ = find_or_create_contact('ws_tex_roof_002', PHONE, {'email': 'dana@example.com'})

        event = ContactEvent.objects.get(contact=contact)
        assert event.event_type == 'created'
        assert event.event_data == {
            'endpoint_id': 'ws_tex_roof_002',
            'phone': PHONE,
            'email': 'dana@example.com',
        }

    def test_update_is_audited_with_changed_attributes(self):
        """Test a repeat sighting writes an updated event carrying the new attributes."""
        contact, _ = find_or_create_contact('ws_tex_roof_002', PHONE, {'first_name': 'Dana'})
        find_or_create_contact('ws_tex_roof_002', PHONE, {'city': 'Dallas', 'email': None})

        events = list(ContactEvent.objects.filter(contact=contact))
        assert [e.event_type for e in events] == ['created', 'updated']
        assert events[1].event_data == {'city': 'Dallas'}

    def test_audit_failure_does_not_fail_the_sighting(self):
        """Test a failed audit write is logged and the contact is still stored."""
        with patch('leads.models.ContactEvent.objects.create', side_effect=DatabaseError('disk full')):
            contact, is_new = find_or_create_contact('ws_tex_roof_002', PHONE, {'first_name': 'Dana'})

        assert is_new is True
        assert Contact.objects.filter(pk=contact.id).exists()
        assert ContactEvent.objects.count() == 0


@pytest.mark.django_db
class TestUniqueIdentifiers:
    """Tests for create_with_unique_id."""

    def test_collision_retries_with_fresh_id(self):
        """Test an id collision retries with a fresh id."""
        Contact.objects.create(id=111111, endpoint_id='', phone='+19995550100')
        candidates = iter([111111, 222222])

        contact = identifiers.create_with_unique_id(
            Contact, lambda: next(candidates), endpoint_id='', phone=PHONE,
        )

        assert contact.id == 222222

    def test_exhausted_attempts_raise_store_error(self):
        """Test repeated collisions raise StoreError."""
        Contact.objects.create(id=111111, endpoint_id='', phone='+19995550100')

        with pytest.raises(StoreError):
            identifiers.create_with_unique_id(Contact, lambda: 111111, endpoint_id='', phone=PHONE)

    def test_generated_ids_stay_in_range(self):
        """Test generated contact and lead ids keep their digit counts."""
        for _ in range(50):
            assert 100000 <= identifiers.generate_contact_id() <= 999999
            assert 1000000000 <= identifiers.generate_lead_id() <= 9999999999
