"""Tests for people and client parties."""

from datetime import date, timedelta
from uuid import uuid4

import pytest

from practice.people.party_service import get_party_service
from practice.people.person_models import PartyRole
from practice.people.person_service import get_person_service, split_name
from security.api_errors import APIError, ErrorCode


@pytest.fixture
def people():
    return get_person_service()


@pytest.fixture
def parties():
    return get_party_service()


# =============================================================================
# PEOPLE
# =============================================================================

class TestPeople:
    """Person CRUD and lookup."""

    def test_refs_and_email_normalised(self, people):
        jane = people.create("Jane", "Doe", email="  Jane@Example.COM ")
        john = people.create("John", "Roe")
        assert jane.ref == "P001"
        assert john.ref == "P002"
        assert jane.email == "jane@example.com"

    def test_name_required(self, people):
        with pytest.raises(APIError):
            people.create("", "")

    def test_find_and_search(self, people):
        jane = people.create("Jane", "Doe", email="jane@example.com", phone="07700 900123")
        assert people.find_by_email("JANE@example.com") is jane
        assert people.find_by_name("jane  DOE") == [jane]
        assert people.search("900123") == [jane]
        assert people.search("") == []

    def test_delete_blocked_when_linked(self, people, parties, sample_client):
        jane = people.create("Jane", "Doe")
        parties.create(sample_client.id, jane.id, role=PartyRole.DIRECTOR)
        with pytest.raises(APIError) as exc:
            people.delete(jane.id)
        assert exc.value.code == ErrorCode.BUSINESS_RULE_VIOLATION

    def test_delete_unlinked(self, people):
        jane = people.create("Jane", "Doe")
        assert people.delete(jane.id) is True
        assert people.get(jane.id) is None

    @pytest.mark.parametrize("raw,expected", [
        ("SMITH, John Paul", ("John Paul", "Smith")),
        ("Jane Doe", ("Jane", "Doe")),
        ("Cher", ("Cher", "")),
    ])
    def test_split_name(self, raw, expected):
        assert split_name(raw) == expected


# =============================================================================
# PARTIES
# =============================================================================

class TestParties:
    """Linking people to clients."""

    def test_suffix_letters_allocated(self, people, parties, sample_client):
        first = parties.create(sample_client.id, people.create("Jane", "Doe").id, role=PartyRole.DIRECTOR)
        second = parties.create(sample_client.id, people.create("John", "Roe").id, role=PartyRole.SECRETARY)
        assert (first.suffix_letter, first.party_ref) == ("A", "1A001A")
        assert (second.suffix_letter, second.party_ref) == ("B", "1A001B")

    def test_same_person_different_roles(self, people, parties, sample_client):
        jane = people.create("Jane", "Doe")
        parties.create(sample_client.id, jane.id, role=PartyRole.DIRECTOR)
        parties.create(sample_client.id, jane.id, role=PartyRole.SHAREHOLDER, ownership_percent=50)
        with pytest.raises(APIError) as exc:
            parties.create(sample_client.id, jane.id, role=PartyRole.DIRECTOR)
        assert exc.value.code == ErrorCode.BUSINESS_RULE_VIOLATION

    def test_unknown_client_or_person(self, people, parties, sample_client):
        jane = people.create("Jane", "Doe")
        with pytest.raises(APIError) as exc:
            parties.create(uuid4(), jane.id)
        assert exc.value.code == ErrorCode.RESOURCE_NOT_FOUND
        with pytest.raises(APIError):
            parties.create(sample_client.id, uuid4())

    def test_ownership_range(self, people, parties, sample_client):
        jane = people.create("Jane", "Doe")
        with pytest.raises(APIError) as exc:
            parties.create(sample_client.id, jane.id, role=PartyRole.SHAREHOLDER, ownership_percent=120)
        assert exc.value.code == ErrorCode.VALIDATION_OUT_OF_RANGE

    def test_single_primary_contact(self, people, parties, sample_client):
        first = parties.create(sample_client.id, people.create("Jane", "Doe").id, primary_contact=True)
        second = parties.create(sample_client.id, people.create("John", "Roe").id)
        parties.update(second.id, {"primary_contact": True})
        assert second.primary_contact is True
        assert first.primary_contact is False

    def test_resign(self, people, parties, sample_client):
        party = parties.create(sample_client.id, people.create("Jane", "Doe").id, role=PartyRole.DIRECTOR)
        assert party.is_active
        parties.resign(party.id)
        assert party.resigned_at == date.today()
        assert not party.is_active

    def test_future_resignation_still_active(self, people, parties, sample_client):
        party = parties.create(
            sample_client.id,
            people.create("Jane", "Doe").id,
            resigned_at=date.today() + timedelta(days=10),
        )
        assert party.is_active

    def test_list_by_person(self, people, parties, sample_client):
        from practice.clients.client_service import get_client_service

        other = get_client_service().create(name="Beta Ltd")
        jane = people.create("Jane", "Doe")
        parties.create(sample_client.id, jane.id, role=PartyRole.DIRECTOR)
        parties.create(other.id, jane.id, role=PartyRole.DIRECTOR)
        assert [p.party_ref for p in parties.list_by_person(jane.id)] == ["1A001A", "1B001A"]


class TestExternalUpsert:
    """Upserting officers from an external register."""

    def test_creates_then_updates(self, parties, sample_client):
        party, created = parties.upsert_from_external(
            sample_client.id, "CH_OFFICER", "off-1", "DOE, Jane", PartyRole.DIRECTOR,
            appointed_at=date(2020, 1, 1),
        )
        assert created is True
        assert get_person_service().get(party.person_id).full_name == "Jane Doe"

        again, created = parties.upsert_from_external(
            sample_client.id, "CH_OFFICER", "off-1", "DOE, Jane", PartyRole.DIRECTOR,
            resigned_at=date(2024, 1, 1),
        )
        assert created is False
        assert again.id == party.id
        assert again.resigned_at == date(2024, 1, 1)
        assert again.appointed_at == date(2020, 1, 1)

    def test_matches_existing_party_by_name(self, people, parties, sample_client):
        jane = people.create("Jane", "Doe")
        manual = parties.create(sample_client.id, jane.id, role=PartyRole.CONTACT)

        party, created = parties.upsert_from_external(
            sample_client.id, "CH_OFFICER", "off-9", "DOE, Jane", PartyRole.DIRECTOR,
        )
        assert created is False
        assert party.id == manual.id
        assert party.role == PartyRole.DIRECTOR
        assert party.source_id == "off-9"
