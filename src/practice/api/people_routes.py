"""
People and Party Routes

People are individuals known to the practice; parties link a person to a
client in a role. Both routers are also mounted under ``/clients``.
"""

from datetime import date
from typing import Optional, Dict, Any
import logging

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from .common import dicts, format_success_response, parse_enum, parse_optional_enum, parse_uuid, require
from ..clients.client_models import Address
from ..people.party_service import get_party_service
from ..people.person_models import PartyRole
from ..people.person_service import get_person_service

logger = logging.getLogger(__name__)

people_router = APIRouter(prefix="/people", tags=["People"])
party_router = APIRouter(prefix="/parties", tags=["Parties"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class AddressModel(BaseModel):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None


class CreatePersonRequest(BaseModel):
    """Request to create a person."""
    first_name: str = Field("", description="Given name(s)")
    last_name: str = Field("", description="Family name")
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    nationality: Optional[str] = None
    address: Optional[AddressModel] = None


class UpdatePersonRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    nationality: Optional[str] = None
    address: Optional[AddressModel] = None


class CreatePartyRequest(BaseModel):
    """Request to link a person to a client."""
    client_id: str = Field(..., description="Client UUID")
    person_id: str = Field(..., description="Person UUID")
    role: str = Field("CONTACT", description="DIRECTOR, SHAREHOLDER, PARTNER, MEMBER, OWNER, UBO, SECRETARY, CONTACT")
    ownership_percent: Optional[float] = Field(None, description="0-100")
    appointed_at: Optional[date] = None
    resigned_at: Optional[date] = None
    primary_contact: bool = False


class UpdatePartyRequest(BaseModel):
    role: Optional[str] = None
    ownership_percent: Optional[float] = None
    appointed_at: Optional[date] = None
    resigned_at: Optional[date] = None
    primary_contact: Optional[bool] = None


class ResignPartyRequest(BaseModel):
    resigned_at: Optional[date] = Field(None, description="Defaults to today")


def _person_updates(request: BaseModel) -> Dict[str, Any]:
    updates = request.model_dump(exclude_unset=True)
    if "address" in updates:
        updates["address"] = Address.from_dict(updates["address"])
    return updates


# =============================================================================
# PEOPLE
# =============================================================================

@people_router.get("")
async def list_people(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """List people ordered by ref."""
    page = get_person_service().list(offset=offset, limit=limit)
    return format_success_response({
        "people": dicts(page["people"]),
        "total": page["total"],
        "offset": offset,
        "limit": limit,
    })


@people_router.get("/search")
async def search_people(q: str = Query(..., min_length=1), limit: int = Query(50, ge=1, le=200)):
    """Search people by name, email or phone."""
    people = get_person_service().search(q, limit=limit)
    return format_success_response({"people": dicts(people), "total": len(people)})


@people_router.post("")
async def create_person(request: CreatePersonRequest):
    """Create a person with the next free P-ref."""
    values = _person_updates(request)
    person = get_person_service().create(
        first_name=values.pop("first_name", ""),
        last_name=values.pop("last_name", ""),
        email=values.pop("email", None),
        **values,
    )
    logger.info(f"Created person {person.ref} via API")
    return format_success_response({"person": person.to_dict()})


@people_router.get("/{person_id}")
async def get_person(person_id: str):
    person = require(get_person_service().get(parse_uuid(person_id, "person")), "Person")
    return format_success_response({"person": person.to_dict()})


@people_router.put("/{person_id}")
async def update_person(person_id: str, request: UpdatePersonRequest):
    person = require(
        get_person_service().update(parse_uuid(person_id, "person"), _person_updates(request)),
        "Person",
    )
    return format_success_response({"person": person.to_dict()})


@people_router.delete("/{person_id}")
async def delete_person(person_id: str):
    """Delete a person; refused while they are linked to any client."""
    require(get_person_service().delete(parse_uuid(person_id, "person")), "Person")
    logger.info(f"Deleted person {person_id}")
    return format_success_response({"message": "Person deleted"})


@people_router.get("/{person_id}/parties")
async def get_person_parties(person_id: str):
    """Every client link a person holds."""
    pid = parse_uuid(person_id, "person")
    require(get_person_service().get(pid), "Person")
    parties = get_party_service().list_by_person(pid)
    return format_success_response({"parties": dicts(parties), "total": len(parties)})


# =============================================================================
# PARTIES
# =============================================================================

@party_router.get("")
async def list_parties(role: Optional[str] = Query(None)):
    parties = get_party_service().list(role=parse_optional_enum(PartyRole, role, "role"))
    return format_success_response({"parties": dicts(parties), "total": len(parties)})


@party_router.post("")
async def create_party(request: CreatePartyRequest):
    """Link a person to a client; the party ref is the client ref plus a suffix letter."""
    party = get_party_service().create(
        client_id=parse_uuid(request.client_id, "client"),
        person_id=parse_uuid(request.person_id, "person"),
        role=parse_enum(PartyRole, request.role, "role"),
        ownership_percent=request.ownership_percent,
        appointed_at=request.appointed_at,
        resigned_at=request.resigned_at,
        primary_contact=request.primary_contact,
    )
    logger.info(f"Created party {party.party_ref}")
    return format_success_response({"party": party.to_dict()})


@party_router.get("/{party_id}")
async def get_party(party_id: str):
    party = require(get_party_service().get(parse_uuid(party_id, "party")), "Party")
    return format_success_response({"party": party.to_dict()})


@party_router.put("/{party_id}")
async def update_party(party_id: str, request: UpdatePartyRequest):
    updates = request.model_dump(exclude_unset=True)
    if updates.get("role") is not None:
        updates["role"] = parse_enum(PartyRole, updates["role"], "role")
    party = require(get_party_service().update(parse_uuid(party_id, "party"), updates), "Party")
    return format_success_response({"party": party.to_dict()})


@party_router.put("/{party_id}/resign")
async def resign_party(party_id: str, request: Optional[ResignPartyRequest] = None):
    """Record a resignation (today unless a date is given)."""
    resigned_at = request.resigned_at if request else None
    party = require(get_party_service().resign(parse_uuid(party_id, "party"), resigned_at), "Party")
    logger.info(f"Party {party.party_ref} resigned")
    return format_success_response({"party": party.to_dict()})


@party_router.delete("/{party_id}")
async def delete_party(party_id: str):
    require(get_party_service().delete(parse_uuid(party_id, "party")), "Party")
    return format_success_response({"message": "Party deleted"})
