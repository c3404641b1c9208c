"""
Client Routes

API endpoints for the client register: CRUD, references and portfolios,
CSV import, full onboarding and derived status views.
"""

from datetime import date
from typing import Optional, List, Dict, Any
import logging

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field

from .common import dicts, format_success_response, parse_enum, parse_optional_enum, require
from .people_routes import AddressModel, party_router, people_router
from ..clients.client_import import ClientImporter
from ..clients.client_models import Address, ClientStatus, ClientType
from ..clients.client_service import get_client_service
from ..clients.onboarding import get_onboarding_service
from ..people.party_service import get_party_service

logger = logging.getLogger(__name__)

client_router = APIRouter(prefix="/clients", tags=["Clients"])

# Mounted first so "/clients/people" and "/clients/parties" never reach "/{client_id}"
client_router.include_router(people_router)
client_router.include_router(party_router)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ClientFields(BaseModel):
    main_email: Optional[str] = None
    main_phone: Optional[str] = None
    address: Optional[AddressModel] = None
    registered_number: Optional[str] = None
    utr_number: Optional[str] = None
    vat_number: Optional[str] = None
    paye_reference: Optional[str] = None
    incorporation_date: Optional[date] = None
    accounts_accounting_reference_day: Optional[int] = Field(None, ge=1, le=31)
    accounts_accounting_reference_month: Optional[int] = Field(None, ge=1, le=12)
    accounts_last_made_up_to: Optional[date] = None
    accounts_next_due: Optional[date] = None
    confirmation_last_made_up_to: Optional[date] = None
    confirmation_next_due: Optional[date] = None
    notes: Optional[str] = None


class CreateClientRequest(ClientFields):
    """Request to create a client."""
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field("COMPANY", description="COMPANY, INDIVIDUAL, SOLE_TRADER, PARTNERSHIP, LLP")
    portfolio_code: int = Field(1, ge=1, description="Portfolio number")
    status: str = Field("ACTIVE", description="ACTIVE, INACTIVE, ARCHIVED")
    ref: Optional[str] = Field(None, description="Kept when valid and unused")


class UpdateClientRequest(ClientFields):
    """Ordinary field changes. Ref and portfolio have their own endpoints."""
    name: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None


class UpdateRefRequest(BaseModel):
    ref: str = Field(..., description="New reference, e.g. 1A005")


class MovePortfolioRequest(BaseModel):
    portfolio_code: int = Field(..., ge=1)


class DirectorRequest(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str = "DIRECTOR"
    ownership_percent: Optional[float] = None
    primary_contact: bool = False


class ServiceRequest(BaseModel):
    kind: str = Field(..., min_length=1)
    frequency: str = "ANNUAL"
    fee: float = Field(0.0, ge=0)
    next_due: Optional[date] = None
    description: Optional[str] = None


class CreateFullClientRequest(BaseModel):
    """Client, directors and services in one request."""
    client: CreateClientRequest
    directors: List[DirectorRequest] = Field(default_factory=list)
    services: Optional[List[ServiceRequest]] = Field(
        None, description="Omit to use the defaults for the client type"
    )
    generate_tasks: bool = False


def _client_values(request: BaseModel) -> Dict[str, Any]:
    values = request.model_dump(exclude_unset=True)
    if "address" in values:
        values["address"] = Address.from_dict(values["address"])
    if values.get("type") is not None:
        values["type"] = parse_enum(ClientType, values["type"], "type")
    if values.get("status") is not None:
        values["status"] = parse_enum(ClientStatus, values["status"], "status")
    return values


def _get_client(client_id: str):
    """Client by UUID or by ref."""
    return require(get_client_service().resolve(client_id), "Client")


# =============================================================================
# LISTING AND SEARCH
# =============================================================================

@client_router.get("")
async def list_clients(
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    portfolio_code: Optional[int] = Query(None, ge=1),
    search: Optional[str] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
):
    """List clients ordered by ref."""
    page = get_client_service().list(
        status=parse_optional_enum(ClientStatus, status, "status"),
        type=parse_optional_enum(ClientType, type, "type"),
        portfolio_code=portfolio_code,
        search=search,
        offset=offset,
        limit=limit,
    )
    return format_success_response({
        "clients": dicts(page["clients"]),
        "total": page["total"],
        "offset": offset,
        "limit": limit,
    })


@client_router.get("/search")
async def search_clients(
    q: str = Query(..., min_length=1, description="Name, ref, email or company number"),
    portfolio_code: Optional[int] = Query(None, ge=1),
):
    clients = get_client_service().search(q, portfolio_code=portfolio_code)
    return format_success_response({"clients": dicts(clients), "total": len(clients)})


@client_router.get("/portfolio/{portfolio_code}")
async def get_portfolio_clients(portfolio_code: int):
    page = get_client_service().list(portfolio_code=portfolio_code, limit=10000)
    return format_success_response({
        "portfolio_code": portfolio_code,
        "clients": dicts(page["clients"]),
        "total": page["total"],
    })


@client_router.get("/stats/portfolios")
async def get_portfolio_stats():
    """Client counts per portfolio."""
    return format_success_response({"portfolios": get_client_service().portfolio_stats()})


# =============================================================================
# IMPORT, ONBOARDING AND REFS
# =============================================================================

async def _read_csv(file: UploadFile) -> str:
    content = await file.read()
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded")


@client_router.post("/import/csv")
async def import_clients_csv(
    file: UploadFile = File(..., description="CSV export"),
    default_portfolio: int = Form(1),
):
    """Create a client per CSV row; failing rows are reported, not fatal."""
    result = ClientImporter().import_csv(await _read_csv(file), default_portfolio=default_portfolio)
    logger.info(f"CSV import from {file.filename}: {len(result['created'])} created")
    return format_success_response({
        "created": len(result["created"]),
        "clients": dicts(result["created"]),
        "errors": result["errors"],
    })


@client_router.post("/import/csv/preview")
async def preview_clients_csv(
    file: UploadFile = File(...),
    default_portfolio: int = Form(1),
):
    """Suggested refs for each row. Nothing is saved."""
    preview = ClientImporter().preview_csv(await _read_csv(file), default_portfolio=default_portfolio)
    return format_success_response(preview)


@client_router.post("/create-full")
async def create_full_client(request: CreateFullClientRequest):
    """Create a client with directors, services, compliance items and optionally tasks."""
    result = get_onboarding_service().create_full(
        client=_client_values(request.client),
        directors=[d.model_dump() for d in request.directors],
        services=[s.model_dump() for s in request.services] if request.services is not None else None,
        generate_tasks=request.generate_tasks,
    )
    logger.info(f"Created full client {result['client'].ref}")
    return format_success_response({
        "client": result["client"].to_dict(),
        "services": dicts(result["services"]),
        "directors": result["directors"],
        "tasks_generated": result["tasks_generated"],
    })


@client_router.post("/refs/regenerate")
async def regenerate_refs(dry_run: bool = Query(True, description="Report changes without applying")):
    changes = get_client_service().regenerate_all_refs(dry_run=dry_run)
    return format_success_response({"dry_run": dry_run, "changes": changes, "total": len(changes)})


# =============================================================================
# CLIENT CRUD
# =============================================================================

@client_router.post("")
async def create_client(request: CreateClientRequest):
    client = get_client_service().create(**_client_values(request))
    logger.info(f"Created client {client.ref} via API")
    return format_success_response({"client": client.to_dict()})


@client_router.get("/{client_id}")
async def get_client(client_id: str):
    """Client by UUID or ref."""
    return format_success_response({"client": _get_client(client_id).to_dict()})


@client_router.put("/{client_id}")
async def update_client(client_id: str, request: UpdateClientRequest):
    client = _get_client(client_id)
    client = get_client_service().update(client.id, _client_values(request))
    return format_success_response({"client": client.to_dict()})


@client_router.delete("/{client_id}")
async def delete_client(client_id: str, cascade: bool = Query(False)):
    """Delete a client. Without ``cascade`` the client must have no dependents."""
    client = _get_client(client_id)
    service = get_client_service()
    if cascade:
        removed = service.delete_cascade(client.id)
        logger.info(f"Cascade deleted client {client.ref}")
        return format_success_response({"message": "Client deleted", "removed": removed})
    service.delete(client.id)
    return format_success_response({"message": "Client deleted"})


@client_router.put("/{client_id}/ref")
async def update_client_ref(client_id: str, request: UpdateRefRequest):
    client = _get_client(client_id)
    client = get_client_service().update_ref(client.id, request.ref)
    return format_success_response({"client": client.to_dict()})


@client_router.put("/{client_id}/portfolio")
async def move_client_portfolio(client_id: str, request: MovePortfolioRequest):
    """Move to another portfolio; the client gets a new ref."""
    client = _get_client(client_id)
    client = get_client_service().move_portfolio(client.id, request.portfolio_code)
    return format_success_response({"client": client.to_dict()})


# =============================================================================
# DERIVED VIEWS
# =============================================================================

@client_router.get("/{client_id}/parties")
async def get_client_parties(client_id: str):
    client = _get_client(client_id)
    parties = get_party_service().list_by_client(client.id)
    return format_success_response({"parties": dicts(parties), "total": len(parties)})


@client_router.get("/{client_id}/with-parties")
async def get_client_with_parties(client_id: str):
    client = _get_client(client_id)
    return format_success_response({"client": get_client_service().get_with_parties(client.id)})


@client_router.get("/{client_id}/primary-contact")
async def get_primary_contact(client_id: str):
    client = _get_client(client_id)
    contact = require(get_client_service().get_primary_contact(client.id), "Primary contact")
    return format_success_response({"primary_contact": contact})


@client_router.get("/{client_id}/ownership-summary")
async def get_ownership_summary(client_id: str):
    client = _get_client(client_id)
    return format_success_response({"ownership": get_client_service().get_ownership_summary(client.id)})


@client_router.get("/{client_id}/hmrc-status")
async def get_hmrc_status(client_id: str):
    """UTR, VAT and PAYE registration status."""
    client = _get_client(client_id)
    return format_success_response({"hmrc_status": get_client_service().hmrc_registration_status(client.id)})


@client_router.get("/{client_id}/compliance-overview")
async def get_compliance_overview(client_id: str):
    """CT600, VAT and confirmation statement cards."""
    client = _get_client(client_id)
    return format_success_response({"overview": get_client_service().compliance_overview(client.id)})
