"""
Companies House Routes

Read-through access to the Companies House public data API plus import
and sync of companies into the client register.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from .common import format_success_response
from ..companies_house.companies_house_service import get_companies_house_service

logger = logging.getLogger(__name__)

companies_house_router = APIRouter(prefix="/companies-house", tags=["Companies House"])


class ImportCompanyRequest(BaseModel):
    """Request to import a company as a client."""
    company_number: str = Field(..., min_length=1, max_length=10)
    portfolio_code: int = Field(1, ge=1)
    import_officers: bool = True
    create_compliance_items: bool = True
    create_officer_clients: bool = Field(
        False, description="Also create INDIVIDUAL clients for serving officers"
    )
    self_assessment_fee: Optional[float] = Field(
        None, ge=0, description="Adds a Self Assessment service to each officer client"
    )


# =============================================================================
# REGISTER LOOKUPS
# =============================================================================

@companies_house_router.get("/search")
async def search_companies(
    q: str = Query(..., min_length=1),
    items_per_page: int = Query(20, ge=1, le=100),
    start_index: int = Query(0, ge=0),
):
    items = await get_companies_house_service().ch.search_companies(q, items_per_page, start_index)
    return format_success_response({"items": items, "total": len(items)})


@companies_house_router.get("/company/{company_number}")
async def get_company(company_number: str):
    company = await get_companies_house_service().ch.get_company(company_number.upper())
    return format_success_response({"company": company})


@companies_house_router.get("/company/{company_number}/officers")
async def get_company_officers(company_number: str):
    officers = await get_companies_house_service().ch.get_officers(company_number.upper())
    return format_success_response({"officers": officers, "total": len(officers)})


@companies_house_router.get("/company/{company_number}/filing-history")
async def get_filing_history(company_number: str, items_per_page: int = Query(20, ge=1, le=100)):
    history = await get_companies_house_service().ch.get_filing_history(company_number.upper(), items_per_page)
    return format_success_response({"filing_history": history})


@companies_house_router.get("/company/{company_number}/persons-with-significant-control")
async def get_pscs(company_number: str):
    pscs = await get_companies_house_service().ch.get_persons_with_significant_control(company_number.upper())
    return format_success_response({"persons_with_significant_control": pscs})


@companies_house_router.get("/company/{company_number}/charges")
async def get_charges(company_number: str):
    charges = await get_companies_house_service().ch.get_charges(company_number.upper())
    return format_success_response({"charges": charges})


# =============================================================================
# IMPORT AND SYNC
# =============================================================================

@companies_house_router.post("/import")
async def import_company(request: ImportCompanyRequest):
    """Create or refresh a client from the register."""
    result = await get_companies_house_service().import_company(
        request.company_number,
        portfolio_code=request.portfolio_code,
        import_officers=request.import_officers,
        create_compliance_items=request.create_compliance_items,
        create_officer_clients=request.create_officer_clients,
        self_assessment_fee=request.self_assessment_fee,
    )
    client = result["client"]
    logger.info(f"Imported company {request.company_number} as {client.ref}")
    return format_success_response({**result, "client": client.to_dict()})


@companies_house_router.post("/sync/{client_id}")
async def sync_company(client_id: str):
    """Refresh a client from the register. Accepts a client UUID or ref."""
    result = await get_companies_house_service().sync_company_data(client_id)
    return format_success_response({**result, "client": result["client"].to_dict()})


@companies_house_router.get("/compare/{client_id}")
async def compare_with_register(client_id: str):
    """Fields where the client record differs from the register."""
    differences = await get_companies_house_service().compare_client_with_company(client_id)
    return format_success_response({
        "differences": differences,
        "in_sync": not differences,
    })
