"""
Service Routes

API endpoints for recurring client services.
"""

from datetime import date
from typing import Optional
import logging

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from .common import (
    dicts,
    format_success_response,
    parse_enum,
    parse_optional_enum,
    parse_optional_uuid,
    parse_uuid,
    require,
)
from ..compliance.compliance_service import get_compliance_service
from ..services.service_manager import get_service_manager
from ..services.service_models import ServiceFrequency, ServiceStatus

logger = logging.getLogger(__name__)

service_router = APIRouter(prefix="/services", tags=["Services"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CreateServiceRequest(BaseModel):
    """Request to add a service to a client."""
    client_id: str = Field(..., description="Client UUID")
    kind: str = Field(..., min_length=1, description="e.g. Annual Accounts, VAT Returns")
    frequency: str = Field("ANNUAL", description="ANNUAL, QUARTERLY, MONTHLY, WEEKLY")
    fee: float = Field(0.0, ge=0, description="Fee per period")
    status: str = Field("ACTIVE")
    next_due: Optional[date] = None
    description: Optional[str] = None
    create_compliance: bool = Field(True, description="Track the matching compliance obligation")


class UpdateServiceRequest(BaseModel):
    kind: Optional[str] = None
    frequency: Optional[str] = None
    fee: Optional[float] = Field(None, ge=0)
    status: Optional[str] = None
    next_due: Optional[date] = None
    description: Optional[str] = None


class UpdateServiceStatusRequest(BaseModel):
    status: str = Field(..., description="ACTIVE, INACTIVE, SUSPENDED")


class UpdateNextDueRequest(BaseModel):
    next_due: Optional[date] = Field(None, description="New due date; open compliance items follow it")


# =============================================================================
# LISTING
# =============================================================================

@service_router.get("")
async def list_services(
    client_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    kind: Optional[str] = Query(None),
    frequency: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    """List services ordered by next due date."""
    services = get_service_manager().list(
        client_id=parse_optional_uuid(client_id, "client"),
        status=parse_optional_enum(ServiceStatus, status, "status"),
        kind=kind,
        frequency=parse_optional_enum(ServiceFrequency, frequency, "frequency"),
        search=search,
    )
    return format_success_response({"services": dicts(services), "total": len(services)})


@service_router.get("/with-client-details")
async def list_services_with_client_details(
    status: Optional[str] = Query(None),
    kind: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    services = get_service_manager().get_with_client_details(
        status=parse_optional_enum(ServiceStatus, status, "status"),
        kind=kind,
        search=search,
    )
    return format_success_response({"services": services, "total": len(services)})


@service_router.get("/summary")
async def get_services_summary(client_id: Optional[str] = Query(None)):
    """Counts and annualised fees by kind and frequency."""
    summary = get_service_manager().summary(client_id=parse_optional_uuid(client_id, "client"))
    return format_success_response({"summary": summary})


@service_router.get("/client/{client_id}")
async def get_client_services(client_id: str):
    services = get_service_manager().list_by_client(parse_uuid(client_id, "client"))
    return format_success_response({"services": dicts(services), "total": len(services)})


@service_router.get("/kind/{kind}")
async def get_services_by_kind(kind: str):
    services = get_service_manager().list_by_kind(kind)
    return format_success_response({"services": dicts(services), "total": len(services)})


# =============================================================================
# CRUD
# =============================================================================

@service_router.post("")
async def create_service(request: CreateServiceRequest):
    """Create a service; fee is annualised from the frequency."""
    service = get_service_manager().create(
        client_id=parse_uuid(request.client_id, "client"),
        kind=request.kind,
        frequency=parse_enum(ServiceFrequency, request.frequency, "frequency"),
        fee=request.fee,
        status=parse_enum(ServiceStatus, request.status, "status"),
        next_due=request.next_due,
        description=request.description,
    )
    compliance_item = None
    if request.create_compliance:
        compliance_item = get_compliance_service().ensure_for_service(service.id)

    logger.info(f"Created service {service.kind} for client {service.client_id}")
    return format_success_response({
        "service": service.to_dict(),
        "compliance_item": compliance_item.to_dict() if compliance_item else None,
    })


@service_router.get("/{service_id}")
async def get_service(service_id: str):
    service = require(get_service_manager().get(parse_uuid(service_id, "service")), "Service")
    return format_success_response({"service": service.to_dict()})


@service_router.get("/{service_id}/details")
async def get_service_details(service_id: str):
    """Service with client, tasks and compliance items."""
    details = require(get_service_manager().get_details(parse_uuid(service_id, "service")), "Service")
    return format_success_response({"service": details})


@service_router.put("/{service_id}")
async def update_service(service_id: str, request: UpdateServiceRequest):
    updates = request.model_dump(exclude_unset=True)
    if updates.get("frequency") is not None:
        updates["frequency"] = parse_enum(ServiceFrequency, updates["frequency"], "frequency")
    if updates.get("status") is not None:
        updates["status"] = parse_enum(ServiceStatus, updates["status"], "status")
    service = require(get_service_manager().update(parse_uuid(service_id, "service"), updates), "Service")
    return format_success_response({"service": service.to_dict()})


@service_router.put("/{service_id}/status")
async def update_service_status(service_id: str, request: UpdateServiceStatusRequest):
    status = parse_enum(ServiceStatus, request.status, "status")
    service = require(get_service_manager().update_status(parse_uuid(service_id, "service"), status), "Service")
    logger.info(f"Service {service.id} status -> {status.value}")
    return format_success_response({"service": service.to_dict()})


@service_router.put("/{service_id}/next-due")
async def update_service_next_due(service_id: str, request: UpdateNextDueRequest):
    service = require(
        get_service_manager().update_next_due(parse_uuid(service_id, "service"), request.next_due),
        "Service",
    )
    return format_success_response({"service": service.to_dict()})


@service_router.delete("/{service_id}")
async def delete_service(service_id: str):
    """Delete a service and its tasks; compliance items are unlinked."""
    require(get_service_manager().delete(parse_uuid(service_id, "service")), "Service")
    logger.info(f"Deleted service {service_id}")
    return format_success_response({"message": "Service deleted"})
