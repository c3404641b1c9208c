"""
Compliance Routes

API endpoints for statutory filing obligations and their link to tasks.
"""

from datetime import date
from typing import Optional, List
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
from ..compliance.compliance_models import ComplianceSource, ComplianceStatus, ComplianceType
from ..compliance.compliance_service import get_compliance_service
from ..compliance.compliance_tasks import get_compliance_task_integration, task_summary

logger = logging.getLogger(__name__)

compliance_router = APIRouter(prefix="/compliance", tags=["Compliance"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CreateComplianceRequest(BaseModel):
    """Request to create a compliance item."""
    client_id: str = Field(..., description="Client UUID")
    type: str = Field(..., description="ANNUAL_ACCOUNTS, CONFIRMATION_STATEMENT, CT600, VAT_RETURN, SA100, ...")
    service_id: Optional[str] = None
    due_date: Optional[date] = None
    description: Optional[str] = None
    status: str = Field("PENDING")
    source: Optional[str] = Field(None, description="Defaults from the type")
    reference: Optional[str] = None
    period: Optional[str] = None


class ManualComplianceRequest(BaseModel):
    client_id: str
    type: str
    due_date: Optional[date] = None
    description: Optional[str] = None
    service_id: Optional[str] = None
    reference: Optional[str] = None
    period: Optional[str] = None


class UpdateComplianceRequest(BaseModel):
    type: Optional[str] = None
    service_id: Optional[str] = None
    due_date: Optional[date] = None
    description: Optional[str] = None
    status: Optional[str] = None
    source: Optional[str] = None
    reference: Optional[str] = None
    period: Optional[str] = None


class BulkUpdateRequest(BaseModel):
    item_ids: List[str] = Field(..., min_length=1)
    status: str = Field(..., description="New status for every item")


class CreateTaskRequest(BaseModel):
    assignee: Optional[str] = None


def _statuses(status: Optional[str]) -> Optional[List[ComplianceStatus]]:
    """Comma separated status filter."""
    if not status:
        return None
    return [parse_enum(ComplianceStatus, s, "status") for s in status.split(",") if s.strip()]


# =============================================================================
# LISTING AND STATISTICS
# =============================================================================

@compliance_router.get("")
async def list_compliance_items(
    portfolio_code: Optional[int] = Query(None, ge=1),
    client_id: Optional[str] = Query(None),
    service_id: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    source: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="One or more statuses, comma separated"),
    due_from: Optional[date] = Query(None),
    due_to: Optional[date] = Query(None),
):
    """List compliance items ordered by due date."""
    items = get_compliance_service().list(
        portfolio_code=portfolio_code,
        client_id=parse_optional_uuid(client_id, "client"),
        service_id=parse_optional_uuid(service_id, "service"),
        type=parse_optional_enum(ComplianceType, type, "type"),
        source=parse_optional_enum(ComplianceSource, source, "source"),
        statuses=_statuses(status),
        due_from=due_from,
        due_to=due_to,
    )
    return format_success_response({"items": dicts(items), "total": len(items)})


@compliance_router.get("/statistics")
async def get_compliance_statistics(portfolio_code: Optional[int] = Query(None, ge=1)):
    return format_success_response({"statistics": get_compliance_service().statistics(portfolio_code)})


@compliance_router.get("/overdue")
async def get_overdue_items(portfolio_code: Optional[int] = Query(None, ge=1)):
    items = get_compliance_service().list_overdue(portfolio_code)
    return format_success_response({"items": dicts(items), "total": len(items)})


@compliance_router.get("/upcoming")
async def get_upcoming_items(
    days: int = Query(30, ge=0, le=366),
    portfolio_code: Optional[int] = Query(None, ge=1),
):
    items = get_compliance_service().list_upcoming(days, portfolio_code)
    return format_success_response({"items": dicts(items), "total": len(items), "days": days})


# =============================================================================
# BULK AND MAINTENANCE
# =============================================================================

@compliance_router.post("/manual")
async def create_manual_item(request: ManualComplianceRequest):
    """Create an item with source MANUAL."""
    item = get_compliance_service().create_manual(
        client_id=parse_uuid(request.client_id, "client"),
        type=parse_enum(ComplianceType, request.type, "type"),
        due_date=request.due_date,
        description=request.description,
        service_id=parse_optional_uuid(request.service_id, "service"),
        reference=request.reference,
        period=request.period,
    )
    logger.info(f"Created manual compliance item {item.id}")
    return format_success_response({"item": item.to_dict()})


@compliance_router.put("/bulk-update")
async def bulk_update_items(request: BulkUpdateRequest):
    status = parse_enum(ComplianceStatus, request.status, "status")
    updated = get_compliance_service().bulk_update_status(
        [parse_uuid(i, "compliance item") for i in request.item_ids], status
    )
    return format_success_response({"updated": updated, "status": status.value})


@compliance_router.post("/auto-generate-from-services")
async def auto_generate_from_services():
    """Create the compliance item each active service implies."""
    return format_success_response(get_compliance_service().auto_generate_from_services())


@compliance_router.post("/cleanup/invalid-clients")
async def cleanup_invalid_clients():
    return format_success_response(get_compliance_service().cleanup_invalid_clients())


# =============================================================================
# TASK INTEGRATION
# =============================================================================

@compliance_router.post("/create-overdue-tasks")
async def create_overdue_tasks():
    result = get_compliance_task_integration().create_tasks_for_overdue()
    logger.info(f"Created {result['created']} task(s) for overdue compliance items")
    return format_success_response(result)


@compliance_router.post("/create-upcoming-tasks")
async def create_upcoming_tasks(days: int = Query(30, ge=0, le=366)):
    result = get_compliance_task_integration().create_tasks_for_upcoming(days)
    return format_success_response(result)


@compliance_router.post("/escalate-overdue")
async def escalate_overdue():
    """Mark past-due items OVERDUE and raise their tasks to URGENT."""
    return format_success_response(get_compliance_task_integration().escalate_overdue())


@compliance_router.get("/task-relationships")
async def get_task_relationships():
    relationships = get_compliance_task_integration().task_relationships()
    return format_success_response({"relationships": relationships, "total": len(relationships)})


@compliance_router.get("/dashboard/integrated")
async def get_integrated_dashboard():
    return format_success_response({"dashboard": get_compliance_task_integration().dashboard()})


@compliance_router.post("/integration/sync-with-tasks")
async def sync_with_tasks():
    """File pending items whose linked tasks are all completed."""
    return format_success_response(get_compliance_task_integration().sync_with_tasks())


@compliance_router.get("/integration/priority-recommendations")
async def get_priority_recommendations():
    return format_success_response(get_compliance_task_integration().priority_recommendations())


# =============================================================================
# ITEM CRUD
# =============================================================================

@compliance_router.post("")
async def create_compliance_item(request: CreateComplianceRequest):
    item = get_compliance_service().create(
        client_id=parse_uuid(request.client_id, "client"),
        type=parse_enum(ComplianceType, request.type, "type"),
        due_date=request.due_date,
        description=request.description,
        service_id=parse_optional_uuid(request.service_id, "service"),
        status=parse_enum(ComplianceStatus, request.status, "status"),
        source=parse_optional_enum(ComplianceSource, request.source, "source"),
        reference=request.reference,
        period=request.period,
    )
    return format_success_response({"item": item.to_dict()})


@compliance_router.get("/{item_id}")
async def get_compliance_item(item_id: str):
    item = require(get_compliance_service().get(parse_uuid(item_id, "compliance item")), "Compliance item")
    return format_success_response({"item": item.to_dict()})


@compliance_router.put("/{item_id}")
async def update_compliance_item(item_id: str, request: UpdateComplianceRequest):
    updates = request.model_dump(exclude_unset=True)
    if updates.get("type") is not None:
        updates["type"] = parse_enum(ComplianceType, updates["type"], "type")
    if updates.get("status") is not None:
        updates["status"] = parse_enum(ComplianceStatus, updates["status"], "status")
    if updates.get("source") is not None:
        updates["source"] = parse_enum(ComplianceSource, updates["source"], "source")
    if "service_id" in updates:
        updates["service_id"] = parse_optional_uuid(updates["service_id"], "service")
    item = require(
        get_compliance_service().update(parse_uuid(item_id, "compliance item"), updates),
        "Compliance item",
    )
    return format_success_response({"item": item.to_dict()})


@compliance_router.delete("/{item_id}")
async def delete_compliance_item(item_id: str):
    require(get_compliance_service().delete(parse_uuid(item_id, "compliance item")), "Compliance item")
    return format_success_response({"message": "Compliance item deleted"})


@compliance_router.put("/{item_id}/filed")
async def mark_item_filed(item_id: str):
    item = require(
        get_compliance_service().mark_filed(parse_uuid(item_id, "compliance item")),
        "Compliance item",
    )
    logger.info(f"Compliance item {item.id} filed")
    return format_success_response({"item": item.to_dict()})


@compliance_router.put("/{item_id}/overdue")
async def mark_item_overdue(item_id: str):
    item = require(
        get_compliance_service().mark_overdue(parse_uuid(item_id, "compliance item")),
        "Compliance item",
    )
    return format_success_response({"item": item.to_dict()})


@compliance_router.post("/{item_id}/create-task")
async def create_task_for_item(item_id: str, request: Optional[CreateTaskRequest] = None):
    """Create a task linked to the item through its description."""
    task = get_compliance_task_integration().create_task_for_item(
        parse_uuid(item_id, "compliance item"),
        assignee=request.assignee if request else None,
    )
    return format_success_response({"task": task.to_dict()})


@compliance_router.get("/{item_id}/tasks")
async def get_item_tasks(item_id: str):
    uid = parse_uuid(item_id, "compliance item")
    require(get_compliance_service().get(uid), "Compliance item")
    tasks = get_compliance_task_integration().find_tasks_for_item(uid)
    return format_success_response({"tasks": [task_summary(t) for t in tasks], "total": len(tasks)})
