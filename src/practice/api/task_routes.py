"""
Task Management Routes

API endpoints for tasks, task templates, generation from services and
the task dashboard.
"""

from datetime import date
from typing import Optional, List, Dict, Any
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
from ..services.service_models import ServiceFrequency
from ..tasks.task_models import StandaloneCategory, TaskPriority, TaskStatus
from ..tasks.task_service import get_task_service

logger = logging.getLogger(__name__)

task_router = APIRouter(prefix="/tasks", tags=["Tasks"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CreateTaskRequest(BaseModel):
    """Request to create a new task."""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    client_id: Optional[str] = None
    service_id: Optional[str] = None
    assignee: Optional[str] = None
    status: str = Field("TODO", description="TODO, IN_PROGRESS, REVIEW, COMPLETED, CANCELLED")
    priority: str = Field("MEDIUM", description="LOW, MEDIUM, HIGH, URGENT")
    due_date: Optional[date] = None
    tags: List[str] = Field(default_factory=list)


class UpdateTaskRequest(BaseModel):
    """Request to update a task."""
    title: Optional[str] = None
    description: Optional[str] = None
    client_id: Optional[str] = None
    service_id: Optional[str] = None
    assignee: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[date] = None
    tags: Optional[List[str]] = None


class UpdateStatusRequest(BaseModel):
    """Request to update task status."""
    status: str = Field(..., description="New status")


class BulkDeleteRequest(BaseModel):
    task_ids: List[str] = Field(..., min_length=1)


class TaskTemplateItemRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    days_before_due: int = Field(0, ge=0, le=365)
    priority: str = "MEDIUM"
    tags: List[str] = Field(default_factory=list)
    assignee: Optional[str] = None


class ServiceTemplateRequest(BaseModel):
    """Request to create a service template."""
    service_kind: str = Field(..., min_length=1)
    frequency: str = Field("ANNUAL")
    task_templates: List[TaskTemplateItemRequest] = Field(default_factory=list)
    aliases: List[str] = Field(default_factory=list)
    applies_to: List[str] = Field(default_factory=list)
    compliance_impact: Optional[str] = None
    pricing_model: Optional[str] = None


class UpdateServiceTemplateRequest(BaseModel):
    service_kind: Optional[str] = None
    frequency: Optional[str] = None
    task_templates: Optional[List[TaskTemplateItemRequest]] = None
    aliases: Optional[List[str]] = None
    applies_to: Optional[List[str]] = None
    compliance_impact: Optional[str] = None
    pricing_model: Optional[str] = None


class StandaloneTemplateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., description="Standalone template category")
    description: Optional[str] = None
    priority: str = "MEDIUM"
    tags: List[str] = Field(default_factory=list)


class UpdateStandaloneTemplateRequest(BaseModel):
    title: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    tags: Optional[List[str]] = None


class CreateFromTemplateRequest(BaseModel):
    """Request to create task from template."""
    client_id: Optional[str] = None
    due_date: Optional[date] = None
    assignee: Optional[str] = None


def _template_items(items: List[TaskTemplateItemRequest]) -> List[Dict[str, Any]]:
    values = []
    for item in items:
        data = item.model_dump()
        data["priority"] = parse_enum(TaskPriority, item.priority, "priority").value
        values.append(data)
    return values


def _task_updates(request: BaseModel) -> Dict[str, Any]:
    updates = request.model_dump(exclude_unset=True)
    if updates.get("status") is not None:
        updates["status"] = parse_enum(TaskStatus, updates["status"], "status")
    if updates.get("priority") is not None:
        updates["priority"] = parse_enum(TaskPriority, updates["priority"], "priority")
    if "client_id" in updates:
        updates["client_id"] = parse_optional_uuid(updates["client_id"], "client")
    if "service_id" in updates:
        updates["service_id"] = parse_optional_uuid(updates["service_id"], "service")
    return updates


# =============================================================================
# TASK QUERIES
# =============================================================================

@task_router.get("")
async def list_tasks(
    client_id: Optional[str] = Query(None),
    service_id: Optional[str] = Query(None),
    assignee: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    due_before: Optional[date] = Query(None),
    due_after: Optional[date] = Query(None),
    portfolio_code: Optional[int] = Query(None, ge=1),
    search: Optional[str] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
):
    """List tasks ordered by due date, undated last."""
    page = get_task_service().list(
        client_id=parse_optional_uuid(client_id, "client"),
        service_id=parse_optional_uuid(service_id, "service"),
        assignee=assignee,
        status=parse_optional_enum(TaskStatus, status, "status"),
        priority=parse_optional_enum(TaskPriority, priority, "priority"),
        due_before=due_before,
        due_after=due_after,
        portfolio_code=portfolio_code,
        search=search,
        offset=offset,
        limit=limit,
    )
    return format_success_response({
        "tasks": dicts(page["tasks"]),
        "total": page["total"],
        "offset": offset,
        "limit": limit,
    })


@task_router.get("/summary")
async def get_task_summary(portfolio_code: Optional[int] = Query(None, ge=1)):
    return format_success_response({"summary": get_task_service().summary(portfolio_code)})


@task_router.get("/overdue")
async def get_overdue_tasks():
    tasks = get_task_service().list_overdue()
    return format_success_response({"tasks": dicts(tasks), "total": len(tasks)})


@task_router.get("/due-soon")
async def get_due_soon_tasks(days: int = Query(7, ge=0, le=365)):
    tasks = get_task_service().list_due_soon(days)
    return format_success_response({"tasks": dicts(tasks), "total": len(tasks), "days": days})


@task_router.get("/client/{client_id}")
async def get_client_tasks(client_id: str):
    tasks = get_task_service().list_by_client(parse_uuid(client_id, "client"))
    return format_success_response({"tasks": dicts(tasks), "total": len(tasks)})


@task_router.get("/service/{service_id}")
async def get_service_tasks(service_id: str):
    tasks = get_task_service().list_by_service(parse_uuid(service_id, "service"))
    return format_success_response({"tasks": dicts(tasks), "total": len(tasks)})


@task_router.get("/assignee/{assignee}")
async def get_assignee_tasks(assignee: str):
    tasks = get_task_service().list_by_assignee(assignee)
    return format_success_response({"tasks": dicts(tasks), "total": len(tasks)})


@task_router.post("/bulk-delete")
async def bulk_delete_tasks(request: BulkDeleteRequest):
    deleted = get_task_service().bulk_delete(parse_uuid(t, "task") for t in request.task_ids)
    logger.info(f"Bulk deleted {deleted} task(s)")
    return format_success_response({"deleted": deleted})


# =============================================================================
# SERVICE TEMPLATES
# =============================================================================

@task_router.get("/templates/service-templates")
async def list_service_templates():
    templates = get_task_service().list_service_templates()
    return format_success_response({"templates": dicts(templates), "total": len(templates)})


@task_router.post("/templates/service-templates")
async def create_service_template(request: ServiceTemplateRequest):
    """One template per service kind + frequency."""
    template = get_task_service().create_service_template(
        service_kind=request.service_kind,
        frequency=parse_enum(ServiceFrequency, request.frequency, "frequency"),
        task_templates=_template_items(request.task_templates),
        aliases=request.aliases,
        applies_to=request.applies_to,
        compliance_impact=request.compliance_impact,
        pricing_model=request.pricing_model,
    )
    logger.info(f"Created service template {template.id}")
    return format_success_response({"template": template.to_dict()})


@task_router.get("/templates/service-templates/{template_id}")
async def get_service_template(template_id: str):
    template = require(
        get_task_service().get_service_template(parse_uuid(template_id, "template")),
        "Service template",
    )
    return format_success_response({"template": template.to_dict()})


@task_router.put("/templates/service-templates/{template_id}")
async def update_service_template(template_id: str, request: UpdateServiceTemplateRequest):
    updates = request.model_dump(exclude_unset=True)
    if updates.get("frequency") is not None:
        updates["frequency"] = parse_enum(ServiceFrequency, updates["frequency"], "frequency")
    if request.task_templates is not None:
        updates["task_templates"] = _template_items(request.task_templates)
    template = require(
        get_task_service().update_service_template(parse_uuid(template_id, "template"), updates),
        "Service template",
    )
    return format_success_response({"template": template.to_dict()})


@task_router.delete("/templates/service-templates/{template_id}")
async def delete_service_template(template_id: str):
    require(
        get_task_service().delete_service_template(parse_uuid(template_id, "template")),
        "Service template",
    )
    return format_success_response({"message": "Service template deleted"})


# =============================================================================
# STANDALONE TEMPLATES
# =============================================================================

@task_router.get("/templates/standalone")
async def list_standalone_templates(category: Optional[str] = Query(None)):
    templates = get_task_service().list_standalone_templates(
        parse_optional_enum(StandaloneCategory, category, "category")
    )
    return format_success_response({"templates": dicts(templates), "total": len(templates)})


@task_router.get("/templates/standalone/categories")
async def list_standalone_categories():
    return format_success_response({"categories": get_task_service().standalone_categories()})


@task_router.post("/templates/standalone")
async def create_standalone_template(request: StandaloneTemplateRequest):
    template = get_task_service().create_standalone_template(
        title=request.title,
        category=parse_enum(StandaloneCategory, request.category, "category"),
        description=request.description,
        priority=parse_enum(TaskPriority, request.priority, "priority"),
        tags=request.tags,
    )
    return format_success_response({"template": template.to_dict()})


@task_router.get("/templates/standalone/{template_id}")
async def get_standalone_template(template_id: str):
    template = require(
        get_task_service().get_standalone_template(parse_uuid(template_id, "template")),
        "Standalone template",
    )
    return format_success_response({"template": template.to_dict()})


@task_router.put("/templates/standalone/{template_id}")
async def update_standalone_template(template_id: str, request: UpdateStandaloneTemplateRequest):
    updates = request.model_dump(exclude_unset=True)
    if updates.get("category") is not None:
        updates["category"] = parse_enum(StandaloneCategory, updates["category"], "category")
    if updates.get("priority") is not None:
        updates["priority"] = parse_enum(TaskPriority, updates["priority"], "priority")
    template = require(
        get_task_service().update_standalone_template(parse_uuid(template_id, "template"), updates),
        "Standalone template",
    )
    return format_success_response({"template": template.to_dict()})


@task_router.delete("/templates/standalone/{template_id}")
async def delete_standalone_template(template_id: str):
    require(
        get_task_service().delete_standalone_template(parse_uuid(template_id, "template")),
        "Standalone template",
    )
    return format_success_response({"message": "Standalone template deleted"})


@task_router.post("/templates/standalone/{template_id}/create-task")
async def create_task_from_template(template_id: str, request: CreateFromTemplateRequest):
    """Create a task from a standalone template."""
    task = get_task_service().create_from_standalone_template(
        parse_uuid(template_id, "template"),
        client_id=parse_optional_uuid(request.client_id, "client"),
        due_date=request.due_date,
        assignee=request.assignee,
    )
    logger.info(f"Created task {task.id} from standalone template {template_id}")
    return format_success_response({"task": task.to_dict()})


# =============================================================================
# GENERATION
# =============================================================================

@task_router.post("/generate/service/{service_id}")
async def generate_tasks_for_service(service_id: str):
    """Create template tasks for a service's next due date."""
    tasks = get_task_service().generate_from_service(parse_uuid(service_id, "service"))
    return format_success_response({"created": len(tasks), "tasks": dicts(tasks)})


@task_router.post("/generate/all-services")
async def generate_tasks_for_all_services():
    result = get_task_service().generate_for_all_services()
    return format_success_response(result)


@task_router.post("/generate/client/{client_id}")
async def generate_tasks_for_client(client_id: str):
    result = get_task_service().generate_for_client(parse_uuid(client_id, "client"))
    return format_success_response(result)


@task_router.put("/service/{service_id}/update-next-due")
async def advance_service_next_due(service_id: str):
    """Roll the service's next due date forward by one period."""
    service = get_task_service().advance_service_next_due(parse_uuid(service_id, "service"))
    return format_success_response({"service": service.to_dict()})


# =============================================================================
# DASHBOARD
# =============================================================================

@task_router.get("/alerts/dashboard")
async def get_dashboard_alerts(portfolio_code: Optional[int] = Query(None, ge=1)):
    return format_success_response({"alerts": get_task_service().dashboard_alerts(portfolio_code)})


@task_router.get("/recommendations/priority")
async def get_priority_recommendations(
    assignee: Optional[str] = Query(None),
    portfolio_code: Optional[int] = Query(None, ge=1),
):
    """Open tasks ranked by priority score."""
    return format_success_response(
        get_task_service().priority_recommendations(assignee=assignee, portfolio_code=portfolio_code)
    )


@task_router.get("/compliance/deadlines")
async def get_compliance_deadlines(portfolio_code: Optional[int] = Query(None, ge=1)):
    return format_success_response(get_task_service().compliance_deadlines(portfolio_code))


# =============================================================================
# TASK CRUD
# =============================================================================

@task_router.post("")
async def create_task(request: CreateTaskRequest):
    """Create a new task."""
    task = get_task_service().create(
        title=request.title,
        description=request.description,
        client_id=parse_optional_uuid(request.client_id, "client"),
        service_id=parse_optional_uuid(request.service_id, "service"),
        assignee=request.assignee,
        status=parse_enum(TaskStatus, request.status, "status"),
        priority=parse_enum(TaskPriority, request.priority, "priority"),
        due_date=request.due_date,
        tags=request.tags,
    )
    logger.info(f"Created task {task.id}: {task.title}")
    return format_success_response({"task": task.to_dict()})


@task_router.get("/{task_id}")
async def get_task(task_id: str):
    task = require(get_task_service().get(parse_uuid(task_id, "task")), "Task")
    return format_success_response({"task": task.to_dict()})


@task_router.put("/{task_id}")
async def update_task(task_id: str, request: UpdateTaskRequest):
    task = require(get_task_service().update(parse_uuid(task_id, "task"), _task_updates(request)), "Task")
    return format_success_response({"task": task.to_dict()})


@task_router.put("/{task_id}/status")
async def update_task_status(task_id: str, request: UpdateStatusRequest):
    """Change status; completing a task stamps ``completed_at``."""
    status = parse_enum(TaskStatus, request.status, "status")
    task = require(get_task_service().update_status(parse_uuid(task_id, "task"), status), "Task")
    logger.info(f"Task {task.id} status -> {status.value}")
    return format_success_response({"task": task.to_dict()})


@task_router.delete("/{task_id}")
async def delete_task(task_id: str):
    require(get_task_service().delete(parse_uuid(task_id, "task")), "Task")
    logger.info(f"Deleted task {task_id}")
    return format_success_response({"message": "Task deleted"})
