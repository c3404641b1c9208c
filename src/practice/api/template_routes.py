"""
Template Routes

API endpoints for letter templates.
"""

from typing import Optional, List, Dict, Any
import logging

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from .common import dicts, format_success_response, parse_enum, parse_optional_enum, parse_uuid, require
from ..letters.template_models import PlaceholderSource, PlaceholderType, TemplateCategory
from ..letters.template_service import get_template_service

logger = logging.getLogger(__name__)

template_router = APIRouter(prefix="/templates", tags=["Templates"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class PlaceholderModel(BaseModel):
    key: str = Field(..., min_length=1, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    label: Optional[str] = None
    type: str = "TEXT"
    required: bool = False
    default_value: Optional[str] = None
    format: Optional[str] = None
    source: str = "MANUAL"


class CreateTemplateRequest(BaseModel):
    """Request to create a letter template."""
    name: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1, description="Jinja2 letter body")
    category: str = Field("GENERAL")
    description: Optional[str] = None
    placeholders: Optional[List[PlaceholderModel]] = Field(
        None, description="Derived from the content when omitted"
    )
    is_active: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)


class UpdateTemplateRequest(BaseModel):
    name: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    placeholders: Optional[List[PlaceholderModel]] = None
    is_active: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None


class TemplatePreviewRequest(BaseModel):
    placeholder_values: Dict[str, Any] = Field(default_factory=dict)


def _placeholder_dicts(placeholders: Optional[List[PlaceholderModel]]) -> Optional[List[Dict[str, Any]]]:
    if placeholders is None:
        return None
    values = []
    for placeholder in placeholders:
        data = placeholder.model_dump()
        data["type"] = parse_enum(PlaceholderType, placeholder.type, "placeholder type").value
        data["source"] = parse_enum(PlaceholderSource, placeholder.source, "placeholder source").value
        values.append(data)
    return values


# =============================================================================
# ENDPOINTS
# =============================================================================

@template_router.get("")
async def list_templates(
    category: Optional[str] = Query(None),
    active_only: bool = Query(True),
):
    templates = get_template_service().list(
        category=parse_optional_enum(TemplateCategory, category, "category"),
        active_only=active_only,
    )
    return format_success_response({"templates": dicts(templates), "total": len(templates)})


@template_router.get("/search")
async def search_templates(q: str = Query("")):
    """Search by name or description; an empty query lists active templates."""
    templates = get_template_service().search(q)
    return format_success_response({"templates": dicts(templates), "total": len(templates)})


@template_router.post("")
async def create_template(request: CreateTemplateRequest):
    template = get_template_service().create(
        name=request.name,
        content=request.content,
        category=parse_enum(TemplateCategory, request.category, "category"),
        description=request.description,
        placeholders=_placeholder_dicts(request.placeholders),
        is_active=request.is_active,
        metadata=request.metadata,
    )
    logger.info(f"Created template {template.id} ({template.name})")
    return format_success_response({"template": template.to_dict()})


@template_router.get("/{template_id}")
async def get_template(template_id: str):
    template = require(get_template_service().get(parse_uuid(template_id, "template")), "Template")
    return format_success_response({"template": template.to_dict()})


@template_router.put("/{template_id}")
async def update_template(template_id: str, request: UpdateTemplateRequest):
    """Update a template; changed content bumps the version."""
    updates = request.model_dump(exclude_unset=True)
    if updates.get("category") is not None:
        updates["category"] = parse_enum(TemplateCategory, updates["category"], "category")
    if request.placeholders is not None:
        updates["placeholders"] = _placeholder_dicts(request.placeholders)
    template = require(
        get_template_service().update(parse_uuid(template_id, "template"), updates),
        "Template",
    )
    return format_success_response({"template": template.to_dict()})


@template_router.delete("/{template_id}")
async def delete_template(template_id: str):
    require(get_template_service().delete(parse_uuid(template_id, "template")), "Template")
    logger.info(f"Deleted template {template_id}")
    return format_success_response({"message": "Template deleted"})


@template_router.post("/{template_id}/preview")
async def preview_template(template_id: str, request: Optional[TemplatePreviewRequest] = None):
    """Render with sample values; nothing is saved."""
    values = request.placeholder_values if request else {}
    preview = require(
        get_template_service().preview(parse_uuid(template_id, "template"), values),
        "Template",
    )
    return format_success_response({"preview": preview})
