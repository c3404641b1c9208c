"""
Document Routes

Upload, listing, download and inline preview of client documents.
Payloads are returned under ``data``, with ``total`` on list responses.
"""

from datetime import date
from typing import Optional, List
import logging

from fastapi import APIRouter, File, Form, Query, Response, UploadFile
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
from ..documents.document_models import DocumentCategory
from ..documents.document_service import get_document_service

logger = logging.getLogger(__name__)

document_router = APIRouter(prefix="/documents", tags=["Documents"])


class UpdateDocumentRequest(BaseModel):
    client_id: Optional[str] = None
    service_id: Optional[str] = None
    task_id: Optional[str] = None
    category: Optional[str] = None
    original_name: Optional[str] = Field(None, min_length=1, max_length=255)


class BulkDocumentRequest(BaseModel):
    """Delete or move several documents."""
    action: str = Field(..., description="delete or move")
    document_ids: List[str] = Field(..., min_length=1)
    client_id: Optional[str] = Field(None, description="Target client for move")
    category: Optional[str] = Field(None, description="Target category for move")


def _file_response(content: bytes, media_type: str, filename: str, disposition: str) -> Response:
    safe_name = filename.replace('"', "")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'{disposition}; filename="{safe_name}"'},
    )


# =============================================================================
# UPLOAD AND LISTING
# =============================================================================

@document_router.post("/upload")
async def upload_document(
    file: UploadFile = File(...),
    client_id: Optional[str] = Form(None),
    service_id: Optional[str] = Form(None),
    task_id: Optional[str] = Form(None),
    category: str = Form("OTHER"),
    uploaded_by: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
):
    """
    Upload a file.

    Size, extension and content are validated before anything is written.
    ``tags`` and ``description`` are not stored and are rejected when set.
    """
    content = await file.read()
    document = get_document_service().upload(
        filename=file.filename or "upload",
        content=content,
        content_type=file.content_type,
        client_id=parse_optional_uuid(client_id, "client"),
        service_id=parse_optional_uuid(service_id, "service"),
        task_id=parse_optional_uuid(task_id, "task"),
        category=parse_enum(DocumentCategory, category, "category"),
        uploaded_by=uploaded_by,
        extra_fields={"tags": tags, "description": description},
    )
    logger.info(f"Uploaded document {document.id} ({document.original_name})")
    return format_success_response({"data": document.to_dict()})


@document_router.get("")
async def list_documents(
    client_id: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    mime_type: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None),
):
    """List documents, newest first."""
    documents = get_document_service().list(
        client_id=parse_optional_uuid(client_id, "client"),
        category=parse_optional_enum(DocumentCategory, category, "category"),
        mime_type=mime_type,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return format_success_response({"data": dicts(documents), "total": len(documents)})


@document_router.get("/search")
async def search_documents(q: str = Query(..., min_length=1)):
    documents = get_document_service().list(search=q)
    return format_success_response({"data": dicts(documents), "total": len(documents)})


@document_router.get("/stats")
async def get_document_stats():
    return format_success_response({"data": get_document_service().stats()})


@document_router.get("/client/{client_id}")
async def get_client_documents(client_id: str):
    documents = get_document_service().list_by_client(parse_uuid(client_id, "client"))
    return format_success_response({"data": dicts(documents), "total": len(documents)})


@document_router.post("/bulk")
async def bulk_documents(request: BulkDocumentRequest):
    result = get_document_service().bulk(
        request.action,
        [parse_uuid(d, "document") for d in request.document_ids],
        client_id=parse_optional_uuid(request.client_id, "client"),
        category=parse_optional_enum(DocumentCategory, request.category, "category"),
    )
    return format_success_response({"data": result})


# =============================================================================
# SINGLE DOCUMENT
# =============================================================================

@document_router.get("/{document_id}")
async def get_document(document_id: str):
    document = require(get_document_service().get(parse_uuid(document_id, "document")), "Document")
    return format_success_response({"data": document.to_dict()})


@document_router.get("/{document_id}/download")
async def download_document(document_id: str):
    service = get_document_service()
    uid = parse_uuid(document_id, "document")
    document = require(service.get(uid), "Document")
    content = require(service.read_content(uid), "Document file")
    return _file_response(content, document.mime_type, document.original_name, "attachment")


@document_router.get("/{document_id}/preview")
async def preview_document(document_id: str):
    """Inline display for PDFs, images and text."""
    service = get_document_service()
    uid = parse_uuid(document_id, "document")
    document = require(service.get(uid), "Document")
    content = require(service.preview(uid), "Document file")
    return _file_response(content, document.mime_type, document.original_name, "inline")


@document_router.put("/{document_id}")
async def update_document(document_id: str, request: UpdateDocumentRequest):
    updates = request.model_dump(exclude_unset=True)
    for key, entity in (("client_id", "client"), ("service_id", "service"), ("task_id", "task")):
        if key in updates:
            updates[key] = parse_optional_uuid(updates[key], entity)
    if updates.get("category") is not None:
        updates["category"] = parse_enum(DocumentCategory, updates["category"], "category")
    document = require(
        get_document_service().update(parse_uuid(document_id, "document"), updates),
        "Document",
    )
    return format_success_response({"data": document.to_dict()})


@document_router.delete("/{document_id}")
async def delete_document(document_id: str):
    """Delete the record and the stored file."""
    require(get_document_service().delete(parse_uuid(document_id, "document")), "Document")
    logger.info(f"Deleted document {document_id}")
    return format_success_response({"message": "Document deleted"})
