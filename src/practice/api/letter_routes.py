"""
Letter Routes

Letter generation from templates, history and downloads.
"""

from typing import Optional, List, Dict, Any
import logging

from fastapi import APIRouter, Query, Response
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
from ..letters.letter_service import MIME_TYPES, get_letter_service
from ..letters.template_models import LetterStatus, OutputFormat

logger = logging.getLogger(__name__)

letter_router = APIRouter(prefix="/letters", tags=["Letters"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class GenerateLetterRequest(BaseModel):
    """Request to generate a letter for a client."""
    template_id: str = Field(..., description="Template UUID")
    client_id: str = Field(..., description="Client UUID")
    service_id: Optional[str] = None
    placeholder_values: Dict[str, Any] = Field(default_factory=dict)
    output_formats: List[str] = Field(default_factory=lambda: ["PDF"], description="PDF and/or DOCX")
    generated_by: Optional[str] = None
    auto_save: bool = Field(True, description="Store outputs as documents")


class PreviewLetterRequest(BaseModel):
    template_id: str
    client_id: str
    service_id: Optional[str] = None
    placeholder_values: Dict[str, Any] = Field(default_factory=dict)


class BulkGenerateRequest(BaseModel):
    """Same template for several clients; failures are reported per client."""
    template_id: str
    client_ids: List[str] = Field(..., min_length=1)
    placeholder_values: Dict[str, Any] = Field(default_factory=dict)
    output_formats: List[str] = Field(default_factory=lambda: ["PDF"])
    generated_by: Optional[str] = None


def _formats(values: List[str]) -> List[OutputFormat]:
    return [parse_enum(OutputFormat, v, "output format") for v in values]


# =============================================================================
# GENERATION
# =============================================================================

@letter_router.post("/generate")
async def generate_letter(request: GenerateLetterRequest):
    letter = get_letter_service().generate(
        parse_uuid(request.template_id, "template"),
        parse_uuid(request.client_id, "client"),
        service_id=parse_optional_uuid(request.service_id, "service"),
        placeholder_values=request.placeholder_values,
        output_formats=_formats(request.output_formats),
        generated_by=request.generated_by,
        auto_save=request.auto_save,
    )
    logger.info(f"Generated letter {letter.id} for client {letter.client_id}")
    return format_success_response({"letter": letter.to_dict()})


@letter_router.post("/preview")
async def preview_letter(request: PreviewLetterRequest):
    """Rendered text and HTML plus any missing required placeholders."""
    preview = get_letter_service().preview(
        parse_uuid(request.template_id, "template"),
        parse_uuid(request.client_id, "client"),
        service_id=parse_optional_uuid(request.service_id, "service"),
        placeholder_values=request.placeholder_values,
    )
    return format_success_response({"preview": preview})


@letter_router.post("/bulk-generate")
async def bulk_generate_letters(request: BulkGenerateRequest):
    result = get_letter_service().bulk_generate(
        parse_uuid(request.template_id, "template"),
        [parse_uuid(c, "client") for c in request.client_ids],
        placeholder_values=request.placeholder_values,
        output_formats=_formats(request.output_formats),
        generated_by=request.generated_by,
    )
    return format_success_response(result)


# =============================================================================
# HISTORY
# =============================================================================

@letter_router.get("")
async def list_letters(
    client_id: Optional[str] = Query(None),
    service_id: Optional[str] = Query(None),
    template_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
):
    """Generated letters, newest first."""
    letters = get_letter_service().list(
        client_id=parse_optional_uuid(client_id, "client"),
        service_id=parse_optional_uuid(service_id, "service"),
        template_id=parse_optional_uuid(template_id, "template"),
        status=parse_optional_enum(LetterStatus, status, "status"),
    )
    return format_success_response({"letters": dicts(letters), "total": len(letters)})


@letter_router.get("/search")
async def search_letters(q: str = Query(..., min_length=1)):
    letters = get_letter_service().search(q)
    return format_success_response({"letters": dicts(letters), "total": len(letters)})


@letter_router.get("/client/{client_id}")
async def get_client_letters(client_id: str):
    letters = get_letter_service().list_by_client(parse_uuid(client_id, "client"))
    return format_success_response({"letters": dicts(letters), "total": len(letters)})


@letter_router.get("/service/{service_id}")
async def get_service_letters(service_id: str):
    letters = get_letter_service().list_by_service(parse_uuid(service_id, "service"))
    return format_success_response({"letters": dicts(letters), "total": len(letters)})


@letter_router.get("/{letter_id}")
async def get_letter(letter_id: str):
    letter = require(get_letter_service().get(parse_uuid(letter_id, "letter")), "Letter")
    return format_success_response({"letter": letter.to_dict()})


@letter_router.get("/{letter_id}/download")
async def download_letter(letter_id: str, format: str = Query("PDF", description="PDF or DOCX")):
    letter, filename, content = get_letter_service().download(parse_uuid(letter_id, "letter"), format)
    media_type = MIME_TYPES[OutputFormat(format.upper())]
    logger.info(f"Letter {letter.id} downloaded as {format.upper()} ({letter.download_count} downloads)")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
