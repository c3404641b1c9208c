"""
Letter Generation Service

Merges client, service and manual data into a template, renders it, writes
PDF and/or DOCX output into the document store and records the result as a
GeneratedLetter.

Placeholder precedence, lowest first: system values, client data, service
data, values supplied by the caller. Declared defaults only fill keys that
are still empty.
"""

import logging
import re
from datetime import date, datetime
from typing import Optional, List, Dict, Any, Iterable, Tuple
from uuid import UUID

from .docx_generator import get_docx_generator
from .letter_renderer import get_letter_renderer
from .pdf_generator import get_pdf_generator
from .template_models import GeneratedLetter, LetterStatus, OutputFormat, Template
from ..clients.client_models import uk_date
from ..clients.client_service import get_client_service
from ..documents.document_models import DocumentCategory
from ..documents.document_service import get_document_service
from ..services.service_manager import get_service_manager
from ..store import PracticeStore, get_practice_store
from config.settings import get_settings
from security.api_errors import APIError, ErrorCode, not_found, rule_violation
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)

MIME_TYPES = {
    OutputFormat.PDF: "application/pdf",
    OutputFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def _slug(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", value or "").strip("_") or "letter"


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class LetterGenerationService:
    """
    Generates letters from templates.

    Provides:
    - Placeholder resolution and validation
    - PDF / DOCX output saved as client documents
    - HTML preview without saving anything
    - Bulk generation across clients
    - Letter history and downloads
    """

    def __init__(self, store: Optional[PracticeStore] = None):
        self.store = store or get_practice_store()
        self.renderer = get_letter_renderer()
        self.changes = ChangeLogger("letters")

    # =========================================================================
    # PLACEHOLDERS
    # =========================================================================

    def _system_values(self) -> Dict[str, Any]:
        practice = get_settings().practice
        today = date.today()
        return {
            "firm_name": practice.firm_name,
            "firm_address": practice.firm_address,
            "current_date": uk_date(today),
            "current_year": str(today.year),
        }

    def _load_template(self, template_id: UUID) -> Template:
        template = self.store.templates.get(template_id)
        if not template:
            raise not_found("Template", template_id)
        if not template.is_active:
            raise rule_violation(f"Template '{template.name}' is inactive", template_id=str(template_id))
        return template

    def resolve_placeholders(
        self,
        template: Template,
        client_id: UUID,
        service_id: Optional[UUID] = None,
        placeholder_values: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Dict[str, Any], List[str]]:
        """Merged values and the required keys that are still missing."""
        client_data = get_client_service().build_placeholder_data(client_id)
        if client_data is None:
            raise not_found("Client", client_id)

        values: Dict[str, Any] = self._system_values()
        values.update(client_data)

        if service_id:
            service = self.store.services.get(service_id)
            if not service:
                raise not_found("Service", service_id)
            if service.client_id != client_id:
                raise rule_violation("Service does not belong to this client", service_id=str(service_id))
            values.update(get_service_manager().build_placeholder_data(service_id))

        for key, value in (placeholder_values or {}).items():
            if not _blank(value):
                values[key] = value

        for placeholder in template.placeholders:
            if _blank(values.get(placeholder.key)) and placeholder.default_value is not None:
                values[placeholder.key] = placeholder.default_value

        missing = [p.key for p in template.placeholders if p.required and _blank(values.get(p.key))]
        return values, missing

    # =========================================================================
    # GENERATION
    # =========================================================================

    def _render_output(self, fmt: OutputFormat, text: str, title: str) -> bytes:
        # Templates carry the firm name themselves, so no extra header
        if fmt == OutputFormat.PDF:
            return get_pdf_generator().generate_pdf(text, title=title)
        return get_docx_generator().generate_docx(text, title=title)

    def generate(
        self,
        template_id: UUID,
        client_id: UUID,
        service_id: Optional[UUID] = None,
        placeholder_values: Optional[Dict[str, Any]] = None,
        output_formats: Optional[Iterable[OutputFormat]] = None,
        generated_by: Optional[str] = None,
        auto_save: bool = True,
    ) -> GeneratedLetter:
        template = self._load_template(template_id)
        values, missing = self.resolve_placeholders(template, client_id, service_id, placeholder_values)
        if missing:
            raise APIError(
                ErrorCode.VALIDATION_MISSING_FIELD,
                f"Missing required placeholders: {', '.join(missing)}",
                details={"missing": missing},
            )

        formats = list(dict.fromkeys(output_formats or [OutputFormat.PDF]))
        text = self.renderer.render(template.content, values)
        client = self.store.clients[client_id]
        service = self.store.services.get(service_id) if service_id else None

        letter = GeneratedLetter(
            template_id=template.id,
            template_name=template.name,
            template_version=template.version,
            client_id=client_id,
            client_name=client.name,
            service_id=service_id,
            service_name=service.kind if service else None,
            placeholder_values={k: v for k, v in values.items() if isinstance(v, (str, int, float, bool))},
            generated_by=generated_by,
            status=LetterStatus.GENERATED if auto_save else LetterStatus.DRAFT,
        )

        if auto_save:
            stem = f"{_slug(template.name)}_{client.ref or _slug(client.name)}_{date.today():%Y%m%d}"
            documents = get_document_service()
            for fmt in formats:
                content = self._render_output(fmt, text, title=f"{template.name} - {client.name}")
                document = documents.save_generated(
                    filename=f"{stem}.{fmt.value.lower()}",
                    content=content,
                    mime_type=MIME_TYPES[fmt],
                    client_id=client_id,
                    service_id=service_id,
                    category=DocumentCategory.REPORTS,
                    uploaded_by=generated_by,
                )
                letter.document_ids[fmt.value] = str(document.id)

        self.store.letters[letter.id] = letter
        logger.info(
            f"Generated letter {letter.id} from '{template.name}' v{template.version} "
            f"for client {client_id} ({', '.join(letter.document_ids) or 'not saved'})"
        )
        self.changes.record("generated", letter.id, template_id=str(template.id), client_id=str(client_id))
        return letter

    def preview(
        self,
        template_id: UUID,
        client_id: UUID,
        service_id: Optional[UUID] = None,
        placeholder_values: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Render without saving; missing placeholders are reported, not raised."""
        template = self.store.templates.get(template_id)
        if not template:
            raise not_found("Template", template_id)
        values, missing = self.resolve_placeholders(template, client_id, service_id, placeholder_values)
        return {
            "html": self.renderer.render_html(template.content, values),
            "content": self.renderer.render(template.content, values),
            "missing": missing,
        }

    def bulk_generate(
        self,
        template_id: UUID,
        client_ids: Iterable[UUID],
        placeholder_values: Optional[Dict[str, Any]] = None,
        output_formats: Optional[Iterable[OutputFormat]] = None,
        generated_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._load_template(template_id)
        formats = list(output_formats or [OutputFormat.PDF])
        letters = []
        failed = []
        for client_id in client_ids:
            try:
                letters.append(self.generate(
                    template_id,
                    client_id,
                    placeholder_values=placeholder_values,
                    output_formats=formats,
                    generated_by=generated_by,
                ))
            except APIError as e:
                logger.warning(f"Bulk letter generation failed for client {client_id}: {e.message}")
                failed.append({"client_id": str(client_id), "error": e.message})

        logger.info(f"Bulk generation: {len(letters)} generated, {len(failed)} failed")
        return {
            "generated": len(letters),
            "failed": failed,
            "letters": [letter.to_dict() for letter in letters],
        }

    # =========================================================================
    # HISTORY
    # =========================================================================

    def get(self, letter_id: UUID) -> Optional[GeneratedLetter]:
        return self.store.letters.get(letter_id)

    def list(
        self,
        client_id: Optional[UUID] = None,
        service_id: Optional[UUID] = None,
        template_id: Optional[UUID] = None,
        status: Optional[LetterStatus] = None,
    ) -> List[GeneratedLetter]:
        letters = list(self.store.letters.values())
        if client_id:
            letters = [l for l in letters if l.client_id == client_id]
        if service_id:
            letters = [l for l in letters if l.service_id == service_id]
        if template_id:
            letters = [l for l in letters if l.template_id == template_id]
        if status:
            letters = [l for l in letters if l.status == status]
        letters.sort(key=lambda l: l.generated_at, reverse=True)
        return letters

    def list_by_client(self, client_id: UUID) -> List[GeneratedLetter]:
        return self.list(client_id=client_id)

    def list_by_service(self, service_id: UUID) -> List[GeneratedLetter]:
        return self.list(service_id=service_id)

    def search(self, query: str) -> List[GeneratedLetter]:
        q = (query or "").strip().lower()
        return [
            l for l in self.list()
            if q in l.template_name.lower()
            or q in l.client_name.lower()
            or q in (l.service_name or "").lower()
        ]

    def download(self, letter_id: UUID, fmt: str) -> Tuple[GeneratedLetter, str, bytes]:
        """Letter, filename and content of one stored output format."""
        try:
            output = OutputFormat(str(fmt or "").upper())
        except ValueError:
            raise APIError(
                ErrorCode.VALIDATION_INVALID_FORMAT,
                f"Unsupported format: {fmt}. Use PDF or DOCX",
            )

        letter = self.store.letters.get(letter_id)
        if not letter:
            raise not_found("Letter", letter_id)
        document_id = letter.document_ids.get(output.value)
        if not document_id:
            raise not_found(f"{output.value} output for letter", letter_id)

        documents = get_document_service()
        document_uuid = UUID(document_id)
        content = documents.read_content(document_uuid)
        if content is None:
            raise not_found("Letter document", document_id)

        letter.download_count += 1
        letter.last_downloaded_at = datetime.utcnow()
        letter.status = LetterStatus.DOWNLOADED
        self.changes.record("downloaded", letter_id, format=output.value)
        return letter, documents.get(document_uuid).original_name, content


_letter_service: Optional[LetterGenerationService] = None


def get_letter_service() -> LetterGenerationService:
    global _letter_service
    if _letter_service is None:
        _letter_service = LetterGenerationService()
    return _letter_service
