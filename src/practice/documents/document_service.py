"""
Document Service

Stores uploaded and generated files under
``{STORAGE_ROOT}/documents/files/<uuid><ext>`` and keeps their metadata in
the practice store.
"""

import logging
from collections import defaultdict
from datetime import datetime, date
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable
from uuid import UUID, uuid4

from .document_models import Document, DocumentCategory
from ..store import PracticeStore, get_practice_store
from config.settings import get_settings
from security.api_errors import not_found, rule_violation
from security.file_upload_security import (
    compute_file_hash,
    get_extension,
    validate_content,
)
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)

# Upload form fields the document model does not carry
FORBIDDEN_UPLOAD_FIELDS = ("tags", "description")

UPDATABLE_FIELDS = {"client_id", "service_id", "task_id", "category", "original_name"}


class DocumentService:
    """
    Service for client documents.

    Provides:
    - Validated upload and storage of generated output
    - Filtering, search and statistics
    - Download / inline preview content
    - Single and bulk delete / move
    """

    def __init__(self, store: Optional[PracticeStore] = None, root: Optional[Path] = None):
        self.store = store or get_practice_store()
        self._root = root
        self.changes = ChangeLogger("documents")

    @property
    def files_dir(self) -> Path:
        path = Path(self._root or get_settings().storage.documents_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def set_root(self, root: Optional[Path]) -> None:
        """Point storage at a different files directory."""
        self._root = root

    def _check_links(self, client_id: Optional[UUID], service_id: Optional[UUID], task_id: Optional[UUID]) -> None:
        if client_id and client_id not in self.store.clients:
            raise not_found("Client", client_id)
        if service_id and service_id not in self.store.services:
            raise not_found("Service", service_id)
        if task_id and task_id not in self.store.tasks:
            raise not_found("Task", task_id)

    def _write(self, content: bytes, extension: str) -> tuple:
        file_id = uuid4()
        filename = f"{file_id}.{extension}" if extension else str(file_id)
        path = self.files_dir / filename
        path.write_bytes(content)
        return file_id, filename, path

    # =========================================================================
    # STORE
    # =========================================================================

    def upload(
        self,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None,
        client_id: Optional[UUID] = None,
        service_id: Optional[UUID] = None,
        task_id: Optional[UUID] = None,
        category: DocumentCategory = DocumentCategory.OTHER,
        uploaded_by: Optional[str] = None,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> Document:
        """Validate and store an uploaded file."""
        forbidden = [f for f in FORBIDDEN_UPLOAD_FIELDS if (extra_fields or {}).get(f) not in (None, "")]
        if forbidden:
            raise rule_violation(
                f"Unsupported upload field(s): {', '.join(forbidden)}",
                fields=forbidden,
            )
        self._check_links(client_id, service_id, task_id)

        upload = validate_content(
            filename,
            content,
            declared_type=content_type,
            max_size_mb=get_settings().storage.max_upload_mb,
        )
        file_id, stored_name, path = self._write(content, upload.extension)

        document = Document(
            id=file_id,
            client_id=client_id,
            service_id=service_id,
            task_id=task_id,
            filename=stored_name,
            original_name=upload.safe_filename,
            mime_type=upload.content_type,
            size=upload.size_bytes,
            category=category,
            file_path=str(path),
            checksum=upload.file_hash,
            uploaded_by=uploaded_by,
        )
        self.store.documents[document.id] = document
        logger.info(f"Stored document: {document.id} ({document.original_name}, {document.size} bytes)")
        self.changes.record("uploaded", document.id, client_id=str(client_id) if client_id else None)
        return document

    def save_generated(
        self,
        filename: str,
        content: bytes,
        mime_type: str,
        client_id: Optional[UUID] = None,
        service_id: Optional[UUID] = None,
        category: DocumentCategory = DocumentCategory.REPORTS,
        uploaded_by: Optional[str] = None,
    ) -> Document:
        """Store output produced by the system (letters); no upload validation."""
        file_id, stored_name, path = self._write(content, get_extension(filename))
        document = Document(
            id=file_id,
            client_id=client_id,
            service_id=service_id,
            filename=stored_name,
            original_name=filename,
            mime_type=mime_type,
            size=len(content),
            category=category,
            file_path=str(path),
            checksum=compute_file_hash(content),
            uploaded_by=uploaded_by or "system",
        )
        self.store.documents[document.id] = document
        logger.info(f"Saved generated document: {document.id} ({filename})")
        self.changes.record("generated", document.id, client_id=str(client_id) if client_id else None)
        return document

    # =========================================================================
    # READ
    # =========================================================================

    def get(self, document_id: UUID) -> Optional[Document]:
        return self.store.documents.get(document_id)

    def list(
        self,
        client_id: Optional[UUID] = None,
        category: Optional[DocumentCategory] = None,
        mime_type: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
    ) -> List[Document]:
        """Documents matching the filters, newest first."""
        documents = list(self.store.documents.values())

        if client_id:
            documents = [d for d in documents if d.client_id == client_id]
        if category:
            documents = [d for d in documents if d.category == category]
        if mime_type:
            documents = [d for d in documents if d.mime_type == mime_type]
        if date_from:
            documents = [d for d in documents if d.uploaded_at.date() >= date_from]
        if date_to:
            documents = [d for d in documents if d.uploaded_at.date() <= date_to]
        if search:
            q = search.lower()
            documents = [d for d in documents if q in d.original_name.lower() or q in d.filename.lower()]

        documents.sort(key=lambda d: d.uploaded_at, reverse=True)
        return documents

    def list_by_client(self, client_id: UUID) -> List[Document]:
        return self.list(client_id=client_id)

    def read_content(self, document_id: UUID) -> Optional[bytes]:
        """Raw bytes of a stored file, or None when the record or file is missing."""
        document = self.store.documents.get(document_id)
        if not document:
            return None
        path = Path(document.file_path)
        if not path.exists():
            logger.warning(f"Document file missing on disk: {path}")
            return None
        return path.read_bytes()

    def preview(self, document_id: UUID) -> Optional[bytes]:
        """Content for inline display; only for PDFs, images and text."""
        document = self.store.documents.get(document_id)
        if not document:
            return None
        if not document.is_previewable:
            raise rule_violation(
                f"Preview not available for {document.mime_type}",
                mime_type=document.mime_type,
            )
        return self.read_content(document_id)

    def stats(self) -> Dict[str, Any]:
        documents = self.list()
        by_category: Dict[str, int] = defaultdict(int)
        by_mime_type: Dict[str, int] = defaultdict(int)
        for document in documents:
            by_category[document.category.value] += 1
            by_mime_type[document.mime_type] += 1
        return {
            "total_documents": len(documents),
            "total_size": sum(d.size for d in documents),
            "by_category": dict(by_category),
            "by_mime_type": dict(by_mime_type),
            "recent_uploads": [d.to_dict() for d in documents[:10]],
        }

    # =========================================================================
    # WRITE
    # =========================================================================

    def update(self, document_id: UUID, updates: Dict[str, Any]) -> Optional[Document]:
        document = self.store.documents.get(document_id)
        if not document:
            return None
        self._check_links(updates.get("client_id"), updates.get("service_id"), updates.get("task_id"))
        for key, value in updates.items():
            if key in UPDATABLE_FIELDS:
                setattr(document, key, value)
        document.updated_at = datetime.utcnow()
        logger.info(f"Updated document: {document_id}")
        self.changes.record("updated", document_id)
        return document

    def delete(self, document_id: UUID) -> bool:
        document = self.store.documents.pop(document_id, None)
        if not document:
            return False
        path = Path(document.file_path)
        if path.exists():
            path.unlink()
        logger.info(f"Deleted document: {document_id}")
        self.changes.record("deleted", document_id)
        return True

    def bulk(
        self,
        action: str,
        document_ids: Iterable[UUID],
        client_id: Optional[UUID] = None,
        category: Optional[DocumentCategory] = None,
    ) -> Dict[str, Any]:
        """Delete or move (re-assign client and/or category) several documents."""
        action = (action or "").lower()
        if action not in ("delete", "move"):
            raise rule_violation(f"Unsupported bulk action: {action}")
        if action == "move" and client_id is None and category is None:
            raise rule_violation("Move requires a client_id or category")

        processed = 0
        missing = []
        for document_id in document_ids:
            if action == "delete":
                ok = self.delete(document_id)
            else:
                updates: Dict[str, Any] = {}
                if client_id is not None:
                    updates["client_id"] = client_id
                if category is not None:
                    updates["category"] = category
                ok = self.update(document_id, updates) is not None
            if ok:
                processed += 1
            else:
                missing.append(str(document_id))

        logger.info(f"Bulk {action}: {processed} document(s), {len(missing)} missing")
        return {"action": action, "processed": processed, "missing": missing}


_document_service: Optional[DocumentService] = None


def get_document_service() -> DocumentService:
    """Get the singleton document service instance."""
    global _document_service
    if _document_service is None:
        _document_service = DocumentService()
    return _document_service
