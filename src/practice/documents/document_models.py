"""
Document Models
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum
from uuid import UUID, uuid4


class DocumentCategory(str, Enum):
    TAX = "TAX"
    ACCOUNTS = "ACCOUNTS"
    COMPLIANCE = "COMPLIANCE"
    REPORTS = "REPORTS"
    INVOICES = "INVOICES"
    RECEIPTS = "RECEIPTS"
    BANK_STATEMENTS = "BANK_STATEMENTS"
    OTHER = "OTHER"


# Types a browser can display inline
PREVIEWABLE_PREFIXES = ("image/", "text/")
PREVIEWABLE_TYPES = {"application/pdf"}


@dataclass
class Document:
    """A stored file, optionally tied to a client, service or task."""
    id: UUID = field(default_factory=uuid4)
    client_id: Optional[UUID] = None
    service_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    filename: str = ""
    original_name: str = ""
    mime_type: str = "application/octet-stream"
    size: int = 0
    category: DocumentCategory = DocumentCategory.OTHER
    file_path: str = ""
    checksum: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_previewable(self) -> bool:
        return self.mime_type in PREVIEWABLE_TYPES or self.mime_type.startswith(PREVIEWABLE_PREFIXES)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "client_id": str(self.client_id) if self.client_id else None,
            "service_id": str(self.service_id) if self.service_id else None,
            "task_id": str(self.task_id) if self.task_id else None,
            "filename": self.filename,
            "original_name": self.original_name,
            "mime_type": self.mime_type,
            "size": self.size,
            "category": self.category.value,
            "checksum": self.checksum,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": self.uploaded_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
