"""
Template Models

Letter templates and generated letters.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any
from enum import Enum
from uuid import UUID, uuid4

from ..clients.client_models import iso


class TemplateCategory(str, Enum):
    TAX = "TAX"
    HMRC = "HMRC"
    VAT = "VAT"
    COMPLIANCE = "COMPLIANCE"
    GENERAL = "GENERAL"
    ENGAGEMENT = "ENGAGEMENT"
    CLIENT = "CLIENT"


class PlaceholderType(str, Enum):
    TEXT = "TEXT"
    DATE = "DATE"
    CURRENCY = "CURRENCY"
    NUMBER = "NUMBER"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    ADDRESS = "ADDRESS"


class PlaceholderSource(str, Enum):
    CLIENT = "CLIENT"
    SERVICE = "SERVICE"
    USER = "USER"
    MANUAL = "MANUAL"
    SYSTEM = "SYSTEM"


class OutputFormat(str, Enum):
    PDF = "PDF"
    DOCX = "DOCX"


class LetterStatus(str, Enum):
    DRAFT = "DRAFT"
    GENERATED = "GENERATED"
    DOWNLOADED = "DOWNLOADED"
    SENT = "SENT"
    ARCHIVED = "ARCHIVED"


@dataclass
class Placeholder:
    """A merge field declared by a template."""
    key: str = ""
    label: str = ""
    type: PlaceholderType = PlaceholderType.TEXT
    required: bool = False
    default_value: Optional[str] = None
    format: Optional[str] = None
    source: PlaceholderSource = PlaceholderSource.MANUAL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Placeholder":
        return cls(
            key=data["key"],
            label=data.get("label") or data["key"],
            type=PlaceholderType(str(data.get("type") or "TEXT").upper()),
            required=bool(data.get("required", False)),
            default_value=data.get("default_value"),
            format=data.get("format"),
            source=PlaceholderSource(str(data.get("source") or "MANUAL").upper()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "type": self.type.value,
            "required": self.required,
            "default_value": self.default_value,
            "format": self.format,
            "source": self.source.value,
        }


@dataclass
class Template:
    """A letter template with jinja2 content."""
    id: UUID = field(default_factory=uuid4)
    name: str = ""
    description: Optional[str] = None
    category: TemplateCategory = TemplateCategory.GENERAL
    content: str = ""
    placeholders: List[Placeholder] = field(default_factory=list)
    version: int = 1
    is_active: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "content": self.content,
            "placeholders": [p.to_dict() for p in self.placeholders],
            "version": self.version,
            "is_active": self.is_active,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class GeneratedLetter:
    """Record of a letter produced from a template for a client."""
    id: UUID = field(default_factory=uuid4)
    template_id: UUID = None
    template_name: str = ""
    template_version: int = 1
    client_id: UUID = None
    client_name: str = ""
    service_id: Optional[UUID] = None
    service_name: Optional[str] = None
    document_ids: Dict[str, str] = field(default_factory=dict)
    placeholder_values: Dict[str, Any] = field(default_factory=dict)
    generated_by: Optional[str] = None
    status: LetterStatus = LetterStatus.GENERATED
    download_count: int = 0
    last_downloaded_at: Optional[datetime] = None
    generated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "template_id": str(self.template_id) if self.template_id else None,
            "template_name": self.template_name,
            "template_version": self.template_version,
            "client_id": str(self.client_id) if self.client_id else None,
            "client_name": self.client_name,
            "service_id": str(self.service_id) if self.service_id else None,
            "service_name": self.service_name,
            "document_ids": self.document_ids,
            "placeholder_values": self.placeholder_values,
            "generated_by": self.generated_by,
            "status": self.status.value,
            "download_count": self.download_count,
            "last_downloaded_at": iso(self.last_downloaded_at),
            "generated_at": self.generated_at.isoformat(),
        }
