"""
Task Models

Data models for practice work items and the templates that generate them.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Optional, List, Dict, Any
from enum import Enum
from uuid import UUID, uuid4

from ..clients.client_models import iso
from ..services.service_models import ServiceFrequency


class TaskStatus(str, Enum):
    """Status of a task."""
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    """Priority levels for tasks."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


CLOSED_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class StandaloneCategory(str, Enum):
    """Groups for one-off task templates."""
    CLIENT_COMMUNICATION = "Client Communication"
    BILLING = "Billing & Credit Control"
    PRACTICE_ADMIN = "Practice Administration"
    EMAIL = "Email & Correspondence"
    CLIENT_JOB = "Client Job Workflow"
    INTERNAL = "Internal Operations"
    MARKETING = "Marketing & Growth"


@dataclass
class Task:
    """
    A unit of work for a client.

    Tasks are either generated from a service's template (``service_id``
    set) or created ad hoc / from a standalone template.
    """
    id: UUID = field(default_factory=uuid4)
    client_id: Optional[UUID] = None
    service_id: Optional[UUID] = None

    title: str = ""
    description: Optional[str] = None
    assignee: Optional[str] = None

    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM

    due_date: Optional[date] = None
    tags: List[str] = field(default_factory=list)

    completed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def days_until_due(self) -> Optional[int]:
        if not self.due_date:
            return None
        return (self.due_date - date.today()).days

    @property
    def is_open(self) -> bool:
        return self.status not in CLOSED_STATUSES

    @property
    def is_overdue(self) -> bool:
        if not self.due_date or not self.is_open:
            return False
        return self.days_until_due < 0

    def set_status(self, status: TaskStatus) -> None:
        """Change status, stamping or clearing ``completed_at``."""
        self.status = status
        if status == TaskStatus.COMPLETED:
            self.completed_at = self.completed_at or datetime.utcnow()
        else:
            self.completed_at = None
        self.updated_at = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "client_id": str(self.client_id) if self.client_id else None,
            "service_id": str(self.service_id) if self.service_id else None,
            "title": self.title,
            "description": self.description,
            "assignee": self.assignee,
            "status": self.status.value,
            "priority": self.priority.value,
            "due_date": iso(self.due_date),
            "days_until_due": self.days_until_due,
            "is_overdue": self.is_overdue,
            "tags": self.tags,
            "completed_at": iso(self.completed_at),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class TaskTemplateItem:
    """One task produced when a service comes due."""
    title: str = ""
    description: Optional[str] = None
    days_before_due: int = 0
    priority: TaskPriority = TaskPriority.MEDIUM
    tags: List[str] = field(default_factory=list)
    assignee: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskTemplateItem":
        return cls(
            title=data.get("title", ""),
            description=data.get("description"),
            days_before_due=int(data.get("days_before_due") or 0),
            priority=TaskPriority(str(data.get("priority") or "MEDIUM").upper()),
            tags=list(data.get("tags") or []),
            assignee=data.get("assignee"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "days_before_due": self.days_before_due,
            "priority": self.priority.value,
            "tags": self.tags,
            "assignee": self.assignee,
        }


@dataclass
class ServiceTemplate:
    """
    Task plan for a kind of service.

    Matched to a Service by kind (or any alias, case-insensitive) and
    frequency.
    """
    id: UUID = field(default_factory=uuid4)
    service_kind: str = ""
    aliases: List[str] = field(default_factory=list)
    frequency: ServiceFrequency = ServiceFrequency.ANNUAL
    applies_to: List[str] = field(default_factory=list)
    compliance_impact: Optional[str] = None
    pricing_model: Optional[str] = None
    task_templates: List[TaskTemplateItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def matches(self, kind: str, frequency: ServiceFrequency) -> bool:
        if self.frequency != frequency:
            return False
        wanted = (kind or "").strip().lower()
        names = [self.service_kind] + list(self.aliases)
        return any(name.strip().lower() == wanted for name in names)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "service_kind": self.service_kind,
            "aliases": self.aliases,
            "frequency": self.frequency.value,
            "applies_to": self.applies_to,
            "compliance_impact": self.compliance_impact,
            "pricing_model": self.pricing_model,
            "task_templates": [t.to_dict() for t in self.task_templates],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class StandaloneTaskTemplate:
    """A reusable one-off task (chasing records, issuing an invoice...)."""
    id: UUID = field(default_factory=uuid4)
    title: str = ""
    description: Optional[str] = None
    category: StandaloneCategory = StandaloneCategory.CLIENT_COMMUNICATION
    priority: TaskPriority = TaskPriority.MEDIUM
    tags: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def create_task(
        self,
        client_id: Optional[UUID] = None,
        due_date: Optional[date] = None,
        assignee: Optional[str] = None,
    ) -> Task:
        """Create a task from this template."""
        return Task(
            client_id=client_id,
            title=self.title,
            description=self.description,
            priority=self.priority,
            due_date=due_date,
            assignee=assignee,
            tags=self.tags.copy(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "priority": self.priority.value,
            "tags": self.tags,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
