"""
Task Service

Business logic for practice tasks: CRUD, generation from service
templates, dashboard alerts and prioritisation.
"""

import logging
from collections import defaultdict
from datetime import datetime, date, timedelta
from typing import Optional, List, Dict, Any, Iterable
from uuid import UUID

from .task_models import (
    Task,
    TaskStatus,
    TaskPriority,
    TaskTemplateItem,
    ServiceTemplate,
    StandaloneTaskTemplate,
    StandaloneCategory,
)
from ..dates import advance_by_frequency
from ..services.service_models import Service, ServiceFrequency, ServiceStatus
from ..store import PracticeStore, get_practice_store
from config.settings import get_settings
from security.api_errors import not_found, rule_violation
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)

PRIORITY_SCORES = {
    TaskPriority.URGENT: 100,
    TaskPriority.HIGH: 60,
    TaskPriority.MEDIUM: 30,
    TaskPriority.LOW: 10,
}

COMPLIANCE_TAGS = {"compliance", "filing", "statutory", "deadline"}

UPDATABLE_FIELDS = {
    "title", "description", "assignee", "priority", "due_date", "tags", "client_id", "service_id",
}


def score_task(task: Task) -> int:
    """Priority score used to rank open work."""
    score = PRIORITY_SCORES.get(task.priority, 0)
    if task.status == TaskStatus.IN_PROGRESS:
        score += 5
    days = task.days_until_due
    if days is not None:
        if days < 0:
            score += 50
        elif days <= 1:
            score += 20
        elif days <= 7:
            score += 10
    return score


class TaskService:
    """
    Service for managing tasks.

    Provides:
    - Task CRUD and bulk delete
    - Generation from service templates (deduplicated)
    - Service due-date rollover
    - Dashboard alerts, priority ranking and compliance deadlines
    - Service and standalone template management
    """

    def __init__(self, store: Optional[PracticeStore] = None):
        self.store = store or get_practice_store()
        self.changes = ChangeLogger("tasks")

    def _portfolio_client_ids(self, portfolio_code: int) -> set:
        return {c.id for c in self.store.clients.values() if c.portfolio_code == portfolio_code}

    # =========================================================================
    # TASK CRUD
    # =========================================================================

    def create(
        self,
        title: str,
        client_id: Optional[UUID] = None,
        service_id: Optional[UUID] = None,
        description: Optional[str] = None,
        assignee: Optional[str] = None,
        status: TaskStatus = TaskStatus.TODO,
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_date: Optional[date] = None,
        tags: Optional[List[str]] = None,
    ) -> Task:
        if not (title or "").strip():
            raise rule_violation("Task title is required")
        if client_id and client_id not in self.store.clients:
            raise not_found("Client", client_id)
        if service_id:
            service = self.store.services.get(service_id)
            if not service:
                raise not_found("Service", service_id)
            client_id = client_id or service.client_id

        task = Task(
            title=title.strip(),
            client_id=client_id,
            service_id=service_id,
            description=description,
            assignee=assignee,
            priority=priority,
            due_date=due_date,
            tags=list(tags or []),
        )
        task.set_status(status)
        self.store.tasks[task.id] = task

        logger.info(f"Created task: {task.id} - {task.title}")
        self.changes.record("created", task.id, client_id=str(client_id) if client_id else None)
        return task

    def get(self, task_id: UUID) -> Optional[Task]:
        return self.store.tasks.get(task_id)

    def update(self, task_id: UUID, updates: Dict[str, Any]) -> Optional[Task]:
        task = self.store.tasks.get(task_id)
        if not task:
            return None

        for key, value in updates.items():
            if key in UPDATABLE_FIELDS:
                setattr(task, key, value)
        if updates.get("status") is not None:
            task.set_status(updates["status"])

        task.updated_at = datetime.utcnow()
        logger.info(f"Updated task: {task_id}")
        self.changes.record("updated", task_id)
        return task

    def update_status(self, task_id: UUID, status: TaskStatus) -> Optional[Task]:
        return self.update(task_id, {"status": status})

    def delete(self, task_id: UUID) -> bool:
        task = self.store.tasks.pop(task_id, None)
        if not task:
            return False
        logger.info(f"Deleted task: {task_id}")
        self.changes.record("deleted", task_id)
        return True

    def bulk_delete(self, task_ids: Iterable[UUID]) -> int:
        count = 0
        for task_id in task_ids:
            if self.store.tasks.pop(task_id, None):
                count += 1
        logger.info(f"Bulk deleted {count} task(s)")
        self.changes.record("bulk_deleted", count=count)
        return count

    # =========================================================================
    # TASK QUERIES
    # =========================================================================

    def list(
        self,
        client_id: Optional[UUID] = None,
        service_id: Optional[UUID] = None,
        assignee: Optional[str] = None,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        due_before: Optional[date] = None,
        due_after: Optional[date] = None,
        portfolio_code: Optional[int] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> Dict[str, Any]:
        """Filtered tasks ordered by due date, undated last."""
        tasks = list(self.store.tasks.values())

        if client_id:
            tasks = [t for t in tasks if t.client_id == client_id]
        if service_id:
            tasks = [t for t in tasks if t.service_id == service_id]
        if assignee:
            tasks = [t for t in tasks if t.assignee == assignee]
        if status:
            tasks = [t for t in tasks if t.status == status]
        if priority:
            tasks = [t for t in tasks if t.priority == priority]
        if due_before:
            tasks = [t for t in tasks if t.due_date and t.due_date <= due_before]
        if due_after:
            tasks = [t for t in tasks if t.due_date and t.due_date >= due_after]
        if portfolio_code is not None:
            members = self._portfolio_client_ids(portfolio_code)
            tasks = [t for t in tasks if t.client_id in members]
        if search:
            q = search.lower()
            tasks = [
                t for t in tasks
                if q in t.title.lower() or q in (t.description or "").lower()
            ]

        tasks.sort(key=lambda t: (t.due_date is None, t.due_date or date.max, t.created_at))
        return {"tasks": tasks[offset:offset + limit], "total": len(tasks)}

    def _all(self, **filters: Any) -> List[Task]:
        return self.list(limit=len(self.store.tasks) or 1, **filters)["tasks"]

    def list_by_client(self, client_id: UUID) -> List[Task]:
        return self._all(client_id=client_id)

    def list_by_service(self, service_id: UUID) -> List[Task]:
        return self._all(service_id=service_id)

    def list_by_assignee(self, assignee: str) -> List[Task]:
        return self._all(assignee=assignee)

    def list_overdue(self) -> List[Task]:
        return [t for t in self._all() if t.is_overdue]

    def list_due_soon(self, days: int = 7) -> List[Task]:
        today = date.today()
        horizon = today + timedelta(days=days)
        return [t for t in self._all() if t.is_open and t.due_date and today <= t.due_date <= horizon]

    # =========================================================================
    # GENERATION
    # =========================================================================

    def find_service_template(self, kind: str, frequency: ServiceFrequency) -> Optional[ServiceTemplate]:
        for template in self.store.service_templates.values():
            if template.matches(kind, frequency):
                return template
        return None

    def _within_window(self, service: Service) -> bool:
        if not service.next_due:
            return False
        window = get_settings().practice.task_generation_window_days
        return service.next_due <= date.today() + timedelta(days=window)

    def _exists(self, service_id: UUID, title: str, due_date: Optional[date]) -> bool:
        return any(
            t.service_id == service_id
            and t.title == title
            and t.due_date == due_date
            and t.status != TaskStatus.CANCELLED
            for t in self.store.tasks.values()
        )

    def generate_from_service(self, service_id: UUID) -> List[Task]:
        """
        Create the template tasks for a service's next due date.

        Tasks are due ``days_before_due`` ahead of ``next_due``. Re-running
        is safe: an existing non-cancelled task with the same service,
        title and due date is skipped.
        """
        service = self.store.services.get(service_id)
        if not service:
            raise not_found("Service", service_id)

        template = self.find_service_template(service.kind, service.frequency)
        if not template:
            logger.debug(f"No template for {service.kind} ({service.frequency.value})")
            return []
        if not self._within_window(service):
            return []

        created = []
        for item in template.task_templates:
            due_date = service.next_due - timedelta(days=item.days_before_due)
            if self._exists(service.id, item.title, due_date):
                continue
            created.append(self.create(
                title=item.title,
                description=item.description,
                client_id=service.client_id,
                service_id=service.id,
                due_date=due_date,
                assignee=item.assignee,
                priority=item.priority,
                tags=item.tags,
            ))

        if created:
            logger.info(f"Generated {len(created)} task(s) for service {service.kind} ({service.id})")
        return created

    def generate_for_client(self, client_id: UUID) -> Dict[str, int]:
        services = [s for s in self.store.services.values() if s.client_id == client_id]
        created = sum(len(self.generate_from_service(s.id)) for s in services)
        return {"created": created, "services": len(services)}

    def generate_for_all_services(self) -> Dict[str, int]:
        services = [s for s in self.store.services.values() if s.status == ServiceStatus.ACTIVE]
        created = sum(len(self.generate_from_service(s.id)) for s in services)
        logger.info(f"Generated {created} task(s) across {len(services)} active service(s)")
        return {"created": created, "services": len(services)}

    def advance_service_next_due(self, service_id: UUID) -> Optional[Service]:
        """Roll a service's ``next_due`` forward by one period."""
        from ..services.service_manager import get_service_manager

        service = self.store.services.get(service_id)
        if not service:
            raise not_found("Service", service_id)
        if not service.next_due:
            return service
        next_due = advance_by_frequency(service.next_due, service.frequency)
        return get_service_manager().update_next_due(service_id, next_due)

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    @staticmethod
    def _bucket(tasks: List[Task], severity: str) -> Dict[str, Any]:
        return {
            "count": len(tasks),
            "severity": severity if tasks else "normal",
            "tasks": [t.to_dict() for t in tasks],
        }

    def dashboard_alerts(self, portfolio_code: Optional[int] = None) -> Dict[str, Any]:
        today = date.today()
        tomorrow = today + timedelta(days=1)
        week_end = today + timedelta(days=7)
        open_tasks = [t for t in self._all(portfolio_code=portfolio_code) if t.is_open]
        dated = [t for t in open_tasks if t.due_date]

        return {
            "overdue": self._bucket([t for t in dated if t.due_date < today], "critical"),
            "due_today": self._bucket([t for t in dated if t.due_date == today], "high"),
            "due_tomorrow": self._bucket([t for t in dated if t.due_date == tomorrow], "medium"),
            "due_this_week": self._bucket([t for t in dated if today <= t.due_date <= week_end], "medium"),
            "urgent": self._bucket([t for t in open_tasks if t.priority == TaskPriority.URGENT], "high"),
        }

    def priority_recommendations(
        self,
        assignee: Optional[str] = None,
        portfolio_code: Optional[int] = None,
    ) -> Dict[str, Any]:
        open_tasks = [
            t for t in self._all(assignee=assignee, portfolio_code=portfolio_code) if t.is_open
        ]
        scored = sorted(open_tasks, key=score_task, reverse=True)

        top = []
        for task in scored[:25]:
            entry = task.to_dict()
            entry["priority_score"] = score_task(task)
            top.append(entry)

        return {
            "top_priority": top,
            "recommendations": {
                "overdue": sum(1 for t in open_tasks if t.is_overdue),
                "urgent": sum(1 for t in open_tasks if t.priority == TaskPriority.URGENT),
                "in_progress": sum(1 for t in open_tasks if t.status == TaskStatus.IN_PROGRESS),
            },
        }

    def compliance_deadlines(self, portfolio_code: Optional[int] = None) -> Dict[str, Any]:
        today = date.today()
        tasks = [
            t for t in self._all(portfolio_code=portfolio_code)
            if t.is_open and t.due_date and COMPLIANCE_TAGS.intersection(t.tags)
        ]
        upcoming = [t for t in tasks if t.due_date >= today]
        overdue = [t for t in tasks if t.due_date < today]
        return {
            "upcoming": [t.to_dict() for t in upcoming],
            "overdue": [t.to_dict() for t in overdue],
            "summary": {
                "total_upcoming": len(upcoming),
                "total_overdue": len(overdue),
                "critical_count": sum(1 for t in overdue if t.priority == TaskPriority.URGENT),
            },
        }

    def summary(self, portfolio_code: Optional[int] = None) -> Dict[str, Any]:
        tasks = self._all(portfolio_code=portfolio_code)
        by_status = {s.value: 0 for s in TaskStatus}
        by_priority = {p.value: 0 for p in TaskPriority}
        for task in tasks:
            by_status[task.status.value] += 1
            by_priority[task.priority.value] += 1

        days = get_settings().practice.due_soon_days
        today = date.today()
        return {
            "total": len(tasks),
            "by_status": by_status,
            "by_priority": by_priority,
            "overdue": sum(1 for t in tasks if t.is_overdue),
            "due_soon": sum(
                1 for t in tasks
                if t.is_open and t.due_date and today <= t.due_date <= today + timedelta(days=days)
            ),
        }

    # =========================================================================
    # SERVICE TEMPLATES
    # =========================================================================

    def list_service_templates(self) -> List[ServiceTemplate]:
        return sorted(
            self.store.service_templates.values(),
            key=lambda t: (t.service_kind, t.frequency.value),
        )

    def get_service_template(self, template_id: UUID) -> Optional[ServiceTemplate]:
        return self.store.service_templates.get(template_id)

    def create_service_template(
        self,
        service_kind: str,
        frequency: ServiceFrequency,
        task_templates: List[Dict[str, Any]],
        aliases: Optional[List[str]] = None,
        applies_to: Optional[List[str]] = None,
        compliance_impact: Optional[str] = None,
        pricing_model: Optional[str] = None,
    ) -> ServiceTemplate:
        if self.find_service_template(service_kind, frequency):
            raise rule_violation(
                f"A template for {service_kind} ({frequency.value}) already exists"
            )
        template = ServiceTemplate(
            service_kind=service_kind.strip(),
            frequency=frequency,
            aliases=list(aliases or []),
            applies_to=list(applies_to or []),
            compliance_impact=compliance_impact,
            pricing_model=pricing_model,
            task_templates=[TaskTemplateItem.from_dict(t) for t in task_templates],
        )
        self.store.service_templates[template.id] = template
        logger.info(f"Created service template: {template.service_kind} ({frequency.value})")
        return template

    def update_service_template(self, template_id: UUID, updates: Dict[str, Any]) -> Optional[ServiceTemplate]:
        template = self.store.service_templates.get(template_id)
        if not template:
            return None
        for key in ("service_kind", "frequency", "aliases", "applies_to", "compliance_impact", "pricing_model"):
            if updates.get(key) is not None:
                setattr(template, key, updates[key])
        if updates.get("task_templates") is not None:
            template.task_templates = [TaskTemplateItem.from_dict(t) for t in updates["task_templates"]]
        template.updated_at = datetime.utcnow()
        logger.info(f"Updated service template: {template_id}")
        return template

    def delete_service_template(self, template_id: UUID) -> bool:
        return self.store.service_templates.pop(template_id, None) is not None

    # =========================================================================
    # STANDALONE TEMPLATES
    # =========================================================================

    def list_standalone_templates(self, category: Optional[StandaloneCategory] = None) -> List[StandaloneTaskTemplate]:
        templates = list(self.store.standalone_templates.values())
        if category:
            templates = [t for t in templates if t.category == category]
        templates.sort(key=lambda t: (t.category.value, t.title))
        return templates

    def standalone_categories(self) -> List[str]:
        return [c.value for c in StandaloneCategory]

    def get_standalone_template(self, template_id: UUID) -> Optional[StandaloneTaskTemplate]:
        return self.store.standalone_templates.get(template_id)

    def create_standalone_template(
        self,
        title: str,
        category: StandaloneCategory,
        description: Optional[str] = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        tags: Optional[List[str]] = None,
    ) -> StandaloneTaskTemplate:
        template = StandaloneTaskTemplate(
            title=title.strip(),
            description=description,
            category=category,
            priority=priority,
            tags=list(tags or []),
        )
        self.store.standalone_templates[template.id] = template
        logger.info(f"Created standalone template: {template.title}")
        return template

    def update_standalone_template(
        self, template_id: UUID, updates: Dict[str, Any]
    ) -> Optional[StandaloneTaskTemplate]:
        template = self.store.standalone_templates.get(template_id)
        if not template:
            return None
        for key in ("title", "description", "category", "priority", "tags"):
            if updates.get(key) is not None:
                setattr(template, key, updates[key])
        template.updated_at = datetime.utcnow()
        return template

    def delete_standalone_template(self, template_id: UUID) -> bool:
        return self.store.standalone_templates.pop(template_id, None) is not None

    def create_from_standalone_template(
        self,
        template_id: UUID,
        client_id: Optional[UUID] = None,
        due_date: Optional[date] = None,
        assignee: Optional[str] = None,
    ) -> Task:
        template = self.store.standalone_templates.get(template_id)
        if not template:
            raise not_found("Standalone template", template_id)
        draft = template.create_task(client_id=client_id, due_date=due_date, assignee=assignee)
        return self.create(
            title=draft.title,
            description=draft.description,
            client_id=draft.client_id,
            due_date=draft.due_date,
            assignee=draft.assignee,
            priority=draft.priority,
            tags=draft.tags,
        )


_task_service: Optional[TaskService] = None


def get_task_service() -> TaskService:
    """Get the singleton task service instance."""
    global _task_service
    if _task_service is None:
        _task_service = TaskService()
    return _task_service
