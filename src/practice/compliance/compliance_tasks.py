"""
Compliance / Task Integration

Links compliance items to the tasks that get them filed. A task belongs to
an item when it is tagged ``compliance`` and its title or description
contains the item id; generated tasks embed ``[compliance:<id>]`` in the
description for that purpose.
"""

import logging
from datetime import date
from typing import Optional, List, Dict, Any
from uuid import UUID

from .compliance_models import ComplianceItem, ComplianceStatus
from .compliance_service import ComplianceService, get_compliance_service
from ..tasks.task_models import Task, TaskPriority, TaskStatus
from ..tasks.task_service import TaskService, get_task_service
from security.api_errors import not_found

logger = logging.getLogger(__name__)


def task_priority_for(item: ComplianceItem) -> TaskPriority:
    days = item.days_until_due
    if item.status == ComplianceStatus.OVERDUE or (days is not None and days <= 0):
        return TaskPriority.URGENT
    if days is not None and days <= 7:
        return TaskPriority.HIGH
    if days is not None and days <= 30:
        return TaskPriority.MEDIUM
    return TaskPriority.LOW


def task_summary(task: Task) -> Dict[str, Any]:
    return {
        "id": str(task.id),
        "title": task.title,
        "status": task.status.value,
        "priority": task.priority.value,
        "assignee": task.assignee,
        "due_date": task.due_date.isoformat() if task.due_date else None,
    }


class ComplianceTaskIntegration:
    """
    Keeps compliance deadlines and task lists in step.

    Provides:
    - Task creation for single items, overdue items and upcoming items
    - Escalation of past-due items
    - Filing items whose tasks are all complete
    - Integrated dashboard and priority recommendations
    """

    def __init__(
        self,
        compliance_service: Optional[ComplianceService] = None,
        task_service: Optional[TaskService] = None,
    ):
        self.compliance = compliance_service or get_compliance_service()
        self.tasks = task_service or get_task_service()

    # =========================================================================
    # LINKING
    # =========================================================================

    def find_tasks_for_item(self, item_id: UUID) -> List[Task]:
        needle = str(item_id).lower()
        return [
            t for t in self.tasks.store.tasks.values()
            if "compliance" in t.tags
            and (needle in t.title.lower() or needle in (t.description or "").lower())
        ]

    def create_task_for_item(self, item_id: UUID, assignee: Optional[str] = None) -> Task:
        item = self.compliance.get(item_id)
        if not item:
            raise not_found("Compliance item", item_id)

        period = f" (Period: {item.period})" if item.period else ""
        task = self.tasks.create(
            title=f"{item.type.value.replace('_', ' ')} - {item.description}",
            description=f"Compliance task for {item.description}{period} [compliance:{item.id}]",
            client_id=item.client_id,
            service_id=item.service_id if item.service_id in self.tasks.store.services else None,
            due_date=item.due_date,
            assignee=assignee,
            priority=task_priority_for(item),
            tags=["compliance", "filing", item.type.value.lower(), item.source.value.lower()],
        )
        logger.info(f"Created task {task.id} for compliance item {item.id}")
        return task

    def _create_missing(self, items: List[ComplianceItem]) -> Dict[str, Any]:
        created = []
        skipped = 0
        for item in items:
            if self.find_tasks_for_item(item.id):
                skipped += 1
                continue
            created.append(self.create_task_for_item(item.id))
        return {"created": len(created), "skipped": skipped, "tasks": [t.to_dict() for t in created]}

    def create_tasks_for_overdue(self) -> Dict[str, Any]:
        result = self._create_missing(self.compliance.list_overdue())
        logger.info(f"Created {result['created']} task(s) for overdue compliance items")
        return result

    def create_tasks_for_upcoming(self, days: int = 30) -> Dict[str, Any]:
        result = self._create_missing(self.compliance.list_upcoming(days))
        logger.info(f"Created {result['created']} task(s) for items due in {days} days")
        return result

    def escalate_overdue(self) -> Dict[str, int]:
        """Mark past-due PENDING items OVERDUE and make sure URGENT work exists."""
        today = date.today()
        escalated = tasks_created = tasks_escalated = 0

        for item in self.compliance.list(statuses=[ComplianceStatus.PENDING]):
            if not item.due_date or item.due_date >= today:
                continue
            self.compliance.mark_overdue(item.id)
            escalated += 1

            linked = self.find_tasks_for_item(item.id)
            open_tasks = [t for t in linked if t.is_open]
            if not linked:
                self.create_task_for_item(item.id)
                tasks_created += 1
            for task in open_tasks:
                if task.priority != TaskPriority.URGENT:
                    self.tasks.update(task.id, {"priority": TaskPriority.URGENT})
                    tasks_escalated += 1

        logger.info(
            f"Escalated {escalated} compliance item(s): "
            f"{tasks_created} task(s) created, {tasks_escalated} task(s) escalated"
        )
        return {"escalated": escalated, "tasks_created": tasks_created, "tasks_escalated": tasks_escalated}

    # =========================================================================
    # RELATIONSHIPS AND SYNC
    # =========================================================================

    def _with_tasks(self, item: ComplianceItem) -> Dict[str, Any]:
        data = item.to_dict()
        data["related_tasks"] = [task_summary(t) for t in self.find_tasks_for_item(item.id)]
        return data

    def task_relationships(self) -> List[Dict[str, Any]]:
        relationships = []
        for item in self.compliance.list():
            linked = self.find_tasks_for_item(item.id)
            relationships.append({
                "item": item.to_dict(),
                "tasks": [task_summary(t) for t in linked],
                "has_active_tasks": any(t.is_open for t in linked),
            })
        return relationships

    def sync_with_tasks(self) -> Dict[str, int]:
        """File PENDING items whose linked tasks are all COMPLETED."""
        synced = 0
        errors = 0
        for item in self.compliance.list(statuses=[ComplianceStatus.PENDING]):
            linked = self.find_tasks_for_item(item.id)
            if linked and all(t.status == TaskStatus.COMPLETED for t in linked):
                if self.compliance.mark_filed(item.id):
                    synced += 1
                    logger.info(f"Marked compliance item {item.id} as filed based on completed tasks")
                else:
                    errors += 1
        logger.info(f"Compliance sync completed: {synced} synced, {errors} errors")
        return {"synced": synced, "errors": errors}

    def dashboard(self) -> Dict[str, Any]:
        return {
            "summary": self.compliance.statistics(),
            "overdue_with_tasks": [self._with_tasks(i) for i in self.compliance.list_overdue()],
            "upcoming_with_tasks": [self._with_tasks(i) for i in self.compliance.list_upcoming(30)],
            "relationships": self.task_relationships(),
        }

    def priority_recommendations(self) -> Dict[str, Any]:
        critical_items = []
        recommendations = []
        action_items = []

        for item in self.compliance.list_overdue():
            linked = self.find_tasks_for_item(item.id)
            active = any(t.is_open for t in linked)
            entry = item.to_dict()
            entry.update({"severity": "critical", "has_active_tasks": active, "related_task_count": len(linked)})
            critical_items.append(entry)
            if not active:
                recommendations.append(f"Create urgent task for overdue {item.type.value}: {item.description}")
                action_items.append({
                    "type": "create_task",
                    "compliance_id": str(item.id),
                    "priority": TaskPriority.URGENT.value,
                    "reason": "Overdue compliance item without active tasks",
                })

        for item in self.compliance.list_upcoming(7):
            linked = self.find_tasks_for_item(item.id)
            if any(t.is_open for t in linked):
                continue
            days = item.days_until_due
            entry = item.to_dict()
            entry.update({"severity": "high", "has_active_tasks": False, "related_task_count": len(linked)})
            critical_items.append(entry)
            recommendations.append(f"Create high-priority task for {item.type.value} due in {days} days")
            action_items.append({
                "type": "create_task",
                "compliance_id": str(item.id),
                "priority": TaskPriority.HIGH.value,
                "reason": f"Due in {days} days without active tasks",
            })

        return {
            "critical_items": critical_items,
            "recommendations": recommendations,
            "action_items": action_items,
        }


_integration: Optional[ComplianceTaskIntegration] = None


def get_compliance_task_integration() -> ComplianceTaskIntegration:
    """Get the singleton compliance/task integration instance."""
    global _integration
    if _integration is None:
        _integration = ComplianceTaskIntegration()
    return _integration
