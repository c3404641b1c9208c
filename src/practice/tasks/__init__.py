"""Tasks and task templates."""

from .task_models import (
    ServiceTemplate,
    StandaloneTaskTemplate,
    Task,
    TaskPriority,
    TaskStatus,
    TaskTemplateItem,
)

__all__ = [
    "ServiceTemplate",
    "StandaloneTaskTemplate",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TaskTemplateItem",
]
