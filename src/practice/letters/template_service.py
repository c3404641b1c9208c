"""
Template Service

CRUD for letter templates. Editing the content of a template bumps its
version so generated letters can say which revision they came from.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import UUID

from .letter_renderer import get_letter_renderer
from .template_models import Placeholder, Template, TemplateCategory
from ..store import PracticeStore, get_practice_store
from security.api_errors import rule_violation
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "description", "category", "content", "placeholders", "is_active", "metadata"}


def _placeholders(values: Optional[List[Any]]) -> List[Placeholder]:
    return [p if isinstance(p, Placeholder) else Placeholder.from_dict(p) for p in (values or [])]


class TemplateService:
    """Letter template management."""

    def __init__(self, store: Optional[PracticeStore] = None):
        self.store = store or get_practice_store()
        self.renderer = get_letter_renderer()
        self.changes = ChangeLogger("templates")

    def list(self, category: Optional[TemplateCategory] = None, active_only: bool = True) -> List[Template]:
        templates = list(self.store.templates.values())
        if category:
            templates = [t for t in templates if t.category == category]
        if active_only:
            templates = [t for t in templates if t.is_active]
        templates.sort(key=lambda t: (t.category.value, t.name.lower()))
        return templates

    def search(self, query: str) -> List[Template]:
        q = (query or "").strip().lower()
        if not q:
            return self.list()
        return [
            t for t in self.list(active_only=False)
            if q in t.name.lower() or q in (t.description or "").lower()
        ]

    def get(self, template_id: UUID) -> Optional[Template]:
        return self.store.templates.get(template_id)

    def extract_placeholders(self, content: str) -> List[str]:
        return self.renderer.extract_placeholders(content)

    def create(
        self,
        name: str,
        content: str,
        category: TemplateCategory = TemplateCategory.GENERAL,
        description: Optional[str] = None,
        placeholders: Optional[List[Any]] = None,
        is_active: bool = True,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Template:
        if not (name or "").strip():
            raise rule_violation("Template name is required")
        # Fails early on syntax errors
        self.renderer.compile(content)

        declared = _placeholders(placeholders)
        if not declared:
            declared = [Placeholder(key=k, label=k.replace("_", " ").title())
                        for k in self.extract_placeholders(content)]

        template = Template(
            name=name.strip(),
            description=description,
            category=category,
            content=content,
            placeholders=declared,
            is_active=is_active,
            metadata=metadata or {},
        )
        self.store.templates[template.id] = template
        logger.info(f"Created template: {template.id} ({template.name})")
        self.changes.record("created", template.id, name=template.name)
        return template

    def update(self, template_id: UUID, updates: Dict[str, Any]) -> Optional[Template]:
        template = self.store.templates.get(template_id)
        if not template:
            return None

        if "content" in updates and updates["content"] is not None:
            self.renderer.compile(updates["content"])
            if updates["content"] != template.content:
                template.version += 1

        for key, value in updates.items():
            if key not in UPDATABLE_FIELDS or value is None:
                continue
            if key == "placeholders":
                value = _placeholders(value)
            setattr(template, key, value)

        template.updated_at = datetime.utcnow()
        logger.info(f"Updated template: {template_id} (version {template.version})")
        self.changes.record("updated", template_id, version=template.version)
        return template

    def delete(self, template_id: UUID) -> bool:
        if self.store.templates.pop(template_id, None) is None:
            return False
        logger.info(f"Deleted template: {template_id}")
        self.changes.record("deleted", template_id)
        return True

    def preview(self, template_id: UUID, values: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Render a template with sample values and no client.

        Unfilled placeholders show as ``[key]`` so the layout can be checked.
        """
        template = self.store.templates.get(template_id)
        if not template:
            return None

        context: Dict[str, Any] = {p.key: f"[{p.key}]" for p in template.placeholders}
        for key in self.extract_placeholders(template.content):
            context.setdefault(key, f"[{key}]")
        for placeholder in template.placeholders:
            if placeholder.default_value not in (None, ""):
                context[placeholder.key] = placeholder.default_value
        context.update({k: v for k, v in (values or {}).items() if v not in (None, "")})

        return {
            "content": self.renderer.render(template.content, context),
            "html": self.renderer.render_html(template.content, context),
            "placeholders": self.extract_placeholders(template.content),
        }


_template_service: Optional[TemplateService] = None


def get_template_service() -> TemplateService:
    global _template_service
    if _template_service is None:
        _template_service = TemplateService()
    return _template_service
