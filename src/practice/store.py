"""
Practice Store

Process-wide in-memory storage shared by every practice service. Entities
live in dicts keyed by UUID; services own the business rules.
"""

import logging
from typing import Dict, Optional
from uuid import UUID

from .clients.client_models import Client
from .people.person_models import Person, ClientParty
from .services.service_models import Service
from .tasks.task_models import Task, ServiceTemplate, StandaloneTaskTemplate
from .compliance.compliance_models import ComplianceItem
from .documents.document_models import Document
from .letters.template_models import Template, GeneratedLetter
from .tax.tax_models import TaxCalculation

logger = logging.getLogger(__name__)


class PracticeStore:
    """
    All practice data.

    ``clear()`` empties every collection and re-seeds the built-in
    templates, so a cleared store looks like a fresh install.
    """

    def __init__(self):
        self.clients: Dict[UUID, Client] = {}
        self.people: Dict[UUID, Person] = {}
        self.parties: Dict[UUID, ClientParty] = {}
        self.services: Dict[UUID, Service] = {}
        self.tasks: Dict[UUID, Task] = {}
        self.service_templates: Dict[UUID, ServiceTemplate] = {}
        self.standalone_templates: Dict[UUID, StandaloneTaskTemplate] = {}
        self.compliance: Dict[UUID, ComplianceItem] = {}
        self.documents: Dict[UUID, Document] = {}
        self.templates: Dict[UUID, Template] = {}
        self.letters: Dict[UUID, GeneratedLetter] = {}
        self.tax_calculations: Dict[UUID, TaxCalculation] = {}
        self.seed()

    def seed(self) -> None:
        from .tasks.task_templates import default_service_templates, default_standalone_templates
        from .letters.default_templates import default_letter_templates

        for template in default_service_templates():
            self.service_templates[template.id] = template
        for template in default_standalone_templates():
            self.standalone_templates[template.id] = template
        for template in default_letter_templates():
            self.templates[template.id] = template

    def clear(self) -> None:
        for collection in (
            self.clients, self.people, self.parties, self.services, self.tasks,
            self.service_templates, self.standalone_templates, self.compliance,
            self.documents, self.templates, self.letters, self.tax_calculations,
        ):
            collection.clear()
        self.seed()
        logger.info("Practice store reset")

    def counts(self) -> Dict[str, int]:
        return {
            "clients": len(self.clients),
            "people": len(self.people),
            "parties": len(self.parties),
            "services": len(self.services),
            "tasks": len(self.tasks),
            "compliance": len(self.compliance),
            "documents": len(self.documents),
            "templates": len(self.templates),
            "letters": len(self.letters),
        }


_practice_store: Optional[PracticeStore] = None


def get_practice_store() -> PracticeStore:
    """Get or create the shared store."""
    global _practice_store
    if _practice_store is None:
        _practice_store = PracticeStore()
    return _practice_store
