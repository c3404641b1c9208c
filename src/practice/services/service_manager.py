"""
Service Manager

Business logic for recurring client services: fees, due dates and the
knock-on effects on tasks and compliance items.
"""

import logging
from collections import defaultdict
from datetime import datetime, date
from typing import Optional, List, Dict, Any
from uuid import UUID

from .service_models import (
    FREQUENCY_DESCRIPTIONS,
    Service,
    ServiceFrequency,
    ServiceStatus,
    format_currency,
)
from ..clients.client_models import uk_date
from ..store import PracticeStore, get_practice_store
from security.api_errors import not_found, rule_violation
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"kind", "frequency", "fee", "status", "next_due", "description"}


class ServiceManager:
    """
    Service for client services.

    Provides:
    - Service CRUD with fee annualisation
    - Due date changes propagated to open compliance items
    - Summaries by kind and frequency
    - Letter placeholder data
    """

    def __init__(self, store: Optional[PracticeStore] = None):
        self.store = store or get_practice_store()
        self.changes = ChangeLogger("services")

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(
        self,
        client_id: UUID,
        kind: str,
        frequency: ServiceFrequency = ServiceFrequency.ANNUAL,
        fee: float = 0.0,
        status: ServiceStatus = ServiceStatus.ACTIVE,
        next_due: Optional[date] = None,
        description: Optional[str] = None,
    ) -> Service:
        if client_id not in self.store.clients:
            raise not_found("Client", client_id)
        if not (kind or "").strip():
            raise rule_violation("Service kind is required")
        if fee is not None and fee < 0:
            raise rule_violation("Fee cannot be negative", fee=fee)

        service = Service(
            client_id=client_id,
            kind=kind.strip(),
            frequency=frequency,
            fee=fee or 0.0,
            status=status,
            next_due=next_due,
            description=description,
        )
        self.store.services[service.id] = service
        logger.info(f"Created service: {service.kind} ({service.frequency.value}) for client {client_id}")
        self.changes.record("created", service.id, client_id=str(client_id))
        return service

    def get(self, service_id: UUID) -> Optional[Service]:
        return self.store.services.get(service_id)

    def list(
        self,
        client_id: Optional[UUID] = None,
        status: Optional[ServiceStatus] = None,
        kind: Optional[str] = None,
        frequency: Optional[ServiceFrequency] = None,
        search: Optional[str] = None,
    ) -> List[Service]:
        services = list(self.store.services.values())

        if client_id:
            services = [s for s in services if s.client_id == client_id]
        if status:
            services = [s for s in services if s.status == status]
        if kind:
            services = [s for s in services if s.kind.lower() == kind.lower()]
        if frequency:
            services = [s for s in services if s.frequency == frequency]
        if search:
            q = search.lower()
            services = [s for s in services if self._matches(s, q)]

        services.sort(key=lambda s: (s.next_due or date.max, s.kind))
        return services

    def _matches(self, service: Service, q: str) -> bool:
        if q in service.kind.lower() or q in (service.description or "").lower():
            return True
        client = self.store.clients.get(service.client_id)
        return bool(client) and (q in client.name.lower() or q in client.ref.lower())

    def list_by_client(self, client_id: UUID) -> List[Service]:
        return self.list(client_id=client_id)

    def list_by_kind(self, kind: str) -> List[Service]:
        return self.list(kind=kind)

    def update(self, service_id: UUID, updates: Dict[str, Any]) -> Optional[Service]:
        """Update a service. A changed ``next_due`` moves open compliance deadlines."""
        service = self.store.services.get(service_id)
        if not service:
            return None
        if updates.get("fee") is not None and updates["fee"] < 0:
            raise rule_violation("Fee cannot be negative", fee=updates["fee"])

        old_due = service.next_due
        for key, value in updates.items():
            if key in UPDATABLE_FIELDS:
                setattr(service, key, value)
        service.recalculate()
        service.updated_at = datetime.utcnow()

        if "next_due" in updates and service.next_due != old_due:
            self._sync_compliance_due(service)

        logger.info(f"Updated service: {service.id}")
        self.changes.record("updated", service.id)
        return service

    def update_status(self, service_id: UUID, status: ServiceStatus) -> Optional[Service]:
        return self.update(service_id, {"status": status})

    def update_next_due(self, service_id: UUID, next_due: Optional[date]) -> Optional[Service]:
        return self.update(service_id, {"next_due": next_due})

    def _sync_compliance_due(self, service: Service) -> int:
        from ..compliance.compliance_models import ComplianceStatus

        if not service.next_due:
            return 0
        moved = 0
        for item in self.store.compliance.values():
            if item.service_id == service.id and item.status != ComplianceStatus.FILED:
                item.due_date = service.next_due
                item.updated_at = datetime.utcnow()
                moved += 1
        if moved:
            logger.info(f"Moved {moved} compliance deadline(s) to {service.next_due} for service {service.id}")
        return moved

    def delete(self, service_id: UUID) -> bool:
        """Delete a service with its tasks; compliance items are kept but unlinked."""
        service = self.store.services.pop(service_id, None)
        if not service:
            return False

        task_ids = [t.id for t in self.store.tasks.values() if t.service_id == service_id]
        for task_id in task_ids:
            del self.store.tasks[task_id]
        for item in self.store.compliance.values():
            if item.service_id == service_id:
                item.service_id = None
                item.updated_at = datetime.utcnow()

        logger.info(f"Deleted service {service.kind} ({service_id}) and {len(task_ids)} task(s)")
        self.changes.record("deleted", service_id, tasks_removed=len(task_ids))
        return True

    # =========================================================================
    # REPORTING
    # =========================================================================

    def summary(self, client_id: Optional[UUID] = None) -> Dict[str, Any]:
        services = self.list(client_id=client_id)
        active = [s for s in services if s.is_active]

        by_kind: Dict[str, Dict[str, Any]] = defaultdict(lambda: {"count": 0, "annual_fees": 0.0})
        by_frequency: Dict[str, int] = defaultdict(int)
        for service in services:
            by_kind[service.kind]["count"] += 1
            if service.is_active:
                by_kind[service.kind]["annual_fees"] = round(
                    by_kind[service.kind]["annual_fees"] + service.annualized, 2
                )
            by_frequency[service.frequency.value] += 1

        return {
            "total_services": len(services),
            "active_services": len(active),
            "total_annual_fees": round(sum(s.annualized for s in active), 2),
            "by_kind": dict(by_kind),
            "by_frequency": dict(by_frequency),
        }

    def with_client_details(self, service: Service) -> Dict[str, Any]:
        data = service.to_dict()
        client = self.store.clients.get(service.client_id)
        data.update({
            "client_name": client.name if client else None,
            "client_ref": client.ref if client else None,
            "portfolio_code": client.portfolio_code if client else None,
        })
        return data

    def get_with_client_details(self, **filters: Any) -> List[Dict[str, Any]]:
        return [self.with_client_details(s) for s in self.list(**filters)]

    def get_details(self, service_id: UUID) -> Optional[Dict[str, Any]]:
        """A service with its client, open tasks and compliance items."""
        service = self.store.services.get(service_id)
        if not service:
            return None
        data = self.with_client_details(service)
        data["tasks"] = [t.to_dict() for t in self.store.tasks.values() if t.service_id == service_id]
        data["compliance_items"] = [
            c.to_dict() for c in self.store.compliance.values() if c.service_id == service_id
        ]
        return data

    def build_placeholder_data(self, service_id: UUID) -> Optional[Dict[str, Any]]:
        service = self.store.services.get(service_id)
        if not service:
            return None
        return {
            "service_id": str(service.id),
            "service_kind": service.kind,
            "service_name": service.kind,
            "service_description": service.description or "",
            "fee": format_currency(service.fee),
            "fee_amount": service.fee,
            "frequency": service.frequency.value,
            "frequency_description": FREQUENCY_DESCRIPTIONS[service.frequency],
            "annualized": service.annualized,
            "annualized_fee": format_currency(service.annualized),
            "next_due": uk_date(service.next_due),
            "service_status": service.status.value,
        }


_service_manager: Optional[ServiceManager] = None


def get_service_manager() -> ServiceManager:
    """Get the singleton service manager instance."""
    global _service_manager
    if _service_manager is None:
        _service_manager = ServiceManager()
    return _service_manager
