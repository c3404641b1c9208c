"""
Compliance Service

Tracks statutory filing obligations per client and derives them from the
services a client buys.
"""

import logging
from collections import defaultdict
from datetime import datetime, date, timedelta
from typing import Optional, List, Dict, Any, Iterable
from uuid import UUID

from .compliance_models import (
    ComplianceItem,
    ComplianceSource,
    ComplianceStatus,
    ComplianceType,
    TYPE_DESCRIPTIONS,
    TYPE_SOURCES,
)
from ..dates import end_of_quarter, add_months, self_assessment_deadline
from ..store import PracticeStore, get_practice_store
from security.api_errors import not_found
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)

# Exact service kinds (lower-case)
KIND_TYPES = {
    "annual accounts": ComplianceType.ANNUAL_ACCOUNTS,
    "accounts preparation": ComplianceType.ANNUAL_ACCOUNTS,
    "statutory accounts": ComplianceType.ANNUAL_ACCOUNTS,
    "company secretarial": ComplianceType.CONFIRMATION_STATEMENT,
    "confirmation statement": ComplianceType.CONFIRMATION_STATEMENT,
    "corporation tax": ComplianceType.CT600,
    "corporation tax return": ComplianceType.CT600,
    "vat returns": ComplianceType.VAT_RETURN,
    "vat returns (quarterly)": ComplianceType.VAT_RETURN,
    "vat returns (monthly)": ComplianceType.VAT_RETURN,
    "self assessment": ComplianceType.SA100,
    "self assessment tax return": ComplianceType.SA100,
    "payroll": ComplianceType.RTI_SUBMISSION,
    "payroll services": ComplianceType.RTI_SUBMISSION,
}

# Substring fallbacks, checked in order
KIND_KEYWORDS = [
    (("account",), ComplianceType.ANNUAL_ACCOUNTS),
    (("confirmation", "secretarial"), ComplianceType.CONFIRMATION_STATEMENT),
    (("corporation", "ct600"), ComplianceType.CT600),
    (("vat",), ComplianceType.VAT_RETURN),
    (("self assessment", "sa100"), ComplianceType.SA100),
    (("payroll", "rti"), ComplianceType.RTI_SUBMISSION),
]

UPDATABLE_FIELDS = {
    "type", "description", "due_date", "status", "source", "reference", "period", "service_id",
}


def compliance_type_for_service_kind(kind: Optional[str]) -> Optional[ComplianceType]:
    """Compliance obligation implied by a service kind, if any."""
    normalised = " ".join((kind or "").lower().split())
    if not normalised:
        return None
    if normalised in KIND_TYPES:
        return KIND_TYPES[normalised]
    for keywords, compliance_type in KIND_KEYWORDS:
        if any(k in normalised for k in keywords):
            return compliance_type
    return None


def default_due_date(compliance_type: ComplianceType, today: Optional[date] = None) -> date:
    """Fallback deadline when the service carries no ``next_due``."""
    today = today or date.today()
    if compliance_type in (ComplianceType.ANNUAL_ACCOUNTS, ComplianceType.CT600):
        return date(today.year + 1, 12, 31)
    if compliance_type == ComplianceType.CONFIRMATION_STATEMENT:
        return date(today.year, 12, 31)
    if compliance_type == ComplianceType.VAT_RETURN:
        return end_of_quarter(today)
    if compliance_type == ComplianceType.SA100:
        return self_assessment_deadline(today)
    if compliance_type == ComplianceType.RTI_SUBMISSION:
        return add_months(today.replace(day=22), 1)
    return today + timedelta(days=30)


class ComplianceService:
    """
    Service for compliance items.

    Provides:
    - CRUD, filing and bulk status changes
    - Overdue / upcoming queries and statistics
    - Item generation from client services
    """

    def __init__(self, store: Optional[PracticeStore] = None):
        self.store = store or get_practice_store()
        self.changes = ChangeLogger("compliance")

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(
        self,
        client_id: UUID,
        type: ComplianceType,
        due_date: Optional[date] = None,
        description: Optional[str] = None,
        service_id: Optional[UUID] = None,
        status: ComplianceStatus = ComplianceStatus.PENDING,
        source: Optional[ComplianceSource] = None,
        reference: Optional[str] = None,
        period: Optional[str] = None,
    ) -> ComplianceItem:
        if client_id not in self.store.clients:
            raise not_found("Client", client_id)
        if service_id and service_id not in self.store.services:
            raise not_found("Service", service_id)

        item = ComplianceItem(
            client_id=client_id,
            service_id=service_id,
            type=type,
            description=description or TYPE_DESCRIPTIONS[type],
            due_date=due_date,
            status=status,
            source=source or TYPE_SOURCES.get(type, ComplianceSource.MANUAL),
            reference=reference,
            period=period,
        )
        if status == ComplianceStatus.FILED:
            item.filed_at = datetime.utcnow()
        self.store.compliance[item.id] = item
        logger.info(f"Created compliance item: {item.type.value} for client {client_id} due {item.due_date}")
        self.changes.record("created", item.id, client_id=str(client_id))
        return item

    def create_manual(self, client_id: UUID, type: ComplianceType, **fields: Any) -> ComplianceItem:
        fields["source"] = ComplianceSource.MANUAL
        return self.create(client_id=client_id, type=type, **fields)

    def get(self, item_id: UUID) -> Optional[ComplianceItem]:
        return self.store.compliance.get(item_id)

    def list(
        self,
        portfolio_code: Optional[int] = None,
        client_id: Optional[UUID] = None,
        service_id: Optional[UUID] = None,
        type: Optional[ComplianceType] = None,
        source: Optional[ComplianceSource] = None,
        statuses: Optional[Iterable[ComplianceStatus]] = None,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
    ) -> List[ComplianceItem]:
        items = list(self.store.compliance.values())

        if portfolio_code is not None:
            members = {c.id for c in self.store.clients.values() if c.portfolio_code == portfolio_code}
            items = [i for i in items if i.client_id in members]
        if client_id:
            items = [i for i in items if i.client_id == client_id]
        if service_id:
            items = [i for i in items if i.service_id == service_id]
        if type:
            items = [i for i in items if i.type == type]
        if source:
            items = [i for i in items if i.source == source]
        if statuses:
            wanted = set(statuses)
            items = [i for i in items if i.status in wanted]
        if due_from:
            items = [i for i in items if i.due_date and i.due_date >= due_from]
        if due_to:
            items = [i for i in items if i.due_date and i.due_date <= due_to]

        items.sort(key=lambda i: (i.due_date is None, i.due_date or date.max))
        return items

    def update(self, item_id: UUID, updates: Dict[str, Any]) -> Optional[ComplianceItem]:
        item = self.store.compliance.get(item_id)
        if not item:
            return None
        for key, value in updates.items():
            if key in UPDATABLE_FIELDS:
                setattr(item, key, value)
        if "status" in updates:
            item.filed_at = datetime.utcnow() if item.status == ComplianceStatus.FILED else None
        item.updated_at = datetime.utcnow()
        logger.info(f"Updated compliance item: {item_id}")
        self.changes.record("updated", item_id)
        return item

    def mark_filed(self, item_id: UUID) -> Optional[ComplianceItem]:
        return self.update(item_id, {"status": ComplianceStatus.FILED})

    def mark_overdue(self, item_id: UUID) -> Optional[ComplianceItem]:
        return self.update(item_id, {"status": ComplianceStatus.OVERDUE})

    def bulk_update_status(self, item_ids: Iterable[UUID], status: ComplianceStatus) -> int:
        count = 0
        for item_id in item_ids:
            if self.update(item_id, {"status": status}):
                count += 1
        logger.info(f"Bulk set {count} compliance item(s) to {status.value}")
        return count

    def delete(self, item_id: UUID) -> bool:
        item = self.store.compliance.pop(item_id, None)
        if not item:
            return False
        logger.info(f"Deleted compliance item: {item_id}")
        self.changes.record("deleted", item_id)
        return True

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_overdue(self, portfolio_code: Optional[int] = None) -> List[ComplianceItem]:
        return [i for i in self.list(portfolio_code=portfolio_code) if i.is_past_due]

    def list_upcoming(self, days: int = 30, portfolio_code: Optional[int] = None) -> List[ComplianceItem]:
        today = date.today()
        return self.list(
            portfolio_code=portfolio_code,
            statuses=[ComplianceStatus.PENDING],
            due_from=today,
            due_to=today + timedelta(days=days),
        )

    def statistics(self, portfolio_code: Optional[int] = None) -> Dict[str, Any]:
        items = self.list(portfolio_code=portfolio_code)
        today = date.today()

        by_status: Dict[str, int] = defaultdict(int)
        by_type: Dict[str, int] = defaultdict(int)
        by_source: Dict[str, int] = defaultdict(int)
        for item in items:
            by_status[item.status.value] += 1
            by_type[item.type.value] += 1
            by_source[item.source.value] += 1

        open_statuses = (ComplianceStatus.PENDING, ComplianceStatus.OVERDUE)
        return {
            "total": len(items),
            "pending": sum(1 for i in items if i.status == ComplianceStatus.PENDING),
            "overdue": sum(
                1 for i in items
                if i.status == ComplianceStatus.OVERDUE
                or (i.status == ComplianceStatus.PENDING and i.is_past_due)
            ),
            "due_this_month": sum(
                1 for i in items
                if i.status in open_statuses and i.due_date
                and (i.due_date.year, i.due_date.month) == (today.year, today.month)
            ),
            "filed": sum(1 for i in items if i.status == ComplianceStatus.FILED),
            "by_status": dict(by_status),
            "by_type": dict(by_type),
            "by_source": dict(by_source),
        }

    # =========================================================================
    # GENERATION FROM SERVICES
    # =========================================================================

    def ensure_for_service(self, service_id: UUID) -> Optional[ComplianceItem]:
        """
        Make sure a service's compliance obligation is tracked.

        Returns the new item, or None when the kind carries no obligation or
        an unfiled item already exists.
        """
        service = self.store.services.get(service_id)
        if not service:
            raise not_found("Service", service_id)

        compliance_type = compliance_type_for_service_kind(service.kind)
        if compliance_type is None:
            return None

        for item in self.store.compliance.values():
            if item.client_id == service.client_id and item.service_id == service.id \
                    and item.type == compliance_type and item.status != ComplianceStatus.FILED:
                return None

        return self.create(
            client_id=service.client_id,
            service_id=service.id,
            type=compliance_type,
            due_date=service.next_due or default_due_date(compliance_type),
            description=f"{TYPE_DESCRIPTIONS[compliance_type]} ({service.kind})",
        )

    def auto_generate_from_services(self) -> Dict[str, Any]:
        generated = 0
        skipped = 0
        errors = 0
        details = []
        for service in list(self.store.services.values()):
            if not service.is_active:
                continue
            try:
                item = self.ensure_for_service(service.id)
            except (KeyError, ValueError) as e:
                errors += 1
                logger.error(f"Compliance generation failed for service {service.id}: {e}")
                details.append({"service_id": str(service.id), "error": str(e)})
                continue
            if item:
                generated += 1
                details.append({
                    "service_id": str(service.id),
                    "compliance_id": str(item.id),
                    "type": item.type.value,
                })
            else:
                skipped += 1

        logger.info(f"Auto-generated {generated} compliance item(s), skipped {skipped}")
        return {"generated": generated, "skipped": skipped, "errors": errors, "details": details}

    def cleanup_invalid_clients(self) -> Dict[str, int]:
        orphaned = [i.id for i in self.store.compliance.values() if i.client_id not in self.store.clients]
        for item_id in orphaned:
            del self.store.compliance[item_id]
        if orphaned:
            logger.warning(f"Removed {len(orphaned)} compliance item(s) with missing clients")
        return {"removed": len(orphaned)}


_compliance_service: Optional[ComplianceService] = None


def get_compliance_service() -> ComplianceService:
    """Get the singleton compliance service instance."""
    global _compliance_service
    if _compliance_service is None:
        _compliance_service = ComplianceService()
    return _compliance_service
