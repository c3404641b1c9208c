"""
Client Service

Business logic for the client register: references, portfolios, lookups,
letter merge data and HMRC / compliance status derived from the record.
"""

import logging
from datetime import datetime, date
from typing import Optional, List, Dict, Any
from uuid import UUID

from .client_models import Client, ClientType, ClientStatus, Address, uk_date
from .reference_generator import (
    generate_client_ref,
    is_valid_client_ref,
    party_ref,
    portfolio_from_ref,
)
from ..store import PracticeStore, get_practice_store
from config.settings import get_settings
from security.api_errors import APIError, ErrorCode, rule_violation
from services.logging_config import ChangeLogger

logger = logging.getLogger(__name__)

# Fields an ordinary update may change
UPDATABLE_FIELDS = {
    "name", "type", "status", "main_email", "main_phone", "address",
    "registered_number", "utr_number", "vat_number", "paye_reference",
    "incorporation_date", "accounts_accounting_reference_day",
    "accounts_accounting_reference_month", "accounts_last_made_up_to",
    "accounts_next_due", "confirmation_last_made_up_to",
    "confirmation_next_due", "notes", "companies_house_data",
}

PAYROLL_KEYWORDS = ("payroll", "paye", "rti")


class ClientService:
    """
    Service for managing clients.

    Provides:
    - Client CRUD with reference generation
    - Portfolio moves and reference changes (party refs follow)
    - Filtering, search and portfolio statistics
    - Placeholder data for letters
    - HMRC registration status and compliance overview cards
    """

    def __init__(self, store: Optional[PracticeStore] = None):
        self.store = store or get_practice_store()
        self.changes = ChangeLogger("clients")

    @property
    def portfolio_count(self) -> int:
        return get_settings().practice.portfolio_count

    def _check_portfolio(self, portfolio_code: int) -> None:
        if not isinstance(portfolio_code, int) or not 1 <= portfolio_code <= self.portfolio_count:
            raise rule_violation(
                f"Portfolio code must be between 1 and {self.portfolio_count}",
                portfolio_code=portfolio_code,
            )

    def _existing_refs(self, exclude: Optional[UUID] = None) -> List[str]:
        return [c.ref for c in self.store.clients.values() if c.id != exclude]

    def _ref_taken(self, ref: str, exclude: Optional[UUID] = None) -> bool:
        return any(c.ref == ref for c in self.store.clients.values() if c.id != exclude)

    def _rewrite_party_refs(self, client: Client) -> int:
        count = 0
        for party in self.store.parties.values():
            if party.client_id == client.id:
                party.party_ref = party_ref(client.ref, party.suffix_letter)
                party.updated_at = datetime.utcnow()
                count += 1
        return count

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(
        self,
        name: str,
        type: ClientType = ClientType.COMPANY,
        portfolio_code: int = 1,
        ref: Optional[str] = None,
        status: ClientStatus = ClientStatus.ACTIVE,
        address: Optional[Address] = None,
        **fields: Any,
    ) -> Client:
        """
        Create a client.

        A supplied ``ref`` is kept when it is well formed, unused and in the
        same portfolio; otherwise a fresh one is generated.
        """
        if not name or not name.strip():
            raise rule_violation("Client name is required")
        self._check_portfolio(portfolio_code)

        if ref and is_valid_client_ref(ref) and not self._ref_taken(ref) \
                and portfolio_from_ref(ref) == portfolio_code:
            client_ref = ref
        else:
            if ref:
                logger.info(f"Ignoring supplied ref {ref}; generating a new one")
            client_ref = generate_client_ref(portfolio_code, name, self._existing_refs())

        client = Client(
            ref=client_ref,
            name=name.strip(),
            type=type,
            portfolio_code=portfolio_code,
            status=status,
            address=address,
        )
        for key, value in fields.items():
            if key in UPDATABLE_FIELDS:
                setattr(client, key, value)

        if client.type == ClientType.COMPANY:
            self._default_reference_date(client)

        self.store.clients[client.id] = client
        logger.info(f"Created client: {client.ref} - {client.name}")
        self.changes.record("created", client.id, ref=client.ref)
        return client

    @staticmethod
    def _default_reference_date(client: Client) -> None:
        if client.accounts_accounting_reference_day and client.accounts_accounting_reference_month:
            return
        if client.accounts_last_made_up_to:
            client.accounts_accounting_reference_day = client.accounts_last_made_up_to.day
            client.accounts_accounting_reference_month = client.accounts_last_made_up_to.month
        else:
            client.accounts_accounting_reference_day = 31
            client.accounts_accounting_reference_month = 3

    def get(self, client_id: UUID) -> Optional[Client]:
        return self.store.clients.get(client_id)

    def get_by_ref(self, ref: str) -> Optional[Client]:
        wanted = (ref or "").strip().upper()
        for client in self.store.clients.values():
            if client.ref == wanted:
                return client
        return None

    def get_by_registered_number(self, registered_number: str) -> Optional[Client]:
        wanted = (registered_number or "").strip().upper()
        if not wanted:
            return None
        for client in self.store.clients.values():
            if (client.registered_number or "").strip().upper() == wanted:
                return client
        return None

    def resolve(self, id_or_ref: str) -> Optional[Client]:
        """Look a client up by UUID string or by ref."""
        try:
            return self.get(UUID(str(id_or_ref)))
        except ValueError:
            return self.get_by_ref(id_or_ref)

    def update(self, client_id: UUID, updates: Dict[str, Any]) -> Optional[Client]:
        """Update ordinary fields. ``id``, ``ref`` and portfolio never change here."""
        client = self.store.clients.get(client_id)
        if not client:
            return None

        for key, value in updates.items():
            if key not in UPDATABLE_FIELDS:
                continue
            if key == "name" and (not value or not str(value).strip()):
                raise rule_violation("Client name is required")
            setattr(client, key, value)

        client.updated_at = datetime.utcnow()
        logger.info(f"Updated client: {client.ref}")
        self.changes.record("updated", client.id, fields=sorted(updates))
        return client

    def update_ref(self, client_id: UUID, new_ref: str) -> Optional[Client]:
        """Explicitly change a client's ref; party refs are rewritten."""
        client = self.store.clients.get(client_id)
        if not client:
            return None

        new_ref = (new_ref or "").strip().upper()
        if not is_valid_client_ref(new_ref):
            raise APIError(
                ErrorCode.VALIDATION_INVALID_FORMAT,
                f"Invalid client reference: {new_ref}",
                details={"expected": "{portfolio}{LETTER}{NNN}"},
            )
        if portfolio_from_ref(new_ref) != client.portfolio_code:
            raise rule_violation(
                f"Reference {new_ref} does not belong to portfolio {client.portfolio_code}"
            )
        if self._ref_taken(new_ref, exclude=client.id):
            raise APIError(ErrorCode.RESOURCE_ALREADY_EXISTS, f"Reference {new_ref} is already in use")

        old_ref = client.ref
        client.ref = new_ref
        client.updated_at = datetime.utcnow()
        parties = self._rewrite_party_refs(client)
        logger.info(f"Changed client ref {old_ref} -> {new_ref} ({parties} party refs rewritten)")
        self.changes.record("ref_changed", client.id, old_ref=old_ref, new_ref=new_ref)
        return client

    def move_portfolio(self, client_id: UUID, portfolio_code: int) -> Optional[Client]:
        """Move a client to another portfolio, generating a new ref."""
        client = self.store.clients.get(client_id)
        if not client:
            return None
        self._check_portfolio(portfolio_code)
        if portfolio_code == client.portfolio_code:
            return client

        old_ref = client.ref
        client.portfolio_code = portfolio_code
        client.ref = generate_client_ref(portfolio_code, client.name, self._existing_refs(exclude=client.id))
        client.updated_at = datetime.utcnow()
        self._rewrite_party_refs(client)
        logger.info(f"Moved client {old_ref} to portfolio {portfolio_code} as {client.ref}")
        self.changes.record("portfolio_moved", client.id, old_ref=old_ref, new_ref=client.ref)
        return client

    def dependents(self, client_id: UUID) -> Dict[str, int]:
        """Count of records that reference a client."""
        s = self.store
        return {
            "parties": sum(1 for p in s.parties.values() if p.client_id == client_id),
            "services": sum(1 for x in s.services.values() if x.client_id == client_id),
            "tasks": sum(1 for t in s.tasks.values() if t.client_id == client_id),
            "documents": sum(1 for d in s.documents.values() if d.client_id == client_id),
        }

    def delete(self, client_id: UUID) -> bool:
        """Delete a client that nothing references."""
        client = self.store.clients.get(client_id)
        if not client:
            return False

        blocking = {k: v for k, v in self.dependents(client_id).items() if v}
        if blocking:
            summary = ", ".join(f"{v} {k}" for k, v in blocking.items())
            raise rule_violation(
                f"Cannot delete client {client.ref}: still referenced by {summary}",
                **blocking,
            )

        del self.store.clients[client_id]
        logger.info(f"Deleted client: {client.ref}")
        self.changes.record("deleted", client_id, ref=client.ref)
        return True

    def delete_cascade(self, client_id: UUID) -> Optional[Dict[str, int]]:
        """Delete a client and everything attached to it."""
        from ..documents.document_service import get_document_service

        s = self.store
        client = s.clients.get(client_id)
        if not client:
            return None

        def _purge(collection: Dict[UUID, Any]) -> int:
            ids = [k for k, v in collection.items() if getattr(v, "client_id", None) == client_id]
            for k in ids:
                del collection[k]
            return len(ids)

        documents = get_document_service()
        doc_ids = [d.id for d in s.documents.values() if d.client_id == client_id]
        for doc_id in doc_ids:
            documents.delete(doc_id)

        removed = {
            "parties": _purge(s.parties),
            "services": _purge(s.services),
            "tasks": _purge(s.tasks),
            "compliance": _purge(s.compliance),
            "letters": _purge(s.letters),
            "tax_calculations": _purge(s.tax_calculations),
            "documents": len(doc_ids),
        }
        del s.clients[client_id]
        logger.info(f"Deleted client {client.ref} with dependents: {removed}")
        self.changes.record("deleted", client_id, ref=client.ref, cascade=removed)
        return removed

    # =========================================================================
    # QUERIES
    # =========================================================================

    @staticmethod
    def _matches(client: Client, query: str) -> bool:
        q = query.lower()
        haystack = [client.name, client.ref, client.main_email, client.registered_number]
        return any(q in (value or "").lower() for value in haystack)

    def list(
        self,
        status: Optional[ClientStatus] = None,
        type: Optional[ClientType] = None,
        portfolio_code: Optional[int] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> Dict[str, Any]:
        """Filtered, ref-ordered page of clients with the total match count."""
        clients = list(self.store.clients.values())

        if status:
            clients = [c for c in clients if c.status == status]
        if type:
            clients = [c for c in clients if c.type == type]
        if portfolio_code is not None:
            clients = [c for c in clients if c.portfolio_code == portfolio_code]
        if search:
            clients = [c for c in clients if self._matches(c, search)]

        clients.sort(key=lambda c: c.ref)
        return {
            "clients": clients[offset:offset + limit],
            "total": len(clients),
        }

    def search(self, query: str, portfolio_code: Optional[int] = None) -> List[Client]:
        return self.list(portfolio_code=portfolio_code, search=query, limit=50)["clients"]

    def portfolio_stats(self) -> List[Dict[str, Any]]:
        stats = []
        for code in range(1, self.portfolio_count + 1):
            members = [c for c in self.store.clients.values() if c.portfolio_code == code]
            active = sum(1 for c in members if c.status == ClientStatus.ACTIVE)
            stats.append({
                "portfolio_code": code,
                "count": len(members),
                "active": active,
                "inactive": len(members) - active,
            })
        return stats

    def regenerate_all_refs(self, dry_run: bool = True) -> List[Dict[str, Any]]:
        """
        Recompute every ref from portfolio and name.

        Clients are processed in ref order so existing numbering is kept as
        far as possible. Only changed refs are returned.
        """
        ordered = sorted(self.store.clients.values(), key=lambda c: (c.portfolio_code, c.ref, c.created_at))
        assigned: List[str] = []
        changes = []
        for client in ordered:
            new_ref = generate_client_ref(client.portfolio_code, client.name, assigned)
            assigned.append(new_ref)
            if new_ref != client.ref:
                changes.append({"id": str(client.id), "old_ref": client.ref, "new_ref": new_ref})

        if not dry_run:
            by_id = {str(c.id): c for c in ordered}
            for change in changes:
                client = by_id[change["id"]]
                client.ref = change["new_ref"]
                client.updated_at = datetime.utcnow()
                self._rewrite_party_refs(client)
            logger.info(f"Regenerated {len(changes)} client refs")
            self.changes.record("refs_regenerated", count=len(changes))
        return changes

    # =========================================================================
    # PARTIES
    # =========================================================================

    def _active_parties(self, client_id: UUID) -> List[Any]:
        parties = [p for p in self.store.parties.values() if p.client_id == client_id]
        parties.sort(key=lambda p: p.suffix_letter)
        return parties

    def get_with_parties(self, client_id: UUID) -> Optional[Dict[str, Any]]:
        client = self.store.clients.get(client_id)
        if not client:
            return None

        details = []
        for party in self._active_parties(client_id):
            person = self.store.people.get(party.person_id)
            entry = party.to_dict()
            entry.update({
                "person_ref": person.ref if person else None,
                "person_name": person.full_name if person else None,
                "person_email": person.email if person else None,
                "person_phone": person.phone if person else None,
            })
            details.append(entry)

        data = client.to_dict()
        data["parties_details"] = details
        return data

    def get_primary_contact(self, client_id: UUID) -> Optional[Dict[str, Any]]:
        """The flagged primary contact, falling back to the first active party."""
        parties = [p for p in self._active_parties(client_id) if p.is_active]
        if not parties:
            return None
        party = next((p for p in parties if p.primary_contact), parties[0])
        person = self.store.people.get(party.person_id)
        if not person:
            return None
        return {
            "party": party.to_dict(),
            "person": person.to_dict(),
            "name": person.full_name,
            "email": person.email,
            "phone": person.phone,
        }

    def get_ownership_summary(self, client_id: UUID) -> Dict[str, Any]:
        shareholders = [
            p for p in self._active_parties(client_id)
            if p.is_active and p.ownership_percent
        ]
        total = round(sum(p.ownership_percent for p in shareholders), 2)
        return {
            "client_id": str(client_id),
            "total_percent": total,
            "fully_allocated": abs(total - 100.0) < 0.01,
            "shareholders": [p.to_dict() for p in shareholders],
        }

    # =========================================================================
    # DERIVED STATUS
    # =========================================================================

    def _has_active_payroll(self, client_id: UUID) -> bool:
        for service in self.store.services.values():
            if service.client_id == client_id and service.is_active:
                if any(k in service.kind.lower() for k in PAYROLL_KEYWORDS):
                    return True
        return False

    def hmrc_registration_status(self, client_id: UUID) -> Optional[Dict[str, Any]]:
        client = self.store.clients.get(client_id)
        if not client:
            return None

        if client.paye_reference:
            paye = "REGISTERED"
        elif self._has_active_payroll(client_id):
            paye = "REQUIRED_NOT_REGISTERED"
        else:
            paye = "NOT_REGISTERED"

        return {
            "client_id": str(client.id),
            "utr": {
                "label": "Corporation Tax" if client.is_incorporated else "Self Assessment",
                "reference": client.utr_number,
                "status": "REGISTERED" if client.utr_number else "NOT_REGISTERED",
            },
            "vat": {
                "label": "VAT",
                "reference": client.vat_number,
                "status": "REGISTERED" if client.vat_number else "NOT_REGISTERED",
            },
            "paye": {
                "label": "PAYE",
                "reference": client.paye_reference,
                "status": paye,
            },
        }

    @staticmethod
    def _card(label: str, due: Optional[date], registered: bool = True) -> Dict[str, Any]:
        if not registered:
            return {"label": label, "due_date": None, "days_until_due": None, "badge": "NOT_REGISTERED"}
        if not due:
            return {"label": label, "due_date": None, "days_until_due": None, "badge": "UNKNOWN"}

        days = (due - date.today()).days
        if days < 0:
            badge = "OVERDUE"
        elif days <= get_settings().practice.compliance_upcoming_days:
            badge = "DUE_SOON"
        else:
            badge = "OK"
        return {"label": label, "due_date": due.isoformat(), "days_until_due": days, "badge": badge}

    def _next_vat_due(self, client_id: UUID) -> Optional[date]:
        from ..compliance.compliance_models import ComplianceType, ComplianceStatus

        dues = [
            item.due_date for item in self.store.compliance.values()
            if item.client_id == client_id
            and item.type == ComplianceType.VAT_RETURN
            and item.status in (ComplianceStatus.PENDING, ComplianceStatus.OVERDUE)
            and item.due_date
        ]
        return min(dues) if dues else None

    def compliance_overview(self, client_id: UUID) -> Optional[Dict[str, Any]]:
        client = self.store.clients.get(client_id)
        if not client:
            return None
        return {
            "client_id": str(client.id),
            "ct600": self._card("CT600", client.accounts_next_due),
            "vat": self._card("VAT Return", self._next_vat_due(client_id), registered=bool(client.vat_number)),
            "confirmation_statement": self._card("Confirmation Statement", client.confirmation_next_due),
        }

    # =========================================================================
    # LETTER DATA
    # =========================================================================

    def build_placeholder_data(self, client_id: UUID) -> Optional[Dict[str, Any]]:
        """Flat merge data for a client, dates as DD/MM/YYYY."""
        client = self.store.clients.get(client_id)
        if not client:
            return None

        contact = self.get_primary_contact(client_id) or {}
        address_lines = client.address.lines() if client.address else []
        today = date.today()

        return {
            "client_id": str(client.id),
            "client_name": client.name,
            "client_ref": client.ref,
            "client_type": client.type.value,
            "portfolio_code": client.portfolio_code,
            "client_email": client.main_email or "",
            "client_phone": client.main_phone or "",
            "client_address": "\n".join(address_lines),
            "company_number": client.registered_number or "",
            "utr_number": client.utr_number or "",
            "vat_number": client.vat_number or "",
            "paye_reference": client.paye_reference or "",
            "incorporation_date": uk_date(client.incorporation_date),
            "accounts_next_due": uk_date(client.accounts_next_due),
            "accounts_last_made_up_to": uk_date(client.accounts_last_made_up_to),
            "confirmation_next_due": uk_date(client.confirmation_next_due),
            "contact_name": contact.get("name") or "",
            "contact_email": contact.get("email") or "",
            "contact_phone": contact.get("phone") or "",
            "current_date": uk_date(today),
            "current_year": str(today.year),
        }


# Singleton
_client_service: Optional[ClientService] = None


def get_client_service() -> ClientService:
    """Get the singleton client service instance."""
    global _client_service
    if _client_service is None:
        _client_service = ClientService()
    return _client_service
