"""
Client CSV Import

Bulk creation of clients from a spreadsheet export. Headers are matched
case-insensitively against a set of aliases, so exports from most
practice systems load without editing.
"""

import csv
import logging
from io import StringIO
from typing import Optional, List, Dict, Any

from .client_models import Address, ClientStatus, ClientType
from .client_service import ClientService, get_client_service
from .reference_generator import generate_client_ref
from security.api_errors import APIError, ErrorCode

logger = logging.getLogger(__name__)

HEADER_ALIASES: Dict[str, tuple] = {
    "name": ("company name", "name", "client name"),
    "type": ("type", "client type"),
    "portfolio_code": ("portfolio code", "portfolio"),
    "status": ("status",),
    "registered_number": ("company number", "registered number", "crn"),
    "main_email": ("email", "main email"),
    "main_phone": ("phone", "main phone", "telephone"),
    "line1": ("address line 1", "address 1", "line1"),
    "line2": ("address line 2", "address 2", "line2"),
    "city": ("city", "town"),
    "county": ("county",),
    "postcode": ("postcode", "post code", "zip"),
    "country": ("country",),
}

TYPE_ALIASES = {
    "LTD": ClientType.COMPANY,
    "LIMITED": ClientType.COMPANY,
    "LIMITED COMPANY": ClientType.COMPANY,
    "SOLE TRADER": ClientType.SOLE_TRADER,
}


def _canonical_headers(fieldnames: List[str]) -> Dict[str, str]:
    """Map canonical field name -> header as it appears in the file."""
    lookup = {}
    for header in fieldnames or []:
        normalised = " ".join(header.strip().lower().replace("_", " ").split())
        for canonical, aliases in HEADER_ALIASES.items():
            if normalised in aliases and canonical not in lookup:
                lookup[canonical] = header
    return lookup


def _parse_type(value: str) -> ClientType:
    cleaned = value.strip().upper()
    if cleaned in TYPE_ALIASES:
        return TYPE_ALIASES[cleaned]
    return ClientType(cleaned.replace(" ", "_"))


def _parse_status(value: str) -> ClientStatus:
    return ClientStatus(value.strip().upper())


class ClientImporter:
    """Parses client CSV text and creates (or previews) clients."""

    def __init__(self, client_service: Optional[ClientService] = None):
        self.clients = client_service or get_client_service()

    def _rows(self, text: str) -> List[Dict[str, str]]:
        reader = csv.DictReader(StringIO(text.lstrip("\ufeff")))
        headers = _canonical_headers(reader.fieldnames or [])
        if "name" not in headers:
            raise APIError(
                code=ErrorCode.VALIDATION_MISSING_FIELD,
                message="CSV must include a 'Company Name' or 'Name' column",
                details={"headers": reader.fieldnames or []},
            )
        rows = []
        for raw in reader:
            rows.append({
                canonical: (raw.get(header) or "").strip()
                for canonical, header in headers.items()
            })
        return rows

    def _row_values(self, row: Dict[str, str], default_portfolio: int) -> Dict[str, Any]:
        name = row.get("name", "")
        if not name:
            raise ValueError("Name is required")

        portfolio = row.get("portfolio_code")
        try:
            portfolio_code = int(portfolio) if portfolio else default_portfolio
        except ValueError:
            raise ValueError(f"Invalid portfolio code: {portfolio}")
        if not 1 <= portfolio_code <= self.clients.portfolio_count:
            raise ValueError(f"Portfolio code must be between 1 and {self.clients.portfolio_count}")

        try:
            client_type = _parse_type(row["type"]) if row.get("type") else ClientType.COMPANY
        except ValueError:
            raise ValueError(f"Invalid client type: {row.get('type')}")
        try:
            status = _parse_status(row["status"]) if row.get("status") else ClientStatus.ACTIVE
        except ValueError:
            raise ValueError(f"Invalid status: {row.get('status')}")

        address = Address.from_dict({
            k: row.get(k) or None for k in ("line1", "line2", "city", "county", "postcode", "country")
        })
        if address and not address.lines():
            address = None

        return {
            "name": name,
            "type": client_type,
            "portfolio_code": portfolio_code,
            "status": status,
            "registered_number": row.get("registered_number") or None,
            "main_email": row.get("main_email") or None,
            "main_phone": row.get("main_phone") or None,
            "address": address,
        }

    def import_csv(self, text: str, default_portfolio: int = 1) -> Dict[str, Any]:
        """Create a client per row. Row numbers count the header as row 1."""
        created = []
        errors = []
        for index, row in enumerate(self._rows(text), start=2):
            try:
                values = self._row_values(row, default_portfolio)
                client = self.clients.create(**values)
                created.append(client)
            except ValueError as e:
                errors.append({"row": index, "error": str(e)})
            except APIError as e:
                errors.append({"row": index, "error": e.message})

        logger.info(f"CSV import: {len(created)} created, {len(errors)} errors")
        return {"created": created, "errors": errors}

    def preview_csv(self, text: str, default_portfolio: int = 1) -> Dict[str, Any]:
        """Suggested refs for each row. Nothing is saved."""
        taken = [c.ref for c in self.clients.store.clients.values()]
        rows = []
        errors = []
        for index, row in enumerate(self._rows(text), start=2):
            try:
                values = self._row_values(row, default_portfolio)
            except ValueError as e:
                errors.append({"row": index, "error": str(e)})
                continue
            ref = generate_client_ref(values["portfolio_code"], values["name"], taken)
            taken.append(ref)
            rows.append({
                "row": index,
                "name": values["name"],
                "type": values["type"].value,
                "portfolio_code": values["portfolio_code"],
                "suggested_ref": ref,
            })
        return {"rows": rows, "errors": errors, "total": len(rows)}
