"""Client records and reference codes."""

from .client_models import Address, Client, ClientStatus, ClientType
from .reference_generator import (
    generate_client_ref,
    generate_person_ref,
    is_valid_client_ref,
    next_suffix_letter,
    portfolio_from_ref,
)

__all__ = [
    "Address",
    "Client",
    "ClientStatus",
    "ClientType",
    "generate_client_ref",
    "generate_person_ref",
    "is_valid_client_ref",
    "next_suffix_letter",
    "portfolio_from_ref",
]
