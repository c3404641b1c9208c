"""Companies House public data API integration."""

from .ch_client import (
    CompaniesHouseAuthError,
    CompaniesHouseClient,
    CompaniesHouseError,
    CompaniesHouseNotConfigured,
    CompaniesHouseNotFound,
)

__all__ = [
    "CompaniesHouseAuthError",
    "CompaniesHouseClient",
    "CompaniesHouseError",
    "CompaniesHouseNotConfigured",
    "CompaniesHouseNotFound",
]
