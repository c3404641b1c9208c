"""Configuration module for the practice manager."""

from .settings import (
    CompaniesHouseSettings,
    PracticeSettings,
    ResilienceSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "CompaniesHouseSettings",
    "PracticeSettings",
    "ResilienceSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
