"""Configuration package."""

from savings_pet.config.settings import (
    CatalogSettings,
    GoogleSheetsSettings,
    ProgressionSettings,
    RateLimitSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "CatalogSettings",
    "GoogleSheetsSettings",
    "ProgressionSettings",
    "RateLimitSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
