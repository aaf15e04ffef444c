"""
Configuration Management for Savings Pet

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All tunable numbers of the pet economy live here.
The engine itself never reads the environment; it receives a
ProgressionRules value built from these settings (or from defaults in tests).
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProgressionSettings(BaseSettings):
    """Numbers that drive mood, hunger and XP transitions."""

    model_config = SettingsConfigDict(
        env_prefix="PET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    max_mood: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Mood ceiling; level-ups require mood at this value"
    )
    initial_mood: int = Field(
        default=50,
        ge=0,
        le=100,
        description="Mood of a freshly initialized pet"
    )
    initial_hunger: int = Field(
        default=100,
        ge=0,
        le=100,
        description="Hunger (fullness) of a freshly initialized pet"
    )

    # Interactions
    pat_mood_gain: int = Field(
        default=5,
        ge=0,
        description="Mood added by a pat"
    )
    pat_xp_reward: int = Field(
        default=5,
        ge=0,
        description="XP granted by a pat when mood is already maxed"
    )
    hit_mood_loss: int = Field(
        default=10,
        ge=0,
        description="Mood removed by a hit"
    )
    hit_xp_penalty: int = Field(
        default=10,
        ge=0,
        description="XP removed by a hit when mood is already zero"
    )
    level_up_mood_bonus: int = Field(
        default=10,
        ge=0,
        description="Mood bonus per level gained"
    )

    # Feeding and decay
    feed_hunger_gain: int = Field(default=20, ge=0)
    feed_mood_gain: int = Field(default=10, ge=0)
    hunger_decay_per_hour: float = Field(
        default=2.0,
        ge=0.0,
        description="Hunger points lost per hour since last feed"
    )
    mood_decay_per_hour: float = Field(
        default=1.0,
        ge=0.0,
        description="Mood points lost per hour since last feed"
    )

    # Timed claim
    claim_xp_amount: int = Field(
        default=100,
        ge=0,
        description="XP granted by the timed claim button"
    )
    claim_cooldown_seconds: int = Field(
        default=600,
        ge=0,
        description="Seconds between two timed claims"
    )


class RateLimitSettings(BaseSettings):
    """Interaction spam protection (caller-side policy)."""

    model_config = SettingsConfigDict(
        env_prefix="PET_RATE_LIMIT_",
        extra="ignore"
    )

    window_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Sliding window length"
    )
    max_calls: int = Field(
        default=5,
        ge=1,
        description="Maximum interactions inside one window"
    )
    cooldown_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Minimum spacing between two interactions"
    )


class CatalogSettings(BaseSettings):
    """Where the shop catalog comes from."""

    model_config = SettingsConfigDict(
        env_prefix="PET_CATALOG_",
        extra="ignore"
    )

    path: Optional[str] = Field(
        default=None,
        description="JSON file with the pet templates; built-in catalog when unset"
    )


class StorageSettings(BaseSettings):
    """Which persistence backend to use."""

    model_config = SettingsConfigDict(
        env_prefix="PET_STORAGE_",
        extra="ignore"
    )

    backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Persistence backend"
    )
    conflict_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a conflicting write is recomputed and retried"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    pet_state_sheet_name: str = Field(
        default="PetState",
        description="Name of the sheet holding one pet state per user"
    )
    user_pets_sheet_name: str = Field(
        default="UserPets",
        description="Name of the sheet for owned pets"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def progression(self) -> ProgressionSettings:
        return ProgressionSettings()

    @property
    def rate_limit(self) -> RateLimitSettings:
        return RateLimitSettings()

    @property
    def catalog(self) -> CatalogSettings:
        return CatalogSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Google Sheets is only checked when it is the selected backend.
    """
    results = {}

    settings = get_settings()

    for name in ("progression", "rate_limit", "catalog", "storage"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    if results.get("storage") and settings.storage.backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
