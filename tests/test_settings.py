"""
Tests for configuration loading.
"""

import pytest

from savings_pet.config import (
    ProgressionSettings,
    RateLimitSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)
from savings_pet.engine.progression import ProgressionRules


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestProgressionSettings:

    def test_defaults(self):
        settings = ProgressionSettings()
        assert settings.max_mood == 100
        assert settings.pat_xp_reward == 5
        assert settings.claim_cooldown_seconds == 600

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("PET_PAT_XP_REWARD", "7")
        monkeypatch.setenv("PET_HUNGER_DECAY_PER_HOUR", "3.5")
        rules = ProgressionRules.from_settings(ProgressionSettings())
        assert rules.pat_xp_reward == 7
        assert rules.hunger_decay_per_hour == 3.5

    def test_invalid_value_rejected(self, monkeypatch):
        monkeypatch.setenv("PET_MAX_MOOD", "150")
        with pytest.raises(ValueError):
            ProgressionSettings()


class TestOtherSettings:

    def test_rate_limit_override(self, monkeypatch):
        monkeypatch.setenv("PET_RATE_LIMIT_MAX_CALLS", "3")
        assert RateLimitSettings().max_calls == 3

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("PET_STORAGE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            StorageSettings()


class TestValidateAllSettings:

    def test_memory_backend(self, monkeypatch):
        monkeypatch.setenv("PET_STORAGE_BACKEND", "memory")
        results = validate_all_settings()
        assert results["progression"] is True
        assert results["storage"] is True
        assert "google_sheets" not in results

    def test_sheets_backend_without_credentials(self, monkeypatch):
        monkeypatch.setenv("PET_STORAGE_BACKEND", "google_sheets")
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        results = validate_all_settings()
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results

    def test_reports_invalid_section(self, monkeypatch):
        monkeypatch.setenv("PET_MAX_MOOD", "0")
        results = validate_all_settings()
        assert results["progression"] is False
        assert "progression_error" in results
