"""
Tests for Savings Pet models

Test strategy:
1. Unit tests for records and result descriptors
2. Rule tests live in test_progression.py
3. Flow tests run the service against in-memory storage
"""

import pytest
from datetime import datetime, timezone
from uuid import uuid4

from savings_pet.models.pet import (
    AvailablePet,
    HitResult,
    LevelProgress,
    PetState,
    PetTranslation,
    PurchaseResult,
    UserPet,
    XPGrantResult,
)
from savings_pet.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestPetState:
    """Tests for the PetState record."""

    def test_initial_defaults(self):
        """A new state starts at mood 50, xp 0, level 1."""
        state = PetState(user_id="user-1")
        assert state.mood == 50
        assert state.hunger == 100
        assert state.xp == 0
        assert state.level == 1
        assert state.version == 0
        assert state.current_pet_id is None
        assert state.last_feed_at.tzinfo is not None

    def test_mood_bounds(self):
        """Mood must stay within 0-100."""
        with pytest.raises(ValueError):
            PetState(user_id="user-1", mood=101)
        with pytest.raises(ValueError):
            PetState(user_id="user-1", mood=-1)

    def test_xp_and_level_bounds(self):
        """XP can't be negative and level starts at 1."""
        with pytest.raises(ValueError):
            PetState(user_id="user-1", xp=-5)
        with pytest.raises(ValueError):
            PetState(user_id="user-1", level=0)

    def test_assignment_is_validated(self):
        """Direct assignment goes through validation too."""
        state = PetState(user_id="user-1")
        with pytest.raises(ValueError):
            state.mood = 150

    def test_user_id_required(self):
        with pytest.raises(ValueError):
            PetState(user_id="")


class TestUserPet:
    """Tests for owned pets."""

    def test_user_pet_creation(self):
        pet = UserPet(
            user_id="user-1",
            pet_type="dog",
            pet_breed="Corgi",
            pet_name="Biscuit",
            pet_emoji="🐶",
        )
        assert pet.is_active is False
        assert pet.id is not None
        assert pet.pet_name == "Biscuit"

    def test_user_pet_strips_whitespace(self):
        pet = UserPet(
            user_id="user-1",
            pet_type="cat",
            pet_breed="  Siamese Cat  ",
            pet_name=" Mochi ",
        )
        assert pet.pet_breed == "Siamese Cat"
        assert pet.pet_name == "Mochi"


class TestAvailablePet:
    """Tests for catalog templates."""

    def test_catalog_entry_is_frozen(self):
        pet = AvailablePet(id="fish_goldfish", type="fish", breed="Goldfish", emoji="🐠", xp_cost=300)
        with pytest.raises(ValueError):
            pet.xp_cost = 0

    def test_negative_cost_rejected(self):
        with pytest.raises(ValueError):
            AvailablePet(id="x", type="fish", breed="Goldfish", emoji="🐠", xp_cost=-1)

    def test_id_whitespace_rejected(self):
        with pytest.raises(ValueError, match="surrounding whitespace"):
            AvailablePet(id=" fish ", type="fish", breed="Goldfish", emoji="🐠", xp_cost=1)

    def test_translations(self):
        pet = AvailablePet(
            id="fish_goldfish",
            type="fish",
            breed="Goldfish",
            emoji="🐠",
            xp_cost=300,
            translations={"zh": PetTranslation(breed="金鱼")},
        )
        assert pet.translations["zh"].breed == "金鱼"
        assert pet.translations["zh"].description is None


class TestResultDescriptors:
    """Result descriptors are what the app shell renders."""

    def test_xp_grant_result_serializes_camel_case(self):
        result = XPGrantResult(
            pet=PetState(user_id="user-1", xp=100, level=2),
            leveled_up=True,
            levels_gained=1,
            xp_gained=100,
        )
        data = result.model_dump(by_alias=True)
        assert data["leveledUp"] is True
        assert data["levelsGained"] == 1
        assert data["xpGained"] == 100
        assert data["blockedByMood"] is False
        assert data["pet"]["user_id"] == "user-1"

    def test_populate_by_field_name(self):
        result = XPGrantResult(pet=PetState(user_id="user-1"), blocked_by_mood=True)
        assert result.blocked_by_mood is True

    def test_hit_result_mood_delta_not_positive(self):
        with pytest.raises(ValueError):
            HitResult(pet=PetState(user_id="user-1"), mood_delta=5)

    def test_purchase_result(self):
        user_pet = UserPet(user_id="user-1", pet_type="fish", pet_breed="Goldfish", pet_name="Goldfish")
        result = PurchaseResult(pet=PetState(user_id="user-1"), user_pet=user_pet, xp_spent=300)
        assert result.model_dump(by_alias=True)["xpSpent"] == 300
        assert result.levels_lost == 0


class TestLevelProgress:

    def test_progress_percent(self):
        progress = LevelProgress(level=2, current_level_xp=75, xp_for_next_level=150)
        assert progress.progress_percent == 50.0

    def test_progress_percent_empty(self):
        progress = LevelProgress(level=1, current_level_xp=0, xp_for_next_level=100)
        assert progress.progress_percent == 0.0


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.PET_PATTED,
            description="Pet patted",
        )
        assert event.event_type == AuditEventType.PET_PATTED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        event = AuditEvent(
            event_type=AuditEventType.XP_GRANTED,
            user_id="user-1",
            description="100 XP granted",
            details={"amount": 100},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "xp_granted"
        assert log_dict["user_id"] == "user-1"
        assert log_dict["details"]["amount"] == 100

    def test_audit_event_to_sheets_row(self):
        event = AuditEvent(
            event_type=AuditEventType.PET_PURCHASED,
            user_id="user-1",
            description="Purchased fish_goldfish for 300 XP",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "pet_purchased"
        assert row[4] == "user-1"
        assert row[11] == "True"

    def test_builder_level_up_blocked(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.level_up_blocked(
            user_id="user-1",
            level=1,
            pending_level=3,
            mood=40,
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.LEVEL_UP_BLOCKED
        assert event.severity == AuditSeverity.WARNING
        assert event.details["pending_level"] == 3
        assert event.correlation_id == correlation_id

    def test_builder_xp_claimed(self):
        event = AuditEventBuilder.xp_granted(
            user_id="user-1",
            amount=100,
            total_xp=100,
            level=1,
            claimed=True,
        )
        assert event.event_type == AuditEventType.XP_CLAIMED
        assert event.is_user_action is True

    def test_builder_purchase_rolled_back(self):
        event = AuditEventBuilder.purchase_rolled_back(
            user_id="user-1",
            template_id="turtle_common",
            refunded_xp=500,
            error_message="disk full",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"
        assert event.details["refunded_xp"] == 500

    def test_sheets_row_serializes_details(self):
        event = AuditEventBuilder.active_pet_switched(
            user_id="user-1",
            user_pet_id=uuid4(),
            previous_pet_id=None,
        )
        row = event.to_sheets_row()
        assert '"previous_pet_id": null' in row[9]

    def test_timestamp_is_utc(self):
        event = AuditEvent(event_type=AuditEventType.PET_FED, description="fed")
        assert event.timestamp.tzinfo == timezone.utc
        assert event.timestamp <= datetime.now(timezone.utc)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
