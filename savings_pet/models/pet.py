"""
Core Data Models for the Savings Pet

These models define the records the engine consumes and produces:
1. PetState - one per user, the (mood, xp, level) triple plus bookkeeping
2. UserPet - an owned pet instance (starter or purchased)
3. AvailablePet - a read-only catalog template
4. Result descriptors returned to the UI after each operation

DESIGN DECISION: The engine never mutates a model in place.
Every transition returns a fresh copy (model_copy), so a failed write
can never leave a half-updated snapshot lying around.

Result descriptors serialize with camelCase aliases (leveledUp,
blockedByMood, ...) because that is the shape the app shell renders.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# LEVEL PROGRESS
# =============================================================================

class LevelProgress(BaseModel):
    """
    Level derived from a cumulative XP total.

    current_level_xp is the remainder inside the current level band and
    xp_for_next_level is the threshold of the current (not yet crossed) level.
    """
    model_config = ConfigDict(frozen=True)

    level: int = Field(..., ge=1)
    current_level_xp: int = Field(..., ge=0)
    xp_for_next_level: int = Field(..., gt=0)

    @property
    def progress_percent(self) -> float:
        """Share of the current level already earned, 0-100."""
        return min(100.0, self.current_level_xp / self.xp_for_next_level * 100)


# =============================================================================
# PET STATE
# =============================================================================

class PetState(BaseModel):
    """
    The per-user pet record.

    CRITICAL: `level` is a cached value. It may lag behind the level implied
    by `xp` (level-ups blocked by mood) but must never exceed it.
    """
    model_config = ConfigDict(validate_assignment=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of this pet state"
    )
    mood: int = Field(
        default=50,
        ge=0,
        le=100,
        description="Happiness, 0-100"
    )
    hunger: int = Field(
        default=100,
        ge=0,
        le=100,
        description="Fullness, 0-100 (100 = just fed)"
    )
    xp: int = Field(
        default=0,
        ge=0,
        description="Cumulative experience points"
    )
    level: int = Field(
        default=1,
        ge=1,
        description="Cached level"
    )
    last_feed_at: datetime = Field(
        default_factory=utcnow,
        description="When the pet was last fed (drives decay)"
    )
    hunger_decay_at: Optional[datetime] = Field(
        default=None,
        description="Point up to which hunger decay has been applied"
    )
    mood_decay_at: Optional[datetime] = Field(
        default=None,
        description="Point up to which mood decay has been applied"
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Last write timestamp"
    )
    current_pet_id: Optional[UUID] = Field(
        default=None,
        description="The active UserPet (reference, not ownership)"
    )
    version: int = Field(
        default=0,
        ge=0,
        description="Optimistic concurrency stamp, bumped by storage on every write"
    )


# =============================================================================
# PETS AND CATALOG
# =============================================================================

class UserPet(BaseModel):
    """An owned pet instance. At most one per user is active."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    pet_type: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="'dog', 'cat', 'turtle', ..."
    )
    pet_breed: str = Field(..., min_length=1, max_length=100)
    pet_name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="User's name for the pet"
    )
    pet_emoji: str = Field(default="", max_length=16)
    is_active: bool = False
    purchased_at: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)


class PetTranslation(BaseModel):
    """Localized display text for a catalog entry."""
    model_config = ConfigDict(frozen=True)

    breed: Optional[str] = None
    description: Optional[str] = None


class AvailablePet(BaseModel):
    """
    A purchasable pet template.

    Catalog entries are immutable; the catalog is configuration, not state.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    breed: str = Field(..., min_length=1)
    emoji: str
    xp_cost: int = Field(..., ge=0)
    description: str = ""
    translations: dict[str, PetTranslation] = Field(default_factory=dict)

    @field_validator('id')
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Catalog ids are used as lookup keys, keep them trimmed."""
        if v != v.strip():
            raise ValueError(f"Catalog id must not have surrounding whitespace: {v!r}")
        return v


class StarterPet(BaseModel):
    """The free pet chosen at account initialization."""
    model_config = ConfigDict(str_strip_whitespace=True)

    pet_type: str = Field(..., min_length=1)
    pet_breed: str = Field(..., min_length=1)
    pet_name: str = Field(..., min_length=1)
    pet_emoji: str = ""


# =============================================================================
# RESULT DESCRIPTORS
# =============================================================================

class _ResultModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    pet: PetState


class XPGrantResult(_ResultModel):
    """Outcome of grant_xp / claim_xp."""

    leveled_up: bool = False
    levels_gained: int = Field(default=0, ge=0)
    xp_gained: int = Field(default=0, ge=0)
    blocked_by_mood: bool = False


class PatResult(_ResultModel):
    """Outcome of a positive interaction."""

    mood_delta: int = Field(default=0, ge=0)
    xp_gained: int = Field(default=0, ge=0)
    leveled_up: bool = False
    levels_gained: int = Field(default=0, ge=0)


class HitResult(_ResultModel):
    """Outcome of a negative interaction."""

    mood_delta: int = Field(default=0, le=0)
    xp_lost: int = Field(default=0, ge=0)
    leveled_down: bool = False
    levels_lost: int = Field(default=0, ge=0)


class PurchaseResult(_ResultModel):
    """Outcome of a successful purchase."""

    user_pet: UserPet
    xp_spent: int = Field(..., ge=0)
    levels_lost: int = Field(default=0, ge=0)
