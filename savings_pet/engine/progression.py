"""
Pet Progression Rules

Pure state transitions over PetState. Nothing in this module touches
storage, the clock or the environment: every function takes a snapshot
and returns the next snapshot plus a result descriptor.

LEVEL CURVE:
    Level 1 -> 2: 100 XP
    Level 2 -> 3: 150 XP
    Level 3 -> 4: 200 XP
    Formula: 50 * level + 50

MOOD GATE:
    XP always accumulates, but the cached level only moves up while mood
    is at its maximum. Blocked crossings stay banked in `xp`; because the
    level is recomputed from total XP on every grant, all banked levels are
    released together the next time XP is granted at full mood.

    Level-downs (XP penalties) are never gated.
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from savings_pet.config.settings import ProgressionSettings
from savings_pet.engine.exceptions import InsufficientFundsError
from savings_pet.models.pet import (
    AvailablePet,
    HitResult,
    LevelProgress,
    PatResult,
    PetState,
    XPGrantResult,
)


class ProgressionRules(BaseModel):
    """The numbers behind every transition. Immutable."""
    model_config = ConfigDict(frozen=True)

    max_mood: int = Field(default=100, ge=1, le=100)
    initial_mood: int = Field(default=50, ge=0, le=100)
    initial_hunger: int = Field(default=100, ge=0, le=100)
    pat_mood_gain: int = Field(default=5, ge=0)
    pat_xp_reward: int = Field(default=5, ge=0)
    hit_mood_loss: int = Field(default=10, ge=0)
    hit_xp_penalty: int = Field(default=10, ge=0)
    level_up_mood_bonus: int = Field(default=10, ge=0)
    feed_hunger_gain: int = Field(default=20, ge=0)
    feed_mood_gain: int = Field(default=10, ge=0)
    hunger_decay_per_hour: float = Field(default=2.0, ge=0.0)
    mood_decay_per_hour: float = Field(default=1.0, ge=0.0)
    claim_xp_amount: int = Field(default=100, ge=0)
    claim_cooldown_seconds: int = Field(default=600, ge=0)

    @classmethod
    def from_settings(cls, settings: ProgressionSettings) -> "ProgressionRules":
        return cls(**settings.model_dump())


DEFAULT_RULES = ProgressionRules()


# =============================================================================
# LEVEL FUNCTION
# =============================================================================

def xp_required_for_level(level: int) -> int:
    """XP needed to advance from `level` to `level + 1`."""
    if level < 1:
        raise ValueError(f"Level must be >= 1, got {level}")
    return 50 * level + 50


def total_xp_for_level(level: int) -> int:
    """Cumulative XP needed to reach `level` starting from level 1."""
    if level < 1:
        raise ValueError(f"Level must be >= 1, got {level}")
    return sum(xp_required_for_level(i) for i in range(1, level))


def calculate_level_from_xp(total_xp: int) -> LevelProgress:
    """
    Derive (level, current_level_xp, xp_for_next_level) from total XP.

    Greedily consumes level thresholds starting at level 1 until the next
    threshold would exceed `total_xp`.
    """
    if total_xp < 0:
        raise ValueError(f"Total XP must be >= 0, got {total_xp}")

    level = 1
    xp_used = 0
    while xp_used + xp_required_for_level(level) <= total_xp:
        xp_used += xp_required_for_level(level)
        level += 1

    return LevelProgress(
        level=level,
        current_level_xp=total_xp - xp_used,
        xp_for_next_level=xp_required_for_level(level),
    )


# =============================================================================
# TRANSITIONS
# =============================================================================

def new_pet_state(
    user_id: str,
    now: datetime,
    rules: ProgressionRules = DEFAULT_RULES,
) -> PetState:
    """Initial state of a freshly created pet."""
    return PetState(
        user_id=user_id,
        mood=rules.initial_mood,
        hunger=rules.initial_hunger,
        xp=0,
        level=1,
        last_feed_at=now,
        updated_at=now,
    )


def grant_xp(
    state: PetState,
    amount: int,
    rules: ProgressionRules = DEFAULT_RULES,
) -> XPGrantResult:
    """
    Add XP and apply the mood-gated level-up rule.

    A level-up adds `level_up_mood_bonus` mood per level gained (capped).
    A blocked level-up still banks the XP.
    """
    if amount < 0:
        raise ValueError(f"XP amount must be >= 0, got {amount}")

    new_total_xp = state.xp + amount
    calculated_level = calculate_level_from_xp(new_total_xp).level

    updates = {"xp": new_total_xp}
    leveled_up = False
    levels_gained = 0
    blocked_by_mood = False

    if calculated_level > state.level:
        if state.mood >= rules.max_mood:
            levels_gained = calculated_level - state.level
            leveled_up = True
            updates["level"] = calculated_level
            updates["mood"] = min(
                rules.max_mood,
                state.mood + rules.level_up_mood_bonus * levels_gained,
            )
        else:
            blocked_by_mood = True

    return XPGrantResult(
        pet=state.model_copy(update=updates),
        leveled_up=leveled_up,
        levels_gained=levels_gained,
        xp_gained=amount,
        blocked_by_mood=blocked_by_mood,
    )


def positive_interaction(
    state: PetState,
    amount: Optional[int] = None,
    rules: ProgressionRules = DEFAULT_RULES,
) -> PatResult:
    """
    Pat the pet.

    Below max mood the pat only raises mood. At max mood it grants
    `pat_xp_reward` XP instead, which then goes through the level-up rule.
    """
    if amount is None:
        amount = rules.pat_mood_gain
    if amount < 0:
        raise ValueError(f"Pat amount must be >= 0, got {amount}")

    if state.mood >= rules.max_mood:
        new_mood = rules.max_mood
        xp_gained = rules.pat_xp_reward
    else:
        new_mood = min(rules.max_mood, state.mood + amount)
        xp_gained = 0

    new_total_xp = state.xp + xp_gained
    calculated_level = calculate_level_from_xp(new_total_xp).level

    new_level = state.level
    if calculated_level > state.level and new_mood >= rules.max_mood:
        new_level = calculated_level

    return PatResult(
        pet=state.model_copy(update={
            "mood": new_mood,
            "xp": new_total_xp,
            "level": new_level,
        }),
        mood_delta=new_mood - state.mood,
        xp_gained=xp_gained,
        leveled_up=new_level > state.level,
        levels_gained=new_level - state.level,
    )


def negative_interaction(
    state: PetState,
    amount: Optional[int] = None,
    rules: ProgressionRules = DEFAULT_RULES,
) -> HitResult:
    """
    Hit the pet.

    Above zero mood the hit only lowers mood. At zero mood it removes
    `hit_xp_penalty` XP instead (never below 0 XP), and the level is
    recomputed downward without any mood check.
    """
    if amount is None:
        amount = rules.hit_mood_loss
    if amount < 0:
        raise ValueError(f"Hit amount must be >= 0, got {amount}")

    if state.mood <= 0:
        new_mood = 0
        xp_lost = min(rules.hit_xp_penalty, state.xp)
    else:
        new_mood = max(0, state.mood - amount)
        xp_lost = 0

    new_total_xp = state.xp - xp_lost
    # Only ever lowers: a banked level-up must not slip through here
    new_level = min(state.level, calculate_level_from_xp(new_total_xp).level)

    return HitResult(
        pet=state.model_copy(update={
            "mood": new_mood,
            "xp": new_total_xp,
            "level": new_level,
        }),
        mood_delta=new_mood - state.mood,
        xp_lost=xp_lost,
        leveled_down=new_level < state.level,
        levels_lost=state.level - new_level,
    )


def feed(
    state: PetState,
    now: datetime,
    rules: ProgressionRules = DEFAULT_RULES,
) -> PetState:
    """Feed the pet: more hunger and mood, and reset the decay clock."""
    return state.model_copy(update={
        "hunger": min(100, state.hunger + rules.feed_hunger_gain),
        "mood": min(rules.max_mood, state.mood + rules.feed_mood_gain),
        "last_feed_at": now,
        "hunger_decay_at": now,
        "mood_decay_at": now,
    })


def _decay_stat(
    value: int,
    rate_per_hour: float,
    applied_until: datetime,
    now: datetime,
) -> tuple[int, datetime]:
    """
    Whole points of decay since `applied_until`.

    Returns (new value, new applied_until). The anchor only moves by the
    time those whole points account for, so the remainder carries over.
    """
    hours_passed = max(0.0, (now - applied_until).total_seconds() / 3600)
    decrease = int(hours_passed * rate_per_hour)
    if decrease <= 0:
        return value, applied_until
    return (
        max(0, value - decrease),
        applied_until + timedelta(hours=decrease / rate_per_hour),
    )


def decay_status(
    state: PetState,
    now: datetime,
    rules: ProgressionRules = DEFAULT_RULES,
) -> PetState:
    """
    Lower hunger and mood by the hours elapsed since the last feed.

    Each stat keeps its own anchor, so calling this at any cadence decays
    exactly floor(hours * rate) in total. Returns `state` itself when
    nothing visible changes.
    """
    hunger_anchor = max(state.last_feed_at, state.hunger_decay_at or state.last_feed_at)
    mood_anchor = max(state.last_feed_at, state.mood_decay_at or state.last_feed_at)

    new_hunger, hunger_anchor = _decay_stat(
        state.hunger, rules.hunger_decay_per_hour, hunger_anchor, now
    )
    new_mood, mood_anchor = _decay_stat(
        state.mood, rules.mood_decay_per_hour, mood_anchor, now
    )

    if new_hunger == state.hunger and new_mood == state.mood:
        return state

    return state.model_copy(update={
        "hunger": new_hunger,
        "mood": new_mood,
        "hunger_decay_at": hunger_anchor,
        "mood_decay_at": mood_anchor,
    })


def debit_purchase(state: PetState, template: AvailablePet) -> tuple[PetState, int]:
    """
    Take the price of `template` out of the pet's XP.

    Returns (new_state, levels_lost). The cached level is clamped so it
    never exceeds what the remaining XP implies.

    Raises:
        InsufficientFundsError: xp < template.xp_cost (state untouched)
    """
    if state.xp < template.xp_cost:
        raise InsufficientFundsError(required=template.xp_cost, available=state.xp)

    new_total_xp = state.xp - template.xp_cost
    new_level = min(state.level, calculate_level_from_xp(new_total_xp).level)

    return (
        state.model_copy(update={"xp": new_total_xp, "level": new_level}),
        state.level - new_level,
    )


def refund_purchase(state: PetState, xp_cost: int, previous_level: int) -> PetState:
    """
    Undo a debit: give the XP back and restore the level it clamped away.

    The restored level is capped by what the refunded XP implies.
    """
    new_total_xp = state.xp + xp_cost
    restored_level = min(previous_level, calculate_level_from_xp(new_total_xp).level)

    return state.model_copy(update={
        "xp": new_total_xp,
        "level": max(state.level, restored_level),
    })
