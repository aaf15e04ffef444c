"""
Tests for the progression rules.

All functions under test are pure, so these run without storage.
"""

import pytest
from datetime import datetime, timedelta, timezone

from savings_pet.engine.exceptions import InsufficientFundsError
from savings_pet.engine.progression import (
    ProgressionRules,
    calculate_level_from_xp,
    debit_purchase,
    decay_status,
    feed,
    grant_xp,
    negative_interaction,
    new_pet_state,
    positive_interaction,
    refund_purchase,
    total_xp_for_level,
    xp_required_for_level,
)
from savings_pet.engine.catalog import DEFAULT_CATALOG
from savings_pet.models.pet import PetState


NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_state(**overrides) -> PetState:
    values = {"user_id": "user-1", "last_feed_at": NOW, "updated_at": NOW}
    values.update(overrides)
    return PetState(**values)


class TestLevelFunction:
    """Tests for the level curve."""

    def test_xp_required_for_level(self):
        assert xp_required_for_level(1) == 100
        assert xp_required_for_level(2) == 150
        assert xp_required_for_level(3) == 200
        assert xp_required_for_level(10) == 550

    def test_total_xp_for_level(self):
        assert total_xp_for_level(1) == 0
        assert total_xp_for_level(2) == 100
        assert total_xp_for_level(3) == 250
        assert total_xp_for_level(4) == 450

    def test_invalid_level_rejected(self):
        with pytest.raises(ValueError):
            xp_required_for_level(0)
        with pytest.raises(ValueError):
            total_xp_for_level(-1)

    @pytest.mark.parametrize(
        "total_xp,level,current,needed",
        [
            (0, 1, 0, 100),
            (99, 1, 99, 100),
            (100, 2, 0, 150),
            (249, 2, 149, 150),
            (250, 3, 0, 200),
            (460, 4, 10, 250),
        ],
    )
    def test_calculate_level_from_xp(self, total_xp, level, current, needed):
        progress = calculate_level_from_xp(total_xp)
        assert progress.level == level
        assert progress.current_level_xp == current
        assert progress.xp_for_next_level == needed

    def test_threshold_lands_exactly_on_level(self):
        """Reaching a level's cumulative threshold yields that level with 0 progress."""
        for level in range(1, 31):
            progress = calculate_level_from_xp(total_xp_for_level(level))
            assert progress.level == level
            assert progress.current_level_xp == 0

    def test_negative_xp_rejected(self):
        with pytest.raises(ValueError):
            calculate_level_from_xp(-1)


class TestGrantXP:
    """Tests for the mood-gated level-up rule."""

    def test_level_up_at_full_mood(self):
        result = grant_xp(make_state(mood=100, xp=0, level=1), 100)
        assert result.pet.xp == 100
        assert result.pet.level == 2
        assert result.pet.mood == 100
        assert result.leveled_up is True
        assert result.levels_gained == 1
        assert result.blocked_by_mood is False

    def test_level_up_blocked_below_full_mood(self):
        result = grant_xp(make_state(mood=40, xp=90, level=1), 100)
        assert result.pet.xp == 190
        assert result.pet.level == 1
        assert result.pet.mood == 40
        assert result.leveled_up is False
        assert result.levels_gained == 0
        assert result.blocked_by_mood is True

    def test_no_crossing_is_not_blocked(self):
        result = grant_xp(make_state(mood=40, xp=0), 50)
        assert result.pet.xp == 50
        assert result.blocked_by_mood is False
        assert result.leveled_up is False

    def test_multiple_levels_at_once(self):
        result = grant_xp(make_state(mood=100), 450)
        assert result.pet.level == 4
        assert result.levels_gained == 3

    def test_zero_amount(self):
        state = make_state(mood=100, xp=50)
        result = grant_xp(state, 0)
        assert result.pet.xp == 50
        assert result.xp_gained == 0
        assert result.leveled_up is False

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            grant_xp(make_state(), -1)

    def test_input_not_mutated(self):
        state = make_state(mood=100)
        grant_xp(state, 500)
        assert state.xp == 0
        assert state.level == 1

    def test_mood_bonus_capped(self):
        rules = ProgressionRules(max_mood=80, level_up_mood_bonus=15)
        result = grant_xp(make_state(mood=80), 100, rules)
        assert result.leveled_up is True
        assert result.pet.mood == 80

    def test_banked_levels_released_together(self):
        """XP earned while blocked levels up in one go once mood is full."""
        state = make_state(mood=40)
        state = grant_xp(state, 100).pet
        state = grant_xp(state, 150).pet
        assert state.xp == 250
        assert state.level == 1

        state = state.model_copy(update={"mood": 100})
        result = grant_xp(state, 0)
        assert result.leveled_up is True
        assert result.levels_gained == 2
        assert result.pet.level == 3

    def test_level_never_exceeds_implied_level(self):
        state = make_state(mood=100)
        previous_level = state.level
        for amount in (30, 70, 0, 149, 1, 400, 5):
            state = grant_xp(state, amount).pet
            assert state.level == calculate_level_from_xp(state.xp).level
            assert state.level >= previous_level
            previous_level = state.level


class TestPositiveInteraction:
    """Tests for patting."""

    def test_raises_mood(self):
        result = positive_interaction(make_state(mood=50))
        assert result.pet.mood == 55
        assert result.mood_delta == 5
        assert result.xp_gained == 0

    def test_mood_clamped(self):
        result = positive_interaction(make_state(mood=98), 5)
        assert result.pet.mood == 100
        assert result.mood_delta == 2

    def test_reaching_full_mood_grants_no_xp(self):
        result = positive_interaction(make_state(mood=95), 5)
        assert result.pet.mood == 100
        assert result.pet.xp == 0
        assert result.xp_gained == 0

    def test_full_mood_grants_xp(self):
        result = positive_interaction(make_state(mood=100, xp=10))
        assert result.pet.mood == 100
        assert result.pet.xp == 15
        assert result.xp_gained == 5
        assert result.mood_delta == 0

    def test_full_mood_xp_levels_up(self):
        result = positive_interaction(make_state(mood=100, xp=95))
        assert result.pet.level == 2
        assert result.leveled_up is True

    def test_reaching_full_mood_releases_banked_levels(self):
        result = positive_interaction(make_state(mood=95, xp=250, level=1), 5)
        assert result.pet.level == 3
        assert result.levels_gained == 2

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            positive_interaction(make_state(), -5)


class TestNegativeInteraction:
    """Tests for hitting."""

    def test_lowers_mood(self):
        result = negative_interaction(make_state(mood=50))
        assert result.pet.mood == 40
        assert result.mood_delta == -10
        assert result.xp_lost == 0

    def test_mood_floored(self):
        result = negative_interaction(make_state(mood=5))
        assert result.pet.mood == 0
        assert result.mood_delta == -5

    def test_zero_mood_costs_xp(self):
        result = negative_interaction(make_state(mood=0, xp=50))
        assert result.pet.xp == 40
        assert result.xp_lost == 10

    def test_xp_never_negative(self):
        result = negative_interaction(make_state(mood=0, xp=5))
        assert result.pet.xp == 0
        assert result.xp_lost == 5
        assert result.pet.mood == 0

    def test_level_down_not_gated(self):
        result = negative_interaction(make_state(mood=0, xp=100, level=2))
        assert result.pet.xp == 90
        assert result.pet.level == 1
        assert result.leveled_down is True
        assert result.levels_lost == 1

    def test_no_level_down_above_threshold(self):
        result = negative_interaction(make_state(mood=0, xp=260, level=3))
        assert result.pet.xp == 250
        assert result.pet.level == 3
        assert result.leveled_down is False

    def test_banked_levels_not_released(self):
        result = negative_interaction(make_state(mood=50, xp=250, level=1))
        assert result.pet.level == 1


class TestFeedAndDecay:
    """Tests for hunger and time-based decay."""

    def test_feed(self):
        state = make_state(mood=95, hunger=50, last_feed_at=NOW - timedelta(hours=5))
        fed = feed(state, NOW)
        assert fed.hunger == 70
        assert fed.mood == 100
        assert fed.last_feed_at == NOW
        assert fed.hunger_decay_at == NOW
        assert fed.mood_decay_at == NOW

    def test_feed_caps_hunger(self):
        assert feed(make_state(hunger=95), NOW).hunger == 100

    def test_decay_by_hours(self):
        state = make_state(mood=50, hunger=100, last_feed_at=NOW - timedelta(hours=3))
        decayed = decay_status(state, NOW)
        assert decayed.hunger == 94
        assert decayed.mood == 47
        assert decayed.hunger_decay_at == NOW
        assert decayed.mood_decay_at == NOW
        assert decayed.last_feed_at == state.last_feed_at

    def test_decay_does_not_double_count(self):
        state = make_state(mood=50, hunger=100, last_feed_at=NOW - timedelta(hours=3))
        decayed = decay_status(state, NOW)
        again = decay_status(decayed, NOW + timedelta(minutes=10))
        assert again is decayed

    def test_partial_hours_accumulate(self):
        state = make_state(mood=50, hunger=100, last_feed_at=NOW)
        assert decay_status(state, NOW + timedelta(minutes=20)) is state
        later = decay_status(state, NOW + timedelta(minutes=70))
        assert later.hunger == 98
        assert later.mood == 49

    def test_frequent_refreshes_keep_remainders(self):
        """Refreshing every 45 minutes decays as much as one refresh at the end."""
        state = make_state(mood=50, hunger=100, last_feed_at=NOW)
        for step in range(1, 14):
            state = decay_status(state, NOW + timedelta(minutes=45 * step))
            minutes = 45 * step
            assert state.hunger == 100 - (minutes * 2) // 60
            assert state.mood == 50 - minutes // 60

        assert state.hunger == 81
        assert state.mood == 41

    def test_partial_decay_leaves_other_stat_remainder(self):
        """A stat that changed moves its own anchor only."""
        state = make_state(mood=50, hunger=100, last_feed_at=NOW)
        half_hour = decay_status(state, NOW + timedelta(minutes=30))
        assert half_hour.hunger == 99
        assert half_hour.mood == 50
        assert half_hour.hunger_decay_at == NOW + timedelta(minutes=30)
        assert half_hour.mood_decay_at == NOW

        hour = decay_status(half_hour, NOW + timedelta(minutes=60))
        assert hour.hunger == 98
        assert hour.mood == 49

    def test_zero_rate_never_decays(self):
        rules = ProgressionRules(hunger_decay_per_hour=0.0)
        state = make_state(mood=50, hunger=100, last_feed_at=NOW)
        decayed = decay_status(state, NOW + timedelta(hours=5), rules)
        assert decayed.hunger == 100
        assert decayed.mood == 45

    def test_decay_floors_at_zero(self):
        state = make_state(mood=10, hunger=10, last_feed_at=NOW - timedelta(hours=100))
        decayed = decay_status(state, NOW)
        assert decayed.mood == 0
        assert decayed.hunger == 0

    def test_future_feed_time_is_ignored(self):
        state = make_state(last_feed_at=NOW + timedelta(hours=2))
        assert decay_status(state, NOW) is state


class TestPurchaseDebit:
    """Tests for the XP debit and its refund."""

    def test_insufficient_funds(self):
        turtle = DEFAULT_CATALOG.require("turtle_common")
        with pytest.raises(InsufficientFundsError) as exc_info:
            debit_purchase(make_state(xp=499), turtle)
        assert exc_info.value.required == 500
        assert exc_info.value.available == 499
        assert exc_info.value.shortfall == 1
        assert "You need 500 XP but only have 499 XP" in str(exc_info.value)

    def test_exact_funds(self):
        turtle = DEFAULT_CATALOG.require("turtle_common")
        state, levels_lost = debit_purchase(make_state(xp=500), turtle)
        assert state.xp == 0
        assert levels_lost == 0

    def test_debit_clamps_level(self):
        turtle = DEFAULT_CATALOG.require("turtle_common")
        state, levels_lost = debit_purchase(make_state(mood=100, xp=600, level=4), turtle)
        assert state.xp == 100
        assert state.level == 2
        assert levels_lost == 2

    def test_debit_keeps_banked_level(self):
        goldfish = DEFAULT_CATALOG.require("fish_goldfish")
        state, levels_lost = debit_purchase(make_state(mood=40, xp=500, level=1), goldfish)
        assert state.xp == 200
        assert state.level == 1
        assert levels_lost == 0

    def test_refund_restores_level(self):
        turtle = DEFAULT_CATALOG.require("turtle_common")
        original = make_state(mood=100, xp=600, level=4)
        debited, _ = debit_purchase(original, turtle)
        refunded = refund_purchase(debited, turtle.xp_cost, previous_level=original.level)
        assert refunded.xp == 600
        assert refunded.level == 4


class TestNewPetState:

    def test_uses_rules(self):
        rules = ProgressionRules(initial_mood=70, initial_hunger=80)
        state = new_pet_state("user-1", NOW, rules)
        assert state.mood == 70
        assert state.hunger == 80
        assert state.xp == 0
        assert state.level == 1
        assert state.last_feed_at == NOW
