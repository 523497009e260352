"""
Tests for package kinds, perishable timers, rewards and equipment.
"""

import pytest

from chill_rider.rider_core.config_loader import load_config
from chill_rider.rider_core.packages import (
    EquipmentChoice,
    EquipmentKey,
    EquipmentLevels,
    apply_equipment_choice,
    backpack_timer_bonus,
    coffee_thermos_bonus,
    decay_modifier,
    decay_timer,
    decide_package_kind,
    delivery_reward,
    describe_levels,
    effective_steps,
    expiry_penalty,
    initial_perishable_timer,
    offer_equipment_choices,
    perishable_chance,
    pick_package_color,
)
from chill_rider.rider_core.rng import LehmerRng
from chill_rider.rider_core.state import PackageItem, PackageKind


@pytest.fixture
def config():
    return load_config()


class TestPackageKinds:
    """Test perishable odds and timers."""

    def test_perishable_chance_scales_and_caps(self, config):
        assert perishable_chance(1, config) == pytest.approx(0.25)
        assert perishable_chance(3, config) == pytest.approx(0.35)
        assert perishable_chance(50, config) == pytest.approx(0.70)

    def test_decide_kind_uses_threshold(self, config):
        assert decide_package_kind(1, lambda: 0.2, config) == PackageKind.PERISHABLE
        assert decide_package_kind(1, lambda: 0.3, config) == PackageKind.STANDARD

    @pytest.mark.parametrize("level,expected", [(1, 22), (2, 21), (9, 14), (12, 14), (30, 14)])
    def test_initial_timer(self, config, level, expected):
        assert initial_perishable_timer(level, config) == expected

    def test_color_prefers_unused(self, config):
        carried = [PackageItem(id=f"p{i}", color=c) for i, c in enumerate(["red", "blue", "green", "yellow"])]
        assert pick_package_color(carried, LehmerRng(3), config) == "purple"

    def test_color_pool_resets_when_exhausted(self, config):
        carried = [PackageItem(id=c, color=c) for c in config.packages.colors]
        assert pick_package_color(carried, LehmerRng(3), config) in config.packages.colors


class TestPerishableDecay:
    """Test timer arithmetic."""

    @pytest.mark.parametrize("steps", [1, 2, 5, 13, 21, 22, 40])
    def test_decay_without_bike_frame(self, config, steps):
        assert decay_timer(22, steps, 0, config) == max(0, 22 - steps)

    def test_no_steps_no_decay(self, config):
        assert decay_timer(9, 0, 0, config) == 9
        assert decay_timer(9, -3, 0, config) == 9

    def test_never_negative(self, config):
        assert decay_timer(1, 100, 0, config) == 0

    def test_bike_frame_slows_decay(self, config):
        assert decay_modifier(0, config) == pytest.approx(1.0)
        assert decay_modifier(4, config) == pytest.approx(0.8)
        assert decay_modifier(20, config) == pytest.approx(0.5)
        assert effective_steps(10, 4, config) == 8
        assert effective_steps(10, 20, config) == 5

    def test_effective_steps_rounds_half_up_and_min_one(self, config):
        # 5 * 0.9 = 4.5 -> 5
        assert effective_steps(5, 2, config) == 5
        assert effective_steps(1, 20, config) == 1


class TestRewardsAndPenalties:
    """Test equipment-adjusted coin changes."""

    @pytest.mark.parametrize("helmet,expected", [(0, 3), (1, 2), (2, 1), (5, 1)])
    def test_expiry_penalty(self, config, helmet, expected):
        assert expiry_penalty(helmet, config) == expected

    @pytest.mark.parametrize("bell,expected", [(0, 3), (1, 4), (2, 4), (3, 5), (4, 5)])
    def test_delivery_reward(self, config, bell, expected):
        assert delivery_reward(bell, config) == expected

    def test_thermos_and_backpack(self):
        assert coffee_thermos_bonus(0) == 0
        assert coffee_thermos_bonus(3) == 3
        assert backpack_timer_bonus(2) == 2


class TestEquipment:
    """Test level-up offers and choices."""

    def test_offer_size_and_distinct_keys(self, config):
        rng = LehmerRng(17)
        levels = EquipmentLevels(bell=2)
        for _ in range(50):
            choices = offer_equipment_choices(levels, rng, config)
            assert 2 <= len(choices) <= 3
            keys = [c.key for c in choices]
            assert len(set(keys)) == len(keys)
            for choice in choices:
                assert choice.next_level == levels.get(choice.key) + 1

    def test_pick_increments_exactly_one(self):
        levels = EquipmentLevels(helmet=1)
        choice = EquipmentChoice(id="helmet-2", key=EquipmentKey.HELMET, next_level=2)
        upgraded = apply_equipment_choice(levels, choice)
        assert upgraded.helmet == 2
        assert upgraded.as_dict() == dict(levels.as_dict(), helmet=2)

    def test_skip_leaves_levels(self):
        levels = EquipmentLevels(bell=1, backpack=3)
        assert apply_equipment_choice(levels, None) == levels

    def test_stale_choice_rejected(self):
        levels = EquipmentLevels(helmet=2)
        stale = EquipmentChoice(id="helmet-2", key=EquipmentKey.HELMET, next_level=2)
        with pytest.raises(ValueError):
            apply_equipment_choice(levels, stale)

    def test_keys_and_array_order(self):
        levels = EquipmentLevels(bike_frame=2, coffee_thermos=1)
        assert levels.get("bikeFrame") == 2
        assert levels.get(EquipmentKey.COFFEE_THERMOS) == 1
        assert levels.to_array().tolist() == [0, 0, 2, 1, 0]
        assert describe_levels(levels) == ("bikeFrame Lv.2", "coffeeThermos Lv.1")
