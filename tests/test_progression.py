"""
Tests for level-up thresholds and difficulty scaling.
"""

import pytest

from chill_rider.rider_core.config_loader import load_config
from chill_rider.rider_core.progression import (
    ProgressionRules,
    coffee_stand_count,
    coin_target,
    leaf_chance,
    required_buildings,
    road_gaps_enabled,
    shop_range,
    shop_target,
    slow_chance,
    soft_obstacle_chance,
    tree_chance,
    vertical_road_count,
)


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def rules(config):
    return ProgressionRules(config)


class TestLevelUp:
    """Test delivery thresholds."""

    def test_threshold_from_config(self, rules):
        assert rules.deliveries_per_level == 5

    @pytest.mark.parametrize("deliveries,expected", [
        (0, False), (1, False), (4, False), (5, True), (6, False), (10, True), (15, True),
    ])
    def test_should_level_up(self, rules, deliveries, expected):
        assert rules.should_level_up(deliveries) is expected

    def test_progress(self, rules):
        progress = rules.progress(level=2, deliveries=7)
        assert progress.deliveries_this_level == 2
        assert progress.remaining == 3


class TestScaling:
    """Test per-level generation parameters."""

    def test_vertical_roads_clamped(self):
        assert vertical_road_count(16, 1) == 2
        assert vertical_road_count(16, 4) == 3
        assert vertical_road_count(16, 7) == 4
        assert vertical_road_count(64, 1) == 4
        assert vertical_road_count(4, 1) == 2

    def test_gaps_from_level_four(self):
        assert not road_gaps_enabled(3)
        assert road_gaps_enabled(4)

    def test_buildings_shops_and_coffee(self):
        assert required_buildings(1) == 3
        assert required_buildings(6) == 5
        assert shop_range(5) == (2, 3)
        assert shop_range(6) == (5, 7)
        assert coffee_stand_count(5) == 1
        assert coffee_stand_count(6) == 2

    def test_shop_target_clamps_to_candidates(self):
        assert shop_target(1, 10) == 3
        assert shop_target(1, 1) == 1
        assert shop_target(1, 0) == 0
        assert shop_target(8, 6) == 6

    def test_chances_increase_and_cap(self):
        assert tree_chance(1) == pytest.approx(0.14)
        assert tree_chance(100) == pytest.approx(0.30)
        assert slow_chance(1) == pytest.approx(0.06)
        assert slow_chance(100) == pytest.approx(0.18)
        assert soft_obstacle_chance(1) == pytest.approx(0.04)
        assert soft_obstacle_chance(100) == pytest.approx(0.15)
        assert leaf_chance(1) == pytest.approx(0.06)
        assert leaf_chance(100) == pytest.approx(0.20)
        for level in range(1, 20):
            assert tree_chance(level + 1) >= tree_chance(level)

    def test_coin_target(self, config):
        assert coin_target(1, config) == 4
        assert coin_target(4, config) == 7
