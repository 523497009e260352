"""
Progression Rules
=================

Delivery counting, level-up threshold and per-level difficulty scaling.

The scaling formulas are fixed; only the level-up threshold comes from config.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from chill_rider.rider_core.config_loader import RiderConfig, get_config


# Map generation scaling
MAIN_ROAD_UP_CHANCE = 0.12
MAIN_ROAD_DOWN_CHANCE = 0.24
MAIN_ROAD_BRANCH_CHANCE = 0.1
ROAD_GAP_CHANCE = 0.08
ROAD_GAP_MIN_LEVEL = 4
ROAD_WIDEN_CHANCE = 0.08
TREE_SPREAD_CHANCE = 0.4
HARD_LEVEL_THRESHOLD = 5          # levels above this use the "busy city" counts


def vertical_road_count(width: int, level: int) -> int:
    """Number of vertical roads: clamp(max(2, width/8) + min(2, (level-1)/3), 2, 4)."""
    base = max(2, width // 8)
    extra = min(2, (level - 1) // 3)
    return max(2, min(4, base + extra))


def road_gaps_enabled(level: int) -> bool:
    """Whether vertical roads may decay into gaps at this level."""
    return level >= ROAD_GAP_MIN_LEVEL


def required_buildings(level: int) -> int:
    """Target number of delivery buildings."""
    base = 3 if level <= HARD_LEVEL_THRESHOLD else 5
    return max(1, base)


def shop_range(level: int) -> Tuple[int, int]:
    """(min, max) shop count before clamping to the candidate pool."""
    if level <= HARD_LEVEL_THRESHOLD:
        return (2, 3)
    return (5, 7)


def shop_target(level: int, candidates: int) -> int:
    """Shop count for a level given the number of road-adjacent candidates."""
    min_shops, max_shops = shop_range(level)
    max_shops = min(max_shops, candidates)
    return min(max(min_shops, max_shops), candidates)


def coffee_stand_count(level: int) -> int:
    """Coffee stands placed beside the road."""
    return 1 if level <= HARD_LEVEL_THRESHOLD else 2


def tree_chance(level: int) -> float:
    return min(0.14 + (level - 1) * 0.03, 0.30)


def slow_chance(level: int) -> float:
    return min(0.06 + max(level - 1, 0) * 0.02, 0.18)


def soft_obstacle_chance(level: int) -> float:
    return min(0.04 + max(level - 1, 0) * 0.01, 0.15)


def leaf_chance(level: int) -> float:
    return min(0.06 + max(level - 1, 0) * 0.005, 0.20)


def coin_target(level: int, config: Optional[RiderConfig] = None) -> int:
    """Coins scattered on a fresh map."""
    if config is None:
        config = get_config()
    return config.coins.base_count + max(level - 1, 0) * config.coins.per_level


@dataclass(frozen=True)
class LevelProgress:
    """Progress through the current level."""
    level: int
    deliveries: int
    deliveries_this_level: int
    deliveries_per_level: int

    @property
    def remaining(self) -> int:
        """Deliveries still needed for the next level-up."""
        return self.deliveries_per_level - self.deliveries_this_level


class ProgressionRules:
    """
    Level-up threshold handling.

    Deliveries are monotonic across the run; a level-up happens whenever
    the delivery count reaches a multiple of ``deliveries_per_level``.
    """

    def __init__(self, config: Optional[RiderConfig] = None):
        """
        Initialize progression rules.

        Args:
            config: Game configuration. Uses default if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._per_level = config.progression.deliveries_per_level

    @property
    def deliveries_per_level(self) -> int:
        """Deliveries needed to clear one level."""
        return self._per_level

    def should_level_up(self, deliveries: int) -> bool:
        """True when a delivery count lands on the level-up threshold."""
        return deliveries > 0 and deliveries % self._per_level == 0

    def deliveries_this_level(self, deliveries: int) -> int:
        """Deliveries counted toward the current level."""
        return deliveries % self._per_level

    def progress(self, level: int, deliveries: int) -> LevelProgress:
        """Snapshot of level progress for display."""
        return LevelProgress(
            level=level,
            deliveries=deliveries,
            deliveries_this_level=self.deliveries_this_level(deliveries),
            deliveries_per_level=self._per_level
        )
