"""
Package & Equipment Model
=========================

Package kind decisions, perishable timer arithmetic, rewards, penalties and
equipment modifiers.

Equipment effects:
- helmet:        reduces the coin penalty when a package expires (min 1)
- bell:          +ceil(level / 2) coins per delivery
- bikeFrame:     slows perishable decay by 5% per level (floor 50%)
- coffeeThermos: +level coins on coffee tiles
- backpack:      +level seconds on new perishable timers
"""

from __future__ import annotations

import dataclasses
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np

from chill_rider.rider_core.config_loader import RiderConfig, get_config
from chill_rider.rider_core.rng import pick_index
from chill_rider.rider_core.state import PackageItem, PackageKind


RandomSource = Callable[[], float]


class EquipmentKey(str, Enum):
    HELMET = "helmet"
    BELL = "bell"
    BIKE_FRAME = "bikeFrame"
    COFFEE_THERMOS = "coffeeThermos"
    BACKPACK = "backpack"


_FIELD_FOR_KEY = {
    EquipmentKey.HELMET: "helmet",
    EquipmentKey.BELL: "bell",
    EquipmentKey.BIKE_FRAME: "bike_frame",
    EquipmentKey.COFFEE_THERMOS: "coffee_thermos",
    EquipmentKey.BACKPACK: "backpack",
}


@dataclass(frozen=True)
class EquipmentLevels:
    """Per-run equipment levels. 0 means unequipped."""
    helmet: int = 0
    bell: int = 0
    bike_frame: int = 0
    coffee_thermos: int = 0
    backpack: int = 0

    def get(self, key: str) -> int:
        return getattr(self, _FIELD_FOR_KEY[EquipmentKey(key)])

    def upgraded(self, key: str) -> "EquipmentLevels":
        """Copy with ``key`` raised by exactly one level."""
        field_name = _FIELD_FOR_KEY[EquipmentKey(key)]
        return dataclasses.replace(self, **{field_name: getattr(self, field_name) + 1})

    def as_dict(self) -> Dict[str, int]:
        return {key.value: self.get(key) for key in EquipmentKey}

    def to_array(self) -> np.ndarray:
        """Levels in EquipmentKey order, for observations."""
        return np.array([self.get(key) for key in EquipmentKey], dtype=np.int32)


@dataclass(frozen=True)
class EquipmentChoice:
    """One card of a level-up offer."""
    id: str
    key: EquipmentKey
    next_level: int


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------

def perishable_chance(level: int, config: Optional[RiderConfig] = None) -> float:
    """Probability that a new package is perishable."""
    if config is None:
        config = get_config()
    pkg = config.packages
    return min(
        pkg.perishable_base_chance + (level - 1) * pkg.perishable_chance_per_level,
        pkg.perishable_max_chance
    )


def decide_package_kind(
    level: int,
    rng: Optional[RandomSource] = None,
    config: Optional[RiderConfig] = None
) -> PackageKind:
    """Roll standard vs perishable for a new package."""
    if rng is None:
        rng = random.random
    if rng() < perishable_chance(level, config):
        return PackageKind.PERISHABLE
    return PackageKind.STANDARD


def initial_perishable_timer(level: int, config: Optional[RiderConfig] = None) -> int:
    """Starting countdown: max(10, 22 - min(level - 1, 8))."""
    if config is None:
        config = get_config()
    pkg = config.packages
    return max(
        pkg.perishable_timer_min,
        pkg.perishable_timer_base - min(level - 1, pkg.perishable_timer_level_cap)
    )


def pick_package_color(
    carried: Iterable[PackageItem],
    rng: Optional[RandomSource] = None,
    config: Optional[RiderConfig] = None
) -> str:
    """Colour for a new package, preferring one not already carried."""
    if config is None:
        config = get_config()
    if rng is None:
        rng = random.random
    in_use = {item.color for item in carried}
    free = [c for c in config.packages.colors if c not in in_use]
    pool = free or list(config.packages.colors)
    return pool[pick_index(rng, len(pool))]


# ---------------------------------------------------------------------------
# Timers, rewards, penalties
# ---------------------------------------------------------------------------

def decay_modifier(bike_frame_level: int, config: Optional[RiderConfig] = None) -> float:
    """Fraction of moved steps that count against perishable timers."""
    if config is None:
        config = get_config()
    eq = config.equipment
    return max(eq.bike_frame_decay_floor, 1.0 - bike_frame_level * eq.bike_frame_decay_step)


def effective_steps(
    moved_steps: int,
    bike_frame_level: int = 0,
    config: Optional[RiderConfig] = None
) -> int:
    """max(1, round(moved_steps * decay_modifier)), halves rounding up."""
    scaled = moved_steps * decay_modifier(bike_frame_level, config)
    return max(1, int(math.floor(scaled + 0.5)))


def decay_timer(
    remaining: int,
    moved_steps: int,
    bike_frame_level: int = 0,
    config: Optional[RiderConfig] = None
) -> int:
    """
    Advance a perishable countdown by the steps moved since the last tick.

    Args:
        remaining: Current timer value.
        moved_steps: Cost-weighted steps moved since the last tick.
        bike_frame_level: Equipment level slowing the decay.
        config: Game configuration. Uses default if None.

    Returns:
        New timer value, never below 0. Unchanged when nothing was moved.
    """
    if moved_steps <= 0:
        return remaining
    return max(0, remaining - effective_steps(moved_steps, bike_frame_level, config))


def expiry_penalty(helmet_level: int = 0, config: Optional[RiderConfig] = None) -> int:
    """Coins docked when a perishable package expires."""
    if config is None:
        config = get_config()
    pkg = config.packages
    return max(pkg.expiry_penalty_min, pkg.expiry_penalty - helmet_level)


def delivery_reward(bell_level: int = 0, config: Optional[RiderConfig] = None) -> int:
    """Coins paid for a delivery: base plus floor((bell + 1) / 2)."""
    if config is None:
        config = get_config()
    bonus = (bell_level + 1) // 2 if bell_level > 0 else 0
    return config.packages.delivery_reward + bonus


def coffee_thermos_bonus(coffee_thermos_level: int) -> int:
    """Extra coins on coffee tiles, on top of the fixed coffee bonus."""
    return max(0, coffee_thermos_level)


def backpack_timer_bonus(backpack_level: int) -> int:
    """Extra seconds for newly spawned perishable packages."""
    return max(0, backpack_level)


# ---------------------------------------------------------------------------
# Equipment offers
# ---------------------------------------------------------------------------

def offer_equipment_choices(
    levels: EquipmentLevels,
    rng: Optional[RandomSource] = None,
    config: Optional[RiderConfig] = None
) -> List[EquipmentChoice]:
    """
    Draw distinct equipment keys for a level-up offer.

    Args:
        levels: Current equipment levels.
        rng: Random source. Ambient randomness if None.
        config: Game configuration. Uses default if None.

    Returns:
        Between min_choices and max_choices choices, each showing
        current level + 1.
    """
    if config is None:
        config = get_config()
    if rng is None:
        rng = random.random

    eq = config.equipment
    count = eq.min_choices + pick_index(rng, eq.max_choices - eq.min_choices + 1)
    pool = list(eq.keys)
    choices: List[EquipmentChoice] = []
    while len(choices) < count and pool:
        key = EquipmentKey(pool.pop(pick_index(rng, len(pool))))
        next_level = levels.get(key) + 1
        choices.append(EquipmentChoice(
            id=f"{key.value}-{next_level}",
            key=key,
            next_level=next_level
        ))
    return choices


def apply_equipment_choice(
    levels: EquipmentLevels,
    choice: Optional[EquipmentChoice]
) -> EquipmentLevels:
    """
    Resolve a level-up offer.

    Args:
        levels: Current levels.
        choice: Picked card, or None to skip.

    Returns:
        Levels with the picked key raised by one, or ``levels`` on skip.
    """
    if choice is None:
        return levels
    if choice.next_level != levels.get(choice.key) + 1:
        raise ValueError(
            f"Stale equipment choice: {choice.key.value} is at level "
            f"{levels.get(choice.key)}, choice offers {choice.next_level}"
        )
    return levels.upgraded(choice.key)


def describe_levels(levels: EquipmentLevels) -> Tuple[str, ...]:
    """Short "key Lv.N" labels for equipped items."""
    return tuple(
        f"{key} Lv.{level}" for key, level in levels.as_dict().items() if level > 0
    )
