"""
Configuration Loader
====================

Loads and validates game_config.yaml, providing typed access to all parameters.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml


@dataclass(frozen=True)
class BoardConfig:
    """Default map dimensions."""
    width: int                   # Tiles per row
    height: int                  # Tiles per column


@dataclass(frozen=True)
class SeedConfig:
    """Per-concern seed derivation constants."""
    map_stride: int
    coin_stride: int
    coin_offset: int
    motion_offset: int
    session_offset: int


@dataclass(frozen=True)
class MovementConfig:
    """Rider movement and terrain cost parameters."""
    deflection_chance: float
    leaf_slip_chance: float
    base_step_cost: int
    step_cost: Dict[str, int]
    coffee_distance_refund: int
    coffee_coin_bonus: int

    def cost_for(self, tile_name: str) -> int:
        """Additive step cost modifier for a tile name (0 when none)."""
        return self.step_cost.get(tile_name, 0)


@dataclass(frozen=True)
class CoinConfig:
    """Coin pickup placement parameters."""
    base_count: int
    per_level: int


@dataclass(frozen=True)
class ProgressionConfig:
    """Level progression parameters."""
    deliveries_per_level: int


@dataclass(frozen=True)
class PackageConfig:
    """Package spawn, timer, reward and penalty parameters."""
    inventory_capacity: int
    colors: Tuple[str, ...]
    perishable_base_chance: float
    perishable_chance_per_level: float
    perishable_max_chance: float
    perishable_timer_base: int
    perishable_timer_level_cap: int
    perishable_timer_min: int
    delivery_reward: int
    expiry_penalty: int
    expiry_penalty_min: int


@dataclass(frozen=True)
class EquipmentConfig:
    """Equipment keys and level-up offer parameters."""
    keys: Tuple[str, ...]
    min_choices: int
    max_choices: int
    bike_frame_decay_step: float
    bike_frame_decay_floor: float


@dataclass(frozen=True)
class RunConfig:
    """Run clock parameters."""
    time_limit: int              # Seconds on the run clock


@dataclass(frozen=True)
class EnvConfig:
    """Gymnasium wrapper parameters."""
    seconds_per_step: int
    max_steps: int
    auto_equipment: str          # "first" or "skip"


@dataclass(frozen=True)
class RiderConfig:
    """
    Complete game configuration loaded from YAML.

    All values are immutable to prevent accidental modification during runtime.
    """
    board: BoardConfig
    seeds: SeedConfig
    movement: MovementConfig
    coins: CoinConfig
    progression: ProgressionConfig
    packages: PackageConfig
    equipment: EquipmentConfig
    run: RunConfig
    env: EnvConfig

    @property
    def deliveries_per_level(self) -> int:
        """Deliveries needed to clear one level."""
        return self.progression.deliveries_per_level

    @property
    def num_equipment_keys(self) -> int:
        """Number of distinct equipment slots."""
        return len(self.equipment.keys)


# Equipment keys the package model knows how to apply
KNOWN_EQUIPMENT_KEYS = ("helmet", "bell", "bikeFrame", "coffeeThermos", "backpack")


def _check_probability(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be in [0, 1], got {value}")


def _validate_config(config: RiderConfig) -> None:
    """Validate configuration consistency."""
    if config.board.width < 1 or config.board.height < 1:
        raise ValueError(
            f"Board must be at least 1x1, got {config.board.width}x{config.board.height}"
        )

    _check_probability("movement.deflection_chance", config.movement.deflection_chance)
    _check_probability("movement.leaf_slip_chance", config.movement.leaf_slip_chance)
    _check_probability("packages.perishable_base_chance", config.packages.perishable_base_chance)
    _check_probability("packages.perishable_max_chance", config.packages.perishable_max_chance)

    if config.progression.deliveries_per_level < 1:
        raise ValueError(
            f"deliveries_per_level must be >= 1, got {config.progression.deliveries_per_level}"
        )

    if not config.packages.colors:
        raise ValueError("packages.colors must list at least one colour")

    if config.packages.inventory_capacity < 1:
        raise ValueError(
            f"inventory_capacity must be >= 1, got {config.packages.inventory_capacity}"
        )

    unknown = [k for k in config.equipment.keys if k not in KNOWN_EQUIPMENT_KEYS]
    if unknown:
        raise ValueError(f"Unknown equipment keys: {unknown}")

    if config.equipment.min_choices > config.equipment.max_choices:
        raise ValueError(
            f"equipment.min_choices ({config.equipment.min_choices}) exceeds "
            f"max_choices ({config.equipment.max_choices})"
        )

    if config.equipment.max_choices > len(config.equipment.keys):
        raise ValueError(
            f"equipment.max_choices ({config.equipment.max_choices}) exceeds "
            f"key count ({len(config.equipment.keys)})"
        )

    if config.env.auto_equipment not in ("first", "skip"):
        raise ValueError(
            f"env.auto_equipment must be 'first' or 'skip', got '{config.env.auto_equipment}'"
        )


def load_config(config_path: Optional[str] = None) -> RiderConfig:
    """
    Load and validate game configuration from YAML.

    Args:
        config_path: Path to game_config.yaml. If None, uses default location.

    Returns:
        Validated RiderConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config validation fails.
    """
    if config_path is None:
        config_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "game_config.yaml"
        )

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        raw = yaml.safe_load(f)

    board_data = raw["board"]
    board = BoardConfig(
        width=int(board_data["width"]),
        height=int(board_data["height"])
    )

    seed_data = raw["seeds"]
    seeds = SeedConfig(
        map_stride=int(seed_data.get("map_stride", 997)),
        coin_stride=int(seed_data.get("coin_stride", 4243)),
        coin_offset=int(seed_data.get("coin_offset", 99)),
        motion_offset=int(seed_data.get("motion_offset", 7919)),
        session_offset=int(seed_data.get("session_offset", 104729))
    )

    move_data = raw["movement"]
    movement = MovementConfig(
        deflection_chance=float(move_data["deflection_chance"]),
        leaf_slip_chance=float(move_data["leaf_slip_chance"]),
        base_step_cost=int(move_data.get("base_step_cost", 1)),
        step_cost={str(k): int(v) for k, v in move_data.get("step_cost", {}).items()},
        coffee_distance_refund=int(move_data.get("coffee_distance_refund", 4)),
        coffee_coin_bonus=int(move_data.get("coffee_coin_bonus", 2))
    )

    coin_data = raw["coins"]
    coins = CoinConfig(
        base_count=int(coin_data["base_count"]),
        per_level=int(coin_data.get("per_level", 1))
    )

    progression = ProgressionConfig(
        deliveries_per_level=int(raw["progression"]["deliveries_per_level"])
    )

    pkg_data = raw["packages"]
    packages = PackageConfig(
        inventory_capacity=int(pkg_data.get("inventory_capacity", 3)),
        colors=tuple(str(c) for c in pkg_data["colors"]),
        perishable_base_chance=float(pkg_data["perishable_base_chance"]),
        perishable_chance_per_level=float(pkg_data["perishable_chance_per_level"]),
        perishable_max_chance=float(pkg_data["perishable_max_chance"]),
        perishable_timer_base=int(pkg_data["perishable_timer_base"]),
        perishable_timer_level_cap=int(pkg_data["perishable_timer_level_cap"]),
        perishable_timer_min=int(pkg_data["perishable_timer_min"]),
        delivery_reward=int(pkg_data["delivery_reward"]),
        expiry_penalty=int(pkg_data["expiry_penalty"]),
        expiry_penalty_min=int(pkg_data.get("expiry_penalty_min", 1))
    )

    eq_data = raw["equipment"]
    equipment = EquipmentConfig(
        keys=tuple(str(k) for k in eq_data["keys"]),
        min_choices=int(eq_data.get("min_choices", 2)),
        max_choices=int(eq_data.get("max_choices", 3)),
        bike_frame_decay_step=float(eq_data.get("bike_frame_decay_step", 0.05)),
        bike_frame_decay_floor=float(eq_data.get("bike_frame_decay_floor", 0.5))
    )

    run = RunConfig(
        time_limit=int(raw["run"]["time_limit"])
    )

    env_data = raw.get("env", {})
    env = EnvConfig(
        seconds_per_step=int(env_data.get("seconds_per_step", 1)),
        max_steps=int(env_data.get("max_steps", 1000)),
        auto_equipment=str(env_data.get("auto_equipment", "first"))
    )

    config = RiderConfig(
        board=board,
        seeds=seeds,
        movement=movement,
        coins=coins,
        progression=progression,
        packages=packages,
        equipment=equipment,
        run=run,
        env=env
    )

    _validate_config(config)
    return config


# Module-level singleton for convenience
_cached_config: Optional[RiderConfig] = None


def get_config() -> RiderConfig:
    """Get the cached game configuration, loading if necessary."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reload_config(config_path: Optional[str] = None) -> RiderConfig:
    """Reload the configuration (useful for testing)."""
    global _cached_config
    _cached_config = load_config(config_path)
    return _cached_config
