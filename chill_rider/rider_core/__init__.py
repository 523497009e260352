"""
Rider Core - The deterministic simulation behind Chill Rider.

This module provides the seeded map generator, the pure state reducer, the
delivery session and its Gymnasium environment wrapper.

Main exports:
- create_game / apply_command: Pure reducer over immutable GameState
- generate_map / generate_coins: Seeded procedural level layout
- DeliverySession: Packages, perishable timers, equipment and run clock
- RiderEnv: Gymnasium environment for single-agent play
- RiderConfig: Configuration loaded from game_config.yaml
"""

from chill_rider.rider_core.config_loader import RiderConfig, get_config, load_config
from chill_rider.rider_core.tiles import Tile, is_walkable
from chill_rider.rider_core.rng import LehmerRng, create_rng
from chill_rider.rider_core.state import (
    Command,
    CommandType,
    Direction,
    GameMode,
    GameOptions,
    GameState,
    Position,
)
from chill_rider.rider_core.map_generator import generate_coins, generate_map
from chill_rider.rider_core.engine import (
    apply_command,
    create_game,
    status_malus_message,
    tile_malus_popup_label,
)
from chill_rider.rider_core.packages import EquipmentKey, EquipmentLevels
from chill_rider.rider_core.session import DeliverySession, RiderEvent, RunSummary
from chill_rider.rider_core.env_gym import RiderEnv
from chill_rider.rider_core.replay_recorder import (
    ReplayRecorder,
    record_episode,
    generate_replay_filename,
    verify_replay,
)

__all__ = [
    "RiderConfig",
    "get_config",
    "load_config",
    "Tile",
    "is_walkable",
    "LehmerRng",
    "create_rng",
    "Command",
    "CommandType",
    "Direction",
    "GameMode",
    "GameOptions",
    "GameState",
    "Position",
    "generate_coins",
    "generate_map",
    "apply_command",
    "create_game",
    "status_malus_message",
    "tile_malus_popup_label",
    "EquipmentKey",
    "EquipmentLevels",
    "DeliverySession",
    "RiderEvent",
    "RunSummary",
    "RiderEnv",
    "ReplayRecorder",
    "record_episode",
    "generate_replay_filename",
    "verify_replay",
]
