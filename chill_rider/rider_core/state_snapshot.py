"""
State Snapshot
==============

Packs delivery session state into fixed-size numpy arrays for Gymnasium
observations. Variable-length collections (inventory, house markers) are
padded to the inventory capacity and masked.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, TYPE_CHECKING

import numpy as np

from chill_rider.rider_core.config_loader import RiderConfig, get_config
from chill_rider.rider_core.packages import EquipmentChoice, EquipmentKey, EquipmentLevels
from chill_rider.rider_core.state import DIRECTION_ORDER, GameState
from chill_rider.rider_core.tiles import GRID_DTYPE

if TYPE_CHECKING:
    from chill_rider.rider_core.session import CarriedPackage, DeliverySession

EQUIPMENT_ORDER = tuple(EquipmentKey)


@dataclass
class GameSnapshot:
    """
    Complete observation of a delivery run.

    Grids are (height, width) and indexed [y, x]. Inventory arrays have
    one row per inventory slot; unused rows are -1 and masked out.
    """
    # Map layers
    grid: np.ndarray                  # (H, W) int8 tile codes
    coin_map: np.ndarray              # (H, W) int8, 1 where a coin lies
    house_map: np.ndarray             # (H, W) int8, slot index + 1 of the bound package

    # Rider
    rider_position: np.ndarray        # (2,) int32 x, y
    facing: int                       # index into DIRECTION_ORDER

    # Run counters
    level: int
    deliveries: int
    distance: int
    coins: int
    run_time: int

    # Inventory (fixed size, padded)
    package_houses: np.ndarray        # (CAP, 2) int32
    package_timers: np.ndarray        # (CAP,) int32, -1 for standard packages
    package_mask: np.ndarray          # (CAP,) bool

    # Equipment
    equipment: np.ndarray             # (N_KEYS,) int32 levels
    offer_mask: np.ndarray            # (N_KEYS,) int8, 1 where offered

    def to_obs_dict(self) -> Dict[str, np.ndarray]:
        """Convert to Gymnasium observation dictionary."""
        return {
            "grid": self.grid,
            "coin_map": self.coin_map,
            "house_map": self.house_map,
            "rider_position": self.rider_position,
            "facing": np.array(self.facing, dtype=np.int32),
            "level": np.array(self.level, dtype=np.int32),
            "deliveries": np.array(self.deliveries, dtype=np.int32),
            "distance": np.array(self.distance, dtype=np.int32),
            "coins": np.array(self.coins, dtype=np.int64),
            "run_time": np.array(self.run_time, dtype=np.int32),
            "package_houses": self.package_houses,
            "package_timers": self.package_timers,
            "package_mask": self.package_mask,
            "equipment": self.equipment,
            "offer_mask": self.offer_mask,
        }


class SnapshotBuilder:
    """Builds observation snapshots for a fixed map size."""

    def __init__(
        self,
        config: Optional[RiderConfig] = None,
        width: Optional[int] = None,
        height: Optional[int] = None
    ):
        if config is None:
            config = get_config()

        self._config = config
        self._width = width or config.board.width
        self._height = height or config.board.height
        self._capacity = config.packages.inventory_capacity

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def shape(self) -> tuple:
        return (self._height, self._width)

    def build(
        self,
        state: GameState,
        inventory: Sequence["CarriedPackage"] = (),
        equipment: Optional[EquipmentLevels] = None,
        run_time: int = 0,
        offer: Iterable[EquipmentChoice] = ()
    ) -> GameSnapshot:
        """Build a snapshot from a game state and session side-state."""
        if state.grid.shape != self.shape:
            raise ValueError(
                f"Grid shape {state.grid.shape} does not match snapshot shape {self.shape}"
            )
        if equipment is None:
            equipment = EquipmentLevels()

        coin_map = np.zeros(self.shape, dtype=GRID_DTYPE)
        for coin in state.coins:
            coin_map[coin.y, coin.x] = 1

        house_map = np.zeros(self.shape, dtype=GRID_DTYPE)
        package_houses = np.full((self._capacity, 2), -1, dtype=np.int32)
        package_timers = np.full(self._capacity, -1, dtype=np.int32)
        package_mask = np.zeros(self._capacity, dtype=bool)

        for slot, carried in enumerate(list(inventory)[:self._capacity]):
            house_map[carried.house.y, carried.house.x] = slot + 1
            package_houses[slot] = carried.house
            if carried.remaining_time is not None:
                package_timers[slot] = carried.remaining_time
            package_mask[slot] = True

        offered = {choice.key for choice in offer}
        offer_mask = np.array(
            [1 if key in offered else 0 for key in EQUIPMENT_ORDER], dtype=np.int8
        )

        return GameSnapshot(
            grid=np.array(state.grid, dtype=GRID_DTYPE),
            coin_map=coin_map,
            house_map=house_map,
            rider_position=np.array(state.rider_position, dtype=np.int32),
            facing=DIRECTION_ORDER.index(state.facing),
            level=state.level,
            deliveries=state.deliveries,
            distance=state.distance,
            coins=state.coins_collected,
            run_time=run_time,
            package_houses=package_houses,
            package_timers=package_timers,
            package_mask=package_mask,
            equipment=equipment.to_array(),
            offer_mask=offer_mask,
        )

    def from_session(self, session: "DeliverySession") -> GameSnapshot:
        """Snapshot of a live delivery session."""
        return self.build(
            session.state,
            inventory=session.inventory,
            equipment=session.equipment,
            run_time=session.run_time,
            offer=session.pending_choices
        )
