"""
Game State
==========

Immutable data model shared by the generator, the reducer and the delivery
session: positions, directions, commands, package items, house markers and
the GameState root aggregate.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Tuple

import numpy as np

from chill_rider.rider_core.tiles import Tile, is_walkable


class Position(NamedTuple):
    """Integer grid coordinate; (0, 0) is top-left, y grows downward."""
    x: int
    y: int


class Direction(Enum):
    """Cardinal movement directions."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    def delta(self) -> Tuple[int, int]:
        """Return (dx, dy) for this direction."""
        return _DELTAS[self]

    def is_vertical(self) -> bool:
        return self in (Direction.UP, Direction.DOWN)

    def perpendicular(self) -> Tuple["Direction", "Direction"]:
        """The two directions at right angles to this one."""
        if self.is_vertical():
            return (Direction.LEFT, Direction.RIGHT)
        return (Direction.UP, Direction.DOWN)


_DELTAS = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
}

# Stable action index order for agents and observations
DIRECTION_ORDER = (Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT)


class GameMode(Enum):
    """Goal mode rides to road markers; delivery mode rides packages to houses."""
    GOAL = "goal"
    DELIVERY = "delivery"


@dataclass(frozen=True)
class GameOptions:
    """Run-wide map options."""
    width: int
    height: int
    seed: Optional[int] = None
    mode: GameMode = GameMode.GOAL


class PackageKind(Enum):
    STANDARD = "standard"
    PERISHABLE = "perishable"


@dataclass(frozen=True)
class PackageItem:
    """A carried package. Created at a shop, destroyed on delivery or expiry."""
    id: str
    color: str
    kind: PackageKind = PackageKind.STANDARD


@dataclass(frozen=True)
class HouseMarker:
    """Binds a building tile to the package it must receive."""
    position: Position
    color: str
    package_id: str


@dataclass(frozen=True)
class ActiveTarget:
    """The delivery currently shown to the rider."""
    house_color: str
    house_id: str
    remaining_time: Optional[int] = None


class CommandType(Enum):
    MOVE = "MOVE"
    REGENERATE_MAP = "REGENERATE_MAP"
    DELIVERY_COMPLETED = "DELIVERY_COMPLETED"


@dataclass(frozen=True)
class Command:
    """A single input to the reducer."""
    type: CommandType
    direction: Optional[Direction] = None

    @staticmethod
    def move(direction: Direction) -> "Command":
        return Command(CommandType.MOVE, direction)

    @staticmethod
    def regenerate_map() -> "Command":
        return Command(CommandType.REGENERATE_MAP)

    @staticmethod
    def delivery_completed() -> "Command":
        return Command(CommandType.DELIVERY_COMPLETED)


def wrap_position(pos: Tuple[int, int], width: int, height: int) -> Position:
    """Normalize a coordinate onto the torus."""
    return Position(pos[0] % width, pos[1] % height)


@dataclass(frozen=True, eq=False)
class GameState:
    """
    Root aggregate of a run.

    Never mutated: every transition builds a new instance with
    ``dataclasses.replace``. ``rng_state`` carries the movement stream so
    transitions stay reproducible.
    """
    grid: np.ndarray
    rider_position: Position
    goal_position: Optional[Position]
    options: GameOptions
    distance: int = 0
    deliveries: int = 0
    level: int = 1
    facing: Direction = Direction.DOWN
    coins: Tuple[Position, ...] = ()
    coins_collected: int = 0
    houses: Tuple[HouseMarker, ...] = ()
    active_target: Optional[ActiveTarget] = None
    rng_state: int = 1
    last_step_cost: int = 0

    @property
    def width(self) -> int:
        return int(self.grid.shape[1])

    @property
    def height(self) -> int:
        return int(self.grid.shape[0])

    def tile_at(self, pos: Tuple[int, int]) -> Tile:
        """Tile under a (wrapped) position."""
        x, y = wrap_position(pos, self.width, self.height)
        return Tile(int(self.grid[y, x]))

    def house_at(self, pos: Tuple[int, int]) -> Optional[HouseMarker]:
        """House marker on a position, if any."""
        for house in self.houses:
            if house.position == pos:
                return house
        return None

    def is_walkable_at(self, pos: Tuple[int, int]) -> bool:
        """Walkability of a position, honouring active house markers."""
        pos = wrap_position(pos, self.width, self.height)
        return is_walkable(self.tile_at(pos), self.house_at(pos) is not None)

    def replace(self, **changes) -> "GameState":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)
