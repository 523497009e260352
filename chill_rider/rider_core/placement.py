"""
Placement Utilities
===================

Entity placement on top of a generated grid: rider spawn, goal markers,
free delivery buildings and shops.

Selection functions take an optional ``rng`` (``() -> float``). Without one
they draw from the ambient ``random`` module; pass a seeded stream for
reproducible runs.
"""

from __future__ import annotations

import random
from typing import Callable, Iterable, List, Optional

import numpy as np

from chill_rider.rider_core.rng import pick_index
from chill_rider.rider_core.state import Position
from chill_rider.rider_core.tiles import Tile


RandomSource = Callable[[], float]


def _positions_of(grid: np.ndarray, tile: Tile) -> List[Position]:
    return [Position(int(x), int(y)) for y, x in np.argwhere(grid == tile)]


def _choose(candidates: List[Position], rng: Optional[RandomSource]) -> Position:
    if rng is None:
        rng = random.random
    return candidates[pick_index(rng, len(candidates))]


def grid_center(grid: np.ndarray) -> Position:
    height, width = grid.shape
    return Position(width // 2, height // 2)


def spawn_position(grid: np.ndarray) -> Position:
    """
    Rider spawn point: the grid center if it is road, else the nearest road
    tile (Manhattan distance, row-major ties). Falls back to the center on
    a map without road.
    """
    center = grid_center(grid)
    roads = np.argwhere(grid == Tile.ROAD)
    if len(roads) == 0:
        return center
    dist = np.abs(roads[:, 0] - center.y) + np.abs(roads[:, 1] - center.x)
    y, x = roads[int(np.argmin(dist))]
    return Position(int(x), int(y))


def pick_goal_position(
    grid: np.ndarray,
    exclude: Position,
    rng: Optional[RandomSource] = None
) -> Position:
    """
    Pick a goal on a road tile other than ``exclude``.

    Args:
        grid: Level grid.
        exclude: Position that must not be picked (usually the rider).
        rng: Random source. Ambient randomness if None.

    Returns:
        Goal position, or ``exclude`` itself when no other road tile exists.
    """
    candidates = [p for p in _positions_of(grid, Tile.ROAD) if p != exclude]
    if not candidates:
        return exclude
    return _choose(candidates, rng)


def find_free_building_position(
    grid: np.ndarray,
    used_houses: Iterable[Position],
    rng: Optional[RandomSource] = None
) -> Optional[Position]:
    """
    Pick a building not already bound to a house marker.

    Args:
        grid: Level grid.
        used_houses: Positions already referenced by house markers.
        rng: Random source. Ambient randomness if None.

    Returns:
        Building position, or None if every building is taken.
    """
    used = set(used_houses)
    candidates = [p for p in _positions_of(grid, Tile.BUILDING) if p not in used]
    if not candidates:
        return None
    return _choose(candidates, rng)


def pick_random_shop(
    grid: np.ndarray,
    rng: Optional[RandomSource] = None
) -> Optional[Position]:
    """Pick any shop tile, or None when the map has no shop."""
    candidates = _positions_of(grid, Tile.SHOP)
    if not candidates:
        return None
    return _choose(candidates, rng)
