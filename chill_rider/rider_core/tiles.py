"""
Tile Catalog
============

Tile kinds, walkability, soft-obstacle behaviour and player-facing malus labels.

A grid is a 2D numpy array of ``Tile`` codes (``GRID_DTYPE``), indexed
``grid[y, x]``.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Dict, FrozenSet, Optional

import numpy as np


GRID_DTYPE = np.int8


class Tile(IntEnum):
    """Terrain / feature classification of a single grid cell."""
    ROAD = 0
    GRASS = 1
    TREE = 2
    BUILDING = 3
    SHOP = 4
    SLOW = 5
    COFFEE = 6
    POTHOLE = 7
    ROCK = 8
    BENCH = 9
    LEAF = 10
    VOID = 11

    @property
    def key(self) -> str:
        """Lowercase name used in config files and observations."""
        return self.name.lower()

    @classmethod
    def from_key(cls, key: str) -> "Tile":
        """Look up a tile by its lowercase key."""
        return cls[key.upper()]

    @property
    def is_soft_obstacle(self) -> bool:
        """Pothole, rock and bench may deflect the rider sideways."""
        return self in SOFT_OBSTACLES


WALKABLE_TILES: FrozenSet[Tile] = frozenset({
    Tile.ROAD,
    Tile.GRASS,
    Tile.SLOW,
    Tile.COFFEE,
    Tile.SHOP,
    Tile.POTHOLE,
    Tile.ROCK,
    Tile.BENCH,
    Tile.LEAF,
})

SOFT_OBSTACLES: FrozenSet[Tile] = frozenset({Tile.POTHOLE, Tile.ROCK, Tile.BENCH})

# Order matters: generator picks uniformly by index
SOFT_OBSTACLE_ORDER = (Tile.POTHOLE, Tile.ROCK, Tile.BENCH)


def is_walkable(tile: int, has_house_marker: bool = False) -> bool:
    """
    Check whether the rider may enter a tile.

    Buildings are solid unless a house marker currently references them.

    Args:
        tile: Tile code.
        has_house_marker: True if an active delivery targets this tile.

    Returns:
        True if the tile can be entered.
    """
    tile = Tile(int(tile))
    if tile == Tile.BUILDING:
        return has_house_marker
    return tile in WALKABLE_TILES


_STATUS_MESSAGES: Dict[Tile, str] = {
    Tile.POTHOLE: "Pothole ahead: small time penalty.",
    Tile.ROCK: "Rock on the road: slight slowdown.",
    Tile.BENCH: "Bench in the way: small slowdown.",
    Tile.LEAF: "Slippery leaves: small time loss (chance).",
    Tile.TREE: "Tree collision: heavy time and coin penalty.",
    Tile.COFFEE: "Coffee tile: bonus coins and time.",
    Tile.SLOW: "Slow ground: steps cost more distance.",
}

_POPUP_LABELS: Dict[Tile, str] = {
    Tile.POTHOLE: "Pothole · small time penalty",
    Tile.ROCK: "Rock · slight slowdown",
    Tile.BENCH: "Bench · small slowdown",
    Tile.LEAF: "Leaves · small time loss (chance)",
    Tile.TREE: "Tree · heavy time & coin loss",
    Tile.COFFEE: "Coffee · bonus coins & time",
    Tile.SLOW: "Slow ground · slower steps",
}

SAFE_STATUS_MESSAGE = "No active maluses. Ride safe."


def status_message_for(tile: Optional[int]) -> str:
    """Long status line for the tile under the rider."""
    if tile is None:
        return SAFE_STATUS_MESSAGE
    return _STATUS_MESSAGES.get(Tile(int(tile)), SAFE_STATUS_MESSAGE)


def popup_label_for(tile: Optional[int]) -> Optional[str]:
    """Short popup label for a tile, or None when the tile has no malus."""
    if tile is None:
        return None
    return _POPUP_LABELS.get(Tile(int(tile)))


def count_tiles(grid: np.ndarray, tile: Tile) -> int:
    """Number of cells of a given kind."""
    return int(np.count_nonzero(grid == tile))


def grid_to_text(grid: np.ndarray) -> str:
    """Render a grid as one character per tile (debugging aid)."""
    glyphs = {
        Tile.ROAD: ".",
        Tile.GRASS: ",",
        Tile.TREE: "T",
        Tile.BUILDING: "B",
        Tile.SHOP: "S",
        Tile.SLOW: "~",
        Tile.COFFEE: "C",
        Tile.POTHOLE: "o",
        Tile.ROCK: "r",
        Tile.BENCH: "b",
        Tile.LEAF: "l",
        Tile.VOID: " ",
    }
    return "\n".join(
        "".join(glyphs[Tile(int(cell))] for cell in row)
        for row in grid
    )
