"""
Team Template Agent
===================

Your agent must provide one of:
1. A `RiderAgent` class with an `act(obs) -> action` method
2. A standalone `act(obs) -> action` function

Actions are indices into DIRECTION_ORDER: 0 up, 1 down, 2 left, 3 right.
The map wraps at every edge.

Observation cheat sheet (see state_snapshot.GameSnapshot):
    grid[y, x]          Tile codes. Buildings are solid unless house_map marks them.
    coin_map[y, x]      1 where a coin lies.
    house_map[y, x]     Inventory slot + 1 of the package that house expects, 0 elsewhere.
    package_mask[i]     True when inventory slot i holds a package.
    package_houses[i]   (x, y) of slot i's house, -1 when the slot is empty.
    package_timers[i]   Timer left on a perishable, -1 for a standard package.
    rider_position      (x, y) of the rider.

A delivery happens on riding into a marked house; the rider then stays on
the tile it came from. Shops hand out a package while a slot is free.
"""

from __future__ import annotations

from typing import Dict, List
import numpy as np

from chill_rider.rider_core.state import DIRECTION_ORDER
from chill_rider.rider_core.tiles import WALKABLE_TILES

_WALKABLE_CODES = np.array(sorted(int(t) for t in WALKABLE_TILES), dtype=np.int8)


def _open_directions(obs: Dict[str, np.ndarray]) -> List[int]:
    """Action indices that do not bump into a solid tile."""
    grid = obs["grid"]
    houses = obs["house_map"]
    height, width = grid.shape
    x, y = (int(v) for v in obs["rider_position"])

    open_actions = []
    for action, direction in enumerate(DIRECTION_ORDER):
        dx, dy = direction.delta()
        nx, ny = (x + dx) % width, (y + dy) % height
        if houses[ny, nx] > 0 or np.isin(grid[ny, nx], _WALKABLE_CODES):
            open_actions.append(action)
    return open_actions


class RiderAgent:
    """
    Your rider agent implementation.

    The starter strategy wanders without bumping. Replace `act()` with
    your own logic, e.g. path to the house of the most urgent perishable:
    slot = argmin of package_timers where package_mask and timer >= 0.
    """

    def __init__(self):
        """Initialize your agent. Load models, set up state, etc."""
        self.rng = np.random.default_rng()

    def act(self, obs: Dict[str, np.ndarray]) -> int:
        """
        Choose an action based on the observation.

        Args:
            obs: Dictionary containing game state.

        Returns:
            action: Direction index in [0, 4).
        """
        choices = _open_directions(obs) or list(range(len(DIRECTION_ORDER)))
        return int(self.rng.choice(choices))

    def reset(self) -> None:
        """Called when a new episode starts (optional)."""
        pass


def act(obs: Dict[str, np.ndarray]) -> int:
    """Standalone act function (alternative to class-based agent)."""
    choices = _open_directions(obs) or list(range(len(DIRECTION_ORDER)))
    return int(np.random.choice(choices))
