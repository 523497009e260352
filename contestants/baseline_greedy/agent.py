"""
Baseline Greedy Agent - Rides to the nearest useful tile.

This is a simple heuristic agent that runs a breadth-first search over the
wrapping grid observation and takes the first step of the shortest path to
the nearest target.

This serves as:
1. A working example of how to read observations and return actions
2. A baseline benchmark for agents to compare against

Strategy:
- Targets are house tiles of carried packages, shops while the inventory
  has a free slot, and coins
- BFS from the rider position over walkable tiles (wrapping at the edges)
- Step-cost maluses are ignored; every tile counts as one step
- If nothing is reachable, pick a random walkable direction
"""

from collections import deque
from typing import Any, Dict, Optional, Set, Tuple

import numpy as np

from chill_rider.rider_core.state import DIRECTION_ORDER
from chill_rider.rider_core.tiles import WALKABLE_TILES, Tile

_WALKABLE_CODES = np.array(sorted(int(t) for t in WALKABLE_TILES), dtype=np.int8)


class RiderAgent:
    """
    Greedy baseline agent.

    Uses the grid, coin and house layers to path to the closest target.
    """

    def __init__(self, debug: bool = False):
        """
        Initialize the agent.

        Args:
            debug: If True, print decisions to stdout.
        """
        self.debug = debug
        self._rng = np.random.default_rng()

    def reset(self, seed: Optional[int] = None) -> None:
        """
        Reset agent state for a new episode.

        Args:
            seed: Optional random seed for reproducibility.
        """
        if seed is not None:
            self._rng = np.random.default_rng(seed)

    def act(self, observation: Dict[str, Any], debug: bool = False) -> int:
        """
        Choose a direction index.

        Args:
            observation: Dict of numpy arrays from the environment.
            debug: If True, print debug info for this step.

        Returns:
            Index into DIRECTION_ORDER.
        """
        grid = observation["grid"]
        house_map = observation["house_map"]
        walkable = np.isin(grid, _WALKABLE_CODES) | (house_map > 0)

        targets = house_map > 0
        targets |= observation["coin_map"] > 0
        if not bool(np.all(observation["package_mask"])):
            targets |= grid == Tile.SHOP

        x, y = (int(v) for v in observation["rider_position"])
        action = first_step_towards(walkable, targets, (x, y))

        if action is None:
            action = self._random_walkable_action(walkable, (x, y))

        if debug or self.debug:
            print(f"[Greedy Agent] Rider=({x},{y}), "
                  f"Targets={int(targets.sum())}, "
                  f"Action={DIRECTION_ORDER[action].value}")

        return action

    def _random_walkable_action(self, walkable: np.ndarray, start: Tuple[int, int]) -> int:
        options = [
            i for i, (nx, ny) in enumerate(_neighbours(start, walkable.shape))
            if walkable[ny, nx]
        ]
        if not options:
            return int(self._rng.integers(len(DIRECTION_ORDER)))
        return int(self._rng.choice(options))


def _neighbours(pos: Tuple[int, int], shape: Tuple[int, int]):
    height, width = shape
    x, y = pos
    for direction in DIRECTION_ORDER:
        dx, dy = direction.delta()
        yield ((x + dx) % width, (y + dy) % height)


def first_step_towards(
    walkable: np.ndarray,
    targets: np.ndarray,
    start: Tuple[int, int]
) -> Optional[int]:
    """
    First action of a shortest path from ``start`` to any target tile.

    Args:
        walkable: (H, W) bool mask of enterable tiles.
        targets: (H, W) bool mask of goal tiles. ``start`` itself is ignored.
        start: Rider (x, y).

    Returns:
        Index into DIRECTION_ORDER, or None if no target is reachable.
    """
    seen: Set[Tuple[int, int]] = {start}
    queue = deque()
    for action, nxt in enumerate(_neighbours(start, walkable.shape)):
        if nxt not in seen and walkable[nxt[1], nxt[0]]:
            seen.add(nxt)
            queue.append((nxt, action))

    while queue:
        pos, first_action = queue.popleft()
        if targets[pos[1], pos[0]]:
            return first_action
        for nxt in _neighbours(pos, walkable.shape):
            if nxt not in seen and walkable[nxt[1], nxt[0]]:
                seen.add(nxt)
                queue.append((nxt, first_action))

    return None


# Convenience function to create agent (used by evaluation harness)
def create_agent(**kwargs) -> RiderAgent:
    """Factory function to create an agent instance."""
    return RiderAgent(**kwargs)
