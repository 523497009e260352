"""
Tests for spawn, goal, house and shop placement.
"""

import numpy as np

from chill_rider.rider_core.placement import (
    find_free_building_position,
    grid_center,
    pick_goal_position,
    pick_random_shop,
    spawn_position,
)
from chill_rider.rider_core.rng import LehmerRng
from chill_rider.rider_core.state import Position
from chill_rider.rider_core.tiles import GRID_DTYPE, Tile


def _grass(width=6, height=4):
    return np.full((height, width), Tile.GRASS, dtype=GRID_DTYPE)


class TestSpawn:
    """Test rider spawn selection."""

    def test_center_road_is_used(self):
        grid = _grass()
        grid[2, 3] = Tile.ROAD
        assert grid_center(grid) == Position(3, 2)
        assert spawn_position(grid) == Position(3, 2)

    def test_nearest_road_when_center_blocked(self):
        grid = _grass()
        grid[2, 3] = Tile.TREE
        grid[2, 5] = Tile.ROAD
        grid[0, 0] = Tile.ROAD
        assert spawn_position(grid) == Position(5, 2)

    def test_row_major_tie_break(self):
        grid = _grass()
        grid[1, 3] = Tile.ROAD
        grid[3, 3] = Tile.ROAD
        assert spawn_position(grid) == Position(3, 1)

    def test_no_road_falls_back_to_center(self):
        assert spawn_position(_grass()) == Position(3, 2)


class TestGoal:
    """Test goal selection."""

    def test_goal_on_road_and_not_excluded(self):
        grid = _grass()
        grid[0, :] = Tile.ROAD
        rng = LehmerRng(3)
        for _ in range(30):
            goal = pick_goal_position(grid, Position(2, 0), rng)
            assert goal != Position(2, 0)
            assert grid[goal.y, goal.x] == Tile.ROAD

    def test_single_road_tile_returns_exclude(self):
        grid = _grass()
        grid[1, 1] = Tile.ROAD
        assert pick_goal_position(grid, Position(1, 1)) == Position(1, 1)

    def test_seeded_goal_is_reproducible(self):
        grid = _grass()
        grid[0, :] = Tile.ROAD
        a = pick_goal_position(grid, Position(0, 0), LehmerRng(9))
        b = pick_goal_position(grid, Position(0, 0), LehmerRng(9))
        assert a == b


class TestBuildingsAndShops:
    """Test free-building and shop selection."""

    def test_free_building_skips_used(self):
        grid = _grass()
        grid[0, 0] = Tile.BUILDING
        grid[3, 5] = Tile.BUILDING
        pos = find_free_building_position(grid, [Position(0, 0)], LehmerRng(1))
        assert pos == Position(5, 3)

    def test_all_buildings_taken(self):
        grid = _grass()
        grid[0, 0] = Tile.BUILDING
        assert find_free_building_position(grid, [Position(0, 0)]) is None

    def test_no_buildings(self):
        assert find_free_building_position(_grass(), []) is None

    def test_pick_random_shop(self):
        grid = _grass()
        grid[2, 4] = Tile.SHOP
        assert pick_random_shop(grid, LehmerRng(5)) == Position(4, 2)
        assert pick_random_shop(_grass()) is None
