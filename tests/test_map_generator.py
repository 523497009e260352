"""
Tests for seeded map generation and coin placement.
"""

from collections import deque

import numpy as np
import pytest

from chill_rider.rider_core.config_loader import load_config
from chill_rider.rider_core.map_generator import generate_coins, generate_map, road_adjacent_grass
from chill_rider.rider_core.placement import spawn_position
from chill_rider.rider_core.progression import coin_target, required_buildings
from chill_rider.rider_core.state import GameOptions
from chill_rider.rider_core.tiles import GRID_DTYPE, Tile, count_tiles, is_walkable


SAMPLE_SEEDS = [1, 7, 42, 1337, 2024, 99991]
SAMPLE_LEVELS = [1, 3, 4, 6, 9]


@pytest.fixture
def config():
    return load_config()


def _flood_fill(grid, start):
    """All positions reachable from start over walkable tiles, with wrap."""
    height, width = grid.shape
    seen = {start}
    queue = deque([start])
    while queue:
        x, y = queue.popleft()
        for dx, dy in ((0, -1), (0, 1), (-1, 0), (1, 0)):
            nxt = ((x + dx) % width, (y + dy) % height)
            if nxt in seen or not is_walkable(grid[nxt[1], nxt[0]]):
                continue
            seen.add(nxt)
            queue.append(nxt)
    return seen


class TestGenerateMap:
    """Test map layout invariants."""

    def test_shape_and_dtype(self, config):
        grid = generate_map(GameOptions(16, 10, seed=42), 1, config)
        assert grid.shape == (10, 16)
        assert grid.dtype == GRID_DTYPE

    def test_grid_is_read_only(self, config):
        grid = generate_map(GameOptions(16, 10, seed=42), 1, config)
        with pytest.raises(ValueError):
            grid[0, 0] = Tile.TREE

    @pytest.mark.parametrize("seed", SAMPLE_SEEDS)
    @pytest.mark.parametrize("level", [1, 5, 8])
    def test_deterministic(self, config, seed, level):
        options = GameOptions(16, 10, seed=seed)
        a = generate_map(options, level, config)
        b = generate_map(options, level, config)
        assert np.array_equal(a, b)
        assert a is not b

    def test_level_changes_layout(self, config):
        options = GameOptions(16, 10, seed=42)
        grids = [generate_map(options, level, config) for level in (1, 2, 3)]
        assert not np.array_equal(grids[0], grids[1])
        assert not np.array_equal(grids[1], grids[2])

    def test_only_known_tiles(self, config):
        known = {int(t) for t in Tile}
        for seed in SAMPLE_SEEDS:
            grid = generate_map(GameOptions(16, 10, seed=seed), 3, config)
            assert set(np.unique(grid).tolist()) <= known
            assert count_tiles(grid, Tile.VOID) == 0

    @pytest.mark.parametrize("seed", SAMPLE_SEEDS)
    @pytest.mark.parametrize("level", SAMPLE_LEVELS)
    def test_has_roads_and_buildings(self, config, seed, level):
        grid = generate_map(GameOptions(16, 10, seed=seed), level, config)
        assert count_tiles(grid, Tile.ROAD) > 0
        buildings = count_tiles(grid, Tile.BUILDING)
        assert 1 <= buildings <= required_buildings(level)

    @pytest.mark.parametrize("seed", SAMPLE_SEEDS)
    @pytest.mark.parametrize("level", SAMPLE_LEVELS)
    def test_spawn_reaches_road(self, config, seed, level):
        grid = generate_map(GameOptions(16, 10, seed=seed), level, config)
        spawn = spawn_position(grid)
        assert is_walkable(grid[spawn.y, spawn.x])

        reachable = _flood_fill(grid, spawn)
        assert any(grid[y, x] == Tile.ROAD for x, y in reachable)

    def test_coffee_stand_counts(self, config):
        for seed in SAMPLE_SEEDS:
            easy = generate_map(GameOptions(16, 10, seed=seed), 2, config)
            hard = generate_map(GameOptions(16, 10, seed=seed), 7, config)
            assert count_tiles(easy, Tile.COFFEE) <= 1
            assert count_tiles(hard, Tile.COFFEE) <= 2

    def test_shops_are_placed(self, config):
        for seed in SAMPLE_SEEDS:
            grid = generate_map(GameOptions(16, 10, seed=seed), 1, config)
            assert 1 <= count_tiles(grid, Tile.SHOP) <= 3

    def test_road_network_survives_obstacles(self, config):
        """Obstacle scattering leaves road-like cells on the busiest level."""
        for seed in SAMPLE_SEEDS:
            grid = generate_map(GameOptions(16, 10, seed=seed), 9, config)
            road_like = np.isin(grid, [Tile.ROAD, Tile.POTHOLE, Tile.ROCK, Tile.BENCH, Tile.LEAF])
            assert road_like.sum() > 0

    def test_tiny_map_still_has_building(self, config):
        grid = generate_map(GameOptions(3, 3, seed=11), 1, config)
        assert count_tiles(grid, Tile.BUILDING) >= 1


class TestRoadAdjacentGrass:
    """Test candidate collection for road-side placements."""

    def test_bounded_neighbours(self):
        rows = np.full((3, 3), Tile.GRASS, dtype=GRID_DTYPE)
        rows[1, 1] = Tile.ROAD
        candidates = road_adjacent_grass(rows)
        assert candidates == [(1, 0), (0, 1), (2, 1), (1, 2)]

    def test_edges_do_not_wrap(self):
        rows = np.full((3, 3), Tile.GRASS, dtype=GRID_DTYPE)
        rows[0, 0] = Tile.ROAD
        candidates = road_adjacent_grass(rows)
        assert (2, 0) not in candidates
        assert (0, 2) not in candidates


class TestGenerateCoins:
    """Test coin placement."""

    def test_coins_on_distinct_road_tiles(self, config):
        for seed in SAMPLE_SEEDS:
            grid = generate_map(GameOptions(16, 10, seed=seed), 2, config)
            coins = generate_coins(grid, 2, seed, config)
            assert len(coins) == len(set(coins))
            for coin in coins:
                assert grid[coin.y, coin.x] == Tile.ROAD

    def test_coin_count_follows_level(self, config):
        grid = generate_map(GameOptions(16, 10, seed=42), 3, config)
        roads = count_tiles(grid, Tile.ROAD)
        coins = generate_coins(grid, 3, 42, config)
        assert len(coins) == min(coin_target(3, config), roads)

    def test_coins_deterministic(self, config):
        grid = generate_map(GameOptions(16, 10, seed=42), 1, config)
        assert generate_coins(grid, 1, 42, config) == generate_coins(grid, 1, 42, config)

    def test_no_road_no_coins(self, config):
        grid = np.full((4, 4), Tile.GRASS, dtype=GRID_DTYPE)
        assert generate_coins(grid, 1, 42, config) == ()
