"""
Map Generator
=============

Builds the seeded tile grid for a level.

Stages run in a fixed order and, unless stated otherwise, only overwrite
grass:

1. grass fill
2. wavy horizontal main road
3. vertical roads (gaps allowed from level 4)
4. delivery buildings beside the road
5. trees
6. slow terrain
7. shops beside the road
8. soft obstacles and leaves on road tiles
9. coffee stands beside the road

Identical (width, height, seed, level) always yields an identical grid.
Every returned grid is read-only; callers get a fresh array per call.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from chill_rider.rider_core.config_loader import RiderConfig, get_config
from chill_rider.rider_core.progression import (
    MAIN_ROAD_BRANCH_CHANCE,
    MAIN_ROAD_DOWN_CHANCE,
    MAIN_ROAD_UP_CHANCE,
    ROAD_GAP_CHANCE,
    ROAD_WIDEN_CHANCE,
    TREE_SPREAD_CHANCE,
    coffee_stand_count,
    coin_target,
    leaf_chance,
    required_buildings,
    road_gaps_enabled,
    shop_target,
    slow_chance,
    soft_obstacle_chance,
    tree_chance,
    vertical_road_count,
)
from chill_rider.rider_core.rng import LehmerRng, coin_seed, map_seed, resolve_seed
from chill_rider.rider_core.state import GameOptions, Position
from chill_rider.rider_core.tiles import GRID_DTYPE, SOFT_OBSTACLE_ORDER, Tile


ROAD_LIKE = (Tile.ROAD, Tile.POTHOLE, Tile.ROCK, Tile.BENCH, Tile.LEAF)


def road_adjacent_grass(
    rows: np.ndarray,
    road_tiles: Tuple[Tile, ...] = (Tile.ROAD,)
) -> List[Tuple[int, int]]:
    """
    Collect grass cells with a road tile in their 4-neighbourhood.

    Neighbours are bounded (no wrap-around). Scan order is row-major.

    Args:
        rows: Grid under construction.
        road_tiles: Tile kinds that count as road.

    Returns:
        List of (x, y) candidates.
    """
    height, width = rows.shape
    is_road = np.isin(rows, road_tiles)
    candidates = []
    for y in range(height):
        for x in range(width):
            if rows[y, x] != Tile.GRASS:
                continue
            near_road = (
                (y > 0 and is_road[y - 1, x])
                or (y < height - 1 and is_road[y + 1, x])
                or (x > 0 and is_road[y, x - 1])
                or (x < width - 1 and is_road[y, x + 1])
            )
            if near_road:
                candidates.append((x, y))
    return candidates


def _carve_main_road(rows: np.ndarray, rng: LehmerRng) -> None:
    height, width = rows.shape
    road_y = height // 2
    for x in range(width):
        rows[road_y, x] = Tile.ROAD

        if rng() < MAIN_ROAD_UP_CHANCE and road_y > 1:
            road_y -= 1
        elif rng() < MAIN_ROAD_DOWN_CHANCE and road_y < height - 2:
            road_y += 1

        if rng() < MAIN_ROAD_BRANCH_CHANCE:
            dy = -1 if rng() < 0.5 else 1
            y2 = road_y + dy
            if 0 <= y2 < height:
                rows[y2, x] = Tile.ROAD


def _carve_vertical_roads(rows: np.ndarray, rng: LehmerRng, level: int) -> None:
    height, width = rows.shape
    count = vertical_road_count(width, level)
    gaps = road_gaps_enabled(level)

    for i in range(count):
        x = ((i + 1) * width) // (count + 1)
        for y in range(height):
            if gaps and rng() < ROAD_GAP_CHANCE:
                continue
            rows[y, x] = Tile.ROAD

            if rng() < ROAD_WIDEN_CHANCE and x + 1 < width and rows[y, x + 1] == Tile.GRASS:
                rows[y, x + 1] = Tile.ROAD


def _place_from_candidates(
    rows: np.ndarray,
    rng: LehmerRng,
    candidates: List[Tuple[int, int]],
    target: int,
    tile: Tile
) -> List[Tuple[int, int]]:
    """Convert up to ``target`` random candidates (without replacement)."""
    chosen = rng.sample(candidates, min(target, len(candidates)))
    for x, y in chosen:
        rows[y, x] = tile
    return chosen


def _place_buildings(rows: np.ndarray, rng: LehmerRng, level: int) -> None:
    candidates = road_adjacent_grass(rows)
    chosen = _place_from_candidates(
        rows, rng, candidates, required_buildings(level), Tile.BUILDING
    )

    if not chosen:
        # Never leave the map without a delivery target
        grass = np.argwhere(rows == Tile.GRASS)
        if len(grass) > 0:
            y, x = grass[0]
            rows[y, x] = Tile.BUILDING


def _scatter_trees(rows: np.ndarray, rng: LehmerRng, level: int) -> None:
    height, width = rows.shape
    chance = tree_chance(level)
    for y in range(height):
        for x in range(width):
            if rows[y, x] != Tile.GRASS:
                continue
            if rng() < chance:
                rows[y, x] = Tile.TREE
                if rng() < TREE_SPREAD_CHANCE and x + 1 < width and rows[y, x + 1] == Tile.GRASS:
                    rows[y, x + 1] = Tile.TREE
                if rng() < TREE_SPREAD_CHANCE and y + 1 < height and rows[y + 1, x] == Tile.GRASS:
                    rows[y + 1, x] = Tile.TREE


def _scatter_slow(rows: np.ndarray, rng: LehmerRng, level: int) -> None:
    height, width = rows.shape
    chance = slow_chance(level)
    for y in range(height):
        for x in range(width):
            if rows[y, x] != Tile.GRASS:
                continue
            if rng() < chance:
                rows[y, x] = Tile.SLOW


def _place_shops(rows: np.ndarray, rng: LehmerRng, level: int) -> None:
    candidates = road_adjacent_grass(rows)
    if not candidates:
        return
    _place_from_candidates(
        rows, rng, candidates, shop_target(level, len(candidates)), Tile.SHOP
    )


def _scatter_road_obstacles(rows: np.ndarray, rng: LehmerRng, level: int) -> None:
    height, width = rows.shape
    soft = soft_obstacle_chance(level)
    leaves = leaf_chance(level)
    for y in range(height):
        for x in range(width):
            if rows[y, x] != Tile.ROAD:
                continue
            roll = rng()
            if roll < soft:
                rows[y, x] = SOFT_OBSTACLE_ORDER[min(int(rng() * 3), 2)]
            elif roll < soft + leaves:
                rows[y, x] = Tile.LEAF


def _place_coffee_stands(rows: np.ndarray, rng: LehmerRng, level: int) -> None:
    candidates = road_adjacent_grass(rows, ROAD_LIKE)
    _place_from_candidates(rows, rng, candidates, coffee_stand_count(level), Tile.COFFEE)


def generate_map(
    options: GameOptions,
    level: int,
    config: Optional[RiderConfig] = None
) -> np.ndarray:
    """
    Generate the tile grid for a level.

    Args:
        options: Map dimensions and base seed. A None seed falls back to
            the wall clock.
        level: Current level (1-based).
        config: Game configuration. Uses default if None.

    Returns:
        Read-only (height, width) array of Tile codes.
    """
    if config is None:
        config = get_config()

    base_seed = resolve_seed(options.seed)
    rng = LehmerRng(map_seed(base_seed, level, config.seeds.map_stride))

    rows = np.full((options.height, options.width), Tile.GRASS, dtype=GRID_DTYPE)

    _carve_main_road(rows, rng)
    _carve_vertical_roads(rows, rng, level)
    _place_buildings(rows, rng, level)
    _scatter_trees(rows, rng, level)
    _scatter_slow(rows, rng, level)
    _place_shops(rows, rng, level)
    _scatter_road_obstacles(rows, rng, level)
    _place_coffee_stands(rows, rng, level)

    rows.flags.writeable = False
    return rows


def generate_coins(
    grid: np.ndarray,
    level: int,
    seed: Optional[int],
    config: Optional[RiderConfig] = None
) -> Tuple[Position, ...]:
    """
    Scatter coin pickups on distinct road tiles.

    Args:
        grid: Level grid.
        level: Current level.
        seed: Base run seed. None falls back to the wall clock.
        config: Game configuration. Uses default if None.

    Returns:
        Tuple of coin positions; empty when the map has no road.
    """
    if config is None:
        config = get_config()

    rng = LehmerRng(coin_seed(
        resolve_seed(seed), level, config.seeds.coin_stride, config.seeds.coin_offset
    ))
    roads = [Position(int(x), int(y)) for y, x in np.argwhere(grid == Tile.ROAD)]
    if not roads:
        return ()

    count = min(coin_target(level, config), len(roads))
    coins: List[Position] = []
    taken = set()
    while len(coins) < count:
        candidate = roads[rng.index(len(roads))]
        if candidate not in taken:
            taken.add(candidate)
            coins.append(candidate)
    return tuple(coins)
