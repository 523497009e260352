"""
Rider Engine
============

Pure state-transition core: ``create_game`` builds the initial state and
``apply_command`` maps (state, command) to the next state.

The reducer never raises on gameplay input. Illegal moves only update
``facing`` so the presentation layer can play a bump animation.
"""

from __future__ import annotations

from typing import Optional

from chill_rider.rider_core.config_loader import RiderConfig, get_config
from chill_rider.rider_core.map_generator import generate_coins, generate_map
from chill_rider.rider_core.placement import pick_goal_position, spawn_position
from chill_rider.rider_core.progression import ProgressionRules
from chill_rider.rider_core.rng import MODULUS, LehmerRng, resolve_seed
from chill_rider.rider_core.state import (
    Command,
    CommandType,
    Direction,
    GameMode,
    GameOptions,
    GameState,
    Position,
    wrap_position,
)
from chill_rider.rider_core.tiles import Tile, popup_label_for, status_message_for


def _motion_rng(seed: int, config: RiderConfig) -> LehmerRng:
    return LehmerRng(seed + config.seeds.motion_offset)


def _level_layout(
    options: GameOptions,
    level: int,
    rng: LehmerRng,
    config: RiderConfig
) -> dict:
    """Grid, spawn, goal and coins for a level, as GameState field updates."""
    grid = generate_map(options, level, config)
    rider = spawn_position(grid)
    goal = None
    if options.mode == GameMode.GOAL:
        goal = pick_goal_position(grid, rider, rng)
    return {
        "grid": grid,
        "rider_position": rider,
        "goal_position": goal,
        "coins": generate_coins(grid, level, options.seed, config),
        "houses": (),
        "active_target": None,
    }


def create_game(
    options: GameOptions,
    config: Optional[RiderConfig] = None
) -> GameState:
    """
    Create the initial state of a run.

    Args:
        options: Map dimensions, seed and mode. A None seed is resolved
            once from the wall clock and stored in the state's options.
        config: Game configuration. Uses default if None.

    Returns:
        Level-1 GameState.
    """
    if config is None:
        config = get_config()

    seed = resolve_seed(options.seed)
    options = GameOptions(
        width=options.width,
        height=options.height,
        seed=seed,
        mode=options.mode
    )
    rng = _motion_rng(seed, config)
    layout = _level_layout(options, 1, rng, config)

    return GameState(
        options=options,
        distance=0,
        deliveries=0,
        level=1,
        facing=Direction.DOWN,
        coins_collected=0,
        rng_state=rng.state,
        last_step_cost=0,
        **layout
    )


def apply_command(
    state: GameState,
    command: Command,
    config: Optional[RiderConfig] = None
) -> GameState:
    """
    Apply one command and return the next state.

    Args:
        state: Current state (not modified).
        command: MOVE, REGENERATE_MAP or DELIVERY_COMPLETED.
        config: Game configuration. Uses default if None.

    Returns:
        New GameState. Unknown or malformed commands return ``state``.
    """
    if config is None:
        config = get_config()

    if command.type == CommandType.MOVE:
        if command.direction is None:
            return state
        return _move_rider(state, command.direction, config)
    if command.type == CommandType.REGENERATE_MAP:
        return _regenerate_map(state, config)
    if command.type == CommandType.DELIVERY_COMPLETED:
        return _on_delivery_completed(state, config)
    return state


def _level_up(
    state: GameState,
    deliveries: int,
    rng: LehmerRng,
    config: RiderConfig
) -> dict:
    next_level = state.level + 1
    layout = _level_layout(state.options, next_level, rng, config)
    return dict(layout, level=next_level, deliveries=deliveries, distance=0)


def _on_delivery_completed(state: GameState, config: RiderConfig) -> GameState:
    deliveries = state.deliveries + 1
    rules = ProgressionRules(config)

    if not rules.should_level_up(deliveries):
        return state.replace(deliveries=deliveries)

    rng = LehmerRng.from_state(state.rng_state)
    changes = _level_up(state, deliveries, rng, config)
    return state.replace(rng_state=rng.state, **changes)


def _regenerate_map(state: GameState, config: RiderConfig) -> GameState:
    # A fresh layout needs a fresh base seed; draw it from the run's stream
    rng = LehmerRng.from_state(state.rng_state)
    options = GameOptions(
        width=state.options.width,
        height=state.options.height,
        seed=rng.index(MODULUS),
        mode=state.options.mode
    )
    layout = _level_layout(options, state.level, rng, config)
    return state.replace(
        options=options,
        distance=0,
        deliveries=0,
        rng_state=rng.state,
        last_step_cost=0,
        **layout
    )


def _deflect(
    state: GameState,
    target: Position,
    direction: Direction,
    rng: LehmerRng
) -> Optional[Position]:
    """One lateral step from ``target``, if that tile is walkable."""
    left_or_up, right_or_down = direction.perpendicular()
    side = left_or_up if rng() < 0.5 else right_or_down
    dx, dy = side.delta()
    side_pos = wrap_position((target.x + dx, target.y + dy), state.width, state.height)
    if state.is_walkable_at(side_pos):
        return side_pos
    return None


def _move_rider(state: GameState, direction: Direction, config: RiderConfig) -> GameState:
    movement = config.movement
    dx, dy = direction.delta()
    target = wrap_position(
        (state.rider_position.x + dx, state.rider_position.y + dy),
        state.width,
        state.height
    )

    if not state.is_walkable_at(target):
        return state.replace(facing=direction, last_step_cost=0)

    rng = LehmerRng.from_state(state.rng_state)
    tile_at_target = state.tile_at(target)

    final = target
    if tile_at_target.is_soft_obstacle and rng() < movement.deflection_chance:
        deflected = _deflect(state, target, direction, rng)
        if deflected is not None:
            final = deflected

    tile_at_final = state.tile_at(final)

    step_cost = movement.base_step_cost
    if tile_at_final == Tile.SLOW:
        step_cost += movement.cost_for(Tile.SLOW.key)
    if tile_at_target.is_soft_obstacle:
        step_cost += movement.cost_for(tile_at_target.key)
    elif tile_at_target == Tile.LEAF and rng() < movement.leaf_slip_chance:
        step_cost += movement.cost_for(Tile.LEAF.key)

    distance = state.distance + step_cost
    coins = state.coins
    coins_collected = state.coins_collected

    if final in coins:
        coins = tuple(c for c in coins if c != final)
        coins_collected += 1

    if tile_at_final == Tile.COFFEE:
        distance = max(0, distance - movement.coffee_distance_refund)
        coins_collected += movement.coffee_coin_bonus

    changes = {
        "rider_position": final,
        "distance": distance,
        "facing": direction,
        "coins": coins,
        "coins_collected": coins_collected,
        "last_step_cost": step_cost,
    }

    goal = state.goal_position
    if goal is not None and final == goal:
        deliveries = state.deliveries + 1
        if ProgressionRules(config).should_level_up(deliveries):
            changes.update(_level_up(state, deliveries, rng, config))
        else:
            changes["deliveries"] = deliveries
            changes["goal_position"] = pick_goal_position(state.grid, final, rng)

    changes["rng_state"] = rng.state
    return state.replace(**changes)


def status_malus_message(state: GameState) -> str:
    """Human-readable status for the tile under the rider."""
    return status_message_for(state.tile_at(state.rider_position))


def tile_malus_popup_label(tile: Optional[int]) -> Optional[str]:
    """Short popup label for a tile, or None when it carries no malus."""
    return popup_label_for(tile)
