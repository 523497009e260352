"""
Tests for the delivery session: pickups, deliveries, decay, clock and equipment.
"""

import dataclasses
from collections import deque

import numpy as np
import pytest

from chill_rider.rider_core.config_loader import load_config
from chill_rider.rider_core.packages import EquipmentKey, EquipmentLevels
from chill_rider.rider_core.session import DeliverySession, RiderEventType
from chill_rider.rider_core.state import (
    Direction,
    GameMode,
    GameOptions,
    GameState,
    Position,
    wrap_position,
)
from chill_rider.rider_core.tiles import GRID_DTYPE, Tile

R, G, B, S, C = Tile.ROAD, Tile.GRASS, Tile.BUILDING, Tile.SHOP, Tile.COFFEE

TOWN = [
    [R, R, S, R, R, R, R, R],
    [G, B, G, G, B, G, G, G],
    [G, G, G, G, G, G, G, G],
]


def _config_with(**sections):
    base = load_config()
    changes = {
        name: dataclasses.replace(getattr(base, name), **fields)
        for name, fields in sections.items()
    }
    return dataclasses.replace(base, **changes)


def _town_session(config=None, rows=TOWN, coins_collected=0, seed=5, equipment=None):
    grid = np.array(rows, dtype=GRID_DTYPE)
    grid.flags.writeable = False
    height, width = grid.shape
    state = GameState(
        grid=grid,
        rider_position=Position(1, 0),
        goal_position=None,
        options=GameOptions(width, height, seed=seed, mode=GameMode.DELIVERY),
        coins_collected=coins_collected,
    )
    return DeliverySession.from_state(
        state, config=config or load_config(), equipment=equipment
    )


def _event_types(result):
    return [e.type for e in result.events]


def _ride_to_house(session):
    """From the shop at (2, 0), ride into the house of the first package."""
    house = session.inventory[0].house
    if house == Position(1, 1):
        moves = [Direction.LEFT, Direction.DOWN]
    else:
        moves = [Direction.RIGHT, Direction.RIGHT, Direction.DOWN]
    result = None
    for direction in moves:
        result = session.move(direction)
    return result


def _first_step(state, targets):
    """Direction of the first move on a shortest walkable path to any target."""
    start = state.rider_position
    first = {start: None}
    queue = deque([start])
    while queue:
        pos = queue.popleft()
        if pos in targets and pos != start:
            return first[pos]
        for direction in Direction:
            dx, dy = direction.delta()
            nxt = wrap_position((pos.x + dx, pos.y + dy), state.width, state.height)
            if nxt in first or not state.is_walkable_at(nxt):
                continue
            first[nxt] = first[pos] or direction
            queue.append(nxt)
    return None


def _ride_until(session, targets_of, done, limit=400):
    """Ride toward the nearest target, re-planning every step, until done()."""
    for _ in range(limit):
        if done():
            return
        direction = _first_step(session.state, targets_of(session.state))
        assert direction is not None
        session.move(direction)
    assert done()


def _shops(state):
    ys, xs = np.nonzero(state.grid == Tile.SHOP)
    return {Position(int(x), int(y)) for x, y in zip(xs, ys)}


def _houses(state):
    return {h.position for h in state.houses}


def _complete_delivery(session):
    """Fetch a package from the nearest shop and bring it home."""
    deliveries = session.state.deliveries
    _ride_until(session, _shops, lambda: len(session.inventory) > 0)
    _ride_until(session, _houses, lambda: session.state.deliveries > deliveries)


@pytest.fixture
def perishable_config():
    return _config_with(packages={"perishable_base_chance": 1.0, "perishable_max_chance": 1.0})


class TestPickup:
    """Test package spawning at shops."""

    def test_entering_shop_spawns_package(self):
        session = _town_session()
        result = session.move(Direction.RIGHT)

        assert result.moved
        assert RiderEventType.PICKUP in _event_types(result)
        assert len(session.inventory) == 1

        carried = session.inventory[0]
        assert carried.house in (Position(1, 1), Position(4, 1))
        assert session.state.house_at(carried.house).package_id == carried.item.id
        assert session.state.active_target.house_id == carried.item.id
        assert session.state.active_target.house_color == carried.item.color

    def test_pickups_limited_by_free_buildings(self):
        session = _town_session()
        session.move(Direction.RIGHT)
        session.move(Direction.LEFT)
        session.move(Direction.RIGHT)
        session.move(Direction.LEFT)
        session.move(Direction.RIGHT)

        assert len(session.inventory) == 2
        houses = {c.house for c in session.inventory}
        assert houses == {Position(1, 1), Position(4, 1)}
        colors = {c.item.color for c in session.inventory}
        assert len(colors) == 2

    def test_building_without_marker_bumps(self):
        session = _town_session()
        result = session.move(Direction.DOWN)
        assert not result.moved
        assert _event_types(result) == [RiderEventType.BUMP]
        assert session.state.rider_position == Position(1, 0)
        assert session.state.facing == Direction.DOWN


class TestDelivery:
    """Test delivering to house markers."""

    def test_delivery_pays_and_clears(self):
        session = _town_session()
        session.move(Direction.RIGHT)
        package_id = session.inventory[0].item.id

        result = _ride_to_house(session)

        delivered = [e for e in result.events if e.type == RiderEventType.DELIVERY]
        assert len(delivered) == 1
        assert delivered[0].package_id == package_id
        assert delivered[0].amount == 3
        assert session.state.coins_collected == 3
        assert session.state.deliveries == 1
        assert session.inventory == ()
        assert session.state.houses == ()
        assert session.state.active_target is None

    def test_rider_returns_to_doorstep(self):
        session = _town_session()
        session.move(Direction.RIGHT)
        house = session.inventory[0].house
        distance_before = session.state.distance

        result = _ride_to_house(session)
        state = session.state

        assert RiderEventType.DELIVERY in _event_types(result)
        assert state.level == 1
        assert state.rider_position == Position(house.x, 0)
        assert state.tile_at(house) == Tile.BUILDING
        assert not state.is_walkable_at(house)
        assert state.is_walkable_at(state.rider_position)
        assert result.step_cost == 1
        assert state.last_step_cost == 1
        assert state.distance > distance_before

    def test_level_up_opens_offer(self):
        config = _config_with(progression={"deliveries_per_level": 1})
        session = _town_session(config=config)
        session.move(Direction.RIGHT)
        result = _ride_to_house(session)

        assert RiderEventType.LEVEL_UP in _event_types(result)
        assert session.state.level == 2
        assert session.state.distance == 0
        assert session.inventory == ()
        assert 2 <= len(session.pending_choices) <= 3
        assert session.state.is_walkable_at(session.state.rider_position)


class TestPerishables:
    """Test perishable countdowns and expiry."""

    def test_timer_decays_with_steps_after_pickup(self, perishable_config):
        session = _town_session(config=perishable_config)
        session.move(Direction.RIGHT)
        assert session.inventory[0].is_perishable
        assert session.inventory[0].remaining_time == 22

        session.tick()
        assert session.inventory[0].remaining_time == 22

        for _ in range(3):
            session.move(Direction.RIGHT)
        session.tick()
        assert session.inventory[0].remaining_time == 19
        assert session.state.active_target.remaining_time == 19

    def test_idle_tick_does_not_decay(self, perishable_config):
        session = _town_session(config=perishable_config)
        session.move(Direction.RIGHT)
        session.tick()
        session.tick(5)
        assert session.inventory[0].remaining_time == 22

    def test_expiry_docks_coins(self):
        config = _config_with(packages={
            "perishable_base_chance": 1.0,
            "perishable_max_chance": 1.0,
            "perishable_timer_base": 2,
            "perishable_timer_min": 1,
        })
        session = _town_session(config=config, coins_collected=10)
        session.move(Direction.RIGHT)
        session.tick()
        session.move(Direction.RIGHT)
        session.move(Direction.RIGHT)
        result = session.tick()

        expired = [e for e in result.events if e.type == RiderEventType.EXPIRED]
        assert len(expired) == 1
        assert expired[0].amount == 3
        assert session.state.coins_collected == 7
        assert session.inventory == ()
        assert session.state.houses == ()

    def test_expiry_penalty_floors_coins(self):
        config = _config_with(packages={
            "perishable_base_chance": 1.0,
            "perishable_max_chance": 1.0,
            "perishable_timer_base": 1,
            "perishable_timer_min": 1,
        })
        session = _town_session(config=config, coins_collected=1)
        session.move(Direction.RIGHT)
        session.tick()
        session.move(Direction.RIGHT)
        session.tick()
        assert session.state.coins_collected == 0


class TestClockAndEquipment:
    """Test the run clock and level-up choices."""

    def test_run_ends_when_clock_hits_zero(self):
        config = _config_with(run={"time_limit": 3})
        session = _town_session(config=config)

        assert not session.tick(2).is_over
        result = session.tick(1)
        assert result.is_over
        assert _event_types(result) == [RiderEventType.RUN_OVER]

        before = session.state
        after = session.move(Direction.RIGHT)
        assert not after.moved
        assert session.state is before

    def test_negative_tick_rejected(self):
        session = _town_session()
        with pytest.raises(ValueError):
            session.tick(-1)

    def test_choose_equipment(self):
        config = _config_with(progression={"deliveries_per_level": 1})
        session = _town_session(config=config)
        session.move(Direction.RIGHT)
        _ride_to_house(session)

        offered = session.pending_choices[0]
        levels = session.choose_equipment(offered)
        assert levels.get(offered.key) == 1
        assert sum(levels.as_dict().values()) == 1
        assert session.pending_choices == ()

        with pytest.raises(ValueError):
            session.choose_equipment(offered)

    def test_skip_and_unoffered_key(self):
        config = _config_with(progression={"deliveries_per_level": 1})
        session = _town_session(config=config)
        session.move(Direction.RIGHT)
        _ride_to_house(session)

        offered = {c.key for c in session.pending_choices}
        missing = next(k for k in EquipmentKey if k not in offered)
        with pytest.raises(ValueError):
            session.choose_equipment(missing.value)

        assert session.skip_equipment() == EquipmentLevels()
        assert session.pending_choices == ()

    def test_coffee_event(self):
        rows = [list(row) for row in TOWN]
        rows[0][0] = C
        session = _town_session(rows=rows)
        result = session.move(Direction.LEFT)
        coffee = [e for e in result.events if e.type == RiderEventType.COFFEE]
        assert coffee and coffee[0].amount == 2
        assert session.state.coins_collected == 2


class TestEquipmentEffects:
    """Test that equipment levels change session rewards, penalties and timers."""

    @pytest.mark.parametrize("bell,reward", [(0, 3), (1, 4), (2, 4), (3, 5)])
    def test_bell_raises_delivery_reward(self, bell, reward):
        session = _town_session(equipment=EquipmentLevels(bell=bell))
        session.move(Direction.RIGHT)
        result = _ride_to_house(session)

        delivered = [e for e in result.events if e.type == RiderEventType.DELIVERY]
        assert delivered[0].amount == reward
        assert session.state.coins_collected == reward

    @pytest.mark.parametrize("helmet,penalty", [(0, 3), (1, 2), (2, 1), (5, 1)])
    def test_helmet_softens_expiry_penalty(self, helmet, penalty):
        config = _config_with(packages={
            "perishable_base_chance": 1.0,
            "perishable_max_chance": 1.0,
            "perishable_timer_base": 2,
            "perishable_timer_min": 1,
        })
        session = _town_session(
            config=config, coins_collected=10, equipment=EquipmentLevels(helmet=helmet)
        )
        session.move(Direction.RIGHT)
        session.tick()
        session.move(Direction.RIGHT)
        session.move(Direction.RIGHT)
        result = session.tick()

        expired = [e for e in result.events if e.type == RiderEventType.EXPIRED]
        assert expired[0].amount == penalty
        assert session.state.coins_collected == 10 - penalty

    def test_backpack_extends_new_perishable_timer(self, perishable_config):
        session = _town_session(
            config=perishable_config, equipment=EquipmentLevels(backpack=2)
        )
        session.move(Direction.RIGHT)
        assert session.inventory[0].remaining_time == 24
        assert session.state.active_target.remaining_time == 24

    @pytest.mark.parametrize("bike_frame,remaining", [(0, 18), (4, 19), (10, 20), (20, 20)])
    def test_bike_frame_slows_decay(self, perishable_config, bike_frame, remaining):
        session = _town_session(
            config=perishable_config, equipment=EquipmentLevels(bike_frame=bike_frame)
        )
        session.move(Direction.RIGHT)
        session.tick()
        for _ in range(4):
            session.move(Direction.RIGHT)
        session.tick()
        assert session.inventory[0].remaining_time == remaining

    def test_thermos_adds_coffee_coins(self):
        rows = [list(row) for row in TOWN]
        rows[0][0] = C
        session = _town_session(rows=rows, equipment=EquipmentLevels(coffee_thermos=3))
        result = session.move(Direction.LEFT)

        coffee = [e for e in result.events if e.type == RiderEventType.COFFEE]
        assert coffee[0].amount == 5
        assert session.state.coins_collected == 5

    def test_levels_persist_across_level_ups(self):
        config = _config_with(progression={"deliveries_per_level": 1})
        session = DeliverySession(config=config, seed=42)

        _complete_delivery(session)
        assert session.state.level == 2
        first = session.pending_choices[0]
        session.choose_equipment(first)

        _complete_delivery(session)
        assert session.state.level == 3
        assert session.equipment.get(first.key) == 1
        assert session.pending_choices

        second = session.pending_choices[0]
        levels = session.choose_equipment(second)
        assert levels.get(first.key) >= 1
        assert levels.get(second.key) == (2 if second.key == first.key else 1)
        assert sum(levels.as_dict().values()) == 2
        assert session.summary().equipment


class TestReproducibility:
    """Test full-run determinism from a seed."""

    def test_same_seed_same_run(self):
        directions = list(Direction)
        summaries = []
        for _ in range(2):
            session = DeliverySession(seed=42)
            rng = np.random.default_rng(3)
            for _ in range(150):
                session.move(directions[int(rng.integers(4))])
                session.tick()
                if session.pending_choices:
                    session.choose_equipment(session.pending_choices[0])
            summaries.append((session.summary(), session.state.rider_position, session.inventory))
        assert summaries[0] == summaries[1]

    def test_missing_seed_is_resolved(self):
        session = DeliverySession()
        assert session.seed is not None
        assert session.state.options.seed == session.seed

    def test_info_keys(self):
        info = _town_session().get_info()
        for key in ("coins", "deliveries", "level", "distance", "run_time", "equipment", "status"):
            assert key in info
