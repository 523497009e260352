"""
Delivery Session
================

Run orchestrator for the delivery mode. Holds the immutable GameState plus
the side-state the reducer does not own (inventory, perishable timers,
equipment, run clock) and turns rider arrivals into pickups, deliveries and
level-ups.

The session is push-based: ``move`` is called per input event and ``tick``
per clock period chosen by the caller. Nothing is scheduled internally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from chill_rider.rider_core.config_loader import RiderConfig, get_config
from chill_rider.rider_core.engine import apply_command, create_game, status_malus_message
from chill_rider.rider_core.packages import (
    EquipmentChoice,
    EquipmentKey,
    EquipmentLevels,
    apply_equipment_choice,
    backpack_timer_bonus,
    coffee_thermos_bonus,
    decay_timer,
    decide_package_kind,
    delivery_reward,
    describe_levels,
    expiry_penalty,
    initial_perishable_timer,
    offer_equipment_choices,
    pick_package_color,
)
from chill_rider.rider_core.placement import find_free_building_position
from chill_rider.rider_core.progression import ProgressionRules
from chill_rider.rider_core.rng import LehmerRng, resolve_seed
from chill_rider.rider_core.state import (
    ActiveTarget,
    Command,
    Direction,
    GameMode,
    GameOptions,
    GameState,
    HouseMarker,
    PackageItem,
    PackageKind,
    Position,
)
from chill_rider.rider_core.tiles import Tile


class RiderEventType(Enum):
    BUMP = "bump"
    COIN = "coin"
    COFFEE = "coffee"
    PICKUP = "pickup"
    DELIVERY = "delivery"
    EXPIRED = "expired"
    LEVEL_UP = "level_up"
    RUN_OVER = "run_over"


@dataclass(frozen=True)
class RiderEvent:
    """A state delta the presentation or audio layer may react to."""
    type: RiderEventType
    position: Optional[Position] = None
    amount: int = 0
    package_id: Optional[str] = None

    def __repr__(self) -> str:
        if self.package_id:
            return f"RiderEvent({self.type.value}, {self.package_id}, amount={self.amount})"
        return f"RiderEvent({self.type.value}, amount={self.amount})"


@dataclass(frozen=True)
class CarriedPackage:
    """A package in the inventory with its destination and countdown."""
    item: PackageItem
    house: Position
    remaining_time: Optional[int] = None
    steps_before_pickup: int = 0     # steps of the current tick period ridden before pickup

    @property
    def is_perishable(self) -> bool:
        return self.item.kind == PackageKind.PERISHABLE


@dataclass(frozen=True)
class RunSummary:
    """End-of-run numbers."""
    level: int
    distance: int
    deliveries: int
    coins: int
    equipment: Tuple[str, ...] = ()


@dataclass
class StepResult:
    """Result of a single session call."""
    state: GameState
    events: List[RiderEvent] = field(default_factory=list)
    moved: bool = False
    step_cost: int = 0
    is_over: bool = False


class DeliverySession:
    """
    One delivery-mode run.

    Shops hand out packages bound to free buildings (house markers),
    delivering them pays coins and counts toward level-ups, perishable
    packages decay with distance ridden, and equipment picked at level-ups
    tweaks rewards, penalties and timers.
    """

    def __init__(
        self,
        config: Optional[RiderConfig] = None,
        seed: Optional[int] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        debug: bool = False
    ):
        """
        Initialize session.

        Args:
            config: Game configuration. Uses default if None.
            seed: Random seed for reproducibility. Wall clock if None.
            width: Map width override. Uses config board width if None.
            height: Map height override. Uses config board height if None.
            debug: If True, print session decisions to stdout.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._width = width or config.board.width
        self._height = height or config.board.height
        self._debug = debug
        self._rules = ProgressionRules(config)

        self.reset(seed)

    @classmethod
    def from_state(
        cls,
        state: GameState,
        config: Optional[RiderConfig] = None,
        equipment: Optional[EquipmentLevels] = None,
        debug: bool = False
    ) -> "DeliverySession":
        """
        Start a fresh run on top of an existing GameState.

        Used for scripted scenarios and tools. The inventory starts empty,
        the run clock full and equipment at ``equipment`` (all 0 if None);
        house markers already in ``state`` are dropped since no carried
        package backs them.
        """
        session = cls(
            config=config,
            seed=state.options.seed,
            width=state.width,
            height=state.height,
            debug=debug
        )
        session._state = state.replace(houses=(), active_target=None)
        if equipment is not None:
            session._equipment = equipment
        return session

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> RiderConfig:
        return self._config

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def state(self) -> GameState:
        """Current immutable game state."""
        return self._state

    @property
    def inventory(self) -> Tuple[CarriedPackage, ...]:
        return tuple(self._inventory)

    @property
    def equipment(self) -> EquipmentLevels:
        return self._equipment

    @property
    def run_time(self) -> int:
        """Seconds left on the run clock."""
        return self._run_time

    @property
    def pending_steps(self) -> int:
        """Cost-weighted steps moved since the last tick."""
        return self._pending_steps

    @property
    def pending_choices(self) -> Tuple[EquipmentChoice, ...]:
        """Open level-up offer, empty when none."""
        return tuple(self._pending_choices)

    @property
    def is_over(self) -> bool:
        return self._over

    @property
    def events(self) -> Tuple[RiderEvent, ...]:
        """Events raised by the last call."""
        return tuple(self._events)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self, seed: Optional[int] = None) -> GameState:
        """
        Start a new run.

        Args:
            seed: New random seed. Wall clock if None.

        Returns:
            Initial game state.
        """
        self._seed = resolve_seed(seed)
        self._rng = LehmerRng(self._seed + self._config.seeds.session_offset)

        options = GameOptions(
            width=self._width,
            height=self._height,
            seed=self._seed,
            mode=GameMode.DELIVERY
        )
        self._state = create_game(options, self._config)
        self._inventory: List[CarriedPackage] = []
        self._equipment = EquipmentLevels()
        self._pending_choices: List[EquipmentChoice] = []
        self._run_time = self._config.run.time_limit
        self._pending_steps = 0
        self._package_counter = 0
        self._over = False
        self._events: List[RiderEvent] = []

        if self._debug:
            print(f"[DEBUG] DeliverySession reset: seed={self._seed}, "
                  f"map={self._width}x{self._height}")

        return self._state

    def move(self, direction: Direction) -> StepResult:
        """
        Move the rider one tile and resolve arrivals.

        Args:
            direction: Movement direction.

        Returns:
            StepResult with the new state and raised events.
        """
        self._events = []
        if self._over:
            return self._result(moved=False)

        prev = self._state
        state = apply_command(prev, Command.move(direction), self._config)
        self._state = state

        if state.last_step_cost == 0:
            self._emit(RiderEventType.BUMP, position=prev.rider_position)
            return self._result(moved=False)

        self._pending_steps += state.last_step_cost
        pos = state.rider_position

        if len(state.coins) < len(prev.coins):
            self._emit(RiderEventType.COIN, position=pos, amount=1)

        tile = state.tile_at(pos)
        if tile == Tile.COFFEE:
            # The reducer already paid the fixed coffee bonus
            extra = coffee_thermos_bonus(self._equipment.coffee_thermos)
            self._add_coins(extra)
            self._emit(
                RiderEventType.COFFEE,
                position=pos,
                amount=self._config.movement.coffee_coin_bonus + extra
            )
        elif tile == Tile.SHOP:
            self._try_pickup(pos)

        house = self._state.house_at(pos)
        if house is not None:
            self._deliver(house, came_from=prev.rider_position)

        self._sync_active_target()
        return self._result(moved=True, step_cost=state.last_step_cost)

    def tick(self, seconds: int = 1) -> StepResult:
        """
        Advance the run clock and decay perishable packages.

        Args:
            seconds: Clock seconds elapsed since the last tick.

        Returns:
            StepResult with expiries and run-over events.
        """
        if seconds < 0:
            raise ValueError(f"tick seconds must be >= 0, got {seconds}")

        self._events = []
        if self._over:
            return self._result(moved=False)

        self._run_time = max(0, self._run_time - seconds)

        if self._pending_steps > 0:
            self._decay_perishables(self._pending_steps)
        self._pending_steps = 0

        if self._run_time == 0:
            self._over = True
            self._emit(RiderEventType.RUN_OVER)
            if self._debug:
                print(f"[DEBUG] Run over: {self.summary()}")

        self._sync_active_target()
        return self._result(moved=False)

    def regenerate_map(self) -> GameState:
        """Rebuild the current level's map; carried packages are dropped."""
        self._state = apply_command(self._state, Command.regenerate_map(), self._config)
        self._inventory = []
        self._pending_steps = 0
        self._sync_active_target()
        return self._state

    # ------------------------------------------------------------------
    # Equipment
    # ------------------------------------------------------------------

    def choose_equipment(self, choice: Union[EquipmentChoice, str]) -> EquipmentLevels:
        """
        Pick one card of the pending level-up offer.

        Args:
            choice: An offered EquipmentChoice or its equipment key.

        Returns:
            Updated equipment levels.

        Raises:
            ValueError: If no offer is pending or the key was not offered.
        """
        if not self._pending_choices:
            raise ValueError("No equipment offer pending")

        key = choice.key if isinstance(choice, EquipmentChoice) else EquipmentKey(choice)
        offered = [c for c in self._pending_choices if c.key == key]
        if not offered:
            raise ValueError(f"Equipment '{key.value}' was not offered")

        self._equipment = apply_equipment_choice(self._equipment, offered[0])
        self._pending_choices = []

        if self._debug:
            print(f"[DEBUG] Equipment picked: {key.value} -> Lv.{self._equipment.get(key)}")

        return self._equipment

    def skip_equipment(self) -> EquipmentLevels:
        """Close the pending offer without changing any level."""
        self._pending_choices = []
        return self._equipment

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def summary(self) -> RunSummary:
        return RunSummary(
            level=self._state.level,
            distance=self._state.distance,
            deliveries=self._state.deliveries,
            coins=self._state.coins_collected,
            equipment=describe_levels(self._equipment)
        )

    def get_info(self) -> Dict[str, Any]:
        """Info dict for Gymnasium and harnesses."""
        state = self._state
        progress = self._rules.progress(state.level, state.deliveries)
        return {
            "coins": state.coins_collected,
            "deliveries": state.deliveries,
            "level": state.level,
            "distance": state.distance,
            "deliveries_this_level": progress.deliveries_this_level,
            "run_time": self._run_time,
            "inventory": len(self._inventory),
            "equipment": self._equipment.as_dict(),
            "pending_choices": [c.key.value for c in self._pending_choices],
            "status": status_malus_message(state),
            "is_over": self._over,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _result(self, moved: bool, step_cost: int = 0) -> StepResult:
        return StepResult(
            state=self._state,
            events=list(self._events),
            moved=moved,
            step_cost=step_cost,
            is_over=self._over
        )

    def _emit(self, event_type: RiderEventType, **kwargs) -> None:
        self._events.append(RiderEvent(event_type, **kwargs))

    def _add_coins(self, amount: int) -> None:
        coins = max(0, self._state.coins_collected + amount)
        self._state = self._state.replace(coins_collected=coins)

    def _try_pickup(self, shop: Position) -> None:
        if len(self._inventory) >= self._config.packages.inventory_capacity:
            return

        state = self._state
        house_pos = find_free_building_position(
            state.grid, [h.position for h in state.houses], self._rng
        )
        if house_pos is None:
            return

        self._package_counter += 1
        kind = decide_package_kind(state.level, self._rng, self._config)
        item = PackageItem(
            id=f"pkg-{self._package_counter}",
            color=pick_package_color((c.item for c in self._inventory), self._rng, self._config),
            kind=kind
        )

        remaining = None
        if kind == PackageKind.PERISHABLE:
            remaining = initial_perishable_timer(state.level, self._config)
            remaining += backpack_timer_bonus(self._equipment.backpack)

        self._inventory.append(CarriedPackage(
            item=item,
            house=house_pos,
            remaining_time=remaining,
            steps_before_pickup=self._pending_steps
        ))
        marker = HouseMarker(position=house_pos, color=item.color, package_id=item.id)
        self._state = state.replace(houses=state.houses + (marker,))
        self._emit(RiderEventType.PICKUP, position=shop, package_id=item.id)

        if self._debug:
            print(f"[DEBUG] Pickup {item.id} ({item.color}, {kind.value}) at {tuple(shop)} "
                  f"-> house {tuple(house_pos)}, timer={remaining}")

    def _drop_package(self, package_id: str) -> None:
        self._inventory = [c for c in self._inventory if c.item.id != package_id]
        houses = tuple(h for h in self._state.houses if h.package_id != package_id)
        self._state = self._state.replace(houses=houses)

    def _deliver(self, house: HouseMarker, came_from: Position) -> None:
        # Without its marker the building is solid again; hand over from the doorstep
        self._drop_package(house.package_id)
        self._state = self._state.replace(rider_position=came_from)
        reward = delivery_reward(self._equipment.bell, self._config)
        self._add_coins(reward)
        self._emit(
            RiderEventType.DELIVERY,
            position=house.position,
            amount=reward,
            package_id=house.package_id
        )

        level_before = self._state.level
        self._state = apply_command(self._state, Command.delivery_completed(), self._config)

        if self._debug:
            print(f"[DEBUG] Delivered {house.package_id}: +{reward} coins, "
                  f"deliveries={self._state.deliveries}")

        if self._state.level != level_before:
            self._on_level_up()

    def _on_level_up(self) -> None:
        # The reducer already replaced the grid and cleared the markers
        self._inventory = []
        self._pending_steps = 0
        self._pending_choices = offer_equipment_choices(self._equipment, self._rng, self._config)
        self._emit(RiderEventType.LEVEL_UP, amount=self._state.level)

        if self._debug:
            offered = ", ".join(c.key.value for c in self._pending_choices)
            print(f"[DEBUG] LEVEL UP -> {self._state.level}; offer: {offered}")

    def _decay_perishables(self, moved_steps: int) -> None:
        bike = self._equipment.bike_frame
        updated: List[CarriedPackage] = []
        expired: List[CarriedPackage] = []

        for carried in self._inventory:
            if not carried.is_perishable:
                updated.append(carried)
                continue
            steps = moved_steps - carried.steps_before_pickup
            remaining = decay_timer(carried.remaining_time, steps, bike, self._config)
            carried = CarriedPackage(item=carried.item, house=carried.house, remaining_time=remaining)
            if remaining <= 0:
                expired.append(carried)
            else:
                updated.append(carried)

        self._inventory = updated
        for carried in expired:
            self._drop_package(carried.item.id)
            penalty = expiry_penalty(self._equipment.helmet, self._config)
            self._add_coins(-penalty)
            self._emit(
                RiderEventType.EXPIRED,
                position=carried.house,
                amount=penalty,
                package_id=carried.item.id
            )
            if self._debug:
                print(f"[DEBUG] Expired {carried.item.id}: -{penalty} coins")

    def _sync_active_target(self) -> None:
        target = None
        if self._inventory:
            first = self._inventory[0]
            target = ActiveTarget(
                house_color=first.item.color,
                house_id=first.item.id,
                remaining_time=first.remaining_time
            )
        if target != self._state.active_target:
            self._state = self._state.replace(active_target=target)
