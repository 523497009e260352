"""
Gymnasium Environment Wrapper
=============================

Provides a standard Gymnasium interface to a delivery run.
Reward is always 0.0 - agents must compute their own from info.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Union
import numpy as np

import gymnasium as gym
from gymnasium import spaces

from chill_rider.rider_core.config_loader import RiderConfig, load_config
from chill_rider.rider_core.packages import EquipmentKey
from chill_rider.rider_core.session import DeliverySession
from chill_rider.rider_core.state import DIRECTION_ORDER
from chill_rider.rider_core.state_snapshot import SnapshotBuilder
from chill_rider.rider_core.tiles import Tile


class RiderEnv(gym.Env):
    """
    Delivery run as a Gymnasium environment.

    Action Space:
        Discrete(4): up, down, left, right (see DIRECTION_ORDER).
        Each step is one move followed by one clock tick.

    Observation Space:
        Dict of map layers, rider pose, run counters, inventory and
        equipment arrays.

    Reward:
        Always 0.0. Agents must compute their own reward from the info dict.

    Info:
        Contains coins, deliveries, level, run_time, events, etc.
    """

    metadata = {
        "render_modes": [],
    }

    def __init__(
        self,
        config_path: Optional[str] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        debug: bool = False,
    ):
        """
        Initialize rider environment.

        Args:
            config_path: Path to game_config.yaml. Uses default if None.
            width: Map width override.
            height: Map height override.
            debug: If True, enables verbose debug output for agent development.
        """
        super().__init__()

        self._config = load_config(config_path)
        self._debug = debug
        self._width = width or self._config.board.width
        self._height = height or self._config.board.height
        self._steps = 0

        self._session = DeliverySession(
            config=self._config,
            width=self._width,
            height=self._height,
            debug=debug
        )
        self._builder = SnapshotBuilder(self._config, self._width, self._height)

        self.action_space = spaces.Discrete(len(DIRECTION_ORDER))
        self.observation_space = self._build_observation_space()

        if self._debug:
            print(f"[DEBUG] RiderEnv initialized")
            print(f"[DEBUG]   Map: {self._width}x{self._height}")
            print(f"[DEBUG]   Run time: {self._config.run.time_limit}s")
            print(f"[DEBUG]   Max steps: {self._config.env.max_steps}")

    def _build_observation_space(self) -> spaces.Dict:
        """Build the observation space definition."""
        shape = (self._height, self._width)
        cap = self._config.packages.inventory_capacity
        n_keys = len(EquipmentKey)
        int32_max = np.iinfo(np.int32).max

        return spaces.Dict({
            # Map layers
            "grid": spaces.Box(low=0, high=int(max(Tile)), shape=shape, dtype=np.int8),
            "coin_map": spaces.Box(low=0, high=1, shape=shape, dtype=np.int8),
            "house_map": spaces.Box(low=0, high=cap, shape=shape, dtype=np.int8),

            # Rider
            "rider_position": spaces.Box(
                low=0, high=max(self._width, self._height) - 1, shape=(2,), dtype=np.int32
            ),
            "facing": spaces.Box(low=0, high=len(DIRECTION_ORDER) - 1, shape=(), dtype=np.int32),

            # Run counters
            "level": spaces.Box(low=1, high=int32_max, shape=(), dtype=np.int32),
            "deliveries": spaces.Box(low=0, high=int32_max, shape=(), dtype=np.int32),
            "distance": spaces.Box(low=0, high=int32_max, shape=(), dtype=np.int32),
            "coins": spaces.Box(low=0, high=np.iinfo(np.int64).max, shape=(), dtype=np.int64),
            "run_time": spaces.Box(low=0, high=self._config.run.time_limit, shape=(), dtype=np.int32),

            # Inventory
            "package_houses": spaces.Box(
                low=-1, high=max(self._width, self._height) - 1, shape=(cap, 2), dtype=np.int32
            ),
            "package_timers": spaces.Box(low=-1, high=int32_max, shape=(cap,), dtype=np.int32),
            "package_mask": spaces.MultiBinary(cap),

            # Equipment
            "equipment": spaces.Box(low=0, high=int32_max, shape=(n_keys,), dtype=np.int32),
            "offer_mask": spaces.MultiBinary(n_keys),
        })

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> Tuple[Dict[str, np.ndarray], Dict[str, Any]]:
        """
        Reset the environment.

        Args:
            seed: Random seed for reproducibility.
            options: Additional options (unused).

        Returns:
            (observation, info) tuple.
        """
        super().reset(seed=seed)

        self._session.reset(seed=seed)
        self._steps = 0

        obs = self._builder.from_session(self._session).to_obs_dict()
        info = self._session.get_info()
        info["events"] = []
        info["seed"] = self._session.seed

        return obs, info

    def step(
        self,
        action: Union[int, np.integer, np.ndarray]
    ) -> Tuple[Dict[str, np.ndarray], float, bool, bool, Dict[str, Any]]:
        """
        Execute one step.

        Args:
            action: Direction index in DIRECTION_ORDER.

        Returns:
            (observation, reward, terminated, truncated, info) tuple.
            Reward is always 0.0.
        """
        if isinstance(action, np.ndarray):
            action = int(action.item() if action.ndim == 0 else action[0])
        action = int(action)
        if not 0 <= action < len(DIRECTION_ORDER):
            raise ValueError(f"Action must be in [0, {len(DIRECTION_ORDER)}), got {action}")

        direction = DIRECTION_ORDER[action]
        moved = self._session.move(direction)
        ticked = self._session.tick(self._config.env.seconds_per_step)
        self._resolve_offer()
        self._steps += 1

        obs = self._builder.from_session(self._session).to_obs_dict()

        # Reward is always 0.0 - agents compute their own
        reward = 0.0

        terminated = self._session.is_over
        truncated = not terminated and self._steps >= self._config.env.max_steps

        info = self._session.get_info()
        info["events"] = [e.type.value for e in moved.events + ticked.events]
        info["moved"] = moved.moved
        info["step_cost"] = moved.step_cost
        info["steps"] = self._steps
        if terminated:
            info["terminated_reason"] = "time_up"
        elif truncated:
            info["terminated_reason"] = "max_steps"
        else:
            info["terminated_reason"] = ""

        if self._debug:
            print(f"[DEBUG] Step: action={direction.value}, moved={moved.moved}, "
                  f"coins={info['coins']}, run_time={info['run_time']}, events={info['events']}")
            if terminated:
                print(f"[DEBUG] TERMINATED: {self._session.summary()}")

        return obs, reward, terminated, truncated, info

    def _resolve_offer(self) -> None:
        """Settle a pending level-up offer according to env.auto_equipment."""
        choices = self._session.pending_choices
        if not choices:
            return
        if self._config.env.auto_equipment == "first":
            self._session.choose_equipment(choices[0])
        else:
            self._session.skip_equipment()

    def render(self) -> None:
        """Rendering is not provided; use tiles.grid_to_text for a text dump."""
        return None

    def close(self) -> None:
        """Clean up resources."""
        return None

    @property
    def session(self) -> DeliverySession:
        """Access to underlying session (for debugging/tools)."""
        return self._session

    @property
    def config(self) -> RiderConfig:
        """Game configuration."""
        return self._config
