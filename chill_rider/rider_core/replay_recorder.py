"""
Replay Recorder
===============

A simple wrapper to record Gymnasium environment episodes for replay.

Usage:
    from chill_rider.rider_core import RiderEnv, ReplayRecorder

    env = RiderEnv()
    recorder = ReplayRecorder(env)

    obs, info = recorder.reset(seed=42)

    done = False
    while not done:
        action = your_agent(obs)
        obs, reward, terminated, truncated, info = recorder.step(action)
        done = terminated or truncated

    recorder.save("my_replay.json")

Because the whole run is driven by one seeded stream, a replay is just the
seed plus the action list. ``verify_replay`` re-simulates it and checks the
recorded totals.
"""

from __future__ import annotations

import json
import hashlib
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import gymnasium as gym

from chill_rider.rider_core.config_loader import RiderConfig, load_config


def generate_replay_filename(
    agent_name: str = "replay",
    seed: Optional[int] = None,
    directory: Optional[Union[str, Path]] = None
) -> Path:
    """
    Generate a timestamped replay filename.

    Format: {agent_name}_{YYYYMMDD_HHMMSS}_s{seed}.json

    Args:
        agent_name: Name of the agent.
        seed: Random seed (optional, included if provided).
        directory: Directory for the file. Defaults to current directory.

    Returns:
        Path object for the replay file.
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    if seed is not None:
        filename = f"{agent_name}_{timestamp}_s{seed}.json"
    else:
        filename = f"{agent_name}_{timestamp}.json"

    if directory:
        return Path(directory) / filename
    return Path(filename)


def compute_config_hash(config: Optional[RiderConfig] = None) -> str:
    """Hash of every config section that affects the simulation."""
    if config is None:
        config = load_config()
    hash_data = {
        "board": asdict(config.board),
        "seeds": asdict(config.seeds),
        "movement": asdict(config.movement),
        "coins": asdict(config.coins),
        "progression": asdict(config.progression),
        "packages": asdict(config.packages),
        "equipment": asdict(config.equipment),
        "run": asdict(config.run),
        "env": asdict(config.env),
    }
    return hashlib.md5(json.dumps(hash_data, sort_keys=True).encode()).hexdigest()[:8]


class ReplayRecorder:
    """
    Wrapper that records environment interactions for replay.

    Wraps a RiderEnv and records all actions, coin totals and metadata.

    Attributes:
        env: The wrapped Gymnasium environment.
        recording: Whether currently recording.
    """

    def __init__(
        self,
        env: gym.Env,
        agent_name: str = "unknown",
        auto_save_path: Optional[str] = None
    ):
        """
        Initialize the replay recorder.

        Args:
            env: The Gymnasium environment to wrap.
            agent_name: Name of the agent (stored in replay metadata).
            auto_save_path: If provided, automatically save replay on episode end.
        """
        self.env = env
        self.agent_name = agent_name
        self.auto_save_path = auto_save_path

        # Recording state
        self._recording = False
        self._seed: Optional[int] = None
        self._actions: List[int] = []
        self._coins: List[int] = []
        self._deliveries = 0
        self._level = 1
        self._termination_reason: str = ""
        self._config_hash = compute_config_hash(getattr(env, "config", None))

    @property
    def recording(self) -> bool:
        """Whether currently recording."""
        return self._recording

    @property
    def observation_space(self):
        """Forward observation space from wrapped env."""
        return self.env.observation_space

    @property
    def action_space(self):
        """Forward action space from wrapped env."""
        return self.env.action_space

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict] = None
    ) -> Tuple[Any, Dict]:
        """
        Reset the environment and start recording.

        Args:
            seed: Random seed for the episode. The resolved wall-clock seed
                is recorded when None.
            options: Additional reset options.

        Returns:
            Initial observation and info dict.
        """
        self._actions = []
        self._coins = []
        self._deliveries = 0
        self._level = 1
        self._termination_reason = ""
        self._recording = True

        obs, info = self.env.reset(seed=seed, options=options)
        self._seed = info.get("seed", seed)

        return obs, info

    def step(self, action: Union[int, np.ndarray]) -> Tuple[Any, float, bool, bool, Dict]:
        """
        Take a step and record it.

        Args:
            action: The action to take.

        Returns:
            Tuple of (observation, reward, terminated, truncated, info).
        """
        if isinstance(action, np.ndarray):
            action_val = int(action.item() if action.size == 1 else action[0])
        else:
            action_val = int(action)

        obs, reward, terminated, truncated, info = self.env.step(action)

        if self._recording:
            self._actions.append(action_val)
            self._coins.append(int(info.get("coins", 0)))
            self._deliveries = int(info.get("deliveries", 0))
            self._level = int(info.get("level", 1))

            if terminated or truncated:
                self._termination_reason = info.get("terminated_reason", "unknown")

        if (terminated or truncated) and self.auto_save_path:
            self.save(self.auto_save_path)

        return obs, reward, terminated, truncated, info

    def get_replay_data(self) -> Dict[str, Any]:
        """
        Get the current replay data as a dictionary.

        Returns:
            Dictionary containing all replay data.
        """
        return {
            "seed": self._seed,
            "agent": self.agent_name,
            "config_hash": self._config_hash,
            "actions": self._actions.copy(),
            "coins": self._coins.copy(),
            "final_coins": self._coins[-1] if self._coins else 0,
            "deliveries": self._deliveries,
            "level": self._level,
            "total_steps": len(self._actions),
            "termination_reason": self._termination_reason,
        }

    def save(
        self,
        path: Optional[Union[str, Path]] = None,
        overwrite: bool = True,
        directory: Optional[Union[str, Path]] = None
    ) -> Path:
        """
        Save the replay to a JSON file.

        Args:
            path: Path to save the replay. If None, auto-generates a timestamped name.
            overwrite: If True, overwrite existing file.
            directory: Directory for auto-generated filename (only used if path is None).

        Returns:
            Path where the replay was saved.
        """
        if path is None:
            path = generate_replay_filename(
                agent_name=self.agent_name,
                seed=self._seed,
                directory=directory
            )
        else:
            path = Path(path)

        if path.exists() and not overwrite:
            raise FileExistsError(f"Replay file already exists: {path}")

        path.parent.mkdir(parents=True, exist_ok=True)

        replay_data = self.get_replay_data()

        with open(path, "w") as f:
            json.dump(replay_data, f, indent=2)

        print(f"Replay saved: {path}")
        print(f"  Seed: {self._seed}")
        print(f"  Steps: {len(self._actions)}")
        print(f"  Final coins: {replay_data['final_coins']}")

        return path

    def close(self) -> None:
        """Close the wrapped environment."""
        self.env.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def load_replay(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a replay JSON file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Replay file not found: {path}")
    with open(path, "r") as f:
        return json.load(f)


def verify_replay(
    replay: Union[str, Path, Dict[str, Any]],
    config_path: Optional[str] = None
) -> bool:
    """
    Re-simulate a replay and compare it against its recorded totals.

    Args:
        replay: Replay dict or path to a replay JSON file.
        config_path: Config to simulate with. Uses default if None.

    Returns:
        True if every per-step coin total and the final deliveries and
        level match.

    Raises:
        ValueError: If the replay was recorded with a different config.
    """
    from chill_rider.rider_core.env_gym import RiderEnv

    if not isinstance(replay, dict):
        replay = load_replay(replay)

    env = RiderEnv(config_path=config_path)
    expected_hash = compute_config_hash(env.config)
    if replay.get("config_hash") != expected_hash:
        raise ValueError(
            f"Replay config hash {replay.get('config_hash')} does not match {expected_hash}"
        )

    _, info = env.reset(seed=replay["seed"])
    coins: List[int] = []
    for action in replay["actions"]:
        _, _, terminated, truncated, info = env.step(action)
        coins.append(int(info["coins"]))
        if terminated or truncated:
            break
    env.close()

    return (
        coins == list(replay["coins"])
        and int(info["deliveries"]) == replay["deliveries"]
        and int(info["level"]) == replay["level"]
    )


def record_episode(
    env: gym.Env,
    agent_fn,
    seed: int,
    save_path: Optional[str] = None,
    agent_name: str = "unknown"
) -> Dict[str, Any]:
    """
    Convenience function to record a single episode.

    Args:
        env: The Gymnasium environment.
        agent_fn: Function that takes observation and returns action.
        seed: Random seed for the episode.
        save_path: If provided, save replay to this path.
        agent_name: Name of the agent.

    Returns:
        Replay data dictionary.
    """
    recorder = ReplayRecorder(env, agent_name=agent_name)

    obs, info = recorder.reset(seed=seed)

    done = False
    while not done:
        action = agent_fn(obs)
        obs, reward, terminated, truncated, info = recorder.step(action)
        done = terminated or truncated

    replay_data = recorder.get_replay_data()

    if save_path:
        recorder.save(save_path)

    return replay_data
