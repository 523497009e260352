"""
Replay Viewer
=============

Print a recorded replay as text maps, one frame per requested step.

Usage:
    python tools/replay_viewer.py replay.json
    python -m tools.replay_viewer replay.json --step 40
    python -m tools.replay_viewer replay.json --every 10 --verify

Legend:
    @ rider   $ coin   H house   . road   , grass   T tree   B building
    S shop    ~ slow   C coffee  o pothole  r rock  b bench  l leaves
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path for direct script execution
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from chill_rider.rider_core.env_gym import RiderEnv
from chill_rider.rider_core.replay_recorder import load_replay, verify_replay
from chill_rider.rider_core.tiles import grid_to_text


def rebuild_env_to_step(
    seed: int,
    actions: List[int],
    target_step: int,
    config_path: Optional[str] = None
) -> RiderEnv:
    """
    Rebuild an environment by replaying actions up to target_step.
    """
    env = RiderEnv(config_path=config_path)
    env.reset(seed=seed)

    for i in range(min(target_step, len(actions))):
        if env.session.is_over:
            break
        env.step(actions[i])

    return env


def render_frame(env: RiderEnv) -> str:
    """Text map with rider, coins and active houses drawn on top."""
    state = env.session.state
    rows = [list(line) for line in grid_to_text(state.grid).split("\n")]

    for coin in state.coins:
        rows[coin.y][coin.x] = "$"
    for house in state.houses:
        rows[house.position.y][house.position.x] = "H"
    rows[state.rider_position.y][state.rider_position.x] = "@"

    info = env.session.get_info()
    header = (f"level={info['level']} coins={info['coins']} deliveries={info['deliveries']} "
              f"distance={info['distance']} time={info['run_time']} carrying={info['inventory']}")
    return header + "\n" + "\n".join("".join(row) for row in rows)


def view_replay(
    replay_path: str,
    step: Optional[int] = None,
    every: int = 0,
    verify: bool = False,
    config_path: Optional[str] = None
) -> int:
    """
    Print frames from a recorded replay.

    Args:
        replay_path: Path to replay JSON file.
        step: Print only this step. Final step if None and every is 0.
        every: Print every N-th step when > 0.
        verify: Re-simulate and check the recorded coin totals first.
        config_path: Config to simulate with. Uses default if None.

    Returns:
        Process exit code.
    """
    replay = load_replay(replay_path)

    seed = replay.get("seed")
    actions = replay.get("actions", [])
    agent_name = replay.get("agent", "unknown")

    if seed is None:
        print("Error: Replay has no seed")
        return 1
    if not actions:
        print("Error: Replay contains no actions")
        return 1

    print(f"Replay: {agent_name}, seed={seed}, steps={len(actions)}, "
          f"final coins={replay.get('final_coins', 0)}")

    if verify:
        try:
            ok = verify_replay(replay, config_path=config_path)
        except ValueError as e:
            print(f"Verification failed: {e}")
            return 1
        print(f"Verification: {'OK' if ok else 'MISMATCH'}")
        if not ok:
            return 1

    if every > 0:
        steps = list(range(0, len(actions) + 1, every))
    elif step is not None:
        steps = [max(0, min(step, len(actions)))]
    else:
        steps = [len(actions)]

    for target in steps:
        env = rebuild_env_to_step(seed, actions, target, config_path)
        print()
        print(f"--- step {target} ---")
        print(render_frame(env))
        env.close()

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="View a recorded Chill Rider replay as text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("replay", type=str, help="Path to replay JSON file")
    parser.add_argument("--step", type=int, default=None, help="Show a single step")
    parser.add_argument("--every", type=int, default=0, help="Show every N-th step")
    parser.add_argument("--verify", action="store_true", help="Re-simulate and check totals")
    parser.add_argument("--config", type=str, default=None, help="Path to game_config.yaml")

    args = parser.parse_args()

    return view_replay(
        replay_path=args.replay,
        step=args.step,
        every=args.every,
        verify=args.verify,
        config_path=args.config
    )


if __name__ == "__main__":
    sys.exit(main())
