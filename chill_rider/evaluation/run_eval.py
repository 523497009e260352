"""
Evaluation Harness
==================

Rides one or more agents through the fixed seed bank and ranks them.

Each run is tallied from the per-step ``info["events"]`` stream: pickups,
deliveries (attributed to the level they were made on), expired
perishables and bumps. Agents are ranked by mean deliveries, then mean
coins, then mean level reached.

Usage:
    python -m chill_rider.evaluation.run_eval --agent contestants/baseline_greedy
    python -m chill_rider.evaluation.run_eval --agent contestants/a contestants/b --output board.json
"""

from __future__ import annotations

import argparse
import importlib.util
import json
import os
import sys
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
import numpy as np

from chill_rider.rider_core.env_gym import RiderEnv


@dataclass
class RunTally:
    """Event counts of one run, fed one ``info`` dict per step."""
    events: Counter = field(default_factory=Counter)
    deliveries_by_level: Dict[int, int] = field(default_factory=dict)
    steps: int = 0

    def observe(self, info: Dict[str, Any]) -> None:
        names = info.get("events", [])
        self.events.update(names)
        self.steps += 1

        if "delivery" in names:
            # A level-up in the same step already bumped info["level"]
            level = info["level"] - (1 if "level_up" in names else 0)
            count = names.count("delivery")
            self.deliveries_by_level[level] = self.deliveries_by_level.get(level, 0) + count

    @property
    def expiry_rate(self) -> float:
        """Share of picked-up packages that went bad on the way."""
        pickups = self.events["pickup"]
        return self.events["expired"] / pickups if pickups else 0.0

    @property
    def bump_rate(self) -> float:
        return self.events["bump"] / self.steps if self.steps else 0.0


@dataclass
class EvalResult:
    """One seed."""
    seed: int
    coins: int
    deliveries: int
    level: int
    distance: int
    equipment: Dict[str, int]
    termination_reason: str
    elapsed_time: float
    tally: RunTally
    actions: Optional[List[int]] = None

    @property
    def steps(self) -> int:
        return self.tally.steps


@dataclass
class EvalSummary:
    """All seeds of one agent."""
    agent: str
    results: List[EvalResult]
    total_time: float = 0.0

    def _values(self, attr: str) -> np.ndarray:
        return np.array([getattr(r, attr) for r in self.results], dtype=np.float64)

    @property
    def mean_deliveries(self) -> float:
        return float(np.mean(self._values("deliveries")))

    @property
    def mean_coins(self) -> float:
        return float(np.mean(self._values("coins")))

    @property
    def std_coins(self) -> float:
        return float(np.std(self._values("coins")))

    @property
    def mean_level(self) -> float:
        return float(np.mean(self._values("level")))

    @property
    def max_level(self) -> int:
        return int(max(r.level for r in self.results))

    @property
    def expiry_rate(self) -> float:
        pickups = sum(r.tally.events["pickup"] for r in self.results)
        expired = sum(r.tally.events["expired"] for r in self.results)
        return expired / pickups if pickups else 0.0

    @property
    def bump_rate(self) -> float:
        steps = sum(r.steps for r in self.results)
        bumps = sum(r.tally.events["bump"] for r in self.results)
        return bumps / steps if steps else 0.0

    def deliveries_per_level(self) -> Dict[int, float]:
        """Mean deliveries made on each level, over all seeds."""
        totals: Counter = Counter()
        for r in self.results:
            totals.update(r.tally.deliveries_by_level)
        n = len(self.results)
        return {level: totals[level] / n for level in sorted(totals)}

    def rank_key(self) -> Tuple[float, float, float]:
        return (self.mean_deliveries, self.mean_coins, self.mean_level)


def load_seed_bank(path: Optional[str] = None) -> List[int]:
    """
    Load the evaluation seed bank.

    Args:
        path: Path to seed_bank.json. Uses default if None.

    Returns:
        List of seeds.
    """
    if path is None:
        path = os.path.join(os.path.dirname(__file__), "seed_bank.json")

    with open(path, "r") as f:
        data = json.load(f)

    return [int(s) for s in data["seeds"]]


def load_agent(agent_path: str) -> Tuple[Callable, Optional[Callable]]:
    """
    Load an agent from a directory holding agent.py, or from the file itself.

    Returns:
        (act, reset) where reset is None for stateless agents.
    """
    agent_file = Path(agent_path)
    if agent_file.is_dir():
        agent_file = agent_file / "agent.py"

    if not agent_file.exists():
        raise FileNotFoundError(f"Agent file not found: {agent_file}")

    module_name = f"rider_agent_{agent_file.parent.name}"
    spec = importlib.util.spec_from_file_location(module_name, agent_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"Failed to load agent module from {agent_file}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)

    if hasattr(module, "RiderAgent"):
        agent = module.RiderAgent()
        if not hasattr(agent, "act"):
            raise AttributeError("RiderAgent class must have an 'act' method")
        return agent.act, getattr(agent, "reset", None)

    if hasattr(module, "act"):
        return module.act, None

    raise AttributeError(
        f"{agent_file} defines neither a 'RiderAgent' class nor an 'act' function"
    )


def evaluate_single_seed(
    agent_fn: Callable,
    seed: int,
    record_actions: bool = False,
    config_path: Optional[str] = None,
    reset_fn: Optional[Callable] = None
) -> EvalResult:
    """
    Ride one run on ``seed`` until the clock or the step cap ends it.

    Args:
        agent_fn: Agent's act function (obs) -> action.
        seed: Run seed.
        record_actions: If True, keep the action list for replays.
        config_path: Config override. Uses default if None.
        reset_fn: Agent hook called before the run starts.

    Returns:
        EvalResult for this seed.
    """
    env = RiderEnv(config_path=config_path)
    obs, info = env.reset(seed=seed)
    if reset_fn is not None:
        reset_fn()

    tally = RunTally()
    actions: Optional[List[int]] = [] if record_actions else None
    start_time = time.time()

    done = False
    while not done:
        action = int(agent_fn(obs))
        if actions is not None:
            actions.append(action)
        obs, _, terminated, truncated, info = env.step(action)
        tally.observe(info)
        done = terminated or truncated

    env.close()

    return EvalResult(
        seed=seed,
        coins=info["coins"],
        deliveries=info["deliveries"],
        level=info["level"],
        distance=info["distance"],
        equipment=dict(info["equipment"]),
        termination_reason=info["terminated_reason"],
        elapsed_time=time.time() - start_time,
        tally=tally,
        actions=actions
    )


def evaluate_agent(
    agent_fn: Callable,
    seeds: Optional[List[int]] = None,
    record_actions: bool = False,
    verbose: bool = True,
    config_path: Optional[str] = None,
    agent_name: str = "agent",
    reset_fn: Optional[Callable] = None
) -> EvalSummary:
    """
    Evaluate one agent on every seed.

    Args:
        agent_fn: Agent's act function (obs) -> action.
        seeds: List of seeds. Uses seed_bank.json if None.
        record_actions: If True, record actions for replay.
        verbose: If True, print one line per seed and a summary.
        config_path: Config override. Uses default if None.
        agent_name: Label used in summaries and leaderboards.
        reset_fn: Agent hook called before every run.

    Returns:
        EvalSummary over all seeds.
    """
    if seeds is None:
        seeds = load_seed_bank()
    if not seeds:
        raise ValueError("Seed list is empty")

    total_start = time.time()
    results: List[EvalResult] = []

    for seed in seeds:
        result = evaluate_single_seed(
            agent_fn,
            seed,
            record_actions=record_actions,
            config_path=config_path,
            reset_fn=reset_fn
        )
        results.append(result)
        if verbose:
            t = result.tally
            print(f"  [{agent_name}] seed {seed:>10}: level {result.level}, "
                  f"{result.deliveries} deliveries, {result.coins} coins, "
                  f"{t.events['expired']} expired, {t.events['bump']} bumps")

    summary = EvalSummary(agent=agent_name, results=results, total_time=time.time() - total_start)
    if verbose:
        print_summary(summary)
    return summary


def print_summary(summary: EvalSummary) -> None:
    print()
    print(f"== {summary.agent}: {len(summary.results)} runs in {summary.total_time:.1f}s ==")
    print(f"Deliveries    {summary.mean_deliveries:8.2f} mean")
    print(f"Coins         {summary.mean_coins:8.2f} mean  (std {summary.std_coins:.2f})")
    print(f"Level         {summary.mean_level:8.2f} mean  (best {summary.max_level})")
    print(f"Expiry rate   {summary.expiry_rate:8.1%}")
    print(f"Bump rate     {summary.bump_rate:8.1%}")
    per_level = summary.deliveries_per_level()
    if per_level:
        cells = "  ".join(f"L{level}: {mean:.1f}" for level, mean in per_level.items())
        print(f"Per level     {cells}")


def rank_agents(summaries: List[EvalSummary]) -> List[EvalSummary]:
    """Best first: most deliveries, then coins, then level reached."""
    return sorted(summaries, key=lambda s: s.rank_key(), reverse=True)


def print_leaderboard(summaries: List[EvalSummary]) -> None:
    print()
    print(f"{'#':>2}  {'Agent':<24} {'Deliv':>7} {'Coins':>8} {'Level':>6} {'Expired':>8}")
    print("-" * 60)
    for place, s in enumerate(rank_agents(summaries), start=1):
        print(f"{place:>2}  {s.agent:<24} {s.mean_deliveries:>7.2f} {s.mean_coins:>8.2f} "
              f"{s.mean_level:>6.2f} {s.expiry_rate:>8.1%}")


def summary_to_dict(summary: EvalSummary) -> Dict[str, Any]:
    return {
        "agent": summary.agent,
        "mean_deliveries": summary.mean_deliveries,
        "mean_coins": summary.mean_coins,
        "std_coins": summary.std_coins,
        "mean_level": summary.mean_level,
        "max_level": summary.max_level,
        "expiry_rate": summary.expiry_rate,
        "bump_rate": summary.bump_rate,
        "deliveries_per_level": {str(k): v for k, v in summary.deliveries_per_level().items()},
        "total_time": summary.total_time,
        "runs": [
            {
                "seed": r.seed,
                "coins": r.coins,
                "deliveries": r.deliveries,
                "level": r.level,
                "distance": r.distance,
                "steps": r.steps,
                "equipment": r.equipment,
                "events": dict(r.tally.events),
                "termination_reason": r.termination_reason,
                "actions": r.actions,
            }
            for r in summary.results
        ],
    }


def save_results(summaries: List[EvalSummary], output_path: str) -> None:
    """Write the ranked leaderboard with every run to JSON."""
    data = {
        "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        "leaderboard": [summary_to_dict(s) for s in rank_agents(summaries)],
    }
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2)

    print(f"Results saved to {output_path}")


def main():
    parser = argparse.ArgumentParser(description="Evaluate and rank Chill Rider agents")
    parser.add_argument("--agent", type=str, nargs="+", required=True,
                        help="Agent directories or agent.py files")
    parser.add_argument("--seeds", type=str, default=None,
                        help="Path to seed bank JSON (uses default if not specified)")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to game_config.yaml (uses default if not specified)")
    parser.add_argument("--output", type=str, default=None, help="Path to save results JSON")
    parser.add_argument("--record", action="store_true", help="Keep actions for replays")
    parser.add_argument("--quiet", action="store_true", help="Only print the leaderboard")

    args = parser.parse_args()
    seeds = load_seed_bank(args.seeds) if args.seeds else None

    summaries = []
    for agent_path in args.agent:
        try:
            act_fn, reset_fn = load_agent(agent_path)
        except (FileNotFoundError, ImportError, AttributeError) as e:
            print(f"Error loading agent {agent_path}: {e}")
            return 1
        summaries.append(evaluate_agent(
            act_fn,
            seeds=seeds,
            record_actions=args.record,
            verbose=not args.quiet,
            config_path=args.config,
            agent_name=Path(agent_path).name,
            reset_fn=reset_fn
        ))

    print_leaderboard(summaries)
    if args.output:
        save_results(summaries, args.output)

    return 0


if __name__ == "__main__":
    sys.exit(main())
