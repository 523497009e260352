"""
Performance Benchmark
=====================

Measures map generation, reducer and environment step throughput.

Usage:
    python -m tools.benchmark_speed [--steps S] [--maps M]
"""

from __future__ import annotations

import argparse
import sys
import time
import numpy as np

from chill_rider.rider_core.config_loader import load_config
from chill_rider.rider_core.engine import apply_command, create_game
from chill_rider.rider_core.env_gym import RiderEnv
from chill_rider.rider_core.map_generator import generate_map
from chill_rider.rider_core.session import DeliverySession
from chill_rider.rider_core.state import DIRECTION_ORDER, Command, GameOptions


def benchmark_map_generation(
    num_maps: int = 200,
    seed: int = 42,
    level: int = 1
) -> dict:
    """
    Benchmark map generation.

    Args:
        num_maps: Number of maps to generate.
        seed: Base random seed.
        level: Level to generate.

    Returns:
        Dict with timing results.
    """
    config = load_config()
    start = time.perf_counter()

    for i in range(num_maps):
        options = GameOptions(config.board.width, config.board.height, seed=seed + i)
        generate_map(options, level, config)

    elapsed = time.perf_counter() - start

    return {
        "mode": f"map_gen_l{level}",
        "num_steps": num_maps,
        "elapsed_seconds": elapsed,
        "steps_per_second": num_maps / elapsed,
        "ms_per_step": (elapsed * 1000) / num_maps
    }


def benchmark_reducer(
    num_steps: int = 1000,
    seed: int = 42
) -> dict:
    """
    Benchmark raw apply_command without session or Gym overhead.

    Args:
        num_steps: Number of MOVE commands.
        seed: Random seed.

    Returns:
        Dict with timing results.
    """
    config = load_config()
    options = GameOptions(config.board.width, config.board.height, seed=seed)
    state = create_game(options, config)
    rng = np.random.default_rng(seed)
    commands = [Command.move(d) for d in DIRECTION_ORDER]

    start = time.perf_counter()

    for _ in range(num_steps):
        state = apply_command(state, commands[int(rng.integers(4))], config)

    elapsed = time.perf_counter() - start

    return {
        "mode": "reducer",
        "num_steps": num_steps,
        "elapsed_seconds": elapsed,
        "steps_per_second": num_steps / elapsed,
        "ms_per_step": (elapsed * 1000) / num_steps
    }


def benchmark_session(
    num_steps: int = 1000,
    seed: int = 42
) -> dict:
    """
    Benchmark DeliverySession move + tick.

    Args:
        num_steps: Number of move/tick pairs.
        seed: Random seed.

    Returns:
        Dict with timing results.
    """
    config = load_config()
    session = DeliverySession(config=config, seed=seed)
    rng = np.random.default_rng(seed)

    start = time.perf_counter()

    for _ in range(num_steps):
        session.move(DIRECTION_ORDER[int(rng.integers(4))])
        session.tick()
        if session.pending_choices:
            session.skip_equipment()
        if session.is_over:
            session.reset(seed=seed)

    elapsed = time.perf_counter() - start

    return {
        "mode": "session",
        "num_steps": num_steps,
        "elapsed_seconds": elapsed,
        "steps_per_second": num_steps / elapsed,
        "ms_per_step": (elapsed * 1000) / num_steps
    }


def benchmark_single_env(
    num_steps: int = 1000,
    seed: int = 42
) -> dict:
    """
    Benchmark single environment performance.

    Args:
        num_steps: Number of steps to run.
        seed: Random seed.

    Returns:
        Dict with timing results.
    """
    env = RiderEnv()
    rng = np.random.default_rng(seed)

    # Warmup
    obs, _ = env.reset(seed=seed)
    for _ in range(10):
        obs, _, terminated, truncated, _ = env.step(int(rng.integers(4)))
        if terminated or truncated:
            obs, _ = env.reset(seed=seed)

    # Benchmark
    obs, _ = env.reset(seed=seed)
    start = time.perf_counter()

    for _ in range(num_steps):
        obs, _, terminated, truncated, _ = env.step(int(rng.integers(4)))
        if terminated or truncated:
            obs, _ = env.reset(seed=seed)

    elapsed = time.perf_counter() - start
    env.close()

    return {
        "mode": "env",
        "num_steps": num_steps,
        "elapsed_seconds": elapsed,
        "steps_per_second": num_steps / elapsed,
        "ms_per_step": (elapsed * 1000) / num_steps
    }


def run_all_benchmarks(steps: int = 500, maps: int = 200) -> list:
    """Run comprehensive benchmarks."""
    results = []

    print("=" * 60)
    print("CHILL RIDER PERFORMANCE BENCHMARK")
    print("=" * 60)
    print()

    for level in (1, 6):
        print(f"Benchmarking generate_map (level {level})...")
        result = benchmark_map_generation(num_maps=maps, level=level)
        results.append(result)
        print(f"  Maps/sec: {result['steps_per_second']:.1f}")
        print(f"  ms/map:   {result['ms_per_step']:.3f}")
        print()

    print("Benchmarking apply_command (raw)...")
    result = benchmark_reducer(num_steps=steps)
    results.append(result)
    print(f"  Steps/sec: {result['steps_per_second']:.1f}")
    print(f"  ms/step:   {result['ms_per_step']:.3f}")
    print()

    print("Benchmarking DeliverySession...")
    result = benchmark_session(num_steps=steps)
    results.append(result)
    print(f"  Steps/sec: {result['steps_per_second']:.1f}")
    print(f"  ms/step:   {result['ms_per_step']:.3f}")
    print()

    print("Benchmarking RiderEnv (single)...")
    result = benchmark_single_env(num_steps=steps)
    results.append(result)
    print(f"  Steps/sec: {result['steps_per_second']:.1f}")
    print(f"  ms/step:   {result['ms_per_step']:.3f}")
    print()

    print("=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print()
    print(f"{'Mode':<20} {'Steps/s':>12} {'ms/step':>10}")
    print("-" * 44)

    for r in results:
        print(f"{r['mode']:<20} {r['steps_per_second']:>12.1f} {r['ms_per_step']:>10.3f}")

    return results


def main():
    parser = argparse.ArgumentParser(description="Benchmark Chill Rider performance")
    parser.add_argument("--steps", type=int, default=500, help="Steps per benchmark")
    parser.add_argument("--maps", type=int, default=200, help="Maps per generation benchmark")
    parser.add_argument("--quick", action="store_true", help="Quick benchmark (fewer steps)")

    args = parser.parse_args()

    steps = 100 if args.quick else args.steps
    maps = 20 if args.quick else args.maps

    run_all_benchmarks(steps=steps, maps=maps)

    return 0


if __name__ == "__main__":
    sys.exit(main())
