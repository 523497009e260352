"""
Baseline Greedy Agent Package

A breadth-first-search courier that rides to the nearest shop, house or
coin. Serves as a benchmark and example.
"""

from .agent import RiderAgent, create_agent

__all__ = ["RiderAgent", "create_agent"]
