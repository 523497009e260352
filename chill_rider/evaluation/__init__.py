"""
Evaluation Package
==================

Contains the seed bank and evaluation harness for scoring rider agents.
"""

from chill_rider.evaluation.run_eval import evaluate_agent, load_seed_bank

__all__ = ["evaluate_agent", "load_seed_bank"]
