"""
Chill Rider Package
===================

Simulation core and evaluation harness for Chill Rider, a tile-based
delivery arcade game on a wrapping grid.

- rider_core: map generation, movement reducer, delivery session, Gymnasium env
- evaluation: seed-bank evaluation of agents

All tunable parameters are in game_config.yaml.
"""
