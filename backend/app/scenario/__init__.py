"""Seed scenarios shipped as YAML."""
from .loader import list_scenarios, load_seed_scenario

__all__ = ["list_scenarios", "load_seed_scenario"]
