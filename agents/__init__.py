"""
Xiangqi Mahjong Agents
"""

from .heuristic_agent import HeuristicAgent
from .random_agent import RandomAgent

__all__ = [
    "HeuristicAgent",
    "RandomAgent",
]
