"""
WFC adjacency-rule toolkit

Models discrete building blocks ("modules") of a 3D voxel grid, the face
connectors between them and the adjacency rules an external Wave Function
Collapse solver consumes.

Main components:
- core: grid, directions, modules, rules, slots
- preparation: rule workflows, solver input assembly, boundary helpers
- storage: JSON persistence of scenes and solver input
"""

__version__ = "0.1.0"
__author__ = "WFC Toolkit Team"

from .core import (
    BaseFrame, GridCoordinate, Direction, Module, Connector,
    Rule, RuleExplicit, RuleTyped, CanonicalSolverRule, Slot, parse_rule,
)
from .preparation import PreparationError, SolverInput, prepare_solver_input
from .config import WFCConfig

__all__ = [
    "BaseFrame",
    "GridCoordinate",
    "Direction",
    "Module",
    "Connector",
    "Rule",
    "RuleExplicit",
    "RuleTyped",
    "CanonicalSolverRule",
    "Slot",
    "parse_rule",
    "PreparationError",
    "SolverInput",
    "prepare_solver_input",
    "WFCConfig",
]
