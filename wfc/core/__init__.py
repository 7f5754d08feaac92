"""
Core adjacency-rule model.

Contains:
- GridCoordinate, BaseFrame: integer world lattice and its continuous placement
- Direction: the six face directions and the face index convention
- Module, Connector: rigid assemblies of cells with derived connectors
- Rule, RuleExplicit, RuleTyped, CanonicalSolverRule: adjacency rules
- Slot: immutable per-cell candidate sets
"""

from .grid import (
    BaseFrame, GridCoordinate, as_cell_size,
    block_bounds, block_length, occupancy_grid,
)
from .direction import Axis, Orientation, Direction
from .rules import (
    Rule, RuleExplicit, RuleTyped, CanonicalSolverRule,
    RuleConstructionError, parse_rule, index_modules, resolve_connector,
)
from .module import (
    Module, ModuleConstructionError, Connector, ConnectorFace, Valence,
    validate_module_name,
)
from .slot import (
    Slot, SlotCategory, SlotConstructionError,
    are_slot_locations_unique, are_slot_cell_sizes_compatible,
    are_slot_frames_compatible,
)

__all__ = [
    # Grid
    "BaseFrame",
    "GridCoordinate",
    "as_cell_size",
    "block_bounds",
    "block_length",
    "occupancy_grid",
    # Directions
    "Axis",
    "Orientation",
    "Direction",
    # Rules
    "Rule",
    "RuleExplicit",
    "RuleTyped",
    "CanonicalSolverRule",
    "RuleConstructionError",
    "parse_rule",
    "index_modules",
    "resolve_connector",
    # Modules
    "Module",
    "ModuleConstructionError",
    "Connector",
    "ConnectorFace",
    "Valence",
    "validate_module_name",
    # Slots
    "Slot",
    "SlotCategory",
    "SlotConstructionError",
    "are_slot_locations_unique",
    "are_slot_cell_sizes_compatible",
    "are_slot_frames_compatible",
]
