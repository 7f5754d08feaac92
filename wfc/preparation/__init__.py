"""
Preparation of the external solver input.

Provides:
- Rule workflows: unwrapping, collecting, indifferent and reserved rules
- Solver input assembly and mapping the solution back to slots
- Boundary helpers for slot sets
"""

from .rules import (
    unique, outer_module, empty_module,
    unwrap_typed_rules, unwrap_rules, collect_rules,
    unused_connector_indices, indifferent_rules_for_unused,
    outer_rule, empty_rule, canonicalize_rules,
)
from .world import (
    PreparationError, SlotContradiction, SolverInput,
    prepare_solver_input, restore_slots,
)
from .boundary import boundary_neighbor_centers, boundary_slot_mask

__all__ = [
    # Rules
    "unique",
    "outer_module",
    "empty_module",
    "unwrap_typed_rules",
    "unwrap_rules",
    "collect_rules",
    "unused_connector_indices",
    "indifferent_rules_for_unused",
    "outer_rule",
    "empty_rule",
    "canonicalize_rules",
    # Solver input
    "PreparationError",
    "SlotContradiction",
    "SolverInput",
    "prepare_solver_input",
    "restore_slots",
    # Boundary
    "boundary_neighbor_centers",
    "boundary_slot_mask",
]
