"""
Solver input assembly.

Turns user slots, modules and rules into what the external solver consumes:
- canonical solver rules (axis, lower submodule, higher submodule)
- a rectangular world block of slots, X varying fastest, where every cell
  outside the user slots holds the reserved "out" module
- the block index of every user slot, to map the solution back

Validation follows a fixed order; unusable slots, rules and modules are
dropped with a warning, while problems that make the whole input unusable
raise PreparationError.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..config import OUTER_MODULE_NAME, PreparationParams
from ..core.grid import GridCoordinate, block_bounds, block_length
from ..core.module import Module
from ..core.rules import CanonicalSolverRule, Rule, index_modules
from ..core.slot import (
    Slot, are_slot_cell_sizes_compatible, are_slot_frames_compatible,
    are_slot_locations_unique,
)
from .rules import canonicalize_rules, outer_module, unique, unused_connector_indices, unwrap_typed_rules


logger = logging.getLogger(__name__)


class PreparationError(Exception):
    """Raised when the solver input cannot be assembled."""


class SlotContradiction(PreparationError):
    """Raised when one or more slots allow no module after unwrapping."""
    def __init__(self, slots: List[Slot], message: str = ""):
        self.slots = slots
        super().__init__(
            message or f"Slots allow no module to be placed: "
                       f"{', '.join(str(s.relative_center) for s in slots)}"
        )


@dataclass
class SolverInput:
    """
    Everything the external solver needs for one run.

    Attributes:
        rules: Deduplicated canonical solver rules
        world_min, world_max: Inclusive world block bounds
        slots: World block slots, index = GridCoordinate.to_1d(world_min, world_max)
        slot_order: Block index of every user slot, in input order
        modules: Usable modules followed by the "out" module
        all_submodules_count: Submodule count of the usable modules
        warnings: Messages about dropped input
    """
    rules: List[CanonicalSolverRule]
    world_min: GridCoordinate
    world_max: GridCoordinate
    slots: List[Slot]
    slot_order: List[int]
    modules: List[Module]
    all_submodules_count: int
    warnings: List[str] = field(default_factory=list)

    @property
    def world_size(self) -> GridCoordinate:
        return self.world_max - self.world_min + GridCoordinate(1, 1, 1)

    @property
    def part_names(self) -> List[str]:
        """Submodule names in order of first appearance in the rules."""
        return unique(name for rule in self.rules for name in (rule.lower, rule.higher))

    def submodule_to_module(self) -> Dict[str, str]:
        return {
            submodule: module.name
            for module in self.modules
            for submodule in module.submodule_names
        }

    def to_dict(self) -> Dict[str, Any]:
        """Plain data form of the solver input."""
        first = self.slots[0]
        return {
            "world_min": self.world_min.to_tuple(),
            "world_max": self.world_max.to_tuple(),
            "world_size": self.world_size.to_tuple(),
            "cell_size": list(first.cell_size),
            "base_frame": {
                "origin": list(first.base_frame.origin),
                "x_axis": list(first.base_frame.x_axis),
                "y_axis": list(first.base_frame.y_axis),
            },
            "part_names": self.part_names,
            "rules": [
                {"axis": r.axis, "lower": r.lower, "higher": r.higher}
                for r in self.rules
            ],
            "modules": [
                {"name": m.name, "submodules": list(m.submodule_names)}
                for m in self.modules
            ],
            "all_submodules_count": self.all_submodules_count,
            "slots": [list(s.allowed_submodule_names) for s in self.slots],
            "slot_order": list(self.slot_order),
            "warnings": list(self.warnings),
        }


# ===== Preparation steps =====

class _Report:
    """Collects warnings and mirrors them to the log."""

    def __init__(self):
        self.warnings: List[str] = []

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def _drop_invalid(slots, modules, rules, report: _Report):
    valid_slots = [s for s in slots if s.is_valid]
    valid_rules = [r for r in rules if r.is_valid]
    valid_modules = [m for m in modules if m.is_valid]

    for what, before, after in (("Slots", slots, valid_slots),
                                ("Rules", rules, valid_rules),
                                ("Modules", modules, valid_modules)):
        removed = len(before) - len(after)
        if removed > 0:
            report.warn(f"{removed} {what} are invalid and were removed.")

    return valid_slots, valid_modules, valid_rules


def _select_used_modules(slots, modules, rules, report: _Report) -> List[Module]:
    if any(s.allows_any_module for s in slots):
        return list(modules)

    allowed_names = set(name for s in slots for name in s.allowed_module_names)
    used = []
    for module in modules:
        if module.name not in allowed_names:
            report.warn(f'Module "{module.name}" will be excluded from the solution '
                        f'because it is not allowed in any Slot.')
            continue
        if not any(r.uses_module(module.name) for r in rules):
            report.warn(f'Module "{module.name}" will be excluded from the solution '
                        f'because no Rule uses it.')
            continue
        used.append(module)
    return used


def _check_compatibility(slots: List[Slot], modules: List[Module]) -> None:
    if not are_slot_cell_sizes_compatible(slots):
        raise PreparationError("Slots are not defined with the same cell size.")
    if not are_slot_frames_compatible(slots):
        raise PreparationError("Slots are not defined with the same base frame.")
    if not are_slot_locations_unique(slots):
        raise PreparationError("Slot centers are not unique.")

    module_size = np.asarray(modules[0].cell_size)
    if any(not np.allclose(m.cell_size, module_size) for m in modules):
        raise PreparationError("Modules are not defined with the same cell size.")

    names = [m.name for m in modules]
    if len(set(names)) != len(names):
        raise PreparationError("Module names are not unique.")

    submodule_names = [n for m in modules for n in m.submodule_names]
    if len(set(submodule_names)) != len(submodule_names):
        duplicates = sorted(set(n for n in submodule_names if submodule_names.count(n) > 1))
        raise PreparationError(f"Submodule names are not unique: {', '.join(duplicates)}")

    if not np.allclose(module_size, slots[0].cell_size):
        raise PreparationError("Modules and slots are not defined with the same cell size.")


def _drop_incomplete_modules(
    modules: List[Module],
    rules: List[Rule],
    include_internal: bool,
    report: _Report,
) -> List[Module]:
    usable = []
    for module in modules:
        unused = unused_connector_indices(module, rules, include_internal)
        if unused:
            report.warn(f'Module "{module.name}" will be excluded from the solution. '
                        f'Connectors not described by any Rule: {", ".join(map(str, unused))}')
        else:
            usable.append(module)
    return usable


def _unwrap_slots(
    slots: List[Slot],
    modules: List[Module],
    all_count: int,
    report: _Report,
) -> List[Slot]:
    """Replace "allows any" and module-name lists by explicit submodule lists."""
    by_name = {m.name: m for m in modules}
    module_names = [m.name for m in modules]
    submodule_names = [n for m in modules for n in m.submodule_names]
    owner = {n: m.name for m in modules for n in m.submodule_names}

    unknown = unique(n for s in slots for n in s.allowed_module_names if n not in by_name)
    for name in unknown:
        report.warn(f'Slot refers to unused Module "{name}".')

    fallbacks = 0
    unwrapped = []
    for slot in slots:
        if slot.allows_any_module:
            unwrapped.append(replace(slot,
                                     allows_any_module=False,
                                     allowed_module_names=tuple(module_names),
                                     allowed_submodule_names=tuple(submodule_names),
                                     all_submodules_count=all_count))
            continue

        parts = slot.allowed_submodule_names
        if parts and all(p in owner for p in parts):
            unwrapped.append(slot
                             .with_allowed_module_names(unique(owner[p] for p in parts))
                             .with_all_submodules_count(all_count))
            continue
        if parts:
            fallbacks += 1

        names = [n for n in slot.allowed_module_names if n in by_name]
        parts = [p for n in names for p in by_name[n].submodule_names]
        unwrapped.append(slot
                         .with_allowed_module_names(names)
                         .with_allowed_submodules(parts, all_count))

    if fallbacks:
        report.warn(f"{fallbacks} Slots refer to unavailable submodules. "
                    f"Falling back to Module names.")
    return unwrapped


def prepare_solver_input(
    slots: Sequence[Slot],
    modules: Sequence[Module],
    rules: Sequence[Rule],
    params: Optional[PreparationParams] = None,
) -> SolverInput:
    """
    Validate the input and assemble the solver input.

    Args:
        slots: User slots, each allowing any module or a list of modules
        modules: Available modules
        rules: Explicit and typed rules
        params: Preparation parameters

    Returns:
        SolverInput with canonical rules and the world block of slots

    Raises:
        PreparationError: nothing usable remains, incompatible slots or
            modules, too many submodules or a world block that is too large
        SlotContradiction: a slot allows no usable module
    """
    params = params or PreparationParams()
    report = _Report()

    slots, modules, rules = _drop_invalid(list(slots), list(modules), list(rules), report)
    if not slots:
        raise PreparationError("No valid Slots collected.")

    modules = _select_used_modules(slots, modules, rules, report)
    if not modules:
        raise PreparationError("No valid Modules collected.")

    by_name = index_modules(modules)
    kept_rules = [r for r in rules
                  if r.uses_module(OUTER_MODULE_NAME) or r.is_valid_with_modules(by_name)]
    if len(kept_rules) < len(rules):
        report.warn(f"{len(rules) - len(kept_rules)} Rules will be excluded from the solution "
                    f"because they do not refer to any existing Module.")
    if not kept_rules:
        raise PreparationError("No valid Rules collected.")

    _check_compatibility(slots, modules)

    if params.drop_incomplete_modules:
        modules = _drop_incomplete_modules(modules, kept_rules,
                                           params.include_internal_rules, report)
        if not modules:
            raise PreparationError("There are no Modules with all connectors described "
                                   "by the given Rules.")

    all_count = sum(m.submodule_count for m in modules)
    if all_count > params.max_parts:
        raise PreparationError(f"Too many Module parts: {all_count}. "
                               f"Maximum allowed: {params.max_parts}.")

    unwrapped = _unwrap_slots(slots, modules, all_count, report)
    contradictory = [s for s in unwrapped if s.allows_nothing]
    if contradictory:
        raise SlotContradiction(contradictory)

    # Rules, with the world boundary as an indifferent "out" module
    module_out, rules_out = outer_module(modules[0].cell_size)
    modules_with_boundary = modules + [module_out]
    all_rules = kept_rules + [Rule(r) for r in rules_out]

    typed = [r.as_typed for r in all_rules if r.is_typed]
    explicit = unique([r.as_explicit for r in all_rules if r.is_explicit] +
                      unwrap_typed_rules(typed, modules_with_boundary))
    solver_rules = canonicalize_rules(explicit, modules_with_boundary)
    if params.include_internal_rules:
        internal = [r for m in modules_with_boundary for r in m.internal_rules]
        solver_rules = unique(solver_rules + canonicalize_rules(internal, modules_with_boundary))
    if not solver_rules:
        raise PreparationError("No Rule resolves to a pair of opposite connectors.")

    # World block
    world_min, world_max = block_bounds([s.relative_center for s in unwrapped], params.padding)
    world_size = world_max - world_min + GridCoordinate(1, 1, 1)
    if not world_size.fits_extent(params.max_world_extent):
        raise PreparationError(f"The world size {world_size} exceeds the maximum extent "
                               f"of {params.max_world_extent} in some direction.")

    world_slots: List[Optional[Slot]] = [None] * block_length(world_min, world_max)
    slot_order = []
    for slot in unwrapped:
        index = slot.relative_center.to_1d(world_min, world_max)
        world_slots[index] = slot
        slot_order.append(index)

    frame = unwrapped[0].base_frame
    cell_size = unwrapped[0].cell_size
    for index, slot in enumerate(world_slots):
        if slot is None:
            world_slots[index] = Slot(frame,
                                      GridCoordinate.from_1d(index, world_min, world_max),
                                      cell_size,
                                      allowed_module_names=(module_out.name,),
                                      allowed_submodule_names=module_out.submodule_names,
                                      all_submodules_count=all_count)

    logger.info(f"Prepared {len(solver_rules)} solver rules for {len(modules)} modules "
                f"({all_count} parts) in a {world_size} world")

    return SolverInput(
        rules=solver_rules,
        world_min=world_min,
        world_max=world_max,
        slots=world_slots,
        slot_order=slot_order,
        modules=modules_with_boundary,
        all_submodules_count=all_count,
        warnings=report.warnings,
    )


def restore_slots(
    solver_input: SolverInput,
    solved_submodule_names: Sequence[Sequence[str]],
) -> List[Slot]:
    """
    Map the solver output back to the user slots.

    Args:
        solver_input: Input the solver was run with
        solved_submodule_names: Allowed submodule names per world block cell

    Returns:
        One slot per user slot, in input order. Cells the solver did not
        report keep their prepared slot.

    Raises:
        PreparationError: the solver reports an unknown submodule
    """
    owner = solver_input.submodule_to_module()
    restored = []
    for index in solver_input.slot_order:
        slot = solver_input.slots[index]
        if index >= len(solved_submodule_names):
            restored.append(slot)
            continue

        parts = list(solved_submodule_names[index])
        unknown = [p for p in parts if p not in owner]
        if unknown:
            raise PreparationError(f"Solver reported unknown submodules: {', '.join(unknown)}")

        restored.append(slot
                        .with_allowed_module_names(unique(owner[p] for p in parts))
                        .with_allowed_submodules(parts, solver_input.all_submodules_count))
    return restored
