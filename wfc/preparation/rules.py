"""
Rule collection workflows.

Helpers turning user-authored rule sets into what the solver consumes:
unwrapping typed rules into explicit ones, subtracting disallowed rules,
filling undescribed connectors with indifferent rules and canonicalizing.
"""

from __future__ import annotations
import logging
from typing import Iterable, List, Sequence, Set, Tuple, TypeVar

from ..config import EMPTY_MODULE_NAME, INDIFFERENT_TAG, OUTER_MODULE_NAME
from ..core.module import Module
from ..core.rules import (
    CanonicalSolverRule, Rule, RuleConstructionError, RuleExplicit, RuleTyped,
    index_modules,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


def unique(items: Iterable[T]) -> List[T]:
    """Drop duplicates, keeping the first occurrence."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def outer_module(cell_size: Sequence[float] = (1.0, 1.0, 1.0)) -> Tuple[Module, List[RuleTyped]]:
    """The reserved "out" module with its six indifferent typed rules."""
    return Module.single_cell(OUTER_MODULE_NAME, INDIFFERENT_TAG, cell_size)


def empty_module(cell_size: Sequence[float] = (1.0, 1.0, 1.0)) -> Tuple[Module, List[RuleTyped]]:
    """The reserved "empty" module with its six indifferent typed rules."""
    return Module.single_cell(EMPTY_MODULE_NAME, INDIFFERENT_TAG, cell_size)


# ===== Unwrapping =====

def unwrap_typed_rules(
    typed_rules: Sequence[RuleTyped],
    modules: Sequence[Module],
) -> List[RuleExplicit]:
    """
    Expand typed rules into explicit rules.

    Every typed rule is paired with every typed rule of the same connector
    type facing the opposite direction. The result holds each adjacency once.
    """
    by_name = index_modules(modules)
    by_type = {}
    for rule in typed_rules:
        by_type.setdefault(rule.connector_type, []).append(rule)

    explicit = []
    for group in by_type.values():
        for rule in group:
            explicit.extend(rule.to_rules_explicit(group, by_name))
    return unique(explicit)


def unwrap_rules(
    rules: Sequence[Rule],
    modules: Sequence[Module],
    include_outer: bool = True,
) -> List[Rule]:
    """
    Convert a mixed rule set to explicit rules only.

    Args:
        rules: Explicit and typed rules
        modules: Modules the rules refer to
        include_outer: Let the reserved "out" module and its indifferent
            rules take part, so indifferent connectors may face the world
            boundary

    Returns:
        Deduplicated explicit rules wrapped in Rule
    """
    modules = list(modules)
    typed = [r.as_typed for r in rules if r.is_typed]
    if include_outer:
        module_out, rules_out = outer_module(modules[0].cell_size if modules else (1.0, 1.0, 1.0))
        modules.append(module_out)
        typed.extend(rules_out)

    explicit = [r for r in rules if r.is_explicit]
    unwrapped = [Rule(r) for r in unwrap_typed_rules(typed, modules)]
    return unique(explicit + unwrapped)


def _touches_connector(rule: RuleExplicit, module_name: str, connector_index: int) -> bool:
    return ((rule.source_module_name == module_name and
             rule.source_connector_index == connector_index) or
            (rule.target_module_name == module_name and
             rule.target_connector_index == connector_index))


def collect_rules(
    modules: Sequence[Module],
    allowed: Sequence[Rule],
    disallowed: Sequence[Rule] = (),
    include_outer: bool = True,
) -> List[Rule]:
    """
    Subtract disallowed rules from allowed rules.

    Disallowed rules are unwrapped to explicit form. Allowed typed rules
    touching a connector named by a disallowed rule are unwrapped too, so the
    subtraction can remove individual pairs; the remaining typed rules stay
    typed.
    """
    modules = list(modules)
    allowed = list(allowed)

    disallowed_typed = [r.as_typed for r in disallowed if r.is_typed]
    disallowed_explicit = unique(
        [r.as_explicit for r in disallowed if r.is_explicit] +
        unwrap_typed_rules(disallowed_typed, modules)
    )

    if include_outer:
        module_out, rules_out = outer_module(modules[0].cell_size if modules else (1.0, 1.0, 1.0))
        modules.append(module_out)
        allowed.extend(Rule(r) for r in rules_out)

    by_name = index_modules(modules)
    allowed_typed = [r.as_typed for r in allowed if r.is_typed]

    result = []
    for rule in allowed:
        if rule.is_explicit:
            result.append(rule)
            continue
        typed = rule.as_typed
        if any(_touches_connector(d, typed.module_name, typed.connector_index)
               for d in disallowed_explicit):
            result.extend(Rule(r) for r in typed.to_rules_explicit(allowed_typed, by_name))
        else:
            result.append(rule)

    disallowed_set = set(Rule(r) for r in disallowed_explicit)
    collected = [r for r in unique(result) if r not in disallowed_set]
    logger.debug(f"Collected {len(collected)} rules, {len(disallowed_set)} disallowed")
    return collected


# ===== Unused connectors =====

def _used_connector_indices(module: Module, rules: Iterable[Rule]) -> Set[int]:
    used = set()
    for rule in rules:
        explicit = rule.as_explicit
        if explicit is not None:
            if explicit.source_module_name == module.name:
                used.add(explicit.source_connector_index)
            if explicit.target_module_name == module.name:
                used.add(explicit.target_connector_index)
        else:
            typed = rule.as_typed
            if typed.module_name == module.name:
                used.add(typed.connector_index)
    return used


def unused_connector_indices(
    module: Module,
    rules: Iterable[Rule],
    include_internal: bool = True,
) -> List[int]:
    """
    Connector indices of a module that no rule describes.

    Internal connectors are described by the module's own internal rules;
    with include_internal those count as described.
    """
    rules = list(rules)
    if include_internal:
        rules.extend(Rule(r) for r in module.internal_rules)
    used = _used_connector_indices(module, rules)
    return [c.connector_index for c in module.connectors if c.connector_index not in used]


def indifferent_rules_for_unused(module: Module, rules: Iterable[Rule]) -> List[Rule]:
    """Indifferent typed rules for every connector no rule describes."""
    used = _used_connector_indices(module, rules)
    return [
        Rule.typed(module.name, c.connector_index, INDIFFERENT_TAG)
        for c in module.connectors
        if c.connector_index not in used
    ]


# ===== Rules to reserved modules =====

def _reserved_rule(module: Module, connector_index: int, target_name: str) -> Rule:
    connector = module.connector(connector_index)
    if connector is None:
        raise RuleConstructionError(
            f"Module {module.name!r} does not have connector {connector_index}"
        )
    if not module.is_valid:
        raise RuleConstructionError(f"Module {module.name!r} is invalid: {module.why_invalid}")
    return Rule.explicit(module.name, connector_index,
                         target_name, connector.direction.flipped().face_index)


def outer_rule(module: Module, connector_index: int) -> Rule:
    """Rule letting a connector face the world boundary ("out")."""
    return _reserved_rule(module, connector_index, OUTER_MODULE_NAME)


def empty_rule(module: Module, connector_index: int) -> Rule:
    """Rule letting a connector face an empty cell ("empty")."""
    return _reserved_rule(module, connector_index, EMPTY_MODULE_NAME)


# ===== Solver form =====

def canonicalize_rules(
    rules: Iterable[RuleExplicit],
    modules: Sequence[Module],
) -> List[CanonicalSolverRule]:
    """
    Convert explicit rules to deduplicated solver rules.

    Rules that do not resolve to existing, opposite connectors are skipped.
    """
    by_name = index_modules(modules)
    canonical: List[CanonicalSolverRule] = []
    skipped = 0
    for rule in rules:
        solver_rule = rule.to_canonical(by_name)
        if solver_rule is None:
            skipped += 1
            continue
        canonical.append(solver_rule)
    if skipped:
        logger.debug(f"Skipped {skipped} rules that do not resolve to opposite connectors")
    return unique(canonical)
