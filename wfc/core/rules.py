"""
Adjacency rules between module connectors.

Two rule dialects describe which connectors may touch:
- RuleExplicit: a concrete pair of connectors, "a:1 -> b:4"
- RuleTyped: a connector tagged with a type, "a:1 = wood". Any two typed
  connectors sharing a type and facing opposite directions may touch.

Rule wraps exactly one of the two. Before reaching the solver every rule is
expanded to explicit form and canonicalized into a CanonicalSolverRule:
(axis, lower submodule, higher submodule), where the lower submodule sits at
the lower coordinate along the axis.

Resolution against modules never raises: unknown modules or connector
indices make predicates return False and conversions return None or [].
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import re
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Union

from .direction import Orientation

if TYPE_CHECKING:
    from .module import Connector, Module


logger = logging.getLogger(__name__)


class RuleConstructionError(ValueError):
    """Raised when a rule is built from malformed input."""


ModuleCollection = Union[Mapping[str, "Module"], Iterable["Module"]]


def index_modules(modules: ModuleCollection) -> Mapping[str, "Module"]:
    """
    Map module names to modules.

    A mapping is returned as is, so callers resolving many rules should index
    once and pass the mapping. The first module of a given name wins.
    """
    if isinstance(modules, Mapping):
        return modules
    by_name: Dict[str, Module] = {}
    for module in modules:
        by_name.setdefault(module.name, module)
    return by_name


def resolve_connector(
    modules: ModuleCollection,
    module_name: str,
    connector_index: int,
) -> Optional["Connector"]:
    """Find a connector by module name and index, None if it does not exist."""
    module = index_modules(modules).get(module_name)
    if module is None:
        return None
    return module.connector(connector_index)


def _checked_name(name: str, what: str) -> str:
    if not isinstance(name, str) or len(name) == 0:
        raise RuleConstructionError(f"{what} is empty")
    return name.lower()


def _checked_index(index: int, what: str) -> int:
    if isinstance(index, bool) or int(index) != index:
        raise RuleConstructionError(f"{what} must be an integer, got {index!r}")
    if index < 0:
        raise RuleConstructionError(f"{what} must not be negative, got {index}")
    return int(index)


@dataclass(frozen=True)
class CanonicalSolverRule:
    """
    Direction-normalized adjacency consumed by the solver.

    The submodule named lower sits at the lower coordinate along axis.
    """
    axis: str
    lower: str
    higher: str

    def __post_init__(self):
        if self.axis not in ("x", "y", "z"):
            raise RuleConstructionError(f"Axis must be one of x, y, z, got {self.axis!r}")

    def to_tuple(self):
        return (self.axis, self.lower, self.higher)

    def __str__(self) -> str:
        return f"{self.axis}: {self.lower} < {self.higher}"


@dataclass(frozen=True, eq=False)
class RuleExplicit:
    """
    Explicit connection between two connectors.

    Module names are lowercased. Equality is symmetric:
    RuleExplicit("a", 1, "b", 2) == RuleExplicit("b", 2, "a", 1).
    """
    source_module_name: str
    source_connector_index: int
    target_module_name: str
    target_connector_index: int

    def __post_init__(self):
        object.__setattr__(self, "source_module_name",
                           _checked_name(self.source_module_name, "Source module name"))
        object.__setattr__(self, "target_module_name",
                           _checked_name(self.target_module_name, "Target module name"))
        object.__setattr__(self, "source_connector_index",
                           _checked_index(self.source_connector_index, "Source connector index"))
        object.__setattr__(self, "target_connector_index",
                           _checked_index(self.target_connector_index, "Target connector index"))

    @property
    def _source(self):
        return (self.source_module_name, self.source_connector_index)

    @property
    def _target(self):
        return (self.target_module_name, self.target_connector_index)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleExplicit):
            return NotImplemented
        return ((self._source == other._source and self._target == other._target) or
                (self._source == other._target and self._target == other._source))

    def __hash__(self) -> int:
        return hash(frozenset((self._source, self._target)))

    def reversed(self) -> "RuleExplicit":
        """Same rule declared from the other end."""
        return RuleExplicit(self.target_module_name, self.target_connector_index,
                            self.source_module_name, self.source_connector_index)

    # ===== Validity =====

    @property
    def connects_to_itself(self) -> bool:
        return self._source == self._target

    @property
    def is_valid(self) -> bool:
        """Structural validity: the connector does not connect to itself."""
        return not self.connects_to_itself

    @property
    def why_invalid(self) -> str:
        if self.connects_to_itself:
            return "The connector connects to itself"
        return "The rule is valid."

    def uses_module(self, module_name: str) -> bool:
        name = module_name.lower()
        return self.source_module_name == name or self.target_module_name == name

    def is_valid_with_modules(self, modules: ModuleCollection) -> bool:
        """Both connectors exist and face opposite directions."""
        by_name = index_modules(modules)
        source = resolve_connector(by_name, self.source_module_name, self.source_connector_index)
        target = resolve_connector(by_name, self.target_module_name, self.target_connector_index)
        if source is None or target is None:
            return False
        return source.direction.is_opposite(target.direction)

    def why_invalid_with_modules(self, modules: ModuleCollection) -> str:
        by_name = index_modules(modules)
        for name, index in (self._source, self._target):
            if name not in by_name:
                return f"Rule {self} expects a non-existing module {name}"
            if by_name[name].connector(index) is None:
                return f"Rule {self} expects a non-existing connector {name}:{index}"
        if not self.is_valid_with_modules(by_name):
            return f"Connectors {self.source_module_name}:{self.source_connector_index} and " \
                   f"{self.target_module_name}:{self.target_connector_index} are not opposite"
        return "The rule is valid."

    # ===== Solver form =====

    def to_canonical(self, modules: ModuleCollection) -> Optional[CanonicalSolverRule]:
        """
        Convert to the solver's (axis, lower, higher) form.

        Each connector is resolved against its own module. Returns None if a
        connector does not exist or the connectors are not opposite.
        """
        by_name = index_modules(modules)
        source = resolve_connector(by_name, self.source_module_name, self.source_connector_index)
        target = resolve_connector(by_name, self.target_module_name, self.target_connector_index)
        if source is None or target is None:
            return None
        if not source.direction.is_opposite(target.direction):
            return None
        if source.direction.orientation == Orientation.POSITIVE:
            return CanonicalSolverRule(source.direction.axis_label,
                                       source.submodule_name,
                                       target.submodule_name)
        return CanonicalSolverRule(target.direction.axis_label,
                                   target.submodule_name,
                                   source.submodule_name)

    def __str__(self) -> str:
        return (f"{self.source_module_name}:{self.source_connector_index} -> "
                f"{self.target_module_name}:{self.target_connector_index}")

    def __repr__(self) -> str:
        return f"RuleExplicit({self})"


@dataclass(frozen=True)
class RuleTyped:
    """
    Connector tagged with a connector type.

    Module name and type are lowercased (not case sensitive).
    """
    module_name: str
    connector_index: int
    connector_type: str

    def __post_init__(self):
        object.__setattr__(self, "module_name", _checked_name(self.module_name, "Module name"))
        object.__setattr__(self, "connector_index",
                           _checked_index(self.connector_index, "Connector index"))
        object.__setattr__(self, "connector_type",
                           _checked_name(self.connector_type, "Connector type name"))

    @property
    def is_valid(self) -> bool:
        # Malformed input is rejected by the constructor
        return True

    @property
    def why_invalid(self) -> str:
        return "The rule is valid."

    def uses_module(self, module_name: str) -> bool:
        return self.module_name == module_name.lower()

    def is_valid_with_modules(self, modules: ModuleCollection) -> bool:
        """The module exists and has the connector."""
        return resolve_connector(modules, self.module_name, self.connector_index) is not None

    def why_invalid_with_modules(self, modules: ModuleCollection) -> str:
        by_name = index_modules(modules)
        if self.module_name not in by_name:
            return f"Rule {self} expects a non-existing module {self.module_name}"
        if not self.is_valid_with_modules(by_name):
            return f"Rule {self} expects a non-existing connector {self.connector_index}"
        return "The rule is valid."

    def to_rules_explicit(
        self,
        other_rules: Iterable["RuleTyped"],
        modules: ModuleCollection,
    ) -> List[RuleExplicit]:
        """
        Explicit rules implied by this rule and other typed rules.

        Pairs this connector with every connector of the same type facing the
        opposite direction. Rules that do not resolve to a real connector are
        skipped.
        """
        by_name = index_modules(modules)
        source = resolve_connector(by_name, self.module_name, self.connector_index)
        if source is None:
            logger.debug(f"Skipping {self}: connector does not exist")
            return []

        rules = []
        for other in other_rules:
            if other.connector_type != self.connector_type:
                continue
            target = resolve_connector(by_name, other.module_name, other.connector_index)
            if target is None:
                logger.debug(f"Skipping {other}: connector does not exist")
                continue
            if target.direction.is_opposite(source.direction):
                rules.append(RuleExplicit(self.module_name, self.connector_index,
                                          other.module_name, other.connector_index))
        return rules

    def __str__(self) -> str:
        return f"{self.module_name}:{self.connector_index} = {self.connector_type}"

    def __repr__(self) -> str:
        return f"RuleTyped({self})"


RuleVariant = Union[RuleExplicit, RuleTyped]


@dataclass(frozen=True)
class Rule:
    """
    A connection rule holding exactly one RuleExplicit or RuleTyped.

    Example:
        Rule.explicit("a", 0, "b", 3)
        Rule.typed("a", 0, "wood")
        Rule(RuleTyped("a", 0, "wood")).is_typed   # True
    """
    variant: RuleVariant

    def __post_init__(self):
        if not isinstance(self.variant, (RuleExplicit, RuleTyped)):
            raise RuleConstructionError(
                f"Rule must wrap a RuleExplicit or a RuleTyped, got {type(self.variant).__name__}"
            )

    @classmethod
    def explicit(
        cls,
        source_module_name: str,
        source_connector_index: int,
        target_module_name: str,
        target_connector_index: int,
    ) -> "Rule":
        return cls(RuleExplicit(source_module_name, source_connector_index,
                                target_module_name, target_connector_index))

    @classmethod
    def typed(cls, module_name: str, connector_index: int, connector_type: str) -> "Rule":
        return cls(RuleTyped(module_name, connector_index, connector_type))

    @property
    def is_explicit(self) -> bool:
        return isinstance(self.variant, RuleExplicit)

    @property
    def is_typed(self) -> bool:
        return isinstance(self.variant, RuleTyped)

    @property
    def as_explicit(self) -> Optional[RuleExplicit]:
        return self.variant if self.is_explicit else None

    @property
    def as_typed(self) -> Optional[RuleTyped]:
        return self.variant if self.is_typed else None

    @property
    def is_valid(self) -> bool:
        return self.variant.is_valid

    @property
    def why_invalid(self) -> str:
        return self.variant.why_invalid

    def is_valid_with_modules(self, modules: ModuleCollection) -> bool:
        return self.variant.is_valid_with_modules(modules)

    def why_invalid_with_modules(self, modules: ModuleCollection) -> str:
        return self.variant.why_invalid_with_modules(modules)

    def uses_module(self, module_name: str) -> bool:
        return self.variant.uses_module(module_name)

    def __str__(self) -> str:
        return str(self.variant)


# ===== Textual notation =====

_EXPLICIT_PATTERN = re.compile(
    r"^\s*([^:=\s][^:=]*?)\s*:\s*(\d+)\s*->\s*([^:=\s][^:=]*?)\s*:\s*(\d+)\s*$")
_TYPED_PATTERN = re.compile(r"^\s*([^:=\s][^:=]*?)\s*:\s*(\d+)\s*=\s*([^:=\s][^:=]*?)\s*$")


def parse_rule(text: str) -> Rule:
    """
    Parse a rule from its textual notation.

    Accepts:
    - Explicit: "a:1 -> b:4"
    - Typed: "a:1 = wood"

    Raises:
        RuleConstructionError: if the text matches neither notation
    """
    match = _EXPLICIT_PATTERN.match(text)
    if match:
        source, source_index, target, target_index = match.groups()
        return Rule.explicit(source, int(source_index), target, int(target_index))
    match = _TYPED_PATTERN.match(text)
    if match:
        name, index, connector_type = match.groups()
        return Rule.typed(name, int(index), connector_type)
    raise RuleConstructionError(f"Cannot parse rule: {text!r}")
