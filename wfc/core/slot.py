"""
Slots: world grid cells and their remaining candidate sets.

A Slot is an immutable value. The solver narrows a slot by building a new
one with some fields replaced (the with_* methods), so earlier snapshots
stay valid for backtracking.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple
import numpy as np

from ..config import (
    CAGE_EVERYTHING_COLOR, CAGE_NONE_COLOR, CAGE_ONE_COLOR, CAGE_TWO_COLOR,
    CAGE_UNKNOWN_COLOR, RESERVED_CHARS, RGBA,
)
from .grid import BaseFrame, CellSize, GridCoordinate, as_cell_size


class SlotConstructionError(ValueError):
    """Raised when a Slot is built from malformed input."""


class SlotCategory(Enum):
    """Display category of a slot candidate set."""
    ANY = "any"                # Allows any module
    NONE = "none"              # Contradiction
    DETERMINED = "determined"  # Exactly one submodule left
    PARTIAL = "partial"        # Several submodules left
    UNKNOWN = "unknown"        # Submodule universe not known yet


def _unique_names(names: Iterable[str], what: str) -> Tuple[str, ...]:
    """Lowercase, drop duplicates and keep the first-seen order."""
    if isinstance(names, str):
        raise SlotConstructionError(f"{what} must be a list of names, got the string {names!r}")
    result = []
    seen = set()
    for name in names:
        if not isinstance(name, str) or len(name) == 0:
            raise SlotConstructionError(f"{what} contains an empty name")
        for chars in RESERVED_CHARS:
            if chars in name:
                raise SlotConstructionError(
                    f"{what} name {name!r} contains a forbidden content: {chars!r}"
                )
        lowered = name.lower()
        if lowered not in seen:
            seen.add(lowered)
            result.append(lowered)
    return tuple(result)


def _lerp_color(start: RGBA, end: RGBA, t: float) -> RGBA:
    start_array = np.asarray(start, dtype=float)
    end_array = np.asarray(end, dtype=float)
    mixed = start_array + (end_array - start_array) * float(np.clip(t, 0.0, 1.0))
    return tuple(int(v) for v in np.rint(mixed))


@dataclass(frozen=True)
class Slot:
    """
    One cell of the world grid with its allowed modules and submodules.

    Attributes:
        base_frame: Frame of the world grid
        relative_center: Grid coordinate of the cell
        cell_size: Per-axis cell size, components > 0
        allows_any_module: Any module may be placed here
        allowed_module_names: Allowed module names, ordered, without duplicates
        allowed_submodule_names: Allowed submodule names, ordered, without duplicates
        all_submodules_count: Size of the submodule universe (entropy denominator)
    """
    base_frame: BaseFrame
    relative_center: GridCoordinate
    cell_size: CellSize
    allows_any_module: bool = False
    allowed_module_names: Tuple[str, ...] = ()
    allowed_submodule_names: Tuple[str, ...] = ()
    all_submodules_count: int = 0

    def __post_init__(self):
        try:
            object.__setattr__(self, "cell_size", as_cell_size(self.cell_size))
        except ValueError as e:
            raise SlotConstructionError(str(e)) from e

        if not isinstance(self.relative_center, GridCoordinate):
            object.__setattr__(self, "relative_center",
                               GridCoordinate.from_sequence(self.relative_center))

        object.__setattr__(self, "allowed_module_names",
                           _unique_names(self.allowed_module_names, "Allowed module"))
        object.__setattr__(self, "allowed_submodule_names",
                           _unique_names(self.allowed_submodule_names, "Allowed submodule"))

        if self.all_submodules_count < 0:
            raise SlotConstructionError(
                f"All submodules count must not be negative, got {self.all_submodules_count}"
            )

    # ===== Factories =====

    @classmethod
    def allowing_all(
        cls,
        point: Sequence[float],
        base_frame: BaseFrame,
        cell_size: Sequence[float],
    ) -> "Slot":
        """Slot at the cell nearest to a world point, allowing any module."""
        size = cls._checked_size(cell_size)
        center = GridCoordinate.from_cartesian(point, base_frame, size)
        return cls(base_frame, center, size, allows_any_module=True)

    @classmethod
    def allowing_modules(
        cls,
        point: Sequence[float],
        base_frame: BaseFrame,
        cell_size: Sequence[float],
        module_names: Iterable[str],
        all_modules: Optional[Sequence] = None,
    ) -> "Slot":
        """
        Slot at the cell nearest to a world point, allowing the named modules.

        When all_modules is given, the allowed submodule names and the
        submodule universe size are filled in from it.
        """
        size = cls._checked_size(cell_size)
        center = GridCoordinate.from_cartesian(point, base_frame, size)
        names = _unique_names(module_names, "Allowed module")

        submodule_names: Tuple[str, ...] = ()
        all_count = 0
        if all_modules is not None:
            all_count = sum(m.submodule_count for m in all_modules)
            submodule_names = tuple(
                submodule
                for m in all_modules if m.name in names
                for submodule in m.submodule_names
            )

        return cls(base_frame, center, size,
                   allows_any_module=False,
                   allowed_module_names=names,
                   allowed_submodule_names=submodule_names,
                   all_submodules_count=all_count)

    @staticmethod
    def _checked_size(cell_size: Sequence[float]) -> CellSize:
        try:
            return as_cell_size(cell_size)
        except ValueError as e:
            raise SlotConstructionError(str(e)) from e

    # ===== Evolution =====

    def with_allowed_module_names(self, names: Iterable[str]) -> "Slot":
        return replace(self, allowed_module_names=tuple(names))

    def with_all_submodules_count(self, count: int) -> "Slot":
        return replace(self, all_submodules_count=count)

    def with_allowed_submodules(self, names: Iterable[str], count: int) -> "Slot":
        """Replace the allowed submodule names together with the universe size."""
        return replace(self, allowed_submodule_names=tuple(names), all_submodules_count=count)

    # ===== Candidate set =====

    @property
    def allows_nothing(self) -> bool:
        """Contradiction: no module may be placed here."""
        return not self.allows_any_module and len(self.allowed_module_names) == 0

    @property
    def is_valid(self) -> bool:
        return not self.allows_nothing

    @property
    def why_invalid(self) -> str:
        if self.allows_nothing:
            return "The slot allows no module to be placed."
        return "The slot is valid."

    @property
    def entropy(self) -> int:
        """Number of submodules still allowed."""
        return len(self.allowed_submodule_names)

    @property
    def normalized_entropy(self) -> float:
        """Allowed submodules relative to the whole universe, 0 when unknown."""
        if self.all_submodules_count == 0:
            return 0.0
        return self.entropy / self.all_submodules_count

    @property
    def is_deterministic(self) -> bool:
        return self.entropy == 1

    @property
    def absolute_center(self) -> np.ndarray:
        return self.relative_center.to_cartesian(self.base_frame, self.cell_size)

    @property
    def category(self) -> SlotCategory:
        if self.allows_any_module:
            return SlotCategory.ANY
        if self.allows_nothing:
            return SlotCategory.NONE
        if self.all_submodules_count == 0:
            return SlotCategory.UNKNOWN
        if self.entropy == 1:
            return SlotCategory.DETERMINED
        return SlotCategory.PARTIAL

    @property
    def cage_color(self) -> RGBA:
        """
        RGBA preview color of the slot cage.

        Partially collapsed slots blend from the two-candidate color towards
        the everything color as the entropy grows.
        """
        category = self.category
        if category == SlotCategory.ANY:
            return CAGE_EVERYTHING_COLOR
        if category == SlotCategory.NONE:
            return CAGE_NONE_COLOR
        if category == SlotCategory.UNKNOWN:
            return CAGE_UNKNOWN_COLOR
        if category == SlotCategory.DETERMINED:
            return CAGE_ONE_COLOR
        return _lerp_color(CAGE_TWO_COLOR, CAGE_EVERYTHING_COLOR, self.normalized_entropy)

    def __str__(self) -> str:
        if self.allows_any_module:
            content = "any module"
        elif self.allows_nothing:
            content = "nothing"
        else:
            content = ", ".join(self.allowed_module_names)
        return f"Slot {self.relative_center} allows {content}"


# ===== Slot collections =====

def are_slot_locations_unique(slots: Sequence[Slot]) -> bool:
    centers = [s.relative_center for s in slots]
    return len(set(centers)) == len(centers)


def are_slot_cell_sizes_compatible(slots: Sequence[Slot], tolerance: float = 1e-9) -> bool:
    if len(slots) == 0:
        return True
    first = np.asarray(slots[0].cell_size)
    return all(np.allclose(s.cell_size, first, atol=tolerance) for s in slots[1:])


def are_slot_frames_compatible(slots: Sequence[Slot], tolerance: float = 1e-9) -> bool:
    if len(slots) == 0:
        return True
    first = slots[0].base_frame
    return all(s.base_frame.is_close(first, tolerance) for s in slots[1:])
