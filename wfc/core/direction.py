"""
Face directions of a grid cell.

A Direction is an Axis (X, Y, Z) with an Orientation (positive, negative).
Each of the six directions has a fixed face index, which is also the
connector numbering convention of the modules:

    connector index = submodule index * 6 + face index
    face index: +X=0, +Y=1, +Z=2, -X=3, -Y=4, -Z=5
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import List
import numpy as np

from .grid import GridCoordinate


class Axis(Enum):
    """Grid axis, valued by its solver label."""
    X = "x"
    Y = "y"
    Z = "z"

    @property
    def index(self) -> int:
        return ("x", "y", "z").index(self.value)


class Orientation(Enum):
    """Orientation along an axis."""
    POSITIVE = 1
    NEGATIVE = -1

    def flip(self) -> "Orientation":
        """Return the opposite orientation."""
        return Orientation.NEGATIVE if self == Orientation.POSITIVE else Orientation.POSITIVE


_AXES = (Axis.X, Axis.Y, Axis.Z)


@dataclass(frozen=True)
class Direction:
    """
    Submodule face direction consisting of an Axis and an Orientation.

    Equality is structural.
    """
    axis: Axis
    orientation: Orientation

    @classmethod
    def all(cls) -> List["Direction"]:
        """All six directions in face index order."""
        return [cls.from_face_index(i) for i in range(6)]

    @classmethod
    def positive(cls) -> List["Direction"]:
        """+X, +Y, +Z."""
        return [cls(axis, Orientation.POSITIVE) for axis in _AXES]

    @classmethod
    def from_face_index(cls, face_index: int) -> "Direction":
        if not 0 <= face_index < 6:
            raise ValueError(f"Face index must be 0-5, got {face_index}")
        orientation = Orientation.POSITIVE if face_index < 3 else Orientation.NEGATIVE
        return cls(_AXES[face_index % 3], orientation)

    @property
    def face_index(self) -> int:
        """
        Face index: +X=0, +Y=1, +Z=2, -X=3, -Y=4, -Z=5.

        On a single-cell module this is also the connector index.
        """
        offset = 0 if self.orientation == Orientation.POSITIVE else 3
        return self.axis.index + offset

    @property
    def axis_label(self) -> str:
        return self.axis.value

    def is_opposite(self, other: "Direction") -> bool:
        """Same axis, different orientation."""
        return self.axis == other.axis and self.orientation != other.orientation

    def flipped(self) -> "Direction":
        """Same axis, flipped orientation."""
        return Direction(self.axis, self.orientation.flip())

    def to_vector(self) -> np.ndarray:
        """Unit vector in the frame-local Cartesian system."""
        vector = np.zeros(3)
        vector[self.axis.index] = self.orientation.value
        return vector

    def to_grid_offset(self) -> GridCoordinate:
        """Unit step to the neighboring cell."""
        return GridCoordinate(*(int(v) for v in self.to_vector()))

    def __str__(self) -> str:
        sign = "+" if self.orientation == Orientation.POSITIVE else "-"
        return f"{sign}{self.axis.value.upper()}"
