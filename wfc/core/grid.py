"""
Integer grid coordinates and the base frame of the voxel world.

The world is a regular 3D lattice of cuboid cells. A cell is addressed by an
integer GridCoordinate; its continuous position is obtained by scaling the
coordinate with the per-axis cell size and placing the result into a
BaseFrame (origin + orthonormal axes):

    point = origin + R @ (coordinate * cell_size)

The inverse divides by the cell size after the inverse rigid transform and
rounds to the nearest lattice point.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence, Tuple
import numpy as np


CellSize = Tuple[float, float, float]


def as_cell_size(value: Sequence[float]) -> CellSize:
    """
    Validate a per-axis cell size.

    Raises:
        ValueError: if it does not have three strictly positive components
    """
    components = tuple(float(v) for v in value)
    if len(components) != 3:
        raise ValueError(f"Cell size must have 3 components, got {len(components)}")
    if any(not np.isfinite(v) or v <= 0 for v in components):
        raise ValueError(f"One or more cell size components are not larger than 0: {components}")
    return components


@dataclass(frozen=True)
class BaseFrame:
    """
    Rigid coordinate system of a module or a slot.

    Attributes:
        origin: Frame origin in world coordinates
        x_axis, y_axis, z_axis: Orthonormal, right-handed frame axes
    """
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    x_axis: Tuple[float, float, float] = (1.0, 0.0, 0.0)
    y_axis: Tuple[float, float, float] = (0.0, 1.0, 0.0)
    z_axis: Tuple[float, float, float] = (0.0, 0.0, 1.0)

    def __post_init__(self):
        for name in ("origin", "x_axis", "y_axis", "z_axis"):
            vector = tuple(float(v) for v in getattr(self, name))
            if len(vector) != 3:
                raise ValueError(f"{name} must have 3 components")
            object.__setattr__(self, name, vector)

        if not np.allclose(self.rotation.T @ self.rotation, np.eye(3), atol=1e-9):
            raise ValueError("Frame axes are not orthonormal")
        if np.linalg.det(self.rotation) <= 0:
            raise ValueError("Frame axes are not right-handed")

    @classmethod
    def world(cls) -> "BaseFrame":
        """The world XY frame."""
        return cls()

    @classmethod
    def from_axes(
        cls,
        origin: Sequence[float],
        x_axis: Sequence[float],
        y_axis: Sequence[float],
    ) -> "BaseFrame":
        """
        Build a frame from an origin and two in-plane directions.

        The X axis is normalized, the Y axis is orthogonalized against it and
        Z completes a right-handed system.
        """
        x = np.asarray(x_axis, dtype=float)
        y = np.asarray(y_axis, dtype=float)
        if np.linalg.norm(x) == 0:
            raise ValueError("X axis has zero length")
        x = x / np.linalg.norm(x)
        y = y - np.dot(y, x) * x
        if np.linalg.norm(y) < 1e-12:
            raise ValueError("Y axis is parallel to X axis")
        y = y / np.linalg.norm(y)
        z = np.cross(x, y)
        return cls(
            origin=tuple(np.asarray(origin, dtype=float)),
            x_axis=tuple(x),
            y_axis=tuple(y),
            z_axis=tuple(z),
        )

    @property
    def rotation(self) -> np.ndarray:
        """3x3 matrix with the frame axes as columns."""
        return np.column_stack([self.x_axis, self.y_axis, self.z_axis])

    def to_world(self, local: Sequence[float]) -> np.ndarray:
        """Map a point from frame-local to world coordinates."""
        return np.asarray(self.origin) + self.rotation @ np.asarray(local, dtype=float)

    def to_local(self, point: Sequence[float]) -> np.ndarray:
        """Map a world point to frame-local coordinates."""
        return self.rotation.T @ (np.asarray(point, dtype=float) - np.asarray(self.origin))

    def with_origin(self, origin: Sequence[float]) -> "BaseFrame":
        """Same orientation, different origin."""
        return BaseFrame(tuple(origin), self.x_axis, self.y_axis, self.z_axis)

    def is_close(self, other: "BaseFrame", tolerance: float = 1e-9) -> bool:
        """Check if two frames coincide within tolerance."""
        return all(
            np.allclose(getattr(self, name), getattr(other, name), atol=tolerance)
            for name in ("origin", "x_axis", "y_axis", "z_axis")
        )


@dataclass(frozen=True, order=True)
class GridCoordinate:
    """
    Integer lattice point of the world grid.

    Used both for submodule positions relative to a module base frame and for
    slot positions relative to the world base frame.
    """
    x: int
    y: int
    z: int

    def __post_init__(self):
        for name in ("x", "y", "z"):
            value = getattr(self, name)
            if isinstance(value, bool) or int(value) != value:
                raise ValueError(f"Grid coordinate {name} must be an integer, got {value!r}")
            object.__setattr__(self, name, int(value))

    @classmethod
    def origin(cls) -> "GridCoordinate":
        return cls(0, 0, 0)

    @classmethod
    def from_sequence(cls, values: Sequence[int]) -> "GridCoordinate":
        if len(values) != 3:
            raise ValueError(f"Grid coordinate needs 3 components, got {len(values)}")
        return cls(*values)

    def __add__(self, other: "GridCoordinate") -> "GridCoordinate":
        return GridCoordinate(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "GridCoordinate") -> "GridCoordinate":
        return GridCoordinate(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> "GridCoordinate":
        return GridCoordinate(-self.x, -self.y, -self.z)

    def __iter__(self) -> Iterator[int]:
        return iter((self.x, self.y, self.z))

    def to_tuple(self) -> Tuple[int, int, int]:
        return (self.x, self.y, self.z)

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.int64)

    def is_neighbor(self, other: "GridCoordinate") -> bool:
        """
        Check face adjacency: exactly one axis differs by exactly 1, the other
        two are equal.
        """
        diffs = sorted(abs(a - b) for a, b in zip(self, other))
        return diffs == [0, 0, 1]

    # ===== Continuous space =====

    def to_cartesian(self, frame: BaseFrame, cell_size: Sequence[float]) -> np.ndarray:
        """Center of the cell in world coordinates."""
        size = np.asarray(as_cell_size(cell_size))
        return frame.to_world(self.to_array() * size)

    @classmethod
    def from_cartesian(
        cls,
        point: Sequence[float],
        frame: BaseFrame,
        cell_size: Sequence[float],
    ) -> "GridCoordinate":
        """Nearest lattice point to a world point."""
        size = np.asarray(as_cell_size(cell_size))
        local = frame.to_local(point) / size
        return cls(*(int(v) for v in np.rint(local)))

    # ===== Block flattening =====

    def to_1d(self, block_min: "GridCoordinate", block_max: "GridCoordinate") -> int:
        """
        Index of this coordinate in an inclusive block, X varying fastest.

        Raises:
            ValueError: if the coordinate lies outside the block
        """
        if not self.is_within(block_min, block_max):
            raise ValueError(f"{self} lies outside block {block_min}..{block_max}")
        len_x = block_max.x - block_min.x + 1
        len_y = block_max.y - block_min.y + 1
        local = self - block_min
        return local.x + local.y * len_x + local.z * len_x * len_y

    @classmethod
    def from_1d(
        cls,
        index: int,
        block_min: "GridCoordinate",
        block_max: "GridCoordinate",
    ) -> "GridCoordinate":
        """Inverse of to_1d."""
        if index < 0 or index >= block_length(block_min, block_max):
            raise ValueError(f"Index {index} out of block {block_min}..{block_max}")
        len_x = block_max.x - block_min.x + 1
        len_y = block_max.y - block_min.y + 1
        z, rest = divmod(index, len_x * len_y)
        y, x = divmod(rest, len_x)
        return cls(x, y, z) + block_min

    def is_within(self, block_min: "GridCoordinate", block_max: "GridCoordinate") -> bool:
        return all(lo <= v <= hi for v, lo, hi in zip(self, block_min, block_max))

    def fits_extent(self, limit: int) -> bool:
        """Check all components lie in [0, limit]."""
        return all(0 <= v <= limit for v in self)

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"


def block_bounds(
    coordinates: Iterable[GridCoordinate],
    padding: int = 0,
) -> Tuple[GridCoordinate, GridCoordinate]:
    """
    Inclusive bounding block of coordinates, grown by padding on every side.

    Raises:
        ValueError: if no coordinates are given
    """
    points = np.array([c.to_tuple() for c in coordinates], dtype=np.int64)
    if len(points) == 0:
        raise ValueError("Cannot compute bounds of an empty coordinate set")
    low = points.min(axis=0) - padding
    high = points.max(axis=0) + padding
    return GridCoordinate(*low.tolist()), GridCoordinate(*high.tolist())


def block_length(block_min: GridCoordinate, block_max: GridCoordinate) -> int:
    """Number of cells in an inclusive block."""
    size = block_max - block_min + GridCoordinate(1, 1, 1)
    return size.x * size.y * size.z


def occupancy_grid(
    coordinates: Sequence[GridCoordinate],
    padding: int = 0,
) -> Tuple[np.ndarray, GridCoordinate]:
    """
    Boolean occupancy array indexed [x, y, z] relative to the returned minimum.
    """
    block_min, block_max = block_bounds(coordinates, padding)
    shape = (block_max - block_min + GridCoordinate(1, 1, 1)).to_tuple()
    grid = np.zeros(shape, dtype=bool)
    for c in coordinates:
        grid[(c - block_min).to_tuple()] = True
    return grid, block_min
