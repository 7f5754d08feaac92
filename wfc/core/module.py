"""
Modules: named rigid assemblies of unit cells.

A Module occupies one or more cells ("submodules") of the world grid. The
submodule grid coordinates are the only source of information about the
module's shape; the geometry payload is carried along untouched and does not
have to occupy the same space.

At construction the module derives:
- six Connectors per submodule (one per face), numbered
  submodule_index * 6 + face_index
- the internal rules holding adjacent submodules together
- the continuity flag (all submodules form one face-connected component)
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple
import numpy as np
from scipy import ndimage

from ..config import INDIFFERENT_TAG, RESERVED_CHARS, RESERVED_NAMES, reserved_to_string
from .direction import Direction
from .grid import BaseFrame, CellSize, GridCoordinate, as_cell_size, occupancy_grid
from .rules import RuleExplicit, RuleTyped


class ModuleConstructionError(ValueError):
    """Raised when a Module cannot be built from its inputs."""


class Valence(Enum):
    """Whether a connector touches a sibling submodule of the same module."""
    EXTERNAL = "external"  # Ready to touch another module instance
    INTERNAL = "internal"  # Faces a submodule of the same module instance


# Face plane in-plane axes per face index, as (frame axis index, sign) pairs.
# The u x v product equals the face normal.
_FACE_PLANE_AXES = (
    ((1, 1), (2, 1)),    # +X: Y, Z
    ((0, -1), (2, 1)),   # +Y: -X, Z
    ((0, 1), (1, 1)),    # +Z: X, Y
    ((1, -1), (2, 1)),   # -X: -Y, Z
    ((0, 1), (2, 1)),    # -Y: X, Z
    ((0, -1), (1, 1)),   # -Z: -X, Y
)


def _as_tuple(vector: np.ndarray) -> Tuple[float, float, float]:
    return tuple(float(v) for v in vector)


@dataclass(frozen=True)
class ConnectorFace:
    """
    Rectangle around a connector: one face of the submodule cage.

    Attributes:
        center: Face center in world coordinates
        normal: Outward unit normal
        u_axis, v_axis: In-plane unit axes (u x v = normal)
        width, height: Extents along u and v
    """
    center: Tuple[float, float, float]
    normal: Tuple[float, float, float]
    u_axis: Tuple[float, float, float]
    v_axis: Tuple[float, float, float]
    width: float
    height: float

    def contains_point(self, point: Sequence[float], tolerance: float = 1e-6) -> bool:
        """Check if a point lies on the face rectangle."""
        offset = np.asarray(point, dtype=float) - np.asarray(self.center)
        if abs(np.dot(offset, self.normal)) > tolerance:
            return False
        return (abs(np.dot(offset, self.u_axis)) <= self.width / 2 + tolerance and
                abs(np.dot(offset, self.v_axis)) <= self.height / 2 + tolerance)


@dataclass(frozen=True)
class Connector:
    """
    One face of a submodule, able to touch a connector of another module.

    Connectors only exist as part of a Module's derived connector list.

    Attributes:
        module_name: Parent module name
        submodule_name: Name of the submodule owning the face
        connector_index: Index in the parent module's connector list
        direction: Face direction in the module base frame
        valence: Internal or external
        anchor: Face center in world coordinates
        face: Face rectangle descriptor
    """
    module_name: str
    submodule_name: str
    connector_index: int
    direction: Direction
    valence: Valence
    anchor: Tuple[float, float, float]
    face: ConnectorFace

    @property
    def is_external(self) -> bool:
        return self.valence == Valence.EXTERNAL

    def contains_point(self, point: Sequence[float], tolerance: float = 1e-6) -> bool:
        return self.face.contains_point(point, tolerance)

    def __str__(self) -> str:
        return f"{self.module_name}:{self.connector_index} ({self.direction}, {self.valence.value})"


def validate_module_name(name: str, allow_reserved: bool = False) -> str:
    """
    Lowercase and check a module name.

    Raises:
        ModuleConstructionError: empty name, reserved characters or a reserved
            name when not allowed
    """
    if not isinstance(name, str) or len(name) == 0:
        raise ModuleConstructionError("Module name is empty")
    lowered = name.lower()
    for chars in RESERVED_CHARS:
        if chars in lowered:
            raise ModuleConstructionError(
                f"Module name {name!r} contains a forbidden content: {chars!r}"
            )
    if not allow_reserved and lowered in RESERVED_NAMES:
        raise ModuleConstructionError(
            f"Module name {name!r} is reserved ({reserved_to_string()})"
        )
    return lowered


class Module:
    """
    Named collection of cuboid submodules placed into the world slots.

    The module is immutable once constructed.

    Example:
        module = Module(
            name="Beam",
            geometry=[],
            base_frame=BaseFrame.world(),
            submodule_centers=[(0, 0, 0), (1, 0, 0)],
            cell_size=(1.0, 1.0, 1.0),
        )
        module.submodule_names       # ('beam0', 'beam1')
        module.connectors[0]         # beam:0, +X face of beam0, internal
        module.internal_rules        # [beam:0 -> beam:9]
    """

    def __init__(
        self,
        name: str,
        geometry: Iterable[Any],
        base_frame: BaseFrame,
        submodule_centers: Sequence[GridCoordinate | Sequence[int]],
        cell_size: Sequence[float],
        *,
        allow_reserved: bool = False,
    ):
        """
        Initialize module and derive connectors and internal rules.

        Args:
            name: Unique module name, case insensitive
            geometry: Opaque geometry payload
            base_frame: Coordinate system of the submodule grid
            submodule_centers: Distinct integer coordinates of the submodules
            cell_size: Per-axis size of one world cell
            allow_reserved: Permit the reserved names (empty, out)

        Raises:
            ModuleConstructionError: invalid name, empty or repetitive
                submodule centers, non-positive cell size
        """
        self.name = validate_module_name(name, allow_reserved)

        centers = tuple(
            c if isinstance(c, GridCoordinate) else GridCoordinate.from_sequence(c)
            for c in submodule_centers
        )
        if len(centers) == 0:
            raise ModuleConstructionError("Submodule centers list is empty")
        if len(set(centers)) != len(centers):
            raise ModuleConstructionError("Submodule centers are repetitive")

        try:
            self.cell_size: CellSize = as_cell_size(cell_size)
        except ValueError as e:
            raise ModuleConstructionError(str(e)) from e

        self.geometry: Tuple[Any, ...] = tuple(geometry)
        self.base_frame = base_frame
        self.submodule_centers: Tuple[GridCoordinate, ...] = centers

        # Submodule names are used as module names by the solver
        self.submodule_names: Tuple[str, ...] = tuple(
            f"{self.name}{i}" for i in range(len(centers))
        )

        # The first submodule triggers the geometry placement
        self.pivot_submodule_name = self.submodule_names[0]
        self.pivot = base_frame.with_origin(
            tuple(centers[0].to_cartesian(base_frame, self.cell_size))
        )

        self.continuous = self._compute_continuity(centers)
        self.connectors: Tuple[Connector, ...] = self._compute_connectors()
        self.internal_rules: Tuple[RuleExplicit, ...] = self._compute_internal_rules()

    @classmethod
    def single_cell(
        cls,
        name: str,
        connector_type: str = INDIFFERENT_TAG,
        cell_size: Sequence[float] = (1.0, 1.0, 1.0),
        base_frame: Optional[BaseFrame] = None,
    ) -> Tuple["Module", List[RuleTyped]]:
        """
        Generate a named module with a single submodule and no geometry.

        Used for the reserved modules (out, empty). Every connector is tagged
        with connector_type.

        Returns:
            (module, one typed rule per connector)
        """
        module = cls(
            name,
            [],
            base_frame or BaseFrame.world(),
            [GridCoordinate.origin()],
            cell_size,
            allow_reserved=True,
        )
        rules = [RuleTyped(module.name, i, connector_type) for i in range(6)]
        return module, rules

    # ===== Derived data =====

    @staticmethod
    def _compute_continuity(centers: Sequence[GridCoordinate]) -> bool:
        """All submodules form one face-connected component."""
        if len(centers) == 1:
            return True
        grid, _ = occupancy_grid(centers)
        structure = ndimage.generate_binary_structure(3, 1)
        _, n_components = ndimage.label(grid, structure=structure)
        return n_components == 1

    def _compute_connectors(self) -> Tuple[Connector, ...]:
        center_set = set(self.submodule_centers)
        size = np.asarray(self.cell_size)
        rotation = self.base_frame.rotation
        directions = Direction.all()

        connectors = []
        for submodule_index, center in enumerate(self.submodule_centers):
            submodule_name = self.submodule_names[submodule_index]
            for direction in directions:
                face_index = direction.face_index

                # Face center: half a cell from the submodule center
                local = (center.to_array() + direction.to_vector() * 0.5) * size
                anchor = self.base_frame.to_world(local)

                (u_idx, u_sign), (v_idx, v_sign) = _FACE_PLANE_AXES[face_index]
                face = ConnectorFace(
                    center=_as_tuple(anchor),
                    normal=_as_tuple(rotation @ direction.to_vector()),
                    u_axis=_as_tuple(rotation[:, u_idx] * u_sign),
                    v_axis=_as_tuple(rotation[:, v_idx] * v_sign),
                    width=self.cell_size[u_idx],
                    height=self.cell_size[v_idx],
                )

                neighbor = center + direction.to_grid_offset()
                valence = Valence.INTERNAL if neighbor in center_set else Valence.EXTERNAL

                connectors.append(Connector(
                    module_name=self.name,
                    submodule_name=submodule_name,
                    connector_index=submodule_index * 6 + face_index,
                    direction=direction,
                    valence=valence,
                    anchor=_as_tuple(anchor),
                    face=face,
                ))

        return tuple(connectors)

    def _compute_internal_rules(self) -> Tuple[RuleExplicit, ...]:
        """
        Rules joining adjacent submodules.

        Only positive directions are scanned, so each adjacency is emitted once.
        """
        index_of = {center: i for i, center in enumerate(self.submodule_centers)}
        rules = []
        for this_index, center in enumerate(self.submodule_centers):
            for direction in Direction.positive():
                other_index = index_of.get(center + direction.to_grid_offset())
                if other_index is None:
                    continue
                rules.append(RuleExplicit(
                    self.name,
                    this_index * 6 + direction.face_index,
                    self.name,
                    other_index * 6 + direction.flipped().face_index,
                ))
        return tuple(rules)

    # ===== Queries =====

    @property
    def submodule_count(self) -> int:
        return len(self.submodule_centers)

    @property
    def connector_count(self) -> int:
        return len(self.connectors)

    def connector(self, index: int) -> Optional[Connector]:
        """Connector by index, None if it does not exist."""
        if 0 <= index < len(self.connectors):
            return self.connectors[index]
        return None

    @property
    def external_connectors(self) -> List[Connector]:
        return [c for c in self.connectors if c.is_external]

    def external_connectors_containing_point(
        self,
        point: Sequence[float],
        tolerance: float = 1e-6,
    ) -> List[Connector]:
        """External connectors whose face contains the point."""
        return [c for c in self.external_connectors if c.contains_point(point, tolerance)]

    @property
    def is_valid(self) -> bool:
        """A non-continuous module will not hold together when placed."""
        return self.continuous

    @property
    def why_invalid(self) -> str:
        if not self.continuous:
            return "The module is not continuous and therefore will not hold together."
        return "The module is valid."

    def __str__(self) -> str:
        status = ("The module is continuous." if self.continuous else
                  "WARNING: The module is not continuous and therefore will not hold together.")
        return (f"Module {self.name} occupies {self.submodule_count} slots and has "
                f"{len(self.external_connectors)} connectors. {status}")

    def __repr__(self) -> str:
        return f"Module(name={self.name!r}, submodules={self.submodule_count})"
