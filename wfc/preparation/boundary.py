"""
Boundary helpers for slot sets.

Both helpers work on a boolean occupancy grid of the slot centers and use
scipy.ndimage morphology with the face-connectivity (6-neighbor) structure.
"""

from __future__ import annotations
from typing import List, Sequence

import numpy as np
from scipy import ndimage

from ..core.grid import GridCoordinate, occupancy_grid
from ..core.slot import (
    Slot, are_slot_cell_sizes_compatible, are_slot_frames_compatible,
    are_slot_locations_unique,
)
from .world import PreparationError


def _check_slots(slots: Sequence[Slot], layers: int) -> None:
    if len(slots) == 0:
        raise PreparationError("No Slots collected.")
    if layers < 1:
        raise PreparationError(f"Number of layers must be 1 or more, got {layers}")
    if not are_slot_cell_sizes_compatible(slots):
        raise PreparationError("Slots are not defined with the same cell size.")
    if not are_slot_frames_compatible(slots):
        raise PreparationError("Slots are not defined with the same base frame.")
    if not are_slot_locations_unique(slots):
        raise PreparationError("Slot centers are not unique.")


def _cross_structure(arm: int) -> np.ndarray:
    """3D plus shape: the center and `arm` cells along each of the six directions."""
    size = 2 * arm + 1
    structure = np.zeros((size, size, size), dtype=bool)
    structure[:, arm, arm] = True
    structure[arm, :, arm] = True
    structure[arm, arm, :] = True
    return structure


def boundary_neighbor_centers(slots: Sequence[Slot], layers: int = 1) -> List[GridCoordinate]:
    """
    Centers of new slots wrapping the slot set in face-neighbor layers.

    Every layer adds the face neighbors of the previous layer (the first
    layer: of the slots) that are not occupied yet.

    Returns:
        Grid coordinates in world block order (X varying fastest)

    Raises:
        PreparationError: no slots, layers < 1, incompatible slots or
            repeated slot locations
    """
    _check_slots(slots, layers)

    grid, grid_min = occupancy_grid([s.relative_center for s in slots], padding=layers)
    structure = ndimage.generate_binary_structure(3, 1)
    grown = ndimage.binary_dilation(grid, structure=structure, iterations=layers)
    new_cells = np.argwhere(grown & ~grid)

    # argwhere orders by x first; block order has x varying fastest
    order = np.lexsort((new_cells[:, 0], new_cells[:, 1], new_cells[:, 2]))
    return [GridCoordinate(*cell.tolist()) + grid_min for cell in new_cells[order]]


def boundary_slot_mask(slots: Sequence[Slot], layers: int = 1) -> List[bool]:
    """
    Flag slots lying within `layers` cells of the outside.

    A slot is on the boundary if, along any of the six directions, an
    unoccupied cell is at most `layers` cells away.

    Returns:
        One flag per input slot, in input order

    Raises:
        PreparationError: no slots, layers < 1, incompatible slots or
            repeated slot locations
    """
    _check_slots(slots, layers)

    grid, grid_min = occupancy_grid([s.relative_center for s in slots])
    interior = ndimage.binary_erosion(grid, structure=_cross_structure(layers), border_value=0)
    boundary = grid & ~interior
    return [bool(boundary[(s.relative_center - grid_min).to_tuple()]) for s in slots]
