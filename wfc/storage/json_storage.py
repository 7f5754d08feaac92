"""
JSON storage for scenes and solver input.

A scene is the user input of a preparation run:

    {
      "cell_size": [1.0, 1.0, 1.0],
      "base_frame": {"origin": [0, 0, 0], "x_axis": [1, 0, 0], "y_axis": [0, 1, 0]},
      "modules": [{"name": "beam", "submodules": [[0, 0, 0], [1, 0, 0]]}],
      "rules": ["beam:0 -> beam:3", "beam:1 = wood"],
      "slots": [{"center": [0, 0, 0], "allowed": "any"},
                {"center": [1, 0, 0], "allowed": ["beam"]}]
    }

Modules may carry their own "base_frame" and an opaque "geometry" list.
Slots may carry "submodules" to narrow the allowed submodules.
"""

from __future__ import annotations
import json
import gzip
from pathlib import Path
from typing import Dict, List, Any, Union
from dataclasses import asdict, dataclass, field, is_dataclass
import numpy as np

from ..core.grid import BaseFrame, GridCoordinate
from ..core.module import Module
from ..core.rules import Rule, parse_rule
from ..core.slot import Slot


ANY_MODULE = "any"


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy scalars, grid coordinates and dataclasses."""

    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.bool_):
            return bool(obj)
        if isinstance(obj, GridCoordinate):
            return obj.to_tuple()
        if is_dataclass(obj) and not isinstance(obj, type):
            return asdict(obj)
        return super().default(obj)


def _open_text(filepath: Path, mode: str):
    if filepath.suffix == '.gz':
        return gzip.open(filepath, mode + 't', encoding='utf-8')
    return open(filepath, mode, encoding='utf-8')


class JSONStorage:
    """
    JSON-based storage backend.

    Supports:
    - Plain JSON files
    - Gzipped JSON files
    """

    def __init__(self, base_path: Union[str, Path]):
        """
        Initialize JSON storage.

        Args:
            base_path: Base directory for storage
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def save(
        self,
        data: Any,
        filename: str,
        compress: bool = False,
    ) -> Path:
        """
        Save data to JSON file.

        Args:
            data: Data to save
            filename: Filename (without extension)
            compress: Use gzip compression

        Returns:
            Path to saved file
        """
        suffix = ".json.gz" if compress else ".json"
        filepath = self.base_path / f"{filename}{suffix}"
        with _open_text(filepath, 'w') as f:
            json.dump(data, f, cls=NumpyEncoder, indent=2)
        return filepath


# ===== Scenes =====

@dataclass
class Scene:
    """
    User input of a preparation run.

    Attributes:
        modules: Available modules
        rules: Explicit and typed rules
        slots: World slots
    """
    modules: List[Module] = field(default_factory=list)
    rules: List[Rule] = field(default_factory=list)
    slots: List[Slot] = field(default_factory=list)


def frame_to_dict(frame: BaseFrame) -> Dict[str, List[float]]:
    return {
        "origin": list(frame.origin),
        "x_axis": list(frame.x_axis),
        "y_axis": list(frame.y_axis),
    }


def frame_from_dict(data: Dict[str, Any]) -> BaseFrame:
    return BaseFrame.from_axes(
        data.get("origin", (0.0, 0.0, 0.0)),
        data.get("x_axis", (1.0, 0.0, 0.0)),
        data.get("y_axis", (0.0, 1.0, 0.0)),
    )


def _require(data: Dict[str, Any], key: str) -> Any:
    if key not in data:
        raise ValueError(f"Scene is missing {key!r}")
    return data[key]


def scene_from_dict(data: Dict[str, Any]) -> Scene:
    """
    Build modules, rules and slots from a scene description.

    Raises:
        ValueError: missing sections or malformed entries
    """
    cell_size = _require(data, "cell_size")
    frame = frame_from_dict(data.get("base_frame", {}))

    modules = []
    for entry in _require(data, "modules"):
        module_frame = frame_from_dict(entry["base_frame"]) if "base_frame" in entry else frame
        modules.append(Module(
            name=entry["name"],
            geometry=entry.get("geometry", []),
            base_frame=module_frame,
            submodule_centers=[tuple(c) for c in entry["submodules"]],
            cell_size=cell_size,
        ))

    rules = [parse_rule(text) for text in _require(data, "rules")]

    slots = []
    for entry in _require(data, "slots"):
        allowed = entry.get("allowed", ANY_MODULE)
        allows_any = isinstance(allowed, str) and allowed.lower() == ANY_MODULE
        if isinstance(allowed, str) and not allows_any:
            raise ValueError(f"Slot \"allowed\" must be {ANY_MODULE!r} or a list of module names, "
                             f"got {allowed!r}")
        slots.append(Slot(
            frame,
            GridCoordinate.from_sequence(entry["center"]),
            cell_size,
            allows_any_module=allows_any,
            allowed_module_names=() if allows_any else allowed,
            allowed_submodule_names=entry.get("submodules", ()),
        ))

    return Scene(modules=modules, rules=rules, slots=slots)


def scene_to_dict(scene: Scene) -> Dict[str, Any]:
    """Scene description of modules, rules and slots."""
    if scene.slots:
        cell_size = scene.slots[0].cell_size
        frame = scene.slots[0].base_frame
    elif scene.modules:
        cell_size = scene.modules[0].cell_size
        frame = scene.modules[0].base_frame
    else:
        cell_size = (1.0, 1.0, 1.0)
        frame = BaseFrame.world()

    modules = []
    for module in scene.modules:
        entry = {
            "name": module.name,
            "submodules": [list(c.to_tuple()) for c in module.submodule_centers],
        }
        if not module.base_frame.is_close(frame):
            entry["base_frame"] = frame_to_dict(module.base_frame)
        if module.geometry:
            entry["geometry"] = list(module.geometry)
        modules.append(entry)

    slots = []
    for slot in scene.slots:
        entry = {
            "center": list(slot.relative_center.to_tuple()),
            "allowed": ANY_MODULE if slot.allows_any_module else list(slot.allowed_module_names),
        }
        if slot.allowed_submodule_names:
            entry["submodules"] = list(slot.allowed_submodule_names)
        slots.append(entry)

    return {
        "cell_size": list(cell_size),
        "base_frame": frame_to_dict(frame),
        "modules": modules,
        "rules": [str(rule) for rule in scene.rules],
        "slots": slots,
    }


def save_scene(scene: Scene, filepath: Union[str, Path]) -> Path:
    """Save a scene, gzipped if the path ends with .gz."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with _open_text(filepath, 'w') as f:
        json.dump(scene_to_dict(scene), f, cls=NumpyEncoder, indent=2)
    return filepath


def load_scene(filepath: Union[str, Path]) -> Scene:
    """Load a scene from a JSON or gzipped JSON file."""
    with _open_text(Path(filepath), 'r') as f:
        return scene_from_dict(json.load(f))


def save_solver_input(
    solver_input: Any,
    filepath: Union[str, Path],
    compress: bool = False,
) -> Path:
    """
    Save prepared solver input.

    Args:
        solver_input: SolverInput or its dict form
        filepath: Full path to save file
        compress: Use compression, appends .gz if missing

    Returns:
        Path to saved file
    """
    filepath = Path(filepath)
    if compress and filepath.suffix != '.gz':
        filepath = filepath.with_name(filepath.name + '.gz')
    filepath.parent.mkdir(parents=True, exist_ok=True)

    data = solver_input.to_dict() if hasattr(solver_input, 'to_dict') else solver_input
    with _open_text(filepath, 'w') as f:
        json.dump(data, f, cls=NumpyEncoder, indent=None if compress else 2)
    return filepath
