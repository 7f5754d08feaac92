"""
Storage module for the WFC toolkit.

Provides persistence for:
- Scenes (modules, rules and slots)
- Prepared solver input
"""

from .json_storage import (
    JSONStorage, NumpyEncoder, Scene,
    scene_from_dict, scene_to_dict, save_scene, load_scene, save_solver_input,
)

__all__ = [
    "JSONStorage",
    "NumpyEncoder",
    "Scene",
    "scene_from_dict",
    "scene_to_dict",
    "save_scene",
    "load_scene",
    "save_solver_input",
]
