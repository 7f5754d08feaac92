"""
Configuration module for the WFC adjacency-rule toolkit.

Contains the reserved identifiers shared by modules, rules and the external
solver, the slot preview colors, and the configurable parameters of the
solver-input preparation.
"""

from dataclasses import dataclass, field
from typing import List, Tuple
import json
from pathlib import Path


# ===== Reserved identifiers =====

EMPTY_MODULE_NAME = "empty"     # Single-cell module with no geometry
OUTER_MODULE_NAME = "out"       # Fills the world block around the slots
INDIFFERENT_TAG = "indifferent" # Connector type matching any opposite indifferent connector

RESERVED_NAMES: Tuple[str, ...] = (EMPTY_MODULE_NAME, OUTER_MODULE_NAME)

# Substrings that would break the textual rule notation "a:1 -> b:2" / "a:1 = t"
RESERVED_CHARS: Tuple[str, ...] = (":", "->", "=", "\n")

# Maximum number of submodules supported by the solver
MAX_PARTS = 248

# Maximum world block extent along any axis (unsigned 16 bit)
MAX_WORLD_EXTENT = 65535


def reserved_to_string() -> str:
    """User-friendly listing of the reserved module names."""
    return ", ".join(RESERVED_NAMES)


# ===== Slot cage colors (RGBA) =====

RGBA = Tuple[int, int, int, int]

CAGE_UNKNOWN_COLOR: RGBA = (28, 141, 157, 192)
CAGE_EVERYTHING_COLOR: RGBA = (255, 255, 255, 192)
CAGE_TWO_COLOR: RGBA = (0, 0, 0, 192)
CAGE_ONE_COLOR: RGBA = (28, 157, 104, 192)
CAGE_NONE_COLOR: RGBA = (238, 33, 67, 192)


@dataclass
class PreparationParams:
    """Solver-input preparation parameters."""
    max_parts: int = MAX_PARTS
    max_world_extent: int = MAX_WORLD_EXTENT

    # Empty cells added around the slot bounds and filled with "out"
    padding: int = 1

    include_internal_rules: bool = True
    drop_incomplete_modules: bool = True  # Modules with undescribed connectors


@dataclass
class StorageParams:
    """Storage parameters."""
    base_path: Path = field(default_factory=lambda: Path("./data"))
    compress: bool = False


@dataclass
class WFCConfig:
    """
    Main configuration container.

    Example:
        config = WFCConfig(preparation=PreparationParams(padding=2))
        config.save("wfc_config.json")
    """
    preparation: PreparationParams = field(default_factory=PreparationParams)
    storage: StorageParams = field(default_factory=StorageParams)

    def save(self, path: str | Path) -> None:
        """Save configuration to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self._to_dict()
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: str | Path) -> "WFCConfig":
        """Load configuration from JSON file."""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls._from_dict(data)

    def _to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        def convert(obj):
            if isinstance(obj, Path):
                return str(obj)
            elif hasattr(obj, '__dataclass_fields__'):
                return {k: convert(v) for k, v in obj.__dict__.items()}
            elif isinstance(obj, (list, tuple)):
                return [convert(x) for x in obj]
            return obj

        return convert(self)

    @classmethod
    def _from_dict(cls, data: dict) -> "WFCConfig":
        """Reconstruct from dictionary."""
        data = dict(data)
        if 'preparation' in data:
            data['preparation'] = PreparationParams(**data['preparation'])
        if 'storage' in data:
            storage = dict(data['storage'])
            if 'base_path' in storage:
                storage['base_path'] = Path(storage['base_path'])
            data['storage'] = StorageParams(**storage)
        return cls(**data)

    def validate(self) -> List[str]:
        """Validate configuration, return list of warnings/errors."""
        issues = []

        prep = self.preparation
        if prep.max_parts < 1:
            issues.append("max_parts must be at least 1")
        if prep.max_parts > MAX_PARTS:
            issues.append(f"max_parts > {MAX_PARTS} is not supported by the solver")
        if prep.max_world_extent < 1:
            issues.append("max_world_extent must be at least 1")
        if prep.padding < 0:
            issues.append("padding must be non-negative")
        if prep.padding == 0:
            issues.append("padding 0 lets modules touch the world boundary without an out layer")

        return issues


def default_config() -> WFCConfig:
    """Configuration matching the solver defaults."""
    return WFCConfig()
