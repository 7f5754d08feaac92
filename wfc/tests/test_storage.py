"""
Tests for JSON storage, scenes and the command line entry point.
"""

import gzip
import json

import pytest
import numpy as np
from wfc.core import BaseFrame, GridCoordinate, Module, Rule, Slot
from wfc.main import main
from wfc.preparation import prepare_solver_input
from wfc.storage import (
    JSONStorage, NumpyEncoder, Scene,
    load_scene, save_scene, save_solver_input, scene_from_dict, scene_to_dict,
)


def scene_data():
    return {
        "cell_size": [1.0, 1.0, 1.0],
        "base_frame": {"origin": [0, 0, 0], "x_axis": [1, 0, 0], "y_axis": [0, 1, 0]},
        "modules": [{"name": "a", "submodules": [[0, 0, 0]]}],
        "rules": [f"a:{i} = indifferent" for i in range(6)],
        "slots": [
            {"center": [0, 0, 0], "allowed": "any"},
            {"center": [1, 0, 0], "allowed": ["a"]},
        ],
    }


@pytest.fixture
def scene_file(tmp_path):
    path = tmp_path / "scene.json"
    path.write_text(json.dumps(scene_data()), encoding="utf-8")
    return path


class TestNumpyEncoder:
    """Tests for NumpyEncoder."""

    def test_numpy_values(self):
        data = {"i": np.int64(3), "f": np.float32(0.5), "b": np.bool_(True)}
        assert json.loads(json.dumps(data, cls=NumpyEncoder)) == {"i": 3, "f": 0.5, "b": True}

    def test_grid_coordinate(self):
        encoded = json.dumps({"c": GridCoordinate(1, -2, 3)}, cls=NumpyEncoder)
        assert json.loads(encoded) == {"c": [1, -2, 3]}


class TestJSONStorage:
    """Tests for JSONStorage."""

    def test_save(self, tmp_path):
        storage = JSONStorage(tmp_path / "store")
        path = storage.save({"count": np.int64(4), "origin": GridCoordinate(0, 1, 2)}, "data")
        assert path == tmp_path / "store" / "data.json"
        assert json.loads(path.read_text(encoding="utf-8")) == {"count": 4, "origin": [0, 1, 2]}

    def test_compressed(self, tmp_path):
        storage = JSONStorage(tmp_path)
        path = storage.save({"x": 1}, "data", compress=True)
        assert path.name == "data.json.gz"
        with gzip.open(path, "rt", encoding="utf-8") as f:
            assert json.load(f) == {"x": 1}


class TestScene:
    """Tests for the scene format."""

    def test_from_dict(self):
        scene = scene_from_dict(scene_data())
        assert [m.name for m in scene.modules] == ["a"]
        assert scene.rules[0] == Rule.typed("a", 0, "indifferent")
        assert scene.slots[0].allows_any_module
        assert scene.slots[1].allowed_module_names == ("a",)
        assert scene.slots[1].relative_center == GridCoordinate(1, 0, 0)

    def test_module_frame_and_geometry(self):
        data = scene_data()
        data["modules"][0]["base_frame"] = {"origin": [0, 0, 5]}
        data["modules"][0]["geometry"] = ["mesh"]
        module = scene_from_dict(data).modules[0]
        assert module.base_frame.origin == (0.0, 0.0, 5.0)
        assert module.geometry == ("mesh",)

    def test_slot_submodules(self):
        data = scene_data()
        data["slots"][1]["submodules"] = ["A0"]
        assert scene_from_dict(data).slots[1].allowed_submodule_names == ("a0",)

    @pytest.mark.parametrize("key", ["cell_size", "modules", "rules", "slots"])
    def test_missing_section(self, key):
        data = scene_data()
        del data[key]
        with pytest.raises(ValueError, match=key):
            scene_from_dict(data)

    @pytest.mark.parametrize("allowed", ["any", "Any", "ANY"])
    def test_any_is_case_insensitive(self, allowed):
        data = scene_data()
        data["slots"][1]["allowed"] = allowed
        assert scene_from_dict(data).slots[1].allows_any_module

    def test_single_name_string_rejected(self):
        """A module name must be given as a list, not split into letters."""
        data = scene_data()
        data["slots"][1]["allowed"] = "beam"
        with pytest.raises(ValueError, match="beam"):
            scene_from_dict(data)

    def test_submodule_string_rejected(self):
        data = scene_data()
        data["slots"][1]["submodules"] = "a0"
        with pytest.raises(ValueError):
            scene_from_dict(data)

    def test_malformed_rule(self):
        data = scene_data()
        data["rules"].append("a -> b")
        with pytest.raises(ValueError):
            scene_from_dict(data)

    def test_to_dict(self):
        frame = BaseFrame.world()
        module = Module("beam", [], frame.with_origin((0, 0, 2)), [(0, 0, 0), (1, 0, 0)], (1, 1, 1))
        scene = Scene(
            modules=[module],
            rules=[Rule.explicit("beam", 0, "beam", 3)],
            slots=[Slot(frame, GridCoordinate(0, 0, 0), (1, 1, 1), allows_any_module=True)],
        )
        data = scene_to_dict(scene)
        assert data["modules"][0]["submodules"] == [[0, 0, 0], [1, 0, 0]]
        assert data["modules"][0]["base_frame"]["origin"] == [0.0, 0.0, 2.0]
        assert data["rules"] == ["beam:0 -> beam:3"]
        assert data["slots"] == [{"center": [0, 0, 0], "allowed": "any"}]

    def test_save_and_load(self, tmp_path):
        scene = scene_from_dict(scene_data())
        path = save_scene(scene, tmp_path / "nested" / "scene.json.gz")
        assert path.exists()

        loaded = load_scene(path)
        assert [m.name for m in loaded.modules] == ["a"]
        assert loaded.rules == scene.rules
        assert loaded.slots == scene.slots


class TestSolverInputFile:
    """Tests for save_solver_input."""

    def test_compressed(self, tmp_path):
        scene = scene_from_dict(scene_data())
        solver_input = prepare_solver_input(scene.slots, scene.modules, scene.rules)
        path = save_solver_input(solver_input, tmp_path / "solver.json", compress=True)
        assert path.name == "solver.json.gz"

        with gzip.open(path, "rt", encoding="utf-8") as f:
            data = json.load(f)
        assert data["world_size"] == [4, 3, 3]
        assert data["slot_order"] == [17, 18]
        assert data["slots"][17] == ["a0"]


class TestMain:
    """Tests for the command line entry point."""

    def test_writes_output(self, scene_file, tmp_path):
        output = tmp_path / "out" / "solver.json"
        assert main([str(scene_file), "--output", str(output)]) == 0

        data = json.loads(output.read_text(encoding="utf-8"))
        assert {"axis": "x", "lower": "a0", "higher": "out0"} in data["rules"]
        assert data["modules"][-1] == {"name": "out", "submodules": ["out0"]}

    def test_padding_option(self, scene_file, tmp_path):
        output = tmp_path / "solver.json"
        assert main([str(scene_file), "--output", str(output), "--padding", "2"]) == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["world_size"] == [6, 5, 5]

    def test_config_file(self, scene_file, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"storage": {"base_path": str(tmp_path / "store")}}),
                               encoding="utf-8")
        assert main([str(scene_file), "--config", str(config_path)]) == 0
        assert (tmp_path / "store" / "scene_solver.json").exists()

    def test_contradiction(self, tmp_path):
        data = scene_data()
        data["modules"].append({"name": "b", "submodules": [[0, 0, 0]]})
        data["slots"][1]["allowed"] = ["b"]
        path = tmp_path / "scene.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        assert main([str(path), "--output", str(tmp_path / "solver.json")]) == 1

    def test_too_many_parts(self, scene_file, tmp_path):
        output = tmp_path / "solver.json"
        assert main([str(scene_file), "--output", str(output), "--max-parts", "0"]) == 1
        assert not output.exists()
