"""
Tests for face directions.
"""

import pytest
import numpy as np
from wfc.core import Axis, Direction, GridCoordinate, Orientation


class TestDirection:
    """Tests for Direction."""

    def test_face_index_order(self):
        """+X, +Y, +Z, -X, -Y, -Z."""
        labels = [str(d) for d in Direction.all()]
        assert labels == ["+X", "+Y", "+Z", "-X", "-Y", "-Z"]
        assert [d.face_index for d in Direction.all()] == list(range(6))

    def test_from_face_index(self):
        assert Direction.from_face_index(4) == Direction(Axis.Y, Orientation.NEGATIVE)
        with pytest.raises(ValueError):
            Direction.from_face_index(6)

    def test_is_opposite(self):
        """Opposite iff same axis and different orientation."""
        for d1 in Direction.all():
            for d2 in Direction.all():
                expected = d1.axis == d2.axis and d1.orientation != d2.orientation
                assert d1.is_opposite(d2) == expected

    def test_flip_twice(self):
        for d in Direction.all():
            assert d.flipped().flipped() == d
            assert d.flipped().is_opposite(d)

    def test_flipped_face_index(self):
        """Flipping shifts the face index by three."""
        for d in Direction.all():
            assert d.flipped().face_index == (d.face_index + 3) % 6

    def test_positive(self):
        assert [d.face_index for d in Direction.positive()] == [0, 1, 2]

    def test_to_vector(self):
        np.testing.assert_array_equal(Direction.from_face_index(5).to_vector(), [0, 0, -1])

    def test_to_grid_offset(self):
        assert Direction.from_face_index(0).to_grid_offset() == GridCoordinate(1, 0, 0)
        assert Direction.from_face_index(4).to_grid_offset() == GridCoordinate(0, -1, 0)

    def test_axis_label(self):
        assert [d.axis_label for d in Direction.all()] == ["x", "y", "z", "x", "y", "z"]

    def test_structural_equality(self):
        assert Direction(Axis.X, Orientation.POSITIVE) == Direction(Axis.X, Orientation.POSITIVE)
        assert len(set(Direction.all() + Direction.all())) == 6
