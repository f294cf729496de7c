"""
Tests for ScenePoint bookkeeping.
"""

import numpy as np
import pytest

from photoba.scene.scene_point import ScenePoint


class TestConstruction:
    def test_visibility_starts_with_reference_frame(self):
        pt = ScenePoint([1.0, 2.0, 3.0], 7)
        assert pt.visibility_list == (7,)
        assert pt.ref_frame_id == 7
        assert pt.last_frame_id == 7
        assert pt.num_frames == 1

    def test_defaults(self):
        pt = ScenePoint(np.zeros(3), 0)
        assert pt.saliency == 0.0
        assert pt.was_refined is False
        assert pt.descriptor == []
        assert pt.first_projection is None
        assert not pt.patch.is_set

    def test_original_point_is_a_copy(self):
        X = np.array([1.0, 2.0, 3.0])
        pt = ScenePoint(X, 0)
        X[0] = 100.0
        np.testing.assert_array_equal(pt.X, [1.0, 2.0, 3.0])
        np.testing.assert_array_equal(pt.original_point, [1.0, 2.0, 3.0])

    def test_negative_frame_id_rejected(self):
        with pytest.raises(ValueError):
            ScenePoint(np.zeros(3), -1)


class TestPosition:
    def test_setting_X_keeps_original(self):
        pt = ScenePoint([1.0, 2.0, 3.0], 0)
        pt.X = [1.0, 2.0, 5.0]
        np.testing.assert_array_equal(pt.X, [1.0, 2.0, 5.0])
        np.testing.assert_array_equal(pt.original_point, [1.0, 2.0, 3.0])
        assert pt.drift() == pytest.approx(2.0)

    def test_original_point_is_read_only(self):
        pt = ScenePoint([1.0, 2.0, 3.0], 0)
        with pytest.raises(ValueError):
            pt.original_point[0] = 0.0

    def test_X_is_mutable_in_place(self):
        pt = ScenePoint([1.0, 2.0, 3.0], 0)
        pt.X[2] += 1.0
        assert pt.X[2] == 4.0
        assert pt.original_point[2] == 3.0


class TestVisibility:
    def test_add_frame_is_append_only(self):
        pt = ScenePoint(np.zeros(3), 3)
        for f in [4, 5, 9]:
            pt.add_frame(f)
        assert pt.visibility_list == (3, 4, 5, 9)
        assert pt.num_frames == 4

    def test_front_and_back_after_any_sequence(self):
        rng = np.random.default_rng(1)
        pt = ScenePoint(np.zeros(3), 11)
        ids = rng.integers(0, 50, size=20)
        for n, f in enumerate(ids, start=1):
            pt.add_frame(int(f))
            assert pt.visibility_list[0] == pt.ref_frame_id == 11
            assert pt.visibility_list[-1] == pt.last_frame_id == int(f)
            assert pt.num_frames == 1 + n

    def test_duplicates_are_kept(self):
        pt = ScenePoint(np.zeros(3), 0)
        pt.add_frame(2)
        pt.add_frame(2)
        assert pt.visibility_list == (0, 2, 2)

    def test_has_frame(self):
        pt = ScenePoint(np.zeros(3), 0)
        pt.add_frame(4)
        assert pt.has_frame(0)
        assert pt.has_frame(4)
        assert not pt.has_frame(3)

    def test_visibility_list_cannot_be_mutated(self):
        pt = ScenePoint(np.zeros(3), 0)
        with pytest.raises(AttributeError):
            pt.visibility_list.append(3)

    def test_negative_add_rejected(self):
        pt = ScenePoint(np.zeros(3), 0)
        with pytest.raises(ValueError):
            pt.add_frame(-2)
        assert pt.num_frames == 1

    def test_non_integral_frame_id_rejected(self):
        pt = ScenePoint(np.zeros(3), 0)
        for bad in (2.7, 2.0, "3", True):
            with pytest.raises(TypeError):
                pt.add_frame(bad)
        with pytest.raises(TypeError):
            ScenePoint(np.zeros(3), 1.5)
        assert pt.visibility_list == (0,)

    def test_numpy_integer_ids_accepted(self):
        pt = ScenePoint(np.zeros(3), np.int64(1))
        pt.add_frame(np.int32(4))
        assert pt.visibility_list == (1, 4)
        assert all(type(f) is int for f in pt.visibility_list)


class TestAuxiliary:
    def test_set_zncc_patch(self):
        I = np.random.default_rng(0).uniform(0, 255, size=(30, 30)).astype(np.float32)
        pt = ScenePoint(np.zeros(3), 0)
        pt.set_zncc_patch(I, (15.0, 12.0))
        assert pt.patch.is_set
        assert pt.patch.score(pt.patch) == pytest.approx(1.0, abs=1e-5)

    def test_saliency_and_refined(self):
        pt = ScenePoint(np.zeros(3), 0)
        assert pt.saliency == 0.0 and pt.was_refined is False
        pt.saliency = 12.5
        pt.was_refined = True
        assert pt.saliency == 12.5
        assert pt.was_refined is True

    def test_first_projection_rounds_to_pixel(self):
        pt = ScenePoint(np.zeros(3), 0)
        pt.set_first_projection((10.6, 3.2))
        np.testing.assert_array_equal(pt.first_projection, [11, 3])
        assert pt.first_projection.dtype == np.int64

    def test_descriptor_is_opaque_passthrough(self):
        pt = ScenePoint(np.zeros(3), 0)
        pt.descriptor.extend([0.5, -1.0])
        assert pt.descriptor == [0.5, -1.0]
        pt.descriptor = [3.0]
        assert pt.descriptor == [3.0]
