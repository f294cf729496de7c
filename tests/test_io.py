"""
Tests for calibration, scene, sequence and config I/O.
"""

import cv2
import numpy as np
import pytest

from photoba.ba.options import Options
from photoba.ba.photometric_bundle_adjustment import PhotometricBundleAdjustment
from photoba.geometry.projection import invert_pose, rvec_t_to_pose
from photoba.io.calib_io import load_calibration, save_calibration, save_scene_npz
from photoba.io.config_io import load_options, save_options
from photoba.io.sequence_io import load_depth_sequence, load_image_sequence, load_poses
from photoba.scene.data_structures import Calibration, ImageSize


class TestCalibIO:
    def test_roundtrip(self, tmp_path):
        calib = Calibration(fx=500.0, fy=510.0, cx=320.0, cy=240.0, baseline=0.12)
        path = tmp_path / "calibration.npz"
        save_calibration(str(path), calib, ImageSize(rows=480, cols=640))
        loaded, size = load_calibration(str(path))
        assert loaded == calib
        assert size == ImageSize(rows=480, cols=640)

    def test_missing_keys(self, tmp_path):
        path = tmp_path / "bad.npz"
        np.savez(path, K=np.eye(3))
        with pytest.raises(ValueError):
            load_calibration(str(path))

    def test_save_scene(self, tmp_path, calib, image_size, depth, sequence, options):
        pba = PhotometricBundleAdjustment(calib, image_size, options)
        pba.add_frame(sequence[0][0], depth, sequence[0][1])
        pba.add_frame(sequence[1][0], None, sequence[1][1])

        path = tmp_path / "scene.npz"
        save_scene_npz(str(path), pba)
        data = np.load(path)

        n = pba.num_points
        assert data["points_xyz"].shape == (n, 3)
        assert data["patches"].shape == (n, 25)
        assert data["visibility_offsets"].shape == (n + 1,)
        np.testing.assert_array_equal(data["frame_ids"], pba.frame_ids)

        offsets = data["visibility_offsets"]
        for k, pid in enumerate(data["point_ids"]):
            vis = tuple(data["visibility"][offsets[k] : offsets[k + 1]])
            assert vis == pba.scene_points[int(pid)].visibility_list

    def test_save_empty_scene(self, tmp_path, calib, image_size):
        path = tmp_path / "empty.npz"
        save_scene_npz(str(path), PhotometricBundleAdjustment(calib, image_size))
        data = np.load(path)
        assert data["points_xyz"].shape == (0, 3)
        assert data["poses"].shape == (0, 4, 4)


class TestSequenceIO:
    def test_images_sorted_and_grayscale(self, tmp_path):
        for k in (2, 0, 1):
            img = np.full((6, 8, 3), 10 * k, dtype=np.uint8)
            cv2.imwrite(str(tmp_path / f"{k:04d}.png"), img)
        (tmp_path / "notes.txt").write_text("ignored")

        frames = load_image_sequence(str(tmp_path))
        assert len(frames) == 3
        assert all(f.shape == (6, 8) for f in frames)
        assert [int(f[0, 0]) for f in frames] == [0, 10, 20]
        assert len(load_image_sequence(str(tmp_path), max_frames=2)) == 2

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_image_sequence(str(tmp_path / "nope"))

    def test_depth_scaling(self, tmp_path):
        raw = np.full((4, 5), 1500, dtype=np.uint16)
        cv2.imwrite(str(tmp_path / "0000.png"), raw)
        depths = load_depth_sequence(str(tmp_path), depth_scale=1000.0)
        assert depths[0].dtype == np.float32
        np.testing.assert_allclose(depths[0], 1.5)

    def test_pose_formats(self, tmp_path):
        T = rvec_t_to_pose(np.array([0.1, -0.2, 0.05]), np.array([1.0, 2.0, 3.0]))
        poses = np.stack([np.eye(4), T])

        np.save(tmp_path / "poses.npy", poses)
        np.testing.assert_allclose(load_poses(str(tmp_path / "poses.npy")), poses)

        np.savetxt(tmp_path / "poses12.txt", poses[:, :3, :].reshape(2, 12))
        np.testing.assert_allclose(load_poses(str(tmp_path / "poses12.txt")), poses, atol=1e-12)

        np.savetxt(tmp_path / "poses16.txt", poses.reshape(2, 16))
        np.testing.assert_allclose(load_poses(str(tmp_path / "poses16.txt")), poses, atol=1e-12)

    def test_camera_to_world_is_inverted(self, tmp_path):
        T_w_c = rvec_t_to_pose(np.array([0.0, 0.3, 0.0]), np.array([0.5, 0.0, 1.0]))
        np.savetxt(tmp_path / "poses.txt", T_w_c[:3, :].reshape(1, 12))
        loaded = load_poses(str(tmp_path / "poses.txt"), camera_to_world=True)
        np.testing.assert_allclose(loaded[0], invert_pose(T_w_c), atol=1e-12)

    def test_bad_pose_file(self, tmp_path):
        np.savetxt(tmp_path / "poses.txt", np.zeros((2, 7)))
        with pytest.raises(ValueError):
            load_poses(str(tmp_path / "poses.txt"))
        with pytest.raises(FileNotFoundError):
            load_poses(str(tmp_path / "missing.txt"))


class TestConfigIO:
    def test_roundtrip(self, tmp_path):
        options = Options(max_num_points=100, min_score=0.9, max_point_drift=0.2, num_threads=3)
        path = tmp_path / "options.yaml"
        save_options(str(path), options)
        assert load_options(str(path)) == options

    def test_top_level_keys_and_defaults(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("sliding_window_size: 7\nrobust_loss: cauchy\n")
        options = load_options(str(path))
        assert options.sliding_window_size == 7
        assert options.robust_loss == "cauchy"
        assert options.max_num_points == Options().max_num_points

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("")
        assert load_options(str(path)) == Options()

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("options:\n  window: 3\n")
        with pytest.raises(ValueError, match="window"):
            load_options(str(path))

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("options:\n  robust_loss: l2\n")
        with pytest.raises(ValueError):
            load_options(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_options(str(tmp_path / "missing.yaml"))
