"""
Sequence I/O utilities for loading images, depth maps and poses.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np

from photoba.geometry.projection import invert_pose

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".pgm", ".tif", ".tiff")


def _list_images(directory: str) -> List[Path]:
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Not a directory: {directory}")
    return sorted(p for p in root.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS)


def load_image_sequence(
    image_dir: str,
    max_frames: Optional[int] = None,
) -> List[np.ndarray]:
    """
    Load the images of a directory as grayscale frames, sorted by file name.

    Args:
        image_dir: Directory containing the images.
        max_frames: Maximum number of frames to load (None = no limit).

    Returns:
        List of frames as numpy arrays (H, W), dtype=uint8.
    """
    frames = []
    for path in _list_images(image_dir)[:max_frames]:
        frame = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if frame is None:
            raise ValueError(f"Could not read image file: {path}")
        frames.append(frame)
    return frames


def load_depth_sequence(
    depth_dir: str,
    depth_scale: float = 1000.0,
    max_frames: Optional[int] = None,
) -> List[np.ndarray]:
    """
    Load depth maps stored as integer images, sorted by file name.

    Args:
        depth_dir: Directory containing the depth images.
        depth_scale: Raw value per scene unit (e.g. 1000 for millimetre PNGs).
        max_frames: Maximum number of depth maps to load (None = no limit).

    Returns:
        List of depth maps (H, W), dtype=float32; 0 marks missing depth.
    """
    depths = []
    for path in _list_images(depth_dir)[:max_frames]:
        raw = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if raw is None:
            raise ValueError(f"Could not read depth file: {path}")
        if raw.ndim != 2:
            raise ValueError(f"Depth file must be single channel: {path}")
        depths.append(raw.astype(np.float32) / np.float32(depth_scale))
    return depths


def load_poses(
    path: str,
    camera_to_world: bool = False,
) -> np.ndarray:
    """
    Load a pose per frame.

    Supported formats:
    - .npy with an (N, 4, 4) stack,
    - text with 12 (3x4, row-major) or 16 (4x4) numbers per line.

    Args:
        path: Pose file.
        camera_to_world: If True, the file stores camera-to-world poses (as
                         in KITTI); they are inverted to world-to-camera.

    Returns:
        (N, 4, 4) array of world-to-camera poses T_c_w.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Pose file not found: {path}")

    if path.suffix == ".npy":
        poses = np.load(path).astype(np.float64)
        if poses.ndim != 3 or poses.shape[1:] != (4, 4):
            raise ValueError(f"Expected an (N, 4, 4) pose stack, got shape {poses.shape}")
    else:
        rows = np.loadtxt(path, dtype=np.float64, ndmin=2)
        if rows.shape[1] == 12:
            poses = np.tile(np.eye(4), (rows.shape[0], 1, 1))
            poses[:, :3, :] = rows.reshape(-1, 3, 4)
        elif rows.shape[1] == 16:
            poses = rows.reshape(-1, 4, 4)
        else:
            raise ValueError(
                f"Expected 12 or 16 values per pose line, got {rows.shape[1]}"
            )

    if camera_to_world:
        poses = np.stack([invert_pose(T) for T in poses])
    return poses


__all__ = ["load_image_sequence", "load_depth_sequence", "load_poses"]
