"""
Command-line interface for the photometric bundle adjustment.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from photoba.ba.options import Options
from photoba.ba.photometric_bundle_adjustment import PhotometricBundleAdjustment
from photoba.io.calib_io import load_calibration, save_scene_npz
from photoba.io.config_io import load_options
from photoba.io.sequence_io import load_depth_sequence, load_image_sequence, load_poses
from photoba.scene.data_structures import Result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sliding-window photometric bundle adjustment over an image sequence"
    )
    parser.add_argument(
        "--images",
        type=str,
        required=True,
        help="Directory of intensity images (sorted by file name)",
    )
    parser.add_argument(
        "--poses",
        type=str,
        required=True,
        help="Pose file: .npy (N, 4, 4) stack or text with 12/16 values per line",
    )
    parser.add_argument(
        "--calib",
        type=str,
        required=True,
        help="Calibration .npz file with K and image_size",
    )
    parser.add_argument(
        "--depths",
        type=str,
        default=None,
        help="Directory of depth images aligned with --images; needed to create points",
    )
    parser.add_argument(
        "--depth-scale",
        type=float,
        default=1000.0,
        help="Raw depth value per scene unit (default: 1000)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML file with bundle adjustment options",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="output",
        help="Output directory for the scene file (default: output)",
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        default=None,
        help="Maximum number of frames to process (default: all)",
    )
    parser.add_argument(
        "--num-threads",
        type=int,
        default=None,
        help="Worker threads for tracking; overrides the config file",
    )
    parser.add_argument(
        "--camera-to-world",
        action="store_true",
        help="Poses in --poses are camera-to-world and must be inverted",
    )
    parser.add_argument(
        "--visualize",
        action="store_true",
        help="Generate HTML visualization of the scene points",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv=None) -> None:
    """
    Main CLI entry point.

    Usage:
        photoba-run --images seq/rgb --depths seq/depth \\
                    --poses seq/poses.txt --calib seq/calibration.npz \\
                    --output-dir out/
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    options = load_options(args.config) if args.config else Options()
    if args.num_threads is not None:
        options.num_threads = args.num_threads
        options.validate()

    calib, image_size = load_calibration(args.calib)
    print(f"Camera intrinsics K:\n{calib.K}")
    print(f"Image size: {image_size.rows}x{image_size.cols}")

    print(f"Loading images from {args.images}...")
    images = load_image_sequence(args.images, max_frames=args.max_frames)
    if len(images) == 0:
        print("Error: No images found")
        return

    depths = None
    if args.depths:
        print(f"Loading depth maps from {args.depths}...")
        depths = load_depth_sequence(args.depths, args.depth_scale, max_frames=args.max_frames)
        if len(depths) != len(images):
            print(f"Error: {len(images)} images but {len(depths)} depth maps")
            return
    else:
        print("Warning: no depth maps given; no scene points will be created")

    poses = load_poses(args.poses, camera_to_world=args.camera_to_world)
    if len(poses) < len(images):
        print(f"Error: {len(images)} images but only {len(poses)} poses")
        return

    pba = PhotometricBundleAdjustment(calib, image_size, options)
    result = Result()

    print(f"Processing {len(images)} frames...")
    for i, image in enumerate(images):
        depth = depths[i] if depths is not None else None
        pba.add_frame(image, depth, poses[i], result)

        line = (
            f"[pba] frame {result.frame_id}: {result.num_tracked} tracked, "
            f"{result.num_new_points} new, {result.num_evicted} evicted, "
            f"{result.num_points} live"
        )
        if result.refined:
            line += (
                f", refined {len(result.point_ids)} points "
                f"(cost {result.initial_cost:.3e} -> {result.final_cost:.3e})"
            )
        print(line)

    scene_path = output_dir / "scene.npz"
    print(f"Saving scene to {scene_path}...")
    save_scene_npz(str(scene_path), pba)

    if args.visualize:
        from photoba.viz.plotly_viz import plot_scene_points

        print("Generating visualization...")
        fig = plot_scene_points(pba)
        viz_path = output_dir / "scene_points.html"
        fig.write_html(str(viz_path))
        print(f"Visualization saved to {viz_path}")

    print("Pipeline completed successfully!")


if __name__ == "__main__":
    main()
