"""
Visualization utilities for scene points using Plotly.
"""

from __future__ import annotations

import plotly.graph_objs as go
import numpy as np

from photoba.ba.photometric_bundle_adjustment import PhotometricBundleAdjustment


def plot_scene_points(pba: PhotometricBundleAdjustment) -> go.Figure:
    """
    Create a 3D Plotly visualization of the live scene points.

    Args:
        pba: Bundle adjustment holding the scene points and window poses.

    Returns:
        Plotly Figure with the points, coloured by their number of
        observations, and the camera centres of the window frames.
    """
    points = list(pba.scene_points.values())
    if len(points) > 0:
        points_xyz = np.array([pt.X for pt in points])
        num_frames = np.array([pt.num_frames for pt in points])
    else:
        points_xyz = np.array([]).reshape(0, 3)
        num_frames = np.array([], dtype=int)

    # Compute camera centers: C = -R^T @ t
    camera_centers = []
    for frame_id in pba.frame_ids:
        T = pba.pose(frame_id)
        camera_centers.append(-T[:3, :3].T @ T[:3, 3])

    camera_centers = np.array(camera_centers) if camera_centers else np.array([]).reshape(0, 3)

    fig = go.Figure()

    if len(points_xyz) > 0:
        fig.add_trace(
            go.Scatter3d(
                x=points_xyz[:, 0],
                y=points_xyz[:, 1],
                z=points_xyz[:, 2],
                mode="markers",
                marker=dict(
                    size=2,
                    color=num_frames,
                    colorscale="Viridis",
                    colorbar=dict(title="frames"),
                    opacity=0.8,
                ),
                name="Scene points",
                text=[
                    f"ref {pt.ref_frame_id}, last {pt.last_frame_id}, saliency {pt.saliency:.1f}"
                    for pt in points
                ],
            )
        )

    if len(camera_centers) > 0:
        fig.add_trace(
            go.Scatter3d(
                x=camera_centers[:, 0],
                y=camera_centers[:, 1],
                z=camera_centers[:, 2],
                mode="markers+lines",
                marker=dict(
                    size=6,
                    color="red",
                    symbol="diamond",
                ),
                name="Window cameras",
                text=[f"Frame {f}" for f in pba.frame_ids],
            )
        )

    fig.update_layout(
        title="Photometric BA scene points",
        scene=dict(
            xaxis_title="X",
            yaxis_title="Y",
            zaxis_title="Z",
            aspectmode="data",
        ),
        width=800,
        height=600,
    )

    return fig


__all__ = ["plot_scene_points"]
