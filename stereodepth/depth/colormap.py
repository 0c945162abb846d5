"""Depth visualization utilities."""

from typing import Optional

import numpy as np
import cv2

from .converter import INVALID_DEPTH

# Available colormaps for depth visualization
COLORMAPS = {
    "inferno": cv2.COLORMAP_INFERNO,
    "magma": cv2.COLORMAP_MAGMA,
    "plasma": cv2.COLORMAP_PLASMA,
    "viridis": cv2.COLORMAP_VIRIDIS,
    "jet": cv2.COLORMAP_JET,
    "turbo": cv2.COLORMAP_TURBO,
    "hot": cv2.COLORMAP_HOT,
    "bone": cv2.COLORMAP_BONE,
}

# Color painted over pixels without valid depth (BGR)
INVALID_COLOR = (0, 0, 0)


def apply_colormap(
    depth_mm: np.ndarray,
    colormap: str = "inferno",
    depth_range: Optional[tuple[float, float]] = None,
) -> np.ndarray:
    """
    Convert a millimeter depth map to a BGR colormap for display.

    Near pixels get the bright end of the colormap. Pixels holding
    ``INVALID_DEPTH`` are painted ``INVALID_COLOR`` and excluded from
    normalization.

    Args:
        depth_mm: Depth values (H, W), invalid pixels marked with INVALID_DEPTH
        colormap: Name of colormap to use (inferno, magma, plasma, viridis, jet, turbo, hot, bone)
        depth_range: (near, far) in millimeters. If None, uses the valid min/max.

    Returns:
        BGR image (H, W, 3) suitable for display with OpenCV
    """
    if colormap not in COLORMAPS:
        colormap = "inferno"

    valid = depth_mm != INVALID_DEPTH
    depth = depth_mm.astype(np.float32)

    if depth_range is not None:
        near, far = depth_range
    elif valid.any():
        near, far = float(depth[valid].min()), float(depth[valid].max())
    else:
        near, far = 0.0, 0.0

    if far - near > 1e-6:
        normalized = np.clip((far - depth) / (far - near), 0.0, 1.0)
    else:
        normalized = np.zeros_like(depth)

    depth_uint8 = (normalized * 255).astype(np.uint8)
    colored = cv2.applyColorMap(depth_uint8, COLORMAPS[colormap])
    colored[~valid] = INVALID_COLOR

    return colored


def blend_with_image(
    image: np.ndarray,
    depth_colored: np.ndarray,
    alpha: float = 0.5,
) -> np.ndarray:
    """
    Blend depth colormap with original image.

    Args:
        image: Original BGR image (H, W, 3)
        depth_colored: Colormapped depth (H, W, 3)
        alpha: Blend factor (0 = image only, 1 = depth only)

    Returns:
        Blended BGR image (H, W, 3)
    """
    alpha = max(0.0, min(1.0, alpha))

    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

    # Resize depth to match image if needed
    if depth_colored.shape[:2] != image.shape[:2]:
        depth_colored = cv2.resize(
            depth_colored,
            (image.shape[1], image.shape[0]),
            interpolation=cv2.INTER_NEAREST,
        )

    blended = cv2.addWeighted(image, 1 - alpha, depth_colored, alpha, 0)
    return blended
