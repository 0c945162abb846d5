"""Stereo depth estimation module for stereodepth.

Converts disparity from a pluggable stereo matcher into millimeter depth
maps. Supported backends:
- StereoSGBM (OpenCV) - float32 disparity
- StereoBM (OpenCV) - int16 fixed-point disparity
- Precomputed maps read from disk
"""

from .calibration import StereoCalibration
from .colormap import apply_colormap, blend_with_image, COLORMAPS
from .converter import (
    DepthConverter,
    INVALID_DEPTH,
    K_MAX_DEPTH_MM,
    K_MIN_DEPTH_MM,
    depth_stats,
)
from .errors import CalibrationError, DepthError, UnsupportedFormat
from .processor import (
    DepthProcessor,
    DepthResult,
    check_backends_available,
    create_matcher,
)

__all__ = [
    "StereoCalibration",
    "DepthConverter",
    "DepthProcessor",
    "DepthResult",
    "INVALID_DEPTH",
    "K_MAX_DEPTH_MM",
    "K_MIN_DEPTH_MM",
    "depth_stats",
    "apply_colormap",
    "blend_with_image",
    "COLORMAPS",
    "check_backends_available",
    "create_matcher",
    "DepthError",
    "UnsupportedFormat",
    "CalibrationError",
]
