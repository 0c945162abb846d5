"""OpenCV StereoBM backend returning raw fixed-point disparity.

StereoBM is the fastest of the OpenCV matchers. Its output is kept in the
native int16 fixed-point format (4 fractional bits) and the scale is
folded into the depth relation instead of rescaling the whole map.
"""

import cv2
import numpy as np

from ..calibration import StereoCalibration
from .base import StereoMatcher
from .sgbm import to_gray

# StereoBM / StereoSGBM store disparity * 16
DISPARITY_SCALE = 16.0


class BMMatcher(StereoMatcher):
    """OpenCV StereoBM block matching backend."""

    def __init__(self, num_disparities: int = 64, block_size: int = 15):
        """
        Initialize StereoBM backend.

        Args:
            num_disparities: Disparity search range. Must be divisible by 16.
            block_size: Matched block size. Must be odd, between 5 and 255.
        """
        num_disparities = max(16, (num_disparities // 16) * 16)
        if block_size % 2 == 0:
            block_size += 1
        block_size = max(5, min(255, block_size))

        self.num_disparities = num_disparities
        self.block_size = block_size
        self.stereo = cv2.StereoBM_create(
            numDisparities=num_disparities,
            blockSize=block_size,
        )

    def disparity_map_from_stereo(self, left: np.ndarray, right: np.ndarray) -> np.ndarray:
        """
        Compute disparity map from stereo pair.

        Returns:
            Fixed-point disparity as int16 array (H, W). Unmatched pixels
            are negative.
        """
        return self.stereo.compute(to_gray(left), to_gray(right))

    def depth_from_disparity(self, disparity, calibration: StereoCalibration):
        """Convert fixed-point disparity to depth in meters."""
        disparity_px = np.asarray(disparity, dtype=np.float32) / np.float32(DISPARITY_SCALE)
        return super().depth_from_disparity(disparity_px, calibration)

    def shutdown(self) -> None:
        """Release resources."""
        self.stereo = None

    def get_name(self) -> str:
        return "bm"

    @staticmethod
    def get_backend_info() -> str:
        """Return human-readable backend description."""
        return "OpenCV StereoBM (CPU, fixed-point)"
