"""OpenCV StereoSGBM backend for stereo disparity estimation.

Semi-Global Block Matching (SGBM) is a classical stereo matching algorithm.
It works everywhere with no dependencies beyond OpenCV.
"""

import cv2
import numpy as np

from .base import StereoMatcher


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert a BGR image to grayscale, passing single-channel images through."""
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    return image


class SGBMMatcher(StereoMatcher):
    """OpenCV StereoSGBM stereo matching backend.

    Produces float32 disparity in pixels, so the default triangulation
    relation applies unchanged.
    """

    def __init__(
        self,
        num_disparities: int = 128,
        block_size: int = 5,
        min_disparity: int = 0,
    ):
        """
        Initialize StereoSGBM backend.

        Args:
            num_disparities: Maximum disparity minus minimum disparity.
                             Must be divisible by 16.
            block_size: Matched block size. Must be odd (3-11 recommended).
            min_disparity: Minimum possible disparity value.
        """
        # Ensure num_disparities is divisible by 16
        num_disparities = max(16, (num_disparities // 16) * 16)

        # Ensure block_size is odd
        if block_size % 2 == 0:
            block_size += 1
        block_size = max(3, min(11, block_size))

        self.num_disparities = num_disparities
        self.block_size = block_size
        self.min_disparity = min_disparity

        # Matching runs on grayscale images
        cn = 1
        self.P1 = 8 * cn * block_size * block_size
        self.P2 = 32 * cn * block_size * block_size

        self.stereo = cv2.StereoSGBM_create(
            minDisparity=min_disparity,
            numDisparities=num_disparities,
            blockSize=block_size,
            P1=self.P1,
            P2=self.P2,
            disp12MaxDiff=1,
            uniquenessRatio=10,
            speckleWindowSize=100,
            speckleRange=32,
            preFilterCap=63,
            mode=cv2.STEREO_SGBM_MODE_SGBM_3WAY,
        )

        # WLS post-filter needs opencv-contrib-python
        self.wls_filter = None
        self.right_matcher = None
        try:
            self.right_matcher = cv2.ximgproc.createRightMatcher(self.stereo)
            self.wls_filter = cv2.ximgproc.createDisparityWLSFilter(
                matcher_left=self.stereo
            )
            self.wls_filter.setLambda(8000)
            self.wls_filter.setSigmaColor(1.5)
        except AttributeError:
            pass

    def disparity_map_from_stereo(self, left: np.ndarray, right: np.ndarray) -> np.ndarray:
        """
        Compute disparity map from stereo pair.

        Args:
            left: Left camera image, BGR (H, W, 3) or grayscale (H, W)
            right: Right camera image, same format as ``left``

        Returns:
            Disparity map as float32 array (H, W)
        """
        left_gray = to_gray(left)
        right_gray = to_gray(right)

        disparity_left = self.stereo.compute(left_gray, right_gray)

        if self.wls_filter is not None and self.right_matcher is not None:
            disparity_right = self.right_matcher.compute(right_gray, left_gray)
            disparity = self.wls_filter.filter(
                disparity_left, left_gray, None, disparity_right
            )
        else:
            disparity = disparity_left

        # Convert from fixed-point (divide by 16) to float
        disparity = disparity.astype(np.float32) / 16.0

        # Negative values mark unmatched pixels
        disparity = np.clip(disparity, 0, None)

        return disparity

    def shutdown(self) -> None:
        """Release resources."""
        self.stereo = None
        self.wls_filter = None
        self.right_matcher = None

    def get_name(self) -> str:
        return "sgbm"

    @staticmethod
    def get_backend_info() -> str:
        """Return human-readable backend description."""
        if hasattr(cv2, "ximgproc"):
            return "OpenCV StereoSGBM + WLS filter (CPU)"
        return "OpenCV StereoSGBM (CPU)"
