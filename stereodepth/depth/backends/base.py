"""Common interface for stereo matching backends."""

from abc import ABC, abstractmethod

import numpy as np

from ..calibration import StereoCalibration


class StereoMatcher(ABC):
    """Base class for components computing disparity from stereo image pairs.

    Subclasses implement ``disparity_map_from_stereo`` and ``get_name``.
    ``depth_from_disparity`` implements the standard triangulation relation
    and only needs overriding when a backend produces disparity in a
    non-standard unit.
    """

    @abstractmethod
    def disparity_map_from_stereo(self, left: np.ndarray, right: np.ndarray) -> np.ndarray:
        """
        Compute a disparity map from a rectified stereo pair.

        Args:
            left: Left camera image (H, W) or (H, W, 3)
            right: Right camera image, same size as ``left``

        Returns:
            Disparity map (H, W), float32 or int16
        """

    def depth_from_disparity(self, disparity, calibration: StereoCalibration):
        """
        Convert disparity values to depth expressed in meters.

        Works on scalars and arrays alike. Zero disparity yields inf.

        Args:
            disparity: Disparity in pixels
            calibration: Stereo rig calibration

        Returns:
            Depth in meters, float32
        """
        return calibration.baseline_focal_product / np.asarray(disparity, dtype=np.float32)

    @abstractmethod
    def get_name(self) -> str:
        """Return the name of the technique used for disparity estimation."""

    def shutdown(self) -> None:
        """Release resources."""
        pass
