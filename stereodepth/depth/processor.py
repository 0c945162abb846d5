"""Stereo depth estimation with configurable backend selection.

Supports three backends:
1. StereoSGBM (OpenCV) - float32 disparity, default
2. StereoBM (OpenCV) - fast, int16 fixed-point disparity
3. Precomputed - disparity or depth maps read from disk
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from stereodepth.utils.logger import get_logger
from .backends.base import StereoMatcher
from .backends.bm import BMMatcher
from .backends.precomputed import PrecomputedMatcher
from .backends.sgbm import SGBMMatcher
from .calibration import StereoCalibration
from .colormap import apply_colormap
from .converter import INVALID_DEPTH, DepthConverter, depth_stats

logger = get_logger(__name__)


@dataclass
class DepthResult:
    """Result from stereo depth estimation."""

    depth_mm: np.ndarray  # int16 depth in millimeters (H, W)
    computation_time_ms: float
    backend: str  # Which backend produced this result

    def valid_fraction(self) -> float:
        """Fraction of pixels holding a valid depth."""
        if self.depth_mm.size == 0:
            return 0.0
        return float(np.count_nonzero(self.depth_mm != INVALID_DEPTH)) / self.depth_mm.size

    def to_colormap(self, cmap: str = "inferno") -> np.ndarray:
        """
        Convert to BGR colormap for display.

        Args:
            cmap: Colormap name (inferno, magma, plasma, viridis, jet, turbo, hot, bone)

        Returns:
            BGR image (H, W, 3) suitable for OpenCV display
        """
        return apply_colormap(self.depth_mm, colormap=cmap)


def create_matcher(depth_config) -> StereoMatcher:
    """
    Build the stereo matcher selected in the depth configuration.

    Args:
        depth_config: ``DepthConfig`` settings section

    Returns:
        Matcher instance

    Raises:
        ValueError: If the backend is unknown or misconfigured.
    """
    backend = depth_config.backend

    if backend == "sgbm":
        return SGBMMatcher(
            num_disparities=depth_config.sgbm.num_disparities,
            block_size=depth_config.sgbm.block_size,
            min_disparity=depth_config.sgbm.min_disparity,
        )

    if backend == "bm":
        return BMMatcher(
            num_disparities=depth_config.bm.num_disparities,
            block_size=depth_config.bm.block_size,
        )

    if backend == "precomputed":
        cfg = depth_config.precomputed
        if not cfg.directory:
            raise ValueError("depth.precomputed.directory is required for the precomputed backend")
        return PrecomputedMatcher(
            directory=cfg.directory,
            input_is_depth=depth_config.input_is_depth,
            pattern=cfg.pattern,
            disparity_scale=cfg.disparity_scale,
            start_index=cfg.start_index,
        )

    raise ValueError(f"Unknown depth backend: {backend!r}")


class DepthProcessor:
    """Stereo depth estimation with backend selection from settings.

    Example:
        processor = DepthProcessor(settings.depth)
        result = processor.compute(left_frame, right_frame)
        colored = result.to_colormap("inferno")
    """

    def __init__(
        self,
        depth_config,
        calibration: Optional[StereoCalibration] = None,
        matcher: Optional[StereoMatcher] = None,
    ):
        """
        Initialize the stereo depth processor.

        Args:
            depth_config: ``DepthConfig`` settings section
            calibration: Rig calibration. If None, built from the config.
            matcher: Matcher to use instead of the configured backend.

        Raises:
            ValueError: If the configured backend is unavailable.
        """
        self.config = depth_config
        self.calibration = calibration or StereoCalibration.from_settings(depth_config)
        self._matcher = matcher or create_matcher(depth_config)

        self.converter = DepthConverter(
            self._matcher,
            input_is_depth=depth_config.input_is_depth,
            min_depth_mm=depth_config.min_depth_mm,
            max_depth_mm=depth_config.max_depth_mm,
            num_workers=depth_config.num_workers,
        )

        logger.info(
            f"Depth backend: {self.backend_name} "
            f"(baseline={self.calibration.baseline_meters:.4f} m, "
            f"focal={self.calibration.focal_length_px:.2f} px)"
        )

    @property
    def backend_name(self) -> str:
        """Get the name of the active backend."""
        return self.converter.get_name()

    def compute(
        self,
        left: np.ndarray,
        right: np.ndarray,
        out: Optional[np.ndarray] = None,
    ) -> DepthResult:
        """
        Compute a millimeter depth map from a stereo image pair.

        Args:
            left: Left camera image
            right: Right camera image
            out: Optional int16 buffer to reuse

        Returns:
            DepthResult with depth map, timing, and backend info
        """
        start_time = time.time()

        depth_mm = self.converter.compute_depth(left, right, self.calibration, out=out)

        computation_time_ms = (time.time() - start_time) * 1000

        if logger.isEnabledFor(logging.DEBUG):
            stats = depth_stats(depth_mm)
            logger.debug(
                f"Depth frame: {computation_time_ms:.1f} ms, "
                f"valid={stats['valid_fraction']:.1%}, "
                f"min={stats['min_mm']}, max={stats['max_mm']}, mean={stats['mean_mm']}"
            )

        return DepthResult(
            depth_mm=depth_mm,
            computation_time_ms=computation_time_ms,
            backend=self.backend_name,
        )

    def shutdown(self) -> None:
        """Release backend resources."""
        if self._matcher is not None:
            self._matcher.shutdown()
            self._matcher = None
        logger.info("Depth processor shutdown complete")


def check_backends_available() -> dict[str, tuple[bool, str]]:
    """
    Check availability of all backends.

    Returns:
        Dict mapping backend name to (available, message) tuples
    """
    results = {
        "sgbm": (hasattr(cv2, "StereoSGBM_create"), SGBMMatcher.get_backend_info()),
        "bm": (hasattr(cv2, "StereoBM_create"), BMMatcher.get_backend_info()),
        "precomputed": (True, PrecomputedMatcher.get_backend_info()),
    }

    return results
