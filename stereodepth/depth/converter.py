"""Disparity to metric depth conversion.

The converter asks a stereo matcher for a disparity map and turns it into
a millimeter depth map (int16). Estimates outside the trusted operating
range are replaced by ``INVALID_DEPTH`` so downstream consumers only need to
check a single reserved value.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np

from .backends.base import StereoMatcher
from .calibration import StereoCalibration
from .errors import UnsupportedFormat

# Marks pixels without a valid depth estimate
INVALID_DEPTH = int(np.iinfo(np.int16).max)

# Operating range in which disparities are trusted. Too large a maximum
# makes the map noisy; too small only keeps the road surface.
K_MIN_DEPTH_MM = 500
K_MAX_DEPTH_MM = 15000

METERS_TO_MILLIMETERS = 1000.0

SUPPORTED_DISPARITY_TYPES = (np.dtype(np.float32), np.dtype(np.int16))


class DepthConverter:
    """Computes depth maps from stereo pairs (stereo -> disparity -> depth).

    Example:
        converter = DepthConverter(SGBMMatcher())
        depth_mm = converter.compute_depth(left, right, calibration)
    """

    def __init__(
        self,
        matcher: StereoMatcher,
        input_is_depth: bool = False,
        min_depth_mm: int = K_MIN_DEPTH_MM,
        max_depth_mm: int = K_MAX_DEPTH_MM,
        num_workers: int = 1,
    ):
        """
        Initialize the converter.

        Args:
            matcher: Backend producing disparity maps.
            input_is_depth: If True, the matcher already returns depth maps
                            and no conversion or filtering is performed.
            min_depth_mm: Smallest depth kept (inclusive).
            max_depth_mm: Largest depth kept (inclusive).
            num_workers: Number of threads used for the conversion. Rows
                         are split into disjoint bands.

        Raises:
            ValueError: If the depth bounds or worker count are invalid.
        """
        if not 0 < min_depth_mm <= max_depth_mm < INVALID_DEPTH:
            raise ValueError(
                f"Depth bounds must satisfy 0 < min <= max < {INVALID_DEPTH}, "
                f"got min={min_depth_mm}, max={max_depth_mm}"
            )
        if num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {num_workers}")

        self.matcher = matcher
        self.input_is_depth = input_is_depth
        self.min_depth_mm = min_depth_mm
        self.max_depth_mm = max_depth_mm
        self.num_workers = num_workers

    def get_name(self) -> str:
        """Name of the disparity estimation technique in use."""
        return self.matcher.get_name()

    def compute_depth(
        self,
        left: np.ndarray,
        right: np.ndarray,
        calibration: StereoCalibration,
        out: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Compute a millimeter depth map from a rectified stereo pair.

        Args:
            left: Left camera image
            right: Right camera image
            calibration: Stereo rig calibration
            out: Optional int16 buffer to reuse, same size as the images

        Returns:
            Depth map (H, W) in millimeters. In depth passthrough mode this
            is the matcher output, untouched.

        Raises:
            UnsupportedFormat: If the disparity map has an unsupported type.
        """
        if self.input_is_depth:
            depth = self.matcher.disparity_map_from_stereo(left, right)
            if out is None:
                return depth
            if out.dtype != depth.dtype or out.shape != depth.shape:
                raise ValueError(
                    f"Output buffer must be {depth.dtype} with shape {depth.shape}, "
                    f"got {out.dtype} with shape {out.shape}"
                )
            out[...] = depth
            return out

        disparity = self.matcher.disparity_map_from_stereo(left, right)
        return self.depth_from_disparity_map(disparity, calibration, out=out)

    def depth_from_disparity_map(
        self,
        disparity: np.ndarray,
        calibration: StereoCalibration,
        out: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Convert every pixel of a disparity map to depth in millimeters.

        Nothing is written to ``out`` when the input is rejected.

        Args:
            disparity: Disparity map (H, W), float32 or int16
            calibration: Stereo rig calibration
            out: Optional int16 buffer to reuse

        Returns:
            int16 depth map (H, W), ``INVALID_DEPTH`` where out of range
        """
        check_disparity_format(disparity)

        if out is None:
            out = np.empty(disparity.shape, dtype=np.int16)
        elif out.dtype != np.int16 or out.shape != disparity.shape:
            raise ValueError(
                f"Output buffer must be int16 with shape {disparity.shape}, "
                f"got {out.dtype} with shape {out.shape}"
            )

        rows = disparity.shape[0]
        if self.num_workers == 1 or rows < 2:
            self._convert_rows(disparity, calibration, out)
            return out

        bounds = np.linspace(0, rows, min(self.num_workers, rows) + 1, dtype=int)
        with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
            futures = [
                executor.submit(
                    self._convert_rows,
                    disparity[start:stop],
                    calibration,
                    out[start:stop],
                )
                for start, stop in zip(bounds[:-1], bounds[1:])
            ]
            for future in futures:
                future.result()

        return out

    def _convert_rows(
        self,
        disparity: np.ndarray,
        calibration: StereoCalibration,
        out: np.ndarray,
    ) -> None:
        """Convert a block of rows, writing into the matching block of ``out``."""
        # Zero disparity divides by zero; the infinities are filtered below
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            depth_m = self.matcher.depth_from_disparity(disparity, calibration)
            depth_mm = np.trunc(np.asarray(depth_m, dtype=np.float64) * METERS_TO_MILLIMETERS)

            # NaN fails both comparisons, so it is caught by isfinite
            invalid = (
                ~np.isfinite(depth_mm)
                | (depth_mm > self.max_depth_mm)
                | (depth_mm < self.min_depth_mm)
            )
            depth_mm[invalid] = INVALID_DEPTH

        out[...] = depth_mm.astype(np.int16)


def check_disparity_format(disparity: np.ndarray) -> None:
    """
    Ensure a disparity map can be converted.

    Raises:
        UnsupportedFormat: If the map is not a 2-D float32 or int16 array.
    """
    dtype = getattr(disparity, "dtype", None)
    if dtype is None:
        raise UnsupportedFormat(type(disparity).__name__)

    # Compare in native byte order so big-endian .npy maps are accepted
    if dtype.newbyteorder("=") not in SUPPORTED_DISPARITY_TYPES:
        raise UnsupportedFormat(str(dtype))

    if disparity.ndim != 2:
        raise UnsupportedFormat(
            str(dtype),
            f"Disparity map must be single-channel 2-D, got shape {disparity.shape}",
        )


def depth_stats(depth_mm: np.ndarray) -> dict:
    """
    Summarize a millimeter depth map.

    Returns:
        Dict with valid pixel fraction and min/max/mean depth of valid pixels
        (None when no pixel is valid).
    """
    valid = depth_mm != INVALID_DEPTH
    count = int(valid.sum())
    stats = {
        "valid_fraction": count / depth_mm.size if depth_mm.size else 0.0,
        "min_mm": None,
        "max_mm": None,
        "mean_mm": None,
    }
    if count:
        values = depth_mm[valid]
        stats["min_mm"] = int(values.min())
        stats["max_mm"] = int(values.max())
        stats["mean_mm"] = float(values.mean())
    return stats
