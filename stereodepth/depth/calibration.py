"""Stereo rig calibration used for disparity to depth conversion."""

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from .errors import CalibrationError


@dataclass(frozen=True)
class StereoCalibration:
    """Calibration parameters of a rectified stereo rig.

    Only the two values needed for triangulation are kept. Instances are
    immutable and can be shared between concurrent conversions.
    """

    baseline_meters: float  # distance between camera centers
    focal_length_px: float  # focal length of the rectified cameras

    def __post_init__(self):
        for name in ("baseline_meters", "focal_length_px"):
            value = float(np.float32(getattr(self, name)))
            if not math.isfinite(value) or value <= 0:
                raise CalibrationError(
                    f"{name} must be a finite positive number, got {getattr(self, name)!r}"
                )
            # Stored at float32 precision, like the rest of the pipeline
            object.__setattr__(self, name, value)

    @property
    def baseline_focal_product(self) -> np.float32:
        """Baseline times focal length, the numerator of the depth relation."""
        return np.float32(self.baseline_meters) * np.float32(self.focal_length_px)

    @classmethod
    def from_projection_matrices(
        cls,
        proj_left: np.ndarray,
        proj_right: np.ndarray,
    ) -> "StereoCalibration":
        """
        Build a calibration from rectified 3x4 projection matrices.

        For a rectified pair, P_right[0, 3] = -fx * baseline (relative to
        the left camera), which is how KITTI stores its camera matrices.

        Args:
            proj_left: Left camera projection matrix (3, 4)
            proj_right: Right camera projection matrix (3, 4)

        Returns:
            StereoCalibration instance
        """
        proj_left = np.asarray(proj_left, dtype=np.float64).reshape(3, 4)
        proj_right = np.asarray(proj_right, dtype=np.float64).reshape(3, 4)

        focal_length = proj_left[0, 0]
        if focal_length <= 0:
            raise CalibrationError(f"Invalid focal length in projection matrix: {focal_length}")

        baseline = (proj_left[0, 3] - proj_right[0, 3]) / focal_length
        return cls(baseline_meters=baseline, focal_length_px=focal_length)

    @classmethod
    def from_kitti_calib_file(
        cls,
        path: Union[str, Path],
        left: str = "P2",
        right: str = "P3",
    ) -> "StereoCalibration":
        """
        Load a calibration from a KITTI style calibration text file.

        Each line holds a key followed by a colon and the row-major values,
        e.g. ``P2: 7.07e+02 0.0 6.04e+02 4.57e+01 ...``.

        Args:
            path: Path to calib.txt (odometry) or calib_cam_to_cam.txt (raw)
            left: Key of the left camera projection matrix
            right: Key of the right camera projection matrix

        Returns:
            StereoCalibration instance

        Raises:
            CalibrationError: If the file lacks either matrix.
        """
        path = Path(path)
        matrices = {}

        with open(path) as f:
            for line in f:
                if ":" not in line:
                    continue
                key, values = line.split(":", 1)
                try:
                    matrices[key.strip()] = np.array(
                        [float(v) for v in values.split()], dtype=np.float64
                    )
                except ValueError:
                    # Non-numeric entries such as calib_time
                    continue

        # Raw KITTI sequences name the rectified matrices P_rect_02/P_rect_03
        aliases = {"P2": "P_rect_02", "P3": "P_rect_03", "P0": "P_rect_00", "P1": "P_rect_01"}

        def lookup(key):
            for candidate in (key, aliases.get(key)):
                if candidate in matrices and matrices[candidate].size == 12:
                    return matrices[candidate]
            raise CalibrationError(f"Projection matrix '{key}' not found in {path}")

        return cls.from_projection_matrices(lookup(left), lookup(right))

    @classmethod
    def from_settings(cls, depth_config) -> "StereoCalibration":
        """
        Build a calibration from the depth section of the settings.

        Uses ``calibration_file`` when set, otherwise the explicit
        ``baseline_m`` / ``focal_length_px`` values.
        """
        if depth_config.calibration_file:
            path = Path(depth_config.calibration_file)
            if path.suffix == ".json":
                return cls.load(path)
            return cls.from_kitti_calib_file(path)

        return cls(
            baseline_meters=depth_config.baseline_m,
            focal_length_px=depth_config.focal_length_px,
        )

    def save(self, path: Path) -> None:
        """
        Save calibration to JSON file.

        Args:
            path: Path to save calibration data
        """
        data = {
            "baseline_meters": self.baseline_meters,
            "focal_length_px": self.focal_length_px,
        }

        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def load(cls, path: Path) -> "StereoCalibration":
        """
        Load calibration from JSON file.

        Args:
            path: Path to calibration JSON file

        Returns:
            StereoCalibration instance
        """
        with open(path) as f:
            data = json.load(f)

        try:
            return cls(
                baseline_meters=data["baseline_meters"],
                focal_length_px=data["focal_length_px"],
            )
        except KeyError as e:
            raise CalibrationError(f"Missing calibration field {e} in {path}") from e
