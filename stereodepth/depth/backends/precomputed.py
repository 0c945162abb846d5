"""Backend serving disparity or depth maps computed ahead of time.

Some datasets ship disparity maps produced offline (e.g. by a learned
matcher), or even ready-made depth maps. This backend reads them from a
directory, one file per frame, instead of matching the images itself.
"""

from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from stereodepth.utils.logger import get_logger
from .base import StereoMatcher

logger = get_logger(__name__)

SUPPORTED_EXTENSIONS = (".npy", ".png")

# KITTI stores disparity PNGs as uint16 with disparity = value / 256
KITTI_DISPARITY_SCALE = 256.0


class PrecomputedMatcher(StereoMatcher):
    """Reads per-frame disparity (or depth) maps from disk.

    Frames are looked up by index using ``pattern``; every read advances
    the index by one, so consecutive calls walk through a sequence.

    File handling:
    - ``.npy``: loaded as-is, element type preserved.
    - 16-bit ``.png``, disparity mode: decoded as ``value / disparity_scale``
      into float32 pixels.
    - 16-bit ``.png``, depth mode: millimeters, returned as int16 with
      values that do not fit mapped to the invalid marker 32767.
    - Anything else is returned unchanged.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        input_is_depth: bool = False,
        pattern: str = "{index:06d}",
        disparity_scale: float = KITTI_DISPARITY_SCALE,
        start_index: int = 0,
    ):
        """
        Initialize the precomputed map reader.

        Args:
            directory: Folder containing one map per frame.
            input_is_depth: Whether the files hold depth (mm) instead of disparity.
            pattern: Format string for the file stem, receives ``index``.
            disparity_scale: Divisor applied to 16-bit disparity PNGs.
            start_index: Index of the first frame to read.
        """
        self.directory = Path(directory)
        self.input_is_depth = input_is_depth
        self.pattern = pattern
        self.disparity_scale = disparity_scale
        self.frame_index = start_index

        if not self.directory.is_dir():
            raise FileNotFoundError(f"Precomputed map directory not found: {self.directory}")

    def set_frame_index(self, index: int) -> None:
        """Select the frame returned by the next read."""
        if index < 0:
            raise ValueError(f"Frame index must be non-negative, got {index}")
        self.frame_index = index

    def frame_path(self, index: int) -> Path:
        """
        Find the file holding the map for a frame.

        Raises:
            FileNotFoundError: If no file with a supported extension exists.
        """
        stem = self.pattern.format(index=index)
        for ext in SUPPORTED_EXTENSIONS:
            candidate = self.directory / f"{stem}{ext}"
            if candidate.exists():
                return candidate
        raise FileNotFoundError(
            f"No precomputed map for frame {index} ({stem}{{{','.join(SUPPORTED_EXTENSIONS)}}}) "
            f"in {self.directory}"
        )

    def disparity_map_from_stereo(
        self,
        left: Optional[np.ndarray] = None,
        right: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Return the stored map for the current frame and advance to the next.

        The images are not used; they are accepted so this backend can stand
        in for any other matcher.
        """
        path = self.frame_path(self.frame_index)
        result = self.load_map(path)
        logger.debug(f"Loaded {self.get_name()} frame {self.frame_index} from {path.name}")
        self.frame_index += 1
        return result

    def load_map(self, path: Path) -> np.ndarray:
        """Read a single map file and decode it according to the mode."""
        if path.suffix == ".npy":
            return np.load(path)

        raw = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if raw is None:
            raise ValueError(f"Could not decode image: {path}")

        if raw.dtype != np.uint16:
            return raw

        if self.input_is_depth:
            invalid = np.iinfo(np.int16).max
            return np.minimum(raw, invalid).astype(np.int16)

        return raw.astype(np.float32) / np.float32(self.disparity_scale)

    def get_name(self) -> str:
        return "precomputed-depth" if self.input_is_depth else "precomputed-disparity"

    @staticmethod
    def get_backend_info() -> str:
        """Return human-readable backend description."""
        return "Precomputed maps read from disk"
