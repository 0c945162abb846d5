"""
stereodepth - metric depth maps from rectified stereo pairs

Computes millimeter depth maps (int16, 32767 = no depth) for a single
stereo pair or a whole sequence of pairs.

Usage:
    python -m stereodepth.main --left L.png --right R.png --output depth.png
    python -m stereodepth.main --left-dir image_2 --right-dir image_3 --output-dir depth
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import cv2
from pydantic import ValidationError

from stereodepth.config.settings import DepthConfig, LoggingConfig, get_settings
from stereodepth.utils.logger import setup_from_settings, get_logger
from stereodepth.utils.timing import FrameTimer, timestamp_ms
from stereodepth.depth import (
    CalibrationError,
    DepthError,
    DepthProcessor,
    StereoCalibration,
    apply_colormap,
)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".ppm", ".pgm")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Compute millimeter depth maps from rectified stereo pairs"
    )
    parser.add_argument('--config', type=Path, default=None,
                        help='Path to config.yaml (default: config/config.yaml)')

    inputs = parser.add_argument_group('inputs')
    inputs.add_argument('--left', type=Path, help='Left image of a single pair')
    inputs.add_argument('--right', type=Path, help='Right image of a single pair')
    inputs.add_argument('--left-dir', type=Path, help='Directory of left images (sequence mode)')
    inputs.add_argument('--right-dir', type=Path, help='Directory of right images (sequence mode)')
    inputs.add_argument('--num-frames', type=int, default=None,
                        help='Number of frames to read with the precomputed backend '
                             'when no images are given')

    calib = parser.add_argument_group('calibration')
    calib.add_argument('--baseline', type=float, help='Stereo baseline in meters')
    calib.add_argument('--focal', type=float, help='Focal length in pixels')
    calib.add_argument('--calib-file', type=Path,
                       help='KITTI calibration text file or calibration JSON')

    depth = parser.add_argument_group('depth')
    depth.add_argument('--backend', choices=['sgbm', 'bm', 'precomputed'],
                       help='Stereo matching backend (overrides config)')
    depth.add_argument('--precomputed-dir', type=Path,
                       help='Directory of precomputed disparity/depth maps')
    depth.add_argument('--input-is-depth', action='store_true',
                       help='Treat matcher output as depth; skip conversion')
    depth.add_argument('--workers', type=int, help='Threads used for the conversion')

    output = parser.add_argument_group('output')
    output.add_argument('--output', type=Path, help='Output depth map (.png or .npy)')
    output.add_argument('--output-dir', type=Path, help='Output directory (sequence mode)')
    output.add_argument('--colormap', type=Path,
                        help='Also write a colorized depth image (single pair) or '
                             'directory of them (sequence mode)')
    output.add_argument('--log-level', default=None,
                        help='Logging level (overrides config)')
    return parser.parse_args(argv)


def depth_config_from_args(base: DepthConfig, args: argparse.Namespace) -> DepthConfig:
    """Apply command line overrides on top of the configured depth settings."""
    overrides = {}
    if args.backend:
        overrides['backend'] = args.backend
    if args.input_is_depth:
        overrides['input_is_depth'] = True
    if args.workers:
        overrides['num_workers'] = args.workers
    if args.baseline is not None:
        overrides['baseline_m'] = args.baseline
        overrides['calibration_file'] = None
    if args.focal is not None:
        overrides['focal_length_px'] = args.focal
        overrides['calibration_file'] = None
    if args.calib_file is not None:
        overrides['calibration_file'] = str(args.calib_file)

    data = base.dict()
    data.update(overrides)
    if args.precomputed_dir is not None:
        data['precomputed']['directory'] = str(args.precomputed_dir)

    return DepthConfig(**data)


def write_depth(path: Path, depth_mm: np.ndarray) -> None:
    """
    Write a depth map to disk.

    ``.npy`` keeps the int16 array as-is; image formats store it as 16-bit
    unsigned, which leaves valid depths and the invalid marker unchanged.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".npy":
        np.save(path, depth_mm)
        return

    if not cv2.imwrite(str(path), np.clip(depth_mm, 0, None).astype(np.uint16)):
        raise IOError(f"Failed to write depth map: {path}")


def list_images(directory: Path) -> List[Path]:
    """Sorted image files in a directory."""
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
    )


class DepthApp:
    """Command line depth map generation."""

    def __init__(self, args: argparse.Namespace):
        """
        Initialize the application.

        Args:
            args: Parsed command line arguments.
        """
        self.args = args
        self.settings = get_settings(args.config, reload=True)

        self.config_error: Optional[str] = None
        if args.log_level:
            try:
                self.settings.logging = LoggingConfig(
                    **{**self.settings.logging.dict(), "level": args.log_level}
                )
            except ValidationError:
                self.config_error = f"Invalid --log-level: {args.log_level}"
        setup_from_settings(self.settings.logging)
        self.logger = get_logger(__name__)

        self.processor: Optional[DepthProcessor] = None
        self.frame_timer = FrameTimer(window_size=100)

    def initialize(self) -> bool:
        """
        Create the depth processor.

        Returns:
            True if successful, False otherwise.
        """
        try:
            depth_config = depth_config_from_args(self.settings.depth, self.args)
            calibration = StereoCalibration.from_settings(depth_config)
            self.processor = DepthProcessor(depth_config, calibration=calibration)
            return True

        except CalibrationError as e:
            self.logger.error(f"Invalid calibration: {e}")
            return False

        except (ValueError, FileNotFoundError) as e:
            self.logger.error(f"Initialization failed: {e}")
            return False

    def read_pair(self, left_path: Path, right_path: Path) -> Tuple[np.ndarray, np.ndarray]:
        """Load a stereo pair from disk."""
        left = cv2.imread(str(left_path), cv2.IMREAD_UNCHANGED)
        right = cv2.imread(str(right_path), cv2.IMREAD_UNCHANGED)
        if left is None or right is None:
            raise FileNotFoundError(f"Could not read stereo pair {left_path}, {right_path}")
        if left.shape[:2] != right.shape[:2]:
            raise ValueError(
                f"Stereo pair size mismatch: {left.shape[:2]} vs {right.shape[:2]}"
            )
        return left, right

    def process(
        self,
        left: Optional[np.ndarray],
        right: Optional[np.ndarray],
        output: Optional[Path],
        colormap: Optional[Path],
    ) -> None:
        """Compute one depth map and write the requested outputs."""
        result = self.processor.compute(left, right)
        self.frame_timer.add(result.computation_time_ms)

        self.logger.info(
            f"Frame {self.frame_timer.frame_count}: {result.computation_time_ms:.1f} ms, "
            f"{result.valid_fraction():.1%} valid"
        )

        if output is not None:
            write_depth(output, result.depth_mm)
        if colormap is not None:
            colormap.parent.mkdir(parents=True, exist_ok=True)
            cv2.imwrite(str(colormap), apply_colormap(result.depth_mm))

    def run_pair(self) -> None:
        """Process a single stereo pair."""
        left, right = self.read_pair(self.args.left, self.args.right)
        self.process(left, right, self.args.output, self.args.colormap)

    def run_sequence(self) -> None:
        """Process every pair of a left/right directory sequence."""
        args = self.args
        if args.left_dir is not None:
            left_files = list_images(args.left_dir)
            right_files = [args.right_dir / p.name for p in left_files]
        else:
            # Precomputed backend without images
            left_files = [None] * args.num_frames
            right_files = [None] * args.num_frames

        self.logger.info(f"Processing {len(left_files)} frames")

        for index, (left_path, right_path) in enumerate(zip(left_files, right_files)):
            stem = left_path.stem if left_path is not None else f"{index:06d}"
            if left_path is not None:
                left, right = self.read_pair(left_path, right_path)
            else:
                left, right = None, None

            output = args.output_dir / f"{stem}.png" if args.output_dir else None
            colormap = args.colormap / f"{stem}.png" if args.colormap else None
            self.process(left, right, output, colormap)

    def run(self) -> int:
        """
        Run the application.

        Returns:
            Exit code (0 = success, 1 = error).
        """
        if self.config_error:
            self.logger.error(self.config_error)
            return 1

        args = self.args
        single = args.left is not None or args.right is not None
        sequence = args.left_dir is not None or args.num_frames is not None

        if single == sequence:
            self.logger.error("Give either --left/--right or --left-dir/--right-dir (or --num-frames)")
            return 1
        if single and (args.left is None or args.right is None):
            self.logger.error("Both --left and --right are required")
            return 1
        if args.left_dir is not None and args.right_dir is None:
            self.logger.error("--right-dir is required with --left-dir")
            return 1

        if not self.initialize():
            self.logger.error("Initialization failed")
            return 1

        start_ms = timestamp_ms()
        try:
            if single:
                self.run_pair()
            else:
                self.run_sequence()

        except DepthError as e:
            self.logger.error(f"Depth computation failed: {e}")
            return 1

        except (OSError, ValueError) as e:
            self.logger.error(f"{e}")
            return 1

        finally:
            self.processor.shutdown()

        mean = self.frame_timer.mean_ms()
        if mean is not None:
            self.logger.info(
                f"Done: {self.frame_timer.frame_count} frames in "
                f"{(timestamp_ms() - start_ms) / 1000:.2f} s "
                f"(mean {mean:.1f} ms, max {self.frame_timer.max_ms():.1f} ms)"
            )
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code.
    """
    args = parse_args(argv)
    app = DepthApp(args)
    return app.run()


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)
