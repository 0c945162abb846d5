import numpy as np
import pytest

from stereodepth.depth.backends.base import StereoMatcher
from stereodepth.depth.calibration import StereoCalibration


class FakeMatcher(StereoMatcher):
    """Returns a fixed map and counts how often it was asked."""

    def __init__(self, output, name="fake"):
        self.output = output
        self.name = name
        self.calls = 0

    def disparity_map_from_stereo(self, left, right):
        self.calls += 1
        return self.output

    def get_name(self):
        return self.name


class MillimeterMatcher(FakeMatcher):
    """Disparity values are the expected depth in mm, to test the range limits."""

    def depth_from_disparity(self, disparity, calibration):
        return np.asarray(disparity, dtype=np.float64) / 1000.0


@pytest.fixture
def stereo_pair():
    left = np.zeros((4, 6), dtype=np.uint8)
    right = np.zeros((4, 6), dtype=np.uint8)
    return left, right


@pytest.fixture
def calibration():
    return StereoCalibration(baseline_meters=0.5, focal_length_px=700.0)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("STEREODEPTH_BACKEND", "STEREODEPTH_CALIBRATION_FILE", "STEREODEPTH_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
