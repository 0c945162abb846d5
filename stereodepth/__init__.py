"""stereodepth - metric depth maps from rectified stereo pairs."""

__version__ = "0.1.0"
