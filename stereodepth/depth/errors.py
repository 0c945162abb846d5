"""Exceptions raised by the depth estimation module."""


class DepthError(Exception):
    """Base class for depth estimation errors."""
    pass


class UnsupportedFormat(DepthError):
    """Raised when a disparity map has an element type the converter cannot read."""

    def __init__(self, dtype, message=None):
        self.dtype = dtype
        if message is None:
            message = (
                f"Unknown data type for disparity matrix [{dtype}]. "
                f"Supported are float32 and int16."
            )
        super().__init__(message)


class CalibrationError(DepthError):
    """Exception raised for invalid or unreadable stereo calibration."""
    pass
