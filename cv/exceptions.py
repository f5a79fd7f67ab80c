"""Custom exceptions for camera and model adapters."""


class ModelLoadError(RuntimeError):
    """Raised when the detector or depth model cannot be loaded."""


class CameraUnavailableError(RuntimeError):
    """Raised when the camera source cannot be opened."""
