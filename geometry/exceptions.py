"""Custom exceptions for coordinate-space geometry."""


class GeometryError(ValueError):
    """Raised for invalid dimensions, rotations or singular transforms."""


class GeometryNotConfiguredError(RuntimeError):
    """Raised when transforms are requested before configure() ran."""
