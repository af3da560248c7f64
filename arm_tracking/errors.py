"""Exception hierarchy for the tracking package."""


class TrackingError(RuntimeError):
    """Base class for everything raised by :mod:`arm_tracking`."""


class TransportError(TrackingError):
    """Raised when a TCP service cannot be brought up (e.g. port in use)."""


class DetectorError(TrackingError):
    """Raised when a detector backend cannot be constructed."""
