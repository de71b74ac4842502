"""Exceptions raised when calibration objects cannot be retrieved."""


class CalibrationUnavailable(Exception):
    """Raised when a required calibration object is missing.

    This covers a reconstruction pass absent from the parameter collection
    (with no fallback allowed), a missing default pass and a null object
    returned by the object store for a required path.
    """
