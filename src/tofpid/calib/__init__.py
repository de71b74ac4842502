"""Calibration parameters of the TOF response and their run-keyed store.

It contains:
- :class:`CalibrationStore`, which resolves the bundle active for a run
- :class:`CalibrationParameters`, the immutable parameter bundle
- object store backends (:class:`MemoryDatabase`, :class:`LocalDatabase`)
"""

from .database import LocalDatabase, MemoryDatabase
from .errors import CalibrationUnavailable
from .factories import database_factory
from .parameters import (
    CalibrationParameters,
    MomentumChargeShift,
    ParameterCollection,
    TimeShiftCurve,
)
from .store import CalibrationStore
