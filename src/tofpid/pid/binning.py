"""Compact 8-bit storage of Nsigma values.

Nsigma values are quantized in bins of 0.05 over the [-6.35, 6.35] range.
Values outside of the range saturate to the edge codes (-127 and 127), and
the -128 code is reserved for values which could not be computed.
"""

import numpy as np

from tofpid.utils.globals import NOT_COMPUTED

__all__ = ["pack", "unpack"]

# Width of one Nsigma bin
BIN_WIDTH = 0.05

# Largest code of a stored value
BIN_MAX = 127

# Largest absolute Nsigma value which can be stored
BIN_RANGE = BIN_MAX * BIN_WIDTH

# Code reserved for values which could not be computed
NOT_COMPUTED_CODE = -128


def pack(nsigma):
    """Quantizes Nsigma values to 8-bit codes.

    Values are rounded to the closest bin, half away from zero.

    Parameters
    ----------
    nsigma : Union[float, np.ndarray]
        Nsigma value(s)

    Returns
    -------
    Union[np.int8, np.ndarray]
        8-bit code(s)
    """
    values = np.asarray(nsigma, dtype=np.float64)
    invalid = np.isnan(values) | (values == NOT_COMPUTED)
    safe = np.where(invalid, 0.0, values)

    codes = np.trunc(safe / BIN_WIDTH + np.copysign(0.5, safe))
    codes = np.clip(codes, -BIN_MAX, BIN_MAX)
    codes = np.where(invalid, NOT_COMPUTED_CODE, codes).astype(np.int8)

    return codes if codes.ndim else codes[()]


def unpack(codes):
    """Converts 8-bit codes back to Nsigma values.

    Parameters
    ----------
    codes : Union[int, np.ndarray]
        8-bit code(s)

    Returns
    -------
    Union[float, np.ndarray]
        Nsigma value(s), `NOT_COMPUTED` for the reserved code
    """
    codes = np.asarray(codes, dtype=np.int16)
    values = np.where(codes == NOT_COMPUTED_CODE, NOT_COMPUTED, codes * BIN_WIDTH)

    return values if values.ndim else float(values)
