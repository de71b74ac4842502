"""Numba JIT compiled numerical kernels."""

from . import evtime
