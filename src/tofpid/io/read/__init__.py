"""Readers of the input files."""

from .hdf5 import HDF5Reader
