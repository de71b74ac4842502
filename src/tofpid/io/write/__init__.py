"""Writers of the output files."""

from .hdf5 import HDF5Writer
