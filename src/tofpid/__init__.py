"""Top-level module of the TOF particle identification source code."""

# Import main workflow entry point
from .driver import Driver
from .version import __version__

# Import commonly used data structures
from .data import Collision, RunInfo, RunMetadata, Track
