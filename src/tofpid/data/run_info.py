"""Module with a data class object which represents the run information."""

from dataclasses import dataclass

from .base import DataBase

__all__ = ["RunInfo"]


@dataclass(eq=False)
class RunInfo(DataBase):
    """Run information related to a specific batch of tracks.

    Attributes
    ----------
    run : int
        Run number
    timestamp : int
        Timestamp of the first bunch crossing of the batch (ms)
    """

    run: int = -1
    timestamp: int = -1
