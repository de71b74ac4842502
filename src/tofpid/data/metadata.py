"""Module with a data class object which holds the dataset metadata."""

from dataclasses import dataclass

from .base import DataBase

__all__ = ["RunMetadata"]


@dataclass(eq=False)
class RunMetadata(DataBase):
    """Dataset-level metadata, constant over a processing job.

    Attributes
    ----------
    is_run3 : bool
        Whether the data was recorded in Run 3 (as opposed to Run 2)
    is_mc : bool
        Whether the dataset is a simulation
    reco_pass_name : str
        Name of the reconstruction pass of the dataset
    anchor_pass_name : str
        Name of the reconstruction pass the simulation is anchored to
    """

    is_run3: bool = None
    is_mc: bool = None
    reco_pass_name: str = None
    anchor_pass_name: str = None

    # String attributes
    _str_attrs = ("reco_pass_name", "anchor_pass_name")

    # Boolean attributes
    _bool_attrs = ("is_run3", "is_mc")

    def is_fully_defined(self):
        """Checks whether the processing-relevant metadata is known.

        Returns
        -------
        bool
            `True` if both the data-taking period and the data type are set
        """
        return self.is_run3 is not None and self.is_mc is not None

    @property
    def pass_name(self):
        """Name of the reconstruction pass relevant to the calibration.

        Returns
        -------
        str
            Anchor pass for simulation, reconstruction pass for data
        """
        return self.anchor_pass_name if self.is_mc else self.reco_pass_name
