"""Module with a data class object which represents a PID response."""

from dataclasses import dataclass

from tofpid.utils.enums import Species
from tofpid.utils.globals import NOT_COMPUTED

from .base import DataBase

__all__ = ["PIDResult"]


@dataclass(eq=False)
class PIDResult(DataBase):
    """TOF response of one track under one mass hypothesis.

    Attributes
    ----------
    species : Species
        Mass hypothesis
    nsigma : float
        Separation between the measured and expected times of flight, in
        units of the expected resolution
    sigma : float
        Expected resolution (ps)
    """

    species: Species = Species.PION
    nsigma: float = NOT_COMPUTED
    sigma: float = NOT_COMPUTED

    # Enumerated attributes
    _enum_attrs = (("species", Species),)

    @property
    def is_computed(self):
        """Whether the separation could be computed."""
        return self.nsigma != NOT_COMPUTED
