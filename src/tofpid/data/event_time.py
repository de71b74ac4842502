"""Module with a data class object which represents an event time estimate."""

from dataclasses import dataclass

from tofpid.utils.enums import PIDFlags
from tofpid.utils.globals import ERR_DIAMOND, NO_EV_TIME_ERR

from .base import DataBase

__all__ = ["EventTimeEstimate"]


@dataclass(eq=False)
class EventTimeEstimate(DataBase):
    """Event time associated with one track.

    Attributes
    ----------
    value : float
        Event time (ps)
    error : float
        Uncertainty on the event time (ps)
    multiplicity : int
        Number of tracks which contributed to the estimate (-1 if not computed)
    flags : PIDFlags
        Sources which contributed to the estimate
    """

    value: float = 0.0
    error: float = NO_EV_TIME_ERR
    multiplicity: int = -1
    flags: PIDFlags = PIDFlags.EV_TIME_UNDEF

    # Enumerated attributes
    _enum_attrs = (("flags", PIDFlags),)

    @classmethod
    def no_collision(cls):
        """Estimate assigned to tracks which are not associated with a
        collision (or whose collision fails the event selection).
        """
        return cls(0.0, ERR_DIAMOND, -1, PIDFlags.EV_TIME_UNDEF)

    @classmethod
    def no_ft0(cls):
        """Estimate assigned when only the FT0 is used and it is not valid."""
        return cls(0.0, NO_EV_TIME_ERR, -1, PIDFlags.EV_TIME_UNDEF)

    @classmethod
    def diamond(cls, multiplicity=0):
        """Estimate which only knows about the collision diamond spread.

        Parameters
        ----------
        multiplicity : int, default 0
            Number of tracks which were available to the estimate
        """
        return cls(0.0, ERR_DIAMOND, multiplicity, PIDFlags.EV_TIME_UNDEF)

    def as_tuple(self):
        """Returns the estimate as a (value, error) pair.

        Returns
        -------
        Tuple[float, float]
            Event time and its uncertainty (ps)
        """
        return (self.value, self.error)
