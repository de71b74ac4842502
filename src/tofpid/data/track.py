"""Module with a data class object which represents a reconstructed track."""

from dataclasses import dataclass

from tofpid.utils.enums import TrackType

from .base import DataBase

__all__ = ["Track"]


@dataclass(eq=False)
class Track(DataBase):
    """Reconstructed track, as seen by the TOF particle identification.

    Attributes
    ----------
    id : int
        Index of the track in the batch
    collision_id : int
        Index of the collision the track is associated with (-1 if none)
    p : float
        Total momentum at the vertex (GeV/c)
    eta : float
        Pseudorapidity
    sign : int
        Charge sign (+1 or -1)
    has_tof : bool
        Whether the track is matched to a TOF hit
    has_tpc : bool
        Whether the track has TPC clusters
    has_its : bool
        Whether the track has ITS clusters
    track_type : TrackType
        Type of track (propagated, inner-most update, Run 2 track, tracklet)
    length : float
        Integrated track length up to the TOF hit (cm)
    tof_exp_mom : float
        Momentum used to compute the expected times of flight (GeV/c)
    track_time : float
        Time of the TOF hit (ns), Run 3 field
    tof_signal : float
        TOF signal (ps), Run 2 field
    """

    id: int = -1
    collision_id: int = -1
    p: float = -1.0
    eta: float = 0.0
    sign: int = 1
    has_tof: bool = False
    has_tpc: bool = False
    has_its: bool = False
    track_type: TrackType = TrackType.TRACK
    length: float = -1.0
    tof_exp_mom: float = -1.0
    track_time: float = 0.0
    tof_signal: float = 0.0

    # Enumerated attributes
    _enum_attrs = (("track_type", TrackType),)

    # Boolean attributes
    _bool_attrs = ("has_tof", "has_tpc", "has_its")

    def __str__(self):
        """Human-readable string representation of the track object.

        Returns
        -------
        str
            Basic information about the track properties
        """
        return (
            f"Track(ID: {self.id:<3} | Collision: {self.collision_id:<3} "
            f"| p: {self.p:0.3f} GeV/c | TOF: {self.has_tof})"
        )

    @property
    def has_collision(self):
        """Whether the track is associated with a collision.

        Returns
        -------
        bool
            `True` if the collision index is valid
        """
        return self.collision_id > -1
