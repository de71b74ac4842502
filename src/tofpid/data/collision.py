"""Module with a data class object which represents a collision."""

from dataclasses import dataclass

import numpy as np

from .base import DataBase

__all__ = ["Collision"]


@dataclass(eq=False)
class Collision(DataBase):
    """Reconstructed collision (primary vertex).

    Attributes
    ----------
    id : int
        Index of the collision in the batch
    position : np.ndarray
        (3) Position of the vertex (cm)
    sel8 : bool
        Whether the collision passes the standard event selection
    has_ft0 : bool
        Whether an FT0 measurement is associated with the collision
    t0ac_valid : bool
        Whether the FT0 A+C event time is valid
    t0ac : float
        FT0 A+C event time (ns)
    t0_resolution : float
        Resolution of the FT0 A+C event time (ns)
    collision_time : float
        Event time stored with the collision (ns), Run 2 field
    collision_time_res : float
        Resolution of the event time stored with the collision (ns)
    """

    id: int = -1
    position: np.ndarray = None
    sel8: bool = True
    has_ft0: bool = False
    t0ac_valid: bool = False
    t0ac: float = 0.0
    t0_resolution: float = 0.0
    collision_time: float = 0.0
    collision_time_res: float = 0.0

    # Fixed-length attributes
    _fixed_length_attrs = (("position", 3),)

    # Boolean attributes
    _bool_attrs = ("sel8", "has_ft0", "t0ac_valid")

    @property
    def ft0_available(self):
        """Whether a usable FT0 event time is attached to this collision.

        Returns
        -------
        bool
            `True` if the collision has a valid FT0 A+C measurement
        """
        return self.has_ft0 and self.t0ac_valid
