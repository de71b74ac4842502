"""Module which contains enumerated variables shared across the project."""

from enum import IntEnum, IntFlag

from .globals import SPECIES_NAMES

__all__ = ["Species", "PIDFlags", "TrackType", "CollisionSystem"]


class Species(IntEnum):
    """Enumerates the particle species hypotheses."""

    ELECTRON = 0
    MUON = 1
    PION = 2
    KAON = 3
    PROTON = 4
    DEUTERON = 5
    TRITON = 6
    HELIUM3 = 7
    ALPHA = 8

    @property
    def short_name(self):
        """Short name used to label the output tables (e.g. `Pi`)."""
        return SPECIES_NAMES[self.value]

    @classmethod
    def parse(cls, value):
        """Parses a species from its index, enumerator name or short name.

        Parameters
        ----------
        value : Union[int, str, Species]
            Species identifier

        Returns
        -------
        Species
            Corresponding enumerator

        Raises
        ------
        ValueError
            If the identifier does not match any species
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            if value in SPECIES_NAMES:
                return cls(SPECIES_NAMES.index(value))
            if hasattr(cls, value.upper()):
                return getattr(cls, value.upper())
            raise ValueError(
                f"Species not recognized: {value}. Must be one of "
                f"{list(SPECIES_NAMES)} or {[s.name for s in cls]}."
            )

        return cls(int(value))


class PIDFlags(IntFlag):
    """Source flags of an event time estimate."""

    EV_TIME_UNDEF = 0
    EV_TIME_TOF = 1
    EV_TIME_T0AC = 2
    EV_TIME_TOF_T0AC = 3


class TrackType(IntEnum):
    """Enumerates the track types of the reconstruction output."""

    TRACK = 0
    TRACK_IU = 1
    RUN2_TRACK = 254
    RUN2_TRACKLET = 255


class CollisionSystem(IntEnum):
    """Enumerates the collision systems."""

    UNDEFINED = -1
    PP = 0
    PBPB = 1
    XEXE = 2
    PPB = 3

    @classmethod
    def from_beams(cls, beam_z, beam_a):
        """Classifies a collision system from the charge and mass number of
        its two beams.

        Parameters
        ----------
        beam_z : List[int]
            (2) Atomic numbers of the two beams
        beam_a : List[int]
            (2) Mass numbers of the two beams

        Returns
        -------
        CollisionSystem
            Collision system, `UNDEFINED` if it is not recognized
        """
        beams = sorted(zip(beam_z, beam_a))
        if beams == [(1, 1), (1, 1)]:
            return cls.PP
        if beams == [(82, 208), (82, 208)]:
            return cls.PBPB
        if beams == [(54, 129), (54, 129)]:
            return cls.XEXE
        if beams == [(1, 1), (82, 208)]:
            return cls.PPB

        return cls.UNDEFINED

