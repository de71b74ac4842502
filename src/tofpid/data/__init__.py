"""Module with all the data structures used by the TOF PID processing.

It contains:
- :class:`Track` for reconstructed tracks
- :class:`Collision` for reconstructed collisions
- :class:`RunInfo` for the run number and timestamp of a batch
- :class:`RunMetadata` for the dataset-level metadata
- :class:`EventTimeEstimate` for per-track event times
- :class:`PIDResult` for per-species responses
"""

from .collision import Collision
from .event_time import EventTimeEstimate
from .metadata import RunMetadata
from .pid import PIDResult
from .run_info import RunInfo
from .track import Track
