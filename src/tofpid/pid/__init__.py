"""TOF particle identification stages.

It contains:
- :mod:`signal`, the TOF signal extractors
- :mod:`event_time`, the event time estimator
- :mod:`response`, the expected time and resolution models
- :mod:`manager`, which runs the stages on batches of tracks
"""

from .event_time import EventTimeEstimator
from .manager import TOFPIDManager
from .response import Run2ResponseModel, Run3ResponseModel
from .signal import Run2SignalExtractor, Run3SignalExtractor
from .sinks import TableSink
