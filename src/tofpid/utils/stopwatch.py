"""Wall and CPU time bookkeeping for the processing stages."""

import time
from dataclasses import dataclass


@dataclass
class Time:
    """Simple dataclass to hold time information.

    Attributes
    ----------
    wall : float, optional
         Wall time
    cpu : float, optional
         CPU time
    """

    wall: float = None
    cpu: float = None

    def __sub__(self, other):
        return Time(wall=self.wall - other.wall, cpu=self.cpu - other.cpu)

    @classmethod
    def current(cls):
        """Returns the current time (wall and cpu).

        Returns
        -------
        Time
           Current time
        """
        return cls(time.time(), time.process_time())


class Stopwatch:
    """Holds timing information for a specific process."""

    def __init__(self):
        """Give default values to the underlying class attributes."""
        self._start = None
        self._time = Time(0.0, 0.0)

    @property
    def running(self):
        """Whether the stopwatch is currently running."""
        return self._start is not None

    def start(self):
        """Starts the watch."""
        if self.running:
            raise ValueError("Cannot restart a watch that has not been stopped.")

        self._start = Time.current()

    def stop(self):
        """Stops the watch and records the elapsed time."""
        if not self.running:
            raise ValueError("Cannot stop a watch that has not been started.")

        self._time = Time.current() - self._start
        self._start = None

    @property
    def time(self):
        """Time between the last start and the last stop."""
        return self._time


class StopwatchManager:
    """Simple class to organize various time measurements."""

    def __init__(self):
        """Initalize the basic private stopwatch attributes."""
        self._watch = {}

    def items(self):
        """List of (key, stopwatch) pairs."""
        return self._watch.items()

    def initialize(self, key):
        """Initialize one or more stopwatches. If a stopwatch has already been
        initialized, its counters are reset.

        Parameters
        ----------
        key : Union[str, List[str]]
            Key or list of keys to initialize a `Stopwatch` for
        """
        keys = [key] if isinstance(key, str) else key
        for k in keys:
            self._watch[k] = Stopwatch()

    def start(self, key):
        """Starts a stopwatch.

        Parameters
        ----------
        key : str
            Key for which to start the clock
        """
        if key not in self._watch:
            raise KeyError(f"No stopwatch initialized under the name: {key}")

        self._watch[key].start()

    def stop(self, key):
        """Stops a stopwatch.

        Parameters
        ----------
        key : str
            Key for which to stop the clock
        """
        if key not in self._watch:
            raise KeyError(f"No stopwatch started under the name: {key}")

        self._watch[key].stop()

    def time(self, key):
        """Returns the time recorded between the last start/stop pair.

        Parameters
        ----------
        key : str
            Key for which to return the time

        Returns
        -------
        Time
            Execution time of the last iteration of a process
        """
        if key not in self._watch:
            raise KeyError(f"No stopwatch started under the name: {key}")

        return self._watch[key].time

    def times(self):
        """Returns the last time of each of the stopwatches as a dictionary.

        Returns
        -------
        Dict[str, Time]
            Execution time of one iteration of each process
        """
        return {key: value.time for key, value in self.items()}
