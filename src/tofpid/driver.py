"""TOF PID driver class.

Takes care of everything in one centralized place:
    - Data loading
    - Calibration store initialization
    - TOF particle identification
    - Output table writing
    - Logging
"""

from datetime import datetime

import psutil
import yaml

from .calib import CalibrationStore
from .data import RunMetadata
from .io import reader_factory, writer_factory
from .pid import TOFPIDManager
from .utils.logger import logger
from .utils.stopwatch import StopwatchManager
from .version import __version__

__all__ = ["Driver"]


class Driver:
    """Central TOF PID driver.

    This driver takes care of the processing chain of the TOF particle
    identification, from the input batches of tracks to the output tables.

    It takes a configuration dictionary of the form:

    .. code-block:: yaml

        base:
          <Base driver configuration>
        io:
          reader:
            <Reader configuration>
          writer:
            <Writer configuration, optional>
        metadata:
          <Dataset metadata, optional>
        calib:
          <Calibration store configuration>
        pid:
          <TOF PID manager configuration>

    The metadata provided in the configuration takes precedence over the
    metadata stored in the input files.
    """

    def __init__(self, cfg):
        """Initializes the driver.

        Parameters
        ----------
        cfg : dict
            Global configuration dictionary
        """
        # Initialize the timers
        self.watch = StopwatchManager()
        self.watch.initialize(["iteration", "load", "pid", "write"])

        # Process the full configuration dictionary
        base, io, metadata, calib, pid = self.process_config(**cfg)

        # Initialize the base driver parameters
        self.initialize_base(**base)

        # Initialize the input/output
        self.initialize_io(**io)

        # Resolve the dataset metadata
        self.metadata = self.initialize_metadata(metadata)

        # Initialize the calibration store
        self.store = CalibrationStore(metadata=self.metadata, **(calib or {}))

        # Initialize the TOF PID manager
        self.manager = TOFPIDManager(self.store, metadata=self.metadata, **(pid or {}))

    def process_config(self, io, base=None, metadata=None, calib=None, pid=None):
        """Reads the configuration and dumps it to the logger.

        Parameters
        ----------
        io : dict
            I/O configuration dictionary
        base : dict, optional
            Base driver configuration dictionary
        metadata : dict, optional
            Dataset metadata
        calib : dict, optional
            Calibration store configuration dictionary
        pid : dict, optional
            TOF PID manager configuration dictionary

        Returns
        -------
        dict
            Processed configuration
        """
        # If there is no base configuration, make it empty (will use defaults)
        if base is None:
            base = {}

        # Set the verbosity of the logger
        verbosity = base.get("verbosity", "info")
        logger.setLevel(verbosity.upper())

        # Rebuild global configuration dictionary
        self.cfg = {"base": base, "io": io}
        if metadata is not None:
            self.cfg["metadata"] = metadata
        if calib is not None:
            self.cfg["calib"] = calib
        if pid is not None:
            self.cfg["pid"] = pid

        # Log environment information
        logger.info("Release version: %s\n", __version__)

        # Log configuration
        logger.info(yaml.dump(self.cfg, default_flow_style=None, sort_keys=False))

        return base, io, metadata, calib, pid

    def initialize_base(self, iterations=None, log_step=1, parent_path=None, verbosity="info"):
        """Initialize the base driver parameters.

        Parameters
        ----------
        iterations : int, optional
            Number of entries to process (-1 or `None` means all entries)
        log_step : int, default 1
            Number of iterations before the logging is called (1: every step)
        parent_path : str, optional
            Path to the parent directory of the configuration file
        verbosity : str, default 'info'
            Verbosity level to pass to the `logging` module. Pick one of
            'debug', 'info', 'warning', 'error', 'critical'.
        """
        self.iterations = iterations
        self.log_step = log_step
        self.parent_path = parent_path

    def initialize_io(self, reader=None, writer=None):
        """Initializes the input/output scripts.

        Parameters
        ----------
        reader : dict, optional
            Reader configuration dictionary
        writer : dict, optional
            Writer configuration dictionary
        """
        # Initialize the data reader, if provided
        self.reader = None
        if reader is not None:
            self.reader = reader_factory(reader)

        # Initialize the output writer, if provided
        self.writer = None
        if writer is not None:
            self.writer = writer_factory(writer)

        # Set the number of iterations to run
        if self.reader is not None:
            if self.iterations is None or self.iterations < 0:
                self.iterations = len(self.reader)
            else:
                assert self.iterations <= len(self.reader), (
                    f"Number of iterations requested ({self.iterations}) "
                    f"exceeds the number of entries ({len(self.reader)})."
                )

    def initialize_metadata(self, metadata=None):
        """Combines the configured metadata with the metadata of the input.

        Parameters
        ----------
        metadata : dict, optional
            Dataset metadata provided in the configuration

        Returns
        -------
        RunMetadata
            Dataset metadata
        """
        # Start from the file metadata, if any
        values = {}
        if self.reader is not None and self.reader.metadata is not None:
            values = self.reader.metadata.as_dict()

        # Configured values take precedence
        for key, value in (metadata or {}).items():
            if value is not None:
                values[key] = value

        metadata = RunMetadata(**values)
        logger.info("Dataset metadata: %s", metadata)

        return metadata

    def __len__(self):
        """Returns the number of entries in the underlying reader object.

        Returns
        -------
        int
            Number of elements in the underlying reader.
        """
        assert self.reader is not None, "No reader was configured."

        return len(self.reader)

    def __iter__(self):
        """Resets the counter and returns itself.

        Returns
        -------
        object
            The Driver itself
        """
        self.counter = 0

        return self

    def __next__(self):
        """Defines how to process the next entry in the iterator.

        Returns
        -------
        dict
            Combined data dictionary
        """
        if self.counter < self.iterations:
            data = self.process(self.counter)
            self.counter += 1

            return data

        raise StopIteration

    def run(self):
        """Loop over the requested number of iterations, process them."""
        assert self.reader is not None, "Must configure a reader to run the driver."

        for iteration in range(self.iterations):
            tstamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

            # Process one entry of data
            data = self.process(iteration)

            # Log the output
            self.log(data, tstamp, iteration)

            # Release the memory for the next iteration
            data = None

    def process(self, entry=None, data=None):
        """Process one batch of tracks.

        The batch is either loaded from the reader or provided directly as a
        dictionary with `tracks`, `collisions` and `run_info` keys.

        Parameters
        ----------
        entry : int, optional
            Entry number to load
        data : dict, optional
            Input batch, used instead of the reader if provided

        Returns
        -------
        dict
            Input batch extended with the TOF PID products
        """
        assert (entry is None) ^ (
            data is None
        ), "Must provide either an entry number or a batch of data, not both."

        self.watch.start("iteration")

        # 1. Load data
        self.watch.start("load")
        if data is None:
            data = self.load(entry)
        self.watch.stop("load")

        # 2. Run the TOF particle identification
        self.watch.start("pid")
        result = self.manager(data["tracks"], data["collisions"], data["run_info"])
        data.update(**result)
        self.watch.stop("pid")

        # 3. Write output tables to file, if requested
        self.watch.start("write")
        if self.writer is not None:
            self.writer(self.manager.tables_dict())
            self.manager.clear_tables()
        self.watch.stop("write")

        self.watch.stop("iteration")

        return data

    def load(self, entry):
        """Loads one entry from the reader.

        Parameters
        ----------
        entry : int
            Entry number

        Returns
        -------
        dict
            Data dictionary of one batch
        """
        assert self.reader is not None, "Must configure a reader to load entries."

        return self.reader[entry]

    def log(self, data, tstamp, iteration):
        """Log the basics of one iteration to stdout.

        Parameters
        ----------
        data : dict
            Dictionary of data products of the iteration
        tstamp : str
            Time when this iteration was run
        iteration : int
            Iteration counter
        """
        if (iteration + 1) % self.log_step != 0:
            return

        cpu_mem = psutil.virtual_memory().used / 1.0e9
        cpu_mem_perc = psutil.virtual_memory().percent
        t_iter = self.watch.time("iteration").wall
        logger.info(
            "Iter. %d @ %s: %d tracks, %.3f s, CPU memory %.2f GB (%.1f%%)",
            iteration,
            tstamp,
            len(data["tracks"]),
            t_iter,
            cpu_mem,
            cpu_mem_perc,
        )

        for key, value in self.manager.watch.times().items():
            logger.debug("  - %s time: %.6f s", key, value.wall)
