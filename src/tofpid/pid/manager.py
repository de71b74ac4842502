"""Orchestrates the TOF particle identification of batches of tracks."""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from tofpid.config.errors import ConfigurationError
from tofpid.data import PIDResult, RunMetadata
from tofpid.utils.enums import Species
from tofpid.utils.globals import NOT_COMPUTED
from tofpid.utils.logger import logger
from tofpid.utils.stopwatch import StopwatchManager

from .binning import pack
from .event_time import EventTimeEstimator
from .factories import response_factory, signal_factory
from .sinks import TableSink, table_schema

__all__ = ["TOFPIDManager"]

# Output tables which do not depend on the species
TRACK_TABLES = (
    "TOFSignal",
    "pidTOFFlags",
    "TOFEvTime",
    "pidEvTimeFlags",
    "EvTimeTOFOnly",
    "pidTOFbeta",
    "pidTOFmass",
)


@dataclass
class SpeciesChannel:
    """Output channel of one mass hypothesis.

    Attributes
    ----------
    species : Species
        Mass hypothesis
    tiny : TableSink, optional
        Table of packed Nsigma values, if enabled
    full : TableSink, optional
        Table of (sigma, Nsigma) values, if enabled
    """

    species: Species
    tiny: Optional[TableSink] = None
    full: Optional[TableSink] = None

    def emit(self, result):
        """Appends the response of one track to the enabled tables."""
        if self.tiny is not None:
            self.tiny.append(pack(result.nsigma))
        if self.full is not None:
            self.full.append(result.sigma, result.nsigma)


class TOFPIDManager:
    """Manager in charge of the TOF particle identification.

    It loads the processing stages once and feeds them batches of tracks:
    1. Calibration refresh (once per distinct run)
    2. TOF signal extraction
    3. Event time estimation
    4. Per-species Nsigma
    5. Beta and mass
    """

    # Stages of the processing, in order
    stages = ("calib", "signal", "event_time", "nsigma", "beta_mass")

    def __init__(
        self,
        store,
        metadata=None,
        tables=(),
        enable_particle=None,
        process_run2=False,
        process_run3=False,
        auto_set_process_functions=True,
        signal=None,
        response=None,
        event_time=None,
    ):
        """Initialize the TOF PID manager.

        Parameters
        ----------
        store : CalibrationStore
            Run-keyed calibration store
        metadata : Union[RunMetadata, dict], optional
            Dataset metadata
        tables : List[str], optional
            Names of the requested output tables
        enable_particle : Dict[str, Union[int, List[int]]], optional
            Per-species `[tiny, full]` switches: -1 to enable the table if it
            is requested, 0 to disable it, 1 to enable it
        process_run2 : bool, default False
            Process Run 2 data
        process_run3 : bool, default False
            Process Run 3 data
        auto_set_process_functions : bool, default True
            If `True` and neither processing mode is set, the mode is taken
            from the dataset metadata
        signal : Union[str, dict], optional
            Signal extractor configuration (defaults to the processing mode)
        response : Union[str, dict], optional
            Response model configuration (defaults to the processing mode)
        event_time : dict, optional
            Event time estimator configuration
        """
        self.store = store
        if isinstance(metadata, dict):
            metadata = RunMetadata(**metadata)
        self.metadata = metadata

        # Decide on the processing mode
        self.is_run3 = self.parse_process_mode(
            process_run2, process_run3, auto_set_process_functions
        )
        mode = "run3" if self.is_run3 else "run2"
        logger.info("Enabling process function: process%s", mode.capitalize())

        # Initialize the processing stages
        self.signal = signal_factory(signal or mode)
        self.response = response_factory(response or mode)
        self.event_time = EventTimeEstimator(
            self.response, is_run3=self.is_run3, **(event_time or {})
        )

        # Initialize the output tables
        self.tables = list(tables)
        for name in self.tables:
            table_schema(name)

        self.sinks = {}
        for name in TRACK_TABLES:
            if name in self.tables:
                self.sinks[name] = TableSink(name)
                logger.info("Table %s enabled!", name)

        # Build the species channels, never modified afterwards
        self.channels = self.build_channels(enable_particle or {})

        # Profile the processing stages
        self.watch = StopwatchManager()
        self.watch.initialize(self.stages)

    def parse_process_mode(self, process_run2, process_run3, auto_set):
        """Decides whether to process Run 2 or Run 3 data.

        Parameters
        ----------
        process_run2 : bool
            Whether the Run 2 processing is requested
        process_run3 : bool
            Whether the Run 3 processing is requested
        auto_set : bool
            Whether to set the mode from the metadata if none is requested

        Returns
        -------
        bool
            `True` if Run 3 data is processed
        """
        metadata = self.metadata
        defined = metadata is not None and metadata.is_fully_defined()
        if auto_set and defined and not process_run2 and not process_run3:
            logger.info("Autodetecting process functions")
            process_run3 = metadata.is_run3
            process_run2 = not metadata.is_run3

        if defined:
            if metadata.is_run3 and process_run2:
                raise ConfigurationError(
                    "Run 2 processing is enabled but the metadata says it is Run 3."
                )
            if not metadata.is_run3 and process_run3:
                raise ConfigurationError(
                    "Run 3 processing is enabled but the metadata says it is Run 2."
                )

        if process_run2 and process_run3:
            raise ConfigurationError(
                "Both Run 2 and Run 3 processing are enabled. Pick one of the two."
            )
        if not process_run2 and not process_run3:
            raise ConfigurationError(
                "Neither Run 2 nor Run 3 processing is enabled. Pick one of the two."
            )

        return bool(process_run3)

    def build_channels(self, enable_particle):
        """Builds the output channel of each enabled species.

        Parameters
        ----------
        enable_particle : Dict[str, Union[int, List[int]]]
            Per-species `[tiny, full]` switches

        Returns
        -------
        Dict[Species, SpeciesChannel]
            Output channels of the enabled species
        """
        # Parse the species switches
        switches = {}
        for key, value in enable_particle.items():
            try:
                species = Species.parse(key)
            except ValueError as err:
                raise ConfigurationError(str(err)) from err
            if np.isscalar(value):
                value = [value, value]
            assert len(value) == 2, (
                f"The `enable_particle` switches of {key} must be provided as "
                "[tiny, full]."
            )
            switches[species] = value

        channels = {}
        for species in Species:
            tiny, full = switches.get(species, (-1, -1))
            names = (f"pidTOF{species.short_name}", f"pidTOFFull{species.short_name}")
            sinks = []
            for switch, name in zip((tiny, full), names):
                if switch == 1 or (switch == -1 and name in self.tables):
                    logger.info("Enabling %s", name)
                    sinks.append(TableSink(name))
                else:
                    sinks.append(None)

            if sinks[0] is not None or sinks[1] is not None:
                channels[species] = SpeciesChannel(species, *sinks)

        return channels

    @property
    def enabled_species(self):
        """List of species for which a response is computed."""
        return list(self.channels.keys())

    def channel(self, species):
        """Returns the output channel of a species.

        Parameters
        ----------
        species : Species
            Mass hypothesis

        Returns
        -------
        SpeciesChannel
            Output channel

        Raises
        ------
        ConfigurationError
            If the species is not enabled
        """
        if species not in self.channels:
            raise ConfigurationError(f"Species not enabled for the TOF PID: {species}.")

        return self.channels[species]

    def __call__(self, tracks, collisions, run_info):
        return self.process(tracks, collisions, run_info)

    def process(self, tracks, collisions, run_info):
        """Pass one batch of tracks through the processing stages.

        Parameters
        ----------
        tracks : List[Track]
            (N) Reconstructed tracks
        collisions : Union[List[Collision], Dict[int, Collision]]
            Collisions the tracks may be associated with
        run_info : RunInfo
            Run number and timestamp of the batch

        Returns
        -------
        dict
            Dictionary of data products, one entry per track in each
        """
        if not isinstance(collisions, dict):
            collisions = {c.id: c for c in collisions}

        # Tracks whose collision is not part of the batch are not identified
        associated = np.array(
            [self.event_time.collision_of(t, collisions) is not None for t in tracks],
            dtype=bool,
        )

        # Refresh the calibration before touching any track
        self.watch.start("calib")
        params = self.store.resolve(run_info.run, run_info.timestamp)
        if self.is_run3 and not self.event_time.mode_set:
            self.event_time.configure(self.store.collision_system)
        self.watch.stop("calib")

        # Extract the TOF signals
        self.watch.start("signal")
        signals, usable = self.signal.extract_batch(
            tracks, self.sinks.get("TOFSignal"), self.sinks.get("pidTOFFlags")
        )
        self.watch.stop("signal")

        # Estimate the event times
        self.watch.start("event_time")
        event_times, tof_only = self.event_time.estimate(params, tracks, signals, collisions)
        self.emit_event_times(event_times, tof_only)
        self.watch.stop("event_time")

        # Compute the per-species responses
        self.watch.start("nsigma")
        pid = self.compute_nsigma(params, tracks, signals, event_times, associated)
        self.watch.stop("nsigma")

        # Compute the velocities and masses
        self.watch.start("beta_mass")
        beta, beta_error, mass = self.compute_beta_mass(
            params, tracks, signals, event_times, associated
        )
        self.watch.stop("beta_mass")

        logger.debug(
            "Processed %d tracks of run %d in %.3f s",
            len(tracks),
            run_info.run,
            sum(t.wall for t in self.watch.times().values()),
        )

        return {
            "params": params,
            "tof_signal": signals,
            "tof_usable": usable,
            "event_times": event_times,
            "pid": pid,
            "beta": beta,
            "beta_error": beta_error,
            "mass": mass,
        }

    def emit_event_times(self, event_times, tof_only):
        """Appends the event times to the enabled tables."""
        ev_sink = self.sinks.get("TOFEvTime")
        flag_sink = self.sinks.get("pidEvTimeFlags")
        tof_sink = self.sinks.get("EvTimeTOFOnly")
        for sink in (ev_sink, flag_sink, tof_sink):
            if sink is not None:
                sink.reserve(len(event_times))

        for estimate, tof in zip(event_times, tof_only):
            if ev_sink is not None:
                ev_sink.append(*estimate.as_tuple())
            if flag_sink is not None:
                flag_sink.append(int(estimate.flags))
            if tof_sink is not None:
                tof_sink.append(*tof)

    def compute_nsigma(self, params, tracks, signals, event_times, associated):
        """Computes the response of each track under each enabled hypothesis.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        tracks : List[Track]
            (N) Reconstructed tracks
        signals : np.ndarray
            (N) TOF signals (ps)
        event_times : List[EventTimeEstimate]
            (N) Event time of each track
        associated : np.ndarray
            (N) Whether each track is associated with a collision of the batch

        Returns
        -------
        List[Dict[Species, PIDResult]]
            (N) Response of each track, per species
        """
        for channel in self.channels.values():
            for sink in (channel.tiny, channel.full):
                if sink is not None:
                    sink.reserve(len(tracks))

        results = []
        for i, track in enumerate(tracks):
            track_results = {}
            for species in self.enabled_species:
                if not associated[i]:
                    result = PIDResult(species)
                else:
                    sigma = self.response.expected_sigma(
                        params, track, species, event_times[i].error
                    )
                    nsigma = self.response.nsigma(
                        params, track, signals[i], species, event_times[i], sigma
                    )
                    result = PIDResult(species, nsigma, sigma)

                self.channel(species).emit(result)
                track_results[species] = result

            results.append(track_results)

        return results

    def compute_beta_mass(self, params, tracks, signals, event_times, associated):
        """Computes the velocity and the mass of each track.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        tracks : List[Track]
            (N) Reconstructed tracks
        signals : np.ndarray
            (N) TOF signals (ps)
        event_times : List[EventTimeEstimate]
            (N) Event time of each track
        associated : np.ndarray
            (N) Whether each track is associated with a collision of the batch

        Returns
        -------
        np.ndarray
            (N) Velocity of each track
        np.ndarray
            (N) Uncertainty on the velocity of each track
        np.ndarray
            (N) Mass of each track (GeV/c^2)
        """
        num_tracks = len(tracks)
        beta = np.full(num_tracks, NOT_COMPUTED)
        beta_error = np.full(num_tracks, NOT_COMPUTED)
        mass = np.full(num_tracks, NOT_COMPUTED)
        for i, track in enumerate(tracks):
            if not associated[i]:
                continue
            beta[i] = self.response.beta(track, signals[i], event_times[i])
            beta_error[i] = self.response.beta_sigma(
                track, signals[i], event_times[i], beta[i]
            )
            momentum = self.response.mass_momentum(params, track)
            mass[i] = self.response.mass(momentum, beta[i])

        beta_sink = self.sinks.get("pidTOFbeta")
        if beta_sink is not None:
            beta_sink.reserve(num_tracks)
            for i in range(num_tracks):
                beta_sink.append(beta[i], beta_error[i])

        mass_sink = self.sinks.get("pidTOFmass")
        if mass_sink is not None:
            mass_sink.reserve(num_tracks)
            for i in range(num_tracks):
                mass_sink.append(mass[i])

        return beta, beta_error, mass

    def tables_dict(self):
        """Returns the content of all the enabled output tables.

        Returns
        -------
        Dict[str, np.ndarray]
            Dictionary which maps table names onto structured arrays
        """
        tables = {name: sink.to_array() for name, sink in self.sinks.items()}
        for channel in self.channels.values():
            for sink in (channel.tiny, channel.full):
                if sink is not None:
                    tables[sink.name] = sink.to_array()

        return tables

    def clear_tables(self):
        """Drops the records of all the enabled output tables."""
        for sink in self.sinks.values():
            sink.clear()
        for channel in self.channels.values():
            for sink in (channel.tiny, channel.full):
                if sink is not None:
                    sink.clear()
