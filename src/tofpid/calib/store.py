"""Run-keyed calibration store.

Resolves the calibration parameter bundle active for a given run, fetching
the underlying objects from a parameter file or an object store.
"""

import os
from dataclasses import replace

from tofpid.config.errors import ConfigurationError
from tofpid.data import RunMetadata
from tofpid.utils.enums import CollisionSystem
from tofpid.utils.logger import logger

from .errors import CalibrationUnavailable
from .factories import database_factory
from .parameters import CalibrationParameters, ParameterCollection, TimeShiftCurve

__all__ = ["CalibrationStore"]


class CalibrationStore:
    """Holds the calibration parameters active for the run being processed.

    The bundle returned by :meth:`resolve` is cached per run number: a second
    call for the same run returns the identical object and does not query the
    object store. When a new run is encountered, the parameters are either
    re-fetched at the new timestamp (time-dependent response) or the content
    loaded at initialization is re-keyed to the new run.
    """

    def __init__(
        self,
        database=None,
        metadata=None,
        reconstruction_pass="",
        reconstruction_pass_default="unanchored",
        fatal_on_pass_not_available=True,
        param_file_name=None,
        parametrization_path="TOF/Calib/Params",
        time_shift_path_pos=None,
        time_shift_path_neg=None,
        time_shift_path_pos_mc=None,
        time_shift_path_neg_mc=None,
        enable_time_dependent_response=False,
        timestamp=-1,
        collision_system=-1,
        grp_lhc_if_path="GLO/Config/GRPLHCIF",
    ):
        """Initialize the store and load the initialization-time parameters.

        Parameters
        ----------
        database : Union[CalibrationDatabase, dict, str], optional
            Object store (or its configuration block)
        metadata : RunMetadata, optional
            Dataset metadata, used to resolve the `metadata` pass and to
            select the data-taking period (Run 2 or Run 3)
        reconstruction_pass : str, default ''
            Pass to fetch the parameters for. Use `metadata` to take it from the
            dataset metadata. If empty, the default pass is used.
        reconstruction_pass_default : str, default 'unanchored'
            Pass used when the requested one is not available
        fatal_on_pass_not_available : bool, default True
            If `True`, a missing pass raises instead of falling back
        param_file_name : str, optional
            Path to a YAML parameter collection. If provided, the collection
            is loaded once and the object store is not used for it.
        parametrization_path : str, default 'TOF/Calib/Params'
            Path to the parameter collection in the object store
        time_shift_path_pos : str, optional
            Time shift curve of positive tracks (store path or file path)
        time_shift_path_neg : str, optional
            Time shift curve of negative tracks (store path or file path)
        time_shift_path_pos_mc : str, optional
            Time shift curve of positive tracks, used for simulation
        time_shift_path_neg_mc : str, optional
            Time shift curve of negative tracks, used for simulation
        enable_time_dependent_response : bool, default False
            If `True`, re-fetch the store-backed objects at each new run
        timestamp : int, default -1
            Timestamp (ms) used to fetch the initialization-time objects. If
            negative, the most recent objects are used.
        collision_system : Union[int, str], default -1
            Collision system. If -1, it is read from the LHC interface object
            of the first run.
        grp_lhc_if_path : str, default 'GLO/Config/GRPLHCIF'
            Path to the LHC interface object in the object store
        """
        # Initialize the object store
        if database is not None and not hasattr(database, "fetch"):
            database = database_factory(database)
        self.database = database

        # Store the dataset metadata
        if isinstance(metadata, dict):
            metadata = RunMetadata(**metadata)
        self.metadata = metadata
        self.is_mc = bool(metadata is not None and metadata.is_mc)
        self.is_run3 = metadata is None or metadata.is_run3 is None or metadata.is_run3

        # Resolve the reconstruction pass
        self.reconstruction_pass = self.parse_pass(reconstruction_pass)
        self.reconstruction_pass_default = reconstruction_pass_default
        self.fatal_on_pass_not_available = fatal_on_pass_not_available
        logger.info(
            "Using parameter collection, starting from pass '%s'",
            self.reconstruction_pass,
        )

        # Store the object locations
        self.param_file_name = param_file_name
        self.parametrization_path = parametrization_path
        if self.is_mc:
            self.time_shift_paths = {True: time_shift_path_pos_mc, False: time_shift_path_neg_mc}
        else:
            self.time_shift_paths = {True: time_shift_path_pos, False: time_shift_path_neg}
        self.grp_lhc_if_path = grp_lhc_if_path

        self.enable_time_dependent_response = enable_time_dependent_response
        self.timestamp = timestamp

        # Parse the collision system
        if isinstance(collision_system, str):
            collision_system = CollisionSystem[collision_system.upper()]
        self.collision_system = CollisionSystem(collision_system)

        # Load the static content (from file), then the initialization-time
        # content (from the object store)
        self._cache = {}
        self._collection = None
        if param_file_name is not None:
            logger.info("Loading exp. sigma parametrization from file %s", param_file_name)
            self._collection = ParameterCollection.from_file(param_file_name)

        self._time_shifts = {}
        for positive in (True, False):
            path = self.time_shift_paths[positive]
            if path is not None and self.is_file(path):
                logger.info(
                    "Initializing the time shift for %s tracks from file '%s'",
                    "positive" if positive else "negative",
                    path,
                )
                self._time_shifts[positive] = TimeShiftCurve.from_file(path)

        self._init_params = None
        if not enable_time_dependent_response:
            self._init_params = self.load(-1, timestamp)

    def parse_pass(self, reconstruction_pass):
        """Resolves the special `metadata` pass name.

        Parameters
        ----------
        reconstruction_pass : str
            Requested pass name

        Returns
        -------
        str
            Pass name to look up in the parameter collection
        """
        if reconstruction_pass != "metadata":
            return reconstruction_pass or ""

        if self.metadata is None:
            raise ConfigurationError(
                "The reconstruction pass is set to `metadata` but no dataset "
                "metadata was provided."
            )

        pass_name = self.metadata.pass_name
        logger.info("Passed autodetect mode for pass. Taking '%s'", pass_name)

        return pass_name or ""

    @staticmethod
    def is_file(path):
        """Whether a time shift location points to a file rather than a store
        path.
        """
        return os.path.splitext(path)[-1] in (".yaml", ".yml", ".h5", ".hdf5")

    def _require_database(self, path):
        """Returns the object store, raising if none is configured."""
        if self.database is None:
            raise CalibrationUnavailable(
                f"Cannot fetch `{path}`: no calibration object store is configured."
            )

        return self.database

    def resolve(self, run_number, timestamp, reconstruction_pass=None):
        """Returns the calibration bundle active for a run.

        Parameters
        ----------
        run_number : int
            Run number
        timestamp : int
            Timestamp of the run (ms)
        reconstruction_pass : str, optional
            Pass to use instead of the configured one

        Returns
        -------
        CalibrationParameters
            Active calibration bundle

        Raises
        ------
        CalibrationUnavailable
            If the parameters cannot be retrieved
        """
        pass_name = self.reconstruction_pass
        if reconstruction_pass is not None:
            pass_name = self.parse_pass(reconstruction_pass)

        key = (run_number, pass_name)
        if key in self._cache:
            return self._cache[key]

        logger.info(
            "Updating the parametrization for run number %d and timestamp %d",
            run_number,
            timestamp,
        )

        # Check the beam type, only needed to pick the Run 3 event time mode
        if self.is_run3 and self.collision_system == CollisionSystem.UNDEFINED:
            self.collision_system = self.fetch_collision_system(timestamp)

        # Build the bundle
        if self.enable_time_dependent_response or pass_name != self.reconstruction_pass:
            params = self.load(run_number, timestamp, pass_name)
        else:
            params = replace(self._init_params, run_number=run_number, timestamp=timestamp)

        self._cache[key] = params

        return params

    def fetch_collision_system(self, timestamp):
        """Reads the collision system from the LHC interface object.

        Parameters
        ----------
        timestamp : int
            Timestamp (ms)

        Returns
        -------
        CollisionSystem
            Collision system
        """
        database = self._require_database(self.grp_lhc_if_path)
        payload = database.fetch(self.grp_lhc_if_path, timestamp)
        if payload is None:
            raise CalibrationUnavailable(
                f"The LHC interface object `{self.grp_lhc_if_path}` is null "
                f"for timestamp {timestamp}."
            )

        system = CollisionSystem.from_beams(payload["beam_z"], payload["beam_a"])
        logger.info("Collision system set from the LHC interface: %s", system.name)

        return system

    def load(self, run_number, timestamp, pass_name=None):
        """Builds a calibration bundle from the configured sources.

        Parameters
        ----------
        run_number : int
            Run number the bundle is built for
        timestamp : int
            Timestamp at which to fetch the store-backed objects (ms)
        pass_name : str, optional
            Pass to retrieve (defaults to the configured pass)

        Returns
        -------
        CalibrationParameters
            Calibration bundle
        """
        pass_name = self.reconstruction_pass if pass_name is None else pass_name

        # Fetch the parametrization
        collection = self._collection
        if collection is None:
            database = self._require_database(self.parametrization_path)
            logger.info(
                "Loading exp. sigma parametrization from path '%s' for timestamp %d",
                self.parametrization_path,
                timestamp,
            )
            collection = ParameterCollection(
                database.fetch(self.parametrization_path, timestamp)
            )

        params = self.retrieve(collection, pass_name)

        # Fetch the time shift curves
        metadata = {"RecoPassName": pass_name} if pass_name else {}
        for positive in (True, False):
            key = "time_shift_pos" if positive else "time_shift_neg"
            path = self.time_shift_paths[positive]
            if path is None:
                continue
            if self.is_file(path):
                params[key] = self._time_shifts[positive]
                continue

            logger.info(
                "Fetching the time shift for %s tracks from '%s' at timestamp %d",
                "positive" if positive else "negative",
                path,
                timestamp,
            )
            payload = self._require_database(path).fetch(path, timestamp, metadata)
            if payload is not None:
                params[key] = TimeShiftCurve.from_payload(payload)
            else:
                logger.info("No time shift found under '%s', using no shift.", path)

        return CalibrationParameters(run_number=run_number, timestamp=timestamp, **params)

    def retrieve(self, collection, pass_name):
        """Retrieves the parameters of a pass, with fallback to the default.

        Parameters
        ----------
        collection : ParameterCollection
            Parameter collection
        pass_name : str
            Requested pass

        Returns
        -------
        dict
            Keyword arguments of :class:`CalibrationParameters`
        """
        if pass_name and pass_name in collection:
            return collection.retrieve(pass_name, self.is_run3)

        if pass_name:
            if self.fatal_on_pass_not_available:
                raise CalibrationUnavailable(
                    f"Pass '{pass_name}' not available in the parameter collection. "
                    f"Available passes: {collection.passes}"
                )
            logger.warning(
                "Pass '%s' not available in the parameter collection, fetching '%s'",
                pass_name,
                self.reconstruction_pass_default,
            )

        default = self.reconstruction_pass_default
        if default not in collection:
            raise CalibrationUnavailable(
                f"Cannot get default pass for calibration '{default}'. "
                f"Available passes: {collection.passes}"
            )

        return collection.retrieve(default, self.is_run3)
