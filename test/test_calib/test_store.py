"""Test the run-keyed calibration store."""

import logging

import pytest
import yaml

from tofpid.calib import CalibrationStore, CalibrationUnavailable, MemoryDatabase
from tofpid.config import ConfigurationError
from tofpid.data import RunMetadata
from tofpid.utils.enums import CollisionSystem, Species

PARAMS_PATH = "TOF/Calib/Params"
GRP_PATH = "GLO/Config/GRPLHCIF"
PBPB = {"beam_z": [82, 82], "beam_a": [208, 208]}


class TestResolve:
    """Test the resolution of the bundle active for a run."""

    def test_idempotent(self, database):
        """Resolving the same run twice returns the identical bundle and does
        not query the object store again.
        """
        store = CalibrationStore(database=database, reconstruction_pass="apass4")
        first = store.resolve(500, 1000)
        num_fetches = database.num_fetches
        second = store.resolve(500, 1000)
        assert second is first
        assert database.num_fetches == num_fetches
        assert first.run_number == 500
        assert first.reconstruction_pass == "apass4"

    def test_new_run_rekeyed(self, database):
        """Without time-dependent response, a new run reuses the content
        loaded at initialization.
        """
        store = CalibrationStore(database=database, reconstruction_pass="apass4")
        first = store.resolve(500, 1000)
        num_fetches = database.num_fetches
        second = store.resolve(501, 2000)
        assert second is not first
        assert (second.run_number, second.timestamp) == (501, 2000)
        assert second.tracking == first.tracking
        assert second.resolution == first.resolution
        assert database.num_fetches == num_fetches

    def test_time_dependent(self):
        """With time-dependent response, each new run re-fetches its bundle."""
        database = MemoryDatabase()
        database.store(PARAMS_PATH, {"unanchored": {"tracking": [0, 0, 0, 0, 80]}}, 0, 1000)
        database.store(PARAMS_PATH, {"unanchored": {"tracking": [0, 0, 0, 0, 90]}}, 1000)
        database.store(GRP_PATH, PBPB)
        store = CalibrationStore(database=database, enable_time_dependent_response=True)
        assert database.num_fetches == 0
        assert store.resolve(500, 500).tracking[-1] == 80.0
        assert store.resolve(501, 1500).tracking[-1] == 90.0
        assert store.resolve(500, 500).tracking[-1] == 80.0

    def test_other_pass(self, database):
        """A pass other than the configured one is loaded on request."""
        store = CalibrationStore(database=database, reconstruction_pass="unanchored")
        params = store.resolve(500, 1000, reconstruction_pass="apass4")
        assert params.reconstruction_pass == "apass4"
        assert store.resolve(500, 1000).reconstruction_pass == "unanchored"

    def test_collision_system(self, database):
        """The collision system is read from the LHC interface object."""
        store = CalibrationStore(database=database)
        assert store.collision_system == CollisionSystem.UNDEFINED
        store.resolve(500, 1000)
        assert store.collision_system == CollisionSystem.PBPB

    def test_collision_system_configured(self, collection_payload):
        """A configured collision system is not fetched."""
        database = MemoryDatabase({PARAMS_PATH: collection_payload})
        store = CalibrationStore(database=database, collision_system="pp")
        store.resolve(500, 1000)
        assert store.collision_system == CollisionSystem.PP

    def test_null_collision_system(self, collection_payload):
        database = MemoryDatabase({PARAMS_PATH: collection_payload})
        store = CalibrationStore(database=database)
        with pytest.raises(CalibrationUnavailable):
            store.resolve(500, 1000)

    def test_database_config(self, collection_payload):
        """The object store can be built from its configuration block."""
        cfg = {"name": "memory", "objects": {PARAMS_PATH: collection_payload}}
        store = CalibrationStore(database=cfg, collision_system=1)
        assert isinstance(store.database, MemoryDatabase)
        assert store.resolve(1, 1).tracking[-1] == 80.0


class TestPassFallback:
    """Test the fallback to the default reconstruction pass."""

    def test_fallback(self, caplog):
        """A missing pass falls back to the default pass with a warning."""
        database = MemoryDatabase(
            {PARAMS_PATH: {"Y": {"tracking": [0, 0, 0, 0, 70]}}, GRP_PATH: PBPB}
        )
        with caplog.at_level(logging.WARNING, logger="tofpid"):
            store = CalibrationStore(
                database=database,
                reconstruction_pass="X",
                reconstruction_pass_default="Y",
                fatal_on_pass_not_available=False,
            )
            params = store.resolve(500, 1000)

        assert params.reconstruction_pass == "Y"
        assert params.tracking[-1] == 70.0
        assert "Pass 'X' not available" in caplog.text

    def test_fatal(self):
        database = MemoryDatabase({PARAMS_PATH: {"Y": {"tracking": [0, 0, 0, 0, 70]}}})
        with pytest.raises(CalibrationUnavailable, match="Pass 'X'"):
            CalibrationStore(
                database=database, reconstruction_pass="X", reconstruction_pass_default="Y"
            )

    def test_missing_default(self):
        database = MemoryDatabase({PARAMS_PATH: {"Z": {"tracking": [0, 0, 0, 0, 70]}}})
        with pytest.raises(CalibrationUnavailable, match="default pass"):
            CalibrationStore(
                database=database,
                reconstruction_pass="X",
                reconstruction_pass_default="Y",
                fatal_on_pass_not_available=False,
            )

    def test_empty_pass(self, database, caplog):
        """An empty pass uses the default pass without a warning."""
        with caplog.at_level(logging.WARNING, logger="tofpid"):
            store = CalibrationStore(database=database)
        assert store.resolve(1, 1).reconstruction_pass == "unanchored"
        assert "not available" not in caplog.text

    def test_null_collection(self):
        with pytest.raises(CalibrationUnavailable, match="null"):
            CalibrationStore(database=MemoryDatabase())

    def test_no_source(self):
        with pytest.raises(CalibrationUnavailable, match="no calibration object store"):
            CalibrationStore()


class TestMetadata:
    """Test the use of the dataset metadata."""

    def test_metadata_pass(self, database):
        metadata = RunMetadata(is_run3=True, is_mc=True, anchor_pass_name="apass4")
        store = CalibrationStore(
            database=database, metadata=metadata, reconstruction_pass="metadata"
        )
        assert store.reconstruction_pass == "apass4"
        assert store.resolve(1, 1).species_resolution(Species.PROTON) == (70.0, 5.0, 1.0)

    def test_metadata_pass_without_metadata(self, database):
        with pytest.raises(ConfigurationError):
            CalibrationStore(database=database, reconstruction_pass="metadata")

    def test_run2(self, database):
        """Run 2 bundles carry no per-species curves and need no collision
        system.
        """
        metadata = {"is_run3": False, "is_mc": False}
        store = CalibrationStore(
            database=database, metadata=metadata, reconstruction_pass="apass4"
        )
        params = store.resolve(1, 1)
        assert params.resolution is None
        assert store.collision_system == CollisionSystem.UNDEFINED


class TestSources:
    """Test the file-based and store-based calibration objects."""

    def test_param_file(self, tmp_path, collection_payload):
        """A parameter file replaces the object store for the parameters."""
        path = tmp_path / "params.yaml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(collection_payload, f)
        store = CalibrationStore(param_file_name=str(path), collision_system="PbPb")
        assert store.resolve(1, 1).tracking[-1] == 80.0

    def test_time_shift_store(self, collection_payload):
        """Time shifts are fetched for the requested pass."""
        database = MemoryDatabase({PARAMS_PATH: collection_payload, GRP_PATH: PBPB})
        database.store(
            "TOF/Calib/ShiftPos",
            {"eta": [-1.0, 1.0], "shift": [0.0, 20.0]},
            metadata={"RecoPassName": "apass4"},
        )
        database.store(
            "TOF/Calib/ShiftPos",
            {"eta": [-1.0, 1.0], "shift": [100.0, 100.0]},
            metadata={"RecoPassName": "apass3"},
        )
        store = CalibrationStore(
            database=database,
            reconstruction_pass="apass4",
            time_shift_path_pos="TOF/Calib/ShiftPos",
            time_shift_path_neg="TOF/Calib/ShiftNeg",
        )
        params = store.resolve(1, 1)
        assert params.time_shift(0.0, True) == pytest.approx(10.0)
        assert params.time_shift_neg is None
        assert params.time_shift(0.0, False) == 0.0

    def test_time_shift_file(self, tmp_path, database):
        path = tmp_path / "shift.yaml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"eta": [0.0], "shift": [12.0]}, f)
        store = CalibrationStore(database=database, time_shift_path_neg=str(path))
        params = store.resolve(1, 1)
        assert params.time_shift(0.3, False) == 12.0
        assert params.time_shift(0.3, True) == 0.0

    def test_time_shift_mc(self, tmp_path, database):
        """Simulations use the dedicated time shift locations."""
        path = tmp_path / "shift_mc.yaml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"eta": [0.0], "shift": [-3.0]}, f)
        metadata = RunMetadata(is_run3=True, is_mc=True, anchor_pass_name="")
        store = CalibrationStore(
            database=database,
            metadata=metadata,
            time_shift_path_pos="TOF/Calib/ShiftPos",
            time_shift_path_pos_mc=str(path),
        )
        assert store.resolve(1, 1).time_shift(0.0, True) == -3.0
