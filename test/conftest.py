"""Sets up fixtures general to the entire test suite of this package.

This file is read during the collection phase of pytest when running anything
inside this directory.
"""

import os

import h5py
import numpy as np
import pytest

from tofpid.calib import CalibrationParameters, MemoryDatabase
from tofpid.data import Collision, RunInfo, Track
from tofpid.pid.response import Run3ResponseModel
from tofpid.utils.enums import Species

# Calibration object paths used throughout the tests
PARAMS_PATH = "TOF/Calib/Params"
GRP_PATH = "GLO/Config/GRPLHCIF"

# Beam definitions of the LHC interface object
BEAMS = {
    "pp": {"beam_z": [1, 1], "beam_a": [1, 1]},
    "PbPb": {"beam_z": [82, 82], "beam_a": [208, 208]},
    "XeXe": {"beam_z": [54, 54], "beam_a": [129, 129]},
}


def make_track(t0=0.0, species=Species.PION, p=1.0, length=370.0, **kwargs):
    """Builds a well-measured track whose TOF signal matches a given event
    time and mass hypothesis, with no calibration shift applied.

    Parameters
    ----------
    t0 : float, default 0.
        Event time of the track (ps)
    species : Species, default Species.PION
        True species of the track
    p : float, default 1.
        Momentum (GeV/c)
    length : float, default 370.
        Track length (cm)
    **kwargs : dict, optional
        Additional track attributes
    """
    attrs = dict(
        collision_id=0,
        p=p,
        tof_exp_mom=p,
        length=length,
        has_tof=True,
        has_tpc=True,
        has_its=True,
    )
    attrs.update(kwargs)
    track = Track(**attrs)

    params = CalibrationParameters()
    exp_time = Run3ResponseModel().expected_time(params, track, species)
    track.track_time = (t0 + exp_time) / 1000.0

    return track


@pytest.fixture(name="track_factory")
def fixture_track_factory():
    """Function which builds tracks matching a given event time."""
    return make_track


@pytest.fixture(name="collection_payload")
def fixture_collection_payload():
    """Parameter collection with a default pass and an anchored pass."""
    return {
        "unanchored": {"tracking": [0.0, 0.0, 0.0, 0.0, 80.0]},
        "apass4": {
            "tracking": [0.0, 0.0, 0.0, 0.0, 60.0],
            "resolution": {"Pr": [70.0, 5.0, 1.0]},
            "momentum_charge_shift": {
                "eta_min": -0.8,
                "eta_max": 0.8,
                "values": [0.0, 0.0],
            },
        },
    }


@pytest.fixture(name="database")
def fixture_database(collection_payload):
    """In-memory object store with a parameter collection and a PbPb
    LHC interface object.
    """
    return MemoryDatabase(
        {PARAMS_PATH: collection_payload, GRP_PATH: BEAMS["PbPb"]}
    )


@pytest.fixture(name="params")
def fixture_params():
    """Calibration bundle with a flat 80 ps resolution."""
    return CalibrationParameters(
        reconstruction_pass="unanchored",
        run_number=1,
        tracking=(0.0, 0.0, 0.0, 0.0, 80.0),
    )


@pytest.fixture(name="collision")
def fixture_collision():
    """Collision which passes the event selection, with a valid FT0 time."""
    return Collision(
        id=0,
        sel8=True,
        has_ft0=True,
        t0ac_valid=True,
        t0ac=0.3,
        t0_resolution=0.02,
    )


@pytest.fixture(name="hdf5_input")
def fixture_hdf5_input(tmp_path):
    """Writes a small input file with two batches of tracks.

    Parameters
    ----------
    tmp_path : str
       Generic pytest fixture used to handle temporary test files

    Returns
    -------
    str
        Path to the input file
    """
    tracks = [make_track(t0=50.0, id=i) for i in range(3)]
    tracks.append(make_track(t0=50.0, id=3, p=3.0))
    tracks.append(make_track(id=4, collision_id=-1))
    tracks += [make_track(t0=-20.0, id=i) for i in range(2)]
    collisions = [
        Collision(id=0, has_ft0=True, t0ac_valid=True, t0ac=0.05, t0_resolution=0.02),
        Collision(id=0),
    ]
    run_info = [RunInfo(run=500, timestamp=1000), RunInfo(run=501, timestamp=2000)]

    track_dtype = [
        ("id", "i8"),
        ("collision_id", "i8"),
        ("p", "f8"),
        ("eta", "f8"),
        ("sign", "i8"),
        ("has_tof", "?"),
        ("has_tpc", "?"),
        ("has_its", "?"),
        ("track_type", "i8"),
        ("length", "f8"),
        ("tof_exp_mom", "f8"),
        ("track_time", "f8"),
        ("tof_signal", "f8"),
    ]
    collision_dtype = [
        ("id", "i8"),
        ("position", "f4", (3,)),
        ("sel8", "?"),
        ("has_ft0", "?"),
        ("t0ac_valid", "?"),
        ("t0ac", "f8"),
        ("t0_resolution", "f8"),
        ("collision_time", "f8"),
        ("collision_time_res", "f8"),
    ]
    run_info_dtype = [("run", "i8"), ("timestamp", "i8")]
    event_dtype = [
        ("tracks", "i8", (2,)),
        ("collisions", "i8", (2,)),
        ("run_info", "i8", (2,)),
    ]

    def to_array(objects, dtype):
        array = np.empty(len(objects), dtype=dtype)
        for i, obj in enumerate(objects):
            for name in array.dtype.names:
                array[name][i] = getattr(obj, name)
        return array

    events = np.empty(2, dtype=event_dtype)
    events[0] = ((0, 5), (0, 1), (0, 1))
    events[1] = ((5, 2), (1, 1), (1, 1))

    file_path = os.path.join(tmp_path, "input.h5")
    with h5py.File(file_path, "w") as out_file:
        out_file.create_dataset("tracks", data=to_array(tracks, track_dtype))
        out_file.create_dataset(
            "collisions", data=to_array(collisions, collision_dtype)
        )
        out_file.create_dataset("run_info", data=to_array(run_info, run_info_dtype))
        out_file.create_dataset("events", data=events)
        info = out_file.create_group("info")
        info.attrs["is_run3"] = True
        info.attrs["is_mc"] = False
        info.attrs["reco_pass_name"] = "apass4"

    return file_path
