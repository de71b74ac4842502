"""Test the event time estimator."""

import numpy as np
import pytest

from tofpid.calib import CalibrationParameters
from tofpid.config import ConfigurationError
from tofpid.data import Collision
from tofpid.pid.event_time import EventTimeEstimator
from tofpid.pid.response import Run2ResponseModel, Run3ResponseModel
from tofpid.utils.enums import CollisionSystem, PIDFlags, TrackType
from tofpid.utils.globals import ERR_DIAMOND, NO_EV_TIME_ERR, WEIGHT_DIAMOND


def signals_of(tracks):
    """TOF signals of a list of Run 3 tracks (ps)."""
    return np.array([t.track_time * 1000.0 for t in tracks], dtype=np.float64)


def estimator(compute_with_tof=1, compute_with_ft0=0, **kwargs):
    """Builds a Run 3 estimator with an explicit processing mode."""
    return EventTimeEstimator(
        Run3ResponseModel(),
        compute_with_tof=compute_with_tof,
        compute_with_ft0=compute_with_ft0,
        **kwargs
    )


class TestMode:
    """Test the processing mode configuration."""

    def test_pbpb(self):
        """PbPb collisions use the TOF alone."""
        est = estimator(-1, -1)
        assert not est.mode_set
        est.configure(CollisionSystem.PBPB)
        assert (est.compute_with_tof, est.compute_with_ft0) == (1, 0)

    def test_pp(self):
        """pp collisions use the FT0 alone."""
        est = estimator(-1, -1)
        est.configure(CollisionSystem.PP)
        assert (est.compute_with_tof, est.compute_with_ft0) == (0, 1)

    def test_explicit_switch_kept(self):
        """Only the automatic switches are set from the collision system."""
        est = estimator(-1, 1)
        est.configure(CollisionSystem.PBPB)
        assert (est.compute_with_tof, est.compute_with_ft0) == (1, 1)

    def test_explicit_mode_unchanged(self):
        est = estimator(1, 1)
        est.configure(CollisionSystem.XEXE)
        assert (est.compute_with_tof, est.compute_with_ft0) == (1, 1)

    @pytest.mark.parametrize("system", [CollisionSystem.XEXE, CollisionSystem.PPB])
    def test_unsupported_system(self, system):
        with pytest.raises(ConfigurationError, match="not supported"):
            estimator(-1, -1).configure(system)

    def test_no_detector(self):
        with pytest.raises(ConfigurationError):
            estimator(0, 0)
        with pytest.raises(ConfigurationError):
            estimator(0, -1).configure(CollisionSystem.PBPB)

    def test_bad_switch(self):
        with pytest.raises(ConfigurationError):
            estimator(2, 0)

    def test_unconfigured(self, params, collision, track_factory):
        tracks = [track_factory()]
        with pytest.raises(AssertionError):
            estimator(-1, -1).estimate(params, tracks, signals_of(tracks), {0: collision})


class TestSample:
    """Test the selection of the TOF event time sample."""

    def test_is_sample(self, track_factory):
        est = estimator()
        assert est.is_sample(track_factory())
        assert not est.is_sample(track_factory(p=3.0))
        assert not est.is_sample(track_factory(p=0.3))
        assert not est.is_sample(track_factory(has_its=False))
        assert not est.is_sample(track_factory(has_tof=False))
        assert est.is_sample(track_factory(track_type=TrackType.TRACK_IU))
        assert not est.is_sample(track_factory(track_type=TrackType.RUN2_TRACK))

    def test_seed(self, params, track_factory):
        tracks = [track_factory(t0=50.0) for _ in range(3)]
        t0, t0_err, times, weights = estimator().seed(params, tracks, signals_of(tracks))
        assert t0 == pytest.approx(50.0)
        assert t0_err == pytest.approx(80.0 / np.sqrt(3.0))
        np.testing.assert_allclose(times, 50.0)
        np.testing.assert_allclose(weights, 1.0 / 6400.0)

    def test_seed_empty(self, params):
        t0, t0_err, times, _ = estimator().seed(params, [], np.empty(0))
        assert t0 == 0.0 and np.isinf(t0_err) and len(times) == 0


class TestTOFEstimate:
    """Test the TOF event time of the tracks of a collision."""

    def test_bias_removal(self, params, collision, track_factory):
        """Sample members get the estimate of the other members, the other
        tracks get the full estimate.
        """
        tracks = [track_factory(t0=50.0) for _ in range(3)]
        tracks.append(track_factory(t0=50.0, p=3.0))
        est = estimator()
        estimates, tof_only = est.estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        for i in range(3):
            assert estimates[i].value == pytest.approx(50.0)
            assert estimates[i].error == pytest.approx(80.0 / np.sqrt(2.0))
            assert estimates[i].multiplicity == 2
            assert estimates[i].flags == PIDFlags.EV_TIME_TOF
            assert tof_only[i][0] and tof_only[i][3] == 3

        assert estimates[3].value == pytest.approx(50.0)
        assert estimates[3].error == pytest.approx(80.0 / np.sqrt(3.0))
        assert estimates[3].multiplicity == 3
        assert not tof_only[3][0]

    def test_single_track_sample(self, params, collision, track_factory):
        """A single-track sample has nothing left once the track is removed."""
        tracks = [track_factory(t0=50.0)]
        estimates, tof_only = estimator().estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        assert estimates[0].as_tuple() == (0.0, ERR_DIAMOND)
        assert estimates[0].multiplicity == 0
        assert estimates[0].flags == PIDFlags.EV_TIME_UNDEF
        assert tof_only[0] == (True, 0.0, ERR_DIAMOND, 1)

    def test_min_multiplicity(self, params, collision, track_factory):
        """Members of a two-track sample fall below the minimum multiplicity."""
        tracks = [track_factory(t0=50.0) for _ in range(2)]
        estimates, _ = estimator().estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        assert all(e.as_tuple() == (0.0, ERR_DIAMOND) for e in estimates)

        estimates, _ = estimator(min_multiplicity=1).estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        assert all(e.value == pytest.approx(50.0) for e in estimates)

    def test_no_bias_removal(self, params, collision, track_factory):
        tracks = [track_factory(t0=50.0) for _ in range(3)]
        estimates, _ = estimator(remove_bias=False).estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        assert estimates[0].error == pytest.approx(80.0 / np.sqrt(3.0))
        assert estimates[0].multiplicity == 3

    def test_empty_sample(self, params, collision, track_factory):
        """Without sample tracks, the diamond default is assigned."""
        tracks = [track_factory(p=3.0), track_factory(has_tof=False)]
        estimates, tof_only = estimator().estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        for estimate in estimates:
            assert estimate.as_tuple() == (0.0, ERR_DIAMOND)
            assert estimate.multiplicity == 0
        assert tof_only[0] == (False, 0.0, ERR_DIAMOND, 0)

    def test_weight_floor(self, collision, track_factory):
        """Estimates weaker than the diamond are replaced by the diamond
        default, never by a degenerate value.
        """
        params = CalibrationParameters(tracking=(0.0, 0.0, 0.0, 0.0, 1000.0))
        tracks = [track_factory(t0=50.0) for _ in range(3)]
        tracks.append(track_factory(t0=50.0, p=3.0))
        estimates, tof_only = estimator().estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        for estimate in estimates:
            assert np.isfinite(estimate.value) and np.isfinite(estimate.error)
            assert estimate.as_tuple() == (0.0, ERR_DIAMOND)
            assert estimate.flags == PIDFlags.EV_TIME_UNDEF
        for entry in tof_only:
            assert np.all(np.isfinite(entry[1:3]))

    def test_max_ev_time(self, params, collision, track_factory):
        """TOF event times beyond the allowed range are rejected."""
        tracks = [track_factory(t0=50.0) for _ in range(3)]
        estimates, _ = estimator(max_ev_time=10.0).estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        assert all(e.as_tuple() == (0.0, ERR_DIAMOND) for e in estimates)

        estimates, _ = estimator(max_ev_time=0.0).estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        assert all(e.flags == PIDFlags.EV_TIME_TOF for e in estimates)

    def test_sel8(self, params, track_factory):
        """Collisions failing the event selection get no TOF event time if
        requested.
        """
        collision = Collision(id=0, sel8=False)
        tracks = [track_factory(t0=50.0) for _ in range(3)]
        estimates, _ = estimator(sel8_tof_ev_time=True).estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        for estimate in estimates:
            assert estimate.as_tuple() == (0.0, ERR_DIAMOND)
            assert estimate.multiplicity == -1

        estimates, _ = estimator().estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        assert all(e.flags == PIDFlags.EV_TIME_TOF for e in estimates)

    def test_input_order(self, params, track_factory):
        """Tracks of interleaved collisions keep their input order."""
        tracks = []
        for _ in range(3):
            tracks.append(track_factory(t0=50.0, collision_id=0))
            tracks.append(track_factory(t0=-20.0, collision_id=1))
        collisions = {0: Collision(id=0), 1: Collision(id=1)}
        estimates, _ = estimator().estimate(
            params, tracks, signals_of(tracks), collisions
        )
        values = [e.value for e in estimates]
        np.testing.assert_allclose(values, [50.0, -20.0] * 3, atol=1e-6)


class TestCombination:
    """Test the combination of the TOF and FT0 event times."""

    def test_pbpb_ignores_ft0(self, params, collision, track_factory):
        """In PbPb, the valid FT0 time is never combined."""
        est = estimator(-1, -1)
        est.configure(CollisionSystem.PBPB)
        tracks = [track_factory(t0=50.0) for _ in range(4)]
        assert collision.ft0_available
        estimates, _ = est.estimate(params, tracks, signals_of(tracks), {0: collision})
        for estimate in estimates:
            assert estimate.flags == PIDFlags.EV_TIME_TOF
            assert estimate.value == pytest.approx(50.0)

    def test_tof_and_ft0(self, params, collision, track_factory):
        """Both estimates are combined with inverse-variance weights."""
        tracks = [track_factory(t0=50.0) for _ in range(3)]
        estimates, _ = estimator(1, 1).estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        w_tof, w_ft0 = 1.0 / 3200.0, 1.0 / 400.0
        expected = (w_tof * 50.0 + w_ft0 * 300.0) / (w_tof + w_ft0)
        for estimate in estimates:
            assert estimate.flags == PIDFlags.EV_TIME_TOF_T0AC
            assert estimate.value == pytest.approx(expected, rel=1e-6)
            assert estimate.error == pytest.approx(1.0 / np.sqrt(w_tof + w_ft0))
            assert estimate.multiplicity == 2

    def test_ft0_fills_empty_sample(self, params, collision, track_factory):
        tracks = [track_factory(p=3.0)]
        estimates, _ = estimator(1, 1).estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        assert estimates[0].flags == PIDFlags.EV_TIME_T0AC
        assert estimates[0].value == pytest.approx(300.0)
        assert estimates[0].error == pytest.approx(20.0)

    def test_ft0_weight_floor(self, params, track_factory):
        """An FT0 time weaker than the diamond is not used."""
        collision = Collision(
            id=0, has_ft0=True, t0ac_valid=True, t0ac=0.3, t0_resolution=1.0
        )
        assert 1.0 / 1000.0**2 < WEIGHT_DIAMOND
        tracks = [track_factory(p=3.0)]
        estimates, _ = estimator(1, 1).estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        assert estimates[0].as_tuple() == (0.0, ERR_DIAMOND)
        assert estimates[0].flags == PIDFlags.EV_TIME_UNDEF

    def test_pp_ft0_only(self, params, collision, track_factory):
        """In pp, the FT0 time is assigned to every track of the collision."""
        est = estimator(-1, -1)
        est.configure(CollisionSystem.PP)
        tracks = [track_factory(t0=50.0) for _ in range(3)]
        estimates, tof_only = est.estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        for estimate, tof in zip(estimates, tof_only):
            assert estimate.value == pytest.approx(300.0)
            assert estimate.error == pytest.approx(20.0)
            assert estimate.multiplicity == 0
            assert estimate.flags == PIDFlags.EV_TIME_T0AC
            assert tof == EventTimeEstimator.tof_only_sentinel

    def test_ft0_only_invalid(self, params, track_factory):
        collision = Collision(id=0, has_ft0=True, t0ac_valid=False)
        tracks = [track_factory()]
        estimates, _ = estimator(0, 1).estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        assert estimates[0].as_tuple() == (0.0, NO_EV_TIME_ERR)
        assert estimates[0].flags == PIDFlags.EV_TIME_UNDEF


class TestNoCollision:
    """Test the tracks which are not associated with a collision."""

    def test_collision_of(self, collision, track_factory):
        collisions = {0: collision}
        assert EventTimeEstimator.collision_of(track_factory(), collisions) is collision
        assert EventTimeEstimator.collision_of(track_factory(collision_id=7), collisions) is None
        assert EventTimeEstimator.collision_of(track_factory(collision_id=-1), collisions) is None

    def test_sentinel(self, params, collision, track_factory):
        tracks = [track_factory(collision_id=-1), track_factory(collision_id=7)]
        estimates, tof_only = estimator().estimate(
            params, tracks, signals_of(tracks), {0: collision}
        )
        for estimate, tof in zip(estimates, tof_only):
            assert estimate.as_tuple() == (0.0, ERR_DIAMOND)
            assert estimate.multiplicity == -1
            assert estimate.flags == PIDFlags.EV_TIME_UNDEF
            assert tof == (False, 0.0, 0.0, -1)


class TestRun2:
    """Test the Run 2 event time."""

    def test_collision_time(self, params, track_factory):
        """Run 2 tracks take the event time stored with their collision."""
        est = EventTimeEstimator(Run2ResponseModel(), is_run3=False)
        collision = Collision(id=0, collision_time=0.1, collision_time_res=0.08)
        tracks = [track_factory(), track_factory(collision_id=-1)]
        estimates, _ = est.estimate(params, tracks, signals_of(tracks), {0: collision})
        assert estimates[0].value == pytest.approx(100.0)
        assert estimates[0].error == pytest.approx(80.0)
        assert estimates[0].multiplicity == -1
        assert estimates[0].flags == PIDFlags.EV_TIME_TOF
        assert estimates[1].as_tuple() == (0.0, ERR_DIAMOND)
