"""Test the data classes of the processing products and metadata."""

import pytest

from tofpid.data import EventTimeEstimate, PIDResult, RunInfo, RunMetadata
from tofpid.utils.enums import PIDFlags, Species
from tofpid.utils.globals import ERR_DIAMOND, NO_EV_TIME_ERR, NOT_COMPUTED


class TestEventTimeEstimate:
    """Test the event time estimate and its sentinels."""

    def test_no_collision(self):
        estimate = EventTimeEstimate.no_collision()
        assert estimate.as_tuple() == (0.0, ERR_DIAMOND)
        assert estimate.multiplicity == -1
        assert estimate.flags == PIDFlags.EV_TIME_UNDEF

    def test_no_ft0(self):
        assert EventTimeEstimate.no_ft0().as_tuple() == (0.0, NO_EV_TIME_ERR)

    def test_diamond(self):
        estimate = EventTimeEstimate.diamond(4)
        assert estimate.as_tuple() == (0.0, ERR_DIAMOND)
        assert estimate.multiplicity == 4

    def test_flags_cast(self):
        """Stored flags are cast back to their enumerated type."""
        estimate = EventTimeEstimate(10.0, 20.0, 3, 3)
        assert estimate.flags == PIDFlags.EV_TIME_TOF_T0AC
        assert isinstance(estimate.flags, PIDFlags)

    def test_diamond_error(self):
        """The diamond error is the 6 cm diamond spread over the speed of light."""
        assert ERR_DIAMOND == pytest.approx(200.138, abs=1e-3)


class TestPIDResult:
    """Test the per-species response."""

    def test_default(self):
        result = PIDResult(Species.KAON)
        assert result.nsigma == NOT_COMPUTED
        assert result.sigma == NOT_COMPUTED
        assert not result.is_computed

    def test_computed(self):
        result = PIDResult(2, 1.25, 80.0)
        assert result.species is Species.PION
        assert result.is_computed


class TestRunInfo:
    def test_default(self):
        run_info = RunInfo()
        assert run_info.run == -1
        assert run_info.timestamp == -1


class TestRunMetadata:
    """Test the dataset metadata."""

    def test_fully_defined(self):
        assert not RunMetadata().is_fully_defined()
        assert not RunMetadata(is_run3=True).is_fully_defined()
        assert RunMetadata(is_run3=True, is_mc=False).is_fully_defined()

    def test_pass_name(self):
        """Simulations use the pass they are anchored to."""
        data = RunMetadata(is_mc=False, reco_pass_name="apass4", anchor_pass_name="x")
        assert data.pass_name == "apass4"
        mc = RunMetadata(is_mc=True, reco_pass_name="y", anchor_pass_name="apass3")
        assert mc.pass_name == "apass3"

    def test_binary_strings(self):
        """Strings stored as bytes in HDF5 files are decoded."""
        metadata = RunMetadata(is_run3=1, is_mc=0, reco_pass_name=b"apass4")
        assert metadata.reco_pass_name == "apass4"
        assert metadata.is_run3 is True
        assert metadata.is_mc is False

    def test_as_dict(self):
        metadata = RunMetadata(is_run3=True, is_mc=False)
        assert metadata.as_dict() == {
            "is_run3": True,
            "is_mc": False,
            "reco_pass_name": None,
            "anchor_pass_name": None,
        }
