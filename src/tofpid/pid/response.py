"""TOF detector response models.

A response model turns a set of calibration parameters, a track and a mass
hypothesis into an expected time of flight and an expected resolution. The
model of the data-taking period is selected once at start-up and used
uniformly thereafter.
"""

import numpy as np

from tofpid.utils.globals import (
    BETA_TIME_RESOLUTION,
    C_LIGHT,
    MIN_TIME_OF_FLIGHT,
    NOT_COMPUTED,
    SPECIES_MASSES_Z,
)

__all__ = ["Run3ResponseModel", "Run2ResponseModel"]


class ResponseModel:
    """Base class of the TOF response models.

    Implements the quantities shared by all data-taking periods. Subclasses
    define how the momentum and the signal are corrected and how the
    resolution is parametrized.
    """

    name = ""

    def __init__(self, use_tof_params_for_beta_mass=False):
        """Initialize the response model.

        Parameters
        ----------
        use_tof_params_for_beta_mass : bool, default False
            If `True`, the mass is computed from the momentum used for the
            expected times rather than from the momentum at the vertex
        """
        self.use_tof_params_for_beta_mass = use_tof_params_for_beta_mass

    def expected_momentum(self, params, track):
        """Momentum used to compute the expected times of flight.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        track : Track
            Reconstructed track

        Returns
        -------
        float
            Momentum (GeV/c)
        """
        return track.tof_exp_mom

    def expected_time(self, params, track, species):
        """Expected time of flight of a track under a mass hypothesis.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        track : Track
            Reconstructed track
        species : Species
            Mass hypothesis

        Returns
        -------
        float
            Expected time of flight (ps), `NOT_COMPUTED` if the momentum or
            the track length is not physical
        """
        p = self.expected_momentum(params, track)
        if p <= 0.0 or track.length <= 0.0:
            return NOT_COMPUTED

        mass = SPECIES_MASSES_Z[species]

        return track.length * np.sqrt(mass * mass + p * p) / (C_LIGHT * p)

    def expected_sigma(self, params, track, species, event_time_error=0.0):
        """Expected resolution of the time of flight under a mass hypothesis.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        track : Track
            Reconstructed track
        species : Species
            Mass hypothesis
        event_time_error : float, default 0.
            Uncertainty on the event time (ps)

        Returns
        -------
        float
            Expected resolution (ps), `NOT_COMPUTED` if it cannot be evaluated
        """
        return self.tracking_sigma(params, track, species, event_time_error)

    def tracking_sigma(self, params, track, species, event_time_error=0.0):
        """Species-independent resolution form.

        The tracking contribution `dpp = p0 + p1 p + p2 m/p` is propagated to
        the expected time and summed in quadrature with the intrinsic terms
        `p3/p` and `p4`, and with the event time uncertainty.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        track : Track
            Reconstructed track
        species : Species
            Mass hypothesis
        event_time_error : float, default 0.
            Uncertainty on the event time (ps)

        Returns
        -------
        float
            Expected resolution (ps)
        """
        p = track.p
        exp_time = self.expected_time(params, track, species)
        if p <= 0.0 or exp_time == NOT_COMPUTED:
            return NOT_COMPUTED

        p0, p1, p2, p3, p4 = params.tracking
        mass = SPECIES_MASSES_Z[species]
        dpp = p0 + p1 * p + p2 * mass / p
        sigma_trk = dpp * exp_time / (1.0 + p * p / (mass * mass))

        return np.sqrt(
            sigma_trk * sigma_trk
            + (p3 / p) * (p3 / p)
            + p4 * p4
            + event_time_error * event_time_error
        )

    def corrected_signal(self, params, track, signal):
        """TOF signal corrected for the calibrated time shifts.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        track : Track
            Reconstructed track
        signal : float
            TOF signal (ps)

        Returns
        -------
        float
            Corrected TOF signal (ps)
        """
        return signal

    def nsigma(self, params, track, signal, species, event_time, sigma=None):
        """Separation between the measured and the expected time of flight.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        track : Track
            Reconstructed track
        signal : float
            TOF signal (ps)
        species : Species
            Mass hypothesis
        event_time : EventTimeEstimate
            Event time of the track
        sigma : float, optional
            Expected resolution, if already computed

        Returns
        -------
        float
            Number of standard deviations, `NOT_COMPUTED` if the track has no
            TOF hit or the response cannot be evaluated
        """
        if not track.has_tof:
            return NOT_COMPUTED

        if sigma is None:
            sigma = self.expected_sigma(params, track, species, event_time.error)
        exp_time = self.expected_time(params, track, species)
        if sigma <= 0.0 or exp_time == NOT_COMPUTED:
            return NOT_COMPUTED

        corr_signal = self.corrected_signal(params, track, signal)

        return (corr_signal - event_time.value - exp_time) / sigma

    def beta(self, track, signal, event_time):
        """Velocity of the track, in units of the speed of light.

        Parameters
        ----------
        track : Track
            Reconstructed track
        signal : float
            TOF signal (ps)
        event_time : EventTimeEstimate
            Event time of the track

        Returns
        -------
        float
            Velocity, `NOT_COMPUTED` if the time of flight vanishes
        """
        if not track.has_tof or signal <= 0.0:
            return NOT_COMPUTED

        tof = signal - event_time.value
        if tof < MIN_TIME_OF_FLIGHT:
            return NOT_COMPUTED

        return track.length / tof / C_LIGHT

    def beta_sigma(self, track, signal, event_time, beta=None):
        """Uncertainty on the velocity of the track.

        Parameters
        ----------
        track : Track
            Reconstructed track
        signal : float
            TOF signal (ps)
        event_time : EventTimeEstimate
            Event time of the track
        beta : float, optional
            Velocity, if already computed

        Returns
        -------
        float
            Uncertainty on the velocity, `NOT_COMPUTED` if the velocity is
            not computed
        """
        if beta is None:
            beta = self.beta(track, signal, event_time)
        if beta == NOT_COMPUTED:
            return NOT_COMPUTED

        tof = signal - event_time.value
        return (
            beta
            / tof
            * np.sqrt(BETA_TIME_RESOLUTION**2 + event_time.error * event_time.error)
        )

    def mass_momentum(self, params, track):
        """Momentum used to compute the mass of the track."""
        if self.use_tof_params_for_beta_mass:
            return self.expected_momentum(params, track)

        return track.p

    @staticmethod
    def mass(momentum, beta):
        """Mass of the track from its momentum and velocity.

        Parameters
        ----------
        momentum : float
            Momentum (GeV/c)
        beta : float
            Velocity

        Returns
        -------
        float
            Mass (GeV/c^2), `NOT_COMPUTED` if the velocity is not valid
        """
        if beta == NOT_COMPUTED or beta <= 0.0:
            return NOT_COMPUTED

        return momentum / beta * np.sqrt(abs(1.0 - beta * beta))


class Run3ResponseModel(ResponseModel):
    """Run 3 response: momentum/charge shift, time shift curves and
    optional per-species resolution curves.
    """

    name = "run3"

    def expected_momentum(self, params, track):
        """Momentum corrected by the charge and pseudorapidity dependent
        shift of the calibration bundle.
        """
        shift = params.momentum_shift_at(track.eta)
        return track.tof_exp_mom / (1.0 + track.sign * shift)

    def expected_sigma(self, params, track, species, event_time_error=0.0):
        """Expected resolution, from the per-species curve `a0 + a1/p + a2/p^2`
        when the bundle provides one.
        """
        coeffs = params.species_resolution(species)
        if coeffs is None:
            return self.tracking_sigma(params, track, species, event_time_error)

        p = track.p
        if p <= 0.0:
            return NOT_COMPUTED

        a0, a1, a2 = coeffs
        reso = a0 + a1 / p + a2 / (p * p)

        return np.sqrt(reso * reso + event_time_error * event_time_error)

    def corrected_signal(self, params, track, signal):
        """TOF signal minus the time shift of the track's charge at its
        pseudorapidity.
        """
        return signal - params.time_shift(track.eta, track.sign > 0)


class Run2ResponseModel(ResponseModel):
    """Run 2 response: species-independent resolution form only."""

    name = "run2"
