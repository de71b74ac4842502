"""Estimation of the collision event time of each track.

The TOF estimate uses the sample of well-measured tracks of a collision. The
estimate of a track which belongs to the sample is corrected to remove its
own contribution, so that its time of flight is not compared to an event
time it biased. The TOF estimate can be combined with the FT0 estimate.
"""

import numpy as np

from tofpid.config.errors import ConfigurationError
from tofpid.data import EventTimeEstimate
from tofpid.math.evtime import iterate_event_time, remove_bias
from tofpid.utils.enums import CollisionSystem, PIDFlags, Species, TrackType
from tofpid.utils.globals import ERR_DIAMOND, NOT_COMPUTED, NS_TO_PS, WEIGHT_DIAMOND
from tofpid.utils.logger import logger

__all__ = ["EventTimeEstimator"]


class EventTimeEstimator:
    """Computes the event time associated with each track of a batch.

    The processing mode is defined by two switches, `compute_with_tof` and
    `compute_with_ft0`, each of which takes one of the following values:
    - -1: automatically set from the collision system
    - 0: do not use the detector
    - 1: use the detector
    """

    # Event time of tracks which are not part of the TOF-only estimate
    tof_only_sentinel = (False, 0.0, 0.0, -1)

    def __init__(
        self,
        response,
        is_run3=True,
        min_momentum=0.5,
        max_momentum=2.0,
        max_ev_time=100000.0,
        sel8_tof_ev_time=False,
        compute_with_tof=-1,
        compute_with_ft0=-1,
        hypotheses=("Pi", "Ka", "Pr"),
        max_iterations=10,
        tolerance=0.1,
        min_multiplicity=2,
        remove_bias=True,
    ):
        """Initialize the event time estimator.

        Parameters
        ----------
        response : ResponseModel
            Response model used to compute the expected times of the sample
        is_run3 : bool, default True
            If `False`, the event time stored with the collision is used
        min_momentum : float, default 0.5
            Minimum momentum of the tracks of the TOF sample (GeV/c)
        max_momentum : float, default 2.0
            Maximum momentum of the tracks of the TOF sample (GeV/c)
        max_ev_time : float, default 100000.
            Maximum absolute value of an accepted TOF event time (ps). If not
            positive, there is no limit.
        sel8_tof_ev_time : bool, default False
            If `True`, collisions which fail the event selection get no TOF
            event time
        compute_with_tof : int, default -1
            Whether to use the TOF estimate
        compute_with_ft0 : int, default -1
            Whether to use the FT0 estimate
        hypotheses : List[Union[str, Species]], default ('Pi', 'Ka', 'Pr')
            Mass hypotheses considered for the tracks of the TOF sample
        max_iterations : int, default 10
            Maximum number of iterations of the TOF estimate
        tolerance : float, default 0.1
            Event time update below which the iteration stops (ps)
        min_multiplicity : int, default 2
            Minimum number of sample tracks left once a track's contribution
            is removed from its own estimate
        remove_bias : bool, default True
            Whether to remove the contribution of each sample track from its
            own estimate
        """
        self.response = response
        self.is_run3 = is_run3

        # Store the sample selection parameters
        assert min_momentum < max_momentum, "The momentum range must not be empty."
        self.min_momentum = min_momentum
        self.max_momentum = max_momentum
        self.max_ev_time = max_ev_time
        self.sel8_tof_ev_time = sel8_tof_ev_time
        logger.info(
            "Configuring track sample for TOF ev. time: %g < p < %g",
            min_momentum,
            max_momentum,
        )
        if sel8_tof_ev_time:
            logger.info(
                "TOF event time will be computed for collisions that pass "
                "the event selection only!"
            )

        # Store the processing mode
        for key, value in (("compute_with_tof", compute_with_tof), ("compute_with_ft0", compute_with_ft0)):
            if value not in (-1, 0, 1):
                raise ConfigurationError(f"`{key}` must be one of -1, 0 or 1, got {value}.")
        self.compute_with_tof = compute_with_tof
        self.compute_with_ft0 = compute_with_ft0
        self._check_mode()

        # Store the iteration parameters
        assert max_iterations > 0, "Must run at least one iteration."
        self.hypotheses = [Species.parse(h) for h in hypotheses]
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.min_multiplicity = min_multiplicity
        self.remove_bias = remove_bias

    def _check_mode(self):
        """Checks that at least one detector is used."""
        if self.compute_with_tof == 0 and self.compute_with_ft0 == 0:
            raise ConfigurationError(
                "Neither the TOF nor the FT0 is used to compute the event time."
            )

    @property
    def mode_set(self):
        """Whether the processing mode is fully defined."""
        return self.compute_with_tof != -1 and self.compute_with_ft0 != -1

    def configure(self, collision_system):
        """Sets the undefined processing mode switches from the collision system.

        In pp collisions the FT0 alone is used, in PbPb collisions the TOF
        alone is used. Switches which were set explicitly are not modified.

        Parameters
        ----------
        collision_system : CollisionSystem
            Collision system of the dataset
        """
        if self.mode_set:
            return

        collision_system = CollisionSystem(collision_system)
        if collision_system == CollisionSystem.PP:
            defaults = (0, 1)
        elif collision_system == CollisionSystem.PBPB:
            defaults = (1, 0)
        else:
            raise ConfigurationError(
                f"Collision system {collision_system.name} not supported for "
                "TOF event time computation."
            )

        if self.compute_with_tof == -1:
            self.compute_with_tof = defaults[0]
        if self.compute_with_ft0 == -1:
            self.compute_with_ft0 = defaults[1]
        self._check_mode()

        logger.info(
            "Running on %s with compute_with_tof=%d and compute_with_ft0=%d",
            collision_system.name,
            self.compute_with_tof,
            self.compute_with_ft0,
        )

    def is_sample(self, track):
        """Checks whether a track is part of the TOF event time sample.

        Parameters
        ----------
        track : Track
            Reconstructed track

        Returns
        -------
        bool
            `True` if the track is well measured enough to constrain the
            event time
        """
        return (
            track.has_tof
            and self.min_momentum < track.p < self.max_momentum
            and track.has_its
            and track.has_tpc
            and track.track_type in (TrackType.TRACK, TrackType.TRACK_IU)
        )

    def seed(self, params, tracks, signals):
        """Computes the TOF event time of a sample of tracks.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        tracks : List[Track]
            (N) Sample tracks
        signals : np.ndarray
            (N) TOF signals of the sample tracks (ps)

        Returns
        -------
        float
            Event time (ps)
        float
            Event time uncertainty (ps), infinite if no track contributes
        np.ndarray
            (N) Event time implied by each track (ps)
        np.ndarray
            (N) Weight of each track
        """
        num_tracks, num_hypos = len(tracks), len(self.hypotheses)
        if num_tracks == 0:
            return 0.0, np.inf, np.empty(0), np.empty(0)

        # Evaluate the expected times of each track under each hypothesis
        exp_times = np.full((num_tracks, num_hypos), NOT_COMPUTED, dtype=np.float64)
        exp_sigmas = np.full((num_tracks, num_hypos), NOT_COMPUTED, dtype=np.float64)
        corr_signals = np.empty(num_tracks, dtype=np.float64)
        for i, track in enumerate(tracks):
            corr_signals[i] = self.response.corrected_signal(params, track, signals[i])
            for h, species in enumerate(self.hypotheses):
                exp_times[i, h] = self.response.expected_time(params, track, species)
                exp_sigmas[i, h] = self.response.expected_sigma(params, track, species)

        t0, t0_err, times, weights, _ = iterate_event_time(
            corr_signals, exp_times, exp_sigmas, self.max_iterations, self.tolerance
        )

        return t0, t0_err, times, weights

    def estimate(self, params, tracks, signals, collisions):
        """Computes the event time of each track of a batch.

        Tracks are grouped by collision, such that each collision estimate is
        only computed once per batch.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        tracks : List[Track]
            (N) Reconstructed tracks
        signals : np.ndarray
            (N) TOF signals (ps)
        collisions : Dict[int, Collision]
            Collisions of the batch, indexed by collision ID

        Returns
        -------
        List[EventTimeEstimate]
            (N) Event time of each track
        List[Tuple[bool, float, float, int]]
            (N) TOF-only estimate of each track as (is-sample-member, event
            time, uncertainty, multiplicity)
        """
        assert self.mode_set or not self.is_run3, (
            "The event time processing mode must be configured before processing."
        )

        # Group the tracks by collision, preserving the input order
        groups = {}
        for i, track in enumerate(tracks):
            groups.setdefault(track.collision_id, []).append(i)

        estimates = [None] * len(tracks)
        tof_only = [self.tof_only_sentinel] * len(tracks)
        for collision_id, indexes in groups.items():
            collision = self.collision_of(tracks[indexes[0]], collisions)
            if collision is None:
                for i in indexes:
                    estimates[i] = EventTimeEstimate.no_collision()
                continue

            if not self.is_run3:
                estimate = self.collision_estimate(collision)
                for i in indexes:
                    estimates[i] = estimate
                continue

            self.estimate_collision(
                params, collision, tracks, signals, indexes, estimates, tof_only
            )

        return estimates, tof_only

    @staticmethod
    def collision_of(track, collisions):
        """Returns the collision a track is associated with.

        Parameters
        ----------
        track : Track
            Reconstructed track
        collisions : Dict[int, Collision]
            Collisions of the batch, indexed by collision ID

        Returns
        -------
        Collision
            Collision of the track, `None` if the track is not associated with
            a collision of the batch
        """
        if not track.has_collision:
            return None

        return collisions.get(track.collision_id)

    @staticmethod
    def collision_estimate(collision):
        """Event time stored with a Run 2 collision.

        Parameters
        ----------
        collision : Collision
            Reconstructed collision

        Returns
        -------
        EventTimeEstimate
            Event time of the collision
        """
        return EventTimeEstimate(
            collision.collision_time * NS_TO_PS,
            collision.collision_time_res * NS_TO_PS,
            -1,
            PIDFlags.EV_TIME_TOF,
        )

    def estimate_collision(
        self, params, collision, tracks, signals, indexes, estimates, tof_only
    ):
        """Computes the event time of all the tracks of one collision.

        Parameters
        ----------
        params : CalibrationParameters
            Active calibration bundle
        collision : Collision
            Reconstructed collision
        tracks : List[Track]
            Reconstructed tracks of the batch
        signals : np.ndarray
            TOF signals of the tracks of the batch (ps)
        indexes : List[int]
            Indexes of the tracks which belong to the collision
        estimates : List[EventTimeEstimate]
            Event time of each track of the batch, filled in place
        tof_only : List[Tuple[bool, float, float, int]]
            TOF-only estimate of each track of the batch, filled in place
        """
        use_tof = self.compute_with_tof == 1
        use_ft0 = self.compute_with_ft0 == 1

        # FT0 only
        if not use_tof:
            if self.ft0_available(collision):
                estimate = EventTimeEstimate(
                    collision.t0ac * NS_TO_PS,
                    collision.t0_resolution * NS_TO_PS,
                    0,
                    PIDFlags.EV_TIME_T0AC,
                )
            else:
                estimate = EventTimeEstimate.no_ft0()
            for i in indexes:
                estimates[i] = estimate
            return

        # Collisions which fail the event selection get no event time
        if self.sel8_tof_ev_time and not collision.sel8:
            for i in indexes:
                estimates[i] = EventTimeEstimate.no_collision()
            return

        # Compute the TOF event time of the collision sample
        sample = [i for i in indexes if self.is_sample(tracks[i])]
        t0, t0_err, times, weights = self.seed(
            params, [tracks[i] for i in sample], signals[sample]
        )
        multiplicity = int(np.sum(weights > 0.0))
        positions = {i: k for k, i in enumerate(sample)}
        logger.debug(
            "Collision %d: TOF event time %.1f +- %.1f ps from %d tracks",
            collision.id,
            t0,
            t0_err,
            multiplicity,
        )

        # Loop over the tracks, remove their own contribution if needed
        for i in indexes:
            value, error, count = t0, t0_err, multiplicity
            k = positions.get(i)
            if multiplicity == 0:
                value, error = 0.0, ERR_DIAMOND
            elif self.remove_bias and k is not None and weights[k] > 0.0:
                count = multiplicity - 1
                value, error, valid = remove_bias(t0, t0_err, times[k], weights[k])
                if not valid or count < self.min_multiplicity:
                    value, error = 0.0, ERR_DIAMOND

            tof_only[i] = (k is not None, value, error, multiplicity)
            estimates[i] = self.combine(value, error, count, collision if use_ft0 else None)

    def ft0_available(self, collision):
        """Whether the collision carries a usable FT0 event time."""
        return collision.ft0_available and collision.t0_resolution > 0.0

    def combine(self, value, error, multiplicity, collision=None):
        """Gates the TOF event time and combines it with the FT0 event time.

        The TOF estimate is only accepted if its uncertainty is below the
        diamond uncertainty and its value within the allowed range. If the
        combined weight falls below the weight of the diamond, the diamond
        default is returned.

        Parameters
        ----------
        value : float
            TOF event time (ps)
        error : float
            TOF event time uncertainty (ps)
        multiplicity : int
            Number of tracks which contributed to the TOF event time
        collision : Collision, optional
            Collision from which to take the FT0 event time, if it is used

        Returns
        -------
        EventTimeEstimate
            Event time of the track
        """
        flags = PIDFlags.EV_TIME_UNDEF
        sum_w, sum_wt = 0.0, 0.0
        if error < ERR_DIAMOND and (self.max_ev_time <= 0 or abs(value) < self.max_ev_time):
            flags |= PIDFlags.EV_TIME_TOF
            weight = 1.0 / (error * error)
            sum_w += weight
            sum_wt += weight * value

        if collision is not None and self.ft0_available(collision):
            flags |= PIDFlags.EV_TIME_T0AC
            ft0_error = collision.t0_resolution * NS_TO_PS
            weight = 1.0 / (ft0_error * ft0_error)
            sum_w += weight
            sum_wt += weight * collision.t0ac * NS_TO_PS

        if sum_w < WEIGHT_DIAMOND:
            return EventTimeEstimate.diamond(multiplicity)

        if flags == PIDFlags.EV_TIME_TOF:
            return EventTimeEstimate(value, error, multiplicity, flags)

        return EventTimeEstimate(sum_wt / sum_w, 1.0 / np.sqrt(sum_w), multiplicity, flags)
