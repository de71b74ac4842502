"""Numba JIT compiled kernels of the TOF event time estimate.

The event time is estimated from the sample of tracks of a collision by
iteratively assigning each track the mass hypothesis which best matches its
time of flight, then averaging the implied event times with inverse-variance
weights.
"""

import numba as nb
import numpy as np

__all__ = ["iterate_event_time", "remove_bias"]


@nb.njit(cache=True)
def iterate_event_time(
    signals: nb.float64[:],
    exp_times: nb.float64[:, :],
    exp_sigmas: nb.float64[:, :],
    max_iterations: nb.int64,
    tolerance: nb.float64,
) -> (nb.float64, nb.float64, nb.float64[:], nb.float64[:], nb.int64[:]):
    """Iterative inverse-variance estimate of the event time.

    At each iteration, every track is assigned the hypothesis whose expected
    time of flight is closest to `signal - t0`, then the event time is updated
    as the weighted mean of `signal - t_exp` with weights `1/sigma^2`. The
    loop stops when the update falls below the tolerance or after the
    maximum number of iterations. Hypotheses with a non-positive expected time
    or resolution are never assigned.

    Parameters
    ----------
    signals : np.ndarray
        (N) TOF signals of the sample tracks (ps)
    exp_times : np.ndarray
        (N, H) Expected times of flight under each hypothesis (ps)
    exp_sigmas : np.ndarray
        (N, H) Expected resolutions under each hypothesis (ps)
    max_iterations : int
        Maximum number of iterations
    tolerance : float
        Event time update below which the iteration stops (ps)

    Returns
    -------
    float
        Event time (ps)
    float
        Event time uncertainty (ps), infinite if no track contributes
    np.ndarray
        (N) Event time implied by each track (ps)
    np.ndarray
        (N) Weight of each track (0 if it does not contribute)
    np.ndarray
        (N) Hypothesis index assigned to each track (-1 if none)
    """
    num_tracks, num_hypos = exp_times.shape
    times = np.zeros(num_tracks, dtype=np.float64)
    weights = np.zeros(num_tracks, dtype=np.float64)
    hypos = np.full(num_tracks, -1, dtype=np.int64)

    t0 = 0.0
    sum_w = 0.0
    for _ in range(max_iterations):
        # Assign each track its closest hypothesis
        sum_w, sum_wt = 0.0, 0.0
        for i in range(num_tracks):
            best, best_dist = -1, np.inf
            for h in range(num_hypos):
                if exp_times[i, h] <= 0.0 or exp_sigmas[i, h] <= 0.0:
                    continue
                dist = abs(signals[i] - t0 - exp_times[i, h])
                if dist < best_dist:
                    best, best_dist = h, dist

            hypos[i] = best
            if best < 0:
                times[i], weights[i] = 0.0, 0.0
                continue

            times[i] = signals[i] - exp_times[i, best]
            weights[i] = 1.0 / (exp_sigmas[i, best] * exp_sigmas[i, best])
            sum_w += weights[i]
            sum_wt += weights[i] * times[i]

        # Update the event time
        if sum_w <= 0.0:
            return 0.0, np.inf, times, weights, hypos

        new_t0 = sum_wt / sum_w
        shift = abs(new_t0 - t0)
        t0 = new_t0
        if shift < tolerance:
            break

    return t0, 1.0 / np.sqrt(sum_w), times, weights, hypos


@nb.njit(cache=True)
def remove_bias(
    t0: nb.float64,
    t0_err: nb.float64,
    time: nb.float64,
    weight: nb.float64,
) -> (nb.float64, nb.float64, nb.boolean):
    """Removes the contribution of one track from an event time estimate.

    With `W = 1/t0_err^2` the total weight of the estimate, the unbiased event
    time is `(t0 W - w t) / (W - w)` and its uncertainty `1/sqrt(W - w)`.

    Parameters
    ----------
    t0 : float
        Event time (ps)
    t0_err : float
        Event time uncertainty (ps)
    time : float
        Event time implied by the track (ps)
    weight : float
        Weight of the track in the estimate

    Returns
    -------
    float
        Unbiased event time (ps)
    float
        Unbiased event time uncertainty (ps)
    bool
        `False` if no weight is left once the track is removed
    """
    total = 1.0 / (t0_err * t0_err)
    rest = total - weight
    if rest <= 1e-9 * total:
        return 0.0, np.inf, False

    return (t0 * total - weight * time) / rest, 1.0 / np.sqrt(rest), True
