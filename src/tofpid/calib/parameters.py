"""Calibration parameter bundle of the TOF response.

The bundle gathers everything the expected time and resolution models need
for one run:
- the species-independent resolution coefficients `[p0, p1, p2, p3, p4]`,
- optional per-species resolution curves `a0 + a1/p + a2/p^2` (Run 3 only),
- an optional momentum/charge shift table, binned in pseudorapidity,
- two optional time-shift curves vs pseudorapidity (positive and negative
  tracks).

Parameter collections are dictionaries which map reconstruction pass names
onto parameter blocks:

.. code-block:: yaml

    apass4:
      tracking: [0.008, 0.008, 0.002, 40.0, 60.0]
      momentum_charge_shift:
        eta_min: -0.8
        eta_max: 0.8
        values: [0.001, 0.0, -0.001]
      resolution:
        Pi: [65.0, 2.0, 0.5]
"""

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

import h5py
import numpy as np
import yaml
from scipy.interpolate import interp1d

from tofpid.utils.enums import Species

from .errors import CalibrationUnavailable

__all__ = [
    "TimeShiftCurve",
    "MomentumChargeShift",
    "CalibrationParameters",
    "ParameterCollection",
]


@dataclass(frozen=True, eq=False)
class TimeShiftCurve:
    """Time shift (ps) as a function of pseudorapidity.

    The curve is interpolated linearly between its points and extrapolated
    linearly beyond them.

    Attributes
    ----------
    eta : np.ndarray
        (N) Pseudorapidity of the curve points
    shift : np.ndarray
        (N) Time shift at each point (ps)
    """

    eta: np.ndarray
    shift: np.ndarray
    _interp: object = field(default=None, init=False, repr=False)

    def __post_init__(self):
        """Sort the points and build the interpolator."""
        eta = np.asarray(self.eta, dtype=float)
        shift = np.asarray(self.shift, dtype=float)
        assert eta.shape == shift.shape and eta.ndim == 1, (
            "The time shift curve must be provided as two 1D arrays of "
            "identical length."
        )
        order = np.argsort(eta)
        object.__setattr__(self, "eta", eta[order])
        object.__setattr__(self, "shift", shift[order])
        if len(eta) > 1:
            interp = interp1d(
                self.eta,
                self.shift,
                kind="linear",
                bounds_error=False,
                fill_value="extrapolate",
                assume_sorted=True,
            )
            object.__setattr__(self, "_interp", interp)

    def __call__(self, eta):
        """Evaluates the time shift.

        Parameters
        ----------
        eta : Union[float, np.ndarray]
            Pseudorapidity

        Returns
        -------
        Union[float, np.ndarray]
            Time shift (ps)
        """
        if self._interp is None:
            value = self.shift[0] if len(self.shift) else 0.0
            return np.full(np.shape(eta), value) if np.ndim(eta) else float(value)

        value = self._interp(eta)

        return float(value) if np.ndim(eta) == 0 else value

    @classmethod
    def from_payload(cls, payload):
        """Builds a curve from a stored object.

        Parameters
        ----------
        payload : dict
            Dictionary with `eta` and `shift` lists

        Returns
        -------
        TimeShiftCurve
            Time shift curve
        """
        return cls(np.asarray(payload["eta"]), np.asarray(payload["shift"]))

    @classmethod
    def from_file(cls, file_path):
        """Loads a curve from a YAML or HDF5 file.

        Parameters
        ----------
        file_path : str
            Path to a `.yaml`/`.yml` file with `eta` and `shift` lists, or to a
            `.h5`/`.hdf5` file with `eta` and `shift` datasets

        Returns
        -------
        TimeShiftCurve
            Time shift curve
        """
        ext = os.path.splitext(file_path)[-1]
        if ext in (".yaml", ".yml"):
            with open(file_path, "r", encoding="utf-8") as f:
                return cls.from_payload(yaml.safe_load(f))

        if ext in (".h5", ".hdf5"):
            with h5py.File(file_path, "r") as f:
                return cls(f["eta"][:], f["shift"][:])

        raise ValueError(f"Time shift file format not recognized: {file_path}")


@dataclass(frozen=True, eq=False)
class MomentumChargeShift:
    """Relative momentum shift, signed by the track charge, binned in
    pseudorapidity.

    Attributes
    ----------
    eta_min : float
        Lower edge of the pseudorapidity range
    eta_max : float
        Upper edge of the pseudorapidity range
    values : np.ndarray
        (N) Relative shift in each of the N uniform bins
    """

    eta_min: float
    eta_max: float
    values: np.ndarray

    def __post_init__(self):
        """Cast the bin values and check the range."""
        object.__setattr__(self, "values", np.asarray(self.values, dtype=float))
        assert self.eta_max > self.eta_min, "The pseudorapidity range must not be empty."

    def __call__(self, eta):
        """Returns the relative shift of the bin containing `eta`.

        Values outside of the range take the shift of the closest bin.

        Parameters
        ----------
        eta : float
            Pseudorapidity

        Returns
        -------
        float
            Relative momentum shift
        """
        num_bins = len(self.values)
        if num_bins == 0:
            return 0.0

        width = (self.eta_max - self.eta_min) / num_bins
        index = int(np.floor((eta - self.eta_min) / width))

        return float(self.values[min(max(index, 0), num_bins - 1)])

    @classmethod
    def from_payload(cls, payload):
        """Builds a shift table from a parameter block."""
        return cls(payload["eta_min"], payload["eta_max"], payload["values"])


@dataclass(frozen=True, eq=False)
class CalibrationParameters:
    """Immutable set of calibration constants, valid for one run.

    Attributes
    ----------
    reconstruction_pass : str
        Name of the reconstruction pass the parameters were retrieved for
    run_number : int
        Run number the bundle is active for
    timestamp : int
        Timestamp at which the bundle was resolved (ms)
    tracking : Tuple[float]
        (5) Species-independent resolution coefficients `[p0, ..., p4]`
    resolution : Mapping[Species, Tuple[float]], optional
        Per-species resolution curve coefficients `(a0, a1, a2)`
    momentum_shift : MomentumChargeShift, optional
        Momentum/charge shift table
    time_shift_pos : TimeShiftCurve, optional
        Time shift curve of positive tracks
    time_shift_neg : TimeShiftCurve, optional
        Time shift curve of negative tracks
    """

    reconstruction_pass: str = ""
    run_number: int = -1
    timestamp: int = -1
    tracking: Tuple[float, ...] = (0.0, 0.0, 0.0, 0.0, 0.0)
    resolution: Optional[Mapping[Species, Tuple[float, ...]]] = None
    momentum_shift: Optional[MomentumChargeShift] = None
    time_shift_pos: Optional[TimeShiftCurve] = None
    time_shift_neg: Optional[TimeShiftCurve] = None

    def __post_init__(self):
        """Freeze the containers."""
        tracking = tuple(float(v) for v in self.tracking)
        assert len(tracking) == 5, (
            f"Must provide 5 tracking resolution coefficients, got {len(tracking)}."
        )
        object.__setattr__(self, "tracking", tracking)
        if self.resolution is not None:
            resolution = {
                Species.parse(k): tuple(float(c) for c in v)
                for k, v in self.resolution.items()
            }
            object.__setattr__(self, "resolution", MappingProxyType(resolution))

    def species_resolution(self, species):
        """Per-species resolution coefficients, if any.

        Parameters
        ----------
        species : Species
            Mass hypothesis

        Returns
        -------
        Tuple[float], optional
            `(a0, a1, a2)` coefficients, `None` if not provided
        """
        if self.resolution is None:
            return None

        return self.resolution.get(species)

    def momentum_shift_at(self, eta):
        """Relative momentum shift at a given pseudorapidity (0 if unset)."""
        if self.momentum_shift is None:
            return 0.0

        return self.momentum_shift(eta)

    def time_shift(self, eta, positive):
        """Time shift at a given pseudorapidity (0 if unset).

        Parameters
        ----------
        eta : float
            Pseudorapidity
        positive : bool
            Whether to use the curve of positive tracks

        Returns
        -------
        float
            Time shift (ps)
        """
        curve = self.time_shift_pos if positive else self.time_shift_neg
        if curve is None:
            return 0.0

        return curve(eta)


class ParameterCollection:
    """Collection of response parameter blocks, indexed by reconstruction
    pass name.
    """

    def __init__(self, content):
        """Store the parameter blocks.

        Parameters
        ----------
        content : Dict[str, dict]
            Dictionary which maps pass names onto parameter blocks
        """
        if content is None:
            raise CalibrationUnavailable("The parameter collection is null.")
        if not isinstance(content, dict):
            raise TypeError(
                f"The parameter collection must be a dictionary, got {type(content)}."
            )

        self._content = content

    @classmethod
    def from_file(cls, file_path):
        """Loads a parameter collection from a YAML file.

        Parameters
        ----------
        file_path : str
            Path to the YAML file

        Returns
        -------
        ParameterCollection
            Parameter collection
        """
        ext = os.path.splitext(file_path)[-1]
        if ext not in (".yaml", ".yml"):
            raise ValueError(f"Parameter file format not recognized: {file_path}")

        with open(file_path, "r", encoding="utf-8") as f:
            return cls(yaml.safe_load(f))

    @property
    def passes(self):
        """List of reconstruction passes available in the collection."""
        return list(self._content.keys())

    def __contains__(self, pass_name):
        return pass_name in self._content

    def retrieve(self, pass_name, is_run3=True):
        """Retrieves the parameters of one reconstruction pass.

        Parameters
        ----------
        pass_name : str
            Name of the reconstruction pass
        is_run3 : bool, default True
            If `False`, only the tracking coefficients are loaded

        Returns
        -------
        dict
            Keyword arguments of :class:`CalibrationParameters`

        Raises
        ------
        KeyError
            If the pass is not in the collection
        """
        block = self._content[pass_name]
        params = {"reconstruction_pass": pass_name, "tracking": block["tracking"]}
        if is_run3 and block.get("resolution"):
            params["resolution"] = block["resolution"]
        if is_run3 and block.get("momentum_charge_shift"):
            params["momentum_shift"] = MomentumChargeShift.from_payload(
                block["momentum_charge_shift"]
            )

        return params
