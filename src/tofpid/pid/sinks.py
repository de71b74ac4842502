"""Output tables of the TOF particle identification.

Each output table receives one record per input track, in input order.
"""

import numpy as np

from tofpid.utils.globals import SPECIES_NAMES

__all__ = ["TableSink", "table_schema"]

# Columns of the tables which do not depend on the species
TABLE_SCHEMAS = {
    "TOFSignal": (("tof_signal", np.float32),),
    "pidTOFFlags": (("good_for_pid", np.bool_),),
    "TOFEvTime": (("ev_time", np.float32), ("ev_time_err", np.float32)),
    "pidEvTimeFlags": (("flags", np.uint8),),
    "EvTimeTOFOnly": (
        ("is_sample", np.bool_),
        ("ev_time", np.float32),
        ("ev_time_err", np.float32),
        ("multiplicity", np.int32),
    ),
    "pidTOFbeta": (("beta", np.float32), ("beta_error", np.float32)),
    "pidTOFmass": (("mass", np.float32),),
}

# Per-species tables, the name of the species is appended to the prefix
for _name in SPECIES_NAMES:
    TABLE_SCHEMAS[f"pidTOF{_name}"] = (("tof_nsigma_store", np.int8),)
    TABLE_SCHEMAS[f"pidTOFFull{_name}"] = (
        ("tof_exp_sigma", np.float32),
        ("tof_nsigma", np.float32),
    )


def table_schema(name):
    """Returns the columns of an output table.

    Parameters
    ----------
    name : str
        Name of the table

    Returns
    -------
    Tuple[Tuple[str, type]]
        List of (column name, dtype) pairs
    """
    if name not in TABLE_SCHEMAS:
        raise KeyError(
            f"Output table not recognized: {name}. Must be one of "
            f"{list(TABLE_SCHEMAS.keys())}."
        )

    return TABLE_SCHEMAS[name]


class TableSink:
    """Growing buffer of records of one output table."""

    def __init__(self, name, columns=None):
        """Initialize an empty table.

        Parameters
        ----------
        name : str
            Name of the table
        columns : Tuple[Tuple[str, type]], optional
            List of (column name, dtype) pairs. If not specified, the schema
            is looked up from the table name.
        """
        self.name = name
        self.dtype = np.dtype(list(columns or table_schema(name)))
        self._buffer = np.empty(0, dtype=self.dtype)
        self._size = 0

    def __len__(self):
        return self._size

    def __repr__(self):
        return f"TableSink(name={self.name}, size={self._size})"

    def reserve(self, num_rows):
        """Makes room for a number of additional records.

        Parameters
        ----------
        num_rows : int
            Number of records about to be appended
        """
        capacity = self._size + num_rows
        if capacity > len(self._buffer):
            buffer = np.empty(capacity, dtype=self.dtype)
            buffer[: self._size] = self._buffer[: self._size]
            self._buffer = buffer

    def append(self, *values):
        """Appends one record.

        Parameters
        ----------
        *values : tuple
            One value per column
        """
        assert len(values) == len(self.dtype), (
            f"Table {self.name} expects {len(self.dtype)} values per record, "
            f"got {len(values)}."
        )
        if self._size == len(self._buffer):
            self.reserve(max(self._size, 16))

        self._buffer[self._size] = values
        self._size += 1

    def to_array(self):
        """Returns the records as a structured array.

        Returns
        -------
        np.ndarray
            (N) Structured array with one field per column
        """
        return self._buffer[: self._size].copy()

    def clear(self):
        """Drops all the records."""
        self._size = 0
