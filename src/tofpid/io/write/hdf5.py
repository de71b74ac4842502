"""Module to write the output tables to an HDF5 file."""

import os

import h5py
import numpy as np

__all__ = ["HDF5Writer"]


class HDF5Writer:
    """Writes the output tables of the TOF PID to an HDF5 file.

    Each table is stored as a resizable structured dataset which grows by
    the records of each processed batch. An `events` dataset stores, for
    each batch, the (start, count) range of its records in each table.

    Typical configuration should look like:

    .. code-block:: yaml

        io:
          ...
          writer:
            name: hdf5
            file_name: tofpid.h5
    """

    name = "hdf5"

    def __init__(self, file_name="tofpid.h5", overwrite=False):
        """Initialize the basics of the output file.

        Parameters
        ----------
        file_name : str, default 'tofpid.h5'
            Name of the output HDF5 file
        overwrite : bool, default False
            If True, overwrite the output file if it already exists
        """
        # Check that output file does not already exist, if requested
        if not overwrite and os.path.isfile(file_name):
            raise FileExistsError(f"File with name {file_name} already exists.")

        self.file_name = file_name
        self.table_names = None

    def create(self, tables):
        """Initialize the datasets of the output file.

        Parameters
        ----------
        tables : Dict[str, np.ndarray]
            Dictionary which maps table names onto structured arrays
        """
        self.table_names = list(tables.keys())
        event_dtype = [(name, "i8", (2,)) for name in self.table_names]
        with h5py.File(self.file_name, "w") as out_file:
            for name, array in tables.items():
                out_file.create_dataset(
                    name, shape=(0,), maxshape=(None,), dtype=array.dtype
                )
            out_file.create_dataset(
                "events", shape=(0,), maxshape=(None,), dtype=event_dtype
            )

    def __call__(self, tables):
        self.append(tables)

    def append(self, tables):
        """Append the records of one batch to the output file.

        Parameters
        ----------
        tables : Dict[str, np.ndarray]
            Dictionary which maps table names onto structured arrays
        """
        if self.table_names is None:
            self.create(tables)

        assert list(tables.keys()) == self.table_names, (
            "The set of output tables changed since the file was initialized. "
            f"Expected {self.table_names}, got {list(tables.keys())}."
        )

        with h5py.File(self.file_name, "a") as out_file:
            events = out_file["events"]
            ranges = {}
            for name, array in tables.items():
                dataset = out_file[name]
                start = len(dataset)
                dataset.resize((start + len(array),))
                dataset[start:] = array
                ranges[name] = (start, len(array))

            num_events = len(events)
            events.resize((num_events + 1,))
            record = np.zeros(1, dtype=events.dtype)
            for name, value in ranges.items():
                record[name] = value
            events[num_events:] = record
