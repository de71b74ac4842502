"""Contains a reader class dedicated to loading data from HDF5 files."""

import h5py
import numpy as np

from tofpid.data import Collision, RunInfo, RunMetadata, Track
from tofpid.utils.logger import logger

from .base import ReaderBase

__all__ = ["HDF5Reader"]


class HDF5Reader(ReaderBase):
    """Class which reads batches of tracks stored in HDF5 files.

    The files must be structured as follows:
      - A `tracks`, a `collisions` and a `run_info` structured dataset, with
        one field per attribute of the corresponding data class
      - An `events` dataset with one record per batch, which holds one
        (start, count) pair per data product, pointing at the rows of the
        batch in each dataset
      - An `info` group which stores the dataset metadata as attributes
    """

    name = "hdf5"

    # Data class of each data product
    classes = {"tracks": Track, "collisions": Collision, "run_info": RunInfo}

    # Data products which hold a single object per batch
    scalar_keys = ("run_info",)

    def __init__(
        self,
        file_keys,
        limit_num_files=None,
        max_print_files=10,
        n_entry=None,
        n_skip=None,
        entry_list=None,
        build_classes=True,
    ):
        """Initalize the HDF5 file reader.

        Parameters
        ----------
        file_keys : list
            List of paths to the HDF5 files to be read
        limit_num_files : int, optional
            Integer limiting number of files to be taken per data directory
        max_print_files : int, default 10
            Maximum number of loaded file names to be printed
        n_entry : int, optional
            Maximum number of entries to load
        n_skip : int, optional
            Number of entries to skip at the beginning
        entry_list : list
            List of integer entry IDs to add to the index
        build_classes : bool, default True
            If `True`, rebuild the data class objects, otherwise return the
            raw structured arrays
        """
        # Process the list of files
        self.process_file_paths(file_keys, limit_num_files, max_print_files)

        # Loop over the input files, build a map from index to file ID
        self.num_entries = 0
        self.file_index = []
        self.file_offsets = np.empty(len(self.file_paths), dtype=np.int64)
        for i, path in enumerate(self.file_paths):
            with h5py.File(path, "r") as in_file:
                assert "events" in in_file, "File does not contain an event tree"

                num_entries = len(in_file["events"])
                self.file_index.append(i * np.ones(num_entries, dtype=np.int64))
                self.file_offsets[i] = self.num_entries
                self.num_entries += num_entries

        logger.info("Total number of entries in the file(s): %d\n", self.num_entries)

        self.file_index = np.concatenate(self.file_index)

        # Process the entry list
        self.process_entry_list(n_entry, n_skip, entry_list)

        self.build_classes = build_classes

        # Process the metadata of the dataset
        self.metadata = self.process_metadata()

    def process_metadata(self):
        """Fetches the dataset metadata stored in the first file.

        Returns
        -------
        RunMetadata
            Dataset metadata (undefined if the file does not store any)
        """
        with h5py.File(self.file_paths[0], "r") as in_file:
            if "info" not in in_file:
                return RunMetadata()

            attrs = in_file["info"].attrs
            keys = ("is_run3", "is_mc", "reco_pass_name", "anchor_pass_name")
            return RunMetadata(**{k: attrs[k] for k in keys if k in attrs})

    def get(self, idx):
        """Returns a specific entry in the file.

        Parameters
        ----------
        idx : int
            Integer entry ID to access

        Returns
        -------
        data : dict
            Ditionary of data products corresponding to one batch
        """
        # Get the appropriate entry index
        assert idx < len(self.entry_index)
        file_idx = self.get_file_index(idx)
        entry_idx = self.get_file_entry_index(idx)

        # Use the event tree to find out what needs to be loaded
        data = {"file_index": file_idx, "file_entry_index": entry_idx}
        with h5py.File(self.file_paths[file_idx], "r") as in_file:
            event = in_file["events"][entry_idx]
            for key in event.dtype.names:
                self.load_key(in_file, event, data, key)

        # Use the global index, not the one read from file
        data["index"] = np.int64(idx)

        return data

    def load_key(self, in_file, event, data, key):
        """Fetch a specific key for a specific batch.

        Parameters
        ----------
        in_file : h5py.File
            HDF5 file instance
        event : np.void
            Record of (start, count) pairs which make up one batch
        data : dict
            Dictionary of data products corresponding to one batch
        key: str
            Name of the dataset in the entry
        """
        start, count = (int(v) for v in event[key])
        array = in_file[key][start : start + count]
        if self.build_classes and key in self.classes:
            obj_class = self.classes[key]
            data[key] = [obj_class.from_record(el) for el in array]
        else:
            data[key] = array

        if key in self.scalar_keys:
            assert len(data[key]) == 1, f"Expected exactly one `{key}` per batch."
            data[key] = data[key][0]
