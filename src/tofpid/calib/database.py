"""Calibration object stores.

A calibration object store maps a path (e.g. `TOF/Calib/Params`) and a
timestamp onto a payload, a plain python object (typically a dictionary
loaded from YAML). Each object is valid over a [valid_from, valid_until)
timestamp interval and may carry string metadata (e.g. the name of the
reconstruction pass it was produced for).
"""

import os

import yaml

from tofpid.utils.logger import logger

__all__ = ["MemoryDatabase", "LocalDatabase"]


class CalibrationDatabase:
    """Base class of all calibration object stores.

    Subclasses must implement the :meth:`entries` method, which lists the
    objects stored under a given path.
    """

    name = ""

    def __init__(self):
        """Initialize the fetch counter."""
        self.num_fetches = 0

    def entries(self, path):
        """Lists the objects stored under a path.

        Parameters
        ----------
        path : str
            Path to the object in the store

        Returns
        -------
        List[dict]
            List of entries, each with `payload`, `valid_from`, `valid_until`
            and `metadata` keys
        """
        raise NotImplementedError("Must define the `entries` method.")

    def fetch(self, path, timestamp=-1, metadata=None):
        """Fetches the object valid at a given timestamp.

        Parameters
        ----------
        path : str
            Path to the object in the store
        timestamp : int, default -1
            Timestamp (ms) at which the object must be valid. If negative, the
            most recent object is returned.
        metadata : Dict[str, str], optional
            Metadata the object must be compatible with. An object which
            defines one of the keys with a different value is rejected.

        Returns
        -------
        object
            Payload of the object, `None` if there is no matching object
        """
        self.num_fetches += 1
        metadata = metadata or {}

        # Loop over the candidates, keep the most recent valid one
        best = None
        for entry in self.entries(path):
            if not self.is_valid(entry, timestamp):
                continue
            entry_meta = entry.get("metadata") or {}
            if any(k in entry_meta and entry_meta[k] != v for k, v in metadata.items()):
                continue
            if best is None or entry.get("valid_from", 0) >= best.get("valid_from", 0):
                best = entry

        if best is None:
            logger.debug(
                "No object found under %s for timestamp %d and metadata %s.",
                path,
                timestamp,
                metadata,
            )
            return None

        return best["payload"]

    @staticmethod
    def is_valid(entry, timestamp):
        """Checks whether an entry is valid at a given timestamp.

        Parameters
        ----------
        entry : dict
            Stored entry
        timestamp : int
            Timestamp (ms). If negative, any entry is valid.

        Returns
        -------
        bool
            `True` if the timestamp falls in the validity interval
        """
        if timestamp < 0:
            return True

        valid_from = entry.get("valid_from", 0)
        valid_until = entry.get("valid_until")

        return valid_from <= timestamp and (valid_until is None or timestamp < valid_until)


class MemoryDatabase(CalibrationDatabase):
    """Object store which keeps all its objects in memory.

    Objects can be provided at construction time as a dictionary which maps
    each path onto either a single payload (valid at all times) or a list
    of entries with explicit validity intervals:

    .. code-block:: yaml

        database:
          name: memory
          objects:
            TOF/Calib/Params:
              - payload: {...}
                valid_from: 0
                valid_until: 1000
                metadata: {RecoPassName: apass4}
    """

    name = "memory"

    def __init__(self, objects=None):
        """Store the objects.

        Parameters
        ----------
        objects : Dict[str, Union[object, List[dict]]], optional
            Objects to initialize the store with
        """
        super().__init__()
        self._objects = {}
        for path, value in (objects or {}).items():
            if isinstance(value, list) and all(
                isinstance(v, dict) and "payload" in v for v in value
            ):
                for entry in value:
                    self.store(path, **entry)
            else:
                self.store(path, value)

    def store(self, path, payload, valid_from=0, valid_until=None, metadata=None):
        """Adds an object to the store.

        Parameters
        ----------
        path : str
            Path to the object in the store
        payload : object
            Object to store
        valid_from : int, default 0
            Start of the validity interval (ms)
        valid_until : int, optional
            End of the validity interval (ms), open-ended if not specified
        metadata : Dict[str, str], optional
            Metadata attached to the object
        """
        self._objects.setdefault(path, []).append(
            {
                "payload": payload,
                "valid_from": valid_from,
                "valid_until": valid_until,
                "metadata": metadata or {},
            }
        )

    def entries(self, path):
        """Lists the objects stored under a path."""
        return self._objects.get(path, [])


class LocalDatabase(CalibrationDatabase):
    """Object store snapshot saved in a local directory.

    Each object is stored as a YAML file under `<root>/<path>/`, named after
    its validity interval as `<valid_from>_<valid_until>.yaml` (use `inf` for
    an open-ended interval). The file either contains the payload itself or
    a mapping with `payload` and `metadata` keys.
    """

    name = "local"

    def __init__(self, root):
        """Check that the snapshot directory exists.

        Parameters
        ----------
        root : str
            Path to the snapshot directory
        """
        super().__init__()
        if not os.path.isdir(root):
            raise FileNotFoundError(f"Calibration snapshot directory not found: {root}")

        self.root = root
        self._cache = {}

    def entries(self, path):
        """Lists the objects stored under a path.

        The files are only parsed the first time the path is requested.
        """
        if path in self._cache:
            return self._cache[path]

        entries = []
        directory = os.path.join(self.root, path)
        if os.path.isdir(directory):
            for file_name in sorted(os.listdir(directory)):
                stem, ext = os.path.splitext(file_name)
                if ext not in (".yaml", ".yml"):
                    continue
                valid_from, valid_until = self.parse_interval(stem)
                with open(os.path.join(directory, file_name), "r", encoding="utf-8") as f:
                    content = yaml.safe_load(f)

                if isinstance(content, dict) and "payload" in content:
                    payload, metadata = content["payload"], content.get("metadata")
                else:
                    payload, metadata = content, None

                entries.append(
                    {
                        "payload": payload,
                        "valid_from": valid_from,
                        "valid_until": valid_until,
                        "metadata": metadata or {},
                    }
                )

        self._cache[path] = entries

        return entries

    @staticmethod
    def parse_interval(stem):
        """Parses a validity interval from a file name stem.

        Parameters
        ----------
        stem : str
            File name without extension, `<valid_from>_<valid_until>`

        Returns
        -------
        Tuple[int, Optional[int]]
            Start and end of the validity interval
        """
        try:
            start, end = stem.split("_")
            return int(start), None if end == "inf" else int(end)
        except ValueError as err:
            raise ValueError(
                f"Cannot parse the validity interval from `{stem}`. File names "
                "must follow the `<valid_from>_<valid_until>` pattern."
            ) from err
