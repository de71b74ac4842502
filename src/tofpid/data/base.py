"""Module with a parent class of all data structures."""

from dataclasses import asdict, dataclass, fields

import numpy as np


@dataclass(eq=False)
class DataBase:
    """Base class of all data structures.

    Defines basic methods shared by all data structures.
    """

    # Enumerated attributes as (key, enum) pairs
    _enum_attrs = ()

    # Fixed-length attributes as (key, size) or (key, (size, dtype)) pairs
    _fixed_length_attrs = ()

    # String attributes
    _str_attrs = ()

    # Boolean attributes
    _bool_attrs = ()

    def __post_init__(self):
        """Immediately called after building the class attributes.

        Provides three functions:
        - Gives default values to array-like attributes. If a default value was
          provided in the attribute definition, all instances of this class
          would point to the same memory location.
        - Casts strings when they are provided as binary objects, which is the
          format one gets when loading string from HDF5 files.
        - Casts stored integers back to booleans and enumerators.
        """
        # Provide default values to the fixed-length array attributes
        for attr, size in self._fixed_length_attrs:
            if getattr(self, attr) is None:
                if not isinstance(size, tuple):
                    dtype = np.float32
                else:
                    size, dtype = size
                setattr(self, attr, np.full(size, -np.inf, dtype=dtype))
            else:
                setattr(self, attr, np.asarray(getattr(self, attr)))

        # Cast stored binary strings back to regular strings
        for attr in self._str_attrs:
            if isinstance(getattr(self, attr), bytes):
                setattr(self, attr, getattr(self, attr).decode())

        # Cast stored integers back to booleans
        for attr in self._bool_attrs:
            if isinstance(getattr(self, attr), (np.integer, np.bool_, int)):
                setattr(self, attr, bool(getattr(self, attr)))

        # Cast stored integers back to their enumerated type
        for attr, enum in self._enum_attrs:
            value = getattr(self, attr)
            if value is not None and not isinstance(value, enum):
                setattr(self, attr, enum(int(value)))

    def __eq__(self, other):
        """Checks that all attributes of two class instances are the same.

        This overloads the default dataclass `__eq__` method to include an
        appopriate check for vector (numpy) attributes.

        Parameters
        ----------
        other : obj
            Other instance of the same object class

        Returns
        -------
        bool
            `True` if all attributes of both objects are identical
        """
        # Check that the two objects belong to the same class
        if self.__class__ != other.__class__:
            return False

        # Check that all base attributes are identical
        for k, v in self.__dict__.items():
            if v is None or np.isscalar(v):
                if getattr(other, k) != v:
                    return False

            else:
                v_other = getattr(other, k)
                if v.shape != v_other.shape or (v_other != v).any():
                    return False

        return True

    @classmethod
    def from_record(cls, record):
        """Builds an object from a structured array row.

        Only the fields which the row and the data class have in common are
        used, the other attributes keep their default value.

        Parameters
        ----------
        record : np.void
            Row of a structured array (as stored in an HDF5 dataset)

        Returns
        -------
        DataBase
            Data class instance
        """
        names = record.dtype.names
        kwargs = {}
        for field in fields(cls):
            if field.name in names:
                value = record[field.name]
                kwargs[field.name] = value.item() if np.ndim(value) == 0 else value

        return cls(**kwargs)

    def as_dict(self):
        """Returns the data class as dictionary of (key, value) pairs.

        Returns
        -------
        dict
            Dictionary of attribute names and their values
        """
        return asdict(self)
