"""Construct an input reader or an output writer from its configuration."""

from tofpid.utils.factory import instantiate, module_dict

from .read import hdf5 as read_hdf5
from .write import hdf5 as write_hdf5

# Build a dictionary of available readers
READER_DICT = module_dict(read_hdf5)

# Build a dictionary of available writers
WRITER_DICT = module_dict(write_hdf5)


def reader_factory(cfg):
    """Instantiates a reader from a configuration block.

    Parameters
    ----------
    cfg : dict
        Reader configuration

    Returns
    -------
    ReaderBase
        Initialized reader
    """
    return instantiate(READER_DICT, cfg)


def writer_factory(cfg):
    """Instantiates a writer from a configuration block.

    Parameters
    ----------
    cfg : dict
        Writer configuration

    Returns
    -------
    object
        Initialized writer
    """
    return instantiate(WRITER_DICT, cfg)
