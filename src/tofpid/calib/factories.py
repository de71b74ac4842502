"""Construct a calibration object store from its name."""

from tofpid.utils.factory import instantiate, module_dict

from . import database

# Build a dictionary of available object stores
DATABASE_DICT = module_dict(database)


def database_factory(cfg):
    """Instantiates a calibration object store from a configuration block.

    Parameters
    ----------
    cfg : Union[str, dict]
        Object store configuration

    Returns
    -------
    CalibrationDatabase
         Initialized object store
    """
    return instantiate(DATABASE_DICT, cfg)
