"""Construct the PID processing components from their configuration."""

from tofpid.utils.factory import instantiate, module_dict

from . import response, signal

# Build dictionaries of available components
RESPONSE_DICT = module_dict(response)
SIGNAL_DICT = module_dict(signal)


def response_factory(cfg):
    """Instantiates a response model from a configuration block.

    Parameters
    ----------
    cfg : Union[str, dict]
        Response model configuration

    Returns
    -------
    ResponseModel
        Initialized response model
    """
    return instantiate(RESPONSE_DICT, cfg)


def signal_factory(cfg):
    """Instantiates a signal extractor from a configuration block.

    Parameters
    ----------
    cfg : Union[str, dict]
        Signal extractor configuration

    Returns
    -------
    SignalExtractor
        Initialized signal extractor
    """
    return instantiate(SIGNAL_DICT, cfg)
