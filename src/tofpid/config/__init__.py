"""Configuration loading system.

Main Entry Point
----------------
load_config : Load a configuration file

See the loader module docstring for the configuration language.
"""

from .errors import (
    ConfigCycleError,
    ConfigError,
    ConfigIncludeError,
    ConfigPathError,
    ConfigTypeError,
    ConfigurationError,
)
from .loader import load_config, load_config_str, parse_value, set_nested_value

__all__ = [
    "load_config",
    "load_config_str",
    "parse_value",
    "set_nested_value",
    "ConfigError",
    "ConfigIncludeError",
    "ConfigCycleError",
    "ConfigPathError",
    "ConfigTypeError",
    "ConfigurationError",
]
