"""YAML configuration loader.

Configuration language
----------------------

Include semantics:
    include: base.yaml               # Single file
    include: [base.yaml, other.yaml] # Multiple files (order matters)
    key: !include inline.yaml        # Inline include

Path resolution:
    calib:
      param_file_name: !path params/tof_params.yaml  # Must exist at load time

Override semantics:
    override:
      pid.event_time.max_momentum: 1.5   # Set value
      pid.tables+: [pidTOFFullKa]        # Append to list
      pid.tables-: [pidTOFbeta]          # Remove from list

Removal semantics:
    remove: calib.param_file_name      # Delete key
    remove: [key1, key2]               # Delete multiple keys

Application order:
    1. Load and merge all included files recursively (depth-first)
    2. Merge the content of the file itself
    3. Apply the removals, then the overrides
"""

import os
from copy import deepcopy
from typing import Any, Dict, List, Optional, TextIO, Tuple, cast

import yaml

from .errors import ConfigCycleError, ConfigIncludeError, ConfigPathError, ConfigTypeError

__all__ = [
    "load_config",
    "load_config_str",
    "deep_merge",
    "set_nested_value",
    "resolve_config_path",
    "parse_value",
    "ConfigLoader",
]

# Environment variable listing additional configuration search directories
CONFIG_PATH_ENV = "TOFPID_CONFIG_PATH"


def resolve_config_path(
    filename: str, current_dir: str, search_paths: Optional[List[str]] = None
) -> str:
    """Resolve a configuration file path.

    Resolution order:
    1. If absolute path, return as-is
    2. Try relative to current_dir (with and without .yaml/.yml extension)
    3. Search through the TOFPID_CONFIG_PATH directories

    Parameters
    ----------
    filename : str
        Config filename or path to resolve
    current_dir : str
        Directory of the config file doing the including
    search_paths : List[str], optional
        List of search paths (defaults to TOFPID_CONFIG_PATH env var)

    Returns
    -------
    str
        Resolved absolute path

    Raises
    ------
    ConfigIncludeError
        If file cannot be found in any location
    """
    if os.path.isabs(filename):
        if os.path.exists(filename):
            return filename
        raise ConfigIncludeError(f"Absolute path not found: {filename}")

    if search_paths is None:
        env_paths = os.environ.get(CONFIG_PATH_ENV, "")
        search_paths = [p.strip() for p in env_paths.split(":") if p.strip()]

    for directory in [current_dir, *search_paths]:
        candidate = os.path.join(directory, filename)
        for path in (candidate, candidate + ".yaml", candidate + ".yml"):
            if os.path.exists(path):
                return os.path.abspath(path)

    raise ConfigIncludeError(
        f"Config file '{filename}' not found. Searched in: "
        f"{[current_dir, *search_paths]}"
    )


class ConfigLoader(yaml.SafeLoader):
    """YAML loader with `!include` and `!path` tag support."""

    def __init__(self, stream: TextIO) -> None:
        """Initialize the loader.

        Parameters
        ----------
        stream : TextIO
            File stream (from `open()`)
        """
        self._root = os.path.split(getattr(stream, "name", ""))[0] or os.getcwd()
        super().__init__(stream)

    def include(self, node: yaml.Node) -> Any:
        """Load and include a YAML file inline."""
        filename = self.construct_scalar(cast(yaml.ScalarNode, node))
        resolved_path = resolve_config_path(filename, self._root)

        with open(resolved_path, "r", encoding="utf-8") as f:
            return yaml.load(f, Loader=ConfigLoader)

    def resolve_path(self, node: yaml.Node) -> str:
        """Resolve a file path relative to the current config file."""
        filename = self.construct_scalar(cast(yaml.ScalarNode, node))
        return resolve_config_path(filename, self._root)


ConfigLoader.add_constructor("!include", ConfigLoader.include)
ConfigLoader.add_constructor("!path", ConfigLoader.resolve_path)


def deep_merge(base_dict: Dict[str, Any], override_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override_dict into base_dict.

    Parameters
    ----------
    base_dict : Dict[str, Any]
        Base dictionary
    override_dict : Dict[str, Any]
        Override dictionary

    Returns
    -------
    Dict[str, Any]
        Merged dictionary (new copy)
    """
    result = deepcopy(base_dict)
    for key, value in override_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def set_nested_value(
    config: Dict[str, Any], key_path: str, value: Any = None, delete: bool = False
) -> Dict[str, Any]:
    """Set, extend, shrink or delete a nested value using dot notation.

    A key path ending with `+` appends the value(s) to a list, a key path
    ending with `-` removes the value(s) from a list.

    Parameters
    ----------
    config : Dict[str, Any]
        Configuration dictionary (modified in place)
    key_path : str
        Dot-separated path (e.g., "pid.event_time.max_momentum")
    value : Any, optional
        Value to set (ignored if delete=True)
    delete : bool, default False
        If True, delete the key

    Returns
    -------
    Dict[str, Any]
        Modified configuration

    Raises
    ------
    ConfigPathError
        If a key to delete or a list to modify does not exist
    ConfigTypeError
        If the path traverses a non-dict value or a list operation
        targets a non-list value
    """
    operation = None
    if key_path[-1] in ("+", "-"):
        key_path, operation = key_path[:-1], key_path[-1]

    keys = key_path.split(".")
    current = config
    for key in keys[:-1]:
        if key not in current:
            if delete or operation is not None:
                raise ConfigPathError(f"Path '{key_path}' does not exist")
            current[key] = {}
        elif not isinstance(current[key], dict):
            raise ConfigTypeError(f"Cannot set '{key_path}': '{key}' is not a dictionary")
        current = current[key]

    final_key = keys[-1]
    if delete:
        if final_key not in current:
            raise ConfigPathError(f"Cannot delete '{key_path}': key does not exist")
        del current[final_key]

    elif operation is not None:
        if final_key not in current:
            raise ConfigPathError(f"Cannot modify '{key_path}': key does not exist")
        if not isinstance(current[final_key], list):
            raise ConfigTypeError(f"Cannot modify '{key_path}': target is not a list")
        values = value if isinstance(value, list) else [value]
        if operation == "+":
            current[final_key] = current[final_key] + values
        else:
            current[final_key] = [v for v in current[final_key] if v not in values]

    else:
        current[final_key] = value

    return config


def parse_value(value_str: Any) -> Any:
    """Parse a command-line string value into the appropriate Python type.

    Parameters
    ----------
    value_str : Any
        Value to parse (if string, attempts YAML parsing)

    Returns
    -------
    Any
        Parsed value
    """
    if not isinstance(value_str, str) or value_str.strip() == "":
        return value_str

    try:
        return yaml.safe_load(value_str)
    except yaml.YAMLError:
        return value_str


def _extract_directives(config: Any) -> Tuple[List[str], Dict[str, Any], List[str], Any]:
    """Split a loaded YAML block into include/override/remove directives and
    regular content.
    """
    if not isinstance(config, dict):
        return [], {}, [], config

    includes = config.pop("include", [])
    if isinstance(includes, str):
        includes = [includes]
    overrides = config.pop("override", {})
    removals = config.pop("remove", [])
    if isinstance(removals, str):
        removals = [removals]

    if not isinstance(overrides, dict):
        raise ConfigTypeError(f"'override' must be a dictionary, got {type(overrides)}")

    return includes, overrides, removals, config


def _load_config_recursive(cfg_path: str, include_stack: Tuple[str, ...] = ()) -> Dict[str, Any]:
    """Recursively load a configuration file with cycle detection.

    Parameters
    ----------
    cfg_path : str
        Path to configuration file
    include_stack : Tuple[str], optional
        Files currently being loaded (for cycle detection)

    Returns
    -------
    Dict[str, Any]
        Fully resolved configuration of this file
    """
    cfg_path = os.path.abspath(cfg_path)
    if cfg_path in include_stack:
        raise ConfigCycleError([*include_stack, cfg_path])
    include_stack = (*include_stack, cfg_path)

    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            content = yaml.load(f, Loader=ConfigLoader)
    except FileNotFoundError as exc:
        raise ConfigIncludeError(f"Configuration file not found: {cfg_path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigIncludeError(f"Error loading {cfg_path}: {exc}") from exc

    if content is None:
        return {}

    includes, overrides, removals, content = _extract_directives(content)

    config = {}
    root_dir = os.path.dirname(cfg_path)
    for include_file in includes:
        include_path = resolve_config_path(include_file, root_dir)
        config = deep_merge(config, _load_config_recursive(include_path, include_stack))

    config = deep_merge(config, content)

    return _apply_directives(config, overrides, removals)


def _apply_directives(config, overrides, removals):
    """Apply removal then override directives to a configuration."""
    for key_path in removals:
        set_nested_value(config, key_path, delete=True)
    for key_path, value in overrides.items():
        set_nested_value(config, key_path, value)

    return config


def load_config(cfg_path: str) -> Dict[str, Any]:
    """Load a configuration file.

    Parameters
    ----------
    cfg_path : str
        Path to configuration file

    Returns
    -------
    Dict[str, Any]
        Loaded and merged configuration

    Raises
    ------
    ConfigCycleError
        If circular include detected
    ConfigIncludeError
        If included file not found or can't be loaded
    ConfigPathError
        If a removal targets a non-existent path
    ConfigTypeError
        If an operation is applied to the wrong type
    """
    return _load_config_recursive(cfg_path)


def load_config_str(config_str: str, root_dir: Optional[str] = None) -> Dict[str, Any]:
    """Load a configuration from a YAML string.

    Included files are resolved relative to `root_dir` (defaults to the
    current working directory).

    Parameters
    ----------
    config_str : str
        YAML configuration string
    root_dir : str, optional
        Directory used to resolve includes

    Returns
    -------
    Dict[str, Any]
        Loaded and merged configuration
    """
    root_dir = root_dir or os.getcwd()
    content = yaml.safe_load(config_str) or {}
    includes, overrides, removals, content = _extract_directives(content)

    config = {}
    for include_file in includes:
        include_path = resolve_config_path(include_file, root_dir)
        config = deep_merge(config, _load_config_recursive(include_path))

    config = deep_merge(config, content)

    return _apply_directives(config, overrides, removals)
