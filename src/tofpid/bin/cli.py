#!/usr/bin/env python3
"""Command-line entry point of the TOF PID processing."""

import argparse
import os
import pathlib
from typing import List

from tofpid.config import load_config, parse_value, set_nested_value
from tofpid.config.loader import resolve_config_path
from tofpid.version import __version__


def main(
    config: str,
    source: List[str],
    source_list: str,
    output: str,
    n: int,
    nskip: int,
    config_overrides: List[str],
):
    """Main driver for the TOF particle identification.

    Performs these basic functions:
    - Update the configuration with the command-line arguments
    - Run the driver over the requested entries

    Parameters
    ----------
    config : str
        Path to the configuration file
    source : List[str]
        List of paths to the input files
    source_list : str
        Path to a text file containing a list of data file paths
    output : str
        Path to the output file
    n : int
        Number of iterations to run
    nskip : int
        Number of iterations to skip
    config_overrides : List[str]
        List of config overrides in the form "key.path=value"
    """
    # Find and load the configuration file
    cfg_file = resolve_config_path(config, current_dir=os.getcwd())
    cfg = load_config(cfg_file)

    # If there is no base block, build one
    if "base" not in cfg:
        cfg["base"] = {}

    # Propagate the configuration parent directory to enable relative paths
    cfg["base"]["parent_path"] = str(pathlib.Path(cfg_file).parent)

    # The configuration must minimally contain an IO block with a reader
    if "io" not in cfg or cfg["io"].get("reader") is None:
        raise KeyError("Configuration file must contain an `io.reader` block.")

    # Override the input command-line information into the configuration
    io_mapping = {
        "file_keys": source if source is not None else source_list,
        "n_entry": n,
        "n_skip": nskip,
    }
    for io_key, io_value in io_mapping.items():
        if io_value is not None:
            cfg["io"]["reader"][io_key] = io_value

    # Override the output path if provided
    if output is not None:
        writer = cfg["io"].get("writer") or {"name": "hdf5"}
        writer["file_name"] = output
        cfg["io"]["writer"] = writer

    # Apply any generic config overrides from --set arguments
    for override in config_overrides or []:
        if "=" not in override:
            raise ValueError(
                f"Invalid --set format: '{override}'. "
                f"Expected format: 'key.path=value'"
            )

        key_path, value_str = override.split("=", 1)
        set_nested_value(cfg, key_path.strip(), parse_value(value_str.strip()))

    # Run the driver
    from tofpid.driver import Driver

    driver = Driver(cfg)
    driver.run()


def cli():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="tofpid - TOF particle identification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tofpid -c config.yaml                                   Process the configured input
  tofpid -c config.yaml -s data.h5 -o pid.h5              Override input and output
  tofpid -c config.yaml --set pid.event_time.max_momentum=1.5
""",
    )

    parser.add_argument(
        "--version", "-v", action="version", version=f"tofpid {__version__}"
    )

    parser.add_argument(
        "-c", "--config", required=True, help="Path to the configuration file"
    )

    # Add mutually exclusive group for source input
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-s", "--source", nargs="+", type=str, help="List of paths to the input files"
    )
    group.add_argument(
        "-S",
        "--source-list",
        help="Path to a text file containing a list of data file paths",
    )

    parser.add_argument("-o", "--output", help="Path to the output file")

    parser.add_argument(
        "-n", "--iterations", type=int, help="Number of iterations to run"
    )

    parser.add_argument("--nskip", type=int, help="Number of iterations to skip")

    parser.add_argument(
        "--set",
        action="append",
        dest="config_overrides",
        metavar="KEY=VALUE",
        help="Override any config parameter using dot notation "
        "(e.g., --set calib.reconstruction_pass=apass4). "
        "Can be used multiple times for multiple overrides.",
    )

    args = parser.parse_args()

    main(
        config=args.config,
        source=args.source,
        source_list=args.source_list,
        output=args.output,
        n=args.iterations,
        nskip=args.nskip,
        config_overrides=args.config_overrides,
    )


if __name__ == "__main__":
    cli()
