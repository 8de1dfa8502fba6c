#!/usr/bin/python3
########################################################################################
# argparser.py - Argument-parsing code for RAMS-Repack.                                #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
argparser.py - The argument-parsing module for RAMS-Repack.

"""

import argparse
import logging

from typing import Any, List

from .__utils__ import BColours

__all__ = (
    "get_parser",
    "parse_args",
    "USAGE_EPILOG",
    "validate_args",
)


# Usage epilog:
#   Examples of how to run RAMS-Repack, displayed with the help text.
USAGE_EPILOG: str = """
examples:
  ramsrepack rams-6.1.18_dm &> repack.out &         # for a standard run
  ramsrepack myLSFjob &> repack.out &               # for an LSF run
  ramsrepack dummy z.test01/NOBAK/ &> repack.out &  # for a run that's already done

Make sure that the `execution_type` in the repack inputs file is set correctly.

exit codes:
  0  finished, stopped by SIGINT/SIGTERM, or help shown
  1  RAMS-Repack could not start, e.g., no job name, RAMSIN or files to repack
  2  invalid command-line options
"""


def get_parser() -> argparse.ArgumentParser:
    """
    Returns the :class:`argparse.ArgumentParser` for RAMS-Repack.

    """

    parser = argparse.ArgumentParser(
        prog="ramsrepack",
        description="Repack the HDF5 output of a distributed-memory RAMS run, either "
        "whilst the run is taking place or once it has finished.",
        epilog=USAGE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Jobname:
    #   The RAMS executable name or scheduler job name.
    parser.add_argument(
        "jobname",
        nargs="?",
        default=None,
        type=str,
        help="[MANDATORY] If using the standard execution type, the RAMS executable "
        "name, e.g., rams-6.1.15. If using LSF or Grid Engine, the name of the job. "
        "If a directory is given, this is not used but a dummy argument is still "
        "required.",
    )

    # Directory:
    #   The output directory of a run which has already finished.
    parser.add_argument(
        "directory",
        nargs="?",
        default=None,
        type=str,
        help="[OPTIONAL] If RAMS has already finished, the directory where the output "
        "is located. All RAMS HDF5 files in this directory will be repacked.",
    )

    # Config:
    #   The path to the repack inputs file.
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        type=str,
        help="The path to the repack inputs file. Defaults to `repack_inputs.yaml` in "
        "the current directory, if present.",
    )

    # Verbose:
    #   Used for generating verbose logs for debugging.
    parser.add_argument(
        "--verbose", "-v", action="store_true", default=False, help=argparse.SUPPRESS
    )

    return parser


def parse_args(args: List[Any]) -> argparse.Namespace:
    """
    Parses command-line arguments into a :class:`argparse.NameSpace`.

    Inputs:
        - args:
            The unparsed command-line arguments.

    Outputs:
        - The parsed command-line arguments.

    """

    return get_parser().parse_args(args)


def validate_args(logger: logging.Logger, parsed_args: argparse.Namespace) -> bool:
    """
    Validates the command-line arguments.

    Inputs:
        - logger:
            The logger to use for the run.
        - parsed_args:
            The parsed command-line arguments.

    Outputs:
        - A `bool` giving whether the arguments are valid (True) or not (False).

    """

    if parsed_args.jobname is None or parsed_args.jobname.strip() == "":
        logger.error(
            "%sThe job name must be specified, even if only a dummy value.%s",
            BColours.fail,
            BColours.endc,
        )
        return False

    if parsed_args.directory is not None and parsed_args.directory.strip() == "":
        logger.error(
            "%sAn empty directory cannot be specified.%s", BColours.fail, BColours.endc
        )
        return False

    return True
