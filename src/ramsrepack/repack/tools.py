#!/usr/bin/python3
########################################################################################
# tools.py - Wrappers around the external HDF5 and copy tools.                         #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
tools.py - The external-tools module for RAMS-Repack.

RAMS-Repack does no compression itself. Instead, it calls out to:
    - `h5dump`, to inspect the filters applied to the datasets within a file;
    - `h5repack`, to rewrite a file with the shuffle and gzip filters applied;
    - `scp`, to copy repacked files to a remote machine.

"""

import os
import shutil

from logging import Logger
from typing import Iterable, List

from ..__utils__ import (
    BColours,
    MissingToolError,
    RemoteCopyError,
    RepackToolError,
    run_command,
)
from ..fileparser import RepackConfig
from .candidates import CandidateFile

__all__ = (
    "check_executables",
    "copy_to_remote",
    "is_compressed",
    "repack_command",
    "repack_file",
)


# Compression level marker:
#   The text, within h5dump's header output, which denotes the gzip level of a dataset.
COMPRESSION_LEVEL_MARKER: str = "LEVEL {level}"


def check_executables(logger: Logger, executables: Iterable[str]) -> None:
    """
    Checks that the executables required for the run are available.

    Inputs:
        - logger:
            The logger to use for the run.
        - executables:
            The executables to check.

    Raises:
        - MissingToolError:
            Raised if an executable cannot be found.

    """

    for executable in executables:
        if shutil.which(executable) is None:
            logger.error(
                "%sExecutable '%s' is not available.%s",
                BColours.fail,
                executable,
                BColours.endc,
            )
            raise MissingToolError(executable)
        logger.debug("Executable '%s' found.", executable)


def is_compressed(
    logger: Logger, candidate: CandidateFile, config: RepackConfig
) -> bool:
    """
    Returns whether the file has already been compressed to the desired gzip level.

    The header information of the file is dumped with `h5dump -Hp` and searched,
    case-insensitively, for the gzip level. If h5dump cannot read the file, e.g., as it
    is still being written, the file is treated as not being compressed.

    Inputs:
        - logger:
            The logger to use for the run.
        - candidate:
            The file to check.
        - config:
            The :class:`RepackConfig` for the run.

    Outputs:
        - Whether the file is compressed to the desired level.

    """

    completed_process = run_command(
        logger, [config.executables["h5dump"], "-Hp", candidate.path]
    )
    if completed_process.returncode != 0:
        logger.debug(
            "h5dump could not read %s: %s", candidate, completed_process.stderr.strip()
        )

    marker = COMPRESSION_LEVEL_MARKER.format(level=config.gzip_level).lower()
    return any(
        marker in line.lower() for line in completed_process.stdout.splitlines()
    )


def repack_command(candidate: CandidateFile, config: RepackConfig) -> List[str]:
    """
    Returns the h5repack command for repacking the file.

    Inputs:
        - candidate:
            The file to repack.
        - config:
            The :class:`RepackConfig` for the run.

    Outputs:
        - The command, as a `list` of arguments.

    """

    return [
        config.executables["h5repack"],
        "-f",
        "SHUF",
        "-f",
        f"GZIP={config.gzip_level}",
        candidate.path,
        candidate.temp_path,
    ]


def repack_file(logger: Logger, candidate: CandidateFile, config: RepackConfig) -> None:
    """
    Repacks the file in place.

    h5repack writes its output to a temporary file alongside the original. Only once
    h5repack has succeeded is the original replaced.

    Inputs:
        - logger:
            The logger to use for the run.
        - candidate:
            The file to repack.
        - config:
            The :class:`RepackConfig` for the run.

    Raises:
        - RepackToolError:
            Raised if h5repack fails, in which case the original file is untouched.

    """

    command = repack_command(candidate, config)
    logger.info("Running: %s", " ".join(command))
    completed_process = run_command(logger, command)

    if completed_process.returncode != 0:
        logger.error(
            "%sh5repack failed for %s with exit code %s.%s",
            BColours.fail,
            candidate,
            completed_process.returncode,
            BColours.endc,
        )
        # Remove any partial output so that the file is not skipped on the next pass.
        if os.path.exists(candidate.temp_path):
            os.remove(candidate.temp_path)
        raise RepackToolError(
            command, completed_process.returncode, completed_process.stderr
        )

    os.replace(candidate.temp_path, candidate.path)
    logger.info("%s replaced with its repacked version.", candidate)


def copy_to_remote(
    logger: Logger, candidate: CandidateFile, config: RepackConfig, destination: str
) -> None:
    """
    Copies the file, and its header file, to the remote destination.

    Inputs:
        - logger:
            The logger to use for the run.
        - candidate:
            The file to copy.
        - config:
            The :class:`RepackConfig` for the run.
        - destination:
            The remote destination, in `<user>@<host>:<path>` form.

    Raises:
        - RemoteCopyError:
            Raised if either of the files could not be copied.

    """

    for filepath in (candidate.path, candidate.header_path):
        command = [config.executables["scp"], filepath, destination]
        completed_process = run_command(logger, command)
        if completed_process.returncode != 0:
            raise RemoteCopyError(
                command, completed_process.returncode, completed_process.stderr
            )

    logger.info("%s and %s copied to %s", candidate, candidate.header_path, destination)
