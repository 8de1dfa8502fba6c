#!/usr/bin/python3
########################################################################################
# __main__.py - Main module for RAMS-Repack.                                           #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
__main__.py - The main module for RAMS-Repack.

RAMS-Repack repacks the HDF5 files written by a distributed-memory RAMS run, either
whilst the run is taking place or after it has finished. Because parallel HDF5 does not
support compression whilst writing, RAMS-Repack takes its place to conserve disk space.

Whilst RAMS is running, RAMS-Repack looks in the RAMSIN file to find where the files are
being written. It then checks for new files every few seconds, waits until each new file
has been written, and uses h5repack to repack it. Once the RAMS job has finished and all
of its HDF5 files have been repacked, RAMS-Repack terminates.

"""

__version__ = "1.0.0"

import math
import os
import signal
import sys
import threading

from contextlib import contextmanager
from logging import Logger
from typing import Any, Iterator, List, Optional

from . import argparser
from .__utils__ import (
    BColours,
    DONE,
    FAILED,
    NoCandidateFilesError,
    ShutdownRequested,
    UsageError,
    Waiter,
    get_logger,
)
from .fileparser import (
    parse_analysis_file_prefix,
    parse_repack_inputs,
    split_analysis_file_prefix,
)
from .liveness.liveness import get_liveness_check
from .repack.candidates import count_candidate_files
from .repack.repack import run_live, run_post_hoc
from .repack.tools import check_executables

__all__ = ("main",)


# Logger name:
#   The name to use for the main logger for RAMS-Repack.
LOGGER_NAME: str = "ramsrepack"

# Ramsrepack header string:
#   The ascii text to display when starting RAMS-Repack.
RAMSREPACK_HEADER_STRING = """
{okblue}
    ____  ___    __  ________       ____                        __
   / __ \\/   |  /  |/  / ___/      / __ \\___  ____  ____ ______/ /__
  / /_/ / /| | / /|_/ /\\__ \\______/ /_/ / _ \\/ __ \\/ __ `/ ___/ //_/
 / _, _/ ___ |/ /  / /___/ /_____/ _, _/  __/ /_/ / /_/ / /__/ ,<
/_/ |_/_/  |_/_/  /_//____/     /_/ |_|\\___/ .___/\\__,_/\\___/_/|_|
                                          /_/
{endc}
         Repacking of the HDF5 output of distributed-memory RAMS runs
{version_line}
"""

# Signals:
#   The signals upon which RAMS-Repack shuts down cleanly.
SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@contextmanager
def _shutdown_on_signals(logger: Logger, waiter: Waiter) -> Iterator[None]:
    """
    Cancels any waits on SIGINT or SIGTERM for the duration of the context.

    Signal handlers can only be installed from the main thread; elsewhere, the context
    does nothing.

    Inputs:
        - logger:
            The logger to use for the run.
        - waiter:
            The :class:`Waiter` to cancel when a signal is received.

    """

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, _: Any) -> None:
        logger.warning(
            "%sSignal %s received, shutting down.%s",
            BColours.warning,
            signal.Signals(signum).name,
            BColours.endc,
        )
        waiter.cancel()

    previous_handlers = {
        signum: signal.signal(signum, _handler) for signum in SHUTDOWN_SIGNALS
    }
    try:
        yield
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)


def main(  # pylint: disable=too-many-locals, too-many-statements
    args: List[Any], disable_tqdm: bool = False, waiter: Optional[Waiter] = None
) -> None:
    """
    The main module for RAMS-Repack executing all functionality as appropriate.

    Inputs:
        - args
            The command-line arguments, passed in as a list.
        - disable_tqdm:
            Whether to disable the tqdm progress bars (True) or display them (False).
        - waiter:
            The :class:`Waiter` through which to sleep, a new one is used if not
            specified.

    """

    # Parse the command-line arguments and instantiate the logger.
    parsed_args = argparser.parse_args(args)
    logger = get_logger(
        (
            f"{os.path.basename(parsed_args.jobname)}_{LOGGER_NAME}"
            if parsed_args.jobname
            else LOGGER_NAME
        ),
        parsed_args.verbose,
    )
    logger.info("RAMS-Repack run initiated. Options specified: %s", " ".join(args))

    if not argparser.validate_args(logger, parsed_args):
        argparser.get_parser().print_help()
        raise UsageError("a job name, or dummy argument, must be specified.")

    logger.info("Command-line arguments successfully validated.")

    version_string = f"Version {__version__}"
    print(
        RAMSREPACK_HEADER_STRING.format(
            okblue=BColours.okblue,
            endc=BColours.endc,
            version_line=(
                " " * (40 - math.ceil(len(version_string) / 2))
                + version_string
                + " " * (40 - math.floor(len(version_string) / 2))
            ),
        )
    )

    # Parse the repack inputs.
    print("Parsing repack inputs .......................................    ", end="")
    try:
        config = parse_repack_inputs(logger, parsed_args.config)
    except Exception:
        print(FAILED)
        raise
    print(DONE)
    logger.info("Repack inputs: %s", config)

    if waiter is None:
        waiter = Waiter()
    remote_destination = config.remote_destination(parsed_args.jobname)
    if remote_destination is not None:
        logger.info("Repacked files will be copied to %s", remote_destination)
        print(f"copydir: {remote_destination}")

    required_executables: List[str] = [
        config.executables["h5dump"],
        config.executables["h5repack"],
    ]
    if remote_destination is not None:
        required_executables.append(config.executables["scp"])

    with _shutdown_on_signals(logger, waiter):
        try:
            # Post-hoc mode: the run has finished and the directory was given.
            if parsed_args.directory is not None:
                if count_candidate_files(parsed_args.directory, config.file_types) == 0:
                    logger.error(
                        "%sNo Analysis or Lite files in %s!%s",
                        BColours.fail,
                        parsed_args.directory,
                        BColours.endc,
                    )
                    raise NoCandidateFilesError(parsed_args.directory)

                check_executables(logger, required_executables)
                run_post_hoc(
                    logger,
                    config,
                    parsed_args.directory,
                    waiter,
                    remote_destination=remote_destination,
                    disable_tqdm=disable_tqdm,
                )
                return

            # Live mode: determine the output location from the RAMSIN file.
            print(f"Looking in {config.ramsin} for analysis file path")
            analysis_file_prefix = parse_analysis_file_prefix(logger, config.ramsin)
            directory, filename_prefix = split_analysis_file_prefix(
                analysis_file_prefix
            )
            liveness_check = get_liveness_check(config, parsed_args.jobname, logger)
            check_executables(
                logger, required_executables + [liveness_check.executable]
            )

            run_live(
                logger,
                config,
                directory,
                liveness_check,
                waiter,
                filename_prefix=filename_prefix,
                remote_destination=remote_destination,
                disable_tqdm=disable_tqdm,
            )
        except ShutdownRequested:
            logger.warning(
                "%sShutdown requested, RAMS-Repack is terminating early.%s",
                BColours.warning,
                BColours.endc,
            )
            print("Shutdown requested, RAMS-Repack is terminating early.")


if __name__ == "__main__":
    main(sys.argv[1:])
