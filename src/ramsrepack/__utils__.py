#!/usr/bin/python3
########################################################################################
# __utils__.py - RAMS-Repack Utility module.                                           #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
__utils__.py - Utility module for RAMS-Repack.

The utility module contains functionality which is used by various modules and
components across RAMS-Repack, as well as commonly-held variables to prevent dependency
issues and increase the ease of code alterations.

"""

import dataclasses
import enum
import logging
import os
import subprocess
import threading

from typing import Any, Dict, List, Union

import yaml  # pylint: disable=import-error

__all__ = (
    "BColours",
    "DONE",
    "ExecutionType",
    "ExternalToolError",
    "FAILED",
    "get_logger",
    "InputFileError",
    "InternalError",
    "LOGGER_DIRECTORY",
    "MissingRamsinError",
    "MissingToolError",
    "NoCandidateFilesError",
    "PACKAGE_NAME",
    "PreconditionError",
    "read_yaml",
    "RemoteCopyError",
    "RepackToolError",
    "run_command",
    "ShutdownRequested",
    "SKIPPING",
    "UsageError",
    "Waiter",
)


# Done message:
#   The message to display when a task was successful.
DONE: str = "[   DONE   ]"

# Failed message:
#   The message to display when a task has failed.
FAILED: str = "[  FAILED  ]"

# Logger directory:
#   The directory in which to save logs.
LOGGER_DIRECTORY: str = "logs"

# Package name:
#   The name of the package.
PACKAGE_NAME: str = "ramsrepack"

# Skipping:
#   String used to denote that a file has been skipped.
SKIPPING: str = "[ SKIPPING ]"


@dataclasses.dataclass
class BColours:
    """
    Contains various colours used for pretty-printing out to the command-line on stdout.

    - FAIL:
        Used for a failure message.

    - WARNING, OKBLUE:
        Various colours used.

    - ENDC:
        Used to reset the colour of the terminal output.

    - BOLD, UNDERLINE:
        Used to format the text.

    """

    fail = "\033[91m"
    warning = "\033[93m"
    okblue = "\033[94m"
    endc = "\033[0m"
    bolc = "\033[1m"
    underline = "\033[4m"


class ExecutionType(enum.Enum):
    """
    Denotes how the RAMS job which is producing the output files is being run.

    - STANDARD:
        RAMS is run directly, e.g., with a call to `mpirun`, on the current machine.

    - LSF:
        RAMS is run as a job submitted to the LSF batch scheduler.

    - GRID_ENGINE:
        RAMS is run as a job submitted to the Grid Engine scheduler.

    """

    STANDARD = "standard"
    LSF = "lsf"
    GRID_ENGINE = "grid_engine"


def get_logger(logger_name: str, verbose: bool = False) -> logging.Logger:
    """
    Set-up and return a logger.

    Inputs:
        - logger_name:
            The name for the logger, which is also used to denote the filename with a
            "<logger_name>.log" format.
        - verbose:
            Whether the log level should be verbose (True) or standard (False).

    Outputs:
        - The logger for the component.

    """

    # Create a logger and logging directory.
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    os.makedirs(LOGGER_DIRECTORY, exist_ok=True)

    # Create a formatter.
    formatter = logging.Formatter(
        "%(asctime)s: %(name)s: %(levelname)s: %(message)s",
        datefmt="%d/%m/%Y %I:%M:%S %p",
    )

    # Create a console handler.
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)

    # Delete the existing log if there is one already.
    if os.path.isfile(os.path.join(LOGGER_DIRECTORY, f"{logger_name}.log")):
        os.remove(os.path.join(LOGGER_DIRECTORY, f"{logger_name}.log"))

    # Create a file handler.
    file_handler = logging.FileHandler(
        os.path.join(LOGGER_DIRECTORY, f"{logger_name}.log")
    )
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(formatter)

    # Add the handlers to the logger.
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return logger


class PreconditionError(Exception):
    """
    Raised when a precondition for running RAMS-Repack is not met.

    Precondition errors are fatal: the run stops before any file is touched.

    """


class UsageError(PreconditionError):
    """Raised when the command-line arguments are missing or invalid."""

    def __init__(self, msg: str) -> None:
        """
        Instantiate a :class:`UsageError` instance.

        Inputs:
            - msg:
                The message to append.

        """

        super().__init__(f"Invalid usage: {msg}")


class InputFileError(PreconditionError):
    """Raised when there is an error in an input file."""

    def __init__(self, input_file: str, msg: str) -> None:
        """
        Instantiate a :class:`InputFileError` instance.

        Inputs:
            - input_file:
                The name of the input file which contained the invalid data.
            - msg:
                The error message to append.

        """

        super().__init__(
            f"Error parsing input file '{input_file}', invalid data in file: {msg}"
        )


class MissingRamsinError(PreconditionError):
    """Raised when the RAMSIN file cannot be found in live mode."""

    def __init__(self, ramsin_filepath: str) -> None:
        """
        Instantiate a :class:`MissingRamsinError` instance.

        Inputs:
            - ramsin_filepath:
                The path to the RAMSIN file which could not be found.

        """

        super().__init__(f"Cannot find RAMSIN file '{ramsin_filepath}'.")
        self.ramsin_filepath = ramsin_filepath


class NoCandidateFilesError(PreconditionError):
    """Raised when a finished run's directory holds no analysis or lite files."""

    def __init__(self, directory: str) -> None:
        """
        Instantiate a :class:`NoCandidateFilesError` instance.

        Inputs:
            - directory:
                The directory which was searched.

        """

        super().__init__(f"No Analysis or Lite files in {directory}!")
        self.directory = directory


class MissingToolError(PreconditionError):
    """Raised when an external executable is not available on the `PATH`."""

    def __init__(self, executable: str) -> None:
        """
        Instantiate a :class:`MissingToolError` instance.

        Inputs:
            - executable:
                The name of the executable which could not be found.

        """

        super().__init__(
            f"The external executable '{executable}' could not be found. Check that "
            "the relevant module is loaded and that the executable is on your PATH."
        )
        self.executable = executable


class ExternalToolError(Exception):
    """
    Raised when an external tool fails on a single file.

    These errors are recoverable: the file is left as it was and is reattempted on the
    next repack pass.

    """

    def __init__(self, command: List[str], returncode: int, stderr: str) -> None:
        """
        Instantiate a :class:`ExternalToolError` instance.

        Inputs:
            - command:
                The command which was run.
            - returncode:
                The exit code of the command.
            - stderr:
                The standard-error output of the command.

        """

        super().__init__(
            f"Command '{' '.join(command)}' failed with exit code {returncode}: "
            f"{stderr.strip()}"
        )
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class RepackToolError(ExternalToolError):
    """Raised when h5repack fails to repack a file."""


class RemoteCopyError(ExternalToolError):
    """Raised when a file could not be copied to the remote destination."""


class InternalError(Exception):
    """Raised when an internal error occurs in RAMS-Repack."""

    def __init__(self, msg: str) -> None:
        """
        Instantiate a :class:`InternalError` instance.

        Inputs:
            - msg:
                The message to append to the internal error.

        """

        super().__init__(f"An error occured internally within RAMS-Repack: {msg}")


class ShutdownRequested(Exception):
    """Raised when a wait is interrupted because a shutdown has been requested."""

    def __init__(self) -> None:
        """Instantiate a :class:`ShutdownRequested` instance."""

        super().__init__("Shutdown requested, stopping RAMS-Repack.")


def read_yaml(
    filepath: str, logger: logging.Logger
) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
    """
    Reads a YAML file and returns the contents.

    Inputs:
        - filepath:
            The path to the YAML file.
        - logger:
            The logger to use for the run.

    Outputs:
        - The parsed contents of the file.

    """

    try:
        with open(filepath, "r") as filedata:
            file_contents: Union[Dict[str, Any], List[Dict[str, Any]]] = yaml.safe_load(
                filedata
            )
    except FileNotFoundError:
        logger.error(
            "The file specified, %s, could not be found. "
            "Ensure that you run RAMS-Repack from the run directory.",
            filepath,
        )
        raise
    return file_contents


class Waiter:
    """
    Performs the timed waits of the repack loop and allows them to be interrupted.

    All of the sleeps carried out whilst watching a run go through a single
    :class:`Waiter` so that a signal handler can stop the loop cleanly by calling
    :meth:`cancel`.

    """

    def __init__(self) -> None:
        """Instantiate a :class:`Waiter` instance."""

        self._shutdown = threading.Event()

    @property
    def cancelled(self) -> bool:
        """Whether a shutdown has been requested."""

        return self._shutdown.is_set()

    def cancel(self) -> None:
        """Request a shutdown, waking any wait currently in progress."""

        self._shutdown.set()

    def wait(self, seconds: float) -> None:
        """
        Wait for the number of seconds specified.

        Inputs:
            - seconds:
                The number of seconds to wait.

        Raises:
            - ShutdownRequested:
                Raised if a shutdown is requested before or during the wait.

        """

        if self._shutdown.wait(seconds):
            raise ShutdownRequested()


def run_command(
    logger: logging.Logger, command: List[str]
) -> subprocess.CompletedProcess:
    """
    Runs an external command, capturing its output.

    Inputs:
        - logger:
            The logger to use for the run.
        - command:
            The command to run, as a `list` of arguments.

    Outputs:
        - The completed process, with its standard output and error as `str`.

    Raises:
        - MissingToolError:
            Raised if the executable does not exist.

    """

    logger.debug("Running command: %s", " ".join(command))
    try:
        completed_process = subprocess.run(
            command, capture_output=True, check=False, errors="replace", text=True
        )
    except FileNotFoundError:
        logger.error(
            "%sExecutable '%s' could not be found.%s",
            BColours.fail,
            command[0],
            BColours.endc,
        )
        raise MissingToolError(command[0]) from None

    logger.debug(
        "Command '%s' exited with code %s.",
        " ".join(command),
        completed_process.returncode,
    )
    return completed_process
