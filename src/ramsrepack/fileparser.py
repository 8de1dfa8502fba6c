#!/usr/bin/python3
########################################################################################
# fileparser.py - RAMS-Repack input-file parsing module.                               #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
fileparser.py - The input-file parsing module for RAMS-Repack.

Two files are parsed by RAMS-Repack:
    - the repack inputs file, a YAML file which contains the settings for the run, e.g.,
      the gzip level to compress to and how the RAMS job is being run;
    - the RAMSIN namelist file used by the RAMS run itself, from which the location of
      the analysis files being written is determined.

"""

import dataclasses
import os

from logging import Logger
from typing import Any, Dict, Optional, Tuple

from .__utils__ import (
    BColours,
    ExecutionType,
    InputFileError,
    MissingRamsinError,
    read_yaml,
)

__all__ = (
    "ANALYSIS_FILE_PREFIX_KEY",
    "DEFAULT_EXECUTABLES",
    "parse_analysis_file_prefix",
    "parse_repack_inputs",
    "REPACK_INPUTS_FILE",
    "RepackConfig",
    "split_analysis_file_prefix",
)


# Analysis file prefix key:
#   The RAMSIN key which gives the path prefix of the analysis files. Each RAMSIN
# parameter is preceeded by three spaces.
ANALYSIS_FILE_PREFIX_KEY: str = "   AFILEPREF"

# Default executables:
#   The names of the external executables called by RAMS-Repack.
DEFAULT_EXECUTABLES: Dict[str, str] = {
    "bjobs": "bjobs",
    "h5dump": "h5dump",
    "h5repack": "h5repack",
    "pidof": "pidof",
    "qstat": "qstat",
    "scp": "scp",
}

# Ramsin comment:
#   The character used to denote a comment within the RAMSIN file.
RAMSIN_COMMENT: str = "!"

# Repack inputs file:
#   The default name of the repack inputs file.
REPACK_INPUTS_FILE: str = "repack_inputs.yaml"

# Valid file types:
#   The types of HDF5 output file which can be repacked: A for analysis files and L for
# lite files.
VALID_FILE_TYPES: Tuple[str, ...] = ("A", "L")


@dataclasses.dataclass(frozen=True)
class RepackConfig:  # pylint: disable=too-many-instance-attributes
    """
    Represents the settings used for a repack run.

    .. attribute:: check_interval
        The time, in seconds, to wait between checks on the RAMS job.

    .. attribute:: copy_destination
        The remote destination, in `<user>@<host>:<path>` form, to which repacked files
        are copied, if copying is enabled.

    .. attribute:: copy_files
        Whether to copy repacked files to the remote destination (True) or not (False).

    .. attribute:: copy_jobname_prefix
        A prefix to strip from the job name before substituting it into the copy
        destination.

    .. attribute:: executables
        A mapping from tool name to the executable to call for that tool.

    .. attribute:: execution_type
        How the RAMS job is being run.

    .. attribute:: file_types
        The types of HDF5 file to repack, e.g., "A", "L" or "AL".

    .. attribute:: gzip_level
        The gzip level to compress files to.

    .. attribute:: header_age_wait_interval
        The time, in seconds, to wait between checks on whether a header file has been
        rewritten after its data file.

    .. attribute:: header_wait_interval
        The time, in seconds, to wait between checks on whether a header file exists.

    .. attribute:: ramsin
        The path to the RAMSIN file.

    .. attribute:: settle_delay
        The time, in seconds, to wait after a header file is ready before repacking.

    """

    check_interval: float = 5
    copy_destination: Optional[str] = None
    copy_files: bool = False
    copy_jobname_prefix: str = ""
    executables: Dict[str, str] = dataclasses.field(
        default_factory=lambda: dict(DEFAULT_EXECUTABLES)
    )
    execution_type: ExecutionType = ExecutionType.GRID_ENGINE
    file_types: str = "A"
    gzip_level: int = 6
    header_age_wait_interval: float = 2
    header_wait_interval: float = 1
    ramsin: str = "RAMSIN"
    settle_delay: float = 3

    @classmethod
    def from_dict(cls, input_data: Dict[str, Any], logger: Logger) -> Any:
        """
        Creates a :class:`RepackConfig` instance based on the inputs provided.

        Inputs:
            - input_data:
                The input information, extracted from the repack inputs file.
            - logger:
                The logger being used for the run.

        Outputs:
            - A :class:`RepackConfig` instance based on the input information provided.

        Raises:
            - InputFileError:
                Raised if any of the values in the inputs file are invalid.

        """

        unknown_keys = set(input_data) - {
            field.name for field in dataclasses.fields(cls)
        }
        if len(unknown_keys) > 0:
            logger.error(
                "%sUnknown keys in repack inputs file: %s%s",
                BColours.fail,
                ", ".join(sorted(unknown_keys)),
                BColours.endc,
            )
            raise InputFileError(
                "repack inputs", f"Unknown keys: {', '.join(sorted(unknown_keys))}."
            )

        # Parse the gzip level.
        gzip_level = input_data.get("gzip_level", cls.gzip_level)
        if isinstance(gzip_level, bool) or not isinstance(gzip_level, int):
            logger.error(
                "%sGzip level must be an integer.%s", BColours.fail, BColours.endc
            )
            raise InputFileError("repack inputs", "`gzip_level` must be an integer.")
        if not 1 <= gzip_level <= 9:
            logger.error(
                "%sGzip level must be between 1 and 9, not %s.%s",
                BColours.fail,
                gzip_level,
                BColours.endc,
            )
            raise InputFileError(
                "repack inputs", "`gzip_level` must be between 1 and 9."
            )

        # Parse the various time intervals.
        intervals: Dict[str, float] = {}
        for key in (
            "check_interval",
            "header_age_wait_interval",
            "header_wait_interval",
            "settle_delay",
        ):
            value = input_data.get(key, getattr(cls, key))
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                logger.error(
                    "%s`%s` must be a number of seconds.%s",
                    BColours.fail,
                    key,
                    BColours.endc,
                )
                raise InputFileError("repack inputs", f"`{key}` must be a number.")
            if value < 0 or (key == "check_interval" and value == 0):
                logger.error(
                    "%s`%s` cannot be %s.%s", BColours.fail, key, value, BColours.endc
                )
                raise InputFileError(
                    "repack inputs", f"`{key}` must be a positive number of seconds."
                )
            intervals[key] = float(value)

        # Parse the file types to repack.
        file_types = str(input_data.get("file_types", cls.file_types)).upper()
        if (
            len(file_types) == 0
            or any(entry not in VALID_FILE_TYPES for entry in file_types)
            or len(set(file_types)) != len(file_types)
        ):
            logger.error(
                "%sInvalid file types '%s'. Valid types are %s.%s",
                BColours.fail,
                file_types,
                ", ".join(["A", "L", "AL"]),
                BColours.endc,
            )
            raise InputFileError(
                "repack inputs", f"Invalid `file_types` '{file_types}'."
            )

        # Parse the execution type.
        try:
            execution_type = ExecutionType(
                input_data.get("execution_type", cls.execution_type.value)
            )
        except ValueError:
            logger.error(
                "%sInvalid execution type '%s'. Valid types are %s.%s",
                BColours.fail,
                input_data["execution_type"],
                ", ".join([str(e.value) for e in ExecutionType]),
                BColours.endc,
            )
            raise InputFileError(
                "repack inputs",
                f"Invalid `execution_type` '{input_data['execution_type']}'.",
            ) from None

        # Parse the remote-copy information.
        copy_files = input_data.get("copy_files", cls.copy_files)
        if not isinstance(copy_files, bool):
            logger.error(
                "%s`copy_files` must be `true` or `false`.%s",
                BColours.fail,
                BColours.endc,
            )
            raise InputFileError("repack inputs", "`copy_files` must be a boolean.")
        copy_destination: Optional[str] = input_data.get("copy_destination", None)
        if copy_files and not copy_destination:
            logger.error(
                "%sA copy destination must be specified if copying files.%s",
                BColours.fail,
                BColours.endc,
            )
            raise InputFileError(
                "repack inputs",
                "`copy_destination` must be given when `copy_files` is `true`.",
            )
        if copy_destination is not None:
            if not isinstance(copy_destination, str):
                logger.error(
                    "%s`copy_destination` must be a string, not %s.%s",
                    BColours.fail,
                    copy_destination,
                    BColours.endc,
                )
                raise InputFileError(
                    "repack inputs", "`copy_destination` must be a string."
                )
            # Only the job name can be substituted into the destination.
            try:
                copy_destination.format(jobname="")
            except (AttributeError, IndexError, KeyError, ValueError) as e:
                logger.error(
                    "%sInvalid copy destination '%s': %s%s",
                    BColours.fail,
                    copy_destination,
                    str(e),
                    BColours.endc,
                )
                raise InputFileError(
                    "repack inputs",
                    f"Invalid `copy_destination` '{copy_destination}', only "
                    "`{jobname}` may be substituted.",
                ) from None

        # Parse any executable overrides.
        executables_input = input_data.get("executables", {}) or {}
        if not isinstance(executables_input, dict) or any(
            key not in DEFAULT_EXECUTABLES for key in executables_input
        ):
            logger.error(
                "%sExecutables must be a mapping with keys from %s.%s",
                BColours.fail,
                ", ".join(DEFAULT_EXECUTABLES),
                BColours.endc,
            )
            raise InputFileError(
                "repack inputs", "Invalid `executables` mapping in repack inputs file."
            )
        executables = dict(DEFAULT_EXECUTABLES)
        executables.update(
            {key: str(value) for key, value in executables_input.items()}
        )

        return cls(
            check_interval=intervals["check_interval"],
            copy_destination=copy_destination,
            copy_files=copy_files,
            copy_jobname_prefix=str(
                input_data.get("copy_jobname_prefix", cls.copy_jobname_prefix)
            ),
            executables=executables,
            execution_type=execution_type,
            file_types=file_types,
            gzip_level=gzip_level,
            header_age_wait_interval=intervals["header_age_wait_interval"],
            header_wait_interval=intervals["header_wait_interval"],
            ramsin=str(input_data.get("ramsin", cls.ramsin)),
            settle_delay=intervals["settle_delay"],
        )

    def remote_destination(self, jobname: str) -> Optional[str]:
        """
        Determine the remote destination for copied files for the job specified.

        Inputs:
            - jobname:
                The name of the RAMS job.

        Outputs:
            - The remote destination, or `None` if files are not being copied.

        """

        if not self.copy_files or self.copy_destination is None:
            return None

        if self.copy_jobname_prefix and jobname.startswith(self.copy_jobname_prefix):
            jobname = jobname[len(self.copy_jobname_prefix) :]

        return self.copy_destination.format(jobname=jobname)


def parse_repack_inputs(
    logger: Logger, inputs_filepath: Optional[str] = None
) -> RepackConfig:
    """
    Parses the repack inputs file into a :class:`RepackConfig` instance.

    If no inputs file is specified and the default file is not present, the default
    settings are used.

    Inputs:
        - logger:
            The logger to use for the run.
        - inputs_filepath:
            The path to the repack inputs file, if specified on the command line.

    Outputs:
        - The :class:`RepackConfig` to use for the run.

    """

    if inputs_filepath is None:
        if not os.path.isfile(REPACK_INPUTS_FILE):
            logger.info(
                "No repack inputs file '%s' found, using default settings.",
                REPACK_INPUTS_FILE,
            )
            return RepackConfig()
        inputs_filepath = REPACK_INPUTS_FILE

    try:
        filedata = read_yaml(inputs_filepath, logger)
    except FileNotFoundError:
        logger.error(
            "%sRepack inputs file '%s' could not be found.%s",
            BColours.fail,
            inputs_filepath,
            BColours.endc,
        )
        raise InputFileError(
            "repack inputs", f"The file '{inputs_filepath}' does not exist."
        ) from None

    # An empty file denotes that the defaults should be used.
    if filedata is None:
        return RepackConfig()

    if not isinstance(filedata, dict):
        logger.error(
            "%sRepack inputs file '%s' was not of format `dict`.%s",
            BColours.fail,
            inputs_filepath,
            BColours.endc,
        )
        raise InputFileError(
            "repack inputs",
            f"The repack inputs file '{inputs_filepath}' was not of the format `dict`.",
        )

    logger.info("Repack inputs file '%s' successfully parsed.", inputs_filepath)
    return RepackConfig.from_dict(filedata, logger)


def parse_analysis_file_prefix(logger: Logger, ramsin_filepath: str) -> str:
    """
    Parses the RAMSIN file to determine the path prefix of the analysis files.

    The analysis-file prefix is given on a line of the form
        `   AFILEPREF   'z.test02/NOBAK/run'`
    with the value enclosed within single quotes.

    Inputs:
        - logger:
            The logger to use for the run.
        - ramsin_filepath:
            The path to the RAMSIN file.

    Outputs:
        - The analysis-file path prefix, e.g., `z.test02/NOBAK/run`.

    Raises:
        - MissingRamsinError:
            Raised if the RAMSIN file does not exist.
        - InputFileError:
            Raised if the RAMSIN file does not contain a valid analysis-file prefix.

    """

    if not os.path.isfile(ramsin_filepath):
        logger.error(
            "%sCannot find RAMSIN file '%s'.%s",
            BColours.fail,
            ramsin_filepath,
            BColours.endc,
        )
        raise MissingRamsinError(ramsin_filepath)

    logger.info("Looking in %s for analysis file path", ramsin_filepath)
    with open(ramsin_filepath, "r") as f:
        for line in f:
            if line.lstrip().startswith(RAMSIN_COMMENT):
                continue
            if ANALYSIS_FILE_PREFIX_KEY not in line:
                continue

            # The value sits between the first and last single quotes on the line.
            if line.count("'") < 2:
                logger.error(
                    "%sAnalysis file prefix in '%s' is not quoted: %s%s",
                    BColours.fail,
                    ramsin_filepath,
                    line.strip(),
                    BColours.endc,
                )
                raise InputFileError(
                    ramsin_filepath, "The analysis file prefix is not single-quoted."
                )
            prefix = line[line.index("'") + 1 : line.rindex("'")]
            logger.info("Analysis file prefix: %s", prefix)
            return prefix

    logger.error(
        "%sNo analysis file prefix found in '%s'.%s",
        BColours.fail,
        ramsin_filepath,
        BColours.endc,
    )
    raise InputFileError(
        ramsin_filepath, f"No {ANALYSIS_FILE_PREFIX_KEY.strip()} entry found."
    )


def split_analysis_file_prefix(prefix: str) -> Tuple[str, str]:
    """
    Splits an analysis-file prefix into the watched directory and the filename prefix.

    Inputs:
        - prefix:
            The analysis-file path prefix, e.g., `z.test02/NOBAK/run`.

    Outputs:
        - The directory in which the files are written, e.g., `z.test02/NOBAK/`,
        - The prefix of the filenames themselves, e.g., `run`.

    """

    directory, _, filename_prefix = prefix.rpartition("/")
    if directory == "" and not prefix.startswith("/"):
        return f"{os.curdir}/", filename_prefix

    return f"{directory}/", filename_prefix
