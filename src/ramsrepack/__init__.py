#!/usr/bin/python3
########################################################################################
# __init__.py - Python internals module, used to expose code here.                     #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
The internals module"""

from .__main__ import __version__, main
from .__utils__ import (
    BColours,
    DONE,
    ExecutionType,
    ExternalToolError,
    FAILED,
    get_logger,
    InputFileError,
    InternalError,
    LOGGER_DIRECTORY,
    MissingRamsinError,
    MissingToolError,
    NoCandidateFilesError,
    PACKAGE_NAME,
    PreconditionError,
    read_yaml,
    RemoteCopyError,
    RepackToolError,
    run_command,
    ShutdownRequested,
    SKIPPING,
    UsageError,
    Waiter,
)
from .argparser import parse_args, validate_args
from .fileparser import (
    parse_analysis_file_prefix,
    parse_repack_inputs,
    REPACK_INPUTS_FILE,
    RepackConfig,
    split_analysis_file_prefix,
)
