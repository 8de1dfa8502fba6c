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
The repack module"""

from .candidates import (
    CandidateFile,
    count_candidate_files,
    HEADER_SUFFIX,
    list_candidate_files,
    TEMP_SUFFIX,
)
from .repack import (
    RepackOutcome,
    repack_candidate,
    repack_pass,
    run_live,
    run_post_hoc,
    wait_for_header,
)
from .tools import (
    check_executables,
    copy_to_remote,
    is_compressed,
    repack_command,
    repack_file,
)
