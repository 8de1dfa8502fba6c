#!/usr/bin/env python
########################################################################################
# ramsrepack.py - Primary entry point for the RAMS-Repack package.                     #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
ramsrepack.py - Primary entry point for the RAMS-Repack package.

RAMS-Repack repacks the HDF5 output of distributed-memory RAMS runs. In order to run it
as an installed piece of software, this wrapper provides an entry point for the code
once installed. Runs which cannot start, e.g., because the RAMSIN file is missing, exit
with a non-zero exit code.

"""

import sys

from ..__main__ import main as ramsrepack_main
from ..__utils__ import BColours, PreconditionError

__all__ = ("main",)


# Precondition exit code:
#   The exit code used when RAMS-Repack cannot start.
PRECONDITION_EXIT_CODE: int = 1


def main() -> None:
    """
    Main function of the RAMS-Repack entry-point script.

    """

    try:
        ramsrepack_main(sys.argv[1:])
    except PreconditionError as e:
        print(f"{BColours.fail}{str(e)}{BColours.endc}")
        print("Run `ramsrepack --help` for more information.")
        sys.exit(PRECONDITION_EXIT_CODE)
