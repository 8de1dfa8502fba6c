#!/usr/bin/python3
########################################################################################
# candidates.py - Discovery of the HDF5 files to be repacked.                          #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
candidates.py - The candidate-file module for RAMS-Repack.

RAMS writes its HDF5 output as `<prefix>-A-<time>-g<grid>.h5` (analysis files) and
`<prefix>-L-<time>-g<grid>.h5` (lite files). Once an HDF5 file has been written in
full, RAMS writes a companion header file, `<prefix>-A-<time>-head.txt`, alongside it.
This module finds the HDF5 files which are candidates for repacking.

"""

import dataclasses
import glob
import os

from typing import List

__all__ = (
    "CandidateFile",
    "candidate_pattern",
    "count_candidate_files",
    "HEADER_SUFFIX",
    "list_candidate_files",
    "TEMP_SUFFIX",
)


# Header suffix:
#   The suffix which replaces the last characters of an HDF5 filename to give the name
# of its header file.
HEADER_SUFFIX: str = "head.txt"

# Header suffix offset:
#   The number of characters, `g<grid>.h5`, removed from the end of an HDF5 filename
# before adding the header suffix.
HEADER_SUFFIX_OFFSET: int = 5

# Temp suffix:
#   The suffix used for the output of h5repack whilst a file is being repacked.
TEMP_SUFFIX: str = ".temp"


@dataclasses.dataclass(frozen=True)
class CandidateFile:
    """
    Represents an HDF5 output file which may need repacking.

    .. attribute:: path
        The path to the HDF5 file.

    """

    path: str

    def __str__(self) -> str:
        return self.path

    @property
    def header_path(self) -> str:
        """The path to the companion header file."""

        return self.path[: len(self.path) - HEADER_SUFFIX_OFFSET] + HEADER_SUFFIX

    @property
    def temp_path(self) -> str:
        """The path to which h5repack writes its output."""

        return f"{self.path}{TEMP_SUFFIX}"

    @property
    def mtime(self) -> float:
        """The last-modification time of the HDF5 file."""

        return os.path.getmtime(self.path)

    def header_exists(self) -> bool:
        """Returns whether the header file has been written."""

        return os.path.isfile(self.header_path)

    def header_is_stale(self) -> bool:
        """
        Returns whether the header file is older than the HDF5 file.

        A stale header belongs to an earlier write of a file of the same name, and so
        does not signal that the current write has finished.

        Outputs:
            - Whether the header file is strictly older than the HDF5 file.

        """

        return os.path.getmtime(self.header_path) < self.mtime

    def repack_in_progress(self) -> bool:
        """Returns whether h5repack output for this file already exists."""

        return os.path.exists(self.temp_path)


def candidate_pattern(
    directory: str, file_types: str, filename_prefix: str = ""
) -> str:
    """
    Returns the glob pattern matching the candidate files.

    Inputs:
        - directory:
            The directory in which the HDF5 files are written.
        - file_types:
            The types of file to match, e.g., "A", "L" or "AL".
        - filename_prefix:
            The prefix of the HDF5 filenames, if known.

    Outputs:
        - The glob pattern.

    """

    return os.path.join(
        directory, f"{glob.escape(filename_prefix)}*-[{file_types}]-*.h5"
    )


def list_candidate_files(
    directory: str, file_types: str, filename_prefix: str = ""
) -> List[CandidateFile]:
    """
    Lists the HDF5 files in the directory which are candidates for repacking.

    Inputs:
        - directory:
            The directory in which the HDF5 files are written.
        - file_types:
            The types of file to match, e.g., "A", "L" or "AL".
        - filename_prefix:
            The prefix of the HDF5 filenames, if known.

    Outputs:
        - The candidate files, sorted by path.

    """

    return [
        CandidateFile(path)
        for path in sorted(
            glob.glob(candidate_pattern(directory, file_types, filename_prefix))
        )
        if os.path.isfile(path)
    ]


def count_candidate_files(
    directory: str, file_types: str, filename_prefix: str = ""
) -> int:
    """
    Counts the candidate files currently present in the directory.

    Inputs:
        - directory:
            The directory in which the HDF5 files are written.
        - file_types:
            The types of file to match, e.g., "A", "L" or "AL".
        - filename_prefix:
            The prefix of the HDF5 filenames, if known.

    Outputs:
        - The number of candidate files.

    """

    return len(list_candidate_files(directory, file_types, filename_prefix))
