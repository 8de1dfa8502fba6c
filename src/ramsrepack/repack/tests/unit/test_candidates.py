#!/usr/bin/python3
########################################################################################
# test_candidates.py - Tests for RAMS-Repack's candidate-file module.                  #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
test_candidates.py - Tests for the candidate-file module of the repack component.

"""

import os
import tempfile
import unittest

from ramsrepack.repack.candidates import (
    CandidateFile,
    count_candidate_files,
    list_candidate_files,
)


def _touch(filepath: str, mtime: float = 1_000_000) -> None:
    """Creates a file with the modification time specified."""

    with open(filepath, "w") as f:
        f.write("data")
    os.utime(filepath, (mtime, mtime))


class TestCandidateFile(unittest.TestCase):
    """Tests the :class:`CandidateFile` class."""

    def setUp(self) -> None:
        """Sets up a temporary directory for the tests."""

        super().setUp()
        self.temp_directory = tempfile.TemporaryDirectory()
        self.directory = self.temp_directory.name
        self.addCleanup(self.temp_directory.cleanup)
        self.candidate = CandidateFile(
            os.path.join(self.directory, "a-A-2000-01-01-000000-g1.h5")
        )

    def test_header_path(self) -> None:
        """Tests that the last five characters are replaced to give the header path."""

        self.assertEqual(
            os.path.join(self.directory, "a-A-2000-01-01-000000-head.txt"),
            self.candidate.header_path,
        )

    def test_temp_path(self) -> None:
        """Tests that the h5repack output sits alongside the original file."""

        self.assertEqual(f"{self.candidate.path}.temp", self.candidate.temp_path)

    def test_header_exists(self) -> None:
        """Tests that the header is only reported once it has been written."""

        _touch(self.candidate.path)
        self.assertFalse(self.candidate.header_exists())

        _touch(self.candidate.header_path)
        self.assertTrue(self.candidate.header_exists())

    def test_header_is_stale(self) -> None:
        """Tests that a header is stale only when strictly older than its file."""

        _touch(self.candidate.path, 2_000)
        _touch(self.candidate.header_path, 1_000)
        self.assertTrue(self.candidate.header_is_stale())

        _touch(self.candidate.header_path, 2_000)
        self.assertFalse(self.candidate.header_is_stale())

        _touch(self.candidate.header_path, 3_000)
        self.assertFalse(self.candidate.header_is_stale())

    def test_repack_in_progress(self) -> None:
        """Tests that an existing temp file marks the file as being repacked."""

        _touch(self.candidate.path)
        self.assertFalse(self.candidate.repack_in_progress())

        _touch(self.candidate.temp_path)
        self.assertTrue(self.candidate.repack_in_progress())


class TestListCandidateFiles(unittest.TestCase):
    """Tests the :func:`list_candidate_files` and `count_candidate_files` functions."""

    def setUp(self) -> None:
        """Sets up a directory of RAMS output for the tests."""

        super().setUp()
        self.temp_directory = tempfile.TemporaryDirectory()
        self.directory = self.temp_directory.name
        self.addCleanup(self.temp_directory.cleanup)

        for filename in (
            "run-A-2000-01-01-000000-g1.h5",
            "run-A-2000-01-01-000000-head.txt",
            "run-A-2000-01-01-003000-g1.h5",
            "run-A-2000-01-01-003000-g1.h5.temp",
            "run-L-2000-01-01-000000-g1.h5",
            "old-A-2000-01-01-000000-g1.h5",
            "run-R-2000-01-01-000000-g1.h5",
        ):
            _touch(os.path.join(self.directory, filename))

    def _names(self, candidates) -> list:
        return [os.path.basename(candidate.path) for candidate in candidates]

    def test_analysis_files(self) -> None:
        """Tests that only analysis HDF5 files are listed, sorted."""

        self.assertEqual(
            [
                "old-A-2000-01-01-000000-g1.h5",
                "run-A-2000-01-01-000000-g1.h5",
                "run-A-2000-01-01-003000-g1.h5",
            ],
            self._names(list_candidate_files(self.directory, "A")),
        )

    def test_analysis_and_lite_files(self) -> None:
        """Tests that both analysis and lite files are listed."""

        self.assertEqual(4, len(list_candidate_files(self.directory, "AL")))
        self.assertIn(
            "run-L-2000-01-01-000000-g1.h5",
            self._names(list_candidate_files(self.directory, "AL")),
        )

    def test_filename_prefix(self) -> None:
        """Tests that files from other runs in the directory are ignored."""

        self.assertEqual(
            [
                "run-A-2000-01-01-000000-g1.h5",
                "run-A-2000-01-01-003000-g1.h5",
            ],
            self._names(list_candidate_files(self.directory, "A", "run")),
        )

    def test_count(self) -> None:
        """Tests that the census matches the listing."""

        self.assertEqual(3, count_candidate_files(self.directory, "A"))
        self.assertEqual(1, count_candidate_files(self.directory, "L"))

    def test_missing_directory(self) -> None:
        """Tests that a missing directory gives no files."""

        self.assertEqual(
            0, count_candidate_files(os.path.join(self.directory, "missing"), "AL")
        )
