#!/usr/bin/python3
########################################################################################
# test_tools.py - Tests for RAMS-Repack's external-tools module.                       #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
test_tools.py - Tests for the external-tools module of the repack component.

"""

import os
import subprocess
import tempfile
import unittest

from typing import List
from unittest import mock

from ramsrepack.__utils__ import MissingToolError, RemoteCopyError, RepackToolError
from ramsrepack.fileparser import RepackConfig
from ramsrepack.repack.candidates import CandidateFile
from ramsrepack.repack.tools import (
    check_executables,
    copy_to_remote,
    is_compressed,
    repack_command,
    repack_file,
)

# H5dump output:
#   Trimmed header output from `h5dump -Hp` for a file compressed to gzip level 6.
H5DUMP_OUTPUT: str = """HDF5 "a-A-2000-01-01-000000-g1.h5" {
GROUP "/" {
   DATASET "UP" {
      DATATYPE  H5T_IEEE_F32LE
      DATASPACE  SIMPLE { ( 38, 100, 100 ) / ( 38, 100, 100 ) }
      STORAGE_LAYOUT {
         CHUNKED ( 38, 100, 100 )
         SIZE 1029446 (1.476:1 COMPRESSION)
      }
      FILTERS {
         PREPROCESSING SHUFFLE
         COMPRESSION DEFLATE { LEVEL 6 }
      }
   }
}
}
"""


def _completed(
    command: List[str], returncode: int = 0, stdout: str = "", stderr: str = ""
) -> subprocess.CompletedProcess:
    """Returns a completed process with the outputs specified."""

    return subprocess.CompletedProcess(command, returncode, stdout, stderr)


class _BaseToolsTest(unittest.TestCase):
    """Base test class for the external-tools tests."""

    def setUp(self) -> None:
        """Sets up a file to work with and a default config."""

        super().setUp()
        self.temp_directory = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_directory.cleanup)
        self.candidate = CandidateFile(
            os.path.join(self.temp_directory.name, "a-A-2000-01-01-000000-g1.h5")
        )
        with open(self.candidate.path, "w") as f:
            f.write("uncompressed")
        with open(self.candidate.header_path, "w") as f:
            f.write("header")

        self.config = RepackConfig()
        self.logger = mock.MagicMock()


class TestIsCompressed(_BaseToolsTest):
    """Tests the :func:`is_compressed` function."""

    def test_compressed(self) -> None:
        """Tests that a file with the desired gzip level is reported as compressed."""

        with mock.patch(
            "ramsrepack.repack.tools.run_command",
            return_value=_completed([], stdout=H5DUMP_OUTPUT),
        ) as mock_run_command:
            self.assertTrue(is_compressed(self.logger, self.candidate, self.config))

        mock_run_command.assert_called_once_with(
            self.logger, ["h5dump", "-Hp", self.candidate.path]
        )

    def test_case_insensitive(self) -> None:
        """Tests that the gzip level is matched regardless of case."""

        with mock.patch(
            "ramsrepack.repack.tools.run_command",
            return_value=_completed([], stdout="compression deflate { level 6 }"),
        ):
            self.assertTrue(is_compressed(self.logger, self.candidate, self.config))

    def test_other_level(self) -> None:
        """Tests that a file compressed to a different level is not compressed."""

        with mock.patch(
            "ramsrepack.repack.tools.run_command",
            return_value=_completed([], stdout=H5DUMP_OUTPUT),
        ):
            self.assertFalse(
                is_compressed(self.logger, self.candidate, RepackConfig(gzip_level=4))
            )

    def test_unreadable_file(self) -> None:
        """Tests that a file which h5dump cannot read is not compressed."""

        with mock.patch(
            "ramsrepack.repack.tools.run_command",
            return_value=_completed([], returncode=1, stderr="unable to open file"),
        ):
            self.assertFalse(is_compressed(self.logger, self.candidate, self.config))


class TestRepackFile(_BaseToolsTest):
    """Tests the :func:`repack_command` and :func:`repack_file` functions."""

    def test_repack_command(self) -> None:
        """Tests that the shuffle and gzip filters are applied at the desired level."""

        self.assertEqual(
            [
                "h5repack",
                "-f",
                "SHUF",
                "-f",
                "GZIP=6",
                self.candidate.path,
                f"{self.candidate.path}.temp",
            ],
            repack_command(self.candidate, self.config),
        )

    def test_repack_success(self) -> None:
        """Tests that the original file is replaced once h5repack succeeds."""

        def _h5repack(_, command: List[str]) -> subprocess.CompletedProcess:
            with open(command[-1], "w") as f:
                f.write("compressed")
            return _completed(command)

        with mock.patch("ramsrepack.repack.tools.run_command", side_effect=_h5repack):
            repack_file(self.logger, self.candidate, self.config)

        with open(self.candidate.path, "r") as f:
            self.assertEqual("compressed", f.read())
        self.assertFalse(os.path.exists(self.candidate.temp_path))

    def test_repack_failure(self) -> None:
        """Tests that a failed repack leaves the original and removes partial output."""

        def _h5repack(_, command: List[str]) -> subprocess.CompletedProcess:
            with open(command[-1], "w") as f:
                f.write("partial")
            return _completed(command, returncode=1, stderr="h5repack error")

        with mock.patch("ramsrepack.repack.tools.run_command", side_effect=_h5repack):
            with self.assertRaises(RepackToolError):
                repack_file(self.logger, self.candidate, self.config)

        with open(self.candidate.path, "r") as f:
            self.assertEqual("uncompressed", f.read())
        self.assertFalse(os.path.exists(self.candidate.temp_path))


class TestCopyToRemote(_BaseToolsTest):
    """Tests the :func:`copy_to_remote` function."""

    def setUp(self) -> None:
        super().setUp()
        self.destination = "user@host:/data/run1/NOBAK/"

    def test_copy(self) -> None:
        """Tests that both the HDF5 and header files are copied."""

        with mock.patch(
            "ramsrepack.repack.tools.run_command", return_value=_completed([])
        ) as mock_run_command:
            copy_to_remote(self.logger, self.candidate, self.config, self.destination)

        self.assertEqual(
            [
                mock.call(self.logger, ["scp", self.candidate.path, self.destination]),
                mock.call(
                    self.logger, ["scp", self.candidate.header_path, self.destination]
                ),
            ],
            mock_run_command.call_args_list,
        )

    def test_copy_failure(self) -> None:
        """Tests that a failed copy raises a recoverable error."""

        with mock.patch(
            "ramsrepack.repack.tools.run_command",
            return_value=_completed([], returncode=1, stderr="Connection refused"),
        ):
            with self.assertRaises(RemoteCopyError):
                copy_to_remote(
                    self.logger, self.candidate, self.config, self.destination
                )


class TestCheckExecutables(unittest.TestCase):
    """Tests the :func:`check_executables` function."""

    def test_all_present(self) -> None:
        """Tests that no error is raised if all of the executables are present."""

        with mock.patch(
            "ramsrepack.repack.tools.shutil.which", return_value="/usr/bin/tool"
        ):
            check_executables(mock.MagicMock(), ["h5dump", "h5repack"])

    def test_missing(self) -> None:
        """Tests that a missing executable is a fatal error."""

        with mock.patch(
            "ramsrepack.repack.tools.shutil.which",
            side_effect=lambda executable: None if executable == "h5repack" else "/x",
        ):
            with self.assertRaises(MissingToolError):
                check_executables(mock.MagicMock(), ["h5dump", "h5repack"])
