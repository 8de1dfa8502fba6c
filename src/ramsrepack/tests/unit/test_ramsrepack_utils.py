#!/usr/bin/python3
########################################################################################
# test_ramsrepack_utils.py - Tests for RAMS-Repack's utility module.                   #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
test_ramsrepack_utils.py - Tests for the utility module.

"""

import os
import shutil
import subprocess
import tempfile
import threading
import unittest

from unittest import mock

from ramsrepack.__utils__ import (
    ExternalToolError,
    InputFileError,
    MissingToolError,
    NoCandidateFilesError,
    PreconditionError,
    RepackToolError,
    ShutdownRequested,
    Waiter,
    read_yaml,
    run_command,
)


class TestWaiter(unittest.TestCase):
    """Tests the :class:`Waiter` class."""

    def test_wait(self) -> None:
        """Tests that an uncancelled wait returns normally."""

        waiter = Waiter()
        waiter.wait(0)
        self.assertFalse(waiter.cancelled)

    def test_cancelled_before_wait(self) -> None:
        """Tests that a wait after a cancel raises immediately."""

        waiter = Waiter()
        waiter.cancel()
        self.assertTrue(waiter.cancelled)
        with self.assertRaises(ShutdownRequested):
            waiter.wait(60)

    def test_cancelled_during_wait(self) -> None:
        """Tests that a cancel from another thread interrupts a long wait."""

        waiter = Waiter()
        timer = threading.Timer(0.05, waiter.cancel)
        timer.start()
        self.addCleanup(timer.cancel)

        with self.assertRaises(ShutdownRequested):
            waiter.wait(60)


class TestRunCommand(unittest.TestCase):
    """Tests the :func:`run_command` function."""

    def setUp(self) -> None:
        super().setUp()
        self.logger = mock.MagicMock()

    def test_output_captured(self) -> None:
        """Tests that the command is run with its output captured as text."""

        completed_process = subprocess.CompletedProcess(["h5dump"], 0, "out", "")
        with mock.patch(
            "ramsrepack.__utils__.subprocess.run", return_value=completed_process
        ) as mock_run:
            self.assertIs(completed_process, run_command(self.logger, ["h5dump"]))

        mock_run.assert_called_once_with(
            ["h5dump"], capture_output=True, check=False, errors="replace", text=True
        )

    @unittest.skipIf(shutil.which("printf") is None, "printf is not available")
    def test_undecodable_output(self) -> None:
        """Tests that output which is not valid UTF-8 is still returned as text."""

        completed_process = run_command(self.logger, ["printf", "LEVEL 6\\377"])

        self.assertEqual(0, completed_process.returncode)
        self.assertTrue(completed_process.stdout.startswith("LEVEL 6"))

    def test_missing_executable(self) -> None:
        """Tests that a missing executable raises a precondition error."""

        with mock.patch(
            "ramsrepack.__utils__.subprocess.run", side_effect=FileNotFoundError()
        ):
            with self.assertRaises(MissingToolError) as context:
                run_command(self.logger, ["h5repack", "a.h5", "a.h5.temp"])

        self.assertEqual("h5repack", context.exception.executable)


class TestExceptions(unittest.TestCase):
    """Tests the RAMS-Repack exception hierarchy."""

    def test_preconditions(self) -> None:
        """Tests that the fatal errors share a base class."""

        for error in (
            InputFileError("repack inputs", "bad"),
            MissingToolError("h5repack"),
            NoCandidateFilesError("z.test01/NOBAK/"),
        ):
            with self.subTest(error=error):
                self.assertIsInstance(error, PreconditionError)

    def test_no_candidate_files_message(self) -> None:
        """Tests the message for a directory with no files to repack."""

        self.assertEqual(
            "No Analysis or Lite files in z.test01/NOBAK/!",
            str(NoCandidateFilesError("z.test01/NOBAK/")),
        )

    def test_external_tool_error(self) -> None:
        """Tests that tool failures are recoverable and carry the command details."""

        error = RepackToolError(["h5repack", "a.h5"], 1, "  unable to open\n")
        self.assertIsInstance(error, ExternalToolError)
        self.assertNotIsInstance(error, PreconditionError)
        self.assertEqual(
            "Command 'h5repack a.h5' failed with exit code 1: unable to open",
            str(error),
        )


class TestReadYaml(unittest.TestCase):
    """Tests the :func:`read_yaml` function."""

    def test_read(self) -> None:
        """Tests that a YAML file is parsed."""

        with tempfile.TemporaryDirectory() as temp_directory:
            filepath = os.path.join(temp_directory, "inputs.yaml")
            with open(filepath, "w") as f:
                f.write("gzip_level: 6\nfile_types: AL\n")

            self.assertEqual(
                {"gzip_level": 6, "file_types": "AL"},
                read_yaml(filepath, mock.MagicMock()),
            )

    def test_missing(self) -> None:
        """Tests that a missing file is reported and re-raised."""

        logger = mock.MagicMock()
        with self.assertRaises(FileNotFoundError):
            read_yaml("missing.yaml", logger)

        logger.error.assert_called_once()
