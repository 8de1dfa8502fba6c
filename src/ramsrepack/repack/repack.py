#!/usr/bin/python3
########################################################################################
# repack.py - The repacking loop of RAMS-Repack.                                       #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
repack.py - The repack module for RAMS-Repack.

Parallel HDF5 does not support compression whilst writing, so a distributed-memory RAMS
run writes its HDF5 output uncompressed. This module repacks those files, either whilst
the run is taking place (live mode) or once it has finished (post-hoc mode).

In live mode, files are only repacked once RAMS has finished writing them: RAMS writes a
header file once an HDF5 file is complete, so each file is held until its header file
exists and is no older than the file itself. Checks for new files carry on for as long
as the RAMS job is running and until no new files appear during a repack pass. A final
pass then picks up any file written just before the job finished.

"""

import collections
import enum

from logging import Logger
from typing import Counter, List, Optional

from tqdm import tqdm  # pylint: disable=import-error

from ..__utils__ import (
    BColours,
    DONE,
    FAILED,
    NoCandidateFilesError,
    RemoteCopyError,
    RepackToolError,
    ShutdownRequested,
    SKIPPING,
    Waiter,
)
from ..fileparser import RepackConfig
from ..liveness.liveness import LivenessCheck
from .candidates import CandidateFile, count_candidate_files, list_candidate_files
from .tools import copy_to_remote, is_compressed, repack_file

__all__ = (
    "RepackOutcome",
    "repack_candidate",
    "repack_pass",
    "run_live",
    "run_post_hoc",
    "wait_for_header",
)


class RepackOutcome(enum.Enum):
    """
    The outcome of attempting to repack a single file.

    - ALREADY_REPACKED:
        The file was already compressed to the desired level.

    - FAILED:
        h5repack failed; the file will be reattempted on the next pass.

    - IN_PROGRESS:
        Another h5repack process was already repacking the file.

    - MISSING:
        The file was removed before it could be repacked.

    - REPACKED:
        The file was repacked.

    """

    ALREADY_REPACKED = "already_repacked"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"
    MISSING = "missing"
    REPACKED = "repacked"


def wait_for_header(
    logger: Logger, candidate: CandidateFile, config: RepackConfig, waiter: Waiter
) -> None:
    """
    Waits until RAMS has finished writing the file.

    RAMS writes the header file once the HDF5 file has been written, so this waits for
    the header file to exist. If a file of the same name is being overwritten, the
    header file from the earlier write will already exist, so, unless the file has
    already been repacked, this also waits for the header file to be no older than the
    HDF5 file. A short delay is then added in case the header file is large.

    Inputs:
        - logger:
            The logger to use for the run.
        - candidate:
            The file to wait for.
        - config:
            The :class:`RepackConfig` for the run.
        - waiter:
            The :class:`Waiter` through which to sleep.

    Raises:
        - ShutdownRequested:
            Raised if a shutdown is requested whilst waiting.

    """

    if not candidate.header_exists():
        logger.info("Waiting for header file %s", candidate.header_path)
    while not candidate.header_exists():
        waiter.wait(config.header_wait_interval)

    # If the file was already repacked, its header will be older; don't wait on it.
    if not is_compressed(logger, candidate, config):
        if candidate.header_is_stale():
            logger.info(
                "Header file %s is older than %s", candidate.header_path, candidate
            )
        while candidate.header_is_stale():
            waiter.wait(config.header_age_wait_interval)

    waiter.wait(config.settle_delay)


def repack_candidate(  # pylint: disable=too-many-arguments
    logger: Logger,
    candidate: CandidateFile,
    config: RepackConfig,
    waiter: Waiter,
    *,
    live: bool,
    remote_destination: Optional[str] = None,
) -> RepackOutcome:
    """
    Repacks a single file, if needed.

    Inputs:
        - logger:
            The logger to use for the run.
        - candidate:
            The file to repack.
        - config:
            The :class:`RepackConfig` for the run.
        - waiter:
            The :class:`Waiter` through which to sleep.
        - live:
            Whether RAMS may still be writing the file (True), in which case the file
            is only repacked once its header file is ready, or not (False).
        - remote_destination:
            If specified, the destination to which to copy the repacked file.

    Outputs:
        - The :class:`RepackOutcome` of the attempt.

    """

    if live:
        wait_for_header(logger, candidate, config, waiter)

    if is_compressed(logger, candidate, config):
        logger.info("%s already repacked", candidate)
        tqdm.write(f"{candidate} already repacked")
        return RepackOutcome.ALREADY_REPACKED

    if candidate.repack_in_progress():
        logger.info("%s is already being repacked. Skipping...", candidate)
        tqdm.write(f"{candidate} is already being repacked {SKIPPING}")
        return RepackOutcome.IN_PROGRESS

    try:
        repack_file(logger, candidate, config)
    except RepackToolError as e:
        logger.error(
            "%sFailed to repack %s, will retry on the next pass: %s%s",
            BColours.fail,
            candidate,
            str(e),
            BColours.endc,
        )
        tqdm.write(f"Repacking {candidate} {FAILED}")
        return RepackOutcome.FAILED

    logger.info(
        "New file %s has been repacked because it was not compressed to level %s",
        candidate,
        config.gzip_level,
    )
    tqdm.write(f"Repacking {candidate} to gzip level {config.gzip_level} {DONE}")

    if remote_destination is not None:
        try:
            copy_to_remote(logger, candidate, config, remote_destination)
        except RemoteCopyError as e:
            logger.warning(
                "%sFailed to copy %s to %s: %s%s",
                BColours.warning,
                candidate,
                remote_destination,
                str(e),
                BColours.endc,
            )
        else:
            tqdm.write(
                f"{candidate} and {candidate.header_path} were copied to "
                f"{remote_destination}"
            )

    return RepackOutcome.REPACKED


def repack_pass(  # pylint: disable=too-many-arguments
    logger: Logger,
    candidates: List[CandidateFile],
    config: RepackConfig,
    waiter: Waiter,
    *,
    live: bool,
    remote_destination: Optional[str] = None,
    disable_tqdm: bool = False,
) -> Counter[RepackOutcome]:
    """
    Carries out a single repack pass over the files specified.

    Files are processed one after another. A failure on one file does not stop the
    pass. A shutdown request is checked for before each file.

    Inputs:
        - logger:
            The logger to use for the run.
        - candidates:
            The files to repack.
        - config:
            The :class:`RepackConfig` for the run.
        - waiter:
            The :class:`Waiter` through which to sleep.
        - live:
            Whether RAMS may still be writing the files.
        - remote_destination:
            If specified, the destination to which to copy the repacked files.
        - disable_tqdm:
            Whether to disable the tqdm progress bars (True) or display them (False).

    Outputs:
        - The number of files with each :class:`RepackOutcome`.

    Raises:
        - ShutdownRequested:
            Raised if a shutdown is requested during the pass.

    """

    outcomes: Counter[RepackOutcome] = collections.Counter()
    for candidate in tqdm(
        candidates,
        desc="repacking files",
        disable=disable_tqdm,
        leave=False,
        unit="file",
    ):
        if waiter.cancelled:
            logger.info("Shutdown requested, stopping repack pass before %s", candidate)
            raise ShutdownRequested()

        try:
            outcome = repack_candidate(
                logger,
                candidate,
                config,
                waiter,
                live=live,
                remote_destination=remote_destination,
            )
        except FileNotFoundError:
            logger.warning(
                "%s%s was removed before it could be repacked.%s",
                BColours.warning,
                candidate,
                BColours.endc,
            )
            outcome = RepackOutcome.MISSING
        outcomes[outcome] += 1

    logger.info(
        "Repack pass complete: %s",
        ", ".join(f"{outcome.value}={count}" for outcome, count in outcomes.items()),
    )
    return outcomes


def run_live(  # pylint: disable=too-many-arguments
    logger: Logger,
    config: RepackConfig,
    directory: str,
    liveness_check: LivenessCheck,
    waiter: Waiter,
    *,
    filename_prefix: str = "",
    remote_destination: Optional[str] = None,
    disable_tqdm: bool = False,
) -> int:
    """
    Repacks files whilst the RAMS job is running.

    Repack passes are carried out every check interval while either the RAMS job is
    still running or the number of files changed during the last pass, i.e., new files
    were written whilst repacking. One final pass is carried out once the job has
    finished.

    Inputs:
        - logger:
            The logger to use for the run.
        - config:
            The :class:`RepackConfig` for the run.
        - directory:
            The directory in which RAMS is writing its HDF5 files.
        - liveness_check:
            The :class:`LivenessCheck` for the RAMS job.
        - waiter:
            The :class:`Waiter` through which to sleep.
        - filename_prefix:
            The prefix of the HDF5 filenames.
        - remote_destination:
            If specified, the destination to which to copy the repacked files.
        - disable_tqdm:
            Whether to disable the tqdm progress bars (True) or display them (False).

    Outputs:
        - The number of repack passes carried out, including the final pass.

    Raises:
        - ShutdownRequested:
            Raised if a shutdown is requested whilst waiting.

    """

    def _census() -> int:
        return count_candidate_files(directory, config.file_types, filename_prefix)

    def _pass() -> None:
        repack_pass(
            logger,
            list_candidate_files(directory, config.file_types, filename_prefix),
            config,
            waiter,
            live=True,
            remote_destination=remote_destination,
            disable_tqdm=disable_tqdm,
        )

    waiter.wait(config.check_interval)

    logger.info("Analysis files directory: %s", directory)
    print(f"Analysis files directory: {directory}")

    job_running = liveness_check.is_alive()

    # Files written whilst a pass is running are not seen by that pass, so the number
    # of files is compared before and after each pass.
    pre_file_count = _census()
    post_file_count = 0
    logger.info("prefilecount, postfilecount: %s %s", pre_file_count, post_file_count)

    num_passes: int = 0
    while job_running or pre_file_count != post_file_count:
        pre_file_count = _census()
        if pre_file_count != 0:
            _pass()
            num_passes += 1

        post_file_count = _census()
        logger.info(
            "prefilecount, postfilecount: %s %s", pre_file_count, post_file_count
        )

        waiter.wait(config.check_interval)
        job_running = liveness_check.is_alive()

    # Catch any file written between the last check and the job finishing.
    logger.info("RAMS job finished, carrying out final repack pass.")
    _pass()
    num_passes += 1

    print(f"{liveness_check.jobname} finished and RAMS-Repack is terminating")
    logger.info("%s finished and RAMS-Repack is terminating", liveness_check.jobname)
    return num_passes


def run_post_hoc(  # pylint: disable=too-many-arguments
    logger: Logger,
    config: RepackConfig,
    directory: str,
    waiter: Waiter,
    *,
    remote_destination: Optional[str] = None,
    disable_tqdm: bool = False,
) -> Counter[RepackOutcome]:
    """
    Repacks the files of a RAMS run which has already finished.

    Inputs:
        - logger:
            The logger to use for the run.
        - config:
            The :class:`RepackConfig` for the run.
        - directory:
            The directory containing the HDF5 files.
        - waiter:
            The :class:`Waiter` through which to sleep.
        - remote_destination:
            If specified, the destination to which to copy the repacked files.
        - disable_tqdm:
            Whether to disable the tqdm progress bars (True) or display them (False).

    Outputs:
        - The number of files with each :class:`RepackOutcome`.

    Raises:
        - NoCandidateFilesError:
            Raised if there are no HDF5 files to repack in the directory.

    """

    candidates = list_candidate_files(directory, config.file_types)
    if len(candidates) == 0:
        logger.error(
            "%sNo Analysis or Lite files in %s!%s",
            BColours.fail,
            directory,
            BColours.endc,
        )
        raise NoCandidateFilesError(directory)

    logger.info("Repacking %s files in directory %s", len(candidates), directory)
    print(f"Repacking files in directory {directory}")
    outcomes = repack_pass(
        logger,
        candidates,
        config,
        waiter,
        live=False,
        remote_destination=remote_destination,
        disable_tqdm=disable_tqdm,
    )
    print(f"RAMS-Repack finished for directory {directory}")
    logger.info("RAMS-Repack finished for directory %s", directory)

    return outcomes
