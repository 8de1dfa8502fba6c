#!/usr/bin/python3
########################################################################################
# liveness.py - Checks on whether the RAMS job is still running.                       #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
liveness.py - The liveness module for RAMS-Repack.

Whilst a RAMS run is taking place, RAMS-Repack needs to know, at each check, whether the
RAMS job is still running. How this is determined depends on how RAMS has been launched:
    - directly, in which case the process table is searched for the RAMS executable;
    - through LSF, in which case `bjobs` is queried for the job;
    - through Grid Engine, in which case the `qstat` queue listing is searched.

Each of these is implemented as a :class:`LivenessCheck` child. The check is carried out
afresh every time :meth:`LivenessCheck.is_alive` is called; nothing is cached.

"""

from logging import Logger
from typing import Dict, List, Type

from ..__utils__ import BColours, ExecutionType, InternalError, run_command
from ..fileparser import RepackConfig

__all__ = (
    "GridEngineLivenessCheck",
    "LivenessCheck",
    "LsfLivenessCheck",
    "StandardLivenessCheck",
    "get_liveness_check",
)


class LivenessCheck:
    """
    Determines whether the RAMS job producing the output files is still running.

    .. attribute:: executable
        The executable called to carry out the check.

    .. attribute:: execution_type
        The :class:`ExecutionType` which the check applies to.

    .. attribute:: jobname
        The RAMS executable name, or scheduler job name, being watched.

    .. attribute:: logger
        The logger to use for the run.

    """

    execution_type: ExecutionType
    tool_name: str

    def __init__(self, executable: str, jobname: str, logger: Logger) -> None:
        """
        Instantiate a :class:`LivenessCheck` instance.

        Inputs:
            - executable:
                The executable to call to carry out the check.
            - jobname:
                The RAMS executable name, or scheduler job name, being watched.
            - logger:
                The logger to use for the run.

        """

        self.executable = executable
        self.jobname = jobname
        self.logger = logger

    def __init_subclass__(cls, execution_type: ExecutionType, tool_name: str) -> None:
        """
        Method run when instantiating a :class:`LivenessCheck` child.

        Inputs:
            - execution_type:
                The type of execution that the child checks.
            - tool_name:
                The name of the tool used, used as a key for the executables.

        """

        super().__init_subclass__()
        cls.execution_type = execution_type
        cls.tool_name = tool_name

    def __str__(self) -> str:
        """
        Returns a nice-looking `str` representing the check.

        Outputs:
            - A nice-looking `str` representing the check.

        """

        return (
            f"LivenessCheck(execution_type={self.execution_type.value}"
            + f", executable={self.executable}"
            + f", jobname={self.jobname})"
        )

    @property
    def command(self) -> List[str]:
        """The command to run to query the job status."""

        raise NotImplementedError("The command must be defined by each liveness check.")

    def _count_scheduler_matches(self) -> int:
        """
        Queries the scheduler and counts the lines of output which mention the job.

        A failed query is logged and its (usually empty) output counted as normal, so
        that a scheduler which can no longer find the job reads as the job finishing.

        Outputs:
            - The number of lines which contain the job name.

        """

        completed_process = run_command(self.logger, self.command)
        if completed_process.returncode != 0:
            self.logger.warning(
                "%s%s exited with code %s: %s%s",
                BColours.warning,
                self.executable,
                completed_process.returncode,
                completed_process.stderr.strip(),
                BColours.endc,
            )

        return sum(
            1 for line in completed_process.stdout.splitlines() if self.jobname in line
        )

    def job_count(self) -> int:
        """
        Queries the job status, returning the number of matches found.

        Outputs:
            - The number of matches for the job; zero if the job is no longer running.

        """

        raise NotImplementedError(
            "The job count must be defined by each liveness check."
        )

    def is_alive(self) -> bool:
        """
        Returns whether the RAMS job is still running.

        Outputs:
            - Whether the job is running (True) or has finished (False).

        """

        count = self.job_count()
        self.logger.info("pid or jobname count: %s", count)
        return count > 0


class StandardLivenessCheck(
    LivenessCheck, execution_type=ExecutionType.STANDARD, tool_name="pidof"
):
    """
    Checks the process table for the RAMS executable.

    """

    @property
    def command(self) -> List[str]:
        return [self.executable, "-s", self.jobname]

    def job_count(self) -> int:
        # `pidof` prints the pid if the process exists and nothing otherwise.
        completed_process = run_command(self.logger, self.command)
        return len(completed_process.stdout.split())


class LsfLivenessCheck(
    LivenessCheck, execution_type=ExecutionType.LSF, tool_name="bjobs"
):
    """
    Checks the LSF long-form job listing for the RAMS job.

    """

    @property
    def command(self) -> List[str]:
        return [self.executable, "-l", "-J", self.jobname]

    def job_count(self) -> int:
        return self._count_scheduler_matches()


class GridEngineLivenessCheck(
    LivenessCheck, execution_type=ExecutionType.GRID_ENGINE, tool_name="qstat"
):
    """
    Checks the Grid Engine full queue listing for the RAMS job.

    """

    @property
    def command(self) -> List[str]:
        return [self.executable, "-f"]

    def job_count(self) -> int:
        return self._count_scheduler_matches()


# Execution type to liveness check:
#   Mapping from the type of execution to the check to use.
EXECUTION_TYPE_TO_LIVENESS_CHECK: Dict[ExecutionType, Type[LivenessCheck]] = {
    check.execution_type: check
    for check in (StandardLivenessCheck, LsfLivenessCheck, GridEngineLivenessCheck)
}


def get_liveness_check(
    config: RepackConfig, jobname: str, logger: Logger
) -> LivenessCheck:
    """
    Returns the liveness check to use for the run.

    Inputs:
        - config:
            The :class:`RepackConfig` for the run.
        - jobname:
            The RAMS executable name, or scheduler job name, being watched.
        - logger:
            The logger to use for the run.

    Outputs:
        - The :class:`LivenessCheck` matching the execution type of the run.

    """

    try:
        check_class = EXECUTION_TYPE_TO_LIVENESS_CHECK[config.execution_type]
    except KeyError:
        logger.error(
            "%sNo liveness check for execution type %s.%s",
            BColours.fail,
            config.execution_type,
            BColours.endc,
        )
        raise InternalError(
            f"No liveness check implemented for {config.execution_type}."
        ) from None

    liveness_check = check_class(
        config.executables[check_class.tool_name], jobname, logger
    )
    logger.info("Liveness check determined: %s", str(liveness_check))
    return liveness_check
