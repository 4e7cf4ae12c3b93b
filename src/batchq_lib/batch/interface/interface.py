# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab


from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

from batchq_lib.core.error import UnimplementedCapabilityError
from batchq_lib.core.logger import get_logger
from batchq_lib.core.process import resolve_binary, run_command
from batchq_lib.properties.depend import Depend
from batchq_lib.properties.info import JobInfo
from batchq_lib.properties.states import JobStatus

logger = get_logger(__name__)


class BatchInterface(ABC):
    """
    Abstract base class for batch system integrations.

    Concrete batch system classes implement these methods to allow callers
    to interact with different batch systems uniformly. Every operation runs
    exactly one command of the batch system (job lookups may fall back to
    a second, historical query).

    Operations that a batch system does not support raise
    `UnimplementedCapabilityError`. Failures of the batch-system commands
    raise `ProcessError`.

    The state of an instance (paths to binaries, cluster name, environment
    passed to commands) is fixed on construction.
    """

    # names of the batch-system binaries used by the implementation
    BINARIES: tuple[str, ...] = ()

    def __init__(
        self,
        bin: str | Path | None = "",
        cluster: str | None = None,
        env_vars: Mapping[str, str] | None = None,
    ):
        """
        Args:
            bin (str | Path | None): Directory with the batch-system binaries.
                If empty, binaries are looked up in PATH.
            cluster (str | None): Name of the cluster this instance talks to.
            env_vars (Mapping[str, str] | None): Environment variables set for
                every batch-system command.
        """
        self._cluster = cluster
        self._binaries = MappingProxyType(
            {name: resolve_binary(bin, name) for name in self.BINARIES}
        )
        self._env_vars = MappingProxyType(dict(env_vars or {}))

    @staticmethod
    @abstractmethod
    def envName() -> str:
        """
        Return the name of the batch system.

        Returns:
            str: The batch system name.
        """
        pass

    @property
    def cluster(self) -> str | None:
        """Name of the cluster or None if not specified."""
        return self._cluster

    def jobSubmit(
        self,
        script: str,
        depend: list[Depend] | None = None,
        args: list[str] | None = None,
        env_vars: dict[str, str] | None = None,
        work_dir: Path | None = None,
    ) -> str:
        """
        Submit a job script to the batch system.

        The content of the script is passed to the submission command via standard input.

        Args:
            script (str): Content of the job script.
            depend (list[Depend] | None): Dependencies of the job.
            args (list[str] | None): Additional (already resolved) arguments
                for the submission command.
            env_vars (dict[str, str] | None): Environment variables for the submission command.
            work_dir (Path | None): Directory to submit the job from.

        Returns:
            str: ID of the submitted job.

        Raises:
            ProcessError: If the submission command fails.
            BQError: If the job ID cannot be obtained from the output.
            UnimplementedCapabilityError: If submission or one of the requested
                dependency types is not supported.
        """
        raise UnimplementedCapabilityError(self.envName(), "jobSubmit")

    def getJobInfo(self, job_id: str) -> JobInfo | None:
        """
        Retrieve information about a single job.

        Jobs that are no longer tracked by the batch system are reported as completed
        unless a historical store is available, in which case it is queried.

        Args:
            job_id (str): Identifier of the job.

        Returns:
            JobInfo | None: Information about the job or None if the historical
            store has no record of the job.
        """
        raise UnimplementedCapabilityError(self.envName(), "getJobInfo")

    def getAllJobInfo(self, owner: str | None = None) -> list[JobInfo]:
        """
        Retrieve information about all jobs tracked by the batch system.

        Args:
            owner (str | None): Only return jobs of this user. All users if None.

        Returns:
            list[JobInfo]: Information about the jobs in the order reported by the batch system.
        """
        raise UnimplementedCapabilityError(self.envName(), "getAllJobInfo")

    def getJobStatus(self, job_id: str) -> JobStatus:
        """
        Retrieve the canonical status of a job.

        Args:
            job_id (str): Identifier of the job.

        Returns:
            JobStatus: Status of the job. `JobStatus.UNDETERMINED` if no record
            of the job exists.
        """
        if not (info := self.getJobInfo(job_id)):
            return JobStatus.UNDETERMINED

        return info.status

    def jobHold(self, job_id: str) -> None:
        """
        Put a job on hold.

        Raises:
            ProcessError: If the hold command fails.
        """
        raise UnimplementedCapabilityError(self.envName(), "jobHold")

    def jobRelease(self, job_id: str) -> None:
        """
        Release a held job.

        Raises:
            ProcessError: If the release command fails.
        """
        raise UnimplementedCapabilityError(self.envName(), "jobRelease")

    def jobDelete(self, job_id: str) -> None:
        """
        Delete (cancel) a job.

        Raises:
            ProcessError: If the delete command fails.
        """
        raise UnimplementedCapabilityError(self.envName(), "jobDelete")

    def _call(
        self,
        binary: str,
        args: Sequence[str] = (),
        stdin: str | None = None,
        env_vars: Mapping[str, str] | None = None,
        work_dir: Path | None = None,
    ) -> str:
        """
        Run one of the batch-system binaries and return its standard output.

        Raises:
            ProcessError: If the command fails.
        """
        env = dict(self._env_vars) | dict(env_vars or {})
        return run_command(
            self._binaries[binary], args, env=env, stdin=stdin, cwd=work_dir
        )

    @staticmethod
    def _lookupJob(
        job_id: str,
        live: Callable[[str], JobInfo | None],
        historical: Callable[[str], JobInfo | None] | None,
    ) -> JobInfo | None:
        """
        Look up a job first in the live listing, then in the historical store.

        Some batch systems only list queued and running jobs. A job missing from
        the live listing is therefore assumed to be completed, unless a historical
        store is available, in which case its answer is returned as is.

        Args:
            job_id (str): Identifier of the job.
            live (Callable): Returns the job from the live listing or None if it is not listed.
            historical (Callable | None): Returns the job from the historical store
                or None if no record exists. None if there is no historical store.

        Returns:
            JobInfo | None: Information about the job or None if the historical
            store has no record of it.
        """
        if info := live(job_id):
            return info

        if historical is None:
            logger.debug(f"Job '{job_id}' is not listed; assuming it is completed.")
            return JobInfo(id=job_id, status=JobStatus.COMPLETED)

        logger.debug(f"Job '{job_id}' is not listed; querying the historical store.")
        return historical(job_id)

    @staticmethod
    def _deriveWallclock(
        record: dict[str, Any], now: datetime | None = None
    ) -> dict[str, Any]:
        """
        Fill in the wallclock time of a job record if the batch system does not report it.

        If the record has a dispatch time (epoch seconds), the wallclock time is the
        time elapsed since the dispatch. Otherwise it is zero.

        Args:
            record (dict[str, Any]): Parsed job record. Modified in place.
            now (datetime | None): Current time. Defaults to `datetime.now()`.

        Returns:
            dict[str, Any]: The same record.
        """
        if record.get("wallclock_time") is not None:
            return record

        if (dispatch := record.get("dispatch_time")) is not None:
            current = int((now or datetime.now()).timestamp())
            record["wallclock_time"] = max(current - int(dispatch), 0)
        else:
            record["wallclock_time"] = 0

        return record
