# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import re
from datetime import datetime
from pathlib import Path
from typing import Any

from batchq_lib.batch.interface import BatchInterface
from batchq_lib.core.config import CFG
from batchq_lib.core.error import BQError, ProcessError
from batchq_lib.core.logger import get_logger
from batchq_lib.properties.depend import Depend, DependType
from batchq_lib.properties.info import JobInfo
from batchq_lib.properties.states import JobStatus, StateMap

from .common import (
    parse_bjobs_output,
    parse_bsub_output,
    parse_cpu_used,
    parse_exec_host,
    parse_lsf_time,
)

logger = get_logger(__name__)


class LSF(BatchInterface):
    """
    Implementation of BatchInterface for IBM Spectrum LSF.

    LSF keeps recently finished jobs in the bjobs listing but has no separate
    historical store: a job that bjobs does not know about is reported as completed.
    """

    BINARIES = ("bsub", "bjobs", "bstop", "bresume", "bkill")

    STATE_MAP = StateMap(
        {
            "RUN": JobStatus.RUNNING,
            "PEND": JobStatus.QUEUED,
            "DONE": JobStatus.COMPLETED,
            "EXIT": JobStatus.COMPLETED,
            # suspended before the job started, resumable via bresume
            "PSUSP": JobStatus.QUEUED_HELD,
            # suspended after the job started, resumable via bresume
            "USUSP": JobStatus.SUSPENDED,
            "SSUSP": JobStatus.SUSPENDED,
            "WAIT": JobStatus.QUEUED,
            "ZOMBI": JobStatus.UNDETERMINED,
            "UNKWN": JobStatus.UNDETERMINED,
        }
    )

    # dependency conditions of bsub -w
    DEPEND_CONDITIONS: dict[DependType, str] = {
        DependType.AFTER_START: "started",
        DependType.AFTER_SUCCESS: "done",
        DependType.AFTER_FAILURE: "exit",
        DependType.AFTER_COMPLETION: "ended",
    }

    @staticmethod
    def envName() -> str:
        return "LSF"

    def jobSubmit(
        self,
        script: str,
        depend: list[Depend] | None = None,
        args: list[str] | None = None,
        env_vars: dict[str, str] | None = None,
        work_dir: Path | None = None,
    ) -> str:
        command_args = list(args or [])
        if condition := LSF._translateDependencies(depend):
            command_args += ["-w", condition]

        output = self._call(
            "bsub", command_args, stdin=script, env_vars=env_vars, work_dir=work_dir
        )

        if not (job_id := parse_bsub_output(output)):
            raise BQError(f"Could not obtain job id from bsub output: '{output.strip()}'.")

        logger.debug(f"Submitted job '{job_id}'.")
        return job_id

    def getJobInfo(self, job_id: str, now: datetime | None = None) -> JobInfo | None:
        return BatchInterface._lookupJob(
            job_id, lambda id: self._getListedJob(id, now), None
        )

    def getAllJobInfo(
        self, owner: str | None = None, now: datetime | None = None
    ) -> list[JobInfo]:
        output = self._call("bjobs", LSF._translateBjobs(owner))

        # skip the empty record reported when there are no jobs
        return [
            LSF._toJobInfo(record, now)
            for record in parse_bjobs_output(output)
            if record.get("id")
        ]

    def jobHold(self, job_id: str) -> None:
        self._call("bstop", [job_id])

    def jobRelease(self, job_id: str) -> None:
        self._call("bresume", [job_id])

    def jobDelete(self, job_id: str) -> None:
        self._call("bkill", [job_id])

    def _getListedJob(self, job_id: str, now: datetime | None) -> JobInfo | None:
        """
        Query bjobs for a single job.

        Returns:
            JobInfo | None: Information about the job or None if bjobs does not list it.

        Raises:
            ProcessError: If bjobs fails for any other reason than an unknown job.
        """
        try:
            output = self._call("bjobs", LSF._translateBjobs(None) + [job_id])
        except ProcessError as e:
            if re.search(CFG.lsf_options.not_found_pattern, e.stderr):
                logger.debug(f"bjobs does not know job '{job_id}'.")
                return None
            raise

        for record in parse_bjobs_output(output):
            if record.get("id") == job_id:
                return LSF._toJobInfo(record, now)

        return None

    @staticmethod
    def _translateBjobs(owner: str | None) -> list[str]:
        """
        Arguments of bjobs listing all jobs (including recently finished ones)
        in wide format with full timestamps.
        """
        return ["-u", owner or "all", "-a", "-w", "-W"]

    @staticmethod
    def _translateDependencies(depend: list[Depend] | None) -> str | None:
        """
        Convert a list of `Depend` objects into a bsub dependency expression.

        Example:
            [afterok=1:2, after=3] -> "done(1) && done(2) && started(3)"

        Returns:
            str | None: Dependency expression for `bsub -w`, or None if there are no dependencies.
        """
        conditions = [
            f"{LSF.DEPEND_CONDITIONS[dep_type]}({job})"
            for dep_type, jobs in Depend.collect(depend).items()
            for job in jobs
        ]

        return " && ".join(conditions) or None

    @staticmethod
    def _toJobInfo(record: dict[str, str | None], now: datetime | None) -> JobInfo:
        """
        Convert a record parsed from bjobs into a JobInfo.
        """
        nodes = parse_exec_host(record.get("exec_host"))
        dispatch = parse_lsf_time(record.get("start_time"), now)
        finish = parse_lsf_time(record.get("finish_time"), now)
        status = LSF.STATE_MAP.translate(record.get("status"))

        data: dict[str, Any] = {
            "id": record["id"],
            "status": status,
            "allocated_nodes": nodes,
            "submit_host": record.get("from_host"),
            "job_name": record.get("name"),
            "job_owner": record.get("user"),
            "accounting_id": record.get("project"),
            "procs": sum(node.procs or 0 for node in nodes) if nodes else None,
            "queue_name": record.get("queue"),
            "cpu_time": parse_cpu_used(record.get("cpu_used")),
            "submission_time": parse_lsf_time(record.get("submit_time"), now),
            "dispatch_time": dispatch,
            "native": record,
        }

        # unfinished jobs report an estimated or limit finish time
        finished = status == JobStatus.COMPLETED
        if finished and dispatch is not None and finish is not None:
            data["wallclock_time"] = max(finish - dispatch, 0)

        return JobInfo.fromDict(BatchInterface._deriveWallclock(data, now))
