# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import re
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from batchq_lib.batch.interface import BatchInterface
from batchq_lib.core.common import duration_to_seconds
from batchq_lib.core.config import CFG
from batchq_lib.core.error import BQError, ProcessError, UnimplementedCapabilityError
from batchq_lib.core.logger import get_logger
from batchq_lib.properties.depend import Depend, DependType
from batchq_lib.properties.info import JobInfo
from batchq_lib.properties.states import JobStatus, StateMap

from .common import parse_qacct_output, parse_qacct_time, parse_qsub_output
from .listener import parse_qstat_xml

logger = get_logger(__name__)


class SGE(BatchInterface):
    """
    Implementation of BatchInterface for Sun/Son of Grid Engine.

    `qstat` only lists queued and running jobs. Finished jobs can be found in
    the accounting file using `qacct`, if accounting is enabled on the cluster.
    """

    BINARIES = ("qsub", "qstat", "qacct", "qhold", "qrls", "qdel")

    # adapted from http://www.softpanorama.org/HPC/Grid_engine/Queues/queue_states.shtml
    STATE_MAP = StateMap(
        {
            # pending states with error
            "EhRqw": JobStatus.UNDETERMINED,
            "Ehqw": JobStatus.UNDETERMINED,
            "Eqw": JobStatus.UNDETERMINED,
            # suspended with re-submit
            "RS": JobStatus.SUSPENDED,
            "RT": JobStatus.SUSPENDED,
            "Rs": JobStatus.SUSPENDED,
            "RtS": JobStatus.SUSPENDED,
            "RtT": JobStatus.SUSPENDED,
            "Rts": JobStatus.SUSPENDED,
            # running or transferring, re-submit
            "Rr": JobStatus.RUNNING,
            "Rt": JobStatus.RUNNING,
            # queue suspended (by alarm)
            "S": JobStatus.SUSPENDED,
            "T": JobStatus.SUSPENDED,
            "tS": JobStatus.SUSPENDED,
            "tT": JobStatus.SUSPENDED,
            # running or suspended, marked for deletion
            "dRS": JobStatus.COMPLETED,
            "dRT": JobStatus.COMPLETED,
            "dRr": JobStatus.COMPLETED,
            "dRs": JobStatus.COMPLETED,
            "dRt": JobStatus.COMPLETED,
            "dS": JobStatus.COMPLETED,
            "dT": JobStatus.COMPLETED,
            "dr": JobStatus.COMPLETED,
            "ds": JobStatus.COMPLETED,
            "dt": JobStatus.COMPLETED,
            # pending with hold
            "hRwq": JobStatus.QUEUED_HELD,
            "hqw": JobStatus.QUEUED_HELD,
            "qw": JobStatus.QUEUED,
            "r": JobStatus.RUNNING,
            "s": JobStatus.SUSPENDED,
            "t": JobStatus.RUNNING,
            "ts": JobStatus.SUSPENDED,
        }
    )

    def __init__(
        self,
        bin: str | Path | None = "",
        cluster: str | None = None,
        sge_root: str | Path | None = None,
        accounting: bool = False,
        env_vars: Mapping[str, str] | None = None,
    ):
        """
        Args:
            bin (str | Path | None): Directory with the SGE binaries.
                If empty, binaries are looked up in PATH.
            cluster (str | None): Name of the cluster.
            sge_root (str | Path | None): SGE installation root exported
                as SGE_ROOT to every command.
            accounting (bool): Whether finished jobs can be looked up using qacct.
            env_vars (Mapping[str, str] | None): Additional environment variables
                for every command.
        """
        env = dict(env_vars or {})
        if sge_root:
            env[CFG.env_vars.sge_root] = str(sge_root)

        super().__init__(bin, cluster, env)
        self._accounting = accounting

    @staticmethod
    def envName() -> str:
        return "SGE"

    @property
    def accounting(self) -> bool:
        """Whether the accounting file is used to look up finished jobs."""
        return self._accounting

    def jobSubmit(
        self,
        script: str,
        depend: list[Depend] | None = None,
        args: list[str] | None = None,
        env_vars: dict[str, str] | None = None,
        work_dir: Path | None = None,
    ) -> str:
        command_args = list(args or []) + SGE._translateDependencies(depend)

        output = self._call(
            "qsub", command_args, stdin=script, env_vars=env_vars, work_dir=work_dir
        )

        if not (job_id := parse_qsub_output(output)):
            raise BQError(f"Could not obtain job id from qsub output: '{output.strip()}'.")

        logger.debug(f"Submitted job '{job_id}'.")
        return job_id

    def getJobInfo(self, job_id: str, now: datetime | None = None) -> JobInfo | None:
        historical = self.getHistoricalJobInfo if self._accounting else None
        return BatchInterface._lookupJob(
            job_id, lambda id: self._getListedJob(id, now), historical
        )

    def getEnqueuedJobInfo(self, job_id: str, now: datetime | None = None) -> JobInfo:
        """
        Retrieve information about a job from the qstat listing only.

        A job that is not listed is reported as completed; the accounting file
        is never consulted.

        Args:
            job_id (str): Identifier of the job.
            now (datetime | None): Current time used to compute the wallclock time
                of running jobs. Defaults to `datetime.now()`.

        Returns:
            JobInfo: Information about the job.
        """
        info = BatchInterface._lookupJob(
            job_id, lambda id: self._getListedJob(id, now), None
        )
        assert info is not None
        return info

    def getHistoricalJobInfo(self, job_id: str) -> JobInfo | None:
        """
        Retrieve information about a finished job from the accounting file.

        Args:
            job_id (str): Identifier of the job.

        Returns:
            JobInfo | None: Information about the job or None if qacct has no record of it.

        Raises:
            ProcessError: If qacct fails for any other reason than a missing record.
        """
        try:
            output = self._call("qacct", ["-j", job_id])
        except ProcessError as e:
            if re.search(CFG.sge_options.qacct_not_found_pattern, e.stderr):
                logger.debug(f"qacct has no record of job '{job_id}'.")
                return None
            raise

        if not (record := parse_qacct_output(output)):
            logger.debug(f"qacct returned an empty record for job '{job_id}'.")
            return None

        return SGE._qacctToJobInfo(job_id, record)

    def getAllJobInfo(
        self, owner: str | None = None, now: datetime | None = None
    ) -> list[JobInfo]:
        output = self._call("qstat", ["-r", "-xml", "-u", owner or "*"])

        return [SGE._qstatToJobInfo(job, now) for job in parse_qstat_xml(output)]

    def jobHold(self, job_id: str) -> None:
        self._call("qhold", [job_id])

    def jobRelease(self, job_id: str) -> None:
        self._call("qrls", [job_id])

    def jobDelete(self, job_id: str) -> None:
        self._call("qdel", [job_id])

    def _getListedJob(self, job_id: str, now: datetime | None) -> JobInfo | None:
        """
        Find a job in the qstat listing.

        qstat cannot report a single queued job, so all jobs are listed and filtered.

        Returns:
            JobInfo | None: Information about the job or None if it is not listed.
        """
        return next(
            (info for info in self.getAllJobInfo(now=now) if info.id == job_id), None
        )

    @staticmethod
    def _translateDependencies(depend: list[Depend] | None) -> list[str]:
        """
        Convert a list of `Depend` objects into qsub arguments.

        SGE can only wait for the completion of other jobs, regardless of their
        exit status, so both 'afterok' and 'afterany' translate to `-hold_jid`.

        Raises:
            UnimplementedCapabilityError: If 'after' or 'afternotok' dependencies are requested.
        """
        grouped = Depend.collect(depend)

        for unsupported in (DependType.AFTER_START, DependType.AFTER_FAILURE):
            if unsupported in grouped:
                raise UnimplementedCapabilityError(
                    SGE.envName(), f"jobSubmit with '{unsupported}' dependency"
                )

        jobs = []
        for dep_type in (DependType.AFTER_SUCCESS, DependType.AFTER_COMPLETION):
            jobs.extend(job for job in grouped.get(dep_type, []) if job not in jobs)

        return ["-hold_jid", ",".join(jobs)] if jobs else []

    @staticmethod
    def _qstatToJobInfo(job: dict[str, Any], now: datetime | None) -> JobInfo:
        """
        Convert a job parsed from qstat XML into a JobInfo.

        Running jobs have no wallclock time in the listing; it is computed from the dispatch time.
        """
        record = dict(job)
        record["status"] = SGE.STATE_MAP.translate(record.get("status"))
        return JobInfo.fromDict(BatchInterface._deriveWallclock(record, now))

    @staticmethod
    def _qacctToJobInfo(job_id: str, record: dict[str, str]) -> JobInfo:
        """
        Convert a record parsed from qacct into a JobInfo.
        """
        slots = SGE._toInt(record.get("slots"))
        project = record.get("project")
        hostname = record.get("hostname")

        data: dict[str, Any] = {
            "id": record.get("jobnumber") or job_id,
            "status": JobStatus.COMPLETED,
            "allocated_nodes": [{"name": hostname, "procs": slots}] if hostname else [],
            "job_name": record.get("jobname"),
            "job_owner": record.get("owner"),
            "accounting_id": project if project != "NONE" else None,
            "procs": slots,
            "queue_name": record.get("qname"),
            "wallclock_time": SGE._toSeconds(record.get("ru_wallclock")),
            "cpu_time": SGE._toSeconds(record.get("cpu")),
            "submission_time": parse_qacct_time(record.get("qsub_time")),
            "dispatch_time": parse_qacct_time(record.get("start_time")),
            "native": record,
        }

        return JobInfo.fromDict(data)

    @staticmethod
    def _toInt(raw: str | None) -> int | None:
        try:
            return int(raw) if raw else None
        except ValueError:
            logger.warning(f"Could not convert '{raw}' to integer.")
            return None

    @staticmethod
    def _toSeconds(raw: str | None) -> int | None:
        if not raw:
            return None

        try:
            return duration_to_seconds(raw)
        except BQError as e:
            logger.warning(f"{e}")
            return None
