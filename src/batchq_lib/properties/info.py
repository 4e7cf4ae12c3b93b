# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Canonical, batch-system independent description of a job.

This module defines the `JobInfo` dataclass which every batch-system backend
produces from its own command output, together with `NodeInfo` describing
a single allocated node and `NativeInfo`, a read-only hashable mapping used
to carry the raw backend record alongside the canonical fields.

`JobInfo` instances are immutable. They are constructed once from a parsed
command output using `JobInfo.fromDict`, which performs all the conversions
of raw values (strings, epoch seconds) into typed fields.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Self

import yaml

from batchq_lib.core.common import load_yaml_dumper
from batchq_lib.core.error import BQError
from batchq_lib.core.logger import get_logger

from .states import JobStatus

logger = get_logger(__name__)

Dumper: type[yaml.SafeDumper] = load_yaml_dumper()


class NativeInfo(Mapping[str, Any]):
    """
    Read-only, hashable mapping storing the raw job record of a batch system.

    Nested mappings and lists are converted to `NativeInfo` and tuples so that
    the whole structure is hashable.
    """

    def __init__(self, data: Mapping[str, Any] | None = None):
        self._data = {str(k): NativeInfo._freeze(v) for k, v in (data or {}).items()}

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __hash__(self) -> int:
        return hash(frozenset(self._data.items()))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return self._data == dict(other.items())
        return NotImplemented

    def __repr__(self) -> str:
        return f"NativeInfo({self._data!r})"

    def toDict(self) -> dict[str, Any]:
        """
        Convert the mapping back into plain (mutable) Python containers.

        Returns:
            dict[str, Any]: A dictionary with nested `NativeInfo` converted to dicts
            and tuples converted to lists.
        """
        return {k: NativeInfo._thaw(v) for k, v in self._data.items()}

    @staticmethod
    def _freeze(value: Any) -> Any:
        if isinstance(value, NativeInfo):
            return value
        if isinstance(value, Mapping):
            return NativeInfo(value)
        if isinstance(value, list | tuple):
            return tuple(NativeInfo._freeze(v) for v in value)
        return value

    @staticmethod
    def _thaw(value: Any) -> Any:
        if isinstance(value, NativeInfo):
            return value.toDict()
        if isinstance(value, tuple):
            return [NativeInfo._thaw(v) for v in value]
        return value


@dataclass(frozen=True)
class NodeInfo:
    """
    A node allocated to a job.
    """

    # Hostname of the node
    name: str

    # Number of processors used on this node
    procs: int | None = None

    @classmethod
    def fromDict(cls, data: Mapping[str, Any] | Self) -> Self:
        """
        Create a NodeInfo from a mapping with the keys 'name' and (optionally) 'procs'.
        """
        if isinstance(data, NodeInfo):
            return data

        try:
            procs = data.get("procs")
            return cls(
                name=str(data["name"]),
                procs=None if procs is None else int(procs),
            )
        except Exception as e:
            raise BQError(f"Invalid node description '{data}': {e}.") from e

    def toDict(self) -> dict[str, Any]:
        """Return the node as a dictionary."""
        return {"name": self.name, "procs": self.procs}


@dataclass(frozen=True)
class JobInfo:
    """
    Immutable description of a job as reported by a batch system.

    Two instances are equal (and hash equally) if all their fields are equal,
    including the native record.
    """

    # Job identifier inside the batch system
    id: str

    # Canonical state of the job
    status: JobStatus

    # Nodes allocated to the job
    allocated_nodes: tuple[NodeInfo, ...] = ()

    # Host from which the job was submitted
    submit_host: str | None = None

    # Name of the job
    job_name: str | None = None

    # Owner of the job
    job_owner: str | None = None

    # Account or project the job is charged against
    accounting_id: str | None = None

    # Total number of allocated processors
    procs: int | None = None

    # Queue in which the job was queued or started
    queue_name: str | None = None

    # Accumulated wall clock time in seconds
    wallclock_time: int | None = None

    # Wall clock time limit in seconds
    wallclock_limit: int | None = None

    # Accumulated CPU time in seconds
    cpu_time: int | None = None

    # Time at which the job was submitted
    submission_time: datetime | None = None

    # Time at which the job started running
    dispatch_time: datetime | None = None

    # Raw record reported by the batch system
    native: NativeInfo = field(default_factory=NativeInfo)

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id.strip():
            raise BQError(f"Job id must be a non-empty string, got '{self.id}'.")

        if not isinstance(self.status, JobStatus):
            raise BQError(
                f"Job status must be a JobStatus, got '{self.status}'. Use JobInfo.fromDict to convert raw values."
            )

        for name in ("procs", "wallclock_time", "wallclock_limit", "cpu_time"):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, int) or value < 0):
                raise BQError(
                    f"Attribute '{name}' must be a non-negative integer, got '{value}'."
                )

        # frozen dataclass: normalize containers using object.__setattr__
        object.__setattr__(
            self,
            "allocated_nodes",
            tuple(NodeInfo.fromDict(node) for node in self.allocated_nodes),
        )
        if not isinstance(self.native, NativeInfo):
            object.__setattr__(self, "native", NativeInfo(self.native))

    @classmethod
    def fromDict(cls, data: Mapping[str, Any]) -> Self:
        """
        Construct a JobInfo from a dictionary of (possibly raw) values.

        Performs all conversions needed to turn values obtained by parsing
        the output of batch-system commands into typed fields:
        - `status` may be a JobStatus or a canonical status name,
        - integer fields may be numeric strings,
        - timestamps may be datetimes or epoch seconds,
        - nodes may be NodeInfo objects or mappings.

        Keys that do not correspond to any field are ignored.

        Args:
            data (Mapping[str, Any]): Dictionary describing the job.

        Returns:
            Self: A new instance of JobInfo.

        Raises:
            BQError: If a value cannot be converted or the id or status is missing.
        """
        known = {f.name for f in fields(cls)}
        if unknown := [k for k in data if k not in known]:
            logger.debug(f"Ignoring unknown job attributes: {unknown}.")

        if "id" not in data or "status" not in data:
            raise BQError(f"Job description must contain 'id' and 'status': {data}.")

        status = data["status"]
        if not isinstance(status, JobStatus):
            status = JobStatus.fromStr(status)

        return cls(
            id=str(data["id"]),
            status=status,
            allocated_nodes=tuple(
                NodeInfo.fromDict(n) for n in data.get("allocated_nodes") or ()
            ),
            submit_host=JobInfo._toStr(data.get("submit_host")),
            job_name=JobInfo._toStr(data.get("job_name")),
            job_owner=JobInfo._toStr(data.get("job_owner")),
            accounting_id=JobInfo._toStr(data.get("accounting_id")),
            procs=JobInfo._toInt(data.get("procs"), "procs"),
            queue_name=JobInfo._toStr(data.get("queue_name")),
            wallclock_time=JobInfo._toInt(data.get("wallclock_time"), "wallclock_time"),
            wallclock_limit=JobInfo._toInt(
                data.get("wallclock_limit"), "wallclock_limit"
            ),
            cpu_time=JobInfo._toInt(data.get("cpu_time"), "cpu_time"),
            submission_time=JobInfo._toDatetime(data.get("submission_time")),
            dispatch_time=JobInfo._toDatetime(data.get("dispatch_time")),
            native=NativeInfo(data.get("native")),
        )

    def toDict(self) -> dict[str, Any]:
        """
        Return all fields of the job as a dictionary.

        `JobInfo.fromDict(info.toDict())` reconstructs an equal instance.
        """
        return {
            "id": self.id,
            "status": self.status,
            "allocated_nodes": [node.toDict() for node in self.allocated_nodes],
            "submit_host": self.submit_host,
            "job_name": self.job_name,
            "job_owner": self.job_owner,
            "accounting_id": self.accounting_id,
            "procs": self.procs,
            "queue_name": self.queue_name,
            "wallclock_time": self.wallclock_time,
            "wallclock_limit": self.wallclock_limit,
            "cpu_time": self.cpu_time,
            "submission_time": self.submission_time,
            "dispatch_time": self.dispatch_time,
            "native": self.native.toDict(),
        }

    def toYaml(self) -> str:
        """
        Return all information about the job in YAML format.

        Returns:
            str: YAML-formatted string of job metadata.
        """
        to_dump = self.toDict() | {"status": str(self.status)}
        return yaml.dump(
            to_dump, default_flow_style=False, sort_keys=False, Dumper=Dumper
        )

    @staticmethod
    def _toStr(value: Any) -> str | None:
        return None if value is None else str(value)

    @staticmethod
    def _toInt(value: Any, name: str) -> int | None:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None

        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise BQError(f"Could not convert '{name}' value '{value}' to integer.") from e

    @staticmethod
    def _toDatetime(value: Any) -> datetime | None:
        if value is None or isinstance(value, datetime):
            return value

        try:
            return datetime.fromtimestamp(int(float(value)))
        except (TypeError, ValueError, OverflowError, OSError) as e:
            raise BQError(f"Could not convert '{value}' to a timestamp.") from e
