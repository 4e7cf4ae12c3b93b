# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Representation of job dependencies passed to batch systems on submission.

This module defines `DependType`, an enumeration of the supported dependency
conditions, and the `Depend` dataclass, which stores both the dependency type
and the referenced job IDs. Batch-system backends translate lists of `Depend`
into their own submission options.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Self

from batchq_lib.core.error import BQError
from batchq_lib.core.logger import get_logger

logger = get_logger(__name__)


class DependType(Enum):
    """
    Enumeration of supported job dependency types.
    """

    # Job may start after the other job has started.
    AFTER_START = "after"

    # Job may start after the other job has finished successfully.
    AFTER_SUCCESS = "afterok"

    # Job may start after the other job has failed.
    AFTER_FAILURE = "afternotok"

    # Job may start after the other job has terminated in any way.
    AFTER_COMPLETION = "afterany"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def fromStr(cls, string: str) -> Self:
        """
        Convert a dependency keyword ("after", "afterok", "afternotok", "afterany")
        to a `DependType`.

        Raises:
            BQError: If the keyword does not correspond to any known dependency type.
        """
        try:
            return cls(string)
        except ValueError as e:
            raise BQError(f"Unknown dependency type '{string}'") from e


@dataclass(frozen=True)
class Depend:
    """
    A dependency of a job on one or more other jobs.

    Attributes:
        type (DependType): The type of dependency.
        jobs (tuple[str, ...]): IDs of the jobs this dependency refers to.
    """

    type: DependType
    jobs: tuple[str, ...]

    @classmethod
    def fromStr(cls, raw_depend: str) -> Self:
        """
        Parse a dependency specification in the format `<type>=<job_id>[:<job_id>...]`.

        Raises:
            BQError: If the dependency string is malformed.
        """
        logger.debug(f"Depend string to parse: '{raw_depend}'.")
        try:
            raw_type, raw_jobs = raw_depend.split("=")
            jobs = tuple(job.strip() for job in raw_jobs.split(":"))
            if any(not job for job in jobs):
                raise BQError("Missing job id.")
            return cls(DependType.fromStr(raw_type.strip()), jobs)
        except Exception as e:
            raise BQError(
                f"Could not parse dependency specification '{raw_depend}': {e}."
            ) from e

    @classmethod
    def multiFromStr(cls, raw: str) -> list[Self]:
        """
        Parse several dependency specifications separated by commas and/or whitespace.
        """
        return [cls.fromStr(dep) for dep in re.split(r"[,\s]+", raw.strip()) if dep]

    @staticmethod
    def collect(depend: Iterable["Depend"] | None) -> dict[DependType, list[str]]:
        """
        Group the job IDs of several dependencies by dependency type.

        Job IDs keep their order; duplicates within one type are dropped.

        Returns:
            dict[DependType, list[str]]: Job IDs for each dependency type that is present.
        """
        grouped: dict[DependType, list[str]] = {}
        for dep in depend or []:
            ids = grouped.setdefault(dep.type, [])
            for job in dep.jobs:
                if job not in ids:
                    ids.append(job)

        return grouped

    def toStr(self) -> str:
        """
        Convert the dependency to the `<type>=<job_id1>:<job_id2>:...` format.
        """
        return f"{self.type}={':'.join(self.jobs)}"
