# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from collections.abc import Iterator, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Self

from batchq_lib.core.error import BQError
from batchq_lib.core.logger import get_logger

logger = get_logger(__name__)


class JobStatus(Enum):
    """
    Canonical state of a job, independent of the batch system.
    """

    UNDETERMINED = 1
    COMPLETED = 2
    QUEUED_HELD = 3
    QUEUED = 4
    RUNNING = 5
    SUSPENDED = 6

    def __str__(self) -> str:
        """
        Return the lowercase string representation of the enum variant.

        Returns:
            str: The name of the state in lowercase.
        """
        return self.name.lower()

    @classmethod
    def fromStr(cls, s: str) -> Self:
        """
        Convert a string to the corresponding JobStatus enum variant.

        Args:
            s (str): Canonical name of the state (case-insensitive), e.g. "queued_held".

        Returns:
            JobStatus: Corresponding enum variant.

        Raises:
            BQError: If the string does not name a canonical state. Raw batch-system
                codes must be translated using a `StateMap` first.
        """
        try:
            return cls[str(s).strip().upper()]
        except KeyError as e:
            raise BQError(f"Unknown job status '{s}'.") from e


class StateMap(Mapping[str, JobStatus]):
    """
    Read-only translation table from raw batch-system state codes to `JobStatus`.

    Translation never fails: codes missing from the table are `UNDETERMINED`.
    """

    def __init__(self, table: Mapping[str, JobStatus]):
        self._table = MappingProxyType(dict(table))

    def __getitem__(self, code: str) -> JobStatus:
        return self._table[code]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def translate(self, code: str | None) -> JobStatus:
        """
        Translate a raw state code into a canonical job status.

        Args:
            code (str | None): Raw state code as reported by the batch system.

        Returns:
            JobStatus: The mapped status or `JobStatus.UNDETERMINED` if the code is unknown.
        """
        if code is None or (status := self._table.get(code.strip())) is None:
            logger.debug(f"Unknown state code '{code}'; treating as undetermined.")
            return JobStatus.UNDETERMINED

        return status
