# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Exception types used throughout batchq.

This module defines the batchq-specific exceptions: the common recoverable
error, failures of external batch-system commands, mismatches between the
expected and actual format of command output, and the capability error raised
when a batch system does not support an operation. Each exception carries an
associated exit code that callers may use to report failures consistently.

Note that "no record exists" is not an exception: lookups signal it by
returning `None`.
"""

from collections.abc import Sequence

from .config import CFG


class BQError(Exception):
    """Common exception type for all recoverable batchq errors."""

    exit_code = CFG.exit_codes.default


class ProcessError(BQError):
    """Raised when an external batch-system command exits unsuccessfully."""

    exit_code = CFG.exit_codes.process

    def __init__(self, command: Sequence[str], returncode: int | None, stderr: str):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr

        super().__init__(
            f"Command '{' '.join(self.command)}' failed with exit code {returncode}: {stderr}"
        )


class SchemaMismatchError(BQError):
    """
    Raised when the output of a batch-system command does not have the expected layout.

    This usually indicates that the batch system was upgraded to a version
    producing output that batchq does not understand.
    """

    exit_code = CFG.exit_codes.schema_mismatch

    def __init__(self, expected: Sequence[str], actual: Sequence[str]):
        self.expected = list(expected)
        self.actual = list(actual)

        super().__init__(
            f"Output in different format than expected: {self.actual} instead of {self.expected}."
        )


class UnimplementedCapabilityError(NotImplementedError):
    """
    Raised when an operation is not supported by the batch system.

    This is not a `BQError`: it signals a missing capability, not a failure,
    and retrying the operation will never succeed.
    """

    exit_code = CFG.exit_codes.unimplemented

    def __init__(self, batch_system: str, operation: str):
        self.batch_system = batch_system
        self.operation = operation

        super().__init__(
            f"Operation '{operation}' is not implemented for the batch system '{batch_system}'."
        )
