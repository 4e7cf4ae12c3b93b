# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import pytest

from batchq_lib.core.config import CFG
from batchq_lib.core.error import (
    BQError,
    ProcessError,
    SchemaMismatchError,
    UnimplementedCapabilityError,
)


def test_process_error_attributes():
    error = ProcessError(["qstat", "-xml"], 1, "cannot connect")

    assert isinstance(error, BQError)
    assert error.command == ["qstat", "-xml"]
    assert error.returncode == 1
    assert error.stderr == "cannot connect"
    assert "qstat -xml" in str(error)
    assert "cannot connect" in str(error)
    assert error.exit_code == CFG.exit_codes.process


def test_schema_mismatch_error_message():
    error = SchemaMismatchError(["JOBID", "USER"], ["JOB", "USER"])

    assert isinstance(error, BQError)
    assert error.expected == ["JOBID", "USER"]
    assert error.actual == ["JOB", "USER"]
    assert str(error) == (
        "Output in different format than expected: "
        "['JOB', 'USER'] instead of ['JOBID', 'USER']."
    )
    assert error.exit_code == CFG.exit_codes.schema_mismatch


def test_unimplemented_capability_error_is_not_bq_error():
    error = UnimplementedCapabilityError("LSF", "jobHold")

    assert isinstance(error, NotImplementedError)
    assert not isinstance(error, BQError)
    assert error.batch_system == "LSF"
    assert error.operation == "jobHold"
    assert "jobHold" in str(error) and "LSF" in str(error)
    assert error.exit_code == CFG.exit_codes.unimplemented


def test_bq_error_default_exit_code():
    with pytest.raises(BQError) as exc_info:
        raise BQError("failure")

    assert exc_info.value.exit_code == CFG.exit_codes.default
