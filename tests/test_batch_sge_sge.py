# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import subprocess
from datetime import datetime
from unittest.mock import patch

import pytest

from batchq_lib.batch.sge import SGE
from batchq_lib.core.error import BQError, ProcessError, UnimplementedCapabilityError
from batchq_lib.properties.depend import Depend, DependType
from batchq_lib.properties.info import JobInfo, NodeInfo
from batchq_lib.properties.states import JobStatus

QSTAT_XML = """<?xml version='1.0'?>
<job_info>
  <queue_info>
    <job_list state="running">
      <JB_job_number>88</JB_job_number>
      <JB_name>simulation</JB_name>
      <JB_owner>alice</JB_owner>
      <state>r</state>
      <JAT_start_time>2024-03-01T10:05:00</JAT_start_time>
      <queue_name>all.q@node07</queue_name>
      <slots>8</slots>
      <hard_request name="h_rt" resource_contribution="0.000000">3600</hard_request>
    </job_list>
  </queue_info>
  <job_info>
    <job_list state="pending">
      <JB_job_number>89</JB_job_number>
      <JB_name>waiting</JB_name>
      <JB_owner>bob</JB_owner>
      <state>hqw</state>
      <JB_submission_time>2024-03-01T10:08:00</JB_submission_time>
      <slots>1</slots>
    </job_list>
  </job_info>
</job_info>
"""

QACCT_OUTPUT = """==============================================================
qname        all.q
hostname     node07
group        users
owner        alice
project      NONE
jobname      simulation
jobnumber    77
qsub_time    Fri Mar  1 09:00:00 2024
start_time   Fri Mar  1 09:05:00 2024
end_time     Fri Mar  1 10:05:00 2024
slots        4
exit_status  0
ru_wallclock 3600s
cpu          14000.500s
"""

NOW = datetime(2024, 3, 1, 10, 10, 0)


@pytest.fixture
def sge():
    return SGE(bin="/opt/sge/bin/lx-amd64", cluster="main", sge_root="/opt/sge")


@pytest.fixture
def sge_accounting():
    return SGE(accounting=True)


def _fake_call(qstat: str = QSTAT_XML, qacct: str | Exception = QACCT_OUTPUT):
    """Return a replacement of `SGE._call` answering qstat and qacct."""
    calls = []

    def call(binary, args=(), **kwargs):
        calls.append(binary)
        if binary == "qstat":
            return qstat
        if binary == "qacct":
            if isinstance(qacct, Exception):
                raise qacct
            return qacct
        raise AssertionError(f"unexpected binary {binary}")

    return call, calls


def test_env_name():
    assert SGE.envName() == "SGE"


def test_sge_root_exported(sge):
    assert sge._env_vars["SGE_ROOT"] == "/opt/sge"
    assert sge.accounting is False
    assert sge.cluster == "main"


def test_sge_root_not_exported_by_default():
    assert "SGE_ROOT" not in SGE()._env_vars


@patch("batchq_lib.core.process.subprocess.run")
def test_commands_run_with_sge_root(mock_run, sge):
    mock_run.return_value = subprocess.CompletedProcess(
        args=[], returncode=0, stdout="", stderr=""
    )

    sge.jobHold("88")

    args, kwargs = mock_run.call_args
    assert args[0] == ["/opt/sge/bin/lx-amd64/qhold", "88"]
    assert kwargs["env"]["SGE_ROOT"] == "/opt/sge"


@pytest.mark.parametrize(
    "code, expected",
    [
        ("r", JobStatus.RUNNING),
        ("t", JobStatus.RUNNING),
        ("Rr", JobStatus.RUNNING),
        ("qw", JobStatus.QUEUED),
        ("hqw", JobStatus.QUEUED_HELD),
        ("hRwq", JobStatus.QUEUED_HELD),
        ("s", JobStatus.SUSPENDED),
        ("S", JobStatus.SUSPENDED),
        ("dr", JobStatus.COMPLETED),
        ("Eqw", JobStatus.UNDETERMINED),
        ("xyz", JobStatus.UNDETERMINED),
    ],
)
def test_state_map(code, expected):
    assert SGE.STATE_MAP.translate(code) == expected


def test_state_map_size():
    assert len(SGE.STATE_MAP) == 32


def test_translate_dependencies():
    depend = [
        Depend(DependType.AFTER_SUCCESS, ("1", "2")),
        Depend(DependType.AFTER_COMPLETION, ("2", "3")),
    ]

    assert SGE._translateDependencies(depend) == ["-hold_jid", "1,2,3"]
    assert SGE._translateDependencies(None) == []


@pytest.mark.parametrize("dep_type", [DependType.AFTER_START, DependType.AFTER_FAILURE])
def test_translate_dependencies_unsupported(dep_type):
    with pytest.raises(UnimplementedCapabilityError) as exc_info:
        SGE._translateDependencies([Depend(dep_type, ("1",))])

    assert exc_info.value.batch_system == "SGE"


def test_job_submit(sge, tmp_path):
    with patch.object(
        SGE, "_call", return_value='Your job 1234 ("run.sh") has been submitted\n'
    ) as mock_call:
        job_id = sge.jobSubmit(
            "#!/bin/bash\n",
            depend=[Depend(DependType.AFTER_SUCCESS, ("88",))],
            args=["-q", "all.q"],
            work_dir=tmp_path,
        )

    assert job_id == "1234"
    mock_call.assert_called_once_with(
        "qsub",
        ["-q", "all.q", "-hold_jid", "88"],
        stdin="#!/bin/bash\n",
        env_vars=None,
        work_dir=tmp_path,
    )


def test_job_submit_without_job_id(sge):
    with (
        patch.object(SGE, "_call", return_value="Unable to run job: denied.\n"),
        pytest.raises(BQError, match="Could not obtain job id"),
    ):
        sge.jobSubmit("#!/bin/bash\n")


def test_get_all_job_info(sge):
    with patch.object(SGE, "_call", return_value=QSTAT_XML) as mock_call:
        jobs = sge.getAllJobInfo(now=NOW)

    mock_call.assert_called_once_with("qstat", ["-r", "-xml", "-u", "*"])

    running, pending = jobs
    assert running.id == "88"
    assert running.status == JobStatus.RUNNING
    assert running.queue_name == "all.q"
    assert running.allocated_nodes == (NodeInfo(name="node07", procs=8),)
    assert running.procs == 8
    assert running.wallclock_limit == 3600
    assert running.dispatch_time == datetime(2024, 3, 1, 10, 5, 0)
    assert running.wallclock_time == 300
    assert running.native["state"] == "r"

    assert pending.id == "89"
    assert pending.status == JobStatus.QUEUED_HELD
    assert pending.job_owner == "bob"
    assert pending.submission_time == datetime(2024, 3, 1, 10, 8, 0)
    assert pending.wallclock_time == 0


def test_get_all_job_info_for_owner(sge):
    with patch.object(SGE, "_call", return_value="<job_info/>") as mock_call:
        assert sge.getAllJobInfo(owner="bob") == []

    mock_call.assert_called_once_with("qstat", ["-r", "-xml", "-u", "bob"])


def test_get_job_info_listed(sge_accounting):
    call, calls = _fake_call()

    with patch.object(SGE, "_call", side_effect=call):
        info = sge_accounting.getJobInfo("89", now=NOW)

    assert info is not None
    assert info.status == JobStatus.QUEUED_HELD
    assert calls == ["qstat"]


def test_get_job_info_not_listed_without_accounting(sge):
    call, calls = _fake_call()

    with patch.object(SGE, "_call", side_effect=call):
        info = sge.getJobInfo("77")

    assert info == JobInfo(id="77", status=JobStatus.COMPLETED)
    assert calls == ["qstat"]


def test_get_job_info_not_listed_uses_accounting(sge_accounting):
    call, calls = _fake_call()

    with patch.object(SGE, "_call", side_effect=call):
        info = sge_accounting.getJobInfo("77")

    assert calls == ["qstat", "qacct"]
    assert info is not None
    assert info.id == "77"
    assert info.status == JobStatus.COMPLETED
    assert info.job_name == "simulation"
    assert info.job_owner == "alice"
    assert info.accounting_id is None
    assert info.queue_name == "all.q"
    assert info.allocated_nodes == (NodeInfo(name="node07", procs=4),)
    assert info.procs == 4
    assert info.wallclock_time == 3600
    assert info.cpu_time == 14000
    assert info.submission_time == datetime(2024, 3, 1, 9, 0, 0)
    assert info.dispatch_time == datetime(2024, 3, 1, 9, 5, 0)
    assert info.native["group"] == "users"


def test_get_job_info_unknown_to_accounting(sge_accounting):
    error = ProcessError(["qacct", "-j", "77"], 1, "error: job id 77 not found")
    call, _ = _fake_call(qacct=error)

    with patch.object(SGE, "_call", side_effect=call):
        assert sge_accounting.getJobInfo("77") is None
        assert sge_accounting.getJobStatus("77") == JobStatus.UNDETERMINED


def test_get_job_info_accounting_failure_propagates(sge_accounting):
    error = ProcessError(["qacct", "-j", "77"], 1, "error: accounting file not readable")
    call, _ = _fake_call(qacct=error)

    with (
        patch.object(SGE, "_call", side_effect=call),
        pytest.raises(ProcessError, match="accounting file"),
    ):
        sge_accounting.getJobInfo("77")


def test_get_enqueued_job_info_never_uses_accounting(sge_accounting):
    call, calls = _fake_call()

    with patch.object(SGE, "_call", side_effect=call):
        info = sge_accounting.getEnqueuedJobInfo("77")

    assert info == JobInfo(id="77", status=JobStatus.COMPLETED)
    assert calls == ["qstat"]


def test_get_enqueued_job_info_listed(sge):
    call, _ = _fake_call()

    with patch.object(SGE, "_call", side_effect=call):
        info = sge.getEnqueuedJobInfo("88", now=NOW)

    assert info.status == JobStatus.RUNNING
    assert info.wallclock_time == 300


def test_get_historical_job_info_project(sge):
    output = QACCT_OUTPUT.replace("project      NONE", "project      proj1")

    with patch.object(SGE, "_call", return_value=output) as mock_call:
        info = sge.getHistoricalJobInfo("77")

    mock_call.assert_called_once_with("qacct", ["-j", "77"])
    assert info is not None
    assert info.accounting_id == "proj1"


def test_get_historical_job_info_empty_output(sge):
    with patch.object(SGE, "_call", return_value=""):
        assert sge.getHistoricalJobInfo("77") is None


@pytest.mark.parametrize(
    "operation, binary",
    [("jobHold", "qhold"), ("jobRelease", "qrls"), ("jobDelete", "qdel")],
)
def test_job_control(sge, operation, binary):
    with patch.object(SGE, "_call", return_value="") as mock_call:
        getattr(sge, operation)("88")

    mock_call.assert_called_once_with(binary, ["88"])
