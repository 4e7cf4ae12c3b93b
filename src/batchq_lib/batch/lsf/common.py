# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

import re
from datetime import datetime

from batchq_lib.core.common import datetime_to_epoch, hhmmss_to_seconds
from batchq_lib.core.config import CFG
from batchq_lib.core.error import BQError, SchemaMismatchError
from batchq_lib.core.logger import get_logger
from batchq_lib.properties.info import NodeInfo

logger = get_logger(__name__)

# header of `bjobs -w -W`
BJOBS_HEADER: list[str] = [
    "JOBID",
    "USER",
    "STAT",
    "QUEUE",
    "FROM_HOST",
    "EXEC_HOST",
    "JOB_NAME",
    "SUBMIT_TIME",
    "PROJ_NAME",
    "CPU_USED",
    "MEM",
    "SWAP",
    "PIDS",
    "START_TIME",
    "FINISH_TIME",
]

# keys of the parsed records, in the order of the columns
BJOBS_FIELDS: list[str] = [
    "id",
    "user",
    "status",
    "queue",
    "from_host",
    "exec_host",
    "name",
    "submit_time",
    "project",
    "cpu_used",
    "mem",
    "swap",
    "pids",
    "start_time",
    "finish_time",
]

# columns before and after the job name
_LEADING_COLUMNS = BJOBS_FIELDS.index("name")
_TRAILING_COLUMNS = len(BJOBS_FIELDS) - _LEADING_COLUMNS - 1


def parse_bjobs_output(text: str) -> list[dict[str, str | None]]:
    """
    Parse the table printed by `bjobs -w -W` into a list of dictionaries.

    If bjobs reports that no jobs were found, a list containing a single empty
    dictionary is returned.

    The job name is the only column that may contain spaces. If a line has more
    columns than expected, the surplus columns are assumed to be words of the job name.
    This breaks if any other column ever contains whitespace.

    The placeholder '-' is converted to None.

    Args:
        text (str): Output of bjobs.

    Returns:
        list[dict[str, str | None]]: One dictionary per job, with keys from `BJOBS_FIELDS`.

    Raises:
        SchemaMismatchError: If the header of the table does not match `BJOBS_HEADER`.
    """
    if any(marker in text for marker in CFG.lsf_options.no_jobs_markers):
        logger.debug("bjobs reported no jobs.")
        return [{}]

    lines = [line for line in text.splitlines() if line.strip()]
    header = lines[0].split() if lines else []
    if header != BJOBS_HEADER:
        raise SchemaMismatchError(BJOBS_HEADER, header)

    jobs = []
    for line in lines[1:]:
        values = line.split()

        if len(values) > len(BJOBS_FIELDS):
            values = (
                values[:_LEADING_COLUMNS]
                + [" ".join(values[_LEADING_COLUMNS:-_TRAILING_COLUMNS])]
                + values[-_TRAILING_COLUMNS:]
            )

        # lines with missing columns are assigned positionally, the rest is None
        job: dict[str, str | None] = dict.fromkeys(BJOBS_FIELDS)
        for key, value in zip(BJOBS_FIELDS, values):
            job[key] = None if value == "-" else value

        jobs.append(job)

    logger.debug(f"Parsed {len(jobs)} jobs from bjobs output.")
    return jobs


def parse_bsub_output(text: str) -> str | None:
    """
    Extract the job ID from the output of bsub.

    Example:
        "Job <1234> is submitted to default queue <normal>." -> "1234"

    Returns:
        str | None: The job ID or None if the output does not contain it.
    """
    if match := re.search(r"Job <([^>]+)>", text):
        return match.group(1)

    return None


def parse_exec_host(raw: str | None) -> list[NodeInfo]:
    """
    Convert the EXEC_HOST column of bjobs into a list of nodes.

    Supports both `4*node1:2*node2` and `node1:node1:node2` forms. Each node
    appears once, in the order of its first occurrence, with the number of
    processors summed over its occurrences.

    Args:
        raw (str | None): Value of the EXEC_HOST column.

    Returns:
        list[NodeInfo]: The allocated nodes. Empty if the job has no nodes.
    """
    if not raw:
        return []

    procs: dict[str, int] = {}
    for item in raw.split(":"):
        if not (item := item.strip()):
            continue

        count, _, host = item.rpartition("*")
        try:
            procs[host] = procs.get(host, 0) + (int(count) if count else 1)
        except ValueError as e:
            raise BQError(f"Invalid EXEC_HOST specification '{raw}'.") from e

    return [NodeInfo(name=host, procs=n) for host, n in procs.items()]


def parse_lsf_time(raw: str | None, now: datetime | None = None) -> int | None:
    """
    Convert a timestamp from `bjobs -W` to epoch seconds.

    bjobs does not report the year, so the year of `now` is used. If that
    places the timestamp in the future, the previous year is used instead.
    Trailing markers ('E' for estimated, 'L' for limit) are ignored.

    Args:
        raw (str | None): Timestamp in the format 'MM/DD-HH:MM:SS'.
        now (datetime | None): Current time. Defaults to `datetime.now()`.

    Returns:
        int | None: Epoch seconds or None if the timestamp is missing or invalid.
    """
    if not raw:
        return None

    now = now or datetime.now()
    cleaned = raw.strip().rstrip("EL").strip()

    try:
        # include the year in the parsed string to avoid a leap day without a year
        time = datetime.strptime(f"{now.year}/{cleaned}", f"%Y/{CFG.date_formats.lsf}")
        if time > now:
            time = time.replace(year=now.year - 1)
    except ValueError as e:
        logger.warning(f"Could not parse LSF timestamp '{raw}': {e}.")
        return None

    return datetime_to_epoch(time)


def parse_cpu_used(raw: str | None) -> int | None:
    """
    Convert the CPU_USED column of bjobs ('HHH:MM:SS.ss') to whole seconds.

    Returns:
        int | None: CPU time in seconds or None if it is missing or invalid.
    """
    if not raw:
        return None

    try:
        return hhmmss_to_seconds(raw)
    except BQError as e:
        logger.warning(f"Could not parse CPU time: {e}")
        return None
