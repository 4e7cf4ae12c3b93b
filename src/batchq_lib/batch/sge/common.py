# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab


import re

from batchq_lib.core.common import datetime_to_epoch, parse_datetime
from batchq_lib.core.config import CFG
from batchq_lib.core.error import BQError
from batchq_lib.core.logger import get_logger

logger = get_logger(__name__)

_QACCT_LINE = re.compile(r"^([^\s:]+):?\s*(.*)$")


def parse_qacct_output(text: str) -> dict[str, str]:
    """
    Parse an accounting record printed by `qacct -j` into a dictionary.

    Lines have the form `key value`, `key: value` or `key:value`. Separator lines
    consisting of '=' are skipped. If qacct prints several records
    (e.g. for a reused job ID), only the first one is parsed.

    Returns:
        dict[str, str]: Dictionary mapping keys to values.
    """
    result: dict[str, str] = {}

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith("="):
            # a separator after some parsed lines starts the next record
            if result:
                break
            continue

        if match := _QACCT_LINE.match(line):
            result[match.group(1)] = (match.group(2) or "").strip()

    logger.debug(f"Parsed qacct record: {result}.")
    return result


def parse_qacct_time(raw: str | None) -> int | None:
    """
    Convert a timestamp from qacct output to epoch seconds.

    The format depends on the version and locale of SGE; all formats in
    `CFG.date_formats.sge_qacct` are tried.

    Returns:
        int | None: Epoch seconds or None if the timestamp is missing or cannot be parsed.
    """
    if not raw or raw.strip() in ("-/-", "NONE"):
        return None

    try:
        return datetime_to_epoch(parse_datetime(raw, CFG.date_formats.sge_qacct))
    except BQError as e:
        logger.warning(f"{e}")
        return None


def parse_qsub_output(text: str) -> str | None:
    """
    Extract the job ID from the output of qsub.

    Examples:
        'Your job 1234 ("job") has been submitted' -> "1234"
        'Your job-array 1234.1-10:1 ("job") has been submitted' -> "1234"

    Returns:
        str | None: The job ID or None if the output does not contain it.
    """
    if match := re.search(r"Your job(?:-array)? (\d+)", text):
        return match.group(1)

    # `qsub -terse` prints just the ID
    if re.fullmatch(r"\d+(?:\.\S+)?", stripped := text.strip()):
        return stripped.split(".")[0]

    return None
