# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Incremental parser of the XML job listing printed by `qstat -r -xml`.

The listing of a busy cluster can describe thousands of jobs. Instead of
building the whole document tree, `QstatXmlListener` processes parser events
as they arrive and keeps only the fields of the job currently being read.
Each `job_list` element is turned into one dictionary which is flushed to
the output when the element is closed.
"""

from collections.abc import Iterable
from enum import Enum
from typing import Any
from xml.etree.ElementTree import Element, ParseError, XMLPullParser

from batchq_lib.core.common import datetime_to_epoch, duration_to_seconds, parse_datetime
from batchq_lib.core.config import CFG
from batchq_lib.core.error import BQError
from batchq_lib.core.logger import get_logger

logger = get_logger(__name__)


class ListenerState(Enum):
    """
    State of the `QstatXmlListener`.
    """

    # Between job elements; field elements are ignored.
    OUTSIDE_JOB = 1
    # Inside a job element; fields are accumulated.
    IN_JOB = 2
    # Job element closed; the accumulated job is ready to be flushed.
    JOB_COMPLETE = 3


class QstatXmlListener:
    """
    Event-driven parser of `qstat -r -xml` output.

    Feed the output (possibly in several chunks) using `feed` and finish
    with `close`. Parsed jobs are available in `parsed_jobs` in document order.
    """

    # element enclosing a single job
    JOB_ELEMENT = "job_list"

    # elements copied directly into the job record
    SIMPLE_FIELDS: dict[str, str] = {
        "JB_job_number": "id",
        "JB_owner": "job_owner",
        "JB_name": "job_name",
        "JB_project": "accounting_id",
        "state": "status",
    }

    def __init__(self):
        self._parser = XMLPullParser(events=("start", "end"))
        self._state = ListenerState.OUTSIDE_JOB
        self._job: dict[str, Any] = {}
        self._native: dict[str, str] = {}
        self._host: str | None = None
        self._parsed_jobs: list[dict[str, Any]] = []
        # elements opened but not yet closed, from the root down
        self._open: list[Element] = []

    @property
    def state(self) -> ListenerState:
        """Current state of the listener."""
        return self._state

    @property
    def parsed_jobs(self) -> list[dict[str, Any]]:
        """Jobs parsed so far."""
        return list(self._parsed_jobs)

    def feed(self, chunk: str) -> None:
        """
        Feed a chunk of the XML document to the parser and process the resulting events.

        Raises:
            BQError: If the document is not well-formed.
        """
        try:
            self._parser.feed(chunk)
        except ParseError as e:
            raise BQError(f"Could not parse qstat XML output: {e}.") from e

        self._processEvents()

    def close(self) -> list[dict[str, Any]]:
        """
        Finish parsing.

        Returns:
            list[dict[str, Any]]: All parsed jobs.

        Raises:
            BQError: If the document is incomplete or not well-formed.
        """
        try:
            self._parser.close()
        except ParseError as e:
            raise BQError(f"Could not parse qstat XML output: {e}.") from e

        self._processEvents()
        logger.debug(f"Parsed {len(self._parsed_jobs)} jobs from qstat XML output.")
        return self.parsed_jobs

    def _processEvents(self) -> None:
        for event, element in self._parser.read_events():
            if event == "start":
                self._open.append(element)
                self._onStart(element)
            else:
                self._onEnd(element)
                self._release(element)

    def _release(self, element: Element) -> None:
        """
        Detach a closed element from its parent so that the document tree
        only ever holds the path of currently open elements.
        """
        self._open.pop()
        if self._open:
            self._open[-1].remove(element)

    def _onStart(self, element: Element) -> None:
        if element.tag != QstatXmlListener.JOB_ELEMENT:
            return

        if self._state != ListenerState.OUTSIDE_JOB:
            raise BQError("Could not parse qstat XML output: nested job elements.")

        self._state = ListenerState.IN_JOB
        self._job = {}
        self._native = {}
        self._host = None
        if state := element.get("state"):
            self._native["job_list.state"] = state

    def _onEnd(self, element: Element) -> None:
        if self._state != ListenerState.IN_JOB:
            return

        if element.tag == QstatXmlListener.JOB_ELEMENT:
            self._state = ListenerState.JOB_COMPLETE
            self._flush()
        else:
            self._onField(element)

    def _onField(self, element: Element) -> None:
        text = (element.text or "").strip()
        tag = element.tag

        if tag == "hard_request":
            name = element.get("name", "")
            self._native[f"hard_request.{name}"] = text
            if name == "h_rt" and text:
                self._job["wallclock_limit"] = self._toSeconds(text)
            return

        self._native[tag] = text
        if not text:
            return

        if key := QstatXmlListener.SIMPLE_FIELDS.get(tag):
            self._job[key] = text
        elif tag == "slots":
            try:
                self._job["procs"] = int(text)
            except ValueError:
                logger.warning(f"Invalid number of slots '{text}'.")
        elif tag == "queue_name":
            # running jobs report the queue instance as 'queue@host'
            queue, _, host = text.partition("@")
            self._job["queue_name"] = queue
            self._host = host or None
        elif tag == "hard_req_queue":
            self._job.setdefault("queue_name", text)
        elif tag == "JB_submission_time":
            self._job["submission_time"] = self._toEpoch(text)
        elif tag == "JAT_start_time":
            self._job["dispatch_time"] = self._toEpoch(text)

    def _flush(self) -> None:
        job = self._job
        if self._host:
            job["allocated_nodes"] = [{"name": self._host, "procs": job.get("procs")}]
        job["native"] = self._native

        self._parsed_jobs.append(job)
        self._job = {}
        self._native = {}
        self._host = None
        self._state = ListenerState.OUTSIDE_JOB

    @staticmethod
    def _toEpoch(raw: str) -> int | None:
        fmt = CFG.date_formats.sge_xml
        try:
            return datetime_to_epoch(parse_datetime(raw, [fmt, f"{fmt}.%f"]))
        except BQError as e:
            logger.warning(f"{e}")
            return None

    @staticmethod
    def _toSeconds(raw: str) -> int | None:
        try:
            return duration_to_seconds(raw)
        except BQError as e:
            logger.warning(f"Could not parse the wallclock limit: {e}")
            return None


def parse_qstat_xml(output: str | Iterable[str]) -> list[dict[str, Any]]:
    """
    Parse the output of `qstat -r -xml` into a list of job dictionaries.

    Args:
        output (str | Iterable[str]): The whole output or an iterable of its chunks.

    Returns:
        list[dict[str, Any]]: One dictionary per job, in document order.

    Raises:
        BQError: If the output is not well-formed XML.
    """
    listener = QstatXmlListener()
    for chunk in [output] if isinstance(output, str) else output:
        listener.feed(chunk)

    return listener.close()
