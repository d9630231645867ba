"""
Time records track how long a task spent in a stage. A record is opened when the task
enters the stage and closed when it leaves, and the records of a whole workflow run
can be summed once the run reaches its end. Records are plain values; the caller
decides where they live and which of them belong to the same run.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import attr

DEFAULT_DURATION_FORMAT = "HH:mm:ss"

_DURATION_TOKENS = re.compile(r"\[([^\]]*)\]|HH|H|mm|m|ss|s")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@attr.s(auto_attribs=True, frozen=True)
class TimeRecord:
    """Time spent by a task in one stage.

    :ivar str stage_id: The stage the record belongs to.
    :ivar Optional[str] sub_stage_id: The sub-stage the record belongs to, if any.
    :ivar datetime started_at: When the task entered the stage.
    :ivar Optional[timedelta] elapsed: How long the task stayed, once it has left.
    """

    stage_id: str
    sub_stage_id: Optional[str]
    started_at: datetime
    elapsed: Optional[timedelta] = None

    @property
    def is_closed(self) -> bool:
        return self.elapsed is not None


def start(
    stage_id: str, sub_stage_id: Optional[str] = None, now: Optional[datetime] = None
) -> TimeRecord:
    """Open a record for a task entering a stage.

    :param stage_id: The stage being entered.
    :param sub_stage_id: The sub-stage being entered, if any.
    :param now: When the stage was entered. Defaults to the current time in UTC.
    :return: An open record.
    """
    return TimeRecord(stage_id, sub_stage_id, now or _now())


def close(record: TimeRecord, now: Optional[datetime] = None) -> TimeRecord:
    """Close a record for a task leaving its stage.

    Closing a record that is already closed returns it unchanged.

    :param record: The record to close.
    :param now: When the stage was left. Defaults to the current time in UTC.
    :return: The closed record.
    """
    if record.is_closed:
        return record
    return attr.evolve(record, elapsed=(now or _now()) - record.started_at)


def aggregate(records: Iterable[TimeRecord]) -> timedelta:
    """Sum the elapsed time of a set of records, counting open records as zero.

    >>> aggregate([])
    datetime.timedelta(0)
    """
    return sum((r.elapsed for r in records if r.elapsed is not None), timedelta())


def format_duration(delta: timedelta, fmt: str = DEFAULT_DURATION_FORMAT) -> str:
    """Render a duration with ``H``/``HH``, ``m``/``mm`` and ``s``/``ss`` tokens.

    Hours are not wrapped at a day, and negative durations render as zero. Every
    ``H``, ``m`` and ``s`` outside of square brackets is a token, so literal text
    containing those letters has to be escaped as ``[text]``.

    >>> format_duration(timedelta(hours=2, minutes=5, seconds=9))
    '02:05:09'
    >>> format_duration(timedelta(days=1, minutes=30), "H:mm")
    '24:30'
    >>> format_duration(timedelta(seconds=-5))
    '00:00:00'
    >>> format_duration(timedelta(hours=1, minutes=5), "H [hrs] m [mins]")
    '1 hrs 5 mins'
    """
    total_seconds = max(int(delta.total_seconds()), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    values = {"H": hours, "m": minutes, "s": seconds}

    def replace(match: "re.Match") -> str:
        if match.group(1) is not None:
            return match.group(1)
        token = match.group(0)
        value = values[token[0]]
        return f"{value:02d}" if len(token) == 2 else str(value)

    return _DURATION_TOKENS.sub(replace, fmt)
