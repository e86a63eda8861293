"""
Turns the configured schedule sources into a PunchIntent for one date.

Sources are tried in order: a CSV row for the date, interactive answers, then
the configured default times.
"""

import csv
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import Callable, Iterable, Optional

from punch_config import Configuration
from punch_errors import ErrorKind, PunchError

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMATS = ("%H:%M", "%H%M")


@dataclass(frozen=True)
class PunchIntent:
    date: date
    clock_in: time
    clock_out: Optional[time] = None
    note: Optional[str] = None

    def __post_init__(self):
        if self.clock_out is not None and self.clock_out <= self.clock_in:
            raise PunchError(
                ErrorKind.INVALID_SCHEDULE,
                f"clock-out {self.clock_out:%H:%M} is not after clock-in {self.clock_in:%H:%M} on {self.date}",
            )


@dataclass
class ScheduleRow:
    date: str
    clock_in: str
    clock_out: str = ""
    note: str = ""


def parse_date(text: str) -> date:
    try:
        return datetime.strptime(text.strip(), DATE_FORMAT).date()
    except (AttributeError, ValueError):
        raise PunchError(ErrorKind.INVALID_SCHEDULE, f"Unable to parse the date {text!r} (expected YYYY-MM-DD)") from None


def parse_time(text: str) -> time:
    """Parse ``HH:MM`` or Jobcan's ``HHMM`` into a time of day."""
    value = (text or "").strip()
    for fmt in TIME_FORMATS:
        # strptime reads "930" as 09:30; only accept the four digit form.
        if fmt == "%H%M" and len(value) != 4:
            continue
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise PunchError(ErrorKind.INVALID_SCHEDULE, f"The time {text!r} has a wrong format. It should be HH:MM or hhmm.")


def intent_from_row(row: ScheduleRow, note: Optional[str] = None) -> PunchIntent:
    clock_out = parse_time(row.clock_out) if (row.clock_out or "").strip() else None
    return PunchIntent(
        date=parse_date(row.date),
        clock_in=parse_time(row.clock_in),
        clock_out=clock_out,
        note=(row.note or "").strip() or note,
    )


def read_schedule(path: Path) -> list:
    rows = []
    try:
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            missing = {"date", "clock_in"} - set(reader.fieldnames or [])
            if missing:
                raise PunchError(
                    ErrorKind.INVALID_SCHEDULE,
                    f"{path} is missing column(s): {', '.join(sorted(missing))}",
                )
            for record in reader:
                rows.append(
                    ScheduleRow(
                        date=(record.get("date") or "").strip(),
                        clock_in=(record.get("clock_in") or "").strip(),
                        clock_out=(record.get("clock_out") or "").strip(),
                        note=(record.get("note") or "").strip(),
                    )
                )
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise PunchError(ErrorKind.INVALID_SCHEDULE, f"Unable to read the schedule {path}: {e}") from e
    logger.debug(f"Read {len(rows)} schedule row(s) from {path}")
    return rows


def find_row(rows: Iterable[ScheduleRow], target: date) -> Optional[ScheduleRow]:
    matches = []
    for row in rows:
        try:
            row_date = datetime.strptime(row.date, DATE_FORMAT).date()
        except ValueError:
            logger.warning(f"Skipping schedule row with unreadable date {row.date!r}")
            continue
        if row_date == target:
            matches.append(row)
    if len(matches) > 1:
        logger.warning(f"{len(matches)} schedule rows for {target}; using the first one")
    return matches[0] if matches else None


def ask_for_row(target: date, prompt: Callable[[str], str]) -> Optional[ScheduleRow]:
    clock_in = prompt(f"Clock-in time for {target:%Y-%m-%d} (HH:MM): ").strip()
    if not clock_in:
        return None
    clock_out = prompt("Clock-out time (HH:MM, blank to skip): ").strip()
    return ScheduleRow(date=target.strftime(DATE_FORMAT), clock_in=clock_in, clock_out=clock_out)


def resolve_intent(target: date, config: Configuration, prompt: Callable[[str], str] = input, note: Optional[str] = None) -> PunchIntent:
    settings = config.schedule
    note = note or settings.note

    if settings.file is not None:
        if not settings.file.is_file():
            raise PunchError(ErrorKind.NO_SCHEDULE_DATA, f"Schedule file not found: {settings.file}")
        row = find_row(read_schedule(settings.file), target)
        if row is not None:
            logger.debug(f"Using schedule row for {target}: {row}")
            return intent_from_row(row, note)
        logger.info(f"No schedule row for {target} in {settings.file}")

    if settings.interactive:
        try:
            row = ask_for_row(target, prompt)
        except EOFError:
            row = None
        if row is not None:
            return intent_from_row(row, note)

    if not settings.require_schedule and settings.default_clock_in:
        logger.info(f"Using default times for {target}")
        row = ScheduleRow(
            date=target.strftime(DATE_FORMAT),
            clock_in=settings.default_clock_in,
            clock_out=settings.default_clock_out or "",
        )
        return intent_from_row(row, note)

    raise PunchError(ErrorKind.NO_SCHEDULE_DATA, f"No schedule data for {target:%Y-%m-%d}")
