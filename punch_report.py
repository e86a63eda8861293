"""
Monthly attendance report built from the cells of Jobcan's attendance page.

The page is read by SeleniumSessionDriver.read_month(); everything here works
on plain strings so it can be tested without a browser.
"""

import csv
import re
from dataclasses import dataclass, field
from typing import List, Optional, TextIO

# Columns of the punched-data table: date, holiday, start, end, break.
COLUMN_DATE = 0
COLUMN_HOLIDAY = 1
COLUMN_START_TIME = 2
COLUMN_END_TIME = 3
COLUMN_BREAK_TIME = 4
COLUMNS_COUNT = 5

# Rows of the totals table: 実労働時間 (worked so far), 月規定労働時間 (expected).
ROW_WORKED_SO_FAR = 0
ROW_WORKED_EXPECTED = 1

CSV_DELIMITER = ";"

_CLOCK = re.compile(r"(\d{2}):(\d{2})")


@dataclass
class AttendanceSheet:
    """Raw cell text of one month, as scraped."""
    title: str = ""
    day_rows: List[List[str]] = field(default_factory=list)
    total_rows: List[List[str]] = field(default_factory=list)


@dataclass
class DayRecord:
    date: str
    holiday: str
    start: str
    end: str
    break_time: str
    # Worked minutes without breaks; None when the day is not countable.
    worked_minutes: Optional[int] = None


@dataclass
class MonthReport:
    title: str
    days: List[DayRecord]
    punched_minutes: int = 0
    break_minutes: int = 0
    jobcan_worked: Optional[str] = None
    jobcan_expected: Optional[str] = None

    @property
    def net_minutes(self) -> int:
        return self.punched_minutes - self.break_minutes


def calc_minutes(text: str) -> Optional[int]:
    """Minutes since 00:00 for an ``HH:MM`` cell, e.g. 06:45 -> 405.

    Anything else (blank, 勤務中, 0:0, 11:mm) gives None.
    """
    match = _CLOCK.fullmatch((text or "").strip())
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59:
        return None
    return hours * 60 + minutes


def hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def build_month_report(sheet: AttendanceSheet) -> MonthReport:
    report = MonthReport(title=sheet.title, days=[])
    for cells in sheet.day_rows:
        if len(cells) < COLUMNS_COUNT:
            continue
        day = DayRecord(
            date=cells[COLUMN_DATE],
            holiday=cells[COLUMN_HOLIDAY],
            start=cells[COLUMN_START_TIME],
            end=cells[COLUMN_END_TIME],
            break_time=cells[COLUMN_BREAK_TIME],
        )
        report.days.append(day)

        start, end = calc_minutes(day.start), calc_minutes(day.end)
        # Days still in progress (勤務中) or without punches are listed, not counted.
        if start is None or end is None or end < start:
            continue
        break_minutes = calc_minutes(day.break_time) or 0
        day.worked_minutes = end - start - break_minutes
        report.punched_minutes += end - start
        report.break_minutes += break_minutes

    if len(sheet.total_rows) > ROW_WORKED_EXPECTED:
        worked, expected = sheet.total_rows[ROW_WORKED_SO_FAR], sheet.total_rows[ROW_WORKED_EXPECTED]
        report.jobcan_worked = worked[0] if worked else None
        report.jobcan_expected = expected[0] if expected else None
    return report


def format_report(report: MonthReport) -> List[str]:
    lines = []
    if report.title:
        lines += ["---------------------------", f"Data for {report.title}", "---------------------------"]
    for day in report.days:
        lines.append(f"{day.date}: {day.start} - {day.end} (break: {day.break_time})")

    if report.jobcan_worked is not None:
        lines += [
            "------------ Jobcan says ---------------",
            f"Worked  : {report.jobcan_worked}",
            f"Expected: {report.jobcan_expected or ''}",
            "----------------------------------------",
        ]
    if report.punched_minutes > 0:
        lines.append(
            f"Total amount of time worked: {report.punched_minutes} minutes, or {hhmm(report.punched_minutes)} hh:mm "
            f"(breaks: {hhmm(report.break_minutes)})"
        )
        lines.append(
            f"Total amount of time worked (ignoring breaks): {report.net_minutes} minutes, "
            f"or {hhmm(report.net_minutes)} hh:mm"
        )
    return lines


def write_csv(report: MonthReport, out: TextIO) -> None:
    """date;start;end;break;worked (hh:mm without breaks), counted days only."""
    writer = csv.writer(out, delimiter=CSV_DELIMITER, lineterminator="\n")
    for day in report.days:
        if day.worked_minutes is None:
            continue
        writer.writerow([day.date, day.start, day.end, day.break_time, hhmm(day.worked_minutes)])
