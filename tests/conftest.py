"""Shared pytest fixtures and test helpers for jobcan-punch tests."""

from __future__ import annotations

from datetime import date, time
from pathlib import Path

import pytest

from punch_actions import SessionDriver, SubmitStatus
from punch_config import Configuration, Credentials, RetrySettings, ScheduleSettings
from punch_report import AttendanceSheet
from punch_schedule import PunchIntent


class FakeSite:
    """Stands in for Jobcan's stored punches so repeated runs see earlier ones."""

    def __init__(self) -> None:
        self.punched: dict[date, PunchIntent] = {}
        self.insert_count = 0


class FakeSessionDriver(SessionDriver):
    """SessionDriver whose verbs follow a script of errors before succeeding.

    ``script`` maps a verb name to a list of exceptions raised on consecutive
    calls; once the list is used up the verb succeeds.
    """

    def __init__(self, site: FakeSite | None = None, script: dict | None = None) -> None:
        self.site = site or FakeSite()
        self.script = {name: list(errors) for name, errors in (script or {}).items()}
        self.calls: list[str] = []
        self.fields: dict[str, time] = {}
        self.close_count = 0
        self.months: list = []
        self.sheet = AttendanceSheet(
            title="2024年03月",
            day_rows=[["03/01(金)", "", "09:00", "18:00", "01:00"]],
            total_rows=[["08:00"], ["168:00"]],
        )

    def _play(self, name: str) -> None:
        self.calls.append(name)
        pending = self.script.get(name)
        if pending:
            raise pending.pop(0)

    def login(self, credentials: Credentials) -> None:
        self._play("login")

    def navigate_to_timesheet(self, day: date) -> None:
        self._play("navigate_to_timesheet")

    def set_time_field(self, field: str, value: time) -> None:
        self._play(f"set_time_field:{field}")
        self.fields[field] = value

    def submit(self, intent: PunchIntent) -> SubmitStatus:
        self._play("submit")
        if intent.date in self.site.punched:
            return SubmitStatus.ALREADY_PUNCHED
        self.site.insert_count += 1
        self.site.punched[intent.date] = intent
        return SubmitStatus.CONFIRMED

    def read_month(self, year=None, month=None) -> AttendanceSheet:
        self._play("read_month")
        self.months.append((year, month))
        return self.sheet

    def open_modify_page(self) -> None:
        self._play("open_modify_page")

    def close(self) -> None:
        self.calls.append("close")
        self.close_count += 1


class RecordingNotifier:
    def __init__(self, raises: Exception | None = None) -> None:
        self.results = []
        self.raises = raises

    def notify(self, result):
        self.results.append(result)
        if self.raises is not None:
            raise self.raises
        return True


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(login="taro@example.com", password="hunter2")


@pytest.fixture
def intent() -> PunchIntent:
    return PunchIntent(date=date(2024, 3, 4), clock_in=time(9, 0), clock_out=time(18, 0), note="work start")


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def config(credentials: Credentials) -> Configuration:
    return Configuration(
        credentials=credentials,
        retry=RetrySettings(max_retries=2, delay_seconds=0),
        schedule=ScheduleSettings(),
    )


@pytest.fixture
def schedule_csv(tmp_path: Path) -> Path:
    path = tmp_path / "schedule.csv"
    path.write_text(
        "date,clock_in,clock_out,note\n"
        "2024-03-01,08:30,17:30,\n"
        "2024-03-04,09:00,18:00,\n"
        "2024-03-05,0945,1900,remote\n"
        "2024-03-06,10:00,,\n"
        "2024-03-07,18:00,09:00,\n",
        encoding="utf-8",
    )
    return path
