"""Tests for schedule parsing and intent resolution."""

from __future__ import annotations

from datetime import date, time

import pytest

from punch_config import ScheduleSettings
from punch_errors import ErrorKind, PunchError
from punch_schedule import (
    PunchIntent,
    ScheduleRow,
    find_row,
    intent_from_row,
    parse_time,
    read_schedule,
    resolve_intent,
)


def _no_prompt(_: str) -> str:
    raise AssertionError("should not prompt")


class TestParseTime:
    @pytest.mark.parametrize("text,expected", [
        ("09:00", time(9, 0)),
        ("9:05", time(9, 5)),
        ("0700", time(7, 0)),
        ("2359", time(23, 59)),
        (" 18:30 ", time(18, 30)),
    ])
    def test_valid(self, text, expected) -> None:
        assert parse_time(text) == expected

    @pytest.mark.parametrize("text", ["", "930", "24:00", "2600", "11:mm", "mm:11", ":", "勤務中"])
    def test_invalid(self, text) -> None:
        with pytest.raises(PunchError) as exc:
            parse_time(text)
        assert exc.value.kind is ErrorKind.INVALID_SCHEDULE


class TestPunchIntent:
    def test_clock_out_must_be_after_clock_in(self) -> None:
        with pytest.raises(PunchError) as exc:
            PunchIntent(date=date(2024, 3, 4), clock_in=time(18, 0), clock_out=time(9, 0))
        assert exc.value.kind is ErrorKind.INVALID_SCHEDULE

    def test_equal_times_are_rejected(self) -> None:
        with pytest.raises(PunchError):
            PunchIntent(date=date(2024, 3, 4), clock_in=time(9, 0), clock_out=time(9, 0))

    def test_immutable(self, intent) -> None:
        with pytest.raises(AttributeError):
            intent.clock_in = time(10, 0)  # type: ignore[misc]


class TestIntentFromRow:
    def test_fields_are_kept(self) -> None:
        row = ScheduleRow(date="2024-03-04", clock_in="09:00", clock_out="18:00")
        result = intent_from_row(row)
        assert result == PunchIntent(date=date(2024, 3, 4), clock_in=time(9, 0), clock_out=time(18, 0))

    def test_row_note_wins_over_default(self) -> None:
        row = ScheduleRow(date="2024-03-05", clock_in="0945", clock_out="1900", note="remote")
        assert intent_from_row(row, note="work start").note == "remote"

    def test_blank_clock_out(self) -> None:
        row = ScheduleRow(date="2024-03-06", clock_in="10:00", clock_out="")
        assert intent_from_row(row).clock_out is None

    def test_bad_date(self) -> None:
        with pytest.raises(PunchError) as exc:
            intent_from_row(ScheduleRow(date="2024/03/04", clock_in="09:00"))
        assert exc.value.kind is ErrorKind.INVALID_SCHEDULE


class TestReadSchedule:
    def test_reads_all_rows(self, schedule_csv) -> None:
        rows = read_schedule(schedule_csv)
        assert len(rows) == 5
        assert rows[2] == ScheduleRow(date="2024-03-05", clock_in="0945", clock_out="1900", note="remote")

    def test_missing_columns(self, tmp_path) -> None:
        path = tmp_path / "bad.csv"
        path.write_text("day,start\n2024-03-04,09:00\n", encoding="utf-8")
        with pytest.raises(PunchError) as exc:
            read_schedule(path)
        assert exc.value.kind is ErrorKind.INVALID_SCHEDULE

    def test_undecodable_file(self, tmp_path) -> None:
        path = tmp_path / "latin1.csv"
        path.write_bytes(b"date,clock_in,clock_out,note\n2024-03-04,09:00,18:00,\x93remote\x94\n")
        with pytest.raises(PunchError) as exc:
            read_schedule(path)
        assert exc.value.kind is ErrorKind.INVALID_SCHEDULE

    def test_unreadable_path(self, tmp_path) -> None:
        with pytest.raises(PunchError) as exc:
            read_schedule(tmp_path)
        assert exc.value.kind is ErrorKind.INVALID_SCHEDULE

    def test_find_row_exact_date(self, schedule_csv) -> None:
        rows = read_schedule(schedule_csv)
        assert find_row(rows, date(2024, 3, 4)).clock_in == "09:00"
        assert find_row(rows, date(2024, 3, 8)) is None

    def test_find_row_skips_unreadable_dates(self) -> None:
        rows = [ScheduleRow(date="soon", clock_in="09:00"), ScheduleRow(date="2024-03-04", clock_in="10:00")]
        assert find_row(rows, date(2024, 3, 4)).clock_in == "10:00"

    def test_first_duplicate_wins(self) -> None:
        rows = [ScheduleRow(date="2024-03-04", clock_in="09:00"), ScheduleRow(date="2024-03-04", clock_in="10:00")]
        assert find_row(rows, date(2024, 3, 4)).clock_in == "09:00"


class TestResolveIntent:
    def test_from_file(self, config, schedule_csv) -> None:
        config.schedule = ScheduleSettings(file=schedule_csv)
        result = resolve_intent(date(2024, 3, 4), config, prompt=_no_prompt)

        assert result.date == date(2024, 3, 4)
        assert result.clock_in == time(9, 0)
        assert result.clock_out == time(18, 0)
        assert result.note == "work start"

    def test_note_argument_overrides_config(self, config, schedule_csv) -> None:
        config.schedule = ScheduleSettings(file=schedule_csv)
        result = resolve_intent(date(2024, 3, 4), config, prompt=_no_prompt, note="late start")
        assert result.note == "late start"

    def test_invalid_row_is_rejected(self, config, schedule_csv) -> None:
        config.schedule = ScheduleSettings(file=schedule_csv)
        with pytest.raises(PunchError) as exc:
            resolve_intent(date(2024, 3, 7), config, prompt=_no_prompt)
        assert exc.value.kind is ErrorKind.INVALID_SCHEDULE

    def test_file_row_wins_over_prompt(self, config, schedule_csv) -> None:
        config.schedule = ScheduleSettings(file=schedule_csv, interactive=True)
        result = resolve_intent(date(2024, 3, 1), config, prompt=_no_prompt)
        assert result.clock_in == time(8, 30)

    def test_interactive_when_no_row(self, config, schedule_csv) -> None:
        config.schedule = ScheduleSettings(file=schedule_csv, interactive=True)
        answers = iter(["08:15", "17:00"])
        result = resolve_intent(date(2024, 3, 8), config, prompt=lambda _: next(answers))

        assert result.clock_in == time(8, 15)
        assert result.clock_out == time(17, 0)

    def test_interactive_blank_clock_out(self, config) -> None:
        config.schedule = ScheduleSettings(interactive=True)
        answers = iter(["0800", ""])
        result = resolve_intent(date(2024, 3, 8), config, prompt=lambda _: next(answers))
        assert result.clock_out is None

    def test_interactive_invalid_order(self, config) -> None:
        config.schedule = ScheduleSettings(interactive=True)
        answers = iter(["17:00", "08:00"])
        with pytest.raises(PunchError) as exc:
            resolve_intent(date(2024, 3, 8), config, prompt=lambda _: next(answers))
        assert exc.value.kind is ErrorKind.INVALID_SCHEDULE

    def test_interactive_eof_means_no_data(self, config) -> None:
        config.schedule = ScheduleSettings(interactive=True)

        def closed_stdin(_: str) -> str:
            raise EOFError

        with pytest.raises(PunchError) as exc:
            resolve_intent(date(2024, 3, 8), config, prompt=closed_stdin)
        assert exc.value.kind is ErrorKind.NO_SCHEDULE_DATA

    def test_no_data(self, config, schedule_csv) -> None:
        config.schedule = ScheduleSettings(file=schedule_csv)
        with pytest.raises(PunchError) as exc:
            resolve_intent(date(2024, 3, 8), config, prompt=_no_prompt)
        assert exc.value.kind is ErrorKind.NO_SCHEDULE_DATA

    def test_missing_file(self, config, tmp_path) -> None:
        config.schedule = ScheduleSettings(file=tmp_path / "nope.csv")
        with pytest.raises(PunchError) as exc:
            resolve_intent(date(2024, 3, 4), config, prompt=_no_prompt)
        assert exc.value.kind is ErrorKind.NO_SCHEDULE_DATA

    def test_defaults_only_when_schedule_not_required(self, config) -> None:
        config.schedule = ScheduleSettings(require_schedule=True, default_clock_in="07:00")
        with pytest.raises(PunchError):
            resolve_intent(date(2024, 3, 8), config, prompt=_no_prompt)

        config.schedule = ScheduleSettings(require_schedule=False, default_clock_in="07:00", default_clock_out="16:00")
        result = resolve_intent(date(2024, 3, 8), config, prompt=_no_prompt)
        assert (result.clock_in, result.clock_out) == (time(7, 0), time(16, 0))

    def test_undecodable_file_is_invalid_schedule(self, config, tmp_path) -> None:
        path = tmp_path / "latin1.csv"
        path.write_bytes(b"date,clock_in,clock_out,note\n2024-03-04,09:00,18:00,\x93remote\x94\n")
        config.schedule = ScheduleSettings(file=path)
        with pytest.raises(PunchError) as exc:
            resolve_intent(date(2024, 3, 4), config, prompt=_no_prompt)
        assert exc.value.kind is ErrorKind.INVALID_SCHEDULE
