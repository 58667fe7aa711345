"""
Tests for the command line interface.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from bookingengine import __version__
from bookingengine.cli.app import app

runner = CliRunner()

FIXTURE = {
    "staff": [
        {
            "id": "s1",
            "workingHours": [
                {"dayOfWeek": day, "startTime": "09:00", "endTime": "17:00"} for day in range(1, 6)
            ],
            "timeOff": [{"id": "t1", "startDate": "2026-03-06", "endDate": "2026-03-06"}],
        }
    ],
    "bookings": [
        {
            "id": "b1", "staffId": "s1", "customerId": "c1", "customerName": "Ada",
            "serviceId": "svc", "startTime": "2026-03-02T10:00:00Z",
            "endTime": "2026-03-02T11:00:00Z", "status": "CONFIRMED",
        },
        {
            "id": "b2", "staffId": "s1", "customerId": "c2", "customerName": "Grace",
            "serviceId": "svc", "startTime": "2026-03-03T14:00:00Z",
            "endTime": "2026-03-03T15:00:00Z", "status": "PENDING",
        },
    ],
}


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    (tmp_path / "bookings.json").write_text(json.dumps(FIXTURE), encoding="utf-8")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        'timezone: "UTC"\n'
        'data_file: "bookings.json"\n'
        "staff:\n"
        '  - id: "s1"\n'
        '    name: "anna"\n',
        encoding="utf-8",
    )
    return config_path


def _saved_booking(config_file: Path, booking_id: str) -> dict:
    data = json.loads((config_file.parent / "bookings.json").read_text(encoding="utf-8"))
    return next(b for b in data["bookings"] if b["id"] == booking_id)


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_list_staff(config_file):
    result = runner.invoke(app, ["list-staff", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "anna" in result.output


def test_plan_clean_and_conflict(config_file):
    clean = runner.invoke(app, ["plan", "anna", "2026-03-02T11:00", "-c", str(config_file)])
    conflict = runner.invoke(app, ["plan", "anna", "2026-03-02T10:30", "-d", "60", "-c", str(config_file)])

    assert clean.exit_code == 0
    assert "CLEAN" in clean.output
    assert conflict.exit_code == 0
    assert "CONFLICT" in conflict.output
    assert "b1" in conflict.output


def test_plan_on_time_off(config_file):
    result = runner.invoke(app, ["plan", "s1", "2026-03-06T10:00", "-c", str(config_file)])

    assert "STAFF_TIME_OFF" in result.output


def test_plan_unknown_staff(config_file):
    result = runner.invoke(app, ["plan", "carl", "2026-03-02T11:00", "-c", str(config_file)])

    assert result.exit_code == 1
    assert "carl" in result.output


def test_plan_bad_time(config_file):
    result = runner.invoke(app, ["plan", "anna", "tomorrow-ish", "-c", str(config_file)])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_day_view(config_file):
    result = runner.invoke(app, ["day", "anna", "--date", "2026-03-02", "-c", str(config_file)])

    assert result.exit_code == 0
    assert "b1" in result.output
    assert "09:00 - 17:00" in result.output


def test_week_view(config_file):
    result = runner.invoke(app, ["week", "--of", "2026-03-04", "-c", str(config_file)])

    assert result.exit_code == 0
    assert "2026-03-01" in result.output
    assert "b2" in result.output


def test_month_view(config_file):
    result = runner.invoke(app, ["month", "2026-03", "-c", str(config_file)])

    assert result.exit_code == 0
    assert "2 booking(s) this month" in result.output


def test_slots(config_file):
    result = runner.invoke(
        app,
        ["slots", "anna", "--date", "2026-03-02", "--include-past", "-c", str(config_file)],
    )

    assert result.exit_code == 0
    assert "12 free slot(s) of 15" in result.output


def test_slots_recommend(config_file):
    result = runner.invoke(
        app,
        ["slots", "--date", "2026-03-02", "--recommend", "--include-past", "-c", str(config_file)],
    )

    assert result.exit_code == 0
    assert "5 free slot(s) of 5" in result.output


def test_reschedule_with_drop_saves_fixture(config_file):
    result = runner.invoke(
        app,
        ["reschedule", "b1", "--date", "2026-03-03", "--hour", "9", "--offset", "15", "--yes",
         "-c", str(config_file)],
    )

    assert result.exit_code == 0
    assert "moved" in result.output
    assert _saved_booking(config_file, "b1")["startTime"].startswith("2026-03-03T09:00:00")


def test_reschedule_declined(config_file):
    result = runner.invoke(
        app,
        ["reschedule", "b1", "--at", "2026-03-03T14:00", "-c", str(config_file)],
        input="n\n",
    )

    assert result.exit_code == 0
    assert "Overlaps" in result.output
    assert "cancelled" in result.output
    assert _saved_booking(config_file, "b1")["startTime"].startswith("2026-03-02T10:00:00")


def test_reschedule_needs_target(config_file):
    result = runner.invoke(app, ["reschedule", "b1", "--yes", "-c", str(config_file)])

    assert result.exit_code == 1


def test_data_option_without_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    data_file = tmp_path / "fixture.json"
    data_file.write_text(json.dumps(FIXTURE), encoding="utf-8")

    result = runner.invoke(app, ["plan", "s1", "2026-03-02T11:00", "--data", str(data_file)])

    assert result.exit_code == 0
    assert "CLEAN" in result.output


def test_missing_data_file(tmp_path):
    result = runner.invoke(app, ["plan", "s1", "2026-03-02T11:00", "--data", str(tmp_path / "nope.json")])

    assert result.exit_code == 1
    assert "not found" in result.output
