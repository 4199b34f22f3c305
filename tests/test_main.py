"""Tests for the command line entry point."""

import asyncio
from unittest.mock import MagicMock

import pytest

from main import main, parse_args, ring_interactively
from versealarm.lifecycle import AlarmLifecycle, AlarmState
from versealarm.models import DayOfWeek
from versealarm.storage import JsonAlarmStore, JsonSettingsStore


@pytest.fixture
def state_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("ALARM_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("BIBLE_API_KEY", "test-key")
    monkeypatch.delenv("REQUEST_TIMEOUT", raising=False)
    return tmp_path


def test_parse_args_requires_action():
    with pytest.raises(SystemExit):
        parse_args([])


def test_parse_args_add_options():
    args = parse_args(["--add", "06:30", "--repeat", "mon,wed", "--no-snooze"])
    assert args.add == "06:30"
    assert args.repeat == "mon,wed"
    assert args.no_snooze is True
    assert args.snooze_minutes == 5


def test_add_and_list(state_dir, capsys):
    assert main(["--add", "06:30", "--label", "Gym", "--repeat", "mon,wed"]) == 0

    alarms = JsonAlarmStore(state_dir).get_all()
    assert len(alarms) == 1
    assert alarms[0].label == "Gym"
    assert alarms[0].repeat_days == frozenset({DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY})
    assert "set for" in capsys.readouterr().out

    assert main(["--list"]) == 0
    out = capsys.readouterr().out
    assert "06:30" in out
    assert "Mon, Wed" in out
    assert alarms[0].id in out


def test_list_empty(state_dir, capsys):
    assert main(["--list"]) == 0
    assert "No alarms." in capsys.readouterr().out


def test_disable_and_delete(state_dir):
    main(["--add", "07:15"])
    alarm_id = JsonAlarmStore(state_dir).get_all()[0].id

    assert main(["--disable", alarm_id]) == 0
    assert JsonAlarmStore(state_dir).get(alarm_id).enabled is False

    assert main(["--delete", alarm_id]) == 0
    assert JsonAlarmStore(state_dir).get_all() == []


def test_unknown_alarm_is_an_error(state_dir, capsys):
    assert main(["--enable", "missing"]) == 1
    assert "Unknown alarm missing" in capsys.readouterr().err


def test_invalid_time_is_an_error(state_dir):
    assert main(["--add", "25:00"]) == 1
    assert JsonAlarmStore(state_dir).get_all() == []


def test_invalid_repeat_is_an_error(state_dir, capsys):
    assert main(["--add", "07:00", "--repeat", "mon,someday"]) == 1
    assert "Unknown weekday" in capsys.readouterr().err


def test_famous_toggle(state_dir, capsys):
    assert main(["--famous", "on"]) == 0
    assert "famous" in capsys.readouterr().out
    assert JsonSettingsStore(state_dir, lambda: []).get().use_famous_source is True


def test_select_books(state_dir):
    assert main(["--books", "gen, psa"]) == 0
    settings = JsonSettingsStore(state_dir, lambda: []).get()
    assert settings.selected_book_ids == frozenset({"GEN", "PSA"})


def test_select_unknown_books(state_dir, capsys):
    assert main(["--books", "GEN,XYZ"]) == 1
    assert "XYZ" in capsys.readouterr().err


def test_config_error(state_dir, monkeypatch, capsys):
    monkeypatch.setenv("REQUEST_TIMEOUT", "later")
    assert main(["--list"]) == 1
    assert "Configuration error" in capsys.readouterr().err


@pytest.fixture
def ringing(alarm_store, triggers, output, once_alarm, sample_passage, clock):
    passages = MagicMock()
    passages.get_passage.return_value = sample_passage
    alarm_store.put(once_alarm)

    def factory():
        return AlarmLifecycle(alarm_store, triggers, output, passages, clock=clock)

    return factory


def scripted_input(monkeypatch, lines, on_read=None):
    remaining = list(lines)

    def fake_input(prompt=""):
        line = remaining.pop(0)
        if on_read:
            on_read(line)
        return line

    monkeypatch.setattr("builtins.input", fake_input)


class TestRingInteractively:
    def test_failed_dismissal_can_be_retried(self, ringing, alarm_store, monkeypatch, capsys):
        def recover(line):
            if line == "":
                alarm_store.fail_writes = False

        scripted_input(monkeypatch, ["Jesus wept.", ""], on_read=recover)

        async def scenario():
            lifecycle = ringing()
            await lifecycle.fire("alarm-once")
            alarm_store.fail_writes = True
            await ring_interactively(lifecycle, "alarm-once")
            return lifecycle

        lifecycle = asyncio.run(scenario())

        captured = capsys.readouterr()
        assert "Error:" in captured.err
        assert "Alarm dismissed" in captured.out
        assert lifecycle.state_of("alarm-once") is AlarmState.DISABLED
        assert alarm_store.get("alarm-once").enabled is False

    def test_failed_snooze_keeps_challenge_running(
        self, ringing, triggers, monkeypatch, capsys
    ):
        triggers.fail = True
        scripted_input(monkeypatch, ["s", "Jesus wept."])

        async def scenario():
            lifecycle = ringing()
            await lifecycle.fire("alarm-once")
            await ring_interactively(lifecycle, "alarm-once")
            return lifecycle

        lifecycle = asyncio.run(scenario())

        captured = capsys.readouterr()
        assert "Error:" in captured.err
        assert "Snoozed" not in captured.out
        assert "Alarm dismissed" in captured.out
        assert lifecycle.episode("alarm-once") is None
        assert triggers.registered == []
