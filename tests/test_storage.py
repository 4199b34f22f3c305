"""Tests for JSON file storage."""

import json
from dataclasses import replace

import pytest

from versealarm.errors import StorageError
from versealarm.models import alarm_to_dict
from versealarm.storage import JsonAlarmStore, JsonSettingsStore


@pytest.fixture
def store(tmp_path):
    return JsonAlarmStore(tmp_path)


@pytest.fixture
def settings(tmp_path):
    return JsonSettingsStore(tmp_path, lambda: ["GEN", "EXO", "JHN"])


class TestJsonAlarmStore:
    """Tests for JsonAlarmStore."""

    def test_missing_file(self, store):
        assert store.get_all() == []
        assert store.get("anything") is None

    def test_put_and_get(self, store, once_alarm, weekly_alarm):
        store.put(once_alarm)
        store.put(weekly_alarm)

        assert store.get_all() == [once_alarm, weekly_alarm]
        assert store.get("alarm-weekly") == weekly_alarm

    def test_put_replaces_whole_record(self, store, once_alarm):
        store.put(once_alarm)
        store.put(replace(once_alarm, label="Early shift", enabled=False))

        alarms = store.get_all()
        assert len(alarms) == 1
        assert alarms[0].label == "Early shift"
        assert alarms[0].enabled is False

    def test_delete(self, store, once_alarm, weekly_alarm):
        store.put(once_alarm)
        store.put(weekly_alarm)

        store.delete("alarm-once")
        store.delete("not-there")

        assert store.get_all() == [weekly_alarm]

    def test_file_format(self, store, weekly_alarm):
        store.put(weekly_alarm)

        data = json.loads(store.path.read_text(encoding="utf-8"))
        assert data == [alarm_to_dict(weekly_alarm)]

    def test_persists_across_instances(self, tmp_path, weekly_alarm):
        JsonAlarmStore(tmp_path).put(weekly_alarm)
        assert JsonAlarmStore(tmp_path).get("alarm-weekly") == weekly_alarm

    def test_corrupt_file(self, store):
        store.path.write_text("[{not json", encoding="utf-8")
        assert store.get_all() == []

    def test_invalid_records_skipped(self, store, once_alarm):
        store.path.write_text(
            json.dumps([alarm_to_dict(once_alarm), {"id": "broken"}]), encoding="utf-8"
        )
        assert store.get_all() == [once_alarm]

    def test_write_failure(self, tmp_path, once_alarm):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        with pytest.raises(StorageError):
            JsonAlarmStore(blocker).put(once_alarm)


class TestJsonSettingsStore:
    """Tests for JsonSettingsStore."""

    def test_first_run_selects_all_books(self, settings):
        result = settings.get()

        assert result.selected_book_ids == frozenset({"GEN", "EXO", "JHN"})
        assert result.use_famous_source is False
        assert settings.path.exists()

    def test_set_use_famous_source(self, tmp_path, settings):
        settings.set_use_famous_source(True)

        reloaded = JsonSettingsStore(tmp_path, lambda: []).get()
        assert reloaded.use_famous_source is True
        assert reloaded.selected_book_ids == frozenset({"GEN", "EXO", "JHN"})

    def test_set_selected_books(self, settings):
        result = settings.set_selected_books(["PSA"])

        assert result.selected_book_ids == frozenset({"PSA"})
        assert settings.get().selected_book_ids == frozenset({"PSA"})

    def test_empty_selection_persists(self, settings):
        settings.set_selected_books([])
        assert settings.get().selected_book_ids == frozenset()

    def test_file_format(self, settings):
        settings.set_use_famous_source(True)

        data = json.loads(settings.path.read_text(encoding="utf-8"))
        assert data == {
            "useFamousVerses": True,
            "selectedBooks": ["EXO", "GEN", "JHN"],
            "verseSource": "famous",
        }

    def test_corrupt_file_uses_initial(self, settings):
        settings.path.write_text("{oops", encoding="utf-8")
        assert settings.get().selected_book_ids == frozenset({"GEN", "EXO", "JHN"})

    def test_reset(self, settings):
        settings.set_selected_books(["PSA"])
        settings.reset()

        assert not settings.path.exists()
        assert settings.get().selected_book_ids == frozenset({"GEN", "EXO", "JHN"})

    def test_unwritable_first_run_still_returns_settings(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        result = JsonSettingsStore(blocker, lambda: ["GEN"]).get()

        assert result.selected_book_ids == frozenset({"GEN"})
