"""JSON file storage for alarms and settings."""

import json
import logging
from collections.abc import Callable
from pathlib import Path

from .errors import PayloadError, StorageError
from .models import Alarm, AppSettings, alarm_from_dict, alarm_to_dict

logger = logging.getLogger(__name__)

ALARMS_FILE = "alarms.json"
SETTINGS_FILE = "settings.json"


def _write_json(path: Path, data: object) -> None:
    """Replace a state file. Write failures are raised as StorageError."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(path)
    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e}") from e


class JsonAlarmStore:
    """Alarm records kept in a single JSON list."""

    def __init__(self, state_dir: Path):
        self.path = state_dir / ALARMS_FILE

    def get_all(self) -> list[Alarm]:
        """Load every alarm. A missing or corrupt file yields no alarms."""
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load alarms from {self.path}: {e}")
            return []

        alarms: list[Alarm] = []
        for item in data if isinstance(data, list) else []:
            try:
                alarms.append(alarm_from_dict(item))
            except PayloadError as e:
                logger.warning(f"Skipping alarm record: {e}")
        return alarms

    def get(self, alarm_id: str) -> Alarm | None:
        for alarm in self.get_all():
            if alarm.id == alarm_id:
                return alarm
        return None

    def put(self, alarm: Alarm) -> None:
        """Insert or replace the whole record for ``alarm.id``."""
        alarms = self.get_all()
        for index, existing in enumerate(alarms):
            if existing.id == alarm.id:
                alarms[index] = alarm
                break
        else:
            alarms.append(alarm)
        _write_json(self.path, [alarm_to_dict(a) for a in alarms])
        logger.info(f"Saved alarm {alarm.id}")

    def delete(self, alarm_id: str) -> None:
        alarms = [a for a in self.get_all() if a.id != alarm_id]
        _write_json(self.path, [alarm_to_dict(a) for a in alarms])
        logger.info(f"Deleted alarm {alarm_id}")


class JsonSettingsStore:
    """The AppSettings record.

    On first run every catalog book is selected.
    """

    def __init__(self, state_dir: Path, all_book_ids: Callable[[], list[str]]):
        self.path = state_dir / SETTINGS_FILE
        self._all_book_ids = all_book_ids

    def _initial(self) -> AppSettings:
        return AppSettings(selected_book_ids=frozenset(self._all_book_ids()))

    def get(self) -> AppSettings:
        if not self.path.exists():
            settings = self._initial()
            try:
                self.put(settings)
                logger.info("Initialized settings with all books selected")
            except StorageError as e:
                logger.warning(f"Could not save initial settings: {e}")
            return settings

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return AppSettings.from_dict(data)
        except (OSError, json.JSONDecodeError, AttributeError, TypeError) as e:
            logger.warning(f"Failed to load settings, using all books: {e}")
            return self._initial()

    def put(self, settings: AppSettings) -> None:
        _write_json(self.path, settings.to_dict())

    def set_use_famous_source(self, use_famous_source: bool) -> AppSettings:
        settings = AppSettings(
            use_famous_source=use_famous_source,
            selected_book_ids=self.get().selected_book_ids,
        )
        self.put(settings)
        return settings

    def set_selected_books(self, book_ids: list[str]) -> AppSettings:
        settings = AppSettings(
            use_famous_source=self.get().use_famous_source,
            selected_book_ids=frozenset(book_ids),
        )
        self.put(settings)
        return settings

    def reset(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove {self.path}: {e}") from e
