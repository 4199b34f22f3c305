"""Configuration management for Verse Alarm."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} environment variable must be an integer") from e


@dataclass(frozen=True)
class Config:
    """Immutable application configuration."""

    bible_api_key: str | None = None
    bible_api_base_url: str = "https://api.scripture.api.bible/v1"
    bible_id: str = "de4e12af7f28f599-02"  # King James Version
    request_timeout: int = 10
    log_level: str = "INFO"
    state_dir: Path | None = None

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        state_dir = os.getenv("ALARM_STATE_DIR")

        config = cls(
            bible_api_key=os.getenv("BIBLE_API_KEY") or None,
            bible_api_base_url=os.getenv(
                "BIBLE_API_BASE_URL", "https://api.scripture.api.bible/v1"
            ),
            bible_id=os.getenv("BIBLE_ID", "de4e12af7f28f599-02"),
            request_timeout=_get_env_int("REQUEST_TIMEOUT", 10),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            state_dir=Path(state_dir) if state_dir else None,
        )

        if not config.bible_api_key:
            logger.warning(
                "BIBLE_API_KEY is not set -- random passages will fail "
                "and alarms will use built-in passages"
            )

        return config

    @property
    def resolved_state_dir(self) -> Path:
        """Directory holding alarms.json and settings.json."""
        return self.state_dir or get_project_root() / ".state"

    def setup_logging(self) -> None:
        """Configure application logging."""
        logging.basicConfig(
            level=getattr(logging, self.log_level.upper()),
            format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


def get_data_dir() -> Path:
    """Get the data directory."""
    return get_project_root() / "data"
