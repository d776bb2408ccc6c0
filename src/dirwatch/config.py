"""Watcher configuration loaded from environment variables."""
from pathlib import Path

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WatcherSettings(BaseSettings):
    """Watcher configuration loaded from environment variables.

    Attributes:
        root_path: Directory to watch.
        recursive: Watch subdirectories as well.
        max_depth: Depth limit for watching newly created directories.
        file_filters_raw: Raw comma-separated path suffixes to report.
        notify_directories: Report changes to directories themselves.
        polling: Poll directory snapshots instead of using OS events.
        stop_timeout: Seconds to wait for background threads on stop.
        debug: Enable debug-level logging.
        log_json: Render logs as JSON lines instead of console output.
    """

    model_config = SettingsConfigDict(
        env_prefix="DIRWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    root_path: Path = Path(".")
    recursive: bool = True
    max_depth: int | None = Field(default=None, ge=0)
    file_filters_raw: str = ""
    notify_directories: bool = True
    polling: bool = False
    stop_timeout: float = 5.0
    debug: bool = False
    log_json: bool = True

    @computed_field
    @property
    def file_filters(self) -> list[str]:
        """Parse file filters from comma-separated string.

        Returns:
            List of path suffixes, empty to report every path.
        """
        return [
            suffix.strip()
            for suffix in self.file_filters_raw.split(",")
            if suffix.strip()
        ]
