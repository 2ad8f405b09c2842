"""
Key-value backends for the survey data store.

Both implement the KeyValueBackend protocol from ``health_survey.services.storage``:
string keys, string values, ``None`` for a missing key.
"""

import os
import re
import tempfile
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class InMemoryKeyValueStore:
    """Dictionary-backed store. Used by tests and one-off scripts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)


class JsonFileKeyValueStore:
    """
    One ``<key>.json`` file per key inside a data directory.

    Writes go to a temporary file in the same directory and are moved into place
    with ``os.replace`` so a crash never leaves a half-written record.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.logger = logger.bind(component="json_file_store", data_dir=str(self.data_dir))

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.data_dir / f"{key}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self.logger.debug("record_written", key=key, size=len(value))

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
