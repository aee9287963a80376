"""JSON file persistence for the Slack config and cache snapshots."""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from .settings import SlackConfig, get_data_dir

logger = logging.getLogger(__name__)

CONFIG_FILE = "slack-config.json"
USERS_FILE = "users.json"
EMOJIS_FILE = "emojis.json"


class StorageError(Exception):
    """Raised when a snapshot can't be read or written."""


class JsonStorage:
    """Whole-document JSON store in the app data directory.

    All calls are synchronous and replace the full document. The config is
    cached in memory after the first load or save.
    """

    def __init__(self, data_dir: Path | None = None) -> None:
        self._data_dir = data_dir
        self._config_cache: SlackConfig | None = None
        self._cache_lock = threading.Lock()

    @property
    def data_dir(self) -> Path:
        if self._data_dir is None:
            self._data_dir = get_data_dir()
        self._data_dir.mkdir(parents=True, exist_ok=True)
        return self._data_dir

    @property
    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILE

    @property
    def users_path(self) -> Path:
        return self.data_dir / USERS_FILE

    @property
    def emojis_path(self) -> Path:
        return self.data_dir / EMOJIS_FILE

    # --- Config ---

    def save_config(self, config: SlackConfig) -> None:
        self._write_json(self.config_path, config.to_dict())
        with self._cache_lock:
            self._config_cache = config.copy()
        logger.info(f"Saved Slack config to {self.config_path}")

    def load_config(self) -> SlackConfig | None:
        """Load the stored config, or None if nothing was saved yet."""
        with self._cache_lock:
            if self._config_cache is not None:
                return self._config_cache.copy()

        path = self.config_path
        if not path.exists():
            return None

        data = self._read_json(path)
        if not isinstance(data, dict):
            raise StorageError(f"Config file {path} does not contain an object")
        config = SlackConfig.from_dict(data)
        with self._cache_lock:
            self._config_cache = config.copy()
        logger.info("Loaded Slack config")
        return config

    # --- Cache snapshots ---

    def save_users_blob(self, data: dict) -> None:
        self._write_json(self.users_path, data)
        logger.info(f"Saved {len(data)} users")

    def load_users_blob(self) -> dict:
        return self._load_blob(self.users_path)

    def save_emojis_blob(self, data: dict) -> None:
        self._write_json(self.emojis_path, data)
        logger.info(f"Saved {len(data)} custom emojis")

    def load_emojis_blob(self) -> dict:
        return self._load_blob(self.emojis_path)

    def emojis_last_modified(self) -> int | None:
        """Unix timestamp (seconds) of the emoji snapshot, or None if absent."""
        try:
            return int(self.emojis_path.stat().st_mtime)
        except OSError:
            return None

    # --- Helpers ---

    def _load_blob(self, path: Path) -> dict:
        if not path.exists():
            return {}
        data = self._read_json(path)
        if not isinstance(data, dict):
            raise StorageError(f"{path.name} does not contain an object")
        return data

    @staticmethod
    def _read_json(path: Path):
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {path.name}: {e}") from e

    @staticmethod
    def _write_json(path: Path, data) -> None:
        # Atomic write: temp file in the same dir, then rename over the target
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=path.stem + "_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StorageError(f"Failed to write {path.name}: {e}") from e
