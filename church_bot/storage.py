"""
JSON document store backing the bot's persistent tables.
"""
import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import PersistenceError

# Document key -> file name
DEFAULT_FILES = {
    "trivia": "trivia.json",
    "lyrics": "golden_bells_lyrics.json",
    "leaderboard": "leaderboard.json",
    "teachings": "teachings.json",
    "teams": "teams.json",
}


class JsonStore:
    """Loads and saves whole JSON documents, one file per key."""

    def __init__(self, directory: str = "./data/", files: Optional[Dict[str, str]] = None):
        """
        Initialize the store.

        Args:
            directory: Directory holding the JSON documents
            files: Optional overrides of the key -> file name mapping
        """
        self.directory = Path(directory)
        self.files = dict(DEFAULT_FILES)
        if files:
            self.files.update(files)
        self.logger = logging.getLogger(__name__)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def path_for(self, key: str) -> Path:
        """Return the file path of a document key."""
        return self.directory / self.files.get(key, f"{key}.json")

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def load(self, key: str, default: Any) -> Any:
        """
        Load a document, falling back to a copy of the default.

        Missing files are expected on first run. Unreadable or malformed
        files, and documents whose JSON type differs from the default's,
        are logged and replaced by the default.

        Args:
            key: Document key
            default: Value returned when the document cannot be used

        Returns:
            The parsed document or a deep copy of default
        """
        file_path = self.path_for(key)
        if not file_path.exists():
            self.logger.info(f"No {key} document at {file_path}, starting empty")
            return copy.deepcopy(default)

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self.logger.warning(f"Invalid JSON in {file_path}: {e}")
            return copy.deepcopy(default)
        except OSError as e:
            self.logger.warning(f"Failed to read {file_path}: {e}")
            return copy.deepcopy(default)

        if default is not None and not isinstance(data, type(default)):
            self.logger.warning(
                f"Expected {type(default).__name__} in {file_path}, got {type(data).__name__}"
            )
            return copy.deepcopy(default)

        return data

    def save(self, key: str, value: Any) -> None:
        """
        Write a whole document, replacing the previous file atomically.

        Raises:
            PersistenceError: If the document cannot be serialized or written
        """
        file_path = self.path_for(key)
        with self._lock_for(key):
            try:
                payload = json.dumps(value, indent=2, ensure_ascii=False)
            except (TypeError, ValueError) as e:
                self.logger.error(f"Cannot serialize {key} document: {e}")
                raise PersistenceError(f"Cannot serialize {key}: {e}") from e

            temp_path = None
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                fd, temp_path = tempfile.mkstemp(
                    prefix=f".{file_path.name}.", suffix=".tmp", dir=str(self.directory)
                )
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(payload)
                os.replace(temp_path, file_path)
                temp_path = None
            except OSError as e:
                self.logger.error(f"Failed to write {file_path}: {e}")
                raise PersistenceError(f"Failed to write {file_path.name}: {e}") from e
            finally:
                if temp_path is not None and os.path.exists(temp_path):
                    os.remove(temp_path)

        self.logger.debug(f"Saved {key} document to {file_path}")
