"""JSON file persistence for the timer state.

This module handles loading and saving the timer state to a JSON file.
Writes go to a temporary file that is then renamed over the target, so a
reader always sees a complete state without taking the lock. A file lock
serializes writers; reading works from a read-only directory.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout
from pydantic import BaseModel, Field, ValidationError

from timetally.timer.types import TimerState

logger = logging.getLogger(__name__)

# Storage format version for future migrations
STORAGE_VERSION = 1


class StorageError(Exception):
    """Base class for timer storage failures."""


class StorageCorrupt(StorageError):
    """Persisted data exists but is not a valid timer state."""


class StorageUnavailable(StorageError):
    """The storage medium cannot be read or written."""


class TimerStorageData(BaseModel):
    """Root structure of the storage file.

    Attributes:
        version: Storage format version.
        state: The persisted timer state.
    """

    version: int = Field(default=STORAGE_VERSION, description="Storage format version")
    state: TimerState = Field(default_factory=TimerState, description="Timer state")


class BaseTimerStore(ABC):
    """Load/save of a single TimerState.

    Subclasses only move raw JSON text; parsing, validation and
    serialization are shared so every store accepts and rejects the same
    data.
    """

    @abstractmethod
    def _read_raw(self) -> str | None:
        """Return the stored JSON text, or None if nothing is stored."""

    @abstractmethod
    def _write_raw(self, content: str) -> None:
        """Replace the stored JSON text."""

    @property
    def location(self) -> str:
        """Human-readable description of where the state lives."""
        return self.__class__.__name__

    def load(self) -> TimerState:
        """Load the timer state.

        Returns:
            The stored state, or the zero state if nothing is stored.

        Raises:
            StorageCorrupt: If stored data cannot be parsed into a valid state.
            StorageUnavailable: If the storage cannot be read.
        """
        content = self._read_raw()
        if content is None or not content.strip():
            logger.debug(f"No timer state at {self.location}, starting fresh")
            return TimerState()

        state = self._parse(content)
        logger.debug(f"Loaded timer state from {self.location}")
        return state

    def save(self, state: TimerState) -> None:
        """Save the timer state, replacing any previous value.

        Args:
            state: State to persist.

        Raises:
            StorageUnavailable: If the storage cannot be written.
        """
        data = TimerStorageData(state=state)
        content = json.dumps(data.model_dump(mode="json"), indent=2)
        self._write_raw(content)
        logger.debug(f"Saved timer state to {self.location}")

    def _parse(self, content: str) -> TimerState:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise StorageCorrupt(f"Invalid JSON in {self.location}: {e}") from e

        if not isinstance(data, dict):
            raise StorageCorrupt(f"Expected a JSON object in {self.location}")

        version = data.get("version", 1)
        if version != STORAGE_VERSION:
            data = self._migrate_data(data, version)

        try:
            return TimerStorageData.model_validate(data).state
        except ValidationError as e:
            raise StorageCorrupt(f"Invalid timer state in {self.location}: {e}") from e

    def _migrate_data(self, data: dict[str, Any], from_version: Any) -> dict[str, Any]:
        """Migrate data from another storage version.

        Args:
            data: Raw data from storage.
            from_version: Version of the stored data.

        Returns:
            Migrated data at current version.

        Raises:
            StorageCorrupt: If the version is unknown or newer than supported.
        """
        if not isinstance(from_version, int) or from_version > STORAGE_VERSION:
            raise StorageCorrupt(
                f"Unsupported storage version {from_version!r} in {self.location}"
            )
        # Currently no migrations needed
        logger.info(f"Migrating timer storage from version {from_version} to {STORAGE_VERSION}")
        data["version"] = STORAGE_VERSION
        return data


class TimerStore(BaseTimerStore):
    """JSON file-based storage for the timer state.

    Example:
        store = TimerStore("/path/to/state.json")
        state = store.load()
        store.save(state)
    """

    def __init__(self, path: str | Path, lock_timeout: float = 5.0) -> None:
        """Initialize the timer store.

        Args:
            path: Path to the JSON storage file.
            lock_timeout: Seconds to wait for the file lock.
        """
        self._path = Path(path)
        # Sibling of the state file; never the state file itself
        self._lock_path = self._path.with_name(self._path.name + ".lock")
        self._lock = FileLock(str(self._lock_path), timeout=lock_timeout)

    @property
    def path(self) -> Path:
        """Get the storage file path."""
        return self._path

    @property
    def location(self) -> str:
        return str(self._path)

    def _read_raw(self) -> str | None:
        if not self._path.exists():
            return None
        # Writes are atomic renames, so reads need no lock.
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise StorageCorrupt(f"Invalid UTF-8 in {self._path}: {e}") from e
        except OSError as e:
            raise StorageUnavailable(f"Cannot read {self._path}: {e}") from e

    def _write_raw(self, content: str) -> None:
        directory = self._path.parent
        try:
            if not directory.exists():
                directory.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created timer data directory: {directory}")
            with self._lock:
                self._replace(content)
        except Timeout as e:
            raise StorageUnavailable(f"Timed out waiting for lock {self._lock_path}") from e
        except OSError as e:
            raise StorageUnavailable(f"Cannot write {self._path}: {e}") from e

    def _replace(self, content: str) -> None:
        """Write content to a temporary sibling file and rename it into place."""
        tmp = tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
            delete=False,
        )
        try:
            with tmp:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp.name, self._path)
        except BaseException:
            Path(tmp.name).unlink(missing_ok=True)
            raise


class MemoryTimerStore(BaseTimerStore):
    """In-memory storage holding the serialized state.

    Goes through the same JSON round trip as TimerStore, which makes it a
    faithful stand-in for tests.
    """

    def __init__(self, content: str | None = None) -> None:
        self.content = content

    @property
    def location(self) -> str:
        return "memory"

    def _read_raw(self) -> str | None:
        return self.content

    def _write_raw(self, content: str) -> None:
        self.content = content
