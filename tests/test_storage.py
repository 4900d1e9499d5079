"""Tests for timer state persistence."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from timetally.timer.storage import (
    STORAGE_VERSION,
    MemoryTimerStore,
    StorageCorrupt,
    StorageUnavailable,
    TimerStore,
)
from timetally.timer.types import SessionRecord, TimerState

T0 = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def sample_state() -> TimerState:
    return TimerState(
        running_since=T0 + timedelta(hours=2, microseconds=123456),
        total_accumulated=timedelta(hours=1, minutes=21, seconds=31, microseconds=7),
        sessions=[
            SessionRecord(start=T0, end=T0 + timedelta(seconds=8), comment="first"),
            SessionRecord(start=T0 + timedelta(minutes=5), end=T0 + timedelta(minutes=90)),
        ],
    )


class TestTimerStore:
    """Tests for the JSON file store."""

    def test_missing_file_gives_zero_state(self, tmp_path):
        """A store without a file loads as a never-used timer."""
        store = TimerStore(tmp_path / "state.json")
        state = store.load()

        assert state == TimerState()
        assert state.running_since is None
        assert state.total_accumulated == timedelta(0)

    def test_load_does_not_create_file(self, tmp_path):
        """Loading alone never writes anything."""
        store = TimerStore(tmp_path / "nested" / "state.json")
        store.load()

        assert not (tmp_path / "nested").exists()

    def test_round_trip(self, tmp_path):
        """save() followed by load() returns an equal state."""
        store = TimerStore(tmp_path / "state.json")
        state = sample_state()

        store.save(state)

        assert store.load() == state

    def test_round_trip_idle(self, tmp_path):
        """The zero state round-trips as well."""
        store = TimerStore(tmp_path / "state.json")
        store.save(TimerState())

        assert store.load() == TimerState()

    def test_save_creates_parent_directories(self, tmp_path):
        """Missing parent directories are created on save."""
        path = tmp_path / "a" / "b" / "state.json"
        TimerStore(path).save(TimerState())

        assert path.exists()

    def test_file_layout(self, tmp_path):
        """The file holds a versioned JSON object."""
        path = tmp_path / "state.json"
        TimerStore(path).save(TimerState(running_since=T0))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == STORAGE_VERSION
        assert data["state"]["running_since"] is not None
        assert data["state"]["sessions"] == []

    def test_save_replaces_previous_state(self, tmp_path):
        """A second save fully replaces the first."""
        store = TimerStore(tmp_path / "state.json")
        store.save(sample_state())
        store.save(TimerState(total_accumulated=timedelta(seconds=3)))

        assert store.load() == TimerState(total_accumulated=timedelta(seconds=3))

    def test_no_temporary_files_left(self, tmp_path):
        """Only the state file and its lock remain after saving."""
        store = TimerStore(tmp_path / "state.json")
        store.save(sample_state())

        names = {p.name for p in tmp_path.iterdir()}
        assert names <= {"state.json", "state.json.lock"}

    def test_state_file_with_lock_suffix(self, tmp_path):
        """A state file named like a lock file is not used as its own lock."""
        store = TimerStore(tmp_path / "timer.lock")
        state = TimerState(total_accumulated=timedelta(seconds=4891))

        store.save(state)
        store.save(state)

        assert store.load() == state
        assert store.load() == state

    def test_load_takes_no_lock(self, tmp_path):
        """Reading never creates the lock file."""
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"version": 1, "state": {"total_accumulated": "PT5S"}}))

        assert TimerStore(path).load().total_accumulated == timedelta(seconds=5)
        assert {p.name for p in tmp_path.iterdir()} == {"state.json"}

    def test_empty_file_gives_zero_state(self, tmp_path):
        """An empty file is treated as no state."""
        path = tmp_path / "state.json"
        path.write_text("", encoding="utf-8")

        assert TimerStore(path).load() == TimerState()

    def test_state_stored_in_another_offset_loads_as_utc(self, tmp_path):
        """Timestamps with an offset are normalized to UTC on load."""
        path = tmp_path / "state.json"
        path.write_text(json.dumps({
            "version": 1,
            "state": {"running_since": "2024-03-01T11:00:00+02:00", "total_accumulated": "PT0S"},
        }))

        state = TimerStore(path).load()

        assert state.running_since == T0
        assert state.running_since.tzinfo == timezone.utc


class TestCorruptState:
    """Persisted data that is not a valid timer state."""

    @pytest.mark.parametrize("content", [
        "{not json",
        "[1, 2, 3]",
        json.dumps({"version": 1, "state": {"total_accumulated": "-PT5S"}}),
        json.dumps({"version": 1, "state": {"running_since": "yesterday"}}),
        json.dumps({"version": 1, "state": {"running_since": "2024-03-01T09:00:00"}}),
        json.dumps({"version": 1, "state": {"sessions": [
            {"start": "2024-03-01T10:00:00Z", "end": "2024-03-01T09:00:00Z"},
        ]}}),
        json.dumps({"version": 99, "state": {}}),
        json.dumps({"version": "one", "state": {}}),
    ])
    def test_corrupt_content_raises(self, tmp_path, content):
        """Unparseable or invalid data raises StorageCorrupt."""
        path = tmp_path / "state.json"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(StorageCorrupt):
            TimerStore(path).load()

    def test_invalid_utf8_is_corrupt(self, tmp_path):
        """Bytes that are not UTF-8 are corrupt data, not a read failure."""
        path = tmp_path / "state.json"
        path.write_bytes(b'{"version": 1, "state": {"total_accumulated": "PT5S\xff"}}')

        with pytest.raises(StorageCorrupt, match="UTF-8"):
            TimerStore(path).load()

    def test_corrupt_error_names_file(self, tmp_path):
        """The error message mentions the offending file."""
        path = tmp_path / "state.json"
        path.write_text("{oops", encoding="utf-8")

        with pytest.raises(StorageCorrupt, match="state.json"):
            TimerStore(path).load()


class TestStorageUnavailable:
    """Failures of the underlying medium."""

    def test_failed_replace_keeps_old_state(self, tmp_path):
        """If the rename fails the previous file is untouched."""
        store = TimerStore(tmp_path / "state.json")
        original = sample_state()
        store.save(original)

        with patch("timetally.timer.storage.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StorageUnavailable, match="disk full"):
                store.save(TimerState())

        assert store.load() == original
        assert not [p for p in tmp_path.iterdir() if p.name.endswith(".tmp")]

    def test_uncreatable_directory(self, tmp_path):
        """A parent path that is a file cannot hold the state."""
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        store = TimerStore(blocker / "sub" / "state.json")

        with pytest.raises(StorageUnavailable):
            store.save(TimerState())

    def test_unreadable_file(self, tmp_path):
        """Read errors surface as StorageUnavailable."""
        path = tmp_path / "state.json"
        path.write_text("{}", encoding="utf-8")
        store = TimerStore(path)

        with patch("pathlib.Path.read_text", side_effect=PermissionError("denied")):
            with pytest.raises(StorageUnavailable, match="denied"):
                store.load()


class TestMemoryTimerStore:
    """Tests for the in-memory store."""

    def test_starts_empty(self):
        """A fresh memory store loads the zero state."""
        assert MemoryTimerStore().load() == TimerState()

    def test_round_trip(self):
        """Memory store round-trips through JSON."""
        store = MemoryTimerStore()
        state = sample_state()
        store.save(state)

        assert isinstance(store.content, str)
        assert store.load() == state

    def test_validates_like_file_store(self):
        """Invalid content is rejected the same way as on disk."""
        store = MemoryTimerStore(json.dumps({"state": {"total_accumulated": "-PT1S"}}))

        with pytest.raises(StorageCorrupt):
            store.load()
