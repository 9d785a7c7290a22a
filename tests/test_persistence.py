"""
Tests for the append-only feedback log.
"""

from __future__ import annotations

from pathlib import Path

from aggregator.core.persistence.feedback_log import (
    DEFAULT_FEEDBACK_FILE,
    FeedbackEntry,
    FeedbackLog,
)


class TestFeedbackEntry:
    def test_defaults(self):
        entry = FeedbackEntry(payload={"message": "hi"})
        assert entry.id.startswith("fb-")
        assert entry.timestamp
        assert entry.client == ""

    def test_unique_ids(self):
        assert FeedbackEntry().id != FeedbackEntry().id


class TestFeedbackLog:
    def test_path_from_state_dir(self, tmp_path: Path):
        log = FeedbackLog(state_dir=tmp_path)
        assert log.path == tmp_path / DEFAULT_FEEDBACK_FILE

    def test_empty(self, tmp_path: Path):
        log = FeedbackLog(tmp_path / "none.ndjson")
        assert log.read_all() == []
        assert log.entry_count() == 0

    def test_append_and_read(self, tmp_path: Path):
        log = FeedbackLog(tmp_path / "nested" / "fb.ndjson")
        log.append(FeedbackEntry(client="1.2.3.4", payload={"rating": 5}))
        log.append(FeedbackEntry(payload={"message": "ümlaut"}))

        entries = log.read_all()
        assert [e.payload for e in entries] == [{"rating": 5}, {"message": "ümlaut"}]
        assert entries[0].client == "1.2.3.4"
        assert log.entry_count() == 2

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        path = tmp_path / "fb.ndjson"
        log = FeedbackLog(path)
        log.append(FeedbackEntry(payload={"n": 1}))
        with path.open("a", encoding="utf-8") as f:
            f.write("{broken\n\n")
            f.write('{"payload": "not a dict"}\n')
        log.append(FeedbackEntry(payload={"n": 2}))

        assert [e.payload["n"] for e in log.read_all()] == [1, 2]

    def test_read_recent(self, tmp_path: Path):
        log = FeedbackLog(tmp_path / "fb.ndjson")
        for i in range(5):
            log.append(FeedbackEntry(payload={"n": i}))
        assert [e.payload["n"] for e in log.read_recent(2)] == [3, 4]
