"""
Feedback log — append-only record of submitted user feedback.

Every accepted ``POST /api/feedback`` writes one line to an NDJSON
(newline-delimited JSON) file under the state directory. Entries are
never modified or deleted.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".state"
DEFAULT_FEEDBACK_FILE = "feedback.ndjson"


def _feedback_id() -> str:
    return f"fb-{uuid.uuid4().hex[:12]}"


class FeedbackEntry(BaseModel):
    """A single feedback submission."""

    id: str = Field(default_factory=_feedback_id)
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    client: str = ""
    user_agent: str = ""

    # Submitted body, stored as-is
    payload: dict[str, Any] = Field(default_factory=dict)


class FeedbackLog:
    """Append-only feedback writer/reader."""

    def __init__(self, path: Path | None = None, state_dir: Path | None = None):
        if path is not None:
            self._path = path
        elif state_dir is not None:
            self._path = state_dir / DEFAULT_FEEDBACK_FILE
        else:
            self._path = Path(DEFAULT_STATE_DIR) / DEFAULT_FEEDBACK_FILE

    @property
    def path(self) -> Path:
        return self._path

    def append(self, entry: FeedbackEntry) -> None:
        """Append one entry.

        Raises:
            OSError: If the log cannot be written.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        with self._path.open("a", encoding="utf-8") as f:
            f.write(line)
        logger.debug("Feedback entry written: %s", entry.id)

    def read_all(self) -> list[FeedbackEntry]:
        """All entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        with self._path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(FeedbackEntry.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning("Skipping corrupt feedback entry at line %d: %s", line_num, e)
        return entries

    def read_recent(self, n: int = 20) -> list[FeedbackEntry]:
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        if not self._path.is_file():
            return 0
        with self._path.open("r", encoding="utf-8") as f:
            return sum(1 for line in f if line.strip())
