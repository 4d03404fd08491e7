"""Collaborator interfaces the learning engine depends on.

- ResponseLookup resolves a response id to the response text
- LearningLog receives the audit trail of every feedback event

Both are protocols; the in-memory and JSONL implementations here cover
tests, the CLI, and single-process hosts.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Protocol

from persona_core.learning.errors import PersistenceError
from persona_core.learning.schemas import LearningRecord

logger = logging.getLogger(__name__)


class ResponseLookup(Protocol):
    """Protocol for looking up generated responses."""

    async def find_response(self, response_id: str) -> Optional[str]:
        """Response text, or None if the response does not exist."""
        ...


class LearningLog(Protocol):
    """Protocol for the write-only learning audit log."""

    async def record(self, entry: LearningRecord) -> None:
        """Append an entry. Raises PersistenceError on failure."""
        ...


class InMemoryResponseLookup:
    """ResponseLookup backed by a dict."""

    def __init__(self, responses: Optional[dict[str, str]] = None):
        self._responses: dict[str, str] = dict(responses or {})

    def add(self, response_id: str, text: str) -> None:
        self._responses[response_id] = text

    async def find_response(self, response_id: str) -> Optional[str]:
        return self._responses.get(response_id)


class InMemoryLearningLog:
    """LearningLog that keeps entries in a list."""

    def __init__(self):
        self.entries: list[LearningRecord] = []

    async def record(self, entry: LearningRecord) -> None:
        self.entries.append(entry)

    def clear(self) -> int:
        cleared = len(self.entries)
        self.entries.clear()
        return cleared


class JsonlLearningLog:
    """LearningLog appending one JSON object per line."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def record(self, entry: LearningRecord) -> None:
        try:
            with open(self.path, "a") as f:
                f.write(json.dumps(entry.to_dict()) + "\n")
        except OSError as e:
            raise PersistenceError(f"Failed to append to learning log {self.path}", cause=e) from e

    def read_all(self) -> list[LearningRecord]:
        """Read every entry back; malformed lines are skipped."""
        if not self.path.exists():
            return []

        records = []
        with open(self.path) as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(LearningRecord.from_dict(json.loads(line)))
                except (ValueError, KeyError) as e:
                    logger.warning(f"Skipping malformed learning log line {line_number}: {e}")
        return records
