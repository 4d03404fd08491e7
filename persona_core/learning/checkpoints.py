"""Checkpoints: durable persona snapshots for rollback.

The engine only depends on the CheckpointStore protocol; ordering and the
storage medium belong to the store. "Latest" means newest timestamp, ties
broken by feedback count. Feedback counts restart with each engine, so they
only order checkpoints taken within the same millisecond.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from persona_core.learning.errors import PersistenceError, RollbackUnavailableError
from persona_core.persona.parameters import PersonaVector

logger = logging.getLogger(__name__)


@dataclass
class Checkpoint:
    """A persona snapshot taken during learning.

    Attributes:
        persona: Persona at checkpoint time
        feedback_count: Feedback events observed when the checkpoint was taken
        validation_score: Best validation score at checkpoint time, if any
        timestamp: When the checkpoint was taken
    """

    persona: PersonaVector
    feedback_count: int
    validation_score: Optional[float] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.timestamp, self.feedback_count)

    def to_dict(self) -> dict:
        """Serialize for storage."""
        return {
            "persona": self.persona.to_dict(),
            "feedback_count": self.feedback_count,
            "validation_score": self.validation_score,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Checkpoint":
        """Deserialize from storage."""
        return cls(
            persona=PersonaVector.from_dict(data["persona"]),
            feedback_count=int(data["feedback_count"]),
            validation_score=data.get("validation_score"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


class CheckpointStore(Protocol):
    """Protocol for checkpoint storage."""

    async def put(self, checkpoint: Checkpoint) -> None:
        """Persist a checkpoint. Raises PersistenceError on failure."""
        ...

    async def get_latest(self) -> Optional[Checkpoint]:
        """Most recent checkpoint, or None if there are none."""
        ...

    async def list(self) -> list[Checkpoint]:
        """All checkpoints, oldest first."""
        ...

    async def prune(self, keep: int) -> int:
        """Delete all but the newest `keep` checkpoints; return how many were removed."""
        ...


async def require_latest(store: CheckpointStore) -> Checkpoint:
    """Latest checkpoint, raising RollbackUnavailableError if there is none."""
    checkpoint = await store.get_latest()
    if checkpoint is None:
        raise RollbackUnavailableError("No checkpoint available for rollback")
    return checkpoint


class InMemoryCheckpointStore:
    """CheckpointStore kept in process memory."""

    def __init__(self, max_checkpoints: Optional[int] = None):
        self.max_checkpoints = max_checkpoints
        self._checkpoints: list[Checkpoint] = []

    async def put(self, checkpoint: Checkpoint) -> None:
        self._checkpoints.append(
            Checkpoint(
                persona=checkpoint.persona.copy(),
                feedback_count=checkpoint.feedback_count,
                validation_score=checkpoint.validation_score,
                timestamp=checkpoint.timestamp,
            )
        )
        self._checkpoints.sort(key=lambda c: c.sort_key)
        if self.max_checkpoints is not None:
            await self.prune(self.max_checkpoints)

    async def get_latest(self) -> Optional[Checkpoint]:
        return self._checkpoints[-1] if self._checkpoints else None

    async def list(self) -> list[Checkpoint]:
        return list(self._checkpoints)

    async def prune(self, keep: int) -> int:
        excess = max(0, len(self._checkpoints) - keep)
        if excess:
            del self._checkpoints[:excess]
        return excess


class DirectoryCheckpointStore:
    """CheckpointStore writing one JSON file per checkpoint.

    Files are named checkpoint_<unix_ms:013d>_<feedback_count:08d>.json so
    that lexical order matches (timestamp, feedback_count) order.
    """

    FILE_PREFIX = "checkpoint_"

    def __init__(self, directory: Path | str, max_checkpoints: Optional[int] = 20):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.max_checkpoints = max_checkpoints

    def _filename(self, checkpoint: Checkpoint) -> str:
        millis = int(checkpoint.timestamp.timestamp() * 1000)
        return f"{self.FILE_PREFIX}{millis:013d}_{checkpoint.feedback_count:08d}.json"

    def _paths(self) -> list[Path]:
        return sorted(self.directory.glob(f"{self.FILE_PREFIX}*.json"))

    def _read(self, path: Path) -> Optional[Checkpoint]:
        try:
            with open(path) as f:
                return Checkpoint.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Skipping unreadable checkpoint {path.name}: {e}")
            return None

    async def put(self, checkpoint: Checkpoint) -> None:
        path = self.directory / self._filename(checkpoint)
        try:
            with open(path, "w") as f:
                json.dump(checkpoint.to_dict(), f, indent=2)
        except OSError as e:
            raise PersistenceError(f"Failed to write checkpoint {path.name}", cause=e) from e

        logger.debug(f"Wrote checkpoint {path.name}")
        if self.max_checkpoints is not None:
            await self.prune(self.max_checkpoints)

    async def get_latest(self) -> Optional[Checkpoint]:
        # Newest first, falling back past unreadable files
        for path in reversed(self._paths()):
            checkpoint = self._read(path)
            if checkpoint is not None:
                return checkpoint
        return None

    async def list(self) -> list[Checkpoint]:
        checkpoints = [self._read(path) for path in self._paths()]
        return [c for c in checkpoints if c is not None]

    async def prune(self, keep: int) -> int:
        paths = self._paths()
        excess = paths[: max(0, len(paths) - keep)]
        for path in excess:
            try:
                path.unlink()
            except OSError as e:
                logger.warning(f"Failed to prune checkpoint {path.name}: {e}")
        return len(excess)
