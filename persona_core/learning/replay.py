"""Experience buffer for rehearsal-style replay.

Recent feedback keeps pulling the persona toward the latest preferences.
Re-applying a few older experiences at reduced strength after each update
counters forgetting of preferences the user expressed earlier.
"""

from collections import deque
from dataclasses import dataclass
from typing import Optional

import numpy as np

from persona_core.learning.schemas import FeedbackSign


@dataclass(frozen=True)
class ExperienceEntry:
    """A past feedback event kept for replay."""

    response_id: str
    sign: FeedbackSign

    def to_dict(self) -> dict:
        return {"response_id": self.response_id, "sign": self.sign.value}


class ExperienceBuffer:
    """Fixed-capacity FIFO of past experiences.

    Recording beyond capacity evicts the oldest entry.
    """

    def __init__(self, capacity: int = 500, rng: Optional[np.random.Generator] = None):
        self.capacity = capacity
        self._entries: deque[ExperienceEntry] = deque(maxlen=capacity)
        self._rng = rng or np.random.default_rng()

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, response_id: str, sign: FeedbackSign) -> None:
        self._entries.append(ExperienceEntry(response_id=response_id, sign=sign))

    def entries(self) -> list[ExperienceEntry]:
        """Buffered entries, oldest first."""
        return list(self._entries)

    def sample(self, count: int) -> list[ExperienceEntry]:
        """Sample up to `count` distinct entries without replacement."""
        size = min(count, len(self._entries))
        if size <= 0:
            return []
        indices = self._rng.choice(len(self._entries), size=size, replace=False)
        return [self._entries[int(i)] for i in indices]

    def clear(self) -> None:
        self._entries.clear()
