"""Data structures shared across the learning engine components."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from persona_core.persona.parameters import PersonaVector


class FeedbackSign(str, Enum):
    """Polarity of a user's feedback on a response."""

    POSITIVE = "positive"
    NEGATIVE = "negative"

    @property
    def direction(self) -> int:
        """+1 for positive feedback, -1 for negative."""
        return 1 if self is FeedbackSign.POSITIVE else -1


class LearningPhase(Enum):
    """Phases of the learning loop.

    WARMING_UP -> LEARNING -> STALLED, with STALLED returning to LEARNING
    on remediation and any phase returning to WARMING_UP on reset.
    """

    WARMING_UP = "warming_up"
    LEARNING = "learning"
    STALLED = "stalled"


@dataclass(frozen=True)
class FeedbackEvent:
    """A user's signal on one generated response. Immutable once created."""

    response_id: str
    sign: FeedbackSign
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_positive(self) -> bool:
        return self.sign is FeedbackSign.POSITIVE

    def to_dict(self) -> dict:
        return {
            "response_id": self.response_id,
            "sign": self.sign.value,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FeedbackEvent":
        return cls(
            response_id=data["response_id"],
            sign=FeedbackSign(data["sign"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class ParameterAdjustment:
    """One parameter's change from a single update.

    Attributes:
        old_value: Value before the update
        new_value: Value after the update (within [0, 100])
        delta: new_value - old_value
    """

    old_value: float
    new_value: float
    delta: float

    def to_dict(self) -> dict:
        return {
            "old_value": self.old_value,
            "new_value": self.new_value,
            "delta": self.delta,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ParameterAdjustment":
        return cls(
            old_value=data["old_value"],
            new_value=data["new_value"],
            delta=data["delta"],
        )


# Per-event audit trail: parameter name -> adjustment
Adjustments = dict[str, ParameterAdjustment]


def adjustments_to_dict(adjustments: Adjustments) -> dict[str, dict]:
    return {name: adj.to_dict() for name, adj in adjustments.items()}


@dataclass
class LearningRecord:
    """Audit entry written to the learning log for every feedback event."""

    response_id: str
    sign: FeedbackSign
    persona_before: PersonaVector
    adjustments: Adjustments
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "response_id": self.response_id,
            "sign": self.sign.value,
            "persona_before": self.persona_before.to_dict(),
            "adjustments": adjustments_to_dict(self.adjustments),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LearningRecord":
        return cls(
            response_id=data["response_id"],
            sign=FeedbackSign(data["sign"]),
            persona_before=PersonaVector.from_dict(data.get("persona_before", {})),
            adjustments={
                name: ParameterAdjustment.from_dict(adj)
                for name, adj in data.get("adjustments", {}).items()
            },
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class FeedbackResult:
    """Outcome of processing one feedback event.

    Attributes:
        updated_persona: Copy of the persona after the event
        adjustments: Adjustments applied for this event (empty when skipped)
        phase: Learning phase after the event
        skipped: True when no adjustment was performed (warm-up or stalled)
        validation_score: Validation score computed for this event, if any
        replayed: Number of experiences replayed after the update
    """

    updated_persona: PersonaVector
    adjustments: Adjustments
    phase: LearningPhase
    skipped: bool = False
    validation_score: Optional[float] = None
    replayed: int = 0


@dataclass
class LearningStats:
    """Aggregate feedback statistics."""

    total_feedback: int
    positive_feedback: int
    negative_feedback: int
    satisfaction_rate: float  # percent
    last_feedback_time: Optional[datetime]
    most_adjusted_parameters: list[tuple[str, int]]
    learning_rate: float
    phase: LearningPhase
    best_validation_score: Optional[float]
    buffer_size: int

    def to_dict(self) -> dict:
        return {
            "total_feedback": self.total_feedback,
            "positive_feedback": self.positive_feedback,
            "negative_feedback": self.negative_feedback,
            "satisfaction_rate": self.satisfaction_rate,
            "last_feedback_time": (
                self.last_feedback_time.isoformat() if self.last_feedback_time else None
            ),
            "most_adjusted_parameters": [
                {"parameter": name, "adjustment_count": count}
                for name, count in self.most_adjusted_parameters
            ],
            "learning_rate": self.learning_rate,
            "phase": self.phase.value,
            "best_validation_score": self.best_validation_score,
            "buffer_size": self.buffer_size,
        }


@dataclass
class TrendPoint:
    """Feedback counts for one UTC day."""

    date: str  # YYYY-MM-DD
    positive: int = 0
    negative: int = 0
