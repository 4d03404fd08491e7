"""Validation and early stopping over a streaming feedback history.

There is no held-out set in an online loop, so the validation set is the
trailing slice of feedback history, re-sampled after every event. The
validation score is the positive-feedback ratio over that slice. When the
score fails to beat its best for `patience` consecutive evaluations, the
loop stalls: the engine restores the best snapshot and stops applying
updates until a remediation resumes it.

Phases:
    WARMING_UP --(min_feedback_samples reached)--> LEARNING
    LEARNING --(no improvement for patience evaluations)--> STALLED
    STALLED --(resume)--> LEARNING
    any --(reset)--> WARMING_UP
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from persona_core.learning.config import Hyperparameters
from persona_core.learning.schemas import FeedbackEvent, LearningPhase
from persona_core.persona.parameters import PersonaVector

logger = logging.getLogger(__name__)


def positive_ratio(events: Iterable[FeedbackEvent]) -> Optional[float]:
    """Fraction of positive events, or None for an empty sequence."""
    flags = np.fromiter((e.is_positive for e in events), dtype=bool)
    if flags.size == 0:
        return None
    return float(flags.mean())


@dataclass
class EarlyStoppingState:
    """Best-so-far tracking for early stopping.

    Attributes:
        best_score: Best validation score seen (None before the first evaluation)
        best_snapshot: Persona at the time of the best score
        no_improvement_count: Consecutive evaluations without improvement
    """

    best_score: Optional[float] = None
    best_snapshot: Optional[PersonaVector] = None
    no_improvement_count: int = 0

    def to_dict(self) -> dict:
        return {
            "best_score": self.best_score,
            "best_snapshot": self.best_snapshot.to_dict() if self.best_snapshot else None,
            "no_improvement_count": self.no_improvement_count,
        }


class ValidationController:
    """Tracks feedback history, validation score and the learning phase.

    Attributes:
        hyperparameters: Shared, live hyperparameters of the engine
        history: Bounded feedback history, oldest first
        sample_count: Events observed since the last reset (unbounded)
        state: Early stopping state
        phase: Current learning phase
    """

    def __init__(self, hyperparameters: Hyperparameters):
        self.hyperparameters = hyperparameters
        self.history: deque[FeedbackEvent] = deque(maxlen=hyperparameters.history_limit)
        self.sample_count = 0
        self.state = EarlyStoppingState()
        self.phase = LearningPhase.WARMING_UP

    def observe(self, event: FeedbackEvent) -> LearningPhase:
        """Record a feedback event and return the phase it is processed in.

        Warm-up counts prior samples: with min_feedback_samples=5 the first
        five events are recorded without learning and the sixth learns.
        """
        prior = self.sample_count
        self.history.append(event)
        self.sample_count += 1

        if self.phase is LearningPhase.STALLED:
            return self.phase

        if prior < self.hyperparameters.min_feedback_samples:
            self.phase = LearningPhase.WARMING_UP
            return self.phase

        if self.phase is LearningPhase.WARMING_UP:
            logger.info(f"Warm-up complete after {prior} samples, learning enabled")
            self.phase = LearningPhase.LEARNING

        return self.phase

    def validation_window(self) -> list[FeedbackEvent]:
        """Trailing slice of history used for validation."""
        size = max(1, int(len(self.history) * self.hyperparameters.validation_split_ratio))
        return list(self.history)[-size:]

    def compute_validation_score(self) -> Optional[float]:
        """Positive ratio of the validation window, or None with too little history."""
        if len(self.history) < self.hyperparameters.min_validation_samples:
            return None
        return positive_ratio(self.validation_window())

    def evaluate(self, current: PersonaVector) -> Optional[float]:
        """Compute the validation score and update early stopping state.

        Args:
            current: Persona the feedback was given against, snapshotted on improvement

        Returns:
            The validation score, or None if not computed
        """
        score = self.compute_validation_score()
        if score is None:
            return None

        hp = self.hyperparameters
        if self.state.best_score is None or score > self.state.best_score + hp.improvement_epsilon:
            self.state.best_score = score
            self.state.best_snapshot = current.copy()
            self.state.no_improvement_count = 0
            logger.debug(f"New best validation score {score:.3f}")
        else:
            self.state.no_improvement_count += 1

        if (
            self.phase is LearningPhase.LEARNING
            and self.state.no_improvement_count >= hp.patience
        ):
            self.phase = LearningPhase.STALLED
            logger.info(
                f"Early stopping: no improvement for {self.state.no_improvement_count} "
                f"evaluations (best={self.state.best_score:.3f})"
            )

        return score

    def resume(self) -> None:
        """Leave STALLED and continue learning with a fresh patience window."""
        self.state.no_improvement_count = 0
        if self.phase is LearningPhase.STALLED:
            self.phase = (
                LearningPhase.LEARNING
                if self.sample_count >= self.hyperparameters.min_feedback_samples
                else LearningPhase.WARMING_UP
            )
            logger.info(f"Learning resumed (phase={self.phase.value})")

    def restore_best(self, snapshot: PersonaVector, score: Optional[float]) -> None:
        """Overwrite the best snapshot, e.g. after a checkpoint rollback."""
        self.state.best_snapshot = snapshot.copy()
        self.state.best_score = score

    def reset(self) -> int:
        """Clear history and early stopping state.

        Returns:
            Number of events that were in history
        """
        cleared = len(self.history)
        self.history = deque(maxlen=self.hyperparameters.history_limit)
        self.sample_count = 0
        self.state = EarlyStoppingState()
        self.phase = LearningPhase.WARMING_UP
        return cleared
