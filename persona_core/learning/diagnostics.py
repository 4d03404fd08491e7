"""Overfitting diagnostics and remediation actions.

Diagnosis and remediation are separate: detect_overfitting only reads the
feedback history and recent adjustments and returns typed remediation
actions; the engine's apply_remediation interprets them. Three indicators
are checked:

- Train/validation gap: early feedback much more positive than recent
  feedback means the persona has drifted away from what worked.
- Parameter volatility: large cumulative deltas over recent updates.
- Negative-feedback spike: most of the last few responses were disliked.
"""

from dataclasses import dataclass, field
from typing import Sequence, Union

import numpy as np

from persona_core.learning.schemas import Adjustments, FeedbackEvent
from persona_core.learning.validation import positive_ratio


# =============================================================================
# Remediation actions
# =============================================================================


@dataclass(frozen=True)
class ReduceLearningRate:
    """Multiply the learning rate by `factor` (clamped to the minimum rate)."""

    factor: float = 0.5

    def describe(self) -> str:
        return f"Reduce learning rate by factor {self.factor}"


@dataclass(frozen=True)
class IncreaseRegularization:
    """Multiply the L2 strength by `factor` (clamped to the maximum)."""

    factor: float = 2.0

    def describe(self) -> str:
        return f"Increase L2 regularization by factor {self.factor}"


@dataclass(frozen=True)
class IncreaseMomentum:
    """Raise momentum beta to at least `beta`."""

    beta: float = 0.95

    def describe(self) -> str:
        return f"Increase momentum beta to {self.beta}"


@dataclass(frozen=True)
class EnableGradientClipping:
    """Tighten the gradient clip to at most `max_value`."""

    max_value: float = 5.0

    def describe(self) -> str:
        return f"Clip gradients at {self.max_value}"


@dataclass(frozen=True)
class RollbackToCheckpoint:
    """Restore the persona from the latest checkpoint."""

    def describe(self) -> str:
        return "Roll back to the latest checkpoint"


RemediationAction = Union[
    ReduceLearningRate,
    IncreaseRegularization,
    IncreaseMomentum,
    EnableGradientClipping,
    RollbackToCheckpoint,
]


# =============================================================================
# Diagnosis
# =============================================================================


@dataclass(frozen=True)
class DiagnosticThresholds:
    """Windows and thresholds for overfitting detection."""

    gap_window: int = 50
    validation_tail: int = 10
    max_gap: float = 0.2
    volatility_window: int = 20
    max_volatility: float = 100.0
    spike_window: int = 10
    spike_negatives: int = 6


@dataclass
class OverfittingReport:
    """Result of a diagnostics run.

    Attributes:
        is_overfitting: True if any indicator fired
        indicators: Human-readable description of each fired indicator
        recommendations: Remediation actions, at most one per action type
        metrics: Raw values behind the indicators
    """

    is_overfitting: bool = False
    indicators: list[str] = field(default_factory=list)
    recommendations: list[RemediationAction] = field(default_factory=list)
    metrics: dict[str, float] = field(default_factory=dict)

    def recommend(self, action: RemediationAction) -> None:
        """Add an action unless one of the same type is already recommended."""
        if not any(type(existing) is type(action) for existing in self.recommendations):
            self.recommendations.append(action)

    def to_dict(self) -> dict:
        return {
            "is_overfitting": self.is_overfitting,
            "indicators": list(self.indicators),
            "recommendations": [action.describe() for action in self.recommendations],
            "metrics": dict(self.metrics),
        }


def parameter_volatility(recent_adjustments: Sequence[Adjustments]) -> float:
    """Sum of absolute deltas across a sequence of adjustment records."""
    deltas = np.fromiter(
        (abs(adj.delta) for record in recent_adjustments for adj in record.values()),
        dtype=float,
    )
    return float(deltas.sum())


def detect_overfitting(
    history: Sequence[FeedbackEvent],
    recent_adjustments: Sequence[Adjustments],
    thresholds: DiagnosticThresholds = DiagnosticThresholds(),
    default_clip: float = 5.0,
) -> OverfittingReport:
    """Inspect feedback trends for signs of overfitting or instability.

    Args:
        history: Feedback events, oldest first
        recent_adjustments: Per-event adjustment records, oldest first
        thresholds: Windows and thresholds
        default_clip: Clip value recommended when volatility is high

    Returns:
        OverfittingReport with indicators and recommended actions
    """
    report = OverfittingReport()
    events = list(history)

    # Train/validation gap
    recent = events[-thresholds.gap_window:]
    train = recent[: -thresholds.validation_tail] if len(recent) > thresholds.validation_tail else []
    validation = recent[-thresholds.validation_tail:]
    train_ratio = positive_ratio(train)
    validation_ratio = positive_ratio(validation)
    if train_ratio is not None and validation_ratio is not None:
        gap = train_ratio - validation_ratio
        report.metrics["train_ratio"] = train_ratio
        report.metrics["validation_ratio"] = validation_ratio
        report.metrics["gap"] = gap
        if gap > thresholds.max_gap:
            report.indicators.append(
                f"Train/validation gap {gap:.2f} exceeds {thresholds.max_gap:.2f} "
                f"(train={train_ratio:.2f}, validation={validation_ratio:.2f})"
            )
            report.recommend(ReduceLearningRate(0.5))
            report.recommend(IncreaseRegularization(2.0))

    # Parameter volatility
    volatility = parameter_volatility(list(recent_adjustments)[-thresholds.volatility_window:])
    report.metrics["volatility"] = volatility
    if volatility > thresholds.max_volatility:
        report.indicators.append(
            f"Parameter volatility {volatility:.1f} exceeds {thresholds.max_volatility:.1f}"
        )
        report.recommend(IncreaseMomentum(0.95))
        report.recommend(EnableGradientClipping(default_clip))

    # Negative-feedback spike
    last = events[-thresholds.spike_window:]
    negatives = sum(1 for e in last if not e.is_positive)
    report.metrics["recent_negatives"] = float(negatives)
    if negatives >= thresholds.spike_negatives:
        report.indicators.append(
            f"Negative feedback spike: {negatives} of last {len(last)} events"
        )
        report.recommend(RollbackToCheckpoint())
        report.recommend(ReduceLearningRate(0.5))

    report.is_overfitting = bool(report.indicators)
    return report
