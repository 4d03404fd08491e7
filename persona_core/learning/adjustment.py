"""Adjustment calculator: feedback + features -> stabilized parameter deltas.

For every parameter a response's features touch, the raw delta is the
feedback direction scaled by the learning rate and a feature weight. It is
then stabilized in a fixed order:

    raw -> L2 pull toward 50 -> gradient clip -> momentum EMA
        -> per-update cap -> clamp into [0, 100] -> dead-zone filter

Momentum here is an exponential moving average of deltas, not an
accumulator: a single noisy feedback event only moves a parameter by
(1 - beta) of its clipped delta.
"""

import logging
from typing import Optional

from persona_core.learning.config import Hyperparameters
from persona_core.learning.features import FeatureVector, LengthBucket
from persona_core.learning.schemas import Adjustments, FeedbackSign, ParameterAdjustment
from persona_core.persona.parameters import NEUTRAL_VALUE, PersonaVector, clamp_value

logger = logging.getLogger(__name__)


def feature_targets(features: FeatureVector, hyperparameters: Hyperparameters) -> dict[str, float]:
    """Map features to the parameters they touch and a signed weight.

    A positive weight moves the parameter in the feedback direction, a
    negative weight moves it against it. Insertion order is stable so the
    audit trail is deterministic.
    """
    weights = hyperparameters.feature_weights
    targets: dict[str, float] = {}

    if features.length_bucket is LengthBucket.VERY_VERBOSE:
        targets["verbosity"] = weights.base * weights.very_verbose
    elif features.length_bucket is LengthBucket.VERBOSE:
        targets["verbosity"] = weights.base
    elif features.length_bucket is LengthBucket.SHORT:
        # Liked short answers mean less verbosity
        targets["verbosity"] = -weights.base

    if features.has_emoji:
        targets["emoji_usage"] = weights.base
    if features.has_humor:
        targets["humor"] = weights.base
    if features.has_code:
        targets["code_snippets"] = weights.base
    if features.has_examples:
        targets["example_usage"] = weights.base
    if features.is_structured:
        targets["structured_output"] = weights.base

    # Humor and emoji read as friendly and informal
    if features.has_emoji or features.has_humor:
        targets["friendliness"] = weights.base
        targets["formality"] = -weights.base * weights.formality_coupling

    if features.has_emoji:
        targets["enthusiasm"] = weights.base

    return targets


class AdjustmentCalculator:
    """Computes stabilized parameter deltas and owns the momentum state.

    Attributes:
        hyperparameters: Shared, live hyperparameters of the engine
        momentum: Parameter name -> running momentum (EMA of deltas)
    """

    def __init__(self, hyperparameters: Hyperparameters):
        self.hyperparameters = hyperparameters
        self.momentum: dict[str, float] = {}

    def reset(self) -> None:
        """Clear momentum state."""
        self.momentum.clear()

    def stabilize(self, name: str, raw_delta: float, current_value: float) -> float:
        """Apply L2, clipping, momentum and the per-update cap to one raw delta.

        Updates the momentum for this parameter as a side effect.
        """
        hp = self.hyperparameters

        delta = raw_delta - hp.l2_lambda * (current_value - NEUTRAL_VALUE)
        delta = max(-hp.gradient_clip_max, min(hp.gradient_clip_max, delta))

        smoothed = hp.momentum_beta * self.momentum.get(name, 0.0) + (1.0 - hp.momentum_beta) * delta
        self.momentum[name] = smoothed

        return max(-hp.max_change_per_update, min(hp.max_change_per_update, smoothed))

    def compute_adjustments(
        self,
        current: PersonaVector,
        features: FeatureVector,
        sign: FeedbackSign,
        learning_rate: Optional[float] = None,
    ) -> Adjustments:
        """Compute per-parameter adjustments for one feedback event.

        Args:
            current: Persona before the update
            features: Features of the response the feedback refers to
            sign: Feedback polarity
            learning_rate: Override for the configured rate (used by replay)

        Returns:
            Parameter name -> adjustment, only for changes beyond the dead zone
        """
        hp = self.hyperparameters
        rate = hp.learning_rate if learning_rate is None else learning_rate
        direction = sign.direction

        adjustments: Adjustments = {}
        for name, weight in feature_targets(features, hp).items():
            current_value = current[name]
            raw_delta = direction * rate * 100.0 * weight
            delta = self.stabilize(name, raw_delta, current_value)

            new_value = clamp_value(current_value + delta)
            actual = new_value - current_value
            if abs(actual) > hp.dead_zone:
                adjustments[name] = ParameterAdjustment(
                    old_value=current_value,
                    new_value=new_value,
                    delta=actual,
                )

        if adjustments:
            logger.debug(
                f"Computed {len(adjustments)} adjustments ({sign.value}, lr={rate:.4f}): "
                f"{', '.join(f'{k}={v.delta:+.2f}' for k, v in adjustments.items())}"
            )

        return adjustments


def apply_adjustments(current: PersonaVector, adjustments: Adjustments) -> PersonaVector:
    """Return a new persona with the adjustments' new values applied."""
    return current.with_updates({name: adj.new_value for name, adj in adjustments.items()})
