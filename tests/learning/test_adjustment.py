"""Tests for the adjustment calculator."""

import pytest

from persona_core.learning.adjustment import (
    AdjustmentCalculator,
    apply_adjustments,
    feature_targets,
)
from persona_core.learning.config import Hyperparameters
from persona_core.learning.features import FeatureVector, LengthBucket, extract_features
from persona_core.learning.schemas import FeedbackSign
from persona_core.persona.parameters import PersonaVector

VERY_VERBOSE = FeatureVector(length_bucket=LengthBucket.VERY_VERBOSE)
NORMAL = FeatureVector(length_bucket=LengthBucket.NORMAL)


class TestFeatureTargets:
    """Tests for the feature -> parameter mapping."""

    def test_very_verbose_weight(self):
        targets = feature_targets(VERY_VERBOSE, Hyperparameters())
        assert targets == {"verbosity": pytest.approx(1.5)}

    def test_verbose_weight(self):
        targets = feature_targets(FeatureVector(length_bucket=LengthBucket.VERBOSE), Hyperparameters())
        assert targets == {"verbosity": pytest.approx(1.0)}

    def test_short_inverts_verbosity(self):
        targets = feature_targets(FeatureVector(length_bucket=LengthBucket.SHORT), Hyperparameters())
        assert targets["verbosity"] < 0

    def test_normal_length_touches_nothing(self):
        assert feature_targets(NORMAL, Hyperparameters()) == {}

    def test_emoji_couples_friendliness_and_formality(self):
        features = FeatureVector(length_bucket=LengthBucket.NORMAL, has_emoji=True)
        targets = feature_targets(features, Hyperparameters())

        assert targets["emoji_usage"] == pytest.approx(1.0)
        assert targets["enthusiasm"] == pytest.approx(1.0)
        assert targets["friendliness"] == pytest.approx(1.0)
        assert targets["formality"] == pytest.approx(-0.5)

    def test_content_features(self):
        features = FeatureVector(
            length_bucket=LengthBucket.NORMAL,
            has_code=True,
            has_examples=True,
            is_structured=True,
        )
        targets = feature_targets(features, Hyperparameters())
        assert set(targets) == {"code_snippets", "example_usage", "structured_output"}

    def test_weights_configurable(self):
        hp = Hyperparameters()
        hp.feature_weights.very_verbose = 2.0
        assert feature_targets(VERY_VERBOSE, hp)["verbosity"] == pytest.approx(2.0)


class TestAdjustmentCalculator:
    """Tests for AdjustmentCalculator."""

    @pytest.fixture
    def calculator(self):
        return AdjustmentCalculator(Hyperparameters())

    def test_positive_very_verbose_first_step(self, calculator):
        adjustments = calculator.compute_adjustments(
            PersonaVector.defaults(), VERY_VERBOSE, FeedbackSign.POSITIVE
        )

        # raw 0.02 * 100 * 1.5 = 3.0, momentum keeps (1 - 0.9) of it
        adj = adjustments["verbosity"]
        assert adj.old_value == 50.0
        assert adj.delta == pytest.approx(0.3)
        assert adj.new_value == pytest.approx(50.3)

    def test_negative_moves_down(self, calculator):
        adjustments = calculator.compute_adjustments(
            PersonaVector.defaults(), VERY_VERBOSE, FeedbackSign.NEGATIVE
        )
        assert adjustments["verbosity"].delta == pytest.approx(-0.3)

    def test_l2_pulls_toward_neutral(self, calculator):
        features = FeatureVector(length_bucket=LengthBucket.NORMAL, has_emoji=True)
        adjustments = calculator.compute_adjustments(
            PersonaVector.defaults(), features, FeedbackSign.POSITIVE
        )

        # emoji_usage starts at 30: raw 2.0 + 0.01 * 20 pull = 2.2
        assert adjustments["emoji_usage"].delta == pytest.approx(0.22)

    def test_momentum_accumulates(self, calculator):
        persona = PersonaVector.defaults()
        deltas = []
        for _ in range(3):
            adjustments = calculator.compute_adjustments(persona, VERY_VERBOSE, FeedbackSign.POSITIVE)
            deltas.append(adjustments["verbosity"].delta)
            persona = apply_adjustments(persona, adjustments)

        assert deltas[0] < deltas[1] < deltas[2]
        assert calculator.momentum["verbosity"] > 0

    def test_gradient_clip(self):
        hp = Hyperparameters(learning_rate=0.5, momentum_beta=0.0, gradient_clip_max=4.0, max_change_per_update=10.0)
        calculator = AdjustmentCalculator(hp)

        adjustments = calculator.compute_adjustments(
            PersonaVector.defaults(), VERY_VERBOSE, FeedbackSign.POSITIVE
        )
        assert adjustments["verbosity"].delta == pytest.approx(4.0)

    def test_per_update_cap(self):
        hp = Hyperparameters(learning_rate=0.5, momentum_beta=0.0)
        calculator = AdjustmentCalculator(hp)

        adjustments = calculator.compute_adjustments(
            PersonaVector.defaults(), VERY_VERBOSE, FeedbackSign.POSITIVE
        )
        assert adjustments["verbosity"].delta == pytest.approx(3.0)

    def test_upper_bound_is_dead_zoned(self, calculator):
        persona = PersonaVector(values={"verbosity": 100.0})
        adjustments = calculator.compute_adjustments(persona, VERY_VERBOSE, FeedbackSign.POSITIVE)

        assert "verbosity" not in adjustments

    def test_lower_bound_holds(self):
        hp = Hyperparameters(momentum_beta=0.0)
        calculator = AdjustmentCalculator(hp)
        persona = PersonaVector(values={"verbosity": 1.0})

        adjustments = calculator.compute_adjustments(persona, VERY_VERBOSE, FeedbackSign.NEGATIVE)
        assert adjustments["verbosity"].new_value == 0.0

    def test_dead_zone_filters_tiny_changes(self):
        hp = Hyperparameters(learning_rate=0.0001)
        calculator = AdjustmentCalculator(hp)

        adjustments = calculator.compute_adjustments(
            PersonaVector.defaults(), extract_features("Sure."), FeedbackSign.POSITIVE
        )
        assert adjustments == {}
        # Momentum still tracks the filtered delta
        assert "verbosity" in calculator.momentum

    def test_learning_rate_override(self, calculator):
        adjustments = calculator.compute_adjustments(
            PersonaVector.defaults(), VERY_VERBOSE, FeedbackSign.POSITIVE, learning_rate=0.01
        )
        assert adjustments["verbosity"].delta == pytest.approx(0.15)

    def test_reset_clears_momentum(self, calculator):
        calculator.compute_adjustments(PersonaVector.defaults(), VERY_VERBOSE, FeedbackSign.POSITIVE)
        calculator.reset()
        assert calculator.momentum == {}


class TestApplyAdjustments:
    """Tests for apply_adjustments."""

    def test_returns_new_vector(self):
        calculator = AdjustmentCalculator(Hyperparameters())
        persona = PersonaVector.defaults()
        adjustments = calculator.compute_adjustments(persona, VERY_VERBOSE, FeedbackSign.POSITIVE)

        updated = apply_adjustments(persona, adjustments)
        assert updated["verbosity"] == pytest.approx(50.3)
        assert persona["verbosity"] == 50.0
