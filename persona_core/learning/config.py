"""Configuration for the persona learning engine.

Hyperparameters is the one place every tunable of the learning loop lives.
It validates on assignment, so remediation and setters cannot push the
engine into an invalid configuration. LearnerSettings layers environment
overrides (PERSONA_LEARNER_ prefix) and storage paths on top.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field, model_validator

ENV_PREFIX = "PERSONA_LEARNER_"
ENV_NESTED_DELIMITER = "__"


class FeatureWeights(BaseModel):
    """Multipliers applied to feature-driven raw deltas.

    These are tuning knobs, not load-bearing constants.
    """

    model_config = {"validate_assignment": True}

    base: float = Field(default=1.0, ge=0.0)
    very_verbose: float = Field(default=1.5, ge=0.0)
    formality_coupling: float = Field(default=0.5, ge=0.0)


class Hyperparameters(BaseModel):
    """Hyperparameters of the online learning loop.

    Attributes:
        learning_rate: Fraction of the 0-100 range moved per unit feature weight
        min_learning_rate: Lower clamp for set_learning_rate and remediation
        max_learning_rate: Upper clamp for set_learning_rate
        l2_lambda: Strength of the pull toward the neutral value 50
        max_l2_lambda: Ceiling for regularization increases
        momentum_beta: EMA coefficient for per-parameter momentum
        gradient_clip_max: Absolute cap on a delta before momentum
        max_change_per_update: Absolute cap on a single parameter's delta
        max_change_per_epoch: Cap on total absolute drift per feedback event
        dead_zone: Changes at or below this are not recorded
        min_feedback_samples: Prior events required before learning starts
        min_validation_samples: History length required to compute validation
        validation_split_ratio: Trailing fraction of history used for validation
        improvement_epsilon: Margin a validation score must beat the best by
        patience: Non-improving validations tolerated before stalling
        checkpoint_interval: Feedback events between checkpoints
        buffer_size: Experience replay buffer capacity
        replay_samples_per_update: Experiences replayed after each update
        replay_lr_factor: Learning-rate multiplier for replayed experiences
        history_limit: Feedback events retained in memory
        auto_remediate: Apply diagnostics recommendations automatically
    """

    model_config = {"validate_assignment": True}

    learning_rate: float = Field(default=0.02, gt=0.0, le=1.0)
    min_learning_rate: float = Field(default=0.01, gt=0.0, le=1.0)
    max_learning_rate: float = Field(default=0.05, gt=0.0, le=1.0)

    l2_lambda: float = Field(default=0.01, ge=0.0, le=1.0)
    max_l2_lambda: float = Field(default=0.1, ge=0.0, le=1.0)
    momentum_beta: float = Field(default=0.9, ge=0.0, lt=1.0)
    gradient_clip_max: float = Field(default=5.0, gt=0.0)
    max_change_per_update: float = Field(default=3.0, gt=0.0)
    max_change_per_epoch: float = Field(default=10.0, gt=0.0)
    dead_zone: float = Field(default=0.01, ge=0.0)

    min_feedback_samples: int = Field(default=5, ge=0)
    min_validation_samples: int = Field(default=6, ge=1)
    validation_split_ratio: float = Field(default=0.2, gt=0.0, le=1.0)
    improvement_epsilon: float = Field(default=0.01, ge=0.0)
    patience: int = Field(default=20, ge=1)

    checkpoint_interval: int = Field(default=10, ge=1)
    buffer_size: int = Field(default=500, ge=1)
    replay_samples_per_update: int = Field(default=3, ge=0)
    replay_lr_factor: float = Field(default=0.5, gt=0.0, le=1.0)
    history_limit: int = Field(default=1000, ge=1)

    auto_remediate: bool = False

    feature_weights: FeatureWeights = Field(default_factory=FeatureWeights)

    @model_validator(mode="after")
    def _check_ranges(self) -> "Hyperparameters":
        if self.min_learning_rate > self.max_learning_rate:
            raise ValueError("min_learning_rate must be <= max_learning_rate")
        if self.l2_lambda > self.max_l2_lambda:
            raise ValueError("l2_lambda must be <= max_l2_lambda")
        return self

    def clamp_learning_rate(self, rate: float) -> float:
        """Clamp a proposed learning rate to [min_learning_rate, max_learning_rate]."""
        return max(self.min_learning_rate, min(self.max_learning_rate, rate))


class LearnerSettings(BaseModel):
    """Deployment settings for a learning engine instance.

    Use from_env() to read overrides from PERSONA_LEARNER_* variables;
    "__" separates nested fields.

    Example:
        PERSONA_LEARNER_CHECKPOINT_DIR=/var/lib/persona/checkpoints
        PERSONA_LEARNER_HYPERPARAMETERS__PATIENCE=30
    """

    checkpoint_dir: Path = Path("data/persona/checkpoints")
    persona_path: Path = Path("data/persona/persona.json")
    learning_log_path: Path = Path("data/persona/learning_log.jsonl")
    max_checkpoints: int = Field(default=20, ge=1)
    replay_seed: Optional[int] = None

    hyperparameters: Hyperparameters = Field(default_factory=Hyperparameters)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LearnerSettings":
        """Build settings from PERSONA_LEARNER_* environment variables.

        Args:
            environ: Variables to read (defaults to os.environ)

        Raises:
            pydantic.ValidationError: If a value fails validation
        """
        environ = os.environ if environ is None else environ
        data: dict = {}
        for key, value in environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            path = key[len(ENV_PREFIX):].lower().split(ENV_NESTED_DELIMITER)
            target = data
            for part in path[:-1]:
                target = target.setdefault(part, {})
            target[path[-1]] = value
        return cls.model_validate(data)
