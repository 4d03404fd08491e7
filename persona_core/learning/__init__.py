"""Learning: feedback-driven persona adaptation with stability safeguards."""

from .adjustment import AdjustmentCalculator, apply_adjustments, feature_targets
from .checkpoints import (
    Checkpoint,
    CheckpointStore,
    DirectoryCheckpointStore,
    InMemoryCheckpointStore,
    require_latest,
)
from .collaborators import (
    InMemoryLearningLog,
    InMemoryResponseLookup,
    JsonlLearningLog,
    LearningLog,
    ResponseLookup,
)
from .config import FeatureWeights, Hyperparameters, LearnerSettings
from .diagnostics import (
    DiagnosticThresholds,
    EnableGradientClipping,
    IncreaseMomentum,
    IncreaseRegularization,
    OverfittingReport,
    ReduceLearningRate,
    RemediationAction,
    RollbackToCheckpoint,
    detect_overfitting,
)
from .engine import PersonaLearningEngine
from .errors import (
    LearningError,
    PersistenceError,
    ResponseNotFoundError,
    RollbackUnavailableError,
)
from .features import FeatureVector, LengthBucket, extract_features
from .governor import StabilityGovernor, total_shift
from .replay import ExperienceBuffer, ExperienceEntry
from .schemas import (
    FeedbackEvent,
    FeedbackResult,
    FeedbackSign,
    LearningPhase,
    LearningRecord,
    LearningStats,
    ParameterAdjustment,
    TrendPoint,
)
from .validation import EarlyStoppingState, ValidationController

__all__ = [
    "AdjustmentCalculator",
    "apply_adjustments",
    "feature_targets",
    "Checkpoint",
    "CheckpointStore",
    "DirectoryCheckpointStore",
    "InMemoryCheckpointStore",
    "require_latest",
    "InMemoryLearningLog",
    "InMemoryResponseLookup",
    "JsonlLearningLog",
    "LearningLog",
    "ResponseLookup",
    "FeatureWeights",
    "Hyperparameters",
    "LearnerSettings",
    "DiagnosticThresholds",
    "EnableGradientClipping",
    "IncreaseMomentum",
    "IncreaseRegularization",
    "OverfittingReport",
    "ReduceLearningRate",
    "RemediationAction",
    "RollbackToCheckpoint",
    "detect_overfitting",
    "PersonaLearningEngine",
    "LearningError",
    "PersistenceError",
    "ResponseNotFoundError",
    "RollbackUnavailableError",
    "FeatureVector",
    "LengthBucket",
    "extract_features",
    "StabilityGovernor",
    "total_shift",
    "ExperienceBuffer",
    "ExperienceEntry",
    "FeedbackEvent",
    "FeedbackResult",
    "FeedbackSign",
    "LearningPhase",
    "LearningRecord",
    "LearningStats",
    "ParameterAdjustment",
    "TrendPoint",
    "EarlyStoppingState",
    "ValidationController",
]
