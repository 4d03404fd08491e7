"""Persona learning engine: the feedback-driven controller.

Each feedback event flows through the pipeline under a single lock:

    lookup response -> record event -> (warm-up? stop)
        -> extract features -> compute adjustments -> validate
        -> (stalled? restore best snapshot, stop)
        -> epoch budget -> update persona -> replay -> audit log
        -> diagnostics + checkpoint every checkpoint_interval events

The engine is an explicit object owned by its host; there is no module
level instance. The persona store stays the source of truth for the live
persona, while momentum, history and the replay buffer live here for the
lifetime of the engine.
"""

import asyncio
import logging
from collections import Counter, deque
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import numpy as np

from persona_core.learning.adjustment import AdjustmentCalculator, apply_adjustments
from persona_core.learning.checkpoints import Checkpoint, CheckpointStore, require_latest
from persona_core.learning.collaborators import LearningLog, ResponseLookup
from persona_core.learning.config import Hyperparameters
from persona_core.learning.diagnostics import (
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
from persona_core.learning.errors import ResponseNotFoundError, RollbackUnavailableError
from persona_core.learning.features import extract_features
from persona_core.learning.governor import StabilityGovernor
from persona_core.learning.replay import ExperienceBuffer
from persona_core.learning.schemas import (
    Adjustments,
    FeedbackEvent,
    FeedbackResult,
    FeedbackSign,
    LearningPhase,
    LearningRecord,
    LearningStats,
    TrendPoint,
)
from persona_core.learning.validation import ValidationController
from persona_core.persona.parameters import PersonaVector
from persona_core.persona.store import PersonaStore

logger = logging.getLogger(__name__)

# Recent per-event adjustment records kept for volatility diagnostics
RECENT_ADJUSTMENTS_LIMIT = 100

# L2 strength used when regularization is raised from zero
MIN_L2_ON_INCREASE = 0.001

DEFAULT_GRADIENT_CLIP = Hyperparameters.model_fields["gradient_clip_max"].default


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so event times stay comparable."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PersonaLearningEngine:
    """Online learner for persona parameters.

    Attributes:
        hyperparameters: Live hyperparameters, shared with every component
        calculator: Adjustment calculator (owns momentum)
        governor: Per-event drift budget
        validation: Feedback history, validation score and learning phase
        buffer: Experience replay buffer
        last_diagnostics: Report from the most recent scheduled diagnostics run
    """

    def __init__(
        self,
        persona_store: PersonaStore,
        response_lookup: ResponseLookup,
        learning_log: Optional[LearningLog] = None,
        checkpoint_store: Optional[CheckpointStore] = None,
        hyperparameters: Optional[Hyperparameters] = None,
        thresholds: Optional[DiagnosticThresholds] = None,
        rng: Optional[np.random.Generator] = None,
        now: Optional[datetime] = None,
    ):
        """Initialize the engine.

        Args:
            persona_store: Source of truth for the live persona
            response_lookup: Resolves response ids to text
            learning_log: Optional audit log, written best-effort
            checkpoint_store: Optional checkpoint storage for rollback
            hyperparameters: Learning hyperparameters (defaults if None)
            thresholds: Diagnostics thresholds (defaults if None)
            rng: Random generator for replay sampling
            now: Optional datetime override for testing
        """
        self._now_override = _as_utc(now) if now is not None else None
        self.persona_store = persona_store
        self.response_lookup = response_lookup
        self.learning_log = learning_log
        self.checkpoint_store = checkpoint_store

        self.hyperparameters = hyperparameters or Hyperparameters()
        self.thresholds = thresholds or DiagnosticThresholds()

        self.calculator = AdjustmentCalculator(self.hyperparameters)
        self.governor = StabilityGovernor(self.hyperparameters)
        self.validation = ValidationController(self.hyperparameters)
        self.buffer = ExperienceBuffer(self.hyperparameters.buffer_size, rng=rng)

        self.last_diagnostics: Optional[OverfittingReport] = None
        self._recent_adjustments: deque[Adjustments] = deque(maxlen=RECENT_ADJUSTMENTS_LIMIT)
        self._adjustment_counts: Counter[str] = Counter()
        self._positive_count = 0
        self._negative_count = 0
        self._last_feedback_time: Optional[datetime] = None
        # Labels checkpoints; not cleared by reset_learning_data
        self._lifetime_feedback = 0

        # One feedback event at a time against the shared persona
        self._lock = asyncio.Lock()

        logger.info(f"Persona learning engine initialized (learning_rate={self.hyperparameters.learning_rate})")

    def _get_now(self) -> datetime:
        """Get current datetime, using override if set (for testing)."""
        return self._now_override or datetime.now(timezone.utc)

    @property
    def phase(self) -> LearningPhase:
        return self.validation.phase

    @property
    def recent_adjustments(self) -> list[Adjustments]:
        return list(self._recent_adjustments)

    # =========================================================================
    # Feedback processing
    # =========================================================================

    async def process_feedback(
        self,
        response_id: str,
        sign: FeedbackSign | str,
        now: Optional[datetime] = None,
    ) -> FeedbackResult:
        """Learn from one feedback event.

        Args:
            response_id: Id of the response the feedback refers to
            sign: Feedback polarity ("positive" / "negative")
            now: Optional timestamp override for the event (naive means UTC)

        Returns:
            FeedbackResult with the updated persona and applied adjustments

        Raises:
            ResponseNotFoundError: If the response cannot be found; no state
                is mutated in that case
        """
        sign = FeedbackSign(sign)

        async with self._lock:
            text = await self.response_lookup.find_response(response_id)
            if text is None:
                logger.warning(f"Feedback for unknown response {response_id}")
                raise ResponseNotFoundError(response_id)

            current = await self.persona_store.get_persona()
            timestamp = _as_utc(now) if now is not None else self._get_now()
            event = FeedbackEvent(response_id=response_id, sign=sign, timestamp=timestamp)

            phase = self.validation.observe(event)
            self.buffer.record(response_id, sign)
            self._count(event)

            adjustments: Adjustments = {}
            learned = False
            score: Optional[float] = None
            replayed = 0
            updated = current

            if phase is LearningPhase.LEARNING:
                adjustments, updated, score, replayed = await self._learn(current, text, sign)
                learned = self.validation.phase is LearningPhase.LEARNING
            elif phase is LearningPhase.STALLED:
                updated = await self._restore_best_snapshot(current)

            await self._write_learning_record(event, current, adjustments)
            await self.maybe_checkpoint(self.validation.sample_count, updated)
            if self.hyperparameters.auto_remediate:
                # Remediation may have rolled the persona back
                updated = await self.persona_store.get_persona()

            if adjustments:
                logger.debug(
                    f"Persona updated from {sign.value} feedback "
                    f"({len(adjustments)} parameters, replayed={replayed})"
                )

            return FeedbackResult(
                updated_persona=updated.copy(),
                adjustments=adjustments,
                phase=self.validation.phase,
                skipped=not learned,
                validation_score=score,
                replayed=replayed,
            )

    async def _learn(
        self,
        current: PersonaVector,
        text: str,
        sign: FeedbackSign,
    ) -> tuple[Adjustments, PersonaVector, Optional[float], int]:
        """Run the learning path for one event in the LEARNING phase."""
        momentum_before = dict(self.calculator.momentum)
        validation_before = replace(self.validation.state)
        phase_before = self.validation.phase

        features = extract_features(text)
        proposed_adjustments = self.calculator.compute_adjustments(current, features, sign)
        score = self.validation.evaluate(current)

        if self.validation.phase is LearningPhase.STALLED:
            # The just-computed update is discarded along with its momentum
            self._restore_momentum(momentum_before)
            restored = await self._restore_best_snapshot(current)
            return {}, restored, score, 0

        proposed = apply_adjustments(current, proposed_adjustments)
        adjustments = self.governor.enforce_epoch_budget(proposed_adjustments, current, proposed)
        updated = apply_adjustments(current, adjustments)

        try:
            await self.persona_store.update_persona(updated)
        except Exception:
            # A failed event neither spends patience nor sets a new best
            self._restore_momentum(momentum_before)
            self.validation.state = validation_before
            self.validation.phase = phase_before
            raise

        if adjustments:
            self._recent_adjustments.append(adjustments)
            self._adjustment_counts.update(adjustments.keys())

        replayed, updated = await self._replay(updated, epoch_start=current)
        return adjustments, updated, score, replayed

    def _restore_momentum(self, snapshot: dict[str, float]) -> None:
        self.calculator.momentum.clear()
        self.calculator.momentum.update(snapshot)

    async def _restore_best_snapshot(self, current: PersonaVector) -> PersonaVector:
        """Put the best snapshot back into the persona store if it differs."""
        best = self.validation.state.best_snapshot
        if best is None:
            return current
        if best.to_dict() != current.to_dict():
            await self.persona_store.update_persona(best)
            logger.info("Restored best persona snapshot (early stopping)")
        return best.copy()

    def _count(self, event: FeedbackEvent) -> None:
        if event.is_positive:
            self._positive_count += 1
        else:
            self._negative_count += 1
        self._last_feedback_time = event.timestamp
        self._lifetime_feedback += 1

    async def _write_learning_record(
        self,
        event: FeedbackEvent,
        persona_before: PersonaVector,
        adjustments: Adjustments,
    ) -> None:
        """Write the audit record; failures are logged, never raised."""
        if self.learning_log is None:
            return

        record = LearningRecord(
            response_id=event.response_id,
            sign=event.sign,
            persona_before=persona_before,
            adjustments=adjustments,
            timestamp=event.timestamp,
        )
        try:
            await self.learning_log.record(record)
        except Exception as e:
            logger.error(f"Failed to write learning record for {event.response_id}: {e}")

    # =========================================================================
    # Experience replay
    # =========================================================================

    async def perform_replay(self) -> int:
        """Replay buffered experiences at reduced learning rate.

        Returns:
            Number of experiences replayed
        """
        async with self._lock:
            if self.validation.phase is not LearningPhase.LEARNING:
                logger.debug(f"Replay skipped in phase {self.validation.phase.value}")
                return 0
            current = await self.persona_store.get_persona()
            replayed, _ = await self._replay(current, epoch_start=current)
            return replayed

    async def _replay(
        self,
        persona: PersonaVector,
        epoch_start: PersonaVector,
    ) -> tuple[int, PersonaVector]:
        """Re-apply sampled experiences, sharing the epoch budget with epoch_start."""
        hp = self.hyperparameters
        entries = self.buffer.sample(hp.replay_samples_per_update)
        if not entries:
            return 0, persona

        replay_rate = hp.learning_rate * hp.replay_lr_factor
        replayed = 0

        for entry in entries:
            text = await self.response_lookup.find_response(entry.response_id)
            if text is None:
                logger.warning(f"Skipping replay of missing response {entry.response_id}")
                continue

            features = extract_features(text)
            adjustments = self.calculator.compute_adjustments(
                persona, features, entry.sign, learning_rate=replay_rate
            )
            replayed += 1
            if not adjustments:
                continue

            remaining = hp.max_change_per_epoch - epoch_start.distance_l1(persona)
            proposed = apply_adjustments(persona, adjustments)
            adjustments = self.governor.enforce_epoch_budget(
                adjustments, persona, proposed, budget=remaining
            )
            persona = apply_adjustments(persona, adjustments)

        if replayed:
            await self.persona_store.update_persona(persona)
            logger.debug(f"Replayed {replayed} experiences at lr={replay_rate:.4f}")

        return replayed, persona

    # =========================================================================
    # Checkpoints and rollback
    # =========================================================================

    async def maybe_checkpoint(self, feedback_count: int, persona: PersonaVector) -> bool:
        """Run diagnostics and checkpoint every checkpoint_interval events.

        Diagnostics run first, so an automatic rollback is what gets saved
        rather than the persona it rolled back from. Checkpoint write
        failures are logged and learning continues.

        Returns:
            True if a checkpoint was written
        """
        if feedback_count <= 0 or feedback_count % self.hyperparameters.checkpoint_interval:
            return False

        if await self._run_scheduled_diagnostics():
            persona = await self.persona_store.get_persona()

        written = False
        if self.checkpoint_store is not None:
            checkpoint = Checkpoint(
                persona=persona.copy(),
                feedback_count=self._lifetime_feedback,
                validation_score=self.validation.state.best_score,
                timestamp=self._get_now(),
            )
            try:
                await self.checkpoint_store.put(checkpoint)
                written = True
                logger.info(f"Checkpoint saved at feedback {self._lifetime_feedback}")
            except Exception as e:
                logger.error(f"Failed to save checkpoint at feedback {self._lifetime_feedback}: {e}")

        return written

    async def _run_scheduled_diagnostics(self) -> bool:
        """Run diagnostics; return True if remediation was applied."""
        report = self.detect_overfitting()
        self.last_diagnostics = report
        if not report.is_overfitting:
            return False

        logger.warning(f"Overfitting indicators: {'; '.join(report.indicators)}")
        if not self.hyperparameters.auto_remediate:
            return False

        await self._apply_remediation(report.recommendations)
        return True

    async def rollback_to_latest_checkpoint(self) -> bool:
        """Restore the persona and best snapshot from the latest checkpoint.

        Returns:
            False (after logging a warning) if no checkpoint is available
        """
        async with self._lock:
            return await self._rollback()

    async def _rollback(self) -> bool:
        if self.checkpoint_store is None:
            logger.warning("Rollback requested but no checkpoint store is configured")
            return False

        try:
            checkpoint = await require_latest(self.checkpoint_store)
        except RollbackUnavailableError as e:
            logger.warning(f"Rollback skipped: {e}")
            return False

        await self.persona_store.update_persona(checkpoint.persona)
        self.validation.restore_best(checkpoint.persona, checkpoint.validation_score)
        self.validation.resume()
        logger.info(f"Rolled back to checkpoint at feedback {checkpoint.feedback_count}")
        return True

    # =========================================================================
    # Diagnostics and remediation
    # =========================================================================

    def detect_overfitting(self) -> OverfittingReport:
        """Inspect recent feedback and adjustments for overfitting."""
        return detect_overfitting(
            self.validation.history,
            self._recent_adjustments,
            self.thresholds,
            default_clip=DEFAULT_GRADIENT_CLIP,
        )

    async def apply_remediation(self, actions: Iterable[RemediationAction]) -> list[str]:
        """Apply remediation actions from diagnostics.

        Returns:
            Descriptions of the actions applied

        Raises:
            TypeError: For an object that is not a known remediation action
        """
        async with self._lock:
            return await self._apply_remediation(actions)

    async def _apply_remediation(self, actions: Iterable[RemediationAction]) -> list[str]:
        hp = self.hyperparameters
        applied = []

        for action in actions:
            if isinstance(action, ReduceLearningRate):
                hp.learning_rate = hp.clamp_learning_rate(hp.learning_rate * action.factor)
                self.validation.resume()
            elif isinstance(action, IncreaseRegularization):
                hp.l2_lambda = min(
                    hp.max_l2_lambda,
                    max(hp.l2_lambda * action.factor, MIN_L2_ON_INCREASE),
                )
            elif isinstance(action, IncreaseMomentum):
                hp.momentum_beta = max(hp.momentum_beta, action.beta)
            elif isinstance(action, EnableGradientClipping):
                hp.gradient_clip_max = min(hp.gradient_clip_max, action.max_value)
            elif isinstance(action, RollbackToCheckpoint):
                await self._rollback()
            else:
                raise TypeError(f"Unknown remediation action: {action!r}")

            applied.append(action.describe())
            logger.info(f"Remediation applied: {action.describe()}")

        return applied

    # =========================================================================
    # Learning rate
    # =========================================================================

    async def set_learning_rate(self, rate: float) -> float:
        """Set the learning rate, clamped to [min_learning_rate, max_learning_rate].

        A stalled engine resumes learning at the new rate.

        Returns:
            The learning rate actually set
        """
        async with self._lock:
            hp = self.hyperparameters
            hp.learning_rate = hp.clamp_learning_rate(rate)
            self.validation.resume()
            logger.info(f"Learning rate updated to {hp.learning_rate}")
            return hp.learning_rate

    def get_learning_rate(self) -> float:
        return self.hyperparameters.learning_rate

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> LearningStats:
        """Aggregate feedback statistics since the last reset."""
        total = self._positive_count + self._negative_count
        return LearningStats(
            total_feedback=total,
            positive_feedback=self._positive_count,
            negative_feedback=self._negative_count,
            satisfaction_rate=(self._positive_count / total * 100.0) if total else 0.0,
            last_feedback_time=self._last_feedback_time,
            most_adjusted_parameters=self._adjustment_counts.most_common(10),
            learning_rate=self.hyperparameters.learning_rate,
            phase=self.validation.phase,
            best_validation_score=self.validation.state.best_score,
            buffer_size=len(self.buffer),
        )

    def get_feedback_trend(self, days: int = 30, now: Optional[datetime] = None) -> list[TrendPoint]:
        """Per-day positive/negative counts over the last `days` days (UTC).

        Covers the events still held in history.
        """
        start = (_as_utc(now) if now is not None else self._get_now()) - timedelta(days=days)
        points: dict[str, TrendPoint] = {}

        for event in self.validation.history:
            if event.timestamp < start:
                continue
            date = event.timestamp.astimezone(timezone.utc).date().isoformat()
            point = points.setdefault(date, TrendPoint(date=date))
            if event.is_positive:
                point.positive += 1
            else:
                point.negative += 1

        return [points[date] for date in sorted(points)]

    # =========================================================================
    # Reset
    # =========================================================================

    async def reset_learning_data(self, reset_persona: bool = False) -> int:
        """Clear history, momentum, replay buffer and statistics.

        Args:
            reset_persona: Also reset the stored persona to defaults

        Returns:
            Number of feedback events cleared from history
        """
        async with self._lock:
            cleared = self.validation.reset()
            self.calculator.reset()
            self.buffer.clear()
            self._recent_adjustments.clear()
            self._adjustment_counts.clear()
            self._positive_count = 0
            self._negative_count = 0
            self._last_feedback_time = None
            self.last_diagnostics = None

            if reset_persona:
                await self.persona_store.update_persona(PersonaVector.defaults())

            logger.info(f"Learning data reset ({cleared} events cleared)")
            return cleared
