"""Stability governor: a hard ceiling on drift per feedback event.

Per-update caps bound each parameter, but an event touching many
parameters could still move the persona a lot in total. The governor
bounds the L1 norm of an event's change and scales every delta down
proportionally when it is exceeded, preserving the direction of the update.
"""

import logging
from typing import Optional

from persona_core.learning.config import Hyperparameters
from persona_core.learning.schemas import Adjustments, ParameterAdjustment
from persona_core.persona.parameters import PersonaVector, clamp_value

logger = logging.getLogger(__name__)


def total_shift(current: PersonaVector, proposed: PersonaVector) -> float:
    """L1 distance between two personas."""
    return current.distance_l1(proposed)


class StabilityGovernor:
    """Enforces the per-epoch (per feedback event) change budget."""

    def __init__(self, hyperparameters: Hyperparameters):
        self.hyperparameters = hyperparameters

    def enforce_epoch_budget(
        self,
        adjustments: Adjustments,
        current: PersonaVector,
        proposed: PersonaVector,
        budget: Optional[float] = None,
    ) -> Adjustments:
        """Scale adjustments so total absolute drift stays within budget.

        Args:
            adjustments: Adjustments that turn current into proposed
            current: Persona before the update
            proposed: Persona after applying adjustments unscaled
            budget: Remaining drift allowance; defaults to max_change_per_epoch

        Returns:
            New adjustments mapping, scaled if the budget was exceeded
        """
        limit = self.hyperparameters.max_change_per_epoch if budget is None else max(0.0, budget)
        shift = total_shift(current, proposed)

        if shift <= limit or shift == 0.0:
            return dict(adjustments)

        scale = limit / shift
        logger.debug(f"Epoch budget exceeded ({shift:.2f} > {limit:.2f}), scaling by {scale:.3f}")

        scaled: Adjustments = {}
        for name, adj in adjustments.items():
            new_value = clamp_value(adj.old_value + adj.delta * scale)
            scaled[name] = ParameterAdjustment(
                old_value=adj.old_value,
                new_value=new_value,
                delta=new_value - adj.old_value,
            )
        return scaled
