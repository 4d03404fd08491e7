"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from persona_core.learning.checkpoints import InMemoryCheckpointStore
from persona_core.learning.collaborators import InMemoryLearningLog, InMemoryResponseLookup
from persona_core.learning.config import Hyperparameters
from persona_core.learning.engine import PersonaLearningEngine
from persona_core.persona.store import InMemoryPersonaStore

# ~2500 characters of plain prose: very verbose, no other signals
LONG_TEXT = "word " * 500

SHORT_TEXT = "Sure."

CHEERFUL_TEXT = "That was a fun one! 😄 Happy to help."


@pytest.fixture
def lookup():
    return InMemoryResponseLookup(
        {
            "long": LONG_TEXT,
            "short": SHORT_TEXT,
            "cheerful": CHEERFUL_TEXT,
        }
    )


@pytest.fixture
def persona_store():
    return InMemoryPersonaStore()


@pytest.fixture
def learning_log():
    return InMemoryLearningLog()


@pytest.fixture
def checkpoint_store():
    return InMemoryCheckpointStore()


@pytest.fixture
def make_engine(persona_store, lookup, learning_log, checkpoint_store):
    """Factory for engines sharing the default collaborators."""

    def _make(**hyperparameter_overrides) -> PersonaLearningEngine:
        return PersonaLearningEngine(
            persona_store=persona_store,
            response_lookup=lookup,
            learning_log=learning_log,
            checkpoint_store=checkpoint_store,
            hyperparameters=Hyperparameters(**hyperparameter_overrides),
            rng=np.random.default_rng(42),
        )

    return _make
