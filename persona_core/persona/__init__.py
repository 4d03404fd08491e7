"""Persona parameters: catalogue, bounded vector, presets and stores."""

from .parameters import (
    DEFAULT_VALUES,
    NEUTRAL_VALUE,
    PARAMETER_DESCRIPTIONS,
    PARAMETER_MAX,
    PARAMETER_MIN,
    PARAMETER_NAMES,
    PERSONA_PRESETS,
    PersonaPreset,
    PersonaVector,
    clamp_value,
    get_preset,
)
from .store import InMemoryPersonaStore, JsonPersonaStore, PersonaStore

__all__ = [
    "DEFAULT_VALUES",
    "NEUTRAL_VALUE",
    "PARAMETER_DESCRIPTIONS",
    "PARAMETER_MAX",
    "PARAMETER_MIN",
    "PARAMETER_NAMES",
    "PERSONA_PRESETS",
    "PersonaPreset",
    "PersonaVector",
    "clamp_value",
    "get_preset",
    "InMemoryPersonaStore",
    "JsonPersonaStore",
    "PersonaStore",
]
