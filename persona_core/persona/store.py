"""Persona stores: the single source of truth for the live persona.

The learning engine reads and writes the persona only through the
PersonaStore protocol. Two implementations are provided: an in-memory
store (tests, embedding in a host process) and a JSON file store.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from persona_core.persona.parameters import PersonaVector, get_preset

logger = logging.getLogger(__name__)


class PersonaStore(Protocol):
    """Protocol for persona storage.

    Implementations must return copies from get_persona so callers can
    never mutate stored state in place.
    """

    async def get_persona(self) -> PersonaVector:
        """Get the current persona."""
        ...

    async def update_persona(self, vector: PersonaVector) -> None:
        """Replace the current persona."""
        ...


class InMemoryPersonaStore:
    """PersonaStore held in process memory."""

    def __init__(self, initial: PersonaVector | None = None):
        self._persona = (initial or PersonaVector.defaults()).copy()

    async def get_persona(self) -> PersonaVector:
        return self._persona.copy()

    async def update_persona(self, vector: PersonaVector) -> None:
        self._persona = vector.copy()

    def set_preset(self, name: str) -> bool:
        """Replace the persona with a named preset.

        Returns:
            False if no preset has that name
        """
        preset = get_preset(name)
        if preset is None:
            return False
        self._persona = preset.build()
        logger.info(f"Persona set from preset '{preset.name}'")
        return True

    def reset_to_default(self) -> None:
        self._persona = PersonaVector.defaults()


class JsonPersonaStore:
    """PersonaStore persisted to a single JSON file.

    The file is read once on construction and rewritten on every update.
    A missing or unreadable file falls back to defaults.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._persona = self._load()

    def _load(self) -> PersonaVector:
        if not self.path.exists():
            logger.debug(f"No persona file at {self.path}, using defaults")
            return PersonaVector.defaults()

        try:
            with open(self.path) as f:
                data = json.load(f)
            return PersonaVector.from_dict(data.get("parameters", {}))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load persona from {self.path}: {e}")
            return PersonaVector.defaults()

    async def get_persona(self) -> PersonaVector:
        return self._persona.copy()

    async def update_persona(self, vector: PersonaVector) -> None:
        data = {
            "parameters": vector.to_dict(),
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)
        self._persona = vector.copy()
