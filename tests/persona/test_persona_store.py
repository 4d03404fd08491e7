"""Tests for persona stores."""

import json

import pytest

from persona_core.persona.parameters import PersonaVector
from persona_core.persona.store import InMemoryPersonaStore, JsonPersonaStore


class TestInMemoryPersonaStore:
    """Tests for InMemoryPersonaStore."""

    @pytest.mark.asyncio
    async def test_starts_with_defaults(self):
        store = InMemoryPersonaStore()
        assert await store.get_persona() == PersonaVector.defaults()

    @pytest.mark.asyncio
    async def test_returns_copies(self):
        store = InMemoryPersonaStore()
        persona = await store.get_persona()
        persona.set("humor", 99.0)

        assert (await store.get_persona())["humor"] != 99.0

    @pytest.mark.asyncio
    async def test_update(self):
        store = InMemoryPersonaStore()
        await store.update_persona(PersonaVector(values={"humor": 12.0}))
        assert (await store.get_persona())["humor"] == 12.0

    @pytest.mark.asyncio
    async def test_set_preset(self):
        store = InMemoryPersonaStore()
        assert store.set_preset("Teacher") is True
        assert (await store.get_persona())["patience"] == 100.0

    def test_set_unknown_preset(self):
        store = InMemoryPersonaStore()
        assert store.set_preset("Pirate") is False

    @pytest.mark.asyncio
    async def test_reset_to_default(self):
        store = InMemoryPersonaStore(PersonaVector(values={"humor": 5.0}))
        store.reset_to_default()
        assert await store.get_persona() == PersonaVector.defaults()


class TestJsonPersonaStore:
    """Tests for JsonPersonaStore."""

    @pytest.mark.asyncio
    async def test_missing_file_uses_defaults(self, tmp_path):
        store = JsonPersonaStore(tmp_path / "persona.json")
        assert await store.get_persona() == PersonaVector.defaults()

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "persona.json"
        store = JsonPersonaStore(path)
        await store.update_persona(PersonaVector(values={"verbosity": 73.0}))

        reloaded = JsonPersonaStore(path)
        assert (await reloaded.get_persona())["verbosity"] == 73.0

        data = json.loads(path.read_text())
        assert data["parameters"]["verbosity"] == 73.0
        assert "saved_at" in data

    @pytest.mark.asyncio
    async def test_corrupt_file_uses_defaults(self, tmp_path):
        path = tmp_path / "persona.json"
        path.write_text("{not json")

        store = JsonPersonaStore(path)
        assert await store.get_persona() == PersonaVector.defaults()
