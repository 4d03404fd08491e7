"""Tests for in-memory and file-backed collaborators."""

import pytest

from persona_core.learning.collaborators import (
    InMemoryLearningLog,
    InMemoryResponseLookup,
    JsonlLearningLog,
)
from persona_core.learning.errors import PersistenceError
from persona_core.learning.schemas import FeedbackSign, LearningRecord, ParameterAdjustment
from persona_core.persona.parameters import PersonaVector


def _record(response_id: str = "r1") -> LearningRecord:
    return LearningRecord(
        response_id=response_id,
        sign=FeedbackSign.POSITIVE,
        persona_before=PersonaVector.defaults(),
        adjustments={"verbosity": ParameterAdjustment(old_value=50.0, new_value=50.3, delta=0.3)},
    )


class TestInMemoryResponseLookup:
    """Tests for InMemoryResponseLookup."""

    @pytest.mark.asyncio
    async def test_find(self):
        lookup = InMemoryResponseLookup({"r1": "hello"})
        lookup.add("r2", "world")

        assert await lookup.find_response("r1") == "hello"
        assert await lookup.find_response("r2") == "world"
        assert await lookup.find_response("missing") is None


class TestInMemoryLearningLog:
    """Tests for InMemoryLearningLog."""

    @pytest.mark.asyncio
    async def test_record_and_clear(self):
        log = InMemoryLearningLog()
        await log.record(_record())

        assert len(log.entries) == 1
        assert log.clear() == 1
        assert log.entries == []


class TestJsonlLearningLog:
    """Tests for JsonlLearningLog."""

    @pytest.mark.asyncio
    async def test_append_and_read(self, tmp_path):
        log = JsonlLearningLog(tmp_path / "logs" / "learning.jsonl")
        await log.record(_record("r1"))
        await log.record(_record("r2"))

        records = log.read_all()
        assert [r.response_id for r in records] == ["r1", "r2"]
        assert records[0].adjustments["verbosity"].delta == pytest.approx(0.3)
        assert records[0].sign == FeedbackSign.POSITIVE

    def test_read_missing_file(self, tmp_path):
        assert JsonlLearningLog(tmp_path / "learning.jsonl").read_all() == []

    @pytest.mark.asyncio
    async def test_skips_malformed_lines(self, tmp_path):
        path = tmp_path / "learning.jsonl"
        log = JsonlLearningLog(path)
        await log.record(_record("r1"))
        with open(path, "a") as f:
            f.write("{oops\n")

        assert len(log.read_all()) == 1

    @pytest.mark.asyncio
    async def test_write_failure(self, tmp_path):
        path = tmp_path / "learning.jsonl"
        log = JsonlLearningLog(path)
        path.mkdir()

        with pytest.raises(PersistenceError):
            await log.record(_record())
