"""Tests for the experience buffer."""

import numpy as np

from persona_core.learning.replay import ExperienceBuffer
from persona_core.learning.schemas import FeedbackSign


class TestExperienceBuffer:
    """Tests for ExperienceBuffer."""

    def test_records(self):
        buffer = ExperienceBuffer(capacity=10)
        buffer.record("r1", FeedbackSign.POSITIVE)

        assert len(buffer) == 1
        entry = buffer.entries()[0]
        assert entry.response_id == "r1"
        assert entry.to_dict() == {"response_id": "r1", "sign": "positive"}

    def test_evicts_oldest(self):
        buffer = ExperienceBuffer(capacity=3)
        for i in range(5):
            buffer.record(f"r{i}", FeedbackSign.POSITIVE)

        assert [e.response_id for e in buffer.entries()] == ["r2", "r3", "r4"]

    def test_sample_without_replacement(self):
        buffer = ExperienceBuffer(capacity=10, rng=np.random.default_rng(0))
        for i in range(10):
            buffer.record(f"r{i}", FeedbackSign.NEGATIVE)

        sample = buffer.sample(5)
        ids = [e.response_id for e in sample]
        assert len(ids) == 5
        assert len(set(ids)) == 5

    def test_sample_capped_by_size(self):
        buffer = ExperienceBuffer(capacity=10)
        buffer.record("r1", FeedbackSign.POSITIVE)
        buffer.record("r2", FeedbackSign.POSITIVE)

        assert len(buffer.sample(3)) == 2

    def test_sample_empty(self):
        assert ExperienceBuffer().sample(3) == []

    def test_seeded_sampling_is_reproducible(self):
        def sampled_ids(seed):
            buffer = ExperienceBuffer(rng=np.random.default_rng(seed))
            for i in range(20):
                buffer.record(f"r{i}", FeedbackSign.POSITIVE)
            return [e.response_id for e in buffer.sample(3)]

        assert sampled_ids(7) == sampled_ids(7)

    def test_clear(self):
        buffer = ExperienceBuffer()
        buffer.record("r1", FeedbackSign.POSITIVE)
        buffer.clear()
        assert len(buffer) == 0
