"""Tests for the persona-learner CLI."""

import asyncio
import json
from datetime import datetime, timezone

import pytest
from click.testing import CliRunner

from persona_core.learning.checkpoints import Checkpoint, DirectoryCheckpointStore
from persona_core.learning.cli import cli, load_feedback_script
from persona_core.learning.schemas import FeedbackSign
from persona_core.persona.parameters import PersonaVector


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def script(tmp_path):
    path = tmp_path / "feedback.jsonl"
    lines = [{"text": "word " * 500, "sign": "positive"} for _ in range(12)]
    lines.append({"text": "Nice one! 😄", "sign": "negative"})
    path.write_text("\n".join(json.dumps(line) for line in lines) + "\n")
    return path


class TestLoadFeedbackScript:
    """Tests for load_feedback_script."""

    def test_parses_lines(self, script):
        events = load_feedback_script(script)
        assert len(events) == 13
        assert events[0][1] == FeedbackSign.POSITIVE
        assert events[-1] == ("Nice one! 😄", FeedbackSign.NEGATIVE)

    def test_skips_blank_lines(self, tmp_path):
        path = tmp_path / "feedback.jsonl"
        path.write_text('\n{"text": "hi", "sign": "positive"}\n\n')
        assert len(load_feedback_script(path)) == 1

    def test_invalid_sign(self, tmp_path):
        path = tmp_path / "feedback.jsonl"
        path.write_text('{"text": "hi", "sign": "meh"}\n')
        with pytest.raises(ValueError, match="line 1"):
            load_feedback_script(path)


class TestSimulate:
    """Tests for the simulate command."""

    def test_writes_summary(self, runner, script, tmp_path):
        output = tmp_path / "out" / "summary.json"
        result = runner.invoke(cli, ["simulate", str(script), "--seed", "1", "-o", str(output)])

        assert result.exit_code == 0, result.output
        summary = json.loads(output.read_text())
        assert summary["stats"]["total_feedback"] == 13
        assert summary["stats"]["phase"] == "learning"
        assert summary["persona"]["verbosity"] > 50.0
        assert "is_overfitting" in summary["diagnostics"]

    def test_preset(self, runner, script, tmp_path):
        output = tmp_path / "summary.json"
        result = runner.invoke(
            cli, ["simulate", str(script), "--preset", "teacher", "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        summary = json.loads(output.read_text())
        assert summary["persona"]["patience"] == 100.0

    def test_writes_checkpoints(self, runner, script, tmp_path):
        checkpoint_dir = tmp_path / "checkpoints"
        output = tmp_path / "summary.json"
        result = runner.invoke(
            cli,
            ["simulate", str(script), "--checkpoint-dir", str(checkpoint_dir), "-o", str(output)],
        )

        assert result.exit_code == 0, result.output
        assert len(list(checkpoint_dir.glob("checkpoint_*.json"))) == 1

    def test_invalid_script(self, runner, tmp_path):
        path = tmp_path / "feedback.jsonl"
        path.write_text("not json\n")

        result = runner.invoke(cli, ["simulate", str(path)])
        assert result.exit_code != 0
        assert "Invalid feedback on line 1" in result.output


class TestCheckpointCommands:
    """Tests for checkpoints list/show."""

    @pytest.fixture
    def checkpoint_dir(self, tmp_path):
        store = DirectoryCheckpointStore(tmp_path / "checkpoints")
        for count in (10, 20):
            asyncio.run(
                store.put(
                    Checkpoint(
                        persona=PersonaVector(values={"humor": float(count)}),
                        feedback_count=count,
                        validation_score=0.75,
                        timestamp=datetime(2026, 3, 1, 12, count, tzinfo=timezone.utc),
                    )
                )
            )
        return tmp_path / "checkpoints"

    def test_list(self, runner, checkpoint_dir):
        result = runner.invoke(cli, ["checkpoints", "list", str(checkpoint_dir)])

        assert result.exit_code == 0, result.output
        assert "score=0.750" in result.output
        assert result.output.index("2026-03-01T12:10") < result.output.index("2026-03-01T12:20")

    def test_list_empty(self, runner, tmp_path):
        result = runner.invoke(cli, ["checkpoints", "list", str(tmp_path)])

        assert result.exit_code == 0
        assert "No checkpoints found" in result.output

    def test_show_latest(self, runner, checkpoint_dir):
        result = runner.invoke(cli, ["checkpoints", "show", str(checkpoint_dir)])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["feedback_count"] == 20
        assert data["persona"]["humor"] == 20.0

    def test_show_empty(self, runner, tmp_path):
        result = runner.invoke(cli, ["checkpoints", "show", str(tmp_path)])

        assert result.exit_code != 0
        assert "No checkpoints" in result.output
