"""Click-based CLI for the persona learning engine."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import click
import numpy as np

from persona_core.learning.checkpoints import DirectoryCheckpointStore, InMemoryCheckpointStore
from persona_core.learning.collaborators import InMemoryLearningLog, InMemoryResponseLookup
from persona_core.learning.config import LearnerSettings
from persona_core.learning.engine import PersonaLearningEngine
from persona_core.learning.schemas import FeedbackSign
from persona_core.persona.parameters import PERSONA_PRESETS, PersonaVector, get_preset
from persona_core.persona.store import InMemoryPersonaStore

logger = logging.getLogger(__name__)


def load_feedback_script(path: Path) -> list[tuple[str, FeedbackSign]]:
    """Parse a JSONL feedback script of {"text": ..., "sign": ...} objects.

    Raises:
        ValueError: If a line is not valid JSON or lacks text/sign
    """
    events = []
    with open(path) as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
                events.append((str(data["text"]), FeedbackSign(data["sign"])))
            except (ValueError, KeyError, TypeError) as e:
                raise ValueError(f"Invalid feedback on line {line_number}: {e}") from e
    return events


async def run_simulation(
    events: list[tuple[str, FeedbackSign]],
    engine: PersonaLearningEngine,
    lookup: InMemoryResponseLookup,
) -> PersonaVector:
    """Feed every event through the engine and return the final persona."""
    for index, (text, sign) in enumerate(events):
        response_id = f"response-{index:05d}"
        lookup.add(response_id, text)
        await engine.process_feedback(response_id, sign)
    return await engine.persona_store.get_persona()


@click.group()
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
def cli(verbose: bool) -> None:
    """Persona learner CLI.

    Replay feedback scripts through the learning engine and inspect
    checkpoints written by it.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.debug("CLI initialized")


@cli.command()
@click.argument("script", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--preset",
    type=click.Choice([p.name for p in PERSONA_PRESETS], case_sensitive=False),
    help="Start from a persona preset instead of the defaults",
)
@click.option("--seed", type=int, help="Seed for replay sampling")
@click.option(
    "--checkpoint-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Write checkpoints to this directory (default: in memory)",
)
@click.option("--learning-rate", type=float, help="Initial learning rate")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file for the JSON summary (default: stdout)",
)
def simulate(
    script: Path,
    preset: Optional[str],
    seed: Optional[int],
    checkpoint_dir: Optional[Path],
    learning_rate: Optional[float],
    output: Optional[Path],
) -> None:
    """Run a JSONL feedback script through a fresh engine.

    Each line is {"text": "<response text>", "sign": "positive"|"negative"}.
    Prints the final persona, statistics and diagnostics as JSON.

    Examples:

        persona-learner simulate feedback.jsonl

        persona-learner simulate feedback.jsonl --preset Teacher --seed 7

        persona-learner simulate feedback.jsonl -o summary.json
    """
    try:
        events = load_feedback_script(script)
    except ValueError as e:
        raise click.ClickException(str(e))

    settings = LearnerSettings.from_env()
    hyperparameters = settings.hyperparameters.model_copy(deep=True)
    if learning_rate is not None:
        hyperparameters.learning_rate = hyperparameters.clamp_learning_rate(learning_rate)

    initial = get_preset(preset).build() if preset else PersonaVector.defaults()
    lookup = InMemoryResponseLookup()
    if checkpoint_dir is not None:
        checkpoint_store = DirectoryCheckpointStore(checkpoint_dir, settings.max_checkpoints)
    else:
        checkpoint_store = InMemoryCheckpointStore(settings.max_checkpoints)

    engine = PersonaLearningEngine(
        persona_store=InMemoryPersonaStore(initial),
        response_lookup=lookup,
        learning_log=InMemoryLearningLog(),
        checkpoint_store=checkpoint_store,
        hyperparameters=hyperparameters,
        rng=np.random.default_rng(seed if seed is not None else settings.replay_seed),
    )

    logger.info(f"Simulating {len(events)} feedback events")
    persona = asyncio.run(run_simulation(events, engine, lookup))
    summary = {
        "persona": persona.to_dict(),
        "stats": engine.get_stats().to_dict(),
        "diagnostics": engine.detect_overfitting().to_dict(),
    }
    summary_json = json.dumps(summary, indent=2)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(summary_json)
        click.echo(f"Summary written to {output}")
    else:
        click.echo(summary_json)


@cli.group()
def checkpoints() -> None:
    """Inspect checkpoint directories."""


@checkpoints.command(name="list")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
def list_checkpoints(directory: Path) -> None:
    """List checkpoints in DIRECTORY, oldest first."""
    store = DirectoryCheckpointStore(directory, max_checkpoints=None)
    found = asyncio.run(store.list())
    if not found:
        click.echo("No checkpoints found")
        return

    for checkpoint in found:
        score = (
            f"{checkpoint.validation_score:.3f}"
            if checkpoint.validation_score is not None
            else "-"
        )
        click.echo(
            f"{checkpoint.feedback_count:>8}  {checkpoint.timestamp.isoformat()}  score={score}"
        )


@checkpoints.command(name="show")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
def show_checkpoint(directory: Path) -> None:
    """Print the latest checkpoint in DIRECTORY as JSON."""
    store = DirectoryCheckpointStore(directory, max_checkpoints=None)
    latest = asyncio.run(store.get_latest())
    if latest is None:
        raise click.ClickException(f"No checkpoints in {directory}")
    click.echo(json.dumps(latest.to_dict(), indent=2))


if __name__ == "__main__":
    cli()
