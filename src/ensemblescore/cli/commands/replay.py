"""Replay command: feed recorded feedback events through the engine."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import typer

from ensemblescore.core.categories import Category
from ensemblescore.core.config import EngineConfig
from ensemblescore.core.errors import FeedbackValidationError
from ensemblescore.engine.orchestrator import EnsembleOrchestrator
from ensemblescore.engine.report import LearningReport
from ensemblescore.engine.results import ContinuousLearningResult

from ..helpers import iter_feedback_events, load_engine_config
from ..output import console, print_json, print_report


@dataclass
class ReplaySummary:
    """What happened while replaying a feedback file."""

    processed: int = 0
    retrainings: int = 0
    rejected: list[tuple[int, str]] = field(default_factory=list)
    continuous_learning: dict[Category, ContinuousLearningResult] = field(default_factory=dict)
    report: LearningReport | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "retrainings": self.retrainings,
            "rejected": [{"line": line, "error": error} for line, error in self.rejected],
            "continuous_learning": {
                c.value: r.to_dict() for c, r in self.continuous_learning.items()
            },
            "report": self.report.to_dict() if self.report else None,
        }


async def replay_events(path: Path, engine_config: EngineConfig) -> ReplaySummary:
    """Process every event in ``path`` and run continuous learning afterwards."""
    orchestrator = EnsembleOrchestrator.from_config(engine_config)
    summary = ReplaySummary()
    touched: list[Category] = []
    for line_number, event, parse_error in iter_feedback_events(path):
        if event is None:
            summary.rejected.append((line_number, parse_error or "unreadable event"))
            continue
        try:
            result = await orchestrator.process_feedback(
                category=event.get("category", ""),
                suggestion_text=event.get("suggestion_text", ""),
                context=event.get("context"),
                actual_score=event.get("actual_score"),  # type: ignore[arg-type]
                predicted_score=event.get("predicted_score"),  # type: ignore[arg-type]
                validator_scores=event.get("validator_scores") or {},
            )
        except FeedbackValidationError as e:
            summary.rejected.append((line_number, str(e)))
            continue
        summary.processed += 1
        if result.retraining is not None and result.retraining.success:
            summary.retrainings += 1
        if result.category not in touched:
            touched.append(result.category)

    await orchestrator.aclose()
    for category in touched:
        summary.continuous_learning[category] = await orchestrator.run_continuous_learning(category)
    summary.report = orchestrator.generate_report()
    return summary


def replay(
    feedback_file: Path = typer.Argument(
        ...,
        help="JSONL file with one feedback event per line",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Engine configuration YAML",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
    store: Path | None = typer.Option(
        None,
        "--store",
        "-s",
        help="JSON feedback store to record processed events in (overrides config)",
    ),
) -> None:
    """Replay feedback events and report what the engine learned.

    Each line holds category, suggestion_text, actual_score,
    predicted_score, validator_scores, and optionally context.

    Examples:
        ensemblescore replay feedback.jsonl
        ensemblescore replay feedback.jsonl --store feedback.json --json
    """
    engine_config = load_engine_config(config, console)
    if store is not None:
        engine_config = engine_config.model_copy(update={"feedback_store_path": store})

    summary = asyncio.run(replay_events(feedback_file, engine_config))

    if json_output:
        print_json(summary.to_dict())
        return

    console.print(
        f"Processed [bold]{summary.processed}[/bold] events, "
        f"rejected [bold]{len(summary.rejected)}[/bold], "
        f"retrained [bold]{summary.retrainings}[/bold] times"
    )
    for line_number, error in summary.rejected:
        console.print(f"  [red]line {line_number}[/red]: {error}")
    for category, result in summary.continuous_learning.items():
        for recommendation in result.recommendations:
            console.print(f"  [cyan]{category.value}[/cyan]: {recommendation}")
    if summary.report is not None:
        console.print()
        print_report(summary.report)
