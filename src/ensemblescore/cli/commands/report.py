"""Report command: rebuild learning state from a feedback store."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer

from ensemblescore.core.errors import FeedbackValidationError
from ensemblescore.engine.orchestrator import EnsembleOrchestrator
from ensemblescore.engine.report import LearningReport
from ensemblescore.store.json_store import JsonFeedbackStore

from ..helpers import load_engine_config
from ..output import console, print_json, print_report


async def report_from_store(
    store_path: Path, orchestrator: EnsembleOrchestrator
) -> tuple[LearningReport, int]:
    """Replay every stored record and build the resulting report.

    Returns:
        (report, number of records replayed)
    """
    store = JsonFeedbackStore(store_path)
    records = await store.fetch_recent(limit=None)
    replayed = 0
    for record in records:
        try:
            await orchestrator.process_feedback(
                category=record.category,
                suggestion_text=record.suggestion_text,
                context=record.context,
                actual_score=record.actual_score,
                predicted_score=record.predicted_score,
                validator_scores=record.validator_scores,
            )
        except FeedbackValidationError:
            continue
        replayed += 1
    await orchestrator.aclose()
    return orchestrator.generate_report(), replayed


def report(
    store: Path = typer.Option(
        ...,
        "--store",
        "-s",
        help="JSON feedback store written by 'replay --store'",
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
) -> None:
    """Show the learning report for the feedback recorded in a store.

    Examples:
        ensemblescore report --store feedback.json
        ensemblescore report --store feedback.json --json
    """
    if not store.exists():
        console.print(f"[red]Feedback store not found:[/red] {store}")
        raise typer.Exit(1)

    engine_config = load_engine_config(config, console)
    # Replaying must not append to the store being read
    orchestrator = EnsembleOrchestrator(engine_config.learning)
    try:
        learning_report, replayed = asyncio.run(report_from_store(store, orchestrator))
    except (json.JSONDecodeError, KeyError, ValueError) as e:
        console.print(f"[red]Unreadable feedback store {store}:[/red] {e}")
        raise typer.Exit(1) from None

    if json_output:
        output = learning_report.to_dict()
        output["records"] = replayed
        print_json(output)
        return

    console.print(f"Replayed [bold]{replayed}[/bold] stored records\n")
    print_report(learning_report)
