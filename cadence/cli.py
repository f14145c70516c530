"""
Typer CLI for the cadence scheduling core.

Developer tooling over JSON files; every command reads already-materialized
records, runs one pure computation and prints the result.

Commands:
    cadence schedule CARD_JSON --rating 3      - Review a card, print the update
    cadence queue ITEMS_JSON                   - Print the ranked learning queue
    cadence plan ITEMS_JSON --max-items 10     - Print a session plan
    cadence calibrate MATRIX_JSON              - Run 2PL item calibration
    cadence bottleneck RESPONSES_JSON          - Print the bottleneck analysis

Usage:
    cadence --help
    cadence schedule card.json --rating 3 --now 2024-05-01T09:00:00+00:00
    cadence plan items.json --strategy pure_interleaving --fatigue 0.4
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from cadence.ability.calibration import calibrate_items
from cadence.bottleneck.detector import analyze_bottleneck, summarize_bottleneck
from cadence.config import get_settings
from cadence.exceptions import CadenceError
from cadence.memory.fsrs import schedule as schedule_review
from cadence.priority.engine import build_learning_queue
from cadence.schemas import (
    ItemRecord,
    LearnerStateRecord,
    MemoryCardRecord,
    ResponseEventRecord,
    SessionRequestRecord,
)
from cadence.session.composer import SessionComposer
from cadence.session.strategies import InterleavingStrategy
from cadence.types import COMPONENT_NAMES

app = typer.Typer(
    help="cadence: spaced repetition, ability estimation and session planning",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Input helpers
# ========================================


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        rprint(f"[red]Cannot read {path}:[/red] {e}")
        raise typer.Exit(code=2) from e


def _validate(adapter: TypeAdapter | type[BaseModel], data: Any, path: Path) -> Any:
    try:
        if isinstance(adapter, TypeAdapter):
            return adapter.validate_python(data)
        return adapter.model_validate(data)
    except ValidationError as e:
        rprint(f"[red]Invalid records in {path}:[/red]\n{e}")
        raise typer.Exit(code=2) from e


def _parse_now(value: str | None, reference: datetime | None = None) -> datetime:
    """ISO timestamp, or the current time matching ``reference``'s tz-awareness."""
    if value is not None:
        try:
            return datetime.fromisoformat(value)
        except ValueError as e:
            rprint(f"[red]Invalid --now timestamp:[/red] {value}")
            raise typer.Exit(code=2) from e
    if reference is not None and reference.tzinfo is None:
        return datetime.now()
    return datetime.now(timezone.utc)


def _load_items(path: Path) -> list[ItemRecord]:
    return _validate(TypeAdapter(list[ItemRecord]), _read_json(path), path)


def _load_cards(path: Path | None) -> dict[str, MemoryCardRecord]:
    if path is None:
        return {}
    return _validate(TypeAdapter(dict[str, MemoryCardRecord]), _read_json(path), path)


def _load_learner(path: Path | None) -> LearnerStateRecord:
    if path is None:
        return LearnerStateRecord()
    return _validate(LearnerStateRecord, _read_json(path), path)


# ========================================
# Commands
# ========================================


@app.command("schedule")
def schedule_command(
    card_file: Path = typer.Argument(..., help="JSON file with one memory card"),
    rating: int = typer.Option(..., "--rating", "-r", min=1, max=4, help="1=Again 2=Hard 3=Good 4=Easy"),
    now: str | None = typer.Option(None, "--now", help="Review time (ISO 8601, default: now)"),
) -> None:
    """
    Apply one review to a memory card.

    Examples:
        cadence schedule card.json --rating 3
        cadence schedule card.json -r 1 --now 2024-05-01T09:00:00+00:00
    """
    settings = get_settings()
    record = _validate(MemoryCardRecord, _read_json(card_file), card_file)
    card = record.to_domain()
    review_time = _parse_now(now, card.last_review)

    try:
        result = schedule_review(card, rating, review_time, settings.fsrs_parameters())
    except CadenceError as e:
        rprint(f"[red]Cannot schedule:[/red] {e}")
        raise typer.Exit(code=2) from e

    updated = result.card
    table = Table(title="Review Result", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Before", justify="right", style="dim")
    table.add_column("After", justify="right", style="green")

    table.add_row("State", card.state.value, updated.state.value)
    table.add_row("Difficulty", f"{card.difficulty:.2f}", f"{updated.difficulty:.2f}")
    table.add_row("Stability (days)", f"{card.stability:.2f}", f"{updated.stability:.2f}")
    table.add_row("Reps", str(card.reps), str(updated.reps))
    table.add_row("Lapses", str(card.lapses), str(updated.lapses))
    console.print(table)

    rprint(f"  Retrievability at review: {result.retrievability_at_review:.3f}")
    rprint(f"  Interval: {result.interval_days:.2f} days")
    rprint(f"  [bold]Next review:[/bold] {result.next_review.isoformat()}")


@app.command("queue")
def queue_command(
    items_file: Path = typer.Argument(..., help="JSON list of item records"),
    learner: Path | None = typer.Option(None, "--learner", "-l", help="Learner state JSON"),
    cards: Path | None = typer.Option(None, "--cards", "-c", help="Memory cards JSON keyed by item id"),
    now: str | None = typer.Option(None, "--now", help="Ranking time (ISO 8601, default: now)"),
    limit: int = typer.Option(50, "--limit", min=1, help="Rows to print"),
) -> None:
    """
    Rank items by learning priority.

    Examples:
        cadence queue items.json
        cadence queue items.json --learner me.json --cards cards.json
    """
    settings = get_settings()
    items = [record.to_domain() for record in _load_items(items_file)]
    card_records = _load_cards(cards)
    user_state = _load_learner(learner).to_user_state()
    mastery_map = {item_id: record.to_mastery() for item_id, record in card_records.items()}
    reference = next(
        (m.card.last_review for m in mastery_map.values() if m.card.last_review is not None), None
    )

    try:
        queue = build_learning_queue(
            items, user_state, mastery_map, _parse_now(now, reference), settings.priority_config()
        )
    except CadenceError as e:
        rprint(f"[red]Cannot rank items:[/red] {e}")
        raise typer.Exit(code=2) from e

    table = Table(title=f"Learning Queue ({len(queue)} items)", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Item", style="cyan")
    table.add_column("Type")
    table.add_column("Priority", justify="right", style="green")
    table.add_column("Urgency", justify="right")
    table.add_column("Stage", justify="right")
    table.add_column("Load", justify="right")
    table.add_column("New", justify="center")

    for rank, q in enumerate(queue[:limit], start=1):
        table.add_row(
            str(rank),
            q.item_id,
            q.object_type.value,
            f"{q.priority:.3f}",
            f"{q.urgency:.2f}",
            str(q.mastery_stage),
            f"{q.cognitive_load:.1f}",
            "✓" if q.is_new else "-",
        )

    console.print(table)


@app.command("plan")
def plan_command(
    items_file: Path = typer.Argument(..., help="JSON list of item records"),
    strategy: InterleavingStrategy | None = typer.Option(
        None, "--strategy", "-s", case_sensitive=False, help="Interleaving strategy"
    ),
    max_items: int = typer.Option(20, "--max-items", "-n", min=0, help="Items to place"),
    fatigue: float | None = typer.Option(None, "--fatigue", min=0.0, max=1.0, help="Fatigue 0-1"),
    learner: Path | None = typer.Option(None, "--learner", "-l", help="Learner state JSON"),
    cards: Path | None = typer.Option(None, "--cards", "-c", help="Memory cards JSON keyed by item id"),
    now: str | None = typer.Option(None, "--now", help="Planning time (ISO 8601, default: now)"),
) -> None:
    """
    Compose one practice session.

    Examples:
        cadence plan items.json --max-items 10
        cadence plan items.json -s pure_interleaving --fatigue 0.8
    """
    settings = get_settings()
    learner_record = _load_learner(learner)
    if fatigue is not None:
        learner_record = learner_record.model_copy(update={"fatigue": fatigue})

    card_records = _load_cards(cards)
    reference = next(
        (c.last_review for c in card_records.values() if c.last_review is not None), None
    )

    record = SessionRequestRecord(
        items=_load_items(items_file),
        cards=card_records,
        learner=learner_record,
        max_items=max_items,
        strategy=strategy,
        now=_parse_now(now, reference),
    )

    composer = SessionComposer(settings.session_engine_config())
    try:
        request = record.to_domain(settings.priority_config())
        plan = composer.process(
            request.candidates, request.learner_state, request.session_config, request.strategy
        )
    except CadenceError as e:
        rprint(f"[red]Cannot plan session:[/red] {e}")
        raise typer.Exit(code=2) from e

    rprint(f"\n[bold cyan]Session Plan[/bold cyan] ({plan.applied_strategy.value})")

    table = Table(show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Item", style="cyan")
    table.add_column("Type")
    table.add_column("Load", justify="right")
    table.add_column("FSRS", justify="right", style="green")
    table.add_column("Reason", style="dim")

    breaks = set(plan.recommended_breaks)
    for p in plan.placements:
        if p.position in breaks:
            table.add_section()
        table.add_row(
            str(p.position + 1),
            p.item_id,
            p.object_type.value,
            f"{p.cognitive_load:.1f}",
            f"{p.fsrs_priority:.2f}",
            p.placement_reason,
        )
    console.print(table)

    efficiency = plan.expected_efficiency
    rprint(f"  Total load: {plan.total_load:.1f}")
    rprint(f"  Breaks before items: {[b + 1 for b in plan.recommended_breaks] or 'none'}")
    rprint(f"  Learning value: {efficiency.learning_value:.2f}")
    rprint(f"  Retention probability: {efficiency.retention_probability:.2f}")
    rprint(f"  Confidence: {plan.confidence:.2f}")

    if plan.excluded:
        rprint(f"\n[yellow]Excluded {len(plan.excluded)} items[/yellow]")
        for excluded in plan.excluded:
            rprint(f"  {excluded.item_id}: {excluded.reason.value}")


@app.command("calibrate")
def calibrate_command(
    matrix_file: Path = typer.Argument(
        ..., help='JSON response matrix, or {"item_ids": [...], "responses": [[...]]}'
    ),
    max_iterations: int | None = typer.Option(
        None, "--max-iterations", min=1, help="EM cycle limit (default: from settings)"
    ),
) -> None:
    """
    Estimate 2PL item parameters from a respondent x item matrix.

    Cells are true, false or null (not administered). Exits with code 1 when
    there is not enough data to calibrate.
    """
    settings = get_settings()
    data = _read_json(matrix_file)
    item_ids = None
    if isinstance(data, dict):
        item_ids = data.get("item_ids")
        data = data.get("responses", [])

    try:
        report = calibrate_items(data, item_ids, settings.calibration_config(), max_iterations)
    except CadenceError as e:
        rprint(f"[red]Invalid response matrix:[/red] {e}")
        raise typer.Exit(code=2) from e

    if not report.calibrated:
        rprint(f"[yellow]Calibration declined:[/yellow] {report.reason}")
        raise typer.Exit(code=1)

    table = Table(title="Item Calibration", show_header=True)
    table.add_column("Item", style="cyan")
    table.add_column("a", justify="right")
    table.add_column("b", justify="right")
    table.add_column("SE(a)", justify="right", style="dim")
    table.add_column("SE(b)", justify="right", style="dim")
    table.add_column("N", justify="right")
    table.add_column("Reliable", justify="center")

    for result in report.items:
        table.add_row(
            result.item_id,
            f"{result.a:.3f}",
            f"{result.b:.3f}",
            f"{result.se_a:.3f}",
            f"{result.se_b:.3f}",
            str(result.n_responses),
            "[green]✓[/green]" if result.reliable else "[red]✗[/red]",
        )

    console.print(table)
    status = "converged" if report.converged else "stopped at the iteration limit"
    rprint(f"  EM {status} after {report.iterations} iterations")


@app.command("bottleneck")
def bottleneck_command(
    responses_file: Path = typer.Argument(..., help="JSON list of response events"),
) -> None:
    """Find the skill component most likely blocking progress."""
    settings = get_settings()
    records = _validate(TypeAdapter(list[ResponseEventRecord]), _read_json(responses_file), responses_file)
    responses = [
        record.model_copy(update={"id": record.id or f"r{index}"}).to_domain()
        for index, record in enumerate(records)
    ]

    analysis = analyze_bottleneck(responses, settings.bottleneck_config())

    rprint(f"\n[bold cyan]{summarize_bottleneck(analysis)}[/bold cyan]")
    if analysis.primary_bottleneck is not None:
        rprint(f"  {COMPONENT_NAMES[analysis.primary_bottleneck]}")
        rprint(f"  Confidence: {analysis.confidence:.2f}")
    if analysis.cascade is not None:
        chain = " -> ".join(c.value for c in analysis.cascade.chain)
        rprint(f"  Cascade: {chain}")

    if analysis.evidence:
        table = Table(title="Component Evidence", show_header=True)
        table.add_column("Component", style="cyan")
        table.add_column("Error rate", justify="right")
        table.add_column("Recent", justify="right")
        table.add_column("Responses", justify="right")
        table.add_column("Flagged", justify="center")

        for ev in analysis.evidence:
            table.add_row(
                ev.component.value,
                f"{ev.error_rate:.0%}",
                f"{ev.recent_error_rate:.0%}",
                str(ev.response_count),
                "[red]●[/red]" if ev.flagged else "-",
            )
        console.print(table)

    rprint(f"\n{analysis.recommendation}")


# ========================================
# Entry Point
# ========================================


def main() -> None:
    """CLI entry point."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
