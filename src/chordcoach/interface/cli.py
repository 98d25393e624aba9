"""chordcoach CLI: record attempts, inspect progress, and run the HTTP server."""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

from chordcoach.application.config import resolve_config
from chordcoach.infrastructure.adapters.progress.records import UnsupportedFormatError
from chordcoach.application.progress.selection import confidence_level
from chordcoach.domain.progress.models import (
    Direction,
    ItemType,
    LearningProgress,
    ProgressStats,
)

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="chordcoach: adaptive mastery and spaced-repetition engine for chorded keyboards.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

session_app = typer.Typer(help="Practice session bookkeeping.", no_args_is_help=True)
app.add_typer(session_app, name="session")

config_app = typer.Typer(help="Manage chordcoach configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

DataFileOpt = Annotated[
    Path | None, typer.Option("--data-file", help="Progress file. Defaults to config.")
]
ItemTypeOpt = Annotated[ItemType, typer.Option("--type", "-t", help="Item type.")]
JsonOpt = Annotated[bool, typer.Option("--json", help="Output as JSON.")]


def _service(data_file: Path | None = None):
    from chordcoach.application.factory import get_progress_service

    config = resolve_config({"data_file": data_file})
    return get_progress_service(config)


def _fmt_date(value) -> str | None:
    return value.isoformat() if value else None


def progress_summary(p: LearningProgress) -> dict[str, Any]:
    return {
        "itemId": p.item_id,
        "itemType": p.item_type.value,
        "masteryLevel": p.mastery_level.value,
        "confidence": confidence_level(p).value,
        "totalAttempts": p.total_attempts,
        "correctAttempts": p.correct_attempts,
        "accuracy": round(p.accuracy, 4),
        "interval": p.interval,
        "easeFactor": round(p.ease_factor, 4),
        "repetitions": p.repetitions,
        "nextReviewDate": _fmt_date(p.next_review_date),
        "lastAttemptDate": _fmt_date(p.last_attempt_date),
    }


def stats_summary(stats: ProgressStats) -> dict[str, Any]:
    return {
        "learnedCounts": {t.value: n for t, n in stats.learned_counts.items()},
        "masteredCounts": {t.value: n for t, n in stats.mastered_counts.items()},
        "totalPracticeTimeMs": stats.total_practice_time_ms,
        "currentStreak": stats.current_streak,
        "longestStreak": stats.longest_streak,
        "lastPracticeDate": _fmt_date(stats.last_practice_date),
    }


def _echo_items(items: list[LearningProgress], json_output: bool, empty: str) -> None:
    if json_output:
        typer.echo(json.dumps([progress_summary(p) for p in items], indent=2))
        return
    if not items:
        typer.secho(empty, fg="yellow")
        return
    for p in items:
        typer.echo(
            f"{p.item_id:<12} {p.mastery_level.value:<9} "
            f"acc={p.accuracy:.0%}  ivl={p.interval:g}d  ease={p.ease_factor:.2f}"
        )


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for chordcoach."""
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    elif verbose == 1:
        logging.getLogger().setLevel(logging.INFO)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def record(
    item_id: Annotated[str, typer.Argument(help="Character, chord key, or word.")],
    item_type: ItemTypeOpt = ItemType.CHARACTER,
    correct: Annotated[
        bool, typer.Option("--correct/--incorrect", help="Outcome of the attempt.")
    ] = True,
    time_ms: Annotated[int, typer.Option("--time", help="Response time in ms.")] = 0,
    direction: Annotated[
        Direction | None, typer.Option(help="Movement direction (characters only).")
    ] = None,
    guided: Annotated[
        bool, typer.Option("--guided", help="Guided practice: do not update mastery.")
    ] = False,
    tries: Annotated[int, typer.Option(help="Tries needed (word chords).")] = 1,
    data_file: DataFileOpt = None,
    json_output: JsonOpt = False,
):
    """[bold green]Record[/bold green] one timed attempt."""
    service = _service(data_file)
    progress = service.record_attempt(
        item_id,
        item_type,
        correct,
        time_ms,
        direction=direction,
        suppress_mastery_update=guided,
        tries=tries,
    )
    if json_output:
        typer.echo(json.dumps(progress_summary(progress), indent=2))
    else:
        typer.echo(
            f"{progress.item_id}: {progress.mastery_level.value} "
            f"({progress.correct_attempts}/{progress.total_attempts}), "
            f"next review in {progress.interval:g} day(s)"
        )


@app.command()
def show(
    item_id: Annotated[str, typer.Argument(help="Character, chord key, or word.")],
    item_type: ItemTypeOpt = ItemType.CHARACTER,
    data_file: DataFileOpt = None,
):
    """Show the full progress of one item."""
    progress = _service(data_file).get_progress(item_id, item_type)
    if progress is None:
        typer.secho(f"No progress for {item_type.value} {item_id!r}.", fg="yellow")
        raise typer.Exit(1)
    summary = progress_summary(progress)
    weakest = progress.weakest_direction()
    summary["weakestDirection"] = weakest.value if weakest else None
    typer.echo(json.dumps(summary, indent=2))


@app.command()
def demote(
    item_id: Annotated[str, typer.Argument(help="Character, chord key, or word.")],
    item_type: ItemTypeOpt = ItemType.CHARACTER,
    data_file: DataFileOpt = None,
):
    """Send a mastered item back to [yellow]familiar[/yellow] for re-practice."""
    progress = _service(data_file).demote(item_id, item_type)
    if progress is None:
        typer.secho(f"No progress for {item_type.value} {item_id!r}.", fg="yellow")
        raise typer.Exit(1)
    typer.echo(f"{progress.item_id}: {progress.mastery_level.value}")


@app.command()
def due(
    item_type: ItemTypeOpt = ItemType.CHARACTER,
    limit: Annotated[
        int | None, typer.Option(help="Maximum items to list. Defaults to config.")
    ] = None,
    data_file: DataFileOpt = None,
    json_output: JsonOpt = False,
):
    """List items due for review, most urgent first."""
    items = _service(data_file).get_due_items(item_type, limit)
    _echo_items(items, json_output, "Nothing due.")


@app.command()
def weak(
    item_type: ItemTypeOpt = ItemType.CHARACTER,
    threshold: Annotated[
        float | None, typer.Option(help="Accuracy threshold (0-1). Defaults to config.")
    ] = None,
    data_file: DataFileOpt = None,
    json_output: JsonOpt = False,
):
    """List attempted items below an accuracy threshold, weakest first."""
    items = _service(data_file).get_weak_items(item_type, threshold)
    _echo_items(items, json_output, "No weak items.")


@app.command()
def stats(
    data_file: DataFileOpt = None,
    json_output: JsonOpt = False,
):
    """Show learned/mastered counts and the practice streak."""
    summary = stats_summary(_service(data_file).get_stats())
    if json_output:
        typer.echo(json.dumps(summary, indent=2))
        return
    for t in ItemType:
        typer.echo(
            f"{t.value:<11} learned={summary['learnedCounts'].get(t.value, 0):<4} "
            f"mastered={summary['masteredCounts'].get(t.value, 0)}"
        )
    typer.echo(
        f"Streak: {summary['currentStreak']} (longest {summary['longestStreak']})  "
        f"Practice: {summary['totalPracticeTimeMs'] // 1000}s"
    )


@app.command()
def reset(
    item_type: Annotated[
        ItemType | None, typer.Option("--type", "-t", help="Only clear this type.")
    ] = None,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation.")
    ] = False,
    data_file: DataFileOpt = None,
):
    """Clear stored progress (all of it, or one item type)."""
    what = f"all {item_type.value} progress" if item_type else "ALL progress and stats"
    if not force and not typer.confirm(f"Delete {what}?"):
        raise typer.Abort()
    _service(data_file).reset(item_type)
    typer.secho(f"Cleared {what}.", fg="green")


@app.command("export")
def export_(
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write to this file instead of stdout.")
    ] = None,
    data_file: DataFileOpt = None,
):
    """Export all progress and stats as a versioned JSON document."""
    text = json.dumps(_service(data_file).export_progress(), indent=2)
    if output is None:
        typer.echo(text)
        return
    output.write_text(text + "\n", encoding="utf-8")
    typer.secho(f"Exported progress to {output}", fg="green")


@app.command("import")
def import_(
    source: Annotated[Path, typer.Argument(help="File produced by `chordcoach export`.")],
    data_file: DataFileOpt = None,
):
    """Merge an exported progress document into the store."""
    try:
        doc = json.loads(source.read_text(encoding="utf-8"))
        count = _service(data_file).import_progress(doc)
    except (OSError, json.JSONDecodeError, UnsupportedFormatError) as e:
        typer.secho(f"Import failed: {e}", fg="red")
        raise typer.Exit(1)
    typer.secho(f"Imported {count} item(s).", fg="green")


@app.command()
def serve(
    host: Annotated[str | None, typer.Option(help="Host to bind the server to.")] = None,
    port: Annotated[int | None, typer.Option(help="Port to bind the server to.")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API."""
    import uvicorn

    config = resolve_config({"host": host, "port": port})
    uvicorn.run("chordcoach.server:app", host=config.host, port=config.port, reload=reload)


# ---------------------------------------------------------------------------
# Session subgroup
# ---------------------------------------------------------------------------


@session_app.command("close")
def session_close(
    practice_ms: Annotated[int, typer.Option("--practice-ms", help="Session length in ms.")] = 0,
    data_file: DataFileOpt = None,
):
    """Close a practice session: add its time and update the daily streak."""
    result = _service(data_file).close_session(practice_ms)
    typer.echo(f"Streak: {result.current_streak} (longest {result.longest_streak})")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


def main() -> None:
    app()
