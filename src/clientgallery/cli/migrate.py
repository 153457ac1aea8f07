"""
CLI: ``clientgallery migrate``: versioned schema changes.
"""

from __future__ import annotations

from dataclasses import asdict

import typer

from clientgallery.cli.utils import Database, console, fail, output
from clientgallery.core.errors import GalleryError

app = typer.Typer(no_args_is_help=True)


@app.command()
def status(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show applied and pending migrations."""
    output(Database(database).migrations().status(), as_json=json_out, title="Migration Status")


@app.command()
def run(
    version: str | None = typer.Argument(None, help="Run only this version"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Apply pending migrations (or a single VERSION)."""
    manager = Database(database).migrations()
    if version is not None:
        try:
            outcome = manager.run_single(version)
        except GalleryError as exc:
            fail(str(exc))
        output(outcome, as_json=json_out, title="Migration")
        if not outcome.success:
            raise typer.Exit(code=1)
        return

    result = manager.run_pending()
    if json_out:
        output(
            {
                "status": result.status,
                "message": result.message,
                "applied": result.applied,
                "outcomes": [asdict(o) for o in result.outcomes],
            },
            as_json=True,
        )
    else:
        console.print(result.message)
        if result.outcomes:
            output(result.outcomes, title="Migrations")
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def rollback(
    version: str = typer.Argument(..., help="Version to revert"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Revert an applied migration."""
    try:
        outcome = Database(database).migrations().rollback(version)
    except GalleryError as exc:
        fail(str(exc))
    output(outcome, as_json=json_out, title="Rollback")
    if not outcome.success:
        raise typer.Exit(code=1)


@app.command()
def history(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List every recorded migration run."""
    output(Database(database).migrations().history(), as_json=json_out, title="Migration History")


@app.command()
def mark(
    version: str = typer.Argument(..., help="Version to record as applied"),
    reason: str = typer.Option("Marked as applied manually", "--reason", help="Note stored with the record"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Record VERSION as applied without running it."""
    try:
        Database(database).migrations().mark_as_applied(version, reason)
    except GalleryError as exc:
        fail(str(exc))
    console.print(f"[green]Marked {version} as applied[/green]")
