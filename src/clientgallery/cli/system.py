"""
CLI: ``clientgallery health|integrity|stats|maintenance``: operational commands.
"""

from __future__ import annotations

import typer

from clientgallery.cli.utils import Database, console, output


def health(
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Check every repository's table. Exits 1 when critical."""
    report = Database(database).repositories().system_health()
    if json_out:
        output(report, as_json=True)
    else:
        colour = {"healthy": "green", "degraded": "yellow", "critical": "red"}[report.status]
        console.print(f"Status: [{colour}]{report.status}[/{colour}]")
        output(
            [
                {"repository": name, "status": c.status, "latency_ms": c.latency_ms, "error": c.error or ""}
                for name, c in report.checks.items()
            ],
            title="Repositories",
        )
    if report.status == "critical":
        raise typer.Exit(code=1)


def integrity(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run cross-table consistency checks. Exits 1 when issues are found."""
    report = Database(database).repositories().validate_data_integrity()
    if json_out:
        output(report, as_json=True)
    elif report.issues:
        output([{"check": i.check, "count": i.count, "message": i.message} for i in report.issues], title="Issues")
    else:
        console.print("[green]No integrity issues found[/green]")
    if report.issues:
        raise typer.Exit(code=1)


def stats(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Statistics from every repository plus totals."""
    data = Database(database).repositories().aggregated_statistics()
    if json_out:
        output(data, as_json=True)
        return
    for name, section in data.items():
        output(section, title=name.replace("_", " ").title())


def maintenance(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Apply log retention and refresh table statistics."""
    result = Database(database).repositories().perform_maintenance()
    output(result, as_json=json_out, title="Maintenance")
    if result["errors"]:
        raise typer.Exit(code=1)
