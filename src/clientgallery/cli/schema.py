"""
CLI: ``clientgallery schema``: table creation and inspection.
"""

from __future__ import annotations

import typer

from clientgallery.cli.utils import Database, console, fail, output

app = typer.Typer(no_args_is_help=True)


def _require_force(force: bool, action: str) -> None:
    if not force:
        fail(f"{action} drops every gallery table and its data; pass --force to continue")


@app.command()
def install(
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Create all tables in dependency order."""
    result = Database(database).schemas().install_all()
    output(result, as_json=json_out, title="Schema Install")
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def uninstall(
    force: bool = typer.Option(False, "--force", help="Confirm dropping all tables"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Drop all tables in reverse dependency order."""
    _require_force(force, "Uninstall")
    result = Database(database).schemas().uninstall_all()
    output(result, as_json=json_out, title="Schema Uninstall")
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def recreate(
    force: bool = typer.Option(False, "--force", help="Confirm dropping all tables"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Drop and reinstall every table."""
    _require_force(force, "Recreate")
    result = Database(database).schemas().recreate_all()
    output(result, as_json=json_out, title="Schema Recreate")
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def validate(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Check that every table exists with its columns and indexes."""
    issues = Database(database).schemas().validate_all()
    if json_out:
        output({"valid": not issues, "issues": issues}, as_json=True)
    elif issues:
        output(issues, title="Schema Issues")
    else:
        console.print("[green]All schemas valid[/green]")
    if issues:
        raise typer.Exit(code=1)


@app.command()
def info(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show each table, whether it exists, and the installed version."""
    manager = Database(database).schemas()
    details = manager.schema_info()
    if json_out:
        output(
            {
                "version": manager.current_version(),
                "installed_at": manager.installed_at(),
                "schemas": details,
            },
            as_json=True,
        )
        return
    rows = [
        {
            "schema": name,
            "table": d["table_name"],
            "exists": d["exists"],
            "depends_on": ", ".join(d["dependencies"]) or "-",
            "issues": len(d["validation_issues"]),
        }
        for name, d in details.items()
    ]
    output(rows, title="Schemas")
    console.print(f"\n[dim]Installed version: {manager.current_version() or 'none'}[/dim]")


@app.command()
def order(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Print the installation order."""
    names = Database(database).schemas().installation_order()
    if json_out:
        output({"order": names}, as_json=True)
        return
    for position, name in enumerate(names, start=1):
        console.print(f"  {position}. {name}")
