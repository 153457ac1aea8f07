"""
Root Typer application for the clientgallery CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from clientgallery import __version__
from clientgallery.core.logging import configure_logging
from clientgallery.core.settings import get_settings

app = Typer(
    name="clientgallery",
    help="clientgallery: schema, migrations and data tools for client galleries.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"clientgallery {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Install tables, run migrations and inspect gallery data."""
    settings = get_settings()
    configure_logging(level=settings.effective_log_level, json_format=settings.json_logs)


# ── Sub-command registration ─────────────────────────────────────────────

from clientgallery.cli.gallery import app as gallery_app  # noqa: E402
from clientgallery.cli.migrate import app as migrate_app  # noqa: E402
from clientgallery.cli.schema import app as schema_app  # noqa: E402
from clientgallery.cli.system import health, integrity, maintenance, stats  # noqa: E402

app.add_typer(schema_app, name="schema", help="Create, drop and inspect tables.")
app.add_typer(migrate_app, name="migrate", help="Versioned schema migrations.")
app.add_typer(gallery_app, name="gallery", help="Gallery management.")
app.command()(health)
app.command()(integrity)
app.command()(stats)
app.command()(maintenance)
