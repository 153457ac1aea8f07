"""
CLI utility helpers: output formatting and database access.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from clientgallery.core.connection import create_connection, dialect_for
from clientgallery.core.errors import GalleryError
from clientgallery.core.settings import get_settings
from clientgallery.migrations.manager import MigrationManager
from clientgallery.repositories.manager import RepositoryManager
from clientgallery.schema.manager import SchemaManager

console = Console()
err_console = Console(stderr=True)


# ── Database helpers ─────────────────────────────────────────────────────


class Database:
    """Connection plus the three managers, built from ``--database`` or settings."""

    def __init__(self, database: str | None = None) -> None:
        settings = get_settings()
        try:
            self.conn, self.info = create_connection(database or settings.database_url, data_dir=settings.data_dir)
        except GalleryError as exc:
            fail(str(exc))
        self.dialect = dialect_for(self.info)
        self.prefix = settings.table_prefix
        self.schema_version = settings.schema_version

    def schemas(self) -> SchemaManager:
        return SchemaManager(self.conn, self.dialect, self.prefix, version=self.schema_version)

    def migrations(self) -> MigrationManager:
        return MigrationManager(self.conn, self.dialect, self.prefix)

    def repositories(self) -> RepositoryManager:
        return RepositoryManager(self.conn, self.dialect, self.prefix)


def fail(message: str, code: int = 1) -> None:
    """Print an error and exit with ``code``."""
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=code)


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / entity / dict to plain dict."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a dict, model or list of them to the terminal."""
    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list | tuple):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        _print_table(list(data), title=title)
    else:
        _print_dict(_to_dict(data), title=title)


# ── Private helpers ──────────────────────────────────────────────────────


def _print_table(items: list, *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
