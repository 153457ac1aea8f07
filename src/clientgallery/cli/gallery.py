"""
CLI: ``clientgallery gallery``: gallery commands routed through the buses.
"""

from __future__ import annotations

from typing import Any

import typer

from clientgallery.application import (
    ArchiveGalleryCommand,
    CreateGalleryCommand,
    DeleteGalleryCommand,
    GetGalleryQuery,
    ListGalleriesQuery,
    PublishGalleryCommand,
    UnpublishGalleryCommand,
    build_buses,
)
from clientgallery.cli.utils import Database, console, fail, output
from clientgallery.core.errors import GalleryError
from clientgallery.core.settings import get_settings

app = typer.Typer(no_args_is_help=True)


def _send(database: str | None, message: Any, *, query: bool = False) -> Any:
    commands, queries = build_buses(Database(database).repositories())
    try:
        return (queries if query else commands).dispatch(message)
    except GalleryError as exc:
        fail(str(exc))


@app.command("list")
def list_galleries(
    status: str | None = typer.Option(None, "--status", "-s", help="draft, published or archived"),
    client_id: int | None = typer.Option(None, "--client", "-c", help="Only this client's galleries"),
    search: str | None = typer.Option(None, "--search", help="Match name or description"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Page size"),
    offset: int = typer.Option(0, "--offset"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List galleries, newest first."""
    try:
        query = ListGalleriesQuery(
            client_id=client_id,
            status=status,
            search=search,
            limit=limit or get_settings().default_page_size,
            offset=offset,
        )
    except GalleryError as exc:
        fail(str(exc))
    page = _send(database, query, query=True)

    if json_out:
        output(
            {
                "items": [g.to_dict() for g in page.items],
                "total": page.total,
                "limit": page.limit,
                "offset": page.offset,
                "has_more": page.has_more,
            },
            as_json=True,
        )
        return
    rows = [
        {"id": g.id, "name": g.name, "slug": g.slug.value, "status": g.status.value, "images": g.image_count}
        for g in page.items
    ]
    output(rows, title="Galleries")
    if rows:
        console.print(f"\n[dim]Showing {len(rows)} of {page.total} (offset {page.offset})[/dim]")


@app.command()
def show(
    gallery_id: int = typer.Argument(..., help="Gallery ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one gallery."""
    try:
        query = GetGalleryQuery(gallery_id)
    except GalleryError as exc:
        fail(str(exc))
    output(_send(database, query, query=True), as_json=json_out, title="Gallery")


@app.command()
def create(
    name: str = typer.Argument(..., help="Gallery name"),
    client_id: int = typer.Option(..., "--client", "-c", help="Owning client ID"),
    slug: str | None = typer.Option(None, "--slug", help="URL slug (derived from the name when omitted)"),
    description: str | None = typer.Option(None, "--description"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Create a draft gallery."""
    try:
        command = CreateGalleryCommand(name=name, slug=slug or name, client_id=client_id, description=description)
    except GalleryError as exc:
        fail(str(exc))
    output(_send(database, command), as_json=json_out, title="Gallery Created")


def _transition(command_type: type, label: str):
    def command(
        gallery_id: int = typer.Argument(..., help="Gallery ID"),
        database: str | None = typer.Option(None, "--database", "-d"),
        json_out: bool = typer.Option(False, "--json"),
    ) -> None:
        try:
            message = command_type(gallery_id)
        except GalleryError as exc:
            fail(str(exc))
        output(_send(database, message), as_json=json_out, title=f"Gallery {label}")

    command.__doc__ = f"Mark a gallery as {label.lower()}."
    return command


app.command("publish")(_transition(PublishGalleryCommand, "Published"))
app.command("unpublish")(_transition(UnpublishGalleryCommand, "Unpublished"))
app.command("archive")(_transition(ArchiveGalleryCommand, "Archived"))


@app.command()
def delete(
    gallery_id: int = typer.Argument(..., help="Gallery ID"),
    force: bool = typer.Option(False, "--force", help="Confirm deletion of the gallery and its images"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Delete a gallery (cascades to its images and ratings)."""
    if not force:
        fail("Deleting a gallery removes its images and ratings; pass --force to continue")
    try:
        command = DeleteGalleryCommand(gallery_id)
    except GalleryError as exc:
        fail(str(exc))
    _send(database, command)
    console.print(f"[green]Deleted gallery {gallery_id}[/green]")
