"""Command and query buses.

Direct, synchronous dispatch keyed on the message's exact type. There is
no queue, no middleware chain and no retry: ``dispatch`` returns whatever
the handler returns and lets its exceptions propagate.

Usage:
    commands, queries = build_buses(RepositoryManager(conn))
    gallery = commands.dispatch(CreateGalleryCommand("Wedding", "wedding", client_id=1))
    page = queries.dispatch(ListGalleriesQuery(status="published"))
"""

from __future__ import annotations

from typing import Any, Protocol

from clientgallery.core.errors import HandlerNotFoundError
from clientgallery.core.logging import get_logger
from clientgallery.repositories.manager import RepositoryManager

from . import handlers
from .commands import (
    ArchiveGalleryCommand,
    ChangeGalleryStatusCommand,
    CreateGalleryCommand,
    DeleteGalleryCommand,
    PublishGalleryCommand,
    UnpublishGalleryCommand,
    UpdateGalleryCommand,
)
from .queries import GetGalleryQuery, ListGalleriesQuery

logger = get_logger(__name__)


class Handler(Protocol):
    def handle(self, message: Any) -> Any: ...


class _Bus:
    kind = "message"

    def __init__(self) -> None:
        self._handlers: dict[type, Handler] = {}

    def register(self, message_type: type, handler: Handler) -> None:
        """Register ``handler`` for ``message_type``, replacing any previous one."""
        self._handlers[message_type] = handler

    def unregister(self, message_type: type) -> None:
        self._handlers.pop(message_type, None)

    def has_handler(self, message_type: type) -> bool:
        return message_type in self._handlers

    def registered(self) -> list[str]:
        return sorted(t.__name__ for t in self._handlers)

    def dispatch(self, message: Any) -> Any:
        handler = self._handlers.get(type(message))
        if handler is None:
            raise HandlerNotFoundError(type(message))
        logger.debug(f"{self.kind}.dispatched", message=type(message).__name__)
        return handler.handle(message)


class CommandBus(_Bus):
    kind = "command"


class QueryBus(_Bus):
    kind = "query"


def build_buses(repositories: RepositoryManager) -> tuple[CommandBus, QueryBus]:
    """Buses wired with the default gallery handlers."""
    galleries = repositories.galleries
    commands = CommandBus()
    commands.register(CreateGalleryCommand, handlers.CreateGalleryHandler(galleries))
    commands.register(UpdateGalleryCommand, handlers.UpdateGalleryHandler(galleries))
    commands.register(DeleteGalleryCommand, handlers.DeleteGalleryHandler(galleries))
    commands.register(PublishGalleryCommand, handlers.PublishGalleryHandler(galleries))
    commands.register(UnpublishGalleryCommand, handlers.UnpublishGalleryHandler(galleries))
    commands.register(ArchiveGalleryCommand, handlers.ArchiveGalleryHandler(galleries))
    commands.register(ChangeGalleryStatusCommand, handlers.ChangeGalleryStatusHandler(galleries))

    queries = QueryBus()
    queries.register(GetGalleryQuery, handlers.GetGalleryHandler(galleries))
    queries.register(ListGalleriesQuery, handlers.ListGalleriesHandler(galleries))
    return commands, queries


__all__ = ["CommandBus", "Handler", "QueryBus", "build_buses"]
