"""
clientgallery - Data-access layer for photographer client galleries.

Packages:
- clientgallery.core: Connections, dialects, errors, logging, settings
- clientgallery.schema: Table schemas and the dependency-ordered installer
- clientgallery.migrations: Versioned up/down migrations
- clientgallery.repositories: CRUD, search and statistics per entity
- clientgallery.domain: Gallery entity and value objects
- clientgallery.application: Commands, queries, handlers and buses
- clientgallery.cli: Typer admin CLI
"""

__version__ = "1.0.0"
