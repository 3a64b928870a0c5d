"""
Infrastructure Package - Lazy Loading Implementation.

Repository implementations are imported on first attribute access so that
importing function_app.py does not read environment variables, build
credentials, or open pools before the Functions host has finished
initializing.

Exports:
    IndexConnectionManager: Async psycopg pool for the pgSTAC database
    PgStacRepository: Index writer backed by pgstac SQL functions
    ManifestReader: Per-chunk CSV manifest split and reads in Blob Storage
    BlobRepository: Azure Blob Storage access (DefaultAzureCredential)
    ServiceBusRepository: Checkpoint continuation scheduling
"""

from typing import TYPE_CHECKING

# For type checking only - doesn't actually import at runtime
if TYPE_CHECKING:
    from .connection_pool import IndexConnectionManager as _IndexConnectionManager
    from .pgstac_repository import PgStacRepository as _PgStacRepository
    from .manifest_reader import ManifestReader as _ManifestReader
    from .blob import BlobRepository as _BlobRepository
    from .service_bus import ServiceBusRepository as _ServiceBusRepository


def __getattr__(name: str):
    """Lazy loading of repository classes and accessors."""
    if name in ("IndexConnectionManager", "get_connection_manager"):
        from . import connection_pool
        return getattr(connection_pool, name)
    elif name in ("PgStacRepository", "get_pgstac_repository"):
        from . import pgstac_repository
        return getattr(pgstac_repository, name)
    elif name in ("ManifestReader", "last_chunk_index_for"):
        from . import manifest_reader
        return getattr(manifest_reader, name)
    elif name in ("BlobRepository", "IBlobRepository"):
        from . import blob
        return getattr(blob, name)
    elif name in ("ServiceBusRepository", "get_service_bus_repository"):
        from . import service_bus
        return getattr(service_bus, name)
    else:
        raise AttributeError(f"module 'infrastructure' has no attribute '{name}'")


__all__ = [
    "IndexConnectionManager",
    "get_connection_manager",
    "PgStacRepository",
    "get_pgstac_repository",
    "ManifestReader",
    "last_chunk_index_for",
    "BlobRepository",
    "IBlobRepository",
    "ServiceBusRepository",
    "get_service_bus_repository",
]
