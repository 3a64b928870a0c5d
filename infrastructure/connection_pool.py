"""
Index Connection Manager.

Process-scoped async connection pool for the pgSTAC catalog index.

================================================================================
ARCHITECTURE
================================================================================

The pool is created lazily on first use and shared by every writer in the
process. Creation sits behind a double-checked lock so concurrent first
callers (fan-in resolves a batch concurrently) open exactly one pool:

    writer A ──┐
    writer B ──┼──> IndexConnectionManager.connection() ──> AsyncConnectionPool
    writer C ──┘            (once-gate)

The manager is injected into PgStacRepository rather than read from a
global, so tests can pass a fake manager that yields an in-memory connection.

Connections run in autocommit mode: `conn.transaction()` opens a real
transaction and nested blocks become savepoints.

================================================================================
USAGE
================================================================================

    manager = get_connection_manager()
    async with manager.connection() as conn:
        await conn.execute("SELECT 1")

    stats = manager.get_pool_stats()

Exports:
    IndexConnectionManager: Lazy async pool with single-initialization guard
    get_connection_manager: Process-wide singleton accessor
"""

import asyncio
import threading
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from psycopg import sql
from psycopg_pool import AsyncConnectionPool

from exceptions import ConfigurationError
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "IndexConnectionManager")


# Timeout for waiting for a connection from the pool (seconds)
POOL_CONNECTION_TIMEOUT = 30.0

# Max time a connection can live in the pool (seconds) - 55 minutes
POOL_MAX_LIFETIME = 55 * 60

# Timeout for draining connections on pool close (seconds)
POOL_CLOSE_TIMEOUT = 30.0


class IndexConnectionManager:
    """
    Lazily-opened AsyncConnectionPool with a once-gate.

    Args:
        conninfo: libpq connection string
        schema: pgSTAC schema put first on the search_path
        min_size: Minimum pooled connections
        max_size: Maximum pooled connections
        timeout: Seconds to wait for a free connection
    """

    def __init__(
        self,
        conninfo: str,
        schema: str = "pgstac",
        min_size: int = 1,
        max_size: int = 10,
        timeout: float = POOL_CONNECTION_TIMEOUT,
    ):
        if not conninfo:
            raise ConfigurationError("Index connection string is empty")
        self._conninfo = conninfo
        self._schema = schema
        self._min_size = min_size
        self._max_size = max_size
        self._timeout = timeout
        self._pool: Optional[AsyncConnectionPool] = None
        self._lock = asyncio.Lock()
        self._initialized = False

    @classmethod
    def from_config(cls, config=None) -> 'IndexConnectionManager':
        if config is None:
            from config import get_config
            config = get_config()

        db = config.database
        if not db.is_configured:
            raise ConfigurationError(
                "Index database not configured: set POSTGRESQL_CONNECTION_STRING "
                "or POSTGIS_HOST and POSTGIS_DATABASE"
            )
        return cls(
            conninfo=db.connection_string,
            schema=db.pgstac_schema,
            min_size=db.min_connections,
            max_size=db.max_connections,
        )

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    async def _configure_connection(self, conn) -> None:
        """Called by the pool for each new connection."""
        await conn.execute(
            sql.SQL("SET search_path TO {}, public").format(sql.Identifier(self._schema))
        )

    async def _get_or_create_pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            async with self._lock:
                if self._pool is None:
                    logger.info(
                        f"🔄 Opening index connection pool: min={self._min_size}, max={self._max_size}"
                    )
                    pool = AsyncConnectionPool(
                        conninfo=self._conninfo,
                        min_size=self._min_size,
                        max_size=self._max_size,
                        timeout=self._timeout,
                        max_lifetime=POOL_MAX_LIFETIME,
                        kwargs={"autocommit": True},
                        configure=self._configure_connection,
                        open=False,
                    )
                    await pool.open()
                    self._pool = pool
                    self._initialized = True
                    logger.info("✅ Index connection pool opened")
        return self._pool

    @asynccontextmanager
    async def connection(self):
        """
        Borrow a pooled connection.

        Raises:
            psycopg_pool.PoolTimeout: No connection available within timeout
        """
        pool = await self._get_or_create_pool()
        async with pool.connection() as conn:
            yield conn

    async def close(self) -> None:
        async with self._lock:
            if self._pool is not None:
                logger.info("Closing index connection pool...")
                try:
                    await self._pool.close(timeout=POOL_CLOSE_TIMEOUT)
                finally:
                    self._pool = None

    def get_pool_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            'initialized': self._initialized,
            'open': self.is_open,
            'pool_min': self._min_size,
            'pool_max': self._max_size,
        }
        if self._pool is not None:
            pool_stats = self._pool.get_stats()
            stats.update({
                'pool_size': pool_stats.get('pool_size'),
                'pool_available': pool_stats.get('pool_available'),
                'requests_waiting': pool_stats.get('requests_waiting'),
            })
        return stats


# ============================================================================
# SINGLETON ACCESSOR
# ============================================================================

_manager_instance: Optional[IndexConnectionManager] = None
_manager_lock = threading.Lock()


def get_connection_manager() -> IndexConnectionManager:
    """Process-wide IndexConnectionManager built from config on first call."""
    global _manager_instance
    if _manager_instance is None:
        with _manager_lock:
            if _manager_instance is None:
                _manager_instance = IndexConnectionManager.from_config()
    return _manager_instance


def reset_connection_manager() -> None:
    """Forget the singleton (tests). Does not close an open pool."""
    global _manager_instance
    with _manager_lock:
        _manager_instance = None
