"""Data-source adapters — one pooled SQLAlchemy engine per database role.

Each role (primary / replica) owns its own QueuePool. ``connection_limit``
maps to the pool size with no overflow, so a saturated pool blocks callers
for ``wait_timeout`` seconds before SQLAlchemy gives up. Connections are
leased per query and always returned, including on failure.
Leases are tracked per thread so an overrunning check can be interrupted.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import QueuePool

logger = logging.getLogger(__name__)


class Role(str, Enum):
    PRIMARY = "primary"
    REPLICA = "replica"


# ── Errors ───────────────────────────────────────────────────────────────────


class DataSourceUnavailable(Exception):
    """Raised when no connection could be leased from a role's pool."""

    def __init__(self, role: Role, detail: str = "") -> None:
        self.role = role
        self.detail = detail
        super().__init__(f"{role.value} unavailable: {detail}" if detail else f"{role.value} unavailable")


class QueryFailed(Exception):
    """Raised when a leased connection rejects or aborts a statement."""

    def __init__(self, role: Role, statement: str, detail: str = "") -> None:
        self.role = role
        self.statement = statement
        self.detail = detail
        super().__init__(f"query on {role.value} failed: {detail}")


class MissingDataSource(Exception):
    """Raised when a check needs a role that has no configured adapter."""

    def __init__(self, role: Role) -> None:
        self.role = role
        super().__init__(f"no data source configured for role '{role.value}'")


# ── Models ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DataSourceConfig:
    """Connection parameters for one logical endpoint.

    ``url`` wins over the discrete host/user/password/database fields when set.
    """

    role: Role
    host: str = "localhost"
    port: int | None = None
    user: str = ""
    password: str = field(default="", repr=False)
    database: str = ""
    driver: str = "mysql+pymysql"
    url: str = field(default="", repr=False)
    connection_limit: int = 10
    wait_timeout: float = 5.0
    connect_args: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.connection_limit < 1:
            raise ValueError("connection_limit must be a positive integer")
        if self.wait_timeout < 0:
            raise ValueError("wait_timeout must not be negative")

    def sqlalchemy_url(self) -> str:
        if self.url:
            return self.url
        auth = self.user
        if self.password:
            auth = f"{auth}:{self.password}"
        port = f":{self.port}" if self.port else ""
        at = f"{auth}@" if auth else ""
        return f"{self.driver}://{at}{self.host}{port}/{self.database}"


@dataclass(frozen=True)
class QueryResult:
    """Rows of one statement, each row a column → value dict."""

    rows: list[dict[str, Any]]
    elapsed_ms: float = 0.0

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None

    def __len__(self) -> int:
        return len(self.rows)


# ── Adapter ──────────────────────────────────────────────────────────────────


class DataSourceAdapter:
    """Pooled query access to one database role."""

    def __init__(self, config: DataSourceConfig, engine: Engine | None = None) -> None:
        self.config = config
        self.role = config.role
        self._engine = engine or create_engine(
            config.sqlalchemy_url(),
            poolclass=QueuePool,
            pool_size=config.connection_limit,
            max_overflow=0,
            pool_timeout=config.wait_timeout,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args=dict(config.connect_args),
        )
        # thread ident -> connections leased by that thread
        self._leases: dict[int, list[Connection]] = {}
        self._lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def acquire(self) -> Iterator[Connection]:
        """Lease a connection; it goes back to the pool on every exit path."""
        try:
            conn = self._engine.connect()
        except Exception as e:
            raise DataSourceUnavailable(self.role, str(e)) from e
        ident = threading.get_ident()
        with self._lock:
            self._leases.setdefault(ident, []).append(conn)
        try:
            yield conn
        finally:
            with self._lock:
                held = self._leases.get(ident)
                if held and conn in held:
                    held.remove(conn)
                    if not held:
                        del self._leases[ident]
            conn.close()

    def interrupt(self, thread_id: int) -> int:
        """Invalidate the connections a worker thread holds.

        Used when a check overruns its deadline: the DBAPI connection is closed
        under the in-flight statement and its pool slot is freed at once, so
        later checks are not starved by a statement nobody is waiting for.
        Returns the number of connections invalidated.
        """
        with self._lock:
            held = self._leases.pop(thread_id, [])
        for conn in held:
            try:
                conn.invalidate()
            except Exception as e:
                logger.warning("Could not invalidate %s connection: %s", self.role.value, e)
        if held:
            logger.info("Interrupted %d %s connection(s)", len(held), self.role.value)
        return len(held)

    def query(
        self,
        conn: Connection,
        statement: str,
        params: Mapping[str, Any] | None = None,
    ) -> QueryResult:
        """Run one read-only statement on a leased connection."""
        t0 = time.perf_counter()
        try:
            result = conn.execute(text(statement), dict(params or {}))
            rows = [dict(r) for r in result.mappings().all()] if result.returns_rows else []
        except Exception as e:
            raise QueryFailed(self.role, statement, str(e)) from e
        elapsed = (time.perf_counter() - t0) * 1000
        logger.debug("%s query took %.1fms (%d rows)", self.role.value, elapsed, len(rows))
        return QueryResult(rows=rows, elapsed_ms=round(elapsed, 1))

    def run(self, statement: str, params: Mapping[str, Any] | None = None) -> QueryResult:
        """Acquire, query and release in one step."""
        with self.acquire() as conn:
            return self.query(conn, statement, params)

    def status(self) -> dict[str, Any]:
        """Pool occupancy snapshot for the health route."""
        pool = self._engine.pool
        checked_out = pool.checkedout() if isinstance(pool, QueuePool) else None
        return {
            "role": self.role.value,
            "connection_limit": self.config.connection_limit,
            "checked_out": checked_out,
        }

    def dispose(self) -> None:
        self._engine.dispose()


def build_adapters(configs: list[DataSourceConfig]) -> dict[Role, DataSourceAdapter]:
    """One adapter per role; a role configured twice is a configuration error."""
    adapters: dict[Role, DataSourceAdapter] = {}
    for cfg in configs:
        if cfg.role in adapters:
            raise ValueError(f"Data source for role '{cfg.role.value}' configured twice")
        adapters[cfg.role] = DataSourceAdapter(cfg)
        logger.info(
            "Data source %s ready (limit=%d, wait=%.1fs)",
            cfg.role.value, cfg.connection_limit, cfg.wait_timeout,
        )
    return adapters
