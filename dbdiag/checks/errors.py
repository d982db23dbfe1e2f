"""Error taxonomy and the failure classifier.

``classify`` maps any exception raised while running a check onto one of
four stable ErrorKinds. The API and CLI pick user-facing messages from the
kind, so the mapping must not drift.
"""

from __future__ import annotations

import asyncio

from sqlalchemy import exc as sa_exc

from ..datasource.adapter import DataSourceUnavailable, MissingDataSource, QueryFailed
from .models import ErrorKind


class RegistryError(LookupError):
    """Structural error in check registration or lookup."""


class DuplicateNameError(RegistryError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"check already registered: {name}")


class NotFoundError(RegistryError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"check not found: {name}")


class CatalogError(ValueError):
    """Raised when a check definition in configuration is invalid."""


class CheckTimeout(Exception):
    """Raised when a check exceeds its deadline."""

    def __init__(self, check_name: str, deadline: float) -> None:
        self.check_name = check_name
        self.deadline = deadline
        super().__init__(f"{check_name} exceeded deadline of {deadline:g}s")


_CONNECTION_ERRORS = (
    DataSourceUnavailable,
    MissingDataSource,
    sa_exc.TimeoutError,  # pool wait exhausted
    sa_exc.DisconnectionError,
    sa_exc.InterfaceError,
    ConnectionError,
)


def classify(error: BaseException) -> ErrorKind:
    """Map a raw failure to its ErrorKind. Pure; no logging, no side effects."""
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        kind = _classify_one(current)
        if kind is not ErrorKind.UNKNOWN:
            return kind
        current = current.__cause__
    return ErrorKind.UNKNOWN


def _classify_one(error: BaseException) -> ErrorKind:
    if isinstance(error, (CheckTimeout, asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(error, _CONNECTION_ERRORS):
        return ErrorKind.CONNECTION
    if isinstance(error, QueryFailed):
        cause = error.__cause__
        if isinstance(cause, sa_exc.DBAPIError) and cause.connection_invalidated:
            return ErrorKind.CONNECTION
        return ErrorKind.QUERY
    if isinstance(error, sa_exc.OperationalError):
        if error.connection_invalidated:
            return ErrorKind.CONNECTION
        return ErrorKind.QUERY
    if isinstance(error, (sa_exc.DBAPIError, sa_exc.StatementError)):
        return ErrorKind.QUERY
    return ErrorKind.UNKNOWN
