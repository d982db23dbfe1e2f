"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pytest

from dbdiag.checks.definition import CheckDefinition
from dbdiag.checks.executor import CheckExecutor
from dbdiag.checks.models import RawObservation, Signal, SignalStatus
from dbdiag.datasource.adapter import (
    DataSourceAdapter,
    DataSourceConfig,
    DataSourceUnavailable,
    QueryFailed,
    QueryResult,
    Role,
)


class FakeAdapter:
    """Stands in for DataSourceAdapter: canned rows per statement, or a failure."""

    def __init__(
        self,
        role: Role,
        responses: Mapping[str, list[dict[str, Any]]] | None = None,
        connect_error: Exception | None = None,
        query_error: Exception | None = None,
    ) -> None:
        self.role = role
        self.responses = dict(responses or {})
        self.connect_error = connect_error
        self.query_error = query_error
        self.statements: list[str] = []
        self.interrupted: list[int] = []

    @contextmanager
    def acquire(self) -> Iterator[None]:
        if self.connect_error is not None:
            raise DataSourceUnavailable(self.role, str(self.connect_error)) from self.connect_error
        yield None

    def query(self, conn: Any, statement: str, params: Mapping[str, Any] | None = None) -> QueryResult:
        self.statements.append(statement)
        if self.query_error is not None:
            raise QueryFailed(self.role, statement, str(self.query_error)) from self.query_error
        return QueryResult(rows=list(self.responses.get(statement, [])))

    def run(self, statement: str, params: Mapping[str, Any] | None = None) -> QueryResult:
        with self.acquire() as conn:
            return self.query(conn, statement, params)

    def status(self) -> dict[str, Any]:
        return {"role": self.role.value, "connection_limit": 1, "checked_out": 0}

    def interrupt(self, thread_id: int) -> int:
        self.interrupted.append(thread_id)
        return 0

    def dispose(self) -> None:
        pass


def make_check(
    name: str,
    execute: Callable[[Mapping[Role, Any]], RawObservation] | None = None,
    evaluate: Callable[[RawObservation], Signal] | None = None,
    roles: frozenset[Role] = frozenset({Role.PRIMARY}),
) -> CheckDefinition:
    """A hand-built definition; defaults to an instant ok signal."""
    return CheckDefinition(
        name=name,
        required_roles=roles,
        execute=execute or (lambda handles: RawObservation()),
        evaluate=evaluate or (lambda obs: Signal(SignalStatus.OK, {"checked": True})),
    )


@pytest.fixture
def fake_handles() -> dict[Role, FakeAdapter]:
    """Primary + replica fakes returning the replication-lag timestamps."""
    stmt = "SELECT UNIX_TIMESTAMP(NOW(6)) AS ts"
    return {
        Role.PRIMARY: FakeAdapter(Role.PRIMARY, {stmt: [{"ts": 100.0}]}),
        Role.REPLICA: FakeAdapter(Role.REPLICA, {stmt: [{"ts": 100.4}]}),
    }


@pytest.fixture
def executor() -> Iterator[CheckExecutor]:
    ex = CheckExecutor(max_workers=4, default_deadline=5.0)
    yield ex
    ex.shutdown()


@pytest.fixture
def sqlite_adapter_factory(tmp_path: Path) -> Iterator[Callable[..., DataSourceAdapter]]:
    """Real pooled adapters backed by SQLite files."""
    created: list[DataSourceAdapter] = []

    def _make(role: Role = Role.PRIMARY, connection_limit: int = 1, wait_timeout: float = 2.0) -> DataSourceAdapter:
        cfg = DataSourceConfig(
            role=role,
            url=f"sqlite:///{tmp_path / f'{role.value}.db'}",
            connection_limit=connection_limit,
            wait_timeout=wait_timeout,
            connect_args={"check_same_thread": False},
        )
        adapter = DataSourceAdapter(cfg)
        created.append(adapter)
        return adapter

    yield _make
    for a in created:
        a.dispose()
