"""Check definitions — what a diagnostic reads and how it judges the rows.

A CheckDefinition is the unit the registry stores: a name, the roles it
needs, and two callables. ``execute`` reads from the adapters and returns a
RawObservation; ``evaluate`` turns that observation into a Signal.

Most checks are pure configuration: a list of QuerySpecs plus FindingRules.
``build_definition`` compiles those into the two callables.
"""

from __future__ import annotations

import logging
import operator
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ..datasource.adapter import DataSourceAdapter, MissingDataSource, QueryResult, Role
from .models import RawObservation, Signal, SignalStatus

logger = logging.getLogger(__name__)

Handles = Mapping[Role, DataSourceAdapter]

OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


@dataclass(frozen=True)
class CheckDefinition:
    """One registered diagnostic. Immutable once built."""

    name: str
    required_roles: frozenset[Role]
    execute: Callable[[Handles], RawObservation] = field(compare=False)
    evaluate: Callable[[RawObservation], Signal] = field(compare=False)
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Check name must be a non-empty string")
        object.__setattr__(self, "required_roles", frozenset(self.required_roles))


# ── Declarative pieces ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class QuerySpec:
    """One statement against one role, labelled for findings to refer to."""

    id: str
    role: Role
    sql: str
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FindingRule:
    """How to derive one named finding from the observation.

    The value is the first row's ``column`` of ``query`` (or the row count
    when no column is given). ``minus`` subtracts the same read from another
    query, ``per`` divides by another column of the same row. ``equals`` or
    ``op``/``threshold`` turn the value into a boolean, which raises the
    status to ``severity`` when it equals ``flag_when``.
    """

    name: str
    query: str
    column: str | None = None
    minus: str | None = None
    per: str | None = None
    equals: Any = None
    op: str | None = None
    threshold: float | None = None
    severity: SignalStatus = SignalStatus.WARNING
    flag_when: bool = True
    warn_above: float | None = None
    error_above: float | None = None
    round: int | None = None

    @property
    def is_boolean(self) -> bool:
        return self.op is not None or self.equals is not None

    def value(self, obs: RawObservation) -> Any:
        raw = _read(obs[self.query], self.column)
        if self.minus is not None:
            raw = _number(raw) - _number(_read(obs[self.minus], self.column))
        if self.per is not None:
            row = obs[self.query].first() or {}
            divisor = _number(row.get(self.per))
            raw = _number(raw) / divisor if divisor else 0
        if self.equals is not None:
            return raw == self.equals
        if self.op is not None:
            return OPERATORS[self.op](_number(raw), self.threshold)
        if self.round is not None and isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return round(float(raw), self.round)
        return raw

    def status_for(self, value: Any) -> SignalStatus:
        if self.is_boolean:
            return self.severity if bool(value) == self.flag_when else SignalStatus.OK
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return SignalStatus.OK
        if self.error_above is not None and value > self.error_above:
            return SignalStatus.ERROR
        if self.warn_above is not None and value > self.warn_above:
            return SignalStatus.WARNING
        return SignalStatus.OK


def _read(result: QueryResult, column: str | None) -> Any:
    if column is None:
        return len(result)
    row = result.first()
    if row is None:
        return 0
    value = row.get(column, 0)
    return float(value) if isinstance(value, Decimal) else value


def _number(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Expected a numeric value, got {value!r}") from None


# ── Compilation ──────────────────────────────────────────────────────────────


def run_queries(queries: list[QuerySpec], handles: Handles) -> RawObservation:
    """Run each query on its role's adapter; one lease per query."""
    results: dict[str, QueryResult] = {}
    for q in queries:
        adapter = handles.get(q.role)
        if adapter is None:
            raise MissingDataSource(q.role)
        results[q.id] = adapter.run(q.sql, q.params)
        logger.debug("Query %s on %s returned %d rows", q.id, q.role.value, len(results[q.id]))
    return RawObservation(results=results)


def evaluate_findings(rules: list[FindingRule], obs: RawObservation) -> Signal:
    status = SignalStatus.OK
    findings: dict[str, Any] = {}
    for rule in rules:
        value = rule.value(obs)
        findings[rule.name] = value
        status = status.worst(rule.status_for(value))
    return Signal(status=status, findings=findings)


def build_definition(
    name: str,
    queries: list[QuerySpec],
    findings: list[FindingRule],
    description: str = "",
) -> CheckDefinition:
    """Compile declarative queries + findings into a CheckDefinition."""
    queries = list(queries)
    findings = list(findings)

    def execute(handles: Handles) -> RawObservation:
        return run_queries(queries, handles)

    def evaluate(obs: RawObservation) -> Signal:
        return evaluate_findings(findings, obs)

    return CheckDefinition(
        name=name,
        required_roles=frozenset(q.role for q in queries),
        execute=execute,
        evaluate=evaluate,
        description=description,
    )
