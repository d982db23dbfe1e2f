"""Result models — signals, error kinds, per-check results and reports."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from ..datasource.adapter import QueryResult


class SignalStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    def worst(self, other: SignalStatus) -> SignalStatus:
        return self if self.rank >= other.rank else other


_STATUS_RANK = {SignalStatus.OK: 0, SignalStatus.WARNING: 1, SignalStatus.ERROR: 2}


class ErrorKind(str, Enum):
    CONNECTION = "ConnectionError"
    QUERY = "QueryError"
    TIMEOUT = "Timeout"
    UNKNOWN = "Unknown"


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.CONNECTION: "unable to connect to the database",
    ErrorKind.QUERY: "error while querying the database",
    ErrorKind.TIMEOUT: "operation timed out",
    ErrorKind.UNKNOWN: "an unknown error occurred",
}


@dataclass(frozen=True)
class RawObservation:
    """Everything one check execution read, keyed by query label."""

    results: Mapping[str, QueryResult] = field(default_factory=dict)

    def __getitem__(self, label: str) -> QueryResult:
        return self.results[label]

    def __contains__(self, label: object) -> bool:
        return label in self.results

    @property
    def elapsed_ms(self) -> float:
        return round(sum(r.elapsed_ms for r in self.results.values()), 1)


@dataclass(frozen=True)
class Signal:
    """Outcome of a successful check: named findings plus a status."""

    status: SignalStatus = SignalStatus.OK
    findings: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, **self.findings}


Outcome = Union[Signal, ErrorKind]


@dataclass(frozen=True)
class CheckResult:
    """Result of a single check invocation — either a Signal or an ErrorKind."""

    check_name: str
    outcome: Outcome
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Signal)

    @property
    def signal(self) -> Signal | None:
        return self.outcome if isinstance(self.outcome, Signal) else None

    @property
    def error(self) -> ErrorKind | None:
        return self.outcome if isinstance(self.outcome, ErrorKind) else None

    @property
    def message(self) -> str:
        if self.error is not None:
            return ERROR_MESSAGES[self.error]
        return ""

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"checkName": self.check_name, "error": self.error.value}
        return {"checkName": self.check_name, **self.outcome.to_dict()}


@dataclass(frozen=True)
class Report:
    """Ordered results for one batch request."""

    results: tuple[CheckResult, ...]
    generated_at: str = ""

    def __post_init__(self) -> None:
        if not self.generated_at:
            object.__setattr__(self, "generated_at", datetime.now(timezone.utc).isoformat())

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, index: int) -> CheckResult:
        return self.results[index]

    def __iter__(self):
        return iter(self.results)

    @property
    def check_names(self) -> list[str]:
        return [r.check_name for r in self.results]

    def to_list(self) -> list[dict[str, Any]]:
        return [r.to_dict() for r in self.results]

    def summary(self) -> dict[str, int]:
        counts = {"ok": 0, "warning": 0, "error": 0, "failed": 0}
        for r in self.results:
            if r.signal is not None:
                counts[r.signal.status.value] += 1
            else:
                counts["failed"] += 1
        return counts
