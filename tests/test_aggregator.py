"""Tests for batch report generation."""

from __future__ import annotations

import asyncio
import time

import pytest

from conftest import FakeAdapter, make_check
from dbdiag.checks.aggregator import ReportAggregator
from dbdiag.checks.errors import NotFoundError
from dbdiag.checks.executor import CheckExecutor
from dbdiag.checks.models import ErrorKind, RawObservation, Signal, SignalStatus
from dbdiag.checks.registry import CheckRegistry
from dbdiag.datasource.adapter import Role


def _sleeper(seconds: float):
    def execute(handles):
        time.sleep(seconds)
        return RawObservation()
    return execute


def _failing(handles):
    raise RuntimeError("boom")


@pytest.fixture
def handles() -> dict[Role, FakeAdapter]:
    return {Role.PRIMARY: FakeAdapter(Role.PRIMARY)}


@pytest.fixture
def registry() -> CheckRegistry:
    return CheckRegistry([
        make_check("slow", execute=_sleeper(0.3)),
        make_check("medium", execute=_sleeper(0.25)),
        make_check("fast", execute=_sleeper(0.0)),
        make_check("broken", execute=_failing),
        make_check("hung", execute=_sleeper(1.5)),
        make_check(
            "warn",
            evaluate=lambda obs: Signal(SignalStatus.WARNING, {"flag": True}),
        ),
    ])


@pytest.fixture
def aggregator(registry, executor, handles) -> ReportAggregator:
    return ReportAggregator(registry, executor, handles, deadline=0.5)


class TestGenerate:
    def test_order_follows_request(self, aggregator: ReportAggregator) -> None:
        report = aggregator.generate_sync(["slow", "medium", "fast"])
        assert report.check_names == ["slow", "medium", "fast"]
        assert all(r.ok for r in report)

    def test_runs_concurrently(self, aggregator: ReportAggregator) -> None:
        t0 = time.perf_counter()
        aggregator.generate_sync(["slow", "medium", "fast"])
        # sequential would be ~0.55s
        assert time.perf_counter() - t0 < 0.5

    def test_failure_is_isolated(self, aggregator: ReportAggregator) -> None:
        report = aggregator.generate_sync(["fast", "broken", "warn"])
        assert report.to_list() == [
            {"checkName": "fast", "status": "ok", "checked": True},
            {"checkName": "broken", "error": "Unknown"},
            {"checkName": "warn", "status": "warning", "flag": True},
        ]
        assert report.summary() == {"ok": 1, "warning": 1, "error": 0, "failed": 1}

    def test_timeout_bounded_by_deadline(self, aggregator: ReportAggregator) -> None:
        t0 = time.perf_counter()
        report = aggregator.generate_sync(["hung", "fast"])
        elapsed = time.perf_counter() - t0
        assert report[0].error is ErrorKind.TIMEOUT
        assert report[1].ok
        assert elapsed < 1.2

    def test_empty_request(self, aggregator: ReportAggregator, executor: CheckExecutor) -> None:
        report = aggregator.generate_sync([])
        assert len(report) == 0
        assert report.to_list() == []
        assert executor.runs == 0

    def test_generate_all(self, aggregator: ReportAggregator, registry: CheckRegistry) -> None:
        report = asyncio.run(aggregator.generate_all())
        assert report.check_names == registry.list()
        assert report.generated_at


class TestRejectedRequests:
    def test_unknown_name_runs_nothing(self, aggregator: ReportAggregator, executor: CheckExecutor) -> None:
        with pytest.raises(NotFoundError) as info:
            aggregator.generate_sync(["fast", "nope", "slow"])
        assert info.value.name == "nope"
        assert executor.runs == 0

    def test_duplicate_names(self, aggregator: ReportAggregator, executor: CheckExecutor) -> None:
        with pytest.raises(ValueError, match="fast"):
            aggregator.generate_sync(["fast", "slow", "fast"])
        assert executor.runs == 0


class TestWideBatch:
    def test_more_checks_than_workers(self, handles) -> None:
        ex = CheckExecutor(max_workers=8, default_deadline=1.0)
        registry = CheckRegistry([make_check(f"c{i}", execute=_sleeper(0.6)) for i in range(16)])
        aggregator = ReportAggregator(registry, ex, handles)
        try:
            report = aggregator.generate_sync(registry.list())
        finally:
            ex.shutdown()
        assert report.check_names == [f"c{i}" for i in range(16)]
        assert [r.check_name for r in report if not r.ok] == []
