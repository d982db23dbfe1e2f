"""Tests for the command-line entry point."""

from __future__ import annotations

import sys

import pytest

from conftest import FakeAdapter, make_check
from dbdiag import main as cli
from dbdiag.checks.errors import CatalogError
from dbdiag.checks.models import Signal, SignalStatus
from dbdiag.checks.registry import CheckRegistry
from dbdiag.datasource.adapter import Role
from dbdiag.engine import DiagnosticsEngine


@pytest.fixture
def engine(executor, monkeypatch):
    registry = CheckRegistry([
        make_check("fine"),
        make_check("noisy", evaluate=lambda obs: Signal(SignalStatus.WARNING, {"flag": True})),
        make_check("down", roles=frozenset({Role.REPLICA})),
    ])
    engine = DiagnosticsEngine(registry, {Role.PRIMARY: FakeAdapter(Role.PRIMARY)}, executor)
    monkeypatch.setattr(cli.DiagnosticsEngine, "from_config", classmethod(lambda cls, config: engine))
    return engine


class TestRunReport:
    def test_clean_report_exits_zero(self, engine) -> None:
        assert cli.run_report(["fine", "noisy"]) == 0

    def test_failed_check_exits_one(self, engine) -> None:
        assert cli.run_report(["fine", "down"]) == 1

    def test_unknown_check_exits_two(self, engine) -> None:
        assert cli.run_report(["nope"]) == 2

    def test_all_checks_by_default(self, engine) -> None:
        assert cli.run_report([]) == 1


class TestMain:
    def test_bad_catalog_exits_two(self, monkeypatch) -> None:
        def broken(names):
            raise CatalogError("Check 'x': at least one query is required")

        monkeypatch.setattr(cli, "run_report", broken)
        monkeypatch.setattr(sys, "argv", ["dbdiag", "report"])
        with pytest.raises(SystemExit) as info:
            cli.main()
        assert info.value.code == 2

    def test_no_command_prints_help(self, monkeypatch) -> None:
        monkeypatch.setattr(sys, "argv", ["dbdiag"])
        with pytest.raises(SystemExit) as info:
            cli.main()
        assert info.value.code == 1

    def test_list(self, monkeypatch, capsys) -> None:
        monkeypatch.setattr(sys, "argv", ["dbdiag", "list"])
        cli.main()
        assert "deadlocks" in capsys.readouterr().out


class TestRenderReport:
    def test_table_title_and_rows(self, engine, capsys) -> None:
        report = engine.aggregator.generate_sync(["fine", "down"])
        cli.render_report(report)
        out = capsys.readouterr().out
        assert "Report" in out
        assert "—" not in out
        assert "ConnectionError" in out
