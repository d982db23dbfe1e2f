"""Entry point for dbdiag."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dbdiag.checks.errors import CatalogError, NotFoundError
from dbdiag.checks.models import Report
from dbdiag.config import settings
from dbdiag.engine import DiagnosticsEngine

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

_STATUS_STYLE = {"ok": "green", "warning": "yellow", "error": "red"}


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting dbdiag API Server", style="bold green"))
    uvicorn.run(
        "dbdiag.api.server:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def list_checks() -> None:
    """Print the registered checks without touching a database."""
    from dbdiag.checks.catalog import load_catalog
    from dbdiag.checks.registry import CheckRegistry

    registry = CheckRegistry(load_catalog(settings.engine_config().checks_file))
    table = Table(title="Registered checks")
    table.add_column("Name", style="bold")
    table.add_column("Roles")
    table.add_column("Description")
    for entry in registry.to_dict():
        table.add_row(entry["name"], ", ".join(entry["roles"]), entry["description"])
    console.print(table)


def render_report(report: Report) -> None:
    table = Table(title=f"Report @ {report.generated_at}")
    table.add_column("Check", style="bold")
    table.add_column("Status")
    table.add_column("Findings")
    table.add_column("ms", justify="right")
    for r in report:
        if r.signal is not None:
            status = r.signal.status.value
            findings = ", ".join(f"{k}={v}" for k, v in r.signal.findings.items())
            table.add_row(r.check_name, f"[{_STATUS_STYLE[status]}]{status}[/]", findings, f"{r.duration_ms:.1f}")
        else:
            table.add_row(r.check_name, f"[red]{r.error.value}[/]", r.message, f"{r.duration_ms:.1f}")
    console.print(table)

    s = report.summary()
    console.print(f"\n[dim]ok={s['ok']} warning={s['warning']} error={s['error']} failed={s['failed']}[/dim]")


def run_report(names: list[str]) -> int:
    """Run a report once and print it. Returns the process exit code."""
    engine = DiagnosticsEngine.from_config(settings.engine_config())
    try:
        with console.status("[bold green]Running checks..."):
            if names:
                report = engine.aggregator.generate_sync(names)
            else:
                report = engine.aggregator.generate_sync(engine.registry.list())
    except (NotFoundError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        return 2
    finally:
        engine.close()

    render_report(report)
    s = report.summary()
    return 1 if s["error"] or s["failed"] else 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Database cluster diagnostics")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")
    sub.add_parser("list", help="List registered checks")

    report_parser = sub.add_parser("report", help="Run checks once and print a report")
    report_parser.add_argument("checks", nargs="*", help="Check names (default: all)")

    args = parser.parse_args()

    try:
        if args.command == "serve":
            run_server()
        elif args.command == "list":
            list_checks()
        elif args.command == "report":
            sys.exit(run_report(args.checks))
        else:
            parser.print_help()
            sys.exit(1)
    except CatalogError as e:
        console.print(f"[red]Invalid check catalog:[/red] {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
