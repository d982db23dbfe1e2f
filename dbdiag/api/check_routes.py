"""API routes for the check engine.

Endpoints:
  GET /api/checks                — registered checks, registration order
  GET /api/report?checks=a,b,c   — batch report in request order (all checks if omitted)
  GET /api/health                — liveness + pool occupancy per role
  GET /api/{check_name}          — run one check: flat signal fields or an error message
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from dbdiag.checks.errors import NotFoundError
from dbdiag.checks.models import ERROR_MESSAGES

logger = logging.getLogger(__name__)

check_router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _parse_names(raw: str | None) -> list[str]:
    return [n.strip() for n in (raw or "").split(",") if n.strip()]


# ── Catalog ──────────────────────────────────────────────────────────────────


@check_router.get("/checks")
def list_checks(request: Request) -> dict[str, Any]:
    """List registered checks with their descriptions and roles."""
    engine = request.app.state.engine
    return {"checks": engine.registry.to_dict()}


@check_router.get("/health")
def service_health(request: Request) -> dict[str, Any]:
    """Liveness plus pool status; never runs a check."""
    engine = request.app.state.engine
    return {"status": "ok", **engine.status()}


# ── Reports ──────────────────────────────────────────────────────────────────


@check_router.get("/report")
async def batch_report(request: Request, checks: str | None = None) -> Any:
    """Run several checks concurrently and return them in request order."""
    engine = request.app.state.engine
    names = _parse_names(checks) if checks is not None else engine.registry.list()

    try:
        report = await engine.aggregator.generate(names)
    except NotFoundError as e:
        return _error(404, str(e))
    except ValueError as e:
        return _error(400, str(e))

    return report.to_list()


@check_router.get("/{check_name}")
async def run_check(check_name: str, request: Request) -> Any:
    """Run a single check."""
    engine = request.app.state.engine

    try:
        definition = engine.registry.get(check_name)
    except NotFoundError as e:
        return _error(404, str(e))

    result = await engine.executor.run(definition, engine.adapters, engine.aggregator.deadline)
    if result.error is not None:
        return _error(500, ERROR_MESSAGES[result.error])
    return result.signal.to_dict()
