"""Check catalog — loads checks.yaml into CheckDefinitions.

The catalog is configuration, not code: each entry names its queries (SQL
per role) and the findings derived from their rows. Entries are validated
up front; a bad entry fails the whole load instead of being skipped, since
a silently missing check would look like a healthy cluster.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from ..datasource.adapter import Role
from .definition import OPERATORS, CheckDefinition, FindingRule, QuerySpec, build_definition
from .errors import CatalogError
from .models import SignalStatus
from .safety import SafetyError, validate_read_only

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(__file__).parent.parent / "checks.yaml"

# Route segments owned by the HTTP layer
RESERVED_NAMES = frozenset({"report", "checks", "health"})

_NAME = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def load_catalog(path: Path | None = None) -> list[CheckDefinition]:
    """Parse a catalog file and return its definitions in file order."""
    path = path or CATALOG_PATH
    if not path.exists():
        raise CatalogError(f"Check catalog not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise CatalogError(f"Failed to parse {path}: {e}") from e

    definitions = parse_catalog(raw)
    logger.info("Loaded %d checks from %s", len(definitions), path)
    return definitions


def parse_catalog(raw: dict[str, Any]) -> list[CheckDefinition]:
    if not isinstance(raw, dict):
        raise CatalogError("Catalog must be a mapping with a 'checks' list")
    entries = raw.get("checks") or []
    if not isinstance(entries, list):
        raise CatalogError("'checks' must be a list")
    return [parse_check(entry) for entry in entries]


# ── Parsers ──────────────────────────────────────────────────────────────────


def parse_check(raw: dict[str, Any]) -> CheckDefinition:
    if not isinstance(raw, dict):
        raise CatalogError(f"Check entry must be a mapping, got {type(raw).__name__}")
    name = str(raw.get("name", "")).strip()
    if not _NAME.match(name):
        raise CatalogError(f"Invalid check name: {name!r}")
    if name in RESERVED_NAMES:
        raise CatalogError(f"Check name '{name}' is reserved")

    try:
        queries = [_parse_query(q) for q in raw.get("queries") or []]
        if not queries:
            raise CatalogError("at least one query is required")
        ids = [q.id for q in queries]
        if len(set(ids)) != len(ids):
            raise CatalogError("query ids must be unique")

        findings = [_parse_finding(f, set(ids)) for f in raw.get("findings") or []]
        if not findings:
            raise CatalogError("at least one finding is required")
    except (CatalogError, SafetyError) as e:
        raise CatalogError(f"Check '{name}': {e}") from e

    return build_definition(
        name=name,
        queries=queries,
        findings=findings,
        description=str(raw.get("description", "")).strip(),
    )


def _parse_query(raw: dict[str, Any]) -> QuerySpec:
    qid = str(raw.get("id", "")).strip()
    if not qid:
        raise CatalogError("query 'id' is required")
    role_name = raw.get("role", Role.PRIMARY.value)
    try:
        role = Role(role_name)
    except ValueError:
        raise CatalogError(f"query '{qid}': unknown role '{role_name}'") from None
    sql = str(raw.get("sql", "")).strip()
    validate_read_only(sql)
    params = raw.get("params") or {}
    if not isinstance(params, dict):
        raise CatalogError(f"query '{qid}': params must be a mapping")
    return QuerySpec(id=qid, role=role, sql=sql, params=params)


def _parse_finding(raw: dict[str, Any], query_ids: set[str]) -> FindingRule:
    name = str(raw.get("name", "")).strip()
    if not name:
        raise CatalogError("finding 'name' is required")

    query = raw.get("query")
    if query not in query_ids:
        raise CatalogError(f"finding '{name}' refers to unknown query '{query}'")
    minus = raw.get("minus")
    if minus is not None and minus not in query_ids:
        raise CatalogError(f"finding '{name}' subtracts unknown query '{minus}'")

    op = raw.get("op")
    if op is not None and op not in OPERATORS:
        raise CatalogError(f"finding '{name}': unknown op '{op}'")
    if op is not None and raw.get("threshold") is None:
        raise CatalogError(f"finding '{name}': op requires a threshold")

    severity_name = raw.get("severity", SignalStatus.WARNING.value)
    try:
        severity = SignalStatus(severity_name)
    except ValueError:
        raise CatalogError(f"finding '{name}': unknown severity '{severity_name}'") from None

    return FindingRule(
        name=name,
        query=query,
        column=raw.get("column"),
        minus=minus,
        per=raw.get("per"),
        equals=raw.get("equals"),
        op=op,
        threshold=_optional_float(raw.get("threshold")),
        severity=severity,
        flag_when=bool(raw.get("flag_when", True)),
        warn_above=_optional_float(raw.get("warn_above")),
        error_above=_optional_float(raw.get("error_above")),
        round=raw.get("round"),
    )


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)
