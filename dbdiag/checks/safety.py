"""Safety layer — configured check statements must be read-only."""

from __future__ import annotations

import re

# ── Patterns ─────────────────────────────────────────────────────────────────

# Statements a diagnostic may start with
_READ_ONLY_START = re.compile(
    r"^\s*(select|show|explain|describe|desc|with)\b", re.IGNORECASE
)

# Anything that writes, locks or changes privileges. REPLACE alone is also a
# string function, so only the REPLACE INTO statement form is blocked.
_MUTATING = re.compile(
    r"\b(insert|update|delete|drop|alter|truncate|create|grant|revoke|"
    r"replace\s+into|rename|lock|unlock|call|load\s+data|set\s+global|kill)\b",
    re.IGNORECASE,
)

# Quoted literals are stripped before scanning so `severity = "DELETE"` is fine
_QUOTED = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"|`[^`]*`")


class SafetyError(Exception):
    """Raised when a configured statement could mutate the database."""


def validate_read_only(statement: str) -> None:
    """Check a statement against the read-only rules. Raises SafetyError if blocked."""
    bare = _QUOTED.sub("''", statement).strip().rstrip(";")
    if not bare:
        raise SafetyError("Blocked: empty statement.")
    if ";" in bare:
        raise SafetyError(
            "Blocked: stacked statements are not allowed. "
            "Declare each statement as its own query."
        )
    if not _READ_ONLY_START.search(bare):
        raise SafetyError(
            "Blocked: checks may only run SELECT, SHOW, EXPLAIN, DESCRIBE or WITH statements."
        )
    match = _MUTATING.search(bare)
    if match:
        raise SafetyError(
            f"Blocked: '{match.group(1).upper()}' is not permitted in a diagnostic check."
        )
