"""Check engine — definitions, registry, executor, aggregator."""

from .aggregator import ReportAggregator
from .catalog import load_catalog, parse_catalog
from .definition import CheckDefinition, FindingRule, QuerySpec, build_definition
from .errors import (
    CatalogError,
    CheckTimeout,
    DuplicateNameError,
    NotFoundError,
    RegistryError,
    classify,
)
from .executor import CheckExecutor
from .models import (
    ERROR_MESSAGES,
    CheckResult,
    ErrorKind,
    RawObservation,
    Report,
    Signal,
    SignalStatus,
)
from .registry import CheckRegistry
