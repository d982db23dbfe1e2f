"""Engine wiring — builds adapters, registry, executor and aggregator.

Both the API lifespan and the CLI go through ``DiagnosticsEngine.from_config``
so they share one startup path. Pre-built pieces can be passed in instead,
which is how tests swap in fake adapters.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from dbdiag.checks.aggregator import ReportAggregator
from dbdiag.checks.catalog import load_catalog
from dbdiag.checks.executor import CheckExecutor
from dbdiag.checks.registry import CheckRegistry
from dbdiag.datasource.adapter import DataSourceAdapter, DataSourceConfig, Role, build_adapters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Everything the engine needs at startup, supplied by the caller."""

    data_sources: list[DataSourceConfig] = field(default_factory=list)
    check_deadline: float = 10.0
    max_workers: int = 8
    checks_file: Path | None = None


class DiagnosticsEngine:
    """Owns the shared handles for one process."""

    def __init__(
        self,
        registry: CheckRegistry,
        adapters: Mapping[Role, DataSourceAdapter],
        executor: CheckExecutor,
        deadline: float | None = None,
    ) -> None:
        registry.seal()
        self.registry = registry
        self.adapters = dict(adapters)
        self.executor = executor
        self.aggregator = ReportAggregator(registry, executor, self.adapters, deadline)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        registry: CheckRegistry | None = None,
        adapters: Mapping[Role, DataSourceAdapter] | None = None,
    ) -> DiagnosticsEngine:
        if registry is None:
            registry = CheckRegistry(load_catalog(config.checks_file))
        if adapters is None:
            adapters = build_adapters(config.data_sources)
        executor = CheckExecutor(
            max_workers=config.max_workers,
            default_deadline=config.check_deadline,
        )
        logger.info(
            "Engine ready: %d checks, roles=%s, deadline=%.1fs",
            len(registry),
            sorted(r.value for r in adapters),
            config.check_deadline,
        )
        return cls(registry, adapters, executor, config.check_deadline)

    def status(self) -> dict[str, object]:
        return {
            "checks": len(self.registry),
            "data_sources": [a.status() for a in self.adapters.values()],
        }

    def close(self) -> None:
        self.executor.shutdown()
        for adapter in self.adapters.values():
            try:
                adapter.dispose()
            except Exception:
                logger.exception("Failed to dispose %s pool", adapter.role.value)
