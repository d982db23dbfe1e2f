"""Report aggregator — fans a batch of checks out and joins them in order."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence

from ..datasource.adapter import DataSourceAdapter, Role
from .executor import CheckExecutor
from .models import Report
from .registry import CheckRegistry

logger = logging.getLogger(__name__)


class ReportAggregator:
    """Resolves requested names, runs them concurrently, assembles a Report.

    Name resolution happens before any check is dispatched, so an unknown
    name fails the whole request with NotFoundError and nothing runs.
    """

    def __init__(
        self,
        registry: CheckRegistry,
        executor: CheckExecutor,
        handles: Mapping[Role, DataSourceAdapter],
        deadline: float | None = None,
    ) -> None:
        self.registry = registry
        self.executor = executor
        self.handles = handles
        self.deadline = deadline

    async def generate(self, names: Sequence[str]) -> Report:
        """Run the named checks. Result order follows ``names``."""
        names = list(names)
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate check names in request: {', '.join(duplicates)}")

        definitions = self.registry.resolve(names)
        if not definitions:
            return Report(results=())

        # gather preserves argument order regardless of completion order
        results = await asyncio.gather(
            *(self.executor.run(d, self.handles, self.deadline) for d in definitions)
        )
        report = Report(results=tuple(results))
        logger.info("Report generated for %d checks: %s", len(report), report.summary())
        return report

    async def generate_all(self) -> Report:
        return await self.generate(self.registry.list())

    def generate_sync(self, names: Sequence[str]) -> Report:
        return asyncio.run(self.generate(names))
