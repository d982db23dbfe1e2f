"""Check executor — runs one definition with a deadline and never raises.

Each check runs its blocking ``execute`` on a worker thread of its own. At
most ``max_workers`` checks execute at once; the rest wait for a slot, and
the deadline clock starts only when a check's slot is granted. When a check
overruns, the coroutine returns Timeout at once, the slot is released and
the connections the worker leased are invalidated so the stuck statement
stops holding the pool.

Whatever goes wrong (no handle, pool exhausted, statement rejected,
evaluation bug, deadline) comes back as a CheckResult carrying an ErrorKind.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Mapping
from concurrent.futures import Future

from ..datasource.adapter import DataSourceAdapter, MissingDataSource, Role
from .definition import CheckDefinition
from .errors import CheckTimeout, classify
from .models import CheckResult, ErrorKind, RawObservation

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE = 10.0


class _Run:
    """One check execution on its own daemon thread.

    ``started`` resolves to the worker's thread ident once a slot is held;
    ``done`` resolves to the RawObservation (or the failure).
    """

    def __init__(
        self,
        definition: CheckDefinition,
        handles: dict[Role, DataSourceAdapter],
        slots: threading.BoundedSemaphore,
    ) -> None:
        self.definition = definition
        self.handles = handles
        self.started: Future[int] = Future()
        self.done: Future[RawObservation] = Future()
        self._slots = slots
        self._holding = False
        self._abandoned = False
        self._lock = threading.Lock()
        self.thread = threading.Thread(
            target=self._work, name=f"check-{definition.name}", daemon=True,
        )

    def start(self) -> None:
        self.thread.start()

    def _work(self) -> None:
        self._slots.acquire()
        with self._lock:
            self._holding = True
        if not self.started.set_running_or_notify_cancel():
            # Caller went away while queued for a slot
            self.release()
            return
        if self._abandoned:
            self.release()
            self.started.set_exception(
                RuntimeError(f"Check {self.definition.name} abandoned before it started")
            )
            return
        self.done.set_running_or_notify_cancel()
        self.started.set_result(threading.get_ident())
        try:
            obs = self.definition.execute(self.handles)
        except BaseException as e:
            self.done.set_exception(e)
        else:
            self.done.set_result(obs)
        finally:
            self.release()

    def release(self) -> None:
        """Give the slot back if held. Safe to call from either side."""
        with self._lock:
            if not self._holding:
                return
            self._holding = False
        self._slots.release()

    def abandon(self) -> None:
        """Stop waiting on this run: free its slot and cut its connections."""
        self._abandoned = True
        self.release()
        ident = self.thread.ident
        if ident is None:
            return
        for adapter in self.handles.values():
            interrupt = getattr(adapter, "interrupt", None)
            if interrupt is not None:
                interrupt(ident)


class CheckExecutor:
    """Runs CheckDefinitions against injected adapters.

    Queries block, so each check gets a worker thread. ``max_workers`` caps
    how many execute at once; the adapters' connection pools are what
    serialize access to each role.
    """

    def __init__(
        self,
        max_workers: int = 8,
        default_deadline: float = DEFAULT_DEADLINE,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be a positive integer")
        self.max_workers = max_workers
        self.default_deadline = default_deadline
        self._slots = threading.BoundedSemaphore(max_workers)
        self._lock = threading.Lock()
        self._runs = 0
        self._inflight: set[_Run] = set()

    @property
    def runs(self) -> int:
        """How many times ``run`` has been entered."""
        return self._runs

    async def run(
        self,
        definition: CheckDefinition,
        handles: Mapping[Role, DataSourceAdapter],
        deadline: float | None = None,
    ) -> CheckResult:
        """Execute and evaluate one check. Failures become ErrorKind results."""
        with self._lock:
            self._runs += 1
        deadline = self.default_deadline if deadline is None else deadline
        t0 = time.perf_counter()
        try:
            scoped = _scope_handles(definition, handles)
            obs = await self._execute(definition, scoped, deadline)
            signal = definition.evaluate(obs)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            kind = classify(e)
            duration = _elapsed_ms(t0)
            if kind is ErrorKind.TIMEOUT:
                logger.warning("Check %s timed out after %.1fms", definition.name, duration)
            else:
                logger.warning("Check %s failed (%s): %s", definition.name, kind.value, e)
            return CheckResult(check_name=definition.name, outcome=kind, duration_ms=duration)

        duration = _elapsed_ms(t0)
        logger.debug("Check %s: %s (%.1fms)", definition.name, signal.status.value, duration)
        return CheckResult(check_name=definition.name, outcome=signal, duration_ms=duration)

    async def _execute(
        self,
        definition: CheckDefinition,
        scoped: dict[Role, DataSourceAdapter],
        deadline: float,
    ) -> RawObservation:
        run = _Run(definition, scoped, self._slots)
        with self._lock:
            self._inflight.add(run)
        run.start()
        try:
            # Queued time does not count against the deadline
            await asyncio.wrap_future(run.started)
            try:
                return await asyncio.wait_for(asyncio.wrap_future(run.done), timeout=deadline)
            except asyncio.TimeoutError:
                run.abandon()
                raise CheckTimeout(definition.name, deadline) from None
        except asyncio.CancelledError:
            run.abandon()
            raise
        finally:
            with self._lock:
                self._inflight.discard(run)

    def run_sync(
        self,
        definition: CheckDefinition,
        handles: Mapping[Role, DataSourceAdapter],
        deadline: float | None = None,
    ) -> CheckResult:
        """Blocking wrapper around ``run`` for callers without an event loop."""
        return asyncio.run(self.run(definition, handles, deadline))

    def shutdown(self) -> None:
        """Interrupt every check still executing."""
        with self._lock:
            pending = list(self._inflight)
            self._inflight.clear()
        for run in pending:
            run.abandon()


def _scope_handles(
    definition: CheckDefinition,
    handles: Mapping[Role, DataSourceAdapter],
) -> dict[Role, DataSourceAdapter]:
    """Hand a check only the adapters for the roles it declared."""
    scoped: dict[Role, DataSourceAdapter] = {}
    for role in definition.required_roles:
        adapter = handles.get(role)
        if adapter is None:
            raise MissingDataSource(role)
        scoped[role] = adapter
    return scoped


def _elapsed_ms(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000, 1)
