"""
Test runner for DNS latency measurement.

Orchestrates a run:
- One probe runner per selected provider, all concurrent
- Per-probe progress reporting through a result sink
- Stable ranking and a bounded run history
"""

import asyncio
import logging
import threading
import time
from datetime import datetime
from types import MappingProxyType
from typing import Awaitable, Callable, Iterable, Mapping, Optional, Protocol, Sequence

from .history import RunHistory
from .models import (
    ProbeOutcome,
    ProbeSummary,
    Provider,
    ProviderResult,
    QueryStatus,
    RunConfig,
    RunState,
)
from .output import ReportFormatter
from .query_engine import DNSQueryEngine
from .resolvers import PROVIDERS, get_provider
from .statistics import StatisticsEngine
from .workload import DEFAULT_DOMAINS


logger = logging.getLogger(__name__)

# Called once after every probe, success or failure
ProgressCallback = Callable[[], None]

NO_SELECTION_MESSAGE = "Please select at least one DNS provider"
ALREADY_RUNNING_MESSAGE = "A test run is already in progress"
RUNNING_MESSAGE = "Testing DNS servers..."
COMPLETED_MESSAGE = "Testing completed"


class ResolverAdapter(Protocol):
    """Anything able to perform one timed lookup."""

    async def lookup(
        self,
        domain: str,
        provider: Provider,
        config: RunConfig,
        cancel: Optional[asyncio.Event] = None,
    ) -> ProbeOutcome:
        ...


class ResultSink(Protocol):
    """Receiver of progress and results (the presentation layer)."""

    def on_status(self, message: str) -> None:
        ...

    def on_start(self, total_tests: int) -> None:
        ...

    def on_progress(self) -> None:
        ...

    def on_complete(self, results: Sequence[ProviderResult], report: str) -> None:
        ...


class NullSink:
    """Sink that ignores every notification."""

    def on_status(self, message: str) -> None:
        pass

    def on_start(self, total_tests: int) -> None:
        pass

    def on_progress(self) -> None:
        pass

    def on_complete(self, results: Sequence[ProviderResult], report: str) -> None:
        pass


async def gather_or_cancel(aws: Iterable[Awaitable]) -> list:
    """
    Gather awaitables, cancelling the rest as soon as one fails.

    Every task has finished before the error is re-raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class ProbeRunner:
    """
    Runs every probe for one provider.

    Each domain is probed ``tests_per_domain`` times, either one
    after the other or all at once depending on ``parallel_tests``.
    """

    def __init__(self, engine: ResolverAdapter, domains: Sequence[str]):
        self.engine = engine
        self.domains = tuple(domains)

    def plan(self, config: RunConfig) -> list[str]:
        """Domains in probe order, repeated per configuration."""
        return [
            domain
            for domain in self.domains
            for _ in range(config.tests_per_domain)
        ]

    async def _probe(
        self,
        domain: str,
        provider: Provider,
        config: RunConfig,
        on_progress: Optional[ProgressCallback],
        cancel: Optional[asyncio.Event],
    ) -> ProbeOutcome:
        try:
            outcome = await self.engine.lookup(domain, provider, config, cancel)
        except Exception as e:
            logger.warning("Lookup of %s via %s raised %r; counted as failed",
                           domain, provider.name, e)
            outcome = ProbeOutcome(domain, config.timeout_ns, QueryStatus.ERROR, str(e))

        if on_progress:
            on_progress()
        return outcome

    async def run(
        self,
        provider: Provider,
        config: RunConfig,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> ProbeSummary:
        """
        Probe one provider across the domain list.

        Args:
            provider: Provider to probe
            config: Run configuration
            on_progress: Invoked once after each probe
            cancel: Run-wide cancellation flag passed to the adapter

        Returns:
            ProbeSummary with mean latency and success counts
        """
        probes = self.plan(config)

        if config.parallel_tests:
            outcomes = await gather_or_cancel(
                self._probe(domain, provider, config, on_progress, cancel)
                for domain in probes
            )
        else:
            outcomes = []
            for domain in probes:
                outcomes.append(
                    await self._probe(domain, provider, config, on_progress, cancel)
                )

        return StatisticsEngine.summarize(outcomes)


class TestOrchestrator:
    """
    Runs all selected providers concurrently and ranks the results.

    Only one run may be active at a time; a second request while
    running is rejected and reported through the sink.
    """

    def __init__(
        self,
        catalog: Mapping[str, Provider] = PROVIDERS,
        domains: Sequence[str] = DEFAULT_DOMAINS,
        engine: Optional[ResolverAdapter] = None,
        sink: Optional[ResultSink] = None,
        history: Optional[RunHistory] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            catalog: Providers available for selection, keyed by id
            domains: Domains probed for every provider
            engine: Resolver adapter (a DNSQueryEngine by default)
            sink: Default receiver of progress and results
            history: Store for completed runs
        """
        if not domains:
            raise ValueError("At least one probe domain is required")

        self.catalog: Mapping[str, Provider] = MappingProxyType(dict(catalog))
        self.domains = tuple(domains)
        self.engine = engine or DNSQueryEngine()
        self.sink = sink or NullSink()
        self.history = history if history is not None else RunHistory()

        self.state = RunState.IDLE
        self.progress = 0.0
        self.completed_tests = 0
        self.total_tests = 0

        self._state_lock = threading.Lock()
        self._progress_lock = threading.Lock()
        self._cancel: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.state == RunState.RUNNING

    def resolve_selection(self, keys: Iterable[str]) -> list[Provider]:
        """Map catalog keys to providers, keeping the given order."""
        return [get_provider(key, self.catalog) for key in keys]

    def count_tests(self, provider_count: int, config: RunConfig) -> int:
        """Total probes a run over ``provider_count`` providers performs."""
        return provider_count * len(self.domains) * config.tests_per_domain

    def _try_begin(self) -> bool:
        with self._state_lock:
            if self.state == RunState.RUNNING:
                return False
            self.state = RunState.RUNNING
            self._cancel = asyncio.Event()
            return True

    def _finish(self) -> None:
        with self._state_lock:
            self.state = RunState.IDLE
            self._cancel = None

    def start(
        self,
        selected: Iterable[Provider],
        config: RunConfig,
        sink: Optional[ResultSink] = None,
    ) -> Optional[asyncio.Task]:
        """
        Schedule a run in the background and return its task.

        The run is claimed before this returns, so the returned task
        owns the active run. Returns None when another run is already
        in progress. Must be called from within a running event loop.
        """
        sink = sink or self.sink
        if not self._claim(sink):
            return None

        self._task = asyncio.get_running_loop().create_task(
            self._run_claimed(tuple(selected), config, sink)
        )
        return self._task

    def cancel(self) -> bool:
        """
        Ask the active run to stop issuing probes.

        Probes already in flight finish or time out normally.
        Returns False when no run is active.
        """
        with self._state_lock:
            if self._cancel is None:
                return False
            self._cancel.set()
            return True

    async def run_all(
        self,
        selected: Iterable[Provider],
        config: RunConfig,
        sink: Optional[ResultSink] = None,
    ) -> Optional[list[ProviderResult]]:
        """
        Run every selected provider and rank the results.

        Args:
            selected: Providers to test (snapshotted at start)
            config: Run configuration
            sink: Receiver for this run (defaults to the orchestrator's sink)

        Returns:
            Ranked results, or None when the run was not started
        """
        sink = sink or self.sink
        if not self._claim(sink):
            return None
        return await self._run_claimed(tuple(selected), config, sink)

    def _claim(self, sink: ResultSink) -> bool:
        if self._try_begin():
            return True
        logger.warning("Ignoring run request: a run is already in progress")
        sink.on_status(ALREADY_RUNNING_MESSAGE)
        return False

    async def _run_claimed(
        self,
        providers: tuple[Provider, ...],
        config: RunConfig,
        sink: ResultSink,
    ) -> Optional[list[ProviderResult]]:
        try:
            if not providers:
                sink.on_status(NO_SELECTION_MESSAGE)
                return None
            return await self._run(providers, config, sink)
        finally:
            self._finish()

    async def _run(
        self,
        providers: tuple[Provider, ...],
        config: RunConfig,
        sink: ResultSink,
    ) -> list[ProviderResult]:
        started_at = datetime.now()
        started = time.perf_counter()
        total = self.count_tests(len(providers), config)

        with self._state_lock:
            cancel = self._cancel

        with self._progress_lock:
            self.completed_tests = 0
            self.total_tests = total
            self.progress = 0.0

        logger.info("Starting run: %d providers, %d probes (%s, %s)",
                    len(providers), total, config.transport.value,
                    "parallel" if config.parallel_tests else "sequential")
        sink.on_status(RUNNING_MESSAGE)
        sink.on_start(total)

        def on_progress():
            with self._progress_lock:
                self.completed_tests += 1
                self.progress = min(self.completed_tests / total, 1.0)
                sink.on_progress()

        runner = ProbeRunner(self.engine, self.domains)
        summaries = await gather_or_cancel(
            runner.run(provider, config, on_progress, cancel)
            for provider in providers
        )

        results = StatisticsEngine.rank(
            ProviderResult.from_summary(provider, summary, config, started_at)
            for provider, summary in zip(providers, summaries)
        )

        self.history.append(results)
        with self._progress_lock:
            self.progress = 1.0

        logger.info("Run finished in %.1fs; %d/%d providers answered",
                    time.perf_counter() - started,
                    sum(1 for r in results if r.success), len(results))

        sink.on_complete(results, ReportFormatter.format(results))
        sink.on_status(COMPLETED_MESSAGE)
        return results
