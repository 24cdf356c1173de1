"""
Pytest configuration and shared fixtures for DNS speed test tests.

Provides a deterministic stand-in for the resolver adapter so that
runs never touch the network.
"""

import asyncio
from typing import Optional, Union

import pytest

from dns_speedtest.models import ProbeOutcome, Provider, QueryStatus, RunConfig


MS = 1_000_000

# Provider name -> latency in ns (int), per-domain latencies (dict), or None to fail
Behaviour = Union[int, dict, None]


class FakeEngine:
    """Resolver adapter returning canned outcomes per provider and domain."""

    def __init__(self, behaviours: dict[str, Behaviour], delay: float = 0.0):
        self.behaviours = behaviours
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def lookup(
        self,
        domain: str,
        provider: Provider,
        config: RunConfig,
        cancel: Optional[asyncio.Event] = None,
    ) -> ProbeOutcome:
        if cancel is not None and cancel.is_set():
            return ProbeOutcome(domain, 0, QueryStatus.CANCELLED)

        self.calls.append((provider.name, domain))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

        behaviour = self.behaviours.get(provider.name)
        if isinstance(behaviour, dict):
            behaviour = behaviour.get(domain)
        if behaviour is None:
            return ProbeOutcome(domain, config.timeout_ns, QueryStatus.TIMEOUT)
        return ProbeOutcome(domain, behaviour, QueryStatus.SUCCESS)


class RecordingSink:
    """Sink that keeps every notification for assertions."""

    def __init__(self):
        self.statuses: list[str] = []
        self.totals: list[int] = []
        self.ticks = 0
        self.completed: list[tuple[list, str]] = []

    def on_status(self, message: str) -> None:
        self.statuses.append(message)

    def on_start(self, total_tests: int) -> None:
        self.totals.append(total_tests)

    def on_progress(self) -> None:
        self.ticks += 1

    def on_complete(self, results, report: str) -> None:
        self.completed.append((list(results), report))


@pytest.fixture
def provider_a():
    return Provider(name="A", ipv4="1.1.1.1")


@pytest.fixture
def provider_b():
    return Provider(name="B", ipv4="9.9.9.9")


@pytest.fixture
def domains():
    return ("x.com", "y.com")


@pytest.fixture
def sink():
    return RecordingSink()
