"""
Data models for DNS Speed Test.

Defines structured types for providers, run configuration,
per-probe outcomes and per-provider results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


MIN_TESTS_PER_DOMAIN = 1
MAX_TESTS_PER_DOMAIN = 10
MIN_TIMEOUT = 1.0
MAX_TIMEOUT = 10.0

NS_PER_SECOND = 1_000_000_000
NS_PER_MS = 1_000_000


class Transport(Enum):
    """DNS transport protocols."""
    UDP = "udp"
    TCP = "tcp"


class RecordType(Enum):
    """DNS record types to query."""
    A = "A"
    AAAA = "AAAA"


class QueryStatus(Enum):
    """Result status of a single probe."""
    SUCCESS = "success"
    TIMEOUT = "timeout"
    NXDOMAIN = "nxdomain"
    SERVFAIL = "servfail"
    REFUSED = "refused"
    NODATA = "nodata"
    TRUNCATED = "truncated"
    ERROR = "error"
    CANCELLED = "cancelled"


class RunState(Enum):
    """Lifecycle of the test orchestrator."""
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class Provider:
    """A DNS resolver endpoint under test."""
    name: str
    ipv4: str
    ipv6: Optional[str] = None
    description: Optional[str] = None

    def address_for(self, use_ipv6: bool) -> str:
        """Pick the address to probe, falling back to IPv4."""
        if use_ipv6 and self.ipv6:
            return self.ipv6
        return self.ipv4


@dataclass(frozen=True)
class RunConfig:
    """Read-only snapshot of the parameters for one run."""
    tests_per_domain: int = 3
    timeout: float = 3.0  # seconds
    transport: Transport = Transport.UDP
    use_ipv6: bool = False
    parallel_tests: bool = True

    def __post_init__(self):
        if not MIN_TESTS_PER_DOMAIN <= self.tests_per_domain <= MAX_TESTS_PER_DOMAIN:
            raise ValueError(
                f"tests_per_domain must be between {MIN_TESTS_PER_DOMAIN} "
                f"and {MAX_TESTS_PER_DOMAIN}, got {self.tests_per_domain}"
            )
        if not MIN_TIMEOUT <= self.timeout <= MAX_TIMEOUT:
            raise ValueError(
                f"timeout must be between {MIN_TIMEOUT:g}s and {MAX_TIMEOUT:g}s, "
                f"got {self.timeout}"
            )
        if not isinstance(self.transport, Transport):
            raise ValueError(f"Unknown transport: {self.transport!r}")

    @property
    def timeout_ns(self) -> int:
        """Timeout as integer nanoseconds."""
        return int(round(self.timeout * NS_PER_SECOND))


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one DNS lookup against one provider."""
    domain: str
    elapsed_ns: int
    status: QueryStatus
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == QueryStatus.SUCCESS


@dataclass(frozen=True)
class ProbeSummary:
    """
    Aggregate over one provider's probes.

    ``mean_latency_ns`` is None when no probe succeeded.
    """
    total_probes: int
    successful_probes: int
    mean_latency_ns: Optional[int] = None
    min_latency_ns: Optional[int] = None
    median_latency_ns: Optional[int] = None
    max_latency_ns: Optional[int] = None

    @property
    def any_success(self) -> bool:
        return self.mean_latency_ns is not None


@dataclass(frozen=True)
class ProviderResult:
    """Ranked result for one provider in one run."""
    provider: Provider
    mean_latency_ns: Optional[int]
    successful_probes: int
    total_probes: int
    timeout_ns: int
    timestamp: datetime = field(default_factory=datetime.now)
    min_latency_ns: Optional[int] = None
    median_latency_ns: Optional[int] = None
    max_latency_ns: Optional[int] = None

    @classmethod
    def from_summary(
        cls,
        provider: Provider,
        summary: ProbeSummary,
        config: RunConfig,
        timestamp: datetime,
    ) -> "ProviderResult":
        return cls(
            provider=provider,
            mean_latency_ns=summary.mean_latency_ns,
            successful_probes=summary.successful_probes,
            total_probes=summary.total_probes,
            timeout_ns=config.timeout_ns,
            timestamp=timestamp,
            min_latency_ns=summary.min_latency_ns,
            median_latency_ns=summary.median_latency_ns,
            max_latency_ns=summary.max_latency_ns,
        )

    @property
    def success(self) -> bool:
        """True iff at least one probe succeeded."""
        return self.mean_latency_ns is not None

    @property
    def latency_ns(self) -> int:
        """Mean latency, or the timeout when every probe failed."""
        if self.mean_latency_ns is None:
            return self.timeout_ns
        return self.mean_latency_ns

    @property
    def latency_ms(self) -> float:
        return self.latency_ns / NS_PER_MS

    @property
    def success_rate(self) -> float:
        """Percentage of successful probes."""
        if self.total_probes == 0:
            return 0.0
        return (self.successful_probes / self.total_probes) * 100


@dataclass(frozen=True)
class RunRecord:
    """One completed run as kept in the history."""
    started_at: datetime
    results: tuple[ProviderResult, ...] = ()

    @property
    def winner(self) -> Optional[ProviderResult]:
        """Fastest provider with at least one successful probe."""
        for result in self.results:
            if result.success:
                return result
        return None
