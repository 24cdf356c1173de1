"""
DNS Speed Test - DNS resolver latency ranking tool.

Probes public resolvers with repeated lookups for a fixed set of
domains and ranks them by average latency.
"""

__version__ = "1.0.0"

from .history import RunHistory
from .models import Provider, ProviderResult, RunConfig, Transport
from .query_engine import DNSQueryEngine
from .runner import ProbeRunner, TestOrchestrator

__all__ = [
    "__version__",
    "Provider",
    "ProviderResult",
    "RunConfig",
    "Transport",
    "RunHistory",
    "DNSQueryEngine",
    "ProbeRunner",
    "TestOrchestrator",
]
