"""
Statistical aggregation for DNS probe results.

Calculates per-provider aggregates:
- Mean latency of successful probes (integer nanoseconds)
- Min, median and max of successful probes
- Stable ranking by mean latency, failures last
"""

from typing import Iterable, Optional, Sequence

import numpy as np

from .models import ProbeOutcome, ProbeSummary, ProviderResult


class StatisticsEngine:
    """Aggregates probe outcomes and ranks provider results."""

    @staticmethod
    def summarize(outcomes: Sequence[ProbeOutcome]) -> ProbeSummary:
        """
        Aggregate one provider's probe outcomes.

        The mean uses integer division of the summed nanoseconds,
        so the result does not depend on probe completion order.

        Args:
            outcomes: Every probe performed for the provider

        Returns:
            ProbeSummary; ``mean_latency_ns`` is None if nothing succeeded
        """
        latencies = np.array(
            [o.elapsed_ns for o in outcomes if o.ok],
            dtype=np.int64,
        )

        if latencies.size == 0:
            return ProbeSummary(
                total_probes=len(outcomes),
                successful_probes=0,
            )

        return ProbeSummary(
            total_probes=len(outcomes),
            successful_probes=int(latencies.size),
            mean_latency_ns=int(latencies.sum()) // int(latencies.size),
            min_latency_ns=int(np.min(latencies)),
            median_latency_ns=int(np.median(latencies)),
            max_latency_ns=int(np.max(latencies)),
        )

    @staticmethod
    def rank(results: Iterable[ProviderResult]) -> list[ProviderResult]:
        """
        Order results by ascending latency.

        Failed providers report the timeout as their latency and so
        sort after every provider that answered in time. The sort is
        stable, so ties keep their input order.
        """
        return sorted(results, key=lambda r: r.latency_ns)

    @staticmethod
    def winner(results: Iterable[ProviderResult]) -> Optional[ProviderResult]:
        """Provider with the best mean latency (if any succeeded)."""
        successful = [r for r in results if r.success]
        if not successful:
            return None
        return min(successful, key=lambda r: r.latency_ns)

    @staticmethod
    def improvements(results: Sequence[ProviderResult]) -> dict[str, float]:
        """
        Percentage by which the winner beats every other successful provider.

        Returns:
            Mapping of provider name to improvement percentage
        """
        best = StatisticsEngine.winner(results)
        if best is None:
            return {}

        improvements = {}
        for result in results:
            if result is best or not result.success or result.latency_ns <= 0:
                continue
            improvements[result.provider.name] = (
                (result.latency_ns - best.latency_ns) / result.latency_ns
            ) * 100
        return improvements
