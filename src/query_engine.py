"""
Core DNS query engine.

Wraps a single DNS lookup against one provider with a hard
deadline and nanosecond timing. Every failure is returned as
data; nothing is raised to the caller.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

import dns.exception
import dns.flags
import dns.message
import dns.rcode
import dns.rdatatype

from .models import (
    ProbeOutcome,
    Provider,
    QueryStatus,
    RecordType,
    RunConfig,
    Transport,
)
from .transports import BaseTransport, create_transport


logger = logging.getLogger(__name__)


class DNSQueryEngine:
    """
    Resolver adapter used by the probe runner.

    Executes one DNS query per call over the configured transport
    and address family, timing it with ``time.perf_counter_ns``.
    """

    def __init__(
        self,
        record_type: RecordType = RecordType.A,
        transports: Optional[dict[Transport, BaseTransport]] = None,
        clock: Callable[[], int] = time.perf_counter_ns,
    ):
        """
        Initialize the query engine.

        Args:
            record_type: Record type requested for every lookup
            transports: Pre-built transports keyed by type (created lazily otherwise)
            clock: Monotonic nanosecond clock used for timing
        """
        self.record_type = record_type
        self._transports: dict[Transport, BaseTransport] = dict(transports or {})
        self._clock = clock

    def _get_transport(self, transport_type: Transport) -> BaseTransport:
        """Get or create a transport for the given type."""
        if transport_type not in self._transports:
            self._transports[transport_type] = create_transport(transport_type)
        return self._transports[transport_type]

    @property
    def _rdtype(self) -> dns.rdatatype.RdataType:
        return dns.rdatatype.from_text(self.record_type.value)

    def _create_query_message(self, domain: str) -> dns.message.Message:
        """Create a DNS query message."""
        return dns.message.make_query(domain, self._rdtype)

    def _parse_response_status(
        self,
        response: dns.message.Message,
    ) -> QueryStatus:
        """
        Parse the response status from a DNS response.

        A NOERROR response only counts as a success when it is
        complete and carries at least one record of the queried type.
        """
        rcode = response.rcode()

        if rcode == dns.rcode.NOERROR:
            if response.flags & dns.flags.TC:
                return QueryStatus.TRUNCATED
            if not any(rrset.rdtype == self._rdtype for rrset in response.answer):
                return QueryStatus.NODATA
            return QueryStatus.SUCCESS
        elif rcode == dns.rcode.NXDOMAIN:
            return QueryStatus.NXDOMAIN
        elif rcode == dns.rcode.SERVFAIL:
            return QueryStatus.SERVFAIL
        elif rcode == dns.rcode.REFUSED:
            return QueryStatus.REFUSED
        else:
            return QueryStatus.ERROR

    async def lookup(
        self,
        domain: str,
        provider: Provider,
        config: RunConfig,
        cancel: Optional[asyncio.Event] = None,
    ) -> ProbeOutcome:
        """
        Execute a single probe.

        The deadline covers connection setup and the exchange. A
        NOERROR answer only counts as a success when it arrived
        strictly before the timeout.

        Args:
            domain: Domain name to resolve
            provider: Provider to query
            config: Run configuration (transport, family, timeout)
            cancel: Run-wide cancellation flag, checked before sending

        Returns:
            ProbeOutcome with elapsed time and status
        """
        if cancel is not None and cancel.is_set():
            return ProbeOutcome(domain, 0, QueryStatus.CANCELLED, "Run cancelled")

        address = provider.address_for(config.use_ipv6)
        transport = self._get_transport(config.transport)
        message = self._create_query_message(domain)

        start = self._clock()
        try:
            response = await asyncio.wait_for(
                transport.exchange(message, address, config.timeout),
                timeout=config.timeout,
            )
        except (asyncio.TimeoutError, dns.exception.Timeout):
            elapsed = self._clock() - start
            logger.debug("%s via %s (%s): timed out after %ss",
                         domain, provider.name, address, config.timeout)
            return ProbeOutcome(
                domain,
                elapsed,
                QueryStatus.TIMEOUT,
                f"Query timed out after {config.timeout}s",
            )
        except (OSError, EOFError, ValueError, dns.exception.DNSException) as e:
            elapsed = self._clock() - start
            logger.debug("%s via %s (%s): %s",
                         domain, provider.name, address, e)
            return ProbeOutcome(domain, elapsed, QueryStatus.ERROR, str(e) or type(e).__name__)

        elapsed = self._clock() - start
        status = self._parse_response_status(response)

        if status != QueryStatus.SUCCESS:
            logger.debug("%s via %s (%s): %s",
                         domain, provider.name, address, status.value)
            return ProbeOutcome(domain, elapsed, status, f"Resolver answered {status.value}")

        if elapsed >= config.timeout_ns:
            logger.debug("%s via %s (%s): answer arrived at the deadline",
                         domain, provider.name, address)
            return ProbeOutcome(
                domain,
                elapsed,
                QueryStatus.TIMEOUT,
                "Answer arrived after the deadline",
            )

        return ProbeOutcome(domain, elapsed, QueryStatus.SUCCESS)
