"""
DNS transport implementations.

Provides transport classes for plain DNS:
- UDP (standard DNS)
- TCP (DNS over TCP)

Each transport performs a single request/response exchange and
leaves deadline enforcement and timing to the caller.
"""

from abc import ABC, abstractmethod

import dns.asyncquery
import dns.message

from .models import Transport


DNS_PORT = 53


class BaseTransport(ABC):
    """Base class for DNS transports."""

    transport_type: Transport

    @abstractmethod
    async def exchange(
        self,
        message: dns.message.Message,
        address: str,
        timeout: float,
    ) -> dns.message.Message:
        """
        Send a DNS query and return the parsed response.

        Args:
            message: Query to send
            address: IPv4 or IPv6 address of the resolver
            timeout: Deadline in seconds for the whole exchange
        """
        pass


class UDPTransport(BaseTransport):
    """Standard DNS over UDP."""

    transport_type = Transport.UDP

    async def exchange(
        self,
        message: dns.message.Message,
        address: str,
        timeout: float,
    ) -> dns.message.Message:
        """Send DNS query over UDP."""
        return await dns.asyncquery.udp(
            message,
            address,
            timeout=timeout,
            port=DNS_PORT,
        )


class TCPTransport(BaseTransport):
    """DNS over TCP, one connection per query."""

    transport_type = Transport.TCP

    async def exchange(
        self,
        message: dns.message.Message,
        address: str,
        timeout: float,
    ) -> dns.message.Message:
        """Send DNS query over TCP, connection setup included."""
        return await dns.asyncquery.tcp(
            message,
            address,
            timeout=timeout,
            port=DNS_PORT,
        )


def create_transport(transport_type: Transport) -> BaseTransport:
    """
    Create a transport instance for the given type.

    Args:
        transport_type: Type of transport to create

    Returns:
        Appropriate transport instance
    """
    if transport_type == Transport.UDP:
        return UDPTransport()
    elif transport_type == Transport.TCP:
        return TCPTransport()
    else:
        raise ValueError(f"Unknown transport type: {transport_type}")
