"""
Built-in provider catalog.

Pre-configured profiles for popular public DNS resolvers.
The catalog is a read-only mapping; selection for a run is
made by the caller, never stored on the entries.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from .models import Provider


PROVIDERS: Mapping[str, Provider] = MappingProxyType({
    "cloudflare": Provider(
        name="Cloudflare",
        ipv4="1.1.1.1",
        ipv6="2606:4700:4700::1111",
        description="Cloudflare's privacy-focused DNS resolver",
    ),
    "cloudflare-secondary": Provider(
        name="Cloudflare Secondary",
        ipv4="1.0.0.1",
        ipv6="2606:4700:4700::1001",
        description="Cloudflare's secondary DNS resolver",
    ),
    "google": Provider(
        name="Google",
        ipv4="8.8.8.8",
        ipv6="2001:4860:4860::8888",
        description="Google Public DNS",
    ),
    "google-secondary": Provider(
        name="Google Secondary",
        ipv4="8.8.4.4",
        ipv6="2001:4860:4860::8844",
        description="Google Public DNS secondary",
    ),
    "quad9": Provider(
        name="Quad9",
        ipv4="9.9.9.9",
        ipv6="2620:fe::fe",
        description="Quad9 with malware blocking",
    ),
    "quad9-secondary": Provider(
        name="Quad9 Secondary",
        ipv4="149.112.112.112",
        ipv6="2620:fe::9",
        description="Quad9 secondary resolver",
    ),
    "opendns": Provider(
        name="OpenDNS",
        ipv4="208.67.222.222",
        ipv6="2620:119:35::35",
        description="Cisco OpenDNS",
    ),
    "opendns-secondary": Provider(
        name="OpenDNS Secondary",
        ipv4="208.67.220.220",
        ipv6="2620:119:53::53",
        description="Cisco OpenDNS secondary",
    ),
    "comodo": Provider(
        name="Comodo",
        ipv4="8.26.56.26",
        description="Comodo Secure DNS",
    ),
    "comodo-secondary": Provider(
        name="Comodo Secondary",
        ipv4="8.20.247.20",
        description="Comodo Secure DNS secondary",
    ),
    "adguard": Provider(
        name="AdGuard",
        ipv4="94.140.14.14",
        ipv6="2a10:50c0::ad1:ff",
        description="AdGuard DNS with ad blocking",
    ),
    "cleanbrowsing": Provider(
        name="CleanBrowsing",
        ipv4="185.228.168.9",
        ipv6="2a0d:2a00:1::2",
        description="CleanBrowsing security filter",
    ),
    "alternate-dns": Provider(
        name="Alternate DNS",
        ipv4="76.76.19.19",
        description="Alternate DNS with ad blocking",
    ),
})

# Default providers for quick comparison
DEFAULT_PROVIDERS = ["cloudflare", "google", "quad9"]


def get_provider(name: str, catalog: Mapping[str, Provider] = PROVIDERS) -> Provider:
    """Get a provider by catalog key (case-insensitive)."""
    key = name.lower()
    if key in catalog:
        return catalog[key]
    raise ValueError(f"Unknown provider: {name}. Available: {list(catalog.keys())}")


def create_custom_provider(
    ip: str,
    name: str = "Custom",
    ipv6: Optional[str] = None,
) -> Provider:
    """Create a provider for an address outside the catalog."""
    return Provider(
        name=name,
        ipv4=ip,
        ipv6=ipv6,
        description=f"Custom resolver at {ip}",
    )


def list_providers() -> list[str]:
    """List all available provider keys."""
    return list(PROVIDERS.keys())
