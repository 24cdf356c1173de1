"""
Probe domain catalog.

Provides the fixed list of domains every provider is probed with,
and a loader for replacing it from a plain-text file.
"""

from pathlib import Path


# Well-known, highly available names so that every provider
# should be able to answer them.
DEFAULT_DOMAINS: tuple[str, ...] = (
    "www.google.com",
    "www.amazon.com",
    "www.netflix.com",
    "www.facebook.com",
    "www.microsoft.com",
    "www.apple.com",
    "www.github.com",
)


def load_domains(path: Path) -> tuple[str, ...]:
    """
    Load probe domains from a file, one per line.

    Blank lines and lines starting with ``#`` are skipped.

    Raises:
        ValueError: If the file contains no domains
    """
    with open(path, "r") as f:
        domains = tuple(
            line.strip()
            for line in f
            if line.strip() and not line.strip().startswith("#")
        )

    if not domains:
        raise ValueError(f"No domains found in {path}")
    return domains
