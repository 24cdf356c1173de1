"""
Entry point for running dns_speedtest as a module.

Usage: python -m dns_speedtest [OPTIONS] COMMAND [ARGS]...
"""

from .cli import main

if __name__ == "__main__":
    main()
