"""
Web API package for DNS Speed Test.

Provides HTTP and WebSocket endpoints for running latency tests.
"""

from .app import create_app, run_server

__all__ = ["create_app", "run_server"]
