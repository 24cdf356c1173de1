"""
FastAPI application for DNS Speed Test.

Exposes the provider catalog and run history over HTTP and
streams live run progress over a WebSocket.
"""

import asyncio
import logging
from typing import Optional, Sequence

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse
import uvicorn

from .. import __version__
from ..models import (
    MAX_TESTS_PER_DOMAIN,
    MAX_TIMEOUT,
    MIN_TESTS_PER_DOMAIN,
    MIN_TIMEOUT,
    ProviderResult,
    RunConfig,
    Transport,
)
from ..output import CSVOutput, JSONOutput
from ..resolvers import DEFAULT_PROVIDERS, create_custom_provider
from ..runner import TestOrchestrator


logger = logging.getLogger(__name__)


class WebSocketSink:
    """Forwards run notifications to one WebSocket client."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._pending: list[asyncio.Task] = []

    def _send(self, payload: dict) -> None:
        self._pending.append(asyncio.create_task(self.websocket.send_json(payload)))

    def on_status(self, message: str) -> None:
        self._send({"type": "status", "message": message})

    def on_start(self, total_tests: int) -> None:
        self._send({"type": "started", "total": total_tests})

    def on_progress(self) -> None:
        self._send({"type": "progress"})

    def on_complete(self, results: Sequence[ProviderResult], report: str) -> None:
        self._send({
            "type": "complete",
            "results": [JSONOutput.result_data(r) for r in results],
            "report": report,
        })

    def error(self, message: str) -> None:
        self._send({"type": "error", "message": message})

    async def drain(self) -> None:
        """Wait until every queued message has been sent."""
        pending, self._pending = self._pending, []
        for result in await asyncio.gather(*pending, return_exceptions=True):
            if isinstance(result, Exception):
                logger.debug("Dropped WebSocket message: %r", result)


def _flag(data: dict, key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise TypeError(f"{key} must be true or false, got {value!r}")
    return value


def parse_config(data: dict) -> RunConfig:
    """Build a RunConfig from a client payload, using defaults for gaps."""
    defaults = RunConfig()
    return RunConfig(
        tests_per_domain=int(data.get("tests_per_domain", defaults.tests_per_domain)),
        timeout=float(data.get("timeout", defaults.timeout)),
        transport=Transport(data.get("transport", defaults.transport.value)),
        use_ipv6=_flag(data, "use_ipv6", defaults.use_ipv6),
        parallel_tests=_flag(data, "parallel_tests", defaults.parallel_tests),
    )


def create_app(orchestrator: Optional[TestOrchestrator] = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    orchestrator = orchestrator or TestOrchestrator()

    app = FastAPI(
        title="DNS Speed Test",
        description="DNS resolver latency ranking",
        version=__version__,
    )
    app.state.orchestrator = orchestrator

    # Keeps background run tasks referenced until they finish
    background: set[asyncio.Task] = set()

    @app.get("/api/providers")
    async def get_providers():
        """Get list of available providers."""
        return {
            "providers": [
                {
                    "id": key,
                    "name": provider.name,
                    "ip": provider.ipv4,
                    "ipv6": provider.ipv6,
                    "description": provider.description,
                }
                for key, provider in orchestrator.catalog.items()
            ],
            "defaults": DEFAULT_PROVIDERS,
            "domains": list(orchestrator.domains),
        }

    @app.get("/api/config")
    async def get_config():
        """Get default configuration and accepted ranges."""
        defaults = RunConfig()
        return {
            "transports": [t.value for t in Transport],
            "defaults": {
                "tests_per_domain": defaults.tests_per_domain,
                "timeout": defaults.timeout,
                "transport": defaults.transport.value,
                "use_ipv6": defaults.use_ipv6,
                "parallel_tests": defaults.parallel_tests,
            },
            "limits": {
                "tests_per_domain": [MIN_TESTS_PER_DOMAIN, MAX_TESTS_PER_DOMAIN],
                "timeout": [MIN_TIMEOUT, MAX_TIMEOUT],
            },
        }

    @app.get("/api/status")
    async def get_status():
        """Current orchestrator state and progress."""
        return {
            "state": orchestrator.state.value,
            "progress": round(orchestrator.progress, 4),
            "completed": orchestrator.completed_tests,
            "total": orchestrator.total_tests,
        }

    @app.get("/api/history")
    async def get_history():
        """Get stored runs, oldest first."""
        return [JSONOutput.run_data(record) for record in orchestrator.history.all()]

    @app.get("/api/results/csv", response_class=PlainTextResponse)
    async def get_results_csv():
        """Get the latest run as CSV."""
        record = orchestrator.history.latest()
        if record is None:
            raise HTTPException(status_code=404, detail="No results available")
        return PlainTextResponse(CSVOutput.format(record.results), media_type="text/csv")

    async def finish_run(task: asyncio.Task, sink: WebSocketSink):
        try:
            await task
        except Exception as e:
            logger.exception("Run failed")
            sink.error(str(e))
        await sink.drain()

    async def start_test(websocket: WebSocket, data: dict) -> Optional[asyncio.Task]:
        """
        Validate a start request and launch the run in the background.

        Returns the run task, or None when the request was invalid or
        another run is already in progress.
        """
        try:
            providers = orchestrator.resolve_selection(data.get("providers", []))
            for ip in data.get("custom_providers", []):
                if ip.strip():
                    providers.append(create_custom_provider(ip.strip()))
            config = parse_config(data.get("config", {}))
        except (ValueError, TypeError) as e:
            await websocket.send_json({"type": "error", "message": str(e)})
            return None

        sink = WebSocketSink(websocket)
        run_task = orchestrator.start(providers, config, sink)
        if run_task is None:
            await sink.drain()
            return None

        task = asyncio.create_task(finish_run(run_task, sink))
        background.add(task)
        task.add_done_callback(background.discard)
        return run_task

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint for starting runs and streaming progress."""
        await websocket.accept()
        # Run started by this connection, if it won the run guard
        own_run: Optional[asyncio.Task] = None

        try:
            while True:
                data = await websocket.receive_json()
                action = data.get("action")

                if action == "start_test":
                    own_run = await start_test(websocket, data) or own_run
                elif action == "cancel":
                    if orchestrator.cancel():
                        await websocket.send_json({"type": "cancelled", "message": "Cancelling run"})
                    else:
                        await websocket.send_json({"type": "status", "message": "No run in progress"})
                elif action == "ping":
                    await websocket.send_json({"type": "pong"})
                else:
                    await websocket.send_json({
                        "type": "error",
                        "message": f"Unknown action: {action}",
                    })

        except WebSocketDisconnect:
            if own_run is not None and not own_run.done():
                orchestrator.cancel()

    return app


def run_server(host: str = "127.0.0.1", port: int = 5000):
    """Run the API server."""
    uvicorn.run(create_app(), host=host, port=port, log_level="warning")
