"""HTTP health endpoint for hosting platforms (liveness + bot readiness)."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

from runtime.version import VERSION
from shared.logging.logger import get_logger

log = get_logger("services.health", runtime="health")


@dataclass
class HealthServerConfig:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3000


class HealthServer:
    """
    Serves GET / and GET /health from a daemon thread.

    ready_probe is called on every request from the server thread and must
    only read state.
    """

    def __init__(
        self,
        config: HealthServerConfig,
        ready_probe: Callable[[], bool],
    ) -> None:
        self._config = config
        self._ready_probe = ready_probe
        self._started_monotonic = time.monotonic()
        self._thread: Optional[threading.Thread] = None
        self._server: Optional[ThreadingHTTPServer] = None

    def start(self) -> None:
        if not self._config.enabled:
            log.info("Health check server disabled via config")
            return
        if self._thread and self._thread.is_alive():
            return

        handler = self._build_handler()
        self._server = ThreadingHTTPServer(
            (self._config.host, int(self._config.port)),
            handler,
        )
        self._server.daemon_threads = True
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="health-server",
            daemon=True,
        )
        self._thread.start()
        log.info(f"Health check server running on port {self.port}")

    def stop(self) -> None:
        if not self._server:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None
        log.info("HTTP server closed")

    @property
    def port(self) -> Optional[int]:
        """Bound port (differs from the configured one when it was 0)."""
        if not self._server:
            return None
        return self._server.server_address[1]

    def uptime(self) -> float:
        return time.monotonic() - self._started_monotonic

    def status_payload(self) -> Dict[str, Any]:
        return {
            "status": "online",
            "botStatus": "ready" if self._ready_probe() else "connecting",
            "uptime": round(self.uptime(), 3),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "version": VERSION,
        }

    def _build_handler(self):
        server = self

        class Handler(BaseHTTPRequestHandler):
            def _send_json(self, status: int, payload: Dict[str, Any]) -> None:
                body = json.dumps(payload).encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def do_GET(self) -> None:  # noqa: N802 - stdlib signature
                path = urlparse(self.path).path

                if path == "/":
                    return self._send_json(HTTPStatus.OK, server.status_payload())

                if path == "/health":
                    return self._send_json(HTTPStatus.OK, {"status": "healthy"})

                return self._send_json(HTTPStatus.NOT_FOUND, {"error": "not found"})

            def log_message(self, format: str, *args: Any) -> None:
                log.debug(f"{self.address_string()} {format % args}")

        return Handler
