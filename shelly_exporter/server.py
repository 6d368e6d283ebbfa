from __future__ import annotations

import logging
import socket
import threading
from typing import Callable, Iterable, Optional, Tuple
from wsgiref.simple_server import WSGIRequestHandler, make_server

from prometheus_client import make_wsgi_app
from prometheus_client.exposition import ThreadingWSGIServer

from .errors import InvalidInputError
from .metrics import MetricsRegistry

logger = logging.getLogger(__name__)


def parse_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` (IPv6 hosts may be bracketed) into its parts."""
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdecimal():
        raise InvalidInputError(f"Invalid listen address: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


def make_metrics_app(registry: MetricsRegistry, path: str = "/metrics") -> Callable:
    """WSGI app exposing ``registry`` on ``path`` and 404 everywhere else."""
    metrics_app = make_wsgi_app(registry.registry)

    def app(environ: dict, start_response: Callable) -> Iterable[bytes]:
        if environ.get("PATH_INFO") != path:
            start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
            return [b"Not Found\n"]
        return metrics_app(environ, start_response)

    return app


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


class MetricsServer:
    """Serves a MetricsRegistry over HTTP from a background daemon thread."""

    def __init__(self, registry: MetricsRegistry, address: str = "0.0.0.0:9100", path: str = "/metrics") -> None:
        self._host, self._port = parse_address(address)
        self._path = path
        self._app = make_metrics_app(registry, path)
        self._httpd: Optional[ThreadingWSGIServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        if self._httpd is None:
            return self._port
        return self._httpd.server_address[1]

    def start(self) -> None:
        family = socket.AF_INET6 if ":" in self._host else socket.AF_INET
        server_class = type("MetricsWSGIServer", (ThreadingWSGIServer,), {"address_family": family})
        self._httpd = make_server(self._host, self._port, self._app, server_class, _QuietHandler)
        self._thread = threading.Thread(target=self._httpd.serve_forever, name="metrics-server", daemon=True)
        self._thread.start()
        logger.info("Serving metrics on %s:%d%s", self._host, self.port, self._path)

    def close(self) -> None:
        if self._httpd is None:
            return
        self._httpd.shutdown()
        self._httpd.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._httpd = None
        self._thread = None
