"""The gate server's HTTP front end."""

from __future__ import annotations

import logging
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from imserver.gate_logic import GateLogic, GateRequest, GateResponse
from imserver.urlcodec import parse_target

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
# A connection that sends nothing for this long is closed.
DEADLINE_SECONDS = 60
NOT_FOUND_BODY = "url not found\r\n"


def handle_request(
    logic: GateLogic, method: str, target: str, body: bytes
) -> GateResponse | None:
    """Answer one request; return None for methods the gate does not serve.

    GET targets are split into path and query parameters; POST targets are
    matched whole. Raises ValueError on a malformed query escape.
    """
    method = method.upper()
    response = GateResponse()
    if method == "GET":
        path, params = parse_target(target)
        handled = logic.handle_get(path, GateRequest(body=body, params=params), response)
    elif method == "POST":
        handled = logic.handle_post(target, GateRequest(body=body), response)
    else:
        return None

    if handled:
        response.status = HTTPStatus.OK
        response.headers["Server"] = "GateServer"
    else:
        response.status = HTTPStatus.NOT_FOUND
        response.headers["Content-Type"] = "text/plain"
        response.write(NOT_FOUND_BODY)
    response.headers["Content-Length"] = str(len(response.body))
    response.headers["Connection"] = "close"
    return response


class _GateHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], logic: GateLogic) -> None:
        self.logic = logic
        super().__init__(address, _GateHandler)


class _GateHandler(BaseHTTPRequestHandler):
    server: _GateHTTPServer
    timeout = DEADLINE_SECONDS

    def _serve(self) -> None:
        self.close_connection = True
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        body = self.rfile.read(length) if length > 0 else b""
        try:
            response = handle_request(self.server.logic, self.command, self.path, body)
        except ValueError as exc:
            logger.warning("bad request %s: %s", self.path, exc)
            return
        if response is None:
            return
        if self.request_version in ("HTTP/1.0", "HTTP/1.1"):
            self.protocol_version = self.request_version
        self.send_response_only(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(response.body)

    do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = do_HEAD = do_OPTIONS = _serve

    def log_message(self, format: str, *args: Any) -> None:
        logger.info("%s - %s", self.address_string(), format % args)


class GateServer:
    """Serves a GateLogic over HTTP, one thread per connection."""

    def __init__(
        self, logic: GateLogic, host: str = "0.0.0.0", port: int = DEFAULT_PORT
    ) -> None:
        self._httpd = _GateHTTPServer((host, port), logic)
        self._serving = False
        self._lock = threading.Lock()

    @property
    def port(self) -> int:
        return int(self._httpd.server_address[1])

    def serve_forever(self) -> None:
        """Handle requests until shutdown() is called."""
        with self._lock:
            self._serving = True
        logger.info("GateServer is open, the port is %s", self.port)
        self._httpd.serve_forever()

    def shutdown(self) -> None:
        """Stop serving and release the listening socket."""
        with self._lock:
            serving = self._serving
            self._serving = False
        if serving:
            self._httpd.shutdown()
        self._httpd.server_close()