from __future__ import annotations

import json
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer, ThreadingHTTPServer

import pytest


class _ReceiverHandler(BaseHTTPRequestHandler):
    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def do_POST(self) -> None:  # noqa: N802
        n = int(self.headers.get("Content-Length") or "0")
        raw = self.rfile.read(n) if n > 0 else b""
        self.server.received.append(  # type: ignore[attr-defined]
            {
                "path": self.path,
                "content_type": self.headers.get("Content-Type"),
                "raw": raw,
                "body": json.loads(raw.decode("utf-8")) if raw else None,
                "received_at": time.monotonic(),
            }
        )
        time.sleep(getattr(self.server, "response_delay", 0.0))
        status = getattr(self.server, "response_status", 200)
        try:
            self.send_response(status)
            self.send_header("Content-Length", "0")
            self.end_headers()
        except OSError:
            return


class Receiver:
    def __init__(self, httpd: HTTPServer):
        self.httpd = httpd
        host, port = httpd.server_address[:2]
        self.address = f"{host}:{port}"
        self.url = f"http://{host}:{port}/notify"

    @property
    def received(self) -> list[dict]:
        return self.httpd.received  # type: ignore[attr-defined]

    def servers(self) -> list[str]:
        return [item["body"]["server"] for item in self.received]


@pytest.fixture
def receiver():
    httpd = HTTPServer(("127.0.0.1", 0), _ReceiverHandler)
    httpd.received = []  # type: ignore[attr-defined]
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield Receiver(httpd)
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


@pytest.fixture
def slow_receiver():
    """Receiver that holds every response for 0.5s."""
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _ReceiverHandler)
    httpd.daemon_threads = True
    httpd.received = []  # type: ignore[attr-defined]
    httpd.response_delay = 0.5  # type: ignore[attr-defined]
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield Receiver(httpd)
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


@pytest.fixture
def listening_address():
    """Address of a TCP socket that accepts connections."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(16)
    host, port = sock.getsockname()
    try:
        yield f"{host}:{port}"
    finally:
        sock.close()


@pytest.fixture
def closed_address() -> str:
    """Address on localhost with no listener."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    host, port = sock.getsockname()
    sock.close()
    return f"{host}:{port}"
