import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, List, Tuple

import pytest
import requests


class WordCounter:
    """Stub tokenizer: one token per whitespace-separated word."""

    name = "words"

    def count(self, text: str) -> int:
        return len(text.split())


class CharCounter:
    """Stub tokenizer: one token per character."""

    name = "chars"

    def count(self, text: str) -> int:
        return len(text)


def completion_chunk(content, finish_reason=None) -> bytes:
    delta = {} if content is None else {"content": content}
    return json.dumps({"choices": [{"delta": delta, "finish_reason": finish_reason}]}).encode("utf-8")


class _StubHandler(BaseHTTPRequestHandler):
    # Chunked bodies so every write reaches the client as its own read.
    protocol_version = "HTTP/1.1"

    def do_POST(self):
        length = int(self.headers.get("Content-Length") or 0)
        raw = self.rfile.read(length) if length else b""
        body = json.loads(raw) if raw else None
        self.server.received.append((self.path, dict(self.headers), body))

        route = self.server.routes.get(self.path)
        status, pieces = route if route is not None else (404, [b'{"error": "not found"}'])
        self.close_connection = True
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Transfer-Encoding", "chunked")
        self.send_header("Connection", "close")
        self.end_headers()
        for piece in pieces:
            if isinstance(piece, threading.Event):
                # Hold the rest of the body until the test has seen what came before.
                if not piece.wait(timeout=5):
                    self.server.stalled = True
                continue
            if not piece:
                continue
            self.wfile.write(b"%x\r\n%s\r\n" % (len(piece), piece))
            self.wfile.flush()
        self.wfile.write(b"0\r\n\r\n")
        self.wfile.flush()

    def log_message(self, *args):
        pass


class StubServer:
    def __init__(self):
        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), _StubHandler)
        self.httpd.routes: Dict[str, Tuple[int, List[bytes]]] = {}
        self.httpd.received: List[tuple] = []
        self.httpd.stalled = False
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.httpd.server_address[1]}"

    @property
    def routes(self):
        return self.httpd.routes

    @property
    def received(self):
        return self.httpd.received

    @property
    def stalled(self) -> bool:
        return self.httpd.stalled

    def start(self):
        self.thread.start()

    def stop(self):
        self.httpd.shutdown()
        self.httpd.server_close()


@pytest.fixture()
def stub_server():
    server = StubServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture()
def no_proxy_env(monkeypatch):
    for var in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("NO_PROXY", "*")
    monkeypatch.setenv("no_proxy", "*")


@pytest.fixture()
def direct_session():
    session = requests.Session()
    session.trust_env = False
    yield session
    session.close()
