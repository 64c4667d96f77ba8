"""Shared fixtures: in-process fake masters and data nodes."""

import os
import shutil
import tempfile
from http.server import BaseHTTPRequestHandler, HTTPServer
from threading import Lock, Thread
from typing import Any, Optional

import pytest


class FakeMaster:
    """Master that answers every GET with the address of a data node."""

    def __init__(self, upload_url: str = "", status: int = 200, body: Optional[bytes] = None):
        self.upload_url = upload_url
        self.status = status
        self.body = body
        self.requests = 0

    def handle_request(self, method, path, headers, body):
        self.requests += 1
        if method != "GET":
            return (405, {}, b"Method not allowed")
        if self.body is not None:
            return (self.status, {}, self.body)
        return (self.status, {}, self.upload_url.encode("utf-8"))


class FakeDataNode:
    """Data node keeping uploads in memory.

    Appends are checked against the bytes already received: a wrong offset is
    answered with 409 and the expected ``Offset``, a body larger than
    ``max_request_size`` with 413 and ``Max-Request-Size``. ``scripted`` maps
    the 1-based number of an append request to a (status, headers) answer
    returned instead of the normal one.
    """

    def __init__(self):
        self.sessions: dict[str, dict[str, Any]] = {}
        self.init_headers: list[dict[str, str]] = []
        self.appends: list[tuple[str, int, int]] = []
        self.scripted: dict[int, tuple[int, dict[str, str]]] = {}
        self.init_status = 201
        self.init_max_request_size: Optional[int] = None
        self.max_request_size: Optional[int] = None
        self.complete_on_size = True
        self._lock = Lock()

    def data(self, session_id: str) -> bytes:
        return bytes(self.sessions[session_id]["data"])

    def handle_request(self, method, path, headers, body):
        with self._lock:
            if method != "POST":
                return (405, {}, b"Method not allowed")
            request_type = headers.get("Request-Type")
            if request_type == "init":
                return self._handle_init(headers)
            if request_type == "APPEND":
                return self._handle_append(headers, body)
            return (400, {}, b"Unknown request type")

    def _handle_init(self, headers):
        self.init_headers.append({key.lower(): value for key, value in headers.items()})
        if self.init_status != 201:
            return (self.init_status, {}, b"Refused")

        session_id = f"s{len(self.sessions) + 1}"
        self.sessions[session_id] = {
            "size": int(headers.get("Filesize")),
            "data": bytearray(),
            "completed": False,
        }
        response_headers = {"ID": session_id}
        if self.init_max_request_size is not None:
            response_headers["Max-Request-Size"] = str(self.init_max_request_size)
        return (201, response_headers, b"")

    def _handle_append(self, headers, body):
        session_id = headers.get("ID")
        session = self.sessions.get(session_id)
        if session is None:
            return (404, {}, b"Unknown session")

        offset = int(headers.get("Offset"))
        self.appends.append((session_id, offset, len(body)))

        scripted = self.scripted.pop(len(self.appends), None)
        if scripted is not None:
            status, response_headers = scripted
            return (status, response_headers, b"")

        if self.max_request_size is not None and len(body) > self.max_request_size:
            return (413, {"Max-Request-Size": str(self.max_request_size)}, b"")

        received = len(session["data"])
        if offset != received:
            return (409, {"Offset": str(received)}, b"")

        session["data"].extend(body)
        if self.complete_on_size and len(session["data"]) >= session["size"]:
            session["completed"] = True
            return (201, {}, b"")
        return (200, {}, b"")


class FakeClusterHandler(BaseHTTPRequestHandler):
    """HTTP request handler dispatching to a fake master or data node."""

    app = None

    def do_GET(self) -> None:
        self._handle_request("GET")

    def do_POST(self) -> None:
        self._handle_request("POST")

    def _handle_request(self, method: str) -> None:
        body = b""
        content_length = int(self.headers.get("Content-Length", 0))
        if content_length > 0:
            body = self.rfile.read(content_length)

        status, response_headers, response_body = self.app.handle_request(
            method, self.path, self.headers, body
        )

        self.send_response(status)
        for key, value in response_headers.items():
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(response_body)))
        self.end_headers()
        if response_body:
            self.wfile.write(response_body)

    def log_message(self, format: str, *args: Any) -> None:
        """Suppress default logging."""
        pass


@pytest.fixture
def serve():
    """Start fake apps on ephemeral ports; returns a function giving each app's URL."""
    servers = []

    def start(app, path: str = "/") -> str:
        class CustomHandler(FakeClusterHandler):
            pass

        CustomHandler.app = app
        server = HTTPServer(("127.0.0.1", 0), CustomHandler)
        port = server.server_address[1]
        thread = Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append(server)
        return f"http://127.0.0.1:{port}{path}"

    yield start

    for server in servers:
        server.shutdown()
        server.server_close()


@pytest.fixture
def data_node(serve):
    """A fake data node and its upload address."""
    node = FakeDataNode()
    url = serve(node, "/upload")
    return node, url


@pytest.fixture
def master(serve, data_node):
    """A fake master pointing at the data_node fixture."""
    _, upload_url = data_node
    fake_master = FakeMaster(upload_url)
    url = serve(fake_master, "/master")
    return fake_master, url


@pytest.fixture
def make_master(serve):
    """Serve a FakeMaster built from the given arguments; returns (master, url)."""

    def make(*args, **kwargs):
        fake_master = FakeMaster(*args, **kwargs)
        return fake_master, serve(fake_master, "/master")

    return make


@pytest.fixture
def dead_url():
    """Address on which nothing listens."""
    return "http://127.0.0.1:1/master"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def make_file(temp_dir):
    """Write a file of the given content into temp_dir and return its path."""

    def make(name: str, content: bytes) -> str:
        file_path = os.path.join(temp_dir, name)
        with open(file_path, "wb") as f:
            f.write(content)
        return file_path

    return make
