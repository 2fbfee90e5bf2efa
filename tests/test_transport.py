import socket
import threading
import time
import urllib.request
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from deepseek_client.request_builder import AuthedRequest
from deepseek_client.transport import (
    SendError,
    TimeoutConfigError,
    handle_timeout,
    parse_duration,
    resolve_timeout,
    send_request,
)


class _Handler(BaseHTTPRequestHandler):
    def _respond(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        self.server.received.append((self.command, self.path, dict(self.headers), body))
        time.sleep(self.server.delay)
        try:
            self.send_response(self.server.status)
            self.send_header("Content-Length", "2")
            self.end_headers()
            self.wfile.write(b"ok")
        except OSError:
            pass

    do_GET = _respond
    do_POST = _respond

    def log_message(self, *args):
        pass


@pytest.fixture
def server():
    srv = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    srv.daemon_threads = True
    srv.delay = 0.0
    srv.status = 200
    srv.received = []
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield srv
    srv.shutdown()
    srv.server_close()


@pytest.fixture
def opener():
    return urllib.request.build_opener(urllib.request.ProxyHandler({}))


def _url(srv):
    host, port = srv.server_address
    return f"http://{host}:{port}"


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DEEPSEEK_TIMEOUT", raising=False)
    return monkeypatch


def test_successful_request(server, opener):
    request = urllib.request.Request(_url(server), method="GET")
    response = send_request(request, opener)
    try:
        assert response.status == 200
        assert response.read() == b"ok"
    finally:
        response.close()


def test_error_status_is_returned_not_raised(server, opener):
    server.status = 404
    request = urllib.request.Request(_url(server), method="GET")
    response = send_request(request, opener)
    try:
        assert response.status == 404
    finally:
        response.close()


def test_built_request_reaches_server(server, opener):
    request = (
        AuthedRequest("token")
        .set_base_url(_url(server))
        .set_path("/chat/completions")
        .set_body_from_struct({"model": "deepseek-chat"})
        .build()
    )
    response = send_request(request, opener)
    response.close()
    method, path, headers, body = server.received[0]
    assert method == "POST"
    assert path == "/chat/completions"
    assert headers["Authorization"] == "Bearer token"
    assert body == b'{"model":"deepseek-chat"}'


def test_connection_failure_raises_send_error(opener):
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    request = urllib.request.Request(f"http://127.0.0.1:{port}/", method="GET")
    with pytest.raises(SendError, match="error sending request:"):
        send_request(request, opener)


def test_slow_server_without_timeout_succeeds(server, opener):
    server.delay = 0.25
    start = time.monotonic()
    response = send_request(urllib.request.Request(_url(server)), opener)
    elapsed = time.monotonic() - start
    response.close()
    assert response.status == 200
    assert 0.2 <= elapsed < 5


def test_timeout_raises_send_error(server, opener):
    server.delay = 0.5
    with pytest.raises(SendError, match="error sending request"):
        send_request(urllib.request.Request(_url(server)), opener, timeout=0.05)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("30s", 30.0),
        ("5m", 300.0),
        ("1h30m", 5400.0),
        ("1.5h", 5400.0),
        ("100ms", 0.1),
        ("-2s", -2.0),
        ("0", 0.0),
        ("+1m", 60.0),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == pytest.approx(expected)


@pytest.mark.parametrize("text", ["invalid", "", "5", "3x", ".s", "-"])
def test_parse_duration_rejects_bad_input(text):
    with pytest.raises(TimeoutConfigError):
        parse_duration(text)


def test_default_timeout_without_env(clean_env):
    assert handle_timeout() == 300.0


def test_timeout_from_env(clean_env):
    clean_env.setenv("DEEPSEEK_TIMEOUT", "30s")
    assert handle_timeout() == 30.0


def test_invalid_timeout_env_raises(clean_env):
    clean_env.setenv("DEEPSEEK_TIMEOUT", "invalid")
    with pytest.raises(TimeoutConfigError, match="invalid timeout duration"):
        handle_timeout()


def test_timeout_from_dotenv_file(clean_env, tmp_path):
    (tmp_path / ".env").write_text("DEEPSEEK_TIMEOUT=45s\n")
    clean_env.setenv("DEEPSEEK_TIMEOUT", "unset-marker")
    clean_env.delenv("DEEPSEEK_TIMEOUT")
    assert handle_timeout() == 45.0


def test_resolve_explicit_timeout(clean_env):
    assert resolve_timeout(10) == 10


@pytest.mark.parametrize("value", [None, 0, -1])
def test_resolve_falls_back_to_environment(clean_env, value):
    assert resolve_timeout(value) == 300.0


def test_resolve_zero_env_means_no_timeout(clean_env):
    clean_env.setenv("DEEPSEEK_TIMEOUT", "0s")
    assert resolve_timeout(None) is None


def test_resolve_reports_bad_env(clean_env):
    clean_env.setenv("DEEPSEEK_TIMEOUT", "soon")
    with pytest.raises(TimeoutConfigError, match="error getting timeout from environment"):
        resolve_timeout(0)