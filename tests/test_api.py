"""Tests for the API module."""

import http.client
import json
import socket
import time
import urllib.error
import urllib.request
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from pwawrap.api import (
    MAX_REQUEST_BYTES,
    REQUEST_TIMEOUT_SECONDS,
    ApiError,
    ApiServer,
    GeneratorHandler,
    RateLimiter,
)
from pwawrap.builder import ProjectBuilder
from pwawrap.config import ApiConfig, Config, OutputConfig
from pwawrap.icons import PLACEHOLDER_PNG
from pwawrap.models import CandidateSource, IconCandidate, PageMetadata


def get_free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        return s.getsockname()[1]


@pytest.fixture
def resolver() -> MagicMock:
    """Resolver stub so no test touches the network."""
    mock = MagicMock()
    mock.resolve.return_value = PageMetadata(
        url="https://example.com/",
        title="Example Domain",
        icon_candidates=(
            IconCandidate(url="https://example.com/apple.png", source=CandidateSource.LINK_TAG, tier=4),
            IconCandidate(url="https://example.com/favicon.ico", source=CandidateSource.FALLBACK, tier=6),
        ),
    )
    return mock


@pytest.fixture
def builder(tmp_path: Path, resolver: MagicMock) -> ProjectBuilder:
    config = Config(output=OutputConfig(root=str(tmp_path)))
    return ProjectBuilder(config, resolver=resolver)


class TestRateLimiter:
    """Tests for RateLimiter class."""

    def test_allows_up_to_limit(self) -> None:
        limiter = RateLimiter(max_requests=2)

        assert limiter.is_allowed("10.0.0.1") is True
        assert limiter.is_allowed("10.0.0.1") is True
        assert limiter.is_allowed("10.0.0.1") is False

    def test_limits_per_ip(self) -> None:
        limiter = RateLimiter(max_requests=1)

        assert limiter.is_allowed("10.0.0.1") is True
        assert limiter.is_allowed("10.0.0.2") is True

    def test_window_expires(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=0)

        assert limiter.is_allowed("10.0.0.1") is True
        time.sleep(0.01)
        assert limiter.is_allowed("10.0.0.1") is True


class TestApiServer:
    """Tests for ApiServer class."""

    def test_starts_and_stops(self, builder: ProjectBuilder) -> None:
        """Server starts and stops without errors."""
        server = ApiServer(ApiConfig(port=get_free_port()), builder)

        assert not server.is_running
        server.start()
        assert server.is_running

        server.stop()
        assert not server.is_running

    def test_start_twice_is_safe(self, builder: ProjectBuilder) -> None:
        server = ApiServer(ApiConfig(port=get_free_port()), builder)

        try:
            server.start()
            server.start()
            assert server.is_running
        finally:
            server.stop()

    def test_stop_without_start_is_safe(self, builder: ProjectBuilder) -> None:
        ApiServer(ApiConfig(port=get_free_port()), builder).stop()

    def test_raises_on_port_conflict(self, builder: ProjectBuilder) -> None:
        """Raises ApiError when port is already in use."""
        config = ApiConfig(port=get_free_port())
        server1 = ApiServer(config, builder)
        server2 = ApiServer(config, builder)

        try:
            server1.start()
            with pytest.raises(ApiError, match="already in use"):
                server2.start()
        finally:
            server1.stop()
            server2.stop()


class TestApiEndpoints:
    """Integration tests for /get-title and /generate-pwa."""

    @pytest.fixture
    def running_server(self, builder: ProjectBuilder) -> ApiServer:
        """Start a server and yield it, stopping after test."""
        server = ApiServer(ApiConfig(port=get_free_port()), builder)
        server.start()
        # Give server time to start
        time.sleep(0.1)
        yield server
        server.stop()

    def _url(self, server: ApiServer, path: str) -> str:
        return f"http://localhost:{server.config.port}{path}"

    def _get(self, server: ApiServer, path: str) -> tuple:
        """Make a GET request and return (status_code, json_body)."""
        try:
            with urllib.request.urlopen(self._url(server, path), timeout=5) as response:
                return response.status, json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            return e.code, json.loads(e.read().decode("utf-8"))

    def _post(self, server: ApiServer, path: str, body: bytes) -> tuple:
        """POST a raw body and return (status_code, json_body)."""
        request = urllib.request.Request(
            self._url(server, path),
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=10) as response:
                return response.status, json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            return e.code, json.loads(e.read().decode("utf-8"))

    def _post_json(self, server: ApiServer, path: str, payload: object) -> tuple:
        return self._post(server, path, json.dumps(payload).encode("utf-8"))

    def test_health_endpoint(self, running_server: ApiServer) -> None:
        status, body = self._get(running_server, "/health")

        assert status == 200
        assert body == {"status": "ok"}

    def test_get_title(self, running_server: ApiServer, resolver: MagicMock) -> None:
        status, body = self._get(running_server, "/get-title?url=https%3A%2F%2Fexample.com")

        assert status == 200
        assert body == {
            "title": "Example Domain",
            "icons": ["https://example.com/apple.png", "https://example.com/favicon.ico"],
            "icon": "https://example.com/apple.png",
        }
        resolver.resolve.assert_called_once_with("https://example.com")

    def test_get_title_requires_url(self, running_server: ApiServer) -> None:
        status, body = self._get(running_server, "/get-title")

        assert status == 400
        assert body == {"success": False, "error": "Missing required parameter: url"}

    def test_generate(self, running_server: ApiServer, tmp_path: Path) -> None:
        status, body = self._post_json(
            running_server,
            "/generate-pwa",
            {"url": "https://example.com", "name": "My App", "icon": "default"},
        )

        project_dir = tmp_path / "my-app"
        assert status == 200
        assert body["success"] is True
        assert body["message"] == "PWA project generated successfully"
        assert body["projectDir"] == str(project_dir)
        assert body["files"][0] == str(project_dir / "index.html")
        assert (project_dir / "icons" / "icon-512x512.png").read_bytes() == PLACEHOLDER_PNG

    def test_generate_without_icon_uses_placeholder(
        self, running_server: ApiServer, resolver: MagicMock, tmp_path: Path
    ) -> None:
        status, _ = self._post_json(running_server, "/generate-pwa", {"url": "https://example.com", "name": "Plain"})

        assert status == 200
        resolver.resolve.assert_not_called()
        assert (tmp_path / "plain" / "icons" / "icon-512x512.png").read_bytes() == PLACEHOLDER_PNG

    @pytest.mark.parametrize(
        "payload",
        [{"url": "https://example.com"}, {"name": "App"}, {"url": "", "name": "App"}],
    )
    def test_generate_missing_parameters(self, running_server: ApiServer, payload: dict) -> None:
        status, body = self._post_json(running_server, "/generate-pwa", payload)

        assert status == 400
        assert body == {"success": False, "error": "Missing required parameters: url and name"}

    def test_generate_non_object_body(self, running_server: ApiServer) -> None:
        status, body = self._post_json(running_server, "/generate-pwa", ["https://example.com"])

        assert status == 400
        assert body["error"] == "Request body must be a JSON object"

    def test_generate_invalid_json(self, running_server: ApiServer) -> None:
        status, body = self._post(running_server, "/generate-pwa", b"{not json")

        assert status == 400
        assert body["error"].startswith("Invalid JSON body")

    def test_generate_rejects_bad_url(self, running_server: ApiServer) -> None:
        status, body = self._post_json(running_server, "/generate-pwa", {"url": "ftp://example.com", "name": "App"})

        assert status == 400
        assert body["success"] is False
        assert "http:// or https://" in body["error"]

    def test_generate_rejects_oversized_body(self, running_server: ApiServer) -> None:
        conn = http.client.HTTPConnection("localhost", running_server.config.port, timeout=5)
        try:
            conn.putrequest("POST", "/generate-pwa")
            conn.putheader("Content-Type", "application/json")
            conn.putheader("Content-Length", str(MAX_REQUEST_BYTES + 1))
            conn.endheaders()
            response = conn.getresponse()
            body = json.loads(response.read().decode("utf-8"))
        finally:
            conn.close()

        assert response.status == 413
        assert body["success"] is False

    def test_handler_has_socket_timeout(self) -> None:
        assert GeneratorHandler.timeout == REQUEST_TIMEOUT_SECONDS

    def test_generate_stalled_body_times_out(
        self, running_server: ApiServer, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A body that stops short of Content-Length gets a 400 once the socket times out."""
        monkeypatch.setattr(GeneratorHandler, "timeout", 0.5)

        conn = http.client.HTTPConnection("localhost", running_server.config.port, timeout=5)
        try:
            conn.putrequest("POST", "/generate-pwa")
            conn.putheader("Content-Type", "application/json")
            conn.putheader("Content-Length", "100")
            conn.endheaders()
            conn.send(b'{"url": "ht')
            start = time.monotonic()
            response = conn.getresponse()
            body = json.loads(response.read().decode("utf-8"))
            elapsed = time.monotonic() - start
        finally:
            conn.close()

        assert response.status == 400
        assert body["success"] is False
        assert elapsed < 4

    def test_unknown_paths(self, running_server: ApiServer) -> None:
        get_status, get_body = self._get(running_server, "/nope")
        post_status, _ = self._post_json(running_server, "/nope", {})

        assert get_status == 404
        assert get_body == {"success": False, "error": "Not found"}
        assert post_status == 404


class TestRateLimitedEndpoints:
    """Tests for per-IP rate limiting."""

    def test_returns_429_after_limit(self, builder: ProjectBuilder) -> None:
        server = ApiServer(ApiConfig(port=get_free_port(), rate_limit=2), builder)
        server.start()
        time.sleep(0.1)
        url = f"http://localhost:{server.config.port}/health"
        try:
            for _ in range(2):
                with urllib.request.urlopen(url, timeout=5) as response:
                    assert response.status == 200

            with pytest.raises(urllib.error.HTTPError) as exc_info:
                urllib.request.urlopen(url, timeout=5)
            assert exc_info.value.code == 429
        finally:
            server.stop()
