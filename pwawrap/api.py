"""HTTP API server for title resolution and PWA generation."""

import json
import logging
import threading
import time
from collections import defaultdict
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

from .builder import ProjectBuilder
from .config import ApiConfig
from .generator import GenerationError
from .models import GenerationRequest, RequestError
from .resolver import MetadataResolver

logger = logging.getLogger(__name__)

# Sliding window length for the per-IP rate limiter.
RATE_LIMIT_WINDOW_SECONDS = 60

# Request bodies may carry a data-URI icon; cap them like the upload limit.
MAX_REQUEST_BYTES = 10 * 1024 * 1024  # 10MB

# Per-connection socket timeout; a stalled body read fails instead of blocking.
REQUEST_TIMEOUT_SECONDS = 10


class RateLimiter:
    """Simple sliding window rate limiter by IP address.

    Allows up to max_requests requests per IP within the time window.
    Thread-safe for use in multi-threaded HTTP server.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
    ) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def is_allowed(self, client_ip: str) -> bool:
        """Check if a request from the given IP is allowed.

        Args:
            client_ip: The client's IP address.

        Returns:
            True if the request is allowed, False if rate limited.
        """
        now = time.monotonic()
        cutoff = now - self._window_seconds

        with self._lock:
            timestamps = self._requests[client_ip]
            timestamps[:] = [ts for ts in timestamps if ts > cutoff]

            if len(timestamps) >= self._max_requests:
                return False

            timestamps.append(now)
            return True


class ApiError(Exception):
    """Raised when an API operation fails."""
    pass


class GeneratorHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the generator endpoints."""

    # Class-level references set by factory
    builder: Optional[ProjectBuilder] = None
    resolver: Optional[MetadataResolver] = None
    rate_limiter: Optional[RateLimiter] = None

    timeout = REQUEST_TIMEOUT_SECONDS

    def log_message(self, format: str, *args: Any) -> None:
        """Override to use Python logging instead of stderr."""
        logger.debug("API %s - %s", self.address_string(), format % args)

    def _check_rate_limit(self) -> bool:
        """Check if the request should be rate limited.

        Returns:
            True if request is allowed, False if rate limited.
            Sends 429 response automatically if rate limited.
        """
        if self.rate_limiter is None:
            return True

        client_ip = self.client_address[0]
        if not self.rate_limiter.is_allowed(client_ip):
            logger.warning("Rate limit exceeded for %s", client_ip)
            self._send_error_json(429, "Rate limit exceeded. Try again later.")
            return False
        return True

    def _send_json(self, code: int, data: Dict[str, Any]) -> None:
        """Send a JSON response with the given status code."""
        body = json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(body)

    def _send_error_json(self, code: int, message: str) -> None:
        """Send a JSON error response."""
        self._send_json(code, {"success": False, "error": message})

    def do_GET(self) -> None:
        """Handle GET requests."""
        if not self._check_rate_limit():
            return

        try:
            parts = urlsplit(self.path)
            if parts.path == "/health":
                self._send_json(200, {"status": "ok"})
            elif parts.path == "/get-title":
                self._handle_get_title(parse_qs(parts.query))
            else:
                self._send_error_json(404, "Not found")
        except Exception as e:
            logger.exception("Error handling request: %s", e)
            self._send_error_json(500, "Internal server error")

    def do_POST(self) -> None:
        """Handle POST requests."""
        if not self._check_rate_limit():
            return

        try:
            if urlsplit(self.path).path == "/generate-pwa":
                self._handle_generate()
            else:
                self._send_error_json(404, "Not found")
        except Exception as e:
            logger.exception("Error handling POST request: %s", e)
            self._send_error_json(500, "Failed to generate PWA project")

    def _handle_get_title(self, query: Dict[str, List[str]]) -> None:
        """Handle GET /get-title?url=... - resolve title and icon candidates."""
        urls = query.get("url")
        if not urls or not urls[0]:
            self._send_error_json(400, "Missing required parameter: url")
            return

        if self.resolver is None:
            self._send_error_json(503, "Resolver not available")
            return

        metadata = self.resolver.resolve(urls[0])
        self._send_json(200, metadata.to_dict())

    def _read_json_body(self) -> Any:
        """Read and decode the request body.

        Raises:
            RequestError: If the body is missing, too large or not JSON.
        """
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            raise RequestError("Invalid Content-Length header")

        if length <= 0:
            raise RequestError("Request body is required")

        try:
            raw = self.rfile.read(length)
        except OSError as e:
            raise RequestError(f"Could not read request body: {e}")
        if len(raw) < length:
            raise RequestError("Request body shorter than Content-Length")
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RequestError(f"Invalid JSON body: {e}")

    def _handle_generate(self) -> None:
        """Handle POST /generate-pwa - build a project from {url, name, icon?}."""
        if self.builder is None:
            self._send_error_json(503, "Generator not available")
            return

        length_header = self.headers.get("Content-Length", "0")
        if length_header.isdigit() and int(length_header) > MAX_REQUEST_BYTES:
            self._send_error_json(413, "Request body too large")
            return

        try:
            request = GenerationRequest.from_payload(self._read_json_body())
        except RequestError as e:
            self._send_error_json(400, str(e))
            return

        try:
            result = self.builder.build(request)
        except GenerationError as e:
            logger.warning("Generation rejected for %s: %s", request.url, e)
            self._send_error_json(400, str(e))
            return

        logger.info("Generated project at %s", result.project_dir)
        self._send_json(200, result.to_dict())


def _create_handler_class(
    builder: ProjectBuilder,
    rate_limiter: Optional[RateLimiter] = None,
) -> type:
    """Create a handler class with the builder and limiter bound."""

    class BoundGeneratorHandler(GeneratorHandler):
        pass

    BoundGeneratorHandler.builder = builder
    BoundGeneratorHandler.resolver = builder.resolver
    BoundGeneratorHandler.rate_limiter = rate_limiter
    return BoundGeneratorHandler


class ApiServer:
    """HTTP API server running in a background thread."""

    def __init__(
        self,
        config: ApiConfig,
        builder: ProjectBuilder,
    ) -> None:
        """Initialize the API server.

        Args:
            config: API configuration.
            builder: Pipeline used for /get-title and /generate-pwa.
        """
        self.config = config
        self.builder = builder
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._shutdown_event = threading.Event()
        self._rate_limiter = RateLimiter(max_requests=config.rate_limit)

    def start(self) -> None:
        """Start the API server in a background thread.

        Raises:
            ApiError: If the server fails to start.
        """
        if self._thread is not None and self._thread.is_alive():
            logger.warning("API server is already running")
            return

        try:
            handler_class = _create_handler_class(self.builder, self._rate_limiter)
            self._server = HTTPServer(("", self.config.port), handler_class)
            self._server.timeout = 1.0  # Allow periodic shutdown checks

            self._shutdown_event.clear()
            self._thread = threading.Thread(
                target=self._serve_forever,
                name="api-server",
                daemon=True,
            )
            self._thread.start()

            logger.info("API server started on port %d", self.config.port)

        except OSError as e:
            if e.errno == 98 or e.errno == 48:  # EADDRINUSE (Linux=98, macOS=48)
                raise ApiError(
                    f"Port {self.config.port} is already in use. "
                    f"Another process may be using this port, or pwawrap is already running."
                )
            elif e.errno == 13:  # EACCES - Permission denied
                raise ApiError(
                    f"Permission denied for port {self.config.port}. "
                    f"Ports below 1024 require root privileges. "
                    f"Use a port >= 1024 or run with elevated permissions."
                )
            else:
                raise ApiError(f"Failed to start API server on port {self.config.port}: {e}")

    def _serve_forever(self) -> None:
        """Server loop that checks for shutdown."""
        while not self._shutdown_event.is_set():
            if self._server:
                self._server.handle_request()

    def stop(self) -> None:
        """Stop the API server gracefully."""
        if self._thread is None:
            return

        logger.info("Stopping API server...")
        self._shutdown_event.set()

        if self._server:
            self._server.server_close()

        if self._thread.is_alive():
            self._thread.join(timeout=5.0)

        self._server = None
        self._thread = None
        logger.info("API server stopped")

    @property
    def is_running(self) -> bool:
        """Check if the server is running."""
        return self._thread is not None and self._thread.is_alive()
