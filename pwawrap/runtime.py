"""Offline cache state machine of the generated service worker.

The browser drives service-worker.js through install, activate and fetch
events. OfflineCacheRuntime models the same contract as an explicit state
machine over an in-memory CacheStorage and a pluggable network, so the
caching rules can be exercised without a browser:

    INSTALLING --install()--> WAITING --activate()--> ACTIVATING --> ACTIVE
         \\--install() fails--> REDUNDANT

Invariants:
- After activate(), CacheStorage holds exactly one cache: the current one.
- Static assets are served cache-first, everything else network-first.
- Every network failure has a fallback; the cached shell page is the last
  backstop, followed by a synthesized 503 when even that is missing.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urldefrag, urljoin, urlsplit

from ._pwa import (
    CACHE_VERSION,
    ICON_FALLBACK,
    ICONS_PREFIX,
    SHELL_FALLBACK,
    STATIC_ASSETS,
    cache_name,
)

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Lifecycle states of one deployed worker version."""

    INSTALLING = "installing"
    WAITING = "waiting"
    ACTIVATING = "activating"
    ACTIVE = "active"
    REDUNDANT = "redundant"


class NetworkError(Exception):
    """Raised by a network function when a request cannot complete."""

    pass


class InvalidTransitionError(Exception):
    """Raised when a lifecycle transition is invoked from the wrong state."""

    pass


class InstallError(Exception):
    """Raised when precaching fails; the worker becomes redundant."""

    pass


@dataclass(frozen=True)
class Request:
    """An intercepted request. Cache entries are keyed by method and URL."""

    url: str
    method: str = "GET"

    @property
    def identity(self) -> tuple[str, str]:
        return self.method.upper(), urldefrag(self.url)[0]


@dataclass
class Response:
    """A response snapshot.

    Headers are mutable, so every consumer that keeps a response must hold
    its own copy (see clone()).
    """

    status: int = 200
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    status_text: str = "OK"

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def clone(self) -> "Response":
        return Response(
            status=self.status,
            body=self.body,
            headers=dict(self.headers),
            status_text=self.status_text,
        )


def offline_response() -> Response:
    """Response used when neither network nor cache can answer."""
    return Response(
        status=503,
        body=b"Offline",
        headers={"Content-Type": "text/plain"},
        status_text="Service Unavailable",
    )


Network = Callable[[Request], Response]


class Cache:
    """One named cache: request identity -> stored response."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: dict[tuple[str, str], Response] = {}

    def match(self, request: Request) -> Response | None:
        """Return a copy of the stored response, or None."""
        entry = self._entries.get(request.identity)
        return entry.clone() if entry is not None else None

    def put(self, request: Request, response: Response) -> None:
        """Store a response. The caller hands over ownership of `response`."""
        self._entries[request.identity] = response

    def __contains__(self, request: Request) -> bool:
        return request.identity in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class CacheStorage:
    """All caches of an origin, in creation order."""

    def __init__(self) -> None:
        self._caches: dict[str, Cache] = {}

    def open(self, name: str) -> Cache:
        """Return the named cache, creating it if absent."""
        cache = self._caches.get(name)
        if cache is None:
            cache = Cache(name)
            self._caches[name] = cache
        return cache

    def has(self, name: str) -> bool:
        return name in self._caches

    def delete(self, name: str) -> bool:
        return self._caches.pop(name, None) is not None

    def keys(self) -> list[str]:
        return list(self._caches)

    def match(self, request: Request) -> Response | None:
        """Search every cache in creation order."""
        for cache in self._caches.values():
            response = cache.match(request)
            if response is not None:
                return response
        return None


class Clients:
    """Open pages under the worker scope and which of them are controlled."""

    def __init__(self, open_clients: Iterable[str] = ()) -> None:
        self.open: set[str] = set(open_clients)
        self.controlled: set[str] = set()

    def claim(self) -> None:
        self.controlled = set(self.open)


class OfflineCacheRuntime:
    """State machine of one deployed worker version.

    Args:
        scope: Registration scope URL; must end with "/".
        network: Function performing a live fetch, raising NetworkError on failure.
        storage: Shared cache storage (survives across worker versions).
        clients: Pages the worker may claim on activation.
        version: Cache version literal; the cache is named "pwa-cache-<version>".
    """

    def __init__(
        self,
        scope: str,
        network: Network,
        storage: CacheStorage | None = None,
        clients: Clients | None = None,
        version: str = CACHE_VERSION,
    ) -> None:
        if not scope.endswith("/"):
            raise ValueError(f"Scope must end with '/': {scope}")

        self.scope = scope
        self.storage = storage if storage is not None else CacheStorage()
        self.clients = clients if clients is not None else Clients()
        self.version = version
        self.state = WorkerState.INSTALLING
        self.skip_waiting = False
        self._network = network

        parts = urlsplit(scope)
        self._scope_origin = (parts.scheme, parts.netloc)
        self._scope_path = parts.path

    @property
    def cache_name(self) -> str:
        return cache_name(self.version)

    def _require(self, expected: WorkerState, transition: str) -> None:
        if self.state is not expected:
            raise InvalidTransitionError(
                f"Cannot {transition} in state '{self.state.value}' (expected '{expected.value}')"
            )

    def _scoped(self, path: str) -> Request:
        return Request(urljoin(self.scope, path))

    # -------------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------------

    def install(self) -> None:
        """Precache STATIC_ASSETS and request immediate activation.

        Population is all-or-nothing: if any asset fails, nothing is stored,
        the worker becomes REDUNDANT and InstallError is raised.
        """
        self._require(WorkerState.INSTALLING, "install")
        logger.debug("Installing %s", self.cache_name)

        cache = self.storage.open(self.cache_name)
        fetched: list[tuple[Request, Response]] = []
        for asset in STATIC_ASSETS:
            request = self._scoped(asset)
            try:
                response = self._network(request)
            except NetworkError as e:
                self.state = WorkerState.REDUNDANT
                raise InstallError(f"Failed to precache {request.url}: {e}") from e
            if not response.ok:
                self.state = WorkerState.REDUNDANT
                raise InstallError(f"Failed to precache {request.url}: HTTP {response.status}")
            fetched.append((request, response))

        for request, response in fetched:
            cache.put(request, response.clone())

        self.skip_waiting = True
        self.state = WorkerState.WAITING

    def activate(self) -> None:
        """Delete every cache except the current one, then claim clients."""
        self._require(WorkerState.WAITING, "activate")
        self.state = WorkerState.ACTIVATING
        logger.debug("Activating %s", self.cache_name)

        for name in self.storage.keys():
            if name != self.cache_name:
                logger.debug("Deleting old cache: %s", name)
                self.storage.delete(name)

        self.clients.claim()
        self.state = WorkerState.ACTIVE

    def start(self) -> None:
        """Install and activate, as a host honoring skip_waiting does."""
        self.install()
        if self.skip_waiting:
            self.activate()

    # -------------------------------------------------------------------------
    # Fetch handling
    # -------------------------------------------------------------------------

    def scope_relative_path(self, url: str) -> str | None:
        """Return "./<path>" for URLs under the scope, else None."""
        parts = urlsplit(url)
        if (parts.scheme, parts.netloc) != self._scope_origin:
            return None
        if not parts.path.startswith(self._scope_path):
            return None
        return "./" + parts.path[len(self._scope_path):]

    def is_static_asset(self, url: str) -> bool:
        relative = self.scope_relative_path(url)
        return relative is not None and (relative in STATIC_ASSETS or relative.startswith(ICONS_PREFIX))

    def _is_icon_path(self, url: str) -> bool:
        relative = self.scope_relative_path(url)
        return relative is not None and relative.startswith(ICONS_PREFIX)

    def handle_fetch(self, request: Request) -> Response:
        """Answer an intercepted request.

        Raises:
            InvalidTransitionError: If the worker is not ACTIVE.
        """
        self._require(WorkerState.ACTIVE, "handle fetch")
        if self.is_static_asset(request.url):
            return self._cache_first(request)
        return self._network_first(request)

    def _cache_first(self, request: Request) -> Response:
        cached = self.storage.match(request)
        if cached is not None:
            logger.debug("Cache hit: %s", request.url)
            return cached

        try:
            response = self._network(request)
        except NetworkError as e:
            logger.debug("Network failed for static asset %s: %s", request.url, e)
            return self._static_fallback(request.url)

        # Only GET responses are cacheable
        if response.ok and request.method.upper() == "GET":
            self.storage.open(self.cache_name).put(request, response.clone())
        return response

    def _network_first(self, request: Request) -> Response:
        try:
            return self._network(request)
        except NetworkError as e:
            logger.debug("Network failed for %s, trying cache: %s", request.url, e)

        cached = self.storage.match(request)
        if cached is not None:
            return cached
        return self._shell_fallback()

    def _static_fallback(self, url: str) -> Response:
        if self._is_icon_path(url):
            icon = self.storage.match(self._scoped(ICON_FALLBACK))
            if icon is not None:
                return icon
        return self._shell_fallback()

    def _shell_fallback(self) -> Response:
        shell = self.storage.match(self._scoped(SHELL_FALLBACK))
        if shell is not None:
            return shell
        logger.warning("Shell page missing from cache, answering 503")
        return offline_response()
