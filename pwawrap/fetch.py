"""Bounded HTTP fetching shared by the metadata resolver and icon normalizer."""

import logging
from dataclasses import dataclass
from urllib.parse import urljoin

import requests

from .config import FetchConfig
from .security import SSRFError, validate_url_for_ssrf

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192

MAX_REDIRECTS = 5
REDIRECT_STATUSES = (301, 302, 303, 307, 308)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
IMAGE_ACCEPT = "image/avif,image/webp,image/png,image/*,*/*;q=0.8"


class FetchError(Exception):
    """Raised when a URL cannot be fetched successfully."""

    pass


@dataclass(frozen=True)
class FetchedResource:
    """A successfully fetched response body.

    Attributes:
        url: Final URL after redirects.
        status_code: HTTP status code (always 2xx).
        content: Response body.
        content_type: Content-Type header value, or empty string.
    """

    url: str
    status_code: int
    content: bytes
    content_type: str = ""


def _validate(url: str, config: FetchConfig) -> None:
    """Run the SSRF check, reporting any rejection as FetchError."""
    try:
        validate_url_for_ssrf(url, allow_private=config.allow_private)
    except SSRFError as e:
        raise FetchError(f"Refusing to fetch {url}: {e}") from e
    except (UnicodeError, ValueError) as e:
        raise FetchError(f"Refusing to fetch malformed URL {url!r}: {e}") from e


def fetch_url(url: str, config: FetchConfig, accept: str = HTML_ACCEPT) -> FetchedResource:
    """GET a URL with timeout, size cap and SSRF checks.

    Redirects are followed by hand so that every hop is validated before
    it is requested.

    Args:
        url: Absolute http(s) URL.
        config: Fetch settings.
        accept: Accept header to send.

    Returns:
        The fetched resource.

    Raises:
        FetchError: On SSRF rejection, network error, non-2xx status,
            too many redirects or oversized body.
    """
    headers = {"User-Agent": config.user_agent, "Accept": accept}
    current = url

    for _ in range(MAX_REDIRECTS + 1):
        _validate(current, config)

        try:
            response = requests.get(
                current,
                headers=headers,
                timeout=config.timeout,
                allow_redirects=False,
                stream=True,
            )
        except requests.RequestException as e:
            raise FetchError(f"Request to {current} failed: {e}") from e

        try:
            location = response.headers.get("Location")
            if response.status_code in REDIRECT_STATUSES and location:
                try:
                    target = urljoin(current, location)
                except ValueError as e:
                    raise FetchError(f"Invalid redirect from {current}: {e}") from e
                logger.debug("Redirected %s -> %s", current, target)
                current = target
                continue

            if not (200 <= response.status_code < 300):
                raise FetchError(f"Request to {current} returned HTTP {response.status_code}")

            content = _read_limited(response, config.max_bytes, current)
            return FetchedResource(
                url=current,
                status_code=response.status_code,
                content=content,
                content_type=response.headers.get("Content-Type", ""),
            )
        finally:
            response.close()

    raise FetchError(f"Too many redirects fetching {url} (limit {MAX_REDIRECTS})")


def _read_limited(response: requests.Response, max_bytes: int, url: str) -> bytes:
    """Read a streamed body, refusing anything larger than max_bytes."""
    chunks: list[bytes] = []
    total = 0
    try:
        for chunk in response.iter_content(CHUNK_SIZE):
            if not chunk:
                continue
            total += len(chunk)
            if total > max_bytes:
                raise FetchError(f"Response from {url} exceeds {max_bytes} bytes")
            chunks.append(chunk)
    except requests.RequestException as e:
        raise FetchError(f"Failed reading response from {url}: {e}") from e
    return b"".join(chunks)
