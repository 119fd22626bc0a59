"""Data models for page metadata, icons and generated bundles."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IconSourceKind(Enum):
    """Where an icon comes from."""

    REMOTE_URL = "remote_url"
    DATA_URI = "data_uri"
    LOCAL_PATH = "local_path"
    UNSPECIFIED = "unspecified"


@dataclass(frozen=True)
class IconSource:
    """A tagged icon reference as received from a generation request.

    Attributes:
        kind: Which variant this source is.
        value: The URL, data URI or filesystem path. Empty for UNSPECIFIED.
    """

    kind: IconSourceKind
    value: str = ""


UNSPECIFIED_ICON = IconSource(IconSourceKind.UNSPECIFIED)

# Request value that explicitly asks for the placeholder icon.
DEFAULT_ICON_KEYWORD = "default"


def parse_icon_source(raw: str | None) -> IconSource:
    """Classify a raw icon string into an IconSource variant.

    Args:
        raw: Absent, "default", a remote URL, a data URI or a local path.

    Returns:
        The matching IconSource.
    """
    if raw is None:
        return UNSPECIFIED_ICON

    value = raw.strip()
    if not value or value == DEFAULT_ICON_KEYWORD:
        return UNSPECIFIED_ICON
    if value.startswith(("http://", "https://")):
        return IconSource(IconSourceKind.REMOTE_URL, value)
    if value.startswith("data:"):
        return IconSource(IconSourceKind.DATA_URI, value)
    return IconSource(IconSourceKind.LOCAL_PATH, value)


@dataclass(frozen=True)
class ResolvedIcon:
    """A normalized raster icon, always PNG encoded.

    Attributes:
        png: Encoded PNG bytes.
        width: Pixel width (512, or 1 for the placeholder).
        height: Pixel height (512, or 1 for the placeholder).
        is_placeholder: True when normalization fell back to the transparent pixel.
    """

    png: bytes
    width: int
    height: int
    is_placeholder: bool = False

    @property
    def format(self) -> str:
        return "PNG"


@dataclass(frozen=True)
class ProjectSpec:
    """Everything the generator needs to produce one bundle."""

    target_url: str
    display_name: str
    icon_source: IconSource = UNSPECIFIED_ICON


class CandidateSource(Enum):
    """Markup element an icon candidate was extracted from."""

    IMG_TAG = "img"
    LINK_TAG = "link"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class CandidateHints:
    """Attributes that influenced ranking, kept for diagnostics."""

    class_name: str = ""
    alt: str = ""
    rel: str = ""


@dataclass(frozen=True)
class IconCandidate:
    """An absolute icon reference found in a page.

    Attributes:
        url: Absolute URL (or data URI) of the icon.
        source: Element kind the reference came from.
        hints: class/alt/rel attributes of the element.
        tier: Ranking rule that produced the candidate (1 is best).
    """

    url: str
    source: CandidateSource
    hints: CandidateHints = field(default_factory=CandidateHints)
    tier: int = 0


@dataclass(frozen=True)
class PageMetadata:
    """Title and ranked icon candidates for a page."""

    url: str
    title: str
    icon_candidates: tuple[IconCandidate, ...] = ()

    @property
    def selected_icon(self) -> IconCandidate | None:
        """The highest-ranked candidate, or None if nothing was found."""
        return self.icon_candidates[0] if self.icon_candidates else None

    def to_dict(self) -> dict[str, Any]:
        selected = self.selected_icon
        return {
            "title": self.title,
            "icons": [c.url for c in self.icon_candidates],
            "icon": selected.url if selected is not None else None,
        }


class RequestError(Exception):
    """Raised when a generation request payload is malformed."""

    pass


@dataclass(frozen=True)
class GenerationRequest:
    """A generation request as received from the CLI or HTTP API."""

    url: str
    name: str
    icon: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "GenerationRequest":
        """Build a request from a decoded JSON body.

        Raises:
            RequestError: If the payload is not an object or lacks url/name.
        """
        if not isinstance(payload, dict):
            raise RequestError("Request body must be a JSON object")

        url = payload.get("url")
        name = payload.get("name")
        if not url or not name or not isinstance(url, str) or not isinstance(name, str):
            raise RequestError("Missing required parameters: url and name")

        icon = payload.get("icon")
        if icon is not None and not isinstance(icon, str):
            raise RequestError("Parameter 'icon' must be a string")

        return cls(url=url, name=name, icon=icon)


@dataclass(frozen=True)
class GeneratedBundle:
    """The four files of a generated project, kept in memory."""

    slug: str
    shell_markup: str
    manifest_document: str
    worker_script: str
    icon_png: bytes

    def files(self) -> dict[str, bytes]:
        """Map bundle-relative paths to file contents."""
        return {
            "index.html": self.shell_markup.encode("utf-8"),
            "manifest.json": self.manifest_document.encode("utf-8"),
            "service-worker.js": self.worker_script.encode("utf-8"),
            "icons/icon-512x512.png": self.icon_png,
        }


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of a generation request."""

    success: bool
    project_dir: str | None = None
    files: tuple[str, ...] = ()
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "message": "PWA project generated successfully",
            "projectDir": self.project_dir,
            "files": list(self.files),
        }
