"""Icon normalization to a single 512x512 PNG.

normalize() is total: every failure path (unreachable URL, bad data URI,
missing file, undecodable image) yields the transparent placeholder.
"""

import base64
import binascii
import io
import logging
from pathlib import Path
from urllib.parse import unquote_to_bytes

from PIL import Image, ImageOps

from .config import FetchConfig
from .fetch import IMAGE_ACCEPT, FetchError, fetch_url
from .models import IconSource, IconSourceKind, ResolvedIcon

logger = logging.getLogger(__name__)

ICON_SIZE = (512, 512)


def _render_placeholder() -> bytes:
    """Encode a single fully transparent pixel as PNG."""
    buffer = io.BytesIO()
    Image.new("RGBA", (1, 1), (0, 0, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


PLACEHOLDER_PNG = _render_placeholder()
PLACEHOLDER_ICON = ResolvedIcon(png=PLACEHOLDER_PNG, width=1, height=1, is_placeholder=True)


class IconDecodeError(Exception):
    """Raised internally when icon bytes cannot be obtained or decoded."""

    pass


def decode_data_uri(uri: str) -> bytes:
    """Decode the payload of a data: URI.

    Args:
        uri: A "data:[<mediatype>][;base64],<data>" string.

    Returns:
        The decoded bytes.

    Raises:
        IconDecodeError: If the URI has no payload separator or bad base64.
    """
    if not uri.startswith("data:") or "," not in uri:
        raise IconDecodeError("Malformed data URI")

    header, payload = uri[5:].split(",", 1)
    if header.lower().endswith(";base64"):
        try:
            return base64.b64decode(payload.strip(), validate=False)
        except (binascii.Error, ValueError) as e:
            raise IconDecodeError(f"Invalid base64 payload: {e}")
    return unquote_to_bytes(payload)


def cover_fit(data: bytes, size: tuple[int, int] = ICON_SIZE) -> bytes:
    """Scale and centre-crop an image to exactly `size`, returned as PNG.

    Smaller images are enlarged; aspect ratio is preserved and the overflow
    along the longer axis is cropped.

    Raises:
        Exception: Whatever Pillow raises for unreadable input.
    """
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        rgba = img.convert("RGBA")

    fitted = ImageOps.fit(rgba, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))
    buffer = io.BytesIO()
    fitted.save(buffer, format="PNG")
    return buffer.getvalue()


class IconNormalizer:
    """Turns any IconSource into a 512x512 ResolvedIcon or the placeholder."""

    def __init__(self, config: FetchConfig) -> None:
        self._config = config

    def normalize(self, source: IconSource) -> ResolvedIcon:
        """Resolve an icon source, never raising.

        Args:
            source: Icon reference from the generation request.

        Returns:
            A 512x512 icon, or PLACEHOLDER_ICON on any failure.
        """
        if source.kind is IconSourceKind.UNSPECIFIED:
            logger.info("No icon specified, using placeholder")
            return PLACEHOLDER_ICON

        try:
            data = self._load_bytes(source)
        except IconDecodeError as e:
            logger.warning("Could not load %s icon, using placeholder: %s", source.kind.value, e)
            return PLACEHOLDER_ICON

        if len(data) > self._config.max_bytes:
            logger.warning("Icon exceeds %d bytes, using placeholder", self._config.max_bytes)
            return PLACEHOLDER_ICON

        try:
            png = cover_fit(data)
        except Exception as e:
            # Pillow raises a wide range of types for corrupt or unsupported
            # input (ICO containers, SVG, truncated files, decompression bombs)
            logger.warning("Could not decode %s icon, using placeholder: %s", source.kind.value, e)
            return PLACEHOLDER_ICON

        logger.info("Icon normalized to %dx%d PNG", *ICON_SIZE)
        return ResolvedIcon(png=png, width=ICON_SIZE[0], height=ICON_SIZE[1])

    def _load_bytes(self, source: IconSource) -> bytes:
        if source.kind is IconSourceKind.REMOTE_URL:
            logger.info("Downloading icon from %s", source.value)
            try:
                return fetch_url(source.value, self._config, accept=IMAGE_ACCEPT).content
            except FetchError as e:
                raise IconDecodeError(str(e))

        if source.kind is IconSourceKind.DATA_URI:
            return decode_data_uri(source.value)

        if source.kind is IconSourceKind.LOCAL_PATH:
            path = Path(source.value)
            limit = self._config.max_bytes
            try:
                with open(path, "rb") as f:
                    data = f.read(limit + 1)
            except (OSError, ValueError) as e:
                raise IconDecodeError(f"Cannot read {path}: {e}")
            if len(data) > limit:
                raise IconDecodeError(f"{path} exceeds {limit} bytes")
            return data

        raise IconDecodeError(f"Unsupported icon source: {source.kind}")
