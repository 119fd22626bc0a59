"""Tests for icon normalization."""

import base64
import io
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests
from PIL import Image

from pwawrap.config import FetchConfig
from pwawrap.icons import (
    ICON_SIZE,
    PLACEHOLDER_ICON,
    PLACEHOLDER_PNG,
    IconDecodeError,
    IconNormalizer,
    cover_fit,
    decode_data_uri,
)
from pwawrap.models import UNSPECIFIED_ICON, IconSource, IconSourceKind, parse_icon_source


def png_bytes(size: tuple[int, int], color: tuple[int, int, int, int] = (255, 0, 0, 255)) -> bytes:
    """Encode a solid-color RGBA image as PNG."""
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def split_png(width: int = 20, height: int = 10) -> bytes:
    """Left half red, right half blue."""
    img = Image.new("RGB", (width, height), (255, 0, 0))
    img.paste((0, 0, 255), (width // 2, 0, width, height))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def data_uri(data: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def open_png(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


@pytest.fixture
def normalizer() -> IconNormalizer:
    """Normalizer whose fetches skip DNS resolution."""
    return IconNormalizer(FetchConfig(allow_private=True))


class TestParseIconSource:
    """Tests for icon reference classification."""

    @pytest.mark.parametrize("raw", [None, "", "   ", "default"])
    def test_unspecified(self, raw: str | None) -> None:
        assert parse_icon_source(raw) is UNSPECIFIED_ICON

    def test_remote_url(self) -> None:
        source = parse_icon_source("https://example.com/icon.png")
        assert source == IconSource(IconSourceKind.REMOTE_URL, "https://example.com/icon.png")

    def test_data_uri(self) -> None:
        assert parse_icon_source("data:image/png;base64,AAAA").kind is IconSourceKind.DATA_URI

    def test_local_path(self) -> None:
        assert parse_icon_source("./assets/logo.png").kind is IconSourceKind.LOCAL_PATH


class TestDecodeDataUri:
    """Tests for data URI decoding."""

    def test_base64_payload(self) -> None:
        assert decode_data_uri("data:image/png;base64,aGVsbG8=") == b"hello"

    def test_percent_encoded_payload(self) -> None:
        assert decode_data_uri("data:image/svg+xml,%3Csvg%3E") == b"<svg>"

    def test_missing_separator(self) -> None:
        with pytest.raises(IconDecodeError, match="Malformed data URI"):
            decode_data_uri("data:image/png;base64")


class TestCoverFit:
    """Tests for the scale-and-crop step."""

    def test_small_square_is_enlarged(self) -> None:
        img = open_png(cover_fit(png_bytes((10, 10))))

        assert img.format == "PNG"
        assert img.size == ICON_SIZE
        assert img.mode == "RGBA"

    def test_wide_image_is_center_cropped(self) -> None:
        """A 2:1 image keeps its middle; both halves stay visible."""
        img = open_png(cover_fit(split_png(20, 10)))

        assert img.size == (512, 512)
        left = img.getpixel((50, 256))
        right = img.getpixel((460, 256))
        assert left[0] > 200 and left[2] < 50
        assert right[2] > 200 and right[0] < 50

    def test_transparency_survives(self) -> None:
        img = open_png(cover_fit(png_bytes((64, 64), (0, 0, 0, 0))))

        assert img.getpixel((256, 256))[3] == 0

    def test_rejects_non_image(self) -> None:
        with pytest.raises(Exception):
            cover_fit(b"definitely not an image")


class TestIconNormalizer:
    """Tests for IconNormalizer.normalize."""

    def test_unspecified_returns_placeholder_without_io(self, normalizer: IconNormalizer) -> None:
        with patch("pwawrap.fetch.requests.get") as mock_get:
            icon = normalizer.normalize(UNSPECIFIED_ICON)

        mock_get.assert_not_called()
        assert icon is PLACEHOLDER_ICON
        assert icon.is_placeholder is True
        assert (icon.width, icon.height) == (1, 1)

    def test_placeholder_is_transparent_pixel(self) -> None:
        img = open_png(PLACEHOLDER_PNG)

        assert img.size == (1, 1)
        assert img.convert("RGBA").getpixel((0, 0))[3] == 0

    def test_data_uri_png_is_resized(self, normalizer: IconNormalizer) -> None:
        """A 10x10 data URI becomes a 512x512 PNG."""
        icon = normalizer.normalize(parse_icon_source(data_uri(png_bytes((10, 10)))))

        assert icon.is_placeholder is False
        assert icon.format == "PNG"
        assert (icon.width, icon.height) == (512, 512)
        assert open_png(icon.png).size == (512, 512)

    def test_local_path(self, normalizer: IconNormalizer, tmp_path: Path) -> None:
        path = tmp_path / "logo.png"
        path.write_bytes(png_bytes((300, 200)))

        icon = normalizer.normalize(parse_icon_source(str(path)))

        assert icon.is_placeholder is False
        assert open_png(icon.png).size == (512, 512)

    def test_remote_url(self, normalizer: IconNormalizer) -> None:
        response = MagicMock()
        response.status_code = 200
        response.url = "https://example.com/icon.png"
        response.headers = {"Content-Type": "image/png"}
        response.iter_content.return_value = [png_bytes((32, 32))]

        with patch("pwawrap.fetch.requests.get", return_value=response):
            icon = normalizer.normalize(parse_icon_source("https://example.com/icon.png"))

        assert icon.is_placeholder is False
        assert (icon.width, icon.height) == (512, 512)

    def test_unreachable_url_gives_placeholder(self, normalizer: IconNormalizer) -> None:
        with patch(
            "pwawrap.fetch.requests.get",
            side_effect=requests.exceptions.ConnectionError("unreachable"),
        ):
            icon = normalizer.normalize(parse_icon_source("https://example.com/icon.png"))

        assert icon is PLACEHOLDER_ICON

    def test_http_error_gives_placeholder(self, normalizer: IconNormalizer) -> None:
        response = MagicMock()
        response.status_code = 404
        response.url = "https://example.com/missing.png"
        response.headers = {}

        with patch("pwawrap.fetch.requests.get", return_value=response):
            icon = normalizer.normalize(parse_icon_source("https://example.com/missing.png"))

        assert icon is PLACEHOLDER_ICON

    def test_malformed_bytes_give_placeholder(self, normalizer: IconNormalizer) -> None:
        uri = "data:image/png;base64," + base64.b64encode(b"not a png").decode("ascii")

        assert normalizer.normalize(parse_icon_source(uri)) is PLACEHOLDER_ICON

    def test_missing_file_gives_placeholder(self, normalizer: IconNormalizer, tmp_path: Path) -> None:
        icon = normalizer.normalize(parse_icon_source(str(tmp_path / "nope.png")))

        assert icon is PLACEHOLDER_ICON

    def test_directory_path_gives_placeholder(self, normalizer: IconNormalizer, tmp_path: Path) -> None:
        assert normalizer.normalize(parse_icon_source(str(tmp_path))) is PLACEHOLDER_ICON

    def test_oversized_data_gives_placeholder(self, tmp_path: Path) -> None:
        normalizer = IconNormalizer(FetchConfig(max_bytes=16))
        path = tmp_path / "big.png"
        path.write_bytes(png_bytes((64, 64)))

        assert normalizer.normalize(parse_icon_source(str(path))) is PLACEHOLDER_ICON

    def test_local_read_stops_after_limit(self, tmp_path: Path) -> None:
        """A file one byte over the limit is refused after reading limit + 1 bytes."""
        normalizer = IconNormalizer(FetchConfig(max_bytes=64))
        path = tmp_path / "over.bin"
        path.write_bytes(b"\x00" * 65)

        with patch("pwawrap.icons.Path.read_bytes", side_effect=AssertionError("whole-file read")):
            icon = normalizer.normalize(parse_icon_source(str(path)))

        assert icon is PLACEHOLDER_ICON

    @pytest.mark.skipif(not Path("/dev/zero").exists(), reason="needs /dev/zero")
    def test_unbounded_device_gives_placeholder(self) -> None:
        """An endless local source is cut off at the size limit."""
        normalizer = IconNormalizer(FetchConfig(max_bytes=1024))

        assert normalizer.normalize(parse_icon_source("/dev/zero")) is PLACEHOLDER_ICON

    @pytest.mark.parametrize("url", ["http://a..com/x.png", "http://" + "a" * 64 + ".com/x.png"])
    def test_malformed_hostname_gives_placeholder(self, url: str) -> None:
        """Hostnames the IDNA codec rejects fall back to the placeholder."""
        normalizer = IconNormalizer(FetchConfig())

        with patch("pwawrap.fetch.requests.get") as mock_get:
            icon = normalizer.normalize(parse_icon_source(url))

        mock_get.assert_not_called()
        assert icon is PLACEHOLDER_ICON
