"""Tests for HTTP image fetching."""

from unittest.mock import patch

import httpx
import pytest

from timecapsule.exceptions import ImageFetchError
from timecapsule.sanitizer import HttpImageFetcher, identify_raster_image
from timecapsule.sanitizer.fetcher import InlineImage, _is_private_ip  # pyright: ignore[reportPrivateUsage]


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestIdentifyRasterImage:
    def test_png(self, png_bytes: bytes):
        assert identify_raster_image(png_bytes) == "image/png"

    def test_svg_rejected(self):
        svg = b'<svg xmlns="http://www.w3.org/2000/svg"><script>alert(1)</script></svg>'
        with pytest.raises(ImageFetchError, match="not a supported raster image"):
            identify_raster_image(svg)

    def test_html_error_page_rejected(self):
        with pytest.raises(ImageFetchError):
            identify_raster_image(b"<html>404 Not Found</html>")


class TestInlineImage:
    def test_data_uri(self):
        assert InlineImage(b"\x89PNG", "image/png").to_data_uri() == "data:image/png;base64,iVBORw=="


class TestPrivateIp:
    def test_literal_addresses(self):
        assert _is_private_ip("127.0.0.1")
        assert _is_private_ip("10.0.0.5")
        assert _is_private_ip("169.254.169.254")
        assert _is_private_ip("::1")
        assert not _is_private_ip("8.8.8.8")

    def test_unresolvable_host_is_not_private(self):
        with patch("timecapsule.sanitizer.fetcher.socket.getaddrinfo", side_effect=OSError("no dns")):
            assert not _is_private_ip("does-not-exist.invalid")


class TestHttpImageFetcher:
    """Test HttpImageFetcher against a mock transport."""

    @pytest.mark.asyncio
    async def test_fetch_png(self, png_bytes: bytes):
        async with _client(lambda request: httpx.Response(200, content=png_bytes)) as client:
            fetcher = HttpImageFetcher(client, block_private_addresses=False)
            image = await fetcher.fetch("https://example.com/a.png")
        assert image.data == png_bytes
        assert image.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_http_error_wrapped(self):
        async with _client(lambda request: httpx.Response(404)) as client:
            fetcher = HttpImageFetcher(client, block_private_addresses=False)
            with pytest.raises(ImageFetchError, match="Failed to fetch image"):
                await fetcher.fetch("https://example.com/missing.png")

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            fetcher = HttpImageFetcher(client, block_private_addresses=False)
            with pytest.raises(ImageFetchError):
                await fetcher.fetch("https://example.com/a.png")

    @pytest.mark.asyncio
    async def test_oversized_image_rejected(self, png_bytes: bytes):
        async with _client(lambda request: httpx.Response(200, content=b"\x00" * 2048)) as client:
            fetcher = HttpImageFetcher(client, max_bytes=1024, block_private_addresses=False)
            with pytest.raises(ImageFetchError, match="exceeds 1024 bytes"):
                await fetcher.fetch("https://example.com/huge.png")

    @pytest.mark.asyncio
    async def test_non_image_rejected(self):
        async with _client(lambda request: httpx.Response(200, content=b"<svg></svg>")) as client:
            fetcher = HttpImageFetcher(client, block_private_addresses=False)
            with pytest.raises(ImageFetchError):
                await fetcher.fetch("https://example.com/icon.svg")

    @pytest.mark.asyncio
    async def test_redirect_not_followed(self):
        async with _client(lambda request: httpx.Response(302, headers={"Location": "http://127.0.0.1/secret"})) as client:
            fetcher = HttpImageFetcher(client, block_private_addresses=False)
            with pytest.raises(ImageFetchError):
                await fetcher.fetch("https://example.com/redirect.png")

    @pytest.mark.asyncio
    async def test_non_http_scheme_rejected(self):
        with pytest.raises(ImageFetchError, match="Only http"):
            await HttpImageFetcher().fetch("file:///etc/passwd")

    @pytest.mark.asyncio
    async def test_private_address_rejected(self):
        with pytest.raises(ImageFetchError, match="private"):
            await HttpImageFetcher().fetch("http://127.0.0.1/a.png")
