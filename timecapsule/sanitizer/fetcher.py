"""Image fetching for resource inlining.

The sanitizer never talks to the network itself; it is given an ImageFetcher.
HttpImageFetcher is the production implementation: streamed httpx download
with a size cap, SSRF protection, and raster identification through Pillow.
"""

import asyncio
import ipaddress
import socket
from base64 import b64encode
from dataclasses import dataclass
from io import BytesIO
from typing import Protocol, runtime_checkable
from urllib.parse import urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from timecapsule._http import http_client, read_limited
from timecapsule.exceptions import ImageFetchError
from timecapsule.logging import get_pipeline_logger

logger = get_pipeline_logger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024
_ALLOWED_SCHEMES = frozenset({"http", "https"})


@dataclass(frozen=True)
class InlineImage:
    """A fetched raster image ready to be embedded as a data URI."""

    data: bytes
    mime_type: str

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{b64encode(self.data).decode('ascii')}"


@runtime_checkable
class ImageFetcher(Protocol):
    """Fetches one image. Every failure is raised as ImageFetchError."""

    async def fetch(self, url: str) -> InlineImage: ...


def identify_raster_image(data: bytes) -> str:
    """Return the MIME type of a raster image, or raise ImageFetchError.

    Only formats Pillow can open count as raster images; SVG and other
    vector or scriptable formats are rejected.
    """
    try:
        with Image.open(BytesIO(data)) as img:
            image_format = img.format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageFetchError(f"Content is not a supported raster image: {e}") from e
    mime_type = Image.MIME.get(image_format or "")
    if not mime_type:
        raise ImageFetchError(f"No MIME type known for image format {image_format!r}")
    return mime_type


def _is_private_ip(hostname: str) -> bool:
    """Check if hostname resolves to a private/reserved IP address (SSRF protection)."""
    try:
        addr = ipaddress.ip_address(hostname)
        return addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved
    except ValueError:
        pass
    try:
        resolved = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
        return any(
            ipaddress.ip_address(addr[4][0]).is_private
            or ipaddress.ip_address(addr[4][0]).is_loopback
            or ipaddress.ip_address(addr[4][0]).is_link_local
            or ipaddress.ip_address(addr[4][0]).is_reserved
            for addr in resolved
        )
    except (socket.gaierror, ValueError, OSError):
        return False


class HttpImageFetcher:
    """Download images over HTTP(S) for inlining.

    Args:
        client: Optional shared httpx client. When omitted, a short-lived
                client is created per fetch.
        timeout: Per-request timeout in seconds.
        max_bytes: Downloads larger than this are aborted.
        block_private_addresses: Refuse hosts resolving to private, loopback,
                                 link-local or reserved addresses.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 10.0,
        max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        block_private_addresses: bool = True,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._block_private = block_private_addresses

    async def fetch(self, url: str) -> InlineImage:
        """Fetch ``url`` and return it as an InlineImage."""
        await self._validate_url(url)
        try:
            async with http_client(self._client, self._timeout) as client:
                async with client.stream("GET", url, timeout=self._timeout) as response:
                    response.raise_for_status()
                    data = await read_limited(response, self._max_bytes, f"Image {url}")
        except (httpx.HTTPError, ValueError) as e:
            raise ImageFetchError(f"Failed to fetch image {url}: {e}") from e
        logger.debug("Fetched %d bytes from %s", len(data), url)
        return InlineImage(data=data, mime_type=identify_raster_image(data))

    async def _validate_url(self, url: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in _ALLOWED_SCHEMES:
            raise ImageFetchError(f"Only http:// and https:// images can be inlined, got: {url}")
        if self._block_private and await asyncio.to_thread(_is_private_ip, parsed.hostname or ""):
            raise ImageFetchError(f"Image host resolves to a private/reserved address: {parsed.hostname}")


__all__ = ["HttpImageFetcher", "ImageFetcher", "InlineImage", "identify_raster_image"]
