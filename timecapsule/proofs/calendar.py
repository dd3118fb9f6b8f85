"""HTTP client for OpenTimestamps calendar servers."""

import httpx

from timecapsule._http import http_client, read_limited
from timecapsule.exceptions import LedgerError
from timecapsule.logging import get_pipeline_logger

logger = get_pipeline_logger(__name__)

MAX_RESPONSE_BYTES = 10_000
_HEADERS = {"Accept": "application/vnd.opentimestamps.v1"}


class CalendarClient:
    """Talks to calendar servers using the OpenTimestamps calendar protocol.

    ``POST <calendar>/digest`` submits a commitment and returns a serialized
    timestamp ending in a pending attestation. ``GET <calendar>/timestamp/<hex>``
    returns the upgraded timestamp once the calendar has anchored it, or 404
    while it is still waiting.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, *, timeout: float = 10.0) -> None:
        self._client = client
        self._timeout = timeout

    async def submit(self, calendar_url: str, commitment: bytes) -> bytes:
        """Submit ``commitment`` to a calendar and return the serialized timestamp."""
        url = f"{calendar_url.rstrip('/')}/digest"
        try:
            async with http_client(self._client, self._timeout) as client:
                async with client.stream("POST", url, content=commitment, headers=_HEADERS, timeout=self._timeout) as response:
                    response.raise_for_status()
                    body = await read_limited(response, MAX_RESPONSE_BYTES, f"Calendar response from {calendar_url}")
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError, ValueError) as e:
            raise LedgerError(f"Calendar submission to {calendar_url} failed: {e}") from e
        logger.debug("Calendar %s accepted commitment %s", calendar_url, commitment.hex())
        return body

    async def get_timestamp(self, calendar_url: str, commitment: bytes) -> bytes | None:
        """Fetch the upgraded timestamp for ``commitment``; None while the calendar has none yet."""
        url = f"{calendar_url.rstrip('/')}/timestamp/{commitment.hex()}"
        try:
            async with http_client(self._client, self._timeout) as client:
                async with client.stream("GET", url, headers=_HEADERS, timeout=self._timeout) as response:
                    if response.status_code == 404:
                        return None
                    response.raise_for_status()
                    return await read_limited(response, MAX_RESPONSE_BYTES, f"Calendar response from {calendar_url}")
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError, ValueError) as e:
            raise LedgerError(f"Calendar lookup at {calendar_url} failed: {e}") from e


__all__ = ["MAX_RESPONSE_BYTES", "CalendarClient"]
