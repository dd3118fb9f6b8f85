"""Shared httpx client handling for network collaborators."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

USER_AGENT = "timecapsule"


@asynccontextmanager
async def http_client(client: httpx.AsyncClient | None, timeout: float) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one closed on exit."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=False, headers={"User-Agent": USER_AGENT}) as owned:
        yield owned


async def read_limited(response: httpx.Response, max_bytes: int, what: str) -> bytes:
    """Read a streamed response body, raising ValueError past ``max_bytes``."""
    chunks: list[bytes] = []
    total = 0
    async for chunk in response.aiter_bytes(chunk_size=65536):
        total += len(chunk)
        if total > max_bytes:
            raise ValueError(f"{what} exceeds {max_bytes} bytes")
        chunks.append(chunk)
    return b"".join(chunks)
