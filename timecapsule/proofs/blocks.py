"""Bitcoin block header lookups used to confirm ledger anchors."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from timecapsule._http import http_client
from timecapsule.exceptions import LedgerError


@dataclass(frozen=True)
class BlockHeader:
    """The parts of a block header an attestation is checked against.

    ``merkle_root`` is in display (big-endian hex) order, as block explorers show it.
    """

    height: int
    block_hash: str
    merkle_root: str
    time: int


@runtime_checkable
class BlockSource(Protocol):
    async def header(self, height: int) -> BlockHeader: ...


class EsploraBlockSource:
    """Reads block headers from an Esplora API (blockstream.info, mempool.space)."""

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None, *, timeout: float = 15.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    async def header(self, height: int) -> BlockHeader:
        try:
            async with http_client(self._client, self._timeout) as client:
                response = await client.get(f"{self._base_url}/block-height/{height}", timeout=self._timeout)
                response.raise_for_status()
                block_hash = response.text.strip()
                response = await client.get(f"{self._base_url}/block/{block_hash}", timeout=self._timeout)
                response.raise_for_status()
                block = response.json()
            return BlockHeader(height=height, block_hash=block_hash, merkle_root=str(block["merkle_root"]).lower(), time=int(block["timestamp"]))
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError, ValueError, KeyError, TypeError) as e:
            raise LedgerError(f"Could not read block {height} from {self._base_url}: {e}") from e


__all__ = ["BlockHeader", "BlockSource", "EsploraBlockSource"]
