"""IPFS blob store: upload through the IPFS RPC API, read back through a gateway."""

import httpx

from timecapsule._http import http_client, read_limited
from timecapsule.exceptions import BlobNotFoundError, BlobStoreError
from timecapsule.logging import get_pipeline_logger
from timecapsule.models import StorageReference
from timecapsule.storage.retry import RetryPolicy, retry_async

logger = get_pipeline_logger(__name__)

MAX_DOWNLOAD_BYTES = 100 * 1024 * 1024
_RETRY = RetryPolicy(retry_on=(httpx.TransportError,))


class IpfsBlobStore:
    """Stores blobs on IPFS.

    Content is added with ``POST {api_url}/api/v0/add?cid-version=1`` and
    retrieved from ``{gateway_url}/ipfs/{cid}``. The CID is the storage id, so
    identical bytes map to the same reference.
    """

    def __init__(
        self,
        api_url: str,
        gateway_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
        max_download_bytes: int = MAX_DOWNLOAD_BYTES,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._gateway_url = gateway_url.rstrip("/")
        self._client = client
        self._timeout = timeout
        self._max_download_bytes = max_download_bytes

    def url_for(self, cid: str) -> str:
        return f"{self._gateway_url}/ipfs/{cid}"

    async def put(self, data: bytes, filename: str) -> StorageReference:
        try:
            cid = await self._add(data, filename)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            raise BlobStoreError(f"Failed to upload {filename} to IPFS: {e}") from e
        logger.info("Uploaded %s (%d bytes) to IPFS as %s", filename, len(data), cid)
        return StorageReference(id=cid, url=self.url_for(cid))

    async def get(self, reference: StorageReference) -> bytes:
        try:
            data = await self._cat(reference.id)
        except (httpx.HTTPError, ValueError) as e:
            raise BlobStoreError(f"Failed to fetch {reference.id} from IPFS: {e}") from e
        if data is None:
            raise BlobNotFoundError(reference.id)
        return data

    @retry_async(_RETRY)
    async def _add(self, data: bytes, filename: str) -> str:
        async with http_client(self._client, self._timeout) as client:
            response = await client.post(
                f"{self._api_url}/api/v0/add",
                params={"cid-version": "1", "pin": "true"},
                files={"file": (filename, data)},
                timeout=self._timeout,
            )
            response.raise_for_status()
            return str(response.json()["Hash"])

    @retry_async(_RETRY)
    async def _cat(self, cid: str) -> bytes | None:
        async with http_client(self._client, self._timeout) as client:
            async with client.stream("GET", self.url_for(cid), timeout=self._timeout) as response:
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return await read_limited(response, self._max_download_bytes, f"IPFS object {cid}")


__all__ = ["IpfsBlobStore"]
