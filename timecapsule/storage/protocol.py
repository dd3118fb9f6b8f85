"""Blob store protocol.

The blob store keeps captured bytes; a Record only holds the returned
StorageReference. Implementations: LocalBlobStore (filesystem), IpfsBlobStore
(IPFS), MemoryBlobStore (testing).
"""

from typing import Protocol, runtime_checkable

from timecapsule.models import StorageReference


@runtime_checkable
class BlobStore(Protocol):
    async def put(self, data: bytes, filename: str) -> StorageReference:
        """Store bytes and return where to find them. Raises BlobStoreError on failure."""
        ...

    async def get(self, reference: StorageReference) -> bytes:
        """Return stored bytes. Raises BlobNotFoundError or BlobStoreError."""
        ...


__all__ = ["BlobStore"]
