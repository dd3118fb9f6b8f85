"""Blob storage for captured content.

@public
"""

from pathlib import Path

from timecapsule.settings import Settings
from timecapsule.storage.ipfs import IpfsBlobStore
from timecapsule.storage.local import LocalBlobStore
from timecapsule.storage.protocol import BlobStore
from timecapsule.storage.retry import RetryPolicy, retry_async


def create_blob_store(settings: Settings) -> BlobStore:
    """IPFS store when ``ipfs_api_url`` is configured, local filesystem store otherwise."""
    if settings.ipfs_api_url:
        return IpfsBlobStore(settings.ipfs_api_url, settings.ipfs_gateway_url, timeout=settings.storage_timeout)
    return LocalBlobStore(Path(settings.blob_store_path))


__all__ = ["BlobStore", "IpfsBlobStore", "LocalBlobStore", "RetryPolicy", "create_blob_store", "retry_async"]
