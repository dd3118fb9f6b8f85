"""Content-addressed blob store on the local filesystem.

Layout:
    {root}/{sha256[:2]}/{sha256}    <- raw bytes
"""

import asyncio
import tempfile
from pathlib import Path

from timecapsule.exceptions import BlobNotFoundError, BlobStoreError
from timecapsule.hashing import digest_hex
from timecapsule.logging import get_pipeline_logger
from timecapsule.models import StorageReference

logger = get_pipeline_logger(__name__)


class LocalBlobStore:
    """Filesystem blob store keyed by SHA-256. Storing identical bytes twice is a no-op."""

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser().resolve()

    def _path(self, blob_id: str) -> Path:
        if len(blob_id) != 64 or any(c not in "0123456789abcdef" for c in blob_id):
            raise BlobNotFoundError(blob_id)
        return self.root / blob_id[:2] / blob_id

    async def put(self, data: bytes, filename: str) -> StorageReference:
        blob_id = digest_hex(data)
        path = self._path(blob_id)

        def _write() -> None:
            if path.exists():
                return
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=path.parent, prefix=f".{blob_id}.", suffix=".tmp", delete=False) as tmp:
                tmp.write(data)
            try:
                Path(tmp.name).replace(path)
            except OSError:
                Path(tmp.name).unlink(missing_ok=True)
                raise

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise BlobStoreError(f"Failed to store {filename}: {e}") from e
        logger.debug("Stored %s (%d bytes) as %s", filename, len(data), blob_id)
        return StorageReference(id=blob_id, url=path.as_uri())

    async def get(self, reference: StorageReference) -> bytes:
        path = self._path(reference.id)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            raise BlobNotFoundError(reference.id) from None
        except OSError as e:
            raise BlobStoreError(f"Failed to read blob {reference.id}: {e}") from e


__all__ = ["LocalBlobStore"]
