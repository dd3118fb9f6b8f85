"""Capture pipeline: content in, timestamped Record out.

Renderer/Upload -> Sanitizer -> Digest -> {BlobStore, ProofEngine} -> Record.

Once a digest exists the capture always produces and persists a Record.
A failed upload leaves ``storage_reference`` empty and a failed timestamp
submission leaves the proof PENDING; both can be retried later.
"""

import uuid
from typing import Protocol, runtime_checkable

from timecapsule.exceptions import BlobStoreError, ConfigurationError
from timecapsule.hashing import digest
from timecapsule.logging import get_pipeline_logger
from timecapsule.models import ContentBlob, Record, RenderedPage, SourceDescriptor, SourceKind, StorageReference
from timecapsule.proofs.engine import ProofEngine
from timecapsule.records import RecordRepository
from timecapsule.sanitizer import Sanitizer
from timecapsule.storage.protocol import BlobStore

logger = get_pipeline_logger(__name__)


@runtime_checkable
class Renderer(Protocol):
    """Renders a URL in a browser. May return a partially loaded page."""

    async def render(self, url: str) -> RenderedPage: ...


class CapturePipeline:
    """Turns a URL or an upload into a persisted, timestamped Record."""

    def __init__(
        self,
        sanitizer: Sanitizer,
        blob_store: BlobStore,
        proofs: ProofEngine,
        *,
        renderer: Renderer | None = None,
        repository: RecordRepository | None = None,
    ) -> None:
        self._sanitizer = sanitizer
        self._blob_store = blob_store
        self._proofs = proofs
        self._renderer = renderer
        self._repository = repository

    async def capture_url(self, url: str) -> Record:
        """Render, sanitize and commit a web page snapshot."""
        if self._renderer is None:
            raise ConfigurationError("Capturing a URL requires a Renderer")
        logger.info("Starting capture for %s", url)
        page = await self._renderer.render(url)
        if page.url is None:
            page = page.model_copy(update={"url": url})
        blob = await self._sanitizer.sanitize(page)
        source = SourceDescriptor(kind=SourceKind.URL, url=url, filename=blob.filename, title=blob.title or url)
        return await self._commit(blob, source)

    async def capture_upload(self, data: bytes, filename: str) -> Record:
        """Commit an uploaded file as-is."""
        blob = await self._sanitizer.sanitize(data, filename=filename)
        source = SourceDescriptor(kind=SourceKind.FILE, filename=filename, title=filename)
        return await self._commit(blob, source)

    async def _commit(self, blob: ContentBlob, source: SourceDescriptor) -> Record:
        content_digest = digest(blob.data)

        reference: StorageReference | None = None
        try:
            reference = await self._blob_store.put(blob.data, blob.filename)
        except BlobStoreError as e:
            logger.warning("Storage upload failed for %s, recording without storage: %s", content_digest.hex(), e)

        proof = await self._proofs.create(content_digest)
        record = Record(
            id=uuid.uuid4().hex,
            digest=content_digest,
            storage_reference=reference,
            timestamp_proof=proof.proof,
            proof_status=proof.status,
            source=source,
        )
        if self._repository is not None:
            await self._repository.save(record)
        logger.info("Captured %s as record %s (proof %s)", content_digest.hex(), record.id, record.proof_status)
        return record


__all__ = ["CapturePipeline", "Renderer"]
