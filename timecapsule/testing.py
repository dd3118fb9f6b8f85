"""Test doubles for applications built on timecapsule.

In-memory implementations of every collaborator protocol, so the capture
and verification pipelines can be exercised without network access.
Not for production use; all state is lost when the process exits.
"""

import struct
from collections.abc import Mapping

from timecapsule.exceptions import BlobNotFoundError, BlobStoreError, ImageFetchError, LedgerError, ProofFormatError, RecordNotFoundError
from timecapsule.hashing import DIGEST_SIZE, Digest, digest
from timecapsule.models import LedgerAnchor, ProofStatus, Record, RenderedPage, StorageReference
from timecapsule.sanitizer.fetcher import InlineImage

# magic | digest | flag [| position | timestamp]
_MAGIC = b"TCMEM\x01"
_PENDING = b"\x00"
_CONFIRMED = b"\x01"
_ANCHOR = struct.Struct(">QQ")


class InMemoryLedger:
    """TimestampLedger that confirms digests only when a test says so.

    ``submit`` returns a pending proof. After ``confirm(digest, ...)`` the
    next ``upgrade`` of a proof for that digest returns a confirmed proof.
    Set ``fail_submissions`` to make submissions fail and ``unavailable``
    to make every ledger query fail.
    """

    def __init__(self) -> None:
        self.submitted: list[Digest] = []
        self.upgrade_calls = 0
        self.fail_submissions = False
        self.unavailable = False
        self._confirmations: dict[Digest, tuple[int, int]] = {}

    def confirm(self, content_digest: Digest, position: int, timestamp: int) -> None:
        self._confirmations[Digest.coerce(content_digest)] = (position, timestamp)

    async def submit(self, digest: Digest) -> bytes:
        if self.fail_submissions or self.unavailable:
            raise LedgerError("In-memory ledger rejected the submission")
        self.submitted.append(digest)
        return _MAGIC + bytes(digest) + _PENDING

    async def upgrade(self, proof: bytes) -> bytes | None:
        committed, anchor = self._decode(proof)
        if anchor is not None:
            return proof
        self.upgrade_calls += 1
        if self.unavailable:
            raise LedgerError("In-memory ledger is unavailable")
        confirmation = self._confirmations.get(committed)
        if confirmation is None:
            return None
        return _MAGIC + bytes(committed) + _CONFIRMED + _ANCHOR.pack(*confirmation)

    def committed_digest(self, proof: bytes) -> Digest:
        return self._decode(proof)[0]

    def is_confirmed(self, proof: bytes) -> bool:
        return self._decode(proof)[1] is not None

    async def anchor(self, proof: bytes) -> LedgerAnchor | None:
        committed, anchor = self._decode(proof)
        if anchor is None:
            return None
        if self.unavailable:
            raise LedgerError("In-memory ledger is unavailable")
        return LedgerAnchor(position=anchor[0], timestamp=anchor[1], block_hash=digest(committed + _ANCHOR.pack(*anchor)).hex())

    def describe(self, proof: bytes) -> str:
        committed, anchor = self._decode(proof)
        if anchor is None:
            return f"in-memory proof of {committed.hex()} (pending)"
        return f"in-memory proof of {committed.hex()} (position {anchor[0]})"

    @staticmethod
    def _decode(proof: bytes) -> tuple[Digest, tuple[int, int] | None]:
        header = len(_MAGIC) + DIGEST_SIZE + 1
        if not proof.startswith(_MAGIC) or len(proof) < header:
            raise ProofFormatError("Not an in-memory ledger proof")
        committed = Digest(proof[len(_MAGIC) : header - 1])
        flag = proof[header - 1 : header]
        if flag == _PENDING and len(proof) == header:
            return committed, None
        if flag == _CONFIRMED and len(proof) == header + _ANCHOR.size:
            return committed, _ANCHOR.unpack(proof[header:])
        raise ProofFormatError("Corrupt in-memory ledger proof")


class MemoryBlobStore:
    """Content-addressed BlobStore backed by a dict.

    ``blobs`` is public so tests can tamper with stored content.
    """

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.fail_puts = False
        self.fail_gets = False

    async def put(self, data: bytes, filename: str) -> StorageReference:
        if self.fail_puts:
            raise BlobStoreError(f"Memory blob store rejected {filename}")
        blob_id = digest(data).hex()
        self.blobs[blob_id] = data
        return StorageReference(id=blob_id, url=f"memory://{blob_id}")

    async def get(self, reference: StorageReference) -> bytes:
        if self.fail_gets:
            raise BlobStoreError("Memory blob store is unavailable")
        if reference.id not in self.blobs:
            raise BlobNotFoundError(reference.id)
        return self.blobs[reference.id]


class MemoryRecordRepository:
    """RecordRepository backed by a dict. Proof updates never lower the status."""

    def __init__(self) -> None:
        self.records: dict[str, Record] = {}

    async def get(self, record_id: str) -> Record | None:
        return self.records.get(record_id)

    async def save(self, record: Record) -> None:
        self.records[record.id] = record

    async def update_proof(self, record_id: str, proof: bytes, status: ProofStatus) -> Record:
        if record_id not in self.records:
            raise RecordNotFoundError(record_id)
        record = self.records[record_id].with_proof(proof, status)
        self.records[record_id] = record
        return record


class StaticRenderer:
    """Renderer returning canned HTML per URL."""

    def __init__(self, pages: Mapping[str, str], *, titles: Mapping[str, str] | None = None) -> None:
        self._pages = dict(pages)
        self._titles = dict(titles or {})
        self.rendered: list[str] = []

    async def render(self, url: str) -> RenderedPage:
        self.rendered.append(url)
        return RenderedPage(html=self._pages[url], title=self._titles.get(url), url=url)


class StaticImageFetcher:
    """ImageFetcher serving canned images; unknown URLs fail like a network error."""

    def __init__(self, images: Mapping[str, InlineImage] | None = None) -> None:
        self._images = dict(images or {})
        self.requested: list[str] = []

    async def fetch(self, url: str) -> InlineImage:
        self.requested.append(url)
        try:
            return self._images[url]
        except KeyError:
            raise ImageFetchError(f"No image for {url}") from None


__all__ = [
    "InMemoryLedger",
    "MemoryBlobStore",
    "MemoryRecordRepository",
    "StaticImageFetcher",
    "StaticRenderer",
]
