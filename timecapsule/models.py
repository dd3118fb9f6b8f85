"""Data model for captured evidence.

A Record ties a content Digest to where the content is stored and to the
timestamp proof committing that digest to the ledger. Records are immutable;
proof upgrades produce a new Record through ``Record.with_proof``.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from timecapsule.hashing import Digest


class ProofStatus(StrEnum):
    """Lifecycle state of a timestamp proof.

    Ordered ``PENDING < INCOMPLETE < COMPLETE``; a record never moves back.
    """

    PENDING = "PENDING"
    INCOMPLETE = "INCOMPLETE"
    COMPLETE = "COMPLETE"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self is ProofStatus.COMPLETE


_STATUS_RANK = {ProofStatus.PENDING: 0, ProofStatus.INCOMPLETE: 1, ProofStatus.COMPLETE: 2}


class SourceKind(StrEnum):
    URL = "URL"
    FILE = "FILE"


class RenderedPage(BaseModel):
    """What the external renderer returns for a URL. ``html`` may be a partial load."""

    html: str
    title: str | None = None
    url: str | None = None

    model_config = ConfigDict(frozen=True)


class ContentBlob(BaseModel):
    """Sanitized bytes ready to be hashed and stored."""

    data: bytes
    filename: str
    title: str | None = None

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    @property
    def size(self) -> int:
        return len(self.data)


class StorageReference(BaseModel):
    """Where the blob store put a piece of content."""

    id: str
    url: str

    model_config = ConfigDict(frozen=True)


class SourceDescriptor(BaseModel):
    """What was captured: a URL snapshot or an uploaded file."""

    kind: SourceKind
    url: str | None = None
    filename: str | None = None
    title: str | None = None

    model_config = ConfigDict(frozen=True)


class LedgerAnchor(BaseModel):
    """Confirmed position of a proof in the ledger (Bitcoin block height and time)."""

    position: int
    timestamp: int
    block_hash: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def time(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=UTC)


class ProofOutcome(BaseModel):
    """Result of verifying a timestamp proof against a digest."""

    verified: bool
    message: str
    anchor: LedgerAnchor | None = None

    model_config = ConfigDict(frozen=True)


@dataclass(frozen=True)
class ProofResult:
    """Proof bytes together with the lifecycle state they represent."""

    proof: bytes
    status: ProofStatus


class Record(BaseModel):
    """Durable unit of captured evidence."""

    id: str
    digest: Digest
    storage_reference: StorageReference | None = None
    timestamp_proof: bytes = b""
    proof_status: ProofStatus = ProofStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: SourceDescriptor

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    def with_proof(self, proof: bytes, status: ProofStatus) -> "Record":
        """Return a copy carrying ``proof``, unless that would lower the status."""
        if status.rank < self.proof_status.rank:
            return self
        return self.model_copy(update={"timestamp_proof": proof, "proof_status": status})


class RecordVerification(BaseModel):
    """Combined outcome of re-verifying a record.

    ``record`` is the record as it stands after any proof upgrade performed
    during verification. Present a record as fully verified only when both
    the proof and storage checks hold.
    """

    record: Record
    digest_valid: bool
    proof: ProofOutcome
    storage_intact: bool

    model_config = ConfigDict(frozen=True)

    @property
    def fully_verified(self) -> bool:
        return self.proof.verified and self.storage_intact


__all__ = [
    "ContentBlob",
    "LedgerAnchor",
    "ProofOutcome",
    "ProofResult",
    "ProofStatus",
    "Record",
    "RecordVerification",
    "RenderedPage",
    "SourceDescriptor",
    "SourceKind",
    "StorageReference",
]
