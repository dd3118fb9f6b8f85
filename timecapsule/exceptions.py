"""Exception hierarchy for TimeCapsule.

All exceptions inherit from TimeCapsuleError. Components that must degrade
instead of failing (proof creation, upgrades, storage checks, image inlining)
catch the subclasses below and turn them into typed outcomes.
"""


class TimeCapsuleError(Exception):
    """Base exception for all TimeCapsule errors."""


class ConfigurationError(TimeCapsuleError):
    """Raised when a component is used without a required collaborator or setting."""


class EmptyInputError(TimeCapsuleError, ValueError):
    """Raised when a digest aggregation is requested over zero digests."""


class LedgerError(TimeCapsuleError):
    """Raised when the timestamp ledger cannot be reached or rejects a request."""


class ProofFormatError(TimeCapsuleError):
    """Raised when a timestamp proof cannot be deserialized."""


class AnchorMismatchError(LedgerError):
    """Raised when a proof's ledger attestation contradicts the ledger itself."""

    def __init__(self, position: int, detail: str = "") -> None:
        self.position = position
        message = f"Attestation does not match ledger position {position}"
        super().__init__(f"{message}: {detail}" if detail else message)


class BlobStoreError(TimeCapsuleError):
    """Raised when the blob store cannot store or return content."""


class BlobNotFoundError(BlobStoreError):
    """Raised when a StorageReference cannot be resolved in a blob store."""

    def __init__(self, blob_id: str) -> None:
        self.blob_id = blob_id
        super().__init__(f"Blob not found: {blob_id}")


class ImageFetchError(TimeCapsuleError):
    """Raised when an image referenced by a document cannot be inlined."""


class RecordNotFoundError(TimeCapsuleError):
    """Raised when a record id is unknown to the persistence layer."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")
