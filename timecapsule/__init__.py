"""TimeCapsule - tamper-evident capture and timestamping of web evidence.

@public

A capture turns a web page or an uploaded file into a Record: the sanitized
content is hashed with SHA-256, stored in a content-addressed blob store, and
its digest is committed to Bitcoin through OpenTimestamps calendars. Records
can be re-verified at any time, independently of the service that made them.

Core Capabilities:
    - **Sanitization**: Deterministic HTML normalization with inlined images
    - **Hashing**: SHA-256 digests and pairwise aggregation
    - **Proofs**: OpenTimestamps proof lifecycle (PENDING -> INCOMPLETE -> COMPLETE)
    - **Storage**: Local filesystem or IPFS blob stores
    - **Verification**: Independent proof, digest and storage checks

Quick Start:
    >>> from timecapsule import CapturePipeline, ProofEngine, Sanitizer
    >>> from timecapsule.proofs import OpenTimestampsLedger
    >>> from timecapsule.storage import create_blob_store
    >>> from timecapsule.settings import settings
    >>>
    >>> pipeline = CapturePipeline(
    ...     Sanitizer.from_settings(settings),
    ...     create_blob_store(settings),
    ...     ProofEngine(OpenTimestampsLedger.from_settings(settings)),
    ... )
    >>> record = await pipeline.capture_upload(b"contract text", "contract.txt")

Environment Variables:
    - TIMECAPSULE_CALENDAR_URLS: OpenTimestamps calendars to submit to
    - TIMECAPSULE_BLOCK_EXPLORER_URL: Esplora API used to check anchors
    - TIMECAPSULE_IPFS_API_URL: Enables IPFS storage when set
    - TIMECAPSULE_LOG_LEVEL: Default log level
"""

from importlib.metadata import PackageNotFoundError, version

from .capture import CapturePipeline, Renderer
from .exceptions import (
    AnchorMismatchError,
    BlobNotFoundError,
    BlobStoreError,
    ConfigurationError,
    EmptyInputError,
    ImageFetchError,
    LedgerError,
    ProofFormatError,
    RecordNotFoundError,
    TimeCapsuleError,
)
from .hashing import Digest, aggregate, digest, digest_hex, verify_digest
from .logging import get_pipeline_logger, setup_logging
from .models import (
    ContentBlob,
    LedgerAnchor,
    ProofOutcome,
    ProofResult,
    ProofStatus,
    Record,
    RecordVerification,
    RenderedPage,
    SourceDescriptor,
    SourceKind,
    StorageReference,
)
from .proofs import ProofEngine, TimestampLedger
from .records import RecordRepository
from .sanitizer import Sanitizer
from .settings import Settings
from .storage import BlobStore
from .verification import VerificationOrchestrator

try:
    __version__ = version("timecapsule")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    # Pipelines
    "CapturePipeline",
    "VerificationOrchestrator",
    "Sanitizer",
    "ProofEngine",
    # Protocols
    "BlobStore",
    "RecordRepository",
    "Renderer",
    "TimestampLedger",
    # Hashing
    "Digest",
    "aggregate",
    "digest",
    "digest_hex",
    "verify_digest",
    # Models
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
    # Configuration and logging
    "Settings",
    "get_pipeline_logger",
    "setup_logging",
    # Exceptions
    "AnchorMismatchError",
    "BlobNotFoundError",
    "BlobStoreError",
    "ConfigurationError",
    "EmptyInputError",
    "ImageFetchError",
    "LedgerError",
    "ProofFormatError",
    "RecordNotFoundError",
    "TimeCapsuleError",
]
