"""Timestamp ledger protocol.

The ledger is the external trust anchor. ProofEngine only talks to it through
this protocol, so the lifecycle logic can run against OpenTimestamps in
production and against an in-memory ledger in tests.
"""

from typing import Protocol, runtime_checkable

from timecapsule.hashing import Digest
from timecapsule.models import LedgerAnchor


@runtime_checkable
class TimestampLedger(Protocol):
    """External append-only ledger with a staged (pending, then confirmed) proof protocol.

    Proof bytes are opaque and versioned by the ledger; callers must store
    them exactly as returned.
    """

    async def submit(self, digest: Digest) -> bytes:
        """Submit a digest to the staging layer and return the pending proof.

        Raises:
            LedgerError: If the submission was not accepted.
        """
        ...

    async def upgrade(self, proof: bytes) -> bytes | None:
        """Return the enriched proof when it now carries a confirmed anchor, else None.

        Raises:
            ProofFormatError: If the proof cannot be deserialized.
            LedgerError: If the ledger cannot be queried.
        """
        ...

    def committed_digest(self, proof: bytes) -> Digest:
        """Return the digest a proof commits to.

        Raises:
            ProofFormatError: If the proof cannot be deserialized.
        """
        ...

    def is_confirmed(self, proof: bytes) -> bool:
        """Whether the proof carries a ledger attestation, without contacting the ledger.

        Raises:
            ProofFormatError: If the proof cannot be deserialized.
        """
        ...

    async def anchor(self, proof: bytes) -> LedgerAnchor | None:
        """Return the confirmed anchor of a proof, or None while it is pending.

        Raises:
            ProofFormatError: If the proof cannot be deserialized.
            AnchorMismatchError: If an attestation contradicts the ledger.
            LedgerError: If the ledger cannot be queried.
        """
        ...

    def describe(self, proof: bytes) -> str:
        """Human-readable description of a proof."""
        ...


__all__ = ["TimestampLedger"]
