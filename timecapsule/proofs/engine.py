"""Proof engine: timestamp proof lifecycle and verification.

Lifecycle (COMPLETE is terminal, no transition goes backwards)::

    PENDING --create success--> INCOMPLETE --upgrade, anchor found--> COMPLETE
    PENDING --create failure--> PENDING
    INCOMPLETE --upgrade, no anchor yet--> INCOMPLETE

create and upgrade never raise; every failure degrades to a status.
"""

from timecapsule.exceptions import AnchorMismatchError, LedgerError, ProofFormatError
from timecapsule.hashing import Digest
from timecapsule.logging import get_pipeline_logger
from timecapsule.models import ProofOutcome, ProofResult, ProofStatus
from timecapsule.proofs.ledger import TimestampLedger

logger = get_pipeline_logger(__name__)

MISMATCH_MESSAGE = "Hash mismatch: The proof does not match this specific content."
PENDING_MESSAGE = "Proof submitted! Waiting for Bitcoin confirmation (~10-60 mins)"
CALENDAR_PENDING_MESSAGE = "Proof received. Waiting for calendar update..."
NO_PROOF_INFO = "Unable to read proof info"


class ProofEngine:
    """Creates, upgrades and verifies timestamp proofs against a TimestampLedger."""

    def __init__(self, ledger: TimestampLedger) -> None:
        self._ledger = ledger

    @property
    def ledger(self) -> TimestampLedger:
        return self._ledger

    async def create(self, digest: Digest) -> ProofResult:
        """Submit ``digest``; INCOMPLETE on success, an empty PENDING proof on failure."""
        try:
            proof = await self._ledger.submit(digest)
        except (LedgerError, ProofFormatError) as e:
            logger.warning("Timestamp creation failed for %s: %s", digest.hex(), e)
            return ProofResult(proof=b"", status=ProofStatus.PENDING)
        except Exception as e:
            logger.exception("Unexpected error creating timestamp for %s: %s", digest.hex(), e)
            return ProofResult(proof=b"", status=ProofStatus.PENDING)
        return ProofResult(proof=proof, status=ProofStatus.INCOMPLETE)

    async def upgrade(self, proof: bytes) -> ProofResult:
        """Try to add a confirmed anchor to ``proof``.

        Returns the enriched proof as COMPLETE, otherwise the original bytes as
        INCOMPLETE. Failures are expected shortly after creation and degrade
        to INCOMPLETE. An empty proof stays PENDING.
        """
        if not proof:
            return ProofResult(proof=proof, status=ProofStatus.PENDING)
        try:
            upgraded = await self._ledger.upgrade(proof)
        except (LedgerError, ProofFormatError) as e:
            logger.info("Proof upgrade not possible yet: %s", e)
            return ProofResult(proof=proof, status=ProofStatus.INCOMPLETE)
        except Exception as e:
            logger.exception("Unexpected error upgrading proof: %s", e)
            return ProofResult(proof=proof, status=ProofStatus.INCOMPLETE)
        if upgraded is None:
            return ProofResult(proof=proof, status=ProofStatus.INCOMPLETE)
        logger.info("Proof upgraded to COMPLETE")
        return ProofResult(proof=upgraded, status=ProofStatus.COMPLETE)

    async def verify(self, proof: bytes, digest: Digest) -> ProofOutcome:
        """Verify that ``proof`` commits ``digest`` and report its anchor.

        A structurally valid proof without a confirmed anchor still verifies:
        the submitted commitment is itself a verifiable fact.
        """
        try:
            committed = self._ledger.committed_digest(proof)
        except ProofFormatError as e:
            logger.warning("Proof verification failed: %s", e)
            return ProofOutcome(verified=False, message=f"Verification Error: {e}")

        if committed != digest:
            return ProofOutcome(verified=False, message=MISMATCH_MESSAGE)

        try:
            upgraded = await self._ledger.upgrade(proof)
            if upgraded is not None:
                proof = upgraded
        except (LedgerError, ProofFormatError) as e:
            logger.debug("Upgrade during verification skipped: %s", e)

        try:
            anchor = await self._ledger.anchor(proof)
        except AnchorMismatchError as e:
            logger.warning("Rejecting proof for %s: %s", digest.hex(), e)
            return ProofOutcome(verified=False, message=f"Anchor mismatch: {e}")
        except (LedgerError, ProofFormatError, ValueError) as e:
            # TODO: a corrupt attestation lands here too and reads as pending; split it out once the ledger reports it separately
            logger.warning("Anchor lookup failed, treating proof as pending: %s", e)
            return ProofOutcome(verified=True, message=CALENDAR_PENDING_MESSAGE)

        if anchor is not None:
            return ProofOutcome(verified=True, anchor=anchor, message=f"Verified! Anchored in Bitcoin block {anchor.position}")
        return ProofOutcome(verified=True, message=PENDING_MESSAGE)

    def committed_digest(self, proof: bytes) -> Digest | None:
        """Digest committed by ``proof``, or None when it cannot be decoded."""
        try:
            return self._ledger.committed_digest(proof)
        except ProofFormatError:
            return None

    def info(self, proof: bytes) -> str:
        try:
            return self._ledger.describe(proof)
        except ProofFormatError:
            return NO_PROOF_INFO

    def is_complete(self, proof: bytes) -> bool:
        """Whether ``proof`` already carries a ledger attestation. Offline; the anchor is not checked."""
        try:
            return self._ledger.is_confirmed(proof)
        except ProofFormatError:
            return False


__all__ = ["CALENDAR_PENDING_MESSAGE", "MISMATCH_MESSAGE", "PENDING_MESSAGE", "ProofEngine"]
