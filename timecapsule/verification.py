"""Verification orchestrator: independent re-verification of a Record.

Checks three things independently and reports each:

- the proof decodes and commits to the record's digest (``digest_valid``)
- the proof verifies against the ledger (``proof``)
- the stored bytes still hash to the record's digest (``storage_intact``)

Storage and ledger failures produce partial results, never an overall error.
"""

from timecapsule.exceptions import BlobStoreError, ConfigurationError, RecordNotFoundError
from timecapsule.hashing import digest
from timecapsule.logging import get_pipeline_logger
from timecapsule.models import ProofOutcome, ProofStatus, Record, RecordVerification
from timecapsule.proofs.engine import ProofEngine
from timecapsule.records import RecordRepository
from timecapsule.storage.protocol import BlobStore

logger = get_pipeline_logger(__name__)

NO_PROOF_MESSAGE = "No timestamp proof available yet"


class VerificationOrchestrator:
    """Re-verifies records against the ledger and the blob store.

    When a repository is given, proof improvements found along the way are
    written back to it.
    """

    def __init__(self, proofs: ProofEngine, blob_store: BlobStore, *, repository: RecordRepository | None = None) -> None:
        self._proofs = proofs
        self._blob_store = blob_store
        self._repository = repository

    async def refresh_proof(self, record: Record) -> Record:
        """Move the record's proof forward if the ledger allows it.

        INCOMPLETE proofs are upgraded; PENDING records are resubmitted.
        COMPLETE records are returned unchanged.
        """
        if record.proof_status is ProofStatus.INCOMPLETE:
            result = await self._proofs.upgrade(record.timestamp_proof)
        elif record.proof_status is ProofStatus.PENDING:
            result = await self._proofs.create(record.digest)
        else:
            return record

        if result.status.rank <= record.proof_status.rank:
            return record

        logger.info("Record %s proof moved %s -> %s", record.id, record.proof_status, result.status)
        if self._repository is not None:
            return await self._repository.update_proof(record.id, result.proof, result.status)
        return record.with_proof(result.proof, result.status)

    async def verify_record(self, record: Record) -> RecordVerification:
        record = await self.refresh_proof(record)

        if record.timestamp_proof:
            proof_outcome = await self._proofs.verify(record.timestamp_proof, record.digest)
        else:
            proof_outcome = ProofOutcome(verified=False, message=NO_PROOF_MESSAGE)

        return RecordVerification(
            record=record,
            digest_valid=self._proofs.committed_digest(record.timestamp_proof) == record.digest,
            proof=proof_outcome,
            storage_intact=await self._storage_intact(record),
        )

    async def verify_record_id(self, record_id: str) -> RecordVerification:
        return await self.verify_record(await self._load(record_id))

    async def upgrade_record(self, record_id: str) -> Record:
        return await self.refresh_proof(await self._load(record_id))

    async def _load(self, record_id: str) -> Record:
        if self._repository is None:
            raise ConfigurationError("Loading records by id requires a RecordRepository")
        record = await self._repository.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    async def _storage_intact(self, record: Record) -> bool:
        if record.storage_reference is None:
            return False
        try:
            data = await self._blob_store.get(record.storage_reference)
        except BlobStoreError as e:
            logger.warning("Storage check failed for record %s: %s", record.id, e)
            return False
        return digest(data) == record.digest


__all__ = ["NO_PROOF_MESSAGE", "VerificationOrchestrator"]
