"""Persistence collaborator protocol.

The core never holds a database connection. It reads records through a
RecordRepository and writes back upgraded proofs through ``update_proof``.
"""

from typing import Protocol, runtime_checkable

from timecapsule.models import ProofStatus, Record


@runtime_checkable
class RecordRepository(Protocol):
    """Storage backend for records.

    Implementations must serialize concurrent ``update_proof`` calls for the
    same record and never lower its status; upgrades are idempotent, so
    last-write-wins among equal statuses is acceptable.
    """

    async def get(self, record_id: str) -> Record | None:
        """Load a record, or None if it does not exist."""
        ...

    async def save(self, record: Record) -> None:
        """Persist a newly created record."""
        ...

    async def update_proof(self, record_id: str, proof: bytes, status: ProofStatus) -> Record:
        """Replace the proof of a record, keeping its status monotonic. Returns the stored record."""
        ...


__all__ = ["RecordRepository"]
