"""OpenTimestamps implementation of the timestamp ledger.

Proofs are OpenTimestamps detached timestamp files (the ``.ots`` format)
committing a SHA-256 digest. A fresh proof ends in pending attestations from
one or more calendars; upgrading asks those calendars for the path to a
Bitcoin block header attestation, which is then checked against the block's
merkle root.
"""

import asyncio
import os
from collections.abc import Iterator
from fnmatch import fnmatch
from urllib.parse import urlparse

import httpx
from opentimestamps.core.notary import BitcoinBlockHeaderAttestation, PendingAttestation
from opentimestamps.core.op import OpAppend, OpSHA256
from opentimestamps.core.serialize import BytesDeserializationContext, BytesSerializationContext, DeserializationError
from opentimestamps.core.timestamp import DetachedTimestampFile, Timestamp

from timecapsule.exceptions import AnchorMismatchError, LedgerError, ProofFormatError
from timecapsule.hashing import Digest
from timecapsule.logging import get_pipeline_logger
from timecapsule.models import LedgerAnchor
from timecapsule.proofs.blocks import BlockSource, EsploraBlockSource
from timecapsule.proofs.calendar import CalendarClient
from timecapsule.settings import Settings

logger = get_pipeline_logger(__name__)

NONCE_SIZE = 16


def _walk(stamp: Timestamp) -> Iterator[Timestamp]:
    yield stamp
    for sub_stamp in stamp.ops.values():
        yield from _walk(sub_stamp)


def _attestation_uri(attestation: PendingAttestation) -> str:
    uri = attestation.uri
    return uri.decode("utf-8") if isinstance(uri, bytes) else uri


def _confirmed(stamp: Timestamp) -> list[tuple[int, bytes]]:
    """(height, attested message) for every Bitcoin attestation, lowest height first."""
    found = {(att.height, msg) for msg, att in stamp.all_attestations() if isinstance(att, BitcoinBlockHeaderAttestation)}
    return sorted(found)


def serialize_proof(detached: DetachedTimestampFile) -> bytes:
    ctx = BytesSerializationContext()
    detached.serialize(ctx)
    return ctx.getbytes()


def deserialize_proof(proof: bytes) -> DetachedTimestampFile:
    """Parse an ``.ots`` proof, raising ProofFormatError on any malformed input."""
    if not proof:
        raise ProofFormatError("Proof is empty")
    try:
        detached = DetachedTimestampFile.deserialize(BytesDeserializationContext(proof))
    except (DeserializationError, ValueError, TypeError, EOFError) as e:
        raise ProofFormatError(f"Cannot deserialize OpenTimestamps proof: {e}") from e
    if not isinstance(detached.file_hash_op, OpSHA256):
        raise ProofFormatError(f"Unsupported file hash operation: {detached.file_hash_op}")
    return detached


class OpenTimestampsLedger:
    """TimestampLedger backed by OpenTimestamps calendars and the Bitcoin blockchain.

    Args:
        calendar_urls: Calendars a new digest is submitted to.
        calendar: Calendar HTTP client.
        blocks: Source of block headers for anchor confirmation.
        whitelist: Host glob patterns of calendars that may be contacted
                   while upgrading. Pending attestations naming any other host
                   are ignored; the proof itself chooses which hosts appear.
        min_responses: Calendars that must accept a submission.
    """

    def __init__(
        self,
        calendar_urls: list[str],
        *,
        calendar: CalendarClient,
        blocks: BlockSource,
        whitelist: list[str],
        min_responses: int = 1,
    ) -> None:
        if not calendar_urls:
            raise ValueError("At least one calendar URL is required")
        self._calendar_urls = list(calendar_urls)
        self._calendar = calendar
        self._blocks = blocks
        self._whitelist = list(whitelist)
        self._min_responses = min_responses

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> "OpenTimestampsLedger":
        return cls(
            settings.calendar_urls,
            calendar=CalendarClient(client, timeout=settings.calendar_timeout),
            blocks=EsploraBlockSource(settings.block_explorer_url, client, timeout=settings.block_explorer_timeout),
            whitelist=settings.calendar_whitelist,
            min_responses=settings.min_calendar_responses,
        )

    def is_whitelisted(self, calendar_url: str) -> bool:
        parsed = urlparse(calendar_url)
        if parsed.scheme != "https" or not parsed.hostname:
            return False
        return any(fnmatch(parsed.hostname, pattern) for pattern in self._whitelist)

    async def submit(self, digest: Digest) -> bytes:
        detached = DetachedTimestampFile(OpSHA256(), Timestamp(bytes(digest)))
        # the nonce keeps the submitted commitment from revealing the digest to calendars
        nonce_stamp = detached.timestamp.ops.add(OpAppend(os.urandom(NONCE_SIZE)))
        tip = nonce_stamp.ops.add(OpSHA256())

        results = await asyncio.gather(*[self._calendar.submit(url, tip.msg) for url in self._calendar_urls], return_exceptions=True)
        accepted = 0
        for url, result in zip(self._calendar_urls, results):
            if isinstance(result, LedgerError):
                logger.warning("Calendar %s rejected submission: %s", url, result)
                continue
            if isinstance(result, BaseException):
                raise result
            try:
                tip.merge(Timestamp.deserialize(BytesDeserializationContext(result), tip.msg))
            except (DeserializationError, ValueError) as e:
                logger.warning("Calendar %s returned an unreadable timestamp: %s", url, e)
                continue
            accepted += 1

        if accepted < self._min_responses:
            raise LedgerError(f"Only {accepted} of {len(self._calendar_urls)} calendars accepted the digest (need {self._min_responses})")
        logger.info("Digest %s submitted to %d calendar(s)", digest.hex(), accepted)
        return serialize_proof(detached)

    async def upgrade(self, proof: bytes) -> bytes | None:
        detached = deserialize_proof(proof)
        if _confirmed(detached.timestamp):
            return proof

        pending: list[tuple[Timestamp, str]] = []
        for sub_stamp in _walk(detached.timestamp):
            for attestation in sub_stamp.attestations:
                if not isinstance(attestation, PendingAttestation):
                    continue
                uri = _attestation_uri(attestation)
                if self.is_whitelisted(uri):
                    pending.append((sub_stamp, uri))
                else:
                    logger.warning("Ignoring calendar %s: not in whitelist", uri)

        if not pending:
            return None

        responses = await asyncio.gather(*[self._calendar.get_timestamp(uri, stamp.msg) for stamp, uri in pending], return_exceptions=True)
        errors: list[LedgerError] = []
        for (stamp, uri), response in zip(pending, responses):
            if isinstance(response, LedgerError):
                errors.append(response)
                continue
            if isinstance(response, BaseException):
                raise response
            if response is None:
                logger.debug("Calendar %s has no anchor yet for %s", uri, stamp.msg.hex())
                continue
            try:
                stamp.merge(Timestamp.deserialize(BytesDeserializationContext(response), stamp.msg))
            except (DeserializationError, ValueError) as e:
                logger.warning("Calendar %s returned an unreadable upgrade: %s", uri, e)

        if _confirmed(detached.timestamp):
            return serialize_proof(detached)
        if errors and len(errors) == len(pending):
            raise LedgerError(f"No calendar could be reached for upgrade: {errors[0]}")
        return None

    def committed_digest(self, proof: bytes) -> Digest:
        detached = deserialize_proof(proof)
        try:
            return Digest(detached.file_digest)
        except ValueError as e:
            raise ProofFormatError(str(e)) from e

    def is_confirmed(self, proof: bytes) -> bool:
        return bool(_confirmed(deserialize_proof(proof).timestamp))

    async def anchor(self, proof: bytes) -> LedgerAnchor | None:
        detached = deserialize_proof(proof)
        for height, msg in _confirmed(detached.timestamp):
            header = await self._blocks.header(height)
            # attestations commit to the merkle root in internal byte order
            if msg[::-1].hex() != header.merkle_root:
                raise AnchorMismatchError(height, f"attested {msg[::-1].hex()}, block has {header.merkle_root}")
            return LedgerAnchor(position=height, timestamp=header.time, block_hash=header.block_hash)
        return None

    def describe(self, proof: bytes) -> str:
        detached = deserialize_proof(proof)
        lines = [f"File sha256 hash: {detached.file_digest.hex()}", "Timestamp:", detached.timestamp.str_tree()]
        return "\n".join(lines)


__all__ = ["OpenTimestampsLedger", "deserialize_proof", "serialize_proof"]
