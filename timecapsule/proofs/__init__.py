"""Proof engine and timestamp ledgers.

@public
"""

from timecapsule.proofs.blocks import BlockHeader, BlockSource, EsploraBlockSource
from timecapsule.proofs.calendar import CalendarClient
from timecapsule.proofs.engine import ProofEngine
from timecapsule.proofs.ledger import TimestampLedger
from timecapsule.proofs.opentimestamps import OpenTimestampsLedger

__all__ = [
    "BlockHeader",
    "BlockSource",
    "CalendarClient",
    "EsploraBlockSource",
    "OpenTimestampsLedger",
    "ProofEngine",
    "TimestampLedger",
]
