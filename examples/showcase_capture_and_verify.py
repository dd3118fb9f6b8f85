#!/usr/bin/env python3
"""Capture and verification showcase, runs standalone without external services.

Demonstrates:
  - Sanitizing a rendered page (script removal, consent banners, image inlining)
  - CapturePipeline producing a Record with a content digest and pending proof
  - LocalBlobStore as content-addressed storage
  - VerificationOrchestrator re-verifying a record before and after ledger confirmation
  - Tamper detection when stored bytes change

The ledger is the in-memory one from timecapsule.testing. Swap in
``OpenTimestampsLedger.from_settings(settings)`` to stamp on Bitcoin for real.

Usage:
  python examples/showcase_capture_and_verify.py
"""

import asyncio
from pathlib import Path
from tempfile import TemporaryDirectory

from timecapsule import CapturePipeline, ProofEngine, Sanitizer, VerificationOrchestrator
from timecapsule.logging import get_pipeline_logger, setup_logging
from timecapsule.sanitizer import InlineImage
from timecapsule.storage import LocalBlobStore
from timecapsule.testing import InMemoryLedger, MemoryRecordRepository, StaticImageFetcher, StaticRenderer

logger = get_pipeline_logger(__name__)

# 1x1 transparent GIF
PIXEL = bytes.fromhex("47494638396101000100800000000000ffffff21f90401000000002c00000000010001000002024401003b")

PAGE_URL = "https://news.example.com/2024/05/statement"
PAGE_HTML = """<!doctype html>
<html>
<head>
  <title>Official statement</title>
  <script src="https://tracker.example/t.js"></script>
  <meta http-equiv="refresh" content="30">
</head>
<body>
  <div id="cookie-consent">We use cookies. <button onclick="accept()">OK</button></div>
  <article>
    <h1>Official statement</h1>
    <img src="/img/signature.gif" alt="signature">
    <p>We will not raise prices this year.</p>
  </article>
</body>
</html>
"""


async def main() -> None:
    setup_logging(level="INFO")

    with TemporaryDirectory() as tmp:
        ledger = InMemoryLedger()
        engine = ProofEngine(ledger)
        blob_store = LocalBlobStore(Path(tmp) / "blobs")
        repository = MemoryRecordRepository()

        pipeline = CapturePipeline(
            Sanitizer(StaticImageFetcher({"https://news.example.com/img/signature.gif": InlineImage(PIXEL, "image/gif")})),
            blob_store,
            engine,
            renderer=StaticRenderer({PAGE_URL: PAGE_HTML}),
            repository=repository,
        )
        orchestrator = VerificationOrchestrator(engine, blob_store, repository=repository)

        # --- Capture ---------------------------------------------------------
        record = await pipeline.capture_url(PAGE_URL)
        print(f"Captured {record.source.title!r}")
        print(f"  digest:  {record.digest.hex()}")
        print(f"  stored:  {record.storage_reference.url if record.storage_reference else '-'}")
        print(f"  proof:   {record.proof_status}")

        # --- Verify before confirmation ---------------------------------------
        result = await orchestrator.verify_record(record)
        print(f"\nBefore confirmation: {result.proof.message} (storage intact: {result.storage_intact})")

        # --- Ledger confirms the digest ---------------------------------------
        ledger.confirm(record.digest, position=845_000, timestamp=1_715_500_000)
        result = await orchestrator.verify_record_id(record.id)
        print(f"After confirmation:  {result.proof.message}")
        if result.proof.anchor is not None:
            print(f"  anchored at {result.proof.anchor.time.isoformat()}")
        print(f"  record status now {repository.records[record.id].proof_status}")

        # --- Tamper with storage ----------------------------------------------
        assert record.storage_reference is not None
        blob_path = blob_store.root / record.storage_reference.id[:2] / record.storage_reference.id
        blob_path.write_bytes(blob_path.read_bytes().replace(b"will not", b"will"))
        result = await orchestrator.verify_record_id(record.id)
        print(f"\nAfter tampering: proof verified={result.proof.verified}, storage intact={result.storage_intact}")
        logger.info("Fully verified: %s", result.fully_verified)


if __name__ == "__main__":
    asyncio.run(main())
