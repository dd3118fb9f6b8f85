"""Common test fixtures for TimeCapsule."""

from io import BytesIO

import pytest
from PIL import Image

from timecapsule.capture import CapturePipeline
from timecapsule.proofs.engine import ProofEngine
from timecapsule.sanitizer import InlineImage, Sanitizer
from timecapsule.testing import InMemoryLedger, MemoryBlobStore, MemoryRecordRepository, StaticImageFetcher, StaticRenderer
from timecapsule.verification import VerificationOrchestrator


def make_png(width: int = 2, height: int = 2, color: tuple[int, int, int] = (255, 0, 0)) -> bytes:
    """Encode a small solid-color PNG."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def engine(ledger: InMemoryLedger) -> ProofEngine:
    return ProofEngine(ledger)


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def repository() -> MemoryRecordRepository:
    return MemoryRecordRepository()


@pytest.fixture
def image_fetcher(png_bytes: bytes) -> StaticImageFetcher:
    return StaticImageFetcher({"https://example.com/logo.png": InlineImage(png_bytes, "image/png")})


@pytest.fixture
def renderer() -> StaticRenderer:
    return StaticRenderer(
        {
            "https://example.com/article": (
                "<html><head><title>Article</title><script>track()</script></head>"
                '<body><h1 onclick="go()">Headline</h1><img src="/logo.png"></body></html>'
            ),
        }
    )


@pytest.fixture
def pipeline(
    image_fetcher: StaticImageFetcher,
    blob_store: MemoryBlobStore,
    engine: ProofEngine,
    renderer: StaticRenderer,
    repository: MemoryRecordRepository,
) -> CapturePipeline:
    return CapturePipeline(Sanitizer(image_fetcher), blob_store, engine, renderer=renderer, repository=repository)


@pytest.fixture
def orchestrator(engine: ProofEngine, blob_store: MemoryBlobStore, repository: MemoryRecordRepository) -> VerificationOrchestrator:
    return VerificationOrchestrator(engine, blob_store, repository=repository)
