"""Core configuration settings for TimeCapsule.

@public

Settings are loaded from environment variables (prefixed ``TIMECAPSULE_``)
with .env file support via pydantic-settings.

Environment variables:
    TIMECAPSULE_CALENDAR_URLS: JSON list of OpenTimestamps calendar servers
    TIMECAPSULE_CALENDAR_WHITELIST: JSON list of host patterns allowed for upgrades
    TIMECAPSULE_BLOCK_EXPLORER_URL: Esplora API root used to read block headers
    TIMECAPSULE_BLOB_STORE_PATH: Directory of the local content-addressed store
    TIMECAPSULE_IPFS_API_URL: IPFS RPC endpoint; enables the IPFS blob store
    TIMECAPSULE_IPFS_GATEWAY_URL: IPFS path gateway for retrieval

Example:
    >>> from timecapsule.settings import settings
    >>> print(settings.calendar_urls)

Note:
    Settings are loaded once at module import and frozen. Components receive
    a Settings instance explicitly; only the CLI reads the module singleton.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CALENDAR_URLS = [
    "https://a.pool.opentimestamps.org",
    "https://b.pool.opentimestamps.org",
    "https://a.pool.eternitywall.com",
    "https://ots.btc.catallaxy.com",
]

DEFAULT_CALENDAR_WHITELIST = [
    "*.calendar.opentimestamps.org",
    "*.calendar.eternitywall.com",
    "*.calendar.catallaxy.com",
]


class Settings(BaseSettings):
    """TimeCapsule configuration for external services and limits.

    @public

    Attributes:
        calendar_urls: Calendar servers a new digest is submitted to.
        calendar_whitelist: Host glob patterns; pending attestations pointing
                            elsewhere are never contacted during upgrades.
        calendar_timeout: Per-request timeout for calendar calls, in seconds.
        min_calendar_responses: Calendars that must accept a submission for
                                the proof to count as INCOMPLETE.
        block_explorer_url: Esplora-compatible API used to confirm anchors.
        block_explorer_timeout: Per-request timeout for block lookups.
        image_fetch_timeout: Timeout for each image fetched while sanitizing.
        image_fetch_concurrency: Maximum concurrent image fetches per document.
        image_max_bytes: Images larger than this are left unresolved.
        blob_store_path: Root directory of the local blob store.
        ipfs_api_url: IPFS RPC API root. Empty means use the local store.
        ipfs_gateway_url: IPFS gateway used to read content back.
        storage_timeout: Per-request timeout for blob store calls.
    """

    model_config = SettingsConfigDict(
        env_prefix="TIMECAPSULE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Timestamp ledger
    calendar_urls: list[str] = Field(default_factory=lambda: list(DEFAULT_CALENDAR_URLS))
    calendar_whitelist: list[str] = Field(default_factory=lambda: list(DEFAULT_CALENDAR_WHITELIST))
    calendar_timeout: float = 10.0
    min_calendar_responses: int = Field(default=1, ge=1)
    block_explorer_url: str = "https://blockstream.info/api"
    block_explorer_timeout: float = 15.0

    # Sanitizer
    image_fetch_timeout: float = 10.0
    image_fetch_concurrency: int = Field(default=8, ge=1)
    image_max_bytes: int = 10 * 1024 * 1024

    # Blob store
    blob_store_path: str = ".timecapsule/blobs"
    ipfs_api_url: str = ""
    ipfs_gateway_url: str = "https://w3s.link"
    storage_timeout: float = 60.0


settings = Settings()
"""Global settings instance, created at import.

@public
"""
