"""Deterministic sanitization of rendered documents.

Turns a live page into a static, self-contained snapshot before it is
hashed. Passes run in a fixed order:

1. Resource inlining: external raster images become data URIs.
2. Active-content removal: scripts, embedded frames and objects, preload and
   manifest hints, CSP and refresh meta directives.
3. Event-handler stripping: ``on*`` attributes and ``javascript:`` URLs.
4. Ephemeral-UI removal: modal dialogs, cookie banners, credential pickers.

Sanitizing already-sanitized output yields identical bytes: inlined images
are skipped on the second pass and nothing removable remains.
"""

import asyncio
import re
from collections.abc import Iterable
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Doctype, NavigableString, Tag

from timecapsule.logging import get_pipeline_logger
from timecapsule.models import ContentBlob, RenderedPage
from timecapsule.sanitizer.fetcher import HttpImageFetcher, ImageFetcher, InlineImage
from timecapsule.settings import Settings

logger = get_pipeline_logger(__name__)

DOCUMENT_FILENAME = "evidence.html"
UPLOAD_FILENAME = "upload.bin"

# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

ACTIVE_TAGS = ("script", "iframe", "frame", "frameset", "object", "embed", "applet", "portal")

RESOURCE_HINT_RELS = frozenset({"preload", "modulepreload", "prefetch", "prerender", "preconnect", "dns-prefetch", "manifest"})

BLOCKED_HTTP_EQUIV = frozenset({"content-security-policy", "content-security-policy-report-only", "refresh"})

URL_ATTRIBUTES = frozenset({"href", "src", "action", "formaction", "xlink:href"})

CONSENT_MARKERS = ("cookie", "consent", "gdpr", "onetrust", "cookiebot", "didomi", "usercentrics", "trustarc", "qc-cmp2")
CONSENT_TOKENS = frozenset({"cmp", "cc-banner", "cc-window", "cc-revoke"})
BANNER_TAGS = ("div", "section", "aside", "footer", "header", "form", "nav")

CREDENTIAL_PICKER_IDS = frozenset({"credential_picker_container", "credential_picker_iframe", "g_id_onload"})
CREDENTIAL_PICKER_CLASSES = frozenset({"g_id_signin"})

_JS_URL_NOISE = re.compile(r"[\s\x00-\x1f]+")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _decompose_all(tags: Iterable[Tag]) -> int:
    removed = 0
    for tag in list(tags):
        if tag.decomposed:
            continue
        tag.decompose()
        removed += 1
    return removed


def _attr_tokens(tag: Tag, name: str) -> list[str]:
    value = tag.get(name)
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return [str(v) for v in value]


def _attr_text(tag: Tag, name: str) -> str:
    return " ".join(_attr_tokens(tag, name)).strip().lower()


def _is_javascript_url(value: object) -> bool:
    if isinstance(value, list):
        value = " ".join(str(v) for v in value)
    if not isinstance(value, str):
        return False
    # browsers ignore embedded whitespace and control characters in the scheme
    return _JS_URL_NOISE.sub("", value).lower().startswith("javascript:")


def _base_url(soup: BeautifulSoup, page_url: str | None) -> str | None:
    base = soup.find("base", href=True)
    if isinstance(base, Tag):
        href = " ".join(_attr_tokens(base, "href"))
        if href:
            return urljoin(page_url or "", href)
    return page_url


def _resolve_image_url(base: str | None, src: str) -> str | None:
    """Absolute http(s) URL for an image source, or None when it cannot be fetched."""
    src = src.strip()
    if not src or src.lower().startswith("data:"):
        return None
    url = urljoin(base or "", src)
    if urlparse(url).scheme not in ("http", "https"):
        return None
    return url


def _is_consent_banner(tag: Tag) -> bool:
    for token in _attr_tokens(tag, "id") + _attr_tokens(tag, "class"):
        lowered = token.lower()
        if lowered in CONSENT_TOKENS or any(marker in lowered for marker in CONSENT_MARKERS):
            return True
    return False


def _is_credential_picker(tag: Tag) -> bool:
    if _attr_text(tag, "id") in CREDENTIAL_PICKER_IDS:
        return True
    return any(token in CREDENTIAL_PICKER_CLASSES for token in _attr_tokens(tag, "class"))


def _is_modal(tag: Tag) -> bool:
    return tag.name == "dialog" or _attr_text(tag, "role") in ("dialog", "alertdialog") or _attr_text(tag, "aria-modal") == "true"


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------


def remove_active_content(soup: BeautifulSoup) -> int:
    """Delete executable and dynamically-loading elements. Returns the number removed."""
    removed = _decompose_all(soup.find_all(ACTIVE_TAGS))
    removed += _decompose_all(
        link for link in soup.find_all("link") if any(rel.lower() in RESOURCE_HINT_RELS for rel in _attr_tokens(link, "rel"))
    )
    removed += _decompose_all(meta for meta in soup.find_all("meta") if _attr_text(meta, "http-equiv") in BLOCKED_HTTP_EQUIV)
    for html in soup.find_all("html"):
        html.attrs.pop("manifest", None)
    return removed


def strip_event_handlers(soup: BeautifulSoup) -> int:
    """Remove ``on*`` attributes and ``javascript:`` URLs. Returns the number of attributes removed."""
    removed = 0
    for tag in soup.find_all(True):
        for name in list(tag.attrs):
            lowered = name.lower()
            if lowered.startswith("on") or (lowered in URL_ATTRIBUTES and _is_javascript_url(tag.attrs[name])):
                del tag.attrs[name]
                removed += 1
    return removed


def remove_ephemeral_ui(soup: BeautifulSoup) -> int:
    """Delete modal dialogs, cookie-consent banners and credential pickers."""
    removed = _decompose_all(tag for tag in soup.find_all(True) if _is_modal(tag) or _is_credential_picker(tag))
    removed += _decompose_all(tag for tag in soup.find_all(BANNER_TAGS) if _is_consent_banner(tag))
    return removed


def normalize_charset(soup: BeautifulSoup) -> None:
    """Declare UTF-8, which is how the snapshot is serialized."""
    for meta in soup.find_all("meta"):
        if meta.has_attr("charset"):
            meta["charset"] = "utf-8"
        elif _attr_text(meta, "http-equiv") == "content-type":
            meta.decompose()


def strip_doctype_whitespace(soup: BeautifulSoup) -> None:
    """Drop whitespace after the doctype; serialization always emits one newline there."""
    for node in list(soup.contents):
        if not isinstance(node, Doctype):
            continue
        following = node.next_sibling
        while type(following) is NavigableString and not following.strip():
            after = following.next_sibling
            following.extract()
            following = after


def extract_title(soup: BeautifulSoup) -> str | None:
    if soup.title is None:
        return None
    return soup.title.get_text(strip=True) or None


# ---------------------------------------------------------------------------
# Sanitizer
# ---------------------------------------------------------------------------


class Sanitizer:
    """Normalizes captured content into a deterministic byte sequence.

    Args:
        fetcher: Used to inline images. Without one, images are left as-is.
        max_concurrency: Upper bound on concurrent image fetches per document.
        fetch_timeout: Timeout for each image, enforced around the fetcher.
    """

    def __init__(self, fetcher: ImageFetcher | None = None, *, max_concurrency: int = 8, fetch_timeout: float = 10.0) -> None:
        self._fetcher = fetcher
        self._max_concurrency = max_concurrency
        self._fetch_timeout = fetch_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Sanitizer":
        fetcher = HttpImageFetcher(timeout=settings.image_fetch_timeout, max_bytes=settings.image_max_bytes)
        return cls(fetcher, max_concurrency=settings.image_fetch_concurrency, fetch_timeout=settings.image_fetch_timeout)

    async def sanitize(self, content: RenderedPage | str | bytes, *, filename: str | None = None) -> ContentBlob:
        """Sanitize a rendered page (or HTML string); raw bytes pass through unchanged."""
        if isinstance(content, bytes):
            return ContentBlob(data=content, filename=filename or UPLOAD_FILENAME)

        page = content if isinstance(content, RenderedPage) else RenderedPage(html=content)
        soup = BeautifulSoup(page.html, "html.parser")

        inlined = await self._inline_images(soup, page.url)
        active = remove_active_content(soup)
        handlers = strip_event_handlers(soup)
        ephemeral = remove_ephemeral_ui(soup)
        normalize_charset(soup)
        strip_doctype_whitespace(soup)

        title = extract_title(soup) or (page.title or "").strip() or None
        data = soup.decode(formatter="minimal").encode("utf-8")
        logger.info(
            "Sanitized %s: %d images inlined, %d active elements, %d handlers, %d overlays removed (%d bytes)",
            page.url or "document",
            inlined,
            active,
            handlers,
            ephemeral,
            len(data),
        )
        return ContentBlob(data=data, filename=filename or DOCUMENT_FILENAME, title=title)

    async def _inline_images(self, soup: BeautifulSoup, page_url: str | None) -> int:
        """Replace external image sources with data URIs. Failed images are left unresolved."""
        if self._fetcher is None:
            return 0
        fetcher = self._fetcher

        base = _base_url(soup, page_url)
        targets: dict[str, list[Tag]] = {}
        for img in soup.find_all("img"):
            src = img.get("src")
            if not isinstance(src, str):
                continue
            url = _resolve_image_url(base, src)
            if url is not None:
                targets.setdefault(url, []).append(img)
        if not targets:
            return 0

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _fetch(url: str) -> InlineImage:
            async with semaphore:
                return await asyncio.wait_for(fetcher.fetch(url), timeout=self._fetch_timeout)

        urls = list(targets)
        results = await asyncio.gather(*[_fetch(url) for url in urls], return_exceptions=True)

        inlined = 0
        for url, result in zip(urls, results):
            if isinstance(result, Exception):
                logger.debug("Leaving image unresolved %s: %s: %s", url, type(result).__name__, result)
                continue
            if isinstance(result, BaseException):
                raise result
            data_uri = result.to_data_uri()
            for img in targets[url]:
                img["src"] = data_uri
                img.attrs.pop("srcset", None)
                img.attrs.pop("sizes", None)
                if isinstance(img.parent, Tag) and img.parent.name == "picture":
                    _decompose_all(img.parent.find_all("source", recursive=False))
                inlined += 1
        return inlined


__all__ = [
    "DOCUMENT_FILENAME",
    "UPLOAD_FILENAME",
    "Sanitizer",
    "extract_title",
    "normalize_charset",
    "remove_active_content",
    "remove_ephemeral_ui",
    "strip_doctype_whitespace",
    "strip_event_handlers",
]
