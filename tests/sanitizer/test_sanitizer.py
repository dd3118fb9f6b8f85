"""Tests for HTML sanitization."""

import asyncio

import pytest
from bs4 import BeautifulSoup

from timecapsule.exceptions import ImageFetchError
from timecapsule.models import RenderedPage
from timecapsule.sanitizer import InlineImage, Sanitizer
from timecapsule.sanitizer.sanitizer import DOCUMENT_FILENAME, UPLOAD_FILENAME, normalize_charset, remove_ephemeral_ui, strip_event_handlers
from timecapsule.testing import StaticImageFetcher

PAGE_URL = "https://example.com/news/story"


def _soup(data: bytes) -> BeautifulSoup:
    return BeautifulSoup(data.decode("utf-8"), "html.parser")


class TestActiveContent:
    """Test removal of executable and dynamically loading elements."""

    @pytest.mark.asyncio
    async def test_scripts_and_frames_removed(self):
        html = (
            "<html><head><script src='a.js'></script></head><body>"
            "<p>Text</p><iframe src='https://ads.example'></iframe><object data='x.swf'></object><embed src='y'>"
            "<script>alert(1)</script></body></html>"
        )
        blob = await Sanitizer().sanitize(html)
        soup = _soup(blob.data)
        assert soup.find_all(["script", "iframe", "object", "embed"]) == []
        assert soup.p is not None and soup.p.get_text() == "Text"

    @pytest.mark.asyncio
    async def test_resource_hints_removed_stylesheets_kept(self):
        html = (
            "<html><head>"
            "<link rel='preload' href='/font.woff2'><link rel='prefetch' href='/next'>"
            "<link rel='manifest' href='/app.webmanifest'><link rel='stylesheet' href='/site.css'>"
            "</head><body></body></html>"
        )
        soup = _soup((await Sanitizer().sanitize(html)).data)
        rels = [link.get("rel") for link in soup.find_all("link")]
        assert rels == [["stylesheet"]]

    @pytest.mark.asyncio
    async def test_csp_and_refresh_meta_removed(self):
        html = (
            "<html><head>"
            "<meta http-equiv='Content-Security-Policy' content=\"default-src 'none'\">"
            "<meta http-equiv='refresh' content='0; url=https://elsewhere'>"
            "<meta name='description' content='kept'>"
            "</head><body></body></html>"
        )
        soup = _soup((await Sanitizer().sanitize(html)).data)
        metas = soup.find_all("meta")
        assert len(metas) == 1
        assert metas[0]["name"] == "description"

    @pytest.mark.asyncio
    async def test_noscript_content_kept(self):
        html = "<html><body><noscript><p>Enable JS</p></noscript></body></html>"
        soup = _soup((await Sanitizer().sanitize(html)).data)
        assert soup.noscript is not None

    @pytest.mark.asyncio
    async def test_html_manifest_attribute_removed(self):
        soup = _soup((await Sanitizer().sanitize("<html manifest='app.appcache'><body></body></html>")).data)
        assert soup.html is not None
        assert not soup.html.has_attr("manifest")


class TestEventHandlers:
    """Test stripping of inline handlers and javascript: URLs."""

    def test_on_attributes_removed(self):
        soup = BeautifulSoup("<body onload='x()'><a onclick='y()' OnMouseOver='z()' href='/ok'>link</a></body>", "html.parser")
        removed = strip_event_handlers(soup)
        assert removed == 3
        assert soup.a is not None
        assert dict(soup.a.attrs) == {"href": "/ok"}

    def test_javascript_urls_removed(self):
        soup = BeautifulSoup(
            "<a href='javascript:evil()'>a</a><a href=' JaVaScRiPt:evil()'>b</a><a href='java\tscript:x'>c</a><a href='/safe'>d</a>",
            "html.parser",
        )
        strip_event_handlers(soup)
        assert [a.get("href") for a in soup.find_all("a")] == [None, None, None, "/safe"]

    def test_form_action_javascript_removed(self):
        soup = BeautifulSoup("<form action='javascript:submit()'><button formaction='javascript:x()'>go</button></form>", "html.parser")
        strip_event_handlers(soup)
        assert soup.form is not None and not soup.form.has_attr("action")
        assert soup.button is not None and not soup.button.has_attr("formaction")


class TestEphemeralUi:
    """Test removal of modals, consent banners and credential pickers."""

    def test_modals_removed(self):
        soup = BeautifulSoup(
            "<body><dialog open>Subscribe!</dialog><div role='dialog'>Login</div>"
            "<div aria-modal='true'>Overlay</div><div role='alertdialog'>Alert</div><p>Story</p></body>",
            "html.parser",
        )
        assert remove_ephemeral_ui(soup) == 4
        assert soup.get_text() == "Story"

    def test_consent_banners_removed(self):
        soup = BeautifulSoup(
            "<body><div id='cookie-banner'>We use cookies</div><section class='gdpr-notice'>GDPR</section>"
            "<div id='onetrust-consent-sdk'>OT</div><div class='cc-window'>CC</div><p>Story</p></body>",
            "html.parser",
        )
        remove_ephemeral_ui(soup)
        assert soup.get_text() == "Story"

    def test_credential_picker_removed(self):
        soup = BeautifulSoup(
            "<body><div id='credential_picker_container'>Sign in with Google</div><div class='g_id_signin'></div><p>Story</p></body>",
            "html.parser",
        )
        remove_ephemeral_ui(soup)
        assert soup.get_text() == "Story"

    def test_article_mentioning_cookies_in_text_kept(self):
        soup = BeautifulSoup("<body><article><p>Cookie recipes</p></article></body>", "html.parser")
        assert remove_ephemeral_ui(soup) == 0
        assert soup.article is not None

    def test_nested_overlays_counted_once(self):
        soup = BeautifulSoup("<body><div id='consent-wrapper'><div role='dialog'>Accept</div></div></body>", "html.parser")
        assert remove_ephemeral_ui(soup) == 2
        assert soup.find("div") is None


class TestCharset:
    def test_charset_declared_utf8(self):
        soup = BeautifulSoup(
            "<head><meta charset='iso-8859-1'><meta http-equiv='Content-Type' content='text/html; charset=iso-8859-1'></head>",
            "html.parser",
        )
        normalize_charset(soup)
        metas = soup.find_all("meta")
        assert len(metas) == 1
        assert metas[0]["charset"] == "utf-8"


class TestImageInlining:
    """Test resource inlining of raster images."""

    @pytest.mark.asyncio
    async def test_relative_image_inlined(self, png_bytes: bytes):
        fetcher = StaticImageFetcher({"https://example.com/img/photo.png": InlineImage(png_bytes, "image/png")})
        page = RenderedPage(html="<html><body><img src='/img/photo.png' srcset='/img/photo@2x.png 2x' sizes='100vw'></body></html>", url=PAGE_URL)
        soup = _soup((await Sanitizer(fetcher).sanitize(page)).data)
        img = soup.img
        assert img is not None
        assert str(img["src"]).startswith("data:image/png;base64,")
        assert not img.has_attr("srcset")
        assert not img.has_attr("sizes")
        assert fetcher.requested == ["https://example.com/img/photo.png"]

    @pytest.mark.asyncio
    async def test_base_href_used_for_resolution(self, png_bytes: bytes):
        fetcher = StaticImageFetcher({"https://cdn.example.net/assets/a.png": InlineImage(png_bytes, "image/png")})
        page = RenderedPage(html="<html><head><base href='https://cdn.example.net/assets/'></head><body><img src='a.png'></body></html>", url=PAGE_URL)
        soup = _soup((await Sanitizer(fetcher).sanitize(page)).data)
        assert soup.img is not None and str(soup.img["src"]).startswith("data:image/png")
        assert soup.base is not None

    @pytest.mark.asyncio
    async def test_failed_image_left_unresolved(self):
        fetcher = StaticImageFetcher()
        page = RenderedPage(html="<html><body><img src='https://broken.example/x.png'></body></html>", url=PAGE_URL)
        soup = _soup((await Sanitizer(fetcher).sanitize(page)).data)
        assert soup.img is not None
        assert soup.img["src"] == "https://broken.example/x.png"

    @pytest.mark.asyncio
    async def test_duplicate_urls_fetched_once(self, png_bytes: bytes):
        fetcher = StaticImageFetcher({"https://example.com/logo.png": InlineImage(png_bytes, "image/png")})
        page = RenderedPage(html="<img src='/logo.png'><img src='https://example.com/logo.png'>", url=PAGE_URL)
        soup = _soup((await Sanitizer(fetcher).sanitize(page)).data)
        assert all(str(img["src"]).startswith("data:") for img in soup.find_all("img"))
        assert fetcher.requested == ["https://example.com/logo.png"]

    @pytest.mark.asyncio
    async def test_picture_sources_removed_after_inlining(self, png_bytes: bytes):
        fetcher = StaticImageFetcher({"https://example.com/hero.png": InlineImage(png_bytes, "image/png")})
        page = RenderedPage(
            html="<picture><source srcset='/hero.webp' type='image/webp'><img src='/hero.png'></picture>",
            url=PAGE_URL,
        )
        soup = _soup((await Sanitizer(fetcher).sanitize(page)).data)
        assert soup.find("source") is None
        assert soup.picture is not None and soup.picture.img is not None

    @pytest.mark.asyncio
    async def test_data_and_non_http_sources_skipped(self):
        fetcher = StaticImageFetcher()
        page = RenderedPage(html="<img src='data:image/gif;base64,R0lGOD'><img src='ftp://example.com/a.png'><img>", url=PAGE_URL)
        await Sanitizer(fetcher).sanitize(page)
        assert fetcher.requested == []

    @pytest.mark.asyncio
    async def test_slow_image_times_out(self):
        class SlowFetcher:
            async def fetch(self, url: str) -> InlineImage:
                await asyncio.sleep(10)
                raise AssertionError("unreachable")

        page = RenderedPage(html="<img src='https://slow.example/a.png'>", url=PAGE_URL)
        soup = _soup((await Sanitizer(SlowFetcher(), fetch_timeout=0.01).sanitize(page)).data)
        assert soup.img is not None and soup.img["src"] == "https://slow.example/a.png"

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, png_bytes: bytes):
        class CountingFetcher:
            def __init__(self) -> None:
                self.active = 0
                self.peak = 0

            async def fetch(self, url: str) -> InlineImage:
                self.active += 1
                self.peak = max(self.peak, self.active)
                await asyncio.sleep(0.01)
                self.active -= 1
                return InlineImage(png_bytes, "image/png")

        fetcher = CountingFetcher()
        html = "".join(f"<img src='/img/{i}.png'>" for i in range(10))
        blob = await Sanitizer(fetcher, max_concurrency=3).sanitize(RenderedPage(html=html, url=PAGE_URL))
        assert fetcher.peak <= 3
        assert blob.data.count(b"data:image/png") == 10

    @pytest.mark.asyncio
    async def test_fetch_error_does_not_block_other_images(self, png_bytes: bytes):
        class MixedFetcher:
            async def fetch(self, url: str) -> InlineImage:
                if "bad" in url:
                    raise ImageFetchError("nope")
                return InlineImage(png_bytes, "image/png")

        page = RenderedPage(html="<img src='/bad.png'><img src='/good.png'>", url=PAGE_URL)
        soup = _soup((await Sanitizer(MixedFetcher()).sanitize(page)).data)
        srcs = [str(img["src"]) for img in soup.find_all("img")]
        assert srcs[0] == "/bad.png"
        assert srcs[1].startswith("data:image/png")


class TestSanitize:
    """Test the sanitize entry point."""

    @pytest.mark.asyncio
    async def test_bytes_pass_through_unchanged(self):
        data = b"%PDF-1.7 <script>not html</script>"
        blob = await Sanitizer().sanitize(data, filename="doc.pdf")
        assert blob.data == data
        assert blob.filename == "doc.pdf"

    @pytest.mark.asyncio
    async def test_default_filenames(self):
        assert (await Sanitizer().sanitize(b"raw")).filename == UPLOAD_FILENAME
        assert (await Sanitizer().sanitize("<p>x</p>")).filename == DOCUMENT_FILENAME

    @pytest.mark.asyncio
    async def test_title_extracted(self):
        blob = await Sanitizer().sanitize("<html><head><title> Breaking News </title></head></html>")
        assert blob.title == "Breaking News"

    @pytest.mark.asyncio
    async def test_title_falls_back_to_rendered_title(self):
        blob = await Sanitizer().sanitize(RenderedPage(html="<p>no title</p>", title="From Browser"))
        assert blob.title == "From Browser"

    @pytest.mark.asyncio
    async def test_deterministic(self):
        html = "<html><body><div id='cookie-notice'>c</div><p onclick='x()'>Story</p><script>1</script></body></html>"
        first = await Sanitizer().sanitize(html)
        second = await Sanitizer().sanitize(html)
        assert first.data == second.data

    @pytest.mark.asyncio
    async def test_idempotent(self, png_bytes: bytes):
        fetcher = StaticImageFetcher({"https://example.com/a.png": InlineImage(png_bytes, "image/png")})
        html = (
            "<html><head><meta charset='latin1'><title>T</title><script>x</script></head>"
            "<body><dialog>Hi</dialog><img src='/a.png'><a href='javascript:x'>l</a><p>Body &amp; more</p></body></html>"
        )
        sanitizer = Sanitizer(fetcher)
        once = await sanitizer.sanitize(RenderedPage(html=html, url=PAGE_URL))
        twice = await sanitizer.sanitize(RenderedPage(html=once.data.decode("utf-8"), url=PAGE_URL))
        assert twice.data == once.data

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "html",
        [
            "<!DOCTYPE html><html><head><title>T</title></head><body></br><p/>x<br/></body></html>",
            "<!DOCTYPE html>\n\n  <html><body><p>x</p></body></html>",
        ],
    )
    async def test_idempotent_with_doctype(self, html: str):
        sanitizer = Sanitizer()
        once = await sanitizer.sanitize(html)
        twice = await sanitizer.sanitize(once.data.decode("utf-8"))
        assert twice.data == once.data
        assert once.data.startswith(b"<!DOCTYPE html>\n<html>")

    @pytest.mark.asyncio
    async def test_partial_document_still_sanitized(self):
        blob = await Sanitizer().sanitize("<html><body><p>Loaded part<script>x")
        soup = _soup(blob.data)
        assert soup.find("script") is None
        assert "Loaded part" in soup.get_text()

    @pytest.mark.asyncio
    async def test_from_settings(self):
        from timecapsule.sanitizer import HttpImageFetcher
        from timecapsule.settings import Settings

        sanitizer = Sanitizer.from_settings(Settings(image_fetch_concurrency=2, image_fetch_timeout=3.0))
        assert isinstance(sanitizer._fetcher, HttpImageFetcher)  # pyright: ignore[reportPrivateUsage]
        assert sanitizer._max_concurrency == 2  # pyright: ignore[reportPrivateUsage]
