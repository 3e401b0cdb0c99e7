"""Tests for content utilities and discovery artifacts (sitemap, robots, RSS)."""

from datetime import datetime, timedelta, timezone
from xml.etree import ElementTree

from app.models.page import FormEmbed, LandingPage, PageKind
from app.services.content import (
    escape_xml,
    excerpt,
    extract_toc,
    format_display_date,
    inject_forms,
    tag_slug,
    to_iso,
    to_rfc822,
)
from app.services.sitemap import RSS_ITEM_LIMIT, build_robots_txt, build_rss_feed, build_sitemap

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _post(slug: str, published: datetime, **kwargs) -> LandingPage:
    return LandingPage(
        id=slug, slug=slug, page_type=PageKind.post, title=slug.title(),
        is_published=True, published_at=published, **kwargs,
    )


# ---------------------------------------------------------------------------
# Slugs, TOC, excerpts
# ---------------------------------------------------------------------------

class TestTagSlug:
    def test_basic(self):
        assert tag_slug("Python Tips") == "python-tips"

    def test_accents_and_symbols(self):
        assert tag_slug("Café & Crème!") == "cafe-creme"

    def test_leading_and_trailing_separators_stripped(self):
        assert tag_slug("  --SEO--  ") == "seo"


class TestExtractToc:
    def test_only_h2_with_id(self):
        html = '<h2 id="one">One</h2><h2>Skip</h2><h3 id="x">No</h3><h2 id="two"><em>Two</em></h2>'
        assert extract_toc(html) == [{"id": "one", "text": "One"}, {"id": "two", "text": "Two"}]

    def test_inline_markup_keeps_word_spacing(self):
        html = '<h2 id="a">Hello <em>big</em>\n  world</h2>'
        assert extract_toc(html) == [{"id": "a", "text": "Hello big world"}]

    def test_empty(self):
        assert extract_toc("") == []


class TestExcerpt:
    def test_strips_tags(self):
        assert excerpt("<p>Hello <b>world</b></p>") == "Hello world"

    def test_truncates_long_text(self):
        text = "x" * 200
        assert excerpt(f"<p>{text}</p>") == "x" * 160 + "..."

    def test_none(self):
        assert excerpt(None) == ""


def test_escape_xml():
    assert escape_xml('a & <b> "c"') == "a &amp; &lt;b&gt; &quot;c&quot;"


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

class TestDates:
    def test_iso_millisecond_precision(self):
        value = datetime(2024, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
        assert to_iso(value) == "2024-01-02T03:04:05.678Z"

    def test_iso_converts_to_utc(self):
        value = datetime(2024, 1, 2, 3, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_iso(value) == "2024-01-02T01:00:00.000Z"

    def test_naive_treated_as_utc(self):
        assert to_iso(datetime(2024, 1, 2)) == "2024-01-02T00:00:00.000Z"

    def test_missing_uses_now(self):
        assert to_iso(None, NOW) == "2024-06-01T12:00:00.000Z"

    def test_rfc822(self):
        assert to_rfc822(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == "Tue, 02 Jan 2024 03:04:05 GMT"

    def test_display_date(self):
        assert format_display_date(datetime(2024, 1, 2, tzinfo=timezone.utc)) == "January 2, 2024"
        assert format_display_date(None) == ""


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------

class TestInjectForms:
    def test_placeholder_replaces_first_token_only(self):
        form = FormEmbed(form_id="f1", position="placeholder", placeholder_id="signup", form_html="<form></form>")
        out = inject_forms("<p>{{FORM:signup}}</p><p>{{FORM:signup}}</p>", [form])
        assert out == "<p><form></form></p><p>{{FORM:signup}}</p>"

    def test_after_content_appended_in_order(self):
        forms = [
            FormEmbed(form_id="a", form_html="<form>A</form>"),
            FormEmbed(form_id="b", form_html="<form>B</form>"),
        ]
        assert inject_forms("<p>x</p>", forms) == "<p>x</p>\n<form>A</form>\n<form>B</form>"

    def test_unknown_placeholder_left_alone(self):
        form = FormEmbed(form_id="f", position="placeholder", placeholder_id="other", form_html="<form></form>")
        assert inject_forms("{{FORM:signup}}", [form]) == "{{FORM:signup}}"


# ---------------------------------------------------------------------------
# Sitemap / robots / RSS
# ---------------------------------------------------------------------------

class TestSitemap:
    def test_one_url_per_page_with_lastmod_date(self):
        pages = [
            LandingPage(id="1", slug="index", page_type=PageKind.index, title="Home", is_published=True),
            _post("hello", NOW, modified_at=datetime(2024, 3, 4, 23, 0, tzinfo=timezone.utc)),
            LandingPage(id="3", slug="about", title="About", is_published=True),
        ]
        xml = build_sitemap("https://ex.com", pages, NOW)
        root = ElementTree.fromstring(xml)
        ns = {"s": "http://www.sitemaps.org/schemas/sitemap/0.9"}
        locs = [el.text for el in root.findall("s:url/s:loc", ns)]
        lastmods = [el.text for el in root.findall("s:url/s:lastmod", ns)]
        assert locs == ["https://ex.com/", "https://ex.com/blog/hello/", "https://ex.com/about/"]
        assert lastmods == ["2024-06-01", "2024-03-04", "2024-06-01"]

    def test_robots(self):
        assert build_robots_txt("https://ex.com") == "User-agent: *\nAllow: /\nSitemap: https://ex.com/sitemap.xml"


class TestRssFeed:
    def test_items_and_cdata(self):
        posts = [_post("a", NOW, content="<p>Tricky ]]> text</p>")]
        xml = build_rss_feed("My & Blog", "https://ex.com", posts, NOW)
        root = ElementTree.fromstring(xml)
        channel = root.find("channel")
        assert channel.find("title").text == "My & Blog"
        item = channel.find("item")
        assert item.find("link").text == "https://ex.com/blog/a/"
        assert item.find("pubDate").text == "Sat, 01 Jun 2024 12:00:00 GMT"
        assert item.find("description").text == "Tricky ]]> text"

    def test_item_limit(self):
        posts = [_post(f"p{i}", NOW - timedelta(days=i)) for i in range(RSS_ITEM_LIMIT + 5)]
        root = ElementTree.fromstring(build_rss_feed("B", "https://ex.com", posts, NOW))
        assert len(root.findall("channel/item")) == RSS_ITEM_LIMIT
