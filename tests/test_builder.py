"""Tests for the site builder using the built-in Clean Blog template."""

import json
import re
from datetime import datetime, timezone

from app.models.page import BuildPageInput, FormEmbed, PageKind, PageVariant
from app.models.site import LandingSite, NavLink
from app.models.template import LandingTemplate
from app.services.builder import build_site
from app.themes.clean_blog import CLEAN_BLOG

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

SITE = LandingSite(
    id="site-1",
    name="Test Site",
    domain="example.com",
    nav_links=[NavLink(url="/about/", label="About")],
)


def _page(slug: str, kind: PageKind = PageKind.page, **kwargs) -> BuildPageInput:
    defaults = {
        "id": f"id-{slug}",
        "slug": slug,
        "page_type": kind,
        "title": slug.replace("-", " ").title(),
        "content": "<p>Body text.</p>",
        "is_published": True,
    }
    defaults.update(kwargs)
    return BuildPageInput(**defaults)


def _post(slug: str, published: datetime, **kwargs) -> BuildPageInput:
    return _page(slug, PageKind.post, published_at=published, **kwargs)


def _build(pages, site=SITE, template=CLEAN_BLOG):
    return build_site(template, site, pages, now=NOW)


def _json_ld(html: str):
    blocks = re.findall(r'<script type="application/ld\+json">(.*?)</script>', html, re.S)
    return [json.loads(block) for block in blocks if block.strip()]


# ---------------------------------------------------------------------------
# Page selection and URLs
# ---------------------------------------------------------------------------

class TestPublishing:
    def test_unpublished_pages_are_skipped(self):
        result = _build([_page("live"), _page("draft", is_published=False)])
        assert [p.slug for p in result.pages] == ["live"]
        assert "draft" not in result.sitemap

    def test_urls_by_kind(self):
        result = _build([
            _page("index", PageKind.index),
            _post("hello", NOW),
            _page("about"),
        ])
        urls = {p.slug: p.url for p in result.pages}
        assert urls == {
            "index": "https://example.com/",
            "hello": "https://example.com/blog/hello/",
            "about": "https://example.com/about/",
        }

    def test_subdomain_site_url(self):
        site = LandingSite(id="s", name="S", subdomain="acme")
        result = _build([_page("about")], site=site)
        assert result.pages[0].url == "https://acme.seo-os.com/about/"

    def test_unpublished_page_excluded_from_sitemap(self):
        result = _build([_post("live", NOW), _page("hidden", is_published=False)])
        assert len(result.pages) == 1
        assert result.sitemap.count("<url>") == 1

    def test_empty_input(self):
        result = _build([])
        assert result.pages == []
        assert "<urlset" in result.sitemap
        assert "<item>" not in result.rss_feed


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

class TestPostRendering:
    def _render_post(self, **kwargs):
        post = _post(
            "hello-world",
            datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            content='<h2 id="intro">Intro</h2><p>Some text.</p>',
            tags=["Python Tips"],
            author_name="Sam",
            reading_time=4,
            word_count=900,
            **kwargs,
        )
        return _build([post]).pages[0]

    def test_passes_default_rules(self):
        page = self._render_post(featured_image_url="https://cdn.example.com/a.png")
        assert page.validation.valid, page.validation.issues

    def test_head_and_meta(self):
        html = self._render_post().html
        assert "<title>Hello World | Test Site</title>" in html
        assert '<link rel="canonical" href="https://example.com/blog/hello-world/">' in html
        assert '<time datetime="2024-01-02T03:04:05.000Z">January 2, 2024</time>' in html
        assert "4 min read" in html
        assert '<span class="author">Sam</span>' in html

    def test_toc_and_tags(self):
        html = self._render_post().html
        assert '<a href="#intro">Intro</a>' in html
        assert '<a href="/tag/python-tips/" rel="tag">Python Tips</a>' in html

    def test_article_and_breadcrumb_schema(self):
        schemas = {s["@type"]: s for s in _json_ld(self._render_post().html)}
        article = schemas["BlogPosting"]
        assert article["headline"] == "Hello World"
        assert article["wordCount"] == 900
        assert article["author"] == {"@type": "Person", "name": "Sam"}
        crumbs = schemas["BreadcrumbList"]["itemListElement"]
        assert [c["name"] for c in crumbs] == ["Home", "Blog", "Hello World"]
        assert [c["position"] for c in crumbs] == [1, 2, 3]

    def test_breadcrumb_trail_marks_current_page(self):
        html = self._render_post().html
        assert '<a href="https://example.com/blog/">Blog</a>' in html
        assert '<span aria-current="page">Hello World</span>' in html

    def test_content_is_not_escaped(self):
        html = self._render_post().html
        assert '<h2 id="intro">Intro</h2>' in html

    def test_title_is_escaped(self):
        post = _post("x", NOW, title="Fish & <Chips>")
        html = _build([post]).pages[0].html
        assert "<h1>Fish &amp; &lt;Chips&gt;</h1>" in html


class TestSiteLevelRendering:
    def test_theme_overrides(self):
        site = SITE.model_copy(update={"config": {"colors": {"accent": "#00ff00"}}})
        html = _build([_page("about")], site=site).pages[0].html
        assert "--color-accent: #00ff00;" in html
        assert "var(--color-accent)" not in html

    def test_nav_links_and_year(self):
        html = _build([_page("about")]).pages[0].html
        assert '<a href="/about/">About</a>' in html
        assert "&copy; 2024 Test Site" in html

    def test_index_lists_posts_most_recent_first(self):
        pages = [
            _page("index", PageKind.index),
            _post("older", datetime(2024, 1, 1, tzinfo=timezone.utc)),
            _post("newer", datetime(2024, 5, 1, tzinfo=timezone.utc)),
        ]
        index = next(p for p in _build(pages).pages if p.slug == "index")
        assert index.html.index("/blog/newer/") < index.html.index("/blog/older/")
        assert index.validation.valid, index.validation.issues

    def test_missing_layout_falls_back_to_page(self):
        template = LandingTemplate(layouts={"page": "<p>{{title}}</p>"})
        result = _build([_post("x", NOW)], template=template)
        assert result.pages[0].html == "<p>X</p>"

    def test_deterministic(self):
        pages = [_page("index", PageKind.index), _post("a", NOW), _page("about")]
        first = _build(pages)
        second = _build(pages)
        assert first.model_dump() == second.model_dump()


# ---------------------------------------------------------------------------
# Variants and forms
# ---------------------------------------------------------------------------

class TestVariants:
    def test_one_extra_document_per_non_control_variant(self):
        page = _page(
            "landing",
            variants=[
                PageVariant(variant_key="a", is_control=True),
                PageVariant(variant_key="b", title="Buy Now"),
                PageVariant(variant_key="C", content="<p>Variant C</p>"),
            ],
        )
        result = _build([page])
        assert [p.variant_key for p in result.pages] == [None, "b", "c"]
        assert {p.url for p in result.pages} == {"https://example.com/landing/"}
        assert {p.page_id for p in result.pages} == {"id-landing"}

    def test_variant_overrides(self):
        page = _page("landing", variants=[PageVariant(variant_key="b", title="Buy Now", content="<p>B body</p>")])
        control, variant = _build([page]).pages
        assert "<h1>Buy Now</h1>" in variant.html
        assert "<p>B body</p>" in variant.html
        assert "<p>Body text.</p>" not in variant.html
        # canonical stays the parent's
        assert '<link rel="canonical" href="https://example.com/landing/">' in variant.html
        assert "<h1>Landing</h1>" in control.html


class TestForms:
    def test_form_scripts_allowed_on_pages_with_forms(self):
        form = FormEmbed(
            form_id="quiz",
            position="placeholder",
            placeholder_id="quiz",
            form_html='<form class="lf-quiz"></form><script>function lfQuizNav(){}</script>',
        )
        page = _page("quiz", content="<p>Intro</p>{{FORM:quiz}}", forms=[form])
        built = _build([page]).pages[0]
        assert '<form class="lf-quiz"></form>' in built.html
        assert built.validation.valid, built.validation.issues

    def test_inline_script_without_forms_fails(self):
        page = _page("bad", content="<script>track()</script>")
        built = _build([page]).pages[0]
        assert built.validation.valid is False
        assert "perf.zero_js" in [issue.rule for issue in built.validation.errors]
