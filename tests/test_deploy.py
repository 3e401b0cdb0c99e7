"""Tests for deploy file preparation, the local object store and the tracking beacon."""

from datetime import datetime, timezone

import pytest

from app.models.page import BuildPageInput, PageKind, PageVariant
from app.models.site import LandingSite
from app.models.worker_config import WorkerConfig
from app.services.builder import build_site
from app.services.deploy import DeployFile, DirectoryStore, default_prefix, prepare_build_files
from app.services.tracking import get_tracking_script
from app.themes.clean_blog import CLEAN_BLOG

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
SITE = LandingSite(id="site-1", name="Acme", subdomain="acme")


def _result():
    pages = [
        BuildPageInput(id="1", slug="index", page_type=PageKind.index, title="Home", is_published=True),
        BuildPageInput(id="2", slug="hello", page_type=PageKind.post, title="Hello", is_published=True,
                       published_at=NOW, content="<p>Hi</p>"),
        BuildPageInput(id="3", slug="offer", title="Offer", is_published=True, content="<p>Deal</p>",
                       variants=[PageVariant(variant_key="B", title="Better offer")]),
        BuildPageInput(id="4", slug="broken", title="Broken", is_published=True,
                       content="<script>x()</script>"),
    ]
    return build_site(CLEAN_BLOG, SITE, pages, now=NOW)


# ---------------------------------------------------------------------------
# prepare_build_files
# ---------------------------------------------------------------------------

class TestPrepareBuildFiles:
    def test_layout(self):
        paths = [f.path for f in prepare_build_files(_result())]
        assert paths == [
            "index.html",
            "blog/hello/index.html",
            "offer/index.html",
            "offer/__variant_b/index.html",
            "sitemap.xml",
            "robots.txt",
            "feed.xml",
        ]

    def test_invalid_pages_skipped(self):
        paths = [f.path for f in prepare_build_files(_result())]
        assert "broken/index.html" not in paths

    def test_variants_of_invalid_page_skipped(self):
        pages = [
            BuildPageInput(id="5", slug="landing", title="Landing", is_published=True,
                           content="<script>x()</script>",
                           variants=[PageVariant(variant_key="B", content="<p>Clean</p>")]),
        ]
        result = build_site(CLEAN_BLOG, SITE, pages, now=NOW)
        assert [(p.variant_key, p.validation.valid) for p in result.pages] == [(None, False), ("b", True)]

        paths = [f.path for f in prepare_build_files(result)]
        assert "landing/index.html" not in paths
        assert "landing/__variant_b/index.html" not in paths

    def test_content_types(self):
        files = {f.path: f for f in prepare_build_files(_result())}
        assert files["index.html"].content_type == "text/html; charset=utf-8"
        assert files["sitemap.xml"].content_type == "application/xml"
        assert files["robots.txt"].content_type == "text/plain; charset=utf-8"

    def test_tracking_script_before_body_close(self):
        files = prepare_build_files(_result(), tracking_script="<script>beacon()</script>")
        html = files[0].content
        assert html.index("<script>beacon()</script>") < html.index("</body>")
        assert html.count("beacon()") == 1


def test_default_prefix():
    assert default_prefix(SITE) == "acme"
    assert default_prefix(LandingSite(id="x", name="x", domain="www.example.com")) == "www.example.com"
    assert default_prefix(LandingSite(id="a/b c", name="x")) == "a-b-c"


# ---------------------------------------------------------------------------
# DirectoryStore
# ---------------------------------------------------------------------------

class TestDirectoryStore:
    def test_deploy_then_redeploy_skips_unchanged(self, tmp_path):
        store = DirectoryStore(tmp_path)
        files = [DeployFile("index.html", "<p>1</p>", "text/html"), DeployFile("robots.txt", "x", "text/plain")]

        first = store.deploy("acme", files)
        assert (first.uploaded, first.skipped, first.errors) == (2, 0, [])
        assert (tmp_path / "acme" / "index.html").read_text() == "<p>1</p>"

        files[0] = DeployFile("index.html", "<p>2</p>", "text/html")
        second = store.deploy("acme", files)
        assert (second.uploaded, second.skipped) == (1, 1)

    def test_get(self, tmp_path):
        store = DirectoryStore(tmp_path)
        store.put("acme/a.txt", b"data")
        assert store.get("acme/a.txt") == b"data"
        assert store.get("acme/missing.txt") is None
        assert store.get("acme") is None

    def test_keys_cannot_escape_root(self, tmp_path):
        store = DirectoryStore(tmp_path / "root")
        assert store.get("../secret") is None
        with pytest.raises(ValueError):
            store.put("../secret", b"x")

    def test_escaping_file_reported_as_error(self, tmp_path):
        store = DirectoryStore(tmp_path)
        summary = store.deploy("acme", [DeployFile("../../evil.html", "x", "text/html")])
        assert summary.uploaded == 0
        assert len(summary.errors) == 1

    def test_worker_round_trip(self, tmp_path):
        store = DirectoryStore(tmp_path)
        config = WorkerConfig(
            r2_bucket_binding="acme",
            collect_endpoint="/api/pulse/collect",
            site_id="s1",
            experiments=[{"pageSlug": "offer", "variants": [{"key": "a"}, {"key": "b"}]}],
            edge_rules=[{"type": "geo_swap", "enabled": True, "rules": [{"match": "DE", "field": "h", "value": "v"}]}],
        )
        store.save_worker(config, "// script")
        assert store.get("acme/_worker.js") == b"// script"
        assert store.load_worker_config("acme") == config
        assert store.load_worker_config("other") is None


# ---------------------------------------------------------------------------
# Tracking beacon
# ---------------------------------------------------------------------------

class TestTrackingScript:
    def test_contains_site_and_endpoint(self):
        script = get_tracking_script("site-1", "https://api.example.com/collect")
        assert script.startswith("<script>") and script.endswith("</script>")
        assert 'var ep="https://api.example.com/collect";' in script
        assert 'var site="site-1";' in script
        assert "sendBeacon" in script

    def test_default_endpoint(self):
        assert 'var ep="/api/pulse/collect";' in get_tracking_script("s")

    def test_values_are_js_escaped(self):
        script = get_tracking_script("a'</script>")
        assert script.count("</script>") == 1
