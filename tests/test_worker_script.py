"""Tests for the generated edge worker script."""

import json
import re
import shutil
import subprocess

import pytest

from app.models.worker_config import WorkerConfig
from app.services.edge import CONTENT_TYPES, HTML_CACHE_CONTROL, UTM_KEYS
from app.services.worker import get_worker_script

NODE = shutil.which("node")

CONFIG = WorkerConfig(
    r2BucketBinding="acme",
    collectEndpoint="https://api.example.com/api/pulse/collect",
    siteId="site-123",
    fallbackOrigin="https://old.example.com",
    experiments=[
        {"pageSlug": "landing", "variants": [{"key": "a", "weight": 1}, {"key": "b", "weight": 3}]},
        {"pageSlug": "hello", "pageType": "post", "variants": [{"key": "x", "isControl": True}, {"key": "y"}]},
    ],
    edgeRules=[{"type": "utm_persist", "enabled": True}],
)


def _embedded_config(script: str) -> dict:
    match = re.search(r"^const CONFIG = (.*?);$", script, re.S | re.M)
    return json.loads(match.group(1))


def run_js(code: str, timeout: int = 20) -> subprocess.CompletedProcess:
    """Run JS code via Node.js and return result."""
    return subprocess.run(["node", "-e", code], capture_output=True, text=True, timeout=timeout)


# ---------------------------------------------------------------------------
# Generated source
# ---------------------------------------------------------------------------

class TestWorkerSource:
    def test_header_names_site_and_prefix(self):
        script = get_worker_script(CONFIG)
        assert "// Site ID:   site-123" in script
        assert "// R2 prefix: acme" in script
        assert "export default {" in script

    def test_deterministic(self):
        assert get_worker_script(CONFIG) == get_worker_script(CONFIG)

    def test_embedded_config(self):
        embedded = _embedded_config(get_worker_script(CONFIG))
        assert embedded["prefix"] == "acme"
        assert embedded["fallbackOrigin"] == "https://old.example.com"
        assert embedded["experiments"][0] == {
            "route": "landing",
            "controlKeys": ["a"],
            "variants": [{"key": "a", "weight": 1.0}, {"key": "b", "weight": 3.0}],
        }
        assert embedded["experiments"][1]["route"] == "blog/hello"
        assert embedded["experiments"][1]["controlKeys"] == ["x"]
        assert embedded["edgeRules"] == [{"type": "utm_persist", "enabled": True}]

    def test_shares_constant_tables(self):
        embedded = _embedded_config(get_worker_script(CONFIG))
        assert embedded["contentTypes"] == CONTENT_TYPES
        assert embedded["utmKeys"] == list(UTM_KEYS)
        assert embedded["htmlCacheControl"] == HTML_CACHE_CONTROL

    def test_popup_endpoint_derived_from_collect(self):
        embedded = _embedded_config(get_worker_script(CONFIG))
        assert 'var ep="https://api.example.com/api/pulse/popups"' in embedded["popupScript"]

    def test_config_cannot_break_out_of_script(self):
        config = CONFIG.model_copy(update={"site_id": "x</script><script>alert(1)"})
        script = get_worker_script(config)
        assert "</script><script>" not in script.split("const CONFIG = ", 1)[1]

    def test_multiline_site_id_stays_in_comment(self):
        config = CONFIG.model_copy(update={"site_id": "a\nalert(1)"})
        assert "// Site ID:   a alert(1)" in get_worker_script(config)


# ---------------------------------------------------------------------------
# Runtime behaviour under Node.js
# ---------------------------------------------------------------------------

_HARNESS = """
__SCRIPT__

const docs = {
  "acme/landing/index.html": "<html><head></head><body>A<form></form></body></html>",
  "acme/landing/__variant_b/index.html": "<html><head></head><body>B<form></form></body></html>",
};
const env = { R2: { get: async (key) => key in docs
  ? { body: docs[key], text: async () => docs[key] } : null } };

(async () => {
  const counts = { a: 0, b: 0 };
  for (let i = 0; i < 4000; i++) {
    const res = await worker.fetch(new Request("https://acme.example.com/landing/"), env);
    const cookie = res.headers.get("Set-Cookie");
    counts[cookie.split(";")[0].split("=")[1]]++;
  }
  const sticky = await worker.fetch(new Request(
    "https://acme.example.com/landing?utm_source=news",
    { headers: { Cookie: "_ab_landing=b" } }), env);
  const body = await sticky.text();
  console.log(JSON.stringify({
    counts,
    stickyCookie: sticky.headers.get("Set-Cookie"),
    stickyBody: body,
  }));
})();
"""


@pytest.mark.skipif(NODE is None, reason="node is not installed")
class TestWorkerRuntime:
    def _run(self):
        script = get_worker_script(CONFIG).replace("export default {", "const worker = {")
        result = run_js(_HARNESS.replace("__SCRIPT__", script))
        assert result.returncode == 0, result.stderr
        return json.loads(result.stdout)

    def test_weighted_split_and_sticky_assignment(self):
        out = self._run()
        share_b = out["counts"]["b"] / 4000
        assert 0.7 < share_b < 0.8
        assert out["stickyCookie"] is None
        assert "B<form>" in out["stickyBody"]
        assert '<meta name="x-variant" content="b">' in out["stickyBody"]
        assert '<input type="hidden" name="utm_source" value="news">' in out["stickyBody"]
