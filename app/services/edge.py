"""Edge request handling: A/B routing, edge rules and popup injection.

This module is the Python rendition of the script emitted by
:mod:`app.services.worker`.  The generated script embeds the constant tables
defined here, and :func:`handle_request` reproduces its request-time
behaviour against any :class:`ObjectStore`, which is what the local preview
endpoint serves through.

All personalisation is literal substitution on already-built HTML; no
template evaluation happens at request time.
"""

import json
import logging
import re
from types import MappingProxyType
from typing import Callable, Dict, Mapping, NamedTuple, Optional, Protocol, Sequence
from urllib.parse import urlencode, urljoin

import httpx

from app.models.worker_config import (
    ExperimentVariant,
    GeoSwapRule,
    ReferrerSwapRule,
    UtmPersistRule,
    UtmSwapRule,
    WorkerConfig,
)
from app.services.fetcher import fetch_origin
from app.services.renderer import escape_html
from app.services.routes import INDEX_SLUG, VARIANT_DIR_PREFIX

logger = logging.getLogger(__name__)

UTM_KEYS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")

CONTENT_TYPES: Dict[str, str] = {
    "html": "text/html; charset=utf-8",
    "css": "text/css; charset=utf-8",
    "js": "application/javascript; charset=utf-8",
    "mjs": "application/javascript; charset=utf-8",
    "json": "application/json",
    "xml": "application/xml",
    "txt": "text/plain; charset=utf-8",
    "svg": "image/svg+xml",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "avif": "image/avif",
    "gif": "image/gif",
    "ico": "image/x-icon",
    "woff2": "font/woff2",
    "woff": "font/woff",
    "ttf": "font/ttf",
    "eot": "application/vnd.ms-fontobject",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "pdf": "application/pdf",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# 5 min browser / 1 h edge for documents, one year for fingerprinted assets
HTML_CACHE_CONTROL = "public, max-age=300, s-maxage=3600"
ASSET_CACHE_CONTROL = "public, max-age=31536000, immutable"
NOT_FOUND_CACHE_CONTROL = "no-cache"

AB_COOKIE_PREFIX = "_ab_"
AB_COOKIE_MAX_AGE = 30 * 24 * 60 * 60

POWERED_BY = "Landing Engine"

_INDEX_DOC_RE = re.compile(r"/index\.html$")
_FORM_CLOSE_RE = re.compile(r"</form>", re.IGNORECASE)


class ObjectStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        """Return the object stored under *key*, or ``None``."""


class EdgeRequest(NamedTuple):
    path: str
    query: Mapping[str, str] = MappingProxyType({})
    cookie: str = ""
    referrer: str = ""
    country: str = ""


class EdgeResponse(NamedTuple):
    status: int
    headers: Dict[str, str]
    body: bytes


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

def normalize_path(path: str) -> str:
    """Resolve bare and extensionless paths to the ``index.html`` of their directory."""
    if path in ("", "/"):
        return "/index.html"
    if "." not in path.rsplit("/", 1)[-1]:
        return path.rstrip("/") + "/index.html"
    return path


def route_key_for_path(path: str) -> str:
    """Map a normalized path back to the route key experiments are keyed by."""
    return _INDEX_DOC_RE.sub("", path).lstrip("/") or INDEX_SLUG


def variant_path(path: str, variant_key: str) -> str:
    base = _INDEX_DOC_RE.sub("", path)
    if base == "/":
        base = ""
    return f"{base}/{VARIANT_DIR_PREFIX}{variant_key}/index.html"


def extension_of(path: str) -> str:
    segment = path.rsplit("/", 1)[-1]
    return segment.rsplit(".", 1)[-1].lower() if "." in segment else ""


def content_type_for(path: str) -> str:
    return CONTENT_TYPES.get(extension_of(path), DEFAULT_CONTENT_TYPE)


def cache_control_for(path: str) -> str:
    return HTML_CACHE_CONTROL if extension_of(path) == "html" else ASSET_CACHE_CONTROL


# ---------------------------------------------------------------------------
# Experiments
# ---------------------------------------------------------------------------

def cookie_name(route_key: str) -> str:
    return AB_COOKIE_PREFIX + re.sub(r"[^a-z0-9]", "_", route_key, flags=re.IGNORECASE)


def read_cookie(header: str, name: str) -> Optional[str]:
    for part in (header or "").split(";"):
        part = part.strip()
        if part.startswith(name + "="):
            return part[len(name) + 1:]
    return None


def pick_variant(variants: Sequence[ExperimentVariant], draw: float) -> Optional[str]:
    """Weighted pick: *draw* in ``[0, 1)`` is scaled onto the cumulative weights."""
    total = sum(variant.weight for variant in variants)
    if total <= 0:
        return None
    target = draw * total
    cumulative = 0.0
    for variant in variants:
        cumulative += variant.weight
        if target < cumulative:
            return variant.key
    return variants[-1].key


def assignment_cookie(route_key: str, variant_key: str) -> str:
    return (
        f"{cookie_name(route_key)}={variant_key}; Path=/; "
        f"Max-Age={AB_COOKIE_MAX_AGE}; SameSite=Lax"
    )


# ---------------------------------------------------------------------------
# HTML rewriting
# ---------------------------------------------------------------------------

def inject_variant_meta(html: str, variant_key: str) -> str:
    meta = f'<meta name="x-variant" content="{escape_html(variant_key)}">\n'
    return html.replace("<head>", "<head>" + meta, 1)


def inject_utm_fields(html: str, query: Mapping[str, str]) -> str:
    """Add the request's UTM parameters as hidden inputs to every form."""
    inputs = "".join(
        f'<input type="hidden" name="{key}" value="{escape_html(query[key])}">\n'
        for key in UTM_KEYS
        if query.get(key)
    )
    if not inputs:
        return html
    return _FORM_CLOSE_RE.sub(lambda _m: inputs + "</form>", html)


def swap_edge_content(html: str, field: str, value: str) -> str:
    """Replace the content between ``<!--EDGE:field-->`` and ``<!--/EDGE:field-->``."""
    name = re.escape(field)
    pattern = re.compile(rf"(<!--EDGE:{name}-->)[\s\S]*?(<!--/EDGE:{name}-->)")
    return pattern.sub(lambda m: m.group(1) + value + m.group(2), html)


def apply_edge_rules(html: str, config: WorkerConfig, request: EdgeRequest) -> str:
    """Apply enabled edge rules in order: UTM persistence, geo, referrer, UTM source."""
    if config.enabled_rule(UtmPersistRule):
        html = inject_utm_fields(html, request.query)

    country = request.country.upper()
    geo = config.enabled_rule(GeoSwapRule)
    if geo and country:
        for rule in geo.rules:
            if rule.match.upper() == country:
                html = swap_edge_content(html, rule.field, rule.value)

    referrer = request.referrer.lower()
    by_referrer = config.enabled_rule(ReferrerSwapRule)
    if by_referrer and referrer:
        for rule in by_referrer.rules:
            if rule.match.lower() in referrer:
                html = swap_edge_content(html, rule.field, rule.value)

    source = (request.query.get("utm_source") or "").lower()
    by_source = config.enabled_rule(UtmSwapRule)
    if by_source and source:
        for rule in by_source.rules:
            if rule.match.lower() == source:
                html = swap_edge_content(html, rule.field, rule.value)

    return html


def js_literal(value: str) -> str:
    return json.dumps(value).replace("</", "<\\/")


def popup_loader_script(popup_endpoint: str, site_id: str) -> str:
    """Inline loader fetching the active popups for the current path after load."""
    return (
        "<script>"
        "(function(){"
        f"var ep={js_literal(popup_endpoint)};"
        f"var sid={js_literal(site_id)};"
        "fetch(ep+'?site_id='+encodeURIComponent(sid)+'&path='+encodeURIComponent(location.pathname))"
        ".then(function(r){return r.json()})"
        ".then(function(popups){"
        "if(!popups||!popups.length)return;"
        "popups.forEach(function(p){"
        "var d=document.createElement('div');"
        "d.innerHTML=p.popup_html;"
        "if(p.popup_css){"
        "var s=document.createElement('style');"
        "s.textContent=p.popup_css;"
        "document.head.appendChild(s)"
        "}"
        "document.body.appendChild(d);"
        "})"
        "}).catch(function(){});"
        "})();"
        "</script>"
    )


def inject_popup_loader(html: str, config: WorkerConfig) -> str:
    script = popup_loader_script(config.popup_endpoint, config.site_id)
    return html.replace("</body>", script + "\n</body>", 1)


# ---------------------------------------------------------------------------
# Request handling
# ---------------------------------------------------------------------------

async def handle_request(
    config: WorkerConfig,
    store: ObjectStore,
    request: EdgeRequest,
    draw: Callable[[], float],
) -> EdgeResponse:
    """Serve *request* from *store* the way the generated worker does.

    Args:
        config: The site's worker configuration.
        store: Object store holding the built site under ``config.r2_bucket_binding``.
        request: The inbound request.
        draw: Source of uniform random numbers in ``[0, 1)`` for new assignments.
    """
    prefix = config.r2_bucket_binding
    path = normalize_path(request.path)
    route = route_key_for_path(path)

    experiment = config.find_experiment(route)
    variant_key: Optional[str] = None
    new_assignment = False
    if experiment is not None:
        known = {variant.key for variant in experiment.variants}
        from_cookie = read_cookie(request.cookie, cookie_name(route))
        if from_cookie in known:
            variant_key = from_cookie
        else:
            variant_key = pick_variant(experiment.variants, draw())
            new_assignment = variant_key is not None

    base_key = f"{prefix}/{path.lstrip('/')}"
    object_key = base_key
    if variant_key and variant_key not in experiment.control_keys:
        object_key = f"{prefix}/{variant_path(path, variant_key).lstrip('/')}"

    body = store.get(object_key)
    if body is None and object_key != base_key:
        body = store.get(base_key)

    if body is None and config.fallback_origin:
        origin_url = urljoin(config.fallback_origin, request.path)
        if request.query:
            origin_url += "?" + urlencode(request.query)
        try:
            origin = await fetch_origin(origin_url)
        except (ValueError, httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Fallback origin failed for %s – %s", origin_url, exc)
        else:
            return EdgeResponse(origin.status, {"Content-Type": origin.content_type}, origin.body)

    if body is None:
        not_found = store.get(f"{prefix}/404.html")
        if not_found is not None:
            return EdgeResponse(
                404,
                {
                    "Content-Type": CONTENT_TYPES["html"],
                    "Cache-Control": NOT_FOUND_CACHE_CONTROL,
                    "X-Powered-By": POWERED_BY,
                },
                not_found,
            )
        return EdgeResponse(404, {"Content-Type": CONTENT_TYPES["txt"]}, b"Not Found")

    headers = {
        "Content-Type": content_type_for(path),
        "Cache-Control": cache_control_for(path),
        "X-Powered-By": POWERED_BY,
        "X-Site-Id": config.site_id,
    }
    if new_assignment:
        headers["Set-Cookie"] = assignment_cookie(route, variant_key)

    if extension_of(path) == "html":
        html = body.decode("utf-8", errors="replace")
        if variant_key:
            html = inject_variant_meta(html, variant_key)
        html = apply_edge_rules(html, config, request)
        html = inject_popup_loader(html, config)
        body = html.encode("utf-8")

    return EdgeResponse(200, headers, body)
