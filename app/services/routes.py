"""Canonical URLs, artifact paths and edge route keys for site pages.

Every location is derived from a page's kind and slug only:

=========  ==================  =============================
kind       canonical path      artifact
=========  ==================  =============================
post       ``/blog/<slug>/``   ``blog/<slug>/index.html``
index      ``/``               ``index.html``
other      ``/<slug>/``        ``<slug>/index.html``
=========  ==================  =============================

Variant documents live at ``<base>/__variant_<key>/index.html``.
"""

from typing import Optional

from app.config import SUBDOMAIN_ROOT
from app.models.page import PageKind
from app.models.site import LandingSite

INDEX_SLUG = "index"
VARIANT_DIR_PREFIX = "__variant_"


def resolve_site_url(site: LandingSite) -> str:
    """Base URL of *site*: custom domain, then subdomain, else empty."""
    if site.domain:
        return f"https://{site.domain}"
    if site.subdomain:
        return f"https://{site.subdomain}.{SUBDOMAIN_ROOT}"
    return ""


def route_key(kind: PageKind, slug: str) -> str:
    """Directory of the page relative to the site root, ``index`` for the root."""
    if kind is PageKind.post:
        return f"blog/{slug}"
    if slug == INDEX_SLUG:
        return INDEX_SLUG
    return slug


def page_path(kind: PageKind, slug: str) -> str:
    key = route_key(kind, slug)
    return "/" if key == INDEX_SLUG else f"/{key}/"


def page_url(site_url: str, kind: PageKind, slug: str) -> str:
    return site_url + page_path(kind, slug)


def artifact_path(kind: PageKind, slug: str, variant_key: Optional[str] = None) -> str:
    """Object-store path (relative to the site prefix) of a built document."""
    key = route_key(kind, slug)
    base = "" if key == INDEX_SLUG else f"{key}/"
    if variant_key:
        base += f"{VARIANT_DIR_PREFIX}{variant_key}/"
    return base + "index.html"
