"""Site builder: template + site + page records → rendered pages and feeds.

The build is a pure function of its inputs.  Nothing here performs I/O;
writing the result to an object store is the caller's job (see
:mod:`app.services.deploy`).
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Sequence

from app.models.build import BuildResult, BuildResultPage
from app.models.page import BuildPageInput, LandingPage, PageKind, PageVariant
from app.models.site import LandingSite
from app.models.template import LandingTemplate
from app.models.validation import SeoRules
from app.services.content import (
    excerpt,
    extract_toc,
    format_display_date,
    inject_forms,
    tag_slug,
    to_iso,
    utc_now,
)
from app.services.renderer import inject_theme_vars, render
from app.services.routes import page_url, resolve_site_url
from app.services.sitemap import build_robots_txt, build_rss_feed, build_sitemap
from app.services.validator import load_rules, validate

logger = logging.getLogger(__name__)

# Open Graph image size advertised for featured images
IMAGE_WIDTH = "1200"
IMAGE_HEIGHT = "630"

_LAYOUT_KEYS: Dict[PageKind, str] = {
    PageKind.post: "post",
    PageKind.page: "page",
    PageKind.category: "category",
    PageKind.index: "index",
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class SiteContext(NamedTuple):
    """Per-build values shared by every page of a site."""

    site: LandingSite
    site_url: str
    global_data: Dict[str, Any]
    recent_posts: List[Dict[str, Any]]
    rules: SeoRules
    now: datetime


def build_site(
    template: LandingTemplate,
    site: LandingSite,
    pages: Sequence[BuildPageInput],
    rules: Optional[SeoRules] = None,
    now: Optional[datetime] = None,
) -> BuildResult:
    """Render every published page of *site* plus its sitemap, robots.txt and feed.

    Args:
        template: Layouts, partials and stylesheet to render with.
        site: Site identity, addressing and theme overrides.
        pages: Page records with their form embeds and variants.
        rules: Validation rule set; the configured rules file when omitted.
        now: Timestamp substituted for missing dates (current time when omitted).

    Returns:
        A :class:`BuildResult`.  Each non-control variant adds one extra
        entry sharing its parent's ``page_id``, ``slug`` and ``url``.
    """
    now = now or utc_now()
    rules = rules or load_rules()
    site_url = resolve_site_url(site)

    params = template.manifest.params
    colors = {**params.colors, **(site.config.get("colors") or {})}
    fonts = {**params.fonts, **(site.config.get("fonts") or {})}
    css = inject_theme_vars(template.critical_css, colors, fonts)

    published = [page for page in pages if page.is_published]
    posts = sorted(
        (page for page in published if page.page_type is PageKind.post),
        key=_recency,
        reverse=True,
    )

    global_data: Dict[str, Any] = {
        "site_name": site.name,
        "site_url": site_url,
        "year": str(now.year),
        "lang": site.config.get("lang") or "en",
        "nav_links": [link.model_dump() for link in site.nav_links],
        "critical_css": css,
        "analytics_id": site.analytics_id or "",
        "layout": dict(params.layout),
    }
    recent_posts = [
        {
            "title": post.title,
            "url": page_url(site_url, post.page_type, post.slug),
            "iso_date": to_iso(post.published_at, now),
            "formatted_date": format_display_date(post.published_at),
            "reading_time": post.reading_time,
            "excerpt": excerpt(post.content),
        }
        for post in posts
    ]
    ctx = SiteContext(site, site_url, global_data, recent_posts, rules, now)

    results: List[BuildResultPage] = []
    for page in published:
        results.extend(_build_page(template, page, ctx))

    failed = [result for result in results if not result.validation.valid]
    for result in failed:
        logger.warning(
            "Page failed validation: %s",
            result.slug,
            extra={"variant": result.variant_key, "rules": [i.rule for i in result.validation.errors]},
        )
    logger.info(
        "Site built",
        extra={
            "site_id": site.id,
            "pages": len(published),
            "documents": len(results),
            "invalid": len(failed),
        },
    )

    return BuildResult(
        pages=results,
        sitemap=build_sitemap(site_url, published, now),
        robots_txt=build_robots_txt(site_url),
        rss_feed=build_rss_feed(site.name, site_url, posts, now),
    )


def _recency(page: LandingPage) -> datetime:
    moment = page.published_at or page.modified_at
    if moment is None:
        return _EPOCH
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _build_page(
    template: LandingTemplate,
    page: BuildPageInput,
    ctx: SiteContext,
) -> Iterator[BuildResultPage]:
    """Yield the rendered page followed by one document per non-control variant."""
    url = page_url(ctx.site_url, page.page_type, page.slug)
    content = page.content or ""
    if page.forms:
        content = inject_forms(content, page.forms)

    page_data = _page_data(page, url, content, ctx)
    layout = template.layouts.get(_LAYOUT_KEYS[page.page_type]) or template.layouts.get("page", "")
    allow_form_scripts = bool(page.forms)

    html = render(layout, page_data, template.partials)
    yield BuildResultPage(
        page_id=page.id,
        slug=page.slug,
        page_type=page.page_type,
        url=url,
        html=html,
        validation=validate(html, ctx.rules, allow_form_scripts),
    )

    for variant in page.variants:
        if variant.is_control:
            continue
        variant_html = render(layout, _variant_data(page, variant, page_data), template.partials)
        yield BuildResultPage(
            page_id=page.id,
            slug=page.slug,
            page_type=page.page_type,
            url=url,
            html=variant_html,
            validation=validate(variant_html, ctx.rules, allow_form_scripts),
            variant_key=variant.variant_key.lower(),
        )


def _page_data(page: BuildPageInput, url: str, content: str, ctx: SiteContext) -> Dict[str, Any]:
    """Assemble the render context for *page*: site, page and computed fields."""
    description = page.seo_description or excerpt(page.content)
    toc = extract_toc(page.content or "")
    breadcrumbs = _breadcrumbs(ctx.site_url, page, url)

    return {
        **ctx.global_data,
        "title": page.title,
        "seo_title": page.seo_title or f"{page.title} | {ctx.site.name}",
        "seo_description": description,
        "canonical_url": url,
        "og_title": page.seo_title or page.title,
        "og_description": description,
        "og_image": page.og_image or page.featured_image_url or "",
        "content": content,
        "author_name": page.author_name or "",
        "iso_date": to_iso(page.published_at, ctx.now),
        "formatted_date": format_display_date(page.published_at),
        "modified_date": to_iso(page.modified_at, ctx.now) if page.modified_at else None,
        "iso_modified": to_iso(page.modified_at, ctx.now),
        "formatted_modified": format_display_date(page.modified_at),
        "reading_time": page.reading_time,
        "featured_image_url": page.featured_image_url,
        "image_alt": page.title,
        "image_width": IMAGE_WIDTH,
        "image_height": IMAGE_HEIGHT,
        "show_toc": len(toc) > 0,
        "toc_items": toc,
        "tags": [{"name": tag, "slug": tag_slug(tag)} for tag in page.tags or []],
        "breadcrumbs": breadcrumbs,
        "schema_json": _article_schema(page, url, ctx),
        "breadcrumb_schema_json": _breadcrumb_schema(breadcrumbs),
        "posts": ctx.recent_posts,
    }


def _variant_data(page: BuildPageInput, variant: PageVariant, page_data: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay *variant* overrides on the parent's render context.

    Canonical URL, schema and breadcrumbs stay the parent's.
    """
    content = page_data["content"]
    if variant.content is not None:
        content = inject_forms(variant.content, page.forms) if page.forms else variant.content

    return {
        **page_data,
        "title": variant.title or page_data["title"],
        "seo_title": variant.seo_title or page_data["seo_title"],
        "seo_description": variant.seo_description or page_data["seo_description"],
        "og_title": variant.seo_title or page_data["og_title"],
        "og_description": variant.seo_description or page_data["og_description"],
        "content": content,
    }


def _breadcrumbs(site_url: str, page: LandingPage, url: str) -> List[Dict[str, str]]:
    trail = [{"url": site_url or "/", "label": "Home"}]
    if page.page_type is PageKind.post:
        trail.append({"url": f"{site_url}/blog/", "label": "Blog"})
    trail.append({"url": url, "label": page.title})
    return [{**crumb, "position": str(index)} for index, crumb in enumerate(trail, start=1)]


def _json_ld(payload: Dict[str, Any]) -> str:
    # "</" would terminate the surrounding <script> element
    return json.dumps(payload, ensure_ascii=False).replace("</", "<\\/")


def _article_schema(page: LandingPage, url: str, ctx: SiteContext) -> str:
    if page.page_type is not PageKind.post:
        return ""
    schema = {
        "@context": "https://schema.org",
        "@type": "BlogPosting",
        "headline": page.title,
        "description": page.seo_description or excerpt(page.content),
        "image": page.og_image or page.featured_image_url,
        "author": {"@type": "Person", "name": page.author_name or ctx.site.name},
        "publisher": {"@type": "Organization", "name": ctx.site.name},
        "datePublished": to_iso(page.published_at, ctx.now),
        "dateModified": to_iso(page.modified_at, ctx.now),
        "mainEntityOfPage": {"@type": "WebPage", "@id": url},
        "wordCount": page.word_count,
        "articleSection": page.category,
    }
    return _json_ld({key: value for key, value in schema.items() if value})


def _breadcrumb_schema(breadcrumbs: List[Dict[str, str]]) -> str:
    return _json_ld({
        "@context": "https://schema.org",
        "@type": "BreadcrumbList",
        "itemListElement": [
            {
                "@type": "ListItem",
                "position": int(crumb["position"]),
                "name": crumb["label"],
                "item": crumb["url"],
            }
            for crumb in breadcrumbs
        ],
    })
