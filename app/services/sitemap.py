"""Discovery artifacts: sitemap.xml, robots.txt and the RSS feed."""

from datetime import datetime
from typing import Iterable, List, Sequence

from app.models.page import LandingPage
from app.services.content import escape_xml, excerpt, to_iso, to_rfc822
from app.services.routes import page_url

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"

# Number of most recent posts listed in feed.xml
RSS_ITEM_LIMIT = 20


def build_sitemap(site_url: str, pages: Iterable[LandingPage], now: datetime) -> str:
    """Return a sitemap with one ``<url>`` per page.

    ``<lastmod>`` is the date part of the page's modification time (*now*
    when unknown).
    """
    entries: List[str] = []
    for page in pages:
        loc = page_url(site_url, page.page_type, page.slug)
        lastmod = to_iso(page.modified_at, now).split("T")[0]
        entries.append(
            f"  <url>\n    <loc>{escape_xml(loc)}</loc>\n    <lastmod>{lastmod}</lastmod>\n  </url>"
        )

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<urlset xmlns="{SITEMAP_NAMESPACE}">\n'
        + "\n".join(entries)
        + "\n</urlset>"
    )


def build_robots_txt(site_url: str) -> str:
    return f"User-agent: *\nAllow: /\nSitemap: {site_url}/sitemap.xml"


def build_rss_feed(
    site_name: str,
    site_url: str,
    posts: Sequence[LandingPage],
    now: datetime,
) -> str:
    """Return an RSS 2.0 feed of the first :data:`RSS_ITEM_LIMIT` *posts*.

    *posts* must already be ordered most recent first.
    """
    items: List[str] = []
    for post in posts[:RSS_ITEM_LIMIT]:
        link = escape_xml(page_url(site_url, post.page_type, post.slug))
        # CDATA cannot contain its own terminator
        description = excerpt(post.content).replace("]]>", "]]]]><![CDATA[>")
        items.append(
            "    <item>\n"
            f"      <title>{escape_xml(post.title)}</title>\n"
            f"      <link>{link}</link>\n"
            f"      <pubDate>{to_rfc822(post.published_at, now)}</pubDate>\n"
            f"      <guid>{link}</guid>\n"
            f"      <description><![CDATA[{description}]]></description>\n"
            "    </item>"
        )

    name = escape_xml(site_name)
    base = escape_xml(site_url)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">\n'
        "  <channel>\n"
        f"    <title>{name}</title>\n"
        f"    <link>{base}</link>\n"
        f"    <description>{name} Blog</description>\n"
        f'    <atom:link href="{base}/feed.xml" rel="self" type="application/rss+xml"/>\n'
        + "".join(item + "\n" for item in items)
        + "  </channel>\n</rss>"
    )
