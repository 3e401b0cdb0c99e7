"""Content utilities: slugs, table of contents, excerpts, dates, form injection."""

import re
import unicodedata
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from app.models.page import FormEmbed

EXCERPT_LENGTH = 160

_XML_ESCAPES = {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;"}
_XML_ESCAPE_RE = re.compile(r"[&<>\"]")


def tag_slug(name: str) -> str:
    """Return a URL slug for a tag name (lowercase ASCII, hyphen separated)."""
    slug = unicodedata.normalize("NFKD", name)
    slug = slug.encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", slug.lower()).strip("-")


def extract_toc(html: str) -> List[Dict[str, str]]:
    """Return ``{"id", "text"}`` entries for every ``<h2 id="…">`` in *html*."""
    if not html:
        return []
    soup = BeautifulSoup(html, "lxml")
    items: List[Dict[str, str]] = []
    for heading in soup.find_all("h2", id=True):
        items.append({"id": str(heading["id"]), "text": " ".join(heading.get_text().split())})
    return items


def strip_html(html: str) -> str:
    """Return the text content of an HTML fragment."""
    if not html:
        return ""
    return BeautifulSoup(html, "lxml").get_text().strip()


def excerpt(content: Optional[str], max_length: int = EXCERPT_LENGTH) -> str:
    """Plain-text excerpt of *content*, truncated with ``...`` past *max_length*."""
    if not content:
        return ""
    plain = strip_html(content)
    return plain[:max_length] + "..." if len(plain) > max_length else plain


def escape_xml(value: str) -> str:
    return _XML_ESCAPE_RE.sub(lambda m: _XML_ESCAPES[m.group(0)], value)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from the datastore are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime], now: Optional[datetime] = None) -> str:
    """ISO-8601 timestamp with millisecond precision, e.g. ``2024-01-02T03:04:05.000Z``.

    A missing *value* formats *now* (the current time when not given).
    """
    moment = _as_utc(value or now or utc_now())
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def to_rfc822(value: Optional[datetime], now: Optional[datetime] = None) -> str:
    """RFC-822 timestamp as used by RSS, e.g. ``Tue, 02 Jan 2024 03:04:05 GMT``."""
    return format_datetime(_as_utc(value or now or utc_now()), usegmt=True)


def format_display_date(value: Optional[datetime]) -> str:
    """Human-readable date (``January 2, 2024``); empty when *value* is missing."""
    if value is None:
        return ""
    moment = _as_utc(value)
    return f"{moment.strftime('%B')} {moment.day}, {moment.year}"


# ---------------------------------------------------------------------------
# Lead forms
# ---------------------------------------------------------------------------

def inject_forms(content: str, forms: Sequence[FormEmbed]) -> str:
    """Place form embeds into *content*.

    ``placeholder`` forms replace the first ``{{FORM:<placeholder_id>}}`` token;
    ``after_content`` forms are then appended in order.
    """
    result = content
    for form in forms:
        if form.position == "placeholder" and form.placeholder_id:
            result = result.replace(f"{{{{FORM:{form.placeholder_id}}}}}", form.form_html, 1)

    after = [form.form_html for form in forms if form.position == "after_content"]
    if after:
        result += "\n" + "\n".join(after)
    return result
