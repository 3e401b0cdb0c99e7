"""Build-time SEO and structural validation of rendered HTML.

:func:`validate` checks a rendered document against a :class:`SeoRules` rule
set and classifies every finding as an ``error`` or a ``warning``.  It never
raises; whether warnings block a publish is the caller's decision.

Rule identifiers
----------------
``heading.require_h1`` / ``heading.max_h1`` / ``heading.no_skip``
``meta.canonical`` / ``meta.og_image`` / ``meta.title_length`` / ``meta.description_length``
``content.img_alt``
``perf.css_size`` / ``perf.zero_js`` / ``perf.img_dimensions``
``schema.article`` / ``schema.breadcrumb``
"""

import json
import re
from pathlib import Path
from typing import List, Optional

from app.config import SEO_RULES_PATH
from app.models.validation import SeoRules, ValidationIssue, ValidationResult

_H1_RE = re.compile(r"<h1[\s>]", re.IGNORECASE)
_HEADING_RE = re.compile(r"<h([1-6])[\s>]", re.IGNORECASE)
_CANONICAL_RE = re.compile(r"""<link[^>]+rel=["']canonical["']""", re.IGNORECASE)
_OG_IMAGE_RE = re.compile(r"""<meta[^>]+property=["']og:image["']""", re.IGNORECASE)
_TITLE_RE = re.compile(r"<title>([^<]*)</title>", re.IGNORECASE)
_DESCRIPTION_RE = re.compile(
    r"""<meta[^>]+name=["']description["'][^>]+content=["']([^"']*)["']""", re.IGNORECASE
)
_IMG_RE = re.compile(r"<img[^>]*>", re.IGNORECASE)
_IMG_NO_ALT_RE = re.compile(r"""<img(?![^>]*alt=["'])[^>]*>""", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style>([\s\S]*?)</style>", re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script[\s>][\s\S]*?</script>", re.IGNORECASE)
_JSON_LD_RE = re.compile(r"""type=["']application/ld\+json["']""", re.IGNORECASE)

# Lead-form widgets (popup, quiz, calculator) ship a small inline script
_FORM_SCRIPT_RE = re.compile(r"lf-popup|lf-quiz|lf-calc|lfQuizNav|lfCalcUpdate", re.IGNORECASE)

_ARTICLE_SCHEMA_RE = re.compile(
    r'"@type"\s*:\s*"(Blog|Article|BlogPosting|NewsArticle)"', re.IGNORECASE
)
_BREADCRUMB_SCHEMA_RE = re.compile(r'"@type"\s*:\s*"BreadcrumbList"', re.IGNORECASE)


def load_rules(path: Optional[Path] = None) -> SeoRules:
    """Load a rule set from a JSON document (the configured default when *path* is omitted)."""
    rules_path = Path(path or SEO_RULES_PATH)
    return SeoRules.model_validate(json.loads(rules_path.read_text(encoding="utf-8")))


def is_allowed_script(script: str, allow_form_scripts: bool) -> bool:
    """Return True for JSON-LD blocks and, optionally, lead-form widget scripts."""
    if _JSON_LD_RE.search(script):
        return True
    return allow_form_scripts and bool(_FORM_SCRIPT_RE.search(script))


def validate(
    html: str,
    rules: Optional[SeoRules] = None,
    allow_form_scripts: bool = False,
) -> ValidationResult:
    """Validate rendered *html* against *rules*.

    Args:
        html: Full rendered document.
        rules: Rule set; defaults to :class:`SeoRules` defaults.
        allow_form_scripts: Accept lead-form widget scripts under the
            zero-script policy.

    Returns:
        A :class:`ValidationResult` that is ``valid`` when no issue has
        ``error`` severity.
    """
    rules = rules or SeoRules()
    issues: List[ValidationIssue] = []

    _check_headings(html, rules, issues)
    _check_meta(html, rules, issues)
    _check_content(html, rules, issues)
    _check_performance(html, rules, allow_form_scripts, issues)
    _check_schema(html, rules, issues)

    return ValidationResult(
        valid=not any(issue.severity == "error" for issue in issues),
        issues=issues,
    )


# ---------------------------------------------------------------------------
# Rule groups
# ---------------------------------------------------------------------------

def _check_headings(html: str, rules: SeoRules, issues: List[ValidationIssue]) -> None:
    heading = rules.heading_rules
    if heading.require_h1_in_article:
        h1_count = len(_H1_RE.findall(html))
        if h1_count == 0:
            issues.append(ValidationIssue(
                severity="error", rule="heading.require_h1",
                message="Page must have exactly one <h1> tag",
            ))
        elif h1_count > heading.max_h1:
            issues.append(ValidationIssue(
                severity="error", rule="heading.max_h1",
                message=f"Page has {h1_count} <h1> tags, max allowed: {heading.max_h1}",
            ))

    if heading.no_skip_levels:
        levels = [int(level) for level in _HEADING_RE.findall(html)]
        for previous, current in zip(levels, levels[1:]):
            if current > previous + 1:
                issues.append(ValidationIssue(
                    severity="warning", rule="heading.no_skip",
                    message=f"Heading level skipped: H{previous} → H{current}",
                ))


def _check_meta(html: str, rules: SeoRules, issues: List[ValidationIssue]) -> None:
    meta = rules.meta_rules
    if meta.require_canonical and not _CANONICAL_RE.search(html):
        issues.append(ValidationIssue(
            severity="error", rule="meta.canonical", message='Missing <link rel="canonical">',
        ))

    if meta.require_og_image and not _OG_IMAGE_RE.search(html):
        issues.append(ValidationIssue(
            severity="warning", rule="meta.og_image", message="Missing og:image meta tag",
        ))

    title = _TITLE_RE.search(html)
    if title and len(title.group(1)) > meta.title_max_length:
        issues.append(ValidationIssue(
            severity="warning", rule="meta.title_length",
            message=(
                f"Title is {len(title.group(1))} chars, "
                f"max recommended: {meta.title_max_length}"
            ),
        ))

    description = _DESCRIPTION_RE.search(html)
    if description and len(description.group(1)) > meta.description_max_length:
        issues.append(ValidationIssue(
            severity="warning", rule="meta.description_length",
            message=(
                f"Description is {len(description.group(1))} chars, "
                f"max recommended: {meta.description_max_length}"
            ),
        ))


def _check_content(html: str, rules: SeoRules, issues: List[ValidationIssue]) -> None:
    if rules.content_rules.require_alt_on_images:
        missing = _IMG_NO_ALT_RE.findall(html)
        if missing:
            issues.append(ValidationIssue(
                severity="error", rule="content.img_alt",
                message=f"{len(missing)} <img> tag(s) missing alt attribute",
            ))


def _check_performance(
    html: str,
    rules: SeoRules,
    allow_form_scripts: bool,
    issues: List[ValidationIssue],
) -> None:
    perf = rules.performance_rules
    if perf.max_critical_css_bytes:
        style = _STYLE_RE.search(html)
        if style:
            css_bytes = len(style.group(1).encode("utf-8"))
            if css_bytes > perf.max_critical_css_bytes:
                issues.append(ValidationIssue(
                    severity="warning", rule="perf.css_size",
                    message=f"Inline CSS is {css_bytes} bytes, max: {perf.max_critical_css_bytes}",
                ))

    if perf.zero_js:
        scripts = [
            s for s in _SCRIPT_RE.findall(html)
            if not is_allowed_script(s, allow_form_scripts)
        ]
        if scripts:
            issues.append(ValidationIssue(
                severity="error", rule="perf.zero_js",
                message=f"Found {len(scripts)} JavaScript <script> tag(s); pages must have zero JS",
            ))

    if perf.require_width_height_on_images:
        for img in _IMG_RE.findall(html):
            if "width=" not in img.lower() or "height=" not in img.lower():
                issues.append(ValidationIssue(
                    severity="warning", rule="perf.img_dimensions",
                    message="An <img> tag is missing explicit width/height attributes (causes CLS)",
                ))
                break


def _check_schema(html: str, rules: SeoRules, issues: List[ValidationIssue]) -> None:
    schema = rules.schema_rules
    if schema.require_article_schema and not _ARTICLE_SCHEMA_RE.search(html):
        issues.append(ValidationIssue(
            severity="warning", rule="schema.article",
            message="Missing Article/BlogPosting JSON-LD schema",
        ))

    if schema.require_breadcrumb_schema and not _BREADCRUMB_SCHEMA_RE.search(html):
        issues.append(ValidationIssue(
            severity="warning", rule="schema.breadcrumb",
            message="Missing BreadcrumbList JSON-LD schema",
        ))
