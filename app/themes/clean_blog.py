"""Clean Blog: the built-in template.

Minimal, script-free layouts with inline critical CSS.  Colours and fonts are
``--color-*`` / ``--font-*`` tokens specialised per site at build time.
"""

from app.models.template import LandingTemplate, TemplateManifest, TemplateParams

_HEAD = """<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{seo_title}}</title>
<meta name="description" content="{{seo_description}}">
<link rel="canonical" href="{{canonical_url}}">
<meta property="og:title" content="{{og_title}}">
<meta property="og:description" content="{{og_description}}">
{{#if og_image}}<meta property="og:image" content="{{og_image}}">{{/if}}
<meta property="og:url" content="{{canonical_url}}">
<meta name="twitter:card" content="summary_large_image">
<style>{{{critical_css}}}</style>
<script type="application/ld+json">{{{breadcrumb_schema_json}}}</script>"""

POST_LAYOUT = """<!DOCTYPE html>
<html lang="{{lang}}" dir="ltr">
<head>
""" + _HEAD + """
<meta property="og:type" content="article">
<script type="application/ld+json">{{{schema_json}}}</script>
</head>
<body>
<a href="#main" class="skip-link">Skip to content</a>
{{> header}}
{{> breadcrumbs}}
<main id="main">
<article>
<header>
<h1>{{title}}</h1>
<div class="meta">
<time datetime="{{iso_date}}">{{formatted_date}}</time>
{{#if modified_date}}<time datetime="{{iso_modified}}">Updated {{formatted_modified}}</time>{{/if}}
{{#if layout.show_author}}{{#if author_name}}<span class="author">{{author_name}}</span>{{/if}}{{/if}}
{{#if layout.show_reading_time}}{{#if reading_time}}<span>{{reading_time}} min read</span>{{/if}}{{/if}}
</div>
</header>
{{#if featured_image_url}}
<figure>
<img src="{{featured_image_url}}" alt="{{image_alt}}" width="{{image_width}}" height="{{image_height}}" fetchpriority="high" decoding="async">
</figure>
{{/if}}
{{#if show_toc}}
<nav aria-label="Table of contents" class="toc">
<h2>Contents</h2>
<ol>
{{#each toc_items}}<li><a href="#{{id}}">{{text}}</a></li>
{{/each}}</ol>
</nav>
{{/if}}
<div class="content">
{{{content}}}
</div>
{{#if tags}}
<footer>
<ul class="tags" aria-label="Tags">
{{#each tags}}<li><a href="/tag/{{slug}}/" rel="tag">{{name}}</a></li>
{{/each}}</ul>
</footer>
{{/if}}
</article>
</main>
{{> footer}}
</body>
</html>"""

INDEX_LAYOUT = """<!DOCTYPE html>
<html lang="{{lang}}" dir="ltr">
<head>
""" + _HEAD + """
</head>
<body>
<a href="#main" class="skip-link">Skip to content</a>
{{> header}}
<main id="main">
<h1>{{title}}</h1>
{{#if content}}<div class="content">
{{{content}}}
</div>{{/if}}
{{#each posts}}
<div class="card">
<h2><a href="{{url}}">{{title}}</a></h2>
<div class="meta">
<time datetime="{{iso_date}}">{{formatted_date}}</time>
{{#if reading_time}}<span>{{reading_time}} min read</span>{{/if}}
</div>
{{#if excerpt}}<p class="excerpt">{{excerpt}}</p>{{/if}}
</div>
{{/each}}
</main>
{{> footer}}
</body>
</html>"""

PAGE_LAYOUT = """<!DOCTYPE html>
<html lang="{{lang}}" dir="ltr">
<head>
""" + _HEAD + """
</head>
<body>
<a href="#main" class="skip-link">Skip to content</a>
{{> header}}
{{> breadcrumbs}}
<main id="main">
<h1>{{title}}</h1>
<div class="content">
{{{content}}}
</div>
</main>
{{> footer}}
</body>
</html>"""

CATEGORY_LAYOUT = """<!DOCTYPE html>
<html lang="{{lang}}" dir="ltr">
<head>
""" + _HEAD + """
</head>
<body>
<a href="#main" class="skip-link">Skip to content</a>
{{> header}}
{{> breadcrumbs}}
<main id="main">
<h1>{{title}}</h1>
{{#each posts}}
<div class="card">
<h2><a href="{{url}}">{{title}}</a></h2>
<div class="meta">
<time datetime="{{iso_date}}">{{formatted_date}}</time>
{{#if reading_time}}<span>{{reading_time}} min read</span>{{/if}}
</div>
{{#if excerpt}}<p class="excerpt">{{excerpt}}</p>{{/if}}
</div>
{{/each}}
</main>
{{> footer}}
</body>
</html>"""

HEADER_PARTIAL = """<header class="site-header">
<a href="{{site_url}}/" class="brand">{{site_name}}</a>
{{#if nav_links}}<nav aria-label="Main">
<ul>
{{#each nav_links}}<li><a href="{{url}}">{{label}}</a></li>
{{/each}}</ul>
</nav>{{/if}}
</header>"""

FOOTER_PARTIAL = """<footer class="site-footer">
<p>&copy; {{year}} {{site_name}}</p>
</footer>"""

BREADCRUMBS_PARTIAL = """<nav aria-label="Breadcrumb" class="breadcrumbs">
<ol>
{{#each breadcrumbs}}<li>{{#if @last}}<span aria-current="page">{{label}}</span>{{else}}<a href="{{url}}">{{label}}</a>{{/if}}</li>
{{/each}}</ol>
</nav>"""

CRITICAL_CSS = """:root{--color-primary:#1a1a2e;--color-accent:#e94560;--color-bg:#ffffff;--color-text:#1a1a2e;--color-muted:#6b7280;--font-heading:system-ui,sans-serif;--font-body:system-ui,sans-serif;--font-mono:ui-monospace,monospace;}
*,*::before,*::after{box-sizing:border-box}
body{margin:0;background:var(--color-bg);color:var(--color-text);font:1.0625rem/1.7 var(--font-body)}
h1,h2,h3{font-family:var(--font-heading);line-height:1.25;color:var(--color-primary)}
a{color:var(--color-accent)}
code,pre{font-family:var(--font-mono)}
main,.site-header,.site-footer,.breadcrumbs{max-width:720px;margin:0 auto;padding:0 1rem}
.skip-link{position:absolute;left:-999px}
.skip-link:focus{left:1rem;top:1rem}
.site-header{display:flex;justify-content:space-between;align-items:center;padding:1.5rem 1rem}
.site-header ul,.breadcrumbs ol,.tags{display:flex;gap:1rem;list-style:none;padding:0;margin:0}
.brand{font-weight:700;text-decoration:none;color:var(--color-primary)}
.meta,.breadcrumbs,.site-footer{color:var(--color-muted);font-size:.875rem}
.meta{display:flex;gap:1rem}
img{max-width:100%;height:auto}
.toc{border-left:3px solid var(--color-accent);padding-left:1rem}
.card{padding:1rem 0;border-bottom:1px solid #e5e7eb}
.site-footer{padding:2rem 1rem}
"""

MANIFEST = TemplateManifest(
    id="clean-blog",
    name="Clean Blog",
    version="1.0.0",
    description="Minimal, fast blog template: zero JS, inline CSS",
    params=TemplateParams(
        colors={
            "primary": "#1a1a2e",
            "accent": "#e94560",
            "bg": "#ffffff",
            "text": "#1a1a2e",
            "muted": "#6b7280",
        },
        fonts={
            "heading": 'system-ui, -apple-system, "Segoe UI", Roboto, sans-serif',
            "body": 'system-ui, -apple-system, "Segoe UI", Roboto, sans-serif',
            "mono": 'ui-monospace, "Cascadia Code", Menlo, Consolas, monospace',
        },
        layout={
            "max_width": "720px",
            "show_author": True,
            "show_date": True,
            "show_reading_time": True,
            "show_toc": True,
        },
    ),
)

CLEAN_BLOG = LandingTemplate(
    layouts={
        "post": POST_LAYOUT,
        "index": INDEX_LAYOUT,
        "page": PAGE_LAYOUT,
        "category": CATEGORY_LAYOUT,
    },
    partials={
        "header": HEADER_PARTIAL,
        "footer": FOOTER_PARTIAL,
        "breadcrumbs": BREADCRUMBS_PARTIAL,
    },
    critical_css=CRITICAL_CSS,
    manifest=MANIFEST,
)
