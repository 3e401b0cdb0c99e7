"""Logic-light template renderer for landing-page layouts.

Supported tags, expanded in this order (each pass works on the output of the
previous one, so partials may contain any of the later constructs; the two
interpolation forms are substituted in a single scan):

``{{> name}}``
    Partial inclusion.  Unknown partials render as an empty string.

``{{#each path}}…{{/each}}``
    Iteration.  Object elements are merged over the outer context; any other
    element is bound to ``.``.  ``@index``, ``@first`` and ``@last`` are
    available inside the body.

``{{#if path}}…{{else}}…{{/if}}``
    Conditional.  ``None``, ``False``, ``0``, ``""`` and empty lists are falsy.

``{{{path}}}``
    Raw interpolation.  Tags inside the inserted value are output verbatim,
    never expanded.

``{{path}}``
    HTML-escaped interpolation.

Rendering never raises on malformed input: a block without a matching close
tag is left as-is and unresolved paths render as an empty string.
"""

import re
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

_ESCAPES = {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#39;"}
_ESCAPE_RE = re.compile(r"[&<>\"']")

_PARTIAL_RE = re.compile(r"\{\{>\s*([\w-]+)\s*\}\}")
_VALUE_RE = re.compile(r"\{\{\{\s*([\w.@]+)\s*\}\}\}|\{\{\s*([\w.@]+)\s*\}\}")
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")

_IF_OPEN = "{{#if "
_IF_CLOSE = "{{/if}}"
_ELSE = "{{else}}"

# Upper bound on block expansions per block type within one render call
MAX_BLOCK_PASSES = 100

# Partials including partials deeper than this render as empty strings
MAX_PARTIAL_DEPTH = 32

Context = Mapping[str, Any]


def escape_html(value: str) -> str:
    """Replace ``& < > " '`` with their HTML entities."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], value)


def resolve(path: str, context: Context) -> Any:
    """Resolve a dot-notation *path* against *context*; ``None`` when absent.

    Quoted strings and numbers are literals, so ``{{#if "x"}}`` is always true
    and ``{{#if 0}}`` always false.
    """
    if len(path) >= 2 and path[0] == path[-1] and path[0] in "\"'":
        return path[1:-1]
    if _NUMBER_RE.match(path):
        return float(path) if "." in path else int(path)
    if path == ".":
        return context.get(".")
    value: Any = context
    for key in path.split("."):
        if isinstance(value, Mapping):
            value = value.get(key)
        elif isinstance(value, (list, tuple)) and key.isdigit() and int(key) < len(value):
            value = value[int(key)]
        else:
            return None
    return value


def is_truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and value == 0:
        return False
    if isinstance(value, str) and value == "":
        return False
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return False
    return True


def _stringify(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render(
    template: str,
    data: Context,
    partials: Optional[Mapping[str, str]] = None,
) -> str:
    """Render *template* against *data*, resolving ``{{> name}}`` from *partials*."""
    return _render(template, data, partials or {}, 0)


def _render(template: str, data: Context, partials: Mapping[str, str], depth: int) -> str:
    def include(match: "re.Match[str]") -> str:
        partial = partials.get(match.group(1))
        if not partial or depth >= MAX_PARTIAL_DEPTH:
            return ""
        return _render(partial, data, partials, depth + 1)

    out = _PARTIAL_RE.sub(include, template)

    def each(body: str, path: str) -> str:
        items = resolve(path, data)
        if not isinstance(items, (list, tuple)) or not items:
            return ""
        last = len(items) - 1
        rendered = []
        for index, item in enumerate(items):
            loop_vars = {"@index": index, "@first": index == 0, "@last": index == last}
            if isinstance(item, Mapping):
                item_ctx: Dict[str, Any] = {**data, **item, **loop_vars}
            else:
                item_ctx = {**data, ".": item, **loop_vars}
            rendered.append(_render(body, item_ctx, partials, depth))
        return "".join(rendered)

    out = _process_blocks(out, "each", each)

    def conditional(body: str, path: str) -> str:
        truthy, falsy = _split_else(body)
        branch = truthy if is_truthy(resolve(path, data)) else falsy
        return _render(branch, data, partials, depth)

    out = _process_blocks(out, "if", conditional)

    # Raw and escaped tags share one scan so substituted values are never re-expanded
    def interpolate(match: "re.Match[str]") -> str:
        raw_path, path = match.groups()
        value = resolve(raw_path or path, data)
        if value is None:
            return ""
        return _stringify(value) if raw_path else escape_html(_stringify(value))

    return _VALUE_RE.sub(interpolate, out)


def _process_blocks(template: str, kind: str, handler: Callable[[str, str], str]) -> str:
    """Expand every ``{{#kind path}}…{{/kind}}`` block with *handler(body, path)*.

    Blocks are expanded outermost-first; the handler is responsible for
    rendering the body.  Expansion stops at the first block without a
    matching close tag.
    """
    open_tag = "{{#" + kind + " "
    close_tag = "{{/" + kind + "}}"
    result = template

    for _ in range(MAX_BLOCK_PASSES):
        start = result.find(open_tag)
        if start == -1:
            break
        tag_end = result.find("}}", start)
        if tag_end == -1:
            break
        path = result[start + len(open_tag):tag_end].strip()
        body_start = tag_end + 2

        close = _find_close(result, body_start, open_tag, close_tag)
        if close == -1:
            break

        body = result[body_start:close]
        result = result[:start] + handler(body, path) + result[close + len(close_tag):]

    return result


def _find_close(text: str, pos: int, open_tag: str, close_tag: str) -> int:
    """Return the index of the close tag matching an already-consumed open tag."""
    depth = 1
    while True:
        next_close = text.find(close_tag, pos)
        if next_close == -1:
            return -1
        next_open = text.find(open_tag, pos)
        if next_open != -1 and next_open < next_close:
            depth += 1
            pos = next_open + len(open_tag)
            continue
        depth -= 1
        if depth == 0:
            return next_close
        pos = next_close + len(close_tag)


def _split_else(body: str) -> Tuple[str, str]:
    """Split an ``#if`` body at its own ``{{else}}``, ignoring nested blocks'."""
    pos = 0
    while True:
        idx = body.find(_ELSE, pos)
        if idx == -1:
            return body, ""
        if body.count(_IF_OPEN, 0, idx) == body.count(_IF_CLOSE, 0, idx):
            return body[:idx], body[idx + len(_ELSE):]
        pos = idx + len(_ELSE)


def inject_theme_vars(
    css: str,
    colors: Mapping[str, str],
    fonts: Optional[Mapping[str, str]] = None,
) -> str:
    """Specialise *css* with concrete colour and font token values.

    For every token both ``var(--<group>-<name>)`` usages and the
    ``--<group>-<name>: …;`` declaration are rewritten.
    """
    result = css
    for group, tokens in (("color", colors), ("font", fonts or {})):
        for name, value in tokens.items():
            prop = f"--{group}-{name}"
            escaped_prop = re.escape(prop)
            result = re.sub(rf"var\({escaped_prop}\)", lambda _m, v=value: v, result)
            result = re.sub(
                rf"{escaped_prop}:\s*[^;]+;",
                lambda _m, p=prop, v=value: f"{p}: {v};",
                result,
            )
    return result
