"""
Document rendering.

Substitutes every token occurrence of a prepared template body and wraps the
result in a self-contained HTML document. Rendering works on raw text with
regular expressions; tokens never overlap tags so no HTML tree is needed.

Filled and empty editable occurrences are emitted with ``data-placeholder``
and ``data-occurrence-key`` attributes so that ``normalize_rendered`` can
turn a rendered body back into literal tokens before it is rendered again.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from html import escape, unescape

from app.features.collaboration_contracts.domain.models import MISSING_DISPLAY, RenderedContract
from app.features.collaboration_contracts.templating.occurrences import (
    Assignment,
    OccurrencePlan,
)
from app.features.collaboration_contracts.templating.tokens import (
    SIGNATURE,
    SIGNATURE_INFLUENCER,
    SIGNATURE_USER,
    format_token,
    is_signature,
)

BODY_START = "<!-- contract-body:start -->"
BODY_END = "<!-- contract-body:end -->"
ASSETS_START = "<!-- contract-assets:start -->"
ASSETS_END = "<!-- contract-assets:end -->"

IMAGE_PREFIX = "data:image"

SIGNATURE_FONTS = (
    "Dancing Script",
    "Great Vibes",
    "Allura",
    "Brush Script MT",
    "Lucida Handwriting",
    "Pacifico",
    "Satisfy",
    "Kalam",
    "Caveat",
    "Permanent Marker",
)
SIGNATURE_FONT_STACK = ", ".join(f"'{font}'" for font in SIGNATURE_FONTS) + ", cursive"

SIGNATURE_IMAGE_STYLE = (
    "display: inline-block; max-width: 200px; max-height: 80px; "
    "margin-top: 20px; margin-bottom: 20px; vertical-align: middle;"
)
SIGNATURE_TEXT_STYLE = (
    f"display: inline-block; font-family: {SIGNATURE_FONT_STACK}; font-size: 24px; "
    "margin-top: 20px; margin-bottom: 20px; vertical-align: middle;"
)
PLAIN_TEXT_STYLE = "display: inline; font-weight: 500;"
BOX_STYLE = "cursor: pointer; transition: all 0.2s;"

MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

BASE_STYLES = """    body {
      font-family: 'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
      font-size: 11.5pt;
      line-height: 1.7;
      color: #111827;
      word-break: break-word;
      padding: 20px;
      max-width: 800px;
      margin: 0 auto;
      background: #ffffff;
    }
    .signature-box {
      display: inline-block;
      min-width: 160px;
      padding: 6px 12px;
      border: 1px dashed #94a3b8;
      border-radius: 6px;
      color: #64748b;
    }
    @media print {
      body { padding: 0; max-width: none; }
      .signature-box { border-color: transparent; color: transparent; }
    }"""

_STYLE_BLOCK = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_STYLESHEET_LINK = re.compile(r"<link[^>]*rel=[\"']stylesheet[\"'][^>]*>", re.IGNORECASE)
_BODY_INNER = re.compile(r"<body[^>]*>([\s\S]*?)</body>", re.IGNORECASE)
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ][\d:.]+(?:Z|[+-]\d{2}:?\d{2})?)?$")

# Current artefacts carry the placeholder name explicitly.
_PLACEHOLDER_IMG = re.compile(r"<img\b[^>]*\bdata-placeholder=\"([^\"]+)\"[^>]*>", re.IGNORECASE)
_PLACEHOLDER_SPAN = re.compile(
    r"<span\b[^>]*\bdata-placeholder=\"([^\"]+)\"[^>]*>[\s\S]*?</span>", re.IGNORECASE
)

# Artefacts written by earlier renderers.
_LEGACY_KEYED_IMG = re.compile(
    r"<img\b[^>]*\bdata-signature-key=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE
)
_LEGACY_SIGNATURE_IMG = re.compile(r"<img\b[^>]*\balt=[\"']Signature[\"'][^>]*>", re.IGNORECASE)
_LEGACY_FONT_SPAN = re.compile(
    r"<span\b[^>]*style[^>]*font-family[^>]*[\"'](?:"
    + "|".join(re.escape(font) for font in SIGNATURE_FONTS)
    + r")[\"'][^>]*>[\s\S]*?</span>",
    re.IGNORECASE,
)
_LEGACY_BOX_SPAN = re.compile(
    r"<span\b[^>]*(?:class=[\"'][^\"']*signature-box[^\"']*[\"']|data-signature=[\"']true[\"'])"
    r"[^>]*>([\s\S]*?)</span>",
    re.IGNORECASE,
)


@dataclass(slots=True)
class PreparedTemplate:
    """Template body ready for token scanning, plus the assets to carry along."""

    body: str
    assets: list[str] = field(default_factory=list)


def _extract_assets(html: str) -> list[str]:
    found = _STYLESHEET_LINK.findall(html) + _STYLE_BLOCK.findall(html)
    return list(dict.fromkeys(found))


def _signature_name_from(content: str) -> str:
    lowered = content.lower()
    if SIGNATURE_USER in lowered:
        return SIGNATURE_USER
    if SIGNATURE_INFLUENCER in lowered:
        return SIGNATURE_INFLUENCER
    return SIGNATURE


def normalize_rendered(html: str, *, legacy: bool = True) -> str:
    """
    Turn previously rendered placeholder artefacts back into literal tokens.

    Applied before every render so that stale images, styled text and boxes
    from an earlier pass are never wrapped or substituted a second time.
    The `legacy` rules guess from alt text, fonts and box classes, so they
    are only meant for stored documents written by earlier renderers.
    """
    html = _PLACEHOLDER_IMG.sub(lambda m: format_token(unescape(m.group(1))), html)
    html = _PLACEHOLDER_SPAN.sub(lambda m: format_token(unescape(m.group(1))), html)
    if not legacy:
        return html
    html = _LEGACY_KEYED_IMG.sub(lambda m: format_token(unescape(m.group(1))), html)
    html = _LEGACY_SIGNATURE_IMG.sub(format_token(SIGNATURE), html)
    html = _LEGACY_FONT_SPAN.sub(format_token(SIGNATURE), html)
    html = _LEGACY_BOX_SPAN.sub(lambda m: format_token(_signature_name_from(m.group(1))), html)
    return html


def prepare_template(html: str | None, *, stored: bool = False) -> PreparedTemplate:
    """
    Split template input into a normalised body and its style assets.

    Accepts raw template HTML, a full HTML page, or a document produced by
    ``build_document``, whose marked body and assets are reused as-is.
    Pass `stored=True` for a previously saved rendering; one without body
    markers came from an earlier renderer and gets the legacy rules too.
    """
    html = html or ""
    marked = BODY_START in html and BODY_END in html
    if marked:
        body = html.split(BODY_START, 1)[1].split(BODY_END, 1)[0]
        assets_section = ""
        if ASSETS_START in html and ASSETS_END in html:
            assets_section = html.split(ASSETS_START, 1)[1].split(ASSETS_END, 1)[0]
        assets = _extract_assets(assets_section) + _extract_assets(body)
    else:
        assets = _extract_assets(html)
        inner = _BODY_INNER.search(html)
        body = inner.group(1) if inner else html

    body = _STYLE_BLOCK.sub("", _STYLESHEET_LINK.sub("", body)).strip()
    body = normalize_rendered(body, legacy=stored and not marked)
    return PreparedTemplate(body=body, assets=list(dict.fromkeys(assets)))


def format_display_date(value: str) -> str:
    """`2024-03-05` -> `March 5, 2024`; other text is returned unchanged."""
    match = _ISO_DATE.match(value.strip())
    if not match:
        return value
    try:
        parsed = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return value
    return f"{MONTHS[parsed.month - 1]} {parsed.day}, {parsed.year}"


def _text_html(value: str) -> str:
    return escape(value, quote=False).replace("\r\n", "\n").replace("\n", "<br />")


def _editable_html(assignment: Assignment) -> str:
    entry = assignment.entry
    name = escape(entry.name)
    key = escape(entry.occurrence_key)
    value = assignment.value

    if value and value.startswith(IMAGE_PREFIX):
        return (
            f'<img src="{escape(value)}" alt="Signature" data-placeholder="{name}" '
            f'data-occurrence-key="{key}" style="{SIGNATURE_IMAGE_STYLE}" />'
        )

    if value:
        style = SIGNATURE_TEXT_STYLE if is_signature(entry.name) else PLAIN_TEXT_STYLE
        return (
            f'<span class="contract-filled" data-placeholder="{name}" '
            f'data-occurrence-key="{key}" style="{style}">{_text_html(value)}</span>'
        )

    box_class = (
        "signature-box signature-box-clickable"
        if is_signature(entry.name)
        else "placeholder-box placeholder-box-clickable"
    )
    return (
        f'<span class="{box_class}" data-signature="{str(is_signature(entry.name)).lower()}" '
        f'data-signature-key="{name}" data-placeholder="{name}" data-occurrence-key="{key}" '
        f'style="{BOX_STYLE}">{escape(format_token(entry.name), quote=False)}</span>'
    )


def render_assignment(assignment: Assignment) -> str:
    entry = assignment.entry
    if entry is not None and entry.editable:
        return _editable_html(assignment)

    if entry is not None and assignment.value is not None:
        value = assignment.value
        if "date" in entry.name.lower():
            value = format_display_date(value)
        return _text_html(value)

    return MISSING_DISPLAY


def render_body(body: str, plan: OccurrencePlan) -> str:
    """
    Replace every token in `body` using a plan built from the same body.

    Tokens without an entry or value come out as ``--``; empty editable
    occurrences keep their literal token inside a clickable box.
    """
    parts: list[str] = []
    cursor = 0
    for assignment in plan.assignments:
        parts.append(body[cursor : assignment.token.start])
        parts.append(render_assignment(assignment))
        cursor = assignment.token.end
    parts.append(body[cursor:])
    return "".join(parts)


def build_document(body: str, assets: list[str]) -> str:
    assets_html = "\n".join(assets)
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '  <meta charset="UTF-8">\n'
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        "  <title>Contract Document</title>\n"
        "  <style>\n"
        f"{BASE_STYLES}\n"
        "  </style>\n"
        f"{ASSETS_START}\n{assets_html}\n{ASSETS_END}\n"
        "</head>\n"
        "<body>\n"
        f"{BODY_START}\n{body}\n{BODY_END}\n"
        "</body>\n"
        "</html>\n"
    )


def render_contract(prepared: PreparedTemplate, plan: OccurrencePlan) -> RenderedContract:
    body = render_body(prepared.body, plan)
    return RenderedContract(
        body_html=body,
        document_html=build_document(body, prepared.assets),
        variables=plan.variables,
        entries=plan.entries,
    )
