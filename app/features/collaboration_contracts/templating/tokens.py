"""
Placeholder token scanning.

Templates carry placeholders of the form ``var[{{ name }}]`` inside rich-text
HTML. Tokens never nest and never straddle tags, so a regular-expression scan
over the raw text is sufficient; no HTML tree is built. Document order is
preserved because it is the only signal used to tell repeated occurrences
apart.
"""

import re

from app.features.collaboration_contracts.domain.models import TokenOccurrence

TOKEN_PATTERN = re.compile(
    r"var\[\s*\{\{\s*(?P<name>[^{}\s][^{}]*?)\s*\}\}\s*\]",
    re.IGNORECASE,
)

# Placeholder kinds whose every occurrence is an independent input.
PLAIN_TEXT = "plain_text"
SIGNATURE = "signature"
SIGNATURE_USER = "signature.user"
SIGNATURE_INFLUENCER = "signature.influencer"

REPEATABLE_NAMES = frozenset({PLAIN_TEXT, SIGNATURE, SIGNATURE_USER, SIGNATURE_INFLUENCER})
SIGNATURE_NAMES = frozenset({SIGNATURE, SIGNATURE_USER, SIGNATURE_INFLUENCER})


def format_token(name: str) -> str:
    """Canonical literal form of a placeholder."""
    return f"var[{{{{{name}}}}}]"


def normalize_variable_key(raw_key: str | None) -> str:
    """
    Reduce a declared-variable key to its bare placeholder name.

    Accepts ``name``, ``{{name}}`` and ``var[{{name}}]`` spellings.
    """
    if not raw_key:
        return ""
    match = TOKEN_PATTERN.fullmatch(raw_key.strip())
    if match:
        return match.group("name").strip()
    key = raw_key.strip()
    if key.startswith("{{") and key.endswith("}}"):
        key = key[2:-2]
    return key.strip()


def parse_tokens(html: str | None) -> list[TokenOccurrence]:
    """Return every placeholder occurrence in document order."""
    if not html:
        return []
    return [
        TokenOccurrence(
            name=match.group("name").strip(),
            start=match.start(),
            end=match.end(),
            raw=match.group(0),
        )
        for match in TOKEN_PATTERN.finditer(html)
    ]


def is_repeatable(name: str) -> bool:
    return name in REPEATABLE_NAMES


def is_signature(name: str) -> bool:
    return name in SIGNATURE_NAMES


def occurrence_key(name: str, index: int) -> str:
    return f"{name}_{index}"
