"""
Descriptor resolution for non-repeatable placeholders.

A template's declared-variables map gives each placeholder zero or more
descriptors. A descriptor is either literal text or a reference of the form
``source:<collection>.<field.path>`` naming a related record of the current
collaboration. References are resolved against records fetched through a
``RecordSource``; every fetch goes through the pass's ``RecordCache``.

A missing record or field never fails the pass: it displays as ``--`` and
contributes nothing to ``raw_values``.
"""

import json
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol

from app.db.helpers import DatabaseError
from app.features.collaboration_contracts.domain.models import (
    MISSING_DISPLAY,
    DeclaredVariable,
    TokenOccurrence,
    VariableDescriptor,
    VariableEntry,
)
from app.features.collaboration_contracts.templating.record_cache import RecordCache
from app.features.collaboration_contracts.templating.tokens import (
    is_repeatable,
    normalize_variable_key,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SOURCE_PREFIX = "source:"
DISPLAY_SEPARATOR = " • "

_MISSING = object()


class RecordSource(Protocol):
    """Fetches the related record a collection name refers to for one collaboration."""

    def cache_key(self, collection: str) -> str:
        """Identity of the record `collection` would resolve to."""
        ...

    async def fetch(self, collection: str) -> dict[str, Any] | None:
        ...


def parse_descriptor(raw: str) -> VariableDescriptor:
    """
    Parse one descriptor string.

    ``source:influencers.address.city`` -> collection ``influencers``,
    field path ``address.city``. A leading ``public.`` schema qualifier is
    dropped. A ``source:`` string without a field path stays literal-less
    and unresolvable (collection and literal both None).
    """
    text = raw.strip()
    if not text.startswith(SOURCE_PREFIX):
        return VariableDescriptor(raw=text, literal=text)

    reference = text[len(SOURCE_PREFIX) :]
    parts = reference.split(".")
    if len(parts) > 2 and parts[0] == "public":
        parts = parts[1:]
    if len(parts) < 2 or not parts[0] or not all(parts[1:]):
        return VariableDescriptor(raw=text)

    return VariableDescriptor(raw=text, collection=parts[0], field_path=".".join(parts[1:]))


def _descriptor_strings(raw_value: Any) -> tuple[list[str], int | None]:
    descriptors: list[str] = []
    occurrences: int | None = None

    if isinstance(raw_value, dict):
        listed = raw_value.get("descriptors")
        if isinstance(listed, list):
            descriptors.extend(item.strip() for item in listed if isinstance(item, str))
        single = raw_value.get("descriptor")
        if isinstance(single, str):
            descriptors.append(single.strip())
        hint = raw_value.get("occurrences")
        if isinstance(hint, (int, float)) and not isinstance(hint, bool) and hint > 0:
            occurrences = int(hint)
    elif isinstance(raw_value, list):
        descriptors.extend(item.strip() for item in raw_value if isinstance(item, str))
    elif isinstance(raw_value, str):
        descriptors.append(raw_value.strip())

    return [d for d in dict.fromkeys(descriptors) if d], occurrences


def _describe(descriptors: list[str], occurrences: int | None) -> str | None:
    parts = []
    if descriptors:
        parts.append(DISPLAY_SEPARATOR.join(descriptors))
    count_hint = occurrences or len(descriptors) or None
    if count_hint and count_hint > max(len(descriptors), 1):
        parts.append(f"used {count_hint} times")
    return DISPLAY_SEPARATOR.join(parts) if parts else None


def collect_declared_variables(
    declared: dict[str, Any] | None, tokens: list[TokenOccurrence]
) -> dict[str, DeclaredVariable]:
    """
    Merge the declared-variables map with the names found in the template.

    Keys are normalised, descriptors are merged first-seen and deduplicated.
    Repeatable names are skipped: their values come from overrides only.
    Every non-repeatable token name gets an entry even when undeclared.
    """
    collected: dict[str, DeclaredVariable] = {}

    for raw_key, raw_value in (declared or {}).items():
        name = normalize_variable_key(raw_key)
        if not name or is_repeatable(name):
            continue

        strings, occurrences = _descriptor_strings(raw_value)
        descriptors = [parse_descriptor(s) for s in strings]
        existing = collected.get(name)
        if existing is None:
            collected[name] = DeclaredVariable(
                name=name, descriptors=descriptors, description=_describe(strings, occurrences)
            )
            continue

        seen = {d.raw for d in existing.descriptors}
        existing.descriptors.extend(d for d in descriptors if d.raw not in seen)
        if not existing.description:
            existing.description = _describe(strings, occurrences)

    for token in tokens:
        if not is_repeatable(token.name) and token.name not in collected:
            collected[token.name] = DeclaredVariable(name=token.name)

    return collected


def _match_field(record: dict, part: str) -> str | None:
    if part in record:
        return part

    if re.search(r"\d", part):
        with_underscore = re.sub(r"(\d+)", r"_\1", part)
        if with_underscore in record:
            return with_underscore
        camel = re.sub(r"_([a-z])", lambda m: m.group(1).upper(), part)
        if camel in record:
            return camel

    target = _normalize_field_name(part)
    for key in record:
        if isinstance(key, str) and _normalize_field_name(key) == target:
            return key
    return None


def _normalize_field_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def resolve_field_path(record: Any, path: str) -> Any:
    """
    Walk a dotted field path through nested dicts and lists.

    Returns the module sentinel ``_MISSING`` when any segment is absent.
    """
    current = record
    for part in path.split("."):
        if isinstance(current, list):
            try:
                index = int(part)
            except ValueError:
                return _MISSING
            if index < 0 or index >= len(current):
                return _MISSING
            current = current[index]
            continue

        if not isinstance(current, dict):
            return _MISSING

        key = _match_field(current, part)
        if key is None:
            return _MISSING
        current = current[key]

    return current


def is_missing(value: Any) -> bool:
    return value is _MISSING


def format_resolved_value(value: Any) -> str:
    """Human-readable text for a resolved field; ``--`` when there is nothing to show."""
    if value is None or value is _MISSING:
        return MISSING_DISPLAY
    if isinstance(value, str):
        return value.strip() or MISSING_DISPLAY
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


class DescriptorResolver:
    """Resolves declared descriptors into VariableEntry values for one pass."""

    def __init__(self, source: RecordSource, cache: RecordCache | None = None):
        self.source = source
        self.cache = cache or RecordCache()

    async def _fetch(self, collection: str) -> dict[str, Any] | None:
        cache_key = f"{collection}:{self.source.cache_key(collection)}"

        async def load():
            try:
                return await self.source.fetch(collection)
            except DatabaseError as e:
                logger.error(
                    "Related record fetch failed, treating as missing",
                    collection=collection,
                    error=str(e),
                )
                return None

        return await self.cache.get_or_load(cache_key, load)

    async def resolve(self, declared: DeclaredVariable) -> VariableEntry:
        rendered: list[str] = []
        raw_values: list[str] = []

        for descriptor in declared.descriptors:
            if not descriptor.is_source:
                if descriptor.literal is not None:
                    rendered.append(descriptor.literal)
                    raw_values.append(descriptor.literal)
                else:
                    rendered.append(descriptor.raw)
                continue

            record = await self._fetch(descriptor.collection)
            if record is None:
                logger.debug(
                    "Descriptor record missing",
                    placeholder=declared.name,
                    collection=descriptor.collection,
                )
                rendered.append(f"{descriptor.label}: {MISSING_DISPLAY}")
                continue

            value_text = format_resolved_value(resolve_field_path(record, descriptor.field_path))
            rendered.append(f"{descriptor.label}: {value_text}")
            if value_text != MISSING_DISPLAY:
                raw_values.append(value_text)

        display_parts = [part for part in rendered if part and part.strip()]
        return VariableEntry(
            name=declared.name,
            occurrence_key=declared.name,
            description=declared.description,
            resolved_display=DISPLAY_SEPARATOR.join(display_parts) if display_parts else None,
            raw_values=raw_values,
        )

    async def resolve_all(
        self, declared: dict[str, DeclaredVariable]
    ) -> dict[str, VariableEntry]:
        """Resolve every declared name sequentially, sharing the pass cache."""
        return {name: await self.resolve(variable) for name, variable in declared.items()}
