"""
Occurrence assignment.

Maps every token occurrence of a template to the entry and value that will
replace it. Repeatable placeholders get one editable entry per occurrence,
keyed ``<name>_<index>`` in document order; every other name shares one
entry across its occurrences.
"""

from collections import Counter
from dataclasses import dataclass, replace

from app.features.collaboration_contracts.domain.models import TokenOccurrence, VariableEntry
from app.features.collaboration_contracts.templating.tokens import (
    PLAIN_TEXT,
    SIGNATURE,
    SIGNATURE_INFLUENCER,
    SIGNATURE_USER,
    is_repeatable,
    normalize_variable_key,
    occurrence_key,
)

REPEATABLE_LABELS = {
    PLAIN_TEXT: "Manual text placeholder",
    SIGNATURE: "Signature placeholder",
    SIGNATURE_USER: "Brand signature placeholder",
    SIGNATURE_INFLUENCER: "Influencer signature placeholder",
}


@dataclass(slots=True)
class Assignment:
    """What one token occurrence will be replaced with."""

    token: TokenOccurrence
    entry: VariableEntry | None
    value: str | None


@dataclass(slots=True)
class OccurrencePlan:
    assignments: list[Assignment]
    entries: list[VariableEntry]

    @property
    def variables(self) -> dict[str, str | None]:
        """Stored form: occurrence key (or shared name) -> value, None when empty."""
        values: dict[str, str | None] = {}
        for entry in self.entries:
            if entry.editable:
                values[entry.occurrence_key] = entry.input_value
            else:
                values[entry.occurrence_key] = "\n".join(entry.raw_values) or None
        return values


def _clean_overrides(overrides: dict[str, str | None] | None) -> dict[str, str | None]:
    cleaned: dict[str, str | None] = {}
    for raw_key, value in (overrides or {}).items():
        key = normalize_variable_key(raw_key)
        if not key:
            continue
        text = value.strip() if isinstance(value, str) else None
        cleaned[key] = text or None
    return cleaned


def _shared_value(entry: VariableEntry, index: int, occurrences: int) -> str | None:
    values = entry.raw_values
    if not values:
        return None
    if len(values) > 1 and occurrences > 1:
        return values[index % len(values)]
    if len(values) == 1:
        return values[0]
    return "\n".join(values)


def assign_occurrences(
    tokens: list[TokenOccurrence],
    resolved: dict[str, VariableEntry],
    overrides: dict[str, str | None] | None = None,
) -> OccurrencePlan:
    """
    Walk tokens in document order and pair each with its entry and value.

    Overrides are keyed by occurrence key for repeatable names and by the
    bare name otherwise; a non-empty override for a shared name replaces
    its resolved values. Multi-valued shared names that occur more than once
    cycle through their raw values by occurrence index.
    """
    overrides = _clean_overrides(overrides)
    counts = Counter(token.name for token in tokens if not is_repeatable(token.name))

    shared: dict[str, VariableEntry] = {}
    for name, entry in resolved.items():
        override = overrides.get(name)
        if override is not None:
            entry = replace(entry, raw_values=[override], resolved_display=override)
        shared[name] = entry

    entries: list[VariableEntry] = []
    seen_shared: set[str] = set()
    repeat_index: Counter[str] = Counter()
    shared_index: Counter[str] = Counter()
    assignments: list[Assignment] = []

    for token in tokens:
        name = token.name
        if is_repeatable(name):
            index = repeat_index[name]
            repeat_index[name] += 1
            key = occurrence_key(name, index)
            entry = VariableEntry(
                name=name,
                occurrence_key=key,
                description=f"{REPEATABLE_LABELS[name]} (occurrence {index + 1})",
                editable=True,
                input_value=overrides.get(key),
                index=index,
            )
            entries.append(entry)
            assignments.append(Assignment(token=token, entry=entry, value=entry.input_value))
            continue

        entry = shared.get(name)
        if entry is None:
            assignments.append(Assignment(token=token, entry=None, value=None))
            continue

        if name not in seen_shared:
            seen_shared.add(name)
            entries.append(entry)
        index = shared_index[name]
        shared_index[name] += 1
        assignments.append(
            Assignment(token=token, entry=entry, value=_shared_value(entry, index, counts[name]))
        )

    entries.extend(entry for name, entry in shared.items() if name not in seen_shared)
    return OccurrencePlan(assignments=assignments, entries=entries)
