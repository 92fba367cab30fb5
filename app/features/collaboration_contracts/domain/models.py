"""
Domain models for the collaboration contract feature.

Lightweight dataclasses shared by the templating engine, repositories,
services and API layer. Templating types are pure values; persisted
records mirror the rows of the three collaboration tables.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

ActionOption = Literal["interested", "not_interested", "callback", "done"]

TimelineActionType = Literal[
    "action_taken",
    "remark_added",
    "contract_sent",
    "contract_viewed",
    "contract_updated",
    "variable_updated",
    "status_changed",
]

ACTION_OPTIONS: tuple[str, ...] = ("interested", "not_interested", "callback", "done")

ACTION_LABELS: dict[str, str] = {
    "interested": "Contact marked interested",
    "not_interested": "Marked as not interested",
    "callback": "Callback scheduled",
    "done": "Collaboration marked done",
}

# Display value for anything that could not be resolved.
MISSING_DISPLAY = "--"


@dataclass(slots=True, frozen=True)
class TokenOccurrence:
    """One `var[{{name}}]` marker found in template text."""

    name: str
    start: int
    end: int
    raw: str


@dataclass(slots=True, frozen=True)
class VariableDescriptor:
    """
    One declared value source for a placeholder.

    A literal descriptor carries its text in `literal`; a source descriptor
    names a related-record collection and a dotted field path.
    """

    raw: str
    literal: str | None = None
    collection: str | None = None
    field_path: str | None = None

    @property
    def is_source(self) -> bool:
        return self.collection is not None

    @property
    def label(self) -> str:
        """Last field path segment, used as the display label."""
        if not self.field_path:
            return self.raw
        return self.field_path.split(".")[-1]


@dataclass(slots=True)
class DeclaredVariable:
    """A placeholder's declared sources gathered from the template's variables map."""

    name: str
    descriptors: list[VariableDescriptor] = field(default_factory=list)
    description: str | None = None


@dataclass(slots=True)
class VariableEntry:
    """Resolution result for a placeholder name, or one occurrence of a repeatable one."""

    name: str
    occurrence_key: str
    description: str | None = None
    resolved_display: str | None = None
    raw_values: list[str] = field(default_factory=list)
    editable: bool = False
    input_value: str | None = None
    index: int | None = None

    @property
    def key(self) -> str:
        return f"var[{{{{{self.name}}}}}]"


@dataclass(slots=True)
class TemplateDocument:
    """Immutable template input: raw HTML plus its declared-variables map."""

    html: str
    declared_variables: dict[str, Any] = field(default_factory=dict)
    contract_id: str | None = None


@dataclass(slots=True, frozen=True)
class CollaborationKey:
    """Per-entity keys of one (campaign, influencer, contract) negotiation."""

    campaign_key: str
    influencer_key: str
    contract_key: str

    @property
    def composite(self) -> str:
        return f"{self.campaign_key}-{self.influencer_key}-{self.contract_key}"

    def __str__(self) -> str:
        return self.composite


@dataclass(slots=True)
class CollaborationRef:
    """
    Source identifiers for one collaboration as supplied by the caller.

    `campaign_id`/`influencer_id` may be canonical UUIDs or legacy natural
    keys; `influencer_pid`/`contract_pid` are public ids preferred for the
    composite key when present.
    """

    campaign_id: str
    influencer_id: str | None = None
    influencer_pid: str | None = None
    contract_id: str | None = None
    contract_pid: str | None = None
    company_id: str | None = None
    user_id: str | None = None


@dataclass(slots=True)
class RenderedContract:
    """Output of one render pass."""

    body_html: str
    document_html: str
    variables: dict[str, str | None]
    entries: list[VariableEntry]


@dataclass(slots=True)
class OverrideRecord:
    """One persisted document per collaboration key."""

    collaboration_id: str
    variables: dict[str, str | None]
    rendered_html: str
    share_token: str
    campaign_id: str | None = None
    influencer_id: str | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class ActionRecord:
    """Latest-wins disposition of a collaboration."""

    collaboration_id: str
    action: str | None = None
    remark: str | None = None
    occurred_at: datetime | None = None
    callback_at: datetime | None = None
    is_contract_sent: bool = False
    is_signed: bool = False
    campaign_id: str | None = None
    influencer_id: str | None = None
    contract_id: str | None = None
    user_id: str | None = None


@dataclass(slots=True)
class TimelineEntry:
    """Append-only lifecycle event."""

    collaboration_id: str
    action_type: str
    description: str
    occurred_at: datetime | None = None
    actor_id: str | None = None
    remark: str | None = None
    action: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
