"""
Request and response models for the collaboration contract routes.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.features.collaboration_contracts.domain import (
    ActionRecord,
    CollaborationRef,
    TimelineEntry,
    VariableEntry,
)


class CollaborationRefRequest(BaseModel):
    """Source identifiers of one (campaign, influencer, contract) triple."""

    campaign_id: str = Field(..., min_length=1, description="Campaign id or legacy campaign key")
    influencer_id: str | None = Field(default=None, description="Influencer id")
    influencer_pid: str | None = Field(default=None, description="Influencer public id")
    contract_id: str | None = Field(default=None, description="Contract id")
    contract_pid: str | None = Field(default=None, description="Contract public id")
    company_id: str | None = Field(default=None, description="Company id, if known")
    user_id: str | None = Field(default=None, description="Assigned user id, if known")

    def to_ref(self) -> CollaborationRef:
        return CollaborationRef(
            campaign_id=self.campaign_id,
            influencer_id=self.influencer_id,
            influencer_pid=self.influencer_pid,
            contract_id=self.contract_id,
            contract_pid=self.contract_pid,
            company_id=self.company_id,
            user_id=self.user_id,
        )


class CollaborationKeyResponse(BaseModel):
    collaboration_id: str
    campaign_key: str
    influencer_key: str
    contract_key: str


class ContractVariablesRequest(CollaborationRefRequest):
    overrides: dict[str, str | None] = Field(
        default_factory=dict,
        description="Values keyed by occurrence key (repeatable) or placeholder name",
    )


class VariableEntryResponse(BaseModel):
    key: str
    occurrence_key: str
    description: str | None = None
    resolved_display: str | None = None
    raw_values: list[str] = Field(default_factory=list)
    editable: bool = False
    input_value: str | None = None

    @classmethod
    def from_entry(cls, entry: VariableEntry) -> "VariableEntryResponse":
        return cls(
            key=entry.key,
            occurrence_key=entry.occurrence_key,
            description=entry.description,
            resolved_display=entry.resolved_display,
            raw_values=list(entry.raw_values),
            editable=entry.editable,
            input_value=entry.input_value,
        )


class ContractVariablesResponse(BaseModel):
    collaboration_id: str
    entries: list[VariableEntryResponse]
    share_link: str | None = None


class RenderContractResponse(BaseModel):
    collaboration_id: str
    share_token: str
    share_link: str
    variables: dict[str, str | None]
    rendered_html: str
    warnings: list[str] = Field(default_factory=list)


class StoredContractResponse(BaseModel):
    collaboration_id: str
    rendered_html: str
    variables: dict[str, str | None]
    share_token: str
    share_link: str
    updated_at: datetime | None = None
    warnings: list[str] = Field(default_factory=list)


class SendContractRequest(CollaborationRefRequest):
    sender_name: str | None = Field(default=None, max_length=200)


class SendContractResponse(BaseModel):
    collaboration_id: str
    recipient: str
    subject: str
    body: str
    share_link: str
    dispatched: bool
    is_contract_sent: bool
    warnings: list[str] = Field(default_factory=list)


class ActionRequest(BaseModel):
    action: str | None = Field(default=None, description="interested | not_interested | callback | done")
    remark: str | None = Field(default=None, max_length=2000)
    callback_date: str | None = Field(default=None, description="YYYY-MM-DD, required for callback")
    callback_time: str | None = Field(default=None, description="HH:MM, required for callback")
    campaign_id: str | None = None
    influencer_id: str | None = None
    contract_id: str | None = None


class ActionResponse(BaseModel):
    collaboration_id: str
    action: str | None = None
    remark: str | None = None
    callback_at: datetime | None = None
    occurred_at: datetime | None = None
    is_contract_sent: bool = False
    is_signed: bool = False
    changed: bool = False
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_record(
        cls, record: ActionRecord, changed: bool = False, warnings: list[str] | None = None
    ) -> "ActionResponse":
        return cls(
            collaboration_id=record.collaboration_id,
            action=record.action,
            remark=record.remark,
            callback_at=record.callback_at,
            occurred_at=record.occurred_at,
            is_contract_sent=record.is_contract_sent,
            is_signed=record.is_signed,
            changed=changed,
            warnings=warnings or [],
        )


class SignedRequest(BaseModel):
    signed: bool
    campaign_id: str | None = None
    influencer_id: str | None = None
    contract_id: str | None = None


class TimelineEntryResponse(BaseModel):
    id: str | None = None
    action_type: str
    description: str
    remark: str | None = None
    action: str | None = None
    occurred_at: datetime | None = None
    actor_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_entry(cls, entry: TimelineEntry) -> "TimelineEntryResponse":
        return cls(
            id=entry.id,
            action_type=entry.action_type,
            description=entry.description,
            remark=entry.remark,
            action=entry.action,
            occurred_at=entry.occurred_at,
            actor_id=entry.actor_id,
            metadata=entry.metadata,
        )


class TimelineResponse(BaseModel):
    collaboration_id: str
    entries: list[TimelineEntryResponse]


class ClearTimelineResponse(BaseModel):
    collaboration_id: str
    deleted: int


class DeleteCollaborationResponse(BaseModel):
    collaboration_id: str
    deleted: dict[str, int]


class SignContractRequest(BaseModel):
    signature: str = Field(..., min_length=1, description="Typed name or data:image URI")


class SignContractResponse(BaseModel):
    signed: bool = True
