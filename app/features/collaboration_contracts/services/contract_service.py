"""
Contract orchestration for one collaboration.

Ties the templating engine to the stores: resolves a contract template for a
(campaign, influencer, contract) triple, renders it, saves the override
record under the collaboration key, and drives the view, send and
counter-party signing flows. Each mutating step appends a timeline entry;
timeline failures become warnings on the result, never errors.
"""

import secrets
from dataclasses import dataclass, field

from app.config import settings
from app.features.collaboration_contracts.domain import (
    ActionRecord,
    ActionValidationError,
    CollaborationKey,
    CollaborationRef,
    ContractAlreadySignedError,
    IdGenerator,
    OverrideRecord,
    RecipientMissingError,
    RenderedContract,
    ShareTokenMissingError,
    TemplateDocument,
    TemplateNotFoundError,
    VariableEntry,
    build_collaboration_key,
    get_id_generator,
    resolve_entity_key,
)
from app.features.collaboration_contracts.repository.action_repository import ActionRepository
from app.features.collaboration_contracts.repository.record_repository import RecordRepository
from app.features.collaboration_contracts.services.notification_service import (
    ContractEmail,
    EmailSender,
    compose_contract_email,
    email_sender,
)
from app.features.collaboration_contracts.services.override_store import (
    OverrideStore,
    override_store,
)
from app.features.collaboration_contracts.services.record_source import (
    CollaborationRecordSource,
)
from app.features.collaboration_contracts.services.timeline_service import (
    TIMELINE_WARNING,
    TimelineService,
    timeline_service,
)
from app.features.collaboration_contracts.templating import (
    REPEATABLE_NAMES,
    DescriptorResolver,
    OccurrencePlan,
    PreparedTemplate,
    RecordCache,
    assign_occurrences,
    collect_declared_variables,
    parse_tokens,
    prepare_template,
    render_contract,
)
from app.features.collaboration_contracts.templating.tokens import SIGNATURE_INFLUENCER
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def is_occurrence_key(key: str) -> bool:
    """True for keys like ``signature_0`` that address one repeatable occurrence."""
    name, _, index = key.rpartition("_")
    return name in REPEATABLE_NAMES and index.isdigit()


def generate_share_token() -> str:
    return secrets.token_urlsafe(32)


@dataclass(slots=True)
class ContractPreparation:
    key: CollaborationKey
    template: PreparedTemplate
    plan: OccurrencePlan
    stored: OverrideRecord | None

    @property
    def entries(self) -> list[VariableEntry]:
        return self.plan.entries


@dataclass(slots=True)
class SaveResult:
    record: OverrideRecord
    rendered: RenderedContract
    share_link: str
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ViewResult:
    record: OverrideRecord
    share_link: str
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SendResult:
    email: ContractEmail
    dispatched: bool
    action: ActionRecord | None
    warnings: list[str] = field(default_factory=list)


class ContractService:
    def __init__(
        self,
        store: OverrideStore = override_store,
        timeline: TimelineService = timeline_service,
        records: type[RecordRepository] = RecordRepository,
        actions: type[ActionRepository] = ActionRepository,
        sender: EmailSender = email_sender,
        id_generator: IdGenerator | None = None,
    ):
        self.store = store
        self.timeline = timeline
        self.records = records
        self.actions = actions
        self.sender = sender
        self.id_generator = id_generator or get_id_generator(settings.COLLABORATION_ID_STRATEGY)

    # ------------------------------------------------------------------
    # identity
    # ------------------------------------------------------------------

    def collaboration_key(self, ref: CollaborationRef) -> CollaborationKey:
        return build_collaboration_key(ref, self.id_generator)

    def _entity_ids(self, ref: CollaborationRef) -> dict[str, str | None]:
        """Canonical ids for the uuid-typed columns of the collaboration tables."""
        return {
            "campaign_id": resolve_entity_key("campaign", ref.campaign_id, self.id_generator),
            "influencer_id": resolve_entity_key(
                "influencer", ref.influencer_id or ref.influencer_pid, self.id_generator
            ),
        }

    # ------------------------------------------------------------------
    # resolution and rendering
    # ------------------------------------------------------------------

    async def _load_template(self, ref: CollaborationRef) -> TemplateDocument:
        contract = await self.records.get_contract(ref.contract_id, ref.contract_pid)
        if not contract:
            raise TemplateNotFoundError("Contract not found for this collaboration")
        html = contract.get("content") or ""
        if not html.strip():
            raise TemplateNotFoundError("This contract does not have any content")

        declared = contract.get("variables")
        return TemplateDocument(
            html=html,
            declared_variables=declared if isinstance(declared, dict) else {},
            contract_id=contract.get("id"),
        )

    async def prepare(
        self,
        ref: CollaborationRef,
        overrides: dict[str, str | None] | None = None,
        *,
        use_stored: bool = True,
    ) -> ContractPreparation:
        """
        Resolve every placeholder of the collaboration's contract.

        Stored values for repeatable occurrences are merged under the
        caller's overrides; shared placeholders are always re-resolved.
        """
        key = self.collaboration_key(ref)
        document = await self._load_template(ref)

        stored = await self.store.load(key.composite) if use_stored else None
        merged: dict[str, str | None] = {}
        if stored is not None:
            merged.update({k: v for k, v in stored.variables.items() if is_occurrence_key(k)})
        merged.update(overrides or {})

        template = prepare_template(document.html)
        tokens = parse_tokens(template.body)
        declared = collect_declared_variables(document.declared_variables, tokens)

        cache = RecordCache(ttl_seconds=settings.RECORD_CACHE_TTL_SECONDS)
        resolver = DescriptorResolver(CollaborationRecordSource(ref, cache, self.records), cache)
        resolved = await resolver.resolve_all(declared)

        plan = assign_occurrences(tokens, resolved, merged)
        logger.debug(
            "Contract prepared",
            collaboration_id=key.composite,
            token_count=len(tokens),
            record_loads=cache.loads,
        )
        return ContractPreparation(key=key, template=template, plan=plan, stored=stored)

    async def render_and_save(
        self,
        ref: CollaborationRef,
        overrides: dict[str, str | None] | None = None,
        *,
        actor_id: str | None = None,
    ) -> SaveResult:
        preparation = await self.prepare(ref, overrides)
        rendered = render_contract(preparation.template, preparation.plan)
        collaboration_id = preparation.key.composite

        share_token = (
            preparation.stored.share_token
            if preparation.stored and preparation.stored.share_token
            else generate_share_token()
        )
        saved = await self.store.save(
            OverrideRecord(
                collaboration_id=collaboration_id,
                variables=rendered.variables,
                rendered_html=rendered.document_html,
                share_token=share_token,
                **self._entity_ids(ref),
            )
        )

        filled = [k for k, v in rendered.variables.items() if v is not None]
        result = SaveResult(
            record=saved, rendered=rendered, share_link=settings.share_link(saved.share_token)
        )
        recorded = await self.timeline.record(
            collaboration_id,
            "contract_updated",
            f"Contract updated with {len(filled)} variable(s)",
            actor_id=actor_id,
            metadata={"variable_count": len(filled), "variable_keys": filled},
        )
        if not recorded:
            result.warnings.append(TIMELINE_WARNING)
        return result

    # ------------------------------------------------------------------
    # stored document
    # ------------------------------------------------------------------

    async def view(self, collaboration_id: str, *, actor_id: str | None = None) -> ViewResult:
        record = await self.store.load(collaboration_id)
        if record is None:
            raise TemplateNotFoundError(
                "No contract has been saved for this collaboration yet",
                collaboration_id=collaboration_id,
            )

        result = ViewResult(record=record, share_link=settings.share_link(record.share_token))
        recorded = await self.timeline.record(
            collaboration_id, "contract_viewed", "Contract viewed", actor_id=actor_id
        )
        if not recorded:
            result.warnings.append(TIMELINE_WARNING)
        return result

    async def load_shared(self, share_token: str) -> OverrideRecord:
        record = await self.store.load_by_share_token(share_token)
        if record is None:
            raise TemplateNotFoundError("This contract link is invalid or has been revoked")
        return record

    async def delete_collaboration(self, collaboration_id: str) -> dict[str, int]:
        return await self.store.delete_collaboration(collaboration_id)

    # ------------------------------------------------------------------
    # send and sign
    # ------------------------------------------------------------------

    async def send(
        self,
        collaboration_id: str,
        ref: CollaborationRef,
        *,
        actor_id: str | None = None,
        sender_name: str | None = None,
        sender_email: str | None = None,
    ) -> SendResult:
        """
        Mark the contract sent and compose (and optionally dispatch) the email.

        Raises:
            ActionValidationError: `ref` belongs to a different collaboration
            ShareTokenMissingError: the contract has not been rendered and saved yet
            RecipientMissingError: the influencer has no email address
            EmailDispatchError: the configured sender failed; the sent flag stays set
        """
        if self.collaboration_key(ref).composite != collaboration_id:
            raise ActionValidationError(
                "The campaign, influencer and contract do not match this collaboration",
                collaboration_id=collaboration_id,
            )

        record = await self.store.load(collaboration_id)
        if record is None or not record.share_token:
            raise ShareTokenMissingError(collaboration_id=collaboration_id)

        cache = RecordCache(ttl_seconds=settings.RECORD_CACHE_TTL_SECONDS)
        source = CollaborationRecordSource(ref, cache, self.records)
        influencer = await source.fetch("influencers") or {}
        recipient = (influencer.get("email") or "").strip()
        if not recipient:
            raise RecipientMissingError(
                "The influencer has no email address", collaboration_id=collaboration_id
            )
        company = await source.fetch("companies") or {}

        share_link = settings.share_link(record.share_token)
        action = await self.actions.mark_contract_sent(
            ActionRecord(
                collaboration_id=collaboration_id,
                user_id=actor_id,
                contract_id=ref.contract_id,
                **self._entity_ids(ref),
            )
        )

        email = compose_contract_email(
            recipient=recipient,
            recipient_name=influencer.get("name"),
            company_name=company.get("name"),
            collaboration_id=collaboration_id,
            share_link=share_link,
            sender_name=sender_name,
            sender_email=sender_email,
        )
        result = SendResult(email=email, dispatched=False, action=action)

        recorded = await self.timeline.record(
            collaboration_id,
            "contract_sent",
            "Contract sent to influencer",
            actor_id=actor_id,
            metadata={"recipient": recipient, "share_link": share_link},
        )
        if not recorded:
            result.warnings.append(TIMELINE_WARNING)

        if self.sender.enabled:
            await self.sender.send(email, collaboration_id=collaboration_id)
            result.dispatched = True
        return result

    async def sign_shared(self, share_token: str, signature: str | None) -> OverrideRecord:
        """
        Fill every influencer signature occurrence of a shared contract.

        The stored document is re-rendered in place, saved under the same key
        with the same token, and the collaboration is marked signed.

        Raises:
            ContractAlreadySignedError: the collaboration is already signed
            ActionValidationError: no signature, or the document has no
                influencer signature placeholder
        """
        signature = (signature or "").strip()
        if not signature:
            raise ActionValidationError("A signature is required to sign the contract")

        record = await self.load_shared(share_token)
        action = await self.actions.load(record.collaboration_id)
        if action is not None and action.is_signed:
            raise ContractAlreadySignedError(
                "This contract has already been signed", collaboration_id=record.collaboration_id
            )

        template = prepare_template(record.rendered_html, stored=True)
        tokens = parse_tokens(template.body)

        overrides = {k: v for k, v in record.variables.items() if is_occurrence_key(k)}
        plan = assign_occurrences(tokens, {}, overrides)
        slots = [e.occurrence_key for e in plan.entries if e.name == SIGNATURE_INFLUENCER]
        if not slots:
            raise ActionValidationError(
                "This contract has no influencer signature field",
                collaboration_id=record.collaboration_id,
            )
        overrides.update(dict.fromkeys(slots, signature))
        plan = assign_occurrences(tokens, {}, overrides)
        rendered = render_contract(template, plan)

        variables = dict(record.variables)
        variables.update(plan.variables)
        saved = await self.store.save(
            OverrideRecord(
                collaboration_id=record.collaboration_id,
                variables=variables,
                rendered_html=rendered.document_html,
                share_token=record.share_token,
                campaign_id=record.campaign_id,
                influencer_id=record.influencer_id,
            )
        )

        await self.actions.set_signed(
            ActionRecord(
                collaboration_id=record.collaboration_id,
                campaign_id=record.campaign_id,
                influencer_id=record.influencer_id,
            ),
            True,
        )
        await self.timeline.record(
            record.collaboration_id,
            "status_changed",
            "Contract signed by influencer",
            metadata={"is_signed": True, "signed_via": "share_link"},
        )
        logger.info("Shared contract signed", collaboration_id=record.collaboration_id)
        return saved


contract_service = ContractService()
