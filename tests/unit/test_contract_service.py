"""
End-to-end tests for the contract flow over in-memory stores.
"""

import pytest

from app.config import settings
from app.features.collaboration_contracts.domain import (
    ActionValidationError,
    CollaborationRef,
    ContractAlreadySignedError,
    HashIdGenerator,
    RecipientMissingError,
    ShareTokenMissingError,
    TemplateNotFoundError,
)
from app.features.collaboration_contracts.services import (
    ActionService,
    ActionSubmission,
    ContractService,
    OverrideCache,
    OverrideStore,
    TimelineService,
)
from app.features.collaboration_contracts.services.contract_service import is_occurrence_key

CONTRACT_HTML = (
    "<html><head><style>.terms{margin:0}</style></head><body>"
    '<p class="terms">Dear var[{{influencer_name}}], from var[{{company}}].</p>'
    "<p>Influencer: var[{{signature.influencer}}]</p>"
    "<p>Brand: var[{{signature.user}}]</p>"
    "</body></html>"
)


def _tables(email: str | None = "ana@example.com", content: str = CONTRACT_HTML) -> dict:
    return {
        "contracts": {
            "ct-1": {
                "id": "ct-1",
                "content": content,
                "variables": {
                    "influencer_name": "source:influencers.name",
                    "company": "source:companies.name",
                },
            }
        },
        "campaigns": {"camp-1": {"id": "camp-1", "company_id": "co-1", "users": [{"id": "u-1"}]}},
        "influencers": {"inf-1": {"id": "inf-1", "name": "Ana", "email": email}},
        "companies": {"co-1": {"id": "co-1", "name": "Acme"}},
    }


REF = CollaborationRef(campaign_id="camp-1", influencer_id="inf-1", contract_id="ct-1")


@pytest.fixture
def build_service(
    override_repository,
    action_repository,
    timeline_repository,
    fake_redis,
    make_record_repository,
    make_email_sender,
):
    def _build(tables: dict | None = None, sender_enabled: bool = False) -> ContractService:
        return ContractService(
            store=OverrideStore(override_repository, OverrideCache(redis_client=fake_redis)),
            timeline=TimelineService(timeline_repository),
            records=make_record_repository(_tables() if tables is None else tables),
            actions=action_repository,
            sender=make_email_sender(enabled=sender_enabled),
            id_generator=HashIdGenerator(),
        )

    return _build


def test_is_occurrence_key():
    assert is_occurrence_key("signature_0")
    assert is_occurrence_key("signature.influencer_12")
    assert is_occurrence_key("plain_text_1")
    assert not is_occurrence_key("plain_text")
    assert not is_occurrence_key("start_date_1")


@pytest.mark.asyncio
async def test_prepare_resolves_related_records(build_service):
    service = build_service()

    preparation = await service.prepare(REF)

    entries = {entry.occurrence_key: entry for entry in preparation.entries}
    assert entries["influencer_name"].raw_values == ["Ana"]
    assert entries["company"].resolved_display == "name: Acme"
    assert entries["signature.influencer_0"].editable
    assert entries["signature.user_0"].input_value is None
    assert preparation.stored is None


@pytest.mark.asyncio
async def test_render_and_save_creates_share_link_and_timeline(build_service, timeline_repository):
    service = build_service()

    result = await service.render_and_save(REF, actor_id="user-123")

    record = result.record
    assert record.share_token
    assert result.share_link == settings.share_link(record.share_token)
    assert "Dear Ana, from Acme." in record.rendered_html
    assert "<style>.terms{margin:0}</style>" in record.rendered_html
    assert record.variables["influencer_name"] == "Ana"
    assert record.variables["signature.influencer_0"] is None

    entry = timeline_repository.entries[0]
    assert entry.action_type == "contract_updated"
    assert entry.description == "Contract updated with 2 variable(s)"
    assert entry.metadata["variable_keys"] == ["influencer_name", "company"]


@pytest.mark.asyncio
async def test_saved_occurrence_values_survive_later_renders(build_service):
    service = build_service()

    first = await service.render_and_save(REF)
    second = await service.render_and_save(REF, {"signature.user_0": "Brand Rep"})
    third = await service.render_and_save(REF)

    assert second.record.share_token == first.record.share_token
    assert third.record.share_token == first.record.share_token
    assert third.record.variables["signature.user_0"] == "Brand Rep"
    assert ">Brand Rep</span>" in third.record.rendered_html


@pytest.mark.asyncio
async def test_missing_contract_or_content_raises(build_service):
    with pytest.raises(TemplateNotFoundError):
        await build_service({}).prepare(REF)

    with pytest.raises(TemplateNotFoundError):
        await build_service(_tables(content="   ")).prepare(REF)


@pytest.mark.asyncio
async def test_view_requires_saved_contract(build_service, timeline_repository):
    service = build_service()
    key = service.collaboration_key(REF).composite

    with pytest.raises(TemplateNotFoundError):
        await service.view(key)

    await service.render_and_save(REF)
    result = await service.view(key, actor_id="user-123")

    assert result.record.collaboration_id == key
    assert timeline_repository.types_for(key)[-1] == "contract_viewed"


@pytest.mark.asyncio
async def test_send_before_render_is_refused(build_service, action_repository):
    service = build_service()
    key = service.collaboration_key(REF).composite

    with pytest.raises(ShareTokenMissingError):
        await service.send(key, REF)

    assert action_repository.writes == 0


@pytest.mark.asyncio
async def test_send_requires_influencer_email(build_service, action_repository):
    service = build_service(_tables(email=None))
    saved = await service.render_and_save(REF)

    with pytest.raises(RecipientMissingError):
        await service.send(saved.record.collaboration_id, REF)

    assert action_repository.writes == 0


@pytest.mark.asyncio
async def test_send_marks_sent_and_composes_email(build_service, timeline_repository):
    service = build_service()
    saved = await service.render_and_save(REF)
    key = saved.record.collaboration_id

    result = await service.send(key, REF, actor_id="user-123", sender_name="Priya")

    assert result.action.is_contract_sent
    assert not result.dispatched
    assert result.email.recipient == "ana@example.com"
    assert result.email.subject == f"Acme - Contract Sign | {key}"
    assert saved.share_link in result.email.body
    assert timeline_repository.types_for(key) == ["contract_updated", "contract_sent"]


@pytest.mark.asyncio
async def test_send_dispatches_when_sender_configured(build_service):
    service = build_service(sender_enabled=True)
    saved = await service.render_and_save(REF)

    result = await service.send(saved.record.collaboration_id, REF)

    assert result.dispatched
    assert len(service.sender.sent) == 1


@pytest.mark.asyncio
async def test_sign_shared_fills_influencer_signature(build_service, action_repository):
    service = build_service()
    saved = await service.render_and_save(REF)
    token = saved.record.share_token

    signed = await service.sign_shared(token, "Ana Ray")

    assert signed.share_token == token
    assert signed.variables["signature.influencer_0"] == "Ana Ray"
    assert signed.variables["influencer_name"] == "Ana"
    assert ">Ana Ray</span>" in signed.rendered_html
    assert 'data-occurrence-key="signature.user_0"' in signed.rendered_html
    assert "Dear Ana, from Acme." in signed.rendered_html
    assert (await action_repository.load(signed.collaboration_id)).is_signed


@pytest.mark.asyncio
async def test_sign_shared_validates_input(build_service):
    service = build_service()
    saved = await service.render_and_save(REF)

    with pytest.raises(ActionValidationError):
        await service.sign_shared(saved.record.share_token, "  ")

    with pytest.raises(TemplateNotFoundError):
        await service.sign_shared("unknown-token", "Ana Ray")


@pytest.mark.asyncio
async def test_delete_collaboration_removes_saved_contract(build_service):
    service = build_service()
    saved = await service.render_and_save(REF)
    key = saved.record.collaboration_id

    deleted = await service.delete_collaboration(key)

    assert deleted["collaboration_variable_overrides"] == 1
    with pytest.raises(TemplateNotFoundError):
        await service.load_shared(saved.record.share_token)
    with pytest.raises(TemplateNotFoundError):
        await service.view(key)


@pytest.mark.asyncio
async def test_sign_shared_refuses_a_second_signature(build_service, timeline_repository):
    service = build_service()
    saved = await service.render_and_save(REF)
    token = saved.record.share_token
    await service.sign_shared(token, "Ana Ray")

    with pytest.raises(ContractAlreadySignedError):
        await service.sign_shared(token, "Mallory")

    stored = await service.load_shared(token)
    assert stored.variables["signature.influencer_0"] == "Ana Ray"
    assert "Mallory" not in stored.rendered_html
    assert timeline_repository.types_for(stored.collaboration_id).count("status_changed") == 1


@pytest.mark.asyncio
async def test_sign_shared_needs_an_influencer_signature_field(
    build_service, action_repository, timeline_repository
):
    service = build_service(_tables(content="<p>Dear var[{{influencer_name}}]</p>"))
    saved = await service.render_and_save(REF)
    key = saved.record.collaboration_id

    with pytest.raises(ActionValidationError):
        await service.sign_shared(saved.record.share_token, "Ana Ray")

    assert await action_repository.load(key) is None
    assert "status_changed" not in timeline_repository.types_for(key)


@pytest.mark.asyncio
async def test_send_rejects_a_reference_for_another_collaboration(
    build_service, action_repository
):
    service = build_service()
    saved = await service.render_and_save(REF)
    other = CollaborationRef(campaign_id="camp-1", influencer_id="inf-2", contract_id="ct-1")

    with pytest.raises(ActionValidationError):
        await service.send(saved.record.collaboration_id, other)

    assert action_repository.writes == 0


@pytest.mark.asyncio
async def test_collaborations_differing_only_by_contract_are_independent(
    build_service, action_repository, timeline_repository
):
    tables = _tables()
    tables["contracts"]["ct-2"] = {
        "id": "ct-2",
        "content": "<p>Addendum for var[{{influencer_name}}]: var[{{plain_text}}]</p>",
        "variables": {"influencer_name": "source:influencers.name"},
    }
    service = build_service(tables)
    actions = ActionService(
        repository=action_repository, timeline=TimelineService(timeline_repository)
    )
    ref_two = CollaborationRef(campaign_id="camp-1", influencer_id="inf-1", contract_id="ct-2")

    first = await service.render_and_save(REF, {"signature.user_0": "Brand Rep"})
    second = await service.render_and_save(ref_two, {"plain_text_0": "Net 30"})
    key_one = first.record.collaboration_id
    key_two = second.record.collaboration_id
    await actions.submit(key_one, ActionSubmission(action="interested"))
    await actions.submit(key_two, ActionSubmission(action="not_interested", remark="Budget"))
    await service.sign_shared(first.record.share_token, "Ana Ray")

    assert key_one != key_two
    assert first.record.share_token != second.record.share_token

    stored_one = await service.load_shared(first.record.share_token)
    stored_two = await service.load_shared(second.record.share_token)
    assert "Dear Ana, from Acme." in stored_one.rendered_html
    assert "Addendum" not in stored_one.rendered_html
    assert "plain_text_0" not in stored_one.variables
    assert stored_two.variables == {"influencer_name": "Ana", "plain_text_0": "Net 30"}
    assert "Brand Rep" not in stored_two.rendered_html

    action_one = await action_repository.load(key_one)
    action_two = await action_repository.load(key_two)
    assert (action_one.action, action_one.is_signed) == ("interested", True)
    assert (action_two.action, action_two.remark, action_two.is_signed) == (
        "not_interested",
        "Budget",
        False,
    )
    assert "status_changed" not in timeline_repository.types_for(key_two)


@pytest.mark.asyncio
async def test_template_with_unreadable_declared_variables_still_prepares(build_service):
    tables = _tables()
    tables["contracts"]["ct-1"]["variables"] = "not an object"

    preparation = await build_service(tables).prepare(REF)

    entries = {entry.occurrence_key: entry for entry in preparation.entries}
    assert entries["influencer_name"].raw_values == []
    assert "signature.influencer_0" in entries
