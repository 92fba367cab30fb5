import re
import uuid

import pytest

from app.features.collaboration_contracts.domain import (
    NO_ENTITY,
    CollaborationRef,
    HashIdGenerator,
    Uuid5IdGenerator,
    build_collaboration_key,
    get_id_generator,
    is_canonical_id,
    resolve_entity_key,
)
from app.features.collaboration_contracts.domain.identity import COLLABORATION_NAMESPACE

UUID_SHAPE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
CAMPAIGN_UUID = "7d6f2c1e-4b8a-4f3e-9a21-0c5d8e7f6a90"


def test_hash_generator_is_deterministic_and_uuid_shaped():
    generator = HashIdGenerator()

    first = generator.generate("campaign:SPRING-24")

    assert first == generator.generate("campaign:SPRING-24")
    assert first != generator.generate("campaign:SPRING-25")
    assert UUID_SHAPE.match(first)
    assert is_canonical_id(first)


def test_uuid5_generator_uses_fixed_namespace():
    value = Uuid5IdGenerator().generate("influencer:P-1")

    assert value == str(uuid.uuid5(COLLABORATION_NAMESPACE, "influencer:P-1"))
    assert uuid.UUID(value).version == 5


def test_get_id_generator_strategies():
    assert isinstance(get_id_generator("hash"), HashIdGenerator)
    assert isinstance(get_id_generator("uuid5"), Uuid5IdGenerator)
    with pytest.raises(ValueError):
        get_id_generator("random")


def test_resolve_entity_key_keeps_canonical_ids():
    generator = HashIdGenerator()

    assert resolve_entity_key("campaign", CAMPAIGN_UUID, generator) == CAMPAIGN_UUID
    assert resolve_entity_key("campaign", "SPRING-24", generator) == generator.generate(
        "campaign:SPRING-24"
    )
    assert resolve_entity_key("campaign", "  ", generator) is None
    assert resolve_entity_key("campaign", None, generator) is None


def test_namespace_separates_equal_natural_keys():
    generator = HashIdGenerator()

    assert resolve_entity_key("campaign", "42", generator) != resolve_entity_key(
        "contract", "42", generator
    )


def test_key_requires_campaign():
    with pytest.raises(ValueError):
        build_collaboration_key(CollaborationRef(campaign_id=""), HashIdGenerator())


def test_missing_influencer_and_contract_use_placeholder():
    key = build_collaboration_key(CollaborationRef(campaign_id=CAMPAIGN_UUID), HashIdGenerator())

    assert key.influencer_key == NO_ENTITY
    assert key.contract_key == NO_ENTITY
    assert key.composite == f"{CAMPAIGN_UUID}-none-none"


def test_public_ids_are_preferred():
    generator = HashIdGenerator()
    ref = CollaborationRef(
        campaign_id=CAMPAIGN_UUID,
        influencer_id="inf-1",
        influencer_pid="P-1",
        contract_id="ct-1",
        contract_pid="C-9",
    )

    key = build_collaboration_key(ref, generator)

    assert key.influencer_key == generator.generate("influencer:P-1")
    assert key.contract_key == generator.generate("contract:C-9")


def test_different_contracts_give_different_keys():
    generator = HashIdGenerator()
    first = build_collaboration_key(
        CollaborationRef(campaign_id="SPRING-24", influencer_id="inf-1", contract_id="ct-1"),
        generator,
    )
    second = build_collaboration_key(
        CollaborationRef(campaign_id="SPRING-24", influencer_id="inf-1", contract_id="ct-2"),
        generator,
    )

    assert first.campaign_key == second.campaign_key
    assert first.influencer_key == second.influencer_key
    assert first.composite != second.composite
