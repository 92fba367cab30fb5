"""
Collaboration identity.

Every override, action and timeline row is correlated by one composite key
``<campaign>-<influencer>-<contract>``. Each component is a canonical UUID
when the source record has one; otherwise it is derived deterministically
from a namespaced seed so that legacy or external keys stay well-typed and
the same inputs always produce the same key.
"""

import re
import uuid
from typing import Protocol

from app.features.collaboration_contracts.domain.models import CollaborationKey, CollaborationRef

NO_ENTITY = "none"

_CANONICAL_ID = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

_FNV_PRIME = 0x100000001B3
_MASK_128 = (1 << 128) - 1
_MASK_64 = (1 << 64) - 1

COLLABORATION_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, "collaborations.contracts")


class IdGenerator(Protocol):
    def generate(self, seed: str) -> str:
        """Return a canonical-shaped identifier that depends only on `seed`."""
        ...


class HashIdGenerator:
    """
    Rolling FNV-style hash over UTF-16 code units, formatted as a UUID.

    Not cryptographic. Kept because identifiers derived this way already
    exist in stored collaboration rows.
    """

    def generate(self, seed: str) -> str:
        h1 = 0xCBF29CE484222325
        h2 = 0x84222325CBF29CE
        encoded = seed.encode("utf-16-le")
        for i in range(0, len(encoded), 2):
            code = encoded[i] | (encoded[i + 1] << 8)
            h1 = ((h1 ^ code) * _FNV_PRIME) & _MASK_128
            h2 = ((h2 ^ ((code << 1) & _MASK_128)) * _FNV_PRIME) & _MASK_128

        combined = ((h1 << 64) | (h2 & _MASK_64)) & _MASK_128
        hex_digits = f"{combined:032x}"
        return "-".join(
            (
                hex_digits[0:8],
                hex_digits[8:12],
                hex_digits[12:16],
                hex_digits[16:20],
                hex_digits[20:32],
            )
        )


class Uuid5IdGenerator:
    """Name-based UUID (RFC 4122 version 5) under a fixed namespace."""

    def __init__(self, namespace: uuid.UUID = COLLABORATION_NAMESPACE):
        self.namespace = namespace

    def generate(self, seed: str) -> str:
        return str(uuid.uuid5(self.namespace, seed))


def get_id_generator(strategy: str = "hash") -> IdGenerator:
    if strategy == "uuid5":
        return Uuid5IdGenerator()
    if strategy == "hash":
        return HashIdGenerator()
    raise ValueError(f"Unknown collaboration id strategy: {strategy}")


def is_canonical_id(value: str | None) -> bool:
    return bool(value and _CANONICAL_ID.match(value))


def resolve_entity_key(
    namespace: str, natural_key: str | None, generator: IdGenerator
) -> str | None:
    """Canonical id as-is, otherwise the generator's id for ``<namespace>:<key>``."""
    if natural_key is None:
        return None
    natural_key = str(natural_key).strip()
    if not natural_key:
        return None
    if is_canonical_id(natural_key):
        return natural_key
    return generator.generate(f"{namespace}:{natural_key}")


def build_collaboration_key(ref: CollaborationRef, generator: IdGenerator) -> CollaborationKey:
    """
    Derive the composite key for one (campaign, influencer, contract) triple.

    Public ids (`pid`) are preferred over internal ids for the influencer and
    contract; either falls back to ``none`` when nothing is linked yet.

    Raises:
        ValueError: if the campaign identifier is missing.
    """
    campaign_key = resolve_entity_key("campaign", ref.campaign_id, generator)
    if campaign_key is None:
        raise ValueError("A campaign identifier is required to build a collaboration key")

    influencer_key = resolve_entity_key(
        "influencer", ref.influencer_pid or ref.influencer_id, generator
    )
    contract_key = resolve_entity_key("contract", ref.contract_pid or ref.contract_id, generator)

    return CollaborationKey(
        campaign_key=campaign_key,
        influencer_key=influencer_key or NO_ENTITY,
        contract_key=contract_key or NO_ENTITY,
    )
