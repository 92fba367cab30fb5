"""
Related-record lookup rules for one collaboration.
"""

from typing import Any

from app.features.collaboration_contracts.domain import CollaborationRef
from app.features.collaboration_contracts.repository.record_repository import RecordRepository
from app.features.collaboration_contracts.templating import RecordCache
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class CollaborationRecordSource:
    """
    Resolve a collection name to the record that belongs to this collaboration.

    - campaigns: the collaboration's campaign
    - influencers: by id, then by public id
    - contracts: by id, then by public id
    - companies: the campaign's company (or the company passed in)
    - user_profiles: the campaign's first assigned user, by user_id then id
    """

    def __init__(
        self,
        ref: CollaborationRef,
        cache: RecordCache,
        repository: type[RecordRepository] = RecordRepository,
    ):
        self.ref = ref
        self.cache = cache
        self.repository = repository

    def cache_key(self, collection: str) -> str:
        ref = self.ref
        keys = {
            "campaigns": ref.campaign_id,
            "influencers": f"{ref.influencer_id}|{ref.influencer_pid}",
            "contracts": f"{ref.contract_id}|{ref.contract_pid}",
            "companies": ref.company_id or f"campaign:{ref.campaign_id}",
            "user_profiles": ref.user_id or f"campaign:{ref.campaign_id}",
        }
        return str(keys.get(collection, ref.campaign_id))

    async def campaign(self) -> dict[str, Any] | None:
        return await self.cache.get_or_load(
            f"campaigns:{self.ref.campaign_id}",
            lambda: self.repository.get_campaign(self.ref.campaign_id),
        )

    async def _campaign_user_id(self) -> str | None:
        if self.ref.user_id:
            return self.ref.user_id
        campaign = await self.campaign()
        users = (campaign or {}).get("users")
        if isinstance(users, list) and users and isinstance(users[0], dict):
            user_id = users[0].get("id")
            return str(user_id) if user_id else None
        return None

    async def fetch(self, collection: str) -> dict[str, Any] | None:
        ref = self.ref
        if collection == "campaigns":
            return await self.campaign()
        if collection == "influencers":
            return await self.repository.get_influencer(ref.influencer_id, ref.influencer_pid)
        if collection == "contracts":
            return await self.repository.get_contract(ref.contract_id, ref.contract_pid)
        if collection == "companies":
            company_id = ref.company_id
            if not company_id:
                company_id = ((await self.campaign()) or {}).get("company_id")
            return await self.repository.get_company(company_id) if company_id else None
        if collection == "user_profiles":
            user_id = await self._campaign_user_id()
            return await self.repository.get_user_profile(user_id) if user_id else None

        logger.debug("Unknown descriptor collection", collection=collection)
        return None
