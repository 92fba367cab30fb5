"""
Override store: repository access fronted by a Redis read-through cache.

The cache holds the JSON form of an OverrideRecord under
``collab:override:<collaboration_id>``. Anything unreadable in the cache is
dropped and treated as a miss; Redis being down only costs a database read.
"""

import json
from datetime import datetime

from app.config import settings
from app.features.collaboration_contracts.domain import OverrideRecord
from app.features.collaboration_contracts.repository.override_repository import (
    OverrideRepository,
)
from app.infrastructure.observability.logging import get_logger
from app.services.redis_client import FastRedisClient, fast_redis

logger = get_logger(__name__)


class OverrideCache:
    KEY_PREFIX = "collab:override:"

    def __init__(self, redis_client: FastRedisClient | None = None, ttl_seconds: int | None = None):
        self.redis = redis_client or fast_redis
        self.ttl_seconds = ttl_seconds or settings.OVERRIDE_CACHE_TTL_SECONDS

    def _key(self, collaboration_id: str) -> str:
        return f"{self.KEY_PREFIX}{collaboration_id}"

    @staticmethod
    def _serialize(record: OverrideRecord) -> str:
        return json.dumps(
            {
                "collaboration_id": record.collaboration_id,
                "variables": record.variables,
                "rendered_html": record.rendered_html,
                "share_token": record.share_token,
                "campaign_id": record.campaign_id,
                "influencer_id": record.influencer_id,
                "updated_at": record.updated_at.isoformat() if record.updated_at else None,
            }
        )

    @staticmethod
    def _deserialize(raw: str) -> OverrideRecord:
        data = json.loads(raw)
        variables = data["variables"]
        if not isinstance(variables, dict):
            raise TypeError("variables must be an object")
        updated_at = data.get("updated_at")
        return OverrideRecord(
            collaboration_id=data["collaboration_id"],
            variables=variables,
            rendered_html=data["rendered_html"],
            share_token=data["share_token"],
            campaign_id=data.get("campaign_id"),
            influencer_id=data.get("influencer_id"),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    async def get(self, collaboration_id: str) -> OverrideRecord | None:
        raw = await self.redis.get(self._key(collaboration_id))
        if not raw:
            return None
        try:
            return self._deserialize(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(
                "Malformed cached override, dropping",
                collaboration_id=collaboration_id,
                error=str(e),
            )
            await self.redis.delete(self._key(collaboration_id))
            return None

    async def put(self, record: OverrideRecord) -> bool:
        return await self.redis.set_with_ttl(
            self._key(record.collaboration_id), self._serialize(record), self.ttl_seconds
        )

    async def invalidate(self, collaboration_id: str) -> bool:
        return await self.redis.delete(self._key(collaboration_id))


class OverrideStore:
    """Save/load of the single override record per collaboration key."""

    def __init__(
        self,
        repository: type[OverrideRepository] = OverrideRepository,
        cache: OverrideCache | None = None,
    ):
        self.repository = repository
        self.cache = cache or OverrideCache()

    async def save(self, record: OverrideRecord) -> OverrideRecord:
        """Upsert and refresh the cache; the returned token is the one actually stored."""
        saved = await self.repository.save(record)
        await self.cache.put(saved)
        return saved

    async def load(self, collaboration_id: str) -> OverrideRecord | None:
        cached = await self.cache.get(collaboration_id)
        if cached is not None:
            return cached

        record = await self.repository.load(collaboration_id)
        if record is not None:
            await self.cache.put(record)
        return record

    async def load_by_share_token(self, share_token: str) -> OverrideRecord | None:
        return await self.repository.load_by_share_token(share_token)

    async def delete_collaboration(self, collaboration_id: str) -> dict[str, int]:
        deleted = await self.repository.delete_collaboration(collaboration_id)
        await self.cache.invalidate(collaboration_id)
        return deleted


override_store = OverrideStore()
