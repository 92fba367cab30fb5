"""
Timeline recording for collaboration lifecycle events.

Writes go to the collaboration_timeline table and to structured logs.
A failed write never fails the operation it describes: ``record`` returns
False and logs enough context to re-create the entry by hand.
"""

from datetime import UTC, datetime
from typing import Any

from app.features.collaboration_contracts.domain import TimelineEntry
from app.features.collaboration_contracts.repository.timeline_repository import (
    TimelineRepository,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

TIMELINE_WARNING = "The change was saved, but it could not be added to the timeline."


class TimelineService:
    """Append, list and clear timeline entries for one collaboration key."""

    def __init__(self, repository: type[TimelineRepository] = TimelineRepository):
        self.repository = repository

    async def record(
        self,
        collaboration_id: str,
        action_type: str,
        description: str,
        *,
        actor_id: str | None = None,
        remark: str | None = None,
        action: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """
        Append one entry.

        Returns:
            True if stored, False if the write failed (never raises)
        """
        occurred_at = datetime.now(UTC)
        logger.info(
            "Timeline event",
            collaboration_id=collaboration_id,
            action_type=action_type,
            actor_id=actor_id,
        )

        entry = TimelineEntry(
            collaboration_id=collaboration_id,
            action_type=action_type,
            description=description,
            occurred_at=occurred_at,
            actor_id=actor_id,
            remark=remark,
            action=action,
            metadata=metadata or {},
        )

        try:
            await self.repository.insert(entry)
            return True

        except Exception as e:
            # The primary action already succeeded; only report the gap.
            logger.error(
                "Failed to write timeline entry",
                error=str(e),
                error_type=type(e).__name__,
                collaboration_id=collaboration_id,
                action_type=action_type,
                fallback_data={
                    "collaboration_id": collaboration_id,
                    "action_type": action_type,
                    "description": description,
                    "remark": remark,
                    "action": action,
                    "actor_id": actor_id,
                    "metadata": metadata or {},
                    "timestamp": occurred_at.isoformat(),
                },
            )
            return False

    async def list_entries(self, collaboration_id: str) -> list[TimelineEntry]:
        return await self.repository.list_for(collaboration_id)

    async def clear(self, collaboration_id: str) -> int:
        """Bulk-delete every entry for the key; the only delete path."""
        return await self.repository.clear(collaboration_id)


timeline_service = TimelineService()
