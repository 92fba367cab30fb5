"""
Append-only persistence for collaboration timeline entries.

Entries are inserted and listed, never updated; ``clear`` is the only way
rows leave the table.
"""

from psycopg.types.json import Jsonb

from app.db.helpers import execute_query, fetch_all, fetch_one
from app.features.collaboration_contracts.domain import TimelineEntry
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class TimelineRepository:
    SELECT_COLUMNS = """
        id, collaboration_id, action_type, description, remark, action,
        occurred_at, user_id, metadata
    """

    @classmethod
    def _row_to_entry(cls, row: dict | None) -> TimelineEntry | None:
        if not row:
            return None

        return TimelineEntry(
            id=str(row["id"]) if row.get("id") is not None else None,
            collaboration_id=row["collaboration_id"],
            action_type=row["action_type"],
            description=row.get("description") or "",
            remark=row.get("remark"),
            action=row.get("action"),
            occurred_at=row.get("occurred_at"),
            actor_id=str(row["user_id"]) if row.get("user_id") else None,
            metadata=row.get("metadata") if isinstance(row.get("metadata"), dict) else {},
        )

    @classmethod
    async def insert(cls, entry: TimelineEntry) -> TimelineEntry:
        query = f"""
            INSERT INTO collaboration_timeline (
                collaboration_id, action_type, description, remark, action,
                occurred_at, user_id, metadata
            )
            VALUES (%s, %s, %s, %s, %s, COALESCE(%s, NOW()), %s, %s)
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                entry.collaboration_id,
                entry.action_type,
                entry.description,
                entry.remark,
                entry.action,
                entry.occurred_at,
                entry.actor_id,
                Jsonb(entry.metadata or {}),
            ),
        )
        return cls._row_to_entry(row)

    @classmethod
    async def list_for(cls, collaboration_id: str, limit: int = 200) -> list[TimelineEntry]:
        """Newest first."""
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM collaboration_timeline
            WHERE collaboration_id = %s
            ORDER BY occurred_at DESC
            LIMIT %s
        """
        rows = await fetch_all(query, (collaboration_id, limit))
        return [cls._row_to_entry(row) for row in rows]

    @classmethod
    async def clear(cls, collaboration_id: str) -> int:
        deleted = await execute_query(
            "DELETE FROM collaboration_timeline WHERE collaboration_id = %s", (collaboration_id,)
        )
        logger.info("Timeline cleared", collaboration_id=collaboration_id, deleted=deleted)
        return deleted
