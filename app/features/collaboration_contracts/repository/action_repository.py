"""
Persistence for the latest-wins collaboration action record.
"""

from datetime import UTC, datetime

from psycopg import sql

from app.db.helpers import DatabaseError, fetch_one, with_db_retry
from app.features.collaboration_contracts.domain import ActionRecord, ActionStoreError
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ActionRepository:
    """One collaboration_actions row per collaboration key."""

    SELECT_COLUMNS = """
        collaboration_id, campaign_id, influencer_id, contract_id, user_id,
        action, remark, callback_at, occurred_at, is_contract_sent, is_signed
    """

    FLAG_COLUMNS = frozenset({"is_contract_sent", "is_signed"})

    @classmethod
    def _row_to_record(cls, row: dict | None) -> ActionRecord | None:
        if not row:
            return None

        def _text(value):
            return str(value) if value is not None else None

        return ActionRecord(
            collaboration_id=row["collaboration_id"],
            action=row.get("action"),
            remark=row.get("remark"),
            occurred_at=row.get("occurred_at"),
            callback_at=row.get("callback_at"),
            is_contract_sent=bool(row.get("is_contract_sent")),
            is_signed=bool(row.get("is_signed")),
            campaign_id=_text(row.get("campaign_id")),
            influencer_id=_text(row.get("influencer_id")),
            contract_id=_text(row.get("contract_id")),
            user_id=_text(row.get("user_id")),
        )

    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def _fetch(cls, query, params: tuple) -> dict | None:
        return await fetch_one(query, params)

    @classmethod
    async def load(cls, collaboration_id: str) -> ActionRecord | None:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM collaboration_actions
            WHERE collaboration_id = %s
        """
        try:
            row = await cls._fetch(query, (collaboration_id,))
        except DatabaseError as e:
            raise ActionStoreError(f"Failed to load action: {e}", operation="load_action") from e
        return cls._row_to_record(row)

    @classmethod
    async def upsert_action(cls, record: ActionRecord) -> ActionRecord:
        """Replace the disposition for the key; sent/signed flags are left untouched."""
        query = f"""
            INSERT INTO collaboration_actions (
                collaboration_id, campaign_id, influencer_id, contract_id, user_id,
                action, remark, callback_at, occurred_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (collaboration_id) DO UPDATE SET
                campaign_id = COALESCE(EXCLUDED.campaign_id, collaboration_actions.campaign_id),
                influencer_id = COALESCE(EXCLUDED.influencer_id, collaboration_actions.influencer_id),
                contract_id = COALESCE(EXCLUDED.contract_id, collaboration_actions.contract_id),
                user_id = COALESCE(EXCLUDED.user_id, collaboration_actions.user_id),
                action = EXCLUDED.action,
                remark = EXCLUDED.remark,
                callback_at = EXCLUDED.callback_at,
                occurred_at = EXCLUDED.occurred_at
            RETURNING {cls.SELECT_COLUMNS}
        """
        params = (
            record.collaboration_id,
            record.campaign_id,
            record.influencer_id,
            record.contract_id,
            record.user_id,
            record.action,
            record.remark,
            record.callback_at,
            record.occurred_at or datetime.now(UTC),
        )

        try:
            row = await cls._fetch(query, params)
        except DatabaseError as e:
            logger.error(
                "Action upsert failed", collaboration_id=record.collaboration_id, error=str(e)
            )
            raise ActionStoreError(f"Failed to save action: {e}", operation="upsert_action") from e

        logger.info(
            "Collaboration action saved",
            collaboration_id=record.collaboration_id,
            action=record.action,
        )
        return cls._row_to_record(row)

    @classmethod
    async def set_flag(
        cls, record: ActionRecord, column: str, value: bool
    ) -> ActionRecord:
        """
        Set `is_contract_sent` or `is_signed` for the key, creating the row if needed.

        Only the flag (and missing related ids) change; the disposition stays.
        """
        if column not in cls.FLAG_COLUMNS:
            raise ValueError(f"Unknown action flag: {column}")

        query = sql.SQL(
            """
            INSERT INTO collaboration_actions (
                collaboration_id, campaign_id, influencer_id, contract_id, user_id,
                occurred_at, {flag}
            )
            VALUES (%s, %s, %s, %s, %s, NOW(), %s)
            ON CONFLICT (collaboration_id) DO UPDATE SET
                campaign_id = COALESCE(collaboration_actions.campaign_id, EXCLUDED.campaign_id),
                influencer_id = COALESCE(collaboration_actions.influencer_id, EXCLUDED.influencer_id),
                contract_id = COALESCE(collaboration_actions.contract_id, EXCLUDED.contract_id),
                user_id = COALESCE(collaboration_actions.user_id, EXCLUDED.user_id),
                {flag} = EXCLUDED.{flag}
            RETURNING """
            + cls.SELECT_COLUMNS
        ).format(flag=sql.Identifier(column))
        params = (
            record.collaboration_id,
            record.campaign_id,
            record.influencer_id,
            record.contract_id,
            record.user_id,
            value,
        )

        try:
            row = await cls._fetch(query, params)
        except DatabaseError as e:
            logger.error(
                "Action flag update failed",
                collaboration_id=record.collaboration_id,
                flag=column,
                error=str(e),
            )
            raise ActionStoreError(f"Failed to update {column}: {e}", operation="set_flag") from e

        logger.info(
            "Collaboration flag updated",
            collaboration_id=record.collaboration_id,
            flag=column,
            value=value,
        )
        return cls._row_to_record(row)

    @classmethod
    async def mark_contract_sent(cls, record: ActionRecord) -> ActionRecord:
        return await cls.set_flag(record, "is_contract_sent", True)

    @classmethod
    async def set_signed(cls, record: ActionRecord, signed: bool) -> ActionRecord:
        return await cls.set_flag(record, "is_signed", signed)
