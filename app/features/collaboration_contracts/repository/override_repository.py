"""
Persistence for collaboration override records.

One row per collaboration key holds the variable map, the rendered document
and the share token together. Saves are a single ``INSERT ... ON CONFLICT``
so concurrent writers can never produce a second row, and the first share
token ever written for a key is kept on every later save.
"""

import json
from typing import Any

from psycopg.types.json import Jsonb

from app.db.helpers import DatabaseError, execute_transaction, fetch_one, with_db_retry
from app.features.collaboration_contracts.domain import OverrideRecord, OverrideStoreError
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class OverrideRepository:
    """Keyed upsert/load of collaboration_variable_overrides rows."""

    SELECT_COLUMNS = """
        collaboration_id, campaign_id, influencer_id, variables,
        contract_html, share_token, updated_at
    """

    @classmethod
    def _parse_variables(cls, raw: Any, collaboration_id: str) -> dict[str, str | None]:
        if raw is None:
            return {}
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(
                    "Stored override variables are not valid JSON, ignoring",
                    collaboration_id=collaboration_id,
                )
                return {}
        if not isinstance(raw, dict):
            logger.warning(
                "Stored override variables are not an object, ignoring",
                collaboration_id=collaboration_id,
            )
            return {}
        return {str(k): (None if v is None else str(v)) for k, v in raw.items()}

    @classmethod
    def _row_to_record(cls, row: dict | None) -> OverrideRecord | None:
        if not row:
            return None

        collaboration_id = row["collaboration_id"]
        return OverrideRecord(
            collaboration_id=collaboration_id,
            variables=cls._parse_variables(row.get("variables"), collaboration_id),
            rendered_html=row.get("contract_html") or "",
            share_token=row.get("share_token") or "",
            campaign_id=str(row["campaign_id"]) if row.get("campaign_id") else None,
            influencer_id=str(row["influencer_id"]) if row.get("influencer_id") else None,
            updated_at=row.get("updated_at"),
        )

    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def _upsert(cls, query: str, params: tuple) -> dict | None:
        return await fetch_one(query, params)

    @classmethod
    async def save(cls, record: OverrideRecord) -> OverrideRecord:
        """
        Insert or replace the record for its collaboration key.

        `record.share_token` is only written when the key has no token yet;
        the returned record carries whichever token is actually stored.
        """
        query = f"""
            INSERT INTO collaboration_variable_overrides (
                collaboration_id, campaign_id, influencer_id,
                variables, contract_html, share_token, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, NOW())
            ON CONFLICT (collaboration_id) DO UPDATE SET
                campaign_id = EXCLUDED.campaign_id,
                influencer_id = COALESCE(
                    EXCLUDED.influencer_id, collaboration_variable_overrides.influencer_id
                ),
                variables = EXCLUDED.variables,
                contract_html = EXCLUDED.contract_html,
                share_token = COALESCE(
                    collaboration_variable_overrides.share_token, EXCLUDED.share_token
                ),
                updated_at = NOW()
            RETURNING {cls.SELECT_COLUMNS}
        """
        params = (
            record.collaboration_id,
            record.campaign_id,
            record.influencer_id,
            Jsonb(record.variables),
            record.rendered_html,
            record.share_token,
        )

        try:
            row = await cls._upsert(query, params)
        except DatabaseError as e:
            logger.error(
                "Override save failed", collaboration_id=record.collaboration_id, error=str(e)
            )
            raise OverrideStoreError(
                f"Failed to save contract overrides: {e}",
                operation="save_override",
                recoverable=e.recoverable,
            ) from e

        if not row:
            raise OverrideStoreError("Override upsert returned no row", operation="save_override")

        saved = cls._row_to_record(row)
        logger.info(
            "Override record saved",
            collaboration_id=saved.collaboration_id,
            variable_count=len(saved.variables),
        )
        return saved

    @classmethod
    async def load(cls, collaboration_id: str) -> OverrideRecord | None:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM collaboration_variable_overrides
            WHERE collaboration_id = %s
        """
        try:
            row = await fetch_one(query, (collaboration_id,))
        except DatabaseError as e:
            raise OverrideStoreError(
                f"Failed to load contract overrides: {e}", operation="load_override"
            ) from e
        return cls._row_to_record(row)

    @classmethod
    async def load_by_share_token(cls, share_token: str) -> OverrideRecord | None:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM collaboration_variable_overrides
            WHERE share_token = %s
        """
        try:
            row = await fetch_one(query, (share_token,))
        except DatabaseError as e:
            raise OverrideStoreError(
                f"Failed to load shared contract: {e}", operation="load_by_share_token"
            ) from e
        return cls._row_to_record(row)

    @classmethod
    async def delete_collaboration(cls, collaboration_id: str) -> dict[str, int]:
        """
        Remove override, timeline and action rows for one key atomically.

        Returns deleted row counts per table.
        """
        tables = (
            "collaboration_variable_overrides",
            "collaboration_timeline",
            "collaboration_actions",
        )
        try:
            counts = await execute_transaction(
                [
                    (f"DELETE FROM {table} WHERE collaboration_id = %s", (collaboration_id,))
                    for table in tables
                ]
            )
        except DatabaseError as e:
            logger.error(
                "Collaboration delete failed", collaboration_id=collaboration_id, error=str(e)
            )
            raise OverrideStoreError(
                f"Failed to delete collaboration: {e}", operation="delete_collaboration"
            ) from e

        deleted = dict(zip(tables, counts))
        logger.info("Collaboration deleted", collaboration_id=collaboration_id, **deleted)
        return deleted
