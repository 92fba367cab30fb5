"""
Read-only access to the records a contract template can reference.

Placeholders name collections such as ``influencers`` or ``companies``; only
the tables listed in ``LOOKUP_COLUMNS`` may be queried, and only by the
columns listed for them.
"""

from typing import Any

from psycopg import sql

from app.db.helpers import fetch_one, with_db_retry
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RecordRepository:
    """Fetch single rows from the related-record tables."""

    LOOKUP_COLUMNS: dict[str, frozenset[str]] = {
        "campaigns": frozenset({"id"}),
        "influencers": frozenset({"id", "pid"}),
        "contracts": frozenset({"id", "pid"}),
        "companies": frozenset({"id"}),
        "user_profiles": frozenset({"id", "user_id"}),
    }

    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def fetch_by(cls, table: str, column: str, value: Any) -> dict[str, Any] | None:
        """Return the first row of `table` whose `column` equals `value`."""
        if column not in cls.LOOKUP_COLUMNS.get(table, frozenset()):
            raise ValueError(f"Lookup of {table}.{column} is not allowed")
        if value is None or value == "":
            return None

        # Compare as text so natural keys never fail a uuid cast.
        query = sql.SQL("SELECT * FROM {table} WHERE {column}::text = %s LIMIT 1").format(
            table=sql.Identifier(table),
            column=sql.Identifier(column),
        )
        row = await fetch_one(query, (str(value),))
        if row is None:
            logger.debug("Related record not found", table=table, column=column)
        return row

    @classmethod
    async def get_campaign(cls, campaign_id: str | None) -> dict[str, Any] | None:
        return await cls.fetch_by("campaigns", "id", campaign_id)

    @classmethod
    async def get_influencer(
        cls, influencer_id: str | None, influencer_pid: str | None = None
    ) -> dict[str, Any] | None:
        """Look up by id first, then by public id."""
        row = await cls.fetch_by("influencers", "id", influencer_id)
        if row is None and influencer_pid:
            row = await cls.fetch_by("influencers", "pid", influencer_pid)
        return row

    @classmethod
    async def get_contract(
        cls, contract_id: str | None, contract_pid: str | None = None
    ) -> dict[str, Any] | None:
        row = await cls.fetch_by("contracts", "id", contract_id)
        if row is None and contract_pid:
            row = await cls.fetch_by("contracts", "pid", contract_pid)
        return row

    @classmethod
    async def get_company(cls, company_id: str | None) -> dict[str, Any] | None:
        return await cls.fetch_by("companies", "id", company_id)

    @classmethod
    async def get_user_profile(cls, user_id: str | None) -> dict[str, Any] | None:
        """Profiles are keyed by their auth user; older rows only match on id."""
        row = await cls.fetch_by("user_profiles", "user_id", user_id)
        if row is None:
            row = await cls.fetch_by("user_profiles", "id", user_id)
        return row
