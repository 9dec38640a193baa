# store.py
"""Persistence for relay audit logs, leads, user settings and search history."""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db import DatabaseManager, Lead, SearchHistory, UserSettings, WebhookLog
from .models import DeliveryAttemptLog, LeadRecord

logger = logging.getLogger(__name__)


class RelayStore:
    """Writes relay results to the database.

    Each method runs in its own transaction so a failed lead insert never
    rolls back the audit log, and the reverse. Errors propagate as
    ``SQLAlchemyError``; the relay service decides whether they are fatal.

    Attributes:
        session_factory: Factory for async sessions. Defaults to the
            application's DatabaseManager factory.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> None:
        self.session_factory = session_factory

    async def _get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self.session_factory is None:
            self.session_factory = await DatabaseManager.get_session_factory()
        return self.session_factory

    async def insert_webhook_log(self, log: DeliveryAttemptLog) -> str:
        """Persist the audit row for one relay invocation.

        Returns:
            The id of the new row.
        """
        factory = await self._get_session_factory()
        row = WebhookLog(
            id=str(uuid.uuid4()),
            user_id=log.user_id,
            payload=log.payload,
            webhook_url=log.webhook_url,
            status=log.status.value,
            attempts=log.attempts,
            last_attempt_at=log.last_attempt_at,
            response_code=log.response_code,
            response_body=log.response_body,
        )
        async with factory() as session:
            async with session.begin():
                session.add(row)
        return row.id

    async def insert_leads(self, records: List[LeadRecord]) -> int:
        """Insert a batch of leads in a single transaction.

        Returns:
            Number of rows persisted; the batch is all-or-nothing.
        """
        if not records:
            return 0

        factory = await self._get_session_factory()
        rows = [Lead(**record.model_dump()) for record in records]
        async with factory() as session:
            async with session.begin():
                session.add_all(rows)

        logger.info(
            "Saved leads",
            extra={"count": len(rows), "campaign": records[0].campaign},
        )
        return len(rows)

    async def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        """Load the caller's settings row, if any."""
        factory = await self._get_session_factory()
        async with factory() as session:
            result = await session.execute(
                select(UserSettings).where(UserSettings.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def record_search(
        self,
        user_id: str,
        niche: str,
        city: str,
        country: str,
        results_count: int,
    ) -> None:
        """Append a search history entry."""
        factory = await self._get_session_factory()
        async with factory() as session:
            async with session.begin():
                session.add(
                    SearchHistory(
                        user_id=user_id,
                        niche=niche,
                        city=city,
                        country=country,
                        results_count=results_count,
                    )
                )
