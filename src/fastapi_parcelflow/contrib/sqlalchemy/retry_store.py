"""SQLAlchemy ledger retry store."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fastapi_parcelflow.contrib.sqlalchemy.models import LedgerRetryModel
from fastapi_parcelflow.retry import compute_next_retry_at

PENDING = "pending"
SUCCEEDED = "succeeded"
EXHAUSTED = "exhausted"


class SQLAlchemyLedgerRetryStore:
    """Persist failed ledger appends in a SQLAlchemy table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        backoff_seconds: int = 60,
    ) -> None:
        self.session_factory = session_factory
        self.backoff_seconds = backoff_seconds

    async def store_failed_append(
        self, tracking_id: str, event_status: str, error: str
    ) -> str:
        retry_id = str(uuid.uuid4())
        retry = LedgerRetryModel(
            id=retry_id,
            tracking_id=tracking_id,
            event_status=event_status,
            attempts=0,
            last_error=error,
            next_retry_at=compute_next_retry_at(1, self.backoff_seconds),
        )
        async with self.session_factory() as session:
            session.add(retry)
            await session.commit()
        return retry_id

    async def get_due_retries(self, limit: int = 10) -> list[dict]:
        now = datetime.now(tz=UTC)
        async with self.session_factory() as session:
            result = await session.execute(
                select(LedgerRetryModel)
                .where(
                    LedgerRetryModel.state == PENDING,
                    LedgerRetryModel.next_retry_at <= now,
                )
                .order_by(LedgerRetryModel.next_retry_at)
                .limit(limit)
            )
            return [
                {
                    "id": retry.id,
                    "tracking_id": retry.tracking_id,
                    "event_status": retry.event_status,
                    "attempts": retry.attempts,
                    "last_error": retry.last_error,
                }
                for retry in result.scalars().all()
            ]

    async def mark_succeeded(self, retry_id: str) -> None:
        async with self.session_factory() as session:
            retry = await session.get(LedgerRetryModel, retry_id)
            if retry is not None:
                retry.state = SUCCEEDED
                await session.commit()

    async def mark_failed(self, retry_id: str, error: str) -> None:
        async with self.session_factory() as session:
            retry = await session.get(LedgerRetryModel, retry_id)
            if retry is not None:
                retry.attempts += 1
                retry.last_error = error
                retry.next_retry_at = compute_next_retry_at(
                    retry.attempts + 1, self.backoff_seconds
                )
                await session.commit()

    async def mark_exhausted(self, retry_id: str) -> None:
        async with self.session_factory() as session:
            retry = await session.get(LedgerRetryModel, retry_id)
            if retry is not None:
                retry.state = EXHAUSTED
                await session.commit()
