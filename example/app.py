"""FastAPI example app demonstrating fastapi-parcelflow."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fastapi_parcelflow import (
    ParcelFlowConfig,
    StripeCheckoutGateway,
    create_parcel_router,
    register_exception_handlers,
)
from fastapi_parcelflow.contrib.sqlalchemy.models import Base
from fastapi_parcelflow.contrib.sqlalchemy.repository import (
    create_sqlalchemy_store,
)
from fastapi_parcelflow.contrib.sqlalchemy.retry_store import (
    SQLAlchemyLedgerRetryStore,
)
from fastapi_parcelflow.ledger import TrackingLedger
from fastapi_parcelflow.retry import process_due_retries

logger = logging.getLogger(__name__)

# --- Database setup ---

DATABASE_URL = os.environ.get(
    "EXAMPLE_DATABASE_URL", "sqlite+aiosqlite:///./example.db"
)
RETRY_INTERVAL_SECONDS = 30

engine = create_async_engine(DATABASE_URL, echo=False)
async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# --- Library integration ---

config = ParcelFlowConfig()
store = create_sqlalchemy_store(async_session)
gateway = StripeCheckoutGateway.from_config(config)
retry_store = SQLAlchemyLedgerRetryStore(
    async_session, backoff_seconds=config.retry_backoff_seconds
)

parcel_router = create_parcel_router(
    config=config,
    store=store,
    gateway=gateway,
    retry_store=retry_store,
)


async def replay_ledger_retries() -> None:
    """Replay queued ledger appends until cancelled."""
    ledger = TrackingLedger(store)
    while True:
        try:
            processed = await process_due_retries(
                retry_store=retry_store, ledger=ledger, config=config
            )
        except Exception:
            logger.exception("Ledger retry pass failed")
        else:
            if processed:
                logger.info("Replayed %d ledger retries", processed)
        await asyncio.sleep(RETRY_INTERVAL_SECONDS)


# --- FastAPI app ---


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    worker = None
    if config.retry_enabled:
        worker = asyncio.create_task(replay_ledger_retries())
    yield
    if worker is not None:
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker
    await engine.dispose()


app = FastAPI(
    title="fastapi-parcelflow demo",
    lifespan=lifespan,
)
register_exception_handlers(app)
app.include_router(parcel_router, prefix="/api")
