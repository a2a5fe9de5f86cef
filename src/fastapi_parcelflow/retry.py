"""Ledger append retry with exponential backoff."""

import logging
from datetime import UTC, datetime, timedelta

from fastapi_parcelflow.config import ParcelFlowConfig
from fastapi_parcelflow.ledger import TrackingLedger
from fastapi_parcelflow.protocols import LedgerRetryStore

logger = logging.getLogger(__name__)


def compute_next_retry_at(
    attempt: int,
    backoff_seconds: int,
) -> datetime:
    """Compute the next retry time with exponential backoff.

    delay = backoff_seconds * 2^(attempt - 1)
    """
    delay = backoff_seconds * (2 ** (attempt - 1))
    return datetime.now(tz=UTC) + timedelta(seconds=delay)


async def process_due_retries(
    *,
    retry_store: LedgerRetryStore,
    ledger: TrackingLedger,
    config: ParcelFlowConfig,
    limit: int = 10,
) -> int:
    """Replay ledger appends whose retry time has come.

    Returns the number of retries processed.
    """
    retries = await retry_store.get_due_retries(limit=limit)
    processed = 0

    for retry in retries:
        retry_id = retry["id"]
        tracking_id = retry["tracking_id"]
        event_status = retry["event_status"]
        attempts = retry["attempts"]

        if attempts >= config.retry_max_attempts:
            logger.warning(
                "Ledger retry exhausted for %s/%s after %d attempts",
                tracking_id,
                event_status,
                attempts,
            )
            await retry_store.mark_exhausted(retry_id)
            processed += 1
            continue

        try:
            await ledger.append(tracking_id, event_status)
        except Exception as exc:
            new_attempts = attempts + 1
            await retry_store.mark_failed(retry_id, error=str(exc))
            if new_attempts >= config.retry_max_attempts:
                logger.warning(
                    "Ledger retry exhausted for %s/%s after %d attempts: %s",
                    tracking_id,
                    event_status,
                    new_attempts,
                    exc,
                )
                await retry_store.mark_exhausted(retry_id)
            else:
                logger.info(
                    "Ledger retry %s: attempt %d failed: %s",
                    retry_id,
                    new_attempts,
                    exc,
                )
        else:
            await retry_store.mark_succeeded(retry_id)
            logger.info(
                "Ledger retry %s: %s appended for %s",
                retry_id,
                event_status,
                tracking_id,
            )

        processed += 1

    return processed
