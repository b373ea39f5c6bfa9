"""Reaction cycles: periodic reset of current counters into previousCycle.

A reset runs in two steps:

1. One transaction, gated on `now >= cycle.nextResetAt`, copies each non-empty
   field's counts into previousCycle, zeroes them, bumps the cycle number,
   advances the cycle clock and marks cleanup as pending.
2. Per-user reaction records from earlier cycles (venue copy and the user's
   reverse-index copy) are deleted in chunks, each chunk its own transaction.
   The pending flag is cleared once every chunk has committed.

Re-running after a crash between the steps only resumes step 2: the gate
keeps step 1 from running twice, and chunks skip records that are already
gone or belong to the new cycle.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from markets.config import settings
from markets.store.adapters import market_info_from_document, market_info_to_document, record_cycle
from markets.store.document_store import DocumentStore, Transaction
from markets.store.paths import (
    MARKET_INFO_COLLECTION,
    document_id,
    market_info_path,
    user_reaction_index_path,
    venue_id_from_info_path,
    venue_reactions_collection,
)

logger = logging.getLogger(__name__)


def next_boundary(next_reset_at: datetime, now: datetime, cycle_length: timedelta) -> datetime:
    """Advance by whole cycles until strictly after `now`."""
    boundary = next_reset_at + cycle_length
    while boundary <= now:
        boundary += cycle_length
    return boundary


def reset_cycle_if_due(
    store: DocumentStore,
    venue_id: str,
    now: datetime,
    batch_size: Optional[int] = None,
) -> bool:
    """Reset the venue's reaction cycle if it is due. Returns True when counters were reset."""
    info_path = market_info_path(venue_id)
    cycle_length = timedelta(days=settings.REACTION_CYCLE_DAYS)

    def _reset(tx: Transaction) -> bool:
        raw = tx.get(info_path)
        if raw is None:
            return False
        info = market_info_from_document(venue_id, raw)
        if info.cycle.next_reset_at is None or now < info.cycle.next_reset_at:
            return False
        for counters in info.fields.values():
            if counters.total == 0:
                continue
            counters.previous = dict(counters.counts)
            counters.counts = {category: 0 for category in counters.counts}
        info.cycle.number += 1
        info.cycle.last_reset_at = now
        info.cycle.next_reset_at = next_boundary(info.cycle.next_reset_at, now, cycle_length)
        info.cycle.cleanup_pending = True
        info.last_updated = now
        tx.set(info_path, market_info_to_document(info, raw))
        return True

    reset = store.run_transaction(_reset)
    if reset:
        logger.info("Reset reaction cycle for %s", venue_id)
    else:
        info = market_info_from_document(venue_id, store.get(info_path))
        if not info.cycle.cleanup_pending:
            logger.debug("Cycle reset not due for %s", venue_id)
            return False
        logger.info("Resuming reaction cleanup for %s", venue_id)
    cleanup_stale_reactions(store, venue_id, batch_size)
    return reset


def _delete_stale(tx: Transaction, venue_id: str, paths: list[str], cycle_number: int) -> int:
    deleted = 0
    for path in paths:
        record = tx.get(path)
        if record is None or record_cycle(record) >= cycle_number:
            continue
        tx.delete(path)
        index_path = user_reaction_index_path(document_id(path), venue_id)
        index = tx.get(index_path)
        if index is not None and record_cycle(index) < cycle_number:
            tx.delete(index_path)
        deleted += 1
    return deleted


def cleanup_stale_reactions(store: DocumentStore, venue_id: str, batch_size: Optional[int] = None) -> int:
    """Delete per-user records from earlier cycles; returns how many users were cleared."""
    info_path = market_info_path(venue_id)
    cycle_number = market_info_from_document(venue_id, store.get(info_path)).cycle.number
    # Each record has two copies, so a chunk of N records is 2N deletions.
    records_per_batch = max(1, (batch_size or settings.RESET_DELETE_BATCH_SIZE) // 2)

    stale = [
        path for path, data in store.list_collection(venue_reactions_collection(venue_id))
        if record_cycle(data) < cycle_number
    ]
    deleted = 0
    for start in range(0, len(stale), records_per_batch):
        chunk = stale[start:start + records_per_batch]
        deleted += store.run_transaction(lambda tx: _delete_stale(tx, venue_id, chunk, cycle_number))

    def _finish(tx: Transaction) -> None:
        raw = tx.get(info_path)
        if raw is None:
            return
        info = market_info_from_document(venue_id, raw)
        if info.cycle.number != cycle_number or not info.cycle.cleanup_pending:
            return
        info.cycle.cleanup_pending = False
        tx.set(info_path, market_info_to_document(info, raw))

    store.run_transaction(_finish)
    logger.info("Cleared %d stale reaction records for %s", deleted, venue_id)
    return deleted


def run_reset_cycles(store: DocumentStore, now: datetime) -> dict[str, int]:
    """Reset every market whose cycle is due. A venue that fails is logged and skipped."""
    counts = {"reset": 0, "skipped": 0, "failed": 0}
    for path, _ in store.list_collection_group(MARKET_INFO_COLLECTION):
        if not path.startswith("markets/") or document_id(path) != "info":
            continue
        venue_id = venue_id_from_info_path(path)
        try:
            if reset_cycle_if_due(store, venue_id, now):
                counts["reset"] += 1
            else:
                counts["skipped"] += 1
        except Exception:
            logger.exception("Cycle reset failed for %s", venue_id)
            counts["failed"] += 1
    logger.info(
        "Cycle reset complete: %d reset, %d skipped, %d failed",
        counts["reset"], counts["skipped"], counts["failed"],
    )
    return counts
