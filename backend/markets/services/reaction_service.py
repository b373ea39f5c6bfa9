"""Reaction updates: one transaction per change keeps counters and per-user
selections consistent under concurrent writers.

Invariant: for every field, the current-cycle count of each category equals the
number of this cycle's per-user records selecting it.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status

from markets.config import settings
from markets.models.reaction import MarketInfo, ReactionField, categories_for, normalize_category
from markets.store.adapters import market_info_from_document, market_info_to_document, record_cycle, to_iso
from markets.store.document_store import DocumentStore, Transaction
from markets.store.paths import (
    document_id,
    market_info_path,
    user_reaction_index_path,
    user_reactions_collection,
    venue_user_reaction_path,
)

logger = logging.getLogger(__name__)


def parse_field(value: str) -> ReactionField:
    try:
        return ReactionField(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown reaction field '{value}'")


def parse_category(reaction_field: ReactionField, value: Optional[str]) -> Optional[str]:
    """Canonical category for `value`; None clears the selection."""
    if value is None:
        return None
    category = normalize_category(reaction_field, value)
    if category is None:
        allowed = ", ".join(categories_for(reaction_field))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid value '{value}' for {reaction_field.value}; expected one of: {allowed}",
        )
    return category


def _ensure_cycle(info: MarketInfo, now: datetime) -> None:
    """Start the cycle clock on first write, or on a legacy cycle block without one."""
    if info.cycle.number and info.cycle.next_reset_at is not None:
        return
    info.cycle.number = info.cycle.number or 1
    info.cycle.last_reset_at = now
    info.cycle.next_reset_at = now + timedelta(days=settings.REACTION_CYCLE_DAYS)


def _selections(record: Optional[dict], cycle_number: int) -> dict:
    """A record from an earlier cycle carries no live selections."""
    if not record or record_cycle(record) != cycle_number:
        return {}
    return record


def update_reaction(
    store: DocumentStore,
    venue_id: str,
    user_id: str,
    reaction_field: ReactionField,
    category: Optional[str],
    now: datetime,
) -> bool:
    """Set (or clear, with None) one user's selection for a field.

    Returns False when the selection was already `category`.
    """
    category = parse_category(reaction_field, category)
    info_path = market_info_path(venue_id)
    record_path = venue_user_reaction_path(venue_id, user_id)
    index_path = user_reaction_index_path(user_id, venue_id)

    def _apply(tx: Transaction) -> bool:
        info_raw = tx.get(info_path)
        info = market_info_from_document(venue_id, info_raw)
        _ensure_cycle(info, now)
        cycle_number = info.cycle.number

        record = dict(_selections(tx.get(record_path), cycle_number))
        index = dict(_selections(tx.get(index_path), cycle_number))
        existing = normalize_category(reaction_field, record.get(reaction_field.value))
        if existing == category:
            return False

        counters = info.counters(reaction_field)
        if existing is not None:
            counters.counts[existing] = max(0, counters.counts[existing] - 1)
        if category is not None:
            counters.counts[category] += 1
        counters.last_updated = now
        info.last_updated = now
        tx.set(info_path, market_info_to_document(info, info_raw))

        for doc in (record, index):
            if category is None:
                doc.pop(reaction_field.value, None)
            else:
                doc[reaction_field.value] = category
            doc["cycle"] = cycle_number
            doc["updatedAt"] = to_iso(now)
        index["placeId"] = venue_id
        tx.set(record_path, record)
        tx.set(index_path, index)
        return True

    changed = store.run_transaction(_apply)
    if changed:
        logger.info("Reaction %s=%s on %s by %s", reaction_field.value, category, venue_id, user_id)
    else:
        logger.debug("Reaction %s on %s by %s unchanged", reaction_field.value, venue_id, user_id)
    return changed


def get_market_info(store: DocumentStore, venue_id: str) -> MarketInfo:
    return market_info_from_document(venue_id, store.get(market_info_path(venue_id)))


def _live_selections(record: Optional[dict], info: MarketInfo) -> dict[str, str]:
    record = _selections(record, info.cycle.number or 1)
    selections = {}
    for reaction_field in ReactionField:
        category = normalize_category(reaction_field, record.get(reaction_field.value))
        if category is not None:
            selections[reaction_field.value] = category
    return selections


def get_user_reactions(store: DocumentStore, venue_id: str, user_id: str) -> dict[str, str]:
    """A user's current-cycle selections on one venue, keyed by field name."""
    info = get_market_info(store, venue_id)
    return _live_selections(store.get(venue_user_reaction_path(venue_id, user_id)), info)


def list_user_reactions(store: DocumentStore, user_id: str) -> dict[str, dict[str, str]]:
    """Reverse index: the user's current selections on every venue they reacted to."""
    result = {}
    for path, data in store.list_collection(user_reactions_collection(user_id)):
        venue_id = document_id(path)
        selections = _live_selections(data, get_market_info(store, venue_id))
        if selections:
            result[venue_id] = selections
    return result
