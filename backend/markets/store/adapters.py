"""Conversion between stored market-info documents and MarketInfo.

Older documents store binary counters as {"yes": n, "no": n}; some lack a
category, a cycle block or a previousCycle block. They are normalized here, on
read, so the consensus code only ever sees one canonical shape. Writes always
use the canonical shape ({"Yes": n, "No": n} / {"Free", "Paid", "Street"}).
"""
from datetime import datetime, timezone
from typing import Optional

from markets.models.reaction import (
    CycleState,
    FieldCounters,
    MarketInfo,
    ReactionField,
    categories_for,
)

PREVIOUS_CYCLE_KEY = "previousCycle"
CYCLE_KEY = "cycle"
LAST_UPDATED_KEY = "lastUpdated"


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def from_iso(value: object) -> Optional[datetime]:
    """Parse a stored timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _count(raw: dict, category: str) -> int:
    value = raw.get(category)
    if value is None:
        value = raw.get(category.lower())
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(0, int(value))


def normalize_counts(reaction_field: ReactionField, raw: object) -> dict[str, int]:
    raw = raw if isinstance(raw, dict) else {}
    return {category: _count(raw, category) for category in categories_for(reaction_field)}


def _cycle_from_document(raw: object) -> CycleState:
    if not isinstance(raw, dict):
        return CycleState()
    number = raw.get("number")
    if isinstance(number, bool) or not isinstance(number, int):
        # Cycle blocks written before numbering existed belong to cycle 1.
        number = 1
    return CycleState(
        number=number,
        last_reset_at=from_iso(raw.get("lastResetAt")),
        next_reset_at=from_iso(raw.get("nextResetAt")),
        cleanup_pending=bool(raw.get("cleanupPending", False)),
    )


def market_info_from_document(venue_id: str, data: Optional[dict]) -> MarketInfo:
    data = data or {}
    previous_block = data.get(PREVIOUS_CYCLE_KEY)
    previous_block = previous_block if isinstance(previous_block, dict) else {}
    info = MarketInfo(
        venue_id=venue_id,
        cycle=_cycle_from_document(data.get(CYCLE_KEY)),
        last_updated=from_iso(data.get(LAST_UPDATED_KEY)),
    )
    for reaction_field in ReactionField:
        current_raw = data.get(reaction_field.value)
        previous_raw = previous_block.get(reaction_field.value)
        if current_raw is None and previous_raw is None:
            continue
        info.fields[reaction_field] = FieldCounters(
            reaction_field=reaction_field,
            counts=normalize_counts(reaction_field, current_raw),
            previous=normalize_counts(reaction_field, previous_raw),
            last_updated=from_iso(current_raw.get(LAST_UPDATED_KEY)) if isinstance(current_raw, dict) else None,
        )
    return info


def market_info_to_document(info: MarketInfo, base: Optional[dict] = None) -> dict:
    """Serialize `info` onto `base`, keeping keys this module does not own."""
    data = dict(base or {})
    previous_block = {}
    for reaction_field, counters in info.fields.items():
        current = dict(counters.counts)
        if counters.last_updated:
            current[LAST_UPDATED_KEY] = to_iso(counters.last_updated)
        data[reaction_field.value] = current
        previous_block[reaction_field.value] = dict(counters.previous)
    data[PREVIOUS_CYCLE_KEY] = previous_block
    if info.cycle.number:
        data[CYCLE_KEY] = {
            "number": info.cycle.number,
            "lastResetAt": to_iso(info.cycle.last_reset_at),
            "nextResetAt": to_iso(info.cycle.next_reset_at),
            "cleanupPending": info.cycle.cleanup_pending,
        }
    if info.last_updated:
        data[LAST_UPDATED_KEY] = to_iso(info.last_updated)
    return data


def record_cycle(data: Optional[dict]) -> int:
    """Cycle number a per-user reaction record belongs to (unstamped legacy records: 1)."""
    if not data:
        return 0
    number = data.get("cycle", 1)
    if isinstance(number, bool) or not isinstance(number, int):
        return 1
    return number
