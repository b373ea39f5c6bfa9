"""Consensus over aggregated reactions: what a venue's field currently "is".

All functions work on an already-fetched FieldCounters snapshot.
"""
from dataclasses import dataclass
from typing import Optional

from markets.models.reaction import FieldCounters, MarketInfo, ReactionField


def strict_winner(counts: dict[str, int]) -> Optional[str]:
    """Category with the single highest count; None when empty or tied."""
    if sum(counts.values()) == 0:
        return None
    top = max(counts.values())
    leaders = [category for category, count in counts.items() if count == top]
    return leaders[0] if len(leaders) == 1 else None


def get_displayed_value(reaction_field: ReactionField, counters: Optional[FieldCounters]) -> Optional[str]:
    """Current cycle's strict winner, falling back to the previous cycle's when the
    current cycle is empty or tied."""
    if counters is None:
        return None
    if counters.total == 0:
        return strict_winner(counters.previous)
    return strict_winner(counters.counts) or strict_winner(counters.previous)


def has_new_information(reaction_field: ReactionField, counters: Optional[FieldCounters]) -> bool:
    """True when this cycle has reactions and its winner differs from last cycle's."""
    if counters is None or counters.total == 0:
        return False
    current = get_displayed_value(reaction_field, counters)
    if current is None:
        return False
    return current != strict_winner(counters.previous)


def is_field_empty(reaction_field: ReactionField, counters: Optional[FieldCounters]) -> bool:
    """Nobody has reacted in either cycle."""
    if counters is None:
        return True
    return counters.total == 0 and counters.previous_total == 0


@dataclass
class FieldConsensus:
    reaction_field: ReactionField
    displayed_value: Optional[str]
    has_new_info: bool
    is_empty: bool
    counts: dict[str, int]
    previous: dict[str, int]


def summarize_field(info: MarketInfo, reaction_field: ReactionField) -> FieldConsensus:
    counters = info.fields.get(reaction_field) or FieldCounters.empty(reaction_field)
    return FieldConsensus(
        reaction_field=reaction_field,
        displayed_value=get_displayed_value(reaction_field, counters),
        has_new_info=has_new_information(reaction_field, counters),
        is_empty=is_field_empty(reaction_field, counters),
        counts=dict(counters.counts),
        previous=dict(counters.previous),
    )


def summarize_market(info: MarketInfo) -> list[FieldConsensus]:
    return [summarize_field(info, reaction_field) for reaction_field in ReactionField]
