"""Reaction fields, their categories and the in-memory counter snapshot."""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


class ReactionField(str, enum.Enum):
    parking = "parking"
    pet_friendly = "petFriendly"
    reusable = "reusable"
    toilet = "toilet"
    live_music = "liveMusic"
    accessibility = "accessibility"


PARKING_CATEGORIES = ("Free", "Paid", "Street")
BINARY_CATEGORIES = ("Yes", "No")


def categories_for(reaction_field: ReactionField) -> tuple[str, ...]:
    if reaction_field == ReactionField.parking:
        return PARKING_CATEGORIES
    return BINARY_CATEGORIES


def normalize_category(reaction_field: ReactionField, value: object) -> Optional[str]:
    """Map a raw value ("yes", "Yes", "free", ...) onto the field's canonical category."""
    if not isinstance(value, str):
        return None
    for category in categories_for(reaction_field):
        if value.strip().lower() == category.lower():
            return category
    return None


def empty_counts(reaction_field: ReactionField) -> dict[str, int]:
    return {category: 0 for category in categories_for(reaction_field)}


@dataclass
class FieldCounters:
    """Current-cycle counts plus the previous cycle's snapshot for one field."""

    reaction_field: ReactionField
    counts: dict[str, int]
    previous: dict[str, int]
    last_updated: Optional[datetime] = None

    @classmethod
    def empty(cls, reaction_field: ReactionField) -> "FieldCounters":
        return cls(reaction_field, empty_counts(reaction_field), empty_counts(reaction_field))

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def previous_total(self) -> int:
        return sum(self.previous.values())


@dataclass
class CycleState:
    number: int = 0  # 0 = never initialized
    last_reset_at: Optional[datetime] = None
    next_reset_at: Optional[datetime] = None
    cleanup_pending: bool = False


@dataclass
class MarketInfo:
    venue_id: str
    fields: dict[ReactionField, FieldCounters] = field(default_factory=dict)
    cycle: CycleState = field(default_factory=CycleState)
    last_updated: Optional[datetime] = None

    def counters(self, reaction_field: ReactionField) -> FieldCounters:
        if reaction_field not in self.fields:
            self.fields[reaction_field] = FieldCounters.empty(reaction_field)
        return self.fields[reaction_field]
