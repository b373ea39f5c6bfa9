"""Pydantic schemas for reactions and market info."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class ReactionUpdate(BaseModel):
    user_id: str
    value: Optional[str] = None  # None clears the user's selection


class FieldConsensusOut(BaseModel):
    field: str
    displayed_value: Optional[str] = None
    has_new_info: bool
    is_empty: bool
    counts: dict[str, int]
    previous: dict[str, int]


class CycleOut(BaseModel):
    number: int
    last_reset_at: Optional[datetime] = None
    next_reset_at: Optional[datetime] = None


class MarketInfoOut(BaseModel):
    venue_id: str
    fields: list[FieldConsensusOut]
    cycle: CycleOut
    last_updated: Optional[datetime] = None


class ReactionUpdateOut(BaseModel):
    changed: bool
    consensus: FieldConsensusOut


class CycleResetOut(BaseModel):
    reset: int
    skipped: int
    failed: int
