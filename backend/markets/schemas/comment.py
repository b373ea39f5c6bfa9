"""Pydantic schemas for market comments."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class CommentCreate(BaseModel):
    user_id: str
    text: str


class CommentOut(BaseModel):
    # Author is never exposed; clients match their own ids via /users/{id}/comments.
    id: str
    venue_id: str
    text: str
    created_at: Optional[datetime] = None
    anonymous: bool = True

    model_config = {"from_attributes": True}
