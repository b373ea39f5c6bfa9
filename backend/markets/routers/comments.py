"""Market comment API routes."""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from markets.dependencies import get_now, get_store
from markets.schemas.comment import CommentCreate, CommentOut
from markets.services import comment_service
from markets.store.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{venue_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def add_comment(
    venue_id: str,
    payload: CommentCreate,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return comment_service.add_comment(store, venue_id, payload.user_id, payload.text, now)


@router.get("/{venue_id}/comments", response_model=list[CommentOut])
def list_comments(
    venue_id: str,
    limit: Optional[int] = Query(None, ge=1),
    start_after: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
):
    """Newest first; pass the last id of a page as `start_after` for the next one."""
    return comment_service.list_comments(store, venue_id, limit, start_after)


@router.delete("/{venue_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    venue_id: str,
    comment_id: str,
    user_id: str = Query(...),
    store: DocumentStore = Depends(get_store),
):
    """Authors only."""
    comment_service.delete_comment(store, venue_id, comment_id, user_id)
