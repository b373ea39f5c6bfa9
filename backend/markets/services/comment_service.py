"""Anonymous market comments.

A comment is stored under the venue and mirrored by an id record under its
author, written and deleted together in one transaction. Only the author may
delete a comment; readers never see who wrote it.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, status

from markets.config import settings
from markets.store.adapters import from_iso, to_iso
from markets.store.document_store import DocumentStore, Transaction
from markets.store.paths import (
    document_id,
    market_comment_path,
    market_comments_collection,
    user_comment_path,
    user_comments_collection,
)

logger = logging.getLogger(__name__)

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class Comment:
    id: str
    venue_id: str
    user_id: Optional[str]
    text: str
    created_at: Optional[datetime]
    anonymous: bool = True


def _comment_from_document(venue_id: str, comment_id: str, data: dict) -> Comment:
    return Comment(
        id=comment_id,
        venue_id=venue_id,
        user_id=data.get("userId"),
        text=data.get("text") or "",
        created_at=from_iso(data.get("createdAt")),
        anonymous=bool(data.get("anonymous", True)),
    )


def _validate_text(text: str) -> str:
    text = (text or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment text is empty")
    if len(text) > settings.COMMENT_MAX_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Comment is longer than {settings.COMMENT_MAX_LENGTH} characters",
        )
    return text


def add_comment(store: DocumentStore, venue_id: str, user_id: str, text: str, now: datetime) -> Comment:
    text = _validate_text(text)
    comment_id = uuid.uuid4().hex
    comment = Comment(id=comment_id, venue_id=venue_id, user_id=user_id, text=text, created_at=now)

    def _add(tx: Transaction) -> None:
        tx.set(market_comment_path(venue_id, comment_id), {
            "text": text,
            "userId": user_id,
            "createdAt": to_iso(now),
            "anonymous": True,
        })
        tx.set(user_comment_path(user_id, comment_id), {
            "commentId": comment_id,
            "placeId": venue_id,
            "createdAt": to_iso(now),
        })

    store.run_transaction(_add)
    logger.info("Comment %s added on %s", comment_id, venue_id)
    return comment


def list_comments(
    store: DocumentStore,
    venue_id: str,
    limit: Optional[int] = None,
    start_after: Optional[str] = None,
) -> list[Comment]:
    """Newest first. `start_after` is the id of the last comment of the previous page;
    an unknown id is ignored and the first page is returned."""
    limit = min(max(1, limit or settings.COMMENTS_PAGE_SIZE), settings.COMMENTS_MAX_PAGE_SIZE)
    comments = [
        _comment_from_document(venue_id, document_id(path), data)
        for path, data in store.list_collection(market_comments_collection(venue_id))
    ]
    comments.sort(key=lambda c: (c.created_at or _UNDATED, c.id), reverse=True)

    if start_after:
        ids = [c.id for c in comments]
        if start_after in ids:
            comments = comments[ids.index(start_after) + 1:]
    return comments[:limit]


def delete_comment(store: DocumentStore, venue_id: str, comment_id: str, user_id: str) -> None:
    """Delete the user's own comment and its id record."""
    path = market_comment_path(venue_id, comment_id)

    def _delete(tx: Transaction) -> None:
        data = tx.get(path)
        if data is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
        if data.get("userId") != user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author may delete a comment")
        tx.delete(path)
        tx.delete(user_comment_path(user_id, comment_id))

    store.run_transaction(_delete)
    logger.info("Comment %s deleted from %s", comment_id, venue_id)


def list_user_comment_ids(store: DocumentStore, user_id: str, venue_id: Optional[str] = None) -> list[str]:
    """Ids of the user's own comments, optionally only those on one venue."""
    return [
        data.get("commentId") or document_id(path)
        for path, data in store.list_collection(user_comments_collection(user_id))
        if venue_id is None or data.get("placeId") == venue_id
    ]
