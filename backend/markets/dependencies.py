"""Request-scoped dependencies: document store and clock."""
from datetime import datetime, timezone

from fastapi import Depends
from sqlalchemy.orm import Session

from markets.database import get_db
from markets.store.document_store import DocumentStore


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


def get_now() -> datetime:
    """Wall clock; overridden in tests."""
    return datetime.now(timezone.utc)
