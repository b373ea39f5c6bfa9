"""Transactional key-document store backed by the `documents` table.

Every document carries a version. A transaction remembers the version of each
document it reads and commits its writes conditionally on those versions still
being current (optimistic locking). A conflict rolls the whole transaction back
and the store re-runs the transaction function; once retries are exhausted the
caller gets TransactionAbortedError and nothing has been written.
"""
import copy
import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy import delete, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from markets.config import settings
from markets.errors import TransactionAbortedError, TransactionConflictError
from markets.models.document import Document
from markets.store.paths import parent_path

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NOT_READ = object()


class Transaction:
    """Read-then-conditional-write unit of work. Use through DocumentStore.run_transaction."""

    def __init__(self, db: Session):
        self._db = db
        self._reads: dict[str, Optional[int]] = {}  # path -> version read (None = absent)
        self._writes: dict[str, Optional[dict]] = {}  # path -> new data (None = delete)

    def get(self, path: str) -> Optional[dict]:
        """Return a copy of the document, recording its version for the commit check."""
        if path in self._writes:
            data = self._writes[path]
            return copy.deepcopy(data) if data is not None else None
        row = self._db.execute(
            select(Document.data, Document.version).where(Document.path == path)
        ).first()
        if path not in self._reads:
            self._reads[path] = row.version if row else None
        elif self._reads[path] != (row.version if row else None):
            raise TransactionConflictError(path)
        return copy.deepcopy(row.data) if row else None

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        """Replace the document, or merge top-level keys into it when `merge` is set."""
        if merge:
            merged = self.get(path) or {}
            merged.update(data)
            data = merged
        self._writes[path] = copy.deepcopy(data)

    def delete(self, path: str) -> None:
        self._writes[path] = None

    @property
    def mutation_count(self) -> int:
        return len(self._writes)

    def commit(self) -> None:
        for path, version in self._reads.items():
            if path in self._writes:
                continue  # checked by the conditional write below
            if self._current_version(path) != version:
                raise TransactionConflictError(path)
        for path, data in self._writes.items():
            if data is None:
                self._apply_delete(path)
            else:
                self._apply_set(path, data)
        self._db.commit()

    def _current_version(self, path: str) -> Optional[int]:
        return self._db.execute(
            select(Document.version).where(Document.path == path)
        ).scalar_one_or_none()

    def _apply_delete(self, path: str) -> None:
        expected = self._reads.get(path, _NOT_READ)
        if expected is None:
            # Read as absent: deleting is a no-op unless someone created it meanwhile.
            if self._current_version(path) is not None:
                raise TransactionConflictError(path)
            return
        stmt = delete(Document).where(Document.path == path)
        if expected is not _NOT_READ:
            stmt = stmt.where(Document.version == expected)
        result = self._db.execute(stmt)
        if expected is not _NOT_READ and result.rowcount == 0:
            raise TransactionConflictError(path)

    def _apply_set(self, path: str, data: dict) -> None:
        expected = self._reads.get(path, _NOT_READ)
        if expected is None or expected is _NOT_READ:
            if expected is _NOT_READ:
                result = self._db.execute(
                    update(Document)
                    .where(Document.path == path)
                    .values(data=data, version=Document.version + 1, updated_at=func.now())
                )
                if result.rowcount:
                    return
            try:
                self._db.execute(
                    insert(Document).values(
                        path=path, collection=parent_path(path), data=data, version=1,
                    )
                )
            except IntegrityError:
                raise TransactionConflictError(path)
            return
        result = self._db.execute(
            update(Document)
            .where(Document.path == path, Document.version == expected)
            .values(data=data, version=expected + 1, updated_at=func.now())
        )
        if result.rowcount == 0:
            raise TransactionConflictError(path)


class DocumentStore:
    """Path-addressed document access over a SQLAlchemy session."""

    def __init__(self, db: Session, max_retries: Optional[int] = None):
        self._db = db
        self.max_retries = max_retries or settings.TRANSACTION_MAX_RETRIES

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        """Run `fn` inside a transaction, re-running it on version conflicts.

        `fn` may be called several times and must not have side effects outside
        the transaction it is given.
        """
        last_conflict: Optional[TransactionConflictError] = None
        for attempt in range(1, self.max_retries + 1):
            self._db.rollback()
            tx = Transaction(self._db)
            try:
                result = fn(tx)
                tx.commit()
                return result
            except TransactionConflictError as exc:
                self._db.rollback()
                last_conflict = exc
                logger.warning("Transaction conflict on %s (attempt %d/%d)", exc.path, attempt, self.max_retries)
            except Exception:
                self._db.rollback()
                raise
        raise TransactionAbortedError(self.max_retries, last_conflict)

    def get(self, path: str) -> Optional[dict]:
        data = self._db.execute(select(Document.data).where(Document.path == path)).scalar_one_or_none()
        return copy.deepcopy(data) if data is not None else None

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        self.run_transaction(lambda tx: tx.set(path, data, merge=merge))

    def delete(self, path: str) -> None:
        """Delete one document; deleting a missing document is a no-op."""
        self.run_transaction(lambda tx: tx.delete(path))

    def delete_many(self, paths: list[str]) -> None:
        """Delete several documents in one transaction."""
        def _delete_all(tx: Transaction) -> None:
            for path in paths:
                tx.delete(path)

        self.run_transaction(_delete_all)

    def list_collection(self, collection: str) -> list[tuple[str, dict]]:
        """Documents directly inside `collection`, ordered by path."""
        rows = self._db.execute(
            select(Document.path, Document.data)
            .where(Document.collection == collection)
            .order_by(Document.path)
        ).all()
        return [(row.path, copy.deepcopy(row.data)) for row in rows]

    def list_collection_group(self, collection_id: str) -> list[tuple[str, dict]]:
        """Documents in every collection whose last path segment is `collection_id`."""
        rows = self._db.execute(
            select(Document.path, Document.data)
            .where(or_(
                Document.collection == collection_id,
                Document.collection.like(f"%/{collection_id}"),
            ))
            .order_by(Document.path)
        ).all()
        return [(row.path, copy.deepcopy(row.data)) for row in rows]
