"""Store-level errors and their HTTP mapping."""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

MSG_SAVE_FAILED = "Save failed because of concurrent updates, please retry."


class StoreError(Exception):
    """Base class for document store failures."""


class TransactionConflictError(StoreError):
    """A document read inside a transaction changed before commit."""

    def __init__(self, path: str):
        super().__init__(f"Concurrent modification of {path}")
        self.path = path


class TransactionAbortedError(StoreError):
    """Transaction retries exhausted. Nothing was written; the caller may retry."""

    def __init__(self, attempts: int, last_conflict: TransactionConflictError | None = None):
        super().__init__(f"Transaction aborted after {attempts} attempts")
        self.attempts = attempts
        self.last_conflict = last_conflict


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(TransactionAbortedError)
    async def _transaction_aborted(request: Request, exc: TransactionAbortedError):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": MSG_SAVE_FAILED, "retryable": True},
        )
