"""Runs on the scheduler: reset every market's reaction cycle that is due."""
from datetime import datetime, timezone

from markets.database import SessionLocal
from markets.services.cycle_service import run_reset_cycles
from markets.store.document_store import DocumentStore


def run_reset_cycles_job() -> None:
    db = SessionLocal()
    try:
        run_reset_cycles(DocumentStore(db), datetime.now(timezone.utc))
    finally:
        db.close()
