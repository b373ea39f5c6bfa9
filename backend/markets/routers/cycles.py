"""Reaction cycle routes: manual trigger for the scheduled reset job."""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends

from markets.dependencies import get_now, get_store
from markets.schemas.reaction import CycleResetOut
from markets.services.cycle_service import run_reset_cycles
from markets.store.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/reset", response_model=CycleResetOut)
def reset_cycles(store: DocumentStore = Depends(get_store), now: datetime = Depends(get_now)):
    """Reset every market whose cycle is due."""
    return CycleResetOut(**run_reset_cycles(store, now))
