"""Market reaction API routes."""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends

from markets.dependencies import get_now, get_store
from markets.models.reaction import MarketInfo
from markets.schemas.reaction import (
    CycleOut,
    FieldConsensusOut,
    MarketInfoOut,
    ReactionUpdate,
    ReactionUpdateOut,
)
from markets.services import reaction_service
from markets.services.consensus import FieldConsensus, summarize_field, summarize_market
from markets.store.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()


def _consensus_out(consensus: FieldConsensus) -> FieldConsensusOut:
    return FieldConsensusOut(
        field=consensus.reaction_field.value,
        displayed_value=consensus.displayed_value,
        has_new_info=consensus.has_new_info,
        is_empty=consensus.is_empty,
        counts=consensus.counts,
        previous=consensus.previous,
    )


def _market_info_out(info: MarketInfo) -> MarketInfoOut:
    return MarketInfoOut(
        venue_id=info.venue_id,
        fields=[_consensus_out(c) for c in summarize_market(info)],
        cycle=CycleOut(
            number=info.cycle.number,
            last_reset_at=info.cycle.last_reset_at,
            next_reset_at=info.cycle.next_reset_at,
        ),
        last_updated=info.last_updated,
    )


@router.get("/{venue_id}/info", response_model=MarketInfoOut)
def get_market_info(venue_id: str, store: DocumentStore = Depends(get_store)):
    """Counters and consensus for every tracked field of a venue."""
    return _market_info_out(reaction_service.get_market_info(store, venue_id))


@router.put("/{venue_id}/reactions/{field}", response_model=ReactionUpdateOut)
def update_reaction(
    venue_id: str,
    field: str,
    payload: ReactionUpdate,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Set or clear one user's reaction for a field (atomic, idempotent)."""
    reaction_field = reaction_service.parse_field(field)
    changed = reaction_service.update_reaction(
        store=store,
        venue_id=venue_id,
        user_id=payload.user_id,
        reaction_field=reaction_field,
        category=payload.value,
        now=now,
    )
    info = reaction_service.get_market_info(store, venue_id)
    return ReactionUpdateOut(changed=changed, consensus=_consensus_out(summarize_field(info, reaction_field)))


@router.get("/{venue_id}/reactions/{user_id}", response_model=dict[str, str])
def get_user_reactions(venue_id: str, user_id: str, store: DocumentStore = Depends(get_store)):
    """The user's selections on this venue for the current cycle."""
    return reaction_service.get_user_reactions(store, venue_id, user_id)
