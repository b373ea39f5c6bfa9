"""User-scoped API routes: saved markets, alert settings, "my reactions" and "my comments"."""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status

from markets.dependencies import get_now, get_store
from markets.schemas.alert import (
    AlertSettingsOut,
    AlertSettingsUpdate,
    SaveMarketRequest,
    UpcomingAlertOut,
    UpcomingAlertsOut,
    UserAlertsSettingsOut,
    UserAlertsSettingsUpdate,
)
from markets.services import comment_service, reaction_service, saved_market_service
from markets.store.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{user_id}/reactions", response_model=dict[str, dict[str, str]])
def list_my_reactions(user_id: str, store: DocumentStore = Depends(get_store)):
    """Current-cycle reactions of a user, keyed by venue."""
    return reaction_service.list_user_reactions(store, user_id)


@router.get("/{user_id}/comments", response_model=list[str])
def list_my_comment_ids(user_id: str, venue_id: Optional[str] = None, store: DocumentStore = Depends(get_store)):
    """Ids of the user's own comments, so the client can offer delete on them."""
    return comment_service.list_user_comment_ids(store, user_id, venue_id)


@router.get("/{user_id}/saved-markets", response_model=list[str])
def list_saved_markets(user_id: str, store: DocumentStore = Depends(get_store)):
    return saved_market_service.list_saved_markets(store, user_id)


@router.put("/{user_id}/saved-markets/{venue_id}", response_model=AlertSettingsOut)
def save_market(
    user_id: str,
    venue_id: str,
    payload: SaveMarketRequest,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Save a market; alert defaults come from the market's opening days."""
    return saved_market_service.save_market(store, user_id, venue_id, payload.periods, now)


@router.delete("/{user_id}/saved-markets/{venue_id}", status_code=status.HTTP_204_NO_CONTENT)
def unsave_market(user_id: str, venue_id: str, store: DocumentStore = Depends(get_store)):
    saved_market_service.unsave_market(store, user_id, venue_id)


@router.get("/{user_id}/saved-markets/{venue_id}/alert", response_model=AlertSettingsOut)
def get_alert_settings(user_id: str, venue_id: str, store: DocumentStore = Depends(get_store)):
    return saved_market_service.get_saved_market_alert_settings(store, user_id, venue_id)


@router.patch("/{user_id}/saved-markets/{venue_id}/alert", response_model=AlertSettingsOut)
def update_alert_settings(
    user_id: str,
    venue_id: str,
    payload: AlertSettingsUpdate,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Partially update a saved market's alert settings."""
    updates = payload.model_dump(exclude_unset=True)
    return saved_market_service.update_saved_market_alert_settings(store, user_id, venue_id, updates, now)


@router.get("/{user_id}/saved-markets/{venue_id}/alert/next", response_model=UpcomingAlertOut)
def get_next_alert(
    user_id: str,
    venue_id: str,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """When this market's reminder fires next (nulls + "Not scheduled" if never within the horizon)."""
    return saved_market_service.get_next_alert(store, user_id, venue_id, now)


@router.get("/{user_id}/alerts/upcoming", response_model=UpcomingAlertsOut)
def list_upcoming_alerts(
    user_id: str,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    scheduled, unscheduled = saved_market_service.list_upcoming_alerts(store, user_id, now)
    return UpcomingAlertsOut(
        scheduled=[UpcomingAlertOut.model_validate(item) for item in scheduled],
        unscheduled=[UpcomingAlertOut.model_validate(item) for item in unscheduled],
    )


@router.get("/{user_id}/alert-settings", response_model=UserAlertsSettingsOut)
def get_user_alerts_settings(user_id: str, store: DocumentStore = Depends(get_store)):
    return saved_market_service.get_user_alerts_settings(store, user_id)


@router.patch("/{user_id}/alert-settings", response_model=UserAlertsSettingsOut)
def update_user_alerts_settings(
    user_id: str,
    payload: UserAlertsSettingsUpdate,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    updates = payload.model_dump(exclude_unset=True)
    return saved_market_service.update_user_alerts_settings(store, user_id, updates, now)
