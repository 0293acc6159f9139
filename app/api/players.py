"""
Player-related API endpoints.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.exceptions import PlayerNotFound
from app.schemas import player as player_schemas
from app.services.notification_service import notification_service
from app.services.player_service import player_service_obj

router = APIRouter(
    prefix="/players",
    tags=["players"],
    responses={404: {"description": "Player not found"}}
)


@router.post("", response_model=player_schemas.PlayerResponse)
def create_player(
        player: player_schemas.PlayerCreate,
        db: Session = Depends(get_db)
):
    """
    Create a new player.

    Username must be unique. If username already exists,
    returns the existing player instead of creating a duplicate.
    """
    return player_service_obj.create_player(db, player.username)


@router.get("/leaderboard", response_model=List[player_schemas.LeaderboardEntry])
def get_leaderboard(
        limit: int = Query(10, ge=1, le=100),
        db: Session = Depends(get_db)
):
    """Highest-rated players with at least one finished game."""
    return player_service_obj.get_leaderboard(db, limit)


@router.get("/{player_id}", response_model=player_schemas.PlayerResponse)
def get_player(
        player_id: int,
        db: Session = Depends(get_db)
):
    try:
        return player_service_obj.get_player(db, player_id)
    except PlayerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{player_id}/stats", response_model=player_schemas.PlayerStats)
def get_player_stats(
        player_id: int,
        db: Session = Depends(get_db)
):
    """
    Get statistics for a player.

    Returns:
    - Current rating
    - Completed games, wins, losses, draws
    - Win rate percentage
    - Total moves made
    """
    try:
        return player_service_obj.get_player_stats(db, player_id)
    except PlayerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{player_id}/notifications", response_model=List[player_schemas.NotificationResponse])
def get_notifications(
        player_id: int,
        unread_only: bool = False,
        limit: int = Query(50, ge=1, le=200),
        db: Session = Depends(get_db)
):
    """Newest first."""
    player_service_obj.get_player(db, player_id)
    return notification_service.list_for_player(db, player_id, unread_only, limit)
