"""
Tournament API endpoints.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas import tournament as tournament_schemas
from app.services.tournament_service import tournament_service

router = APIRouter(
    prefix="/tournaments",
    tags=["tournaments"],
    responses={404: {"description": "Tournament not found"}}
)


@router.post("", response_model=tournament_schemas.TournamentResponse)
def create_tournament(
        request: tournament_schemas.TournamentCreate,
        db: Session = Depends(get_db)
):
    return tournament_service.create_tournament(
        db, request.creator_id, request.name, request.format.value,
        request.time_control, request.time_increment, request.max_participants
    )


@router.get("", response_model=List[tournament_schemas.TournamentResponse])
def list_tournaments(
        status: Optional[str] = None,
        db: Session = Depends(get_db)
):
    return tournament_service.list_tournaments(db, status)


@router.get("/{tournament_id}", response_model=tournament_schemas.TournamentResponse)
def get_tournament(
        tournament_id: int,
        db: Session = Depends(get_db)
):
    return tournament_service.get_tournament(db, tournament_id)


@router.post("/{tournament_id}/join", response_model=tournament_schemas.ParticipantResponse)
def join_tournament(
        tournament_id: int,
        action: tournament_schemas.TournamentAction,
        db: Session = Depends(get_db)
):
    """Register for a tournament that has not started yet."""
    return tournament_service.join_tournament(db, tournament_id, action.player_id)


@router.post("/{tournament_id}/start", response_model=tournament_schemas.TournamentResponse)
def start_tournament(
        tournament_id: int,
        action: tournament_schemas.TournamentAction,
        db: Session = Depends(get_db)
):
    """
    Seed the participants and create round 1. Only the creator may start,
    and at least two participants are required.
    """
    return tournament_service.start_tournament(db, tournament_id, action.player_id)


@router.post("/{tournament_id}/progress", response_model=tournament_schemas.ProgressResponse)
def progress_tournament(
        tournament_id: int,
        db: Session = Depends(get_db)
):
    """
    Generate the next round, or finish the tournament, once every match of
    the current round is completed.
    """
    return tournament_service.progress_tournament(db, tournament_id)


@router.get("/{tournament_id}/standings", response_model=List[tournament_schemas.StandingEntry])
def get_standings(
        tournament_id: int,
        db: Session = Depends(get_db)
):
    """Ranked by points, then wins, then rating."""
    return tournament_service.get_standings(db, tournament_id)


@router.get("/{tournament_id}/matches", response_model=List[tournament_schemas.MatchResponse])
def get_matches(
        tournament_id: int,
        round: Optional[int] = None,
        db: Session = Depends(get_db)
):
    return tournament_service.get_matches(db, tournament_id, round)
