"""
Matchmaking API endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas import matchmaking as mm_schemas
from app.services.matchmaking_service import matchmaking_service

router = APIRouter(
    prefix="/matchmaking",
    tags=["matchmaking"],
    responses={404: {"description": "Not found"}}
)


@router.post("/join", response_model=mm_schemas.MatchmakingResponse)
def join_matchmaking(
        request: mm_schemas.MatchmakingRequest,
        db: Session = Depends(get_db)
):
    """
    Join the matchmaking queue.

    Pairs with the longest-waiting player who asked for the same time
    control. If nobody is waiting the player gets a ticket to poll.
    """
    result = matchmaking_service.join(db, request.player_id, request.time_control, request.time_increment)

    if result.matched:
        message = f"Matched with player {result.opponent_id}"
    else:
        message = "Waiting for an opponent"

    return {
        "matched": result.matched,
        "ticket": result.ticket,
        "game_id": result.game.id if result.game else None,
        "opponent_id": result.opponent_id,
        "message": message
    }


@router.post("/cancel")
def cancel_matchmaking(
        request: mm_schemas.CancelRequest,
        db: Session = Depends(get_db)
):
    """
    Leave the queue. Does nothing if the player was already matched.
    """
    ticket = matchmaking_service.cancel(db, request.player_id)
    if ticket is None:
        return {"success": False, "message": "No waiting ticket"}
    return {"success": True, "message": "Left matchmaking queue", "ticket_id": ticket.id}


@router.get("/tickets/{ticket_id}", response_model=mm_schemas.TicketResponse)
def get_ticket(
        ticket_id: int,
        db: Session = Depends(get_db)
):
    return matchmaking_service.get_ticket(db, ticket_id)


@router.get("/status/{player_id}", response_model=mm_schemas.TicketResponse)
def get_player_ticket(
        player_id: int,
        db: Session = Depends(get_db)
):
    """The player's most recent ticket; a matched ticket carries the game id."""
    return matchmaking_service.get_latest_ticket(db, player_id)
