"""
Game-related API endpoints.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.exceptions import NotYourTurn, InvalidMove, StalePosition, GameEnded
from app.schemas import game as game_schemas
from app.services.game_service import game_service_obj

router = APIRouter(
    prefix="/games",
    tags=["games"],
    responses={404: {"description": "Game not found"}}
)


@router.post("", response_model=game_schemas.GameResponse)
def create_game(
        game: game_schemas.GameCreate,
        db: Session = Depends(get_db)
):
    """
    Create a new game session.

    With an opponent the game starts immediately and colors are assigned at
    random. Without one it stays 'waiting' until another player joins.
    """
    return game_service_obj.create_game(
        db, game.creator_id, game.opponent_id, game.time_control, game.time_increment
    )


@router.post("/{game_id}/join", response_model=game_schemas.GameResponse)
def join_game(
        game_id: int,
        player: game_schemas.JoinGame,
        db: Session = Depends(get_db)
):
    """
    Join a waiting game as the second player.

    Colors are decided by a coin flip and the game becomes 'active'.
    """
    return game_service_obj.join_game(db, game_id, player.player_id)


@router.post("/{game_id}/move", response_model=game_schemas.MoveResponse)
def make_move(
        game_id: int,
        move: game_schemas.MoveCreate,
        db: Session = Depends(get_db)
):
    """
    Make a move in the game.

    Validates:
    - Game exists and is active
    - It's the player's turn
    - The move is legal in the current position
    - The move was computed against the current position (expected_move_count)

    A player whose clock has run out loses on time instead of moving;
    the response then has timeout=true.
    """
    try:
        return game_service_obj.make_move(
            db, game_id, move.player_id, move.move,
            promotion=move.promotion,
            expected_move_count=move.expected_move_count
        )
    except NotYourTurn as e:
        raise HTTPException(
            status_code=400,
            detail=str(e),
            headers={"X-Error-Code": "NOT_YOUR_TURN"}
        )
    except StalePosition as e:
        raise HTTPException(
            status_code=409,
            detail=str(e),
            headers={"X-Error-Code": "STALE_POSITION"}
        )
    except InvalidMove as e:
        raise HTTPException(
            status_code=400,
            detail=str(e),
            headers={"X-Error-Code": "INVALID_MOVE"}
        )
    except GameEnded as e:
        raise HTTPException(
            status_code=400,
            detail=str(e),
            headers={"X-Error-Code": "GAME_ENDED"}
        )


@router.get("/{game_id}", response_model=game_schemas.GameState)
def get_game_state(
        game_id: int,
        db: Session = Depends(get_db)
):
    """
    Get the current state of a game.

    Returns:
    - Current position (FEN)
    - Game status, result and draw reason
    - Players and whose turn it is
    - Stored clock values
    - Pending draw / takeback / rematch requests
    """
    return game_service_obj.get_game_state(db, game_id)


@router.get("/{game_id}/moves", response_model=List[game_schemas.MoveRecord])
def get_moves(
        game_id: int,
        db: Session = Depends(get_db)
):
    """Move history in play order."""
    return game_service_obj.get_moves(db, game_id)


@router.get("/{game_id}/legal-moves", response_model=game_schemas.LegalMoves)
def get_legal_moves(
        game_id: int,
        db: Session = Depends(get_db)
):
    """Legal moves (UCI) for the side to move; empty once the game is over."""
    game = game_service_obj.get_game(db, game_id)
    return {
        "game_id": game.id,
        "fen": game.current_fen,
        "moves": game_service_obj.get_legal_moves(db, game_id),
    }


@router.post("/{game_id}/check-timeout", response_model=game_schemas.GameState)
def check_timeout(
        game_id: int,
        db: Session = Depends(get_db)
):
    """
    Flag the side to move if its clock has run out. Safe to poll; only the
    first call that observes the expired clock ends the game.
    """
    return game_service_obj.check_timeout(db, game_id)


@router.post("/{game_id}/resign", response_model=game_schemas.GameState)
def resign(
        game_id: int,
        action: game_schemas.PlayerAction,
        db: Session = Depends(get_db)
):
    game_service_obj.resign(db, game_id, action.player_id)
    return game_service_obj.get_game_state(db, game_id)


@router.post("/{game_id}/draw/offer", response_model=game_schemas.GameState)
def offer_draw(
        game_id: int,
        action: game_schemas.PlayerAction,
        db: Session = Depends(get_db)
):
    game_service_obj.offer_draw(db, game_id, action.player_id)
    return game_service_obj.get_game_state(db, game_id)


@router.post("/{game_id}/draw/respond", response_model=game_schemas.GameState)
def respond_draw(
        game_id: int,
        response: game_schemas.OfferResponse,
        db: Session = Depends(get_db)
):
    """Accept or decline the opponent's pending draw offer."""
    game_service_obj.respond_draw(db, game_id, response.player_id, response.accept)
    return game_service_obj.get_game_state(db, game_id)


@router.post("/{game_id}/takeback/request", response_model=game_schemas.GameState)
def request_takeback(
        game_id: int,
        action: game_schemas.PlayerAction,
        db: Session = Depends(get_db)
):
    game_service_obj.request_takeback(db, game_id, action.player_id)
    return game_service_obj.get_game_state(db, game_id)


@router.post("/{game_id}/takeback/respond", response_model=game_schemas.GameState)
def respond_takeback(
        game_id: int,
        response: game_schemas.OfferResponse,
        db: Session = Depends(get_db)
):
    """
    Accept or decline the opponent's takeback request. Accepting restores the
    position from before the requester's last move.
    """
    game_service_obj.respond_takeback(db, game_id, response.player_id, response.accept)
    return game_service_obj.get_game_state(db, game_id)


@router.post("/{game_id}/rematch/request", response_model=game_schemas.GameState)
def request_rematch(
        game_id: int,
        action: game_schemas.PlayerAction,
        db: Session = Depends(get_db)
):
    game_service_obj.request_rematch(db, game_id, action.player_id)
    return game_service_obj.get_game_state(db, game_id)


@router.post("/{game_id}/rematch/respond", response_model=game_schemas.GameState)
def respond_rematch(
        game_id: int,
        response: game_schemas.OfferResponse,
        db: Session = Depends(get_db)
):
    """Accepting returns the new game, with colors reversed; declining returns this one."""
    rematch = game_service_obj.respond_rematch(db, game_id, response.player_id, response.accept)
    return game_service_obj.get_game_state(db, rematch.id if rematch else game_id)
