"""
Core matchmaking service: first-come first-served pairing by time control.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import commit_or_raise
from app.core.exceptions import PlayerNotFound, TicketNotFound
from app.core.game_config import is_valid_time_control
from app.models.game import Game
from app.models.matchmaking import MatchmakingTicket, TicketStatus
from app.models.player import Player
from app.services.clock import to_utc
from app.services.game_service import game_service_obj
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    """Result of a join attempt: either a new game or a waiting ticket"""
    matched: bool
    ticket: MatchmakingTicket
    game: Optional[Game] = None
    opponent_id: Optional[int] = None


class MatchmakingService:
    """Queue management for players looking for a game"""

    def __init__(self, ticket_ttl_seconds: int = None):
        self.ticket_ttl_seconds = ticket_ttl_seconds or settings.MATCHMAKING_TICKET_TTL_SECONDS

    def join(self, db: Session, player_id: int, time_control: int, time_increment: int = 0,
             now: Optional[datetime] = None) -> MatchResult:
        """
        Pair with the oldest compatible waiting ticket, or start waiting.

        The candidate ticket is locked so two joins can never claim it twice.
        """
        if not is_valid_time_control(time_control, time_increment):
            raise ValueError(f"Invalid time control {time_control}+{time_increment}")

        now = to_utc(now or datetime.now(timezone.utc))
        player = db.query(Player).filter(Player.id == player_id).first()
        if not player:
            raise PlayerNotFound(f"Player with ID {player_id} not found")

        cutoff = now - timedelta(seconds=self.ticket_ttl_seconds)

        # A live ticket for the same time control is reused; any other is replaced
        existing = db.query(MatchmakingTicket).filter(
            MatchmakingTicket.player_id == player_id,
            MatchmakingTicket.status == TicketStatus.WAITING.value
        ).with_for_update().first()
        if existing:
            same_control = (existing.time_control, existing.time_increment) == (time_control, time_increment)
            if same_control and to_utc(existing.created_at) >= cutoff:
                logger.info(f"Player {player_id} already waiting with ticket {existing.id}")
                return MatchResult(matched=False, ticket=existing)
            existing.status = TicketStatus.CANCELLED.value
            existing.cancelled_at = now
            logger.info(f"Player {player_id} replaced ticket {existing.id}")

        candidate = db.query(MatchmakingTicket).filter(
            MatchmakingTicket.status == TicketStatus.WAITING.value,
            MatchmakingTicket.time_control == time_control,
            MatchmakingTicket.time_increment == time_increment,
            MatchmakingTicket.player_id != player_id,
            MatchmakingTicket.created_at >= cutoff
        ).order_by(
            MatchmakingTicket.created_at, MatchmakingTicket.id
        ).with_for_update().first()

        if candidate is None:
            ticket = MatchmakingTicket(
                player_id=player_id,
                time_control=time_control,
                time_increment=time_increment,
                status=TicketStatus.WAITING.value,
                created_at=now
            )
            db.add(ticket)
            commit_or_raise(db, "matchmaking ticket")
            db.refresh(ticket)

            logger.info(f"Player {player_id} waiting for {time_control}+{time_increment} (ticket {ticket.id})")
            return MatchResult(matched=False, ticket=ticket)

        white_id, black_id = game_service_obj.assign_colors(candidate.player_id, player_id)
        game = game_service_obj.new_game(db, white_id, black_id, time_control, time_increment, now=now)

        ticket = MatchmakingTicket(
            player_id=player_id,
            time_control=time_control,
            time_increment=time_increment,
            status=TicketStatus.MATCHED.value,
            game_id=game.id,
            created_at=now,
            matched_at=now
        )
        db.add(ticket)
        candidate.status = TicketStatus.MATCHED.value
        candidate.game_id = game.id
        candidate.matched_at = now

        for pid in (candidate.player_id, player_id):
            notification_service.notify(
                db, pid, "match_found", "Match Found!",
                f"Your {time_control}+{time_increment} game is ready.", game_id=game.id
            )
        game_service_obj.notify_started(db, game)

        commit_or_raise(db, "matchmaking pair")
        db.refresh(ticket)
        db.refresh(game)

        logger.info(
            f"Matched players {candidate.player_id} and {player_id} "
            f"({time_control}+{time_increment}) into game {game.id}"
        )
        return MatchResult(matched=True, ticket=ticket, game=game, opponent_id=candidate.player_id)

    def cancel(self, db: Session, player_id: int, now: Optional[datetime] = None) -> Optional[MatchmakingTicket]:
        """
        Cancel the player's waiting ticket. A ticket that was already matched
        or cancelled is left alone.
        """
        ticket = db.query(MatchmakingTicket).filter(
            MatchmakingTicket.player_id == player_id,
            MatchmakingTicket.status == TicketStatus.WAITING.value
        ).with_for_update().first()

        if ticket is None:
            logger.info(f"Player {player_id} has no waiting ticket to cancel")
            return None

        ticket.status = TicketStatus.CANCELLED.value
        ticket.cancelled_at = now or datetime.now(timezone.utc)
        commit_or_raise(db, f"ticket {ticket.id}")

        logger.info(f"Player {player_id} cancelled ticket {ticket.id}")
        return ticket

    def get_ticket(self, db: Session, ticket_id: int) -> MatchmakingTicket:
        ticket = db.query(MatchmakingTicket).filter(MatchmakingTicket.id == ticket_id).first()
        if not ticket:
            raise TicketNotFound(f"Ticket {ticket_id} not found")
        return ticket

    def get_latest_ticket(self, db: Session, player_id: int) -> MatchmakingTicket:
        ticket = db.query(MatchmakingTicket).filter(
            MatchmakingTicket.player_id == player_id
        ).order_by(MatchmakingTicket.id.desc()).first()
        if not ticket:
            raise TicketNotFound(f"Player {player_id} has no matchmaking tickets")
        return ticket

    def expire_stale_tickets(self, db: Session, now: Optional[datetime] = None) -> int:
        """Cancel waiting tickets older than the TTL. Returns how many."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=self.ticket_ttl_seconds)

        stale = db.query(MatchmakingTicket).filter(
            MatchmakingTicket.status == TicketStatus.WAITING.value,
            MatchmakingTicket.created_at < cutoff
        ).with_for_update().all()

        for ticket in stale:
            ticket.status = TicketStatus.CANCELLED.value
            ticket.cancelled_at = now
        if stale:
            commit_or_raise(db, "stale tickets")
            logger.info(f"Expired {len(stale)} stale matchmaking tickets")
        return len(stale)


matchmaking_service = MatchmakingService()
