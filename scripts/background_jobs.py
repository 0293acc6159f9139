#!/usr/bin/env python3
"""
Background jobs for the Chess Arena service.
Run as cron jobs or scheduled tasks.

Usage:
    python scripts/background_jobs.py sweep-timeouts
    python scripts/background_jobs.py expire-tickets
    python scripts/background_jobs.py progress-tournaments
    python scripts/background_jobs.py system-stats
"""

import sys
import logging
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.core.database import SessionLocal
from app.core.exceptions import GameException
from app.models.game import Game
from app.models.tournament import Tournament, TournamentStatus
from app.services.game_service import game_service_obj
from app.services.matchmaking_service import matchmaking_service
from app.services.tournament_service import tournament_service

logger = logging.getLogger(__name__)


def sweep_timeouts(db) -> int:
    """Run the clock poll over every active game. Returns how many games ended."""
    game_ids = [row.id for row in db.query(Game.id).filter(Game.status == "active").all()]
    flagged = 0
    for game_id in game_ids:
        try:
            state = game_service_obj.check_timeout(db, game_id)
        except GameException as e:
            logger.warning(f"Timeout check failed for game {game_id}: {e}")
            continue
        if state["timed_out"]:
            flagged += 1
    logger.info(f"Timeout sweep: {len(game_ids)} active games checked, {flagged} flagged")
    return flagged


def expire_tickets(db) -> int:
    """Cancel matchmaking tickets that waited longer than the TTL."""
    expired = matchmaking_service.expire_stale_tickets(db)
    logger.info(f"Ticket expiry: {expired} tickets cancelled")
    return expired


def progress_tournaments(db) -> int:
    """Advance every active tournament whose current round is finished."""
    tournament_ids = [
        row.id for row in db.query(Tournament.id).filter(
            Tournament.status == TournamentStatus.ACTIVE.value
        ).all()
    ]
    advanced = 0
    for tournament_id in tournament_ids:
        try:
            before = tournament_service.get_tournament(db, tournament_id)
            round_before, status_before = before.current_round, before.status
            result = tournament_service.progress_tournament(db, tournament_id)
        except GameException as e:
            logger.warning(f"Could not progress tournament {tournament_id}: {e}")
            continue
        if result["current_round"] != round_before or result["status"] != status_before:
            advanced += 1
    logger.info(f"Tournament progress: {advanced} of {len(tournament_ids)} advanced")
    return advanced


def show_system_stats(db) -> dict:
    """Show current system statistics."""
    from sqlalchemy import func
    from app.models.player import Player
    from app.models.move import Move
    from app.models.matchmaking import MatchmakingTicket, TicketStatus

    stats = {
        "players": db.query(func.count(Player.id)).scalar(),
        "games": db.query(func.count(Game.id)).scalar(),
        "active_games": db.query(func.count(Game.id)).filter(Game.status == "active").scalar(),
        "moves": db.query(func.count(Move.id)).scalar(),
        "waiting_tickets": db.query(func.count(MatchmakingTicket.id)).filter(
            MatchmakingTicket.status == TicketStatus.WAITING.value
        ).scalar(),
        "active_tournaments": db.query(func.count(Tournament.id)).filter(
            Tournament.status == TournamentStatus.ACTIVE.value
        ).scalar(),
    }
    for name, value in stats.items():
        logger.info(f"{name}: {value}")
    return stats


COMMANDS = {
    "sweep-timeouts": sweep_timeouts,
    "expire-tickets": expire_tickets,
    "progress-tournaments": progress_tournaments,
    "system-stats": show_system_stats,
}


def main():
    """Main CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if len(sys.argv) != 2 or sys.argv[1] not in COMMANDS:
        if len(sys.argv) == 2:
            logger.error(f"Unknown command: {sys.argv[1]}")
        print(__doc__)
        sys.exit(1)

    command = sys.argv[1]
    start_time = datetime.now()

    with SessionLocal() as db:
        try:
            COMMANDS[command](db)
            success = True
        except GameException as e:
            logger.error(f"Job '{command}' failed: {e}")
            success = False

    duration = datetime.now() - start_time
    logger.info(f"Command '{command}' completed in {duration}")
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
