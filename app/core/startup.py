"""
Application startup and shutdown logic for the Chess Arena API.
"""
import logging
from sqlalchemy import text

from app.core.database import engine, Base, SessionLocal
# Registers every table on Base.metadata before create_all
from app.models import game, matchmaking, move, notification, player, tournament  # noqa: F401
from app.services.matchmaking_service import matchmaking_service

logger = logging.getLogger(__name__)


def initialize_database() -> None:
    """Create missing tables, check connectivity and drop stale queue tickets."""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info(f"Database tables verified: {', '.join(sorted(Base.metadata.tables))}")

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    # Tickets left waiting by a previous run would otherwise be matched stale
    with SessionLocal() as db:
        matchmaking_service.expire_stale_tickets(db)


def shutdown_database() -> None:
    try:
        engine.dispose()
        logger.info("Database connections closed")
    except Exception as e:
        # Shutdown continues regardless
        logger.error(f"Error during database shutdown: {e}")
