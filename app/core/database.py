import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import PersistenceError

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {},
    echo=settings.SQL_ECHO
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

logger = logging.getLogger(__name__)


def commit_or_raise(db: Session, description: str) -> None:
    """
    Commit the session; on any failure roll back and raise PersistenceError
    so callers never treat an unsaved transition as applied.
    """
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Concurrent update lost for {description}: {e}")
        raise PersistenceError(f"{description} was modified concurrently, please retry") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to commit {description}: {e}")
        raise PersistenceError(f"Failed to save {description}") from e
