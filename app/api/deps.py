"""
Shared FastAPI dependencies.
"""
from typing import Iterator

from sqlalchemy.orm import Session

from app.core.database import SessionLocal


def get_db() -> Iterator[Session]:
    """One session per request. Services commit; the session is closed here."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
