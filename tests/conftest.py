import os
import tempfile
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.api.deps import get_db
from app.core.database import Base
from app.models.game import Game
from app.models.matchmaking import MatchmakingTicket
from app.models.move import Move
from app.models.notification import Notification
from app.models.player import Player
from app.models.tournament import Tournament, TournamentMatch, TournamentParticipant
from main import app


@pytest.fixture(scope="session")
def test_db():
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)

@pytest.fixture
def db_session(test_db):
    session = test_db()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

@pytest.fixture(autouse=True)
def db_cleanup(test_db):
    yield
    session = test_db()
    try:
        for model in [Notification, TournamentMatch, TournamentParticipant, MatchmakingTicket,
                      Move, Game, Tournament, Player]:
            session.query(model).delete()
        session.commit()
    finally:
        session.close()

@pytest.fixture
def client(db_session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

@pytest.fixture
def make_player(db_session):
    counter = {"n": 0}

    def _make(username=None, rating=1200):
        counter["n"] += 1
        player = Player(username=username or f"player{counter['n']}", rating=rating)
        db_session.add(player)
        db_session.commit()
        db_session.refresh(player)
        return player

    return _make
