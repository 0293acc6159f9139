from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import PlayerNotFound
from app.models.game import Game
from app.models.matchmaking import MatchmakingTicket, TicketStatus
from app.models.notification import Notification
from app.services.matchmaking_service import matchmaking_service


class TestMatchmaking:

    def test_two_players_are_matched(self, db_session, make_player):
        a, b = make_player(), make_player()

        first = matchmaking_service.join(db_session, a.id, 10, 0)
        assert first.matched is False
        assert first.ticket.status == TicketStatus.WAITING.value

        second = matchmaking_service.join(db_session, b.id, 10, 0)
        assert second.matched is True
        game = second.game
        assert {game.white_player_id, game.black_player_id} == {a.id, b.id}
        assert game.white_player_id != game.black_player_id
        assert game.status == "active"
        assert game.white_time_remaining == 600.0
        assert game.black_time_remaining == 600.0

        db_session.refresh(first.ticket)
        assert first.ticket.status == TicketStatus.MATCHED.value
        assert first.ticket.game_id == game.id
        assert second.ticket.game_id == game.id

        for player in (a, b):
            types = [n.type for n in db_session.query(Notification).filter(Notification.user_id == player.id)]
            assert "match_found" in types

    def test_different_time_controls_do_not_match(self, db_session, make_player):
        a, b = make_player(), make_player()
        matchmaking_service.join(db_session, a.id, 10, 0)
        result = matchmaking_service.join(db_session, b.id, 10, 5)
        assert result.matched is False
        assert db_session.query(Game).count() == 0

    def test_oldest_ticket_wins(self, db_session, make_player):
        a, b, c = make_player(), make_player(), make_player()
        now = datetime.now(timezone.utc)
        db_session.add_all([
            MatchmakingTicket(player_id=b.id, time_control=3, time_increment=2,
                              created_at=now - timedelta(seconds=10)),
            MatchmakingTicket(player_id=a.id, time_control=3, time_increment=2,
                              created_at=now - timedelta(seconds=20)),
        ])
        db_session.commit()

        result = matchmaking_service.join(db_session, c.id, 3, 2, now=now)
        assert result.matched is True
        assert result.opponent_id == a.id

        waiting = db_session.query(MatchmakingTicket).filter(
            MatchmakingTicket.status == TicketStatus.WAITING.value
        ).all()
        assert [t.player_id for t in waiting] == [b.id]

    def test_join_twice_returns_existing_ticket(self, db_session, make_player):
        a = make_player()
        first = matchmaking_service.join(db_session, a.id, 10, 0)
        second = matchmaking_service.join(db_session, a.id, 10, 0)
        assert second.matched is False
        assert second.ticket.id == first.ticket.id

    def test_join_with_new_time_control_replaces_ticket(self, db_session, make_player):
        a, b = make_player(), make_player()
        old = matchmaking_service.join(db_session, a.id, 10, 0)

        result = matchmaking_service.join(db_session, a.id, 3, 2)
        assert result.matched is False
        assert (result.ticket.time_control, result.ticket.time_increment) == (3, 2)
        assert result.ticket.id != old.ticket.id

        db_session.refresh(old.ticket)
        assert old.ticket.status == TicketStatus.CANCELLED.value

        matched = matchmaking_service.join(db_session, b.id, 3, 2)
        assert matched.matched is True
        assert matched.opponent_id == a.id

    def test_rejoin_with_expired_ticket_can_match(self, db_session, make_player):
        a, b = make_player(), make_player()
        now = datetime.now(timezone.utc)
        old = matchmaking_service.join(db_session, a.id, 10, 0, now=now - timedelta(minutes=10))
        waiting = matchmaking_service.join(db_session, b.id, 10, 0, now=now - timedelta(seconds=5))
        assert waiting.matched is False

        result = matchmaking_service.join(db_session, a.id, 10, 0, now=now)
        assert result.matched is True
        assert result.opponent_id == b.id

        db_session.refresh(old.ticket)
        assert old.ticket.status == TicketStatus.CANCELLED.value

    def test_cancel_then_no_match(self, db_session, make_player):
        a, b = make_player(), make_player()
        matchmaking_service.join(db_session, a.id, 10, 0)
        cancelled = matchmaking_service.cancel(db_session, a.id)
        assert cancelled.status == TicketStatus.CANCELLED.value

        result = matchmaking_service.join(db_session, b.id, 10, 0)
        assert result.matched is False

    def test_cancel_after_match_is_noop(self, db_session, make_player):
        a, b = make_player(), make_player()
        matchmaking_service.join(db_session, a.id, 10, 0)
        matched = matchmaking_service.join(db_session, b.id, 10, 0)

        assert matchmaking_service.cancel(db_session, a.id) is None
        assert matchmaking_service.cancel(db_session, a.id) is None

        tickets = db_session.query(MatchmakingTicket).filter(MatchmakingTicket.player_id == a.id).all()
        assert [t.status for t in tickets] == [TicketStatus.MATCHED.value]
        assert tickets[0].game_id == matched.game.id

    def test_stale_tickets_are_skipped_and_expired(self, db_session, make_player):
        a, b = make_player(), make_player()
        now = datetime.now(timezone.utc)
        old = matchmaking_service.join(db_session, a.id, 10, 0, now=now - timedelta(minutes=10))

        result = matchmaking_service.join(db_session, b.id, 10, 0, now=now)
        assert result.matched is False

        assert matchmaking_service.expire_stale_tickets(db_session, now=now) == 1
        db_session.refresh(old.ticket)
        assert old.ticket.status == TicketStatus.CANCELLED.value
        assert matchmaking_service.expire_stale_tickets(db_session, now=now) == 0

    def test_unknown_player(self, db_session):
        with pytest.raises(PlayerNotFound):
            matchmaking_service.join(db_session, 9999, 10, 0)

    def test_invalid_time_control(self, db_session, make_player):
        with pytest.raises(ValueError):
            matchmaking_service.join(db_session, make_player().id, 0, 0)
