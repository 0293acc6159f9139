from datetime import datetime, timedelta, timezone

import pytest

from app.models.game import Game


def new_player(client, username):
    return client.post("api/v1/players", json={"username": username}).json()


def seats(game):
    return game["white_player_id"], game["black_player_id"]


class TestPlayerAPI:

    def test_create_player(self, client):
        response = client.post("api/v1/players", json={"username": "testuser"})
        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "testuser"
        assert data["rating"] == 1200
        assert "id" in data

    def test_create_player_is_idempotent(self, client):
        first = new_player(client, "same")
        second = new_player(client, "same")
        assert first["id"] == second["id"]

    def test_player_not_found(self, client):
        response = client.get("api/v1/players/9999/stats")
        assert response.status_code == 404

    def test_empty_username_rejected(self, client):
        response = client.post("api/v1/players", json={"username": ""})
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"


class TestGameAPI:

    def test_create_invite_game(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        response = client.post("api/v1/games", json={
            "creator_id": p1["id"], "opponent_id": p2["id"], "time_control": 5, "time_increment": 3
        })
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "active"
        assert set(seats(data)) == {p1["id"], p2["id"]}

    def test_open_game_and_join(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        game = client.post("api/v1/games", json={"creator_id": p1["id"]}).json()
        assert game["status"] == "waiting"

        response = client.post(f"api/v1/games/{game['id']}/join", json={"player_id": p2["id"]})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "active"
        assert set(seats(data)) == {p1["id"], p2["id"]}

    def test_invalid_time_control_rejected(self, client):
        p1 = new_player(client, "player1")
        response = client.post("api/v1/games", json={"creator_id": p1["id"], "time_control": 0})
        assert response.status_code == 422

    def test_make_move(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        game = client.post("api/v1/games", json={"creator_id": p1["id"], "opponent_id": p2["id"]}).json()
        white, _ = seats(game)

        response = client.post(f"api/v1/games/{game['id']}/move", json={"player_id": white, "move": "E2E4"})
        assert response.status_code == 200
        data = response.json()
        assert data["uci"] == "e2e4"
        assert data["san"] == "e4"
        assert data["move_number"] == 1
        assert data["game_status"] == "active"

        moves = client.get(f"api/v1/games/{game['id']}/moves").json()
        assert [m["move_san"] for m in moves] == ["e4"]

    def test_invalid_move_not_turn(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        game = client.post("api/v1/games", json={"creator_id": p1["id"], "opponent_id": p2["id"]}).json()
        _, black = seats(game)
        response = client.post(f"api/v1/games/{game['id']}/move", json={"player_id": black, "move": "e7e5"})
        assert response.status_code == 400
        assert f"It's not player {black}'s turn" in response.json()["detail"]
        assert response.headers["X-Error-Code"] == "NOT_YOUR_TURN"

    def test_illegal_move(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        game = client.post("api/v1/games", json={"creator_id": p1["id"], "opponent_id": p2["id"]}).json()
        white, _ = seats(game)
        response = client.post(f"api/v1/games/{game['id']}/move", json={"player_id": white, "move": "e1e2"})
        assert response.status_code == 400
        assert response.headers["X-Error-Code"] == "INVALID_MOVE"

    def test_stale_move_conflict(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        game = client.post("api/v1/games", json={"creator_id": p1["id"], "opponent_id": p2["id"]}).json()
        white, black = seats(game)
        client.post(f"api/v1/games/{game['id']}/move", json={"player_id": white, "move": "d2d4"})
        response = client.post(
            f"api/v1/games/{game['id']}/move",
            json={"player_id": black, "move": "d7d5", "expected_move_count": 0}
        )
        assert response.status_code == 409

    def test_outsider_forbidden(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        p3 = new_player(client, "player3")
        game = client.post("api/v1/games", json={"creator_id": p1["id"], "opponent_id": p2["id"]}).json()
        response = client.post(f"api/v1/games/{game['id']}/resign", json={"player_id": p3["id"]})
        assert response.status_code == 403
        assert response.json()["error_code"] == "NOT_A_PLAYER"

    def test_game_checkmate_detection(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        game = client.post("api/v1/games", json={"creator_id": p1["id"], "opponent_id": p2["id"]}).json()
        white, black = seats(game)
        moves = [(white, "f2f3"), (black, "e7e5"), (white, "g2g4"), (black, "d8h4")]
        for i, (player_id, uci) in enumerate(moves):
            response = client.post(f"api/v1/games/{game['id']}/move", json={"player_id": player_id, "move": uci})
            data = response.json()
            if i == len(moves) - 1:
                assert data["game_status"] == "completed"
                assert data["is_checkmate"] is True
                assert data["winner_id"] == black
                assert data["is_draw"] is False

        state = client.get(f"api/v1/games/{game['id']}").json()
        assert state["result"] == "checkmate"
        assert state["current_turn"] is None
        assert client.get(f"api/v1/games/{game['id']}/legal-moves").json()["moves"] == []

        stats = client.get(f"api/v1/players/{black}/stats").json()
        assert stats["wins"] == 1
        assert stats["total_moves"] == 2
        assert stats["rating"] > 1200

        leaderboard = client.get("api/v1/players/leaderboard").json()
        assert leaderboard[0]["player_id"] == black

    def test_draw_offer_flow(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        game = client.post("api/v1/games", json={"creator_id": p1["id"], "opponent_id": p2["id"]}).json()
        white, black = seats(game)

        state = client.post(f"api/v1/games/{game['id']}/draw/offer", json={"player_id": white}).json()
        assert state["draw_offered_by"] == white

        own = client.post(f"api/v1/games/{game['id']}/draw/respond", json={"player_id": white, "accept": True})
        assert own.status_code == 400
        assert own.json()["error_code"] == "INVALID_TRANSITION"

        state = client.post(
            f"api/v1/games/{game['id']}/draw/respond", json={"player_id": black, "accept": True}
        ).json()
        assert state["status"] == "completed"
        assert state["draw_reason"] == "agreement"

        notifications = client.get(f"api/v1/players/{black}/notifications").json()
        assert "draw_offered" in [n["type"] for n in notifications]

    def test_takeback_flow(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        game = client.post("api/v1/games", json={"creator_id": p1["id"], "opponent_id": p2["id"]}).json()
        white, black = seats(game)
        client.post(f"api/v1/games/{game['id']}/move", json={"player_id": white, "move": "e2e4"})

        client.post(f"api/v1/games/{game['id']}/takeback/request", json={"player_id": white})
        state = client.post(
            f"api/v1/games/{game['id']}/takeback/respond", json={"player_id": black, "accept": True}
        ).json()
        assert state["move_count"] == 0
        assert state["current_turn"] == white

    def test_check_timeout_endpoint(self, client, db_session):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        game = client.post("api/v1/games", json={
            "creator_id": p1["id"], "opponent_id": p2["id"], "time_control": 1
        }).json()
        white, black = seats(game)

        row = db_session.get(Game, game["id"])
        row.last_move_at = datetime.now(timezone.utc) - timedelta(minutes=5)
        db_session.commit()

        state = client.post(f"api/v1/games/{game['id']}/check-timeout").json()
        assert state["timed_out"] is True
        assert state["result"] == "timeout"
        assert state["winner_id"] == black

        again = client.post(f"api/v1/games/{game['id']}/check-timeout").json()
        assert again["timed_out"] is False

    def test_rematch(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")
        game = client.post("api/v1/games", json={"creator_id": p1["id"], "opponent_id": p2["id"]}).json()
        white, black = seats(game)
        client.post(f"api/v1/games/{game['id']}/resign", json={"player_id": black})

        client.post(f"api/v1/games/{game['id']}/rematch/request", json={"player_id": black})
        state = client.post(
            f"api/v1/games/{game['id']}/rematch/respond", json={"player_id": white, "accept": True}
        ).json()
        assert state["id"] != game["id"]
        assert seats(state) == (black, white)

    def test_game_not_found(self, client):
        response = client.get("api/v1/games/9999")
        assert response.status_code == 404
        assert response.json()["error_code"] == "GAME_NOT_FOUND"


class TestMatchmakingAPI:

    def test_queue_pairs_two_players(self, client):
        p1 = new_player(client, "player1")
        p2 = new_player(client, "player2")

        first = client.post("api/v1/matchmaking/join", json={"player_id": p1["id"], "time_control": 10})
        assert first.status_code == 200
        assert first.json()["matched"] is False

        second = client.post("api/v1/matchmaking/join", json={"player_id": p2["id"], "time_control": 10}).json()
        assert second["matched"] is True
        assert second["opponent_id"] == p1["id"]

        status = client.get(f"api/v1/matchmaking/status/{p1['id']}").json()
        assert status["status"] == "matched"
        assert status["game_id"] == second["game_id"]

        game = client.get(f"api/v1/games/{second['game_id']}").json()
        assert set(seats(game)) == {p1["id"], p2["id"]}

    def test_cancel(self, client):
        p1 = new_player(client, "player1")
        client.post("api/v1/matchmaking/join", json={"player_id": p1["id"], "time_control": 3, "time_increment": 2})
        assert client.post("api/v1/matchmaking/cancel", json={"player_id": p1["id"]}).json()["success"] is True
        assert client.post("api/v1/matchmaking/cancel", json={"player_id": p1["id"]}).json()["success"] is False


class TestTournamentAPI:

    @pytest.mark.parametrize("fmt", ["single_elimination", "round_robin", "swiss"])
    def test_lifecycle(self, client, fmt):
        creator = new_player(client, "organizer")
        players = [new_player(client, f"entrant{i}") for i in range(4)]

        tournament = client.post("api/v1/tournaments", json={
            "creator_id": creator["id"], "name": "Weekend Cup", "format": fmt, "time_control": 3
        }).json()
        assert tournament["status"] == "upcoming"

        for player in players:
            response = client.post(f"api/v1/tournaments/{tournament['id']}/join", json={"player_id": player["id"]})
            assert response.status_code == 200

        started = client.post(
            f"api/v1/tournaments/{tournament['id']}/start", json={"player_id": creator["id"]}
        ).json()
        assert started["status"] == "active"
        assert len(started["participants"]) == 4

        for _ in range(10):
            matches = client.get(f"api/v1/tournaments/{tournament['id']}/matches").json()
            for match in matches:
                if match["status"] == "in_progress":
                    client.post(f"api/v1/games/{match['game_id']}/resign", json={"player_id": match["player2_id"]})
            progress = client.post(f"api/v1/tournaments/{tournament['id']}/progress").json()
            if progress["status"] == "completed":
                break

        assert progress["status"] == "completed"
        standings = client.get(f"api/v1/tournaments/{tournament['id']}/standings").json()
        assert len(standings) == 4
        assert standings[0]["points"] >= standings[-1]["points"]

    def test_start_requires_participants(self, client):
        creator = new_player(client, "organizer")
        tournament = client.post("api/v1/tournaments", json={
            "creator_id": creator["id"], "name": "Empty", "format": "swiss"
        }).json()
        response = client.post(f"api/v1/tournaments/{tournament['id']}/start", json={"player_id": creator["id"]})
        assert response.status_code == 400
        assert response.json()["error_code"] == "INSUFFICIENT_PARTICIPANTS"
