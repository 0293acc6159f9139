import logging
import random
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.database import commit_or_raise
from app.core.exceptions import (
    TournamentNotFound, PlayerNotFound, InsufficientParticipants, InvalidTransition
)
from app.core.game_config import MIN_TOURNAMENT_PARTICIPANTS, is_valid_time_control
from app.models.game import Game
from app.models.player import Player
from app.models.tournament import (
    Tournament, TournamentParticipant, TournamentMatch,
    TournamentFormat, TournamentStatus, ParticipantStatus, MatchStatus
)
from app.services import pairing

logger = logging.getLogger(__name__)


class TournamentService:
    """Seeding, round generation and progression for all three formats."""

    def __init__(self):
        self.rng = random.Random()

    def create_tournament(self, db: Session, creator_id: int, name: str, format: str,
                          time_control: int = 10, time_increment: int = 0,
                          max_participants: Optional[int] = None) -> Tournament:
        fmt = TournamentFormat(format)
        if not is_valid_time_control(time_control, time_increment):
            raise ValueError(f"Invalid time control {time_control}+{time_increment}")
        if max_participants is not None and max_participants < MIN_TOURNAMENT_PARTICIPANTS:
            raise ValueError(f"max_participants must be at least {MIN_TOURNAMENT_PARTICIPANTS}")
        self._require_player(db, creator_id)

        tournament = Tournament(
            name=name,
            creator_id=creator_id,
            format=fmt.value,
            status=TournamentStatus.UPCOMING.value,
            current_round=0,
            max_participants=max_participants,
            time_control=time_control,
            time_increment=time_increment,
        )
        db.add(tournament)
        commit_or_raise(db, "new tournament")
        db.refresh(tournament)

        logger.info(f"Tournament {tournament.id} '{name}' ({fmt.value}) created by player {creator_id}")
        return tournament

    def join_tournament(self, db: Session, tournament_id: int, player_id: int) -> TournamentParticipant:
        tournament = self._lock_tournament(db, tournament_id)
        self._require_player(db, player_id)

        if tournament.status != TournamentStatus.UPCOMING.value:
            raise InvalidTransition(f"Tournament {tournament_id} is no longer accepting players")
        if any(p.player_id == player_id for p in tournament.participants):
            raise InvalidTransition(f"Player {player_id} already joined tournament {tournament_id}")
        if tournament.max_participants and len(tournament.participants) >= tournament.max_participants:
            raise InvalidTransition(f"Tournament {tournament_id} is full")

        participant = TournamentParticipant(tournament_id=tournament.id, player_id=player_id)
        db.add(participant)
        commit_or_raise(db, f"tournament {tournament_id}")
        db.refresh(participant)

        logger.info(f"Player {player_id} joined tournament {tournament_id}")
        return participant

    def start_tournament(self, db: Session, tournament_id: int, player_id: int,
                         now: Optional[datetime] = None) -> Tournament:
        """Shuffle and seed the field, then create round 1 and its games."""
        tournament = self._lock_tournament(db, tournament_id)

        if tournament.creator_id != player_id:
            raise InvalidTransition("Only the tournament creator can start the tournament")
        if tournament.status != TournamentStatus.UPCOMING.value:
            raise InvalidTransition(f"Tournament {tournament_id} has already started")

        participants = sorted(tournament.participants, key=lambda p: p.id)
        if len(participants) < MIN_TOURNAMENT_PARTICIPANTS:
            raise InsufficientParticipants(
                f"Need at least {MIN_TOURNAMENT_PARTICIPANTS} participants, have {len(participants)}"
            )

        by_player = {p.player_id: p for p in participants}
        seeded = pairing.seed_participants(list(by_player), self.rng)
        for seed, pid in enumerate(seeded, 1):
            by_player[pid].seed = seed
            by_player[pid].status = ParticipantStatus.ACTIVE.value

        if tournament.format == TournamentFormat.ROUND_ROBIN.value:
            pairings = pairing.round_robin_pairings(seeded)
        else:
            pairings, _ = pairing.pair_adjacent(seeded)

        tournament.status = TournamentStatus.ACTIVE.value
        tournament.current_round = 1
        tournament.started_at = now or datetime.now(timezone.utc)
        self._create_round(db, tournament, 1, pairings)

        commit_or_raise(db, f"tournament {tournament_id}")
        db.refresh(tournament)

        logger.info(f"Tournament {tournament_id} started with {len(seeded)} players, {len(pairings)} matches")
        return tournament

    def progress_tournament(self, db: Session, tournament_id: int,
                            now: Optional[datetime] = None) -> dict:
        """
        Advance to the next round once every match of the current one is
        completed. Safe to call repeatedly; extra calls change nothing.
        """
        now = now or datetime.now(timezone.utc)
        tournament = self._lock_tournament(db, tournament_id)

        if tournament.status == TournamentStatus.UPCOMING.value:
            raise InvalidTransition(f"Tournament {tournament_id} has not started")
        if tournament.status == TournamentStatus.COMPLETED.value:
            return self._progress_result(tournament, "Tournament completed")

        current = self._round_matches(tournament, tournament.current_round)
        if not all(m.status == MatchStatus.COMPLETED.value for m in current):
            return self._progress_result(tournament, "Waiting for matches to complete")

        if tournament.format == TournamentFormat.ROUND_ROBIN.value:
            self._complete(tournament, now)
        elif tournament.format == TournamentFormat.SWISS.value:
            self._progress_swiss(db, tournament, now)
        else:
            self._progress_elimination(db, tournament, current, now)

        commit_or_raise(db, f"tournament {tournament_id}")

        if tournament.status == TournamentStatus.COMPLETED.value:
            return self._progress_result(tournament, "Tournament completed")
        return self._progress_result(tournament, f"Round {tournament.current_round} started")

    def on_game_completed(self, db: Session, game: Game) -> Optional[TournamentMatch]:
        """
        Record the result of a tournament game on its match. Runs inside the
        game's transaction; the caller commits.
        """
        match = db.query(TournamentMatch).filter(TournamentMatch.game_id == game.id).first()
        if match is None or match.status == MatchStatus.COMPLETED.value:
            return match

        tournament = match.tournament
        if game.winner_id is None and tournament.format == TournamentFormat.SINGLE_ELIMINATION.value:
            # A bracket needs a winner: replay with colors reversed
            replay = self._spawn_game(db, tournament, game.black_player_id, game.white_player_id)
            match.game_id = replay.id
            logger.info(
                f"Tournament {tournament.id} match {match.id} drawn, replaying as game {replay.id}"
            )
            return match

        match.status = MatchStatus.COMPLETED.value
        match.winner_id = game.winner_id
        match.completed_at = game.ended_at or datetime.now(timezone.utc)

        logger.info(f"Tournament {tournament.id} match {match.id} completed, winner {game.winner_id}")
        return match

    def get_tournament(self, db: Session, tournament_id: int) -> Tournament:
        tournament = db.query(Tournament).filter(Tournament.id == tournament_id).first()
        if not tournament:
            raise TournamentNotFound(f"Tournament {tournament_id} not found")
        return tournament

    def list_tournaments(self, db: Session, status: Optional[str] = None) -> List[Tournament]:
        query = db.query(Tournament)
        if status:
            query = query.filter(Tournament.status == status)
        return query.order_by(Tournament.id.desc()).all()

    def get_matches(self, db: Session, tournament_id: int,
                    round: Optional[int] = None) -> List[TournamentMatch]:
        self.get_tournament(db, tournament_id)
        query = db.query(TournamentMatch).filter(TournamentMatch.tournament_id == tournament_id)
        if round is not None:
            query = query.filter(TournamentMatch.round == round)
        return query.order_by(TournamentMatch.round, TournamentMatch.match_number).all()

    def get_standings(self, db: Session, tournament_id: int) -> List[dict]:
        tournament = self.get_tournament(db, tournament_id)
        participants = {p.player_id: p for p in tournament.participants}
        players = {
            p.id: p for p in db.query(Player).filter(Player.id.in_(list(participants))).all()
        } if participants else {}

        standings = pairing.compute_standings(
            list(participants),
            tournament.matches,
            {pid: player.rating for pid, player in players.items()},
        )
        return [
            {
                "rank": s.rank,
                "player_id": s.player_id,
                "username": players[s.player_id].username if s.player_id in players else None,
                "points": s.points,
                "wins": s.wins,
                "draws": s.draws,
                "losses": s.losses,
                "rating": s.rating,
                "seed": participants[s.player_id].seed,
                "status": participants[s.player_id].status,
                "placement": participants[s.player_id].placement,
            }
            for s in standings
        ]

    # -- Internals --------------------------------------------------------

    def _progress_swiss(self, db: Session, tournament: Tournament, now: datetime) -> None:
        seeded = self._seeded_players(tournament)
        if tournament.current_round >= pairing.calculate_swiss_rounds(len(seeded)):
            self._complete(tournament, now)
            return

        pairings = pairing.swiss_pairings(seeded, tournament.matches)
        if not pairings:
            logger.info(f"Tournament {tournament.id}: no unplayed pairings left")
            self._complete(tournament, now)
            return

        tournament.current_round += 1
        self._create_round(db, tournament, tournament.current_round, pairings)

    def _progress_elimination(self, db: Session, tournament: Tournament,
                              current: List[TournamentMatch], now: datetime) -> None:
        participants = {p.player_id: p for p in tournament.participants}

        in_round = set()
        winners = []
        for match in current:
            in_round.update(match.players)
            winners.append(match.winner_id)
            for pid in match.players:
                if pid != match.winner_id:
                    participants[pid].status = ParticipantStatus.ELIMINATED.value

        byes = [
            pid for pid in self._seeded_players(tournament)
            if pid not in in_round and participants[pid].status == ParticipantStatus.ACTIVE.value
        ]
        advancing = pairing.advancing_players(winners, byes[0] if byes else None)

        if len(advancing) == 1:
            champion = participants[advancing[0]]
            champion.placement = 1
            if len(current) == 1:
                runner_up = [pid for pid in current[0].players if pid != champion.player_id]
                if runner_up:
                    participants[runner_up[0]].placement = 2
            self._complete(tournament, now)
            return

        pairings, _ = pairing.pair_adjacent(advancing)
        tournament.current_round += 1
        self._create_round(db, tournament, tournament.current_round, pairings)

    def _create_round(self, db: Session, tournament: Tournament, round_number: int,
                      pairings: List[pairing.Pairing]) -> None:
        for number, (player1, player2) in enumerate(pairings, 1):
            match = TournamentMatch(
                tournament_id=tournament.id,
                round=round_number,
                match_number=number,
                player1_id=player1,
                player2_id=player2,
                status=MatchStatus.READY.value,
            )
            db.add(match)
            tournament.matches.append(match)

            game = self._spawn_game(db, tournament, player1, player2)
            match.game_id = game.id
            match.status = MatchStatus.IN_PROGRESS.value

        logger.info(f"Tournament {tournament.id} round {round_number}: {len(pairings)} matches")

    def _spawn_game(self, db: Session, tournament: Tournament, white_id: int, black_id: int) -> Game:
        from app.services.game_service import game_service_obj

        game = game_service_obj.new_game(
            db, white_id, black_id, tournament.time_control, tournament.time_increment
        )
        game_service_obj.notify_started(db, game)
        return game

    def _complete(self, tournament: Tournament, now: datetime) -> None:
        tournament.status = TournamentStatus.COMPLETED.value
        tournament.ended_at = now
        for participant in tournament.participants:
            if participant.status == ParticipantStatus.ACTIVE.value:
                participant.status = ParticipantStatus.COMPLETED.value
        logger.info(f"Tournament {tournament.id} completed after round {tournament.current_round}")

    def _round_matches(self, tournament: Tournament, round_number: int) -> List[TournamentMatch]:
        return sorted(
            (m for m in tournament.matches if m.round == round_number),
            key=lambda m: m.match_number
        )

    def _seeded_players(self, tournament: Tournament) -> List[int]:
        ordered = sorted(tournament.participants, key=lambda p: (p.seed is None, p.seed or 0, p.id))
        return [p.player_id for p in ordered]

    def _progress_result(self, tournament: Tournament, message: str) -> dict:
        return {
            "tournament_id": tournament.id,
            "message": message,
            "status": tournament.status,
            "current_round": tournament.current_round,
        }

    def _lock_tournament(self, db: Session, tournament_id: int) -> Tournament:
        tournament = db.query(Tournament).filter(
            Tournament.id == tournament_id
        ).with_for_update().populate_existing().first()

        if not tournament:
            raise TournamentNotFound(f"Tournament {tournament_id} not found")
        return tournament

    def _require_player(self, db: Session, player_id: int) -> Player:
        player = db.query(Player).filter(Player.id == player_id).first()
        if not player:
            raise PlayerNotFound(f"Player with ID {player_id} not found")
        return player


tournament_service = TournamentService()
