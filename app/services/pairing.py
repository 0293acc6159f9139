"""
Pure tournament pairing and scoring routines.

Nothing here touches the database: matches are read through their
``player1_id``/``player2_id``/``winner_id``/``status`` attributes, so both
TournamentMatch rows and :class:`MatchRecord` values work.
"""
import math
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

Pairing = Tuple[int, int]


@dataclass
class MatchRecord:
    player1_id: Optional[int]
    player2_id: Optional[int]
    winner_id: Optional[int] = None
    status: str = "completed"


@dataclass
class Score:
    player_id: int
    points: float = 0.0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    opponents: Set[int] = field(default_factory=set)


@dataclass
class Standing:
    rank: int
    player_id: int
    points: float
    wins: int
    draws: int
    losses: int
    rating: int


def seed_participants(player_ids: Sequence[int], rng: Optional[random.Random] = None) -> List[int]:
    """Uniform shuffle; position in the returned list is seed - 1."""
    seeded = list(player_ids)
    (rng or random).shuffle(seeded)
    return seeded


def pair_adjacent(players: Sequence[int]) -> Tuple[List[Pairing], Optional[int]]:
    """Pair 1v2, 3v4, ...; an odd player out is returned separately."""
    pairings = [(players[i], players[i + 1]) for i in range(0, len(players) - 1, 2)]
    unpaired = players[-1] if len(players) % 2 else None
    return pairings, unpaired


def round_robin_pairings(players: Sequence[int]) -> List[Pairing]:
    """Every unordered pair exactly once, in seed order."""
    return [
        (players[i], players[j])
        for i in range(len(players))
        for j in range(i + 1, len(players))
    ]


def calculate_swiss_rounds(num_players: int) -> int:
    if num_players < 2:
        return 0
    return math.ceil(math.log2(num_players))


def compute_scores(players: Sequence[int], matches: Iterable) -> Dict[int, Score]:
    """Win = 1, draw = 0.5, loss = 0, over completed matches only."""
    scores = {player_id: Score(player_id) for player_id in players}
    for match in matches:
        pair = [p for p in (match.player1_id, match.player2_id) if p is not None]
        if len(pair) == 2:
            a, b = pair
            if a in scores:
                scores[a].opponents.add(b)
            if b in scores:
                scores[b].opponents.add(a)

        if match.status != "completed" or len(pair) != 2:
            continue
        for player_id in pair:
            if player_id not in scores:
                continue
            score = scores[player_id]
            if match.winner_id is None:
                score.draws += 1
                score.points += 0.5
            elif match.winner_id == player_id:
                score.wins += 1
                score.points += 1.0
            else:
                score.losses += 1
    return scores


def swiss_pairings(players: Sequence[int], matches: Iterable) -> List[Pairing]:
    """
    Pair by descending score, each player taking the first lower-ranked
    opponent they have not met yet. Ties keep the order of *players*.
    Whoever is left over gets no match this round.
    """
    scores = compute_scores(players, matches)
    ordered = sorted(players, key=lambda p: -scores[p].points)

    pairings = []
    paired = set()
    for i, player in enumerate(ordered):
        if player in paired:
            continue
        for opponent in ordered[i + 1:]:
            if opponent in paired or opponent in scores[player].opponents:
                continue
            pairings.append((player, opponent))
            paired.update((player, opponent))
            break
    return pairings


def advancing_players(winners: Sequence[int], bye: Optional[int]) -> List[int]:
    """Next single-elimination field: match winners in order, then the bye."""
    field_ = list(winners)
    if bye is not None:
        field_.append(bye)
    return field_


def compute_standings(players: Sequence[int], matches: Iterable,
                      ratings: Dict[int, int]) -> List[Standing]:
    """Sort by points, then wins, then rating, all descending."""
    scores = compute_scores(players, matches)
    ordered = sorted(
        scores.values(),
        key=lambda s: (-s.points, -s.wins, -ratings.get(s.player_id, 0))
    )
    return [
        Standing(
            rank=rank,
            player_id=s.player_id,
            points=s.points,
            wins=s.wins,
            draws=s.draws,
            losses=s.losses,
            rating=ratings.get(s.player_id, 0),
        )
        for rank, s in enumerate(ordered, 1)
    ]
