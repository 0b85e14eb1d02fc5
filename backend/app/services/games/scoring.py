from typing import Dict, Mapping

from app.models import Room

RANKER_REWARD_CAP = 3


def score_reveal(guesses: Mapping[str, int], actual_position: int, ranker: str) -> Dict[str, int]:
    """Compute point deltas for one reveal.

    +1 to each guesser who hit ``actual_position``; the ranker gets one point
    per correct guesser, capped at RANKER_REWARD_CAP. Independent of the
    order guesses were submitted in.
    """
    deltas: Dict[str, int] = {}
    correct = 0
    for guesser, position in guesses.items():
        if guesser == ranker:
            continue
        if position == actual_position:
            deltas[guesser] = deltas.get(guesser, 0) + 1
            correct += 1
    deltas[ranker] = deltas.get(ranker, 0) + min(correct, RANKER_REWARD_CAP)
    return deltas


def apply_reveal_scores(room: Room) -> Dict[str, int]:
    """Score the room's current reveal and re-sort its leaderboard."""
    deltas = score_reveal(room.current_guesses, room.actual_position, room.current_ranker)
    for player, delta in deltas.items():
        if player in room.points:
            room.points[player] += delta
    room.sort_leaderboard()
    return deltas
