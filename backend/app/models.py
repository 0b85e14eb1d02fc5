import string
import random
import threading
from typing import Dict, List, Optional

WAITING = 'waiting'
RANKING = 'ranking'
GUESSING = 'guessing'
REVEAL = 'reveal'

ROOM_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_room_id(taken, length=7, rng=random):
    """Generate a short room id not present in ``taken``."""
    while True:
        code = ''.join(rng.choices(ROOM_ID_ALPHABET, k=length))
        if code not in taken:
            return code


class Room:
    """In-memory state of one game room.

    Owned by the RoomRegistry; mutated only by the GameEngine while holding
    ``lock``.
    """

    def __init__(self, room_id: str, owner: str):
        self.id = room_id
        self.owner = owner
        self.players: List[str] = [owner]
        self.points: Dict[str, int] = {owner: 0}
        self.phase = WAITING
        self.question_assignments: Dict[str, str] = {}
        self.rankers: List[str] = []
        self.rankings: Dict[str, List[str]] = {}
        self.reveal_index = 0
        self.current_ranker: Optional[str] = None
        self.current_target: Optional[str] = None
        self.current_question: Optional[str] = None
        self.actual_position: Optional[int] = None
        self.current_guesses: Dict[str, int] = {}
        self.current_full_ranking: Optional[List[str]] = None
        self.no_more_questions = False
        self.lock = threading.RLock()

    def clear_reveal(self) -> None:
        self.current_ranker = None
        self.current_target = None
        self.current_question = None
        self.actual_position = None
        self.current_guesses = {}
        self.current_full_ranking = None

    def sort_leaderboard(self) -> None:
        # sorted() is stable, so tied players keep their seating order
        self.players = sorted(self.players, key=lambda p: -self.points.get(p, 0))

    def to_dict(self, player: Optional[str] = None) -> dict:
        """Snapshot for one recipient.

        Other players' questions and rankings are never included; the answer
        to the current reveal is only exposed once the reveal is scored.
        """
        revealed = self.phase == REVEAL
        data = {
            'gameId': self.id,
            'players': list(self.players),
            'owner': self.owner,
            'points': dict(self.points),
            'phase': self.phase,
            'rankers': list(self.rankers),
            'revealIndex': self.reveal_index,
            'currentRanker': self.current_ranker,
            'currentTarget': self.current_target,
            'currentQuestion': self.current_question,
            'actualPosition': self.actual_position if revealed else None,
            'currentGuesses': {p: (g if revealed else None) for p, g in self.current_guesses.items()},
            'currentFullRanking': list(self.current_full_ranking) if revealed and self.current_full_ranking else None,
            'rankingsSubmitted': [p for p in self.players if p in self.rankings],
            'noMoreQuestions': self.no_more_questions,
        }
        if player is not None:
            data['myQuestion'] = self.question_assignments.get(player, '')
            data['hasSubmittedRanking'] = player in self.rankings
            data['hasSubmittedGuess'] = player in self.current_guesses
        return data
