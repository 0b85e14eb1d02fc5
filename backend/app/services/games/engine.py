"""Game session engine: the per-room state machine.

waiting -> ranking -> guessing -> reveal -> guessing ... -> ranking (next round)

Every public operation runs under the room's lock, so concurrent socket
handlers for the same room are applied one at a time. Client mistakes raise
GameError and leave the room untouched.
"""
import logging
import random
from contextlib import contextmanager
from typing import Iterator, Optional

from app.models import GUESSING, RANKING, REVEAL, WAITING, Room
from app.rooms import RoomRegistry
from app.services.questions import QuestionSupply
from .scoring import apply_reveal_scores

logger = logging.getLogger(__name__)


class GameError(Exception):
    """A rejected client action. Reported to the offending connection only."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NullPublisher:
    """Publisher that drops everything; used when no transport is attached."""

    def publish_state(self, room: Room) -> None:
        pass

    def notify(self, room: Room, player: str, event: str, payload) -> None:
        pass


class GameEngine:

    def __init__(self, registry: RoomRegistry, supply: QuestionSupply,
                 publisher=None, rng: Optional[random.Random] = None):
        self.registry = registry
        self.supply = supply
        self.publisher = publisher or NullPublisher()
        self.rng = rng or random.Random()

    # ---- lobby ----

    def create_game(self, player_name) -> Room:
        name = _clean_name(player_name)
        room = self.registry.create(name)
        logger.info(f"[room-created] room={room.id} owner={name}")
        return room

    def join_game(self, room_id, player_name) -> Room:
        name = _clean_name(player_name)
        with self._locked(room_id) as room:
            if name in room.players:
                raise GameError('Name already taken')
            if room.phase != WAITING:
                raise GameError('Game already in progress')
            room.players.append(name)
            room.points[name] = 0
            logger.info(f"[room-joined] room={room.id} player={name} players={len(room.players)}")
            return room

    def broadcast(self, room_id) -> None:
        with self._locked(room_id) as room:
            self.publisher.publish_state(room)

    def start_game(self, room_id, player: str) -> None:
        with self._locked(room_id) as room:
            if room.owner != player:
                raise GameError('Only the game owner can start the game')
            if room.phase != WAITING:
                raise GameError('Game already started')
            self._begin_round(room)

    # ---- round flow ----

    def submit_ranking(self, room_id, player: str, ranking) -> None:
        with self._locked(room_id) as room:
            self._require_player(room, player)
            if room.phase != RANKING:
                raise GameError('Rankings are not being collected')
            if player in room.rankings:
                raise GameError('Ranking already submitted')
            if (not isinstance(ranking, list)
                    or len(ranking) != len(room.players)
                    or not all(isinstance(p, str) for p in ranking)
                    or set(ranking) != set(room.players)):
                raise GameError('Invalid ranking')
            room.rankings[player] = list(ranking)
            logger.info(f"[ranking] room={room.id} player={player} {len(room.rankings)}/{len(room.players)}")
            self.publisher.notify(room, player, 'rankingSubmitted', True)
            if len(room.rankings) == len(room.players):
                self._start_reveal(room)
            else:
                self.publisher.publish_state(room)

    def submit_guess(self, room_id, player: str, guess) -> None:
        with self._locked(room_id) as room:
            self._require_player(room, player)
            if room.phase != GUESSING:
                raise GameError('Guesses are not being collected')
            if player == room.current_ranker:
                raise GameError('You cannot guess as the ranker')
            position = _parse_position(guess)
            if position is None or not 1 <= position <= len(room.players):
                raise GameError('Invalid guess')
            if player in room.current_guesses:
                raise GameError('Guess already submitted')
            room.current_guesses[player] = position
            logger.info(f"[guess] room={room.id} player={player} position={position}")
            self._finish_reveal_if_complete(room)

    def next_reveal(self, room_id, player: str) -> None:
        with self._locked(room_id) as room:
            if room.owner != player:
                raise GameError('Only the game owner can advance')
            if room.phase != REVEAL:
                raise GameError('Nothing to advance')
            room.reveal_index += 1
            self._start_reveal(room)

    def leave_game(self, room_id, player: str) -> None:
        """Remove a disconnected player. Never raises for unknown rooms/players."""
        room = self.registry.get(room_id)
        if room is None:
            logger.warning(f"[leave-skip] room={room_id} player={player} room missing")
            return
        with room.lock:
            if self.registry.get(room_id) is not room or player not in room.players:
                return
            self._remove_player(room, player)
            if not room.players:
                self.registry.remove(room.id)
                self.supply.release_room(room.id)
                logger.info(f"[room-closed] room={room.id}")
                return
            room.sort_leaderboard()
            if room.owner == player:
                room.owner = room.players[0]
                logger.info(f"[owner-handoff] room={room.id} owner={room.owner}")
            self._after_departure(room, player)

    # ---- internals (room lock held) ----

    @contextmanager
    def _locked(self, room_id) -> Iterator[Room]:
        room = self.registry.get(room_id)
        if room is None:
            raise GameError('Game not found')
        with room.lock:
            if self.registry.get(room_id) is not room:
                raise GameError('Game not found')
            yield room

    @staticmethod
    def _require_player(room: Room, player: str) -> None:
        if player not in room.players:
            raise GameError('You are not a player in this game')

    def _begin_round(self, room: Room) -> bool:
        questions = self.supply.acquire(room.id, len(room.players))
        if questions is None:
            room.no_more_questions = True
            logger.warning(f"[round-blocked] room={room.id} phase={room.phase} no more unique questions")
            self.publisher.publish_state(room)
            return False
        self.rng.shuffle(questions)
        room.question_assignments = dict(zip(room.players, questions))
        room.rankers = self.rng.sample(room.players, len(room.players))
        room.reveal_index = 0
        room.rankings = {}
        room.clear_reveal()
        room.no_more_questions = False
        room.phase = RANKING
        logger.info(f"[round-start] room={room.id} rankers={room.rankers}")
        self.publisher.publish_state(room)
        return True

    def _start_reveal(self, room: Room) -> None:
        # Rankers who left mid-round have no ranking any more; skip them
        while room.reveal_index < len(room.rankers) and room.rankers[room.reveal_index] not in room.rankings:
            room.reveal_index += 1
        if room.reveal_index >= len(room.rankers):
            if not self._begin_round(room) and not _reveal_still_valid(room):
                # A departure ended the round and no new one could start
                self._reset_to_waiting(room)
            return
        ranker = room.rankers[room.reveal_index]
        target = self.rng.choice(room.players)
        room.clear_reveal()
        room.current_ranker = ranker
        room.current_target = target
        room.current_question = room.question_assignments.get(ranker)
        room.actual_position = room.rankings[ranker].index(target) + 1
        room.phase = GUESSING
        logger.info(f"[reveal-start] room={room.id} index={room.reveal_index} ranker={ranker} target={target}")
        self.publisher.publish_state(room)

    def _finish_reveal_if_complete(self, room: Room) -> None:
        if room.current_ranker not in room.rankings:
            logger.error(f"[reveal-abort] room={room.id} ranker={room.current_ranker} has no ranking")
            self.publisher.publish_state(room)
            return
        guessers = [p for p in room.players if p != room.current_ranker]
        if any(p not in room.current_guesses for p in guessers):
            self.publisher.publish_state(room)
            return
        deltas = apply_reveal_scores(room)
        room.current_full_ranking = list(room.rankings[room.current_ranker])
        room.phase = REVEAL
        logger.info(f"[reveal-scored] room={room.id} ranker={room.current_ranker} deltas={deltas}")
        self.publisher.publish_state(room)

    @staticmethod
    def _remove_player(room: Room, player: str) -> None:
        room.players.remove(player)
        room.points.pop(player, None)
        room.question_assignments.pop(player, None)
        room.rankings.pop(player, None)
        room.current_guesses.pop(player, None)
        for ranker, ranking in room.rankings.items():
            room.rankings[ranker] = [p for p in ranking if p != player]
        if room.current_full_ranking:
            room.current_full_ranking = [p for p in room.current_full_ranking if p != player]
        logger.info(f"[room-left] room={room.id} player={player} players={len(room.players)}")

    def _reset_to_waiting(self, room: Room) -> None:
        room.phase = WAITING
        room.question_assignments = {}
        room.rankings = {}
        room.rankers = []
        room.reveal_index = 0
        room.clear_reveal()
        logger.info(f"[round-reset] room={room.id} players={len(room.players)}")
        self.publisher.publish_state(room)

    def _after_departure(self, room: Room, player: str) -> None:
        if len(room.players) <= 1:
            self._reset_to_waiting(room)
            return
        if room.phase == RANKING and len(room.rankings) == len(room.players):
            self._start_reveal(room)
            return
        if room.phase in (GUESSING, REVEAL) and player in (room.current_ranker, room.current_target):
            room.reveal_index += 1
            self._start_reveal(room)
            return
        if room.phase == GUESSING:
            self._refresh_actual_position(room)
            self._finish_reveal_if_complete(room)
            return
        if room.phase == REVEAL:
            self._refresh_actual_position(room)
        self.publisher.publish_state(room)

    @staticmethod
    def _refresh_actual_position(room: Room) -> None:
        ranking = room.rankings.get(room.current_ranker)
        if ranking and room.current_target in ranking:
            room.actual_position = ranking.index(room.current_target) + 1


def _clean_name(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise GameError('Player name is required')
    return value.strip()


def _reveal_still_valid(room: Room) -> bool:
    return (room.phase == REVEAL
            and room.current_ranker in room.rankings
            and room.current_target in room.players)


def _parse_position(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
