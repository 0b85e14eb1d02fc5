"""Question supply: hands out process-wide unique questions to rooms.

Sources, in order: the prefetch cache, the generative source (if any), the
seed pool, the fixed fallback list. Every handed-out question is recorded in
the ledger and never handed out again for the life of the process.
"""
import logging
import random
import threading
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set

from .generator import GenerationError, GroqQuestionGenerator
from .seed import FALLBACK_QUESTIONS, load_seed_pool
from .similarity import is_near_duplicate

logger = logging.getLogger(__name__)


class QuestionSupply:

    def __init__(self, seed_pool: Iterable[str] = (), fallback: Sequence[str] = FALLBACK_QUESTIONS,
                 generator=None, rng: Optional[random.Random] = None,
                 max_attempts: int = 10, surplus: int = 2,
                 threshold: float = 0.7, cache_max: int = 50):
        self.seed_pool = tuple(dict.fromkeys(seed_pool))
        self.fallback = tuple(dict.fromkeys(fallback))
        self.generator = generator
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts
        self.surplus = surplus
        self.threshold = threshold
        self._lock = threading.Lock()
        self._ledger: Set[str] = set()
        self._cache: Deque[str] = deque(maxlen=cache_max)
        self._room_used: Dict[str, Set[str]] = {}

    @classmethod
    def from_config(cls, config, rng: Optional[random.Random] = None) -> 'QuestionSupply':
        return cls(
            seed_pool=load_seed_pool(config.get('QUESTIONS_FILE', 'questions.json')),
            generator=GroqQuestionGenerator.from_config(config),
            rng=rng,
            max_attempts=int(config.get('GENERATION_MAX_ATTEMPTS', 10)),
            surplus=int(config.get('GENERATION_SURPLUS', 2)),
            threshold=float(config.get('SIMILARITY_THRESHOLD', 0.7)),
            cache_max=int(config.get('QUESTION_CACHE_MAX', 50)),
        )

    # ---- public API ----

    def acquire(self, room_id: str, count: int) -> Optional[List[str]]:
        """Return ``count`` unique questions for a room, or None if supply ran out.

        On failure nothing stays reserved: questions taken during the call
        are returned to the ledger-free state so a later call can use them.
        """
        if count <= 0:
            return []
        taken = self._drain_cache(room_id, count)
        if len(taken) < count and self.generator is not None:
            taken += self._generate(room_id, count - len(taken))
        if len(taken) < count:
            taken += self._take_local(room_id, count - len(taken))
        if len(taken) < count:
            self._release(room_id, taken)
            logger.warning(f"[questions-exhausted] room={room_id} wanted={count} available={len(taken)}")
            return None
        return taken

    def release_room(self, room_id: str) -> None:
        """Forget a destroyed room's used-set. The ledger keeps its entries."""
        with self._lock:
            self._room_used.pop(room_id, None)

    def is_used(self, question: str) -> bool:
        with self._lock:
            return question in self._ledger

    def cached(self) -> List[str]:
        with self._lock:
            return list(self._cache)

    def stats(self) -> dict:
        with self._lock:
            return {
                'ledger': len(self._ledger),
                'cache': len(self._cache),
                'cache_max': self._cache.maxlen,
                'seed_pool': len(self.seed_pool),
                'fallback': len(self.fallback),
                'rooms': len(self._room_used),
                'generator': self.generator is not None,
            }

    # ---- internals (callers hold no lock) ----

    def _is_fresh(self, room_id: str, question: str) -> bool:
        return question not in self._ledger and question not in self._room_used.get(room_id, ())

    def _commit(self, room_id: str, question: str) -> None:
        self._ledger.add(question)
        self._room_used.setdefault(room_id, set()).add(question)

    def _drain_cache(self, room_id: str, needed: int) -> List[str]:
        accepted: List[str] = []
        with self._lock:
            while self._cache and len(accepted) < needed:
                question = self._cache.popleft()
                if not self._is_fresh(room_id, question):
                    continue
                if is_near_duplicate(question, self._ledger, self.threshold):
                    logger.info(f"[cache-drop] room={room_id} reason=similar question={question}")
                    continue
                self._commit(room_id, question)
                accepted.append(question)
                logger.info(f"[question-cached] room={room_id} question={question}")
        return accepted

    def _generate(self, room_id: str, needed: int) -> List[str]:
        accepted: List[str] = []
        for attempt in range(1, self.max_attempts + 1):
            want = needed - len(accepted)
            try:
                batch = self.generator.generate(want + self.surplus, self.rng)
            except GenerationError as exc:
                logger.warning(f"[generate-retry] room={room_id} attempt={attempt}/{self.max_attempts} reason={exc}")
                continue
            with self._lock:
                for candidate in batch:
                    if not self._is_fresh(room_id, candidate) or candidate in self._cache:
                        logger.info(f"[generate-drop] room={room_id} reason=duplicate question={candidate}")
                        continue
                    if is_near_duplicate(candidate, self._ledger, self.threshold):
                        logger.info(f"[generate-drop] room={room_id} reason=similar question={candidate}")
                        continue
                    if len(accepted) < needed:
                        self._commit(room_id, candidate)
                        accepted.append(candidate)
                        logger.info(f"[question-generated] room={room_id} question={candidate}")
                    elif not is_near_duplicate(candidate, self._cache, self.threshold):
                        self._cache.append(candidate)
            if len(accepted) >= needed:
                return accepted
            logger.warning(
                f"[generate-retry] room={room_id} attempt={attempt}/{self.max_attempts} "
                f"reason=too few unique candidates ({len(accepted)}/{needed})"
            )
        logger.warning(f"[generate-fallback] room={room_id} after {self.max_attempts} attempts")
        return accepted

    def _take_local(self, room_id: str, needed: int) -> List[str]:
        accepted: List[str] = []
        with self._lock:
            for source, pool in (('seed', self.seed_pool), ('fallback', self.fallback)):
                available = [q for q in pool if self._is_fresh(room_id, q)]
                picks = self.rng.sample(available, min(needed - len(accepted), len(available)))
                for question in picks:
                    self._commit(room_id, question)
                    accepted.append(question)
                    logger.info(f"[question-{source}] room={room_id} question={question}")
                if len(accepted) >= needed:
                    break
        return accepted

    def _release(self, room_id: str, questions: List[str]) -> None:
        local = set(self.seed_pool) | set(self.fallback)
        with self._lock:
            used = self._room_used.get(room_id, set())
            for question in questions:
                self._ledger.discard(question)
                used.discard(question)
                if question not in local:
                    self._cache.appendleft(question)
