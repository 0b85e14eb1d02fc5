"""Game domain services: the session engine and scoring.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics.
"""

from .engine import GameEngine, GameError, NullPublisher
from .scoring import score_reveal

__all__ = ['GameEngine', 'GameError', 'NullPublisher', 'score_reveal']
