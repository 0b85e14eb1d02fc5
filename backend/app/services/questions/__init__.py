"""Question supply services: similarity scoring, seed loading, generation.

The supply is a single process-wide instance created by the app factory
and injected into the game engine.
"""

from .generator import GenerationError, GroqQuestionGenerator
from .seed import FALLBACK_QUESTIONS, load_seed_pool
from .similarity import similarity
from .supply import QuestionSupply

__all__ = [
    'FALLBACK_QUESTIONS',
    'GenerationError',
    'GroqQuestionGenerator',
    'QuestionSupply',
    'load_seed_pool',
    'similarity',
]
