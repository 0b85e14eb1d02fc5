import json
import logging
from typing import List

logger = logging.getLogger(__name__)

QUESTION_PREFIX = 'Who is the most likely to'

FALLBACK_QUESTIONS = (
    "Who is the most likely to become a famous inventor?",
    "Who is the most likely to forget their own birthday?",
    "Who is the most likely to win a marathon?",
    "Who is the most likely to trip over their own shoelaces?",
    "Who is the most likely to start a successful company?",
    "Who is the most likely to lose their keys in their own house?",
)


def flatten_questions(data) -> List[str]:
    """Flatten a parsed seed document into a deduplicated list of questions.

    Accepts a list whose items are either question strings or objects
    holding question variants (e.g. ``question`` and ``specialQuestion``).
    First occurrence wins; order is preserved.
    """
    if not isinstance(data, list):
        raise ValueError('Seed questions must be a JSON list')
    seen = {}
    for item in data:
        if isinstance(item, str):
            variants = [item]
        elif isinstance(item, dict):
            variants = [v for v in item.values() if isinstance(v, str)]
        else:
            continue
        for text in variants:
            text = text.strip()
            if text:
                seen.setdefault(text, None)
    return list(seen)


def load_seed_pool(path: str) -> List[str]:
    """Load the seed pool once at startup. Any failure yields an empty pool."""
    try:
        with open(path, 'r', encoding='utf-8') as fh:
            pool = flatten_questions(json.load(fh))
    except (OSError, ValueError) as exc:
        logger.error(f"[seed-load-failed] path={path} error={exc}")
        return []
    logger.info(f"[seed-loaded] path={path} count={len(pool)}")
    return pool
