from collections import Counter


def _bigrams(text: str) -> Counter:
    return Counter(text[i:i + 2] for i in range(len(text) - 1))


def similarity(a: str, b: str) -> float:
    """Dice coefficient over character bigrams, ignoring whitespace.

    Returns 1.0 for identical strings and 0.0 when no bigram is shared.
    Symmetric in its arguments.
    """
    first = ''.join(a.split())
    second = ''.join(b.split())
    if first == second:
        return 1.0
    if len(first) < 2 or len(second) < 2:
        return 0.0
    shared = sum((_bigrams(first) & _bigrams(second)).values())
    return (2.0 * shared) / (len(first) + len(second) - 2)


def is_near_duplicate(candidate: str, existing, threshold: float = 0.7) -> bool:
    """True if candidate scores above threshold against any string in existing."""
    return any(similarity(candidate, other) > threshold for other in existing)
