"""Shared numeric helpers for the trending, similarity and personal scorers."""

import re
from collections.abc import Mapping

_TOKEN_SPLIT = re.compile(r"\W+")

MIN_TOKEN_LENGTH = 3
DEFAULT_HALF_LIFE_HOURS = 48.0
MIN_DECAY_FACTOR = 0.01


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def tokenize(text: str | None) -> set[str]:
    """Lowercase, split on non-word characters, keep tokens longer than 2 chars."""
    if not text:
        return set()
    return {token for token in _TOKEN_SPLIT.split(text.lower()) if len(token) >= MIN_TOKEN_LENGTH}


def jaccard(tokens_a: set[str], tokens_b: set[str]) -> float:
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def jaccard_similarity(text_a: str | None, text_b: str | None) -> float:
    """Jaccard coefficient of the token sets of two texts, in [0, 1]."""
    return jaccard(tokenize(text_a), tokenize(text_b))


def time_decay(age_hours: float, half_life_hours: float = DEFAULT_HALF_LIFE_HOURS) -> float:
    """Exponential decay ``0.5 ** (age / half_life)``, floored at 0.01.

    Negative ages (clock skew) count as brand new.
    """
    age_hours = max(age_hours, 0.0)
    return max(0.5 ** (age_hours / half_life_hours), MIN_DECAY_FACTOR)


def combine_scores(scores: Mapping[str, float], weights: Mapping[str, float]) -> float | None:
    """Weighted average over the signals actually present.

    Normalizing by the weights present means a missing signal only
    redistributes weight; it does not drag the score down. Returns None when
    no weighted signal is present.
    """
    total_score = 0.0
    total_weight = 0.0
    for name, score in scores.items():
        weight = weights.get(name, 0.0)
        if weight <= 0:
            continue
        total_score += clamp(score) * weight
        total_weight += weight
    if total_weight == 0:
        return None
    return clamp(total_score / total_weight)


def top_n(scores: Mapping, n: int) -> list[tuple]:
    """Highest ``n`` (key, score) pairs, ties broken by key for determinism."""
    return sorted(scores.items(), key=lambda kv: (-kv[1], str(kv[0])))[:n]

