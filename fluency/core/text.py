"""String normalization and edit-distance similarity used by response scoring."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_SINGLE_QUOTES = re.compile(r"[‘’]")
_DOUBLE_QUOTES = re.compile(r"[“”]")


def normalize_text(text: str, lowercase: bool = False) -> str:
    """Trim, collapse whitespace and unify curly quotes (optionally lowercase)."""
    normalized = _WHITESPACE.sub(" ", text.strip())
    normalized = _SINGLE_QUOTES.sub("'", normalized)
    normalized = _DOUBLE_QUOTES.sub('"', normalized)
    return normalized.lower() if lowercase else normalized


def levenshtein_distance(a: str, b: str) -> int:
    """Classic insert/delete/substitute edit distance."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """1 - distance / max length, on already-normalized strings."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - levenshtein_distance(a, b) / max(len(a), len(b))


def words(text: str) -> list[str]:
    return [w for w in text.split(" ") if w] if text else []
