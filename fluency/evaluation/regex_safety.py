"""
Guarded regex matching for learner-supplied answer patterns.

Patterns come from content authors and responses from learners, so both are
bounded before the regex engine sees them.
"""

from __future__ import annotations

import re

from loguru import logger

MAX_RESPONSE_LENGTH = 10_000
MAX_PATTERN_LENGTH = 200
MAX_REGEX_INPUT_LENGTH = 1_000

# Shapes prone to catastrophic backtracking
_DANGEROUS_SHAPES = (
    re.compile(r"\([^)]*[+*][^)]*\)[+*]"),  # (a+)+ or (a*)*
    re.compile(r"\([^)]*\|[^)]*\)[+*]"),  # (a|b)+
    re.compile(r"\.\*\.\*"),  # .*.*
    re.compile(r"(?:\([^)]*[+*]\)){2,}"),  # (a+)(b+)
)


def is_safe_pattern(pattern: str) -> bool:
    if len(pattern) > MAX_PATTERN_LENGTH:
        logger.warning(f"Regex pattern too long ({len(pattern)} > {MAX_PATTERN_LENGTH}), skipping")
        return False

    for shape in _DANGEROUS_SHAPES:
        if shape.search(pattern):
            logger.warning(f"Potentially dangerous regex pattern detected, skipping: {pattern}")
            return False

    return True


def safe_regex_test(pattern: str, text: str) -> bool | None:
    """
    Case-insensitive search of pattern in text.

    Returns:
        True/False for a match result, None when the pattern is unsafe or invalid
    """
    if not is_safe_pattern(pattern):
        return None

    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.debug(f"Invalid regex pattern {pattern!r}: {e}")
        return None

    return regex.search(text[:MAX_REGEX_INPUT_LENGTH]) is not None
