#!/usr/bin/env python
"""
Text matching primitives for Drive file search: diacritic folding, query
variations, edit distance and relevance scoring.

Google Drive's ``name contains`` filter is a literal, case-sensitive-ish
substring match, so a single query misses files that differ only by case,
separators or accents. The functions here build alternate spellings of a
query and score whatever comes back against the query the user typed.
"""

import re
import unicodedata
from typing import List

# Separators used to split names and queries into words
WORD_SEPARATORS = re.compile(r"[\s\-_.]")

_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")

# Hard-coded expansion for the single query "get task info", kept from the
# earliest version of the search so that query still finds what it used to
GET_TASK_INFO_PHRASE = "get task info"
GET_TASK_INFO_VARIATIONS = (
    "GetTaskInfo",
    "gettaskinfo",
    "task info",
    "Task Info",
    "get task",
    "task",
    "info",
)

MIN_WORD_LENGTH = 2
MIN_PREFIX_LENGTH = 3

EXACT_MATCH_SCORE = 1000
PREFIX_MATCH_SCORE = 500
SUBSTRING_MATCH_SCORE = 300
DIACRITIC_MATCH_SCORE = 250
WORD_EXACT_SCORE = 200
WORD_PARTIAL_SCORE = 150
FUZZY_MATCH_WEIGHT = 100


def strip_diacritics(text: str) -> str:
    """Remove combining accents and map Vietnamese đ/Đ to d. Case is kept."""
    decomposed = unicodedata.normalize("NFD", text)
    return _COMBINING_MARKS.sub("", decomposed).replace("đ", "d").replace("Đ", "d")


def normalize_text(text: str) -> str:
    """Lower-case ``text`` and strip its diacritics.

    >>> normalize_text("Đà Nẵng")
    'da nang'
    """
    return strip_diacritics(text.lower())


def split_words(text: str) -> List[str]:
    """Split on every single separator character, keeping empty segments."""
    return WORD_SEPARATORS.split(text)


def generate_search_variations(query: str) -> List[str]:
    """Build the alternate search strings for ``query``.

    The result always starts with ``query`` itself and never contains the
    same string twice. Order matters: search results are merged
    first-seen-wins in this order.
    """
    variations = {}

    def add(value: str) -> None:
        variations.setdefault(value, None)

    add(query)
    add(query.lower())
    add(query.upper())

    without_diacritics = strip_diacritics(query)
    if without_diacritics != query:
        add(without_diacritics)
        add(without_diacritics.lower())

    parts = split_words(query)
    if len(parts) > 1:
        joined = "".join(parts)
        add(joined)
        add(joined.lower())
        add("".join(part[:1].upper() + part[1:].lower() for part in parts))
        for part in parts:
            if len(part) >= MIN_WORD_LENGTH:
                add(part)
                add(part.lower())

    if GET_TASK_INFO_PHRASE in query.lower():
        for value in GET_TASK_INFO_VARIATIONS:
            add(value)

    if len(query) > MIN_PREFIX_LENGTH:
        for end in range(MIN_PREFIX_LENGTH, len(query) + 1):
            add(query[:end])

    return list(variations)


def levenshtein_distance(first: str, second: str) -> int:
    """Minimum number of single-character edits turning ``first`` into ``second``."""
    if len(first) < len(second):
        first, second = second, first
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, first_char in enumerate(first, start=1):
        current = [i]
        for j, second_char in enumerate(second, start=1):
            cost = 0 if first_char == second_char else 1
            current.append(min(
                current[j - 1] + 1,       # insertion
                previous[j] + 1,          # deletion
                previous[j - 1] + cost,   # substitution
            ))
        previous = current
    return previous[-1]


def calculate_relevance_score(file_name: str, query: str) -> float:
    """Score how well ``file_name`` matches ``query``.

    Signals are cumulative, so an exact match also collects the prefix,
    substring, word and fuzzy bonuses. The result is never negative and
    has no upper bound.
    """
    name_lower = file_name.lower()
    query_lower = query.lower()

    score = 0.0

    if name_lower == query_lower:
        score += EXACT_MATCH_SCORE

    if name_lower.startswith(query_lower):
        score += PREFIX_MATCH_SCORE

    if query_lower in name_lower:
        score += SUBSTRING_MATCH_SCORE

    if strip_diacritics(query_lower) in strip_diacritics(name_lower):
        score += DIACRITIC_MATCH_SCORE

    name_words = split_words(name_lower)
    for query_word in split_words(query_lower):
        if len(query_word) < MIN_WORD_LENGTH:
            continue
        if query_word in name_words:
            score += WORD_EXACT_SCORE
        elif any(query_word in word for word in name_words):
            score += WORD_PARTIAL_SCORE

    max_length = max(len(name_lower), len(query_lower))
    if max_length > 0:
        similarity = 1 - levenshtein_distance(name_lower, query_lower) / max_length
        score += similarity * FUZZY_MATCH_WEIGHT

    return score
