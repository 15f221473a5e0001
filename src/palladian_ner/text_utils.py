"""String helpers shared by the taggers, the trainer and the correction stages."""
from __future__ import annotations

import bisect
import unicodedata
from functools import lru_cache
from typing import Iterator

import regex

# ---- Tokenization ----

# numbers with separators, words with inner apostrophes/dashes/ampersands, any other single char
TOKEN_PATTERN = regex.compile(
    r"\d+(?:[.,]\d+)+"
    r"|[\p{L}\p{N}]+(?:['’&\-][\p{L}\p{N}]+)*"
    r"|\S"
)
SENTENCE_END = regex.compile(r"[.?!]")
WHITESPACE_TOKEN = regex.compile(r"\S+")

# ---- Date fragments ----

MONTH_NAME_SHORT_ENG = (
    "[Jj]an|[Ff]eb|[Mm]ar|[Aa]pr|[Mm]ay|[Jj]un|[Jj]ul|[Aa]ug|[Ss]ep|[Ss]ept|[Oo]ct|[Nn]ov|[Dd]ec|"
    "JAN|FEB|MAR|APR|MAY|JUN|JUL|AUG|SEP|SEPT|OCT|NOV|DEC"
)
MONTH_NAME_LONG_ENG = (
    "[Jj]anuary|[Ff]ebruary|[Mm]arch|[Aa]pril|[Mm]ay|[Jj]une|[Jj]uly|[Aa]ugust|[Ss]eptember|"
    "[Oo]ctober|[Nn]ovember|[Dd]ecember|"
    "JANUARY|FEBRUARY|MARCH|APRIL|MAY|JUNE|JULY|AUGUST|SEPTEMBER|OCTOBER|NOVEMBER|DECEMBER"
)
WEEKDAY_NAME_SHORT = "Mon|Tue|Wed|Thu|Fri|Sat|Sun"
WEEKDAY_NAME_LONG = "(?:Mon|Tues|Wednes|Thurs|Fri|Satur|Sun)day"

DATE_FRAGMENTS = [MONTH_NAME_SHORT_ENG, MONTH_NAME_LONG_ENG, WEEKDAY_NAME_SHORT, WEEKDAY_NAME_LONG]

_DATE_FRAGMENT_RES = [regex.compile(f) for f in DATE_FRAGMENTS]
# (leading, trailing) patterns, an optional period after the fragment
_DATE_FRAGMENT_EDGES = [
    (regex.compile(r"^(?:" + f + r")\.? "), regex.compile(r" (?:" + f + r")\.?$"))
    for f in DATE_FRAGMENTS
]

_EDGE_JUNK = regex.compile(r"^[^\p{L}\p{N}]+|[^\p{L}\p{N}]+$")
_CASE_RUNS = [
    (regex.compile(r"[A-Z\p{Lu}]+"), "A"),
    (regex.compile(r"[a-z\p{Ll}]+"), "a"),
    (regex.compile(r"[0-9]+"), "0"),
    (regex.compile(r"[-,;:?!()\[\]{}\"'&§$%/=]+"), "-"),
]


def tokenize(text: str) -> list[str]:
    return [m.group() for m in TOKEN_PATTERN.finditer(text)]


def token_spans(text: str) -> Iterator[tuple[int, str]]:
    """Yield ``(start, token)`` for every token of ``text``."""
    for m in TOKEN_PATTERN.finditer(text):
        yield m.start(), m.group()


def sub_phrases(value: str) -> list[tuple[int, str]]:
    """All runs of consecutive whitespace-separated words, longest first.

    Each phrase is returned with its UTF-16 offset in ``value`` and keeps
    the original spacing and casing of that slice.
    """
    words = [(m.start(), m.end()) for m in WHITESPACE_TOKEN.finditer(value)]
    phrases: list[tuple[int, str]] = []
    for size in range(len(words), 0, -1):
        for i in range(len(words) - size + 1):
            start, end = words[i][0], words[i + size - 1][1]
            phrases.append((utf16_length(value[:start]), value[start:end]))
    return phrases


def trim(value: str) -> str:
    """Strip leading and trailing characters that are neither letters nor digits."""
    return _EDGE_JUNK.sub("", value.strip())


def is_completely_uppercase(value: str) -> bool:
    """True if every character is an uppercase letter, a quote or a space."""
    value = value.strip()
    if not value:
        return False
    for ch in value:
        if ch == " ":
            continue
        if unicodedata.category(ch) not in ("Lu", "Pi", "Pf"):
            return False
    return True


def starts_uppercase(value: str) -> bool:
    value = value.strip()
    return bool(value) and value[0].isupper()


def case_signature(value: str) -> str:
    """Collapse runs of uppercase, lowercase, digits and punctuation.

    >>> case_signature("McDonald's")
    'AaAa-a'
    """
    for pattern, replacement in _CASE_RUNS:
        value = pattern.sub(replacement, value)
    return value


# ---- UTF-16 offsets ----

_ASTRAL = regex.compile("[\U00010000-\U0010FFFF]")


def utf16_length(value: str) -> int:
    """Length of ``value`` in UTF-16 code units."""
    return len(value) + len(_ASTRAL.findall(value))


class TextOffsets:
    """Maps between ``str`` indices of a text and UTF-16 code-unit offsets.

    Annotation offsets are UTF-16 code units, so a character outside the
    Basic Multilingual Plane (an emoji, say) counts twice. Texts without
    such characters map onto themselves.
    """

    def __init__(self, text: str):
        self._units: list[int] | None = None
        if _ASTRAL.search(text):
            units = [0]
            for ch in text:
                units.append(units[-1] + (2 if ord(ch) > 0xFFFF else 1))
            self._units = units

    def to_utf16(self, index: int) -> int:
        return index if self._units is None else self._units[index]

    def to_index(self, offset: int) -> int:
        if self._units is None:
            return offset
        return bisect.bisect_left(self._units, offset)


@lru_cache(maxsize=16)
def text_offsets(text: str) -> TextOffsets:
    return TextOffsets(text)


def is_date_fragment(value: str) -> bool:
    """True if nothing but whitespace remains once a date fragment is blanked out."""
    return any(not pattern.sub(" ", value).strip() for pattern in _DATE_FRAGMENT_RES)


def strip_date_fragments(start: int, value: str) -> tuple[int, str] | None:
    """Remove a leading and/or trailing date fragment from ``value``.

    Returns the new ``(start, value)`` or None if nothing was removed.
    """
    new_value = value
    new_start = start
    for begin, end in _DATE_FRAGMENT_EDGES:
        length = utf16_length(new_value)
        if begin.search(new_value):
            new_value = begin.sub(" ", new_value).strip()
            new_start += length - utf16_length(new_value)
        if end.search(new_value):
            new_value = end.sub(" ", new_value).strip()
    if new_value == value:
        return None
    return new_start, new_value


# ---- Context windows ----

def character_context(text: str, start: int, end: int, window_size: int) -> str:
    """``window_size`` characters on each side of the span, joined by a space.

    ``start`` and ``end`` are UTF-16 offsets.
    """
    offsets = text_offsets(text)
    start, end = offsets.to_index(start), offsets.to_index(end)
    left = text[max(0, start - window_size):start]
    right = text[end:end + window_size]
    return left + " " + right


def left_contexts(text: str, start: int, num_tokens: int = 3) -> list[str]:
    """Suffix phrases of the (up to) ``num_tokens`` whitespace tokens left of ``start``.

    For "... met President Barack Obama" and the annotation "Obama", the
    contexts are "Barack", "President Barack" and "met President Barack".
    """
    start = text_offsets(text).to_index(start)
    window_start = max(0, start - 200)
    window = text[window_start:start]
    tokens = window.split()
    # the first token may be cut off by the window
    if tokens and window_start > 0 and not text[window_start - 1].isspace() and not window[0].isspace():
        tokens = tokens[1:]
    tokens = tokens[-num_tokens:]
    contexts = []
    for i in range(len(tokens) - 1, -1, -1):
        contexts.append(" ".join(tokens[i:]))
    return contexts
