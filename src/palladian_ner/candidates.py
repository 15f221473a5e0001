"""Candidate taggers: propose unverified entity spans from raw text."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import regex

from .models import CANDIDATE_TAG, Annotation
from .text_utils import TOKEN_PATTERN, text_offsets

log = logging.getLogger(__name__)


class Tagger(ABC):
    """Abstract base for everything that turns text into annotations."""

    @abstractmethod
    def tag(self, text: str) -> list[Annotation]:
        ...


class RegExTagger(Tagger):
    """Every match of ``pattern`` becomes an annotation with tag ``tag``.

    Trailing whitespace is stripped from matches and duplicates by
    ``(start, value)`` are dropped. Starts are UTF-16 offsets.
    """

    def __init__(self, pattern: str | regex.Pattern, tag: str):
        self.pattern = regex.compile(pattern) if isinstance(pattern, str) else pattern
        self.tag_name = tag

    def tag(self, text: str) -> list[Annotation]:
        offsets = text_offsets(text)
        seen: dict[tuple[int, str], Annotation] = {}
        for m in self.pattern.finditer(text):
            value = m.group().rstrip()
            if not value:
                continue
            key = (offsets.to_utf16(m.start()), value)
            if key not in seen:
                seen[key] = Annotation(start=key[0], value=value, tag=self.tag_name)
        return list(seen.values())


class TokenTagger(RegExTagger):
    """Every token is a candidate (language-independent mode)."""

    def __init__(self, tag: str = CANDIDATE_TAG):
        super().__init__(TOKEN_PATTERN, tag)


# ---- English candidate pattern ----

CAMEL_CASE_WORDS = r"(GmbH|LLC)"
# keep the period of abbreviations such as "Inc." or "Corp."
SUFFIXES = r"((?<=(Inc|Corp|Co|Ave))\.)?"

STRING_TAGGER_ALTERNATIVES = [
    # quoted titles: "The Lord of the Rings"
    r'(?<=["“])[A-Z][^"”\n]{0,100}(?=["”])',
    # dashes: Ontario-based, St. Louis-based
    r"([A-Z][a-z]\. )?([A-Z][A-Za-z\p{Ll}]+(-[a-z\p{Ll}]+)(-[A-Za-z\p{Ll}]+)*)",
    # A. Anderson
    r"([A-Z]\.)( )?[A-Z]['’A-Za-z\p{Ll}]{1,100}",
    # Alexander A. Anderson, Mayor Bobby E. Horton
    r"([A-Z][a-z\p{Ll}]+ ){1,2}[A-Z]\. [A-Za-z\p{Ll}]{1,100}",
    # Dr. Anderson Emeraldy
    r"([A-Z][a-z\p{Ll}]{0,2}\.) [A-Z][A-Za-z\p{Ll}]{1,100}( [A-Z][A-Za-z\p{Ll}]{1,100})?",
    # A.B.C. Anderson
    r"([A-Z]\.)+( ([A-Z]([A-Za-z\-\p{Ll}0-9&]+))+(([ ])*[A-Z]+([A-Za-z\-\p{Ll}0-9]*)){0,10})*",
    # words before a loose dash: "Real- Rumble" gives "Real"
    r"([A-Z][A-Za-z\p{Ll}]+ )*[A-Z][A-Za-z\p{Ll}]+(?=-+? )",
    # ex-President
    r"([A-Z][A-Za-z\p{Ll}]+ )?([a-z\p{Ll}]+-[A-Z][A-Za-z\p{Ll}0-9]+)",
    # National Bank of Scotland, Duke of South Carolina, L’Arc de Triomphe
    r"(([A-Z]['’]?[A-Za-z\p{Ll}]+ )+(?:of|de) (([A-Z][A-Za-z\-\p{Ll}]+)(?!([a-z\-]{0,20}\s[A-Z]))))"
    r"|([A-Z][A-Za-z\-\p{Ll}]+ of( [A-Z][A-Za-z\p{Ll}]+){1,})",
    # capitalized runs; "Veronica Swenston VENICE" gives two matches
    r"([A-Z]([a-z\-\p{Ll}0-9®]+)(( " + CAMEL_CASE_WORDS + r")?(([ &])*([A-Z]['’])?[A-Z]([a-z\-\p{Ll}0-9®]+))?)*)"
    + SUFFIXES,
    # O'Sullivan, D&G
    r"((([A-Z]([A-Za-z\-\p{Ll}0-9&]+|['’][A-Z][A-Za-z]{2,20}))+(([ &])*[A-Z]+(['’][A-Z])?"
    r"([A-Za-z\-\p{Ll}0-9®]*)){0,10})(?!(\.[A-Z])+))" + SUFFIXES,
    # camel case: iPhone 4
    r"([a-z][A-Z][A-Za-z0-9]+( [A-Z0-9][A-Za-z0-9]{0,20}){0,20})",
]

STRING_TAGGER_PATTERN = regex.compile("|".join(STRING_TAGGER_ALTERNATIVES))


class StringTagger(RegExTagger):
    """Capitalization-based candidates for English text."""

    def __init__(self, tag: str = CANDIDATE_TAG):
        super().__init__(STRING_TAGGER_PATTERN, tag)
