"""Rule-based taggers for span types the dictionaries do not learn: DATETIME and URL."""
from __future__ import annotations

import regex

from .candidates import RegExTagger
from .models import Annotation

DATETIME_TAG = "DATETIME"
URL_TAG = "URL"

# ---- DATETIME recognition ----

MONTH = (
    r"(?:January|February|March|April|May|June|July|August|September|October|November|December"
    r"|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec)"
)
DAY = r"(?:0?[1-9]|[12][0-9]|3[01])(?:st|nd|rd|th)?"
YEAR = r"(?:1[5-9]|20)[0-9]{2}"

DATE_ISO = (
    YEAR + r"-(?:0[1-9]|1[0-2])-(?:0[1-9]|[12][0-9]|3[01])"
    r"(?:T[0-2][0-9]:[0-5][0-9](?::[0-5][0-9])?(?:Z|[+-][0-2][0-9]:?[0-5][0-9])?)?"
)
# 12/31/2010, 31.12.2010, 31-12-10
DATE_NUMERIC = r"(?:0?[1-9]|[12][0-9]|3[01])[./-](?:0?[1-9]|[12][0-9]|3[01])[./-](?:" + YEAR + r"|[0-9]{2})"
# 5th of June 2010, 5 June, 2010
DATE_DAY_MONTH_YEAR = DAY + r"\.?(?: of)? " + MONTH + r"\.?,? " + YEAR
# June 5th, 2010
DATE_MONTH_DAY_YEAR = MONTH + r"\.? " + DAY + r",? " + YEAR
# June 2010
DATE_MONTH_YEAR = MONTH + r"\.? " + YEAR
# June 5
DATE_MONTH_DAY = MONTH + r"\.? " + DAY
# in 2010, during 1999
DATE_CONTEXT_YEAR = r"(?<=\b(?:[Ii]n|[Oo]f|[Ff]rom|[Yy]ear|[Uu]ntil|[Tt]hrough|[Dd]uring) )" + YEAR
# 10:30, 9:15 pm, 23:59:59
TIME = r"(?:[01]?[0-9]|2[0-3]):[0-5][0-9](?::[0-5][0-9])?(?: ?[AaPp]\.?[Mm]\.?)?"

RE_DATETIME = regex.compile(
    r"(?<![\p{L}\p{N}])(?:"
    + "|".join([
        DATE_ISO,
        DATE_NUMERIC,
        DATE_DAY_MONTH_YEAR,
        DATE_MONTH_DAY_YEAR,
        DATE_MONTH_YEAR,
        DATE_MONTH_DAY,
        DATE_CONTEXT_YEAR,
        TIME,
    ])
    + r")(?![\p{L}\p{N}])"
)

# ---- URL recognition ----

RE_URL = regex.compile(r"(?<![\w@])(?:https?://|www\.)[^\s<>\"'“”]+", regex.IGNORECASE)
URL_TRAILING = ".,;:!?)]}"


class DateTimeTagger(RegExTagger):
    """Dates and clock times."""

    def __init__(self):
        super().__init__(RE_DATETIME, DATETIME_TAG)


class UrlTagger(RegExTagger):
    """``http(s)://`` and ``www.`` URLs, without trailing punctuation."""

    def __init__(self):
        super().__init__(RE_URL, URL_TAG)

    def tag(self, text: str) -> list[Annotation]:
        results = []
        for annotation in super().tag(text):
            value = annotation.value.rstrip(URL_TRAILING)
            if value.lower().rstrip("/:.") in ("http", "https", "www"):
                continue
            results.append(Annotation(start=annotation.start, value=value, tag=self.tag_name))
        return results
