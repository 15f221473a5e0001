"""Reader for column-format training corpora (``token<TAB>tag`` per line)."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel

from .models import OUTSIDE_TAG, Annotation
from .text_utils import text_offsets

log = logging.getLogger(__name__)

DOCSTART = "-DOCSTART-"


class ColumnCorpus(BaseModel):
    """A column file turned back into running text plus its gold annotations.

    Tokens of a sentence are joined by a space and sentences by a newline.
    ``token_annotations`` has one entry per token, outside tokens included;
    ``annotations`` holds the combined multi-token spans without them.
    """
    text: str = ""
    token_annotations: list[Annotation] = []
    annotations: list[Annotation] = []
    skipped_lines: int = 0

    @property
    def tags(self) -> list[str]:
        return sorted({a.tag for a in self.annotations})


def _split_iob(tag: str) -> tuple[str, str]:
    if len(tag) > 2 and tag[1] == "-" and tag[0] in "BI":
        return tag[0], tag[2:]
    return "", tag


def parse_column_lines(lines: Iterable[str]) -> ColumnCorpus:
    parts: list[str] = []
    pos = 0
    in_sentence = False
    tokens: list[tuple[int, str, str]] = []
    spans: list[tuple[int, int, str]] = []
    current: list | None = None  # [start, end, tag] of the span being extended
    skipped = 0

    def close_span():
        nonlocal current
        if current is not None:
            spans.append((current[0], current[1], current[2]))
            current = None

    for lineno, raw in enumerate(lines, 1):
        line = raw.rstrip("\r\n")
        if not line.strip():
            close_span()
            in_sentence = False
            continue
        cols = line.split("\t")
        if len(cols) != 2 or not cols[0].strip() or not cols[1].strip():
            skipped += 1
            log.warning("Skipping malformed line %d (%d skipped so far): %r", lineno, skipped, line)
            continue
        token, tag = cols[0].strip(), cols[1].strip()
        if token == DOCSTART:
            close_span()
            in_sentence = False
            continue

        if parts:
            parts.append(" " if in_sentence else "\n")
            pos += 1
        start = pos
        parts.append(token)
        pos += len(token)
        in_sentence = True

        prefix, tag = _split_iob(tag)
        tokens.append((start, token, tag))
        if tag.upper() == OUTSIDE_TAG:
            close_span()
        elif current is not None and current[2] == tag and prefix != "B":
            current[1] = pos
        else:
            close_span()
            current = [start, pos, tag]
    close_span()

    text = "".join(parts)
    # positions above are str indices, annotations carry UTF-16 offsets
    offsets = text_offsets(text)
    token_annotations = [Annotation(start=offsets.to_utf16(s), value=v, tag=t) for s, v, t in tokens]
    annotations = [Annotation(start=offsets.to_utf16(s), value=text[s:e], tag=t) for s, e, t in spans]
    if skipped:
        log.warning("Skipped %d malformed lines in total", skipped)
    return ColumnCorpus(
        text=text,
        token_annotations=token_annotations,
        annotations=annotations,
        skipped_lines=skipped,
    )


def read_column_file(path: str | Path) -> ColumnCorpus:
    """Parse a column-format file; blank lines separate sentences."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        corpus = parse_column_lines(f)
    log.info("Read %s: %d tokens, %d annotations, tags %s",
             path.name, len(corpus.token_annotations), len(corpus.annotations), corpus.tags)
    return corpus
