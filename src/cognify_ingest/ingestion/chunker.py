"""Text chunking — deterministic, paragraph-first splitting with overlap."""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_SEPARATOR = " "

# One or more blank (or whitespace-only) lines.
_PARAGRAPH_BREAK = re.compile(r"\n(?:[ \t]*\n)+")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
_SENTENCE_END = re.compile(r"[.!?]\s+")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ChunkingStats:
    """Size statistics over a chunk list, logged by the ingestion stage."""

    total_chunks: int
    avg_chunk_size: int
    min_chunk_size: int
    max_chunk_size: int
    total_characters: int


@dataclass(frozen=True)
class _Unit:
    """Smallest piece the packer places: a paragraph, a sentence or a word run."""

    text: str
    separator: str
    hard: bool = False


def chunk_text(
    text: str,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
) -> list[str]:
    """Split *text* into ordered, overlapping fragments.

    Paragraphs (separated by blank lines) are packed greedily into
    fragments of at most *chunk_size* characters.  When a fragment is
    closed, the next one is seeded with its overlap tail: the last
    *chunk_overlap* characters, advanced past the first sentence boundary
    inside that window when there is one.  A paragraph longer than
    *chunk_size* is packed sentence by sentence with the same rule, and a
    sentence longer than *chunk_size* is cut on word boundaries without
    overlap.

    Parameters
    ----------
    text:
        Extracted document text.  Line endings are normalised to ``\\n``.
    chunk_size:
        Maximum number of characters per fragment.  Only a single word
        longer than this can produce a larger fragment.
    chunk_overlap:
        Maximum number of characters carried over between fragments.

    Returns
    -------
    list[str]
        Non-empty fragments in document order.  Blank input gives ``[]``.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size ({chunk_size}) must be > 0")
    if chunk_overlap < 0:
        raise ValueError(f"chunk_overlap ({chunk_overlap}) must be >= 0")
    if chunk_overlap >= chunk_size:
        raise ValueError(
            f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
        )

    if not text or not text.strip():
        return []

    normalized = text.replace("\r\n", "\n").replace("\r", "\n").strip()
    if len(normalized) <= chunk_size:
        return [normalized]

    chunks = _pack(_iter_units(normalized, chunk_size), chunk_size, chunk_overlap)
    return [chunk for chunk in chunks if chunk.strip()]


def overlap_tail(text: str, overlap: int) -> str:
    """Return the context carried from a closed fragment into the next one."""
    if overlap <= 0:
        return ""
    if len(text) <= overlap:
        return text.strip()

    tail = text[-overlap:]
    match = _SENTENCE_END.search(tail)
    if match:
        tail = tail[match.end():]
    return tail.strip()


def chunking_stats(chunks: Sequence[str]) -> ChunkingStats:
    """Summarise fragment sizes for logging."""
    if not chunks:
        return ChunkingStats(0, 0, 0, 0, 0)

    sizes = [len(chunk) for chunk in chunks]
    total = sum(sizes)
    return ChunkingStats(
        total_chunks=len(chunks),
        avg_chunk_size=round(total / len(chunks)),
        min_chunk_size=min(sizes),
        max_chunk_size=max(sizes),
        total_characters=total,
    )


# ── internals ─────────────────────────────────────────────────────────


def _iter_units(normalized: str, chunk_size: int) -> Iterator[_Unit]:
    for paragraph in _PARAGRAPH_BREAK.split(normalized):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) <= chunk_size:
            yield _Unit(paragraph, PARAGRAPH_SEPARATOR)
            continue

        # Oversized paragraph: its first piece still starts a new paragraph.
        separator = PARAGRAPH_SEPARATOR
        for sentence in _SENTENCE_BREAK.split(paragraph):
            sentence = sentence.strip()
            if not sentence:
                continue
            if len(sentence) <= chunk_size:
                yield _Unit(sentence, separator)
            else:
                for piece in _split_words(sentence, chunk_size):
                    yield _Unit(piece, separator, hard=True)
                    separator = SENTENCE_SEPARATOR
            separator = SENTENCE_SEPARATOR


def _split_words(sentence: str, chunk_size: int) -> list[str]:
    pieces: list[str] = []
    current = ""
    for word in _WHITESPACE.split(sentence):
        if not word:
            continue
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= chunk_size:
            current = candidate
        else:
            if current:
                pieces.append(current)
            current = word
    if current:
        pieces.append(current)
    return pieces


def _pack(units: Iterator[_Unit], chunk_size: int, chunk_overlap: int) -> list[str]:
    chunks: list[str] = []
    current = ""

    for unit in units:
        if not current:
            current = unit.text
            continue

        candidate = f"{current}{unit.separator}{unit.text}"
        if len(candidate) <= chunk_size:
            current = candidate
            continue

        chunks.append(current)
        current = unit.text
        if unit.hard:
            continue

        # The tail shrinks when the incoming unit leaves less room than the overlap.
        room = chunk_size - len(unit.text) - len(unit.separator)
        tail = overlap_tail(chunks[-1], min(chunk_overlap, room))
        if tail:
            current = f"{tail}{unit.separator}{unit.text}"

    if current:
        chunks.append(current)
    return chunks
