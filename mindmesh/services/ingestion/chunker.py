"""Paragraph-aware text chunking with size bounds.

Splits normalized text into :class:`~mindmesh.models.document.TextFragment`
objects whose lengths stay close to a target size and never exceed a
maximum size.  Sizes are measured in characters.

The algorithm runs in four passes:

1. **Normalize** -- collapse runs of spaces/tabs to one space, drop spaces
   around newlines, and collapse three-or-more newlines to a paragraph
   break (``"\\n\\n"``).
2. **Accumulate** -- greedily append paragraphs to a buffer.  The buffer is
   flushed *before* an append that would push it past ``max_size``, and
   *after* an append that makes it reach ``target_size``.
3. **Merge tail** -- a trailing buffer shorter than ``min_size`` is glued
   onto the previous fragment instead of becoming a stub.
4. **Slice** -- any fragment still longer than ``max_size`` (one giant
   paragraph, or a merged tail) is cut at the last sentence end or newline
   in ``(target/2, target]``, else at the last whitespace in that window,
   else hard at ``target``.

The pure function has no I/O and is total: empty or blank input returns
an empty list.
"""

from __future__ import annotations

import math
import re
from typing import Any, Mapping

import structlog

from mindmesh.models.document import TextFragment
from mindmesh.models.metadata import merge_metadata

logger = structlog.get_logger(logger_name=__name__)

_PARAGRAPH_SEPARATOR = "\n\n"
_HORIZONTAL_SPACE = re.compile(r"[ \t]+")
_PADDED_NEWLINE = re.compile(r" *\n *")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_SENTENCE_END = frozenset(".!?\n")


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace the way the chunker sees it."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_SPACE.sub(" ", text)
    text = _PADDED_NEWLINE.sub("\n", text)
    text = _EXCESS_NEWLINES.sub(_PARAGRAPH_SEPARATOR, text)
    return text.strip()


def estimate_tokens(text: str, multiplier: float = 1.3) -> int:
    """Approximate token count: words x *multiplier*, rounded up.

    A heuristic only; it does not match any model's tokenizer.
    """
    words = len(text.split())
    return math.ceil(words * multiplier)


class TextChunker:
    """Splits text into bounded fragments preserving paragraph boundaries.

    Parameters
    ----------
    min_size:
        Trailing fragments shorter than this are merged backwards.
    target_size:
        A buffer is flushed as soon as it reaches this length.
    max_size:
        Hard upper bound on any emitted fragment.
    token_multiplier:
        Words-to-tokens factor for :func:`estimate_tokens`.
    """

    def __init__(
        self,
        min_size: int = 200,
        target_size: int = 800,
        max_size: int = 1000,
        token_multiplier: float = 1.3,
    ) -> None:
        if not 0 < min_size < target_size < max_size:
            raise ValueError(
                f"Chunk bounds must satisfy 0 < min < target < max, "
                f"got {min_size}/{target_size}/{max_size}"
            )
        self._min_size = min_size
        self._target_size = target_size
        self._max_size = max_size
        self._token_multiplier = token_multiplier

    @property
    def max_size(self) -> int:
        return self._max_size

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        text: str,
        document_metadata: Mapping[str, Any] | None = None,
    ) -> list[TextFragment]:
        """Split *text* into ordered :class:`TextFragment` objects.

        Parameters
        ----------
        text:
            Raw or normalized text; it is normalized again here.
        document_metadata:
            Document-level fields (e.g. enrichment output) merged into
            every fragment's metadata alongside ``chunk_index``,
            ``chunk_token_count`` and ``total_chunks``.

        Returns
        -------
        list[TextFragment]
            Fragments with contiguous indices ``0..n-1``.
        """
        pieces = self.split(text)
        total = len(pieces)
        fragments: list[TextFragment] = []
        for index, piece in enumerate(pieces):
            tokens = estimate_tokens(piece, self._token_multiplier)
            local = {
                "chunk_index": index,
                "chunk_token_count": tokens,
                "total_chunks": total,
            }
            fragments.append(
                TextFragment(
                    index=index,
                    text=piece,
                    token_count=tokens,
                    metadata=merge_metadata(document_metadata or {}, local),
                )
            )

        if fragments:
            logger.debug(
                "chunking_complete",
                num_chunks=total,
                avg_chars=sum(len(p) for p in pieces) // total,
            )
        return fragments

    def split(self, text: str) -> list[str]:
        """Return the fragment texts only, in reading order."""
        if not text or not text.strip():
            return []

        normalized = normalize_whitespace(text)
        paragraphs = [p.strip() for p in normalized.split(_PARAGRAPH_SEPARATOR)]
        paragraphs = [p for p in paragraphs if p]

        fragments = self._accumulate(paragraphs)
        result: list[str] = []
        for fragment in fragments:
            if len(fragment) > self._max_size:
                result.extend(self._slice(fragment))
            else:
                result.append(fragment)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _accumulate(self, paragraphs: list[str]) -> list[str]:
        fragments: list[str] = []
        buffer = ""

        for paragraph in paragraphs:
            if buffer and len(buffer) + len(_PARAGRAPH_SEPARATOR) + len(paragraph) > self._max_size:
                fragments.append(buffer)
                buffer = ""

            buffer = f"{buffer}{_PARAGRAPH_SEPARATOR}{paragraph}" if buffer else paragraph

            if len(buffer) >= self._target_size:
                fragments.append(buffer)
                buffer = ""

        if buffer:
            if len(buffer) < self._min_size and fragments:
                fragments[-1] = f"{fragments[-1]}{_PARAGRAPH_SEPARATOR}{buffer}"
            else:
                fragments.append(buffer)

        return fragments

    def _slice(self, text: str) -> list[str]:
        slices: list[str] = []
        remaining = text
        while len(remaining) > self._max_size:
            cut = self._find_cut_point(remaining, self._target_size)
            head = remaining[:cut].strip()
            if head:
                slices.append(head)
            remaining = remaining[cut:].strip()
        if remaining:
            slices.append(remaining)
        return slices

    @staticmethod
    def _find_cut_point(text: str, target: int) -> int:
        """Return the index to cut *text* at, searching back from *target*."""
        if target >= len(text):
            return len(text)

        floor = target // 2
        for i in range(target, floor, -1):
            if text[i] in _SENTENCE_END:
                return i + 1
        for i in range(target, floor, -1):
            if text[i].isspace():
                return i + 1
        return target
