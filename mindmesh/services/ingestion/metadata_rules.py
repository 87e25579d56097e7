"""Rule-based metadata heuristics used when no language model is available.

Everything here is deterministic and offline: document type from the
filename extension, keywords by term frequency minus stop-words, topics
from the top keywords, a leading-sentence summary, and a stop-word vote
for the language.  Also home to the document statistics and semantic
hash used by the detailed enrichment strategy.
"""

from __future__ import annotations

import base64
import hashlib
import re
from collections import Counter
from pathlib import PurePath

MOCK_MARKER = "[MOCK]"

_EXTENSION_TYPES: dict[str, str] = {
    ".txt": "text",
    ".text": "text",
    ".pdf": "pdf",
    ".md": "markdown",
    ".markdown": "markdown",
    ".rst": "markdown",
    ".html": "article",
    ".htm": "article",
    ".py": "code",
    ".js": "code",
    ".ts": "code",
    ".java": "code",
    ".go": "code",
    ".rs": "code",
    ".c": "code",
    ".cpp": "code",
    ".sql": "code",
    ".csv": "report",
    ".json": "report",
    ".xlsx": "report",
    ".doc": "report",
    ".docx": "report",
}

_STOPWORDS: dict[str, frozenset[str]] = {
    "en": frozenset(
        "the and for that with this from have are was were will would there their "
        "which about into than then them they been being what when where while also "
        "more most some such only other over very just your you not but can all our "
        "its his her has had of to in is it on as at by an be or a".split()
    ),
    "pt": frozenset(
        "que não para com uma por mais como mas foi ele ela das dos isso esta este "
        "são sua seu nas nos pelo pela entre quando muito também já está estão ser "
        "ter tem há de da do em um os as ao se na no é e o a".split()
    ),
    "es": frozenset(
        "que para con una por más como pero fue él ella las los esto esta este son "
        "sus nos entre cuando muy también ya está están ser tiene hay del al se en "
        "un es el la de y o".split()
    ),
}
_ALL_STOPWORDS = frozenset().union(*_STOPWORDS.values())

_WORD_RE = re.compile(r"[^\W\d_]+", re.UNICODE)
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")
_CODE_HINT_RE = re.compile(r"^\s*(def |class |import |function |public |#include|const |let )", re.M)
_HEADING_RE = re.compile(r"^#{1,6} \S", re.M)


def detect_document_type(filename: str | None) -> str:
    """Map a filename extension onto a coarse document type."""
    if not filename:
        return "unknown"
    return _EXTENSION_TYPES.get(PurePath(filename).suffix.lower(), "unknown")


def classify_text(text: str) -> str:
    """Guess a document type from its content alone."""
    if len(_CODE_HINT_RE.findall(text)) >= 3:
        return "code"
    if _HEADING_RE.search(text):
        return "markdown"
    return "text" if text.strip() else "unknown"


def extract_keywords(text: str, limit: int = 10) -> list[str]:
    """Most frequent non-stop-words of four or more letters, first-seen order on ties."""
    words = [w.lower() for w in _WORD_RE.findall(text)]
    counts = Counter(w for w in words if len(w) >= 4 and w not in _ALL_STOPWORDS)
    return [word for word, _count in counts.most_common(limit)]


def derive_topics(keywords: list[str], limit: int = 3) -> list[str]:
    return [keyword.capitalize() for keyword in keywords[:limit]]


def leading_summary(text: str, max_chars: int = 240) -> str:
    """First sentence(s) of *text* up to *max_chars*."""
    flat = " ".join(text.split())
    if not flat:
        return ""
    summary = ""
    for sentence in _SENTENCE_RE.split(flat):
        candidate = f"{summary} {sentence}".strip()
        if len(candidate) > max_chars:
            break
        summary = candidate
    if not summary:
        summary = flat[: max_chars - 3].rstrip() + "..."
    return summary


def detect_language(text: str) -> str:
    """Vote on pt/en/es by stop-word hits; ``"unknown"`` when there is no signal."""
    words = [w.lower() for w in _WORD_RE.findall(text[:5000])]
    if not words:
        return "unknown"
    scores = {lang: sum(1 for w in words if w in stop) for lang, stop in _STOPWORDS.items()}
    best = max(scores, key=lambda lang: scores[lang])
    if scores[best] == 0:
        return "unknown"
    return best


def document_stats(text: str) -> dict[str, int]:
    return {
        "lines": len(text.splitlines()) if text else 0,
        "words": len(text.split()),
        "characters": len(text),
    }


def semantic_hash(text: str) -> str:
    """Base64-encoded SHA-256 of the text."""
    return base64.b64encode(hashlib.sha256(text.encode("utf-8")).digest()).decode("ascii")
