"""Text extractor for uploaded documents.

Dispatches on the content-type hint first and on magic bytes second:

- **PDF** via PyMuPDF (``fitz``), page by page
- **HTML** via BeautifulSoup, with script/style/noscript removed
- anything else is decoded as UTF-8, falling back to latin-1

Binary payloads that are none of the above (NUL bytes present) are
reported as unsupported rather than decoded into garbage.  Parser
failures are logged and reported as unreadable; this adapter never
raises for bad input.
"""

from __future__ import annotations

import asyncio
import re

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from bs4 import BeautifulSoup

from mindmesh.interfaces.text_extractor import ITextExtractor
from mindmesh.models.extraction import ExtractionResult, NoTextReason

logger = structlog.get_logger(logger_name=__name__)

_MULTI_SPACE = re.compile(r"[ \t]+")
_MULTI_NEWLINE = re.compile(r"\n{3,}")
_PADDED_NEWLINE = re.compile(r" *\n *")
_PDF_MAGIC = b"%PDF"
_HTML_SNIFF = re.compile(rb"^\s*(<!doctype html|<html|<head|<body)", re.IGNORECASE)
_HTML_TYPES = frozenset({"text/html", "application/xhtml+xml"})
_STRIP_TAGS = ("script", "style", "noscript")


def clean_text(text: str) -> str:
    """Collapse runs of spaces/tabs and of three-or-more newlines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _MULTI_SPACE.sub(" ", text)
    text = _PADDED_NEWLINE.sub("\n", text)
    text = _MULTI_NEWLINE.sub("\n\n", text)
    return text.strip()


class DocumentTextExtractor(ITextExtractor):
    """Plain text, HTML and PDF extraction behind one interface."""

    async def extract(self, data: bytes, content_type: str | None = None) -> ExtractionResult:
        if not data:
            return ExtractionResult.no_text(NoTextReason.EMPTY_CONTENT, self.get_provider_name())

        kind = self._detect_kind(data, content_type)
        try:
            if kind == "pdf":
                raw = await asyncio.to_thread(self._extract_pdf, data)
            elif kind == "html":
                raw = await asyncio.to_thread(self._extract_html, data)
            elif kind == "text":
                raw = self._decode_text(data)
            else:
                logger.info("extraction_unsupported", content_type=content_type, size=len(data))
                return ExtractionResult.no_text(
                    NoTextReason.UNSUPPORTED_CONTENT, self.get_provider_name()
                )
        except Exception as exc:
            logger.warning(
                "extraction_failed", kind=kind, content_type=content_type, error=str(exc)
            )
            return ExtractionResult.no_text(NoTextReason.UNREADABLE, self.get_provider_name())

        text = clean_text(raw)
        if not text:
            return ExtractionResult.no_text(NoTextReason.NO_TEXT, self.get_provider_name())
        logger.debug("extraction_complete", kind=kind, characters=len(text))
        return ExtractionResult.of(text, self.get_provider_name())

    def get_provider_name(self) -> str:
        return "document_text_extractor"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _detect_kind(data: bytes, content_type: str | None) -> str:
        mime = (content_type or "").split(";")[0].strip().lower()
        if mime == "application/pdf" or data.startswith(_PDF_MAGIC):
            return "pdf"
        if mime in _HTML_TYPES or _HTML_SNIFF.match(data[:512]):
            return "html"
        if b"\x00" in data[:8192]:
            return "binary"
        return "text"

    @staticmethod
    def _extract_pdf(data: bytes) -> str:
        doc = fitz.open(stream=data, filetype="pdf")
        try:
            pages = [doc[page_num].get_text("text").strip() for page_num in range(len(doc))]
        finally:
            doc.close()
        return "\n\n".join(page for page in pages if page)

    @staticmethod
    def _extract_html(data: bytes) -> str:
        soup = BeautifulSoup(data.decode("utf-8", errors="replace"), "html.parser")
        for tag in soup(_STRIP_TAGS):
            tag.decompose()
        return soup.get_text(separator="\n")

    @staticmethod
    def _decode_text(data: bytes) -> str:
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError:
            return data.decode("latin-1")
