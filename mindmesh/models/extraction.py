"""Result type returned by text extractors."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator


class NoTextReason(str, Enum):
    EMPTY_CONTENT = "empty_content"
    UNSUPPORTED_CONTENT = "unsupported_content"
    UNREADABLE = "unreadable"
    NO_TEXT = "no_text"


class ExtractionResult(BaseModel):
    """Either extracted ``text`` or a ``no_text_reason``, never both."""

    model_config = ConfigDict(frozen=True)

    text: str | None = None
    no_text_reason: NoTextReason | None = None
    extractor: str = "unknown"

    @model_validator(mode="after")
    def _exactly_one(self) -> "ExtractionResult":
        if (self.text is None) == (self.no_text_reason is None):
            raise ValueError("ExtractionResult needs exactly one of text or no_text_reason")
        return self

    @classmethod
    def of(cls, text: str, extractor: str = "unknown") -> ExtractionResult:
        return cls(text=text, extractor=extractor)

    @classmethod
    def no_text(cls, reason: NoTextReason, extractor: str = "unknown") -> ExtractionResult:
        return cls(no_text_reason=reason, extractor=extractor)

    @property
    def has_text(self) -> bool:
        return self.text is not None
