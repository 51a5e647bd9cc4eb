"""
Classification Verdict Data Class.

A verdict is produced once per document by the DocumentClassifier and is
never mutated afterwards.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VerdictKind(str, Enum):
    """Outcome of classifying a document. Values are the stored labels."""

    TEXT = "text"
    SCANNED = "scanned"
    ERROR = "error"


@dataclass(frozen=True)
class ClassificationVerdict:
    """
    Result of classifying a document's bytes.

    Attributes:
        kind: TEXT, SCANNED or ERROR.
        content: Full extracted text (TEXT only).
        reason: Why the container could not be parsed (ERROR only).

    Example:
        >>> verdict = ClassificationVerdict.text("INVOICE ...")
        >>> verdict.is_text
        True
    """

    kind: VerdictKind
    content: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def text(cls, content: str) -> 'ClassificationVerdict':
        return cls(VerdictKind.TEXT, content=content)

    @classmethod
    def scanned(cls) -> 'ClassificationVerdict':
        return cls(VerdictKind.SCANNED)

    @classmethod
    def error(cls, reason: str) -> 'ClassificationVerdict':
        return cls(VerdictKind.ERROR, reason=reason)

    @property
    def is_text(self) -> bool:
        return self.kind is VerdictKind.TEXT

    @property
    def is_scanned(self) -> bool:
        return self.kind is VerdictKind.SCANNED

    @property
    def is_error(self) -> bool:
        return self.kind is VerdictKind.ERROR

    def __repr__(self) -> str:
        if self.is_text:
            return f"ClassificationVerdict(text, chars={len(self.content or '')})"
        if self.is_error:
            return f"ClassificationVerdict(error, reason={self.reason!r})"
        return "ClassificationVerdict(scanned)"
