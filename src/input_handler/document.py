"""
Raw Document Data Class.

Author: ML Engineering Team
"""

from dataclasses import dataclass
from typing import List, Optional

from src.utils.helpers import split_lines


@dataclass(frozen=True)
class RawDocument:
    """
    OCR output for one page: plain text plus optional structured markup.

    Attributes:
        text: Plain OCR text
        markup: Markdown-like rendering of the same page (tables, headings)
        similarity_score: Agreement between the two OCR renderings (0-1)
        source: Where the text came from (file name, request id)
    """
    text: str = ""
    markup: Optional[str] = None
    similarity_score: float = 1.0
    source: Optional[str] = None

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())

    @property
    def has_markup(self) -> bool:
        return bool(self.markup and self.markup.strip())

    @property
    def plain_text(self) -> str:
        """The text heuristics scan: OCR text, or the markup when there is none."""
        if self.has_text:
            return self.text
        return self.markup or ""

    @property
    def lines(self) -> List[str]:
        return split_lines(self.plain_text)

    def __repr__(self) -> str:
        return (
            f"RawDocument(source={self.source}, "
            f"chars={len(self.text or '')}, "
            f"markup={self.has_markup}, "
            f"similarity={self.similarity_score:.2f})"
        )
