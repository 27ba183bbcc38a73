"""
Main Input Handler Module.

Validates parse requests and turns them into ``RawDocument`` objects. A
request must carry OCR text, markup, or both; the similarity score between
the two OCR renderings is optional.

Usage:
    from src.input_handler import InputHandler

    handler = InputHandler()
    document = handler.build_document(text=ocr_text, markup=markdown)

    # From files (command line)
    document = handler.load_files("invoice.txt", "invoice.md")

Classes:
    InputHandler: Request validation and document construction
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from config import get_config
from src.utils.logger import get_logger
from src.utils.helpers import clamp, validate_file_exists
from src.utils.exceptions import InputFileNotFoundError, MissingInputError

from .document import RawDocument

# Initialize module logger
logger = get_logger(__name__)


class InputHandler:
    """
    Entry point for parse requests.

    Attributes:
        encoding: Encoding used to read input files
        default_similarity: Similarity score assumed when none is given

    Example:
        >>> handler = InputHandler()
        >>> handler.build_document(text="Invoice #123\\nTotal: $5.00")
        RawDocument(source=None, chars=25, markup=False, similarity=1.00)
        >>> handler.build_document(text="", markup="   ")
        Traceback (most recent call last):
        ...
        MissingInputError: Either OCR text or markup text is required | ...
    """

    def __init__(self) -> None:
        self.encoding = get_config("input.encoding", "utf-8")
        self.default_similarity = get_config("input.default_similarity_score", 1.0)
        logger.debug("InputHandler initialized")

    def build_document(
        self,
        text: Optional[str] = None,
        markup: Optional[str] = None,
        similarity_score: Optional[float] = None,
        source: Optional[str] = None
    ) -> RawDocument:
        """
        Validate a request and build its document.

        Args:
            text: Plain OCR text.
            markup: Structured markup of the same page.
            similarity_score: Agreement between the two renderings, clamped to [0, 1].
            source: Optional origin label for logging.

        Returns:
            RawDocument ready for the pipeline.

        Raises:
            MissingInputError: If both text and markup are missing or blank.
        """
        has_text = bool(text and text.strip())
        has_markup = bool(markup and markup.strip())

        if not has_text and not has_markup:
            raise MissingInputError()

        if similarity_score is None:
            similarity_score = self.default_similarity

        document = RawDocument(
            text=text or "",
            markup=markup if has_markup else None,
            similarity_score=clamp(float(similarity_score), (0.0, 1.0)),
            source=source,
        )
        logger.debug(f"Built {document!r}")
        return document

    def from_request(self, payload: Dict[str, Any]) -> RawDocument:
        """
        Build a document from a request body.

        Accepted keys: ``ocr_text`` (or ``text``), ``markup_text`` (or
        ``markup``), ``similarity_score``, ``source``.
        """
        return self.build_document(
            text=payload.get('ocr_text', payload.get('text')),
            markup=payload.get('markup_text', payload.get('markup')),
            similarity_score=payload.get('similarity_score'),
            source=payload.get('source'),
        )

    def load_files(
        self,
        text_path: Optional[Union[str, Path]] = None,
        markup_path: Optional[Union[str, Path]] = None,
        similarity_score: Optional[float] = None
    ) -> RawDocument:
        """
        Read OCR text and/or markup from files.

        Args:
            text_path: File holding the plain OCR text.
            markup_path: File holding the markup rendering.
            similarity_score: Optional similarity between the two.

        Returns:
            RawDocument built from the file contents.

        Raises:
            InputFileNotFoundError: If a given path doesn't exist.
            MissingInputError: If both files are absent or blank.
        """
        text = self._read(text_path) if text_path else None
        markup = self._read(markup_path) if markup_path else None
        source = str(text_path or markup_path) if (text_path or markup_path) else None
        return self.build_document(text, markup, similarity_score, source)

    def _read(self, path: Union[str, Path]) -> str:
        if not validate_file_exists(path):
            raise InputFileNotFoundError(str(path))

        logger.info(f"Reading {path}")
        return Path(path).read_text(encoding=self.encoding)
