"""
Custom Exceptions Module.

Exceptions raised by the invoice parser. Validation findings are *not*
exceptions; they are returned as data on ``ValidationResult``.

Exception Hierarchy:
    InvoiceParsingError (base)
    ├── InputError
    │   ├── MissingInputError
    │   └── InputFileNotFoundError
    ├── OCRServiceUnavailableError
    ├── ExtractionError
    │   ├── LayerExtractionError
    │   ├── NoCandidatesError
    │   └── FallbackExtractionError
    ├── EnhancementError
    │   ├── EnhancementServiceError
    │   └── EnhancementResponseError
    └── ConfigurationError

Only ``InputError`` and ``OCRServiceUnavailableError`` ever leave the
pipeline; the others are caught at the cascade and enhancement boundaries.
"""


class InvoiceParsingError(Exception):
    """
    Base exception for all invoice parsing errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoiceParsingError):
    """Base exception for malformed parse requests."""
    pass


class MissingInputError(InputError):
    """
    Raised when a request carries neither OCR text nor markup.

    Example:
        >>> raise MissingInputError()
    """

    def __init__(self, reason: str = "Either OCR text or markup text is required"):
        super().__init__(reason, {"reason": "missing_input"})


class InputFileNotFoundError(InputError):
    """Raised when an input file given on the command line cannot be found."""

    def __init__(self, filepath: str):
        message = f"File not found: {filepath}"
        details = {"filepath": filepath}
        super().__init__(message, details)


# =============================================================================
# OCR ERRORS
# =============================================================================

class OCRServiceUnavailableError(InvoiceParsingError):
    """
    Raised when the OCR collaborator fails or returns nothing usable.

    There is no text to parse without OCR, so this error is fatal for the
    request and propagates to the caller.
    """

    def __init__(self, source: str, reason: str = None):
        message = "OCR service unavailable"
        details = {"source": source, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# EXTRACTION ERRORS
# =============================================================================

class ExtractionError(InvoiceParsingError):
    """Base exception for extraction failures. Triggers the fallback cascade."""
    pass


class LayerExtractionError(ExtractionError):
    """Raised when one of the candidate extraction layers fails."""

    def __init__(self, layer: str, reason: str = None):
        message = f"Extraction layer failed: {layer}"
        details = {"layer": layer, "reason": reason}
        super().__init__(message, details)


class NoCandidatesError(ExtractionError):
    """Raised when no extraction layer produced a single candidate."""

    def __init__(self, line_count: int = 0):
        message = "No field candidates found"
        details = {"lines": line_count}
        super().__init__(message, details)


class FallbackExtractionError(ExtractionError):
    """Raised when a fallback strategy cannot produce a result."""

    def __init__(self, strategy: str, reason: str = None):
        message = f"Fallback strategy failed: {strategy}"
        details = {"strategy": strategy, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# ENHANCEMENT ERRORS
# =============================================================================

class EnhancementError(InvoiceParsingError):
    """Base exception for enhancement collaborator failures. Always absorbed."""
    pass


class EnhancementServiceError(EnhancementError):
    """Raised when the enhancement service call itself fails."""

    def __init__(self, reason: str = None):
        message = "Enhancement service call failed"
        details = {"reason": reason}
        super().__init__(message, details)


class EnhancementResponseError(EnhancementError):
    """Raised when the enhancement response cannot be parsed."""

    def __init__(self, reason: str = None, preview: str = None):
        message = "Unparseable enhancement response"
        details = {"reason": reason, "preview": preview}
        super().__init__(message, details)


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(InvoiceParsingError):
    """Raised when a configuration file has an invalid shape."""

    def __init__(self, path: str, reason: str = None):
        message = f"Invalid configuration: {path}"
        details = {"path": path, "reason": reason}
        super().__init__(message, details)


__all__ = [
    'InvoiceParsingError',
    'InputError',
    'MissingInputError',
    'InputFileNotFoundError',
    'OCRServiceUnavailableError',
    'ExtractionError',
    'LayerExtractionError',
    'NoCandidatesError',
    'FallbackExtractionError',
    'EnhancementError',
    'EnhancementServiceError',
    'EnhancementResponseError',
    'ConfigurationError',
]
