"""
Custom exceptions for mdpdf.

License: MIT
"""


class MdPdfError(Exception):
    """Base exception for all mdpdf errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown mdpdf error occurred."


class StackUnderflowError(MdPdfError):
    """Raised when a handler tries to pop the root container frame."""

    @property
    def default_message(self) -> str:
        return "Cannot pop the root container frame."


class CanvasError(MdPdfError):
    """Raised when the drawing surface cannot produce its output."""

    @property
    def default_message(self) -> str:
        return "The PDF canvas failed to write its output."
