"""Exception types for the cross-reference index."""

from typing import Optional


class XRefError(Exception):
    """Base class for cross-reference index errors."""


class InvalidRequestError(XRefError):
    """Raised when a request is missing required parameters or has invalid ones."""


class RendererError(XRefError):
    """Raised internally when the external renderer cannot produce an index."""

    def __init__(self, message: str, exit_status: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.exit_status = exit_status
        self.stderr = stderr
