# Rev 0.2.0
from __future__ import annotations


class GatewayError(RuntimeError):
    """A read or write against the hosted store failed."""

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status


class RowFormatError(GatewayError):
    """A fetched row is missing its key fields or carries unknown enum values."""
