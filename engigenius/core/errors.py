"""
core/errors.py
Domain exceptions. HTTP-level errors use FastAPI's HTTPException instead.
"""


class ConfigurationError(RuntimeError):
    """Required setting is missing (e.g. the AI gateway key)."""


class StoreError(RuntimeError):
    """Record store read or write failed."""

    def __init__(self, message: str, table: str | None = None):
        super().__init__(message)
        self.table = table


class AskError(RuntimeError):
    """Client-side failure while asking the relay. Message is user-facing."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
