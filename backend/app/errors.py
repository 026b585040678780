"""Domain exceptions shared by the quota ledger and the dataset registry.

Route handlers never catch these; ``backend.app.main`` registers exception
handlers that map them onto HTTP responses.
"""
from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base class for errors raised by the service's core logic."""


class ValidationError(DomainError):
    """A user-correctable problem with submitted data.

    Attributes:
        field: Wire name of the offending field, if any
        message: Human readable description, surfaced verbatim to callers
    """

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class MissingRequiredField(ValidationError):
    """Raised when a required field is absent or blank."""

    def __init__(self, field: str):
        super().__init__(f"{field} is required", field=field)

    def __repr__(self) -> str:
        return f"MissingRequiredField({self.field!r})"


class NotFound(DomainError):
    """Raised when a referenced record does not exist."""

    def __init__(self, kind: str, identifier: object):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found")


class InvalidMetric(DomainError):
    """Raised for impossible usage values (negative counts, bad limits)."""

    def __init__(self, message: str, metric: Optional[str] = None):
        self.metric = metric
        super().__init__(message)
