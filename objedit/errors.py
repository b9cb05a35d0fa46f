"""Exception types shared by the engine, the persistence backends and the API.

Taxonomy
--------
ObjectValidationError
    Local, raised before any request is sent.  Blocks save compilation and
    never mutates a store.
FetchError (and subclasses)
    A persistence call failed (network, 4xx, 5xx).  The acting session gets
    the message; stores are left unchanged and the call can be retried.

Not-found on delete is not an error, and stale UI references (moves onto
missing ids and the like) are rejected as no-ops rather than raised.
"""

from __future__ import annotations

from typing import Optional


class ObjectValidationError(ValueError):
    """An edited object failed local validation."""

    def __init__(self, message: str, object_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.object_id = object_id


class FetchError(Exception):
    """A persistence capability call failed."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class NotFound(FetchError):
    def __init__(self, message: str = "Object not found.") -> None:
        super().__init__(message)


class BadRequest(FetchError):
    pass


class ServerError(FetchError):
    pass


class ValidationRejected(FetchError):
    """The backend re-validated an upsert request and rejected it."""
