"""Typed failures raised by the progress engine and mapped to HTTP by the error handler."""

from __future__ import annotations


class ProgressError(Exception):
    """Base class for progress engine failures."""

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(ProgressError):
    """User, quest or user-quest row does not exist."""

    status_code = 404


class ConflictError(ProgressError):
    """State already exists (e.g. quest already started)."""

    status_code = 409


class BadRequestError(ProgressError):
    """Malformed or unknown identifier."""

    status_code = 400
