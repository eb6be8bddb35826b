from __future__ import annotations


class DomainError(Exception):
    """Base for errors the presentation layer turns into a user-facing message."""


class ValidationError(DomainError):
    pass


class NotAuthenticatedError(DomainError):
    pass


class PermissionDeniedError(DomainError):
    pass


class StoreError(Exception):
    """Record store read/write failed (storage unavailable, corrupt value, ...)."""
