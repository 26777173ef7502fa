# tenant_lifecycle/domain/errors.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError, OperationalError


class OffboardingError(Exception):
    """Base for every failure the offboarding services raise on purpose."""

    code = "offboarding_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(OffboardingError):
    code = "not_found"
    status_code = 404


class Conflict(OffboardingError):
    code = "conflict"
    status_code = 409


class MissingOwner(OffboardingError):
    code = "missing_owner"
    status_code = 422


class ValidationError(OffboardingError):
    code = "validation_error"
    status_code = 400


class TransientStoreError(OffboardingError):
    """I/O failure talking to the store; safe to retry."""

    code = "transient_store_error"
    status_code = 503


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """
    Translate driver-level I/O failures into TransientStoreError.

    Integrity / programming errors are not transient and propagate unchanged.
    """
    try:
        yield
    except OperationalError as e:
        raise TransientStoreError(f"{action}: store unavailable ({e.orig})") from e
    except DBAPIError as e:
        if e.connection_invalidated:
            raise TransientStoreError(f"{action}: store connection lost") from e
        raise
