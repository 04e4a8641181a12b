"""
Error taxonomy shared by the services and the HTTP layer.
"""

from __future__ import annotations


class AutoabError(Exception):
    """Base class for errors reported to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, object]:
        return {"success": False, "message": self.message}


class InvalidFieldError(AutoabError):
    """Raised when a strict endpoint is given an unrecognized field name."""

    status_code = 400

    def __init__(self, field: str, allowed: list[str]) -> None:
        super().__init__(
            f"Invalid field specified: {field!r}. Must be one of: {', '.join(allowed)}"
        )
        self.field = field
        self.allowed = allowed


class ValidationError(AutoabError):
    """Raised when input is missing required data. Nothing is persisted."""

    status_code = 400

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        if self.errors:
            payload["errors"] = self.errors
        return payload


class NotFoundError(AutoabError):
    status_code = 404


class ConflictError(AutoabError):
    """Raised on unique-key collisions such as a duplicate article slug."""

    status_code = 409


class InvalidTransitionError(AutoabError):
    """Raised when a submission is moved into the terminal state it already has."""

    status_code = 400


class PartialBatchFailure(AutoabError):
    """Raised when a batch insert stored some rows but not all of them.

    Rows that were inserted are kept.
    """

    status_code = 207

    def __init__(self, inserted: int, failed: int, errors: list[str]) -> None:
        super().__init__(f"Partially successful: imported {inserted} entries")
        self.inserted = inserted
        self.failed = failed
        self.errors = errors

    def to_payload(self) -> dict[str, object]:
        return {
            "success": True,
            "message": self.message,
            "data": {
                "inserted": self.inserted,
                "failed": self.failed,
                "errors": self.errors,
            },
        }


class StoreError(AutoabError):
    """Raised when the document store is unreachable or rejects a query."""

    status_code = 500


class AuthenticationRequiredError(AutoabError):
    """Raised when a protected operation arrives without a forwarded caller identity."""

    status_code = 401
