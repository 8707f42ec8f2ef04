class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = list(errors or [])


class AuthenticationError(DomainError):
    """Raised when login credentials or the session are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a record does not exist inside the caller's school."""


class ConflictError(DomainError):
    """Raised when a record would duplicate an existing one."""


class DatabaseError(Exception):
    """Wraps driver errors; the original error is kept as __cause__."""
