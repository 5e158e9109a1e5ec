"""Error taxonomy shared by services and routers."""


class VidjotError(Exception):
    """Base class for all application errors."""

    message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(VidjotError):
    """User input failed local rules. Carries one message per failed rule."""

    message = "Invalid input"

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class DuplicateAccountError(VidjotError):
    message = "Account already registered"


class AuthError(VidjotError):
    """Bad credentials.

    ``reason`` tells unknown users apart from wrong passwords for callers that
    need it; ``message`` is the same for both so it is safe to show or log.
    """

    message = "Invalid email or password"

    def __init__(self, reason: str) -> None:
        super().__init__()
        self.reason = reason


class NotFoundError(VidjotError):
    message = "Not found"


class InvalidOrExpiredTokenError(VidjotError):
    message = "Password reset link is invalid or has expired."


class PersistenceError(VidjotError):
    message = "Could not save your changes. Please try again later."
