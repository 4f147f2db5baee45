from abc import ABC


class UserError(ABC, Exception):
    """Base class for errors whose message is shown to the user.

    Messages must not contain sensitive information.
    """


class NotFoundError(UserError):
    def __init__(self, message: str = "Bookmark not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when user input (or the provider's verdict on it) is invalid."""


class AuthExchangeError(UserError):
    """The identity provider rejected a code or OTP exchange.

    The provider's message ends up on the login page.
    """


class UpstreamError(Exception):
    """A collaborator failed. Details go to the log, never to the user."""


class AuthServiceError(UpstreamError):
    """Identity provider unreachable or answering with 5xx / malformed payloads."""


class BookmarkStoreError(UpstreamError):
    """Bookmark store or change feed failed to read or write."""
