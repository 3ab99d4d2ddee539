"""Exceptions raised by the authentication core and its services."""

from typing import List, Optional


class AuthError(RuntimeError):
    """Base class for failures surfaced to callers of the core."""

    status_code = 500

    def __init__(self, message: str = '') -> None:
        super(AuthError, self).__init__(message)
        self.message = message


class ValidationError(AuthError):
    """Input is malformed."""

    status_code = 400

    def __init__(self, message: str = 'Invalid request',
                 errors: Optional[List[str]] = None) -> None:
        super(ValidationError, self).__init__(message)
        self.errors = errors or [message]


BadRequest = ValidationError


class Unauthorized(AuthError):
    """Credentials or tokens were not accepted."""

    status_code = 401


class InvalidOrExpired(Unauthorized):
    """
    A one-time passcode did not verify.

    Raised identically for wrong, expired, and absent codes.
    """

    def __init__(self, message: str = 'Invalid or expired verification code'
                 ) -> None:
        super(InvalidOrExpired, self).__init__(message)


class NotFound(AuthError):
    """The requested user or record does not exist."""

    status_code = 404


class Conflict(AuthError):
    """Duplicate email or username, or a detected store desynchronization."""

    status_code = 409


class RateLimited(AuthError):
    """Too many OTP requests for this purpose and e-mail address."""

    status_code = 429

    def __init__(self, message: str = 'Too many requests. Please wait a while.',
                 retry_after: int = 0) -> None:
        super(RateLimited, self).__init__(message)
        self.retry_after = retry_after


class IdentityCreationFailed(AuthError):
    """The identity provider refused to create the account."""

    status_code = 400


class ServiceUnavailable(AuthError):
    """A backing service could not be reached."""

    status_code = 503


class ProviderUnavailable(ServiceUnavailable):
    """The external identity provider is unreachable."""


class CacheUnavailable(ServiceUnavailable):
    """The cache could not be reached or timed out."""


class StoreUnavailable(ServiceUnavailable):
    """The user database is temporarily unavailable."""


class DeliveryFailed(AuthError):
    """An OTP e-mail could not be handed to the mail server."""

    status_code = 502


# Identity provider outcomes. These are handled inside the core and are not
# surfaced to HTTP callers directly.

class ProviderError(RuntimeError):
    """The identity provider returned an unexpected error."""


class AccountExists(ProviderError):
    """The identity provider already has an account for this e-mail."""


class ProviderAuthenticationFailed(ProviderError):
    """The identity provider rejected the supplied credentials."""
