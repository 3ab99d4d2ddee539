"""Defines user, OTP, and token concepts for the authentication core."""

from typing import Any, List, NamedTuple, Optional
from datetime import datetime
from enum import Enum

from pytz import UTC


class UserCategory(str, Enum):
    """The kind of account a user runs."""

    CREATOR = 'CREATOR'
    BUSINESS = 'BUSINESS'


class OtpPurpose(str, Enum):
    """What a one-time passcode is being used for."""

    SIGNUP = 'signup'
    LOGIN = 'login'
    GUEST_WIFI = 'guest_wifi'


ONBOARDING_COMPLETE = 4
"""Value of :attr:`User.onboarding_step` once onboarding is finished."""


class User(NamedTuple):
    """Represents a user and the onboarding state of their account."""

    user_id: str
    """
    Unique identifier for the user.

    For password-owning accounts this is the identity provider's subject id.
    """

    email: str
    """The user's normalized e-mail address."""

    username: str
    """Slug-like username; may be a generated temporary handle."""

    username_claimed: bool = False
    """Whether the user chose :attr:`username` (vs. a generated one)."""

    category: Optional[UserCategory] = None
    """Creator or business account, if chosen."""

    email_verified: bool = False
    """Whether the e-mail address has been confirmed by an OTP."""

    onboarding_step: int = 0
    """Progress through onboarding, from 0 to :data:`ONBOARDING_COMPLETE`."""

    is_active: bool = True
    """Inactive users are soft-disabled and cannot authenticate."""

    display_name: Optional[str] = None
    creator_type: Optional[str] = None
    last_login_at: Optional[datetime] = None

    has_profile: bool = False
    has_business: bool = False
    business_id: Optional[str] = None
    business_name: Optional[str] = None

    @property
    def role(self) -> str:
        """Authorization role derived from :attr:`category`."""
        return role_for(self.category)

    @property
    def requires_onboarding(self) -> bool:
        """Whether the user still has onboarding steps left."""
        return self.onboarding_step < ONBOARDING_COMPLETE


class OtpContext(NamedTuple):
    """Request context attached to an OTP request or verification."""

    business_id: Optional[str] = None
    """Business whose captive portal the request came through; scopes keys."""

    mac_address: Optional[str] = None
    """Device identifier reported by the captive portal."""

    phone: Optional[str] = None


class OtpRequestResult(NamedTuple):
    """Outcome of asking for a one-time passcode."""

    sent: bool
    email: str
    cooldown_seconds: Optional[int] = None


class VerifiedOtp(NamedTuple):
    """Proof that a one-time passcode was checked and consumed."""

    purpose: OtpPurpose
    email: str
    verified_at: datetime
    scope: Optional[str] = None

    password: Optional[str] = None
    """Pending signup password; only present for :attr:`OtpPurpose.SIGNUP`."""


class AuthTokens(NamedTuple):
    """Access and refresh tokens issued to a user."""

    access_token: str
    refresh_token: str
    expires_in: int
    """Lifetime of the access token in seconds."""


class TokenClaims(NamedTuple):
    """Decoded claims of an access or refresh token."""

    user_id: str
    email: str
    category: Optional[UserCategory]
    role: str
    token_use: str
    token_id: str
    expires: datetime


class AuthResult(NamedTuple):
    """What a successful signup, login, or guest verification returns."""

    tokens: AuthTokens
    user: User
    requires_onboarding: bool


class UsernameValidation(NamedTuple):
    """Result of checking a candidate username."""

    is_valid: bool
    is_available: bool
    errors: List[str] = []
    suggestions: Optional[List[str]] = None


class ComplianceRecord(NamedTuple):
    """One captive-portal or login access event."""

    user_id: str
    event: str
    mac_address: str = 'unknown'
    business_id: Optional[str] = None
    phone: Optional[str] = None
    login_time: Optional[datetime] = None


def role_for(category: Optional[UserCategory]) -> str:
    """Get the authorization role for an account category."""
    if category == UserCategory.BUSINESS:
        return 'business'
    return 'user'


def now() -> datetime:
    """Get the current time in UTC."""
    return datetime.now(tz=UTC)


def to_dict(obj: tuple) -> dict:
    """
    Generate a dict representation of a NamedTuple instance.

    Child NamedTuples are cast recursively, datetimes become ISO-8601 strings
    and enums become their values, so the result can be serialized as JSON.
    Properties of :class:`User` that clients rely on are included as well.

    Parameters
    ----------
    obj : tuple
        A NamedTuple instance.

    Returns
    -------
    dict

    """
    if not hasattr(obj, '_asdict'):
        return {}
    data = obj._asdict()  # type: ignore

    def _cast(value: Any) -> Any:
        if hasattr(value, '_asdict'):
            value = to_dict(value)
        elif isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, list):
            value = [_cast(o) for o in value]
        return value

    _data = {key: _cast(value) for key, value in data.items()}
    if isinstance(obj, User):
        _data['role'] = obj.role
    return _data
