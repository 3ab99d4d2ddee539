"""
One-time passcode lifecycle: issue, rate-limit, verify, and clear.

Codes live only in the cache, under ``otp:<purpose>[:<scope>]:<email>`` with
a fixed time-to-live. Signup requests also park the pending password under
``signup_pending:<email>`` until the code is verified. Issuance counts
against ``otp_rate:<purpose>:<email>``, a counter whose window starts with
the first request and is never extended.
"""

from typing import NamedTuple, Optional, Union
import json
import logging
import re
import secrets

from . import domain
from .domain import OtpContext, OtpPurpose, OtpRequestResult, VerifiedOtp
from .exceptions import CacheUnavailable, InvalidOrExpired, RateLimited, \
    ValidationError
from .services.cache import CacheStore
from .services.mail import MailSender

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
CODE_PATTERN = re.compile(r'^[0-9]{6}$')


def normalize_email(email: str) -> str:
    """Lower-case and trim an e-mail address."""
    return (email or '').strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email)) and len(email) <= 255


def generate_code() -> str:
    """Generate a uniformly random six-digit code."""
    return f'{secrets.randbelow(1000000):06d}'


class OtpSettings(NamedTuple):
    """Timing and limits for one-time passcodes."""

    ttl: int = 600
    """Seconds a code stays valid."""

    rate_limit: int = 5
    """Codes that may be issued per purpose and address in one window."""

    rate_window: int = 600
    resend_cooldown: int = 60
    """Seconds after issuing a code during which no new code is sent."""

    @classmethod
    def from_config(cls, config: dict) -> 'OtpSettings':
        return cls(ttl=int(config.get('OTP_TTL', 600)),
                   rate_limit=int(config.get('OTP_RATE_LIMIT', 5)),
                   rate_window=int(config.get('OTP_RATE_WINDOW', 600)),
                   resend_cooldown=int(config.get('OTP_RESEND_COOLDOWN', 60)))


class OtpManager(object):
    """Issues and verifies one-time passcodes."""

    def __init__(self, cache: CacheStore, mailer: MailSender,
                 settings: Optional[OtpSettings] = None) -> None:
        self.cache = cache
        self.mailer = mailer
        self.settings = settings or OtpSettings()

    @staticmethod
    def otp_key(purpose: OtpPurpose, email: str,
                scope: Optional[str] = None) -> str:
        if scope:
            return f'otp:{purpose.value}:{scope}:{email}'
        return f'otp:{purpose.value}:{email}'

    @staticmethod
    def rate_key(purpose: OtpPurpose, email: str) -> str:
        return f'otp_rate:{purpose.value}:{email}'

    @staticmethod
    def pending_key(email: str) -> str:
        return f'signup_pending:{email}'

    def request_otp(self, purpose: Union[OtpPurpose, str], email: str,
                    context: Optional[OtpContext] = None,
                    password: Optional[str] = None) -> OtpRequestResult:
        """
        Issue a code and e-mail it, unless limits say otherwise.

        Parameters
        ----------
        purpose : :class:`.OtpPurpose`
        email : str
        context : :class:`.OtpContext`
            A ``business_id`` scopes the code to that business's portal.
        password : str
            Required for :attr:`.OtpPurpose.SIGNUP`; held in the cache until
            the code is verified.

        Returns
        -------
        :class:`.OtpRequestResult`
            ``sent`` is ``False`` if a code was issued less than the resend
            cooldown ago; ``cooldown_seconds`` says how long to wait.

        Raises
        ------
        :class:`.ValidationError`
        :class:`.RateLimited`
            If the address has used up its codes for the current window.
        :class:`.CacheUnavailable`
            The code has nowhere else to live, so this is fatal.
        :class:`.DeliveryFailed`
            The code was stored and remains valid, but the e-mail failed.

        """
        purpose = OtpPurpose(purpose)
        email = normalize_email(email)
        if not is_valid_email(email):
            raise ValidationError('Invalid email address')
        if purpose is OtpPurpose.SIGNUP and not password:
            raise ValidationError('Password is required')
        context = context or OtpContext()
        settings = self.settings

        rate_key = self.rate_key(purpose, email)
        count = self.cache.get(rate_key)
        if count is not None and int(count) >= settings.rate_limit:
            retry_after = self.cache.ttl(rate_key)
            if retry_after < 0:
                self.cache.expire(rate_key, settings.rate_window)
                retry_after = settings.rate_window
            logger.info('OTP rate limit reached for %s (%s)', email,
                        purpose.value)
            raise RateLimited('Too many OTP requests. Please wait a while.',
                              retry_after=retry_after)

        otp_key = self.otp_key(purpose, email, context.business_id)
        remaining = self.cache.ttl(otp_key)
        if remaining > 0:
            age = settings.ttl - remaining
            if age < settings.resend_cooldown:
                return OtpRequestResult(
                    sent=False, email=email,
                    cooldown_seconds=settings.resend_cooldown - age
                )

        code = generate_code()
        if purpose is OtpPurpose.SIGNUP:
            self.cache.set(self.pending_key(email),
                           json.dumps({'email': email, 'password': password}),
                           settings.ttl)
        self.cache.set(otp_key, code, settings.ttl)
        if self.cache.incr(rate_key) == 1:
            self.cache.expire(rate_key, settings.rate_window)

        self.mailer.send_otp(email, code, purpose, context)
        logger.debug('Issued %s code for %s', purpose.value, email)
        return OtpRequestResult(sent=True, email=email)

    def verify_otp(self, purpose: Union[OtpPurpose, str], email: str,
                   code: str, context: Optional[OtpContext] = None) \
            -> VerifiedOtp:
        """
        Check a code and consume it.

        The compare and delete are a single atomic step, so of several
        concurrent attempts with the right code exactly one succeeds. A wrong
        code leaves the entry in place for another try.

        Raises
        ------
        :class:`.InvalidOrExpired`
            For wrong, expired, or absent codes alike, and when the cache
            cannot be read.

        """
        purpose = OtpPurpose(purpose)
        email = normalize_email(email)
        code = (code or '').strip()
        context = context or OtpContext()
        if not CODE_PATTERN.match(code):
            raise InvalidOrExpired()

        key = self.otp_key(purpose, email, context.business_id)
        try:
            matched = self.cache.delete_if_equals(key, code)
        except CacheUnavailable:
            logger.error('Cache unavailable while verifying code for %s',
                         email)
            raise InvalidOrExpired()
        if not matched:
            raise InvalidOrExpired()

        password: Optional[str] = None
        if purpose is OtpPurpose.SIGNUP:
            try:
                pending = self.cache.pop(self.pending_key(email))
            except CacheUnavailable:
                logger.error('Cache unavailable while reading pending '
                             'signup for %s', email)
                raise InvalidOrExpired()
            if pending is None:
                raise InvalidOrExpired('Signup session expired or invalid. '
                                       'Please try again.')
            password = json.loads(pending)['password']

        return VerifiedOtp(purpose=purpose, email=email,
                           verified_at=domain.now(),
                           scope=context.business_id, password=password)
