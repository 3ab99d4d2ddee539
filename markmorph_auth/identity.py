"""
Coordinates signup, login and guest access across the backing services.

A signup moves through initiated, OTP verified, external identity created (or
linked to an existing one), local user created, and tokens issued. The OTP
and the pending signup are consumed as soon as the code verifies, whatever
happens downstream; a failed signup has to start over with a new code.

The identity provider owns passwords and subject ids. The local user row is
keyed by the provider's subject id, except for guest Wi-Fi users, who never
get a provider account.
"""

from typing import Optional
import logging

from .domain import AuthResult, ComplianceRecord, OtpContext, OtpPurpose, \
    OtpRequestResult, User
from .exceptions import AccountExists, Conflict, IdentityCreationFailed, \
    ProviderAuthenticationFailed, ProviderError, Unauthorized, ValidationError
from .otp import OtpManager, is_valid_email, normalize_email
from .services.compliance import ComplianceWriter
from .services.datastore import UserStore
from .services.identity_provider import IdentityProvider
from .tokens import TokenIssuer
from .usernames import UsernameAllocator

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class IdentityCoordinator(object):
    """Ties OTPs, the identity provider, users, and tokens together."""

    def __init__(self, store: UserStore, otp: OtpManager,
                 usernames: UsernameAllocator, tokens: TokenIssuer,
                 provider: IdentityProvider,
                 compliance: Optional[ComplianceWriter] = None) -> None:
        self.store = store
        self.otp = otp
        self.usernames = usernames
        self.tokens = tokens
        self.provider = provider
        self.compliance = compliance

    def _log_access(self, record: ComplianceRecord) -> None:
        if self.compliance is None:
            return
        try:
            self.compliance.submit(record)
        except Exception as e:
            logger.error('Compliance logging failed for user %s: %s',
                         record.user_id, e)

    def _result(self, user: User, requires_onboarding: bool) -> AuthResult:
        tokens = self.tokens.issue(user.user_id, user.email, user.category)
        return AuthResult(tokens=tokens, user=user,
                          requires_onboarding=requires_onboarding)

    def _create_identity(self, email: str, password: str) -> str:
        """Create the provider account, or link to one with this password."""
        try:
            return self.provider.create_account(email, password)
        except AccountExists:
            logger.info('Provider account exists for %s; linking', email)
        except ProviderError as e:
            logger.error('Provider refused account for %s: %s', email, e)
            raise IdentityCreationFailed('Failed to create account') from e

        try:
            return self.provider.authenticate(email, password)
        except ProviderAuthenticationFailed as e:
            raise Conflict('Email already registered with different '
                           'credentials. Please login.') from e
        except ProviderError as e:
            logger.error('Could not link provider account for %s: %s',
                         email, e)
            raise IdentityCreationFailed('Failed to create account') from e

    def initiate_signup(self, email: str, password: str,
                        context: Optional[OtpContext] = None) \
            -> OtpRequestResult:
        """
        Start a signup by e-mailing a verification code.

        Raises
        ------
        :class:`.ValidationError`
            If the address is malformed or the password too short.
        :class:`.Conflict`
            If a user already exists for the address.

        """
        email = normalize_email(email)
        if not is_valid_email(email):
            raise ValidationError('Invalid email address')
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f'Password must be at least '
                                  f'{MIN_PASSWORD_LENGTH} characters')
        if self.store.email_exists(email):
            raise Conflict('Email already registered. Please login.')
        return self.otp.request_otp(OtpPurpose.SIGNUP, email, context,
                                    password=password)

    def complete_signup(self, email: str, code: str) -> AuthResult:
        """
        Verify the signup code, create the account, and issue tokens.

        If the identity provider already knows the address, the pending
        password is used to sign in and the existing subject id is adopted.

        Raises
        ------
        :class:`.InvalidOrExpired`
        :class:`.Conflict`
            If the provider account has a different password, or the address
            is linked locally to a different subject id.
        :class:`.IdentityCreationFailed`
        :class:`.ProviderUnavailable`

        """
        verified = self.otp.verify_otp(OtpPurpose.SIGNUP, email, code)
        subject_id = self._create_identity(verified.email,
                                           verified.password or '')
        temp_username = self.usernames.generate_temp_username(verified.email)
        user, created = self.store.ensure_user(subject_id, verified.email,
                                               temp_username)
        logger.info('Signup complete for user %s (created: %s)',
                    user.user_id, created)
        self._log_access(ComplianceRecord(user_id=user.user_id,
                                          event='signup',
                                          mac_address='signup-flow'))
        return self._result(user, requires_onboarding=True)

    def login(self, email: str, password: str) -> AuthResult:
        """
        Authenticate with the identity provider and issue tokens.

        Users the provider knows but the local store does not are refused;
        login never provisions local rows.

        Raises
        ------
        :class:`.Unauthorized`

        """
        email = normalize_email(email)
        if not email or not password:
            raise ValidationError('Email and password are required')
        try:
            subject_id = self.provider.authenticate(email, password)
        except ProviderAuthenticationFailed as e:
            raise Unauthorized('Invalid email or password') from e
        except ProviderError as e:
            logger.error('Provider login failed for %s: %s', email, e)
            raise Unauthorized('Invalid email or password') from e

        user = self.store.get_user(subject_id)
        if user is None:
            logger.error('Provider subject %s has no local user', subject_id)
            raise Unauthorized('User not found. Please complete signup.')
        if not user.is_active:
            raise Unauthorized('Account is disabled')

        user = self.store.record_login(user.user_id)
        self._log_access(ComplianceRecord(user_id=user.user_id,
                                          event='login',
                                          mac_address='login-flow',
                                          business_id=user.business_id))
        return self._result(user, user.requires_onboarding)

    def request_login_otp(self, email: str) -> OtpRequestResult:
        """Send a sign-in code; sent whether or not the user exists."""
        return self.otp.request_otp(OtpPurpose.LOGIN, email)

    def verify_login_otp(self, email: str, code: str) -> AuthResult:
        """
        Sign an existing user in with an e-mailed code.

        Raises
        ------
        :class:`.InvalidOrExpired`
        :class:`.Unauthorized`
            If no active user has the address.

        """
        verified = self.otp.verify_otp(OtpPurpose.LOGIN, email, code)
        user = self.store.get_user_by_email(verified.email)
        if user is None or not user.is_active:
            raise Unauthorized('User not found')
        user = self.store.record_login(user.user_id)
        self._log_access(ComplianceRecord(user_id=user.user_id,
                                          event='login',
                                          mac_address='otp-login-flow',
                                          business_id=user.business_id))
        return self._result(user, user.requires_onboarding)

    def request_guest_otp(self, email: str,
                          context: Optional[OtpContext] = None) \
            -> OtpRequestResult:
        """Send a guest Wi-Fi code, scoped to the portal's business."""
        return self.otp.request_otp(OtpPurpose.GUEST_WIFI, email, context)

    def verify_guest_otp(self, email: str, code: str,
                         context: Optional[OtpContext] = None) -> AuthResult:
        """
        Grant guest Wi-Fi access, creating a creator account if needed.

        Exactly one compliance record is submitted per successful
        verification, carrying the device and business of the portal.

        Raises
        ------
        :class:`.InvalidOrExpired`
        :class:`.Unauthorized`
            If the address belongs to a disabled account.

        """
        context = context or OtpContext()
        verified = self.otp.verify_otp(OtpPurpose.GUEST_WIFI, email, code,
                                       context)
        temp_username = self.usernames.generate_temp_username(verified.email)
        user, created = self.store.find_or_create_guest(verified.email,
                                                        temp_username)
        if not user.is_active:
            raise Unauthorized('Account is disabled')
        if created:
            logger.info('Created guest user %s', user.user_id)
        self._log_access(ComplianceRecord(
            user_id=user.user_id,
            event='guest_wifi',
            mac_address=context.mac_address or 'guest-flow',
            business_id=context.business_id,
            phone=context.phone,
        ))
        return self._result(user, requires_onboarding=False)

    def current_user(self, user_id: str) -> Optional[User]:
        """Load the user a verified access token belongs to."""
        return self.store.get_user(user_id)
