"""Issue, decode and rotate the access and refresh tokens handed to users."""

from typing import Any, Optional
from datetime import datetime, timedelta
import logging
import uuid

import jwt
from pytz import UTC

from . import domain
from .domain import AuthTokens, TokenClaims, UserCategory
from .exceptions import CacheUnavailable, Unauthorized
from .services.cache import CacheStore
from .services.datastore import UserStore

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'
ACCESS = 'access'
REFRESH = 'refresh'
REVOKED = 'revoked'


class TokenIssuer(object):
    """
    Signs and verifies HS256 JSON Web Tokens.

    Each token carries ``sub``, ``email``, ``category``, ``role``,
    ``token_use``, ``jti``, ``iat`` and ``exp``. Refresh tokens are single
    use: rotating one records its ``jti`` under ``refresh_revoked:<jti>``
    until the token would have expired anyway.
    """

    def __init__(self, secret: str, store: UserStore, cache: CacheStore,
                 access_ttl: int = 7 * 24 * 60 * 60,
                 refresh_ttl: int = 30 * 24 * 60 * 60) -> None:
        self.secret = secret
        self.store = store
        self.cache = cache
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_config(cls, config: dict, store: UserStore,
                    cache: CacheStore) -> 'TokenIssuer':
        return cls(config['JWT_SECRET'], store, cache,
                   int(config.get('ACCESS_TOKEN_TTL', 7 * 24 * 60 * 60)),
                   int(config.get('REFRESH_TOKEN_TTL', 30 * 24 * 60 * 60)))

    def _encode(self, user_id: str, email: str,
                category: Optional[UserCategory], token_use: str,
                ttl: int) -> str:
        issued_at = domain.now()
        claims = {
            'sub': user_id,
            'email': email,
            'category': category.value if category else None,
            'role': domain.role_for(category),
            'token_use': token_use,
            'jti': uuid.uuid4().hex,
            'iat': issued_at,
            'exp': issued_at + timedelta(seconds=ttl),
        }
        return jwt.encode(claims, self.secret, algorithm=ALGORITHM)

    def _decode(self, token: str, token_use: str) -> TokenClaims:
        try:
            data: dict = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except jwt.exceptions.ExpiredSignatureError as e:
            raise Unauthorized('Token has expired') from e
        except jwt.exceptions.InvalidTokenError as e:
            raise Unauthorized('Invalid token') from e
        if data.get('token_use') != token_use:
            raise Unauthorized('Invalid token')
        try:
            category = UserCategory(data['category']) \
                if data.get('category') else None
            return TokenClaims(
                user_id=data['sub'],
                email=data['email'],
                category=category,
                role=data['role'],
                token_use=data['token_use'],
                token_id=data['jti'],
                expires=datetime.fromtimestamp(data['exp'], tz=UTC),
            )
        except (KeyError, ValueError) as e:
            raise Unauthorized('Invalid token') from e

    def issue(self, user_id: str, email: str,
              category: Optional[UserCategory] = None) -> AuthTokens:
        """Issue a new access and refresh token pair for a user."""
        return AuthTokens(
            access_token=self._encode(user_id, email, category, ACCESS,
                                      self.access_ttl),
            refresh_token=self._encode(user_id, email, category, REFRESH,
                                       self.refresh_ttl),
            expires_in=self.access_ttl,
        )

    def decode_access(self, token: str) -> TokenClaims:
        """
        Verify an access token and get its claims.

        Raises
        ------
        :class:`.Unauthorized`
            If the token is malformed, badly signed, expired, or is a refresh
            token.

        """
        return self._decode(token, ACCESS)

    def refresh(self, refresh_token: str) -> AuthTokens:
        """
        Exchange a refresh token for a new token pair.

        The user is reloaded so that the new tokens reflect their current
        category, and so that deleted or deactivated users are turned away.

        Raises
        ------
        :class:`.Unauthorized`

        """
        claims = self._decode(refresh_token, REFRESH)
        key = f'refresh_revoked:{claims.token_id}'
        try:
            revoked = self.cache.get(key) is not None
        except CacheUnavailable:
            logger.warning('Cache unavailable; cannot check revocation of %s',
                           claims.token_id)
            revoked = False
        if revoked:
            raise Unauthorized('Refresh token has already been used')

        user = self.store.get_user(claims.user_id)
        if user is None or not user.is_active:
            raise Unauthorized('User not found or inactive')

        remaining = int((claims.expires - domain.now()).total_seconds())
        if remaining > 0:
            try:
                self.cache.set(key, REVOKED, remaining)
            except CacheUnavailable:
                logger.warning('Cache unavailable; could not revoke %s',
                               claims.token_id)
        return self.issue(user.user_id, user.email, user.category)


def init_app(app: Any) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('JWT_SECRET', 'foosecret')
    app.config.setdefault('ACCESS_TOKEN_TTL', 7 * 24 * 60 * 60)
    app.config.setdefault('REFRESH_TOKEN_TTL', 30 * 24 * 60 * 60)
