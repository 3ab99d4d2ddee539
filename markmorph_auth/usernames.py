"""
Username validation, availability, reservation and history.

A username is available only if no current user holds it, no unexpired
history row redirects it, and it is not reserved (either by configuration or
in the reserved-username table). The cache holds ``username:<name> = taken``
hints that short-circuit positive lookups; a miss, or an unreachable cache,
always falls through to the database, which enforces uniqueness.
"""

from typing import FrozenSet, List, NamedTuple, Optional, Tuple
import hashlib
import logging
import random
import re
import time
import unicodedata

from dateutil.relativedelta import relativedelta

from . import domain
from .exceptions import CacheUnavailable, Conflict, NotFound, ValidationError
from .services.cache import CacheStore
from .services.datastore import UserStore

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r'^[a-z0-9][a-z0-9_-]*[a-z0-9]$')
MIN_LENGTH = 3
MAX_LENGTH = 30
TEMP_BASE_LENGTH = 20
SUGGESTION_COUNT = 3
TAKEN = 'taken'

DEFAULT_SUFFIXES = ('01', '02', 'india', 'official', 'store', 'shop', 'biz')


def _split(value: str) -> List[str]:
    return [item.strip().lower() for item in value.split(',') if item.strip()]


def _base36(number: int) -> str:
    digits = '0123456789abcdefghijklmnopqrstuvwxyz'
    encoded = ''
    while number:
        number, rem = divmod(number, 36)
        encoded = digits[rem] + encoded
    return encoded or '0'


def _slug(value: str) -> str:
    value = unicodedata.normalize('NFKD', value) \
        .encode('ascii', 'ignore').decode('ascii')
    return re.sub(r'[^a-z0-9]+', '-', value.lower()).strip('-')


def normalize(username: str) -> str:
    """Normalize a username to lowercase, without surrounding whitespace."""
    return username.strip().lower()


class UsernamePolicy(NamedTuple):
    """Configuration for the :class:`UsernameAllocator`."""

    reserved: FrozenSet[str] = frozenset()
    """Names that can never be claimed, in addition to the reserved table."""

    suffixes: Tuple[str, ...] = DEFAULT_SUFFIXES
    """Suffixes tried first when suggesting alternatives."""

    cache_ttl: int = 3600
    history_months: int = 6

    random_attempts: int = 20
    """How many random two-digit suggestions to try before hashing."""

    fallback_attempts: int = 10

    @classmethod
    def from_config(cls, config: dict) -> 'UsernamePolicy':
        """Build a policy from application configuration."""
        reserved = config.get('RESERVED_USERNAMES', '')
        suffixes = config.get('USERNAME_SUFFIXES', ','.join(DEFAULT_SUFFIXES))
        return cls(
            reserved=frozenset(_split(reserved) if isinstance(reserved, str)
                               else reserved),
            suffixes=tuple(_split(suffixes) if isinstance(suffixes, str)
                           else suffixes),
            cache_ttl=int(config.get('USERNAME_CACHE_TTL', 3600)),
            history_months=int(config.get('USERNAME_HISTORY_MONTHS', 6)),
        )


class UsernameAllocator(object):
    """Checks, claims, and suggests usernames."""

    def __init__(self, store: UserStore, cache: CacheStore,
                 policy: Optional[UsernamePolicy] = None) -> None:
        self.store = store
        self.cache = cache
        self.policy = policy or UsernamePolicy()

    def validate(self, username: str) -> List[str]:
        """
        Check the format of a normalized username.

        Returns
        -------
        list
            Human-readable problems; empty if the username is well-formed.

        """
        errors = []
        if len(username) < MIN_LENGTH:
            errors.append(f'Username must be at least {MIN_LENGTH} characters')
        if len(username) > MAX_LENGTH:
            errors.append(f'Username cannot exceed {MAX_LENGTH} characters')
        if not USERNAME_PATTERN.match(username):
            errors.append('Username can only contain lowercase letters, '
                          'numbers, hyphens, and underscores. It must start '
                          'and end with a letter or number.')
        if username in self.policy.reserved:
            errors.append('This username is reserved')
        return errors

    def check_availability(self, candidate: str,
                           suggest: bool = True) -> domain.UsernameValidation:
        """
        Check whether ``candidate`` is well-formed and free to claim.

        Parameters
        ----------
        candidate : str
        suggest : bool
            Whether to generate alternatives when the name is taken.

        Returns
        -------
        :class:`.domain.UsernameValidation`

        """
        username = normalize(candidate)
        errors = self.validate(username)
        if errors:
            return domain.UsernameValidation(is_valid=False,
                                             is_available=False,
                                             errors=errors)
        if not self.is_available(username):
            return domain.UsernameValidation(
                is_valid=True,
                is_available=False,
                errors=['This username is already taken'],
                suggestions=self.generate_suggestions(username)
                if suggest else None
            )
        return domain.UsernameValidation(is_valid=True, is_available=True,
                                         errors=[])

    def is_available(self, username: str) -> bool:
        """Determine whether nobody holds, redirects, or reserved a name."""
        username = normalize(username)
        key = f'username:{username}'
        try:
            if self.cache.get(key) == TAKEN:
                return False
        except CacheUnavailable:
            logger.warning('Cache unavailable; checking %s in database',
                           username)

        if self.store.username_in_use(username):
            self._remember_taken(username)
            return False
        if self.store.username_archived(username, domain.now()):
            return False
        return not self.store.username_reserved(username)

    def claim_username(self, user_id: str, new_username: str) -> None:
        """
        Give ``new_username`` to the user ``user_id``.

        If the user already had a claimed username, it is archived in the
        history table for :attr:`UsernamePolicy.history_months` so that old
        links keep resolving.

        Raises
        ------
        :class:`.ValidationError`
            If the username is malformed or reserved.
        :class:`.NotFound`
            If there is no such user.
        :class:`.Conflict`
            If someone else holds the username, including when another claim
            wins the race to the database.

        """
        username = normalize(new_username)
        validation = self.check_availability(username, suggest=False)
        if not validation.is_valid:
            raise ValidationError(', '.join(validation.errors),
                                  validation.errors)

        user = self.store.get_user(user_id)
        if user is None:
            raise NotFound('User not found')
        if user.username == username:
            if not user.username_claimed:
                self.store.change_username(user_id, username)
            return

        # The unique constraint on users.username settles concurrent claims.
        if not self.is_available(username):
            raise Conflict('Username is no longer available')

        archive_until = domain.now() \
            + relativedelta(months=self.policy.history_months)
        archived = self.store.change_username(user_id, username,
                                              archive_until=archive_until)
        if archived:
            logger.debug('Archived username %s for user %s', archived,
                         user_id)
        self._forget(user.username)
        self._remember_taken(username)

    def get_redirect_for_old_username(self, old_username: str) \
            -> Optional[str]:
        """Get the current username for an archived one, while unexpired."""
        return self.store.resolve_old_username(normalize(old_username),
                                               domain.now())

    def generate_suggestions(self, base: str) -> List[str]:
        """
        Suggest up to three available alternatives to ``base``.

        Suffixes from the policy are tried first, then random two-digit
        numbers, then short hash fragments. Each stage has a fixed number of
        attempts, so this always returns; in pathological cases it may
        return fewer than three suggestions.
        """
        base = normalize(base)
        suggestions: List[str] = []

        def _consider(candidate: str) -> None:
            if candidate not in suggestions and not self.validate(candidate) \
                    and self.is_available(candidate):
                suggestions.append(candidate)

        for suffix in self.policy.suffixes:
            if len(suggestions) >= SUGGESTION_COUNT:
                break
            _consider(f'{base[:MAX_LENGTH - len(suffix) - 1]}-{suffix}')

        attempts = 0
        while len(suggestions) < SUGGESTION_COUNT \
                and attempts < self.policy.random_attempts:
            attempts += 1
            _consider(f'{base[:MAX_LENGTH - 3]}{random.randint(1, 99):02d}')

        index = 0
        while len(suggestions) < SUGGESTION_COUNT \
                and index < self.policy.fallback_attempts:
            fragment = hashlib.sha1(f'{base}:{index}'.encode('utf-8')) \
                .hexdigest()[:6]
            _consider(f'{base[:MAX_LENGTH - 7]}-{fragment}')
            index += 1

        return suggestions

    def generate_temp_username(self, email: str) -> str:
        """
        Make a placeholder username for a new account.

        The alphanumeric part of the e-mail's local part (at most 20
        characters) is followed by a two-character base-36 timestamp, and by
        two random digits if that is taken or reserved. The result is at most
        24 characters long.
        """
        local = email.split('@', 1)[0].lower()
        base = re.sub(r'[^a-z0-9]', '', local)[:TEMP_BASE_LENGTH] or 'user'
        stamp = _base36(int(time.time() * 1000))[-2:].rjust(2, '0')
        candidate = f'{base}{stamp}'
        if not self.validate(candidate) and self.is_available(candidate):
            return candidate
        return f'{candidate}{random.randint(10, 99)}'

    def generate_from_business_name(self, business_name: str,
                                    location: Optional[str] = None) -> str:
        """Derive a username candidate from a business name and location."""
        base = _slug(business_name)
        if len(base) < MIN_LENGTH:
            base = f'{base}-store'.strip('-')
        if location:
            base = f'{base}-{_slug(location)[:10]}'.strip('-')
        return base[:MAX_LENGTH].strip('-_')

    def _remember_taken(self, username: str) -> None:
        try:
            self.cache.set(f'username:{username}', TAKEN,
                           self.policy.cache_ttl)
        except CacheUnavailable:
            logger.debug('Could not cache username %s', username)

    def _forget(self, username: str) -> None:
        try:
            self.cache.delete(f'username:{username}')
        except CacheUnavailable:
            logger.debug('Could not uncache username %s', username)
