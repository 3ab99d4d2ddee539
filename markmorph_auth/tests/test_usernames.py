"""Tests for :mod:`markmorph_auth.usernames`."""

from unittest import mock
from datetime import timedelta
import threading

import pytest
from dateutil.relativedelta import relativedelta
from hypothesis import HealthCheck, given, settings, strategies as st

from .. import domain, usernames
from ..exceptions import Conflict, NotFound, ValidationError
from ..usernames import UsernameAllocator, UsernamePolicy


@pytest.fixture()
def allocator(store, cache):
    policy = UsernamePolicy(reserved=frozenset(['admin', 'support']))
    return UsernameAllocator(store, cache, policy)


def add_user(store, user_id, username):
    user, _ = store.ensure_user(user_id, f'{user_id}@example.com', username)
    return user


class TestValidation:
    def test_well_formed(self, allocator):
        assert allocator.validate('alice') == []
        assert allocator.validate('a-b_c9') == []

    @pytest.mark.parametrize('name', ['ab', 'a' * 31, '-alice', 'alice_',
                                      'Alice', 'al ice', 'al.ice'])
    def test_malformed(self, allocator, name):
        assert allocator.validate(name)

    def test_reserved_by_policy(self, allocator):
        assert allocator.validate('admin') == ['This username is reserved']

    def test_check_normalizes(self, allocator):
        """Candidates are trimmed and lower-cased before checking."""
        result = allocator.check_availability('  Alice ')
        assert result.is_valid
        assert result.is_available
        assert result.errors == []

    def test_check_invalid(self, allocator):
        result = allocator.check_availability('a!')
        assert not result.is_valid
        assert not result.is_available
        assert result.suggestions is None


class TestAvailability:
    def test_taken_by_user(self, allocator, store, cache):
        """A held username is unavailable, and the answer is cached."""
        add_user(store, 'u1', 'alice')
        result = allocator.check_availability('alice')
        assert result.is_valid
        assert not result.is_available
        assert result.suggestions == ['alice-01', 'alice-02', 'alice-india']
        assert cache.get('username:alice') == 'taken'
        assert cache.ttl('username:alice') == 3600

    def test_cache_short_circuits(self, allocator, cache):
        cache.set('username:ghost', 'taken', 3600)
        assert not allocator.is_available('ghost')

    def test_cache_unavailable(self, allocator, store, cache):
        """Without the cache, the database still answers."""
        add_user(store, 'u1', 'alice')
        cache.down = True
        assert not allocator.is_available('alice')
        assert allocator.is_available('bob')

    def test_reserved_table(self, allocator, store):
        store.reserve_username('checkout', 'route')
        assert not allocator.is_available('checkout')

    def test_suggestions_terminate(self, allocator):
        """When nothing is available, suggestion generation still ends."""
        with mock.patch.object(allocator, 'is_available', return_value=False):
            assert allocator.generate_suggestions('alice') == []

    def test_suggestions_are_valid(self, allocator, store):
        add_user(store, 'u1', 'a' * 30)
        for name in allocator.generate_suggestions('a' * 30):
            assert allocator.validate(name) == []
            assert len(name) <= usernames.MAX_LENGTH


class TestClaim:
    def test_claim(self, allocator, store, cache):
        add_user(store, 'u1', 'tempuser1a')
        allocator.claim_username('u1', 'Alice')
        user = store.get_user('u1')
        assert user.username == 'alice'
        assert user.username_claimed
        assert cache.get('username:alice') == 'taken'
        assert allocator.get_redirect_for_old_username('tempuser1a') is None, \
            'Generated usernames are not archived'

    def test_claim_archives_previous(self, allocator, store, cache):
        """Giving up a claimed name redirects it for six months."""
        add_user(store, 'u1', 'tempuser1a')
        allocator.claim_username('u1', 'alice')
        allocator.claim_username('u1', 'alice2')

        assert store.get_user('u1').username == 'alice2'
        assert cache.get('username:alice') is None
        assert allocator.get_redirect_for_old_username('alice') == 'alice2'
        assert not allocator.is_available('alice')

        later = domain.now() + relativedelta(months=6) + timedelta(days=1)
        with mock.patch(f'{domain.__name__}.now', return_value=later):
            assert allocator.get_redirect_for_old_username('alice') is None
            assert allocator.is_available('alice')

    def test_claim_unchanged(self, allocator, store):
        add_user(store, 'u1', 'tempuser1a')
        allocator.claim_username('u1', 'alice')
        allocator.claim_username('u1', 'alice')
        assert store.get_user('u1').username == 'alice'
        assert allocator.get_redirect_for_old_username('alice') is None

    def test_claim_keeps_generated_name(self, allocator, store):
        """Claiming the generated username marks it as chosen."""
        add_user(store, 'u1', 'tempuser1a')
        allocator.claim_username('u1', 'tempuser1a')
        assert store.get_user('u1').username_claimed

    def test_claim_invalid(self, allocator, store):
        add_user(store, 'u1', 'tempuser1a')
        with pytest.raises(ValidationError):
            allocator.claim_username('u1', 'x')
        with pytest.raises(ValidationError):
            allocator.claim_username('u1', 'support')

    def test_claim_missing_user(self, allocator):
        with pytest.raises(NotFound):
            allocator.claim_username('nobody', 'alice')

    def test_two_users_one_name(self, allocator, store):
        """Two users claiming the same name: one wins, one conflicts."""
        add_user(store, 'u1', 'tempuser1a')
        add_user(store, 'u2', 'tempuser2a')
        allocator.claim_username('u1', 'alice')
        with pytest.raises(Conflict):
            allocator.claim_username('u2', 'alice')
        assert store.get_user('u2').username == 'tempuser2a'

    def test_concurrent_claims(self, allocator, store):
        """Of two simultaneous claims on one name, exactly one succeeds."""
        add_user(store, 'u1', 'tempuser1a')
        add_user(store, 'u2', 'tempuser2a')
        barrier = threading.Barrier(2)
        outcomes = {}

        def claim(user_id):
            barrier.wait()
            try:
                allocator.claim_username(user_id, 'alice')
                outcomes[user_id] = 'ok'
            except Conflict:
                outcomes[user_id] = 'conflict'

        threads = [threading.Thread(target=claim, args=(user_id,))
                   for user_id in ('u1', 'u2')]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        assert sorted(outcomes.values()) == ['conflict', 'ok']
        winner = [uid for uid, outcome in outcomes.items() if outcome == 'ok']
        assert store.get_user(winner[0]).username == 'alice'

    def test_released_name_is_not_cached_as_taken(self, allocator, store,
                                                  cache):
        """A generated handle given up for a claimed one is free at once."""
        add_user(store, 'u1', 'tempuser1a')
        assert not allocator.is_available('tempuser1a')
        assert cache.get('username:tempuser1a') == 'taken'

        allocator.claim_username('u1', 'alice')
        assert cache.get('username:tempuser1a') is None
        assert allocator.is_available('tempuser1a')

    def test_unique_constraint_settles_race(self, allocator, store):
        """A claim that passes both checks still loses at the database."""
        add_user(store, 'u1', 'alice')
        add_user(store, 'u2', 'tempuser2a')
        with mock.patch.object(allocator, 'is_available', return_value=True):
            with pytest.raises(Conflict):
                allocator.claim_username('u2', 'alice')
        assert store.get_user('u1').username == 'alice'
        assert store.get_user('u2').username == 'tempuser2a'

    def test_archived_name_can_be_reclaimed_after_expiry(self, allocator,
                                                         store):
        add_user(store, 'u1', 'tempuser1a')
        add_user(store, 'u2', 'tempuser2a')
        allocator.claim_username('u1', 'alice')
        allocator.claim_username('u1', 'alice2')
        with pytest.raises(Conflict):
            allocator.claim_username('u2', 'alice')

        later = domain.now() + relativedelta(months=7)
        with mock.patch(f'{domain.__name__}.now', return_value=later):
            allocator.claim_username('u2', 'alice')
        assert store.get_user('u2').username == 'alice'


class TestGeneratedNames:
    @settings(max_examples=50, deadline=None,
              suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(email=st.emails())
    def test_temp_username(self, allocator, email):
        """Temporary usernames are short and well-formed."""
        name = allocator.generate_temp_username(email)
        assert len(name) <= 24
        assert usernames.USERNAME_PATTERN.match(name)

    def test_temp_username_collision(self, allocator):
        with mock.patch.object(allocator, 'is_available', return_value=False):
            name = allocator.generate_temp_username(
                'a.very.long.local.part.indeed@example.com'
            )
        assert name.startswith('averylonglocalpartin')
        assert len(name) == 24
        assert name[-2:].isdigit()

    def test_temp_username_not_reserved(self, allocator):
        """A reserved candidate gets the random-digit suffix."""
        with mock.patch(f'{usernames.__name__}._base36', return_value='in'):
            name = allocator.generate_temp_username('adm@example.com')
        assert name != 'admin'
        assert name.startswith('admin')
        assert len(name) == 7
        assert allocator.validate(name) == []

    def test_temp_username_fallback(self, allocator):
        name = allocator.generate_temp_username('+++@example.com')
        assert name.startswith('user')

    @pytest.mark.parametrize('business, location, expected', [
        ('Blue Tokai Coffee', None, 'blue-tokai-coffee'),
        ('Blue Tokai Coffee', 'Mumbai, India',
         'blue-tokai-coffee-mumbai-ind'),
        ('Zo', None, 'zo-store'),
        ('Café Ölé', None, 'cafe-ole'),
    ])
    def test_from_business_name(self, allocator, business, location,
                                expected):
        assert allocator.generate_from_business_name(business, location) \
            == expected

    def test_from_long_business_name(self, allocator):
        name = allocator.generate_from_business_name('x' * 50)
        assert len(name) == usernames.MAX_LENGTH


class TestPolicy:
    def test_from_config(self):
        policy = UsernamePolicy.from_config({
            'RESERVED_USERNAMES': 'Admin, root,,',
            'USERNAME_SUFFIXES': 'hq,co',
            'USERNAME_HISTORY_MONTHS': '3',
        })
        assert policy.reserved == frozenset(['admin', 'root'])
        assert policy.suffixes == ('hq', 'co')
        assert policy.history_months == 3
        assert policy.cache_ttl == 3600
