"""Tests for :mod:`markmorph_auth.services.identity_provider`."""

from unittest import TestCase, mock

import requests

from .. import identity_provider
from ...exceptions import AccountExists, ProviderAuthenticationFailed, \
    ProviderError, ProviderUnavailable


def response(status_code, data=None):
    resp = mock.MagicMock(status_code=status_code, ok=status_code < 400,
                          text='')
    if data is None:
        resp.json.side_effect = ValueError('No JSON')
    else:
        resp.json.return_value = data
    return resp


class TestGoTrueIdentityProvider(TestCase):
    def setUp(self):
        self.provider = identity_provider.GoTrueIdentityProvider(
            'https://auth.example.com/', 'service-key', 'anon-key',
            timeout=3
        )
        patcher = mock.patch.object(self.provider._session, 'post')
        self.post = patcher.start()
        self.addCleanup(patcher.stop)

    def test_no_automatic_retries(self):
        """Failed requests surface at once rather than being re-sent."""
        adapter = self.provider._session.get_adapter(
            'https://auth.example.com'
        )
        self.assertEqual(adapter.max_retries.total, 0)

    def test_create_account(self):
        """Accounts are created pre-confirmed with the service key."""
        self.post.return_value = response(200, {'id': 'subject-1'})
        self.assertEqual(self.provider.create_account('a@b.com', 'pw1234'),
                         'subject-1')
        args, kwargs = self.post.call_args
        self.assertEqual(args[0],
                         'https://auth.example.com/auth/v1/admin/users')
        self.assertTrue(kwargs['json']['email_confirm'])
        self.assertEqual(kwargs['headers']['apikey'], 'service-key')
        self.assertEqual(kwargs['timeout'], 3)

    def test_create_existing_account(self):
        self.post.return_value = response(
            422, {'msg': 'A user with this email address has already been '
                         'registered'}
        )
        with self.assertRaises(AccountExists):
            self.provider.create_account('a@b.com', 'pw1234')

    def test_create_rejected(self):
        self.post.return_value = response(400, {'msg': 'Password too weak'})
        with self.assertRaises(ProviderError):
            self.provider.create_account('a@b.com', 'pw')

    def test_create_without_id(self):
        self.post.return_value = response(200, {})
        with self.assertRaises(ProviderError):
            self.provider.create_account('a@b.com', 'pw1234')

    def test_server_error(self):
        self.post.return_value = response(503)
        with self.assertRaises(ProviderUnavailable):
            self.provider.create_account('a@b.com', 'pw1234')

    def test_unreachable(self):
        self.post.side_effect = requests.exceptions.ConnectionError('down')
        with self.assertRaises(ProviderUnavailable):
            self.provider.authenticate('a@b.com', 'pw1234')

    def test_authenticate(self):
        self.post.return_value = response(
            200, {'access_token': 'x', 'user': {'id': 'subject-1'}}
        )
        self.assertEqual(self.provider.authenticate('a@b.com', 'pw1234'),
                         'subject-1')
        _, kwargs = self.post.call_args
        self.assertEqual(kwargs['params'], {'grant_type': 'password'})
        self.assertEqual(kwargs['headers']['apikey'], 'anon-key')

    def test_bad_credentials(self):
        self.post.return_value = response(
            400, {'error': 'invalid_grant',
                  'error_description': 'Invalid login credentials'}
        )
        with self.assertRaises(ProviderAuthenticationFailed):
            self.provider.authenticate('a@b.com', 'wrong')

    def test_unexpected_status(self):
        self.post.return_value = response(429)
        with self.assertRaises(ProviderError):
            self.provider.authenticate('a@b.com', 'pw1234')

    def test_from_config(self):
        provider = identity_provider.GoTrueIdentityProvider.from_config({
            'IDENTITY_PROVIDER_URL': 'http://localhost:9999',
            'IDENTITY_PROVIDER_TIMEOUT': '4',
        })
        self.assertEqual(provider._base_url, 'http://localhost:9999')
        self.assertEqual(provider._timeout, 4.0)
