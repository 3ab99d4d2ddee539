"""
Client for the external identity provider.

The provider owns password credentials and issues the subject id that every
local :class:`.domain.User` must use as its id. The implementation here
speaks the GoTrue (Supabase Auth) REST API: the admin endpoint creates
pre-confirmed accounts with a service key, and the password grant checks
credentials with the public key.
"""

from typing import Any, Dict, Optional
import json
import logging

import requests

from ..exceptions import AccountExists, ProviderAuthenticationFailed, \
    ProviderError, ProviderUnavailable

logger = logging.getLogger(__name__)


class IdentityProvider(object):
    """Interface of the identity provider used by the core."""

    def create_account(self, email: str, password: str) -> str:
        """
        Create a confirmed account and return its subject id.

        Raises
        ------
        :class:`.AccountExists`
        :class:`.ProviderUnavailable`
        :class:`.ProviderError`

        """
        raise NotImplementedError

    def authenticate(self, email: str, password: str) -> str:
        """
        Check credentials and return the account's subject id.

        Raises
        ------
        :class:`.ProviderAuthenticationFailed`
        :class:`.ProviderUnavailable`
        :class:`.ProviderError`

        """
        raise NotImplementedError


class GoTrueIdentityProvider(IdentityProvider):
    """Talks to a GoTrue-compatible auth server over HTTP."""

    def __init__(self, base_url: str, service_key: str, anon_key: str,
                 timeout: float = 10.0) -> None:
        """Create a new HTTP session."""
        self._base_url = base_url.rstrip('/')
        self._service_key = service_key
        self._anon_key = anon_key
        self._timeout = timeout
        self._session = requests.Session()
        logger.debug('New identity provider session at %s', self._base_url)

    @classmethod
    def from_config(cls, config: dict) -> 'GoTrueIdentityProvider':
        return cls(config['IDENTITY_PROVIDER_URL'],
                   config.get('IDENTITY_PROVIDER_SERVICE_KEY', ''),
                   config.get('IDENTITY_PROVIDER_ANON_KEY', ''),
                   float(config.get('IDENTITY_PROVIDER_TIMEOUT', 10)))

    def _post(self, path: str, key: str, payload: dict,
              params: Optional[dict] = None) -> requests.Response:
        headers = {'apikey': key, 'Authorization': f'Bearer {key}'}
        try:
            return self._session.post(f'{self._base_url}{path}',
                                      json=payload, params=params,
                                      headers=headers, timeout=self._timeout)
        except requests.exceptions.RequestException as e:
            logger.error('Identity provider unreachable: %s', e)
            raise ProviderUnavailable('Identity provider is unavailable') \
                from e

    def _json(self, response: requests.Response) -> Dict[str, Any]:
        try:
            data: Dict[str, Any] = response.json()
        except (json.decoder.JSONDecodeError, ValueError) as e:
            raise ProviderError('Could not read provider response') from e
        return data

    def create_account(self, email: str, password: str) -> str:
        response = self._post('/auth/v1/admin/users', self._service_key, {
            'email': email,
            'password': password,
            'email_confirm': True,
            'user_metadata': {'source': 'custom_signup'},
        })
        if response.status_code >= 500:
            logger.error('Provider responded with status %i',
                         response.status_code)
            raise ProviderUnavailable('Identity provider is unavailable')
        if not response.ok:
            message = self._error_message(response)
            if response.status_code == 422 or 'already' in message.lower():
                raise AccountExists(message)
            logger.error('Provider create failed with status %i: %s',
                         response.status_code, message)
            raise ProviderError(message)
        data = self._json(response)
        subject_id = data.get('id') or data.get('user', {}).get('id')
        if not subject_id:
            raise ProviderError('Provider did not return an account id')
        return str(subject_id)

    def authenticate(self, email: str, password: str) -> str:
        response = self._post('/auth/v1/token', self._anon_key,
                              {'email': email, 'password': password},
                              params={'grant_type': 'password'})
        if response.status_code >= 500:
            logger.error('Provider responded with status %i',
                         response.status_code)
            raise ProviderUnavailable('Identity provider is unavailable')
        if response.status_code in (400, 401, 403):
            raise ProviderAuthenticationFailed('Invalid email or password')
        if not response.ok:
            raise ProviderError(self._error_message(response))
        data = self._json(response)
        subject_id = data.get('user', {}).get('id')
        if not subject_id:
            raise ProviderAuthenticationFailed('No account in response')
        return str(subject_id)

    def _error_message(self, response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or f'HTTP {response.status_code}'
        for field in ('msg', 'message', 'error_description', 'error'):
            if isinstance(data, dict) and data.get(field):
                return str(data[field])
        return f'HTTP {response.status_code}'
