"""Wires the core components to an application instance."""

from typing import Any, NamedTuple, Optional

from flask import current_app

from .identity import IdentityCoordinator
from .onboarding import Onboarding
from .otp import OtpManager, OtpSettings
from .services.cache import CacheStore
from .services.compliance import ComplianceWriter
from .services.datastore import UserStore
from .services.identity_provider import GoTrueIdentityProvider, \
    IdentityProvider
from .services.mail import MailSender
from .tokens import TokenIssuer
from .usernames import UsernameAllocator, UsernamePolicy

EXTENSION = 'markmorph_auth'


class Services(NamedTuple):
    """The components a running application uses."""

    store: UserStore
    cache: CacheStore
    otp: OtpManager
    usernames: UsernameAllocator
    tokens: TokenIssuer
    identity: IdentityCoordinator
    onboarding: Onboarding
    compliance: ComplianceWriter


def build_services(config: dict, store: Optional[UserStore] = None,
                   cache: Optional[CacheStore] = None,
                   provider: Optional[IdentityProvider] = None,
                   mailer: Optional[MailSender] = None) -> Services:
    """
    Assemble the core from configuration.

    Any of the backing services can be passed in, e.g. for testing; the rest
    are built from ``config``.
    """
    store = store or UserStore.from_uri(config['SQLALCHEMY_DATABASE_URI'])
    cache = cache or CacheStore.from_config(config)
    provider = provider or GoTrueIdentityProvider.from_config(config)
    mailer = mailer or MailSender.from_config(config)

    compliance = ComplianceWriter()
    otp = OtpManager(cache, mailer, OtpSettings.from_config(config))
    usernames = UsernameAllocator(store, cache,
                                  UsernamePolicy.from_config(config))
    tokens = TokenIssuer.from_config(config, store, cache)
    identity = IdentityCoordinator(store, otp, usernames, tokens, provider,
                                   compliance)
    return Services(store=store, cache=cache, otp=otp, usernames=usernames,
                    tokens=tokens, identity=identity,
                    onboarding=Onboarding(store, usernames),
                    compliance=compliance)


def init_app(app: Any, services: Optional[Services] = None) -> Services:
    """Attach the core to ``app``, building it if necessary."""
    services = services or build_services(app.config)
    if str(app.config.get('CREATE_DB', '0')) == '1':
        services.store.create_all()
    app.extensions[EXTENSION] = services
    return services


def current_services() -> Services:
    """Get the core attached to the current application."""
    services: Services = current_app.extensions[EXTENSION]
    return services
