"""Controllers for usernames and the onboarding steps after signup."""

from typing import Any, Dict, Optional
from http import HTTPStatus

from .. import domain
from ..context import current_services
from ..exceptions import NotFound
from ..onboarding import MAX_LENGTHS
from .util import ResponseData, authenticate, require

PROFILE_FIELDS = tuple(MAX_LENGTHS) + ('business_type',)


def check_username(data: Dict[str, Any]) -> ResponseData:
    """Check whether a username is well-formed and available."""
    username, = require(data, 'username')
    validation = current_services().usernames.check_availability(username)
    return domain.to_dict(validation), HTTPStatus.OK, {}


def username_redirect(old_username: str) -> ResponseData:
    """Resolve a recently abandoned username to its holder's current one."""
    current = current_services().usernames \
        .get_redirect_for_old_username(old_username)
    if current is None:
        raise NotFound('No redirect for this username')
    return {'username': current}, HTTPStatus.OK, {}


def claim_username(auth_header: Optional[str],
                   data: Dict[str, Any]) -> ResponseData:
    """Claim a username for the authenticated user."""
    services = current_services()
    claims = authenticate(auth_header, services.tokens)
    username, = require(data, 'username')
    user = services.onboarding.claim_username(claims.user_id, username)
    return domain.to_dict(user), HTTPStatus.OK, {}


def update_category(auth_header: Optional[str],
                    data: Dict[str, Any]) -> ResponseData:
    """Set the authenticated user's account category."""
    services = current_services()
    claims = authenticate(auth_header, services.tokens)
    category, = require(data, 'category')
    user = services.onboarding.update_category(claims.user_id, category)
    return domain.to_dict(user), HTTPStatus.OK, {}


def complete_profile(auth_header: Optional[str],
                     data: Dict[str, Any]) -> ResponseData:
    """Save the authenticated user's profile and business details."""
    services = current_services()
    claims = authenticate(auth_header, services.tokens)
    profile = {key: data[key] for key in PROFILE_FIELDS if key in data}
    user = services.onboarding.complete_profile(claims.user_id, profile)
    return domain.to_dict(user), HTTPStatus.OK, {}
