"""Provides the JSON API of the authentication service."""

from typing import Any, Callable, Dict

from flask import Blueprint, Response, jsonify, make_response, request

from .controllers import authentication, onboarding
from .controllers.util import ResponseData

blueprint = Blueprint('auth', __name__, url_prefix='/auth')


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _respond(controller: Callable[..., ResponseData], *args: Any) -> Response:
    data, code, headers = controller(*args)
    response: Response = make_response(jsonify(data), code, headers)
    return response


@blueprint.route('/signup/initiate', methods=['POST'])
def signup_initiate() -> Response:
    """Start a signup by e-mailing a verification code."""
    return _respond(authentication.signup_initiate, _payload())


@blueprint.route('/signup/verify', methods=['POST'])
def signup_verify() -> Response:
    """Finish a signup with the e-mailed code."""
    return _respond(authentication.signup_verify, _payload())


@blueprint.route('/login', methods=['POST'])
def login() -> Response:
    """Log in with e-mail and password."""
    return _respond(authentication.login, _payload())


@blueprint.route('/otp/send', methods=['POST'])
def send_otp() -> Response:
    """Send a guest Wi-Fi or sign-in code."""
    return _respond(authentication.send_otp, _payload())


@blueprint.route('/otp/verify', methods=['POST'])
def verify_otp() -> Response:
    """Verify a guest Wi-Fi or sign-in code."""
    return _respond(authentication.verify_otp, _payload())


@blueprint.route('/splash/<string:business_id>/request-otp',
                 methods=['POST'])
def splash_request_otp(business_id: str) -> Response:
    """Send a guest Wi-Fi code from a business's splash page."""
    return _respond(authentication.send_otp, _payload(), business_id)


@blueprint.route('/splash/<string:business_id>/verify-otp', methods=['POST'])
def splash_verify_otp(business_id: str) -> Response:
    """Verify a guest Wi-Fi code from a business's splash page."""
    return _respond(authentication.verify_otp, _payload(), business_id)


@blueprint.route('/refresh', methods=['POST'])
def refresh() -> Response:
    """Rotate a refresh token."""
    return _respond(authentication.refresh, _payload())


@blueprint.route('/me', methods=['GET'])
def current_user() -> Response:
    """Get the authenticated user."""
    return _respond(authentication.current_user,
                    request.headers.get('Authorization'))


@blueprint.route('/username/check', methods=['POST'])
def check_username() -> Response:
    """Check a username's availability."""
    return _respond(onboarding.check_username, _payload())


@blueprint.route('/username/claim', methods=['POST'])
def claim_username() -> Response:
    """Claim a username for the authenticated user."""
    return _respond(onboarding.claim_username,
                    request.headers.get('Authorization'), _payload())


@blueprint.route('/username/redirect/<string:old_username>', methods=['GET'])
def username_redirect(old_username: str) -> Response:
    """Resolve an abandoned username to the current one."""
    return _respond(onboarding.username_redirect, old_username)


@blueprint.route('/onboarding/category', methods=['POST'])
def update_category() -> Response:
    """Set the authenticated user's account category."""
    return _respond(onboarding.update_category,
                    request.headers.get('Authorization'), _payload())


@blueprint.route('/onboarding/complete', methods=['POST'])
def complete_profile() -> Response:
    """Save the authenticated user's profile."""
    return _respond(onboarding.complete_profile,
                    request.headers.get('Authorization'), _payload())
