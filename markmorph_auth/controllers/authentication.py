"""
Controllers for signup, login, guest access and token refresh.

Each controller takes the parsed request payload and returns the response
data, a status code, and any extra headers.
"""

from typing import Any, Dict, Optional
from http import HTTPStatus
import logging

from .. import domain
from ..context import current_services
from ..domain import OtpPurpose, OtpRequestResult
from ..exceptions import Unauthorized, ValidationError
from .util import ResponseData, authenticate, portal_context, require

logger = logging.getLogger(__name__)

OTP_PURPOSES = (OtpPurpose.GUEST_WIFI.value, OtpPurpose.LOGIN.value)


def _otp_response(result: OtpRequestResult) -> ResponseData:
    data = domain.to_dict(result)
    if result.sent:
        data['message'] = 'Verification code sent'
    else:
        data['message'] = (f'Please wait {result.cooldown_seconds} seconds '
                           f'before requesting a new code')
    return data, HTTPStatus.OK, {}


def _purpose(data: Dict[str, Any]) -> str:
    purpose = data.get('purpose') or OtpPurpose.GUEST_WIFI.value
    if purpose not in OTP_PURPOSES:
        raise ValidationError('purpose must be one of '
                              + ', '.join(OTP_PURPOSES))
    return str(purpose)


def signup_initiate(data: Dict[str, Any]) -> ResponseData:
    """Start a signup and e-mail a verification code."""
    email, password = require(data, 'email', 'password')
    services = current_services()
    return _otp_response(services.identity.initiate_signup(email, password))


def signup_verify(data: Dict[str, Any]) -> ResponseData:
    """Finish a signup with the e-mailed code."""
    email, code = require(data, 'email', 'otp')
    result = current_services().identity.complete_signup(email, code)
    return domain.to_dict(result), HTTPStatus.CREATED, {}


def login(data: Dict[str, Any]) -> ResponseData:
    """Log in with e-mail and password."""
    email, password = require(data, 'email', 'password')
    result = current_services().identity.login(email, password)
    return domain.to_dict(result), HTTPStatus.OK, {}


def send_otp(data: Dict[str, Any],
             business_id: Optional[str] = None) -> ResponseData:
    """
    Send a guest Wi-Fi or sign-in code.

    Parameters
    ----------
    data : dict
        Must include ``email``; ``purpose`` is ``guest_wifi`` (the default)
        or ``login``. Guest requests may carry ``business_id``,
        ``mac_address`` and ``phone``.
    business_id : str
        Set when the request came through a business's splash page.

    """
    email, = require(data, 'email')
    identity = current_services().identity
    if _purpose(data) == OtpPurpose.LOGIN.value and business_id is None:
        return _otp_response(identity.request_login_otp(email))
    context = portal_context(data, business_id)
    return _otp_response(identity.request_guest_otp(email, context))


def verify_otp(data: Dict[str, Any],
               business_id: Optional[str] = None) -> ResponseData:
    """Verify a guest Wi-Fi or sign-in code and issue tokens."""
    email, code = require(data, 'email', 'otp')
    identity = current_services().identity
    if _purpose(data) == OtpPurpose.LOGIN.value and business_id is None:
        result = identity.verify_login_otp(email, code)
    else:
        context = portal_context(data, business_id)
        result = identity.verify_guest_otp(email, code, context)
    return domain.to_dict(result), HTTPStatus.OK, {}


def refresh(data: Dict[str, Any]) -> ResponseData:
    """Exchange a refresh token for a new token pair."""
    refresh_token, = require(data, 'refresh_token')
    tokens = current_services().tokens.refresh(refresh_token)
    return domain.to_dict(tokens), HTTPStatus.OK, {}


def current_user(auth_header: Optional[str]) -> ResponseData:
    """Describe the user that the bearer token belongs to."""
    services = current_services()
    claims = authenticate(auth_header, services.tokens)
    user = services.identity.current_user(claims.user_id)
    if user is None:
        logger.warning('Token for missing user %s', claims.user_id)
        raise Unauthorized('User not found')
    return domain.to_dict(user), HTTPStatus.OK, {}
