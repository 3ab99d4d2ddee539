"""Helpers shared by the controllers."""

from typing import Any, Dict, List, Optional, Tuple

from ..domain import OtpContext, TokenClaims
from ..exceptions import Unauthorized, ValidationError
from ..tokens import TokenIssuer

ResponseData = Tuple[dict, int, dict]


def require(data: Dict[str, Any], *fields: str) -> List[Any]:
    """Get string ``fields`` from a JSON payload, all of which must be set."""
    missing = [field for field in fields
               if not isinstance(data.get(field), str) or not data[field]]
    if missing:
        errors = [f'{field} is required' for field in missing]
        raise ValidationError(', '.join(errors), errors)
    return [data[field] for field in fields]


def authenticate(auth_header: Optional[str],
                 tokens: TokenIssuer) -> TokenClaims:
    """Verify the bearer token in an ``Authorization`` header."""
    if not auth_header:
        raise Unauthorized('Missing bearer token')
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        raise Unauthorized('Auth header is malformed')
    return tokens.decode_access(parts[1])


def portal_context(data: Dict[str, Any],
                   business_id: Optional[str] = None) -> OtpContext:
    """Build the captive-portal context of an OTP request."""
    return OtpContext(
        business_id=business_id or data.get('business_id') or None,
        mac_address=data.get('mac_address') or None,
        phone=data.get('phone') or None,
    )
