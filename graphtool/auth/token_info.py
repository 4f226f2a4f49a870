"""
Verbose token diagnostics: expiry, masked token and the app's assigned roles.

Claims are read without signature verification; the token was just issued
to us by Entra ID and is only inspected for display.
"""

import logging
import time
from datetime import datetime, timezone

import jwt
from azure.core.credentials import AccessToken

from ..utils.masking import mask_access_token

logger = logging.getLogger(__name__)


def parse_token_claims(token: str) -> tuple[str, str]:
    """
    Return (application name, comma-separated roles) from an access token.

    Raises:
        jwt.DecodeError: the token is not a JWT.
    """
    claims = jwt.decode(token, options={"verify_signature": False})
    app_name = claims.get("app_displayname") or "(not available)"
    roles = claims.get("roles") or []
    return app_name, ", ".join(roles) if roles else "(none)"


def describe_token(token: AccessToken) -> list[str]:
    """Human-readable lines describing an access token."""
    expires = datetime.fromtimestamp(token.expires_on, tz=timezone.utc)
    remaining = max(0, int(token.expires_on - time.time()))
    lines = [
        "Token Information:",
        "------------------",
        "Token acquired successfully",
        f"Expires at: {expires:%Y-%m-%d %H:%M:%S %Z}",
        f"Valid for: {remaining // 60}m{remaining % 60:02d}s",
        f"Token (truncated): {mask_access_token(token.token)}",
        f"Token length: {len(token.token)} characters",
        "",
        "JWT Claims:",
    ]
    try:
        app_name, roles = parse_token_claims(token.token)
    except jwt.PyJWTError as e:
        lines.append(f"  (Could not parse JWT claims: {e})")
    else:
        lines.append(f"  Application Name: {app_name}")
        lines.append(f"  Assigned Roles: {roles}")
    return lines
