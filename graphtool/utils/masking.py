"""
Masking helpers for identifiers and secrets that end up in logs or output.
"""


def mask_secret(secret: str) -> str:
    """Show the first 4 characters of a client secret."""
    if not secret:
        return ""
    if len(secret) <= 4:
        return "****"
    return secret[:4] + "****"


def mask_password(password: str) -> str:
    """Show the first and last 2 characters of a password."""
    if not password:
        return ""
    if len(password) <= 4:
        return "****"
    return password[:2] + "****" + password[-2:]


def mask_guid(guid: str) -> str:
    """Show the first 4 and last 4 characters of a tenant or client id."""
    if len(guid) <= 8:
        return "****"
    return guid[:4] + "****-****-****-****" + guid[-4:]


def mask_access_token(token: str) -> str:
    if not token:
        return ""
    if len(token) <= 16:
        half = len(token) // 2
        return token[:half] + "..." + token[half:]
    return token[:8] + "..." + token[-4:]


def mask_email(email: str) -> str:
    """
    Mask both halves of an email address.

    "user@example.com" -> "us****@ex****"
    """
    if not email:
        return ""
    local, sep, domain = email.partition("@")
    if not sep:
        return "****" if len(email) <= 4 else email[:2] + "****" + email[-2:]
    masked_local = local[:2] + "****" if len(local) > 2 else "****"
    masked_domain = domain[:2] + "****" if len(domain) > 2 else "****"
    return f"{masked_local}@{masked_domain}"
