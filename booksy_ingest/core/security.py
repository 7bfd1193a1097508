"""
Shared-secret checks for the webhook and the tenant-scoped endpoints.
"""

import hmac


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two secrets in constant time; empty values never match."""
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def extract_bearer_token(header_value: str | None) -> str | None:
    """Return the token of an 'Authorization: Bearer <token>' header."""
    if not header_value:
        return None
    parts = header_value.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


def is_authorized(header_secret: str | None, authorization: str | None, secret: str) -> bool:
    """
    Check a request secret sent either as a dedicated header or as a bearer token.

    The dedicated header wins when both are present.
    """
    candidate = header_secret if header_secret is not None else extract_bearer_token(authorization)
    if candidate is None:
        return False
    return constant_time_compare(candidate, secret)
