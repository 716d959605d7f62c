"""Utilities for issuing and validating session JWTs."""

from __future__ import annotations

import time
from typing import Any, Iterable

import jwt

from ..config import get_settings
from ..domain.account import Role


def issue_access_token(*, subject: str, roles: Iterable[Role]) -> tuple[str, int]:
    """Create a signed JWT representing an authenticated account.

    Parameters
    ----------
    subject:
        Username to embed in the token `sub` claim.
    roles:
        Roles held by the account at issuance time; stored sorted so identical
        inputs produce identical claim content.

    Returns
    -------
    tuple[str, int]
        A tuple containing the encoded JWT string and its TTL (in seconds).
    """

    settings = get_settings()
    now = int(time.time())
    expires_in = settings.jwt_ttl_seconds
    payload: dict[str, Any] = {
        "iss": settings.jwt_issuer,
        "sub": subject,
        "roles": sorted(Role(role).value for role in roles),
        "iat": now,
        "exp": now + expires_in,
    }

    token = jwt.encode(payload, settings.jwt_secret, algorithm="HS256")
    return token, expires_in


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a JWT returning its payload.

    Parameters
    ----------
    token:
        Encoded JWT issued by this service.

    Returns
    -------
    dict[str, Any]
        The decoded payload if signature and issuer checks succeed.

    Raises
    ------
    jwt.PyJWTError
        Propagated when the token is invalid, expired, or signed by another issuer.
    """

    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        issuer=settings.jwt_issuer,
    )
