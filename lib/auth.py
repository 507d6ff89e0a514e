"""
Identity provider: bearer token → user id.

Tokens come from CRATE_API_TOKENS ("token1:user1,token2:user2"). Owner checks
are a plain equality test and fail closed.
"""
from __future__ import annotations

import os
from typing import Dict, Optional

from lib.errors import AuthorizationMismatchError


def _parse_tokens(raw: str | None) -> Dict[str, str]:
    tokens: Dict[str, str] = {}
    for pair in (raw or "").split(","):
        token, sep, user_id = pair.strip().partition(":")
        if sep and token and user_id:
            tokens[token.strip()] = user_id.strip()
    return tokens


class TokenIdentityProvider:
    def __init__(self, tokens: Dict[str, str] | None = None):
        self.tokens = tokens if tokens is not None else _parse_tokens(os.getenv("CRATE_API_TOKENS"))

    def authenticate(self, authorization: str | None) -> Optional[str]:
        """Return the user id for an "Authorization: Bearer <token>" header, or None."""
        if not authorization:
            return None
        scheme, _, token = authorization.strip().partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return self.tokens.get(token.strip())


def verify_owner(claimed_user_id: str | None, authenticated_user_id: str | None) -> str:
    """Raise AuthorizationMismatchError unless both ids are present and equal."""
    if not authenticated_user_id or not claimed_user_id or claimed_user_id != authenticated_user_id:
        raise AuthorizationMismatchError("User ID does not match authenticated user")
    return authenticated_user_id
