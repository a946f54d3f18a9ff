"""
auth/dependencies.py -- Authorization gate as FastAPI Depends() helpers.

Tokens arrive in the Authorization header using the custom scheme

    Authorization: Token <jwt>

The prefix is exactly "Token" followed by one space. "Bearer" is NOT
accepted; existing clients of this API send "Token".

Two modes:
  require_identity()   -- no header, wrong prefix, or any validation failure
                          raises Unauthorized (401) before the handler runs.
  optional_identity()  -- no header or wrong prefix means anonymous. A header
                          that is present but fails validation ALSO means
                          anonymous: the optional gate fails open rather than
                          rejecting. Clients holding an expired token can
                          still read public content.

On success the decoded TokenClaims are attached to request.state.identity
and returned. The gate never touches the database; handlers re-resolve the
full User from claims.id when they need it.

The framework-free core (token_from_header, authorize_required,
authorize_optional) is kept separate from the FastAPI wrappers so it can be
exercised without a request object.

Layer rule: no imports from api/ or content/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.models import TokenClaims
from auth.tokens import TokenService
from core.errors import TokenError, Unauthorized

logger = logging.getLogger("conduit.auth")

TOKEN_PREFIX = "Token "


def token_from_header(header_value: str | None) -> str | None:
    """Return the raw token from an Authorization header value, or None.

    None covers a missing header, a different scheme, and an empty token.
    """
    if not header_value or not header_value.startswith(TOKEN_PREFIX):
        return None
    token = header_value[len(TOKEN_PREFIX) :].strip()
    return token or None


def authorize_required(header_value: str | None, tokens: TokenService) -> TokenClaims:
    token = token_from_header(header_value)
    if token is None:
        raise Unauthorized()
    try:
        return tokens.validate(token)
    except TokenError as exc:
        logger.debug("Rejected token on required route: %s", exc.code)
        raise Unauthorized() from exc


def authorize_optional(header_value: str | None, tokens: TokenService) -> TokenClaims | None:
    token = token_from_header(header_value)
    if token is None:
        return None
    try:
        return tokens.validate(token)
    except TokenError as exc:
        logger.debug("Ignoring invalid token on optional route: %s", exc.code)
        return None


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def require_identity(request: Request) -> TokenClaims:
    """Require a valid token. Raises Unauthorized (HTTP 401) otherwise.

    Use as a FastAPI dependency:
        @router.post("/articles")
        def route(claims: TokenClaims = Depends(require_identity)): ...
    """
    claims = authorize_required(request.headers.get("Authorization"), get_token_service(request))
    request.state.identity = claims
    return claims


def optional_identity(request: Request) -> TokenClaims | None:
    """Attach identity when a valid token is present; otherwise anonymous (None)."""
    claims = authorize_optional(request.headers.get("Authorization"), get_token_service(request))
    request.state.identity = claims
    return claims
