"""
auth/tokens.py -- Bearer token issuance and validation.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       id, username, iat and exp (UNIX seconds). Nothing is persisted; a token
       is valid until its exp passes.

  Algorithm confusion: the header's declared alg must equal the configured
       algorithm before any signature work happens. A token claiming "none"
       or an asymmetric alg is rejected as TokenSignatureInvalid.

  Failure kinds: validate() raises one of TokenMalformed, TokenExpired or
       TokenSignatureInvalid. The gate collapses all three into a 401, but
       they stay distinguishable for diagnostics and tests.

  Time: compared as whole UNIX seconds. Clock skew is not compensated.

Configuration is passed in explicitly at construction. TokenService holds no
mutable state after __init__, so one instance is shared by every request.
This module performs no I/O and no logging.

Layer rule: no imports from api/ or content/. Import from core/ is allowed.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from jose import jws, jwt
from jose.exceptions import JWSError

from auth.models import TokenClaims
from core.errors import TokenExpired, TokenMalformed, TokenSignatureInvalid

if TYPE_CHECKING:
    from auth.models import User
    from core.config import Settings

ALGORITHM = "HS256"
_SECONDS_PER_DAY = 24 * 60 * 60


def _epoch_now() -> int:
    return int(time.time())


class TokenService:
    """Issues and validates signed, stateless bearer tokens.

    Usage:
        tokens = TokenService.from_settings(get_settings())
        raw = tokens.issue(user)
        claims = tokens.validate(raw)   # raises a TokenError subclass on failure
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = 60 * _SECONDS_PER_DAY,
        algorithm: str = ALGORITHM,
        clock: Callable[[], int] = _epoch_now,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty secret key")
        self._secret_key = secret_key
        self._expire_seconds = expire_seconds
        self._algorithm = algorithm
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenService:
        return cls(
            secret_key=settings.secret_key,
            expire_seconds=settings.token_expire_days * _SECONDS_PER_DAY,
        )

    def __repr__(self) -> str:
        # Keep the secret out of tracebacks and debug output.
        return f"TokenService(algorithm={self._algorithm!r}, expire_seconds={self._expire_seconds})"

    @property
    def expire_seconds(self) -> int:
        return self._expire_seconds

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, user: User) -> str:
        """Encode a signed token for a persisted user."""
        if user.id is None:
            raise ValueError("Cannot issue a token for a user that has not been saved")
        now = int(self._clock())
        payload = {
            "id": user.id,
            "username": user.username,
            "iat": now,
            "exp": now + self._expire_seconds,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    # ------------------------------------------------------------------
    # Validate
    # ------------------------------------------------------------------

    def validate(self, token: str) -> TokenClaims:
        """Verify signature and expiry, then return the decoded claims.

        Order of checks:
          1. Structure -- three base64url segments with a JSON header.
          2. Declared alg matches the configured one.
          3. HMAC signature.
          4. Claim shape (id, username, exp present and well-typed).
          5. exp > now.
        """
        try:
            header = jws.get_unverified_header(token)
            jws.get_unverified_claims(token)
        except (JWSError, AttributeError, TypeError) as exc:
            raise TokenMalformed() from exc

        if header.get("alg") != self._algorithm:
            raise TokenSignatureInvalid("Token declares an unexpected signing algorithm.")

        try:
            raw_payload = jws.verify(token, self._secret_key, algorithms=[self._algorithm])
        except JWSError as exc:
            # Structure was already proven parseable above, so any failure
            # here is the signature itself.
            raise TokenSignatureInvalid() from exc

        claims = _parse_claims(raw_payload)
        if claims.exp <= int(self._clock()):
            raise TokenExpired()
        return claims


# ---------------------------------------------------------------------------
# Claim parsing
# ---------------------------------------------------------------------------


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_claims(raw_payload: bytes) -> TokenClaims:
    try:
        payload = json.loads(raw_payload)
    except (ValueError, UnicodeDecodeError) as exc:
        raise TokenMalformed("Token payload is not JSON.") from exc
    if not isinstance(payload, dict):
        raise TokenMalformed("Token payload is not an object.")

    user_id = payload.get("id")
    username = payload.get("username")
    exp = payload.get("exp")
    iat = payload.get("iat")
    if not _is_int(user_id) or not isinstance(username, str) or not _is_int(exp):
        raise TokenMalformed("Token payload is missing id, username or exp.")
    if iat is not None and not _is_int(iat):
        raise TokenMalformed("Token iat claim must be an integer.")
    return TokenClaims(id=user_id, username=username, exp=exp, iat=iat)
