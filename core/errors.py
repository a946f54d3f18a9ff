"""
core/errors.py -- Typed error kinds shared by every Conduit layer.

Components raise these; only api/main.py turns them into HTTP responses.
Each class carries the status code and wire payload it maps to, so the
exception handler stays a single lookup rather than an isinstance ladder.

Two wire shapes exist:
  field-scoped  {"errors": {"<field>": ["<message>"]}}   -- 422 validation-style
  envelope      {"error": {"code": ..., "message": ...}} -- everything else

Layer rule: core/ is the kernel. No imports from api/, auth/, or content/.
"""

from __future__ import annotations


class ConduitError(Exception):
    """Base class for every expected, typed failure."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message

    def field_errors(self) -> dict[str, list[str]] | None:
        """Return a field-scoped error mapping, or None for envelope errors."""
        return None


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class InvalidCredentials(ConduitError):
    """Wrong password OR unknown email. Never distinguish the two."""

    status_code = 422
    code = "invalid_credentials"
    message = "is invalid"

    def field_errors(self) -> dict[str, list[str]]:
        return {"email or password": [self.message]}


# ---------------------------------------------------------------------------
# Tokens -- distinguishable internally, collapsed to 401 at the gate
# ---------------------------------------------------------------------------


class TokenError(ConduitError):
    status_code = 401
    code = "invalid_token"
    message = "Token is invalid."


class TokenMalformed(TokenError):
    code = "token_malformed"
    message = "Token could not be parsed."


class TokenExpired(TokenError):
    code = "token_expired"
    message = "Token has expired."


class TokenSignatureInvalid(TokenError):
    code = "token_signature_invalid"
    message = "Token signature did not verify."


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class Unauthorized(ConduitError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class Forbidden(ConduitError):
    status_code = 403
    code = "forbidden"
    message = "You do not own this resource."


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class NotFound(ConduitError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class UniqueConstraintViolation(ConduitError):
    """A unique index rejected the write. `field` names the colliding column."""

    status_code = 422
    code = "already_taken"
    message = "has already been taken"

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def field_errors(self) -> dict[str, list[str]]:
        return {self.field: [self.message]}


class SlugTaken(UniqueConstraintViolation):
    """Raised when an article write collides on slug. Callers may retry with a fresh slug."""

    code = "slug_taken"

    def __init__(self, slug: str) -> None:
        super().__init__("slug")
        self.slug = slug
