"""
auth/credentials.py -- Password hashing and verification.

Security design decisions:
  KDF: PBKDF2-HMAC-SHA512, 10000 iterations, 512-bit output, via the standard
       library's hashlib.pbkdf2_hmac. The salt is 16 random bytes stored as
       32 hex chars; the hex text itself is the KDF salt, so records written
       by older deployments verify unchanged.

  Comparison: hmac.compare_digest() so verification time does not depend on
       how many leading characters of the hash match.

  _DUMMY_SALT / _DUMMY_HASH enable timing equalization in
       authenticate_user() so response time does not reveal whether an email
       is registered.

This module performs no I/O and no logging. All randomness and state live
in the caller-owned User record.

Layer rule: no imports from api/ or content/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import TYPE_CHECKING

from auth.models import User

if TYPE_CHECKING:
    from auth.store import UserStore

PBKDF2_DIGEST = "sha512"
PBKDF2_ITERATIONS = 10000
PBKDF2_KEY_BYTES = 64  # 512 bits
SALT_BYTES = 16


def _derive(plain: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac(
        PBKDF2_DIGEST,
        plain.encode("utf-8"),
        salt.encode("utf-8"),
        iterations,
        dklen=PBKDF2_KEY_BYTES,
    ).hex()


def set_password(plain: str, iterations: int = PBKDF2_ITERATIONS) -> tuple[str, str]:
    """Return a fresh (salt, hash) pair for the given plaintext password.

    Every call draws a new salt, so setting the same password twice yields
    two different hashes. Callers store both values, replacing any prior pair.
    Empty passwords are rejected at the API layer before reaching here.
    """
    salt = secrets.token_hex(SALT_BYTES)
    return salt, _derive(plain, salt, iterations)


def verify_password(plain: str, salt: str, stored_hash: str, iterations: int = PBKDF2_ITERATIONS) -> bool:
    """Return True iff `plain` hashes to `stored_hash` under `salt`.

    A mismatch is a normal negative result, never an exception.
    """
    candidate = _derive(plain, salt, iterations)
    return hmac.compare_digest(candidate.encode("ascii"), stored_hash.encode("ascii", "replace"))


# Timing equalization dummy pair.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_SALT, _DUMMY_HASH = set_password("conduit_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Look up a user by email and check the password with timing equalization.

    Always runs the KDF whether or not the email exists:
    - Unknown email: PBKDF2 runs against the dummy pair (same cost as a real check)
    - Wrong password: PBKDF2 runs against the real pair (same cost)

    Returns the User on success, None on any failure. The caller raises
    InvalidCredentials for None without saying which check failed.
    """
    user = store.get_by_email(email.lower())
    if user is None or not user.hash:
        verify_password(password, _DUMMY_SALT, _DUMMY_HASH)
        return None
    if not verify_password(password, user.salt, user.hash):
        return None
    return user
