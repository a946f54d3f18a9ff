"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these classes own the domain shape.

Layer rule: no imports from api/ or content/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class User:
    """A registered identity.

    username and email are stored lowercase; the API layer normalizes them
    before they reach the store. salt and hash are produced together by
    auth.credentials.set_password() and always replaced as a pair.

    favorites is the set of article ids this user has favorited. It is the
    source of truth for every article's favorites_count.

    id is None before the record is written to the database.
    """

    username: str
    email: str
    salt: str = ""
    hash: str = ""
    bio: Optional[str] = None
    image: Optional[str] = None
    favorites: set[int] = field(default_factory=set)
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""

    def is_favorite(self, article_id: int) -> bool:
        return article_id in self.favorites


@dataclass
class UserPatch:
    """Explicit partial update for a User. None means "leave unchanged".

    password is plaintext here; the route hashes it into salt/hash before the
    store sees it.
    """

    username: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None
    image: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class TokenClaims:
    """Decoded identity claims carried by a bearer token.

    May be stale relative to the users table -- handlers re-resolve the full
    User from `id` when they need current state.
    """

    id: int
    username: str
    exp: int  # UNIX seconds
    iat: Optional[int] = None
