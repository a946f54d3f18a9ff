"""
api/dependencies.py -- Store accessors and identity re-resolution for route handlers.

The authorization gate (auth/dependencies.py) only decodes the token. Claims
can be stale -- the user may have been renamed since the token was issued --
so handlers that need the full record call resolve_user() / resolve_viewer(),
which re-read the users table by claims.id.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import TokenClaims, User
from auth.store import UserStore
from auth.tokens import TokenService
from content.favorites import FavoritesEngine
from content.store import ArticleStore
from core.errors import Unauthorized


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_article_store(request: Request) -> ArticleStore:
    return request.app.state.article_store


def get_favorites(request: Request) -> FavoritesEngine:
    return request.app.state.favorites


def get_tokens(request: Request) -> TokenService:
    return request.app.state.token_service


def resolve_user(request: Request, claims: TokenClaims) -> User:
    """Return the current User for a validated token.

    A token whose user no longer exists is treated as unauthenticated (401),
    not as a missing resource.
    """
    user = get_user_store(request).get_by_id(claims.id)
    if user is None:
        raise Unauthorized()
    return user


def resolve_viewer(request: Request, claims: TokenClaims | None) -> User | None:
    """Optional-gate counterpart of resolve_user(): anonymous stays anonymous."""
    if claims is None:
        return None
    return get_user_store(request).get_by_id(claims.id)
